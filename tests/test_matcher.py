"""
Tests for choosing the unique replacement certificate and key.
"""

import pytest

from pemswap.locator import parse_pkiobjects
from pemswap.matcher import choose_certificate, choose_private_key, load_certificate, load_private_key
from pemswap.model import AmbiguousMatch, ParseError


def parse(*pems):
    return parse_pkiobjects(b"".join(pems), "source.pem")


class TestChooseCertificate:

    def test_single_certificate_without_name(self, pki, svc1):
        objects = parse(pki.key_pem(svc1[1]), pki.cert_pem(svc1[0]))

        cert = choose_certificate(objects)

        assert cert.common_name == "svc1"

    def test_two_certificates_without_name_is_ambiguous(self, pki):
        objects = parse(pki.cert_pem(pki.cert("svc1")[0]), pki.cert_pem(pki.cert("svc2")[0]))

        with pytest.raises(AmbiguousMatch) as exc_info:
            choose_certificate(objects)
        assert exc_info.value.count == 2

    def test_no_certificates(self, pki, svc1):
        with pytest.raises(AmbiguousMatch) as exc_info:
            choose_certificate(parse(pki.key_pem(svc1[1])))
        assert exc_info.value.count == 0

    def test_by_name(self, pki):
        objects = parse(pki.cert_pem(pki.cert("svc1")[0]), pki.cert_pem(pki.cert("svc2")[0]))

        cert = choose_certificate(objects, "svc2")

        assert cert.common_name == "svc2"
        assert cert.locator.start > 0

    def test_name_is_case_sensitive(self, pki, svc1):
        with pytest.raises(AmbiguousMatch):
            choose_certificate(parse(pki.cert_pem(svc1[0])), "SVC1")

    def test_duplicate_name_is_ambiguous(self, pki):
        objects = parse(pki.cert_pem(pki.cert("svc1")[0]), pki.cert_pem(pki.cert("svc1")[0]))

        with pytest.raises(AmbiguousMatch, match="svc1"):
            choose_certificate(objects, "svc1")


class TestChoosePrivateKey:

    def test_matching_key_among_others(self, pki, svc1):
        cert_pem = pki.cert_pem(svc1[0])
        objects = parse(pki.key_pem(pki.key()), pki.key_pem(svc1[1]), pki.key_pem(pki.key("rsa")), cert_pem)
        cert = choose_certificate(objects)

        key = choose_private_key(objects, cert)

        assert key.locator.start == objects[1].locator.start

    def test_traditional_encoding_still_matches(self, pki, svc1):
        """A pair matches whatever way the private half is encoded."""
        objects = parse(pki.cert_pem(svc1[0]), pki.key_pem(svc1[1], traditional=True))

        key = choose_private_key(objects, choose_certificate(objects))

        assert key.to_pem() == pki.key_pem(svc1[1])

    def test_no_matching_key(self, pki, svc1):
        objects = parse(pki.cert_pem(svc1[0]), pki.key_pem(pki.key()))

        with pytest.raises(AmbiguousMatch, match="svc1"):
            choose_private_key(objects, choose_certificate(objects))

    def test_same_key_twice_is_ambiguous(self, pki, svc1):
        objects = parse(pki.cert_pem(svc1[0]), pki.key_pem(svc1[1]), pki.key_pem(svc1[1], traditional=True))

        with pytest.raises(AmbiguousMatch) as exc_info:
            choose_private_key(objects, choose_certificate(objects))
        assert exc_info.value.count == 2


def test_load_from_files(tmp_path, pki, svc1):
    cert_path = tmp_path / "new.crt"
    key_path = tmp_path / "new.key"
    cert_path.write_bytes(pki.cert_pem(svc1[0]))
    key_path.write_bytes(pki.key_pem(svc1[1]))

    cert = load_certificate(str(cert_path))
    key = load_private_key(str(key_path), cert)

    assert cert.locator.path == str(cert_path)
    assert key.locator.path == str(key_path)


def test_unsupported_public_key_is_parse_error(pki, svc1):
    objects = parse(pki.odd_key_cert_pem("svc1"), pki.key_pem(svc1[1]))

    with pytest.raises(ParseError, match="svc1"):
        choose_private_key(objects, choose_certificate(objects))
