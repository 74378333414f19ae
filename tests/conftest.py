"""
Pytest fixtures: throwaway keys, self-signed certificates and PEM helpers.
"""

import datetime

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import NameOID


EC_PUBLIC_KEY_OID = b"\x06\x07\x2a\x86\x48\xce\x3d\x02\x01"


class PKIFactory:
    """Builds keys and certificates for tests."""

    def key(self, algorithm: str = "ec"):
        if algorithm == "rsa":
            return rsa.generate_private_key(public_exponent=65537, key_size=2048)
        return ec.generate_private_key(ec.SECP256R1())

    def cert(self, common_name, key=None):
        """Self-signed certificate; common_name=None leaves the CN out."""
        key = key or self.key()
        if common_name is None:
            attrs = [x509.NameAttribute(NameOID.ORGANIZATION_NAME, "No CN Inc")]
        else:
            attrs = [x509.NameAttribute(NameOID.COMMON_NAME, common_name)]
        name = x509.Name(attrs)
        now = datetime.datetime.now(datetime.timezone.utc)
        cert = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - datetime.timedelta(days=1))
            .not_valid_after(now + datetime.timedelta(days=30))
            .sign(key, hashes.SHA256())
        )
        return cert, key

    def cert_pem(self, cert) -> bytes:
        return cert.public_bytes(serialization.Encoding.PEM)

    def key_pem(self, key, traditional: bool = False, password: bytes = None) -> bytes:
        if password is not None:
            encryption = serialization.BestAvailableEncryption(password)
        else:
            encryption = serialization.NoEncryption()
        fmt = serialization.PrivateFormat.TraditionalOpenSSL if traditional else serialization.PrivateFormat.PKCS8
        return key.private_bytes(serialization.Encoding.PEM, fmt, encryption)

    def odd_key_cert_pem(self, common_name) -> bytes:
        """Certificate whose public key algorithm OID nobody knows."""
        cert, _ = self.cert(common_name)
        der = cert.public_bytes(serialization.Encoding.DER)
        # id-ecPublicKey (1.2.840.10045.2.1) becomes 1.2.840.10045.2.9
        der = der.replace(EC_PUBLIC_KEY_OID, EC_PUBLIC_KEY_OID[:-1] + b"\x09", 1)
        return x509.load_der_x509_certificate(der).public_bytes(serialization.Encoding.PEM)


@pytest.fixture
def pki() -> PKIFactory:
    return PKIFactory()


@pytest.fixture
def svc1(pki):
    """(certificate, key) for common name svc1."""
    return pki.cert("svc1")


@pytest.fixture
def svc1_new(pki):
    """A fresh (certificate, key) pair for svc1, as an operator would roll out."""
    return pki.cert("svc1")
