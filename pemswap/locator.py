"""Find PEM-armored certificates and private keys inside arbitrary bytes.

Files are treated as opaque: a config file, a bundle or a key store may carry
armored blocks anywhere, surrounded by text we must not touch. The parser
walks the content once, left to right, and records for every block it
recognizes the exact byte span of the armor so it can later be spliced out.
"""

import logging
import re
import warnings
from typing import List, Optional

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.x509.oid import NameOID

from .model import Certificate, ParseError, PEMKind, PEMLocator, PKIObject, PrivateKey
from .settings import Settings

logger = logging.getLogger("pemswap")


# Known PEM labels and what they hold; everything else is skipped
PEM_FORMATS = {
    # Certificate formats
    "CERTIFICATE":              PEMKind.CERTIFICATE,
    "X509 CERTIFICATE":         PEMKind.CERTIFICATE,

    # Key formats
    "PRIVATE KEY":              PEMKind.PRIVATE_KEY,
    "ENCRYPTED PRIVATE KEY":    PEMKind.PRIVATE_KEY,
    "RSA PRIVATE KEY":          PEMKind.PRIVATE_KEY,
    "EC PRIVATE KEY":           PEMKind.PRIVATE_KEY,
    "DSA PRIVATE KEY":          PEMKind.PRIVATE_KEY,
}

BEGIN_RE = re.compile(rb"-----BEGIN ([^\r\n-]+)-----")


def parse_pkiobjects(data: bytes, path: str, password: Optional[bytes] = None) -> List[PKIObject]:
    """Parse every recognized PEM block in data.

    Args:
        data:     Full content of one file
        path:     Where data came from; stored in each locator
        password: Passphrase for encrypted private keys, if any

    Returns:
        Certificates and private keys in the order they appear

    Raises:
        ParseError: if a recognized block is truncated or does not decode.
            Nothing is returned for the file in that case.
    """
    objects: List[PKIObject] = []
    pos = 0

    while True:
        begin = BEGIN_RE.search(data, pos)
        if begin is None:
            break

        label = begin.group(1)
        end_marker = b"-----END " + label + b"-----"
        end_pos = data.find(end_marker, begin.end())
        label_str = label.decode("ascii", errors="replace")
        kind = PEM_FORMATS.get(label_str)

        if kind is None:
            logger.debug(f"Skipping unsupported PEM format '{label_str}' at offset {begin.start()} in {path}")
            pos = end_pos + len(end_marker) if end_pos != -1 else begin.end()
            continue

        if end_pos == -1:
            raise ParseError(
                f"Malformed PEM data in {path}: found BEGIN {label_str} at offset {begin.start()} but no END"
            )

        nested = BEGIN_RE.search(data, begin.end(), end_pos)
        if nested is not None:
            raise ParseError(
                f"Malformed PEM data in {path}: BEGIN {label_str} at offset {begin.start()} "
                f"is interrupted by another BEGIN at offset {nested.start()}"
            )

        end = _consume_line_end(data, end_pos + len(end_marker))
        locator = PEMLocator(path=path, kind=kind, start=begin.start(), end=end)

        block = data[locator.start:locator.end]
        if kind is PEMKind.CERTIFICATE:
            objects.append(_decode_certificate(block, locator))
        elif _is_encrypted(label_str, block):
            objects.append(_decode_private_key(block, locator, password))
        else:
            objects.append(_decode_private_key(block, locator, None))

        logger.debug(f"Found {kind.value} at [{locator.start}, {locator.end}) in {path}")
        pos = end

    return objects


def read_pkiobjects(path: str, settings: Optional[Settings] = None) -> List[PKIObject]:
    """Read a file and parse it; OSError and ParseError propagate."""
    settings = settings or Settings()
    with open(path, "rb") as f:
        data = f.read()
    return parse_pkiobjects(data, str(path), settings.password_bytes())


def _consume_line_end(data: bytes, pos: int) -> int:
    """Step over one line terminator following the END marker, if there is one."""
    if data.startswith(b"\r\n", pos):
        return pos + 2
    if data.startswith(b"\n", pos):
        return pos + 1
    return pos


def _is_encrypted(label: str, block: bytes) -> bool:
    # PKCS#8 says so in the label, traditional OpenSSL keys in a header line
    return label == "ENCRYPTED PRIVATE KEY" or b"Proc-Type: 4,ENCRYPTED" in block


def _decode_certificate(block: bytes, locator: PEMLocator) -> Certificate:
    try:
        # Suppress warnings
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            cert = x509.load_pem_x509_certificate(block)
            cn_attrs = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    except ValueError as e:
        raise ParseError(f"Failed to parse certificate at offset {locator.start} in {locator.path}: {e}") from e

    common_name = cn_attrs[0].value if cn_attrs else None
    if isinstance(common_name, bytes):
        common_name = common_name.decode("utf-8", errors="replace")
    return Certificate(common_name=common_name, cert_obj=cert, locator=locator)


def _decode_private_key(block: bytes, locator: PEMLocator, password: Optional[bytes]) -> PrivateKey:
    try:
        key = serialization.load_pem_private_key(block, password=password)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        # TypeError covers a missing or unexpected password
        raise ParseError(f"Failed to parse private key at offset {locator.start} in {locator.path}: {e}") from e
    return PrivateKey(key_obj=key, locator=locator)
