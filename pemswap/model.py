#
# data containers for things found in files: where a PEM block sits, and
# what it decoded to
#

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization


class PemSwapError(Exception):
    """Base class for errors raised by pemswap."""


class ParseError(PemSwapError):
    """Malformed PEM armor or undecodable DER."""


class AmbiguousMatch(PemSwapError):
    """Zero or several candidates where exactly one was required."""

    def __init__(self, message: str, count: int = 0):
        super().__init__(message)
        self.count = count


class PEMKind(Enum):
    """What kind of object a PEM block holds."""
    CERTIFICATE = "certificate"
    PRIVATE_KEY = "private key"


@dataclass(frozen=True)
class PEMLocator:
    """Byte range [start, end) of an armored block inside a file."""
    path:   str
    kind:   PEMKind
    start:  int
    end:    int

    def __len__(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class Certificate:
    """Certificate found in a file."""
    common_name:    Optional[str]
    cert_obj:       x509.Certificate
    locator:        PEMLocator

    def public_key_bytes(self) -> bytes:
        try:
            return public_key_bytes(self.cert_obj.public_key())
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise ParseError(
                f"Failed to get public key from certificate, cn: {self.common_name}: {e}"
            ) from e

    def to_pem(self) -> bytes:
        return self.cert_obj.public_bytes(encoding=serialization.Encoding.PEM)


@dataclass(frozen=True)
class PrivateKey:
    """Private key found in a file."""
    key_obj:    Any
    locator:    PEMLocator

    def public_key_bytes(self) -> bytes:
        return public_key_bytes(self.key_obj.public_key())

    def public_eq(self, other: bytes) -> bool:
        """Compare our public half against DER SubjectPublicKeyInfo bytes."""
        return self.public_key_bytes() == other

    def to_pem(self) -> bytes:
        """Unencrypted PKCS#8 PEM."""
        return self.key_obj.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption()
        )


PKIObject = Union[Certificate, PrivateKey]


def public_key_bytes(public_key: Any) -> bytes:
    """DER SubjectPublicKeyInfo of a public key; works for every key type."""
    return public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    )
