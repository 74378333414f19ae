#
# picking the one certificate/key to use as a replacement
#
# Both choosers insist on exactly one candidate. Guessing here would end up
# overwriting the wrong thing all over the filesystem.
#

import logging
from typing import Iterable, List, Optional

from .locator import read_pkiobjects
from .model import AmbiguousMatch, Certificate, PKIObject, PrivateKey
from .settings import Settings

logger = logging.getLogger("pemswap")


def choose_certificate(objects: Iterable[PKIObject], common_name: Optional[str] = None) -> Certificate:
    """Return the single certificate, or the single one with the given common name.

    Raises:
        AmbiguousMatch: if zero or more than one certificate qualifies
    """
    certs = [obj for obj in objects if isinstance(obj, Certificate)]

    if common_name is None:
        if len(certs) != 1:
            raise AmbiguousMatch(
                f"Certificate file contains {len(certs)} certificates instead of exactly one, "
                "so a common name must be provided",
                count=len(certs)
            )
        return certs[0]

    matches = [cert for cert in certs if cert.common_name == common_name]
    if len(matches) != 1:
        raise AmbiguousMatch(
            f"Certificate file contains {len(matches)} certificates with common name "
            f"'{common_name}' instead of exactly one",
            count=len(matches)
        )
    return matches[0]


def choose_private_key(objects: Iterable[PKIObject], certificate: Certificate) -> PrivateKey:
    """Return the single private key whose public half matches the certificate.

    Raises:
        ParseError:     if the certificate's public key can't be extracted
        AmbiguousMatch: if zero or more than one key matches
    """
    cert_public = certificate.public_key_bytes()
    matches: List[PrivateKey] = [
        obj for obj in objects
        if isinstance(obj, PrivateKey) and obj.public_eq(cert_public)
    ]
    if len(matches) != 1:
        raise AmbiguousMatch(
            f"Provided file contains {len(matches)} private keys matching certificate with "
            f"common name '{certificate.common_name}' instead of exactly one",
            count=len(matches)
        )
    return matches[0]


def load_certificate(path: str, common_name: Optional[str] = None, settings: Optional[Settings] = None) -> Certificate:
    """Read a replacement certificate file and choose from it."""
    cert = choose_certificate(read_pkiobjects(path, settings), common_name)
    logger.info(f"Using certificate '{cert.common_name}' from {path}")
    return cert


def load_private_key(path: str, certificate: Certificate, settings: Optional[Settings] = None) -> PrivateKey:
    """Read a replacement private key file and choose the key for certificate."""
    key = choose_private_key(read_pkiobjects(path, settings), certificate)
    logger.info(f"Using private key from {path} for '{certificate.common_name}'")
    return key
