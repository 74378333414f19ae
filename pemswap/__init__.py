"""Find and replace PEM certificates and private keys embedded in files."""

from .finder import Finder, find
from .locator import parse_pkiobjects, read_pkiobjects
from .matcher import choose_certificate, choose_private_key, load_certificate, load_private_key
from .model import (AmbiguousMatch, Certificate, ParseError, PemSwapError, PEMKind,
                    PEMLocator, PKIObject, PrivateKey)
from .replacer import ReplaceReport, backup_file, replace, splice
from .settings import Settings

__version__ = "0.1.0"

__all__ = [
    "AmbiguousMatch",
    "Certificate",
    "Finder",
    "ParseError",
    "PemSwapError",
    "PEMKind",
    "PEMLocator",
    "PKIObject",
    "PrivateKey",
    "ReplaceReport",
    "Settings",
    "backup_file",
    "choose_certificate",
    "choose_private_key",
    "find",
    "load_certificate",
    "load_private_key",
    "parse_pkiobjects",
    "read_pkiobjects",
    "replace",
    "splice",
]
