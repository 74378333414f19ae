#
# what goes on in CLI-land?
#
# Usage: pemswap [-opts] PATH
#
#   pemswap /etc -n www.example.com                     # find
#   pemswap /etc --cert new.pem --priv new.key          # replace
#

import argparse
import logging
import os
import sys
from typing import List, Optional

from .finder import Finder
from .matcher import load_certificate, load_private_key
from .model import Certificate, PemSwapError, PEMKind, PEMLocator, PrivateKey
from .replacer import replace
from .settings import LOG_FORMAT, MAX_FILE_SIZE, Settings, configure_logging

logger = logging.getLogger("pemswap")

PASSWORD_ENV = "PEMSWAP_KEY_PASSWORD"

COMMON_NAME_HELP = "Subject common name to match in x509 certificates."

CERTIFICATE_HELP = (
    "Path to file containing certificate to use as a replacement. "
    "If this file contains only one certificate, no common name needs to be provided. "
    "Will just find matching certs if not provided."
)

PRIVATE_KEY_HELP = (
    "Path to file containing private key to use as a replacement. "
    "Private keys will not be replaced if this is not provided."
)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns: Parsed arguments

    """

    parser = argparse.ArgumentParser(
        prog="pemswap",
        description="Find or replace PEM certificates and private keys under a directory",
        epilog=f"Passphrases for encrypted private keys are read from ${PASSWORD_ENV}."
    )
    parser.add_argument(
        "path",
        metavar="PATH",
        help="Path to search in"
    )
    parser.add_argument(
        "-n",
        "--common-name",
        dest="common_name",
        help=COMMON_NAME_HELP
    )
    parser.add_argument(
        "--cert",
        dest="certificate",
        metavar="CERT_FILE",
        help=CERTIFICATE_HELP
    )
    parser.add_argument(
        "--priv",
        dest="private_key",
        metavar="KEY_FILE",
        help=PRIVATE_KEY_HELP
    )
    parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Don't ask for confirmation"
    )
    parser.add_argument(
        "--follow-symlinks",
        action="store_true",
        help="Follow symbolic links while walking PATH"
    )
    parser.add_argument(
        "--max_file_size",
        "-m",
        type=int,
        default=MAX_FILE_SIZE,
        help="Maximum size in bytes of files to search"
    )
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug output"
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output"
    )

    args = parser.parse_args(argv)
    if args.certificate is None and args.common_name is None:
        parser.error("No certificate or common name provided.")
    if args.private_key is not None and args.certificate is None:
        parser.error("--priv requires --cert")
    return args


def describe(common_name: str, certificate: Optional[Certificate], private_key: Optional[PrivateKey]) -> str:
    """One line telling the operator what is about to happen."""
    if certificate is None:
        return f"Finding certificates and private keys with common name: {common_name}"
    if private_key is None:
        return f"Replacing certificates with common name: {common_name}"
    return f"Replacing certificates and private keys with common name: {common_name}"


def get_user_consent(message: str) -> bool:
    """Returns True if user confirms operation."""
    try:
        answer = input(f"{message}; Okay? (y/n): ")
    except EOFError:
        return False
    return answer.strip().lower().startswith("y")


def print_pems(locators: List[PEMLocator]) -> None:
    """Print the files holding matches, certificates first."""
    print("\nMatching certificates:")
    for locator in locators:
        if locator.kind is PEMKind.CERTIFICATE:
            print(f"\t{locator.path}")
    print("\nMatching private keys:")
    for locator in locators:
        if locator.kind is PEMKind.PRIVATE_KEY:
            print(f"\t{locator.path}")


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    logging.basicConfig(format=LOG_FORMAT, level=logging.INFO)

    settings = Settings(
        verbose         = args.verbose,
        debug           = args.debug,
        follow_symlinks = args.follow_symlinks,
        max_file_size   = args.max_file_size,
        key_password    = os.environ.get(PASSWORD_ENV)
    )
    configure_logging(settings)

    #
    # replacement material first; any problem with it ends the run here,
    # before anything gets touched
    #
    certificate = None
    private_key = None
    common_name = args.common_name
    if args.certificate is not None:
        try:
            certificate = load_certificate(args.certificate, args.common_name, settings)
            if args.private_key is not None:
                private_key = load_private_key(args.private_key, certificate, settings)
        except (PemSwapError, OSError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        common_name = certificate.common_name
        if common_name is None:
            print(f"Error: certificate in {args.certificate} has no common name", file=sys.stderr)
            return 1

    message = describe(common_name, certificate, private_key)
    if not args.yes and not get_user_consent(message):
        print(f"User declined to replace objects for common name: {common_name}", file=sys.stderr)
        return 1

    reference_keys = [private_key] if private_key is not None else []
    locators = Finder(settings).find(args.path, common_name, reference_keys)

    if certificate is None:
        print_pems(locators)
        return 0

    report = replace(locators, certificate, private_key)
    for path, backup in report.replaced:
        print(f"Replaced PEMs in {path} (backup: {backup})")
    for path in report.failed:
        print(f"Warning: failed to replace PEMs in {path}", file=sys.stderr)
    return 0
