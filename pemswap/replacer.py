"""Splice replacement PEM blocks into files in place.

Locators carry byte offsets into the content as it was when parsed. Within a
file they are applied in ascending order, and every splice shifts the bytes
after it by the difference between the new and old block length. A single
running offset translates the original coordinates into the current ones, so
nothing needs to be parsed twice.
"""

import logging
import os
import shutil
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from .model import Certificate, PEMKind, PEMLocator, PrivateKey

logger = logging.getLogger("pemswap")

BACKUP_TIME_FORMAT = "%y-%m-%d-T%H-%M"


@dataclass
class ReplaceReport:
    """What happened to each file during a replace run."""
    replaced:   List[Tuple[str, str]] = field(default_factory=list)  # (path, backup path)
    skipped:    List[str] = field(default_factory=list)
    failed:     List[str] = field(default_factory=list)


def splice(content: bytes, locators: Iterable[PEMLocator], replacements: Mapping[PEMKind, bytes]) -> bytes:
    """Replace the spans named by locators with the PEM for their kind.

    Locators must come from a single parse of content, in ascending start
    order. Locators whose kind has no replacement are left alone.
    """
    result = bytearray(content)
    offset = 0
    for locator in locators:
        pem = replacements.get(locator.kind)
        if pem is None:
            continue
        start = max(0, locator.start + offset)
        end = max(0, locator.end + offset)
        result[start:end] = pem
        offset += len(pem) - (locator.end - locator.start)
    return bytes(result)


def backup_path(path: str, now: Optional[datetime] = None) -> str:
    """<stem>.<ext>.<YY-MM-DD-THH-MM>.bkp next to path; ext may be empty."""
    now = now or datetime.now(timezone.utc)
    p = Path(path)
    ext = p.suffix[1:]
    return str(p.with_name(f"{p.stem}.{ext}.{now.strftime(BACKUP_TIME_FORMAT)}.bkp"))


def backup_file(path: str, now: Optional[datetime] = None) -> str:
    """Copy path to its backup name and return the backup path."""
    dest = backup_path(path, now)
    shutil.copy(path, dest)
    return dest


def group_by_path(locators: Iterable[PEMLocator]) -> Dict[str, List[PEMLocator]]:
    """Group locators per file, keeping discovery order."""
    by_path: Dict[str, List[PEMLocator]] = defaultdict(list)
    for locator in locators:
        by_path[locator.path].append(locator)
    return by_path


def replace(locators: Iterable[PEMLocator], certificate: Certificate,
            private_key: Optional[PrivateKey] = None) -> ReplaceReport:
    """Replace matched certificates (and private keys, if given) in their files.

    Each file is backed up before it is touched. Problems with one file are
    logged and recorded in the report; the remaining files are still
    processed. The files the replacements were read from are never modified.

    Args:
        locators:    Matches from a find run
        certificate: New certificate
        private_key: New private key; matched keys are kept as-is without it

    Returns:
        ReplaceReport
    """
    replacements = {PEMKind.CERTIFICATE: certificate.to_pem()}
    sources = {os.path.realpath(certificate.locator.path)}
    if private_key is not None:
        replacements[PEMKind.PRIVATE_KEY] = private_key.to_pem()
        sources.add(os.path.realpath(private_key.locator.path))

    report = ReplaceReport()
    done: Set[str] = set()

    for path, file_locators in group_by_path(locators).items():
        real = os.path.realpath(path)
        if real in done:
            # another name for a file already handled; its offsets are stale now
            logger.info(f"Skipping '{path}', same file as one already processed")
            report.skipped.append(path)
            continue
        done.add(real)

        if real in sources:
            logger.info(f"Skipping '{path}', it holds the replacement material")
            report.skipped.append(path)
            continue

        if not any(loc.kind in replacements for loc in file_locators):
            logger.info(f"Skipping '{path}', nothing to replace")
            report.skipped.append(path)
            continue

        try:
            backup = backup_file(path)
        except OSError as e:
            logger.error(f"Failed to backup file at '{path}': {e}")
            report.failed.append(path)
            continue

        try:
            with open(path, "rb") as f:
                content = f.read()
        except OSError as e:
            logger.error(f"Failed to read file marked for modification at '{path}': {e}")
            report.failed.append(path)
            continue

        content = splice(content, file_locators, replacements)

        logger.info(f"Replacing PEMs in {path} (backup: {backup})")
        try:
            with open(path, "wb") as f:
                f.write(content)
        except OSError as e:
            logger.error(f"Error writing '{path}', original content is in {backup}: {e}")
            report.failed.append(path)
            continue

        report.replaced.append((path, backup))

    return report
