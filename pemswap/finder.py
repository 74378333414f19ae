import logging
import os
from typing import Iterable, Iterator, List, Optional, Set, Tuple

from .locator import parse_pkiobjects
from .model import Certificate, ParseError, PEMKind, PEMLocator, PKIObject, PrivateKey
from .settings import Settings

logger = logging.getLogger("pemswap")


class Finder:
    """Walk a directory tree hunting for a certificate and its private keys."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()

    def find(self, root: str, common_name: str, reference_keys: Iterable[PrivateKey] = ()) -> List[PEMLocator]:
        """Locate matching certificates and private keys under root.

        A certificate matches when its common name equals common_name. A
        private key matches when its public key equals that of one of the
        reference keys, or of any certificate matched anywhere in the tree.
        Files that can't be read or parsed are logged and skipped.

        Args:
            root:           Directory (or single file) to search
            common_name:    Subject CN of the certificates to find
            reference_keys: Extra private keys whose pairs should be found

        Returns:
            Locators in discovery order
        """
        parsed = list(self._parse_tree(root))

        public_keys: Set[bytes] = {key.public_key_bytes() for key in reference_keys}
        for _, objects in parsed:
            for obj in objects:
                if isinstance(obj, Certificate) and obj.common_name == common_name:
                    try:
                        public_keys.add(obj.public_key_bytes())
                    except ParseError as e:
                        logger.warning(f"{e}; its private keys can't be matched")

        locators: List[PEMLocator] = []
        for path, objects in parsed:
            for obj in objects:
                if isinstance(obj, Certificate):
                    if obj.common_name == common_name:
                        locators.append(obj.locator)
                elif obj.public_key_bytes() in public_keys:
                    locators.append(obj.locator)

        certs = sum(1 for loc in locators if loc.kind is PEMKind.CERTIFICATE)
        logger.info(f"Found {certs} matching certificates and {len(locators) - certs} matching private keys under {root}")
        return locators

    def _parse_tree(self, root: str) -> Iterator[Tuple[str, List[PKIObject]]]:
        for path in self._walk(root):
            objects = self._parse_file(path)
            if objects:
                yield path, objects

    def _walk(self, root: str) -> Iterator[str]:
        """Yield file paths under root in a stable, sorted order."""
        if not os.path.isdir(root):
            yield root
            return

        follow = self.settings.follow_symlinks
        seen_dirs: Set[str] = set()
        seen_files: Set[str] = set()

        def on_error(err: OSError) -> None:
            logger.warning(f"Skipping directory '{err.filename}': {err.strerror}")

        for dirpath, dirnames, filenames in os.walk(root, onerror=on_error, followlinks=follow):
            if follow:
                # symlink loops would otherwise walk forever
                real = os.path.realpath(dirpath)
                if real in seen_dirs:
                    dirnames[:] = []
                    continue
                seen_dirs.add(real)

            dirnames.sort()
            for name in sorted(filenames):
                path = os.path.join(dirpath, name)
                if follow:
                    # a file reached through several links is still one file
                    real = os.path.realpath(path)
                    if real in seen_files:
                        logger.debug(f"Skipping '{path}', already seen as {real}")
                        continue
                    seen_files.add(real)
                yield path

    def _parse_file(self, path: str) -> List[PKIObject]:
        """Parse one file; every failure is a warning and an empty result."""
        if os.path.islink(path) and not self.settings.follow_symlinks:
            logger.debug(f"Skipping '{path}', symbolic link")
            return []

        if not os.path.isfile(path):
            logger.warning(f"Skipping '{path}', not a file")
            return []

        try:
            if os.stat(path).st_size > self.settings.max_file_size:
                logger.warning(f"Skipping '{path}', larger than maximum allowed ({self.settings.max_file_size} bytes)")
                return []

            with open(path, "rb") as f:
                data = f.read()
        except OSError as e:
            logger.warning(f"Skipping '{path}', can't read it: {e}")
            return []

        try:
            objects = parse_pkiobjects(data, path, self.settings.password_bytes())
        except ParseError as e:
            logger.warning(f"Skipping '{path}': {e}")
            return []

        logger.debug(f"Processed {path}: {len(objects)} certificates/keys")
        return objects


def find(root: str, common_name: str, reference_keys: Iterable[PrivateKey] = (),
         settings: Optional[Settings] = None) -> List[PEMLocator]:
    """Shorthand for Finder(settings).find(...)."""
    return Finder(settings).find(root, common_name, reference_keys)
