#
# knobs for a run, and how chatty the "pemswap" logger is
#

import logging
from typing import Optional

import pydantic


# 10 megs... should be enough, but...
MAX_FILE_SIZE = 1024 * 1024 * 10

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger("pemswap")


class Settings(pydantic.BaseModel):
    """Application settings."""
    verbose:            bool = False
    debug:              bool = False
    follow_symlinks:    bool = False
    max_file_size:      int  = MAX_FILE_SIZE
    key_password:       Optional[str] = None  # for ENCRYPTED PRIVATE KEY blocks

    def password_bytes(self) -> Optional[bytes]:
        if self.key_password is None:
            return None
        return self.key_password.encode("utf-8")


def configure_logging(settings: Settings) -> None:
    """Set the pemswap logger level from settings."""
    if settings.debug:
        logger.setLevel(logging.DEBUG)
    elif settings.verbose:
        logger.setLevel(logging.INFO)
    else:
        logger.setLevel(logging.WARNING)
