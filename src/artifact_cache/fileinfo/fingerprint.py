"""Compute the ``{mtime, size, hash}`` fingerprint used for staleness checks."""

from __future__ import annotations

import hashlib
import logging
import stat
from pathlib import Path

from .schema import Fingerprint

LOGGER = logging.getLogger(__name__)


def compute_fingerprint(path: Path | str) -> Fingerprint | None:
    """Return the fingerprint of ``path`` or ``None`` when it is not a regular file.

    Errors other than a missing path are logged and re-raised.
    """
    source = Path(path)
    try:
        info = source.stat()
        if not stat.S_ISREG(info.st_mode):
            return None
        content = source.read_bytes()
    except FileNotFoundError:
        return None
    except OSError:
        LOGGER.error("Failed to fingerprint %s", source, exc_info=True)
        raise
    return Fingerprint(
        mtime=info.st_mtime_ns // 1_000_000,
        size=info.st_size,
        hash=hashlib.sha1(content).hexdigest(),
    )
