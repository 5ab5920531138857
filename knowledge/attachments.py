"""
knowledge/attachments.py -- Filesystem storage for PDF attachments.

Two-phase write so a failed database insert never leaves an orphan file
behind:
  1. stage()   -- bytes land in <root>/.staging/<name>
  2. (caller inserts the knowledge_requests row)
  3. promote() -- atomic rename into <root>/<name>
  discard()    -- removes the staged and/or promoted copy; used for cleanup

Only promoted files are visible to resolve(), so a request whose row
is not committed can never be downloaded.

Names are generated here, never taken from the client. Incoming names on the
download path are validated before they touch the filesystem.
"""

from __future__ import annotations

import logging
import os
import re
import secrets
import time
from pathlib import Path

from core.errors import NotFound

logger = logging.getLogger("knowledgegate.attachments")

_STAGING = ".staging"
_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,254}$")


class AttachmentStore:
    """Blob store keyed by generated filename.

    Usage:
        files = AttachmentStore(Path("./uploads"))
        name = files.generate_name("report.pdf")
        files.stage(name, data)
        ...insert row...
        path = files.promote(name)
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).resolve()
        self.staging = self.root / _STAGING
        self.staging.mkdir(parents=True, exist_ok=True)

    def generate_name(self, original_filename: str) -> str:
        """Return a fresh stored name: kr-<epoch ms>-<random><original extension>."""
        suffix = Path(original_filename).suffix.lower()
        return f"kr-{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{suffix}"

    def stage(self, name: str, data: bytes) -> Path:
        path = self.staging / _checked(name)
        path.write_bytes(data)
        return path

    def promote(self, name: str) -> Path:
        """Move a staged file into the served directory. Returns its final path."""
        target = self.root / _checked(name)
        os.replace(self.staging / name, target)
        return target

    def discard(self, name: str) -> None:
        """Remove any staged or promoted copy of name. Missing files are ignored."""
        for path in (self.staging / name, self.root / name):
            try:
                path.unlink(missing_ok=True)
            except OSError:
                logger.exception("Could not remove attachment %s", path)

    def resolve(self, name: str) -> Path:
        """Return the served path for name.

        Raises NotFound for names that could escape the root (separators,
        traversal, hidden files). Such a name cannot refer to a stored file.
        """
        if not _NAME_RE.match(name) or ".." in name:
            raise NotFound("File not found.")
        path = (self.root / name).resolve()
        if not path.is_relative_to(self.root) or path.parent != self.root:
            raise NotFound("File not found.")
        return path


def _checked(name: str) -> str:
    if not _NAME_RE.match(name) or ".." in name:
        raise ValueError(f"Invalid attachment name: {name!r}")
    return name
