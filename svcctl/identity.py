"""Identity store: the pid file that says which OS process is ours."""

from __future__ import annotations

import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from .models import UNKNOWN, Identity

log = logging.getLogger(__name__)


class IdentityStore:
    """Best-effort reader/writer for a single pid file.

    Reads never fail: anything short of a clean decimal pid is reported as
    an unknown identity, which callers treat as "not running".
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def read(self) -> Identity:
        try:
            with open(self.path, "rb") as f:
                mtime = os.fstat(f.fileno()).st_mtime
                data = f.read()
        except OSError:
            return UNKNOWN

        try:
            text = data.decode("utf-8").strip()
        except UnicodeDecodeError:
            text = ""
        # plain ASCII decimal digits only
        if not (text.isascii() and text.isdigit()):
            log.debug("Ignoring garbled pid file %s", self.path)
            return UNKNOWN
        pid = int(text)
        if pid <= 0:
            return UNKNOWN

        return Identity(
            pid=pid,
            recorded_at=datetime.fromtimestamp(mtime, tz=timezone.utc),
        )

    def write(self, pid: int) -> None:
        """Record *pid*, replacing any previous record.

        The record is written to a temporary file next to the target and
        renamed into place, so readers see either the old or the new pid.
        """
        parent = self.path.parent
        parent.mkdir(mode=0o700, parents=True, exist_ok=True)

        fd, tmp = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(str(pid))
            os.chmod(tmp, 0o600)
            os.replace(tmp, self.path)
        except BaseException:
            try:
                os.unlink(tmp)
            except OSError:
                pass
            raise

    def remove(self) -> None:
        try:
            self.path.unlink()
        except OSError:
            pass
