"""Thin handle around an OS process identified by pid (POSIX only)."""

from __future__ import annotations

import asyncio
import os
import signal
import subprocess

# Children this process launched through a ProcessHandle.  Only these are
# ever reaped here; other children belong to whoever embeds us.
_launched: set[int] = set()


def launched(pid: int) -> bool:
    """True if *pid* is a child we started and have not reaped yet."""
    return pid in _launched


def pid_alive(pid: int) -> bool:
    """Return True if *pid* refers to a live process we may signal.

    Exited children we launched are reaped first, otherwise they would
    linger as zombies and keep answering the zero signal.  Any other pid is
    only checked with the zero signal.
    """
    if pid in _launched:
        try:
            reaped, _ = os.waitpid(pid, os.WNOHANG)
        except ChildProcessError:
            _launched.discard(pid)  # reaped elsewhere
        except OSError:
            return False
        else:
            if reaped == pid:
                _launched.discard(pid)
                return False

    # Signal 0 is never delivered; it only checks existence and permission.
    try:
        os.kill(pid, 0)
    except OSError:
        return False
    return True


class ProcessHandle:
    """A reference to a running process.

    A handle created from :class:`subprocess.Popen` *owns* the child until
    :meth:`release` is called; afterwards it is a plain pid reference and the
    process keeps running independently of this object.
    """

    def __init__(self, pid: int, popen: subprocess.Popen[bytes] | None = None) -> None:
        self.pid = pid
        self._popen = popen
        if popen is not None:
            _launched.add(pid)

    def __repr__(self) -> str:
        owner = "owned" if self._popen is not None else "released"
        return f"<ProcessHandle pid={self.pid} {owner}>"

    @property
    def owned(self) -> bool:
        return self._popen is not None

    def release(self) -> None:
        """Stop owning the OS process; it outlives this handle."""
        self._popen = None

    def is_alive(self) -> bool:
        if self._popen is not None:
            if self._popen.poll() is None:
                return True
            _launched.discard(self.pid)
            return False
        return pid_alive(self.pid)

    def signal(self, sig: int) -> None:
        """Send *sig*, to the whole process group when we lead one.

        Services are launched in their own session, so their pgid equals
        their pid.  Anything else is signalled individually so we never hit
        our own group.
        """
        try:
            pgid = os.getpgid(self.pid)
        except OSError:
            pgid = None
        if pgid == self.pid and pgid != os.getpgrp():
            os.killpg(pgid, sig)
        else:
            os.kill(self.pid, sig)

    def kill(self) -> None:
        """SIGKILL the process and reap it if we launched it."""
        try:
            self.signal(signal.SIGKILL)
        except ProcessLookupError:
            pass
        if self._popen is not None:
            self._popen.wait()
        elif self.pid in _launched:
            try:
                os.waitpid(self.pid, 0)
            except ChildProcessError:
                pass  # reaped elsewhere
        _launched.discard(self.pid)

    async def wait(self, timeout: float, interval: float = 0.05) -> bool:
        """Poll until the process is gone. Returns False on timeout."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while self.is_alive():
            if loop.time() >= deadline:
                return False
            await asyncio.sleep(interval)
        return True
