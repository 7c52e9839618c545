"""Decide whether a recorded identity still points at a live process.

A pid on disk is only trustworthy if three things hold:

1. it is not init (or garbage that parsed as 0/1),
2. the system has not rebooted since it was written, since pids start
   over after a boot and may now belong to anything,
3. something with that pid exists and accepts our zero signal.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

import psutil

from .models import Identity
from .process import ProcessHandle, pid_alive

log = logging.getLogger(__name__)


class LivenessResolver:
    """Resolve :class:`Identity` records into process handles.

    The boot time is looked up once, on first use, and cached for the life of
    the resolver.  Both the boot-time source and the clock are injectable.
    """

    def __init__(
        self,
        boot_time: Callable[[], float] = psutil.boot_time,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._boot_time_source = boot_time
        self._clock = clock
        self._boot_time: float | None = None
        self._boot_time_loaded = False

    def boot_time(self) -> float | None:
        if not self._boot_time_loaded:
            self._boot_time_loaded = True
            try:
                self._boot_time = float(self._boot_time_source())
            except Exception:
                log.warning("Could not determine system boot time; skipping reboot check", exc_info=True)
                self._boot_time = None
        return self._boot_time

    def uptime(self) -> float | None:
        booted = self.boot_time()
        if booted is None:
            return None
        return self._clock() - booted

    def rebooted_since(self, identity: Identity) -> bool:
        if identity.recorded_at is None:
            return False
        uptime = self.uptime()
        if uptime is None:
            return False
        age = self._clock() - identity.recorded_at.timestamp()
        return age > uptime

    def resolve(self, identity: Identity) -> ProcessHandle | None:
        if identity.pid < 2:
            # never touch init because of a corrupt record
            return None
        if self.rebooted_since(identity):
            log.debug("pid %d was recorded before the last boot; ignoring", identity.pid)
            return None
        if not pid_alive(identity.pid):
            return None
        return ProcessHandle(identity.pid)


_default: LivenessResolver | None = None


def default_resolver() -> LivenessResolver:
    """Process-wide resolver, created on first use."""
    global _default
    if _default is None:
        _default = LivenessResolver()
    return _default
