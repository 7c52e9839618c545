"""Exceptions raised by the service lifecycle core."""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for every error raised by svcctl."""


class ConfigurationError(ServiceError):
    """A service was configured incorrectly (programming mistake)."""


class NotReady(ServiceError):
    """Soft probe failure: the service is not ready *yet*.

    Custom probe callables raise this to ask the wait loop to try again on
    the next round.  It never escapes ``Service.start``.
    """

    def __init__(self, reason: str = "service is not ready") -> None:
        super().__init__(reason)
        self.reason = reason


class ProbeFailed(ServiceError):
    """A probe reported an error that retrying cannot fix."""

    def __init__(self, probe: str, error: BaseException) -> None:
        super().__init__(f"readiness probe {probe} failed: {error}")
        self.probe = probe
        self.error = error


class ProcessExitedError(ServiceError):
    """The managed process went away before its probes were satisfied."""

    def __init__(self, pid: int) -> None:
        super().__init__(f"process {pid} exited before checks were satisfied")
        self.pid = pid


class ReadinessTimeout(ServiceError):
    """The start timeout elapsed before every probe succeeded."""

    def __init__(self, name: str, timeout: float) -> None:
        super().__init__(f"{name} was not ready within {timeout:g}s")
        self.name = name
        self.timeout = timeout
