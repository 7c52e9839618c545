from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .probes import ReadinessProbe


# ---------------------------------------------------------------------------
# Persisted identity
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Identity:
    """The pid recorded on disk and the time the record was written.

    ``pid == 0`` means "unknown": no record, or one that could not be read.
    """

    pid: int = 0
    recorded_at: datetime | None = None

    @property
    def known(self) -> bool:
        return self.pid != 0


UNKNOWN = Identity()


# ---------------------------------------------------------------------------
# Service configuration
# ---------------------------------------------------------------------------

class ServiceState(str, enum.Enum):
    UNKNOWN = "unknown"
    STARTING = "starting"
    READY = "ready"
    FAILED = "failed"
    STOPPING = "stopping"


@dataclass(frozen=True)
class LaunchSpec:
    """How to launch the service process."""

    command: str
    args: tuple[str, ...] = ()
    env: dict[str, str] = field(default_factory=dict)
    cwd: Path | None = None

    @property
    def argv(self) -> list[str]:
        return [self.command, *self.args]


@dataclass(frozen=True)
class ServiceConfig:
    name: str
    pid_file: Path
    launch: LaunchSpec
    probes: tuple[ReadinessProbe, ...] = ()
    poll_interval: float = 0.1  # seconds between readiness rounds
    stop_timeout: float = 10.0  # SIGTERM grace period before SIGKILL


# ---------------------------------------------------------------------------
# Status snapshot
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StatusSnapshot:
    """Point-in-time view of a service, as understood by svcctl.

    ``ready`` implies ``running``, which implies a nonzero ``pid``.  A
    nonzero pid on its own only means the identity file could be read.
    """

    name: str
    pid: int = 0
    recorded_at: datetime | None = None
    running: bool = False
    ready: bool = False

    def __post_init__(self) -> None:
        if self.ready and not self.running:
            raise ValueError(f"{self.name}: ready status requires a running process")
        if self.running and self.pid == 0:
            raise ValueError(f"{self.name}: running status requires a pid")

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "pid": self.pid,
            "recorded_at": self.recorded_at.isoformat() if self.recorded_at else None,
            "running": self.running,
            "ready": self.ready,
        }

    def __str__(self) -> str:
        from .formatter import describe

        return describe(self)
