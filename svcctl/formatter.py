"""Render StatusSnapshots for people and for machines.

Rendering is pure: a formatter never looks at the process table or the pid
file, it only reads the snapshot it is handed.
"""

from __future__ import annotations

import json
import sys
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import TextIO

from .models import StatusSnapshot


def describe(status: StatusSnapshot) -> str:
    """Explain the status in one English sentence."""
    if status.pid == 0:
        return f"{status.name} is not running"
    if not status.running:
        return f"{status.name} had pid {status.pid} and is not running"
    if status.ready:
        return f"{status.name} has pid {status.pid} and is ready"
    return f"{status.name} has pid {status.pid} and is running but not ready"


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------


class Formatter(ABC):
    """Render snapshots into strings."""

    @abstractmethod
    def format(self, status: StatusSnapshot) -> str:
        ...

    @abstractmethod
    def format_many(self, statuses: Iterable[StatusSnapshot]) -> str:
        ...


# ---------------------------------------------------------------------------
# Implementations
# ---------------------------------------------------------------------------


class TextFormatter(Formatter):
    def format(self, status: StatusSnapshot) -> str:
        return describe(status)

    def format_many(self, statuses: Iterable[StatusSnapshot]) -> str:
        return "\n".join(describe(s) for s in statuses)


class JsonFormatter(Formatter):
    """Stable JSON form; keys are always present and sorted."""

    def __init__(self, indent: int | None = None) -> None:
        self.indent = indent

    def format(self, status: StatusSnapshot) -> str:
        return json.dumps(status.to_dict(), indent=self.indent, sort_keys=True)

    def format_many(self, statuses: Iterable[StatusSnapshot]) -> str:
        return json.dumps([s.to_dict() for s in statuses], indent=self.indent, sort_keys=True)


def print_status(status: StatusSnapshot, stream: TextIO | None = None) -> None:
    """Write the status sentence to stderr (or *stream*)."""
    print(describe(status), file=stream or sys.stderr)
