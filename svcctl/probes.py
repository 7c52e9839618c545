"""Readiness probes: checks that decide whether a service can take traffic.

Every probe answers with an :class:`Outcome`:

* ``SUCCESS``: the check passed; the wait loop will not ask again,
* ``NOT_READY``: expected while the service boots; asked again next round,
* ``FAILURE``: retrying cannot help (e.g. a malformed address); the wait
  aborts immediately.
"""

from __future__ import annotations

import asyncio
import enum
import inspect
import ipaddress
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Union

import httpx

from .errors import NotReady


# ---------------------------------------------------------------------------
# Outcome
# ---------------------------------------------------------------------------

class OutcomeKind(enum.Enum):
    SUCCESS = "success"
    NOT_READY = "not_ready"
    FAILURE = "failure"


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    reason: str = ""
    error: BaseException | None = None

    @classmethod
    def success(cls) -> Outcome:
        return cls(OutcomeKind.SUCCESS)

    @classmethod
    def not_ready(cls, reason: str = "service is not ready") -> Outcome:
        return cls(OutcomeKind.NOT_READY, reason=reason)

    @classmethod
    def failure(cls, error: BaseException) -> Outcome:
        return cls(OutcomeKind.FAILURE, reason=str(error), error=error)

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    @property
    def failed(self) -> bool:
        return self.kind is OutcomeKind.FAILURE


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------

class ReadinessProbe(ABC):
    """One independent readiness check."""

    @property
    def description(self) -> str:
        return type(self).__name__

    @abstractmethod
    async def probe(self) -> Outcome:
        """Run the check once. Must not raise for expected failures."""
        ...

    def __repr__(self) -> str:
        return f"<{self.description}>"


# ---------------------------------------------------------------------------
# Network dial
# ---------------------------------------------------------------------------

def split_host_port(address: str) -> tuple[str, int]:
    """Parse ``host:port`` or ``[v6-host]:port``.

    Raises ValueError for anything that is not a usable address; those are
    configuration mistakes, not transient conditions.
    """
    if address.startswith("["):
        end = address.find("]")
        if end < 0:
            raise ValueError(f"missing ']' in address {address!r}")
        host, rest = address[1:end], address[end + 1:]
        if not rest.startswith(":"):
            raise ValueError(f"missing port in address {address!r}")
        port_text = rest[1:]
        ipaddress.IPv6Address(host)
    else:
        host, sep, port_text = address.rpartition(":")
        if not sep:
            raise ValueError(f"missing port in address {address!r}")
        if ":" in host:
            raise ValueError(f"too many colons in address {address!r}")

    if not port_text.isdigit():
        raise ValueError(f"invalid port {port_text!r} in address {address!r}")
    port = int(port_text)
    if not 0 < port < 65536:
        raise ValueError(f"port {port} out of range in address {address!r}")
    return host or "localhost", port


class DialProbe(ReadinessProbe):
    """Ready once a connection to *address* succeeds."""

    def __init__(self, address: str, network: str = "tcp", timeout: float = 1.0) -> None:
        if network not in ("tcp", "unix"):
            raise ValueError(f"unsupported network {network!r}")
        self.address = address
        self.network = network
        self.timeout = timeout

    @property
    def description(self) -> str:
        return f"dial {self.network}://{self.address}"

    async def _connect(self) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        if self.network == "unix":
            if not self.address:
                raise ValueError("empty unix socket path")
            return await asyncio.open_unix_connection(self.address)
        host, port = split_host_port(self.address)
        return await asyncio.open_connection(host, port)

    async def probe(self) -> Outcome:
        try:
            _, writer = await asyncio.wait_for(self._connect(), self.timeout)
        except ValueError as exc:
            return Outcome.failure(exc)
        except (OSError, asyncio.TimeoutError) as exc:
            # refused, unreachable, DNS not there yet, timed out...
            return Outcome.not_ready(f"{self.description}: {exc!r}")

        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return Outcome.success()


# ---------------------------------------------------------------------------
# HTTP check
# ---------------------------------------------------------------------------

class HttpProbe(ReadinessProbe):
    """Ready once ``GET url`` answers with *status*."""

    def __init__(
        self,
        url: str,
        status: int = 200,
        timeout: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.status = status
        self.timeout = timeout
        self._transport = transport

    @property
    def description(self) -> str:
        return f"GET {self.url} -> {self.status}"

    async def probe(self) -> Outcome:
        try:
            url = httpx.URL(self.url)
        except httpx.InvalidURL as exc:
            return Outcome.failure(exc)
        if url.scheme not in ("http", "https"):
            return Outcome.failure(ValueError(f"unsupported URL scheme in {self.url!r}"))
        if not url.host:
            return Outcome.failure(ValueError(f"missing host in URL {self.url!r}"))
        if url.port is not None and not 0 < url.port <= 65535:
            return Outcome.failure(ValueError(f"port out of range in URL {self.url!r}"))

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                async with client.stream("GET", url) as rsp:
                    # Drain the body so the connection is released cleanly.
                    await rsp.aread()
                    status = rsp.status_code
        except httpx.HTTPError as exc:
            return Outcome.not_ready(f"{self.description}: {exc!r}")

        if status != self.status:
            return Outcome.not_ready(f"{self.description}: got {status}")
        return Outcome.success()


# ---------------------------------------------------------------------------
# Custom checks
# ---------------------------------------------------------------------------

CheckResult = Union[Outcome, bool, None]
CheckFunc = Callable[[], Union[CheckResult, Awaitable[CheckResult]]]


class FunctionProbe(ReadinessProbe):
    """Adapt a plain callable into a probe.

    The callable may be sync or async.  It signals readiness by returning
    ``None``/``True``, asks for another round by returning ``False`` or
    raising :class:`NotReady`, and fails hard by raising anything else.
    Returning an :class:`Outcome` passes it through untouched.
    """

    def __init__(self, func: CheckFunc, name: str | None = None) -> None:
        self.func = func
        self.name = name or getattr(func, "__name__", "check")

    @property
    def description(self) -> str:
        return f"check {self.name}"

    async def probe(self) -> Outcome:
        try:
            result: Any = self.func()
            if inspect.isawaitable(result):
                result = await result
        except NotReady as exc:
            return Outcome.not_ready(exc.reason)
        except Exception as exc:
            return Outcome.failure(exc)

        if isinstance(result, Outcome):
            return result
        if result is False:
            return Outcome.not_ready()
        return Outcome.success()


def as_probe(check: ReadinessProbe | CheckFunc) -> ReadinessProbe:
    if isinstance(check, ReadinessProbe):
        return check
    if callable(check):
        return FunctionProbe(check)
    raise TypeError(f"not a readiness probe: {check!r}")


async def run_probe(probe: ReadinessProbe) -> Outcome:
    """Run *probe* once; an exception escaping it counts as a hard failure."""
    try:
        return await probe.probe()
    except Exception as exc:
        return Outcome.failure(exc)
