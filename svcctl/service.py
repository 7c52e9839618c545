"""Start, stop and inspect one locally managed process.

The pid file is the single source of truth for "which process is ours".
Nothing here keeps a long-lived handle on the child: a service started by
one run can be stopped or inspected by another.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import subprocess
from collections.abc import Mapping
from pathlib import Path

from .errors import ConfigurationError, ProbeFailed, ProcessExitedError, ReadinessTimeout
from .identity import IdentityStore
from .liveness import LivenessResolver, default_resolver
from .models import LaunchSpec, ServiceConfig, ServiceState, StatusSnapshot
from .probes import CheckFunc, DialProbe, HttpProbe, Outcome, ReadinessProbe, as_probe, run_probe
from .process import ProcessHandle

log = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.1
DEFAULT_STOP_TIMEOUT = 10.0


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ServiceBuilder:
    """Assemble an immutable :class:`ServiceConfig`.

        config = (
            ServiceBuilder("web")
            .run("python3", "-m", "http.server", "8000")
            .dial_check("127.0.0.1:8000")
            .build()
        )
    """

    def __init__(self, name: str) -> None:
        if not name:
            raise ConfigurationError("services need a name")
        self.name = name
        self._command: str | None = None
        self._args: tuple[str, ...] = ()
        self._env: dict[str, str] = {}
        self._cwd: Path | None = None
        self._pid_file: Path | None = None
        self._probes: list[ReadinessProbe] = []
        self._poll_interval = DEFAULT_POLL_INTERVAL
        self._stop_timeout = DEFAULT_STOP_TIMEOUT

    def run(self, command: str, *args: str) -> ServiceBuilder:
        if self._command is not None:
            raise ConfigurationError(f"service {self.name!r} expects exactly one run command")
        if not command:
            raise ConfigurationError(f"service {self.name!r} has an empty command")
        self._command = command
        self._args = tuple(str(a) for a in args)
        return self

    def dir(self, path: str | Path) -> ServiceBuilder:
        """Working directory for the service; created on start if missing."""
        self._cwd = Path(path)
        return self

    def env(self, extra: Mapping[str, str] | None = None, **kwargs: str) -> ServiceBuilder:
        """Extend the OS environment when starting the service."""
        self._env.update(extra or {})
        self._env.update(kwargs)
        return self

    def pid_file(self, path: str | Path) -> ServiceBuilder:
        self._pid_file = Path(path)
        return self

    def check(self, *checks: ReadinessProbe | CheckFunc) -> ServiceBuilder:
        self._probes.extend(as_probe(c) for c in checks)
        return self

    def dial_check(self, address: str, network: str = "tcp", timeout: float = 1.0) -> ServiceBuilder:
        return self.check(DialProbe(address, network=network, timeout=timeout))

    def http_check(self, url: str, status: int = 200, timeout: float = 1.0) -> ServiceBuilder:
        return self.check(HttpProbe(url, status=status, timeout=timeout))

    def poll_interval(self, seconds: float) -> ServiceBuilder:
        if seconds <= 0:
            raise ConfigurationError("poll interval must be positive")
        self._poll_interval = seconds
        return self

    def stop_timeout(self, seconds: float) -> ServiceBuilder:
        if seconds < 0:
            raise ConfigurationError("stop timeout cannot be negative")
        self._stop_timeout = seconds
        return self

    def build(self) -> ServiceConfig:
        if self._command is None:
            raise ConfigurationError(f"service {self.name!r} has no run command")

        if self._pid_file is not None:
            pid_file = self._pid_file
        elif self._cwd is not None:
            pid_file = self._cwd / f"{self.name}.pid"
        else:
            pid_file = Path(f"{self.name}.pid")

        return ServiceConfig(
            name=self.name,
            pid_file=pid_file,
            launch=LaunchSpec(
                command=self._command,
                args=self._args,
                env=dict(self._env),
                cwd=self._cwd,
            ),
            probes=tuple(self._probes),
            poll_interval=self._poll_interval,
            stop_timeout=self._stop_timeout,
        )


# ---------------------------------------------------------------------------
# Lifecycle controller
# ---------------------------------------------------------------------------


class Service:
    """Start, stop and report on one configured service.

    A Service is driven by a single task at a time; there is no locking,
    in-process or across processes.
    """

    def __init__(
        self,
        config: ServiceConfig,
        resolver: LivenessResolver | None = None,
    ) -> None:
        self.config = config
        self.store = IdentityStore(config.pid_file)
        self.resolver = resolver or default_resolver()
        self.state = ServiceState.UNKNOWN

    @property
    def name(self) -> str:
        return self.config.name

    def __repr__(self) -> str:
        return f"<Service {self.name!r} {self.state.value}>"

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def process(self) -> ProcessHandle | None:
        """The live process recorded in the pid file, if there is one."""
        return self.resolver.resolve(self.store.read())

    def running(self) -> bool:
        return self.process() is not None

    async def start(self, timeout: float | None = None) -> None:
        """Start the service unless it runs already, then wait until ready.

        All or nothing: on any failure (including cancellation or the
        *timeout* elapsing) a process launched by this call is killed and
        its pid file removed before the error propagates.
        """
        if timeout is None:
            await self._start()
            return
        try:
            await asyncio.wait_for(self._start(), timeout)
        except asyncio.TimeoutError as exc:
            raise ReadinessTimeout(self.name, timeout) from exc

    async def stop(self) -> None:
        """Stop the service if it is running and clean up its pid file."""
        handle = self.process()
        if handle is None:
            self.store.remove()  # stale or absent, either way not ours
            self._set_state(ServiceState.UNKNOWN)
            return

        self._set_state(ServiceState.STOPPING)
        handle.signal(signal.SIGTERM)
        try:
            if not await handle.wait(self.config.stop_timeout, self.config.poll_interval):
                log.warning(
                    "%s (pid %d) ignored SIGTERM for %gs; sending SIGKILL",
                    self.name, handle.pid, self.config.stop_timeout,
                )
                try:
                    handle.signal(signal.SIGKILL)
                except ProcessLookupError:
                    pass
                await handle.wait(5.0, self.config.poll_interval)
        finally:
            self.store.remove()
            self._set_state(ServiceState.UNKNOWN)
        log.info("Stopped %s (pid %d)", self.name, handle.pid)

    async def status(self) -> StatusSnapshot:
        """Report the current status; never changes the pid file."""
        identity = self.store.read()
        if not identity.known:
            return StatusSnapshot(name=self.name)

        handle = self.resolver.resolve(identity)
        if handle is None:
            return StatusSnapshot(
                name=self.name,
                pid=identity.pid,
                recorded_at=identity.recorded_at,
            )

        ready = True
        for probe in self.config.probes:
            outcome = await run_probe(probe)
            if not outcome.ok:
                log.debug("%s: %s not ready: %s", self.name, probe.description, outcome.reason)
                ready = False

        return StatusSnapshot(
            name=self.name,
            pid=identity.pid,
            recorded_at=identity.recorded_at,
            running=True,
            ready=ready,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _set_state(self, state: ServiceState) -> None:
        if state is not self.state:
            log.debug("%s: %s -> %s", self.name, self.state.value, state.value)
            self.state = state

    async def _start(self) -> None:
        handle = self.process()
        if handle is not None:
            log.info("%s already running as pid %d; checking readiness", self.name, handle.pid)
            self._set_state(ServiceState.STARTING)
            try:
                await self.wait_ready(handle)
            except BaseException:
                self._set_state(ServiceState.FAILED)
                raise
            self._set_state(ServiceState.READY)
            return

        self._set_state(ServiceState.STARTING)
        try:
            handle = self._launch()
        except OSError:
            self._set_state(ServiceState.FAILED)
            raise

        try:
            self.store.write(handle.pid)
        except OSError:
            log.warning("Could not record pid %d for %s; killing it", handle.pid, self.name)
            handle.kill()
            self._set_state(ServiceState.FAILED)
            raise

        handle.release()

        try:
            await self.wait_ready(handle)
        except BaseException as exc:
            log.warning("%s did not become ready (%r); killing pid %d", self.name, exc, handle.pid)
            handle.kill()
            self.store.remove()
            self._set_state(ServiceState.FAILED)
            raise

        self._set_state(ServiceState.READY)
        log.info("%s is ready (pid %d)", self.name, handle.pid)

    def _launch(self) -> ProcessHandle:
        spec = self.config.launch

        env = os.environ.copy()
        env.update(spec.env)

        cwd = None
        if spec.cwd is not None:
            spec.cwd.mkdir(mode=0o700, parents=True, exist_ok=True)
            cwd = str(spec.cwd)

        popen = subprocess.Popen(
            spec.argv,
            stdin=subprocess.DEVNULL,
            cwd=cwd,
            env=env,
            # own session, so stop() can signal the whole process group
            start_new_session=True,
        )
        log.info("Started %s as pid %d: %s", self.name, popen.pid, " ".join(spec.argv))
        return ProcessHandle(popen.pid, popen)

    async def wait_ready(self, handle: ProcessHandle) -> None:
        """Poll the probes until every one of them has succeeded once.

        Raises ProbeFailed on a hard probe error and ProcessExitedError if
        the process disappears while we wait.
        """
        if not handle.is_alive():
            raise ProcessExitedError(handle.pid)

        pending = list(self.config.probes)
        rounds = 0
        while True:
            rounds += 1
            still_pending: list[ReadinessProbe] = []
            for probe in pending:
                outcome = await run_probe(probe)
                if outcome.ok:
                    continue
                if outcome.failed:
                    raise ProbeFailed(probe.description, _cause(outcome)) from outcome.error
                still_pending.append(probe)
            pending = still_pending

            if not pending:
                log.debug("%s ready after %d round(s)", self.name, rounds)
                return

            log.debug(
                "%s: waiting on %s",
                self.name, ", ".join(p.description for p in pending),
            )
            await asyncio.sleep(self.config.poll_interval)
            if not handle.is_alive():
                raise ProcessExitedError(handle.pid)


def _cause(outcome: Outcome) -> BaseException:
    return outcome.error if outcome.error is not None else RuntimeError(outcome.reason)
