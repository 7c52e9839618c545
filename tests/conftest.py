"""Shared fixtures for svcctl tests.

End-to-end tests launch real, short-lived ``sys.executable`` children and
point their pid files into ``tmp_path``.
"""

import subprocess
import sys
import time

import pytest

from svcctl.liveness import LivenessResolver
from svcctl.process import pid_alive
from svcctl.service import Service, ServiceBuilder

SLEEP_FOREVER = "import time; time.sleep(60)"


@pytest.fixture
def resolver():
    """A resolver whose boot time is far in the past, so records are never 'pre-boot'."""
    return LivenessResolver(boot_time=lambda: time.time() - 10 * 24 * 3600)


@pytest.fixture
def make_service(tmp_path, resolver):
    """Build a Service running a python snippet, stopping it at teardown."""
    created = []

    def _make(name="svc", code=SLEEP_FOREVER, checks=(), poll_interval=0.05, stop_timeout=2.0, **kwargs):
        builder = (
            ServiceBuilder(name)
            .run(sys.executable, "-c", code)
            .pid_file(kwargs.pop("pid_file", tmp_path / f"{name}.pid"))
            .poll_interval(poll_interval)
            .stop_timeout(stop_timeout)
            .check(*checks)
        )
        if "dir" in kwargs:
            builder.dir(kwargs.pop("dir"))
        if "env" in kwargs:
            builder.env(kwargs.pop("env"))
        assert not kwargs, f"unexpected options {kwargs}"
        svc = Service(builder.build(), resolver=resolver)
        created.append(svc)
        return svc

    yield _make

    for svc in created:
        handle = svc.process()
        if handle is not None:
            handle.kill()
        svc.store.remove()


@pytest.fixture
def child():
    """A live child process not managed by any Service."""
    proc = subprocess.Popen([sys.executable, "-c", SLEEP_FOREVER])
    yield proc
    if proc.poll() is None:
        proc.kill()
        proc.wait()


def wait_until_dead(pid, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if not pid_alive(pid):
            return True
        time.sleep(0.02)
    return False


@pytest.fixture
def dead():
    """``dead(pid)`` waits briefly for *pid* to disappear."""
    return wait_until_dead
