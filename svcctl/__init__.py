"""svcctl: start, stop and check local services through a pid file.

A service is started once, recorded in ``<name>.pid`` and considered ready
when all of its readiness probes pass:

    svc = Service(
        ServiceBuilder("web")
        .run("python3", "-m", "http.server", "8000")
        .dial_check("127.0.0.1:8000")
        .build()
    )
    await svc.start(timeout=30)
    print(await svc.status())     # web has pid 4242 and is ready
    await svc.stop()
"""

from svcctl.errors import (
    ConfigurationError,
    NotReady,
    ProbeFailed,
    ProcessExitedError,
    ReadinessTimeout,
    ServiceError,
)
from svcctl.identity import IdentityStore
from svcctl.liveness import LivenessResolver
from svcctl.models import Identity, ServiceConfig, ServiceState, StatusSnapshot
from svcctl.probes import DialProbe, FunctionProbe, HttpProbe, Outcome, ReadinessProbe
from svcctl.process import ProcessHandle
from svcctl.service import Service, ServiceBuilder

__all__ = [
    "ConfigurationError",
    "DialProbe",
    "FunctionProbe",
    "HttpProbe",
    "Identity",
    "IdentityStore",
    "LivenessResolver",
    "NotReady",
    "Outcome",
    "ProbeFailed",
    "ProcessExitedError",
    "ProcessHandle",
    "ReadinessProbe",
    "ReadinessTimeout",
    "Service",
    "ServiceBuilder",
    "ServiceConfig",
    "ServiceError",
    "ServiceState",
    "StatusSnapshot",
]
