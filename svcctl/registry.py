from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from .config import Config, load_services
from .liveness import LivenessResolver
from .models import ServiceConfig, StatusSnapshot
from .service import Service

log = logging.getLogger(__name__)


class ServiceRegistry:
    """In-memory name -> Service map for the outer collaborators.

    Holds no process state of its own; every lookup goes back to the
    service's pid file.
    """

    def __init__(
        self,
        configs: Iterable[ServiceConfig] = (),
        resolver: LivenessResolver | None = None,
    ) -> None:
        self._resolver = resolver
        self._services: dict[str, Service] = {}
        for cfg in configs:
            self.add(cfg)

    @classmethod
    def from_file(cls, path: str | Path, config: Config | None = None) -> ServiceRegistry:
        path = Path(path)
        if not path.exists():
            log.warning("No services config at %s, starting with an empty registry", path)
            return cls()
        return cls(load_services(path, config))

    def add(self, config: ServiceConfig) -> Service:
        if config.name in self._services:
            raise ValueError(f"duplicate service name {config.name!r}")
        service = Service(config, resolver=self._resolver)
        self._services[config.name] = service
        return service

    def get(self, name: str) -> Service:
        try:
            return self._services[name]
        except KeyError:
            raise KeyError(f"No service named '{name}'") from None

    def names(self) -> list[str]:
        return list(self._services)

    def __len__(self) -> int:
        return len(self._services)

    async def status_all(self) -> list[StatusSnapshot]:
        return [await svc.status() for svc in self._services.values()]

    async def bootstrap(self, timeout: float | None = None) -> None:
        """Start every registered service, logging (not raising) failures."""
        for name, svc in self._services.items():
            try:
                await svc.start(timeout=timeout)
                log.info("Bootstrapped service '%s'", name)
            except Exception:
                log.exception("Failed to bootstrap service '%s'", name)

    async def stop_all(self) -> None:
        for name, svc in self._services.items():
            try:
                await svc.stop()
            except OSError:
                log.exception("Failed to stop service '%s'", name)
