from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .errors import ConfigurationError
from .models import ServiceConfig
from .service import DEFAULT_POLL_INTERVAL, DEFAULT_STOP_TIMEOUT, ServiceBuilder

DEFAULT_PORT = 8902


@dataclass(frozen=True)
class Config:
    services_path: Path = Path("services.json")
    port: int = DEFAULT_PORT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    stop_timeout: float = DEFAULT_STOP_TIMEOUT
    start_timeout: float = 60.0

    @classmethod
    def from_env(cls, env_path: str | Path | None = None) -> Config:
        load_dotenv(env_path)

        try:
            return cls(
                services_path=Path(os.getenv("SVCCTL_SERVICES", "services.json")),
                port=int(os.getenv("SVCCTL_PORT", str(DEFAULT_PORT))),
                poll_interval=float(os.getenv("SVCCTL_POLL_INTERVAL", str(DEFAULT_POLL_INTERVAL))),
                stop_timeout=float(os.getenv("SVCCTL_STOP_TIMEOUT", str(DEFAULT_STOP_TIMEOUT))),
                start_timeout=float(os.getenv("SVCCTL_START_TIMEOUT", "60")),
            )
        except ValueError as exc:
            raise ConfigurationError(f"bad SVCCTL_* setting: {exc}") from exc


def load_services(path: str | Path, config: Config | None = None) -> list[ServiceConfig]:
    """Read service definitions from a JSON file.

    Format:
        {
            "web": {
                "command": "python3",
                "args": ["-m", "http.server", "8000"],
                "cwd": "/srv/web",
                "env": {"KEY": "VALUE"},
                "pid_file": "/run/web.pid",
                "checks": [
                    {"dial": "127.0.0.1:8000"},
                    {"http": "http://127.0.0.1:8000/", "status": 200}
                ]
            }
        }

    Relative ``cwd`` and ``pid_file`` paths are taken relative to the file.
    """
    path = Path(path)
    config = config or Config()
    try:
        with open(path) as f:
            raw: Any = json.load(f)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"{path}: invalid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{path}: expected an object of services")

    return [_parse_service(name, spec, path.parent, config) for name, spec in raw.items()]


def _number(name: str, field: str, value: Any, kind: type = float) -> Any:
    try:
        if isinstance(value, bool):
            raise TypeError(value)
        return kind(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"service {name!r}: \"{field}\" must be a number, not {value!r}") from exc


def _parse_service(name: str, spec: Any, base: Path, config: Config) -> ServiceConfig:
    if not isinstance(spec, dict) or not isinstance(spec.get("command"), str):
        raise ConfigurationError(f"service {name!r} needs a \"command\" string")

    args = spec.get("args") or []
    if not isinstance(args, list):
        raise ConfigurationError(f"service {name!r}: \"args\" must be a list")

    builder = (
        ServiceBuilder(name)
        .run(spec["command"], *(str(a) for a in args))
        .poll_interval(_number(name, "poll_interval", spec.get("poll_interval", config.poll_interval)))
        .stop_timeout(_number(name, "stop_timeout", spec.get("stop_timeout", config.stop_timeout)))
    )
    if spec.get("cwd"):
        builder.dir(base / spec["cwd"])
    if spec.get("pid_file"):
        builder.pid_file(base / spec["pid_file"])
    if spec.get("env"):
        env = spec["env"]
        if not isinstance(env, dict):
            raise ConfigurationError(f"service {name!r}: \"env\" must be an object")
        builder.env({str(k): str(v) for k, v in env.items()})

    for check in spec.get("checks") or []:
        if not isinstance(check, dict):
            raise ConfigurationError(f"service {name!r}: checks must be objects")
        timeout = _number(name, "timeout", check.get("timeout", 1.0))
        if "dial" in check:
            try:
                builder.dial_check(check["dial"], network=check.get("network", "tcp"), timeout=timeout)
            except ValueError as exc:
                raise ConfigurationError(f"service {name!r}: {exc}") from exc
        elif "http" in check:
            status = _number(name, "status", check.get("status", 200), int)
            builder.http_check(check["http"], status=status, timeout=timeout)
        else:
            raise ConfigurationError(f"service {name!r}: unknown check {check!r}")

    return builder.build()
