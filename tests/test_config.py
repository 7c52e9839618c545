"""Tests for .env settings and the services file."""

import json

import pytest

from svcctl.config import Config, load_services
from svcctl.errors import ConfigurationError
from svcctl.probes import DialProbe, HttpProbe
from svcctl.registry import ServiceRegistry


def _write(tmp_path, services):
    path = tmp_path / "services.json"
    path.write_text(json.dumps(services))
    return path


def test_config_from_env(monkeypatch, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("SVCCTL_PORT=9100\nSVCCTL_POLL_INTERVAL=0.25\n")
    for key in ("SVCCTL_PORT", "SVCCTL_POLL_INTERVAL"):
        # set then delete so monkeypatch also undoes what load_dotenv exports
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    monkeypatch.setenv("SVCCTL_SERVICES", str(tmp_path / "svc.json"))

    cfg = Config.from_env(env_file)

    assert cfg.port == 9100
    assert cfg.poll_interval == 0.25
    assert cfg.services_path == tmp_path / "svc.json"
    assert cfg.stop_timeout == 10.0


def test_config_rejects_garbage(monkeypatch, tmp_path):
    monkeypatch.setenv("SVCCTL_PORT", "eighty")
    with pytest.raises(ConfigurationError):
        Config.from_env(tmp_path / "missing.env")


def test_load_services(tmp_path):
    path = _write(tmp_path, {
        "web": {
            "command": "python3",
            "args": ["-m", "http.server", 8000],
            "cwd": "web",
            "env": {"DEBUG": 1},
            "checks": [
                {"dial": "127.0.0.1:8000"},
                {"http": "http://127.0.0.1:8000/", "status": 204, "timeout": 2},
            ],
        },
        "worker": {"command": "worker", "pid_file": "/run/worker.pid", "stop_timeout": 1},
    })

    web, worker = load_services(path, Config(poll_interval=0.5))

    assert web.name == "web"
    assert web.launch.argv == ["python3", "-m", "http.server", "8000"]
    assert web.launch.cwd == tmp_path / "web"
    assert web.launch.env == {"DEBUG": "1"}
    assert web.pid_file == tmp_path / "web" / "web.pid"
    assert web.poll_interval == 0.5
    assert isinstance(web.probes[0], DialProbe)
    assert isinstance(web.probes[1], HttpProbe)
    assert web.probes[1].status == 204
    assert web.probes[1].timeout == 2.0

    assert str(worker.pid_file) == "/run/worker.pid"
    assert worker.stop_timeout == 1.0
    assert worker.probes == ()


@pytest.mark.parametrize("services", [
    {"web": {}},
    {"web": {"command": "x", "args": "not-a-list"}},
    {"web": {"command": "x", "checks": [{"grpc": "127.0.0.1:1"}]}},
    {"web": {"command": "x", "checks": [{"dial": "127.0.0.1:1", "network": "udp"}]}},
    {"web": {"command": "x", "env": ["A=1"]}},
    {"web": {"command": "x", "poll_interval": "fast"}},
    {"web": {"command": "x", "stop_timeout": None}},
    {"web": {"command": "x", "checks": [{"http": "http://127.0.0.1:8000/", "status": "ok"}]}},
    {"web": {"command": "x", "checks": [{"dial": "127.0.0.1:1", "timeout": [1]}]}},
    {"web": {"command": "x", "poll_interval": True}},
    ["not", "an", "object"],
])
def test_load_services_rejects_bad_entries(tmp_path, services):
    with pytest.raises(ConfigurationError):
        load_services(_write(tmp_path, services))


def test_load_services_rejects_bad_json(tmp_path):
    path = tmp_path / "services.json"
    path.write_text("{nope")
    with pytest.raises(ConfigurationError):
        load_services(path)


def test_registry_from_missing_file_is_empty(tmp_path):
    assert len(ServiceRegistry.from_file(tmp_path / "absent.json")) == 0


@pytest.mark.asyncio
async def test_registry_lookup_and_status(tmp_path, resolver):
    path = _write(tmp_path, {
        "a": {"command": "true", "pid_file": "a.pid"},
        "b": {"command": "true", "pid_file": "b.pid"},
    })
    registry = ServiceRegistry(load_services(path), resolver=resolver)

    assert registry.names() == ["a", "b"]
    assert registry.get("a").config.pid_file == tmp_path / "a.pid"
    with pytest.raises(KeyError):
        registry.get("c")

    statuses = await registry.status_all()
    assert [str(s) for s in statuses] == ["a is not running", "b is not running"]

    await registry.stop_all()
    assert not (tmp_path / "a.pid").exists()


def test_registry_rejects_duplicates(tmp_path):
    path = _write(tmp_path, {"a": {"command": "true"}})
    (cfg,) = load_services(path)
    registry = ServiceRegistry([cfg])
    with pytest.raises(ValueError):
        registry.add(cfg)
