"""Tests for the ``svcctl`` command line."""

import json
import sys

import pytest

from svcctl.__main__ import main

SLEEP_FOREVER = "import time; time.sleep(60)"


@pytest.fixture
def services(tmp_path, monkeypatch):
    for var in ("SVCCTL_SERVICES", "SVCCTL_PORT", "SVCCTL_POLL_INTERVAL",
                "SVCCTL_STOP_TIMEOUT", "SVCCTL_START_TIMEOUT"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)

    path = tmp_path / "services.json"
    path.write_text(json.dumps({
        "sleeper": {
            "command": sys.executable,
            "args": ["-c", SLEEP_FOREVER],
            "pid_file": "sleeper.pid",
            "poll_interval": 0.05,
            "stop_timeout": 2,
        },
        "ghost": {"command": str(tmp_path / "no-such-binary"), "pid_file": "ghost.pid"},
    }))
    yield path
    main(["--services", str(path), "stop", "sleeper"])


def _status_json(services, capsys, *names):
    capsys.readouterr()
    rc = main(["--services", str(services), "status", "--json", *names])
    return rc, json.loads(capsys.readouterr().out)


def test_status_of_stopped_service(services, capsys):
    rc = main(["--services", str(services), "status", "sleeper"])

    assert rc == 3
    assert capsys.readouterr().out.strip() == "sleeper is not running"


def test_start_status_stop(services, capsys):
    assert main(["--services", str(services), "start", "sleeper", "--timeout", "10"]) == 0

    rc, statuses = _status_json(services, capsys, "sleeper")
    assert rc == 0
    assert len(statuses) == 1
    assert statuses[0]["name"] == "sleeper"
    assert statuses[0]["pid"] > 1
    assert statuses[0]["running"] and statuses[0]["ready"]

    assert main(["--services", str(services), "stop", "sleeper"]) == 0

    rc, statuses = _status_json(services, capsys, "sleeper")
    assert rc == 3
    assert statuses[0]["pid"] == 0
    assert not (services.parent / "sleeper.pid").exists()


def test_status_without_names_lists_every_service(services, capsys):
    rc, statuses = _status_json(services, capsys)

    assert rc == 3
    assert [s["name"] for s in statuses] == ["sleeper", "ghost"]


@pytest.mark.parametrize("command", [["start", "nope"], ["stop", "nope"], ["status", "nope"]])
def test_unknown_service_exits_1(services, command):
    assert main(["--services", str(services), *command]) == 1


def test_failed_start_exits_1(services):
    assert main(["--services", str(services), "start", "ghost", "--timeout", "5"]) == 1
    assert not (services.parent / "ghost.pid").exists()


def test_bad_services_file_exits_2(tmp_path, services):
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"web": {"command": "x", "poll_interval": "fast"}}))

    assert main(["--services", str(bad), "status"]) == 2


def test_bad_environment_exits_2(services, monkeypatch):
    monkeypatch.setenv("SVCCTL_PORT", "not-a-port")

    assert main(["--services", str(services), "status"]) == 2
