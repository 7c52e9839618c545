"""Tests for status rendering."""

import io
import json
from datetime import datetime, timezone

import pytest

from svcctl.formatter import JsonFormatter, TextFormatter, describe, print_status
from svcctl.models import StatusSnapshot

WHEN = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("snapshot, sentence", [
    (StatusSnapshot("db"), "db is not running"),
    (StatusSnapshot("db", pid=41, recorded_at=WHEN), "db had pid 41 and is not running"),
    (StatusSnapshot("db", pid=41, recorded_at=WHEN, running=True), "db has pid 41 and is running but not ready"),
    (StatusSnapshot("db", pid=41, recorded_at=WHEN, running=True, ready=True), "db has pid 41 and is ready"),
])
def test_sentences(snapshot, sentence):
    assert describe(snapshot) == sentence
    assert str(snapshot) == sentence
    assert TextFormatter().format(snapshot) == sentence


def test_snapshot_invariants():
    with pytest.raises(ValueError):
        StatusSnapshot("db", pid=41, running=False, ready=True)
    with pytest.raises(ValueError):
        StatusSnapshot("db", pid=0, running=True)


def test_to_dict_is_stable():
    assert StatusSnapshot("db").to_dict() == {
        "name": "db",
        "pid": 0,
        "recorded_at": None,
        "running": False,
        "ready": False,
    }
    ready = StatusSnapshot("db", pid=41, recorded_at=WHEN, running=True, ready=True)
    assert ready.to_dict()["recorded_at"] == "2024-05-01T12:00:00+00:00"


def test_json_formatter():
    snaps = [StatusSnapshot("a"), StatusSnapshot("b", pid=9, recorded_at=WHEN, running=True)]
    fmt = JsonFormatter()

    assert json.loads(fmt.format(snaps[1]))["running"] is True
    decoded = json.loads(fmt.format_many(snaps))
    assert [d["name"] for d in decoded] == ["a", "b"]


def test_text_formatter_many():
    snaps = [StatusSnapshot("a"), StatusSnapshot("b", pid=9)]
    assert TextFormatter().format_many(snaps) == "a is not running\nb had pid 9 and is not running"


def test_print_status_writes_sentence():
    buf = io.StringIO()
    print_status(StatusSnapshot("db"), stream=buf)
    assert buf.getvalue() == "db is not running\n"
