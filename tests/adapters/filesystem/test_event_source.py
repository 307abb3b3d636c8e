from __future__ import annotations

from pathlib import Path

import orjson
import pytest

from adapters.filesystem.event_source import FileSystemEventSource
from tests.helpers.event_fixtures import events_fixture_path


def test_reads_plain_list_file() -> None:
    records = FileSystemEventSource().load_records(events_fixture_path("scenario_a.json"))

    assert [record["id"] for record in records] == ["a", "b", "c"]


def test_reads_wrapped_events_file() -> None:
    records = FileSystemEventSource().load_records(events_fixture_path("week.json"))

    assert len(records) == 8
    assert records[-1]["id"] == "broken"


def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        FileSystemEventSource().load_records(tmp_path / "nope.json")


@pytest.mark.parametrize("payload", [{"items": []}, {"events": {"id": "a"}}, "text", 42])
def test_unexpected_shape_raises(tmp_path: Path, payload: object) -> None:
    path = tmp_path / "events.json"
    path.write_bytes(orjson.dumps(payload))

    with pytest.raises(ValueError, match="list of events"):
        FileSystemEventSource().load_records(path)


def test_invalid_json_raises(tmp_path: Path) -> None:
    path = tmp_path / "events.json"
    path.write_text("[{", encoding="utf-8")

    with pytest.raises(orjson.JSONDecodeError):
        FileSystemEventSource().load_records(path)
