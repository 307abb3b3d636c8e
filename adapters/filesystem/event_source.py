from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any

from adapters.filesystem.json_utils import load_json
from domain.ports.events import EventSource


class FileSystemEventSource(EventSource):
    """Reads pre-expanded event records from a JSON file.

    The file holds either a list of records or an object with an ``events``
    list. Records are returned untouched; validation happens in the engine.
    """

    def load_records(self, path: Path) -> Sequence[Any]:
        if not path.exists():
            msg = f"Events file not found: {path}"
            raise FileNotFoundError(msg)
        payload = load_json(path)
        if isinstance(payload, dict):
            payload = payload.get("events")
        if not isinstance(payload, list):
            msg = f"Events file must contain a list of events: {path}"
            raise ValueError(msg)
        return list(payload)
