from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any, Protocol


class EventSource(Protocol):
    def load_records(self, path: Path) -> Sequence[Any]: ...
