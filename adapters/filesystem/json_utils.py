from __future__ import annotations

from pathlib import Path
from typing import Any

import orjson

from domain.models import LayoutResult

LAYOUT_JSON_OPTIONS = orjson.OPT_INDENT_2 | orjson.OPT_APPEND_NEWLINE


def load_json(path: Path) -> Any:
    return orjson.loads(path.read_bytes())


def write_layout_result(path: Path, result: LayoutResult) -> int:
    """Write ``result`` as indented JSON via a sibling temp file; returns the byte count."""
    payload = orjson.dumps(result.to_dict(), option=LAYOUT_JSON_OPTIONS)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.tmp")
    tmp_path.write_bytes(payload)
    tmp_path.replace(path)
    return len(payload)
