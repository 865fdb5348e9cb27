"""Utilities to simplify reading and writing JSON data from and to files."""

from __future__ import annotations

import io
import json
from pathlib import Path
from typing import Any, TypeVar, cast

_T = TypeVar("_T")


def save_and_return_json(data: _T, dst: str | Path | io.TextIOBase | None) -> _T:
    """Save and return a JSON-serializable data structure."""
    if dst is None:
        return data

    if isinstance(dst, str):
        dst = Path(dst)

    if isinstance(dst, io.IOBase):
        json.dump(data, dst, indent=4)
    elif isinstance(dst, Path):
        dst.write_text(json.dumps(data, indent=4))

    return data


def read_data_json(val: str | Path | io.TextIOBase | io.BufferedIOBase | _T) -> _T:
    """Read JSON data from a file if a path is passed, or return the argument itself."""
    if isinstance(val, str):
        val = Path(val)

    if isinstance(val, Path):
        val = cast("_T", json.loads(val.read_text()))

    if isinstance(val, io.IOBase):
        val = cast("_T", json.load(val))

    return val


def dump_json(data: Any) -> str:  # noqa: ANN401
    """Format data as indented JSON, for printing."""
    return json.dumps(data, indent=4, ensure_ascii=False)
