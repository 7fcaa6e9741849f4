"""Filesystem helpers shared by the engine adapter and the changelog store."""

from __future__ import annotations

import os
import uuid
from contextlib import suppress
from pathlib import Path

__all__ = ["atomic_write_text", "read_text_if_exists"]


def atomic_write_text(
    path: Path,
    text: str,
    *,
    encoding: str = "utf-8",
    temp_suffix: str = ".part",
) -> int:
    """Atomically replace ``path`` with ``text`` and return the byte count."""

    path.parent.mkdir(parents=True, exist_ok=True)
    suffix = temp_suffix if temp_suffix.startswith(".") else f".{temp_suffix}"
    temp_path = path.with_name(f"{path.name}{suffix}.{uuid.uuid4().hex}")
    data = text.encode(encoding)
    replaced = False
    try:
        with temp_path.open("wb") as handle:
            handle.write(data)
        os.replace(temp_path, path)
        replaced = True
        return len(data)
    finally:
        if not replaced:
            with suppress(FileNotFoundError):
                temp_path.unlink()


def read_text_if_exists(path: Path | None, *, encoding: str = "utf-8") -> str:
    """Return the contents of ``path`` or an empty string when it does not exist.

    Dry runs never materialise patch files, so readers downstream of the
    engine must tolerate their absence.
    """

    if path is None or not path.is_file():
        return ""
    return path.read_text(encoding=encoding)
