"""
Readers for local desired-state sources (JSON documents and raw text files).
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, List, Optional, Tuple

from .validators import ValidationError


def read_json(path: Path) -> Any:
    """Parse one JSON file.

    Raises:
        ValidationError: If the file is not valid UTF-8 JSON.
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            return json.load(fh)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValidationError(f"{path}: invalid JSON ({exc})") from exc


def read_text(path: Path) -> str:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            return fh.read()
    except UnicodeDecodeError as exc:
        raise ValidationError(f"{path}: not UTF-8 text ({exc})") from exc


def list_json_files(directory: Path) -> Optional[List[Path]]:
    """Return the ``*.json`` files of *directory* in filename order.

    Returns None when the directory does not exist.
    """
    if not directory.is_dir():
        return None
    return sorted(p for p in directory.iterdir() if p.is_file() and p.name.endswith(".json"))


def read_json_dir(directory: Path) -> Optional[List[Tuple[Path, Any]]]:
    """Parse every ``*.json`` file of *directory*; None when the directory is absent."""
    files = list_json_files(directory)
    if files is None:
        return None
    return [(p, read_json(p)) for p in files]
