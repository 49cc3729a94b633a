"""
Reporting helpers (table or JSON) for provisioning results.

`print_rows` keeps the columns that carry data and produces a compact table
that fits CLI usage. JSON output is also supported for machine consumption.
"""
from __future__ import annotations

import json
from typing import Any, Dict, List

_NAMES_MAX = 80


def _normalize_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """Truncate long name lists and error text so the table stays readable."""
    r = dict(row)
    names = r.get("names")
    if isinstance(names, str) and len(names) > _NAMES_MAX:
        r["names"] = names[: _NAMES_MAX - 1] + "…"
    err = r.get("error")
    if isinstance(err, str):
        r["error"] = err.strip()[:160]
    return r


def print_rows(rows: List[Dict[str, Any]], fmt: str = "table") -> None:
    """Render pass rows as a table or JSON.

    Args:
        rows: One dict per pass (kind, status, counts, names, error, ui).
        fmt: Either ``"table"`` (default) or ``"json"``.
    """
    if fmt == "json":
        print(json.dumps(rows, indent=2))
        return

    norm_rows = [_normalize_row(r) for r in rows]

    def _present(v) -> bool:
        return not (v is None or v == "" or v == [])

    # Candidate columns in preferred order
    candidates = [
        "kind",
        "status",
        "existing",
        "created",
        "would_create",
        "skipped_invalid",
        "names",
        "note",
        "error",
        "ui",
    ]
    mandatory = {"kind", "status"}

    cols: List[str] = []
    for c in candidates:
        if (c in mandatory) or any(_present(r.get(c)) for r in norm_rows):
            cols.append(c)

    def _fmt(v) -> str:
        s = "" if v is None else str(v)
        return s if s != "" else "—"

    widths = {c: len(c) for c in cols}
    for r in norm_rows:
        for c in cols:
            widths[c] = max(widths[c], len(_fmt(r.get(c))))

    header = "| " + " | ".join(c.ljust(widths[c]) for c in cols) + " |"
    sep = "| " + " | ".join("-" * widths[c] for c in cols) + " |"
    print(header)
    print(sep)
    for r in norm_rows:
        print("| " + " | ".join(_fmt(r.get(c)).ljust(widths[c]) for c in cols) + " |")
