from __future__ import annotations

"""cli.common

Small shared helpers for the CLI modules.
"""

from typing import Dict, Iterable, Optional


def parse_input_pairs(raw: Optional[Iterable[str]]) -> Dict[str, str]:
    """``["a=1", "b = x=y"]`` -> ``{"a": "1", "b": "x=y"}``.

    Raises ``ValueError`` for an entry without ``=`` or with an empty key.
    """
    out: Dict[str, str] = {}
    for item in raw or []:
        if "=" not in item:
            raise ValueError(f"Expected KEY=VALUE, got: {item!r}")
        key, value = item.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError(f"Empty input name in: {item!r}")
        out[key] = value.strip()
    return out
