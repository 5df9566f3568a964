"""Canonical serialization and timestamps used by the ledger."""

from __future__ import annotations

import json
import time
from typing import Any


def canonical_json(value: Any) -> str:
    """Serialize a producer value to the string stored in the ledger.

    Compact separators, key order as given, non-ASCII kept verbatim. Dedup
    compares these strings byte for byte, so two structurally equal values
    with different key order are different snapshots.

    Examples:
        {"id": 42, "title": "A"} -> '{"id":42,"title":"A"}'
        {"title": "A", "id": 42} -> '{"title":"A","id":42}'
    """
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)
