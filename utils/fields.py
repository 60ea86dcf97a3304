"""
utils/fields.py
Coercion helpers for loosely typed record-store field values.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

TRUTHY_STRINGS = {"1", "true", "t", "yes", "y", "on", "today"}


def is_truthy(value: Any) -> bool:
    """Return True when the provided value represents an enabled boolean."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in TRUTHY_STRINGS
    return False


def coerce_rank(value: Any) -> int:
    """Rank fields sort missing or unparsable values as 0."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        candidate = value.strip()
        if candidate.lstrip("-").isdigit():
            return int(candidate)
    return 0


def coerce_optional_rank(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return coerce_rank(value)


def text_value(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        target = value
    else:
        text = str(value).strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = f"{text[:-1]}+00:00"
        try:
            target = datetime.fromisoformat(text)
        except ValueError:
            logging.warning("Unable to parse record timestamp value: %s", value)
            return None
    if target.tzinfo is None:
        target = target.replace(tzinfo=timezone.utc)
    return target


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if not value:
        return None
    target = value
    if target.tzinfo is None:
        target = target.replace(tzinfo=timezone.utc)
    else:
        target = target.astimezone(timezone.utc)
    return target.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
