"""
Derived fields and input coercion

Pure helpers used by the controllers before anything is written:
slugs, excerpts, read times and the normalization of form-encoded values
("true"/"false" strings, comma separated lists, JSON encoded lists).
"""

import json
import math
import re
from typing import Any, List, Optional

TAG_RE = re.compile(r"<[^>]+>")
NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")

EXCERPT_LENGTH = 200
WORDS_PER_MINUTE = 200


def slugify(text: Optional[str]) -> str:
    """Lowercase, collapse every non [a-z0-9] run to one hyphen, trim hyphens."""
    if not text:
        return ""
    return NON_ALNUM_RE.sub("-", text.lower()).strip("-")


def strip_tags(content: Optional[str]) -> str:
    return TAG_RE.sub("", content or "")


def derive_excerpt(content: Optional[str], max_len: int = EXCERPT_LENGTH) -> str:
    text = strip_tags(content)
    if len(text) > max_len:
        return text[:max_len] + "..."
    return text


def derive_read_time(content: Optional[str], words_per_minute: int = WORDS_PER_MINUTE) -> int:
    words = strip_tags(content).split()
    return max(1, math.ceil(len(words) / words_per_minute))


# =========
# Coercion
# =========

def to_bool(value: Any) -> Any:
    """Normalize "true"/"false" strings; anything else passes through."""
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    return value


def to_int(value: Any) -> Any:
    """Whole numbers and numeric strings become ints (fractions truncate)."""
    if isinstance(value, str):
        stripped = value.strip()
        try:
            return int(stripped)
        except ValueError:
            try:
                number = float(stripped)
            except ValueError:
                return value
            return int(number) if math.isfinite(number) else value
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    return value


def split_list(value: Any) -> Any:
    """Accept a list, a JSON encoded list, or a comma separated string."""
    if not isinstance(value, str):
        return value
    stripped = value.strip()
    if not stripped:
        return []
    if stripped.startswith("["):
        try:
            parsed = json.loads(stripped)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            return parsed
    return [part.strip() for part in stripped.split(",") if part.strip()]


def parse_json(value: Any) -> Any:
    """Decode JSON sent through a form field (links, nested objects)."""
    if not isinstance(value, str):
        return value
    stripped = value.strip()
    if not stripped:
        return None
    try:
        return json.loads(stripped)
    except json.JSONDecodeError:
        return value


def clamp(value: int, low: int = 0, high: int = 100) -> int:
    return min(high, max(low, value))
