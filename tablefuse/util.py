from __future__ import annotations

import math
import re
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional


def _is_probably_url(s: str) -> bool:
    return s.startswith("http://") or s.startswith("https://") or s.startswith("s3://")


def _norm_path(p: str, *, base_dir: Optional[Path]) -> str:
    """Normalize a path relative to a base directory (when provided).

    - Leaves absolute paths and URLs unchanged.
    - If base_dir is provided and p is relative, returns an absolute resolved path.
    """
    if not isinstance(p, str) or not p:
        return p
    if _is_probably_url(p):
        return p
    pp = Path(p)
    if pp.is_absolute():
        return str(pp)
    if base_dir is None:
        return p
    return str((base_dir / pp).resolve())


def _infer_type_from_uri(uri: str) -> Optional[str]:
    ext = Path(uri).suffix.lower()
    if ext in (".csv", ".txt"):
        return "csv"
    if ext in (".html", ".htm"):
        return "html"
    return None


# ---------------- numeric coercion ----------------

# Leading numeric prefix, the way a browser's parseFloat reads "12.5kg" as 12.5.
_NUMBER_PREFIX = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_INFINITY_PREFIX = re.compile(r"[+-]?Infinity")


def _is_native_number(v: Any) -> bool:
    return isinstance(v, (int, float, Decimal)) and not isinstance(v, bool)


def _parse_float_prefix(s: str) -> Optional[float]:
    s = s.strip()
    m = _NUMBER_PREFIX.match(s)
    if m:
        return float(m.group(0))
    m = _INFINITY_PREFIX.match(s)
    if m:
        return float(m.group(0).replace("Infinity", "inf"))
    return None


def coerce_number(value: Any) -> Optional[float]:
    """Best-effort conversion of a cell to a number.

    Native numbers pass through unchanged. Strings lose thousands separators and
    '$' signs before their leading numeric prefix is parsed. Anything that does not
    yield a number returns None, which callers treat as "exclude", not as zero.
    """
    if _is_native_number(value):
        if isinstance(value, Decimal):
            value = float(value)
        if isinstance(value, float) and math.isnan(value):
            return None
        return value
    if isinstance(value, str):
        cleaned = value.replace(",", "").replace("$", "").strip()
        return _parse_float_prefix(cleaned)
    return None


def is_numeric_like(value: Any) -> bool:
    """True when a non-empty cell counts as numeric for column classification."""
    if _is_native_number(value):
        return True
    if isinstance(value, str):
        parsed = _parse_float_prefix(value.replace(",", ""))
        return parsed is not None and math.isfinite(parsed)
    return False


def is_empty(value: Any) -> bool:
    return value is None or value == ""


# ---------------- value normalization ----------------

_LEADING_ARTICLE = re.compile(r"^the\s+")
_PARENTHETICAL = re.compile(r"\([^)]*\)")
_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def _stringify(value: Any) -> str:
    # 100.0 and "100" must compare equal after normalization.
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _normalize_once(text: str) -> str:
    s = text.lower().strip()
    s = _LEADING_ARTICLE.sub("", s)
    s = _PARENTHETICAL.sub(" ", s)
    s = _NON_WORD.sub("", s)
    return _WHITESPACE.sub(" ", s).strip()


def normalize_value(value: Any) -> str:
    """Canonical comparison form of a cell: lowercase, no leading "the ",
    no parentheticals or punctuation, single spaces.

    Join-key scoring and join execution both compare through this function.
    """
    if value is None:
        return ""
    text = _stringify(value)
    while True:
        out = _normalize_once(text)
        if out == text:
            return out
        text = out
