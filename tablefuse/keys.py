"""Join-key discovery across independently sourced tables.

Headers are matched against an ordered list of semantic name patterns; the
first pattern that matches a header decides its semantic type and priority.
Candidates of the same type are then paired across tables and scored by the
overlap of their normalized values.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set, Tuple

from tablefuse.models.table import Table
from tablefuse.util import normalize_value

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyPattern:
    pattern: re.Pattern
    type: str
    priority: int


def _p(regex: str, type: str, priority: int) -> KeyPattern:
    return KeyPattern(re.compile(regex, re.IGNORECASE), type, priority)


# Declaration order matters: a header takes the first pattern it matches.
JOIN_KEY_PATTERNS: Tuple[KeyPattern, ...] = (
    # countries
    _p(r"^country$", "country", 10),
    _p(r"^country.*(name|code)?$", "country", 9),
    _p(r"^nation$", "country", 9),
    _p(r"^(territory|region)$", "country", 8),
    # locations
    _p(r"^(state|province)$", "state", 8),
    _p(r"^city$", "city", 7),
    _p(r"^(zip|postal).*(code)?$", "zip", 9),
    _p(r"^zip$", "zip", 9),
    # standard codes
    _p(r"^iso.*code$", "iso", 10),
    _p(r"^(alpha.?2|alpha.?3)$", "iso", 10),
    _p(r"^code$", "code", 6),
    # ids
    _p(r"^id$", "id", 5),
    _p(r".*_id$", "id", 4),
    # names
    _p(r"^name$", "name", 3),
)


@dataclass(frozen=True)
class JoinKeyCandidate:
    column: str
    type: str
    priority: int
    unique_ratio: float
    unique_count: int


@dataclass(frozen=True)
class JoinColumn:
    table_id: str
    column: str


@dataclass(frozen=True)
class JoinSuggestion:
    type: str
    columns: Tuple[JoinColumn, ...]
    priority: int
    overlap_score: float
    overlap_count: int

    def as_mapping(self) -> Dict[str, str]:
        """{table_id: column}, the shape `join_tables` accepts."""
        return {c.table_id: c.column for c in self.columns}


def match_key_pattern(header: str) -> Optional[KeyPattern]:
    for kp in JOIN_KEY_PATTERNS:
        if kp.pattern.search(header):
            return kp
    return None


def normalized_value_set(table: Table, column: str) -> Set[str]:
    """Distinct normalized values of a column, empty strings excluded."""
    return {v for v in (normalize_value(x) for x in table.column(column)) if v != ""}


def detect_join_keys(table: Table) -> List[JoinKeyCandidate]:
    """Score the columns of `table` that look like join keys.

    Sorted by priority, then by the share of distinct normalized values.
    """
    candidates: List[JoinKeyCandidate] = []
    for header in table.headers:
        kp = match_key_pattern(header)
        if kp is None:
            continue
        unique = normalized_value_set(table, header)
        candidates.append(
            JoinKeyCandidate(
                column=header,
                type=kp.type,
                priority=kp.priority,
                unique_ratio=len(unique) / max(table.row_count, 1),
                unique_count=len(unique),
            )
        )
    candidates.sort(key=lambda c: (-c.priority, -c.unique_ratio))
    return candidates


def calculate_overlap(tables: Sequence[Table], columns: Sequence[JoinColumn]) -> Tuple[float, int]:
    """Overlap of the chosen columns, paired positionally with `tables`.

    Returns (score, count) where count is the size of the intersection of all
    value sets and score is count divided by the smallest set size.
    """
    value_sets = [normalized_value_set(t, c.column) for t, c in zip(tables, columns)]
    if not value_sets:
        return 0.0, 0
    intersection = set(value_sets[0])
    for s in value_sets[1:]:
        intersection &= s
    min_size = min(len(s) for s in value_sets)
    if min_size == 0:
        return 0.0, len(intersection)
    return len(intersection) / min_size, len(intersection)


def find_best_join_keys(tables: Sequence[Table]) -> List[JoinSuggestion]:
    """Suggest join columns shared by every table in `tables`.

    For each candidate of the first table, every other table contributes its best
    candidate of the same semantic type. Suggestions missing any table are dropped.
    """
    if len(tables) < 2:
        return []

    per_table = [detect_join_keys(t) for t in tables]
    suggestions: List[JoinSuggestion] = []

    for base in per_table[0]:
        matched = [JoinColumn(tables[0].id, base.column)]
        for table, candidates in zip(tables[1:], per_table[1:]):
            match = next((c for c in candidates if c.type == base.type), None)
            if match is None:
                break
            matched.append(JoinColumn(table.id, match.column))
        if len(matched) != len(tables):
            continue

        score, count = calculate_overlap(tables, matched)
        suggestions.append(
            JoinSuggestion(
                type=base.type,
                columns=tuple(matched),
                priority=base.priority,
                overlap_score=score,
                overlap_count=count,
            )
        )

    suggestions.sort(key=lambda s: (-s.overlap_score, -s.priority))
    logger.debug(
        "join key suggestions for %s: %d",
        [t.id for t in tables],
        len(suggestions),
    )
    return suggestions
