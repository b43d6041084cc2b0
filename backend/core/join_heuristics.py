"""
Join heuristics — column-name similarity and type compatibility scoring.
Pure functions: no I/O, no state. Used by the join service to rank candidate
join keys between two tables.
"""
import math
import re

# Column names are cut to this length before any comparison.
MAX_COLUMN_NAME_LENGTH = 255

EXACT_MATCH_CONFIDENCE = 95
MIN_SIMILARITY = 60
VERY_SIMILAR_CONFIDENCE = 80

_SUFFIXES = (re.compile(r"_id$"), re.compile(r"_key$"), re.compile(r"_code$"))

# Checked in order; the first match wins.
TYPE_CATEGORIES: list[tuple[str, re.Pattern]] = [
    ("integer", re.compile(r"int|integer|serial|bigint|smallint")),
    ("string",  re.compile(r"varchar|char|text|string")),
    ("numeric", re.compile(r"numeric|decimal|float|double|real")),
    ("date",    re.compile(r"date|timestamp|time")),
    ("boolean", re.compile(r"bool")),
]


def truncate_name(name: str) -> str:
    name = str(name)
    return name[:MAX_COLUMN_NAME_LENGTH]


def normalize_column_name(name: str) -> str:
    """Lowercase, drop a trailing _id/_key/_code, then drop underscores."""
    normalized = truncate_name(name).lower()
    for suffix in _SUFFIXES:
        normalized = suffix.sub("", normalized)
    return normalized.replace("_", "")


def type_category(data_type: str) -> str:
    """Map a raw SQL type string onto integer/string/numeric/date/boolean/other."""
    lowered = (data_type or "").lower()
    for category, pattern in TYPE_CATEGORIES:
        if pattern.search(lowered):
            return category
    return "other"


def types_compatible(type1: str, type2: str) -> bool:
    return type_category(type1) == type_category(type2)


def levenshtein_distance(a: str, b: str) -> int:
    a, b = truncate_name(a), truncate_name(b)
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(
                previous[j] + 1,          # deletion
                current[j - 1] + 1,       # insertion
                previous[j - 1] + cost,   # substitution
            ))
        previous = current
    return previous[len(b)]


def name_match_confidence(col1: str, col2: str) -> int:
    """
    Score 0-100 for two column names.
    95 for identical normalized names; otherwise Levenshtein similarity,
    with anything under 60 reported as 0 (no match).
    """
    norm1 = normalize_column_name(col1)
    norm2 = normalize_column_name(col2)
    if norm1 == norm2:
        return EXACT_MATCH_CONFIDENCE

    distance = levenshtein_distance(norm1, norm2)
    similarity = 1 - distance / max(len(norm1), len(norm2))
    score = int(math.floor(similarity * 100 + 0.5))
    return score if score >= MIN_SIMILARITY else 0


def describe_match(left_column: str, right_column: str,
                   left_type: str, right_type: str, confidence: int) -> str:
    if confidence >= EXACT_MATCH_CONFIDENCE:
        reason = "Column names are identical or nearly identical"
    elif confidence >= VERY_SIMILAR_CONFIDENCE:
        reason = f"Column names are very similar ({left_column} ≈ {right_column})"
    else:
        reason = f"Column names are similar ({left_column} ≈ {right_column})"
    return f"{reason} and types are compatible ({left_type}, {right_type})"
