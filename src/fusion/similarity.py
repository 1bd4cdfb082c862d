"""Text normalization and similarity scoring for duplicate detection."""

import math
import re

_WHITESPACE = re.compile(r"\s+")
_NON_VALUE_CHARS = re.compile(r"[^\w\s@.+-]")
# "(500 rub)", "(10k)", "($200)" style money annotations
_PAREN_AMOUNT = re.compile(
    r"\s*\([^)]*(?:₽|руб|rub|тыс|млн|usd|eur|\$|k\b|m\b)[^)]*\)", re.IGNORECASE
)
_TRAILING_PUNCT = re.compile(r"[.,;:!]+$")


def normalize_value(value: str) -> str:
    """Normalize a fact value: lowercase, collapse whitespace, keep word chars and @.+-"""
    value = _WHITESPACE.sub(" ", value.lower().strip())
    return _NON_VALUE_CHARS.sub("", value)


def normalize_name(name: str) -> str:
    """Normalize an item name for exact matching.

    "Buy Milk (500 rub)." and "buy  milk" normalize to the same key.
    """
    name = name.strip().lower()
    name = _PAREN_AMOUNT.sub("", name)
    name = _WHITESPACE.sub(" ", name)
    return _TRAILING_PUNCT.sub("", name).strip()


def levenshtein(a: str, b: str) -> int:
    """Edit distance between two strings (two-row dynamic programming)."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def lexical_similarity(a: str, b: str) -> float:
    """Edit-distance similarity in [0, 1] between two already-normalized strings.

    Returns 0 when the length difference exceeds half the longer string.
    """
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    longer, shorter = (a, b) if len(a) >= len(b) else (b, a)
    if len(longer) - len(shorter) > len(longer) * 0.5:
        return 0.0
    return 1 - levenshtein(shorter, longer) / len(longer)


def value_similarity(a: str, b: str) -> float:
    """lexical_similarity over normalized values."""
    return lexical_similarity(normalize_value(a), normalize_value(b))


def cosine_similarity(a: list[float], b: list[float]) -> float:
    if len(a) != len(b):
        raise ValueError(f"Embedding dimensions must match: {len(a)} vs {len(b)}")
    if not a:
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    magnitude = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if magnitude == 0:
        return 0.0
    return dot / magnitude


def distance_to_similarity(distance: float) -> float:
    """Convert a cosine distance (0 = identical) to a similarity score."""
    return 1 - distance
