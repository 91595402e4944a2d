"""Approximate name matching used by the reconciler."""

from rapidfuzz import fuzz


def normalize_name(text: str) -> str:
    return " ".join(text.lower().split())


def name_similarity(a: str, b: str) -> float:
    """Score two names in [0, 1], ignoring case and runs of whitespace.

    Uses the normalized indel similarity, 2 * matches / (len(a) + len(b)),
    so identical names score 1.0 and the result is symmetric.
    """
    a, b = normalize_name(a), normalize_name(b)
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    return fuzz.ratio(a, b) / 100.0
