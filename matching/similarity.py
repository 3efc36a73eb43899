# matching/similarity.py
from rapidfuzz.distance import Levenshtein

from matching.normalize import normalize

NAME_DUPLICATE_THRESHOLD = 0.8
PREFIX_LIMIT = 15
PREFIX_MIN_LENGTH = 3
PREFIX_THRESHOLD = 0.8


def edit_distance(a: str, b: str) -> int:
    """Unit-cost insert/delete/substitute distance."""
    return Levenshtein.distance(a or "", b or "")


def similarity(a, b) -> float:
    """
    Edit-distance similarity of the normalized strings, in [0, 1]:
      both empty -> 1.0, exactly one empty -> 0.0,
      else (max_len - distance) / max_len.
    Cost is O(len(a) * len(b)) per pair; callers comparing a whole population
    should chunk or block first.
    """
    a, b = normalize(a), normalize(b)
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    longest = max(len(a), len(b))
    return (longest - edit_distance(a, b)) / longest


def names_match(a, b, threshold: float = NAME_DUPLICATE_THRESHOLD) -> bool:
    return similarity(a, b) > threshold


def prefix_similarity(a, b, limit: int = PREFIX_LIMIT) -> float:
    """
    Strict from-index-0 match ratio over the first `limit` normalized chars.
    Not edit distance: '123 main st' vs '123 main street' -> 1.0,
    'a123 main' vs '123 main' -> 0.0.
    """
    a, b = normalize(a)[:limit], normalize(b)[:limit]
    shortest = min(len(a), len(b))
    if shortest == 0:
        return 0.0
    matches = 0
    for ca, cb in zip(a, b):
        if ca != cb:
            break
        matches += 1
    return matches / shortest


def addresses_similar(a, b) -> bool:
    a, b = normalize(a)[:PREFIX_LIMIT], normalize(b)[:PREFIX_LIMIT]
    if len(a) < PREFIX_MIN_LENGTH or len(b) < PREFIX_MIN_LENGTH:
        return False
    return prefix_similarity(a, b) >= PREFIX_THRESHOLD
