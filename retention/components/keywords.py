"""Keyword match scoring shared by every text classifier."""

import math
from typing import Iterable, Optional, Sequence, TypeVar

from ..rules import KeywordRule

Category = TypeVar("Category")

WHOLE_WORD_BONUS = 0.5


def score_keywords(
    text: str,
    keywords: Iterable[KeywordRule | str],
    whole_word_bonus: float = WHOLE_WORD_BONUS,
) -> float:
    """
    Normalized match score of `text` against a keyword set.

    Every keyword found as a substring counts its weight; a keyword that also
    stands as a whole word (bounded by spaces or the string ends) counts an
    extra `whole_word_bonus` x weight. The total is divided by the square root
    of the keyword count, then capped at 1.

    Args:
        text: Lower-cased text to scan
        keywords: KeywordRule entries (bare strings count with weight 1)
        whole_word_bonus: Extra matches for a whole-word hit

    Returns:
        Score in [0, 1]; 0 for an empty keyword set
    """
    rules = [KeywordRule(k) if isinstance(k, str) else k for k in keywords]
    if not rules:
        return 0.0

    padded = f" {text} "
    matches = 0.0
    for rule in rules:
        if not rule.keyword or rule.keyword not in text:
            continue
        matches += rule.weight
        if f" {rule.keyword} " in padded:
            matches += whole_word_bonus * rule.weight

    return max(0.0, min(matches / math.sqrt(len(rules)), 1.0))


def score_table(
    text: str,
    table: Sequence[tuple[Category, Sequence[KeywordRule]]],
    whole_word_bonus: float = WHOLE_WORD_BONUS,
) -> list[tuple[Category, float]]:
    """Score every category of an ordered rule table, keeping declaration order."""
    return [
        (category, score_keywords(text, keywords, whole_word_bonus))
        for category, keywords in table
    ]


def best_match(scores: Sequence[tuple[Category, float]]) -> tuple[Optional[Category], float]:
    """
    Highest-scoring category; the earliest declared wins ties.

    Returns (None, 0.0) when nothing scores above zero.
    """
    best, best_score = None, 0.0
    for category, score in scores:
        if score > best_score:
            best, best_score = category, score
    return best, best_score
