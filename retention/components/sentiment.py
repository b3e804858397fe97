"""Keyword-tier sentiment analysis component."""

from dataclasses import dataclass

from ..domain import SentimentLevel
from ..rules import SENTIMENT_TIERS
from .base import BaseClassifier


@dataclass(frozen=True)
class SentimentAnalysis:
    level: SentimentLevel
    score: float


class SentimentAnalyzer(BaseClassifier):
    """
    Score text against four weighted keyword tiers.

    Unlike intent scoring this is a plain additive scan: every matching
    keyword moves the score by its tier delta, with no normalization.

    Deltas per match:
    - very negative: -0.4
    - negative: -0.2
    - positive: +0.2
    - very positive: +0.4

    Levels (score clamped to [-1, 1]):
    - <= -0.5: VERY_NEGATIVE
    - <= -0.2: NEGATIVE
    - >= 0.5: VERY_POSITIVE
    - >= 0.2: POSITIVE
    - otherwise NEUTRAL
    """

    name = "sentiment"

    def analyze(self, text: str) -> SentimentAnalysis:
        """Return the sentiment level and scalar score for `text`."""
        lower_text = (text or "").lower()
        deltas = self.policy.sentiment_deltas

        score = 0.0
        for tier in SENTIMENT_TIERS:
            delta = deltas.get(tier, 0.0)
            for keyword in self.rules.sentiment.get(tier, ()):
                if keyword in lower_text:
                    score += delta

        # Rounding keeps boundary values (e.g. -0.2) exact after float accumulation
        score = max(-1.0, min(1.0, round(score, 4)))
        return SentimentAnalysis(level=self.sentiment_level(score), score=score)

    def sentiment_level(self, score: float) -> SentimentLevel:
        return self.policy.sentiment_level(score)
