"""Intent classification component."""

from dataclasses import dataclass
from typing import Optional

from ..domain import DetectionContext, IntentCategory, IntentScore
from .base import BaseClassifier
from .keywords import best_match, score_table


@dataclass(frozen=True)
class IntentClassification:
    primary: IntentCategory
    confidence: float
    secondaries: tuple[IntentScore, ...] = ()


class IntentClassifier(BaseClassifier):
    """
    Classify customer text into a primary intent plus up to three secondaries.

    The current page is checked first:
    - page contains "cancel": CANCEL at 0.9
    - page contains "pause" or "skip": PAUSE at 0.85

    Otherwise every intent category is keyword-scored in declaration order:
    - best score < 0.3: NEUTRAL at 0.5 (no strong signal)
    - else the best category, confidence capped at 0.95

    Secondary intents are the other categories scoring > 0.2, confidence
    min(score x 0.8, 0.7), sorted descending with declaration order kept on ties.
    """

    name = "intent"

    def classify(
        self,
        text: str,
        context: Optional[DetectionContext] = None,
    ) -> IntentClassification:
        lower_text = (text or "").lower()
        scores = score_table(
            lower_text, self.rules.scoring_intents(), self.policy.whole_word_bonus
        )

        primary, confidence = self._context_intent(context) or self._keyword_intent(scores)

        return IntentClassification(
            primary=primary,
            confidence=confidence,
            secondaries=self._secondary_intents(scores, primary),
        )

    def _context_intent(
        self, context: Optional[DetectionContext]
    ) -> Optional[tuple[IntentCategory, float]]:
        page = ((context.current_page if context else None) or "").lower()
        if not page:
            return None
        if any(marker in page for marker in self.policy.cancel_page_markers):
            return IntentCategory.CANCEL, self.policy.cancel_page_confidence
        if any(marker in page for marker in self.policy.pause_page_markers):
            return IntentCategory.PAUSE, self.policy.pause_page_confidence
        return None

    def _keyword_intent(
        self, scores: list[tuple[IntentCategory, float]]
    ) -> tuple[IntentCategory, float]:
        intent, max_score = best_match(scores)
        if intent is None or max_score < self.policy.min_primary_score:
            return IntentCategory.NEUTRAL, self.policy.neutral_confidence
        return intent, min(max_score, self.policy.max_primary_confidence)

    def _secondary_intents(
        self,
        scores: list[tuple[IntentCategory, float]],
        primary: IntentCategory,
    ) -> tuple[IntentScore, ...]:
        policy = self.policy
        candidates = [
            IntentScore(
                intent=intent,
                confidence=min(score * policy.secondary_scale, policy.max_secondary_confidence),
            )
            for intent, score in scores
            if intent != primary and score > policy.min_secondary_score
        ]
        # sorted() is stable, so ties keep declaration order
        candidates = sorted(candidates, key=lambda s: s.confidence, reverse=True)
        return tuple(candidates[:policy.max_secondary_intents])
