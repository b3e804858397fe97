"""Cancellation reason classification component."""

from dataclasses import dataclass

from ..domain import CancelReason
from .base import BaseClassifier
from .keywords import best_match, score_table


@dataclass(frozen=True)
class CancelReasonClassification:
    reason: CancelReason
    confidence: float


class CancelReasonClassifier(BaseClassifier):
    """
    Pick the most likely reason behind a cancel or pause request.

    Same maximum-score-wins scan as intent classification, over the
    fourteen reason categories. Confidence is capped at 0.9; when no
    category matches at all the reason is OTHER with confidence 0.
    """

    name = "cancel_reason"

    def classify(self, text: str) -> CancelReasonClassification:
        lower_text = (text or "").lower()
        scores = score_table(
            lower_text, self.rules.cancel_reasons, self.policy.whole_word_bonus
        )
        reason, max_score = best_match(scores)
        if reason is None:
            return CancelReasonClassification(reason=CancelReason.OTHER, confidence=0.0)
        return CancelReasonClassification(
            reason=reason,
            confidence=min(max_score, self.policy.max_cancel_reason_confidence),
        )
