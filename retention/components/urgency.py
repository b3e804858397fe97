"""Detection urgency component."""

from typing import Optional

from ..domain import DetectionContext, IntentCategory, SentimentLevel, UrgencyLevel
from .base import BaseClassifier


class UrgencyResolver(BaseClassifier):
    """
    Escalation priority for a detection. First matching rule wins:

    1. CANCEL + VERY_NEGATIVE: CRITICAL
    2. CANCEL: HIGH
    3. Lifetime value > 500 and COMPLAINT or PAUSE: HIGH
    4. PAYMENT_ISSUE: HIGH
    5. COMPLAINT: HIGH if VERY_NEGATIVE else MEDIUM
    6. PAUSE or DOWNGRADE: MEDIUM
    7. Anything else: LOW

    Rules 3 and 4 take precedence over the per-intent defaults.
    """

    name = "urgency"

    def resolve(
        self,
        intent: IntentCategory,
        sentiment: SentimentLevel,
        context: Optional[DetectionContext] = None,
    ) -> UrgencyLevel:
        if intent == IntentCategory.CANCEL:
            if sentiment == SentimentLevel.VERY_NEGATIVE:
                return UrgencyLevel.CRITICAL
            return UrgencyLevel.HIGH

        if self._is_high_value(context) and intent in (
            IntentCategory.COMPLAINT,
            IntentCategory.PAUSE,
        ):
            return UrgencyLevel.HIGH

        if intent == IntentCategory.PAYMENT_ISSUE:
            return UrgencyLevel.HIGH

        if intent == IntentCategory.COMPLAINT:
            if sentiment == SentimentLevel.VERY_NEGATIVE:
                return UrgencyLevel.HIGH
            return UrgencyLevel.MEDIUM

        if intent in (IntentCategory.PAUSE, IntentCategory.DOWNGRADE):
            return UrgencyLevel.MEDIUM

        return UrgencyLevel.LOW

    def _is_high_value(self, context: Optional[DetectionContext]) -> bool:
        if context is None or context.customer is None:
            return False
        return context.customer.lifetime_value > self.policy.high_value_lifetime_value
