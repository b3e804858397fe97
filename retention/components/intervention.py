"""Intervention trigger decision table."""

from ..domain import (
    DetectionResult,
    IntentCategory,
    InterventionDecision,
    SentimentLevel,
)
from .base import BaseClassifier

NEGATIVE_SENTIMENTS = frozenset({SentimentLevel.NEGATIVE, SentimentLevel.VERY_NEGATIVE})


class InterventionDecider(BaseClassifier):
    """
    Decide whether a detection should fire a retention intervention.

    Triggers (confidence thresholds are strict):
    - CANCEL with confidence > 0.5
    - PAUSE or DOWNGRADE with confidence > 0.6
    - COMPLAINT with NEGATIVE or VERY_NEGATIVE sentiment
    - PAYMENT_ISSUE at any confidence

    Intervention types: CANCEL save_flow, PAUSE pause_offer, DOWNGRADE
    retention_offer, COMPLAINT support_escalation, PAYMENT_ISSUE
    payment_recovery, anything else general.
    """

    name = "intervention"

    def decide(self, result: DetectionResult) -> InterventionDecision:
        return self.decide_for(
            result.primary_intent, result.primary_confidence, result.sentiment
        )

    def decide_for(
        self,
        intent: IntentCategory,
        confidence: float,
        sentiment: SentimentLevel,
    ) -> InterventionDecision:
        if not self.should_trigger(intent, confidence, sentiment):
            return InterventionDecision(should_trigger=False)
        return InterventionDecision(
            should_trigger=True,
            intervention_type=self.policy.intervention_type(intent),
        )

    def should_trigger(
        self,
        intent: IntentCategory,
        confidence: float,
        sentiment: SentimentLevel,
    ) -> bool:
        policy = self.policy
        if intent == IntentCategory.CANCEL:
            return confidence > policy.cancel_trigger_confidence
        if intent in (IntentCategory.PAUSE, IntentCategory.DOWNGRADE):
            return confidence > policy.pause_downgrade_trigger_confidence
        if intent == IntentCategory.COMPLAINT:
            return sentiment in NEGATIVE_SENTIMENTS
        return intent == IntentCategory.PAYMENT_ISSUE
