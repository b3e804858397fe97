"""Classification components for retention intelligence."""

from .base import BaseClassifier
from .keywords import best_match, score_keywords, score_table
from .sentiment import SentimentAnalysis, SentimentAnalyzer
from .intent import IntentClassification, IntentClassifier
from .cancel_reason import CancelReasonClassification, CancelReasonClassifier
from .urgency import UrgencyResolver
from .intervention import InterventionDecider

__all__ = [
    "BaseClassifier",
    "score_keywords",
    "score_table",
    "best_match",
    "SentimentAnalysis",
    "SentimentAnalyzer",
    "IntentClassification",
    "IntentClassifier",
    "CancelReasonClassification",
    "CancelReasonClassifier",
    "UrgencyResolver",
    "InterventionDecider",
]
