"""
Retention Intelligence Package

Rule-based intent detection for customer text plus churn signal scoring.
"""

from .churn import ChurnPredictor
from .config import DEFAULT_CONFIG, RetentionConfig
from .detector import DetectionOrchestrator
from .domain import (
    CancelReason,
    ChurnSignalType,
    DetectIntentInput,
    DetectionResult,
    IntentCategory,
    RecordSignalInput,
    RiskLevel,
    RiskScore,
    SentimentLevel,
    UrgencyLevel,
)
from .events import EventBus
from .risk import RiskScoreCalculator

__all__ = [
    "ChurnPredictor",
    "DetectionOrchestrator",
    "EventBus",
    "RiskScoreCalculator",
    "RetentionConfig",
    "DEFAULT_CONFIG",
    "CancelReason",
    "ChurnSignalType",
    "DetectIntentInput",
    "DetectionResult",
    "IntentCategory",
    "RecordSignalInput",
    "RiskLevel",
    "RiskScore",
    "SentimentLevel",
    "UrgencyLevel",
]
__version__ = "1.0.0"
