"""
Domain types for retention intelligence.

Enums for every classified dimension plus the immutable records that flow
between the classifiers, the orchestrator, the churn predictor and the
external stores.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class IntentCategory(str, Enum):
    """Classified purpose of a piece of customer text (declaration order matters)."""

    CANCEL = "CANCEL"
    PAUSE = "PAUSE"
    DOWNGRADE = "DOWNGRADE"
    UPGRADE = "UPGRADE"
    COMPLAINT = "COMPLAINT"
    QUESTION = "QUESTION"
    PAYMENT_ISSUE = "PAYMENT_ISSUE"
    BILLING_QUESTION = "BILLING_QUESTION"
    FEEDBACK = "FEEDBACK"
    RENEW = "RENEW"
    REFERRAL = "REFERRAL"
    NEUTRAL = "NEUTRAL"
    UNKNOWN = "UNKNOWN"


# Never scored against keywords, never reported as secondary intents
NON_SCORING_INTENTS = frozenset({IntentCategory.NEUTRAL, IntentCategory.UNKNOWN})

# Intents for which a cancel reason is classified
CANCEL_REASON_INTENTS = frozenset({IntentCategory.CANCEL, IntentCategory.PAUSE})


class CancelReason(str, Enum):
    TOO_EXPENSIVE = "TOO_EXPENSIVE"
    NOT_USING = "NOT_USING"
    WRONG_PRODUCT = "WRONG_PRODUCT"
    BAD_EXPERIENCE = "BAD_EXPERIENCE"
    COMPETITOR = "COMPETITOR"
    TEMPORARY_PAUSE = "TEMPORARY_PAUSE"
    FINANCIAL_HARDSHIP = "FINANCIAL_HARDSHIP"
    TECHNICAL_ISSUES = "TECHNICAL_ISSUES"
    SHIPPING_ISSUES = "SHIPPING_ISSUES"
    QUALITY_ISSUES = "QUALITY_ISSUES"
    TOO_MUCH_PRODUCT = "TOO_MUCH_PRODUCT"
    LIFESTYLE_CHANGE = "LIFESTYLE_CHANGE"
    MOVING = "MOVING"
    GIFTING_ENDED = "GIFTING_ENDED"
    OTHER = "OTHER"


class SentimentLevel(str, Enum):
    VERY_NEGATIVE = "VERY_NEGATIVE"
    NEGATIVE = "NEGATIVE"
    NEUTRAL = "NEUTRAL"
    POSITIVE = "POSITIVE"
    VERY_POSITIVE = "VERY_POSITIVE"


class UrgencyLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class RiskLevel(str, Enum):
    """Discrete churn risk, ordered from lowest to highest."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @classmethod
    def at_or_above(cls, level: "RiskLevel") -> list["RiskLevel"]:
        """All levels at or above `level`, lowest first."""
        ordered = list(cls)
        return ordered[ordered.index(cls(level)):]


class DetectionSource(str, Enum):
    WEB = "web"
    VOICE = "voice"
    CHAT = "chat"
    EMAIL = "email"
    API = "api"


class SignalCategory(str, Enum):
    ENGAGEMENT = "engagement"
    PAYMENT = "payment"
    BEHAVIOR = "behavior"
    LIFECYCLE = "lifecycle"
    EXTERNAL = "external"


class ChurnSignalType(str, Enum):
    """Behavioural events recorded as churn evidence."""

    CANCEL_PAGE_VISIT = "CANCEL_PAGE_VISIT"
    CANCEL_INTENT = "CANCEL_INTENT"
    PAUSE_INTENT = "PAUSE_INTENT"
    DOWNGRADE_INTENT = "DOWNGRADE_INTENT"
    COMPLAINT = "COMPLAINT"
    NEGATIVE_FEEDBACK = "NEGATIVE_FEEDBACK"
    COMPETITOR_MENTION = "COMPETITOR_MENTION"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    PAYMENT_ISSUE_REPORTED = "PAYMENT_ISSUE_REPORTED"
    CARD_EXPIRING = "CARD_EXPIRING"
    ENGAGEMENT_SCORE_DROP = "ENGAGEMENT_SCORE_DROP"
    LOGIN_FREQUENCY_DROP = "LOGIN_FREQUENCY_DROP"
    INACTIVITY = "INACTIVITY"
    SKIP_FREQUENCY_INCREASE = "SKIP_FREQUENCY_INCREASE"
    HELP_PAGE_VISITS = "HELP_PAGE_VISITS"
    SUPPORT_TICKET = "SUPPORT_TICKET"
    NPS_SCORE_DROP = "NPS_SCORE_DROP"
    NEW_SUBSCRIBER = "NEW_SUBSCRIBER"


# =============================================================================
# Detection records
# =============================================================================


@dataclass(frozen=True)
class IntentScore:
    """An (intent, confidence) pair."""

    intent: IntentCategory
    confidence: float


@dataclass(frozen=True)
class CustomerContext:
    """What the orchestrator knows about the customer behind a detection."""

    tenure_months: int = 0
    lifetime_value: float = 0.0
    current_plan: Optional[str] = None
    subscription_status: Optional[str] = None


@dataclass(frozen=True)
class DetectionContext:
    """Request-level context handed to the intent and urgency rules."""

    customer_id: str = ""
    company_id: str = ""
    session_id: Optional[str] = None
    current_page: Optional[str] = None
    current_action: Optional[str] = None
    customer: Optional[CustomerContext] = None


@dataclass(frozen=True)
class DetectIntentInput:
    """
    One text (or transcript) to analyze.

    Raises:
        ValueError: If customer_id/company_id are empty or source is unknown
    """

    customer_id: str
    company_id: str
    source: DetectionSource = DetectionSource.API
    session_id: Optional[str] = None
    text: Optional[str] = None
    transcript: Optional[str] = None
    current_page: Optional[str] = None
    current_action: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        if not self.customer_id:
            raise ValueError("customer_id is required")
        if not self.company_id:
            raise ValueError("company_id is required")
        # Accept plain strings such as "chat"
        object.__setattr__(self, "source", DetectionSource(self.source))
        object.__setattr__(self, "metadata", dict(self.metadata or {}))

    @property
    def analyzed_text(self) -> str:
        """Text wins over transcript; absence of both is an empty string."""
        return self.text or self.transcript or ""


@dataclass(frozen=True)
class DetectionResult:
    """
    Immutable outcome of one analysis call.

    Raises:
        ValueError: If a cancel reason is attached to an intent other than
            CANCEL or PAUSE
    """

    customer_id: str
    company_id: str
    primary_intent: IntentCategory
    primary_confidence: float
    sentiment: SentimentLevel
    sentiment_score: float
    urgency: UrgencyLevel
    detected_at: datetime
    source: DetectionSource = DetectionSource.API
    session_id: Optional[str] = None
    secondary_intents: tuple[IntentScore, ...] = ()
    cancel_reason: Optional[CancelReason] = None
    cancel_reason_confidence: Optional[float] = None
    source_data: dict[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        if self.cancel_reason is not None and self.primary_intent not in CANCEL_REASON_INTENTS:
            raise ValueError(
                f"cancel_reason is only valid for CANCEL/PAUSE, got {self.primary_intent.value}"
            )

    def to_dict(self) -> dict[str, Any]:
        """Flat, JSON-friendly representation for stores and CSV export."""
        return {
            "customer_id": self.customer_id,
            "company_id": self.company_id,
            "session_id": self.session_id,
            "primary_intent": self.primary_intent.value,
            "primary_confidence": self.primary_confidence,
            "secondary_intents": [
                {"intent": s.intent.value, "confidence": s.confidence}
                for s in self.secondary_intents
            ],
            "cancel_reason": self.cancel_reason.value if self.cancel_reason else None,
            "cancel_reason_confidence": self.cancel_reason_confidence,
            "sentiment": self.sentiment.value,
            "sentiment_score": self.sentiment_score,
            "urgency": self.urgency.value,
            "source": self.source.value,
            "source_data": dict(self.source_data),
            "detected_at": self.detected_at.isoformat(),
        }


@dataclass(frozen=True)
class InterventionDecision:
    should_trigger: bool
    intervention_type: Optional[str] = None


@dataclass(frozen=True)
class IntentDetectedEvent:
    """Payload of the `intent.detected` topic."""

    detection: DetectionResult
    should_trigger_intervention: bool
    intervention_type: Optional[str] = None


# =============================================================================
# Customer history (supplied by the external customer directory)
# =============================================================================


@dataclass(frozen=True)
class OrderRecord:
    total: float
    ordered_at: datetime


@dataclass(frozen=True)
class CustomerRecord:
    customer_id: str
    company_id: str
    signed_up_at: Optional[datetime] = None
    orders: tuple[OrderRecord, ...] = ()
    current_plan: Optional[str] = None
    subscription_status: Optional[str] = None
    skips_last_30_days: int = 0
    deliveries_last_30_days: int = 0
    support_tickets_last_30_days: int = 0


# =============================================================================
# Churn signals and risk
# =============================================================================


@dataclass(frozen=True)
class SignalWeight:
    """Catalog entry describing how one signal type contributes to risk."""

    signal_type: ChurnSignalType
    category: SignalCategory
    weight: float
    decay_days: int
    additive: bool = True
    max_occurrences: int = 5

    @property
    def occurrence_limit(self) -> int:
        return self.max_occurrences if self.additive else 1


@dataclass(frozen=True)
class RecordSignalInput:
    """
    Request to record one churn signal.

    Raises:
        ValueError: If ids are empty or confidence is outside [0, 1]
    """

    customer_id: str
    company_id: str
    signal_type: ChurnSignalType
    confidence: float = 0.8
    value: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        if not self.customer_id or not self.company_id:
            raise ValueError("customer_id and company_id are required")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")
        object.__setattr__(self, "metadata", dict(self.metadata or {}))


@dataclass(frozen=True)
class ChurnSignal:
    """One append-only behavioural event in a customer's signal history."""

    signal_id: str
    customer_id: str
    company_id: str
    signal_type: ChurnSignalType
    category: SignalCategory
    weight: float
    confidence: float
    decay_days: int
    detected_at: datetime
    expires_at: datetime
    value: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict, hash=False)

    def is_active(self, as_of: datetime) -> bool:
        return self.expires_at > as_of

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["signal_type"] = self.signal_type.value
        data["category"] = self.category.value
        return data


@dataclass(frozen=True)
class EngagementMetrics:
    """Recency/frequency/monetary summary of a customer's activity."""

    customer_id: str
    company_id: str
    tenure_months: int
    lifetime_value: float
    total_orders: int
    avg_order_value: float
    last_order_at: Optional[datetime]
    days_since_last_order: Optional[int]
    orders_last_30_days: int
    orders_last_90_days: int
    order_frequency_trend: float
    skips_last_30_days: int
    skip_rate: float
    support_tickets_last_30_days: int
    engagement_score: float
    health_score: float
    calculated_at: datetime
    current_plan: Optional[str] = None
    subscription_status: Optional[str] = None


@dataclass(frozen=True)
class RiskScore:
    """Aggregate 0-100 churn risk for one customer at one point in time."""

    customer_id: str
    company_id: str
    score: float
    level: RiskLevel
    computed_at: datetime
    breakdown: dict[str, float] = field(default_factory=dict, hash=False)
    trend: str = "stable"
    trend_delta: float = 0.0
    predicted_churn_date: Optional[datetime] = None
    next_calculation_at: Optional[datetime] = None
    signals: tuple[ChurnSignal, ...] = ()
    recommended_actions: tuple[str, ...] = ()
