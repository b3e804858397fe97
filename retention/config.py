"""
Policy constants for retention intelligence.

Every confidence, threshold and weight used by the classifiers and the risk
calculator lives here.

Detection policy:
- Page context beats keywords (cancel page 0.9, pause/skip page 0.85)
- Keyword evidence below 0.3 falls back to NEUTRAL at 0.5
- Primary confidence never exceeds 0.95, cancel reasons 0.9, secondaries 0.7

Risk policy:
- Score is capped to 0-100
- CRITICAL >= 80, HIGH >= 60, MEDIUM >= 40, LOW otherwise
"""

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from .domain import IntentCategory, RiskLevel, SentimentLevel


@dataclass
class DetectionPolicy:
    """Thresholds for the text classifiers and the intervention table."""

    # === Context short-circuit ===
    cancel_page_markers: tuple[str, ...] = ("cancel",)
    pause_page_markers: tuple[str, ...] = ("pause", "skip")
    cancel_page_confidence: float = 0.9
    pause_page_confidence: float = 0.85

    # === Keyword scoring ===
    whole_word_bonus: float = 0.5

    # === Primary intent ===
    min_primary_score: float = 0.3      # below: NEUTRAL
    neutral_confidence: float = 0.5
    max_primary_confidence: float = 0.95

    # === Secondary intents ===
    min_secondary_score: float = 0.2
    secondary_scale: float = 0.8
    max_secondary_confidence: float = 0.7
    max_secondary_intents: int = 3

    # === Cancel reason ===
    max_cancel_reason_confidence: float = 0.9

    # === Sentiment (per-match deltas, then level thresholds) ===
    sentiment_deltas: dict[str, float] = field(default_factory=lambda: {
        "very_negative": -0.4,
        "negative": -0.2,
        "positive": 0.2,
        "very_positive": 0.4,
    })
    very_negative_at_most: float = -0.5
    negative_at_most: float = -0.2
    very_positive_at_least: float = 0.5
    positive_at_least: float = 0.2

    # === Urgency ===
    high_value_lifetime_value: float = 500.0

    # === Intervention triggers (strictly greater than) ===
    cancel_trigger_confidence: float = 0.5
    pause_downgrade_trigger_confidence: float = 0.6
    intervention_types: dict[str, str] = field(default_factory=lambda: {
        IntentCategory.CANCEL.value: "save_flow",
        IntentCategory.PAUSE.value: "pause_offer",
        IntentCategory.DOWNGRADE.value: "retention_offer",
        IntentCategory.COMPLAINT.value: "support_escalation",
        IntentCategory.PAYMENT_ISSUE.value: "payment_recovery",
    })
    default_intervention_type: str = "general"

    def __post_init__(self):
        # YAML gives lists
        self.cancel_page_markers = tuple(self.cancel_page_markers)
        self.pause_page_markers = tuple(self.pause_page_markers)

    def sentiment_level(self, score: float) -> SentimentLevel:
        """Map a clamped sentiment score to its level."""
        if score <= self.very_negative_at_most:
            return SentimentLevel.VERY_NEGATIVE
        if score <= self.negative_at_most:
            return SentimentLevel.NEGATIVE
        if score >= self.very_positive_at_least:
            return SentimentLevel.VERY_POSITIVE
        if score >= self.positive_at_least:
            return SentimentLevel.POSITIVE
        return SentimentLevel.NEUTRAL

    def intervention_type(self, intent: IntentCategory) -> str:
        return self.intervention_types.get(
            IntentCategory(intent).value, self.default_intervention_type
        )


@dataclass
class RiskPolicy:
    """Weights and thresholds for churn risk scoring."""

    max_score: float = 100.0

    # Lowest score at which each level starts (must ascend)
    risk_levels: dict[str, float] = field(default_factory=lambda: {
        RiskLevel.LOW.value: 0.0,
        RiskLevel.MEDIUM.value: 40.0,
        RiskLevel.HIGH.value: 60.0,
        RiskLevel.CRITICAL.value: 80.0,
    })

    # Points added when engagement health is zero
    engagement_max_points: float = 20.0

    # === Trend & forecast ===
    trend_threshold: float = 5.0
    forecast_min_score: float = 40.0
    recalculation_hours: int = 24
    cache_ttl_hours: int = 6

    # === Recommendation triggers (category points) ===
    payment_points_threshold: float = 20.0
    engagement_points_threshold: float = 20.0
    behavior_points_threshold: float = 15.0

    # === Engagement metrics ===
    engagement_base: float = 50.0
    recent_order_bonus: float = 20.0
    frequent_buyer_bonus: float = 10.0
    frequent_buyer_min_orders: int = 2   # more than this in 90 days
    growing_trend_bonus: float = 10.0
    declining_trend_penalty: float = 20.0
    declining_trend_threshold: float = -20.0

    # === Health score penalties ===
    skip_rate_high: float = 50.0
    skip_rate_high_penalty: float = 20.0
    skip_rate_elevated: float = 30.0
    skip_rate_elevated_penalty: float = 10.0
    support_tickets_high: int = 3
    support_tickets_high_penalty: float = 15.0
    support_tickets_elevated: int = 1
    support_tickets_elevated_penalty: float = 5.0

    def __post_init__(self):
        levels = [RiskLevel(name) for name in self.risk_levels]
        if levels != list(RiskLevel):
            raise ValueError(f"risk_levels must define {[lvl.value for lvl in RiskLevel]} in order")
        bounds = list(self.risk_levels.values())
        if any(low > high for low, high in zip(bounds, bounds[1:])):
            raise ValueError(f"risk_levels thresholds must ascend, got {bounds}")

    def get_risk_level(self, score: float) -> RiskLevel:
        """Map numeric score to risk level (monotonic step function)."""
        level = RiskLevel.LOW
        for name, lower_bound in self.risk_levels.items():
            if score >= lower_bound:
                level = RiskLevel(name)
        return level


@dataclass
class RetentionConfig:
    """
    Complete configuration.

    Load from YAML:
        config = RetentionConfig.from_yaml("retention.yaml")

    Override programmatically:
        config = RetentionConfig(detection=DetectionPolicy(cancel_trigger_confidence=0.4))
    """

    detection: DetectionPolicy = field(default_factory=DetectionPolicy)
    risk: RiskPolicy = field(default_factory=RiskPolicy)

    # Keyword/signal tables; None = packaged defaults
    rules_dir: Optional[str] = None

    version: str = "1.0.0"

    @classmethod
    def from_dict(cls, data: dict) -> "RetentionConfig":
        data = dict(data or {})
        detection = DetectionPolicy(**data.pop("detection", {}) or {})
        risk = RiskPolicy(**data.pop("risk", {}) or {})
        return cls(detection=detection, risk=risk, **data)

    @classmethod
    def from_yaml(cls, path: Path | str) -> "RetentionConfig":
        """Load configuration from YAML file."""
        path = Path(path)
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data)

    def to_yaml(self, path: Path | str) -> None:
        """Save configuration to YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = self.to_dict()
        data["detection"]["cancel_page_markers"] = list(self.detection.cancel_page_markers)
        data["detection"]["pause_page_markers"] = list(self.detection.pause_page_markers)
        with open(path, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)


# Default configuration instance
DEFAULT_CONFIG = RetentionConfig()
