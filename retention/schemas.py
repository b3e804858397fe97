"""
Data schema definitions for batch inputs and outputs.

Uses Pandera for runtime validation of DataFrames so malformed CSV rows
fail before scoring instead of producing silently wrong risk.
"""

from pandera.pandas import Check, Column, DataFrameSchema

from .domain import ChurnSignalType, DetectionSource, RiskLevel, SignalCategory


# Schema for the signal log fed to batch risk scoring
SIGNALS_INPUT_SCHEMA = DataFrameSchema(
    {
        "customer_id": Column(
            str,
            nullable=False,
            description="Customer the signal belongs to"
        ),
        "company_id": Column(
            str,
            nullable=True,
            required=False,
            description="Owning company"
        ),
        "signal_type": Column(
            str,
            nullable=False,
            checks=Check.isin([t.value for t in ChurnSignalType]),
            description="Churn signal type"
        ),
        "category": Column(
            str,
            nullable=True,
            required=False,
            checks=Check.isin([c.value for c in SignalCategory]),
            description="Signal category (filled from the catalog when absent)"
        ),
        "weight": Column(
            float,
            nullable=True,
            required=False,
            checks=[
                Check.greater_than_or_equal_to(0),
                Check.less_than_or_equal_to(100),
            ],
            description="Base weight (filled from the catalog when absent)"
        ),
        "confidence": Column(
            float,
            nullable=False,
            checks=[
                Check.greater_than_or_equal_to(0.0),
                Check.less_than_or_equal_to(1.0),
            ],
            description="Confidence the signal is real"
        ),
        "decay_days": Column(
            float,
            nullable=True,
            required=False,
            checks=Check.greater_than_or_equal_to(0),
            description="Days until the signal stops counting"
        ),
        # Timestamps are normalized to UTC by the scorer
        "detected_at": Column(
            nullable=False,
            description="When the signal was detected"
        ),
    },
    strict=False,
    coerce=True,
    description="Schema for churn signal input data"
)


# Schema for customer engagement rows (optional risk input)
ENGAGEMENT_INPUT_SCHEMA = DataFrameSchema(
    {
        "customer_id": Column(str, nullable=False, unique=True),
        "company_id": Column(str, nullable=True, required=False),
        "health_score": Column(
            float,
            nullable=False,
            checks=[
                Check.greater_than_or_equal_to(0),
                Check.less_than_or_equal_to(100),
            ],
        ),
    },
    strict=False,
    coerce=True,
    description="Schema for engagement input data"
)


# Schema for text rows fed to batch detection
DETECTION_INPUT_SCHEMA = DataFrameSchema(
    {
        "customer_id": Column(str, nullable=False),
        "company_id": Column(str, nullable=False),
        "text": Column(str, nullable=True, required=False),
        "transcript": Column(str, nullable=True, required=False),
        "source": Column(
            str,
            nullable=True,
            required=False,
            checks=Check.isin([s.value for s in DetectionSource]),
        ),
        "session_id": Column(str, nullable=True, required=False),
        "current_page": Column(str, nullable=True, required=False),
        "current_action": Column(str, nullable=True, required=False),
    },
    strict=False,
    coerce=True,
    description="Schema for intent detection input data"
)


# Schema for risk scoring output data
RISK_OUTPUT_SCHEMA = DataFrameSchema(
    {
        "customer_id": Column(str, nullable=False, unique=True),
        "risk_score": Column(
            float,
            nullable=False,
            checks=[
                Check.greater_than_or_equal_to(0),
                Check.less_than_or_equal_to(100),
            ]
        ),
        "risk_level": Column(
            str,
            nullable=False,
            checks=Check.isin([lvl.value for lvl in RiskLevel])
        ),
    },
    strict=False,  # Allow component columns
    description="Schema for churn risk scoring output data"
)


__all__ = [
    "SIGNALS_INPUT_SCHEMA",
    "ENGAGEMENT_INPUT_SCHEMA",
    "DETECTION_INPUT_SCHEMA",
    "RISK_OUTPUT_SCHEMA",
]
