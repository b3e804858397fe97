"""
Churn risk scoring from the signal log.

Usage:
    from retention.risk import RiskScoreCalculator

    calculator = RiskScoreCalculator()

    # Batch (vectorized)
    result = calculator.score_frame(signals_df, engagement_df, as_of=now)
    print(result.df[["customer_id", "risk_score", "risk_level"]])
    print(result.summary())

    # One customer
    score = calculator.calculate("cust_1", "co_1", signals, engagement, as_of=now)
    print(score.score, score.level, score.recommended_actions)
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional, Union

import numpy as np
import pandas as pd

from .config import DEFAULT_CONFIG, RetentionConfig, RiskPolicy
from .domain import (
    ChurnSignal,
    EngagementMetrics,
    RiskLevel,
    RiskScore,
    SignalCategory,
)
from .engagement import SECONDS_PER_DAY, utc_timestamp
from .rules import RuleTable, load_rules
from .schemas import ENGAGEMENT_INPUT_SCHEMA, SIGNALS_INPUT_SCHEMA

CATEGORIES = [c.value for c in SignalCategory]
CATEGORY_COLUMNS = [f"{c}_points" for c in CATEGORIES]
HEALTH_COLUMN = "health_points"

SIGNAL_COLUMNS = [
    "signal_id",
    "customer_id",
    "company_id",
    "signal_type",
    "category",
    "weight",
    "confidence",
    "decay_days",
    "detected_at",
    "expires_at",
]

TREND_IMPROVING = "improving"
TREND_STABLE = "stable"
TREND_DECLINING = "declining"


@dataclass
class RiskScoringResult:
    """
    Container for batch risk scores with category breakdown.

    Attributes:
        df: One row per customer with component points, risk_score and risk_level
        component_columns: Names of the point columns summed into risk_score
    """

    df: pd.DataFrame
    component_columns: list[str]

    def get_high_risk(self, min_level: Union[RiskLevel, str] = RiskLevel.HIGH) -> pd.DataFrame:
        """
        Get customers at or above a risk level, highest score first.

        Args:
            min_level: Minimum risk level ("LOW", "MEDIUM", "HIGH", "CRITICAL")
        """
        valid_levels = [lvl.value for lvl in RiskLevel.at_or_above(min_level)]
        high = self.df[self.df["risk_level"].isin(valid_levels)]
        return high.sort_values("risk_score", ascending=False)

    def summary(self) -> pd.DataFrame:
        """Counts and average score by company and risk level."""
        return (
            self.df.groupby(["company_id", "risk_level"])
            .agg(
                count=("customer_id", "count"),
                avg_score=("risk_score", "mean"),
            )
            .round(1)
        )

    def component_breakdown(self) -> pd.DataFrame:
        """Mean/max/min contribution of each component."""
        stats = {}
        for col in self.component_columns:
            component_name = col.replace("_points", "")
            stats[component_name] = {
                "mean": self.df[col].mean(),
                "max": self.df[col].max(),
                "min": self.df[col].min(),
            }
        return pd.DataFrame(stats).T.round(1)


def signals_frame(signals: Iterable[ChurnSignal]) -> pd.DataFrame:
    """Signals as rows with SIGNAL_COLUMNS and enum values as strings."""
    rows = [
        {
            "signal_id": s.signal_id,
            "customer_id": s.customer_id,
            "company_id": s.company_id,
            "signal_type": s.signal_type.value,
            "category": s.category.value,
            "weight": float(s.weight),
            "confidence": float(s.confidence),
            "decay_days": int(s.decay_days),
            "detected_at": s.detected_at,
            "expires_at": s.expires_at,
        }
        for s in signals
    ]
    df = pd.DataFrame(rows, columns=SIGNAL_COLUMNS)
    for col in ("detected_at", "expires_at"):
        df[col] = pd.to_datetime(df[col], utc=True)
    return df


class RiskScoreCalculator:
    """
    Vectorized churn risk scoring.

    Each signal contributes `weight x decay x confidence` points, where decay
    falls linearly from 1 at detection to 0 after `decay_days`. Points are
    summed per category; engagement health adds up to 20 points as it falls
    toward zero. The total is capped at 100.

    Components:
    - engagement, payment, behavior, lifecycle, external (signal points)
    - health (0-20): (100 - health_score) / 100 x 20
    """

    REQUIRED_COLUMNS = ["customer_id", "signal_type", "confidence", "detected_at"]

    def __init__(
        self,
        config: Optional[RetentionConfig] = None,
        rules: Optional[RuleTable] = None,
    ):
        """
        Initialize calculator with configuration.

        Args:
            config: RetentionConfig instance. Uses DEFAULT_CONFIG if None.
            rules: RuleTable with the signal catalog. Loaded from config if None.
        """
        self.config = config or DEFAULT_CONFIG
        self.rules = rules or load_rules(self.config.rules_dir)

    @property
    def policy(self) -> RiskPolicy:
        return self.config.risk

    def validate_input(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Validate required columns exist and values are in range.

        Returns:
            Validated (type-coerced) copy of df

        Raises:
            ValueError: If required columns are missing
            pandera.errors.SchemaError: If values violate SIGNALS_INPUT_SCHEMA
        """
        missing = set(self.REQUIRED_COLUMNS) - set(df.columns)
        if missing:
            raise ValueError(f"Missing required columns: {sorted(missing)}")
        return SIGNALS_INPUT_SCHEMA.validate(df)

    def _with_catalog(self, df: pd.DataFrame) -> pd.DataFrame:
        """Fill category/weight/decay_days from the signal catalog where absent."""
        catalog = {sig.value: entry for sig, entry in self.rules.signals.items()}
        unknown = set(df["signal_type"]) - set(catalog)
        if unknown:
            raise ValueError(f"Unknown signal types: {sorted(unknown)}")

        lookups = {
            "category": {k: v.category.value for k, v in catalog.items()},
            "weight": {k: v.weight for k, v in catalog.items()},
            "decay_days": {k: v.decay_days for k, v in catalog.items()},
        }
        for col, mapping in lookups.items():
            from_catalog = df["signal_type"].map(mapping)
            df[col] = df[col].fillna(from_catalog) if col in df.columns else from_catalog
        return df

    def effective_weights(self, signals_df: pd.DataFrame, as_of: datetime) -> pd.DataFrame:
        """
        Add age_days, decay and effective_weight columns.

        Args:
            signals_df: One row per signal
            as_of: Reference time for decay

        Returns:
            Copy of signals_df with the added columns
        """
        df = self._with_catalog(self.validate_input(signals_df).copy())

        now = utc_timestamp(as_of)
        detected = pd.to_datetime(df["detected_at"], utc=True)
        df["age_days"] = (now - detected).dt.total_seconds() / SECONDS_PER_DAY

        decay_days = df["decay_days"].astype(float)
        decay = np.where(decay_days > 0, 1 - df["age_days"] / decay_days.where(decay_days > 0, 1), 0.0)
        df["decay"] = np.clip(decay, 0.0, 1.0)
        df["effective_weight"] = (
            df["weight"].astype(float) * df["decay"] * df["confidence"].astype(float)
        )
        return df

    def score_frame(
        self,
        signals_df: pd.DataFrame,
        engagement_df: Optional[pd.DataFrame] = None,
        as_of: Optional[datetime] = None,
    ) -> RiskScoringResult:
        """
        Calculate risk scores for every customer in the inputs.

        Args:
            signals_df: Signals with customer_id, signal_type, confidence, detected_at
                (category, weight, decay_days and company_id optional)
            engagement_df: Optional customer_id/health_score rows
            as_of: Reference time for decay. Defaults to now.

        Returns:
            RiskScoringResult with one row per customer

        Example:
            >>> calculator = RiskScoreCalculator()
            >>> result = calculator.score_frame(signals_df, as_of=now)
            >>> high_risk = result.get_high_risk("HIGH")
        """
        as_of = as_of or datetime.now(timezone.utc)
        weighted = self.effective_weights(signals_df, as_of)

        if weighted.empty:
            points = pd.DataFrame(
                columns=CATEGORIES,
                index=pd.Index([], dtype=object, name="customer_id"),
                dtype=float,
            )
        else:
            points = weighted.pivot_table(
                index="customer_id",
                columns="category",
                values="effective_weight",
                aggfunc="sum",
                fill_value=0.0,
            )
        points = points.reindex(columns=CATEGORIES, fill_value=0.0).astype(float)
        points.columns = CATEGORY_COLUMNS
        points.index.name = "customer_id"

        companies = pd.Series(dtype=object)
        if "company_id" in weighted.columns and not weighted.empty:
            companies = weighted.groupby("customer_id")["company_id"].first()

        customers = points.index
        health = pd.Series(dtype=float)
        if engagement_df is not None and not engagement_df.empty:
            engagement = ENGAGEMENT_INPUT_SCHEMA.validate(
                engagement_df.drop_duplicates("customer_id", keep="last")
            ).set_index("customer_id")
            customers = customers.union(engagement.index)
            health = engagement["health_score"].astype(float)
            if "company_id" in engagement.columns:
                companies = companies.combine_first(engagement["company_id"])

        result = points.reindex(customers, fill_value=0.0)
        result.index.name = "customer_id"

        health = health.reindex(customers)
        health_points = (100 - health.clip(0, 100)) / 100 * self.policy.engagement_max_points
        result[HEALTH_COLUMN] = health_points.fillna(0.0)

        component_cols = CATEGORY_COLUMNS + [HEALTH_COLUMN]
        result["risk_score"] = (
            result[component_cols].sum(axis=1).clip(0, self.policy.max_score).round(2)
        )
        result["risk_level"] = [
            self.policy.get_risk_level(s).value for s in result["risk_score"]
        ]

        result = result.reset_index()
        result.insert(1, "company_id", result["customer_id"].map(companies))
        return RiskScoringResult(df=result, component_columns=component_cols)

    def calculate(
        self,
        customer_id: str,
        company_id: str,
        signals: Iterable[ChurnSignal],
        engagement: Optional[EngagementMetrics] = None,
        as_of: Optional[datetime] = None,
        previous: Optional[RiskScore] = None,
        include_signals: bool = False,
        include_recommendations: bool = False,
    ) -> RiskScore:
        """
        Score a single customer.

        Pure function of its arguments: identical inputs and `as_of` give an
        identical RiskScore.

        Args:
            signals: The customer's signals; expired ones are ignored
            engagement: Latest engagement metrics, if known
            previous: Last stored score, for the trend
        """
        as_of = as_of or datetime.now(timezone.utc)
        active = [s for s in signals if s.customer_id == customer_id and s.is_active(as_of)]

        engagement_df = None
        if engagement is not None:
            engagement_df = pd.DataFrame([{
                "customer_id": customer_id,
                "company_id": company_id,
                "health_score": engagement.health_score,
            }])
        result = self.score_frame(signals_frame(active), engagement_df, as_of)

        rows = result.df[result.df["customer_id"] == customer_id]
        breakdown = {cat: 0.0 for cat in CATEGORIES}
        breakdown["health"] = 0.0
        score = 0.0
        if not rows.empty:
            row = rows.iloc[0]
            for cat, col in zip(CATEGORIES, CATEGORY_COLUMNS):
                breakdown[cat] = round(float(row[col]), 2)
            breakdown["health"] = round(float(row[HEALTH_COLUMN]), 2)
            score = float(row["risk_score"])

        level = self.policy.get_risk_level(score)
        trend, delta = self.trend(score, previous)

        return RiskScore(
            customer_id=customer_id,
            company_id=company_id,
            score=score,
            level=level,
            computed_at=as_of,
            breakdown=breakdown,
            trend=trend,
            trend_delta=delta,
            predicted_churn_date=self.predict_churn_date(score, trend, as_of),
            next_calculation_at=as_of + timedelta(hours=self.policy.recalculation_hours),
            signals=tuple(active) if include_signals else (),
            recommended_actions=(
                tuple(self.recommend(level, breakdown)) if include_recommendations else ()
            ),
        )

    def trend(self, score: float, previous: Optional[RiskScore]) -> tuple[str, float]:
        """Direction of risk vs. the previous score (rising risk is "declining")."""
        if previous is None:
            return TREND_STABLE, 0.0
        delta = round(score - previous.score, 2)
        if delta > self.policy.trend_threshold:
            return TREND_DECLINING, delta
        if delta < -self.policy.trend_threshold:
            return TREND_IMPROVING, delta
        return TREND_STABLE, delta

    def predict_churn_date(self, score: float, trend: str, as_of: datetime) -> Optional[datetime]:
        if score < self.policy.forecast_min_score:
            return None
        remaining = self.policy.max_score - score
        if trend == TREND_DECLINING:
            days = max(7, math.floor(remaining * 0.5))
        elif trend == TREND_IMPROVING:
            days = max(30, math.floor(remaining * 1.5))
        else:
            days = math.floor(remaining)
        return as_of + timedelta(days=days)

    def recommend(self, level: RiskLevel, breakdown: dict[str, float]) -> list[str]:
        """Suggested retention plays, deduplicated, in priority order."""
        p = self.policy
        actions = []
        if level in (RiskLevel.HIGH, RiskLevel.CRITICAL):
            actions += ["save_flow", "personal_outreach"]
        if breakdown.get(SignalCategory.PAYMENT.value, 0.0) > p.payment_points_threshold:
            actions += ["payment_recovery", "payment_method_update"]
        if breakdown.get(SignalCategory.ENGAGEMENT.value, 0.0) > p.engagement_points_threshold:
            actions += ["re_engagement_email", "exclusive_offer"]
        if breakdown.get(SignalCategory.BEHAVIOR.value, 0.0) > p.behavior_points_threshold:
            actions += ["product_recommendation", "pause_offer"]
        return list(dict.fromkeys(actions))


SAMPLE_AS_OF = datetime(2024, 6, 1, tzinfo=timezone.utc)


def generate_sample_signals(
    n_customers: int = 100,
    seed: int = 42,
    as_of: datetime = SAMPLE_AS_OF,
    rules: Optional[RuleTable] = None,
) -> pd.DataFrame:
    """
    Generate a realistic signal log for testing.

    Distributions:
    - ~30% of customers have no signals
    - Others have 1-6 signals, skewed toward low counts
    - Signal age uniform within each type's decay window
    - Confidence between 0.5 and 1.0
    """
    rules = rules or load_rules()
    np.random.seed(seed)

    catalog = list(rules.signals.values())
    rows = []
    for i in range(n_customers):
        customer_id = f"CUST_{i:04d}"
        company_id = f"CO_{i % 3:02d}"
        if np.random.random() < 0.30:
            continue
        n_signals = np.random.choice([1, 2, 3, 4, 5, 6], p=[0.3, 0.25, 0.2, 0.12, 0.08, 0.05])
        for j in range(n_signals):
            entry = catalog[np.random.randint(len(catalog))]
            age = np.random.uniform(0, entry.decay_days)
            detected_at = as_of - timedelta(days=float(age))
            rows.append({
                "signal_id": f"SIG_{i:04d}_{j}",
                "customer_id": customer_id,
                "company_id": company_id,
                "signal_type": entry.signal_type.value,
                "category": entry.category.value,
                "weight": entry.weight,
                "confidence": round(float(np.random.uniform(0.5, 1.0)), 2),
                "decay_days": entry.decay_days,
                "detected_at": detected_at,
                "expires_at": detected_at + timedelta(days=entry.decay_days),
            })

    df = pd.DataFrame(rows, columns=SIGNAL_COLUMNS)
    for col in ("detected_at", "expires_at"):
        df[col] = pd.to_datetime(df[col], utc=True)
    return df
