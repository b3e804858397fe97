"""
Customer engagement metrics from order history.

Usage:
    from retention.engagement import EngagementMetricsCalculator

    calculator = EngagementMetricsCalculator()
    metrics = calculator.from_record(customer_record, as_of=now)
    print(metrics.engagement_score, metrics.health_score)
"""

from datetime import datetime
from typing import Iterable, Optional

import numpy as np
import pandas as pd

from .config import DEFAULT_CONFIG, RetentionConfig, RiskPolicy
from .domain import CustomerRecord, EngagementMetrics, OrderRecord

SECONDS_PER_DAY = 24 * 60 * 60


def utc_timestamp(value) -> pd.Timestamp:
    """Timezone-aware UTC timestamp; naive values are taken as UTC."""
    ts = pd.Timestamp(value)
    if ts.tzinfo is None:
        return ts.tz_localize("UTC")
    return ts.tz_convert("UTC")


def tenure_months(signed_up_at: Optional[datetime], as_of: datetime) -> int:
    """Whole 30-day months since signup (0 when unknown)."""
    if signed_up_at is None:
        return 0
    days = (utc_timestamp(as_of) - utc_timestamp(signed_up_at)).days
    return max(0, days // 30)


def orders_frame(orders: Iterable[OrderRecord]) -> pd.DataFrame:
    """Orders as a DataFrame with `total` and UTC `ordered_at` columns."""
    orders = list(orders)
    return pd.DataFrame({
        "total": pd.Series([float(o.total or 0) for o in orders], dtype=float),
        "ordered_at": pd.to_datetime([o.ordered_at for o in orders], utc=True),
    })


class EngagementMetricsCalculator:
    """
    Recency/frequency summary and the two derived scores.

    Engagement score (0-100):
    - Base 50
    - +20 if any order in the last 30 days
    - +10 if more than 2 orders in the last 90 days
    - +10 if order frequency grew vs. the previous 30 days
    - -20 if order frequency fell by more than 20%

    Health score starts from the engagement score and is penalized for
    skip rate and recent support tickets.
    """

    def __init__(self, config: Optional[RetentionConfig] = None):
        self.config = config or DEFAULT_CONFIG

    @property
    def policy(self) -> RiskPolicy:
        return self.config.risk

    def from_record(self, customer: CustomerRecord, as_of: datetime) -> EngagementMetrics:
        return self.calculate(
            customer_id=customer.customer_id,
            company_id=customer.company_id,
            orders=customer.orders,
            as_of=as_of,
            signed_up_at=customer.signed_up_at,
            skips_last_30_days=customer.skips_last_30_days,
            deliveries_last_30_days=customer.deliveries_last_30_days,
            support_tickets_last_30_days=customer.support_tickets_last_30_days,
            current_plan=customer.current_plan,
            subscription_status=customer.subscription_status,
        )

    def calculate(
        self,
        customer_id: str,
        company_id: str,
        orders: Iterable[OrderRecord],
        as_of: datetime,
        signed_up_at: Optional[datetime] = None,
        skips_last_30_days: int = 0,
        deliveries_last_30_days: int = 0,
        support_tickets_last_30_days: int = 0,
        current_plan: Optional[str] = None,
        subscription_status: Optional[str] = None,
    ) -> EngagementMetrics:
        """
        Compute engagement metrics as of a point in time.

        Args:
            customer_id: Customer identifier
            company_id: Owning company
            orders: Full order history
            as_of: Reference time for the 30/60/90-day windows
            skips_last_30_days: Skipped deliveries in the last 30 days
            deliveries_last_30_days: Delivered orders in the last 30 days
            support_tickets_last_30_days: Tickets opened in the last 30 days

        Returns:
            EngagementMetrics
        """
        now = utc_timestamp(as_of)
        df = orders_frame(orders)
        age_days = (now - df["ordered_at"]).dt.total_seconds() / SECONDS_PER_DAY

        last_30 = int((age_days <= 30).sum())
        last_90 = int((age_days <= 90).sum())
        prev_30 = int(((age_days > 30) & (age_days <= 60)).sum())
        trend = ((last_30 - prev_30) / prev_30) * 100 if prev_30 > 0 else 0.0

        scheduled = skips_last_30_days + deliveries_last_30_days
        skip_rate = (skips_last_30_days / scheduled) * 100 if scheduled > 0 else 0.0

        engagement = self.engagement_score(last_30, last_90, trend)
        health = self.health_score(engagement, skip_rate, support_tickets_last_30_days)

        last_order_at = None
        days_since_last_order = None
        if not df.empty:
            last_order = df["ordered_at"].max()
            last_order_at = last_order.to_pydatetime()
            days_since_last_order = int(np.floor((now - last_order).total_seconds() / SECONDS_PER_DAY))

        return EngagementMetrics(
            customer_id=customer_id,
            company_id=company_id,
            tenure_months=tenure_months(signed_up_at, as_of),
            lifetime_value=round(float(df["total"].sum()), 2),
            total_orders=len(df),
            avg_order_value=round(float(df["total"].mean()), 2) if not df.empty else 0.0,
            last_order_at=last_order_at,
            days_since_last_order=days_since_last_order,
            orders_last_30_days=last_30,
            orders_last_90_days=last_90,
            order_frequency_trend=round(trend, 2),
            skips_last_30_days=skips_last_30_days,
            skip_rate=round(skip_rate, 2),
            support_tickets_last_30_days=support_tickets_last_30_days,
            engagement_score=engagement,
            health_score=health,
            calculated_at=now.to_pydatetime(),
            current_plan=current_plan,
            subscription_status=subscription_status,
        )

    def engagement_score(self, orders_last_30: int, orders_last_90: int, trend: float) -> float:
        p = self.policy
        score = p.engagement_base
        if orders_last_30 > 0:
            score += p.recent_order_bonus
        if orders_last_90 > p.frequent_buyer_min_orders:
            score += p.frequent_buyer_bonus
        if trend > 0:
            score += p.growing_trend_bonus
        elif trend < p.declining_trend_threshold:
            score -= p.declining_trend_penalty
        return float(np.clip(score, 0, 100))

    def health_score(self, engagement: float, skip_rate: float, recent_tickets: int) -> float:
        p = self.policy
        score = engagement

        if skip_rate > p.skip_rate_high:
            score -= p.skip_rate_high_penalty
        elif skip_rate > p.skip_rate_elevated:
            score -= p.skip_rate_elevated_penalty

        if recent_tickets > p.support_tickets_high:
            score -= p.support_tickets_high_penalty
        elif recent_tickets > p.support_tickets_elevated:
            score -= p.support_tickets_elevated_penalty

        return float(np.clip(score, 0, 100))

    def metrics_frame(self, metrics: Iterable[EngagementMetrics]) -> pd.DataFrame:
        """Engagement metrics as rows, the `engagement_df` input of batch risk scoring."""
        rows = [
            {
                "customer_id": m.customer_id,
                "company_id": m.company_id,
                "engagement_score": m.engagement_score,
                "health_score": m.health_score,
            }
            for m in metrics
        ]
        return pd.DataFrame(rows, columns=["customer_id", "company_id", "engagement_score", "health_score"])
