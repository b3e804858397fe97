"""
Churn predictor service: signal ingestion and risk read/compute.

Usage:
    predictor = ChurnPredictor(
        signals=InMemorySignalStore(),
        scores=InMemoryRiskScoreStore(),
        customers=directory,
        bus=bus,
    )
    bus.subscribe(INTENT_DETECTED, predictor.handle_intent_detected)

    await predictor.record_signal(RecordSignalInput(
        customer_id="cust_1",
        company_id="co_1",
        signal_type=ChurnSignalType.PAYMENT_FAILED,
    ))
    score = await predictor.get_risk_score("cust_1", "co_1")
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from .config import DEFAULT_CONFIG, RetentionConfig
from .detector import Clock, utcnow
from .domain import (
    CancelReason,
    ChurnSignal,
    ChurnSignalType,
    CustomerRecord,
    DetectionResult,
    EngagementMetrics,
    IntentCategory,
    IntentDetectedEvent,
    RecordSignalInput,
    RiskLevel,
    RiskScore,
    SentimentLevel,
)
from .engagement import EngagementMetricsCalculator
from .errors import CustomerNotFoundError, UnknownSignalTypeError
from .events import CHURN_HIGH_RISK_DETECTED, CHURN_SIGNAL_DETECTED, EventBus
from .ports import CustomerDirectory, RiskScoreStore, SignalStore
from .risk import RiskScoreCalculator
from .rules import RuleTable, load_rules

logger = logging.getLogger(__name__)

INTENT_SIGNALS = {
    IntentCategory.CANCEL: ChurnSignalType.CANCEL_INTENT,
    IntentCategory.PAUSE: ChurnSignalType.PAUSE_INTENT,
    IntentCategory.DOWNGRADE: ChurnSignalType.DOWNGRADE_INTENT,
    IntentCategory.PAYMENT_ISSUE: ChurnSignalType.PAYMENT_ISSUE_REPORTED,
    IntentCategory.COMPLAINT: ChurnSignalType.COMPLAINT,
}

NEGATIVE_SENTIMENTS = frozenset({SentimentLevel.NEGATIVE, SentimentLevel.VERY_NEGATIVE})


@dataclass(frozen=True)
class ChurnSignalDetected:
    """Payload of `churn.signal.detected`."""

    signal: ChurnSignal
    previous_score: Optional[float]
    new_score: float
    previous_level: Optional[RiskLevel]
    new_level: RiskLevel

    @property
    def level_changed(self) -> bool:
        return self.previous_level != self.new_level


@dataclass(frozen=True)
class HighRiskCustomerDetected:
    """Payload of `churn.high_risk.detected`."""

    customer_id: str
    company_id: str
    risk_score: RiskScore
    recommended_intervention: str


def signals_from_detection(detection: DetectionResult) -> list[RecordSignalInput]:
    """
    Churn signals implied by a detection, possibly none.

    The intent mapping comes first and a competitor cancel reason adds a
    COMPETITOR_MENTION next to it. Negative sentiment maps to
    NEGATIVE_FEEDBACK only when nothing else applied.
    """
    metadata = {
        "source": detection.source.value,
        "session_id": detection.session_id,
        "sentiment": detection.sentiment.value,
        "cancel_reason": detection.cancel_reason.value if detection.cancel_reason else None,
    }
    found = []
    signal_type = INTENT_SIGNALS.get(detection.primary_intent)
    if signal_type is not None:
        found.append((signal_type, detection.primary_confidence))
    if detection.cancel_reason == CancelReason.COMPETITOR:
        found.append((
            ChurnSignalType.COMPETITOR_MENTION,
            detection.cancel_reason_confidence or detection.primary_confidence,
        ))
    if not found and detection.sentiment in NEGATIVE_SENTIMENTS:
        found.append((ChurnSignalType.NEGATIVE_FEEDBACK, abs(detection.sentiment_score)))

    return [
        RecordSignalInput(
            customer_id=detection.customer_id,
            company_id=detection.company_id,
            signal_type=signal_type,
            confidence=round(min(max(confidence, 0.0), 1.0), 4),
            value=detection.primary_intent.value,
            metadata=dict(metadata),
        )
        for signal_type, confidence in found
    ]


class ChurnPredictor:
    """
    Record churn signals and keep customer risk scores current.

    Signal log is append-only: non-additive types (and additive types at
    their occurrence limit) return the latest active signal instead of
    writing a new one.
    """

    def __init__(
        self,
        signals: SignalStore,
        scores: RiskScoreStore,
        customers: Optional[CustomerDirectory] = None,
        bus: Optional[EventBus] = None,
        config: Optional[RetentionConfig] = None,
        rules: Optional[RuleTable] = None,
        clock: Optional[Clock] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self.signals = signals
        self.scores = scores
        self.customers = customers
        self.bus = bus
        self.config = config or DEFAULT_CONFIG
        self.rules = rules or load_rules(self.config.rules_dir)
        self.clock = clock or utcnow
        self.id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self.calculator = RiskScoreCalculator(self.config, self.rules)
        self.engagement = EngagementMetricsCalculator(self.config)

    # ═══════════════════════════════════════════════════════════════
    # SIGNAL RECORDING
    # ═══════════════════════════════════════════════════════════════

    async def record_signal(self, request: RecordSignalInput) -> ChurnSignal:
        """
        Append a signal and recalculate the customer's risk.

        Raises:
            UnknownSignalTypeError: If the type has no catalog entry
        """
        weight = self.rules.signal_weight(request.signal_type)
        if weight is None:
            raise UnknownSignalTypeError(request.signal_type)

        now = self.clock()
        active = await self.signals.count_active(request.customer_id, request.signal_type, now)
        if active >= weight.occurrence_limit:
            existing = await self.signals.latest(request.customer_id, request.signal_type)
            if existing is not None:
                logger.debug(
                    "Occurrence limit reached for %s on customer %s",
                    request.signal_type.value, request.customer_id,
                )
                return existing

        signal = ChurnSignal(
            signal_id=self.id_factory(),
            customer_id=request.customer_id,
            company_id=request.company_id,
            signal_type=request.signal_type,
            category=weight.category,
            weight=weight.weight,
            confidence=request.confidence,
            decay_days=weight.decay_days,
            detected_at=now,
            expires_at=now + timedelta(days=weight.decay_days),
            value=request.value,
            metadata=dict(request.metadata),
        )
        await self.signals.append(signal)
        logger.info(
            "Recorded %s signal for customer %s (confidence %.2f)",
            signal.signal_type.value, signal.customer_id, signal.confidence,
        )

        previous = await self.scores.latest(request.customer_id)
        score = await self.calculate_risk_score(
            request.customer_id,
            request.company_id,
            include_signals=True,
            include_recommendations=True,
        )

        self._publish(CHURN_SIGNAL_DETECTED, ChurnSignalDetected(
            signal=signal,
            previous_score=previous.score if previous else None,
            new_score=score.score,
            previous_level=previous.level if previous else None,
            new_level=score.level,
        ))
        if score.level in (RiskLevel.HIGH, RiskLevel.CRITICAL):
            logger.warning(
                "Customer %s is at %s churn risk (%.2f)",
                score.customer_id, score.level.value, score.score,
            )
            self._publish(CHURN_HIGH_RISK_DETECTED, HighRiskCustomerDetected(
                customer_id=score.customer_id,
                company_id=score.company_id,
                risk_score=score,
                recommended_intervention=(
                    score.recommended_actions[0] if score.recommended_actions else "save_flow"
                ),
            ))
        return signal

    async def record_signals(self, requests: Iterable[RecordSignalInput]) -> list[ChurnSignal]:
        """Record signals in order; later inputs see earlier ones."""
        recorded = []
        for request in requests:
            recorded.append(await self.record_signal(request))
        return recorded

    async def handle_intent_detected(self, event: IntentDetectedEvent) -> list[ChurnSignal]:
        """Bus handler for `intent.detected`: record the implied churn signals."""
        return await self.record_signals(signals_from_detection(event.detection))

    # ═══════════════════════════════════════════════════════════════
    # RISK SCORES
    # ═══════════════════════════════════════════════════════════════

    async def calculate_risk_score(
        self,
        customer_id: str,
        company_id: str,
        include_signals: bool = False,
        include_recommendations: bool = False,
        engagement: Optional[EngagementMetrics] = None,
    ) -> RiskScore:
        """
        Recompute from active signals and store the result.

        Engagement is loaded from the customer directory when not given;
        customers the directory does not know score on signals alone.
        """
        now = self.clock()
        if engagement is None:
            engagement = await self._current_engagement(customer_id, company_id, now)
        active = await self.signals.active_signals(customer_id, now)
        previous = await self.scores.latest(customer_id)
        score = self.calculator.calculate(
            customer_id,
            company_id,
            active,
            engagement=engagement,
            as_of=now,
            previous=previous,
            include_signals=include_signals,
            include_recommendations=include_recommendations,
        )
        await self.scores.save(score)
        logger.debug(
            "Risk for customer %s: %.2f (%s, %s)",
            customer_id, score.score, score.level.value, score.trend,
        )
        return score

    async def get_risk_score(
        self,
        customer_id: str,
        company_id: str,
        include_signals: bool = False,
        include_recommendations: bool = False,
    ) -> RiskScore:
        """
        Stored score if younger than the cache TTL, else a fresh one.

        A cached score lacking a requested part (signals, recommendations)
        is recomputed.
        """
        cached = await self.scores.latest(customer_id)
        ttl = timedelta(hours=self.config.risk.cache_ttl_hours)
        if cached is not None and cached.computed_at > self.clock() - ttl:
            missing = (include_signals and not cached.signals) or (
                include_recommendations and not cached.recommended_actions
            )
            if not missing:
                return cached
        return await self.calculate_risk_score(
            customer_id, company_id, include_signals, include_recommendations
        )

    async def get_high_risk_customers(
        self,
        company_id: str,
        min_level: RiskLevel = RiskLevel.HIGH,
        limit: int = 50,
        offset: int = 0,
    ) -> list[RiskScore]:
        """Stored scores at or above `min_level`, highest score first."""
        levels = RiskLevel.at_or_above(min_level)
        return await self.scores.query(company_id, levels, limit=limit, offset=offset)

    async def calculate_engagement_metrics(
        self, customer_id: str, company_id: str
    ) -> EngagementMetrics:
        """
        Raises:
            CustomerNotFoundError: If the directory has no such customer in
                `company_id`
        """
        record = await self._customer_record(customer_id, company_id)
        if record is None:
            raise CustomerNotFoundError(customer_id)
        return self.engagement.from_record(record, self.clock())

    async def recalculate_all(self) -> int:
        """
        Recalculate every customer with active signals.

        Per-customer failures are logged and skipped.

        Returns:
            Number of scores recalculated
        """
        logger.debug("Recalculating all risk scores...")
        now = self.clock()
        recalculated = 0
        for customer_id, company_id in await self.signals.customers_with_active_signals(now):
            try:
                await self.calculate_risk_score(
                    customer_id, company_id, include_recommendations=True
                )
                recalculated += 1
            except Exception:
                logger.exception("Failed to recalculate risk score for %s", customer_id)
        logger.info("Recalculated %d risk scores", recalculated)
        return recalculated

    async def _customer_record(self, customer_id: str, company_id: str) -> Optional[CustomerRecord]:
        if self.customers is None:
            return None
        record = await self.customers.get_customer(customer_id)
        if record is not None and record.company_id != company_id:
            logger.warning(
                "Customer %s belongs to company %s, not %s",
                customer_id, record.company_id, company_id,
            )
            return None
        return record

    async def _current_engagement(
        self, customer_id: str, company_id: str, now: datetime
    ) -> Optional[EngagementMetrics]:
        record = await self._customer_record(customer_id, company_id)
        if record is None:
            return None
        return self.engagement.from_record(record, now)

    def _publish(self, topic: str, payload) -> None:
        if self.bus is not None:
            self.bus.publish(topic, payload)


__all__ = [
    "ChurnPredictor",
    "ChurnSignalDetected",
    "HighRiskCustomerDetected",
    "signals_from_detection",
    "INTENT_SIGNALS",
]
