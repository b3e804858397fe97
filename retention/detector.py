"""
Detection orchestrator - the entry point for text analysis.

Usage:
    from retention import DetectionOrchestrator, DetectIntentInput
    from retention.memory import InMemoryDetectionStore

    detector = DetectionOrchestrator(store=InMemoryDetectionStore(), bus=bus)
    result = await detector.detect(DetectIntentInput(
        customer_id="cust_1",
        company_id="co_1",
        text="I want to cancel my subscription",
        source="chat",
    ))
    print(result.primary_intent, result.urgency)
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from .analytics import DetectionStats, summarize_detections
from .components import (
    CancelReasonClassifier,
    IntentClassifier,
    InterventionDecider,
    SentimentAnalyzer,
    UrgencyResolver,
)
from .config import DEFAULT_CONFIG, RetentionConfig
from .domain import (
    CANCEL_REASON_INTENTS,
    CustomerContext,
    CustomerRecord,
    DetectIntentInput,
    DetectionContext,
    DetectionResult,
    IntentCategory,
    IntentDetectedEvent,
)
from .engagement import tenure_months
from .events import INTENT_DETECTED, INTENT_PERSISTENCE_FAILED, EventBus
from .ports import CustomerDirectory, DetectionStore
from .rules import RuleTable, load_rules

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PersistenceFailure:
    """Payload of `intent.persistence_failed`."""

    detection: DetectionResult
    error: str


def customer_context(record: Optional[CustomerRecord], as_of: datetime) -> Optional[CustomerContext]:
    """
    Tenure and lifetime value for the urgency rules.

    Tenure is whole 30-day months since signup; lifetime value is the sum of
    historical order totals. Unknown customers have no context.
    """
    if record is None:
        return None
    return CustomerContext(
        tenure_months=tenure_months(record.signed_up_at, as_of),
        lifetime_value=float(sum(order.total or 0 for order in record.orders)),
        current_plan=record.current_plan,
        subscription_status=record.subscription_status,
    )


class DetectionOrchestrator:
    """
    Compose the classifiers into one detection per input.

    Pipeline:
    1. Build context from the customer directory
    2. Intent (page short-circuit, then keywords)
    3. Cancel reason, only for CANCEL/PAUSE
    4. Sentiment
    5. Urgency
    6. Persist, then publish `intent.detected` with the intervention verdict

    A persistence failure is logged and published as
    `intent.persistence_failed`; the computed result is still returned.
    """

    def __init__(
        self,
        store: DetectionStore,
        customers: Optional[CustomerDirectory] = None,
        bus: Optional[EventBus] = None,
        config: Optional[RetentionConfig] = None,
        rules: Optional[RuleTable] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize the orchestrator with its collaborators.

        Args:
            store: Where detection results are persisted
            customers: Customer lookup for tenure/lifetime value (optional)
            bus: Event bus for `intent.detected` (optional)
            config: RetentionConfig instance. Uses DEFAULT_CONFIG if None.
            rules: RuleTable instance. Loaded from config.rules_dir if None.
            clock: Returns the current time; injectable for reproducible runs
        """
        self.store = store
        self.customers = customers
        self.bus = bus
        self.config = config or DEFAULT_CONFIG
        self.rules = rules or load_rules(self.config.rules_dir)
        self.clock = clock or utcnow
        self.persistence_failures = 0
        self._init_components()

    def _init_components(self) -> None:
        """Initialize all classification components."""
        self.intent_classifier = IntentClassifier(self.config, self.rules)
        self.cancel_reason_classifier = CancelReasonClassifier(self.config, self.rules)
        self.sentiment_analyzer = SentimentAnalyzer(self.config, self.rules)
        self.urgency_resolver = UrgencyResolver(self.config, self.rules)
        self.intervention_decider = InterventionDecider(self.config, self.rules)

    async def detect(self, request: DetectIntentInput) -> DetectionResult:
        """
        Analyze one input and return its detection result.

        Raises:
            Whatever the customer directory raises; classification itself
            never raises.
        """
        logger.debug("Detecting intent for customer %s", request.customer_id)
        detected_at = self.clock()

        context = await self.build_context(request, detected_at)
        result = self.classify(request, context, detected_at)

        await self._persist(result)

        decision = self.intervention_decider.decide(result)
        self._publish(INTENT_DETECTED, IntentDetectedEvent(
            detection=result,
            should_trigger_intervention=decision.should_trigger,
            intervention_type=decision.intervention_type,
        ))
        return result

    async def detect_many(self, requests: Iterable[DetectIntentInput]) -> list[DetectionResult]:
        """Run independent detections concurrently, results in input order."""
        return list(await asyncio.gather(*(self.detect(r) for r in requests)))

    async def build_context(
        self, request: DetectIntentInput, as_of: datetime
    ) -> DetectionContext:
        record = None
        if self.customers is not None:
            record = await self.customers.get_customer(request.customer_id)
        if record is not None and record.company_id != request.company_id:
            logger.warning(
                "Customer %s belongs to company %s, not %s; ignoring customer context",
                request.customer_id, record.company_id, request.company_id,
            )
            record = None

        return DetectionContext(
            customer_id=request.customer_id,
            company_id=request.company_id,
            session_id=request.session_id,
            current_page=request.current_page,
            current_action=request.current_action,
            customer=customer_context(record, as_of),
        )

    def classify(
        self,
        request: DetectIntentInput,
        context: DetectionContext,
        detected_at: datetime,
    ) -> DetectionResult:
        """Run the classifiers and assemble the immutable result (no I/O)."""
        text = request.analyzed_text

        intent = self.intent_classifier.classify(text, context)

        cancel_reason = None
        cancel_reason_confidence = None
        if intent.primary in CANCEL_REASON_INTENTS:
            reason = self.cancel_reason_classifier.classify(text)
            cancel_reason = reason.reason
            cancel_reason_confidence = reason.confidence

        sentiment = self.sentiment_analyzer.analyze(text)
        urgency = self.urgency_resolver.resolve(intent.primary, sentiment.level, context)

        return DetectionResult(
            customer_id=request.customer_id,
            company_id=request.company_id,
            session_id=request.session_id,
            primary_intent=intent.primary,
            primary_confidence=intent.confidence,
            secondary_intents=intent.secondaries,
            cancel_reason=cancel_reason,
            cancel_reason_confidence=cancel_reason_confidence,
            sentiment=sentiment.level,
            sentiment_score=sentiment.score,
            urgency=urgency,
            source=request.source,
            source_data=dict(request.metadata),
            detected_at=detected_at,
        )

    async def _persist(self, result: DetectionResult) -> None:
        try:
            await self.store.save(result.company_id, result)
        except Exception as exc:
            self.persistence_failures += 1
            logger.error(
                "Failed to persist detection for customer %s",
                result.customer_id,
                exc_info=True,
            )
            self._publish(INTENT_PERSISTENCE_FAILED, PersistenceFailure(result, str(exc)))

    def _publish(self, topic: str, payload) -> None:
        if self.bus is not None:
            self.bus.publish(topic, payload)

    # ═══════════════════════════════════════════════════════════════
    # QUERIES
    # ═══════════════════════════════════════════════════════════════

    async def recent_detections(
        self,
        company_id: str,
        customer_id: Optional[str] = None,
        intent: Optional[IntentCategory] = None,
        limit: int = 50,
    ) -> list[DetectionResult]:
        return await self.store.query(
            company_id, customer_id=customer_id, intent=intent, limit=limit
        )

    async def intent_stats(
        self,
        company_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> DetectionStats:
        detections = await self.store.query(company_id, start=start, end=end, limit=None)
        return summarize_detections(detections)
