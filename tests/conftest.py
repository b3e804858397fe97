"""
Pytest fixtures for retention intelligence tests.
"""

import pytest

# Add package to path
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from retention.config import RetentionConfig
from retention.detector import DetectionOrchestrator
from retention.domain import (
    ChurnSignal,
    ChurnSignalType,
    CustomerRecord,
    OrderRecord,
)
from retention.events import EventBus
from retention.memory import (
    InMemoryCustomerDirectory,
    InMemoryDetectionStore,
    InMemoryRiskScoreStore,
    InMemorySignalStore,
)
from retention.risk import RiskScoreCalculator, generate_sample_signals
from retention.rules import load_rules

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock for reproducible timestamps."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def default_config():
    """Default retention configuration."""
    return RetentionConfig()


@pytest.fixture
def rules():
    return load_rules()


@pytest.fixture
def bus():
    return EventBus(maxsize=100)


@pytest.fixture
def detection_store():
    return InMemoryDetectionStore()


@pytest.fixture
def high_value_customer(now):
    """Customer with 100 days of tenure and 600 in lifetime value."""
    return CustomerRecord(
        customer_id="CUST_VIP",
        company_id="CO_1",
        signed_up_at=now - timedelta(days=100),
        orders=(
            OrderRecord(total=250.0, ordered_at=now - timedelta(days=60)),
            OrderRecord(total=350.0, ordered_at=now - timedelta(days=10)),
        ),
    )


@pytest.fixture
def customers(high_value_customer):
    return InMemoryCustomerDirectory([high_value_customer])


@pytest.fixture
def detector(detection_store, customers, bus, default_config, clock):
    """Orchestrator with in-memory collaborators and a fixed clock."""
    return DetectionOrchestrator(
        store=detection_store,
        customers=customers,
        bus=bus,
        config=default_config,
        clock=clock,
    )


@pytest.fixture
def signal_store():
    return InMemorySignalStore()


@pytest.fixture
def score_store():
    return InMemoryRiskScoreStore()


@pytest.fixture
def calculator(default_config):
    return RiskScoreCalculator(default_config)


@pytest.fixture
def make_signal(rules, now):
    """Factory for catalog-weighted signals detected `age_days` before now."""

    def _make(
        signal_type: ChurnSignalType,
        age_days: float = 0.0,
        confidence: float = 1.0,
        customer_id: str = "CUST_1",
        company_id: str = "CO_1",
    ) -> ChurnSignal:
        entry = rules.signal_weight(signal_type)
        detected_at = now - timedelta(days=age_days)
        return ChurnSignal(
            signal_id=f"{customer_id}_{signal_type.value}_{age_days}",
            customer_id=customer_id,
            company_id=company_id,
            signal_type=signal_type,
            category=entry.category,
            weight=entry.weight,
            confidence=confidence,
            decay_days=entry.decay_days,
            detected_at=detected_at,
            expires_at=detected_at + timedelta(days=entry.decay_days),
        )

    return _make


@pytest.fixture
def sample_signals():
    """Signal log for 100 customers with realistic distributions."""
    return generate_sample_signals(n_customers=100, seed=42)
