"""
In-memory implementations of the collaborator ports.

Used by the test suite and the batch CLI. Persistence engines of the host
application implement the same ports.
"""

from datetime import datetime
from typing import Iterable, Optional, Sequence

from .domain import (
    ChurnSignal,
    ChurnSignalType,
    CustomerRecord,
    DetectionResult,
    IntentCategory,
    RiskLevel,
    RiskScore,
)
from .ports import CustomerDirectory, DetectionStore, RiskScoreStore, SignalStore


class InMemoryCustomerDirectory(CustomerDirectory):
    def __init__(self, customers: Iterable[CustomerRecord] = ()):
        self._customers = {c.customer_id: c for c in customers}

    def add(self, customer: CustomerRecord) -> None:
        self._customers[customer.customer_id] = customer

    async def get_customer(self, customer_id: str) -> Optional[CustomerRecord]:
        return self._customers.get(customer_id)


class InMemoryDetectionStore(DetectionStore):
    def __init__(self):
        self._by_company: dict[str, list[DetectionResult]] = {}

    async def save(self, company_id: str, result: DetectionResult) -> None:
        self._by_company.setdefault(company_id, []).append(result)

    async def query(
        self,
        company_id: str,
        customer_id: Optional[str] = None,
        intent: Optional[IntentCategory] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = 50,
    ) -> list[DetectionResult]:
        results = [
            d for d in self._by_company.get(company_id, [])
            if (customer_id is None or d.customer_id == customer_id)
            and (intent is None or d.primary_intent == intent)
            and (start is None or d.detected_at >= start)
            and (end is None or d.detected_at <= end)
        ]
        results.sort(key=lambda d: d.detected_at, reverse=True)
        return results if limit is None else results[:limit]

    def __len__(self) -> int:
        return sum(len(v) for v in self._by_company.values())


class InMemorySignalStore(SignalStore):
    def __init__(self):
        self._signals: list[ChurnSignal] = []

    async def append(self, signal: ChurnSignal) -> None:
        self._signals.append(signal)

    async def active_signals(self, customer_id: str, as_of: datetime) -> list[ChurnSignal]:
        active = [
            s for s in self._signals
            if s.customer_id == customer_id and s.is_active(as_of)
        ]
        return sorted(active, key=lambda s: s.detected_at, reverse=True)

    async def count_active(
        self, customer_id: str, signal_type: ChurnSignalType, as_of: datetime
    ) -> int:
        return sum(
            1 for s in self._signals
            if s.customer_id == customer_id
            and s.signal_type == signal_type
            and s.is_active(as_of)
        )

    async def latest(
        self, customer_id: str, signal_type: ChurnSignalType
    ) -> Optional[ChurnSignal]:
        matching = [
            s for s in self._signals
            if s.customer_id == customer_id and s.signal_type == signal_type
        ]
        return max(matching, key=lambda s: s.detected_at, default=None)

    async def customers_with_active_signals(self, as_of: datetime) -> list[tuple[str, str]]:
        seen = {}
        for s in self._signals:
            if s.is_active(as_of):
                seen.setdefault((s.customer_id, s.company_id), None)
        return list(seen)

    def purge_expired(self, as_of: datetime) -> int:
        """Expiry policy: drop signals whose window has closed. Returns count removed."""
        before = len(self._signals)
        self._signals = [s for s in self._signals if s.is_active(as_of)]
        return before - len(self._signals)

    def all(self) -> list[ChurnSignal]:
        return list(self._signals)


class InMemoryRiskScoreStore(RiskScoreStore):
    def __init__(self):
        self._scores: dict[str, RiskScore] = {}

    async def save(self, score: RiskScore) -> None:
        self._scores[score.customer_id] = score

    async def latest(self, customer_id: str) -> Optional[RiskScore]:
        return self._scores.get(customer_id)

    async def query(
        self,
        company_id: str,
        levels: Sequence[RiskLevel],
        limit: int = 50,
        offset: int = 0,
    ) -> list[RiskScore]:
        wanted = set(levels)
        matching = [
            s for s in self._scores.values()
            if s.company_id == company_id and s.level in wanted
        ]
        matching.sort(key=lambda s: s.score, reverse=True)
        return matching[offset:offset + limit]
