"""
Ports for the collaborators the retention core depends on.

Storage, customer lookup and signal history are owned by the surrounding
application; the core only needs these asynchronous interfaces.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, Sequence

from .domain import (
    ChurnSignal,
    ChurnSignalType,
    CustomerRecord,
    DetectionResult,
    IntentCategory,
    RiskLevel,
    RiskScore,
)


class CustomerDirectory(ABC):
    """Customer lookup: signup date, order history and subscription state."""

    @abstractmethod
    async def get_customer(self, customer_id: str) -> Optional[CustomerRecord]:
        """Return the customer, or None when unknown."""


class DetectionStore(ABC):
    """Durable storage of detection results, keyed by company."""

    @abstractmethod
    async def save(self, company_id: str, result: DetectionResult) -> None:
        """Persist one detection result."""

    @abstractmethod
    async def query(
        self,
        company_id: str,
        customer_id: Optional[str] = None,
        intent: Optional[IntentCategory] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = 50,
    ) -> list[DetectionResult]:
        """Detections for a company, newest first."""


class SignalStore(ABC):
    """Append-only churn signal log. Expiry policy belongs to the store."""

    @abstractmethod
    async def append(self, signal: ChurnSignal) -> None:
        """Append one signal."""

    @abstractmethod
    async def active_signals(self, customer_id: str, as_of: datetime) -> list[ChurnSignal]:
        """Signals not yet expired at `as_of`, newest first."""

    @abstractmethod
    async def count_active(
        self, customer_id: str, signal_type: ChurnSignalType, as_of: datetime
    ) -> int:
        """Number of active signals of one type."""

    @abstractmethod
    async def latest(
        self, customer_id: str, signal_type: ChurnSignalType
    ) -> Optional[ChurnSignal]:
        """Most recently detected signal of one type, active or not."""

    @abstractmethod
    async def customers_with_active_signals(self, as_of: datetime) -> list[tuple[str, str]]:
        """Distinct (customer_id, company_id) pairs with at least one active signal."""


class RiskScoreStore(ABC):
    """Latest computed risk score per customer."""

    @abstractmethod
    async def save(self, score: RiskScore) -> None:
        """Store (replace) the customer's current score."""

    @abstractmethod
    async def latest(self, customer_id: str) -> Optional[RiskScore]:
        """Current stored score, or None."""

    @abstractmethod
    async def query(
        self,
        company_id: str,
        levels: Sequence[RiskLevel],
        limit: int = 50,
        offset: int = 0,
    ) -> list[RiskScore]:
        """Scores at the given levels, highest score first."""
