"""Aggregate statistics over detection results."""

from dataclasses import dataclass, field
from typing import Iterable

import pandas as pd

from .domain import DetectionResult

DETECTION_COLUMNS = [
    "customer_id",
    "company_id",
    "session_id",
    "primary_intent",
    "primary_confidence",
    "secondary_intents",
    "cancel_reason",
    "cancel_reason_confidence",
    "sentiment",
    "sentiment_score",
    "urgency",
    "source",
    "detected_at",
]


@dataclass
class DetectionStats:
    total: int = 0
    by_intent: dict[str, int] = field(default_factory=dict)
    by_sentiment: dict[str, int] = field(default_factory=dict)
    by_urgency: dict[str, int] = field(default_factory=dict)
    cancel_reasons: dict[str, int] = field(default_factory=dict)


def _format_secondaries(secondaries: list[dict]) -> str:
    return ";".join(f"{s['intent']}:{s['confidence']:.2f}" for s in secondaries)


def detections_frame(detections: Iterable[DetectionResult]) -> pd.DataFrame:
    """
    One row per detection, secondary intents flattened to "INTENT:0.40;..." text.

    Returns:
        DataFrame with DETECTION_COLUMNS (empty if there are no detections)
    """
    rows = []
    for detection in detections:
        row = detection.to_dict()
        row["secondary_intents"] = _format_secondaries(row["secondary_intents"])
        rows.append(row)
    return pd.DataFrame(rows, columns=DETECTION_COLUMNS)


def _counts(df: pd.DataFrame, column: str) -> dict[str, int]:
    return {str(k): int(v) for k, v in df[column].dropna().value_counts().items()}


def summarize_detections(detections: Iterable[DetectionResult]) -> DetectionStats:
    """Counts by intent, sentiment, urgency and cancel reason."""
    df = detections_frame(detections)
    if df.empty:
        return DetectionStats()
    return DetectionStats(
        total=len(df),
        by_intent=_counts(df, "primary_intent"),
        by_sentiment=_counts(df, "sentiment"),
        by_urgency=_counts(df, "urgency"),
        cancel_reasons=_counts(df, "cancel_reason"),
    )
