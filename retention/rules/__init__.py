"""
Data-driven rule tables.

Keyword tables (intent, cancel reason, sentiment tiers) and the churn signal
catalog are YAML files loaded once at startup. Category order in the YAML is
the declaration order the classifiers iterate in.

Usage:
    from retention.rules import load_rules

    rules = load_rules()                  # packaged tables
    rules = load_rules("path/to/rules")   # directory with keywords.yaml/signals.yaml
"""

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml

from ..domain import (
    CancelReason,
    ChurnSignalType,
    IntentCategory,
    NON_SCORING_INTENTS,
    SignalCategory,
    SignalWeight,
)

RULES_DIR = Path(__file__).parent
KEYWORDS_FILE = "keywords.yaml"
SIGNALS_FILE = "signals.yaml"

SENTIMENT_TIERS = ("very_negative", "negative", "positive", "very_positive")


@dataclass(frozen=True)
class KeywordRule:
    """One keyword and the number of matches it counts for."""

    keyword: str
    weight: float = 1.0


Keywords = tuple[KeywordRule, ...]


@dataclass(frozen=True)
class RuleTable:
    """Ordered keyword tables plus the signal catalog."""

    intents: tuple[tuple[IntentCategory, Keywords], ...]
    cancel_reasons: tuple[tuple[CancelReason, Keywords], ...]
    sentiment: dict[str, tuple[str, ...]] = field(default_factory=dict, hash=False)
    signals: dict[ChurnSignalType, SignalWeight] = field(default_factory=dict, hash=False)

    def scoring_intents(self) -> tuple[tuple[IntentCategory, Keywords], ...]:
        """Intent categories that take part in keyword scoring, in declaration order."""
        return tuple(
            (intent, keywords)
            for intent, keywords in self.intents
            if intent not in NON_SCORING_INTENTS
        )

    def signal_weight(self, signal_type: ChurnSignalType) -> Optional[SignalWeight]:
        return self.signals.get(signal_type)


def _parse_keywords(entries, where: str) -> Keywords:
    rules = []
    for entry in entries or []:
        if isinstance(entry, str):
            rules.append(KeywordRule(entry.lower()))
        elif isinstance(entry, dict) and "keyword" in entry:
            rules.append(KeywordRule(
                str(entry["keyword"]).lower(),
                float(entry.get("weight", 1.0)),
            ))
        else:
            raise ValueError(f"Invalid keyword entry in {where}: {entry!r}")
    return tuple(rules)


def _parse_table(section: dict, enum_cls, where: str):
    table = []
    for name, entries in (section or {}).items():
        try:
            category = enum_cls(name)
        except ValueError:
            raise ValueError(f"Unknown {where} category: {name}") from None
        table.append((category, _parse_keywords(entries, f"{where}.{name}")))
    return tuple(table)


def _parse_signals(section: dict) -> dict[ChurnSignalType, SignalWeight]:
    catalog = {}
    for name, entry in (section or {}).items():
        try:
            signal_type = ChurnSignalType(name)
        except ValueError:
            raise ValueError(f"Unknown signal type in catalog: {name}") from None
        catalog[signal_type] = SignalWeight(
            signal_type=signal_type,
            category=SignalCategory(entry["category"]),
            weight=float(entry["weight"]),
            decay_days=int(entry["decay_days"]),
            additive=bool(entry.get("additive", True)),
            max_occurrences=int(entry.get("max_occurrences", 5)),
        )
    return catalog


def parse_rules(keywords: dict, signals: Optional[dict] = None) -> RuleTable:
    """
    Build a RuleTable from already-loaded YAML documents.

    Args:
        keywords: Mapping with `intents`, `cancel_reasons` and `sentiment` sections
        signals: Mapping with a `signals` section (optional)

    Raises:
        ValueError: On unknown categories, tiers or malformed entries
    """
    sentiment = {}
    for tier, words in (keywords.get("sentiment") or {}).items():
        if tier not in SENTIMENT_TIERS:
            raise ValueError(f"Unknown sentiment tier: {tier}")
        sentiment[tier] = tuple(str(w).lower() for w in words or [])

    return RuleTable(
        intents=_parse_table(keywords.get("intents"), IntentCategory, "intents"),
        cancel_reasons=_parse_table(keywords.get("cancel_reasons"), CancelReason, "cancel_reasons"),
        sentiment=sentiment,
        signals=_parse_signals((signals or {}).get("signals")),
    )


@lru_cache(maxsize=8)
def load_rules(rules_dir: Optional[str] = None) -> RuleTable:
    """Load (and cache) the rule tables from a directory."""
    base = Path(rules_dir) if rules_dir else RULES_DIR
    with open(base / KEYWORDS_FILE) as f:
        keywords = yaml.safe_load(f) or {}
    signals_path = base / SIGNALS_FILE
    signals = {}
    if signals_path.exists():
        with open(signals_path) as f:
            signals = yaml.safe_load(f) or {}
    return parse_rules(keywords, signals)


__all__ = [
    "KeywordRule",
    "RuleTable",
    "load_rules",
    "parse_rules",
    "SENTIMENT_TIERS",
]
