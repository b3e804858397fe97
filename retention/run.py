#!/usr/bin/env python3
"""
CLI entry point for batch detection and risk scoring.

Usage:
    # Detect intent for every row of a CSV
    python -m retention.run detect messages.csv -o detections.csv

    # Score a signal log
    python -m retention.run risk signals.csv --engagement engagement.csv --min-level HIGH

    # List past runs
    python -m retention.run --list
"""

import argparse
import asyncio
import logging
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import pandas as pd

from .analytics import DetectionStats, detections_frame, summarize_detections
from .config import DEFAULT_CONFIG, RetentionConfig
from .detector import DetectionOrchestrator
from .domain import DetectIntentInput, DetectionSource, RiskLevel
from .engagement import utc_timestamp
from .logger import RunLogger, generate_run_id
from .memory import InMemoryDetectionStore
from .risk import RiskScoreCalculator, RiskScoringResult
from .schemas import DETECTION_INPUT_SCHEMA, RISK_OUTPUT_SCHEMA

DEFAULT_LOGS_DIR = "logs"

OPTIONAL_INPUT_FIELDS = ["session_id", "text", "transcript", "current_page", "current_action"]


def _value(row: dict, key: str) -> Optional[str]:
    value = row.get(key)
    if value is None or pd.isna(value):
        return None
    return str(value)


def detection_inputs(df: pd.DataFrame) -> list[DetectIntentInput]:
    """
    Validate a detection CSV frame and build one input per row.

    Raises:
        pandera.errors.SchemaError: If required columns are missing or invalid
    """
    validated = DETECTION_INPUT_SCHEMA.validate(df)
    inputs = []
    for i, row in enumerate(validated.to_dict("records")):
        inputs.append(DetectIntentInput(
            customer_id=str(row["customer_id"]),
            company_id=str(row["company_id"]),
            source=_value(row, "source") or DetectionSource.API,
            metadata={"row": i},
            **{key: _value(row, key) for key in OPTIONAL_INPUT_FIELDS},
        ))
    return inputs


async def detect_frame(
    df: pd.DataFrame, config: RetentionConfig = DEFAULT_CONFIG
) -> tuple[pd.DataFrame, DetectionStats]:
    """
    Run every row through the orchestrator with in-memory collaborators.

    Returns:
        (one result row per input, in input order; aggregate statistics)
    """
    detector = DetectionOrchestrator(store=InMemoryDetectionStore(), config=config)
    results = await detector.detect_many(detection_inputs(df))

    frame = detections_frame(results)
    decisions = [detector.intervention_decider.decide(r) for r in results]
    frame["should_trigger_intervention"] = [d.should_trigger for d in decisions]
    frame["intervention_type"] = [d.intervention_type for d in decisions]
    return frame, summarize_detections(results)


def score_risk(
    signals: pd.DataFrame,
    engagement: Optional[pd.DataFrame] = None,
    as_of: Optional[datetime] = None,
    config: RetentionConfig = DEFAULT_CONFIG,
) -> RiskScoringResult:
    """Batch-score a signal log and validate the output."""
    result = RiskScoreCalculator(config).score_frame(signals, engagement, as_of)
    RISK_OUTPUT_SCHEMA.validate(result.df)
    return result


def _print_counts(title: str, counts: dict[str, int]) -> None:
    print(f"\n{title}:")
    if not counts:
        print("  (none)")
    for key, count in counts.items():
        print(f"  {key:<20} {count}")


def _run_detect(args, config: RetentionConfig) -> tuple[dict, dict]:
    df = pd.read_csv(args.input, dtype=str)
    frame, stats = asyncio.run(detect_frame(df, config))

    print(f"\nDetected intent for {stats.total} rows")
    _print_counts("By intent", stats.by_intent)
    _print_counts("By sentiment", stats.by_sentiment)
    _print_counts("By urgency", stats.by_urgency)
    _print_counts("Cancel reasons", stats.cancel_reasons)

    interventions = int(frame["should_trigger_intervention"].sum()) if not frame.empty else 0
    print(f"\nInterventions triggered: {interventions}")

    if args.output:
        frame.to_csv(args.output, index=False)
        print(f"Results saved to: {args.output}")

    inputs = {"input": str(args.input), "rows": len(df)}
    results = {
        "total": stats.total,
        "interventions": interventions,
        "by_intent": stats.by_intent,
        "by_urgency": stats.by_urgency,
    }
    return inputs, results


def _run_risk(args, config: RetentionConfig) -> tuple[dict, dict]:
    signals = pd.read_csv(args.signals)
    engagement = pd.read_csv(args.engagement) if args.engagement else None
    as_of = (
        utc_timestamp(args.as_of).to_pydatetime() if args.as_of
        else datetime.now(timezone.utc)
    )

    result = score_risk(signals, engagement, as_of, config)
    high_risk = result.get_high_risk(args.min_level)

    print(f"\nScored {len(result.df)} customers as of {as_of.isoformat()}")
    print("\nSummary by company and level:\n")
    print(result.summary().to_string())
    print("\nComponent breakdown:\n")
    print(result.component_breakdown().to_string())
    print(f"\nCustomers at {args.min_level} or above: {len(high_risk)}")
    if not high_risk.empty:
        print(high_risk[["customer_id", "company_id", "risk_score", "risk_level"]].to_string(index=False))

    if args.output:
        result.df.to_csv(args.output, index=False)
        print(f"Results saved to: {args.output}")

    inputs = {
        "signals": str(args.signals),
        "engagement": str(args.engagement) if args.engagement else None,
        "rows": len(signals),
        "as_of": as_of.isoformat(),
    }
    results = {
        "total": len(result.df),
        "high_risk": len(high_risk),
        "by_level": {str(k): int(v) for k, v in result.df["risk_level"].value_counts().items()},
    }
    return inputs, results


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Retention intelligence batch runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m retention.run detect messages.csv -o detections.csv
  python -m retention.run risk signals.csv --as-of 2024-06-01 --min-level MEDIUM
  python -m retention.run --list
        """,
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List all past runs",
    )
    parser.add_argument(
        "--logs-dir",
        default=DEFAULT_LOGS_DIR,
        help="Directory for run logs (default: logs)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    detect = subparsers.add_parser("detect", help="Detect intent for each CSV row")
    detect.add_argument("input", type=Path, help="CSV with customer_id, company_id, text")
    detect.add_argument("-o", "--output", type=Path, help="Write results CSV here")
    detect.add_argument("--config", type=Path, help="RetentionConfig YAML")

    risk = subparsers.add_parser("risk", help="Batch-score a churn signal log")
    risk.add_argument("signals", type=Path, help="CSV with one churn signal per row")
    risk.add_argument("--engagement", type=Path, help="CSV with customer_id, health_score")
    risk.add_argument("--as-of", help="Reference time (ISO 8601, default now)")
    risk.add_argument(
        "--min-level",
        default=RiskLevel.HIGH.value,
        choices=[lvl.value for lvl in RiskLevel],
        help="Lowest level reported as high risk (default: HIGH)",
    )
    risk.add_argument("-o", "--output", type=Path, help="Write scores CSV here")
    risk.add_argument("--config", type=Path, help="RetentionConfig YAML")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    run_logger = RunLogger(args.logs_dir)

    # List runs
    if args.list:
        df = run_logger.get_summary_dataframe()
        if df.empty:
            print("No runs found.")
        else:
            print(df.to_string(index=False))
        return 0

    if args.command is None:
        parser.print_help()
        return 1

    run_id = generate_run_id()
    started = time.perf_counter()
    try:
        config = RetentionConfig.from_yaml(args.config) if args.config else DEFAULT_CONFIG
        if args.command == "detect":
            inputs, results = _run_detect(args, config)
        else:
            inputs, results = _run_risk(args, config)
    except Exception as e:
        print(f"ERROR: {e}")
        run_logger.log_failure(run_id, args.command, {"args": vars(args)}, str(e))
        return 1

    log_path = run_logger.log_run(
        run_id,
        args.command,
        inputs,
        results,
        config_version=config.version,
        duration_seconds=time.perf_counter() - started,
        output_path=str(args.output) if args.output else None,
    )
    print(f"\nRun logged to: {log_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
