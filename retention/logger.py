"""
Run logging for batch detection and risk scoring.

Writes one JSON log per CLI run (success or error).
"""

import json
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

import pandas as pd


def generate_run_id() -> str:
    """Unique run ID: run_<YYYYmmdd_HHMMSS>_<4 hex>."""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"run_{timestamp}_{uuid.uuid4().hex[:4]}"


class RunLogger:
    """Structured JSON logging for batch runs."""

    def __init__(self, logs_dir: Path | str):
        """
        Initialize logger.

        Args:
            logs_dir: Directory to write log files
        """
        self.logs_dir = Path(logs_dir)
        self.logs_dir.mkdir(parents=True, exist_ok=True)

    def log_run(
        self,
        run_id: str,
        command: str,
        inputs: dict,
        results: dict,
        config_version: str,
        duration_seconds: float,
        output_path: Optional[str] = None,
    ) -> Path:
        """
        Log a completed run to a JSON file.

        Args:
            run_id: Unique run ID
            command: "detect" or "risk"
            inputs: Input file paths and row counts
            results: Aggregate counts for the run
            config_version: Version of the RetentionConfig used
            duration_seconds: Wall time of the run

        Returns:
            Path to log file
        """
        log_entry = {
            "run_id": run_id,
            "command": command,
            "timestamp": datetime.now().isoformat(),
            "duration_seconds": round(duration_seconds, 3),
            "config_version": config_version,
            "inputs": inputs,
            "results": results,
            "output": output_path,
            "status": "PASS",
        }
        return self._write(run_id, log_entry)

    def log_failure(self, run_id: str, command: str, inputs: dict, error: str) -> Path:
        """
        Log a run that raised before completing.

        Returns:
            Path to log file
        """
        log_entry = {
            "run_id": run_id,
            "command": command,
            "timestamp": datetime.now().isoformat(),
            "inputs": inputs,
            "status": "ERROR",
            "error": error,
        }
        return self._write(run_id, log_entry)

    def _write(self, run_id: str, log_entry: dict) -> Path:
        log_path = self.logs_dir / f"{run_id}.json"
        with open(log_path, "w") as f:
            json.dump(log_entry, f, indent=2, default=str)
        return log_path

    def get_all_logs(self) -> list[dict]:
        """
        Load all run logs.

        Returns:
            List of log dictionaries, sorted by file name
        """
        logs = []
        for log_file in sorted(self.logs_dir.glob("run_*.json")):
            with open(log_file) as f:
                logs.append(json.load(f))
        return logs

    def get_summary_dataframe(self) -> pd.DataFrame:
        """
        Get summary of all runs as DataFrame, newest first.
        """
        logs = self.get_all_logs()
        if not logs:
            return pd.DataFrame()

        summary = []
        for log in logs:
            entry = {
                "run_id": log["run_id"],
                "command": log["command"],
                "timestamp": log["timestamp"],
                "status": log["status"],
            }
            results = log.get("results", {})
            for key in ["total", "high_risk", "interventions"]:
                if key in results:
                    entry[key] = results[key]
            summary.append(entry)

        df = pd.DataFrame(summary)
        return df.sort_values("timestamp", ascending=False)
