"""
Tests for the batch CLI and run logging.
"""

import json

import pandas as pd
import pytest

from retention.logger import RunLogger, generate_run_id
from retention.risk import generate_sample_signals
from retention.run import detect_frame, detection_inputs, main


@pytest.fixture
def messages_csv(tmp_path):
    path = tmp_path / "messages.csv"
    pd.DataFrame({
        "customer_id": ["C1", "C2", "C3", "C4"],
        "company_id": ["CO_1"] * 4,
        "text": [
            "I want to cancel my subscription, it's terrible",
            "charged twice this month, please refund",
            "how do I update my shipping address",
            None,
        ],
        "source": ["web", "chat", "email", "api"],
    }).to_csv(path, index=False)
    return path


@pytest.fixture
def signals_csv(tmp_path):
    path = tmp_path / "signals.csv"
    generate_sample_signals(n_customers=30, seed=1).to_csv(path, index=False)
    return path


def read_logs(logs_dir):
    return [json.loads(p.read_text()) for p in sorted(logs_dir.glob("run_*.json"))]


class TestDetectCommand:

    def test_detect_writes_results(self, tmp_path, messages_csv, capsys):
        output = tmp_path / "detections.csv"
        logs = tmp_path / "logs"

        code = main(["--logs-dir", str(logs), "detect", str(messages_csv), "-o", str(output)])

        assert code == 0
        df = pd.read_csv(output)
        assert list(df["primary_intent"]) == ["CANCEL", "PAYMENT_ISSUE", "QUESTION", "NEUTRAL"]
        assert list(df["should_trigger_intervention"]) == [True, True, False, False]
        assert list(df["source"]) == ["web", "chat", "email", "api"]

        out = capsys.readouterr().out
        assert "Detected intent for 4 rows" in out
        assert "Interventions triggered: 2" in out

        [log] = read_logs(logs)
        assert log["command"] == "detect"
        assert log["status"] == "PASS"
        assert log["results"]["total"] == 4
        assert log["results"]["interventions"] == 2

    @pytest.mark.asyncio
    async def test_detect_frame_keeps_row_order(self, messages_csv):
        df = pd.read_csv(messages_csv, dtype=str)
        frame, stats = await detect_frame(df)

        assert list(frame["customer_id"]) == ["C1", "C2", "C3", "C4"]
        assert list(frame["intervention_type"].fillna("")) == ["save_flow", "payment_recovery", "", ""]
        assert stats.total == 4

    def test_missing_text_becomes_none(self, messages_csv):
        inputs = detection_inputs(pd.read_csv(messages_csv, dtype=str))
        assert inputs[3].text is None
        assert inputs[3].analyzed_text == ""
        assert inputs[0].metadata == {"row": 0}


class TestRiskCommand:

    def test_risk_scores_signal_log(self, tmp_path, signals_csv, capsys):
        output = tmp_path / "scores.csv"
        logs = tmp_path / "logs"

        code = main([
            "--logs-dir", str(logs),
            "risk", str(signals_csv),
            "--as-of", "2024-06-01",
            "--min-level", "MEDIUM",
            "-o", str(output),
        ])

        assert code == 0
        df = pd.read_csv(output)
        assert df["risk_score"].between(0, 100).all()
        assert "Summary by company and level" in capsys.readouterr().out

        [log] = read_logs(logs)
        assert log["command"] == "risk"
        assert log["inputs"]["as_of"].startswith("2024-06-01")
        assert log["results"]["total"] == len(df)
        assert sum(log["results"]["by_level"].values()) == len(df)

    def test_risk_with_engagement(self, tmp_path, signals_csv):
        engagement = tmp_path / "engagement.csv"
        pd.DataFrame({"customer_id": ["CUST_NEW"], "health_score": [0.0]}).to_csv(engagement, index=False)
        output = tmp_path / "scores.csv"

        code = main([
            "--logs-dir", str(tmp_path / "logs"),
            "risk", str(signals_csv),
            "--engagement", str(engagement),
            "--as-of", "2024-06-01",
            "-o", str(output),
        ])

        assert code == 0
        df = pd.read_csv(output).set_index("customer_id")
        assert df.loc["CUST_NEW", "health_points"] == 20.0

    def test_invalid_input_logged_as_error(self, tmp_path, capsys):
        bad = tmp_path / "bad.csv"
        pd.DataFrame({"customer_id": ["A"], "confidence": [0.5]}).to_csv(bad, index=False)
        logs = tmp_path / "logs"

        code = main(["--logs-dir", str(logs), "risk", str(bad)])

        assert code == 1
        assert "ERROR: Missing required columns" in capsys.readouterr().out
        [log] = read_logs(logs)
        assert log["status"] == "ERROR"
        assert "Missing required columns" in log["error"]


class TestRunLogging:

    def test_list_without_runs(self, tmp_path, capsys):
        assert main(["--logs-dir", str(tmp_path), "--list"]) == 0
        assert "No runs found." in capsys.readouterr().out

    def test_list_after_run(self, tmp_path, messages_csv, capsys):
        logs = tmp_path / "logs"
        main(["--logs-dir", str(logs), "detect", str(messages_csv)])
        capsys.readouterr()

        assert main(["--logs-dir", str(logs), "--list"]) == 0
        out = capsys.readouterr().out
        assert "detect" in out
        assert "PASS" in out

    def test_no_command_prints_help(self, tmp_path):
        assert main(["--logs-dir", str(tmp_path)]) == 1

    def test_run_id_format(self):
        run_id = generate_run_id()
        prefix, date, time, suffix = run_id.split("_")
        assert prefix == "run"
        assert len(date) == 8 and len(time) == 6
        assert len(suffix) == 4

    def test_summary_newest_first(self, tmp_path):
        run_logger = RunLogger(tmp_path)
        run_logger.log_run("run_20240101_000000_aaaa", "risk", {}, {"total": 3}, "1.0.0", 0.1)
        run_logger.log_failure("run_20240102_000000_bbbb", "detect", {}, "boom")

        df = run_logger.get_summary_dataframe()
        assert len(df) == 2
        assert set(df["status"]) == {"PASS", "ERROR"}
        assert df.iloc[0]["timestamp"] >= df.iloc[1]["timestamp"]
