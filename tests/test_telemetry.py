"""
Tests for retrieval telemetry.
"""

import pytest

from confessio.models import ContextItem
from confessio.telemetry import (
    TelemetryLogger,
    hash_question,
    is_telemetry_enabled,
    read_telemetry_logs,
)

from conftest import make_chunk_row


@pytest.fixture
def enabled(monkeypatch):
    monkeypatch.setenv("CONFESSIO_TELEMETRY", "1")


def items(*ids):
    return [ContextItem.from_chunk(make_chunk_row(i), 0.5) for i in ids]


class TestTelemetryLogger:
    def test_disabled_by_default(self, tmp_path):
        """Nothing is written unless CONFESSIO_TELEMETRY=1."""
        log_path = tmp_path / "runs.jsonl"
        with TelemetryLogger(log_path=log_path) as tl:
            tl.set_question("O que é a graça?")

        assert not is_telemetry_enabled()
        assert not log_path.exists()

    def test_writes_record(self, tmp_path, enabled):
        log_path = tmp_path / "runs.jsonl"
        with TelemetryLogger(log_path=log_path) as tl:
            tl.set_question("O que é a graça?", n_requested=5)
            tl.set_query_analysis("graça | favor", ["Fé"])
            tl.add_source_results("vector", items(1, 2), elapsed_ms=12.5)
            tl.add_source_results("lexical", [], elapsed_ms=3.0, error="timed out after 8.0s")
            tl.add_final_results(items(2, 1))

        records = read_telemetry_logs(log_path)
        assert len(records) == 1

        record = records[0]
        assert record["question"] == "O que é a graça?"
        assert record["vector_results"][0]["item_id"] == "chunk:1"
        assert record["vector_latency_ms"] == 12.5
        assert record["failed_sources"] == ["lexical"]
        assert record["final_ranks"][0] == {"item_id": "chunk:2", "rank": 1, "score": 0.5}
        assert record["n_returned"] == 2

    def test_records_exceptions(self, tmp_path, enabled):
        log_path = tmp_path / "runs.jsonl"
        with pytest.raises(RuntimeError):
            with TelemetryLogger(log_path=log_path) as tl:
                tl.set_question("pergunta")
                raise RuntimeError("boom")

        assert read_telemetry_logs(log_path)[0]["errors"] == ["RuntimeError: boom"]

    def test_unknown_source(self, tmp_path):
        with pytest.raises(ValueError):
            TelemetryLogger(log_path=tmp_path / "x.jsonl").add_source_results("graph", [])


class TestReadTelemetryLogs:
    def test_missing_file(self, tmp_path):
        assert read_telemetry_logs(tmp_path / "none.jsonl") == []

    def test_filters_by_hash_and_skips_bad_lines(self, tmp_path, enabled):
        log_path = tmp_path / "runs.jsonl"
        for question in ("Pergunta A", "Pergunta B", "pergunta   a"):
            with TelemetryLogger(log_path=log_path) as tl:
                tl.set_question(question)
        with open(log_path, "a", encoding="utf-8") as f:
            f.write("not json\n")

        matching = read_telemetry_logs(log_path, question_hash=hash_question("Pergunta A"))
        assert len(matching) == 2
        assert len(read_telemetry_logs(log_path)) == 3
        assert len(read_telemetry_logs(log_path, limit=1)) == 1
