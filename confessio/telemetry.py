"""
Retrieval telemetry for Confessio.

Logs one JSONL record per question: what each source returned, how long
each stage took, which sources failed and the final ranking. Useful for
tuning fusion weights and for regression checks.

Enable with: CONFESSIO_TELEMETRY=1
"""

import hashlib
import json
import logging
import os
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from confessio.config import config

logger = logging.getLogger(__name__)

# Per-source lists are truncated to this many entries
MAX_LOGGED_RESULTS = 20


def is_telemetry_enabled() -> bool:
    """Check if telemetry is enabled via environment variable."""
    return os.environ.get("CONFESSIO_TELEMETRY", "0") == "1"


TELEMETRY_LOG_PATH = Path(config.PROJECT_ROOT) / "logs" / "retrieval_runs.jsonl"


@dataclass
class RetrievalTelemetry:
    """Telemetry data for a single question."""

    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    question: str = ""
    question_hash: str = ""
    lexical_expression: Optional[str] = None
    topics: list[str] = field(default_factory=list)

    n_requested: int = 0
    n_returned: int = 0

    # Per-source results
    vector_results: list[dict] = field(default_factory=list)
    lexical_results: list[dict] = field(default_factory=list)
    relational_results: list[dict] = field(default_factory=list)

    final_ranks: list[dict] = field(default_factory=list)

    # Timing
    vector_latency_ms: float = 0.0
    lexical_latency_ms: float = 0.0
    relational_latency_ms: float = 0.0
    fusion_latency_ms: float = 0.0
    total_latency_ms: float = 0.0

    filters_applied: Optional[dict] = None
    failed_sources: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def hash_question(question: str) -> str:
    """Short stable hash for grouping repeated questions."""
    normalized = " ".join(question.lower().split())
    return hashlib.md5(normalized.encode()).hexdigest()[:12]


def summarize_items(items) -> list[dict]:
    return [
        {"item_id": item.item_id, "score": round(item.score, 4)}
        for item in items[:MAX_LOGGED_RESULTS]
    ]


class TelemetryLogger:
    """
    Collects telemetry for one question and writes it on exit.

    Usage:
        with TelemetryLogger() as tl:
            tl.set_question(question, n_requested=5)
            tl.add_source_results("vector", items, elapsed_ms=12.3)
            with tl.time("fusion"):
                fused = fuser.fuse(...)
            tl.add_final_results(selected)
    """

    SOURCES = ("vector", "lexical", "relational")

    def __init__(self, log_path: Path = None):
        self.log_path = log_path or TELEMETRY_LOG_PATH
        self.enabled = is_telemetry_enabled()
        self.telemetry = RetrievalTelemetry()
        self._start_time = time.perf_counter()
        self._timers: dict[str, float] = {}

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            self.telemetry.errors.append(f"{exc_type.__name__}: {exc_val}")
        if self.enabled:
            self.finalize()
        return False

    def set_question(self, question: str, n_requested: int = 5):
        self.telemetry.question = question
        self.telemetry.question_hash = hash_question(question)
        self.telemetry.n_requested = n_requested

    def set_query_analysis(self, lexical_expression: Optional[str], topics: list[str]):
        self.telemetry.lexical_expression = lexical_expression
        self.telemetry.topics = list(topics)

    class _Timer:
        """Context manager for timing operations."""

        def __init__(self, logger: "TelemetryLogger", name: str):
            self.logger = logger
            self.name = name
            self.start = 0.0

        def __enter__(self):
            self.start = time.perf_counter()
            return self

        def __exit__(self, *args):
            elapsed_ms = (time.perf_counter() - self.start) * 1000
            self.logger._timers[self.name] = elapsed_ms

    def time(self, operation: str) -> "_Timer":
        """
        Time an operation.

        Usage:
            with tl.time("fusion"):
                fused = fuser.fuse(...)
        """
        return self._Timer(self, operation)

    def add_source_results(self, source: str, items, elapsed_ms: float = 0.0, error: str = None):
        """Record one adapter's output, latency and failure."""
        if source not in self.SOURCES:
            raise ValueError(f"Unknown source: {source}")

        setattr(self.telemetry, f"{source}_results", summarize_items(items))
        self._timers[source] = elapsed_ms
        if error:
            self.telemetry.failed_sources.append(source)
            self.add_error(f"{source}: {error}")

    def add_final_results(self, items):
        self.telemetry.final_ranks = [
            {"item_id": item.item_id, "rank": i + 1, "score": round(item.score, 4)}
            for i, item in enumerate(items[:MAX_LOGGED_RESULTS])
        ]

    def set_filters(self, filters: Optional[dict]):
        self.telemetry.filters_applied = filters

    def add_error(self, error: str):
        self.telemetry.errors.append(error)

    def finalize(self):
        """Calculate final metrics and write to log."""
        if not self.enabled:
            return

        for name in (*self.SOURCES, "fusion"):
            setattr(self.telemetry, f"{name}_latency_ms", self._timers.get(name, 0.0))
        self.telemetry.total_latency_ms = (time.perf_counter() - self._start_time) * 1000
        self.telemetry.n_returned = len(self.telemetry.final_ranks)

        self._write_log()

    def _write_log(self):
        """Append telemetry to JSONL log file."""
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)

            with open(self.log_path, "a", encoding="utf-8") as f:
                json.dump(self.telemetry.to_dict(), f, ensure_ascii=False)
                f.write("\n")

            logger.debug(f"Telemetry logged: {self.telemetry.run_id}")

        except OSError as e:
            logger.warning(f"Failed to write telemetry: {e}")


def read_telemetry_logs(
    log_path: Path = None,
    question_hash: str = None,
    limit: int = 100,
) -> list[dict]:
    """
    Read telemetry records from a JSONL file.

    Args:
        log_path: Path to log file (default: logs/retrieval_runs.jsonl)
        question_hash: Optional filter by question hash
        limit: Maximum number of records to return

    Returns:
        List of telemetry dicts
    """
    log_path = log_path or TELEMETRY_LOG_PATH

    if not log_path.exists():
        return []

    results = []
    with open(log_path, "r", encoding="utf-8") as f:
        for line in f:
            if not line.strip():
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError:
                logger.debug("Skipping malformed telemetry line")
                continue
            if question_hash and data.get("question_hash") != question_hash:
                continue
            results.append(data)
            if len(results) >= limit:
                break

    return results
