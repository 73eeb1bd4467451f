"""Logging setup and per-query metrics — timing and result sizes of trace requests."""

from __future__ import annotations

import json
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

# Structured logger
logger = logging.getLogger("evaltrace")


def setup_logging(log_dir: str | Path, verbose: bool = False) -> None:
    """Configure logging with file and console handlers."""
    level = logging.DEBUG if verbose else logging.INFO

    # Console: warnings only unless verbose
    console = logging.StreamHandler()
    console.setLevel(level if verbose else logging.WARNING)
    console.setFormatter(logging.Formatter("%(message)s"))

    # File: everything, with timestamps
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_dir / "evaltrace.log")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    )

    logger.setLevel(logging.DEBUG)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.addHandler(console)
    logger.addHandler(file_handler)


@dataclass
class RunMetrics:
    """Metrics for a single query (listing, trace, screenshot)."""

    operation: str
    started_at: str = ""
    completed_at: str = ""
    duration_seconds: float = 0.0
    records_returned: int = 0
    success: bool = True
    error: str | None = None
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {k: v for k, v in self.__dict__.items() if v is not None}


class MetricsTracker:
    """Tracks and persists query metrics to metrics.jsonl."""

    def __init__(self, log_dir: str | Path):
        self.log_dir = Path(log_dir)
        self.metrics_file = self.log_dir / "metrics.jsonl"

    def record(self, metrics: RunMetrics) -> None:
        self.log_dir.mkdir(parents=True, exist_ok=True)
        with open(self.metrics_file, "a") as f:
            f.write(json.dumps(metrics.to_dict()) + "\n")
        logger.debug(
            f"[metrics] {metrics.operation}: {metrics.duration_seconds:.3f}s, "
            f"{metrics.records_returned} records"
        )

    @contextmanager
    def track(self, operation: str, **details):
        """Context manager to time a query; set records_returned on the yielded metrics."""
        metrics = RunMetrics(
            operation=operation,
            started_at=datetime.now(UTC).isoformat(),
            details=details,
        )
        start = time.monotonic()
        try:
            yield metrics
            metrics.success = True
        except Exception as e:
            metrics.success = False
            metrics.error = str(e)
            raise
        finally:
            metrics.duration_seconds = time.monotonic() - start
            metrics.completed_at = datetime.now(UTC).isoformat()
            self.record(metrics)

    def get_summary(self) -> dict:
        """Load all metrics and aggregate them per operation."""
        runs = self._load_all()

        by_operation: dict[str, dict] = {}
        for r in runs:
            op = r.get("operation", "unknown")
            if op not in by_operation:
                by_operation[op] = {"count": 0, "total_seconds": 0.0, "records": 0, "errors": 0}
            by_operation[op]["count"] += 1
            by_operation[op]["total_seconds"] += r.get("duration_seconds", 0.0)
            by_operation[op]["records"] += r.get("records_returned", 0)
            if not r.get("success", True):
                by_operation[op]["errors"] += 1

        return {
            "total_runs": len(runs),
            "by_operation": by_operation,
            "last_run": runs[-1] if runs else None,
        }

    def _load_all(self) -> list[dict]:
        """Load all metric records from the JSONL file."""
        if not self.metrics_file.exists():
            return []
        runs = []
        for line in self.metrics_file.read_text().splitlines():
            if line.strip():
                try:
                    runs.append(json.loads(line))
                except json.JSONDecodeError:
                    continue
        return runs
