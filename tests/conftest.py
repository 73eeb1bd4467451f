"""Shared test fixtures — a realistic pipeline data directory on disk."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
from click.testing import CliRunner

from evaltrace.config import EvalConfig
from evaltrace.service import EvaluationService

# Frame ids used across the seeded pipeline
F_BEFORE = "frame_1700000000000_before"  # analysed, gate CONTINUE, jpg screenshot
F_EARLY = "frame_1700000030000_periodic"  # analysed only
F_AFTER = "frame_1700000060000_after"  # analysed, gate SKIP
F_UNANALYZED = "frame_1700000120000_periodic"  # png screenshot only
F_GHOST = "frame_1700000099000_after"  # referenced by a suggestion, seen by no stage

JPEG_BYTES = b"\xff\xd8\xff\xe0fake-jpeg"
PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-png"


# ---------------------------------------------------------------------------
# Record builders (camelCase, as the pipeline writes them)
# ---------------------------------------------------------------------------


def make_analysis(frame_id: str, description: str = "Editing a spreadsheet", used_llm: bool = True) -> dict:
    return {
        "frameId": frame_id,
        "framePath": f"/data/screenshots/{frame_id}.jpg",
        "timestamp": int(frame_id.split("_")[1]) if frame_id.count("_") >= 2 else 0,
        "analysis": {
            "description": description,
            "activities": ["editing"],
            "applications": ["Excel"],
            "keywords": ["budget"],
        },
        "processedAt": 1700000500000,
        "usedLLM": used_llm,
    }


def make_gate(frame_id: str, decision: str = "CONTINUE", importance: float = 0.7) -> dict:
    return {
        "frameId": frame_id,
        "decision": decision,
        "importance": importance,
        "reason": "user is focused" if decision == "CONTINUE" else "idle screen",
        "processedAt": 1700000600000,
    }


def make_suggestion(
    suggestion_id: str,
    source_frames: list[str],
    raw_support: int = 6,
    generated_at: int = 1700000100000,
    title: str | None = None,
) -> dict:
    return {
        "id": suggestion_id,
        "title": title or f"Title for {suggestion_id}",
        "description": f"Description for {suggestion_id}",
        "approach": "Automate it",
        "keywords": ["automation"],
        "supportEvidence": "seen twice",
        "rawSupport": raw_support,
        "sourceFrames": source_frames,
        "generatedAt": generated_at,
    }


def make_batch(batch_id: str, suggestions: list[dict], generated_at: int = 1700000100000) -> dict:
    return {
        "batchId": batch_id,
        "frameAnalyses": [],
        "suggestions": suggestions,
        "generatedAt": generated_at,
    }


def make_scored(suggestion: dict, combined: float, passed: bool = True) -> dict:
    return {
        **suggestion,
        "scores": {
            "benefit": 0.8,
            "disruptionCost": 0.2,
            "missCost": 0.5,
            "decay": 0.1,
            "combined": combined,
        },
        "filterDecision": {"passed": passed, "reason": "above threshold" if passed else "too weak"},
        "scoredAt": 1700000300000,
    }


def make_scoring(batch_id: str, scored: list[dict]) -> dict:
    return {
        "batchId": batch_id,
        "inputSuggestions": [],
        "scoredSuggestions": scored,
        "passedSuggestions": [s for s in scored if s["filterDecision"]["passed"]],
        "filteredOut": [s for s in scored if not s["filterDecision"]["passed"]],
        "scoredAt": 1700000300000,
    }


def make_similarity(id1: str, id2: str, similarity: float = 0.91, duplicate: bool = True) -> dict:
    return {
        "suggestion1Id": id1,
        "suggestion2Id": id2,
        "similarity": similarity,
        "isDuplicate": duplicate,
        "classification": "duplicate" if duplicate else "distinct",
        "reason": "same underlying task",
    }


def make_dedup(batch_id: str, unique: list[dict], duplicates: list[dict], similarities: list[dict]) -> dict:
    return {
        "batchId": batch_id,
        "inputSuggestions": unique + duplicates,
        "uniqueSuggestions": unique,
        "duplicatesRemoved": duplicates,
        "clusteredInto": {},
        "similarities": similarities,
        "processedAt": 1700000400000,
    }


class PipelineWriter:
    """Writes stage records into a data directory the way the producers do."""

    def __init__(self, root: Path):
        self.root = root

    def write(self, stage: str, name: str, payload: dict | str) -> Path:
        d = self.root / stage
        d.mkdir(parents=True, exist_ok=True)
        path = d / name
        text = payload if isinstance(payload, str) else json.dumps(payload)
        path.write_text(text, encoding="utf-8")
        return path

    def analysis(self, frame_id: str, **kw) -> Path:
        return self.write("frame_analysis", f"{frame_id}.json", make_analysis(frame_id, **kw))

    def gate(self, frame_id: str, decision: str = "CONTINUE", importance: float = 0.7) -> Path:
        return self.write("concentration_gate", f"gate_{frame_id}.json", make_gate(frame_id, decision, importance))

    def batch(self, batch_id: str, suggestions: list[dict], generated_at: int = 1700000100000) -> Path:
        return self.write("suggestion_generation", f"{batch_id}.json", make_batch(batch_id, suggestions, generated_at))

    def scoring(self, batch_id: str, scored: list[dict]) -> Path:
        return self.write("scoring_filtering", f"{batch_id}.json", make_scoring(batch_id, scored))

    def dedup(self, batch_id: str, unique: list[dict], duplicates: list[dict], similarities: list[dict]) -> Path:
        return self.write("deduplication", f"{batch_id}.json", make_dedup(batch_id, unique, duplicates, similarities))

    def screenshot(self, frame_id: str, ext: str = ".jpg", data: bytes = JPEG_BYTES) -> Path:
        d = self.root / "screenshots"
        d.mkdir(parents=True, exist_ok=True)
        path = d / f"{frame_id}{ext}"
        path.write_bytes(data)
        return path

    def live(self, suggestions: list[dict]) -> Path:
        path = self.root / "state.json"
        path.write_text(json.dumps({"suggestions": suggestions, "chats": []}), encoding="utf-8")
        return path


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_evaltrace_logger():
    """setup_logging() attaches handlers to the package logger; drop them after each test."""
    yield
    logger = logging.getLogger("evaltrace")
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def data_dir(tmp_path):
    d = tmp_path / "data"
    d.mkdir()
    return d


@pytest.fixture
def pipeline(data_dir):
    return PipelineWriter(data_dir)


@pytest.fixture
def config(data_dir, tmp_path):
    return EvalConfig.from_data_dir(data_dir, log_dir=tmp_path / "logs")


@pytest.fixture
def service(config):
    return EvaluationService(config)


@pytest.fixture
def cli_runner():
    """Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def seeded(pipeline):
    """A small but complete pipeline run.

    s1 ← F_BEFORE, F_AFTER   scored 0.42 (passed), unique, live-edited
    s2 ← F_BEFORE            scored 0.10 (filtered), removed as duplicate of s1
    s3 ← F_EARLY, F_GHOST    generated only (later batch)
    s_orphan                 scored with no generation record
    """
    pipeline.analysis(F_BEFORE)
    pipeline.analysis(F_EARLY, used_llm=False)
    pipeline.analysis(F_AFTER, description="Reading email")
    pipeline.gate(F_BEFORE, "CONTINUE", 0.8)
    pipeline.gate(F_AFTER, "SKIP", 0.2)
    pipeline.screenshot(F_BEFORE, ".jpg", JPEG_BYTES)
    pipeline.screenshot(F_UNANALYZED, ".png", PNG_BYTES)

    s1 = make_suggestion("s1", [F_BEFORE, F_AFTER], raw_support=6)
    s2 = make_suggestion("s2", [F_BEFORE], raw_support=8)
    s3 = make_suggestion("s3", [F_EARLY, F_GHOST], raw_support=3, generated_at=1700000200000)
    orphan = make_suggestion("s_orphan", [F_BEFORE], raw_support=5)
    pipeline.batch("batch_001", [s1, s2])
    pipeline.batch("batch_002", [s3], generated_at=1700000200000)
    pipeline.write("suggestion_generation", "_meta.json", {"lastBatch": 2})

    scored1 = make_scored(s1, combined=0.42, passed=True)
    scored2 = make_scored(s2, combined=0.10, passed=False)
    pipeline.scoring("score_001", [scored1, scored2, make_scored(orphan, combined=0.5)])
    pipeline.dedup("dedup_001", [scored1], [scored2], [make_similarity("s1", "s2")])

    pipeline.live([
        {
            "suggestionId": "s1",
            "projectId": 1,
            "title": "Edited title",
            "description": "Edited description",
            "approach": "Edited approach",
            "keywords": ["edited"],
            "status": "active",
            "support": 0.9,
            "createdAt": 1700000700000,
        }
    ])
    return pipeline
