"""Evaluation service — loads every stage, joins, and answers one query.

Each call re-reads all stage outputs from scratch; there is no cache between
calls, so a result is always consistent as of the moment it was requested.
Stage loads are independent and run concurrently in worker threads.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from evaltrace.config import EvalConfig
from evaltrace.correlator import PipelineIndex, StageSnapshot
from evaltrace.models import (
    DedupResult,
    FrameAnalysis,
    FrameSummary,
    FrameTrace,
    GateResult,
    LiveSuggestion,
    PipelineStatus,
    ScoringResult,
    SuggestionBatch,
    SuggestionSummary,
    SuggestionTrace,
)
from evaltrace.stores.base import JsonDirRepository, Repository
from evaltrace.stores.live_state import LiveStateProvider, StateFileLiveState
from evaltrace.stores.screenshots import ScreenshotStore
from evaltrace.summaries import list_frame_summaries, list_suggestion_summaries
from evaltrace.traces import FrameTraceBuilder, SuggestionTraceBuilder

logger = logging.getLogger(__name__)

# Record model per stage, keyed like EvalConfig.stage_dirs()
_STAGE_MODELS = {
    "frame_analysis": FrameAnalysis,
    "concentration_gate": GateResult,
    "suggestion_generation": SuggestionBatch,
    "scoring_filtering": ScoringResult,
    "deduplication": DedupResult,
}

@dataclass
class StageRepositories:
    """One repository per pipeline stage."""

    frame_analysis: Repository[FrameAnalysis]
    concentration_gate: Repository[GateResult]
    suggestion_generation: Repository[SuggestionBatch]
    scoring_filtering: Repository[ScoringResult]
    deduplication: Repository[DedupResult]

    @classmethod
    def from_config(cls, config: EvalConfig) -> StageRepositories:
        return cls(**{
            stage: JsonDirRepository(directory, _STAGE_MODELS[stage], extension=config.record_extension)
            for stage, directory in config.stage_dirs().items()
        })


@dataclass
class _Loaded:
    index: PipelineIndex
    live: dict[str, LiveSuggestion]


class EvaluationService:
    """Read-only query surface over one pipeline data directory."""

    def __init__(
        self,
        config: EvalConfig,
        *,
        repositories: StageRepositories | None = None,
        live_state: LiveStateProvider | None = None,
        screenshots: ScreenshotStore | None = None,
    ):
        self.config = config
        self.repositories = repositories or StageRepositories.from_config(config)
        self.live_state = live_state or StateFileLiveState(config.state_path)
        self.screenshots = screenshots or ScreenshotStore(config.screenshots_dir)

    async def load_snapshot(self) -> StageSnapshot:
        repos = self.repositories
        analyses, gates, batches, scoring, dedup = await asyncio.gather(
            asyncio.to_thread(repos.frame_analysis.load_all),
            asyncio.to_thread(repos.concentration_gate.load_all),
            asyncio.to_thread(repos.suggestion_generation.load_all),
            asyncio.to_thread(repos.scoring_filtering.load_all),
            asyncio.to_thread(repos.deduplication.load_all),
        )
        return StageSnapshot(
            analyses=analyses,
            gate_results=gates,
            batches=batches,
            scoring_results=scoring,
            dedup_results=dedup,
        )

    async def _load(self) -> _Loaded:
        snapshot, live = await asyncio.gather(
            self.load_snapshot(),
            asyncio.to_thread(self.live_state.by_id),
        )
        return _Loaded(index=PipelineIndex(snapshot), live=live)

    # ── Listings ─────────────────────────────────────────────────────

    async def list_frames(self) -> list[FrameSummary]:
        try:
            loaded, screenshot_ids = await asyncio.gather(
                self._load(), asyncio.to_thread(self.screenshots.frame_ids)
            )
        except OSError:
            logger.exception("Failed to read pipeline data for frame listing")
            return []
        return list_frame_summaries(loaded.index, screenshot_ids)

    async def list_suggestions(self) -> list[SuggestionSummary]:
        try:
            loaded = await self._load()
        except OSError:
            logger.exception("Failed to read pipeline data for suggestion listing")
            return []
        return list_suggestion_summaries(loaded.index, loaded.live)

    # ── Traces ───────────────────────────────────────────────────────

    async def get_frame_trace(self, frame_id: str) -> FrameTrace | None:
        try:
            loaded = await self._load()
            return FrameTraceBuilder(loaded.index, loaded.live, self.screenshots).build(frame_id)
        except OSError:
            logger.exception(f"Failed to read pipeline data for frame {frame_id}")
            return None

    async def get_suggestion_trace(self, suggestion_id: str) -> SuggestionTrace | None:
        try:
            loaded, screenshot_ids = await asyncio.gather(
                self._load(), asyncio.to_thread(self.screenshots.frame_ids)
            )
        except OSError:
            logger.exception(f"Failed to read pipeline data for suggestion {suggestion_id}")
            return None
        frame_summaries = {
            s.frame_id: s for s in list_frame_summaries(loaded.index, screenshot_ids)
        }
        return SuggestionTraceBuilder(loaded.index, loaded.live, frame_summaries).build(suggestion_id)

    async def get_screenshot(self, frame_id: str) -> str | None:
        return await asyncio.to_thread(self.screenshots.data_uri, frame_id)

    # ── Status ───────────────────────────────────────────────────────

    async def get_status(self) -> PipelineStatus:
        """Record counts per stage and data-integrity anomalies."""
        try:
            loaded, screenshot_ids = await asyncio.gather(
                self._load(), asyncio.to_thread(self.screenshots.frame_ids)
            )
        except OSError:
            logger.exception("Failed to read pipeline data for status")
            return PipelineStatus(data_dir=str(self.config.data_dir))

        orphans = loaded.index.orphaned_scored_ids()
        if orphans:
            logger.warning(f"{len(orphans)} scored suggestion(s) have no generation record")
        return PipelineStatus(
            data_dir=str(self.config.data_dir),
            stage_counts=loaded.index.snapshot.counts(),
            screenshot_count=len(screenshot_ids),
            live_suggestion_count=len(loaded.live),
            orphaned_scored_ids=orphans,
        )
