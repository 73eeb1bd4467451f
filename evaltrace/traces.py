"""Full pipeline traces for one frame or one suggestion."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from evaltrace.correlator import PipelineIndex
from evaltrace.ids import parse_frame_id
from evaltrace.models import (
    FrameSuggestionInfo,
    FrameSummary,
    FrameTrace,
    GenerationInfo,
    LiveSuggestion,
    ScoringInfo,
    SuggestionTrace,
)
from evaltrace.precedence import resolve_display, resolve_support
from evaltrace.stores.screenshots import ScreenshotStore

logger = logging.getLogger(__name__)


class FrameTraceBuilder:
    """What the pipeline did with one frame, and what it led to.

    Every suggestion that lists the frame as a source is included with its
    scoring and dedup outcome, shown through the live overrides.
    """

    def __init__(
        self,
        index: PipelineIndex,
        live: Mapping[str, LiveSuggestion],
        screenshots: ScreenshotStore | None = None,
    ):
        self.index = index
        self.live = live
        self.screenshots = screenshots

    def build(self, frame_id: str) -> FrameTrace | None:
        screenshot = self.screenshots.find(frame_id) if self.screenshots is not None else None
        if screenshot is None and not self.index.is_known_frame(frame_id):
            logger.debug(f"Frame {frame_id} unknown to every stage")
            return None

        ref = parse_frame_id(frame_id)
        contributed_to = self.index.contributions(frame_id)
        return FrameTrace(
            frame_id=frame_id,
            timestamp=ref.timestamp,
            screenshot_path=str(screenshot) if screenshot is not None else "",
            kind=ref.kind,
            analysis=self.index.analysis_by_frame.get(frame_id),
            gate_result=self.index.gate_by_frame.get(frame_id),
            contributed_to=contributed_to,
            suggestions=[self.suggestion_info(sid) for sid in contributed_to],
        )

    def suggestion_info(self, suggestion_id: str) -> FrameSuggestionInfo:
        # Contribution implies a generation record
        generated = self.index.generated_by_id[suggestion_id].suggestion
        scored_entry = self.index.scored_by_id.get(suggestion_id)
        scored = scored_entry.scored if scored_entry is not None else None
        dedup = self.index.dedup_by_id.get(suggestion_id)
        live = self.live.get(suggestion_id)
        display = resolve_display(live, generated)

        return FrameSuggestionInfo(
            suggestion_id=suggestion_id,
            title=display.title,
            description=display.description,
            approach=display.approach,
            keywords=display.keywords,
            status=display.status,
            support=resolve_support(live, scored, generated),
            raw_support=generated.raw_support,
            scores=scored.scores if scored is not None else None,
            filter_decision=scored.filter_decision if scored is not None else None,
            deduplication=dedup.status() if dedup is not None else None,
        )


class SuggestionTraceBuilder:
    """Where one suggestion came from and how each stage judged it."""

    def __init__(
        self,
        index: PipelineIndex,
        live: Mapping[str, LiveSuggestion],
        frame_summaries: Mapping[str, FrameSummary],
    ):
        self.index = index
        self.live = live
        self.frame_summaries = frame_summaries

    def build(self, suggestion_id: str) -> SuggestionTrace | None:
        entry = self.index.generated_by_id.get(suggestion_id)
        if entry is None:
            return None

        generated = entry.suggestion
        scored_entry = self.index.scored_by_id.get(suggestion_id)
        scored = scored_entry.scored if scored_entry is not None else None
        live = self.live.get(suggestion_id)
        display = resolve_display(live, generated)

        scoring = None
        if scored_entry is not None:
            scoring = ScoringInfo(
                batch_id=scored_entry.batch_id,
                scores=scored.scores,
                filter_decision=scored.filter_decision,
                scored_at=scored.scored_at,
            )

        return SuggestionTrace(
            suggestion_id=suggestion_id,
            title=display.title,
            description=display.description,
            approach=display.approach,
            keywords=display.keywords,
            status=display.status,
            support=resolve_support(live, scored, generated),
            created_at=generated.generated_at,
            source_frames=[
                self.frame_summaries[fid]
                for fid in generated.distinct_source_frames()
                if fid in self.frame_summaries
            ],
            generation=GenerationInfo(
                batch_id=entry.batch_id,
                raw_support=generated.raw_support,
                support_evidence=generated.support_evidence,
                generated_at=generated.generated_at,
            ),
            scoring=scoring,
            deduplication=self.index.dedup_by_id.get(suggestion_id),
        )
