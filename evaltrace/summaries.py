"""Lightweight frame and suggestion listings for browsing before a full trace."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from evaltrace.correlator import PipelineIndex
from evaltrace.ids import parse_frame_id
from evaltrace.models import FrameSummary, LiveSuggestion, SuggestionSummary
from evaltrace.precedence import resolve_status, resolve_support


def frame_summary(index: PipelineIndex, frame_id: str) -> FrameSummary:
    ref = parse_frame_id(frame_id)
    gate = index.gate_by_frame.get(frame_id)
    return FrameSummary(
        frame_id=frame_id,
        timestamp=ref.timestamp,
        kind=ref.kind,
        has_analysis=frame_id in index.analysis_by_frame,
        gate_decision=gate.decision if gate is not None else None,
        contributed_to_suggestions=len(index.contributions_by_frame.get(frame_id, ())),
    )


def list_frame_summaries(
    index: PipelineIndex, screenshot_ids: Iterable[str] = ()
) -> list[FrameSummary]:
    """Every known frame, newest first."""
    summaries = [frame_summary(index, fid) for fid in index.frame_ids(screenshot_ids)]
    summaries.sort(key=lambda s: s.frame_id)
    summaries.sort(key=lambda s: s.timestamp, reverse=True)
    return summaries


def list_suggestion_summaries(
    index: PipelineIndex, live: Mapping[str, LiveSuggestion]
) -> list[SuggestionSummary]:
    """Every generated suggestion, newest first.

    Titles are the generation-time titles; only status and support are
    resolved through live state.
    """
    summaries = []
    for suggestion_id, entry in index.generated_by_id.items():
        generated = entry.suggestion
        live_record = live.get(suggestion_id)
        scored = index.scored_by_id.get(suggestion_id)
        summaries.append(
            SuggestionSummary(
                suggestion_id=suggestion_id,
                title=generated.title,
                status=resolve_status(live_record),
                support=resolve_support(live_record, scored.scored if scored is not None else None, generated),
                created_at=generated.generated_at,
                source_frame_count=len(generated.distinct_source_frames()),
            )
        )
    summaries.sort(key=lambda s: s.created_at, reverse=True)
    return summaries
