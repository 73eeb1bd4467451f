"""Join the five independently-written stage outputs into lookup indices.

Stages are produced by separate processes that can race or re-run, so the
joins are lenient: an id seen twice keeps its first record (in load order),
and a scored suggestion with no generation record is kept aside as an
orphan instead of failing the join.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field

from evaltrace.models import (
    DedupInfo,
    DedupResult,
    FrameAnalysis,
    GateResult,
    GeneratedSuggestion,
    ScoredSuggestion,
    ScoringResult,
    SuggestionBatch,
    SuggestionSimilarity,
)

logger = logging.getLogger(__name__)


@dataclass
class StageSnapshot:
    """Everything the pipeline has persisted, as read at one point in time."""

    analyses: list[FrameAnalysis] = field(default_factory=list)
    gate_results: list[GateResult] = field(default_factory=list)
    batches: list[SuggestionBatch] = field(default_factory=list)
    scoring_results: list[ScoringResult] = field(default_factory=list)
    dedup_results: list[DedupResult] = field(default_factory=list)

    def counts(self) -> dict[str, int]:
        return {
            "frame_analysis": len(self.analyses),
            "concentration_gate": len(self.gate_results),
            "suggestion_generation": len(self.batches),
            "scoring_filtering": len(self.scoring_results),
            "deduplication": len(self.dedup_results),
        }


@dataclass(frozen=True)
class GeneratedEntry:
    suggestion: GeneratedSuggestion
    batch_id: str


@dataclass(frozen=True)
class ScoredEntry:
    scored: ScoredSuggestion
    batch_id: str


class PipelineIndex:
    """Id-keyed indices over a StageSnapshot.

    analysis_by_frame, gate_by_frame: frame id → stage record
    generated_by_id: suggestion id → generation record + batch
    scored_by_id: suggestion id → scored record + scoring batch
    dedup_by_id: suggestion id → dedup outcome + similarities naming it
    contributions_by_frame: frame id → suggestion ids drawing on that frame
    """

    def __init__(self, snapshot: StageSnapshot):
        self.snapshot = snapshot
        self.analysis_by_frame = _first_by_key(snapshot.analyses, lambda a: a.frame_id, "analysis")
        self.gate_by_frame = _first_by_key(snapshot.gate_results, lambda g: g.frame_id, "gate result")
        self.generated_by_id = self._index_generated(snapshot.batches)
        self.scored_by_id = self._index_scored(snapshot.scoring_results)
        self.dedup_by_id = self._index_dedup(snapshot.dedup_results)
        self.contributions_by_frame = self._index_contributions(self.generated_by_id)

    # -- builders ----------------------------------------------------------

    @staticmethod
    def _index_generated(batches: list[SuggestionBatch]) -> dict[str, GeneratedEntry]:
        index: dict[str, GeneratedEntry] = {}
        for batch in batches:
            for suggestion in batch.suggestions:
                if suggestion.id in index:
                    logger.debug(f"Suggestion {suggestion.id} generated again in {batch.batch_id}; keeping first")
                    continue
                index[suggestion.id] = GeneratedEntry(suggestion, batch.batch_id)
        return index

    @staticmethod
    def _index_scored(results: list[ScoringResult]) -> dict[str, ScoredEntry]:
        index: dict[str, ScoredEntry] = {}
        for result in results:
            for scored in result.scored_suggestions:
                if scored.id in index:
                    logger.debug(f"Suggestion {scored.id} scored again in {result.batch_id}; keeping first")
                    continue
                index[scored.id] = ScoredEntry(scored, result.batch_id)
        return index

    @staticmethod
    def _index_dedup(results: list[DedupResult]) -> dict[str, DedupInfo]:
        index: dict[str, DedupInfo] = {}
        for result in results:
            # Removal as a duplicate overrides a listing as unique within one run
            membership: dict[str, bool] = {s.id: True for s in result.unique_suggestions}
            membership.update({s.id: False for s in result.duplicates_removed})

            sims_by_id: dict[str, list[SuggestionSimilarity]] = defaultdict(list)
            for sim in result.similarities:
                sims_by_id[sim.suggestion1_id].append(sim)
                if sim.suggestion2_id != sim.suggestion1_id:
                    sims_by_id[sim.suggestion2_id].append(sim)

            for suggestion_id, is_unique in membership.items():
                if suggestion_id in index:
                    logger.debug(f"Suggestion {suggestion_id} deduplicated again in {result.batch_id}; keeping first")
                    continue
                index[suggestion_id] = DedupInfo(
                    batch_id=result.batch_id,
                    is_unique=is_unique,
                    similarities=sims_by_id.get(suggestion_id, []),
                    processed_at=result.processed_at,
                )
        return index

    @staticmethod
    def _index_contributions(generated: dict[str, GeneratedEntry]) -> dict[str, list[str]]:
        index: dict[str, list[str]] = defaultdict(list)
        for suggestion_id, entry in generated.items():
            for frame_id in entry.suggestion.distinct_source_frames():
                index[frame_id].append(suggestion_id)
        return dict(index)

    # -- queries -----------------------------------------------------------

    def contributions(self, frame_id: str) -> list[str]:
        return list(self.contributions_by_frame.get(frame_id, []))

    def frame_ids(self, screenshot_ids: Iterable[str] = ()) -> set[str]:
        """Frames seen by analysis, the gate, or the screenshot store."""
        ids = set(self.analysis_by_frame)
        ids.update(self.gate_by_frame)
        ids.update(screenshot_ids)
        return ids

    def is_known_frame(self, frame_id: str) -> bool:
        return (
            frame_id in self.analysis_by_frame
            or frame_id in self.gate_by_frame
            or frame_id in self.contributions_by_frame
        )

    def orphaned_scored_ids(self) -> list[str]:
        """Scored suggestions with no generation record anywhere."""
        return sorted(sid for sid in self.scored_by_id if sid not in self.generated_by_id)


def _first_by_key(records, key, label: str) -> dict:
    index = {}
    for record in records:
        k = key(record)
        if k in index:
            logger.debug(f"Duplicate {label} for {k}; keeping first")
            continue
        index[k] = record
    return index
