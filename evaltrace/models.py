"""Pydantic models for pipeline stage records and reconstructed traces."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

FrameKind = Literal["periodic", "before", "after"]
GateDecision = str  # CONTINUE | SKIP


class _Record(BaseModel):
    """Base for everything read from or written as camelCase JSON.

    Producers write camelCase keys; Python code uses snake_case attributes.
    Unknown keys are ignored so producers can add fields without breaking reads.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


# ---------------------------------------------------------------------------
# Stage records (written by the pipeline, read-only here)
# ---------------------------------------------------------------------------


class AnalysisContent(_Record):
    description: str = ""
    activities: list[str] = Field(default_factory=list)
    applications: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)


class FrameAnalysis(_Record):
    """Output of the frame analysis stage for one screenshot."""

    frame_id: str
    frame_path: str = ""
    timestamp: int = 0  # ms since epoch
    analysis: AnalysisContent = Field(default_factory=AnalysisContent)
    processed_at: int = 0
    used_llm: bool = Field(default=False, alias="usedLLM")  # False = served from cache


class GateResult(_Record):
    """Concentration gate decision for one frame."""

    frame_id: str
    decision: GateDecision | None = None
    importance: float = 0.0  # nominally 0-1
    reason: str = ""
    processed_at: int = 0


class GeneratedSuggestion(_Record):
    id: str
    title: str = ""
    description: str = ""
    approach: str = ""
    keywords: list[str] = Field(default_factory=list)
    support_evidence: str = ""
    raw_support: float = 0  # nominally an integer 0-10
    source_frames: list[str] = Field(default_factory=list)
    generated_at: int = 0

    def distinct_source_frames(self) -> list[str]:
        """Source frames in order, each listed once."""
        return list(dict.fromkeys(self.source_frames))


class SuggestionBatch(_Record):
    """One run of the suggestion generation stage."""

    batch_id: str
    frame_analyses: list[FrameAnalysis] = Field(default_factory=list)
    suggestions: list[GeneratedSuggestion] = Field(default_factory=list)
    generated_at: int = 0


class ScoringScores(_Record):
    """Score components; which ones are present depends on the scorer version.

    None means the scorer did not write that component. Only ``combined``
    feeds support resolution.
    """

    benefit: float | None = None
    disruption_cost: float | None = None
    miss_cost: float | None = None
    decay: float | None = None
    combined: float | None = None
    # 0-10 components written by the weighted scorer
    importance: float | None = None
    confidence: float | None = None
    timeliness: float | None = None
    actionability: float | None = None
    composite_score: float | None = None

    def components(self) -> dict[str, float]:
        """Present components in declaration order."""
        return {name: value for name, value in self if value is not None}


class FilterDecision(_Record):
    passed: bool | None = None
    reason: str = ""


class ScoredSuggestion(GeneratedSuggestion):
    scores: ScoringScores | None = None
    filter_decision: FilterDecision | None = None
    scored_at: int = 0


class ScoringResult(_Record):
    """One run of the scoring/filtering stage."""

    batch_id: str
    input_suggestions: list[GeneratedSuggestion] = Field(default_factory=list)
    scored_suggestions: list[ScoredSuggestion] = Field(default_factory=list)
    passed_suggestions: list[ScoredSuggestion] = Field(default_factory=list)
    filtered_out: list[ScoredSuggestion] = Field(default_factory=list)
    scored_at: int = 0


class SuggestionSimilarity(_Record):
    """Pairwise comparison recorded by the dedup stage."""

    suggestion1_id: str = Field(alias="suggestion1Id")
    suggestion2_id: str = Field(alias="suggestion2Id")
    similarity: float = 0.0  # nominally 0-1, unclamped LLM output
    is_duplicate: bool = False
    classification: str = ""
    reason: str = ""

    def involves(self, suggestion_id: str) -> bool:
        return suggestion_id in (self.suggestion1_id, self.suggestion2_id)


class DedupResult(_Record):
    """One run of the deduplication stage."""

    batch_id: str
    input_suggestions: list[ScoredSuggestion] = Field(default_factory=list)
    unique_suggestions: list[ScoredSuggestion] = Field(default_factory=list)
    duplicates_removed: list[ScoredSuggestion] = Field(default_factory=list)
    clustered_into: dict[str, list[ScoredSuggestion]] = Field(default_factory=dict)
    similarities: list[SuggestionSimilarity] = Field(default_factory=list)
    processed_at: int = 0


class LiveSuggestion(_Record):
    """Current user-visible suggestion from the live store (state.json).

    Every display field is optional: None means "no live value", so the
    pipeline snapshot shows through.
    """

    suggestion_id: str
    title: str | None = None
    description: str | None = None
    approach: str | None = None
    keywords: list[str] | None = None
    status: str | None = None  # active | closed | complete
    support: float | None = None
    created_at: int | None = None
    updated_at: int | None = None
    closed_at: int | None = None


# ---------------------------------------------------------------------------
# Trace and summary views (built on every request)
# ---------------------------------------------------------------------------


class FrameSummary(_Record):
    frame_id: str
    timestamp: int
    kind: FrameKind = Field(alias="type")
    has_analysis: bool = False
    gate_decision: GateDecision | None = None
    contributed_to_suggestions: int = 0


class DedupStatus(_Record):
    is_unique: bool
    similarities: list[SuggestionSimilarity] = Field(default_factory=list)


class DedupInfo(DedupStatus):
    batch_id: str
    processed_at: int = 0

    def status(self) -> DedupStatus:
        return DedupStatus(is_unique=self.is_unique, similarities=self.similarities)


class FrameSuggestionInfo(_Record):
    """A contributed suggestion as shown inside a frame trace."""

    suggestion_id: str
    title: str
    description: str
    approach: str
    keywords: list[str] = Field(default_factory=list)
    status: str
    support: float
    raw_support: float
    scores: ScoringScores | None = None
    filter_decision: FilterDecision | None = None
    deduplication: DedupStatus | None = None


class FrameTrace(_Record):
    frame_id: str
    timestamp: int
    screenshot_path: str = ""
    kind: FrameKind = Field(alias="type")
    analysis: FrameAnalysis | None = None
    gate_result: GateResult | None = None
    contributed_to: list[str] = Field(default_factory=list)
    suggestions: list[FrameSuggestionInfo] = Field(default_factory=list)


class SuggestionSummary(_Record):
    suggestion_id: str
    title: str
    status: str
    support: float
    created_at: int
    source_frame_count: int


class GenerationInfo(_Record):
    batch_id: str
    raw_support: float
    support_evidence: str = ""
    generated_at: int = 0


class ScoringInfo(_Record):
    batch_id: str
    scores: ScoringScores | None = None
    filter_decision: FilterDecision | None = None
    scored_at: int = 0


class SuggestionTrace(_Record):
    suggestion_id: str
    title: str
    description: str
    approach: str
    keywords: list[str] = Field(default_factory=list)
    status: str
    support: float
    created_at: int
    source_frames: list[FrameSummary] = Field(default_factory=list)
    generation: GenerationInfo | None = None
    scoring: ScoringInfo | None = None
    deduplication: DedupInfo | None = None


class PipelineStatus(_Record):
    """Record counts per stage plus integrity anomalies found while joining."""

    data_dir: str
    stage_counts: dict[str, int] = Field(default_factory=dict)
    screenshot_count: int = 0
    live_suggestion_count: int = 0
    orphaned_scored_ids: list[str] = Field(default_factory=list)
