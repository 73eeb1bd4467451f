"""Field precedence between pipeline snapshots and the live suggestion.

A suggestion is recorded several times: once at generation, once when scored,
and then as a live record the user can edit. When showing a suggestion, each
field is taken from the most current source that has a value:

    title, description, approach, keywords:  live → generated
    status:                                  live → "generated"
    support:                                 live.support → scores.combined → raw_support / 10

A source "has a value" when the field is not None. Zero and empty strings are
real values and win over later tiers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypeVar

from evaltrace.models import GeneratedSuggestion, LiveSuggestion, ScoredSuggestion

V = TypeVar("V")

DEFAULT_STATUS = "generated"
RAW_SUPPORT_SCALE = 10


def first_present(*candidates: V | None) -> V | None:
    """First candidate that is not None."""
    for candidate in candidates:
        if candidate is not None:
            return candidate
    return None


@dataclass(frozen=True)
class DisplayFields:
    title: str
    description: str
    approach: str
    keywords: list[str]
    status: str


def _live(live: LiveSuggestion | None, name: str):
    return getattr(live, name) if live is not None else None


def resolve_display(
    live: LiveSuggestion | None, generated: GeneratedSuggestion
) -> DisplayFields:
    return DisplayFields(
        title=first_present(_live(live, "title"), generated.title),
        description=first_present(_live(live, "description"), generated.description),
        approach=first_present(_live(live, "approach"), generated.approach),
        keywords=list(first_present(_live(live, "keywords"), generated.keywords)),
        status=resolve_status(live),
    )


def resolve_status(live: LiveSuggestion | None) -> str:
    return first_present(_live(live, "status"), DEFAULT_STATUS)


def resolve_support(
    live: LiveSuggestion | None,
    scored: ScoredSuggestion | None,
    generated: GeneratedSuggestion,
) -> float:
    """Support gets more accurate the further a suggestion travels: live wins."""
    combined = scored.scores.combined if scored is not None and scored.scores is not None else None
    return first_present(
        _live(live, "support"),
        combined,
        generated.raw_support / RAW_SUPPORT_SCALE,
    )
