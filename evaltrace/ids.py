"""Frame identifier parsing.

Capture writes frames as ``frame_<ms timestamp>_<kind>``, where kind is
``periodic`` or ``before``/``after`` around a user action. Parsing is total:
anything unrecognised falls back to timestamp 0 and kind ``periodic``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from evaltrace.models import FrameKind

_TIMESTAMP_RE = re.compile(r"frame_(\d+)_")

_KIND_SUFFIXES: tuple[tuple[str, FrameKind], ...] = (
    ("_periodic", "periodic"),
    ("_before", "before"),
    ("_after", "after"),
)


@dataclass(frozen=True)
class FrameRef:
    frame_id: str
    timestamp: int
    kind: FrameKind


def frame_timestamp(frame_id: str) -> int:
    match = _TIMESTAMP_RE.search(frame_id)
    return int(match.group(1)) if match else 0


def frame_kind(frame_id: str) -> FrameKind:
    for suffix, kind in _KIND_SUFFIXES:
        if frame_id.endswith(suffix):
            return kind
    return "periodic"


def parse_frame_id(frame_id: str) -> FrameRef:
    return FrameRef(
        frame_id=frame_id,
        timestamp=frame_timestamp(frame_id),
        kind=frame_kind(frame_id),
    )
