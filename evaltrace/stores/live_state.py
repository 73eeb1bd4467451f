"""Live suggestion state — the user-visible, editable version of each suggestion."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path

from pydantic import ValidationError

from evaltrace.models import LiveSuggestion

logger = logging.getLogger(__name__)


class LiveStateProvider(ABC):
    """Read-only view over the live suggestion store."""

    @abstractmethod
    def current_suggestions(self) -> list[LiveSuggestion]:
        ...

    def by_id(self) -> dict[str, LiveSuggestion]:
        return {s.suggestion_id: s for s in self.current_suggestions()}


class StateFileLiveState(LiveStateProvider):
    """Reads the ``suggestions`` array of the app's state.json.

    The app rewrites this file atomically, so a read sees either the old or the
    new state. A missing or unreadable file means no live overrides.
    """

    def __init__(self, state_path: str | Path):
        self.state_path = Path(state_path)

    def current_suggestions(self) -> list[LiveSuggestion]:
        if not self.state_path.exists():
            return []
        try:
            data = json.loads(self.state_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable live state {self.state_path}: {e}")
            return []

        raw = data.get("suggestions") if isinstance(data, dict) else None
        if not isinstance(raw, list):
            return []

        suggestions = []
        for item in raw:
            try:
                suggestions.append(LiveSuggestion.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping malformed live suggestion: {e}")
        return suggestions


class StaticLiveState(LiveStateProvider):
    """Fixed set of live suggestions."""

    def __init__(self, suggestions: Iterable[LiveSuggestion] = ()):
        self.suggestions = list(suggestions)

    def current_suggestions(self) -> list[LiveSuggestion]:
        return list(self.suggestions)
