"""Read-only stores over pipeline outputs."""

from evaltrace.stores.base import InMemoryRepository, JsonDirRepository, Repository
from evaltrace.stores.live_state import LiveStateProvider, StateFileLiveState, StaticLiveState
from evaltrace.stores.screenshots import ScreenshotStore

__all__ = [
    "Repository",
    "JsonDirRepository",
    "InMemoryRepository",
    "LiveStateProvider",
    "StateFileLiveState",
    "StaticLiveState",
    "ScreenshotStore",
]
