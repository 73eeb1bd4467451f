"""Configuration — .env loading, data directory, stage layout."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# evaltrace home directory (logs, metrics, persisted .env)
EVALTRACE_HOME = Path.home() / ".evaltrace"

# Load .env files: ~/.evaltrace/.env first, then project .env
_home_env = EVALTRACE_HOME / ".env"
if _home_env.exists():
    load_dotenv(_home_env)
load_dotenv()  # project .env (won't overwrite already-set vars)


def _default_data_dir() -> Path:
    """Resolve the pipeline data directory: env var override or ~/.evaltrace/data."""
    env = os.getenv("EVALTRACE_DATA_DIR")
    if env:
        return Path(env).expanduser().resolve()
    return EVALTRACE_HOME / "data"


def _default_log_dir() -> Path:
    env = os.getenv("EVALTRACE_LOG_DIR")
    if env:
        return Path(env).expanduser().resolve()
    return EVALTRACE_HOME / "logs"


@dataclass(frozen=True)
class StageLayout:
    """Directory names the pipeline stages write into, relative to the data dir."""

    frame_analysis: str = "frame_analysis"
    concentration_gate: str = "concentration_gate"
    suggestion_generation: str = "suggestion_generation"
    scoring_filtering: str = "scoring_filtering"
    deduplication: str = "deduplication"
    screenshots: str = "screenshots"
    state_file: str = "state.json"
    record_extension: str = ".json"


DEFAULT_LAYOUT = StageLayout()


@dataclass(frozen=True)
class EvalConfig:
    """Fully resolved paths for one pipeline data directory.

    Built once and handed to the service; nothing reads paths from module state.
    """

    data_dir: Path
    frame_analysis_dir: Path
    concentration_gate_dir: Path
    suggestion_generation_dir: Path
    scoring_filtering_dir: Path
    deduplication_dir: Path
    screenshots_dir: Path
    state_path: Path
    log_dir: Path
    record_extension: str = ".json"

    @classmethod
    def from_data_dir(
        cls,
        data_dir: str | Path,
        *,
        layout: StageLayout = DEFAULT_LAYOUT,
        log_dir: str | Path | None = None,
    ) -> EvalConfig:
        root = Path(data_dir).expanduser().resolve()
        if not layout.record_extension.startswith("."):
            raise ValueError(f"Invalid record extension: {layout.record_extension!r}")
        return cls(
            data_dir=root,
            frame_analysis_dir=root / layout.frame_analysis,
            concentration_gate_dir=root / layout.concentration_gate,
            suggestion_generation_dir=root / layout.suggestion_generation,
            scoring_filtering_dir=root / layout.scoring_filtering,
            deduplication_dir=root / layout.deduplication,
            screenshots_dir=root / layout.screenshots,
            state_path=root / layout.state_file,
            log_dir=Path(log_dir).expanduser().resolve() if log_dir else _default_log_dir(),
            record_extension=layout.record_extension,
        )

    def stage_dirs(self) -> dict[str, Path]:
        """Stage name → directory, in pipeline order."""
        return {
            "frame_analysis": self.frame_analysis_dir,
            "concentration_gate": self.concentration_gate_dir,
            "suggestion_generation": self.suggestion_generation_dir,
            "scoring_filtering": self.scoring_filtering_dir,
            "deduplication": self.deduplication_dir,
        }


def load_config(
    data_dir: str | Path | None = None, *, log_dir: str | Path | None = None
) -> EvalConfig:
    """Build the config: explicit data dir, else EVALTRACE_DATA_DIR, else default."""
    return EvalConfig.from_data_dir(data_dir or _default_data_dir(), log_dir=log_dir)
