"""FastMCP server — exposes pipeline traces to MCP clients.

Tools mirror the CLI: list_frames, list_suggestions, get_frame_trace,
get_suggestion_trace, get_screenshot, pipeline_status. Every tool returns
camelCase JSON text, or "null" for an unknown id.
"""

from __future__ import annotations

import json
import logging
import time

from mcp.server.fastmcp import FastMCP

from evaltrace.config import EvalConfig
from evaltrace.service import EvaluationService

logger = logging.getLogger(__name__)


def _dump(value) -> str:
    if value is None:
        return "null"
    if isinstance(value, list):
        return json.dumps([v.model_dump(mode="json", by_alias=True) for v in value])
    return value.model_dump_json(by_alias=True)


def create_server(
    config: EvalConfig,
    *,
    service: EvaluationService | None = None,
    host: str = "127.0.0.1",
    port: int = 3847,
) -> FastMCP:
    """Create an MCP server over one pipeline data directory."""
    mcp = FastMCP(
        "evaltrace",
        instructions=(
            "evaltrace — read-only traces of the screen-activity suggestion pipeline.\n\n"
            "Browse with list_frames() or list_suggestions(), then drill into one item "
            "with get_frame_trace(frame_id) or get_suggestion_trace(suggestion_id). "
            "A frame trace shows its analysis, gate decision, and every suggestion it "
            "fed. A suggestion trace shows its generation batch, scores, filter and "
            "dedup outcome, and source frames. pipeline_status() reports record counts "
            "and scored suggestions that have no generation record."
        ),
        host=host,
        port=port,
    )
    svc = service or EvaluationService(config)

    def _log_call(tool_name: str, started: float, result: str) -> None:
        logger.debug(
            f"[mcp] {tool_name}: {(time.monotonic() - started) * 1000:.1f}ms, "
            f"{len(result)} chars"
        )

    @mcp.tool()
    async def list_frames(limit: int = 100) -> str:
        """List captured frames, newest first.

        Each entry has frameId, timestamp (ms), type (periodic|before|after),
        hasAnalysis, gateDecision (CONTINUE|SKIP or null) and
        contributedToSuggestions.
        """
        started = time.monotonic()
        result = _dump((await svc.list_frames())[:limit])
        _log_call("list_frames", started, result)
        return result

    @mcp.tool()
    async def list_suggestions(limit: int = 100) -> str:
        """List generated suggestions, newest first, with resolved status and support."""
        started = time.monotonic()
        result = _dump((await svc.list_suggestions())[:limit])
        _log_call("list_suggestions", started, result)
        return result

    @mcp.tool()
    async def get_frame_trace(frame_id: str) -> str:
        """Full pipeline trace for one frame: analysis, gate result, contributed suggestions."""
        started = time.monotonic()
        result = _dump(await svc.get_frame_trace(frame_id))
        _log_call("get_frame_trace", started, result)
        return result

    @mcp.tool()
    async def get_suggestion_trace(suggestion_id: str) -> str:
        """Full pipeline trace for one suggestion: generation, scoring, dedup, source frames."""
        started = time.monotonic()
        result = _dump(await svc.get_suggestion_trace(suggestion_id))
        _log_call("get_suggestion_trace", started, result)
        return result

    @mcp.tool()
    async def get_screenshot(frame_id: str) -> str:
        """Frame screenshot as a base64 data URI, or "null" if there is none."""
        uri = await svc.get_screenshot(frame_id)
        return json.dumps(uri)

    @mcp.tool()
    async def pipeline_status() -> str:
        """Record counts per stage and data-integrity anomalies."""
        return _dump(await svc.get_status())

    return mcp
