"""Click CLI for evaltrace."""

from __future__ import annotations

import asyncio
import base64
import json
import sys
from datetime import UTC, datetime
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from evaltrace import __version__
from evaltrace.config import EvalConfig, load_config
from evaltrace.metrics import MetricsTracker, setup_logging
from evaltrace.service import EvaluationService

console = Console()

_FORMAT_OPTION = click.option(
    "--format",
    "-f",
    "fmt",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)


def get_service(config: EvalConfig) -> EvaluationService:
    return EvaluationService(config)


def _fmt_ms(ms: int) -> str:
    """Epoch milliseconds as local time; '-' when unknown."""
    if not ms:
        return "-"
    return datetime.fromtimestamp(ms / 1000, UTC).astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _verdict(decision) -> str:
    if decision is None or decision.passed is None:
        return "-"
    return "passed" if decision.passed else "filtered"


def _to_json(value) -> str:
    if value is None:
        return "null"
    if isinstance(value, list):
        return json.dumps([v.model_dump(mode="json", by_alias=True) for v in value], indent=2)
    return value.model_dump_json(by_alias=True, indent=2)


@click.group()
@click.option(
    "--data-dir",
    "-d",
    default=None,
    type=click.Path(file_okay=False, path_type=Path),
    help="Pipeline data directory (default: EVALTRACE_DATA_DIR or ~/.evaltrace/data)",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging")
@click.version_option(__version__)
@click.pass_context
def cli(ctx: click.Context, data_dir: Path | None, verbose: bool) -> None:
    """evaltrace — reconstruct what the suggestion pipeline did with each frame."""
    ctx.ensure_object(dict)
    config = load_config(data_dir)
    ctx.obj["config"] = config
    ctx.obj["tracker"] = MetricsTracker(config.log_dir)
    setup_logging(config.log_dir, verbose=verbose)


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show record counts per stage and integrity anomalies."""
    config: EvalConfig = ctx.obj["config"]
    service = get_service(config)
    with ctx.obj["tracker"].track("status") as metrics:
        info = asyncio.run(service.get_status())
        metrics.records_returned = sum(info.stage_counts.values())

    console.print(f"\n[bold]Pipeline Status[/bold] — data: [cyan]{info.data_dir}[/cyan]\n")

    table = Table(title="Stage Outputs")
    table.add_column("Stage", style="cyan")
    table.add_column("Records", justify="right", style="green")
    for stage, count in info.stage_counts.items():
        table.add_row(stage, str(count))
    table.add_row("screenshots", str(info.screenshot_count))
    table.add_row("live suggestions", str(info.live_suggestion_count))
    console.print(table)

    if info.orphaned_scored_ids:
        console.print(
            f"\n[yellow]{len(info.orphaned_scored_ids)} scored suggestion(s) "
            f"have no generation record:[/yellow]"
        )
        for sid in info.orphaned_scored_ids:
            console.print(f"  [dim]{sid}[/dim]")


@cli.command()
@click.option("--limit", "-n", default=50, help="Max frames to show")
@_FORMAT_OPTION
@click.pass_context
def frames(ctx: click.Context, limit: int, fmt: str) -> None:
    """List captured frames, newest first."""
    service = get_service(ctx.obj["config"])
    with ctx.obj["tracker"].track("list_frames") as metrics:
        summaries = asyncio.run(service.list_frames())[:limit]
        metrics.records_returned = len(summaries)

    if fmt == "json":
        click.echo(_to_json(summaries))
        return
    if not summaries:
        console.print("[dim]No frames found.[/dim]")
        return

    table = Table(title="Frames")
    table.add_column("Frame", style="cyan")
    table.add_column("Captured")
    table.add_column("Type")
    table.add_column("Analyzed", justify="center")
    table.add_column("Gate")
    table.add_column("Suggestions", justify="right", style="green")
    for s in summaries:
        table.add_row(
            s.frame_id,
            _fmt_ms(s.timestamp),
            s.kind,
            "yes" if s.has_analysis else "[dim]no[/dim]",
            s.gate_decision or "-",
            str(s.contributed_to_suggestions),
        )
    console.print(table)


@cli.command()
@click.option("--limit", "-n", default=50, help="Max suggestions to show")
@_FORMAT_OPTION
@click.pass_context
def suggestions(ctx: click.Context, limit: int, fmt: str) -> None:
    """List generated suggestions, newest first."""
    service = get_service(ctx.obj["config"])
    with ctx.obj["tracker"].track("list_suggestions") as metrics:
        summaries = asyncio.run(service.list_suggestions())[:limit]
        metrics.records_returned = len(summaries)

    if fmt == "json":
        click.echo(_to_json(summaries))
        return
    if not summaries:
        console.print("[dim]No suggestions found.[/dim]")
        return

    table = Table(title="Suggestions")
    table.add_column("Suggestion", style="cyan")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Support", justify="right", style="green")
    table.add_column("Created")
    table.add_column("Frames", justify="right")
    for s in summaries:
        table.add_row(
            s.suggestion_id,
            s.title,
            s.status,
            f"{s.support:.2f}",
            _fmt_ms(s.created_at),
            str(s.source_frame_count),
        )
    console.print(table)


@cli.command()
@click.argument("frame_id")
@_FORMAT_OPTION
@click.pass_context
def frame(ctx: click.Context, frame_id: str, fmt: str) -> None:
    """Show the full pipeline trace for one frame."""
    service = get_service(ctx.obj["config"])
    with ctx.obj["tracker"].track("frame_trace", frame_id=frame_id) as metrics:
        trace = asyncio.run(service.get_frame_trace(frame_id))
        metrics.records_returned = 0 if trace is None else 1

    if fmt == "json":
        click.echo(_to_json(trace))
        if trace is None:
            sys.exit(1)
        return
    if trace is None:
        console.print(f"[red]Unknown frame: {frame_id}[/red]")
        sys.exit(1)

    console.print(f"\n[bold]Frame[/bold] [cyan]{trace.frame_id}[/cyan] ({trace.kind})")
    console.print(f"  Captured:   {_fmt_ms(trace.timestamp)}")
    console.print(f"  Screenshot: {trace.screenshot_path or '[dim]missing[/dim]'}")

    if trace.analysis:
        a = trace.analysis
        source = "LLM" if a.used_llm else "cache"
        console.print(f"\n[bold]Analysis[/bold] ({source})")
        console.print(f"  {a.analysis.description}")
        if a.analysis.applications:
            console.print(f"  Apps:       {', '.join(a.analysis.applications)}")
        if a.analysis.activities:
            console.print(f"  Activities: {', '.join(a.analysis.activities)}")
    else:
        console.print("\n[dim]Not analyzed yet.[/dim]")

    if trace.gate_result:
        g = trace.gate_result
        color = "green" if g.decision == "CONTINUE" else "yellow"
        console.print(
            f"\n[bold]Gate[/bold] [{color}]{g.decision or '-'}[/{color}] "
            f"importance={g.importance:.2f} — {g.reason}"
        )

    if not trace.suggestions:
        console.print("\n[dim]Did not contribute to any suggestion.[/dim]")
        return

    table = Table(title="Contributed To")
    table.add_column("Suggestion", style="cyan")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Support", justify="right", style="green")
    table.add_column("Filter")
    table.add_column("Dedup")
    for s in trace.suggestions:
        filt = _verdict(s.filter_decision)
        dedup = "-"
        if s.deduplication:
            dedup = "unique" if s.deduplication.is_unique else "duplicate"
        table.add_row(s.suggestion_id, s.title, s.status, f"{s.support:.2f}", filt, dedup)
    console.print(table)


@cli.command()
@click.argument("suggestion_id")
@_FORMAT_OPTION
@click.pass_context
def suggestion(ctx: click.Context, suggestion_id: str, fmt: str) -> None:
    """Show the full pipeline trace for one suggestion."""
    service = get_service(ctx.obj["config"])
    with ctx.obj["tracker"].track("suggestion_trace", suggestion_id=suggestion_id) as metrics:
        trace = asyncio.run(service.get_suggestion_trace(suggestion_id))
        metrics.records_returned = 0 if trace is None else 1

    if fmt == "json":
        click.echo(_to_json(trace))
        if trace is None:
            sys.exit(1)
        return
    if trace is None:
        console.print(f"[red]Unknown suggestion: {suggestion_id}[/red]")
        sys.exit(1)

    console.print(f"\n[bold]{trace.title}[/bold] [dim]({trace.suggestion_id})[/dim]")
    console.print(f"  Status:  {trace.status}")
    console.print(f"  Support: {trace.support:.2f}")
    console.print(f"  Created: {_fmt_ms(trace.created_at)}")
    if trace.description:
        console.print(f"\n{trace.description}")

    gen = trace.generation
    console.print(
        f"\n[bold]Generation[/bold] batch={gen.batch_id} raw_support={gen.raw_support:g}"
    )
    if gen.support_evidence:
        console.print(f"  Evidence: {gen.support_evidence}")

    if trace.scoring:
        sc = trace.scoring
        console.print(f"\n[bold]Scoring[/bold] batch={sc.batch_id} {_verdict(sc.filter_decision)}")
        components = sc.scores.components() if sc.scores else {}
        if components:
            console.print("  " + " ".join(f"{name}={value:.2f}" for name, value in components.items()))
        if sc.filter_decision and sc.filter_decision.reason:
            console.print(f"  Reason: {sc.filter_decision.reason}")
    else:
        console.print("\n[dim]Not scored.[/dim]")

    if trace.deduplication:
        dd = trace.deduplication
        outcome = "unique" if dd.is_unique else "removed as duplicate"
        console.print(f"\n[bold]Deduplication[/bold] batch={dd.batch_id} {outcome}")
        for sim in dd.similarities:
            other = sim.suggestion2_id if sim.suggestion1_id == trace.suggestion_id else sim.suggestion1_id
            console.print(
                f"  vs {other}: {sim.similarity:.2f} {sim.classification}"
                f"{' (duplicate)' if sim.is_duplicate else ''}"
            )

    if trace.source_frames:
        console.print("\n[bold]Source frames[/bold]")
        for f in trace.source_frames:
            console.print(f"  {f.frame_id}  {_fmt_ms(f.timestamp)}  {f.gate_decision or '-'}")


@cli.command()
@click.argument("frame_id")
@click.option("--out", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Write image to file")
@click.pass_context
def screenshot(ctx: click.Context, frame_id: str, out: Path | None) -> None:
    """Print a frame's screenshot as a data URI, or save it with --out."""
    service = get_service(ctx.obj["config"])
    with ctx.obj["tracker"].track("screenshot", frame_id=frame_id) as metrics:
        uri = asyncio.run(service.get_screenshot(frame_id))
        metrics.records_returned = 0 if uri is None else 1

    if uri is None:
        console.print(f"[red]No screenshot for frame: {frame_id}[/red]")
        sys.exit(1)

    if out:
        out.write_bytes(base64.b64decode(uri.split(",", 1)[1]))
        console.print(f"[green]Screenshot written to {out}[/green]")
    else:
        click.echo(uri)


@cli.command()
@click.pass_context
def metrics(ctx: click.Context) -> None:
    """Show query timing metrics."""
    summary = ctx.obj["tracker"].get_summary()
    if not summary["total_runs"]:
        console.print("[dim]No metrics recorded yet.[/dim]")
        return

    table = Table(title=f"Queries ({summary['total_runs']} total)")
    table.add_column("Operation", style="cyan")
    table.add_column("Count", justify="right")
    table.add_column("Avg seconds", justify="right")
    table.add_column("Records", justify="right", style="green")
    table.add_column("Errors", justify="right", style="red")
    for op, stats in summary["by_operation"].items():
        avg = stats["total_seconds"] / stats["count"] if stats["count"] else 0.0
        table.add_row(op, str(stats["count"]), f"{avg:.3f}", str(stats["records"]), str(stats["errors"]))
    console.print(table)


@cli.command()
@click.option("--port", default=3847, help="Port for HTTP transport")
@click.option("--transport", type=click.Choice(["stdio", "http"]), default="stdio")
@click.pass_context
def serve(ctx: click.Context, port: int, transport: str) -> None:
    """Start the MCP server (stdio by default)."""
    from evaltrace.mcp_server import create_server

    server = create_server(ctx.obj["config"], port=port)
    if transport == "stdio":
        server.run(transport="stdio")
    else:
        server.run(transport="streamable-http")
