#!/usr/bin/env python3
"""
Command line interface for Crucible Monitor.
"""

import json
import sys
from pathlib import Path
from typing import List

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .__version__ import __version__
from .analyzers import classify_session_state, detect_lag_spike, generate_match_summary, rate_connection_quality
from .config import get_config
from .exceptions import ConfigurationError, InvalidMetricError
from .models import MetricSample, SampleObservation, SessionSummary
from .report_generator import ReportGenerator
from .session import SessionContext
from .terminology import as_dict as terminology_tables
from .terminology import match_state_label
from .utils.logging_config import setup_logging
from .utils.nanoseconds import format_ns
from .utils.traffic import format_match_duration
from .validation import validate_sample

console = Console()

QUALITY_STYLES = {
    "excellent": "bold green",
    "good": "green",
    "fair": "yellow",
    "poor": "red",
    "critical": "bold red",
}


def _print_summary(summary: SessionSummary) -> None:
    style = QUALITY_STYLES.get(summary.overall_rating, "white")
    lines = [f"[bold]Rating:[/bold] [{style}]{summary.overall_rating.upper()}[/{style}]", "", summary.verdict]
    if summary.highlights:
        lines.append("")
        lines.extend(f"[green]+ {h}[/green]" for h in summary.highlights)
    if summary.issues:
        lines.append("")
        lines.extend(f"[red]- {i}[/red]" for i in summary.issues)
    console.print(Panel("\n".join(lines), title="Match Summary", border_style=style))


def _load_recording(path: Path) -> List[MetricSample]:
    """Read a JSONL recording, one sample per line. Blank lines are skipped."""
    samples = []
    with open(path, encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError as e:
                raise click.ClickException(f"{path}:{line_no}: invalid JSON ({e.msg})")
            if not isinstance(data, dict):
                raise click.ClickException(f"{path}:{line_no}: expected a JSON object")
            samples.append(MetricSample.from_dict(data))
    return samples


@click.group()
@click.version_option(__version__, prog_name="crucible")
@click.option("-c", "--config", type=click.Path(), help="Configuration file (default: config.yaml)")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Console log level",
)
@click.pass_context
def cli(ctx, config, log_level):
    """Real-time match and connection classifier"""
    try:
        cfg = get_config(config)
    except (FileNotFoundError, ConfigurationError) as e:
        raise click.ClickException(str(e))

    setup_logging(log_level=log_level, enable_file=False, enable_events=False)
    ctx.obj = cfg


@cli.command()
@click.argument("latency", type=float)
@click.argument("loss", type=float)
@click.argument("jitter", type=float)
@click.option("--json", "as_json", is_flag=True, help="Print the rating as JSON")
def rate(latency, loss, jitter, as_json):
    """
    Rate connection quality

    Example:
        crucible rate 25 0.1 4
    """
    rating = rate_connection_quality(latency, loss, jitter)
    if as_json:
        click.echo(json.dumps(rating.to_dict()))
        return

    style = QUALITY_STYLES[rating.rating]
    console.print(f"[{style}]{rating.rating.upper()}[/{style}] score {rating.score}/100 - {rating.label}")


@cli.command()
@click.argument("bps", type=float)
@click.argument("peers", type=int)
@click.argument("bungie_pct", type=float)
@click.argument("p2p_pct", type=float)
@click.option(
    "--previous",
    type=click.Choice(["orbit", "matchmaking", "loading", "in_match", "post_game"]),
    help="State of the previous sample",
)
@click.option("--json", "as_json", is_flag=True, help="Print the state as JSON")
def classify(bps, peers, bungie_pct, p2p_pct, previous, as_json):
    """
    Classify the session phase from traffic counters

    Example:
        crucible classify 120000 8 20 70
        crucible classify 5000 1 80 20 --previous in_match
    """
    state = classify_session_state(bps, peers, bungie_pct, p2p_pct, previous_state=previous)
    if as_json:
        click.echo(json.dumps(state.to_dict()))
        return
    console.print(f"[cyan]{state.state}[/cyan] ({state.label}) confidence {state.confidence:.1f}%")


@cli.command()
@click.argument("current", type=float)
@click.argument("average", type=float)
@click.option("--json", "as_json", is_flag=True, help="Print the verdict as JSON")
def spike(current, average, as_json):
    """
    Check a latency sample against the rolling average

    Example:
        crucible spike 160 40
    """
    event = detect_lag_spike(current, average)
    if as_json:
        click.echo(json.dumps(event.to_dict()))
        return
    if event.is_spike:
        style = "bold red" if event.severity == "critical" else "yellow"
        console.print(f"[{style}]{event.severity.upper()}[/{style}] {event.description}")
    else:
        console.print("[green]No lag spike[/green]")


@cli.command()
@click.option("--duration-ms", type=float, default=0.0, help="Session length in milliseconds")
@click.option("--avg-latency", type=float, required=True, help="Average latency (ms)")
@click.option("--max-latency", type=float, required=True, help="Peak latency (ms)")
@click.option("--loss", type=float, default=0.0, help="Packet loss (%)")
@click.option("--jitter", type=float, default=0.0, help="Average jitter (ms)")
@click.option("--peers", type=int, default=0, help="Peers in the lobby")
@click.option("--spikes", type=int, default=0, help="Lag spikes during the session")
@click.option("--json", "as_json", is_flag=True, help="Print the summary as JSON")
def summary(duration_ms, avg_latency, max_latency, loss, jitter, peers, spikes, as_json):
    """
    Summarize a completed session from its aggregates

    Example:
        crucible summary --duration-ms 600000 --avg-latency 25 --max-latency 40 --peers 11
    """
    result = generate_match_summary(duration_ms, avg_latency, max_latency, loss, jitter, peers, spikes)
    if as_json:
        click.echo(json.dumps(result.to_dict()))
        return
    console.print(f"[bold]Duration:[/bold] {format_match_duration(duration_ms)}")
    _print_summary(result)


@cli.command()
@click.argument("recording", type=click.Path(exists=True, dir_okay=False))
@click.option("-o", "--json-output", type=click.Path(dir_okay=False), help="Write a JSON session report")
@click.option("--strict", is_flag=True, help="Reject out-of-range samples")
@click.option("--session-id", default=None, help="Session id used in the report (default: file name)")
@click.pass_obj
def replay(cfg, recording, json_output, strict, session_id):
    """
    Replay a JSONL telemetry recording through the classifier

    Each line is one sample, e.g.:
        {"timestamp": 1700000000000000000, "latency_ms": 32, "jitter_ms": 4, ...}

    Example:
        crucible replay match.jsonl -o report.json
    """
    path = Path(recording)
    session_id = session_id or path.stem
    samples = _load_recording(path)
    if not samples:
        raise click.ClickException(f"{path}: no samples")

    strict = strict or bool(cfg.get("ingestion.strict_validation", False))
    context = SessionContext(session_id, window_size=cfg.get("ingestion.rolling_window", 10))
    observations: List[SampleObservation] = []

    table = Table(title=f"Replay: {path.name}", show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Time")
    table.add_column("Latency", justify="right")
    table.add_column("Loss", justify="right")
    table.add_column("Jitter", justify="right")
    table.add_column("State")
    table.add_column("Quality")
    table.add_column("Spike")

    for index, sample in enumerate(samples, start=1):
        if strict:
            try:
                validate_sample(sample)
            except InvalidMetricError as e:
                console.print(f"[red]❌ Sample {index}: {e}[/red]")
                sys.exit(1)

        obs = context.observe(sample)
        observations.append(obs)

        style = QUALITY_STYLES[obs.quality.rating]
        spike_cell = ""
        if obs.spike.is_spike:
            spike_cell = f"[bold red]{obs.spike.severity}[/bold red]"
        table.add_row(
            str(index),
            format_ns(sample.timestamp, include_nanos=False),
            f"{sample.latency_ms:.0f}ms",
            f"{sample.packet_loss_percent:.1f}%",
            f"{sample.jitter_ms:.0f}ms",
            match_state_label(obs.state.state),
            f"[{style}]{obs.quality.rating}[/{style}] {obs.quality.score}",
            spike_cell,
        )

    console.print(table)

    aggregate = context.aggregate()
    result = context.summarize()
    console.print(
        f"\n[bold]Samples:[/bold] {aggregate.sample_count}  "
        f"[bold]Duration:[/bold] {format_match_duration(aggregate.duration_ms)}  "
        f"[bold]Lag spikes:[/bold] {aggregate.lag_spike_count}"
    )
    _print_summary(result)

    if json_output:
        generator = ReportGenerator(output_dir=cfg.get("reports.output_dir", "reports"))
        written = generator.write_session_report(session_id, observations, aggregate, result, Path(json_output))
        console.print(f"[green]✓ JSON report: {written}[/green]")


@cli.command()
def terminology():
    """Show the themed labels"""
    for title, mapping in terminology_tables().items():
        table = Table(title=title)
        table.add_column("Key", style="cyan")
        table.add_column("Label", style="green")
        for key, label in mapping.items():
            table.add_row(key, label)
        console.print(table)


@cli.command("show-config")
@click.pass_obj
def show_config(cfg):
    """Show the active configuration"""
    table = Table(title=f"Configuration ({cfg.config_path or 'built-in defaults'})")
    table.add_column("Parameter", style="cyan")
    table.add_column("Value", style="green")

    for section in ("thresholds", "ingestion", "extrahop", "reports", "logging"):
        table.add_section()
        table.add_row(f"[bold]{section.upper()}[/bold]", "")
        for key, value in (cfg.get(section) or {}).items():
            table.add_row(f"  {key}", str(value))

    console.print(table)


def main():
    """Main entry point"""
    cli()


if __name__ == "__main__":
    main()
