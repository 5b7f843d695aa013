"""
Match Summary Generator

Turns the aggregate statistics of a completed session into an overall
rating, a themed verdict, and ordered lists of highlights and issues.
"""

from typing import Optional, Sequence, Tuple

from ..models import MetricSample, SessionAggregate, SessionSummary
from ..utils.nanoseconds import ns_to_ms
from ..utils.stats import calculate_stats
from .connection_quality import rate_connection_quality

# Verdict bands on the quality score, best first. Independent of the tier
# names used by the rater.
VERDICTS: Tuple[Tuple[int, str], ...] = (
    (90, "Shaxx approves! Flawless connection, Guardian."),
    (70, "Solid performance. The Light was with you."),
    (50, "Connection held, but the Darkness tested you."),
)
LOWEST_VERDICT = "The Vex disrupted your timeline. Consider network optimization."

FULL_LOBBY_PEERS = 6


def verdict_for_score(score: float) -> str:
    for lower_bound, verdict in VERDICTS:
        if score >= lower_bound:
            return verdict
    return LOWEST_VERDICT


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def generate_match_summary(
    duration_ms: float,
    avg_latency_ms: float,
    max_latency_ms: float,
    packet_loss_percent: float,
    avg_jitter_ms: float,
    peer_count: int,
    lag_spike_count: int,
) -> SessionSummary:
    """
    Summarize a completed session.

    The overall rating is the connection quality tier of the session
    averages, so it always agrees with `rate_connection_quality` for the
    same triple. Highlights and issues are checked independently and keep
    their check order.

    Args:
        duration_ms: Session length (not used in scoring)
        avg_latency_ms: Mean latency
        max_latency_ms: Peak latency
        packet_loss_percent: Packet loss over the session
        avg_jitter_ms: Mean jitter
        peer_count: Peers in the lobby
        lag_spike_count: Number of detected lag spikes

    Returns:
        SessionSummary
    """
    quality = rate_connection_quality(avg_latency_ms, packet_loss_percent, avg_jitter_ms)

    highlights = []
    if avg_latency_ms < 50:
        highlights.append("Excellent average latency")
    if packet_loss_percent < 0.5:
        highlights.append("Minimal packet loss")
    if lag_spike_count == 0:
        highlights.append("No lag spikes detected")
    if peer_count >= FULL_LOBBY_PEERS:
        highlights.append("Full lobby connection")

    issues = []
    if max_latency_ms > 200:
        issues.append(f"Peak latency reached {_format_number(max_latency_ms)}ms")
    if packet_loss_percent > 2:
        issues.append(f"{packet_loss_percent:.1f}% packet loss")
    if lag_spike_count > 3:
        issues.append(f"{lag_spike_count} lag spikes during match")
    if avg_jitter_ms > 30:
        issues.append(f"High jitter: {_format_number(avg_jitter_ms)}ms average")

    return SessionSummary(
        overall_rating=quality.rating,
        verdict=verdict_for_score(quality.score),
        highlights=highlights,
        issues=issues,
    )


def aggregate_session(
    samples: Sequence[MetricSample],
    lag_spike_count: int,
    peer_count: Optional[int] = None,
) -> SessionAggregate:
    """
    Compute session aggregates from its samples.

    Args:
        samples: Samples of the session, in arrival order
        lag_spike_count: Spikes counted while the session ran
        peer_count: Lobby size. Defaults to the highest peer count seen.

    Returns:
        SessionAggregate. All statistics are 0 for an empty session.
    """
    if not samples:
        return SessionAggregate(
            duration_ms=0.0,
            avg_latency_ms=0.0,
            max_latency_ms=0.0,
            min_latency_ms=0.0,
            packet_loss_percent=0.0,
            avg_jitter_ms=0.0,
            peer_count=peer_count or 0,
            lag_spike_count=lag_spike_count,
            sample_count=0,
        )

    latency = calculate_stats(s.latency_ms for s in samples)
    jitter = calculate_stats(s.jitter_ms for s in samples)
    loss = calculate_stats(s.packet_loss_percent for s in samples)

    timestamps = [s.timestamp for s in samples]
    duration_ms = ns_to_ms(max(timestamps) - min(timestamps))

    if peer_count is None:
        peer_count = max(s.peer_count for s in samples)

    return SessionAggregate(
        duration_ms=duration_ms,
        avg_latency_ms=latency["mean"],
        max_latency_ms=latency["max"],
        min_latency_ms=latency["min"],
        packet_loss_percent=loss["mean"],
        avg_jitter_ms=jitter["mean"],
        peer_count=peer_count,
        lag_spike_count=lag_spike_count,
        sample_count=len(samples),
    )


def summarize_session(aggregate: SessionAggregate) -> SessionSummary:
    """Run the summary generator on a SessionAggregate."""
    return generate_match_summary(
        duration_ms=aggregate.duration_ms,
        avg_latency_ms=aggregate.avg_latency_ms,
        max_latency_ms=aggregate.max_latency_ms,
        packet_loss_percent=aggregate.packet_loss_percent,
        avg_jitter_ms=aggregate.avg_jitter_ms,
        peer_count=aggregate.peer_count,
        lag_spike_count=aggregate.lag_spike_count,
    )
