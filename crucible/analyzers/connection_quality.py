"""
Connection Quality Rater

Scores a latency / packet loss / jitter triad on a 0-100 scale and maps the
score to one of five quality tiers.

Each input is penalised on its own ladder. Brackets are checked highest
first and only the first matching bracket of a ladder applies; the three
penalties are then added up and subtracted from 100.
"""

from typing import Sequence, Tuple

from ..models import QualityRating
from ..terminology import CONNECTION_QUALITY_LABELS

MAX_SCORE = 100
MIN_SCORE = 0

# (threshold, penalty) pairs, highest threshold first. A value strictly
# greater than the threshold takes the penalty.
LATENCY_PENALTIES: Tuple[Tuple[float, int], ...] = (
    (200, 40),
    (150, 30),
    (100, 20),
    (80, 10),
    (50, 5),
)

PACKET_LOSS_PENALTIES: Tuple[Tuple[float, int], ...] = (
    (5, 35),
    (3, 25),
    (2, 15),
    (1, 10),
    (0.5, 5),
)

JITTER_PENALTIES: Tuple[Tuple[float, int], ...] = (
    (100, 25),
    (50, 15),
    (30, 10),
    (20, 5),
)

# Inclusive lower bound of each tier, best tier first
QUALITY_TIER_THRESHOLDS: Tuple[Tuple[int, str], ...] = (
    (90, "excellent"),
    (70, "good"),
    (50, "fair"),
    (30, "poor"),
)
LOWEST_TIER = "critical"


def ladder_penalty(value: float, ladder: Sequence[Tuple[float, int]]) -> int:
    """Penalty of the first bracket whose threshold `value` exceeds, else 0."""
    for threshold, penalty in ladder:
        if value > threshold:
            return penalty
    return 0


def quality_tier(score: float) -> str:
    for lower_bound, tier in QUALITY_TIER_THRESHOLDS:
        if score >= lower_bound:
            return tier
    return LOWEST_TIER


def rate_connection_quality(latency_ms: float, packet_loss_percent: float, jitter_ms: float) -> QualityRating:
    """
    Rate connection quality from one sample's latency, loss and jitter.

    Inputs are not validated; negative values simply fall through every
    bracket and take no penalty.

    Args:
        latency_ms: Round-trip latency in milliseconds
        packet_loss_percent: Packet loss percentage (0-100)
        jitter_ms: Jitter in milliseconds

    Returns:
        QualityRating with an integer score in [0, 100], the tier and its label

    Example:
        >>> rate_connection_quality(160, 4, 60)
        QualityRating(rating='poor', score=30, label='Darkness Encroaching')
    """
    penalty = (
        ladder_penalty(latency_ms, LATENCY_PENALTIES)
        + ladder_penalty(packet_loss_percent, PACKET_LOSS_PENALTIES)
        + ladder_penalty(jitter_ms, JITTER_PENALTIES)
    )
    # Clamp once, after all three ladders
    score = min(MAX_SCORE, max(MIN_SCORE, MAX_SCORE - penalty))

    tier = quality_tier(score)
    return QualityRating(rating=tier, score=score, label=CONNECTION_QUALITY_LABELS[tier])


class ConnectionQualityRater:
    """
    Analyzer-object wrapper around `rate_connection_quality`.

    Example:
        rater = ConnectionQualityRater()
        rating = rater.rate(25, 0.1, 4)
        print(rating.label)
    """

    def rate(self, latency_ms: float, packet_loss_percent: float, jitter_ms: float) -> QualityRating:
        return rate_connection_quality(latency_ms, packet_loss_percent, jitter_ms)

    def rate_sample(self, sample) -> QualityRating:
        """Rate a MetricSample."""
        return rate_connection_quality(sample.latency_ms, sample.packet_loss_percent, sample.jitter_ms)
