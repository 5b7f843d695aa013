"""
Optional strict validation of metric samples.

The classifier accepts any numbers. Callers that want to reject appliance
glitches before they reach it (strict ingestion, `replay --strict`) run the
sample through `validate_sample` first.
"""

import math

from .exceptions import InvalidMetricError

PERCENT_FIELDS = ("packet_loss_percent", "bungie_traffic_percent", "p2p_traffic_percent")
NON_NEGATIVE_FIELDS = ("latency_ms", "jitter_ms", "bytes_per_second", "peer_count", "timestamp")


def validate_sample(sample) -> None:
    """
    Check a MetricSample.

    Raises:
        InvalidMetricError: A value is NaN or infinite, a percentage is
            outside [0, 100], or a latency, jitter, throughput, peer count or
            timestamp is negative.
    """
    for name in PERCENT_FIELDS + NON_NEGATIVE_FIELDS:
        value = getattr(sample, name)
        if isinstance(value, float) and not math.isfinite(value):
            raise InvalidMetricError(name, value, "must be a finite number")

    for name in PERCENT_FIELDS:
        value = getattr(sample, name)
        if not 0 <= value <= 100:
            raise InvalidMetricError(name, value, "must be between 0 and 100")

    for name in NON_NEGATIVE_FIELDS:
        value = getattr(sample, name)
        if value < 0:
            raise InvalidMetricError(name, value, "must not be negative")

