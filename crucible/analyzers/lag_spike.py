"""
Lag Spike Detector

A latency above the critical threshold is always a spike. Below it, a
sample is only a spike when it is both high and well above the rolling
average, so sustained-but-stable high latency is not reported over and over.
"""

from ..models import SpikeEvent

CRITICAL_LATENCY_MS = 300
WARNING_LATENCY_MS = 150
WARNING_DEVIATION_MS = 50


def _format_ms(value: float) -> str:
    """Render a millisecond value in full, dropping the '.0' of integral floats."""
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def detect_lag_spike(current_latency_ms: float, rolling_average_latency_ms: float) -> SpikeEvent:
    """
    Decide whether a latency sample is a lag spike.

    Args:
        current_latency_ms: Latest latency sample
        rolling_average_latency_ms: Mean of the recent samples

    Returns:
        SpikeEvent. `severity` is 'critical', 'warning' or None.

    Example:
        >>> detect_lag_spike(160, 40).description
        'Lag spike detected: 160ms (120ms above average)'
    """
    deviation = current_latency_ms - rolling_average_latency_ms
    current = _format_ms(current_latency_ms)
    above = _format_ms(deviation)

    if current_latency_ms > CRITICAL_LATENCY_MS:
        return SpikeEvent(
            is_spike=True,
            severity="critical",
            description=f"Severe lag spike: {current}ms ({above}ms above average)",
        )

    if current_latency_ms > WARNING_LATENCY_MS and deviation > WARNING_DEVIATION_MS:
        return SpikeEvent(
            is_spike=True,
            severity="warning",
            description=f"Lag spike detected: {current}ms ({above}ms above average)",
        )

    return SpikeEvent(is_spike=False, severity=None, description="")
