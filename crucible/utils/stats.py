"""
Statistical helpers for per-session telemetry.

Aggregates are computed with numpy so a long session (thousands of
one-second samples) stays cheap to summarize.
"""

from typing import Dict, Iterable

import numpy as np


def calculate_stats(values: Iterable[float]) -> Dict[str, float]:
    """
    Calculate summary statistics for a series of values.

    Args:
        values: Numeric values (latencies, jitter, loss percentages...)

    Returns:
        dict with min, max, mean, median, p95, p99, stddev and count.
        Returns an empty dict if there are no values.

    Examples:
        >>> calculate_stats([10.0, 20.0, 30.0])["mean"]
        20.0

        >>> calculate_stats([])
        {}
    """
    arr = np.asarray(list(values), dtype=float)
    if arr.size == 0:
        return {}

    return {
        "min": float(np.min(arr)),
        "max": float(np.max(arr)),
        "mean": float(np.mean(arr)),
        "median": float(np.median(arr)),
        "p95": float(np.percentile(arr, 95)),
        "p99": float(np.percentile(arr, 99)),
        # Sample standard deviation is undefined for a single value
        "stddev": float(np.std(arr, ddof=1)) if arr.size > 1 else 0.0,
        "count": int(arr.size),
    }
