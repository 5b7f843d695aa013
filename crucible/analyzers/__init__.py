"""
Classifier components for match and connection telemetry.
"""

from .connection_quality import ConnectionQualityRater, rate_connection_quality
from .lag_spike import detect_lag_spike
from .match_summary import aggregate_session, generate_match_summary, summarize_session
from .session_state import classify_session_state

__all__ = [
    "ConnectionQualityRater",
    "rate_connection_quality",
    "detect_lag_spike",
    "classify_session_state",
    "generate_match_summary",
    "aggregate_session",
    "summarize_session",
]
