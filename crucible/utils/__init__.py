"""
Shared helpers for the classifier, ingestion loop and web service.
"""

from .nanoseconds import format_duration_ns, format_ns, ms_to_ns, now_ns, ns_to_ms
from .stats import calculate_stats
from .traffic import (
    calculate_packet_loss,
    format_match_duration,
    is_bungie_server,
    is_destiny_traffic,
    retransmit_loss_percent,
    traffic_mix,
)

__all__ = [
    # Nanosecond timestamps
    "now_ns",
    "ms_to_ns",
    "ns_to_ms",
    "format_ns",
    "format_duration_ns",
    # Statistics
    "calculate_stats",
    # Traffic attribution
    "is_bungie_server",
    "is_destiny_traffic",
    "calculate_packet_loss",
    "retransmit_loss_percent",
    "traffic_mix",
    "format_match_duration",
]
