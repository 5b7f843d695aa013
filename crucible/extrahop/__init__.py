"""
Network appliance integration: HTTP client, request builders and response
parsing.
"""

from .client import ExtrahopClient
from .parsing import RealtimeDataPoint, TopologySummary, parse_realtime_metrics, peers_from_topology, summarize_topology
from .queries import build_metric_query, build_pcap_search, build_peer_topology_query, build_realtime_queries, pcap_filename
from .rate_limiter import RequestRateLimiter

__all__ = [
    "ExtrahopClient",
    "RequestRateLimiter",
    "RealtimeDataPoint",
    "TopologySummary",
    "parse_realtime_metrics",
    "peers_from_topology",
    "summarize_topology",
    "build_metric_query",
    "build_realtime_queries",
    "build_peer_topology_query",
    "build_pcap_search",
    "pcap_filename",
]
