"""
Request bodies for the network appliance REST API.

Pure builders, kept separate from the HTTP client so they can be checked
without a network.
"""

import re
import time
from typing import Any, Dict, Optional, Sequence

NET_METRIC_SPECS = ("bytes_in", "bytes_out", "pkts_in", "pkts_out", "rto_in", "rto_out")
TCP_METRIC_SPECS = ("rtt", "retrans_out")

REALTIME_CYCLE = "1sec"
REALTIME_WINDOW_MS = 30_000

DEVICE_RESULT_FIELDS = [
    "id",
    "display_name",
    "default_name",
    "ipaddr4",
    "macaddr",
    "vendor",
    "device_class",
    "last_seen_time",
    "activity",
    "analysis_level",
]

# Console vendors and names the device search matches on
CONSOLE_SEARCH_RULES = [
    {"field": "vendor", "operator": "~", "operand": "Sony"},
    {"field": "name", "operator": "~", "operand": "PlayStation"},
    {"field": "name", "operator": "~", "operand": "PS5"},
]

DEFAULT_PCAP_LIMIT_BYTES = 100_000_000


def build_metric_query(
    device_id: int,
    metric_category: str,
    metric_specs: Sequence[str],
    cycle: str = "auto",
    from_ms: int = -300_000,
    until_ms: int = 0,
) -> Dict[str, Any]:
    """
    Body for POST /metrics on a single device.

    Negative `from_ms` / `until_ms` are relative to now, as the appliance
    interprets them.
    """
    return {
        "cycle": cycle,
        "from": from_ms,
        "until": until_ms,
        "metric_category": metric_category,
        "object_type": "device",
        "object_ids": [device_id],
        "metric_specs": [{"name": name} for name in metric_specs],
    }


def build_realtime_queries(device_id: int, window_ms: int = REALTIME_WINDOW_MS) -> Dict[str, Dict[str, Any]]:
    """The net and tcp 1-second queries behind one realtime poll."""
    return {
        "net": build_metric_query(device_id, "net", NET_METRIC_SPECS, cycle=REALTIME_CYCLE, from_ms=-window_ms),
        "tcp": build_metric_query(device_id, "tcp", TCP_METRIC_SPECS, cycle=REALTIME_CYCLE, from_ms=-window_ms),
    }


def build_peer_topology_query(device_id: int, from_ms: int = -300_000) -> Dict[str, Any]:
    """Body for POST /activitymaps/query: every peer of one device, weighted by bytes."""
    return {
        "from": from_ms,
        "until": 0,
        "edge_annotations": ["protocols", "appearances"],
        "weighting": "bytes",
        "walks": [
            {
                "origins": [{"object_type": "device", "object_id": device_id}],
                "steps": [{"relationships": [{"role": "any"}]}],
            }
        ],
    }


def build_console_search(name_pattern: Optional[str] = None) -> Dict[str, Any]:
    """Body for POST /devices/search finding the console by vendor/name, or by a name pattern."""
    if name_pattern:
        return {
            "filter": {"field": "name", "operator": "~", "operand": name_pattern},
            "result_fields": list(DEVICE_RESULT_FIELDS),
            "limit": 1,
        }
    return {
        "filter": {"operator": "or", "rules": [dict(rule) for rule in CONSOLE_SEARCH_RULES]},
        "result_fields": list(DEVICE_RESULT_FIELDS),
    }


def build_pcap_search(
    ip1: Optional[str],
    from_ms: int,
    until_ms: int = 0,
    limit_bytes: int = DEFAULT_PCAP_LIMIT_BYTES,
    bpf: Optional[str] = None,
    ip2: Optional[str] = None,
) -> Dict[str, Any]:
    """Body for POST /packets/search returning a pcap. Unset filters are omitted."""
    body: Dict[str, Any] = {
        "from": from_ms,
        "until": until_ms,
        "limit_bytes": limit_bytes,
        "output": "pcap",
    }
    if ip1:
        body["ip1"] = ip1
    if ip2:
        body["ip2"] = ip2
    if bpf:
        body["bpf"] = bpf
    return body


def _ip_token(ip: str) -> str:
    return ip.replace(".", "_").replace(":", "_")


def _safe_token(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9_-]", "_", value)


def pcap_filename(
    device_ip: Optional[str] = None,
    match_id: Optional[int] = None,
    game_mode: Optional[str] = None,
    peer_ip: Optional[str] = None,
    timestamp_ms: Optional[int] = None,
) -> str:
    """
    Download filename for a packet capture.

    * match capture: crucible_match_{id}_{mode}.pcap
    * peer-to-peer capture: crucible_p2p_{device}_{peer}_{ts}.pcap
    * device capture: crucible_{device}_{ts}.pcap

    Examples:
        >>> pcap_filename(match_id=12, game_mode="control")
        'crucible_match_12_control.pcap'
        >>> pcap_filename(device_ip="192.168.1.20", timestamp_ms=1700000000000)
        'crucible_192_168_1_20_1700000000000.pcap'
    """
    if match_id is not None:
        return f"crucible_match_{match_id}_{_safe_token(game_mode or 'unknown')}.pcap"

    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)

    if device_ip is None:
        raise ValueError("device_ip is required unless match_id is given")

    if peer_ip:
        return f"crucible_p2p_{_ip_token(device_ip)}_{_ip_token(peer_ip)}_{timestamp_ms}.pcap"
    return f"crucible_{_ip_token(device_ip)}_{timestamp_ms}.pcap"

