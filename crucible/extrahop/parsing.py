"""
Turn appliance API responses into classifier inputs.

Metric responses look like::

    {"stats": [{"time": 1700000000000, "values": [[bytes_in], [bytes_out], ...]}, ...]}

with one entry per cycle and one value slot per requested metric spec, in
request order. Missing slots read as 0.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..models import MetricSample
from ..utils.nanoseconds import ms_to_ns
from ..utils.traffic import is_bungie_server, retransmit_loss_percent, traffic_mix

logger = logging.getLogger(__name__)


@dataclass
class RealtimeDataPoint:
    """
    One second of device counters.

    Attributes:
        timestamp_ms: Cycle time reported by the appliance (epoch ms)
        latency_ms: TCP round-trip time
        jitter_ms: |rtt - previous rtt|, 0 for the first point
        packet_loss_percent: retransmissions / packets out
    """

    timestamp_ms: int
    bytes_in: float = 0.0
    bytes_out: float = 0.0
    pkts_in: float = 0.0
    pkts_out: float = 0.0
    rto_in: float = 0.0
    rto_out: float = 0.0
    latency_ms: float = 0.0
    jitter_ms: float = 0.0
    retransmits: float = 0.0
    packet_loss_percent: float = 0.0

    @property
    def bytes_per_second(self) -> float:
        return self.bytes_in + self.bytes_out


@dataclass
class TopologySummary:
    """Peers of a device and how its traffic splits between them."""

    peers: List[Dict[str, Any]]
    peer_count: int
    bungie_traffic_percent: float
    p2p_traffic_percent: float


def _slot(values: Optional[List[Any]], index: int) -> float:
    """Value of one metric slot; slots are either scalars or single-item lists."""
    if not values or index >= len(values):
        return 0.0
    value = values[index]
    if isinstance(value, (list, tuple)):
        value = value[0] if value else 0
    if value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.debug(f"Ignoring non-numeric metric value {value!r}")
        return 0.0


def parse_realtime_metrics(net_response: Dict[str, Any], tcp_response: Dict[str, Any]) -> List[RealtimeDataPoint]:
    """
    Combine the net and tcp realtime responses into per-second data points.

    The two responses are aligned by position. Net cycles without values are
    skipped; a missing tcp cycle reads as zero latency and no retransmits.
    """
    net_stats = (net_response or {}).get("stats") or []
    tcp_stats = (tcp_response or {}).get("stats") or []

    points: List[RealtimeDataPoint] = []
    for i, net_stat in enumerate(net_stats):
        net_values = (net_stat or {}).get("values")
        if not net_values:
            continue

        tcp_values = (tcp_stats[i] or {}).get("values") if i < len(tcp_stats) else None
        rtt = _slot(tcp_values, 0)
        retransmits = _slot(tcp_values, 1)
        pkts_out = _slot(net_values, 3)

        jitter = abs(rtt - points[-1].latency_ms) if points and points[-1].latency_ms else 0.0

        points.append(
            RealtimeDataPoint(
                timestamp_ms=int(net_stat.get("time") or 0),
                bytes_in=_slot(net_values, 0),
                bytes_out=_slot(net_values, 1),
                pkts_in=_slot(net_values, 2),
                pkts_out=pkts_out,
                rto_in=_slot(net_values, 4),
                rto_out=_slot(net_values, 5),
                latency_ms=rtt,
                jitter_ms=jitter,
                retransmits=retransmits,
                packet_loss_percent=retransmit_loss_percent(retransmits, pkts_out),
            )
        )
    return points


def _node_ip(node: Dict[str, Any]) -> Optional[str]:
    return node.get("ipaddr") or node.get("ipaddr4")


def peers_from_topology(topology: Dict[str, Any], device_id: int) -> List[Dict[str, Any]]:
    """Nodes of an activity map other than the device itself."""
    return [node for node in (topology or {}).get("nodes") or [] if node.get("id") != device_id]


def summarize_topology(topology: Dict[str, Any], device_id: int) -> TopologySummary:
    """
    Attribute a device's traffic to game-platform servers or to peers.

    Edge weights are bytes. Edges to nodes inside the platform server ranges
    count as platform traffic; everything else is peer-to-peer, and those
    nodes are the peers counted for the classifier.
    """
    peers = peers_from_topology(topology, device_id)
    nodes_by_id = {node.get("id"): node for node in peers}

    bungie_bytes = 0.0
    p2p_bytes = 0.0
    game_peers = set()
    for edge in (topology or {}).get("edges") or []:
        ends = (edge.get("from"), edge.get("to"))
        if device_id not in ends:
            continue
        other_id = ends[1] if ends[0] == device_id else ends[0]
        node = nodes_by_id.get(other_id)
        if node is None:
            continue

        weight = float(edge.get("weight") or 0)
        ip = _node_ip(node)
        if ip and is_bungie_server(ip):
            bungie_bytes += weight
        else:
            p2p_bytes += weight
            game_peers.add(other_id)

    bungie_pct, p2p_pct = traffic_mix(bungie_bytes, p2p_bytes, bungie_bytes + p2p_bytes)
    return TopologySummary(
        peers=peers,
        peer_count=len(game_peers),
        bungie_traffic_percent=bungie_pct,
        p2p_traffic_percent=p2p_pct,
    )


def to_metric_sample(point: RealtimeDataPoint, topology: Optional[TopologySummary] = None) -> MetricSample:
    """Build the classifier sample for one data point."""
    peer_count, bungie_pct, p2p_pct = 0, 0.0, 0.0
    if topology is not None:
        peer_count = topology.peer_count
        bungie_pct = topology.bungie_traffic_percent
        p2p_pct = topology.p2p_traffic_percent

    return MetricSample(
        timestamp=ms_to_ns(point.timestamp_ms),
        latency_ms=point.latency_ms,
        jitter_ms=point.jitter_ms,
        packet_loss_percent=point.packet_loss_percent,
        bytes_per_second=point.bytes_per_second,
        peer_count=peer_count,
        bungie_traffic_percent=bungie_pct,
        p2p_traffic_percent=p2p_pct,
    )

