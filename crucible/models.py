"""
Data models for the match/connection classifier.

All records are plain dataclasses. Derived records (quality rating, session
state, spike event, session summary) are created per call and discarded;
`to_dict()` gives the JSON-shaped record served to the dashboard.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from .terminology import event_label

# Accepted spellings for MetricSample fields when loading recordings or
# request bodies. The camelCase names are the ones the dashboard front-end
# and the legacy recordings use.
_SAMPLE_FIELD_ALIASES = {
    "timestamp": ("timestamp", "timestamp_ns", "timestampNs"),
    "latency_ms": ("latency_ms", "latencyMs"),
    "jitter_ms": ("jitter_ms", "jitterMs"),
    "packet_loss_percent": ("packet_loss_percent", "packetLossPercent", "packetLoss"),
    "bytes_per_second": ("bytes_per_second", "bytesPerSecond"),
    "peer_count": ("peer_count", "peerCount"),
    "bungie_traffic_percent": ("bungie_traffic_percent", "bungieTrafficPercent"),
    "p2p_traffic_percent": ("p2p_traffic_percent", "p2pTrafficPercent"),
}


@dataclass
class MetricSample:
    """
    One polling interval's worth of derived network counters.

    Attributes:
        timestamp: Sample time in nanoseconds since the epoch
        latency_ms: Round-trip latency in milliseconds
        jitter_ms: Latency variation in milliseconds
        packet_loss_percent: Packet loss, 0-100
        bytes_per_second: Combined throughput
        peer_count: Number of peer-to-peer connections
        bungie_traffic_percent: Share of traffic to game-platform servers, 0-100
        p2p_traffic_percent: Share of peer-to-peer traffic, 0-100
    """

    timestamp: int
    latency_ms: float = 0.0
    jitter_ms: float = 0.0
    packet_loss_percent: float = 0.0
    bytes_per_second: float = 0.0
    peer_count: int = 0
    bungie_traffic_percent: float = 0.0
    p2p_traffic_percent: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MetricSample":
        """Build a sample from a dict using snake_case or camelCase keys."""
        values: Dict[str, Any] = {}
        for name, aliases in _SAMPLE_FIELD_ALIASES.items():
            for alias in aliases:
                if alias in data and data[alias] is not None:
                    values[name] = data[alias]
                    break

        return cls(
            timestamp=int(values.get("timestamp", 0)),
            latency_ms=float(values.get("latency_ms", 0.0)),
            jitter_ms=float(values.get("jitter_ms", 0.0)),
            packet_loss_percent=float(values.get("packet_loss_percent", 0.0)),
            bytes_per_second=float(values.get("bytes_per_second", 0.0)),
            peer_count=int(values.get("peer_count", 0)),
            bungie_traffic_percent=float(values.get("bungie_traffic_percent", 0.0)),
            p2p_traffic_percent=float(values.get("p2p_traffic_percent", 0.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class QualityRating:
    """Connection quality for one latency/loss/jitter triad."""

    rating: str
    score: int
    label: str

    def to_dict(self) -> Dict[str, Any]:
        return {"rating": self.rating, "score": self.score, "label": self.label}


@dataclass(frozen=True)
class SessionState:
    """Classified session phase with a 0-100 confidence."""

    state: str
    confidence: float
    label: str

    def to_dict(self) -> Dict[str, Any]:
        return {"state": self.state, "confidence": self.confidence, "label": self.label}


@dataclass(frozen=True)
class SpikeEvent:
    """Lag spike verdict for one latency sample."""

    is_spike: bool
    severity: Optional[str]
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {"is_spike": self.is_spike, "severity": self.severity, "description": self.description}


@dataclass
class SessionSummary:
    """End-of-session verdict."""

    overall_rating: str
    verdict: str
    highlights: List[str] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_rating": self.overall_rating,
            "verdict": self.verdict,
            "highlights": list(self.highlights),
            "issues": list(self.issues),
        }


@dataclass
class SessionAggregate:
    """
    Aggregate statistics of a completed session, the input of the summary
    generator.

    Attributes:
        duration_ms: Time between first and last sample
        avg_latency_ms: Mean latency
        max_latency_ms: Highest latency seen
        min_latency_ms: Lowest latency seen
        packet_loss_percent: Mean packet loss
        avg_jitter_ms: Mean jitter
        peer_count: Peers in the lobby
        lag_spike_count: Number of detected lag spikes
        sample_count: Number of samples aggregated
    """

    duration_ms: float
    avg_latency_ms: float
    max_latency_ms: float
    min_latency_ms: float
    packet_loss_percent: float
    avg_jitter_ms: float
    peer_count: int
    lag_spike_count: int
    sample_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SampleObservation:
    """Everything the classifier derived from one sample of a session."""

    sample: MetricSample
    quality: QualityRating
    state: SessionState
    spike: SpikeEvent
    rolling_average_ms: float
    previous_state: Optional[SessionState] = None

    @property
    def state_changed(self) -> bool:
        return self.previous_state is None or self.previous_state.state != self.state.state

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sample": self.sample.to_dict(),
            "quality": self.quality.to_dict(),
            "state": self.state.to_dict(),
            "spike": self.spike.to_dict(),
            "rolling_average_ms": self.rolling_average_ms,
            "previous_state": self.previous_state.state if self.previous_state else None,
        }


@dataclass
class SessionEvent:
    """
    Timeline event raised while ingesting a session.

    Attributes:
        event_type: One of terminology.EVENT_TYPES
        severity: 'info', 'warning' or 'critical'
        description: Human-readable description
        timestamp: Nanosecond timestamp of the sample that raised it
        data: Event-specific values (latency, loss, tiers...)
    """

    event_type: str
    severity: str
    description: str
    timestamp: int
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def label(self) -> str:
        return event_label(self.event_type)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type,
            "label": self.label,
            "severity": self.severity,
            "description": self.description,
            "timestamp": self.timestamp,
            "data": dict(self.data),
        }
