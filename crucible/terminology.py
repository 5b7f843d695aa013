"""
Themed display vocabulary for match states, connection quality tiers and
timeline events.

The tables are read-only mappings: every key the classifier can produce has
exactly one label and nothing mutates them at runtime.
"""

from types import MappingProxyType
from typing import Mapping

MATCH_STATES = ("orbit", "matchmaking", "loading", "in_match", "post_game")

QUALITY_TIERS = ("excellent", "good", "fair", "poor", "critical")

EVENT_TYPES = (
    "match_start",
    "match_end",
    "lag_spike",
    "packet_loss_spike",
    "peer_joined",
    "peer_left",
    "connection_degraded",
    "connection_recovered",
    "bungie_server_switch",
    "network_anomaly",
    "high_jitter",
    "disconnect",
    "reconnect",
)

MATCH_STATE_LABELS: Mapping[str, str] = MappingProxyType(
    {
        "orbit": "In Orbit",
        "matchmaking": "Searching for Guardians",
        "loading": "Transmatting",
        "in_match": "Shaxx is Watching",
        "post_game": "Fight Complete",
        "unknown": "Ghost Scanning",
    }
)

CONNECTION_QUALITY_LABELS: Mapping[str, str] = MappingProxyType(
    {
        "excellent": "Flawless Connection",
        "good": "Stable Light",
        "fair": "Interference Detected",
        "poor": "Darkness Encroaching",
        "critical": "Guardian Down Risk",
    }
)

EVENT_LABELS: Mapping[str, str] = MappingProxyType(
    {
        "match_start": "Match Initiated",
        "match_end": "Victory/Defeat",
        "lag_spike": "Temporal Anomaly",
        "packet_loss_spike": "Light Disruption",
        "peer_joined": "Guardian Joined",
        "peer_left": "Guardian Departed",
        "connection_degraded": "Shields Weakening",
        "connection_recovered": "Shields Restored",
        "bungie_server_switch": "Server Migration",
        "network_anomaly": "Vex Interference",
        "high_jitter": "Unstable Rift",
        "disconnect": "Guardian Down",
        "reconnect": "Ghost Revive",
    }
)


def match_state_label(state: str) -> str:
    """Label for a match state, falling back to the 'unknown' label."""
    return MATCH_STATE_LABELS.get(state, MATCH_STATE_LABELS["unknown"])


def event_label(event_type: str) -> str:
    return EVENT_LABELS.get(event_type, event_type)


def as_dict() -> dict[str, dict[str, str]]:
    """All three tables as plain dicts, for JSON responses."""
    return {
        "matchStates": dict(MATCH_STATE_LABELS),
        "connectionQuality": dict(CONNECTION_QUALITY_LABELS),
        "events": dict(EVENT_LABELS),
    }
