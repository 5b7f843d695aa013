"""
Session State Classifier

Infers the phase of a monitored session (orbit, matchmaking, loading,
in_match, post_game) from coarse traffic counters.

The same byte rate can mean several things, so the rules are a priority
cascade: they are evaluated in order and the first match wins. Rule order is
part of the contract (a busy lobby with a loading-sized byte rate is still
in_match). The only memory is the previous state, used for the
in_match -> post_game transition.
"""

from typing import Callable, NamedTuple, Optional, Tuple, Union

from ..models import SessionState
from ..terminology import match_state_label

IN_MATCH_MIN_PEERS = 3
IN_MATCH_MIN_P2P_PERCENT = 30
LOADING_MIN_BPS = 500_000
MATCHMAKING_MIN_BPS = 20_000
MATCHMAKING_MIN_BUNGIE_PERCENT = 50
ORBIT_IDLE_MAX_BPS = 50_000


class TrafficSnapshot(NamedTuple):
    """Classifier inputs for a single sample."""

    bytes_per_second: float
    peer_count: int
    bungie_traffic_percent: float
    p2p_traffic_percent: float
    previous_state: Optional[str]


Predicate = Callable[[TrafficSnapshot], bool]
Confidence = Callable[[TrafficSnapshot], float]


def _in_match_confidence(t: TrafficSnapshot) -> float:
    return min(95, 60 + t.peer_count * 3 + t.p2p_traffic_percent * 0.3)


def _loading_confidence(t: TrafficSnapshot) -> float:
    return min(90, 50 + t.bytes_per_second / 100_000)


def _matchmaking_confidence(t: TrafficSnapshot) -> float:
    return min(85, 40 + t.bungie_traffic_percent * 0.4)


def _orbit_confidence(t: TrafficSnapshot) -> float:
    return 80 if t.bytes_per_second < ORBIT_IDLE_MAX_BPS else 50


# (state, predicate, confidence) in priority order. When nothing matches
# the session is in orbit.
CLASSIFICATION_RULES: Tuple[Tuple[str, Predicate, Confidence], ...] = (
    (
        "in_match",
        lambda t: t.peer_count >= IN_MATCH_MIN_PEERS and t.p2p_traffic_percent > IN_MATCH_MIN_P2P_PERCENT,
        _in_match_confidence,
    ),
    (
        "loading",
        lambda t: t.bytes_per_second > LOADING_MIN_BPS and t.peer_count > 0,
        _loading_confidence,
    ),
    (
        "matchmaking",
        lambda t: t.bytes_per_second > MATCHMAKING_MIN_BPS
        and t.bungie_traffic_percent > MATCHMAKING_MIN_BUNGIE_PERCENT,
        _matchmaking_confidence,
    ),
    (
        "post_game",
        lambda t: t.previous_state == "in_match" and t.peer_count < IN_MATCH_MIN_PEERS,
        lambda t: 70,
    ),
)


def classify_session_state(
    bytes_per_second: float,
    peer_count: int,
    bungie_traffic_percent: float,
    p2p_traffic_percent: float,
    previous_state: Optional[Union[str, SessionState]] = None,
) -> SessionState:
    """
    Classify the session phase for one sample.

    Args:
        bytes_per_second: Combined throughput
        peer_count: Number of peer-to-peer connections
        bungie_traffic_percent: Share of traffic to game-platform servers
        p2p_traffic_percent: Share of peer-to-peer traffic
        previous_state: State of the previous sample, as a string or a
            SessionState. None for the first sample of a session.

    Returns:
        SessionState with the state, a 0-100 confidence and the themed label
    """
    if isinstance(previous_state, SessionState):
        previous_state = previous_state.state

    snapshot = TrafficSnapshot(
        bytes_per_second=bytes_per_second,
        peer_count=peer_count,
        bungie_traffic_percent=bungie_traffic_percent,
        p2p_traffic_percent=p2p_traffic_percent,
        previous_state=previous_state,
    )

    for state, predicate, confidence in CLASSIFICATION_RULES:
        if predicate(snapshot):
            return SessionState(state=state, confidence=confidence(snapshot), label=match_state_label(state))

    return SessionState(state="orbit", confidence=_orbit_confidence(snapshot), label=match_state_label("orbit"))
