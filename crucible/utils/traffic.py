"""
Traffic attribution helpers: game-platform server ranges, game ports,
packet loss estimates and the traffic mix fed to the session classifier.
"""

import ipaddress
from functools import lru_cache
from typing import Dict, List, NamedTuple, Tuple, Union


class ServerRange(NamedTuple):
    network: str
    kind: str
    region: str


BUNGIE_IP_RANGES: Tuple[ServerRange, ...] = (
    # Platform API
    ServerRange("34.196.0.0/16", "api", "us-east"),
    ServerRange("52.0.0.0/8", "api", "aws"),
    # Game servers
    ServerRange("35.0.0.0/8", "game", "gcp"),
    ServerRange("104.196.0.0/16", "game", "gcp"),
    # Relay servers, seen on some platforms
    ServerRange("162.254.0.0/16", "relay", "valve"),
)

DESTINY_PORTS: Dict[str, Tuple[int, ...]] = {
    "game": (3074, 3478, 3479, 3480),
    "psn": (3478, 3479, 3480),
    "stun": (3478,),
    "voice": (3074,),
}

_GAME_PORTS = frozenset(DESTINY_PORTS["game"] + DESTINY_PORTS["psn"])


@lru_cache(maxsize=None)
def _networks() -> List[Tuple[ipaddress.IPv4Network, ServerRange]]:
    return [(ipaddress.ip_network(r.network), r) for r in BUNGIE_IP_RANGES]


def bungie_server_range(ip: str) -> Union[ServerRange, None]:
    """Return the server range containing `ip`, or None."""
    try:
        address = ipaddress.ip_address(ip.strip())
    except (ValueError, AttributeError):
        return None

    for network, server_range in _networks():
        if address.version == network.version and address in network:
            return server_range
    return None


def is_bungie_server(ip: str) -> bool:
    """True if `ip` falls in a known game-platform server range. Invalid IPs are False."""
    return bungie_server_range(ip) is not None


def is_destiny_traffic(port: int) -> bool:
    return port in _GAME_PORTS


def calculate_packet_loss(sent: float, received: float, retransmits: float) -> float:
    """
    Estimate packet loss percentage from counters.

    Retransmitted packets are not expected to arrive, so the expected count
    is `sent - retransmits`; anything missing beyond that is loss.

    Returns:
        Loss percentage, 0 when nothing was sent
    """
    if sent == 0:
        return 0.0
    expected = sent - retransmits
    lost = max(0, expected - received)
    return lost / sent * 100


def retransmit_loss_percent(retransmits: float, packets_out: float) -> float:
    """Realtime loss estimate: retransmissions as a share of outgoing packets."""
    if packets_out <= 0:
        return 0.0
    return retransmits / packets_out * 100


def traffic_mix(bungie_bytes: float, p2p_bytes: float, total_bytes: float) -> Tuple[float, float]:
    """
    Split traffic into (bungie %, p2p %) of the total.

    Both values are clamped to [0, 100]; with no traffic both are 0.
    """
    if total_bytes <= 0:
        return 0.0, 0.0

    def _pct(part: float) -> float:
        return min(100.0, max(0.0, part / total_bytes * 100))

    return _pct(bungie_bytes), _pct(p2p_bytes)


def format_match_duration(duration_ms: float) -> str:
    """
    Format a duration as m:ss.

    Example:
        >>> format_match_duration(605000)
        '10:05'
    """
    seconds = int(max(0, duration_ms) // 1000)
    minutes, remaining = divmod(seconds, 60)
    return f"{minutes}:{remaining:02d}"
