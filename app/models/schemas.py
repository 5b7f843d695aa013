"""
Pydantic schemas pour validation et sérialisation
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class MatchState(str, Enum):
    """Phase d'une session (valeurs du classifieur + 'unknown')"""
    ORBIT = "orbit"
    MATCHMAKING = "matchmaking"
    LOADING = "loading"
    IN_MATCH = "in_match"
    POST_GAME = "post_game"
    UNKNOWN = "unknown"


class MatchResult(str, Enum):
    """Résultat déclaré en fin de match"""
    VICTORY = "victory"
    DEFEAT = "defeat"
    MERCY = "mercy"
    DISCONNECT = "disconnect"
    UNKNOWN = "unknown"


# --- Core classifier -------------------------------------------------------


class RateRequest(BaseModel):
    latency_ms: float
    packet_loss_percent: float
    jitter_ms: float


class QualityRatingResponse(BaseModel):
    """Note de qualité de connexion"""
    rating: str
    score: int = Field(..., ge=0, le=100)
    label: str


class ClassifyRequest(BaseModel):
    bytes_per_second: float
    peer_count: int
    bungie_traffic_percent: float
    p2p_traffic_percent: float
    previous_state: Optional[MatchState] = None


class SessionStateResponse(BaseModel):
    state: MatchState
    confidence: float
    label: str


class LagSpikeRequest(BaseModel):
    current_latency_ms: float
    rolling_average_latency_ms: float


class SpikeEventResponse(BaseModel):
    is_spike: bool
    severity: Optional[str] = None
    description: str = ""


class SummaryRequest(BaseModel):
    """Agrégats d'une session terminée"""
    duration_ms: float = 0.0
    avg_latency_ms: float
    max_latency_ms: float
    packet_loss_percent: float = 0.0
    avg_jitter_ms: float = 0.0
    peer_count: int = 0
    lag_spike_count: int = 0


class SessionSummaryResponse(BaseModel):
    overall_rating: str
    verdict: str
    highlights: List[str] = []
    issues: List[str] = []


# --- Devices ---------------------------------------------------------------


class DeviceCreate(BaseModel):
    """Console à surveiller"""
    device_name: str = Field(..., min_length=1, max_length=200)
    extrahop_device_id: Optional[int] = Field(None, description="ID du device sur l'appliance réseau")
    mac_address: Optional[str] = None
    ip_address: Optional[str] = None
    platform: str = "PS5"


class DeviceInfo(BaseModel):
    id: int
    device_name: str
    extrahop_device_id: Optional[int] = None
    mac_address: Optional[str] = None
    ip_address: Optional[str] = None
    platform: str
    is_active: bool = True
    created_at: Optional[datetime] = None


# --- Matches ---------------------------------------------------------------


class MatchStart(BaseModel):
    device_id: int
    game_mode: Optional[str] = None
    bungie_server_ip: Optional[str] = None


class MatchEnd(BaseModel):
    result: MatchResult = MatchResult.UNKNOWN


class MatchInfo(BaseModel):
    """Informations sur un match (historique et détail)"""
    id: int
    device_id: int
    match_state: MatchState
    match_state_label: str
    game_mode: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration_ms: Optional[int] = None
    avg_latency_ms: Optional[float] = None
    max_latency_ms: Optional[float] = None
    min_latency_ms: Optional[float] = None
    packet_loss_percent: Optional[float] = None  # Pourcentage réel (stocké ×100)
    avg_jitter_ms: Optional[float] = None
    peer_count: Optional[int] = None
    lag_spike_count: int = 0
    bungie_server_ip: Optional[str] = None
    result: Optional[MatchResult] = None
    overall_rating: Optional[str] = None


class MatchEndResponse(BaseModel):
    match: MatchInfo
    summary: SessionSummaryResponse


# --- Metrics ---------------------------------------------------------------


class MetricCreate(BaseModel):
    """Échantillon réseau d'un intervalle de polling"""
    timestamp_ns: Optional[int] = Field(None, ge=0, description="Défaut: maintenant")
    latency_ms: float
    jitter_ms: float = 0.0
    packets_sent: int = Field(0, ge=0)
    packets_received: int = Field(0, ge=0)
    packets_lost: int = Field(0, ge=0)
    bytes_sent: int = Field(0, ge=0)
    bytes_received: int = Field(0, ge=0)
    bungie_traffic_bytes: int = Field(0, ge=0)
    p2p_traffic_bytes: int = Field(0, ge=0)
    packet_loss_percent: Optional[float] = Field(None, description="Défaut: packets_lost / packets_sent")
    bytes_per_second: Optional[float] = Field(None, description="Défaut: bytes_sent + bytes_received")
    peer_count: Optional[int] = Field(None, ge=0, description="Défaut: pairs enregistrés du match")


class MetricInfo(BaseModel):
    id: int
    timestamp_ns: int
    latency_ms: Optional[float] = None
    jitter_ms: Optional[float] = None
    packet_loss_percent: Optional[float] = None
    packets_sent: int = 0
    packets_received: int = 0
    packets_lost: int = 0
    bytes_sent: int = 0
    bytes_received: int = 0
    bungie_traffic_bytes: int = 0
    p2p_traffic_bytes: int = 0
    peer_count: Optional[int] = None
    match_state: Optional[str] = None
    quality_rating: Optional[str] = None
    quality_score: Optional[int] = None


class MetricRecordResponse(BaseModel):
    metric_id: int
    quality: QualityRatingResponse
    state: SessionStateResponse
    spike: SpikeEventResponse
    rolling_average_ms: float
    event_id: Optional[int] = None


# --- Peers -----------------------------------------------------------------


class PeerCreate(BaseModel):
    peer_ip: str = Field(..., min_length=1)
    peer_port: Optional[int] = Field(None, ge=0, le=65535)
    avg_latency_ms: Optional[float] = None
    max_latency_ms: Optional[float] = None
    geo_country: Optional[str] = None
    geo_region: Optional[str] = None
    geo_city: Optional[str] = None
    isp: Optional[str] = None


class PeerInfo(PeerCreate):
    id: int
    match_id: int
    connection_start_time: Optional[datetime] = None
    connection_end_time: Optional[datetime] = None


class PeerRecordResponse(BaseModel):
    peer_id: int
    is_new: bool


# --- Events ----------------------------------------------------------------


class EventInfo(BaseModel):
    """Événement de la timeline d'un match"""
    id: int
    match_id: int
    timestamp_ns: int
    event_type: str
    label: str
    severity: str
    description: Optional[str] = None
    latency_ms: Optional[float] = None
    packet_loss_percent: Optional[float] = None
    affected_peer_ip: Optional[str] = None


# --- Aggregated views ------------------------------------------------------


class MatchDetails(BaseModel):
    match: MatchInfo
    peers: List[PeerInfo] = []
    events: List[EventInfo] = []
    summary: Optional[SessionSummaryResponse] = None


class LiveMetrics(BaseModel):
    match_id: int
    match_state: MatchState
    match_state_label: str
    metrics: List[MetricInfo] = []
    events: List[EventInfo] = []
    current_quality: Optional[QualityRatingResponse] = None


class CrucibleStats(BaseModel):
    """Statistiques globales sur les matchs"""
    total_matches: int = 0
    active_matches: int = 0
    completed_matches: int = 0
    avg_latency_ms: Optional[float] = None
    avg_packet_loss_percent: Optional[float] = None
    total_lag_spikes: int = 0
    results: Dict[str, int] = {}
    ratings: Dict[str, int] = {}


class HealthCheck(BaseModel):
    """Réponse du health check endpoint"""
    status: str = "healthy"
    version: str = "1.0.0"
    uptime_seconds: float
    active_matches: int = 0
    active_sessions: int = 0
    polling: bool = False
    disk_space_gb_available: float
    memory_usage_percent: float
    total_matches_completed: int = 0
