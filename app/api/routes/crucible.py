"""
Routes du classifieur et du suivi des matchs.
"""

import logging
from dataclasses import replace
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, Response, status

from app.models.schemas import (
    ClassifyRequest,
    CrucibleStats,
    DeviceCreate,
    DeviceInfo,
    LagSpikeRequest,
    LiveMetrics,
    MatchDetails,
    MatchEnd,
    MatchEndResponse,
    MatchInfo,
    MatchStart,
    MetricCreate,
    MetricRecordResponse,
    PeerCreate,
    PeerRecordResponse,
    QualityRatingResponse,
    RateRequest,
    SessionStateResponse,
    SessionSummaryResponse,
    SpikeEventResponse,
    SummaryRequest,
)
from app.services.database import get_db_service
from app.services.monitor import MatchMonitor, get_monitor
from crucible.analyzers import (
    classify_session_state,
    detect_lag_spike,
    generate_match_summary,
    rate_connection_quality,
    summarize_session,
)
from crucible.exceptions import InvalidMetricError
from crucible.models import MetricSample
from crucible.session import DEFAULT_WINDOW_SIZE, SessionContext
from crucible.terminology import as_dict as terminology_tables
from crucible.terminology import match_state_label
from crucible.utils.nanoseconds import now_ns
from crucible.utils.traffic import traffic_mix
from crucible.validation import validate_sample

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/crucible")


async def _get_match_or_404(match_id: int) -> MatchInfo:
    match = await get_db_service().get_match(match_id)
    if not match:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Match {match_id} not found",
        )
    return match


# --- Classifier ------------------------------------------------------------


@router.get("/terminology")
async def get_terminology():
    """Libellés affichés pour les états, niveaux de qualité et événements."""
    return terminology_tables()


@router.post("/rate", response_model=QualityRatingResponse)
async def rate(request: RateRequest):
    return rate_connection_quality(request.latency_ms, request.packet_loss_percent, request.jitter_ms).to_dict()


@router.post("/classify", response_model=SessionStateResponse)
async def classify(request: ClassifyRequest):
    previous = request.previous_state.value if request.previous_state else None
    state = classify_session_state(
        request.bytes_per_second,
        request.peer_count,
        request.bungie_traffic_percent,
        request.p2p_traffic_percent,
        previous_state=previous,
    )
    return state.to_dict()


@router.post("/lag-spike", response_model=SpikeEventResponse)
async def lag_spike(request: LagSpikeRequest):
    return detect_lag_spike(request.current_latency_ms, request.rolling_average_latency_ms).to_dict()


@router.post("/summary", response_model=SessionSummaryResponse)
async def summary(request: SummaryRequest):
    result = generate_match_summary(
        duration_ms=request.duration_ms,
        avg_latency_ms=request.avg_latency_ms,
        max_latency_ms=request.max_latency_ms,
        packet_loss_percent=request.packet_loss_percent,
        avg_jitter_ms=request.avg_jitter_ms,
        peer_count=request.peer_count,
        lag_spike_count=request.lag_spike_count,
    )
    return result.to_dict()


# --- Devices ---------------------------------------------------------------


@router.post("/devices", response_model=DeviceInfo, status_code=status.HTTP_201_CREATED)
async def create_device(device: DeviceCreate):
    return await get_db_service().create_device(device)


@router.get("/devices", response_model=List[DeviceInfo])
async def list_devices(active_only: bool = True):
    return await get_db_service().list_devices(active_only=active_only)


@router.delete("/devices/{device_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_device(device_id: int):
    """
    Supprime une console, ses matchs et leurs données.

    Raises:
        HTTPException 404: Si la console n'existe pas
    """
    db_service = get_db_service()
    device = await db_service.get_device(device_id)
    if not device:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Device {device_id} not found")

    active = await db_service.get_active_match(device_id)
    if active:
        await get_monitor().release(active, device)

    await db_service.delete_device(device_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Matches ---------------------------------------------------------------


@router.post("/matches", response_model=MatchInfo, status_code=status.HTTP_201_CREATED)
async def start_match(request: MatchStart):
    """
    Démarre le suivi d'un match pour une console.

    Raises:
        HTTPException 404: Si la console n'existe pas
        HTTPException 409: Si un match est déjà en cours pour cette console
    """
    db_service = get_db_service()
    device = await db_service.get_device(request.device_id)
    if not device:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Device {request.device_id} not found",
        )

    active = await db_service.get_active_match(request.device_id)
    if active:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Match {active.id} already active for device {request.device_id}",
        )

    match = await db_service.create_match(request.device_id, request.game_mode, request.bungie_server_ip)
    await db_service.create_event(match.id, "match_start", "Match monitoring initiated")

    if get_monitor().track(match, device):
        logger.info(f"Match {match.id}: polling appliance device {device.extrahop_device_id}")
    return match


@router.get("/matches", response_model=List[MatchInfo])
async def list_matches(
    limit: int = Query(20, ge=1, le=200),
    device_id: Optional[int] = None,
):
    return await get_db_service().get_recent_matches(limit=limit, device_id=device_id)


@router.post("/matches/{match_id}/end", response_model=MatchEndResponse)
async def end_match(match_id: int, request: Optional[MatchEnd] = None):
    """
    Termine un match: agrégats, résumé et note globale.

    Raises:
        HTTPException 404: Si le match n'existe pas
        HTTPException 409: Si le match est déjà terminé
    """
    request = request or MatchEnd()
    db_service = get_db_service()
    monitor = get_monitor()

    async with monitor.match_lock(match_id):
        match = await _get_match_or_404(match_id)
        if match.end_time is not None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Match {match_id} already ended")

        device = await db_service.get_device(match.device_id)
        report = await monitor.release(match, device)
        if report:
            logger.debug(f"Match {match_id}: ingestion session closed ({report.aggregate.sample_count} polled samples)")

        aggregate = await db_service.compute_aggregate(match_id)
        result = summarize_session(aggregate)
        ended = await db_service.end_match(
            match_id,
            result=request.result.value,
            overall_rating=result.overall_rating,
            aggregate=aggregate,
        )
    if ended is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Match {match_id} not found")

    ended_match, _ = ended
    return MatchEndResponse(match=ended_match, summary=result.to_dict())


@router.post("/matches/{match_id}/metrics", response_model=MetricRecordResponse, status_code=status.HTTP_201_CREATED)
async def record_metrics(match_id: int, metric: MetricCreate):
    """
    Enregistre un échantillon et le passe au classifieur.

    Le pic de latence est détecté contre la moyenne des derniers
    échantillons enregistrés du match; un événement lag_spike est créé
    quand il y en a un. Les requêtes d'un même match sont traitées l'une
    après l'autre.

    Raises:
        HTTPException 404: Si le match n'existe pas
        HTTPException 409: Si le match est terminé
        HTTPException 422: Si l'échantillon est hors limites
    """
    monitor = get_monitor()
    async with monitor.match_lock(match_id):
        return await _record_metrics(match_id, metric, monitor)


async def _record_metrics(match_id: int, metric: MetricCreate, monitor: MatchMonitor) -> MetricRecordResponse:
    db_service = get_db_service()
    match = await _get_match_or_404(match_id)
    if match.end_time is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Match {match_id} already ended")

    if metric.packet_loss_percent is not None:
        loss = metric.packet_loss_percent
    elif metric.packets_sent > 0:
        loss = metric.packets_lost / metric.packets_sent * 100
    else:
        loss = 0.0

    total_bytes = metric.bytes_sent + metric.bytes_received
    bungie_pct, p2p_pct = traffic_mix(metric.bungie_traffic_bytes, metric.p2p_traffic_bytes, total_bytes)
    peer_count = metric.peer_count if metric.peer_count is not None else await db_service.count_peers(match_id)

    sample = MetricSample(
        timestamp=metric.timestamp_ns if metric.timestamp_ns is not None else now_ns(),
        latency_ms=metric.latency_ms,
        jitter_ms=metric.jitter_ms,
        packet_loss_percent=loss,
        bytes_per_second=metric.bytes_per_second if metric.bytes_per_second is not None else float(total_bytes),
        peer_count=peer_count,
        bungie_traffic_percent=bungie_pct,
        p2p_traffic_percent=p2p_pct,
    )
    try:
        validate_sample(sample)
    except InvalidMetricError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    window_size = monitor.config.get("ingestion.rolling_window", DEFAULT_WINDOW_SIZE)
    recent = await db_service.get_recent_metrics(match_id, limit=window_size)
    context = SessionContext.resume(
        str(match_id),
        [m.latency_ms for m in recent if m.latency_ms is not None],
        previous_state=match.match_state.value,
        window_size=window_size,
    )
    observation = context.observe(sample)

    metric_id = await db_service.create_metric(
        match_id,
        timestamp_ns=sample.timestamp,
        latency_ms=sample.latency_ms,
        jitter_ms=sample.jitter_ms,
        packet_loss_percent=sample.packet_loss_percent,
        packets_sent=metric.packets_sent,
        packets_received=metric.packets_received,
        packets_lost=metric.packets_lost,
        bytes_sent=metric.bytes_sent,
        bytes_received=metric.bytes_received,
        bungie_traffic_bytes=metric.bungie_traffic_bytes,
        p2p_traffic_bytes=metric.p2p_traffic_bytes,
        peer_count=peer_count,
        match_state=observation.state.state,
        quality_rating=observation.quality.rating,
        quality_score=observation.quality.score,
    )
    if observation.state.state != match.match_state.value:
        await db_service.update_match_state(match_id, observation.state.state)

    event_id = None
    if observation.spike.is_spike:
        logger.warning(f"Match {match_id}: {observation.spike.description}")
        event_id = await db_service.create_event(
            match_id,
            "lag_spike",
            observation.spike.description,
            severity=observation.spike.severity,
            timestamp_ns=sample.timestamp,
            latency_ms=sample.latency_ms,
        )

    return MetricRecordResponse(
        metric_id=metric_id,
        quality=observation.quality.to_dict(),
        state=observation.state.to_dict(),
        spike=observation.spike.to_dict(),
        rolling_average_ms=observation.rolling_average_ms,
        event_id=event_id,
    )


@router.post("/matches/{match_id}/peers", response_model=PeerRecordResponse)
async def record_peer(match_id: int, peer: PeerCreate):
    """
    Ajoute ou met à jour un pair du match (clé: IP).
    Un événement peer_joined est créé pour un nouveau pair.
    """
    db_service = get_db_service()
    await _get_match_or_404(match_id)

    peer_id, is_new = await db_service.upsert_peer(match_id, peer)
    if is_new:
        location = peer.geo_city or peer.geo_country or "unknown location"
        await db_service.create_event(
            match_id,
            "peer_joined",
            f"Guardian connected from {location}",
            affected_peer_ip=peer.peer_ip,
        )
    return PeerRecordResponse(peer_id=peer_id, is_new=is_new)


@router.get("/matches/{match_id}", response_model=MatchDetails)
async def get_match_details(match_id: int):
    """
    Détail d'un match: pairs, timeline et résumé.

    Le résumé est calculé sur les métriques reçues, et absent tant qu'il
    n'y en a aucune. Pour un match terminé, durée, pairs et pics viennent
    de la ligne du match, ce qui redonne le résumé renvoyé à la fin.
    """
    db_service = get_db_service()
    match = await _get_match_or_404(match_id)

    aggregate = await db_service.compute_aggregate(match_id)
    if aggregate is not None and match.end_time is not None:
        aggregate = replace(
            aggregate,
            duration_ms=float(match.duration_ms or 0),
            peer_count=match.peer_count or 0,
            lag_spike_count=match.lag_spike_count or 0,
        )
    has_summary = aggregate is not None and (aggregate.sample_count or match.end_time is not None)
    result = summarize_session(aggregate) if has_summary else None

    return MatchDetails(
        match=match,
        peers=await db_service.get_match_peers(match_id),
        events=await db_service.get_match_events(match_id),
        summary=result.to_dict() if result else None,
    )


@router.get("/matches/{match_id}/live", response_model=LiveMetrics)
async def get_live_metrics(match_id: int, limit: int = Query(60, ge=1, le=3600)):
    """
    Vue temps réel: dernières métriques, 10 derniers événements et qualité
    de connexion du dernier échantillon.
    """
    db_service = get_db_service()
    match = await _get_match_or_404(match_id)

    metrics = await db_service.get_recent_metrics(match_id, limit=limit)
    events = await db_service.get_match_events(match_id, limit=10)

    current_quality = None
    if metrics:
        latest = metrics[-1]
        current_quality = rate_connection_quality(
            latest.latency_ms or 0.0, latest.packet_loss_percent or 0.0, latest.jitter_ms or 0.0
        ).to_dict()

    return LiveMetrics(
        match_id=match_id,
        match_state=match.match_state,
        match_state_label=match_state_label(match.match_state.value),
        metrics=metrics,
        events=events,
        current_quality=current_quality,
    )


@router.get("/stats", response_model=CrucibleStats)
async def get_stats():
    return await get_db_service().get_stats()
