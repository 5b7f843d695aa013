"""
Service de gestion de la base de données pour le suivi des matchs.
Supporte SQLite et PostgreSQL via auto-détection (DATABASE_URL).
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from app.models.schemas import (
    CrucibleStats,
    DeviceCreate,
    DeviceInfo,
    EventInfo,
    MatchInfo,
    MetricInfo,
    PeerCreate,
    PeerInfo,
)
from app.services.postgres_database import DatabasePool
from crucible.models import SampleObservation, SessionAggregate, SessionEvent
from crucible.terminology import event_label, match_state_label
from crucible.utils.nanoseconds import now_ns

logger = logging.getLogger(__name__)


def _parse_timestamp(value) -> Optional[datetime]:
    """
    Parse timestamp from database (handles both SQLite strings and PostgreSQL datetime objects).
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        # PostgreSQL returns datetime objects directly
        return value
    if isinstance(value, str):
        # SQLite returns ISO format strings
        return datetime.fromisoformat(value)
    return None


def _as_float(value) -> Optional[float]:
    # PostgreSQL AVG() over integer columns yields Decimal
    return float(value) if value is not None else None


# {pk} / {ts} are filled in per backend by DatabasePool.render_schema().
# Match packet loss is stored as percent x 100 (INTEGER).
SCHEMA = """
CREATE TABLE IF NOT EXISTS crucible_devices (
    id {pk},
    extrahop_device_id BIGINT,
    device_name TEXT NOT NULL,
    mac_address TEXT,
    ip_address TEXT,
    platform TEXT NOT NULL DEFAULT 'PS5',
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    created_at {ts} NOT NULL
);

CREATE TABLE IF NOT EXISTS crucible_matches (
    id {pk},
    device_id INTEGER NOT NULL REFERENCES crucible_devices(id) ON DELETE CASCADE,
    match_state TEXT NOT NULL DEFAULT 'unknown',
    game_mode TEXT,
    start_time {ts},
    end_time {ts},
    duration_ms BIGINT,
    avg_latency_ms DOUBLE PRECISION,
    max_latency_ms DOUBLE PRECISION,
    min_latency_ms DOUBLE PRECISION,
    packet_loss_percent INTEGER,
    avg_jitter_ms DOUBLE PRECISION,
    peer_count INTEGER,
    lag_spike_count INTEGER NOT NULL DEFAULT 0,
    bungie_server_ip TEXT,
    result TEXT,
    overall_rating TEXT,
    created_at {ts} NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_matches_device ON crucible_matches(device_id);
CREATE INDEX IF NOT EXISTS idx_matches_start ON crucible_matches(start_time);

CREATE TABLE IF NOT EXISTS crucible_metrics (
    id {pk},
    match_id INTEGER NOT NULL REFERENCES crucible_matches(id) ON DELETE CASCADE,
    timestamp_ns BIGINT NOT NULL,
    latency_ms DOUBLE PRECISION,
    jitter_ms DOUBLE PRECISION,
    packet_loss_percent DOUBLE PRECISION,
    packets_sent BIGINT NOT NULL DEFAULT 0,
    packets_received BIGINT NOT NULL DEFAULT 0,
    packets_lost BIGINT NOT NULL DEFAULT 0,
    bytes_sent BIGINT NOT NULL DEFAULT 0,
    bytes_received BIGINT NOT NULL DEFAULT 0,
    bungie_traffic_bytes BIGINT NOT NULL DEFAULT 0,
    p2p_traffic_bytes BIGINT NOT NULL DEFAULT 0,
    peer_count INTEGER,
    match_state TEXT,
    quality_rating TEXT,
    quality_score INTEGER
);

CREATE INDEX IF NOT EXISTS idx_metrics_match_ts ON crucible_metrics(match_id, timestamp_ns);

CREATE TABLE IF NOT EXISTS crucible_peers (
    id {pk},
    match_id INTEGER NOT NULL REFERENCES crucible_matches(id) ON DELETE CASCADE,
    peer_ip TEXT NOT NULL,
    peer_port INTEGER,
    connection_start_time {ts},
    connection_end_time {ts},
    avg_latency_ms DOUBLE PRECISION,
    max_latency_ms DOUBLE PRECISION,
    geo_country TEXT,
    geo_region TEXT,
    geo_city TEXT,
    isp TEXT,
    UNIQUE (match_id, peer_ip)
);

CREATE TABLE IF NOT EXISTS crucible_events (
    id {pk},
    match_id INTEGER NOT NULL REFERENCES crucible_matches(id) ON DELETE CASCADE,
    timestamp_ns BIGINT NOT NULL,
    event_type TEXT NOT NULL,
    severity TEXT NOT NULL DEFAULT 'info',
    description TEXT,
    latency_ms DOUBLE PRECISION,
    packet_loss_percent DOUBLE PRECISION,
    affected_peer_ip TEXT
);

CREATE INDEX IF NOT EXISTS idx_events_match_ts ON crucible_events(match_id, timestamp_ns);
"""

MATCH_COLUMNS = """
    id, device_id, match_state, game_mode, start_time, end_time, duration_ms,
    avg_latency_ms, max_latency_ms, min_latency_ms, packet_loss_percent,
    avg_jitter_ms, peer_count, lag_spike_count, bungie_server_ip, result, overall_rating
"""

METRIC_COLUMNS = """
    id, timestamp_ns, latency_ms, jitter_ms, packet_loss_percent,
    packets_sent, packets_received, packets_lost, bytes_sent, bytes_received,
    bungie_traffic_bytes, p2p_traffic_bytes, peer_count, match_state,
    quality_rating, quality_score
"""

EVENT_COLUMNS = """
    id, match_id, timestamp_ns, event_type, severity, description,
    latency_ms, packet_loss_percent, affected_peer_ip
"""


def _row_to_device(row: dict) -> DeviceInfo:
    return DeviceInfo(
        id=row["id"],
        device_name=row["device_name"],
        extrahop_device_id=row["extrahop_device_id"],
        mac_address=row["mac_address"],
        ip_address=row["ip_address"],
        platform=row["platform"],
        is_active=bool(row["is_active"]),
        created_at=_parse_timestamp(row["created_at"]),
    )


def _row_to_match(row: dict) -> MatchInfo:
    loss = row["packet_loss_percent"]
    return MatchInfo(
        id=row["id"],
        device_id=row["device_id"],
        match_state=row["match_state"],
        match_state_label=match_state_label(row["match_state"]),
        game_mode=row["game_mode"],
        start_time=_parse_timestamp(row["start_time"]),
        end_time=_parse_timestamp(row["end_time"]),
        duration_ms=row["duration_ms"],
        avg_latency_ms=row["avg_latency_ms"],
        max_latency_ms=row["max_latency_ms"],
        min_latency_ms=row["min_latency_ms"],
        packet_loss_percent=loss / 100 if loss is not None else None,
        avg_jitter_ms=row["avg_jitter_ms"],
        peer_count=row["peer_count"],
        lag_spike_count=row["lag_spike_count"] or 0,
        bungie_server_ip=row["bungie_server_ip"],
        result=row["result"],
        overall_rating=row["overall_rating"],
    )


def _row_to_event(row: dict) -> EventInfo:
    return EventInfo(label=event_label(row["event_type"]), **row)


def _row_to_peer(row: dict) -> PeerInfo:
    row = dict(row)
    row["connection_start_time"] = _parse_timestamp(row["connection_start_time"])
    row["connection_end_time"] = _parse_timestamp(row["connection_end_time"])
    return PeerInfo(**row)


class DatabaseService:
    """
    Service pour opérations CRUD sur les consoles, matchs, métriques, pairs et événements.

    Supporte SQLite et PostgreSQL via DatabasePool (auto-détection DATABASE_URL).
    """

    def __init__(self, database_url: Optional[str] = None):
        """
        Args:
            database_url: Database URL (sqlite:/// or postgresql://). If None, uses DATABASE_URL env var.
        """
        self.pool = DatabasePool(database_url)

    async def init_db(self):
        """
        Initialise la base de données avec le schéma.
        Idempotent: peut être appelé plusieurs fois sans problème.
        """
        await self.pool.connect()
        await self.pool.execute_script(self.pool.render_schema(SCHEMA))
        logger.info(f"{self.pool.db_type} database initialized")

    async def close(self):
        await self.pool.close()

    # --- Devices -----------------------------------------------------------

    async def create_device(self, device: DeviceCreate) -> DeviceInfo:
        """
        Enregistre une console à surveiller.

        Returns:
            DeviceInfo object
        """
        created_at = datetime.now(timezone.utc)
        query, params = self.pool.translate_query(
            """
            INSERT INTO crucible_devices (
                extrahop_device_id, device_name, mac_address, ip_address, platform, is_active, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                device.extrahop_device_id,
                device.device_name,
                device.mac_address,
                device.ip_address,
                device.platform,
                True,
                created_at,
            ),
        )
        device_id = await self.pool.insert(query, *params)

        logger.info(f"Device created: {device_id} ({device.device_name}, {device.platform})")
        return DeviceInfo(id=device_id, created_at=created_at, **device.model_dump())

    async def get_device(self, device_id: int) -> Optional[DeviceInfo]:
        query, params = self.pool.translate_query("SELECT * FROM crucible_devices WHERE id = ?", (device_id,))
        row = await self.pool.fetch_one(query, *params)
        return _row_to_device(row) if row else None

    async def list_devices(self, active_only: bool = True) -> List[DeviceInfo]:
        if active_only:
            query, params = self.pool.translate_query(
                "SELECT * FROM crucible_devices WHERE is_active = ? ORDER BY id", (True,)
            )
        else:
            query, params = "SELECT * FROM crucible_devices ORDER BY id", ()
        rows = await self.pool.fetch_all(query, *params)
        return [_row_to_device(row) for row in rows]

    async def delete_device(self, device_id: int) -> bool:
        """
        Supprime une console et, en cascade, ses matchs.

        Returns:
            True si la console existait
        """
        query, params = self.pool.translate_query("DELETE FROM crucible_devices WHERE id = ?", (device_id,))
        deleted = await self.pool.execute(query, *params)
        if deleted:
            logger.info(f"Device deleted: {device_id}")
        return deleted > 0

    # --- Matches -----------------------------------------------------------

    async def create_match(
        self,
        device_id: int,
        game_mode: Optional[str] = None,
        bungie_server_ip: Optional[str] = None,
    ) -> MatchInfo:
        """
        Crée un match (état 'matchmaking', démarré maintenant).
        """
        now = datetime.now(timezone.utc)
        query, params = self.pool.translate_query(
            """
            INSERT INTO crucible_matches (
                device_id, match_state, game_mode, start_time, bungie_server_ip, created_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (device_id, "matchmaking", game_mode, now, bungie_server_ip, now),
        )
        match_id = await self.pool.insert(query, *params)

        logger.info(f"Match {match_id} started for device {device_id} ({game_mode or 'unknown mode'})")
        return await self.get_match(match_id)

    async def get_match(self, match_id: int) -> Optional[MatchInfo]:
        query, params = self.pool.translate_query(
            f"SELECT {MATCH_COLUMNS} FROM crucible_matches WHERE id = ?", (match_id,)
        )
        row = await self.pool.fetch_one(query, *params)
        return _row_to_match(row) if row else None

    async def get_active_match(self, device_id: int) -> Optional[MatchInfo]:
        """
        Match en cours (non terminé) d'une console, ou None.
        """
        query, params = self.pool.translate_query(
            f"""
            SELECT {MATCH_COLUMNS} FROM crucible_matches
            WHERE device_id = ? AND end_time IS NULL
            ORDER BY start_time DESC
            LIMIT 1
            """,
            (device_id,),
        )
        row = await self.pool.fetch_one(query, *params)
        return _row_to_match(row) if row else None

    async def list_active_matches(self) -> List[MatchInfo]:
        rows = await self.pool.fetch_all(
            f"SELECT {MATCH_COLUMNS} FROM crucible_matches WHERE end_time IS NULL ORDER BY id"
        )
        return [_row_to_match(row) for row in rows]

    async def get_recent_matches(self, limit: int = 20, device_id: Optional[int] = None) -> List[MatchInfo]:
        """
        Récupère les matchs récents (historique).

        Returns:
            Liste de MatchInfo, triée par date de début décroissante
        """
        if device_id is not None:
            query, params = self.pool.translate_query(
                f"""
                SELECT {MATCH_COLUMNS} FROM crucible_matches
                WHERE device_id = ?
                ORDER BY start_time DESC, id DESC
                LIMIT ?
                """,
                (device_id, limit),
            )
        else:
            query, params = self.pool.translate_query(
                f"""
                SELECT {MATCH_COLUMNS} FROM crucible_matches
                ORDER BY start_time DESC, id DESC
                LIMIT ?
                """,
                (limit,),
            )
        rows = await self.pool.fetch_all(query, *params)
        return [_row_to_match(row) for row in rows]

    async def update_match_state(self, match_id: int, match_state: str):
        query, params = self.pool.translate_query(
            "UPDATE crucible_matches SET match_state = ? WHERE id = ?", (match_state, match_id)
        )
        await self.pool.execute(query, *params)
        logger.debug(f"Match {match_id} state: {match_state}")

    async def compute_aggregate(self, match_id: int, end_time: Optional[datetime] = None) -> Optional[SessionAggregate]:
        """
        Agrège les métriques d'un match.

        La durée court du début du match jusqu'à end_time (défaut: maintenant).
        La perte de paquets est la moyenne des pourcentages enregistrés par
        échantillon, déjà résolus à l'enregistrement.

        Returns:
            SessionAggregate, ou None si le match n'existe pas
        """
        match = await self.get_match(match_id)
        if match is None:
            return None

        query, params = self.pool.translate_query(
            """
            SELECT COUNT(*) AS samples,
                   AVG(latency_ms) AS avg_latency,
                   MAX(latency_ms) AS max_latency,
                   MIN(latency_ms) AS min_latency,
                   AVG(jitter_ms) AS avg_jitter,
                   AVG(packet_loss_percent) AS avg_loss
            FROM crucible_metrics WHERE match_id = ?
            """,
            (match_id,),
        )
        row = await self.pool.fetch_one(query, *params)

        end_time = end_time or datetime.now(timezone.utc)
        duration_ms = 0.0
        if match.start_time is not None:
            start = match.start_time
            if start.tzinfo is None:
                start = start.replace(tzinfo=timezone.utc)
            duration_ms = max(0.0, (end_time - start).total_seconds() * 1000)

        return SessionAggregate(
            duration_ms=duration_ms,
            avg_latency_ms=_as_float(row["avg_latency"]) or 0.0,
            max_latency_ms=_as_float(row["max_latency"]) or 0.0,
            min_latency_ms=_as_float(row["min_latency"]) or 0.0,
            packet_loss_percent=_as_float(row["avg_loss"]) or 0.0,
            avg_jitter_ms=_as_float(row["avg_jitter"]) or 0.0,
            peer_count=await self.count_peers(match_id),
            lag_spike_count=await self.count_events(match_id, "lag_spike"),
            sample_count=int(row["samples"] or 0),
        )

    async def end_match(
        self,
        match_id: int,
        result: str = "unknown",
        overall_rating: Optional[str] = None,
        aggregate: Optional[SessionAggregate] = None,
    ) -> Optional[Tuple[MatchInfo, SessionAggregate]]:
        """
        Termine un match: calcule les agrégats et passe l'état à 'post_game'.

        Args:
            match_id: ID du match
            result: Résultat déclaré (victory, defeat, mercy, disconnect, unknown)
            overall_rating: Note de qualité globale à enregistrer
            aggregate: Agrégats déjà calculés (sinon compute_aggregate)

        Returns:
            (MatchInfo, SessionAggregate), ou None si le match n'existe pas
        """
        end_time = datetime.now(timezone.utc)
        if aggregate is None:
            aggregate = await self.compute_aggregate(match_id, end_time)
            if aggregate is None:
                return None

        query, params = self.pool.translate_query(
            """
            UPDATE crucible_matches
            SET match_state = ?, end_time = ?, duration_ms = ?,
                avg_latency_ms = ?, max_latency_ms = ?, min_latency_ms = ?,
                packet_loss_percent = ?, avg_jitter_ms = ?, peer_count = ?,
                lag_spike_count = ?, result = ?, overall_rating = ?
            WHERE id = ?
            """,
            (
                "post_game",
                end_time,
                int(round(aggregate.duration_ms)),
                aggregate.avg_latency_ms,
                aggregate.max_latency_ms,
                aggregate.min_latency_ms,
                int(round(aggregate.packet_loss_percent * 100)),
                aggregate.avg_jitter_ms,
                aggregate.peer_count,
                aggregate.lag_spike_count,
                result,
                overall_rating,
                match_id,
            ),
        )
        updated = await self.pool.execute(query, *params)
        if not updated:
            return None

        await self.create_event(match_id, "match_end", f"Match ended: {result}")
        logger.info(
            f"Match {match_id} ended ({result}): {aggregate.sample_count} samples, "
            f"{aggregate.lag_spike_count} lag spikes"
        )
        return await self.get_match(match_id), aggregate

    # --- Metrics -----------------------------------------------------------

    async def create_metric(
        self,
        match_id: int,
        timestamp_ns: int,
        latency_ms: Optional[float],
        jitter_ms: Optional[float],
        packet_loss_percent: Optional[float],
        packets_sent: int = 0,
        packets_received: int = 0,
        packets_lost: int = 0,
        bytes_sent: int = 0,
        bytes_received: int = 0,
        bungie_traffic_bytes: int = 0,
        p2p_traffic_bytes: int = 0,
        peer_count: Optional[int] = None,
        match_state: Optional[str] = None,
        quality_rating: Optional[str] = None,
        quality_score: Optional[int] = None,
    ) -> int:
        """
        Enregistre un échantillon de métriques.

        Returns:
            ID de la métrique
        """
        query, params = self.pool.translate_query(
            """
            INSERT INTO crucible_metrics (
                match_id, timestamp_ns, latency_ms, jitter_ms, packet_loss_percent,
                packets_sent, packets_received, packets_lost, bytes_sent, bytes_received,
                bungie_traffic_bytes, p2p_traffic_bytes, peer_count, match_state,
                quality_rating, quality_score
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                match_id,
                timestamp_ns,
                latency_ms,
                jitter_ms,
                packet_loss_percent,
                packets_sent,
                packets_received,
                packets_lost,
                bytes_sent,
                bytes_received,
                bungie_traffic_bytes,
                p2p_traffic_bytes,
                peer_count,
                match_state,
                quality_rating,
                quality_score,
            ),
        )
        return await self.pool.insert(query, *params)

    async def get_recent_metrics(self, match_id: int, limit: int = 60) -> List[MetricInfo]:
        """
        Dernières métriques d'un match, de la plus ancienne à la plus récente.
        """
        query, params = self.pool.translate_query(
            f"""
            SELECT {METRIC_COLUMNS} FROM crucible_metrics
            WHERE match_id = ?
            ORDER BY timestamp_ns DESC, id DESC
            LIMIT ?
            """,
            (match_id, limit),
        )
        rows = await self.pool.fetch_all(query, *params)
        return [MetricInfo(**row) for row in reversed(rows)]

    async def record_observation(self, session_id: str, observation: SampleObservation) -> None:
        """
        Observation sink of the telemetry ingestor: session ids are match ids.

        Stores the sample with what the classifier derived from it and keeps
        the match row's state current.
        """
        match_id = int(session_id)
        sample = observation.sample
        await self.create_metric(
            match_id,
            timestamp_ns=sample.timestamp,
            latency_ms=sample.latency_ms,
            jitter_ms=sample.jitter_ms,
            packet_loss_percent=sample.packet_loss_percent,
            peer_count=sample.peer_count,
            match_state=observation.state.state,
            quality_rating=observation.quality.rating,
            quality_score=observation.quality.score,
        )
        if observation.state_changed:
            await self.update_match_state(match_id, observation.state.state)

    # --- Peers -------------------------------------------------------------

    async def upsert_peer(self, match_id: int, peer: PeerCreate) -> Tuple[int, bool]:
        """
        Ajoute un pair au match, ou met à jour celui qui a la même IP.

        Returns:
            (peer_id, is_new)
        """
        query, params = self.pool.translate_query(
            "SELECT id FROM crucible_peers WHERE match_id = ? AND peer_ip = ?", (match_id, peer.peer_ip)
        )
        existing = await self.pool.fetch_one(query, *params)

        if existing:
            query, params = self.pool.translate_query(
                """
                UPDATE crucible_peers
                SET peer_port = COALESCE(?, peer_port),
                    avg_latency_ms = COALESCE(?, avg_latency_ms),
                    max_latency_ms = COALESCE(?, max_latency_ms),
                    geo_country = COALESCE(?, geo_country),
                    geo_region = COALESCE(?, geo_region),
                    geo_city = COALESCE(?, geo_city),
                    isp = COALESCE(?, isp)
                WHERE id = ?
                """,
                (
                    peer.peer_port,
                    peer.avg_latency_ms,
                    peer.max_latency_ms,
                    peer.geo_country,
                    peer.geo_region,
                    peer.geo_city,
                    peer.isp,
                    existing["id"],
                ),
            )
            await self.pool.execute(query, *params)
            return existing["id"], False

        query, params = self.pool.translate_query(
            """
            INSERT INTO crucible_peers (
                match_id, peer_ip, peer_port, connection_start_time, avg_latency_ms,
                max_latency_ms, geo_country, geo_region, geo_city, isp
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                match_id,
                peer.peer_ip,
                peer.peer_port,
                datetime.now(timezone.utc),
                peer.avg_latency_ms,
                peer.max_latency_ms,
                peer.geo_country,
                peer.geo_region,
                peer.geo_city,
                peer.isp,
            ),
        )
        peer_id = await self.pool.insert(query, *params)
        logger.info(f"Match {match_id}: peer {peer.peer_ip} joined")
        return peer_id, True

    async def get_match_peers(self, match_id: int) -> List[PeerInfo]:
        query, params = self.pool.translate_query(
            """
            SELECT id, match_id, peer_ip, peer_port, connection_start_time, connection_end_time,
                   avg_latency_ms, max_latency_ms, geo_country, geo_region, geo_city, isp
            FROM crucible_peers WHERE match_id = ? ORDER BY id
            """,
            (match_id,),
        )
        rows = await self.pool.fetch_all(query, *params)
        return [_row_to_peer(row) for row in rows]

    async def count_peers(self, match_id: int) -> int:
        query, params = self.pool.translate_query(
            "SELECT COUNT(*) AS count FROM crucible_peers WHERE match_id = ?", (match_id,)
        )
        return int(await self.pool.fetch_value(query, *params) or 0)

    # --- Events ------------------------------------------------------------

    async def create_event(
        self,
        match_id: int,
        event_type: str,
        description: Optional[str] = None,
        severity: str = "info",
        timestamp_ns: Optional[int] = None,
        latency_ms: Optional[float] = None,
        packet_loss_percent: Optional[float] = None,
        affected_peer_ip: Optional[str] = None,
    ) -> int:
        """
        Ajoute un événement à la timeline d'un match.

        Returns:
            ID de l'événement
        """
        query, params = self.pool.translate_query(
            """
            INSERT INTO crucible_events (
                match_id, timestamp_ns, event_type, severity, description,
                latency_ms, packet_loss_percent, affected_peer_ip
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                match_id,
                timestamp_ns if timestamp_ns is not None else now_ns(),
                event_type,
                severity,
                description,
                latency_ms,
                packet_loss_percent,
                affected_peer_ip,
            ),
        )
        return await self.pool.insert(query, *params)

    async def record_session_event(self, session_id: str, event: SessionEvent) -> None:
        """Event sink of the telemetry ingestor: session ids are match ids."""
        await self.create_event(
            int(session_id),
            event.event_type,
            description=event.description,
            severity=event.severity,
            timestamp_ns=event.timestamp,
            latency_ms=event.data.get("latency_ms"),
            packet_loss_percent=event.data.get("packet_loss_percent"),
        )

    async def get_match_events(self, match_id: int, limit: Optional[int] = None) -> List[EventInfo]:
        """
        Événements d'un match. Avec limit: les plus récents d'abord; sinon
        toute la timeline dans l'ordre chronologique.
        """
        if limit is not None:
            query, params = self.pool.translate_query(
                f"""
                SELECT {EVENT_COLUMNS} FROM crucible_events
                WHERE match_id = ?
                ORDER BY timestamp_ns DESC, id DESC
                LIMIT ?
                """,
                (match_id, limit),
            )
        else:
            query, params = self.pool.translate_query(
                f"SELECT {EVENT_COLUMNS} FROM crucible_events WHERE match_id = ? ORDER BY timestamp_ns, id",
                (match_id,),
            )
        rows = await self.pool.fetch_all(query, *params)
        return [_row_to_event(row) for row in rows]

    async def count_events(self, match_id: int, event_type: str) -> int:
        query, params = self.pool.translate_query(
            "SELECT COUNT(*) AS count FROM crucible_events WHERE match_id = ? AND event_type = ?",
            (match_id, event_type),
        )
        return int(await self.pool.fetch_value(query, *params) or 0)

    # --- Stats -------------------------------------------------------------

    async def get_stats(self) -> CrucibleStats:
        """
        Récupère des statistiques globales sur les matchs.
        """
        total = await self.pool.fetch_value("SELECT COUNT(*) AS count FROM crucible_matches")
        active = await self.pool.fetch_value("SELECT COUNT(*) AS count FROM crucible_matches WHERE end_time IS NULL")

        completed = await self.pool.fetch_one(
            """
            SELECT COUNT(*) AS count,
                   AVG(avg_latency_ms) AS avg_latency,
                   AVG(packet_loss_percent) AS avg_loss,
                   SUM(lag_spike_count) AS spikes
            FROM crucible_matches WHERE end_time IS NOT NULL
            """
        )

        results = await self.pool.fetch_all(
            """
            SELECT result, COUNT(*) AS count FROM crucible_matches
            WHERE end_time IS NOT NULL GROUP BY result
            """
        )
        ratings = await self.pool.fetch_all(
            """
            SELECT overall_rating, COUNT(*) AS count FROM crucible_matches
            WHERE overall_rating IS NOT NULL GROUP BY overall_rating
            """
        )

        avg_loss = _as_float(completed["avg_loss"])
        return CrucibleStats(
            total_matches=int(total or 0),
            active_matches=int(active or 0),
            completed_matches=int(completed["count"] or 0),
            avg_latency_ms=_as_float(completed["avg_latency"]),
            avg_packet_loss_percent=avg_loss / 100 if avg_loss is not None else None,
            total_lag_spikes=int(completed["spikes"] or 0),
            results={(row["result"] or "unknown"): int(row["count"]) for row in results},
            ratings={row["overall_rating"]: int(row["count"]) for row in ratings},
        )


# Singleton instance
_db_service: Optional[DatabaseService] = None


def get_db_service() -> DatabaseService:
    """
    Retourne l'instance singleton du DatabaseService.

    Returns:
        DatabaseService instance
    """
    global _db_service
    if _db_service is None:
        # Auto-detect database from DATABASE_URL environment variable
        # Defaults to SQLite if not set
        _db_service = DatabaseService()
    return _db_service
