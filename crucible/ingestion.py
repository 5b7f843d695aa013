"""
Telemetry ingestion.

`TelemetryIngestor` feeds samples through each session's SessionContext and
turns what the classifier derives into timeline events. `PollingLoop` pulls
the samples from the network appliance on a fixed interval.

Each session has its own context and its own lock, so samples of one session
are processed strictly one after another while different sessions proceed
independently.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from .exceptions import CrucibleError
from .extrahop.parsing import parse_realtime_metrics, summarize_topology, to_metric_sample
from .models import MetricSample, SampleObservation, SessionAggregate, SessionEvent, SessionSummary
from .session import DEFAULT_WINDOW_SIZE, SessionContext
from .utils.logging_config import get_events_logger
from .validation import validate_sample

logger = logging.getLogger(__name__)
events_logger = get_events_logger()

EventSink = Callable[[str, SessionEvent], Awaitable[None]]
ObservationSink = Callable[[str, SampleObservation], Awaitable[None]]

DEFAULT_PACKET_LOSS_ALERT_PERCENT = 2.0
DEFAULT_JITTER_ALERT_MS = 50.0

# Quality tiers on either side of the degraded/recovered boundary. 'fair'
# belongs to neither, so a connection hovering around it does not flap.
HEALTHY_TIERS = frozenset({"excellent", "good"})
DEGRADED_TIERS = frozenset({"poor", "critical"})

TOPOLOGY_WINDOW_MS = -60_000


@dataclass
class IngestResult:
    """Outcome of ingesting one sample."""

    session_id: str
    observation: SampleObservation
    events: List[SessionEvent] = field(default_factory=list)


@dataclass
class SessionReport:
    """Final aggregate and summary of an ended session."""

    session_id: str
    aggregate: SessionAggregate
    summary: SessionSummary

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "aggregate": self.aggregate.to_dict(),
            "summary": self.summary.to_dict(),
        }


class MemoryEventSink:
    """Event sink collecting (session_id, event) pairs in a list."""

    def __init__(self):
        self.events: List[tuple] = []

    async def __call__(self, session_id: str, event: SessionEvent) -> None:
        self.events.append((session_id, event))

    def of_type(self, event_type: str) -> List[SessionEvent]:
        return [event for _, event in self.events if event.event_type == event_type]


class TelemetryIngestor:
    """
    Per-session sample processing.

    Example:
        sink = MemoryEventSink()
        ingestor = TelemetryIngestor(sink=sink)
        result = await ingestor.ingest("match-1", sample)
        report = await ingestor.end_session("match-1")
    """

    def __init__(
        self,
        sink: Optional[EventSink] = None,
        observation_sink: Optional[ObservationSink] = None,
        packet_loss_alert_percent: float = DEFAULT_PACKET_LOSS_ALERT_PERCENT,
        jitter_alert_ms: float = DEFAULT_JITTER_ALERT_MS,
        window_size: int = DEFAULT_WINDOW_SIZE,
        strict: bool = False,
    ):
        """
        Args:
            sink: Async callable receiving every emitted event
            observation_sink: Async callable receiving every sample observation,
                before its events are emitted
            packet_loss_alert_percent: Loss above which packet_loss_spike is emitted
            jitter_alert_ms: Jitter above which high_jitter is emitted
            window_size: Rolling window size of each SessionContext
            strict: Reject out-of-range samples with InvalidMetricError
        """
        self.sink = sink
        self.observation_sink = observation_sink
        self.packet_loss_alert_percent = packet_loss_alert_percent
        self.jitter_alert_ms = jitter_alert_ms
        self.window_size = window_size
        self.strict = strict

        self._contexts: Dict[str, SessionContext] = {}
        # Never dropped, so a sample waiting on an ending session shares its lock
        self._locks: Dict[str, asyncio.Lock] = {}
        self._degraded: Dict[str, bool] = {}

    @classmethod
    def from_config(
        cls,
        config,
        sink: Optional[EventSink] = None,
        observation_sink: Optional[ObservationSink] = None,
    ) -> "TelemetryIngestor":
        """Build an ingestor from a crucible.config.Config."""
        return cls(
            sink=sink,
            observation_sink=observation_sink,
            packet_loss_alert_percent=config.get(
                "thresholds.packet_loss_alert_percent", DEFAULT_PACKET_LOSS_ALERT_PERCENT
            ),
            jitter_alert_ms=config.get("thresholds.jitter_alert_ms", DEFAULT_JITTER_ALERT_MS),
            window_size=config.get("ingestion.rolling_window", DEFAULT_WINDOW_SIZE),
            strict=bool(config.get("ingestion.strict_validation", False)),
        )

    @property
    def active_sessions(self) -> List[str]:
        return list(self._contexts)

    def get_context(self, session_id: str) -> Optional[SessionContext]:
        return self._contexts.get(session_id)

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        return lock

    async def ingest(self, session_id: str, sample: MetricSample) -> IngestResult:
        """
        Process one sample of a session and emit its events.

        Raises:
            InvalidMetricError: In strict mode, if the sample is out of range.
                The session state is left untouched.
        """
        async with self._lock_for(session_id):
            if self.strict:
                validate_sample(sample)

            context = self._contexts.get(session_id)
            if context is None:
                context = self._contexts[session_id] = SessionContext(session_id, window_size=self.window_size)
                logger.info(f"Session {session_id} started")

            observation = context.observe(sample)
            logger.debug(
                f"Session {session_id}: {observation.state.state} ({observation.state.confidence:.0f}%), "
                f"quality {observation.quality.rating} ({observation.quality.score})"
            )

            if self.observation_sink is not None:
                await self.observation_sink(session_id, observation)

            events = self._derive_events(session_id, observation)
            for event in events:
                await self._emit(session_id, event)

            return IngestResult(session_id=session_id, observation=observation, events=events)

    def _derive_events(self, session_id: str, observation: SampleObservation) -> List[SessionEvent]:
        sample = observation.sample
        ts = sample.timestamp
        events: List[SessionEvent] = []

        previous = observation.previous_state.state if observation.previous_state else None
        current = observation.state.state
        if current == "in_match" and previous != "in_match":
            events.append(
                SessionEvent(
                    "match_start",
                    "info",
                    f"Match detected with {sample.peer_count} peers",
                    ts,
                    {"peer_count": sample.peer_count, "confidence": observation.state.confidence},
                )
            )
        elif previous == "in_match" and current != "in_match":
            events.append(
                SessionEvent("match_end", "info", f"Match ended, session is now {current}", ts, {"state": current})
            )

        spike = observation.spike
        if spike.is_spike:
            events.append(
                SessionEvent(
                    "lag_spike",
                    spike.severity,
                    spike.description,
                    ts,
                    {"latency_ms": sample.latency_ms, "rolling_average_ms": observation.rolling_average_ms},
                )
            )

        if sample.packet_loss_percent > self.packet_loss_alert_percent:
            events.append(
                SessionEvent(
                    "packet_loss_spike",
                    "warning",
                    f"Packet loss at {sample.packet_loss_percent:.1f}%",
                    ts,
                    {"packet_loss_percent": sample.packet_loss_percent},
                )
            )

        if sample.jitter_ms > self.jitter_alert_ms:
            events.append(
                SessionEvent(
                    "high_jitter",
                    "warning",
                    f"Jitter at {sample.jitter_ms:.1f}ms",
                    ts,
                    {"jitter_ms": sample.jitter_ms},
                )
            )

        tier = observation.quality.rating
        was_degraded = self._degraded.get(session_id, False)
        if tier in DEGRADED_TIERS and not was_degraded:
            self._degraded[session_id] = True
            events.append(
                SessionEvent(
                    "connection_degraded",
                    "critical" if tier == "critical" else "warning",
                    f"Connection quality dropped to {tier} ({observation.quality.score})",
                    ts,
                    {"rating": tier, "score": observation.quality.score},
                )
            )
        elif tier in HEALTHY_TIERS and was_degraded:
            self._degraded[session_id] = False
            events.append(
                SessionEvent(
                    "connection_recovered",
                    "info",
                    f"Connection quality recovered to {tier} ({observation.quality.score})",
                    ts,
                    {"rating": tier, "score": observation.quality.score},
                )
            )

        return events

    async def _emit(self, session_id: str, event: SessionEvent) -> None:
        message = f"[{session_id}] {event.label}: {event.description or event.event_type}"
        if event.event_type == "lag_spike":
            logger.warning(message)
        events_logger.info(message)

        if self.sink is not None:
            await self.sink(session_id, event)

    async def end_session(self, session_id: str, peer_count: Optional[int] = None) -> Optional[SessionReport]:
        """
        Close a session: aggregate its samples, summarize it and drop its state.

        Returns:
            SessionReport, or None if the session never received a sample
        """
        async with self._lock_for(session_id):
            context = self._contexts.pop(session_id, None)
            self._degraded.pop(session_id, None)
            if context is None:
                logger.debug(f"end_session: no samples for session {session_id}")
                return None

            aggregate = context.aggregate(peer_count=peer_count)
            summary = context.summarize(peer_count=peer_count)

        logger.info(
            f"Session {session_id} ended: {aggregate.sample_count} samples, "
            f"{aggregate.lag_spike_count} spikes, rating {summary.overall_rating}"
        )
        return SessionReport(session_id=session_id, aggregate=aggregate, summary=summary)


class PollingLoop:
    """
    Polls the network appliance for every registered device and feeds the
    newest data point to the ingestor.

    A poll that is still running when the next tick comes is not doubled up;
    the device is skipped for that tick. Appliance errors are logged and the
    loop keeps going.
    """

    def __init__(self, client, ingestor: TelemetryIngestor, interval: float = 1.0):
        """
        Args:
            client: ExtrahopClient (or anything with the same async methods)
            ingestor: TelemetryIngestor receiving the samples
            interval: Seconds between ticks
        """
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")
        self.client = client
        self.ingestor = ingestor
        self.interval = interval

        # device_id -> session_id
        self.sessions: Dict[int, str] = {}
        self._poll_locks: Dict[int, asyncio.Lock] = {}
        self._last_timestamp: Dict[int, int] = {}
        self._inflight: set = set()

        self.task: Optional[asyncio.Task] = None
        self.is_running = False

    def register(self, device_id: int, session_id: Optional[str] = None) -> str:
        session_id = session_id or f"device-{device_id}"
        self.sessions[device_id] = session_id
        self._poll_locks.setdefault(device_id, asyncio.Lock())
        logger.info(f"Polling device {device_id} for session {session_id}")
        return session_id

    def unregister(self, device_id: int) -> Optional[str]:
        """Stop polling a device. The session itself is not ended."""
        self._poll_locks.pop(device_id, None)
        self._last_timestamp.pop(device_id, None)
        return self.sessions.pop(device_id, None)

    async def poll_once(self, device_id: int) -> Optional[IngestResult]:
        """
        Poll one device and ingest its newest data point.

        Returns:
            IngestResult, or None when the device is not registered, a poll
            is already running for it, or there is no new data point.

        Raises:
            ExtrahopError: If the appliance request fails
        """
        session_id = self.sessions.get(device_id)
        lock = self._poll_locks.get(device_id)
        if session_id is None or lock is None:
            return None
        if lock.locked():
            logger.debug(f"Poll for device {device_id} still running, skipping")
            return None

        async with lock:
            metrics = await self.client.get_device_realtime_metrics(device_id)
            points = parse_realtime_metrics(metrics.get("net"), metrics.get("tcp"))
            if not points:
                logger.debug(f"No realtime data for device {device_id}")
                return None

            newest = points[-1]
            if self._last_timestamp.get(device_id) == newest.timestamp_ms:
                return None

            topology = await self.client.get_device_topology(device_id, TOPOLOGY_WINDOW_MS)
            sample = to_metric_sample(newest, summarize_topology(topology, device_id))
            result = await self.ingestor.ingest(session_id, sample)
            self._last_timestamp[device_id] = newest.timestamp_ms
            return result

    async def _poll_safely(self, device_id: int) -> None:
        try:
            await self.poll_once(device_id)
        except CrucibleError as e:
            logger.error(f"Poll failed for device {device_id}: {e}")
        except Exception as e:
            logger.error(f"Unexpected error polling device {device_id}: {e}", exc_info=True)

    async def tick(self) -> None:
        """Start one poll per registered device without waiting for them."""
        for device_id in list(self.sessions):
            task = asyncio.create_task(self._poll_safely(device_id))
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)

    async def _run(self) -> None:
        logger.info(f"Polling loop started (interval {self.interval}s)")
        while self.is_running:
            await self.tick()
            await asyncio.sleep(self.interval)

    async def start(self) -> None:
        if self.is_running:
            logger.warning("Polling loop already running")
            return
        self.is_running = True
        self.task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop ticking and cancel polls still in flight."""
        if not self.is_running:
            return
        self.is_running = False

        pending = [t for t in (self.task, *self._inflight) if t is not None]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._inflight.clear()
        self.task = None
        logger.info("Polling loop stopped")
