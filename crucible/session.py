"""
Per-session classifier state.

The classifier functions are pure; the little memory they need (a rolling
window of recent latencies and the previous session state) is threaded
through a SessionContext owned by whoever feeds the samples. One context per
session, never shared.
"""

from collections import deque
from typing import Deque, Iterable, List, Optional

from .analyzers.connection_quality import rate_connection_quality
from .analyzers.lag_spike import detect_lag_spike
from .analyzers.match_summary import aggregate_session, summarize_session
from .analyzers.session_state import classify_session_state
from .models import MetricSample, QualityRating, SampleObservation, SessionAggregate, SessionState, SessionSummary
from .terminology import MATCH_STATES, match_state_label

DEFAULT_WINDOW_SIZE = 10


class SessionContext:
    """
    Rolling state of one monitored session.

    Attributes:
        session_id: Identifier of the session (match id, device id...)
        window_size: Number of recent latencies kept for the rolling average
        previous_state: SessionState of the last observed sample
        lag_spike_count: Spikes detected so far
        last_quality: QualityRating of the last observed sample
        samples: Observed samples, kept for end-of-session aggregation
    """

    def __init__(self, session_id: Optional[str] = None, window_size: int = DEFAULT_WINDOW_SIZE):
        if window_size < 1:
            raise ValueError(f"window_size must be >= 1, got {window_size}")
        self.session_id = session_id
        self.window_size = window_size
        self._latencies: Deque[float] = deque(maxlen=window_size)
        self.previous_state: Optional[SessionState] = None
        self.lag_spike_count = 0
        self.last_quality: Optional[QualityRating] = None
        self.samples: List[MetricSample] = []

    @classmethod
    def resume(
        cls,
        session_id: Optional[str],
        recent_latencies: Iterable[float],
        previous_state: Optional[str] = None,
        window_size: int = DEFAULT_WINDOW_SIZE,
    ) -> "SessionContext":
        """
        Rebuild a context from stored history, oldest latency first.

        The confidence of a restored previous state is not stored, so it is 0.
        States outside the classifier vocabulary (e.g. "unknown") are dropped.
        """
        context = cls(session_id, window_size=window_size)
        for latency in recent_latencies:
            context.push_latency(latency)
        if previous_state in MATCH_STATES:
            context.previous_state = SessionState(previous_state, 0.0, match_state_label(previous_state))
        return context

    def __len__(self) -> int:
        return len(self.samples)

    @property
    def window(self) -> List[float]:
        return list(self._latencies)

    def rolling_average(self, default: float = 0.0) -> float:
        """Mean of the latencies in the window, or `default` when it is empty."""
        if not self._latencies:
            return default
        return sum(self._latencies) / len(self._latencies)

    def push_latency(self, latency_ms: float) -> None:
        self._latencies.append(latency_ms)

    def observe(self, sample: MetricSample) -> SampleObservation:
        """
        Run rater, spike detector and classifier on one sample and advance
        the session state.

        The spike detector compares the sample against the average of the
        samples before it; the first sample of a session is compared with
        itself and can only be a critical spike.
        """
        average = self.rolling_average(default=sample.latency_ms)
        quality = rate_connection_quality(sample.latency_ms, sample.packet_loss_percent, sample.jitter_ms)
        spike = detect_lag_spike(sample.latency_ms, average)
        state = classify_session_state(
            sample.bytes_per_second,
            sample.peer_count,
            sample.bungie_traffic_percent,
            sample.p2p_traffic_percent,
            previous_state=self.previous_state,
        )

        observation = SampleObservation(
            sample=sample,
            quality=quality,
            state=state,
            spike=spike,
            rolling_average_ms=average,
            previous_state=self.previous_state,
        )

        self.push_latency(sample.latency_ms)
        self.previous_state = state
        self.last_quality = quality
        self.samples.append(sample)
        if spike.is_spike:
            self.lag_spike_count += 1

        return observation

    def aggregate(self, peer_count: Optional[int] = None) -> SessionAggregate:
        return aggregate_session(self.samples, self.lag_spike_count, peer_count=peer_count)

    def summarize(self, peer_count: Optional[int] = None) -> SessionSummary:
        return summarize_session(self.aggregate(peer_count=peer_count))
