"""
Tests for SessionContext, the per-session rolling state
"""

import pytest

from crucible.session import DEFAULT_WINDOW_SIZE, SessionContext


class TestSessionContext:
    def test_defaults(self):
        context = SessionContext("match-1")

        assert context.window_size == DEFAULT_WINDOW_SIZE == 10
        assert context.previous_state is None
        assert context.lag_spike_count == 0
        assert len(context) == 0

    def test_invalid_window_size(self):
        with pytest.raises(ValueError):
            SessionContext(window_size=0)

    def test_rolling_window_is_bounded(self):
        context = SessionContext(window_size=3)
        for latency in (10, 20, 30, 40):
            context.push_latency(latency)

        assert context.window == [20, 30, 40]
        assert context.rolling_average() == 30

    def test_rolling_average_default(self):
        assert SessionContext().rolling_average(default=42.0) == 42.0

    def test_first_sample_compared_with_itself(self, sample_factory):
        context = SessionContext()

        observation = context.observe(sample_factory(latency_ms=200))

        assert observation.rolling_average_ms == 200
        assert observation.spike.is_spike is False
        assert observation.previous_state is None

    def test_spike_against_previous_samples_only(self, sample_factory):
        context = SessionContext()
        for i in range(5):
            context.observe(sample_factory(i, latency_ms=40))

        observation = context.observe(sample_factory(5, latency_ms=160))

        assert observation.rolling_average_ms == 40
        assert observation.spike.severity == "warning"
        assert "120ms above average" in observation.spike.description
        assert context.lag_spike_count == 1
        assert context.rolling_average() == pytest.approx((40 * 5 + 160) / 6)

    def test_state_is_threaded_forward(self, sample_factory):
        context = SessionContext()
        in_match = context.observe(sample_factory(0))
        assert in_match.state.state == "in_match"
        assert in_match.state_changed

        after = context.observe(sample_factory(1, peer_count=1, p2p_traffic_percent=5, bytes_per_second=5_000))

        assert after.previous_state.state == "in_match"
        assert after.state.state == "post_game"
        assert after.state_changed
        assert context.previous_state.state == "post_game"

    def test_unchanged_state(self, sample_factory):
        context = SessionContext()
        context.observe(sample_factory(0))

        assert context.observe(sample_factory(1)).state_changed is False

    def test_aggregate_and_summary(self, sample_factory):
        context = SessionContext("match-2")
        for i in range(10):
            context.observe(sample_factory(i))

        aggregate = context.aggregate()
        summary = context.summarize(peer_count=11)

        assert aggregate.sample_count == 10
        assert aggregate.duration_ms == pytest.approx(9_000)
        assert aggregate.peer_count == 6
        assert summary.overall_rating == "excellent"
        assert "Full lobby connection" in summary.highlights

    def test_resume_from_history(self, sample_factory):
        context = SessionContext.resume("7", [40, 40, 40], previous_state="in_match")

        assert context.window == [40, 40, 40]
        assert context.previous_state.state == "in_match"
        assert context.previous_state.confidence == 0.0

        observation = context.observe(sample_factory(latency_ms=160, peer_count=1, p2p_traffic_percent=0,
                                                     bytes_per_second=1_000))
        assert observation.spike.severity == "warning"
        assert observation.state.state == "post_game"

    def test_resume_ignores_unknown_state(self):
        context = SessionContext.resume("7", [], previous_state="unknown")

        assert context.previous_state is None

    def test_contexts_are_independent(self, sample_factory):
        first, second = SessionContext("a"), SessionContext("b")
        first.observe(sample_factory(0, latency_ms=400))

        assert first.lag_spike_count == 1
        assert second.lag_spike_count == 0
        assert second.window == []
