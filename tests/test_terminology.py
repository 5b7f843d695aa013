"""
Tests for the themed display vocabulary
"""

import pytest

from crucible.models import SessionEvent
from crucible.terminology import (
    CONNECTION_QUALITY_LABELS,
    EVENT_LABELS,
    EVENT_TYPES,
    MATCH_STATE_LABELS,
    MATCH_STATES,
    QUALITY_TIERS,
    as_dict,
    event_label,
    match_state_label,
)


class TestTerminology:
    def test_every_state_has_a_label(self):
        for state in MATCH_STATES:
            assert MATCH_STATE_LABELS[state]
        assert MATCH_STATE_LABELS["unknown"] == "Ghost Scanning"

    def test_quality_labels(self):
        assert dict(CONNECTION_QUALITY_LABELS) == {
            "excellent": "Flawless Connection",
            "good": "Stable Light",
            "fair": "Interference Detected",
            "poor": "Darkness Encroaching",
            "critical": "Guardian Down Risk",
        }
        assert set(CONNECTION_QUALITY_LABELS) == set(QUALITY_TIERS)

    def test_thirteen_event_labels(self):
        assert len(EVENT_TYPES) == 13
        assert set(EVENT_LABELS) == set(EVENT_TYPES)
        assert EVENT_LABELS["lag_spike"] == "Temporal Anomaly"
        assert EVENT_LABELS["match_start"] == "Match Initiated"

    def test_tables_are_read_only(self):
        with pytest.raises(TypeError):
            MATCH_STATE_LABELS["orbit"] = "Somewhere else"
        with pytest.raises(TypeError):
            EVENT_LABELS["new_event"] = "New"

    def test_lookups_with_fallback(self):
        assert match_state_label("in_match") == "Shaxx is Watching"
        assert match_state_label("bogus") == "Ghost Scanning"
        assert event_label("peer_joined") == "Guardian Joined"
        assert event_label("custom_event") == "custom_event"

    def test_as_dict_returns_copies(self):
        tables = as_dict()

        assert set(tables) == {"matchStates", "connectionQuality", "events"}
        tables["matchStates"]["orbit"] = "changed"
        assert MATCH_STATE_LABELS["orbit"] == "In Orbit"

    def test_session_event_label(self):
        event = SessionEvent("high_jitter", "warning", "Jitter at 60.0ms", 0)

        assert event.label == "Unstable Rift"
        assert event.to_dict()["label"] == "Unstable Rift"
