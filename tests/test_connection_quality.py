"""
Test suite for the Connection Quality Rater

Three independent penalty ladders (latency, packet loss, jitter), first
matching bracket only, score floored at 0, tier on inclusive lower bounds.
"""

import pytest

from crucible.analyzers.connection_quality import (
    JITTER_PENALTIES,
    LATENCY_PENALTIES,
    PACKET_LOSS_PENALTIES,
    ConnectionQualityRater,
    ladder_penalty,
    quality_tier,
    rate_connection_quality,
)


class TestRateConnectionQuality:
    """Scores and tiers for representative triads"""

    def test_perfect_connection(self):
        result = rate_connection_quality(25, 0.1, 4)

        assert result.score == 100
        assert result.rating == "excellent"
        assert result.label == "Flawless Connection"

    def test_worst_case_floors_at_zero(self):
        """40 + 35 + 25 = 100 penalty"""
        result = rate_connection_quality(250, 6, 120)

        assert result.score == 0
        assert result.rating == "critical"
        assert result.label == "Guardian Down Risk"

    def test_mixed_penalties(self):
        """latency >150 (-30), loss >3 (-25), jitter >50 (-15) = 30 -> poor"""
        result = rate_connection_quality(160, 4, 60)

        assert result.score == 30
        assert result.rating == "poor"
        assert result.label == "Darkness Encroaching"

    def test_clean_connection_is_excellent(self):
        result = rate_connection_quality(20, 0, 5)

        assert result.rating == "excellent"
        assert result.score == 100

    def test_terrible_connection_is_critical(self):
        result = rate_connection_quality(300, 10, 80)

        assert result.rating == "critical"
        assert result.score < 40

    def test_only_first_bracket_of_each_ladder_applies(self):
        """250ms is above every latency threshold but only -40 applies"""
        assert rate_connection_quality(250, 0, 0).score == 60

    @pytest.mark.parametrize(
        "latency,expected",
        [(50, 100), (50.1, 95), (80, 95), (81, 90), (100, 90), (101, 80), (150, 80), (151, 70), (200, 70), (201, 60)],
    )
    def test_latency_brackets_are_strict(self, latency, expected):
        assert rate_connection_quality(latency, 0, 0).score == expected

    @pytest.mark.parametrize(
        "loss,expected",
        [(0.5, 100), (0.51, 95), (1, 95), (1.5, 90), (2.5, 85), (3.5, 75), (5, 75), (5.01, 65)],
    )
    def test_packet_loss_brackets(self, loss, expected):
        assert rate_connection_quality(0, loss, 0).score == expected

    @pytest.mark.parametrize("jitter,expected", [(20, 100), (21, 95), (31, 90), (51, 85), (101, 75)])
    def test_jitter_brackets(self, jitter, expected):
        assert rate_connection_quality(0, 0, jitter).score == expected

    def test_tier_boundaries_are_inclusive(self):
        """latency >50 (-5) and jitter >20 (-5) -> exactly 90"""
        assert rate_connection_quality(51, 0, 21).rating == "excellent"
        # -20 -10 = 70 -> good
        assert rate_connection_quality(101, 0, 31).rating == "good"

    def test_negative_inputs_take_no_penalty(self):
        result = rate_connection_quality(-5, -1, -10)

        assert result.score == 100
        assert result.rating == "excellent"

    def test_to_dict(self):
        assert rate_connection_quality(25, 0.1, 4).to_dict() == {
            "rating": "excellent",
            "score": 100,
            "label": "Flawless Connection",
        }


class TestLadders:
    """Helpers shared with the summary generator"""

    def test_ladder_penalty_zero_below_lowest_threshold(self):
        assert ladder_penalty(10, LATENCY_PENALTIES) == 0
        assert ladder_penalty(0.2, PACKET_LOSS_PENALTIES) == 0
        assert ladder_penalty(5, JITTER_PENALTIES) == 0

    def test_ladders_are_ordered_highest_first(self):
        for ladder in (LATENCY_PENALTIES, PACKET_LOSS_PENALTIES, JITTER_PENALTIES):
            thresholds = [threshold for threshold, _ in ladder]
            assert thresholds == sorted(thresholds, reverse=True)

    @pytest.mark.parametrize(
        "score,tier", [(100, "excellent"), (90, "excellent"), (89, "good"), (70, "good"), (69, "fair"), (50, "fair"),
                       (49, "poor"), (30, "poor"), (29, "critical"), (0, "critical")]
    )
    def test_quality_tier(self, score, tier):
        assert quality_tier(score) == tier


class TestConnectionQualityRater:
    def test_rate_matches_function(self):
        rater = ConnectionQualityRater()
        assert rater.rate(160, 4, 60) == rate_connection_quality(160, 4, 60)

    def test_rate_sample(self, sample_factory):
        rater = ConnectionQualityRater()
        sample = sample_factory(latency_ms=120, packet_loss_percent=2.5, jitter_ms=35)

        result = rater.rate_sample(sample)

        # -20 -15 -10
        assert result.score == 55
        assert result.rating == "fair"
        assert result.label == "Interference Detected"
