"""
Tests for strict sample validation
"""

import math

import pytest

from crucible.exceptions import CrucibleError, InvalidMetricError
from crucible.validation import validate_sample


class TestValidateSample:
    def test_valid_sample_passes(self, sample_factory):
        validate_sample(sample_factory())

    def test_boundaries_are_valid(self, sample_factory):
        validate_sample(
            sample_factory(
                latency_ms=0, jitter_ms=0, packet_loss_percent=100, bungie_traffic_percent=0, p2p_traffic_percent=100
            )
        )

    @pytest.mark.parametrize(
        "field,value",
        [
            ("packet_loss_percent", 101),
            ("packet_loss_percent", -0.1),
            ("bungie_traffic_percent", 150),
            ("p2p_traffic_percent", -5),
        ],
    )
    def test_percentage_out_of_range(self, sample_factory, field, value):
        with pytest.raises(InvalidMetricError) as exc_info:
            validate_sample(sample_factory(**{field: value}))

        assert exc_info.value.field == field
        assert exc_info.value.value == value
        assert "between 0 and 100" in str(exc_info.value)

    @pytest.mark.parametrize("field", ["latency_ms", "jitter_ms", "bytes_per_second", "peer_count"])
    def test_negative_values(self, sample_factory, field):
        with pytest.raises(InvalidMetricError, match="must not be negative"):
            validate_sample(sample_factory(**{field: -1}))

    @pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
    def test_non_finite_values(self, sample_factory, value):
        with pytest.raises(InvalidMetricError, match="finite"):
            validate_sample(sample_factory(latency_ms=value))

    def test_error_hierarchy(self):
        error = InvalidMetricError("latency_ms", -1, "must not be negative")

        assert isinstance(error, CrucibleError)
        assert isinstance(error, ValueError)
