"""Tests for wastage arithmetic."""

import pytest

from rolltrack.services.wastage import WastageResult, calculate_wastage


@pytest.mark.unit
class TestCalculateWastage:

    def test_planned_vs_accepted(self):
        assert calculate_wastage(200, 180) == WastageResult(20.0, 10.0)

    def test_zero_planned_has_zero_percentage(self):
        result = calculate_wastage(0, 0)
        assert result.wastage_quantity == 0.0
        assert result.wastage_percentage == 0.0

    def test_over_acceptance_is_not_negative_wastage(self):
        assert calculate_wastage(100, 104.5) == WastageResult(0.0, 0.0)

    def test_two_decimal_places(self):
        result = calculate_wastage(3, 2)
        assert result.wastage_quantity == 1.0
        assert result.wastage_percentage == 33.33

    def test_rounds_half_up(self):
        # 0.01 / 8 * 100 = 0.125 exactly
        assert calculate_wastage(8, 7.99).wastage_percentage == 0.13
        assert calculate_wastage(130, 100).wastage_percentage == 23.08
