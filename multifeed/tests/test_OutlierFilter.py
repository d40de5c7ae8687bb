"""Unit tests for OutlierFilter."""

import pytest

from multifeed.src.OutlierFilter import (
    apply_outlier_filter,
    deviation_band,
    median_price,
    should_filter,
)
from multifeed.src.SourceCollector import SourceReading

NOW = 1_700_000_000


def reading(source: str, price: int, weight: int = 1_000_000) -> SourceReading:
    return SourceReading(source=source, price=price, weight=weight, timestamp=NOW)


class TestMedian:
    """Test integer median."""

    def test_odd(self) -> None:
        assert median_price([500, 100, 102]) == 102

    def test_even_averages_middle(self) -> None:
        assert median_price([100, 104, 102, 200]) == 103

    def test_even_floors(self) -> None:
        assert median_price([100, 101]) == 100

    def test_single(self) -> None:
        assert median_price([7]) == 7

    def test_empty(self) -> None:
        with pytest.raises(ValueError, match="empty"):
            median_price([])


class TestDeviationBand:
    """Test band computation in basis points."""

    def test_twenty_percent(self) -> None:
        assert deviation_band(102_00000000, 2000) == (81_60000000, 122_40000000)

    def test_zero_band(self) -> None:
        assert deviation_band(100, 0) == (100, 100)

    def test_full_band(self) -> None:
        assert deviation_band(100, 10_000) == (0, 200)


class TestShouldFilter:
    """Test activation conditions."""

    def test_needs_three_fresh(self) -> None:
        assert not should_filter(2, True, 5)
        assert should_filter(3, True, 5)

    def test_needs_three_configured(self) -> None:
        assert not should_filter(3, True, 2)

    def test_disabled(self) -> None:
        assert not should_filter(10, False, 10)


class TestApplyOutlierFilter:
    """Test deweighting of outliers."""

    def test_outlier_zeroed(self) -> None:
        """A far-off reading loses its weight but stays in the list."""
        readings = [
            reading("a", 100_00000000),
            reading("b", 102_00000000),
            reading("c", 500_00000000),
        ]
        filtered, median = apply_outlier_filter(readings, 2000, True, 3)

        assert median == 102_00000000
        assert [r.source for r in filtered] == ["a", "b", "c"]
        assert [r.weight for r in filtered] == [1_000_000, 1_000_000, 0]
        assert filtered[2].price == 500_00000000

    def test_inputs_not_mutated(self) -> None:
        readings = [reading("a", 100), reading("b", 101), reading("c", 1000)]
        apply_outlier_filter(readings, 500, True, 3)
        assert readings[2].weight == 1_000_000

    def test_two_fresh_never_filtered(self) -> None:
        """With two fresh readings no price is excluded, however divergent."""
        readings = [reading("a", 1), reading("b", 10**20), reading("stale", 5, weight=0)]
        filtered, median = apply_outlier_filter(readings, 1, True, 3)

        assert median is None
        assert filtered == readings

    def test_disabled_is_noop(self) -> None:
        readings = [reading("a", 100), reading("b", 101), reading("c", 1000)]
        filtered, median = apply_outlier_filter(readings, 500, False, 3)
        assert median is None
        assert filtered == readings

    def test_stale_readings_ignored_for_median(self) -> None:
        """Zero-weight readings neither count nor get touched."""
        readings = [
            reading("a", 100),
            reading("b", 101),
            reading("c", 102),
            reading("stale", 10_000, weight=0),
        ]
        filtered, median = apply_outlier_filter(readings, 500, True, 4)
        assert median == 101
        assert [r.weight for r in filtered] == [1_000_000, 1_000_000, 1_000_000, 0]

    def test_band_is_inclusive(self) -> None:
        """Prices exactly on the band edges are kept."""
        readings = [reading("low", 90), reading("mid", 100), reading("high", 110)]
        filtered, _ = apply_outlier_filter(readings, 1000, True, 3)
        assert all(r.weight > 0 for r in filtered)

    def test_zero_band_with_even_count(self) -> None:
        """A zero-width band around an averaged median can exclude everything."""
        readings = [reading(s, p) for s, p in zip("abcd", [100, 102, 104, 106])]
        filtered, median = apply_outlier_filter(readings, 0, True, 4)
        assert median == 103
        assert all(r.weight == 0 for r in filtered)
