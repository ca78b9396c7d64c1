"""
Tests for core/stats.py — statistics, histogram, box plot, correlation,
distribution comparison.
"""

import os
import sys
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.errors import EmptySampleError
from core.stats import (
    MAX_BIN_COUNT,
    calculate_correlation,
    calculate_statistics,
    compare_distributions,
    create_box_plot,
    create_histogram,
)

OUTLIER_SAMPLE = [10, 50, 52, 54, 55, 56, 58, 60, 95]
MIXED_SAMPLE = [55, 62, 70, 71, 88, 93, 47, 62]


class TestCalculateStatistics:
    """Tests for calculate_statistics."""

    def test_single_value(self):
        s = calculate_statistics([75])
        assert s.mean == 75
        assert s.median == 75
        assert s.mode == [75.0]
        assert s.standard_deviation == 0
        assert s.variance == 0
        assert s.range == 0

    def test_median_even_length_averages_centre(self):
        assert calculate_statistics([1, 2, 3, 4]).median == 2.5

    def test_mode_returns_all_ties(self):
        assert calculate_statistics([1, 1, 2, 2, 3]).mode == [1.0, 2.0]

    def test_population_variance(self):
        s = calculate_statistics([2, 4, 4, 4, 5, 5, 7, 9])
        assert s.mean == 5
        assert s.variance == 4
        assert s.standard_deviation == 2

    def test_quartiles_use_linear_interpolation(self):
        s = calculate_statistics([10, 20, 30, 40])
        assert s.quartiles.q1 == 17.5
        assert s.quartiles.q3 == 32.5
        assert s.quartiles.iqr == 15

    def test_median_q2_and_p50_agree(self):
        s = calculate_statistics(MIXED_SAMPLE)
        assert s.quartiles.q2 == s.median == s.percentiles.p50
        assert s.quartiles.q1 == s.percentiles.p25
        assert s.quartiles.q3 == s.percentiles.p75

    def test_min_max_range(self):
        s = calculate_statistics(MIXED_SAMPLE)
        assert s.min == 47
        assert s.max == 93
        assert s.range == 46

    def test_range_is_rounded(self):
        assert calculate_statistics([0.1, 0.3]).range == 0.2

    def test_identical_values_have_zero_iqr(self):
        s = calculate_statistics([80, 80, 80, 80])
        assert s.quartiles.iqr == 0
        assert s.standard_deviation == 0

    def test_repeat_calls_are_identical(self):
        assert calculate_statistics(MIXED_SAMPLE) == calculate_statistics(MIXED_SAMPLE)

    def test_empty_sample_raises(self):
        with pytest.raises(EmptySampleError):
            calculate_statistics([])


class TestCreateHistogram:
    """Tests for create_histogram."""

    def test_maximum_lands_in_last_bin(self):
        values = list(range(0, 101, 10))
        h = create_histogram(values, bin_count=10)
        assert len(h.bins) == 10
        assert h.bin_width == 10
        assert sum(b.count for b in h.bins) == len(values)
        assert h.bins[-1].count == 2

    def test_single_value_gives_one_full_bin(self):
        h = create_histogram([75], bin_count=10)
        assert len(h.bins) == 1
        assert h.bins[0].count == 1
        assert h.bins[0].percentage == 100
        assert h.bin_width == 0

    def test_identical_values_do_not_divide_by_zero(self):
        h = create_histogram([80, 80, 80, 80], bin_count=5)
        assert len(h.bins) == 1
        assert h.bins[0].count == 4
        assert h.total_count == 4

    def test_bins_keep_student_ids(self):
        h = create_histogram([50, 90], bin_count=2, student_ids=["a", "b"])
        assert h.bins[0].student_ids == ["a"]
        assert h.bins[1].student_ids == ["b"]

    def test_bins_are_contiguous(self):
        h = create_histogram(MIXED_SAMPLE, bin_count=4)
        for left, right in zip(h.bins, h.bins[1:]):
            assert left.max == right.min
        assert h.bins[0].min == 47
        assert h.bins[-1].max == 93

    def test_bin_count_is_capped(self):
        h = create_histogram([1, 2, 3], bin_count=200000)
        assert len(h.bins) == MAX_BIN_COUNT
        assert sum(b.count for b in h.bins) == 3

    def test_custom_ranges(self):
        h = create_histogram([30, 65, 59.5], custom_ranges=[(0, 59), (60, 100)])
        assert [b.count for b in h.bins] == [1, 1]
        assert h.bins[0].percentage == 33.33
        assert h.bins[0].range == "0-59"

    def test_statistics_attached(self):
        h = create_histogram(MIXED_SAMPLE)
        assert h.statistics == calculate_statistics(MIXED_SAMPLE)

    def test_misaligned_student_ids_raise(self):
        with pytest.raises(ValueError):
            create_histogram([1, 2, 3], student_ids=["a"])

    def test_empty_sample_raises(self):
        with pytest.raises(EmptySampleError):
            create_histogram([])


class TestCreateBoxPlot:
    """Tests for create_box_plot."""

    def test_flags_iqr_outliers(self):
        ids = [f"S{i}" for i in range(len(OUTLIER_SAMPLE))]
        box = create_box_plot(OUTLIER_SAMPLE, student_ids=ids)
        assert sorted(o.value for o in box.outliers) == [10, 95]
        assert {o.student_id for o in box.outliers} == {"S0", "S8"}

    def test_summary_matches_statistics(self):
        box = create_box_plot(OUTLIER_SAMPLE)
        stats = calculate_statistics(OUTLIER_SAMPLE)
        assert box.q1 == stats.quartiles.q1
        assert box.median == stats.median
        assert box.q3 == stats.quartiles.q3
        assert box.min == stats.min
        assert box.max == stats.max

    def test_identical_values_have_no_outliers(self):
        assert create_box_plot([80, 80, 80, 80]).outliers == []

    def test_outliers_without_ids_get_placeholder(self):
        box = create_box_plot(OUTLIER_SAMPLE)
        assert box.outliers[0].student_id == "student_0"

    def test_outlier_names(self):
        names = ["Low"] + ["Mid"] * 7 + ["High"]
        box = create_box_plot(OUTLIER_SAMPLE, student_names=names)
        assert [o.student_name for o in box.outliers] == ["Low", "High"]

    def test_empty_sample_raises(self):
        with pytest.raises(EmptySampleError):
            create_box_plot([])


class TestCalculateCorrelation:
    """Tests for calculate_correlation."""

    def test_perfect_positive_pearson(self):
        r = calculate_correlation([1, 2, 3, 4, 5], [2, 4, 6, 8, 10])
        assert r.coefficient == pytest.approx(1.0)
        assert r.strength == "strong"
        assert r.relationship == "positive"

    def test_spearman_on_monotone_curve(self):
        r = calculate_correlation([1, 2, 3, 4], [1, 4, 9, 16], method="spearman")
        assert r.coefficient == pytest.approx(1.0)

    def test_negative_relationship(self):
        r = calculate_correlation([1, 2, 3, 4, 5], [10, 8, 6, 4, 2])
        assert r.relationship == "negative"

    def test_zero_variance_is_zero(self):
        r = calculate_correlation([1, 2, 3], [5, 5, 5])
        assert r.coefficient == 0
        assert r.p_value == 1
        assert r.relationship == "none"

    def test_length_mismatch_raises(self):
        with pytest.raises(ValueError):
            calculate_correlation([1, 2], [1, 2, 3])

    def test_empty_raises(self):
        with pytest.raises(EmptySampleError):
            calculate_correlation([], [])


class TestCompareDistributions:
    """Tests for compare_distributions."""

    def test_clearly_different_samples(self):
        result = compare_distributions([90, 92, 94, 96, 98], [50, 52, 54, 56, 58])
        assert result.significant is True
        assert result.effect == "large"
        assert result.mean_difference == 40

    def test_constant_samples_are_not_significant(self):
        result = compare_distributions([70, 70, 70], [70, 70, 70])
        assert result.t_statistic == 0
        assert result.p_value == 1
        assert result.significant is False

    def test_empty_raises(self):
        with pytest.raises(EmptySampleError):
            compare_distributions([], [1, 2])
