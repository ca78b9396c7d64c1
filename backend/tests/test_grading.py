"""
Tests for core/grading.py — letter bands and the grade scale legend.
"""

import os
import sys
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.grading import (
    band_display,
    get_all_grade_thresholds,
    get_grade_label,
    is_valid_grade,
)


class TestGradeLabel:

    @pytest.mark.parametrize("score,label", [
        (100, "A"), (90, "A"), (89.99, "B"), (80, "B"), (75, "C"),
        (60, "D"), (59.5, "F"), (0, "F"), (104, "A"),
    ])
    def test_bands(self, score, label):
        assert get_grade_label(score) == label

    @pytest.mark.parametrize("score", [None, -1, float("nan"), float("inf"), "abc"])
    def test_invalid_scores(self, score):
        assert get_grade_label(score) == "-"
        assert is_valid_grade(score) is False

    def test_numeric_string_is_valid(self):
        assert is_valid_grade("72") is True


class TestThresholds:

    def test_scale_is_ordered_high_to_low(self):
        thresholds = get_all_grade_thresholds()
        assert [t["label"] for t in thresholds] == ["A", "B", "C", "D", "F"]
        assert thresholds[0]["max"] == 100
        assert thresholds[-1]["min"] == 0

    def test_bands_do_not_overlap(self):
        thresholds = get_all_grade_thresholds()
        for upper, lower in zip(thresholds, thresholds[1:]):
            assert lower["max"] == upper["min"] - 1

    def test_band_display(self):
        assert band_display("A") == "A (90-100)"
        assert band_display("F") == "F (0-59)"
