"""
Tests for core/report.py — course grade report, trends and report rules.
"""

import os
import sys
from datetime import datetime

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.errors import EmptyCohortError, EmptySampleError
from core.models import (
    AssignmentGradeData,
    GradeEntry,
    PredictedOutcome,
    RiskAssessment,
)
from core.report import REPORT_RULES, build_grade_report, generate_trend_analysis


def _assignment(aid, day, grades, max_grade=100, course_id="CS101", late=0):
    return AssignmentGradeData(
        assignment_id=aid,
        assignment_name=f"Assignment {aid}",
        course_id=course_id,
        max_grade=max_grade,
        due_date=datetime(2026, 9, day),
        grades=[
            GradeEntry(student_id=f"S{i + 1}", student_name=f"Student {i + 1}",
                       grade=g, is_late=i < late)
            for i, g in enumerate(grades)
        ],
    )


def _risk(student_id, level):
    return RiskAssessment(
        student_id=student_id,
        course_id="CS101",
        risk_level=level,
        risk_score=70,
        risk_factors=[],
        predicted_outcome=PredictedOutcome(final_grade=50, pass_likelihood=0.3, completion_likelihood=0.5),
        recommendation="",
    )


@pytest.fixture
def improving_course():
    """Three assignments, listed out of order, whose means rise 70 -> 80 -> 90."""
    return [
        _assignment("A3", 29, [80, 90, 100]),
        _assignment("A1", 1, [60, 70, 80], late=2),
        _assignment("A2", 15, [70, 80, 90]),
    ]


class TestTrendAnalysis:
    """Tests for generate_trend_analysis."""

    def test_ordered_by_due_date(self, improving_course):
        points = generate_trend_analysis(improving_course)
        assert [p.assignment_id for p in points] == ["A1", "A2", "A3"]
        assert [p.statistics.mean for p in points] == [70, 80, 90]
        assert points[0].date == "2026-09-01"

    def test_point_metadata(self, improving_course):
        first = generate_trend_analysis(improving_course)[0]
        assert first.total_submissions == 3
        assert first.late_submissions == 2
        assert len(first.distribution) == 5
        assert sum(b.count for b in first.distribution) == 3

    def test_grades_scaled_to_percent(self):
        points = generate_trend_analysis([_assignment("A1", 1, [40, 45], max_grade=50)])
        assert points[0].statistics.mean == 85

    def test_ungraded_assignment_skipped(self, improving_course):
        points = generate_trend_analysis(improving_course + [_assignment("A4", 30, [])])
        assert "A4" not in [p.assignment_id for p in points]


class TestBuildGradeReport:
    """Tests for build_grade_report."""

    def test_summary(self, improving_course):
        report = build_grade_report(improving_course, "CS101")
        assert report.total_students == 3
        assert report.total_assignments == 3
        assert report.overall_statistics.mean == 80
        assert report.histogram.total_count == 9
        assert report.box_plot.median == 80

    def test_improving_course_insights(self, improving_course):
        report = build_grade_report(improving_course, "CS101")
        assert report.key_insights == [
            "Class performance is good with solid average grades",
            "Grade trends show improvement over time",
        ]
        assert report.recommendations == []

    def test_declining_course(self):
        course = [_assignment("A1", 1, [90, 90, 90]), _assignment("A2", 15, [70, 72, 74])]
        report = build_grade_report(course, "CS101")
        assert "Grade trends show decline over time - intervention may be needed" in report.key_insights

    def test_consistent_low_scores(self):
        report = build_grade_report([_assignment("A1", 1, [50, 50, 50])], "CS101")
        assert report.key_insights == [
            "Class performance is below average and needs attention",
            "Low grade variability shows consistent student performance",
        ]
        assert report.recommendations == [
            "Consider reviewing course difficulty and providing additional support",
            "Implement peer tutoring or study groups",
        ]

    def test_high_spread(self):
        report = build_grade_report([_assignment("A1", 1, [20, 100, 60, 95, 30])], "CS101")
        assert "High grade variability indicates diverse student performance levels" in report.key_insights
        assert report.recommendations[2:] == [
            "Provide differentiated instruction to address varying performance levels",
            "Consider additional support for struggling students",
        ]

    def test_at_risk_students_recommendation(self, improving_course):
        risk = [_risk("S1", "high"), _risk("S2", "critical"), _risk("S3", "medium")]
        report = build_grade_report(improving_course, "CS101", risk=risk)
        assert report.recommendations == [
            "2 students are at high risk - consider early intervention",
        ]

    def test_other_courses_ignored(self, improving_course):
        course = improving_course + [_assignment("M1", 2, [10, 10], course_id="MATH200")]
        report = build_grade_report(course, "CS101")
        assert report.total_assignments == 3
        assert report.overall_statistics.mean == 80

    def test_unknown_course_raises(self, improving_course):
        with pytest.raises(EmptyCohortError):
            build_grade_report(improving_course, "HIST300")

    def test_no_grades_raises(self):
        with pytest.raises(EmptySampleError):
            build_grade_report([_assignment("A1", 1, [])], "CS101")

    def test_rule_ids_are_unique(self):
        ids = [rule.id for rule in REPORT_RULES]
        assert len(ids) == len(set(ids))
