"""
Shared fixtures — builders for student performance records.
"""

import os
import sys
from datetime import datetime, timedelta

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.models import (  # noqa: E402
    AssignmentScore,
    EngagementMetrics,
    LearningVelocity,
    StudentPerformanceRecord,
)

START = datetime(2026, 9, 1, 9, 0, 0)


def build_record(
    student_id: str,
    grade: float,
    course_id: str = "CS101",
    attendance: float = 0.85,
    completion: float = 0.8,
    submission: float = 0.8,
    logins: float = 3.5,
    minutes: float = 150,
    forum: float = 2.5,
    late: tuple = (False, True, False, False, False),
    scores: tuple = None,
    trend: str = "stable",
    last_activity: datetime = None,
) -> StudentPerformanceRecord:
    """
    A record whose defaults give an engagement score of 0.65, a late
    rate of 0.2 and a stable trend, so none of the fixed-threshold
    classification rules fire.
    """
    if scores is None:
        scores = (80,) * len(late)
    assignments = [
        AssignmentScore(
            assignment_id=f"A{i + 1}",
            score=score,
            max_score=100,
            submitted_at=START + timedelta(days=7 * i),
            is_late=is_late,
        )
        for i, (score, is_late) in enumerate(zip(scores, late))
    ]
    return StudentPerformanceRecord(
        student_id=student_id,
        course_id=course_id,
        current_grade=grade,
        assignment_scores=assignments,
        attendance_rate=attendance,
        engagement_metrics=EngagementMetrics(
            login_frequency=logins,
            time_spent_on_platform=minutes,
            lesson_completion_rate=completion,
            assignment_submission_rate=submission,
            forum_participation=forum,
            last_activity=last_activity,
        ),
        learning_velocity=LearningVelocity(
            average_time_per_lesson=30,
            average_time_per_assignment=90,
            completion_trend=trend,
        ),
    )


@pytest.fixture
def make_record():
    return build_record


@pytest.fixture
def mixed_cohort():
    """Five CS101 students spanning F to A, plus one student in another course."""
    return [
        build_record("S001", 40),
        build_record("S002", 45),
        build_record("S003", 85),
        build_record("S004", 90),
        build_record("S005", 95),
        build_record("S900", 100, course_id="MATH200"),
    ]
