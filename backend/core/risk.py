"""
risk.py — At-risk student scoring engine.

Each student is checked against a set of risk factors. Every triggered
factor carries a severity (low / medium / high) and an impact (0–1):

- low_grades: current grade below 70
- poor_attendance: attendance below 0.8
- low_engagement: engagement score below 0.6
- missed_assignments: submission rate below 0.8
- late_submissions: more than 30% of assignments late
- declining_performance: assignment-percentage slope below -0.1
- inactivity: more than 7 days since last activity (needs ``as_of``)

Risk score (0–100) = sum(impact x severity weight) x 100, boosted by
1.2 for more than three factors and by 10% per high-severity factor.

Risk levels: Critical (≥80), High (60–79), Medium (40–59), Low (<40)
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from core.cohort import calculate_engagement_score
from core.grading import is_valid_grade
from core.models import (
    AssignmentScore,
    PredictedOutcome,
    RiskAssessment,
    RiskFactor,
    StudentPerformanceRecord,
)
from core.narrative import (
    narrate_declining_performance,
    narrate_inactivity,
    narrate_late_submissions,
    narrate_low_engagement_factor,
    narrate_low_grade,
    narrate_missed_assignments,
    narrate_poor_attendance,
)

logger = logging.getLogger(__name__)

DEFAULT_RISK_THRESHOLDS = {
    "grade": 70.0,
    "attendance": 0.8,
    "engagement": 0.6,
    "submission_rate": 0.8,
}

SEVERITY_WEIGHTS = {"low": 1.0, "medium": 1.5, "high": 2.0}


# ── Recommendation Library ──────────────────────────────────────────

RECOMMENDATIONS = {
    "low_grades": (
        "Schedule a one-on-one review of recent assessments and agree on a "
        "focused study plan for the weakest topics."
    ),
    "poor_attendance": (
        "Contact the student to identify attendance barriers and agree on "
        "a plan to catch up on missed sessions."
    ),
    "low_engagement": (
        "Encourage participation through shorter interactive activities and "
        "check in on forum and lesson activity weekly."
    ),
    "missed_assignments": (
        "Set up assignment reminders and review outstanding work with the "
        "student before the next deadline."
    ),
    "late_submissions": (
        "Work with the student on time management and break large "
        "assignments into dated milestones."
    ),
    "declining_performance": (
        "Investigate the recent drop in scores and review the latest "
        "assignments together and look for gaps in prerequisite topics."
    ),
    "inactivity": (
        "Reach out directly; the student has not been active on the "
        "platform recently."
    ),
    "general_critical": (
        "This student is at critical risk of failing the course. Immediate "
        "intervention is recommended with the instructor and an advisor."
    ),
    "general_high": (
        "This student is at high risk. Arrange a support meeting this week."
    ),
    "general_medium": (
        "This student shows signs of struggling. Monitor closely and offer "
        "additional support."
    ),
}


# ── Helpers ─────────────────────────────────────────────────────────

def as_utc(moment: datetime) -> datetime:
    """Naive timestamps are taken to be UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _severity(value: float, high: float, medium: float, below: bool = True) -> str:
    """Grade a value against high/medium cut-offs."""
    if below:
        return "high" if value < high else "medium" if value < medium else "low"
    return "high" if value > high else "medium" if value > medium else "low"


def calculate_grade_trend(scores: Sequence[AssignmentScore]) -> Tuple[str, float]:
    """(direction, slope) of assignment percentages in submission order."""
    if len(scores) < 3:
        return "stable", 0.0

    ordered = sorted(scores, key=lambda a: a.submitted_at)
    y = np.array([a.score / a.max_score * 100 for a in ordered], dtype=float)
    x = np.arange(len(y))
    slope = float(np.polyfit(x, y, 1)[0])

    if slope > 0.1:
        return "improving", slope
    if slope < -0.1:
        return "declining", slope
    return "stable", slope


def identify_risk_factors(
    record: StudentPerformanceRecord,
    as_of: Optional[datetime] = None,
    thresholds: Mapping[str, float] = DEFAULT_RISK_THRESHOLDS,
) -> List[RiskFactor]:
    factors: List[RiskFactor] = []
    metrics = record.engagement_metrics

    # ── Grade ──────────────────────────────────────────────────────
    grade = record.current_grade
    if is_valid_grade(grade) and grade < thresholds["grade"]:
        factors.append(RiskFactor(
            factor="low_grades",
            severity=_severity(grade, 60, 70),
            description=narrate_low_grade(grade),
            impact=max(0.0, (70 - grade) / 70),
        ))

    # ── Attendance ─────────────────────────────────────────────────
    attendance = record.attendance_rate
    if attendance < thresholds["attendance"]:
        factors.append(RiskFactor(
            factor="poor_attendance",
            severity=_severity(attendance, 0.6, 0.8),
            description=narrate_poor_attendance(attendance),
            impact=max(0.0, (0.8 - attendance) / 0.8),
        ))

    # ── Engagement ─────────────────────────────────────────────────
    engagement = calculate_engagement_score(metrics)
    if engagement < thresholds["engagement"]:
        factors.append(RiskFactor(
            factor="low_engagement",
            severity=_severity(engagement, 0.4, 0.6),
            description=narrate_low_engagement_factor(engagement),
            impact=max(0.0, (0.7 - engagement) / 0.7),
        ))

    # ── Submission rate ────────────────────────────────────────────
    submission = metrics.assignment_submission_rate
    if submission < thresholds["submission_rate"]:
        factors.append(RiskFactor(
            factor="missed_assignments",
            severity=_severity(submission, 0.5, 0.7),
            description=narrate_missed_assignments(submission),
            impact=max(0.0, (0.8 - submission) / 0.8),
        ))

    # ── Late submissions ───────────────────────────────────────────
    if record.assignment_scores:
        late_rate = sum(1 for a in record.assignment_scores if a.is_late) / len(record.assignment_scores)
        if late_rate > 0.3:
            factors.append(RiskFactor(
                factor="late_submissions",
                severity=_severity(late_rate, 0.6, 0.4, below=False),
                description=narrate_late_submissions(late_rate),
                impact=late_rate * 0.3,
            ))

    # ── Trend ──────────────────────────────────────────────────────
    direction, slope = calculate_grade_trend(record.assignment_scores)
    if direction == "declining":
        factors.append(RiskFactor(
            factor="declining_performance",
            severity=_severity(slope, -0.3, -0.2),
            description=narrate_declining_performance(slope),
            impact=min(abs(slope) * 0.5, 1.0),
        ))

    # ── Inactivity ─────────────────────────────────────────────────
    if as_of is not None and metrics.last_activity is not None:
        days = (as_utc(as_of) - as_utc(metrics.last_activity)).days
        if days > 7:
            factors.append(RiskFactor(
                factor="inactivity",
                severity=_severity(days, 21, 14, below=False),
                description=narrate_inactivity(days),
                impact=min(days / 30, 1.0) * 0.4,
            ))

    return factors


def calculate_risk_score(factors: Sequence[RiskFactor]) -> int:
    if not factors:
        return 0
    weighted = sum(f.impact * SEVERITY_WEIGHTS[f.severity] for f in factors)
    score = min(weighted * 100, 100.0)
    if len(factors) > 3:
        score *= 1.2
    high_count = sum(1 for f in factors if f.severity == "high")
    if high_count:
        score *= 1 + high_count * 0.1
    return int(min(round(score), 100))


def determine_risk_level(score: int) -> str:
    if score >= 80:
        return "critical"
    if score >= 60:
        return "high"
    if score >= 40:
        return "medium"
    return "low"


def predict_outcome(record: StudentPerformanceRecord, risk_score: int) -> PredictedOutcome:
    """Weighted blend of grade, attendance and engagement, less a risk penalty."""
    engagement = calculate_engagement_score(record.engagement_metrics)
    predicted = (
        record.current_grade * 0.4
        + record.attendance_rate * 100 * 0.3
        + engagement * 100 * 0.3
        - risk_score * 0.2
    )
    predicted = max(0.0, min(100.0, predicted))
    pass_likelihood = max(0.0, min(1.0, (predicted - 40) / 40))
    completion_likelihood = max(0.0, min(1.0,
        record.engagement_metrics.lesson_completion_rate * 0.6
        + record.attendance_rate * 0.4
        - risk_score / 100 * 0.3
    ))
    return PredictedOutcome(
        final_grade=int(round(predicted)),
        pass_likelihood=round(pass_likelihood, 2),
        completion_likelihood=round(completion_likelihood, 2),
    )


def _recommendation(level: str, factors: Sequence[RiskFactor]) -> str:
    if level in ("critical", "high"):
        text = RECOMMENDATIONS[f"general_{level}"]
        if factors:
            top = max(factors, key=lambda f: f.impact * SEVERITY_WEIGHTS[f.severity])
            text += " " + RECOMMENDATIONS[top.factor]
        return text
    if level == "medium":
        return RECOMMENDATIONS["general_medium"]
    return "Student is performing satisfactorily. Continue monitoring."


# ── Risk Computation ────────────────────────────────────────────────

def assess_student_risk(
    record: StudentPerformanceRecord,
    as_of: Optional[datetime] = None,
    thresholds: Mapping[str, float] = DEFAULT_RISK_THRESHOLDS,
) -> RiskAssessment:
    """
    Risk assessment for one student.

    ``as_of`` is the reference time for the inactivity factor; when it
    is omitted inactivity is not evaluated.
    """
    factors = identify_risk_factors(record, as_of, thresholds)
    score = calculate_risk_score(factors)
    level = determine_risk_level(score)
    return RiskAssessment(
        student_id=record.student_id,
        course_id=record.course_id,
        risk_level=level,
        risk_score=score,
        risk_factors=factors,
        predicted_outcome=predict_outcome(record, score),
        recommendation=_recommendation(level, factors),
    )


def compute_risk_scores(
    records: Sequence[StudentPerformanceRecord],
    as_of: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Compute risk assessments for all students.
    Returns students sorted by risk score (highest first) and a summary.
    """
    students = [assess_student_risk(r, as_of) for r in records]
    students.sort(key=lambda s: s.risk_score, reverse=True)

    counts = {level: 0 for level in ("critical", "high", "medium", "low")}
    for s in students:
        counts[s.risk_level] += 1
    logger.debug("Risk scoring: %d students, %d critical, %d high",
                 len(students), counts["critical"], counts["high"])

    at_risk = counts["critical"] + counts["high"]
    return {
        "students": students,
        "summary": {
            "total": len(students),
            "critical_risk": counts["critical"],
            "high_risk": counts["high"],
            "medium_risk": counts["medium"],
            "low_risk": counts["low"],
            "at_risk_pct": round(at_risk / len(students) * 100, 2) if students else 0,
        },
    }
