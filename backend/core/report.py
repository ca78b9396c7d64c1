"""
report.py — Course grade report built from per-assignment grade lists.

Pipeline:
1. Flatten every assignment grade to a percentage of its max grade
2. Overall statistics, histogram and box plot over that sample
3. One trend point per assignment, ordered by due date
4. Key insights and recommendations from REPORT_RULES

Insight tiers (class mean):
- Excellent ≥85, Good ≥75, Average ≥65, otherwise Below average
Variability: std > 15 is high, std < 5 is low.
Trend: last-minus-first assignment mean beyond ±5 points.
"""

import logging
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple

from core.errors import EmptyCohortError, EmptySampleError
from core.models import (
    AssignmentGradeData,
    GradeReport,
    GradeStatistics,
    GradeTrendPoint,
    RiskAssessment,
)
from core.narrative import narrate_at_risk_students
from core.risk import as_utc
from core.stats import calculate_statistics, create_box_plot, create_histogram

logger = logging.getLogger(__name__)

TREND_BIN_COUNT = 5
TREND_CHANGE = 5.0
HIGH_SPREAD = 15.0
LOW_SPREAD = 5.0
TARGET_MEAN = 70.0


def _percentages(assignment: AssignmentGradeData) -> List[float]:
    return [g.grade / assignment.max_grade * 100 for g in assignment.grades]


# ── Trends ──────────────────────────────────────────────────────────

def generate_trend_analysis(assignments: Sequence[AssignmentGradeData]) -> List[GradeTrendPoint]:
    """
    One point per graded assignment, oldest due date first.
    Assignments with no grades yet are skipped.
    """
    points = []
    for assignment in sorted(assignments, key=lambda a: as_utc(a.due_date)):
        grades = _percentages(assignment)
        if not grades:
            logger.debug("Skipping ungraded assignment %s", assignment.assignment_id)
            continue
        points.append(GradeTrendPoint(
            date=assignment.due_date.date().isoformat(),
            assignment_id=assignment.assignment_id,
            assignment_name=assignment.assignment_name,
            statistics=calculate_statistics(grades),
            distribution=create_histogram(grades, bin_count=TREND_BIN_COUNT).bins,
            total_submissions=len(grades),
            late_submissions=sum(1 for g in assignment.grades if g.is_late),
            category=assignment.category,
        ))
    return points


# ── Rule library ────────────────────────────────────────────────────

class ReportContext(NamedTuple):
    statistics: GradeStatistics
    mean_change: Optional[float]
    at_risk: int


Emission = Dict[str, List[str]]


class ReportRule(NamedTuple):
    id: str
    applies: Callable[[ReportContext], bool]
    emit: Callable[[ReportContext], Emission]


def _fixed(section: str, *lines: str) -> Callable[[ReportContext], Emission]:
    return lambda c: {section: list(lines)}


REPORT_RULES: Tuple[ReportRule, ...] = (
    ReportRule(
        "mean_excellent",
        lambda c: c.statistics.mean >= 85,
        _fixed("key_insights", "Class performance is excellent with high average grades"),
    ),
    ReportRule(
        "mean_good",
        lambda c: 75 <= c.statistics.mean < 85,
        _fixed("key_insights", "Class performance is good with solid average grades"),
    ),
    ReportRule(
        "mean_average",
        lambda c: 65 <= c.statistics.mean < 75,
        _fixed("key_insights", "Class performance is average with room for improvement"),
    ),
    ReportRule(
        "mean_below_average",
        lambda c: c.statistics.mean < 65,
        _fixed("key_insights", "Class performance is below average and needs attention"),
    ),
    ReportRule(
        "mean_below_target",
        lambda c: c.statistics.mean < TARGET_MEAN,
        _fixed(
            "recommendations",
            "Consider reviewing course difficulty and providing additional support",
            "Implement peer tutoring or study groups",
        ),
    ),
    ReportRule(
        "high_spread",
        lambda c: c.statistics.standard_deviation > HIGH_SPREAD,
        lambda c: {
            "key_insights": ["High grade variability indicates diverse student performance levels"],
            "recommendations": [
                "Provide differentiated instruction to address varying performance levels",
                "Consider additional support for struggling students",
            ],
        },
    ),
    ReportRule(
        "low_spread",
        lambda c: c.statistics.standard_deviation < LOW_SPREAD,
        _fixed("key_insights", "Low grade variability shows consistent student performance"),
    ),
    ReportRule(
        "trend_improving",
        lambda c: c.mean_change is not None and c.mean_change > TREND_CHANGE,
        _fixed("key_insights", "Grade trends show improvement over time"),
    ),
    ReportRule(
        "trend_declining",
        lambda c: c.mean_change is not None and c.mean_change < -TREND_CHANGE,
        _fixed("key_insights", "Grade trends show decline over time - intervention may be needed"),
    ),
    ReportRule(
        "students_at_risk",
        lambda c: c.at_risk > 0,
        lambda c: {"recommendations": [narrate_at_risk_students(c.at_risk)]},
    ),
)


def apply_report_rules(context: ReportContext) -> Tuple[List[str], List[str]]:
    """Return (key_insights, recommendations) in rule order."""
    collected: Emission = {"key_insights": [], "recommendations": []}
    for rule in REPORT_RULES:
        if rule.applies(context):
            logger.debug("Report rule fired: %s", rule.id)
            for section, lines in rule.emit(context).items():
                collected[section].extend(lines)
    return collected["key_insights"], collected["recommendations"]


# ── Master Function ─────────────────────────────────────────────────

def build_grade_report(
    assignments: Sequence[AssignmentGradeData],
    course_id: str,
    bin_count: int = 10,
    risk: Optional[Sequence[RiskAssessment]] = None,
) -> GradeReport:
    """
    Grade report for one course.

    ``risk`` is an optional list of assessments for the same course; the
    number at high or critical risk feeds the recommendations.
    """
    course_assignments = [a for a in assignments if a.course_id == course_id]
    if not course_assignments:
        raise EmptyCohortError(course_id)

    grades: List[float] = []
    student_ids: List[str] = []
    student_names: List[Optional[str]] = []
    for assignment in course_assignments:
        grades.extend(_percentages(assignment))
        student_ids.extend(g.student_id for g in assignment.grades)
        student_names.extend(g.student_name for g in assignment.grades)
    if not grades:
        raise EmptySampleError(f"grade report for course '{course_id}'")

    statistics = calculate_statistics(grades)
    trends = generate_trend_analysis(course_assignments)
    mean_change = None
    if len(trends) >= 2:
        mean_change = trends[-1].statistics.mean - trends[0].statistics.mean

    at_risk = sum(
        1 for r in (risk or [])
        if r.course_id == course_id and r.risk_level in ("high", "critical")
    )
    key_insights, recommendations = apply_report_rules(
        ReportContext(statistics=statistics, mean_change=mean_change, at_risk=at_risk)
    )
    logger.debug("Grade report %s: %d grades over %d assignments",
                 course_id, len(grades), len(course_assignments))

    return GradeReport(
        course_id=course_id,
        total_students=len(set(student_ids)),
        total_assignments=len(course_assignments),
        overall_statistics=statistics,
        histogram=create_histogram(grades, bin_count=bin_count, student_ids=student_ids),
        box_plot=create_box_plot(grades, student_ids=student_ids, student_names=student_names),
        trends=trends,
        key_insights=key_insights,
        recommendations=recommendations,
    )
