"""
insights.py — Rule-based cohort insight generation.

Evaluates a CohortComparison against an ordered rule library. Each rule
is an independent threshold check that may add sentences to any of the
four output lists: insights, recommendations, concerning_trends,
positive_highlights. Rules never read each other's output, and the
output order follows INSIGHT_RULES, so the result is reproducible.

Zero AI dependency — every insight is a deterministic threshold check.
"""

import logging
from collections import Counter
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Tuple

from core.models import CohortComparison, CohortInsights
from core.narrative import (
    narrate_bottom_performers,
    narrate_common_strength,
    narrate_common_weakness,
    narrate_excellent_attendance,
    narrate_excellent_share,
    narrate_failing_share,
    narrate_low_attendance,
    narrate_low_completion,
    narrate_low_engagement,
    narrate_top_performers,
    recommend_focus_area,
)

logger = logging.getLogger(__name__)

OUTPUT_SECTIONS = ("insights", "recommendations", "concerning_trends", "positive_highlights")


# ── Helpers ─────────────────────────────────────────────────────────

def most_common_tag(tags: Iterable[str]) -> Optional[Tuple[str, int]]:
    """Highest-frequency tag; ties go to the tag seen first."""
    counts = Counter(tags)
    if not counts:
        return None
    return counts.most_common(1)[0]


def _band_count(comparison: CohortComparison, letter: str) -> int:
    return sum(
        band.count
        for band in comparison.metrics.grade_distribution
        if band.range.startswith(letter)
    )


class InsightContext(NamedTuple):
    comparison: CohortComparison
    total_students: int
    failing: int
    excellent: int
    top_performers: int
    bottom_performers: int
    top_strength: Optional[Tuple[str, int]]
    top_weakness: Optional[Tuple[str, int]]


def build_context(comparison: CohortComparison) -> InsightContext:
    students = comparison.student_comparisons
    ranked = [s for s in students if s.percentile_rank is not None]
    return InsightContext(
        comparison=comparison,
        total_students=len(students),
        failing=_band_count(comparison, "F"),
        excellent=_band_count(comparison, "A"),
        top_performers=sum(1 for s in ranked if s.percentile_rank > 80),
        bottom_performers=sum(1 for s in ranked if s.percentile_rank < 20),
        top_strength=most_common_tag(t for s in students for t in s.strengths),
        top_weakness=most_common_tag(t for s in students for t in s.improvement_areas),
    )


# ── Rule library ────────────────────────────────────────────────────

Emission = Dict[str, List[str]]


class InsightRule(NamedTuple):
    id: str
    applies: Callable[[InsightContext], bool]
    emit: Callable[[InsightContext], Emission]


INSIGHT_RULES: Tuple[InsightRule, ...] = (
    InsightRule(
        "high_failing_share",
        lambda c: c.failing > c.total_students * 0.2,
        lambda c: {
            "concerning_trends": [narrate_failing_share(c.failing / c.total_students)],
            "recommendations": [
                "Implement additional support programs for struggling students",
                "Review course difficulty and pacing",
            ],
        },
    ),
    InsightRule(
        "high_excellent_share",
        lambda c: c.excellent > c.total_students * 0.3,
        lambda c: {
            "positive_highlights": [narrate_excellent_share(c.excellent / c.total_students)],
        },
    ),
    InsightRule(
        "low_attendance",
        lambda c: c.comparison.metrics.attendance_rate < 0.8,
        lambda c: {
            "concerning_trends": [narrate_low_attendance(c.comparison.metrics.attendance_rate)],
            "recommendations": [
                "Investigate attendance barriers and implement engagement strategies",
            ],
        },
    ),
    InsightRule(
        "excellent_attendance",
        lambda c: c.comparison.metrics.attendance_rate > 0.9,
        lambda c: {
            "positive_highlights": [
                narrate_excellent_attendance(c.comparison.metrics.attendance_rate)
            ],
        },
    ),
    InsightRule(
        "low_engagement",
        lambda c: c.comparison.metrics.engagement_score < 0.6,
        lambda c: {
            "concerning_trends": [narrate_low_engagement(c.comparison.metrics.engagement_score)],
            "recommendations": [
                "Introduce more interactive and engaging content",
                "Consider gamification elements to boost engagement",
            ],
        },
    ),
    InsightRule(
        "low_completion",
        lambda c: c.comparison.metrics.completion_rate < 0.7,
        lambda c: {
            "concerning_trends": [narrate_low_completion(c.comparison.metrics.completion_rate)],
            "recommendations": [
                "Review lesson structure and difficulty progression",
                "Provide additional support for lesson completion",
            ],
        },
    ),
    InsightRule(
        "performance_spread",
        lambda c: c.total_students > 0,
        lambda c: {
            "insights": [
                narrate_top_performers(c.top_performers, c.total_students),
                narrate_bottom_performers(c.bottom_performers, c.total_students),
            ],
        },
    ),
    InsightRule(
        "common_strength",
        lambda c: c.top_strength is not None,
        lambda c: {
            "positive_highlights": [narrate_common_strength(*c.top_strength)],
        },
    ),
    InsightRule(
        "common_weakness",
        lambda c: c.top_weakness is not None,
        lambda c: {
            "concerning_trends": [narrate_common_weakness(*c.top_weakness)],
            "recommendations": [recommend_focus_area(c.top_weakness[0])],
        },
    ),
)


# ── Master Function ─────────────────────────────────────────────────

def generate_cohort_insights(comparison: CohortComparison) -> CohortInsights:
    """Run every rule in order and collect their sentences."""
    context = build_context(comparison)
    collected: Dict[str, List[str]] = {section: [] for section in OUTPUT_SECTIONS}

    for rule in INSIGHT_RULES:
        if not rule.applies(context):
            continue
        logger.debug("Insight rule fired: %s", rule.id)
        for section, lines in rule.emit(context).items():
            collected[section].extend(lines)

    return CohortInsights(**collected)
