"""
Analyze routes — analytics API endpoints.
"""

import logging
import os
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import TypeAdapter, ValidationError

from core.cohort import analyze_cohort_performance, compare_performance_over_time
from core.errors import AnalyticsError
from core.grading import get_all_grade_thresholds
from core.insights import generate_cohort_insights
from core.models import AssignmentGradeData, StudentPerformanceRecord
from core.report import build_grade_report
from core.risk import compute_risk_scores
from core.stats import (
    calculate_correlation,
    calculate_statistics,
    compare_distributions,
    create_box_plot,
    create_histogram,
)

router = APIRouter()
logger = logging.getLogger(__name__)

DEFAULT_BIN_COUNT = int(os.getenv("DEFAULT_BIN_COUNT", "10"))

_records_adapter = TypeAdapter(List[StudentPerformanceRecord])
_assignments_adapter = TypeAdapter(List[AssignmentGradeData])


def _values_from_payload(payload: dict, key: str = "values") -> List[float]:
    """Extract a numeric sample from the request payload."""
    values = payload.get(key)
    if values is None:
        raise HTTPException(400, f"No '{key}' provided.")
    try:
        return [float(v) for v in values]
    except (TypeError, ValueError):
        raise HTTPException(400, f"'{key}' must be a list of numbers.")


def _records_from_payload(payload: dict, key: str = "records") -> List[StudentPerformanceRecord]:
    """Validate student performance records from the request payload."""
    data = payload.get(key)
    if data is None:
        raise HTTPException(400, f"No '{key}' provided.")
    try:
        return _records_adapter.validate_python(data)
    except ValidationError as e:
        logger.warning("Rejected %s payload: %d validation errors", key, e.error_count())
        raise HTTPException(400, f"Invalid '{key}': {e.errors(include_url=False)}")


def _bin_count_from_payload(payload: dict) -> int:
    try:
        return int(payload.get("bin_count", DEFAULT_BIN_COUNT))
    except (TypeError, ValueError):
        raise HTTPException(400, "'bin_count' must be an integer.")


def _course_from_payload(payload: dict) -> str:
    course_id = payload.get("course_id")
    if not course_id:
        raise HTTPException(400, "No 'course_id' provided.")
    return str(course_id)


@router.post("/statistics")
async def statistics(payload: dict):
    """Mean, median, mode, spread, quartiles and percentiles for a sample."""
    values = _values_from_payload(payload)
    return calculate_statistics(values)


@router.post("/histogram")
async def histogram(payload: dict):
    """Equal-width (or custom-range) histogram with per-bin student ids."""
    values = _values_from_payload(payload)
    custom_ranges: Optional[list] = payload.get("custom_ranges")
    if custom_ranges is not None:
        try:
            custom_ranges = [(float(lo), float(hi)) for lo, hi in custom_ranges]
        except (TypeError, ValueError):
            raise HTTPException(400, "'custom_ranges' must be a list of [min, max] pairs.")
    try:
        return create_histogram(
            values,
            bin_count=_bin_count_from_payload(payload),
            student_ids=payload.get("student_ids"),
            custom_ranges=custom_ranges,
        )
    except AnalyticsError:
        raise
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.post("/boxplot")
async def boxplot(payload: dict):
    """Five-number summary with IQR outliers."""
    values = _values_from_payload(payload)
    try:
        return create_box_plot(
            values,
            student_ids=payload.get("student_ids"),
            student_names=payload.get("student_names"),
        )
    except AnalyticsError:
        raise
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.post("/correlation")
async def correlation(payload: dict):
    """Pearson or Spearman correlation between two paired samples."""
    x = _values_from_payload(payload, "x")
    y = _values_from_payload(payload, "y")
    method = payload.get("method", "pearson")
    if method not in ("pearson", "spearman"):
        raise HTTPException(400, f"Unsupported correlation method: {method}")
    if len(x) != len(y):
        raise HTTPException(400, "'x' and 'y' must have the same length.")
    return calculate_correlation(x, y, method=method)


@router.post("/compare-distributions")
async def distributions(payload: dict):
    """Welch t-test and effect size between two grade samples."""
    a = _values_from_payload(payload, "sample_a")
    b = _values_from_payload(payload, "sample_b")
    return compare_distributions(a, b)


@router.post("/cohort")
async def cohort(payload: dict):
    """Cohort metrics plus percentile rank and tags for each student."""
    records = _records_from_payload(payload)
    course_id = _course_from_payload(payload)
    timeframe = payload.get("timeframe", "month")
    if timeframe not in ("week", "month", "semester"):
        raise HTTPException(400, f"Unsupported timeframe: {timeframe}")
    logger.info("Cohort analysis for %s (%d records)", course_id, len(records))
    return analyze_cohort_performance(records, course_id, timeframe)


@router.post("/cohort/insights")
async def cohort_insights(payload: dict):
    """Cohort comparison with generated insights and recommendations."""
    records = _records_from_payload(payload)
    course_id = _course_from_payload(payload)
    comparison = analyze_cohort_performance(records, course_id)
    return {
        "comparison": comparison,
        "insights": generate_cohort_insights(comparison),
    }


@router.post("/cohort/compare")
async def cohort_compare(payload: dict):
    """Change between two periods of the same course."""
    current = _records_from_payload(payload, "current")
    previous = _records_from_payload(payload, "previous")
    course_id = _course_from_payload(payload)
    return compare_performance_over_time(current, previous, course_id)


@router.post("/risk")
async def risk(payload: dict):
    """At-risk student detection with risk scores and recommendations."""
    records = _records_from_payload(payload)
    as_of = payload.get("as_of")
    if as_of is not None:
        try:
            as_of = datetime.fromisoformat(str(as_of))
        except ValueError:
            raise HTTPException(400, "'as_of' must be an ISO-8601 timestamp.")
    return compute_risk_scores(records, as_of=as_of)


@router.get("/grade-scale")
async def grade_scale():
    """Return the letter-grade bands used for cohort distributions."""
    return {"grade_scale": get_all_grade_thresholds()}


@router.post("/report")
async def grade_report(payload: dict):
    """Course grade report: distribution, per-assignment trends, insights."""
    course_id = _course_from_payload(payload)
    data = payload.get("assignments")
    if data is None:
        raise HTTPException(400, "No 'assignments' provided.")
    try:
        assignments = _assignments_adapter.validate_python(data)
    except ValidationError as e:
        logger.warning("Rejected assignments payload: %d validation errors", e.error_count())
        raise HTTPException(400, f"Invalid 'assignments': {e.errors(include_url=False)}")

    risk = None
    if payload.get("records") is not None:
        risk = compute_risk_scores(_records_from_payload(payload))["students"]

    logger.info("Grade report for %s (%d assignments)", course_id, len(assignments))
    return build_grade_report(
        assignments,
        course_id,
        bin_count=_bin_count_from_payload(payload),
        risk=risk,
    )
