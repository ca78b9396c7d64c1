"""
models.py — Typed records exchanged with the analytics engine.

Inputs (StudentPerformanceRecord and its parts) are supplied by the
calling layer; everything else is derived output. All models are
frozen so a computed report section cannot be edited in place.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


Trend = Literal["improving", "declining", "stable"]


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True)


# ── Grade sample analysis ───────────────────────────────────────────

class Quartiles(_Record):
    q1: float
    q2: float
    q3: float
    iqr: float


class Percentiles(_Record):
    p10: float
    p25: float
    p50: float
    p75: float
    p90: float
    p95: float


class GradeStatistics(_Record):
    mean: float
    median: float
    mode: List[float]
    standard_deviation: float
    variance: float
    min: float
    max: float
    range: float
    quartiles: Quartiles
    percentiles: Percentiles


class DistributionBin(_Record):
    range: str
    min: float
    max: float
    count: int
    percentage: float
    student_ids: List[str] = Field(default_factory=list)
    color: Optional[str] = None


class HistogramData(_Record):
    bins: List[DistributionBin]
    bin_width: float
    total_count: int
    statistics: GradeStatistics


class Outlier(_Record):
    value: float
    student_id: str
    student_name: Optional[str] = None


class BoxPlotData(_Record):
    min: float
    q1: float
    median: float
    q3: float
    max: float
    outliers: List[Outlier]
    statistics: GradeStatistics


class CorrelationResult(_Record):
    method: Literal["pearson", "spearman"]
    coefficient: float
    p_value: float
    strength: Literal["strong", "moderate", "weak", "none"]
    relationship: Literal["positive", "negative", "none"]
    n: int


class DistributionComparison(_Record):
    t_statistic: float
    p_value: float
    significant: bool
    cohens_d: float
    effect: Literal["small", "medium", "large"]
    mean_difference: float


# ── Student performance input ───────────────────────────────────────

class AssignmentScore(_Record):
    assignment_id: str
    score: float = Field(ge=0)
    max_score: float = Field(gt=0)
    submitted_at: datetime
    is_late: bool = False
    time_spent: Optional[float] = None


class EngagementMetrics(_Record):
    login_frequency: float = Field(ge=0, description="logins per week")
    time_spent_on_platform: float = Field(ge=0, description="minutes per week")
    lesson_completion_rate: float = Field(ge=0, le=1)
    assignment_submission_rate: float = Field(ge=0, le=1)
    forum_participation: float = Field(ge=0, description="posts per week")
    last_activity: Optional[datetime] = None


class LearningVelocity(_Record):
    average_time_per_lesson: float = 0.0
    average_time_per_assignment: float = 0.0
    completion_trend: Trend = "stable"


class StudentPerformanceRecord(_Record):
    student_id: str
    course_id: str
    current_grade: float
    assignment_scores: List[AssignmentScore] = Field(default_factory=list)
    attendance_rate: float = Field(ge=0, le=1)
    engagement_metrics: EngagementMetrics
    learning_velocity: LearningVelocity = Field(default_factory=LearningVelocity)


# ── Cohort roll-up ──────────────────────────────────────────────────

class GradeBand(_Record):
    range: str
    count: int
    percentage: int


class CohortMetrics(_Record):
    average_grade: float
    median_grade: float
    grade_distribution: List[GradeBand]
    attendance_rate: float
    completion_rate: float
    engagement_score: float
    student_count: int


class StudentComparison(_Record):
    student_id: str
    percentile_rank: Optional[int] = Field(default=None, ge=0, le=100)
    performance_relative_to_average: float
    engagement_score: float
    strengths: List[str]
    improvement_areas: List[str]


class CohortComparison(_Record):
    course_id: str
    timeframe: Literal["week", "month", "semester"] = "month"
    metrics: CohortMetrics
    student_comparisons: List[StudentComparison]


class CohortInsights(_Record):
    insights: List[str]
    recommendations: List[str]
    concerning_trends: List[str]
    positive_highlights: List[str]


class PerformanceChange(_Record):
    improvement: int
    students_improved: int
    students_declined: int
    average_grade_change: float
    attendance_change: float
    engagement_change: float


# ── Risk ────────────────────────────────────────────────────────────

Severity = Literal["low", "medium", "high"]


class RiskFactor(_Record):
    factor: str
    severity: Severity
    description: str
    impact: float


class PredictedOutcome(_Record):
    final_grade: int
    pass_likelihood: float
    completion_likelihood: float


class RiskAssessment(_Record):
    student_id: str
    course_id: str
    risk_level: Literal["low", "medium", "high", "critical"]
    risk_score: int
    risk_factors: List[RiskFactor]
    predicted_outcome: PredictedOutcome
    recommendation: str


# ── Grade report ────────────────────────────────────────────────────

class GradeEntry(_Record):
    student_id: str
    student_name: Optional[str] = None
    grade: float = Field(ge=0)
    submitted_at: Optional[datetime] = None
    is_late: bool = False


class AssignmentGradeData(_Record):
    assignment_id: str
    assignment_name: str
    course_id: str
    max_grade: float = Field(gt=0)
    due_date: datetime
    category: Optional[str] = None
    grades: List[GradeEntry] = Field(default_factory=list)


class GradeTrendPoint(_Record):
    date: str
    assignment_id: str
    assignment_name: str
    statistics: GradeStatistics
    distribution: List[DistributionBin]
    total_submissions: int
    late_submissions: int
    category: Optional[str] = None


class GradeReport(_Record):
    course_id: str
    total_students: int
    total_assignments: int
    overall_statistics: GradeStatistics
    histogram: HistogramData
    box_plot: BoxPlotData
    trends: List[GradeTrendPoint]
    key_insights: List[str]
    recommendations: List[str]
