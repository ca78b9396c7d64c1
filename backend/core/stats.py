"""
stats.py — Descriptive statistics over a grade sample.

Computes:
- Mean, median, mode, population variance / std, range
- Quartiles and the percentile table (one interpolation method for both)
- Equal-width or custom-range histograms with per-bin membership
- Box-plot five-number summary with IQR outlier fences
- Pearson / Spearman correlation (scipy.stats)
- Welch t-test + Cohen's d between two distributions

Every function here is pure: same input, same output.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats as sp_stats

from core.errors import EmptySampleError
from core.models import (
    BoxPlotData,
    CorrelationResult,
    DistributionBin,
    DistributionComparison,
    GradeStatistics,
    HistogramData,
    Outlier,
    Percentiles,
    Quartiles,
)

logger = logging.getLogger(__name__)

PERCENTILE_TABLE = (10, 25, 50, 75, 90, 95)
OUTLIER_FENCE = 1.5
MAX_BIN_COUNT = 100


# ── Helpers ─────────────────────────────────────────────────────────

def _safe_float(val) -> float:
    """Round to 2 dp; NaN/inf collapse to 0.0."""
    try:
        v = float(val)
        return 0.0 if (np.isnan(v) or np.isinf(v)) else round(v, 2)
    except (TypeError, ValueError):
        return 0.0


def _clean_sample(
    values: Sequence[float],
    student_ids: Optional[Sequence[str]] = None,
) -> Tuple[np.ndarray, List[Optional[str]]]:
    """Drop non-finite values, keeping student ids aligned."""
    arr = np.asarray(values, dtype=float)
    if student_ids is not None and len(student_ids) != len(arr):
        raise ValueError(
            f"student_ids has {len(student_ids)} entries but there are {len(arr)} values."
        )
    ids: List[Optional[str]] = list(student_ids) if student_ids is not None else [None] * len(arr)
    mask = np.isfinite(arr)
    if not mask.all():
        logger.debug("Dropping %d non-finite values from sample", int((~mask).sum()))
        ids = [sid for sid, keep in zip(ids, mask) if keep]
        arr = arr[mask]
    return arr, ids


def percentile(sorted_values: np.ndarray, p: float) -> float:
    """
    Linear interpolation between closest ranks (R-7 / Excel PERCENTILE.INC).

    ``sorted_values`` must already be sorted ascending and non-empty.
    """
    return float(np.percentile(sorted_values, p, method="linear"))


def _describe(arr: np.ndarray) -> Dict[str, object]:
    """Unrounded descriptive statistics for a non-empty finite sample."""
    sorted_vals = np.sort(arr)
    pct = {p: percentile(sorted_vals, p) for p in PERCENTILE_TABLE}
    mean = float(arr.mean())
    variance = float(np.var(arr))  # population: divide by N
    return {
        "mean": mean,
        "median": pct[50],
        "mode": [float(v) for v in pd.Series(arr).mode()],
        "variance": variance,
        "std": float(np.sqrt(variance)),
        "min": float(sorted_vals[0]),
        "max": float(sorted_vals[-1]),
        "q1": pct[25],
        "q3": pct[75],
        "pct": pct,
    }


# ── Statistics ──────────────────────────────────────────────────────

def calculate_statistics(values: Sequence[float]) -> GradeStatistics:
    """Full descriptive statistics for a grade sample."""
    arr, _ = _clean_sample(values)
    if arr.size == 0:
        raise EmptySampleError()
    return _statistics_from(_describe(arr))


def _statistics_from(d: Dict[str, object]) -> GradeStatistics:
    pct = d["pct"]
    median = _safe_float(d["median"])
    return GradeStatistics(
        mean=_safe_float(d["mean"]),
        median=median,
        mode=d["mode"],
        standard_deviation=_safe_float(d["std"]),
        variance=_safe_float(d["variance"]),
        min=d["min"],
        max=d["max"],
        range=_safe_float(d["max"] - d["min"]),
        quartiles=Quartiles(
            q1=_safe_float(d["q1"]),
            q2=median,
            q3=_safe_float(d["q3"]),
            iqr=_safe_float(d["q3"] - d["q1"]),
        ),
        percentiles=Percentiles(
            p10=_safe_float(pct[10]),
            p25=_safe_float(pct[25]),
            p50=median,
            p75=_safe_float(pct[75]),
            p90=_safe_float(pct[90]),
            p95=_safe_float(pct[95]),
        ),
    )


# ── Histogram ───────────────────────────────────────────────────────

def _bin_color(lower: float, upper: float, data_min: float, data_max: float) -> str:
    """Red (low grades) to green (high grades) by the bin midpoint."""
    span = data_max - data_min
    if span <= 0:
        return "hsl(120, 70%, 50%)"
    position = ((lower + upper) / 2 - data_min) / span
    if position < 0.2:
        return "hsl(0, 70%, 60%)"
    if position < 0.4:
        return "hsl(30, 70%, 60%)"
    if position < 0.6:
        return "hsl(60, 70%, 60%)"
    if position < 0.8:
        return "hsl(120, 50%, 60%)"
    return "hsl(120, 70%, 50%)"


def _make_bin(
    lower: float,
    upper: float,
    mask: np.ndarray,
    ids: List[Optional[str]],
    total: int,
    data_min: float,
    data_max: float,
) -> DistributionBin:
    count = int(mask.sum())
    return DistributionBin(
        range=f"{round(lower)}-{round(upper)}",
        min=_safe_float(lower),
        max=_safe_float(upper),
        count=count,
        percentage=_safe_float(count / total * 100),
        student_ids=[sid for sid, hit in zip(ids, mask) if hit and sid],
        color=_bin_color(lower, upper, data_min, data_max),
    )


def create_histogram(
    values: Sequence[float],
    bin_count: int = 10,
    student_ids: Optional[Sequence[str]] = None,
    custom_ranges: Optional[Sequence[Tuple[float, float]]] = None,
) -> HistogramData:
    """
    Bucket a sample into equal-width bins, or into ``custom_ranges``.

    Equal-width bins are half-open ``[lo, hi)`` except the last, which
    is closed on ``max`` so the top score is never dropped. When every
    value is identical a single zero-width bin holds the whole sample.
    Custom ranges are closed and a value lands in the first that fits.
    ``bin_count`` is clamped to ``[1, MAX_BIN_COUNT]``.
    """
    arr, ids = _clean_sample(values, student_ids)
    if arr.size == 0:
        raise EmptySampleError("histogram")

    described = _describe(arr)
    data_min, data_max = described["min"], described["max"]
    total = int(arr.size)
    bins: List[DistributionBin] = []

    if custom_ranges:
        assigned = np.zeros(total, dtype=bool)
        widths = []
        for lower, upper in custom_ranges:
            lower, upper = float(lower), float(upper)
            mask = (arr >= lower) & (arr <= upper) & ~assigned
            assigned |= mask
            widths.append(upper - lower)
            bins.append(_make_bin(lower, upper, mask, ids, total, data_min, data_max))
        bin_width = float(np.mean(widths))
        if not assigned.all():
            logger.debug("%d values fell outside the custom ranges", int((~assigned).sum()))
    elif data_min == data_max:
        bin_width = 0.0
        mask = np.ones(total, dtype=bool)
        bins.append(_make_bin(data_min, data_max, mask, ids, total, data_min, data_max))
    else:
        bin_count = min(max(int(bin_count), 1), MAX_BIN_COUNT)
        bin_width = (data_max - data_min) / bin_count
        edges = [data_min + i * bin_width for i in range(bin_count)] + [data_max]
        for i in range(bin_count):
            lower, upper = edges[i], edges[i + 1]
            if i == bin_count - 1:
                mask = (arr >= lower) & (arr <= upper)
            else:
                mask = (arr >= lower) & (arr < upper)
            bins.append(_make_bin(lower, upper, mask, ids, total, data_min, data_max))

    logger.debug("Histogram: %d values into %d bins (width %.3f)", total, len(bins), bin_width)
    return HistogramData(
        bins=bins,
        bin_width=_safe_float(bin_width),
        total_count=total,
        statistics=_statistics_from(described),
    )


# ── Box plot ────────────────────────────────────────────────────────

def create_box_plot(
    values: Sequence[float],
    student_ids: Optional[Sequence[str]] = None,
    student_names: Optional[Sequence[str]] = None,
) -> BoxPlotData:
    """Five-number summary; values beyond 1.5 x IQR from Q1/Q3 are outliers."""
    if student_names is not None and len(student_names) != len(values):
        raise ValueError("student_names must align with values.")
    names = list(student_names) if student_names is not None else [None] * len(values)
    keep = np.isfinite(np.asarray(values, dtype=float))
    names = [n for n, k in zip(names, keep) if k]

    arr, ids = _clean_sample(values, student_ids)
    if arr.size == 0:
        raise EmptySampleError("box plot")

    described = _describe(arr)
    statistics = _statistics_from(described)

    iqr = described["q3"] - described["q1"]
    lower_fence = described["q1"] - OUTLIER_FENCE * iqr
    upper_fence = described["q3"] + OUTLIER_FENCE * iqr

    outliers = [
        Outlier(
            value=float(value),
            student_id=ids[index] or f"student_{index}",
            student_name=names[index],
        )
        for index, value in enumerate(arr)
        if value < lower_fence or value > upper_fence
    ]
    logger.debug("Box plot fences [%.2f, %.2f]: %d outliers", lower_fence, upper_fence, len(outliers))

    return BoxPlotData(
        min=statistics.min,
        q1=statistics.quartiles.q1,
        median=statistics.quartiles.q2,
        q3=statistics.quartiles.q3,
        max=statistics.max,
        outliers=outliers,
        statistics=statistics,
    )


# ── Correlation ─────────────────────────────────────────────────────

def _correlation_strength(r: float) -> str:
    r_abs = abs(r)
    if r_abs >= 0.7:
        return "strong"
    elif r_abs >= 0.4:
        return "moderate"
    elif r_abs >= 0.1:
        return "weak"
    else:
        return "none"


def calculate_correlation(
    x: Sequence[float],
    y: Sequence[float],
    method: str = "pearson",
) -> CorrelationResult:
    """Pearson or Spearman correlation between two paired samples."""
    if method not in ("pearson", "spearman"):
        raise ValueError(f"Unsupported correlation method: {method}")
    xa = np.asarray(x, dtype=float)
    ya = np.asarray(y, dtype=float)
    if xa.size == 0 or ya.size == 0:
        raise EmptySampleError("correlation input")
    if xa.size != ya.size:
        raise ValueError("Datasets must have the same length.")

    if xa.size < 2 or np.ptp(xa) == 0 or np.ptp(ya) == 0:
        r, p = 0.0, 1.0
    elif method == "spearman":
        r, p = sp_stats.spearmanr(xa, ya)
    else:
        r, p = sp_stats.pearsonr(xa, ya)

    r = float(r) if np.isfinite(r) else 0.0
    p = float(p) if np.isfinite(p) else 1.0
    strength = _correlation_strength(r)
    if strength == "none":
        relationship = "none"
    else:
        relationship = "positive" if r > 0 else "negative"

    return CorrelationResult(
        method=method,
        coefficient=round(r, 4),
        p_value=round(p, 4),
        strength=strength,
        relationship=relationship,
        n=int(xa.size),
    )


# ── Distribution comparison ─────────────────────────────────────────

def _cohens_d(group_a: np.ndarray, group_b: np.ndarray) -> float:
    """Compute Cohen's d effect size."""
    n_a, n_b = len(group_a), len(group_b)
    if n_a < 2 or n_b < 2:
        return 0.0
    var_a = np.var(group_a, ddof=1)
    var_b = np.var(group_b, ddof=1)
    pooled_std = np.sqrt(((n_a - 1) * var_a + (n_b - 1) * var_b) / (n_a + n_b - 2))
    if pooled_std == 0:
        return 0.0
    return float((np.mean(group_a) - np.mean(group_b)) / pooled_std)


def _effect_label(d: float) -> str:
    d_abs = abs(d)
    if d_abs < 0.2:
        return "small"
    elif d_abs < 0.8:
        return "medium"
    else:
        return "large"


def compare_distributions(
    sample_a: Sequence[float],
    sample_b: Sequence[float],
) -> DistributionComparison:
    """Welch's t-test between two grade distributions."""
    a, _ = _clean_sample(sample_a)
    b, _ = _clean_sample(sample_b)
    if a.size == 0 or b.size == 0:
        raise EmptySampleError("comparison sample")

    t_stat, p_value = 0.0, 1.0
    if a.size >= 2 and b.size >= 2 and (np.ptp(a) > 0 or np.ptp(b) > 0):
        t_stat, p_value = sp_stats.ttest_ind(a, b, equal_var=False)
        t_stat = float(t_stat) if np.isfinite(t_stat) else 0.0
        p_value = float(p_value) if np.isfinite(p_value) else 1.0

    d = _cohens_d(a, b)
    return DistributionComparison(
        t_statistic=round(t_stat, 3),
        p_value=round(p_value, 3),
        significant=p_value < 0.05,
        cohens_d=round(d, 3),
        effect=_effect_label(d),
        mean_difference=_safe_float(a.mean() - b.mean()),
    )
