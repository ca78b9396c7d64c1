"""
grading.py - Letter-grade bands used for cohort grade distributions.

  A (90-100), B (80-89), C (70-79), D (60-69), F (0-59)

Bands are threshold based, so a fractional grade such as 89.5 is a B
and anything above 100 still counts as an A.
"""

import math
from typing import Any, Dict, List, Optional


# (min_score, label, description), ordered high to low.
GRADE_BANDS = [
    (90.0, "A", "Excellent"),
    (80.0, "B", "Good"),
    (70.0, "C", "Satisfactory"),
    (60.0, "D", "Needs Improvement"),
    (0.0, "F", "Failing"),
]


def is_valid_grade(score: Optional[float]) -> bool:
    """A grade is valid when it is a finite, non-negative number."""
    if score is None:
        return False
    try:
        value = float(score)
    except (TypeError, ValueError):
        return False
    return math.isfinite(value) and value >= 0


def get_grade_label(score: Optional[float]) -> str:
    """Return the band letter for a score, or '-' when there is none."""
    if not is_valid_grade(score):
        return "-"
    value = float(score)
    for min_score, label, _ in GRADE_BANDS:
        if value >= min_score:
            return label
    return "F"


def band_display(label: str) -> str:
    """'A' -> 'A (90-100)'."""
    thresholds = {t["label"]: t for t in get_all_grade_thresholds()}
    t = thresholds[label]
    return f"{label} ({int(t['min'])}-{int(t['max'])})"


def get_all_grade_thresholds() -> List[Dict[str, Any]]:
    """Return the full grade scale for legend/reference."""
    thresholds = []
    for idx, (min_score, label, desc) in enumerate(GRADE_BANDS):
        max_score = 100.0 if idx == 0 else GRADE_BANDS[idx - 1][0] - 1
        thresholds.append(
            {
                "min": min_score,
                "max": max_score,
                "label": label,
                "description": desc,
            }
        )
    return thresholds
