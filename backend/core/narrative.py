"""
narrative.py — Template-based text for cohort insights and risk factors.

Transforms computed numbers into human-readable sentences. Uses f-string
templates only, so the same numbers always produce the same text.
"""


def _pct(share: float) -> int:
    """0.834 -> 83 (half up)."""
    return int(share * 100 + 0.5)


# ── Grade distribution ──────────────────────────────────────────────

def narrate_failing_share(share: float) -> str:
    return f"{_pct(share)}% of students are failing"


def narrate_excellent_share(share: float) -> str:
    return f"{_pct(share)}% of students are performing excellently"


# ── Cohort averages ─────────────────────────────────────────────────

def narrate_low_attendance(rate: float) -> str:
    return f"Average attendance is {_pct(rate)}%"


def narrate_excellent_attendance(rate: float) -> str:
    return f"Excellent attendance rate of {_pct(rate)}%"


def narrate_low_engagement(score: float) -> str:
    return f"Low average engagement score of {_pct(score)}%"


def narrate_low_completion(rate: float) -> str:
    return f"Low lesson completion rate of {_pct(rate)}%"


# ── Ranking ─────────────────────────────────────────────────────────

def narrate_top_performers(count: int, total: int) -> str:
    return f"{count} students ({_pct(count / total)}%) are in the top 20%"


def narrate_bottom_performers(count: int, total: int) -> str:
    return f"{count} students ({_pct(count / total)}%) are in the bottom 20%"


# ── Common tags ─────────────────────────────────────────────────────

def narrate_common_strength(tag: str, count: int) -> str:
    return f"{tag} is a common strength across {count} students"


def narrate_common_weakness(tag: str, count: int) -> str:
    return f"{tag} needs improvement for {count} students"


def recommend_focus_area(tag: str) -> str:
    return f"Focus on improving {tag} through targeted interventions"


# ── Risk factors ────────────────────────────────────────────────────

def narrate_low_grade(grade: float) -> str:
    return f"Current grade ({grade:g}%) is below threshold"


def narrate_poor_attendance(rate: float) -> str:
    return f"Attendance rate ({rate * 100:.1f}%) is below threshold"


def narrate_low_engagement_factor(score: float) -> str:
    return f"Engagement score ({score * 100:.1f}%) indicates low participation"


def narrate_missed_assignments(rate: float) -> str:
    return f"Assignment submission rate ({rate * 100:.1f}%) is concerning"


def narrate_late_submissions(rate: float) -> str:
    return f"High rate of late submissions ({rate * 100:.1f}%)"


def narrate_declining_performance(slope: float) -> str:
    return f"Performance is declining with slope {slope:.2f}"


def narrate_inactivity(days: int) -> str:
    return f"No activity for {days} days"


# ── Grade report ────────────────────────────────────────────────────

def narrate_at_risk_students(count: int) -> str:
    return f"{count} students are at high risk - consider early intervention"
