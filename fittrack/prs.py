"""
FitTrack Analytics — Personal records

PRs are derived from the workout log: an entry is a PR when its weight
beats every earlier entry of the same exercise (matched case-insensitively).
- PR history and current PR per exercise
- New PRs in the last week against everything logged before it
- Improvement rate, PR trend and strength level per exercise
- 30 / 90-day projections from the latest improvement
"""
import pandas as pd

from fittrack.config import (
    DEFAULT_STRENGTH_STANDARD, PR_LOOKBACK_DAYS, STALE_PR_DAYS, STRENGTH_STANDARDS,
)
from fittrack.plateaus import exercise_key
from fittrack.records import iso_day
from fittrack.stats import linear_trend

PR_COLUMNS = ["exercise", "date", "weight", "reps", "e1rm", "previous_pr", "improvement", "record_id"]
STRENGTH_LEVELS = ("elite", "advanced", "intermediate", "beginner")


def _records(prs: pd.DataFrame) -> list[dict]:
    return [
        {
            "exercise": r.exercise,
            "date": iso_day(r.date),
            "weight": float(r.weight),
            "reps": int(r.reps),
            "e1rm": float(r.e1rm),
            "previous_pr": None if pd.isna(r.previous_pr) else float(r.previous_pr),
            "improvement": float(r.improvement),
            "record_id": r.record_id,
        }
        for r in prs.itertuples(index=False)
    ]


# ═══════════════════════════════════════════════════════════════════════
# 1. PR TRACKING
# ═══════════════════════════════════════════════════════════════════════

def pr_history(workouts: pd.DataFrame, exercise: str = None) -> pd.DataFrame:
    """
    Every entry that set a new weight PR, oldest first, with the PR it beat.
    The first loaded entry of an exercise is its baseline PR: no previous
    PR, improvement 0. Bodyweight entries (weight 0) never set a PR.
    Exercises are named by their first logged spelling.
    """
    if workouts.empty:
        return pd.DataFrame(columns=PR_COLUMNS)
    data = workouts[workouts["weight"] > 0]
    if exercise:
        data = data[exercise_key(data["exercise"]) == exercise.strip().lower()]

    rows = []
    for _, ex in data.groupby(exercise_key(data["exercise"]), sort=True):
        ex = ex.sort_values(["date", "record_id"], kind="mergesort")
        name = ex["exercise"].iloc[0]
        best = None
        for r in ex.itertuples(index=False):
            if best is None or r.weight > best:
                rows.append({
                    "exercise": name,
                    "date": r.date,
                    "weight": float(r.weight),
                    "reps": int(r.reps),
                    "e1rm": float(r.e1rm),
                    "previous_pr": best,
                    "improvement": float(r.weight) - best if best is not None else 0.0,
                    "record_id": r.record_id,
                })
                best = float(r.weight)

    history = pd.DataFrame(rows, columns=PR_COLUMNS)
    if not history.empty:
        history = history.sort_values(["date", "exercise"], kind="mergesort").reset_index(drop=True)
    return history


def current_prs(history: pd.DataFrame) -> pd.DataFrame:
    """Latest (and therefore heaviest) PR per exercise, by exercise name."""
    if history.empty:
        return history
    return (
        history.drop_duplicates("exercise", keep="last")
        .sort_values("exercise")
        .reset_index(drop=True)
    )


def detect_new_prs(workouts: pd.DataFrame, today, lookback_days: int = PR_LOOKBACK_DAYS) -> dict:
    """
    Best entry (by e1RM) per exercise in the last `lookback_days`, kept when
    its weight beats everything logged before the window. An exercise with no
    earlier history counts as a new PR with no previous PR.
    """
    today = pd.Timestamp(today).normalize()
    since = today - pd.Timedelta(days=lookback_days)
    logged = workouts[workouts["date"] <= today] if not workouts.empty else workouts
    recent = logged[logged["date"] > since] if not logged.empty else logged
    if recent.empty:
        return {"new_prs": [], "workouts_checked": 0, "message": "No recent workouts found"}

    earlier = logged[logged["date"] <= since]
    previous_best = (
        earlier.groupby(exercise_key(earlier["exercise"]))["weight"].max().to_dict()
        if not earlier.empty else {}
    )

    new_prs = []
    for key, ex in recent.groupby(exercise_key(recent["exercise"]), sort=True):
        best = ex.sort_values(["e1rm", "date"], ascending=[False, True], kind="mergesort").iloc[0]
        weight = float(best["weight"])
        previous = previous_best.get(key)
        if weight <= 0 or (previous is not None and weight <= previous):
            continue
        new_prs.append({
            "exercise": best["exercise"],
            "new_pr": weight,
            "previous_pr": float(previous) if previous is not None else None,
            "improvement": weight - previous if previous is not None else 0.0,
            "reps": int(best["reps"]),
            "date_achieved": iso_day(best["date"]),
            "estimated_1rm": float(best["e1rm"]),
            "record_id": best["record_id"],
        })

    return {
        "new_prs": new_prs,
        "workouts_checked": len(recent),
        "message": f"Found {len(new_prs)} new personal records!",
    }


# ═══════════════════════════════════════════════════════════════════════
# 2. PR ANALYSIS
# ═══════════════════════════════════════════════════════════════════════

def pr_trend(weights: list) -> str:
    """Slope of successive PR weights (per PR) bucketed into a trend label."""
    if len(weights) < 3:
        return "insufficient_data"
    slope = linear_trend(weights)["slope"]
    if slope > 2:
        return "accelerating"
    if slope > 0.5:
        return "steady_growth"
    if slope > -0.5:
        return "plateauing"
    return "declining"


def pr_progression(history: pd.DataFrame, today) -> dict:
    """Per-exercise improvement metrics and PR frequency."""
    today = pd.Timestamp(today).normalize()
    progression, frequency = {}, {}
    for name, prs in history.groupby("exercise", sort=True):
        prs = prs.sort_values("date", kind="mergesort")
        total = float(prs["improvement"].sum())
        first, last = prs["date"].iloc[0], prs["date"].iloc[-1]
        span = int((last - first).days)
        progression[name] = {
            "total_prs": len(prs),
            "total_improvement": round(total, 2),
            "average_improvement": round(total / len(prs), 2),
            "improvement_rate": round(total / span * 30, 2) if span > 0 else 0.0,  # per 30 days
            "current_max": float(prs["weight"].iloc[-1]),
            "time_span_days": span,
            "progression_trend": pr_trend(prs["weight"].tolist()),
        }
        frequency[name] = {
            "average_days_between_prs": round(span / max(len(prs) - 1, 1), 1),
            "last_pr_date": iso_day(last),
            "days_since_last_pr": int((today - last).days),
        }
    return {"strength_progression": progression, "pr_frequency": frequency}


def strength_level(exercise: str, weight: float) -> str:
    standards = STRENGTH_STANDARDS.get(
        exercise.strip().lower(), STRENGTH_STANDARDS[DEFAULT_STRENGTH_STANDARD]
    )
    for level in STRENGTH_LEVELS[:-1]:
        if weight >= standards[level]:
            return level
    return "beginner"


def strength_categories(current: pd.DataFrame) -> dict:
    categories = {level: [] for level in reversed(STRENGTH_LEVELS)}
    for r in current.itertuples(index=False):
        categories[strength_level(r.exercise, r.weight)].append(r.exercise)
    return categories


def pr_insights(analysis: dict, categories: dict) -> list[dict]:
    progression = analysis["strength_progression"]
    if not progression:
        return []

    insights = []
    average_rate = sum(p["improvement_rate"] for p in progression.values()) / len(progression)
    if average_rate > 5:
        insights.append({
            "type": "celebration", "category": "progression", "priority": "high",
            "message": "Excellent strength progression! You're improving at an exceptional rate.",
        })
    elif average_rate < 1:
        insights.append({
            "type": "suggestion", "category": "progression", "priority": "medium",
            "message": "Consider adjusting your training program to increase progression rate.",
        })

    stale = [name for name, f in analysis["pr_frequency"].items() if f["days_since_last_pr"] > STALE_PR_DAYS]
    if stale:
        insights.append({
            "type": "warning", "category": "stagnation", "priority": "high",
            "message": f"No recent PRs in: {', '.join(stale)}. Consider program adjustments.",
        })

    total = sum(len(names) for names in categories.values())
    if total and (len(categories["advanced"]) + len(categories["elite"])) / total > 0.5:
        insights.append({
            "type": "celebration", "category": "strength_level", "priority": "low",
            "message": "You've reached advanced strength levels in most exercises!",
        })
    return insights


def pr_projections(current: pd.DataFrame) -> dict:
    """30 / 90-day projections per exercise from the size of its latest PR jump."""
    projections = {}
    for r in current.itertuples(index=False):
        weight, step = float(r.weight), float(r.improvement)
        projections[r.exercise] = {
            "current": weight,
            "30_days": {
                "conservative": round(weight + step * 0.8, 2),
                "realistic": round(weight + step, 2),
                "optimistic": round(weight + step * 1.5, 2),
            },
            "90_days": {
                "conservative": round(weight + step * 2, 2),
                "realistic": round(weight + step * 3, 2),
                "optimistic": round(weight + step * 4, 2),
            },
            "recent_progress": "high" if step > 0 else "low",
        }
    return projections


# ═══════════════════════════════════════════════════════════════════════
# 3. REPORT
# ═══════════════════════════════════════════════════════════════════════

def pr_report(workouts: pd.DataFrame, today, exercise: str = None) -> dict:
    """PR history (newest first), current PRs, new PRs this week, analysis and projections."""
    today = pd.Timestamp(today).normalize()
    logged = workouts[workouts["date"] <= today] if not workouts.empty else workouts
    history = pr_history(logged, exercise)
    current = current_prs(history)
    latest = detect_new_prs(logged, today)

    analysis = pr_progression(history, today)
    categories = strength_categories(current)
    analysis["strength_categories"] = categories
    analysis["insights"] = pr_insights(analysis, categories)

    return {
        "all_prs": _records(history.iloc[::-1]),
        "current_prs": _records(current),
        "new_prs": latest["new_prs"],
        "analysis": analysis,
        "projections": pr_projections(current),
        "summary": {
            "total_exercises": len(current),
            "total_prs": len(history),
            "new_prs": len(latest["new_prs"]),
            "workouts_checked": latest["workouts_checked"],
        },
    }
