"""
FitTrack Analytics — Trend alerts

Scans the recent logs for things worth flagging:
- Body-weight plateaus (2-week and 4-week windows)
- Strength stalls and regressions per exercise
- Goals that are critical, at risk or stagnant
"""
import pandas as pd

from fittrack.config import MAJOR_LIFTS, WEIGHT_UNIT
from fittrack.goals import goal_timeline
from fittrack.records import iso_day
from fittrack.stats import variance

WEIGHT_PLATEAU_CHANGE = 0.5
MIN_WEIGHT_LOGS = 5
STALL_SESSIONS = 4
STALL_WEIGHT_RANGE = 2.5
STALL_E1RM_RANGE = 5.0
REGRESSION_SESSIONS = 6
REGRESSION_DROP = 5.0
PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}


def _window(df: pd.DataFrame, today: pd.Timestamp, days: int) -> pd.DataFrame:
    return df[(df["date"] >= today - pd.Timedelta(days=days)) & (df["date"] <= today)]


# ═══════════════════════════════════════════════════════════════════════
# 1. BODY WEIGHT
# ═══════════════════════════════════════════════════════════════════════

def weight_plateau_alerts(weights: pd.DataFrame, today, analysis_window: int = 30) -> list[dict]:
    """Flag flat body weight over the last 2 weeks and over the last 4 weeks."""
    today = pd.Timestamp(today).normalize()
    if weights.empty:
        return []
    logs = _window(weights, today, analysis_window * 2)
    if len(logs) < MIN_WEIGHT_LOGS:
        return []

    alerts = []
    recent = _window(logs, today, 14)
    if len(recent) >= 3:
        first, last = float(recent["weight"].iloc[0]), float(recent["weight"].iloc[-1])
        change = abs(last - first)
        if change < WEIGHT_PLATEAU_CHANGE:
            spread = variance(recent["weight"])
            alerts.append({
                "type": "weight_plateau",
                "priority": "high" if spread < 0.25 else "medium",
                "title": "Weight Plateau Detected",
                "message": f"Your weight has remained stable ({change:.1f} {WEIGHT_UNIT} change) over the "
                           "last 2 weeks. Consider adjusting your nutrition or exercise routine.",
                "data": {
                    "timespan": "2 weeks",
                    "weight_change": round(change, 1),
                    "variance": round(spread, 2),
                    "current_weight": last,
                    "data_points": len(recent),
                },
            })

    long_term = _window(logs, today, 28)
    if len(long_term) >= 6:
        first, last = float(long_term["weight"].iloc[0]), float(long_term["weight"].iloc[-1])
        change = abs(last - first)
        if change < WEIGHT_PLATEAU_CHANGE * 1.5:
            alerts.append({
                "type": "weight_long_plateau",
                "priority": "high",
                "title": "Extended Weight Plateau",
                "message": f"Your weight has been stable for 4+ weeks ({change:.1f} {WEIGHT_UNIT} total change). "
                           "This suggests your body has adapted to your current routine.",
                "data": {
                    "timespan": "4+ weeks",
                    "weight_change": round(change, 1),
                    "current_weight": last,
                    "start_weight": first,
                    "data_points": len(long_term),
                },
            })
    return alerts


# ═══════════════════════════════════════════════════════════════════════
# 2. STRENGTH
# ═══════════════════════════════════════════════════════════════════════

def strength_stall_alerts(workouts: pd.DataFrame, today=None, analysis_window: int = 30) -> list[dict]:
    """
    Per exercise (loaded sets only, oldest first):
    stall when the last 4 entries span < 2.5 in weight and < 5 in e1RM;
    regression when the mean e1RM of the last 3 of 6 entries drops > 5.
    """
    if workouts.empty:
        return []
    data = workouts[workouts["weight"] > 0]
    if today is not None:
        data = _window(data, pd.Timestamp(today).normalize(), analysis_window * 2)
    if len(data) < REGRESSION_SESSIONS:
        return []

    alerts = []
    for exercise, ex in data.groupby("exercise", sort=True):
        ex = ex.sort_values(["date", "record_id"], kind="mergesort")
        if len(ex) < STALL_SESSIONS:
            continue

        recent = ex.tail(STALL_SESSIONS)
        weight_range = recent["weight"].max() - recent["weight"].min()
        e1rm_range = recent["e1rm"].max() - recent["e1rm"].min()
        if weight_range < STALL_WEIGHT_RANGE and e1rm_range < STALL_E1RM_RANGE:
            days = int((recent["date"].iloc[-1] - recent["date"].iloc[0]).days)
            major = exercise.strip().lower() in MAJOR_LIFTS
            alerts.append({
                "type": "strength_stall",
                "priority": "high" if major else "medium",
                "title": f"Strength Stall: {exercise}",
                "message": f"No significant strength gains in {exercise} over the last {len(recent)} "
                           f"workouts ({days} days). Consider deload or programming changes.",
                "data": {
                    "exercise": exercise,
                    "workout_count": len(recent),
                    "timespan_days": days,
                    "current_weight": float(recent["weight"].iloc[-1]),
                    "weight_range": [float(recent["weight"].min()), float(recent["weight"].max())],
                    "estimated_1rm": round(float(recent["e1rm"].iloc[-1])),
                    "total_workouts": len(ex),
                    "is_major_exercise": major,
                },
            })

        if len(ex) >= REGRESSION_SESSIONS:
            last_six = ex["e1rm"].tail(REGRESSION_SESSIONS).tolist()
            before = sum(last_six[:3]) / 3
            after = sum(last_six[3:]) / 3
            drop = before - after
            if drop > REGRESSION_DROP:
                alerts.append({
                    "type": "strength_regression",
                    "priority": "high",
                    "title": f"Strength Regression: {exercise}",
                    "message": f"Strength has decreased in {exercise} over recent workouts. Average "
                               f"estimated 1RM dropped by {drop:.1f} {WEIGHT_UNIT}. This may indicate "
                               "overtraining or insufficient recovery.",
                    "data": {
                        "exercise": exercise,
                        "regression_amount": round(drop, 1),
                        "previous_average": round(before),
                        "current_average": round(after),
                        "workouts_analyzed": REGRESSION_SESSIONS,
                    },
                })
    return alerts


# ═══════════════════════════════════════════════════════════════════════
# 3. GOALS
# ═══════════════════════════════════════════════════════════════════════

def goal_risk_alerts(goals: list[dict], today) -> list[dict]:
    """
    One alert per normalised goal at most, in order of severity:
    critical (≤ 7 days left, < 80%), at risk (needs > 1.5× the current
    daily rate), stagnant (< 10% with ≤ 30 days left).
    """
    alerts = []
    for goal in goals:
        timeline = goal_timeline(goal, today)
        remaining = timeline["days_remaining"]
        progress = float(goal["progress_percentage"])
        required_rate = (100 - progress) / remaining if remaining > 0 else 100 - progress
        current_rate = progress / timeline["days_elapsed"]
        data = {
            "goal_id": goal["id"],
            "title": goal["title"],
            "type": goal["type"],
            "days_remaining": remaining,
            "progress": round(progress, 1),
            "required_daily_rate": round(required_rate, 2),
            "current_daily_rate": round(current_rate, 2),
        }
        title = goal["title"] or "Untitled Goal"

        if remaining <= 7 and progress < 80:
            alerts.append({
                "type": "goal_critical",
                "priority": "high",
                "title": f"Critical Goal Risk: {title}",
                "message": f'Goal "{title}" has only {remaining} days remaining with {progress:.1f}% '
                           "completion. Immediate action required.",
                "data": data,
            })
        elif remaining > 0 and required_rate > current_rate * 1.5:
            gap = required_rate / max(current_rate, 0.1) * 100 - 100
            alerts.append({
                "type": "goal_at_risk",
                "priority": "medium",
                "title": f"Goal At Risk: {title}",
                "message": f'Goal "{title}" may not be achieved at current pace. Need to increase '
                           f"daily progress rate by {gap:.0f}%.",
                "data": {**data, "progress_gap_percentage": round(gap)},
            })
        elif progress < 10 and remaining <= 30:
            alerts.append({
                "type": "goal_stagnant",
                "priority": "medium",
                "title": f"Stagnant Goal: {title}",
                "message": f'Goal "{title}" has made minimal progress ({progress:.1f}%) with limited '
                           "time remaining. Goal strategy may need revision.",
                "data": {**data, "days_since_created": timeline["days_elapsed"]},
            })
    return alerts


# ═══════════════════════════════════════════════════════════════════════
# 4. COMBINED
# ═══════════════════════════════════════════════════════════════════════

def trend_alerts(weights: pd.DataFrame, workouts: pd.DataFrame, goals: list[dict],
                 today, analysis_window: int = 30) -> dict:
    """All alert families, highest priority first, with per-family counts."""
    weight = weight_plateau_alerts(weights, today, analysis_window)
    strength = strength_stall_alerts(workouts, today, analysis_window)
    goal = goal_risk_alerts(goals, today)

    combined = sorted(weight + strength + goal, key=lambda a: PRIORITY_ORDER[a["priority"]])
    return {
        "alerts": combined,
        "generated_for": iso_day(today),
        "summary": {
            "total_alerts": len(combined),
            "high_priority_alerts": sum(a["priority"] == "high" for a in combined),
            "categories": {"weight": len(weight), "strength": len(strength), "goals": len(goal)},
        },
    }
