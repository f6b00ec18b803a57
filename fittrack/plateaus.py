"""
FitTrack Analytics — Plateau detection & progressive-overload report

Per-exercise session analysis:
- Sticking points: working weight stuck within 5% of the previous two sessions
- Plateau periods: maximal runs of <3% session-to-session volume change
- Trend-based status (progressing / stagnant / regressing)
- Recommendations per exercise and for the program as a whole
"""
import pandas as pd

from fittrack.config import (
    PLATEAU_THRESHOLD, PLATEAU_VARIATION_DAYS, STICKING_POINT_THRESHOLD,
    TECHNIQUE_STICKING_POINTS,
)
from fittrack.records import iso_day
from fittrack.stats import linear_trend


def exercise_key(names: pd.Series) -> pd.Series:
    return names.str.strip().str.lower()


def exercise_sessions(workouts: pd.DataFrame, exercise: str) -> pd.DataFrame:
    """
    Collapse the log of one exercise (matched case-insensitively) into one
    row per training day, oldest first. Volume and workload are summed,
    intensity and e1RM take the day's best.
    """
    ex = workouts[exercise_key(workouts["exercise"]) == exercise.strip().lower()]
    if ex.empty:
        return pd.DataFrame(columns=["date", "sets", "reps", "weight", "volume", "intensity", "e1rm", "workload"])

    sessions = (
        ex.groupby("date")
        .agg(
            sets=("sets", "sum"),
            reps=("reps", "max"),
            weight=("weight", "max"),
            volume=("volume", "sum"),
            intensity=("intensity", "max"),
            e1rm=("e1rm", "max"),
            workload=("workload", "sum"),
        )
        .reset_index()
        .sort_values("date")
        .reset_index(drop=True)
    )
    return sessions


# ═══════════════════════════════════════════════════════════════════════
# 1. STICKING POINTS & PLATEAUS
# ═══════════════════════════════════════════════════════════════════════

def sticking_points(sessions: pd.DataFrame) -> list[dict]:
    """
    Flag session i (i ≥ 2) when its intensity is within 5% of the mean of
    the two sessions before it. Sessions with a zero reference mean
    (bodyweight work) are skipped.
    """
    if len(sessions) < 3:
        return []

    intensity = sessions["intensity"].tolist()
    dates = sessions["date"].tolist()
    points = []
    for i in range(2, len(intensity)):
        reference = (intensity[i - 1] + intensity[i - 2]) / 2
        if reference <= 0:
            continue
        if abs(intensity[i] - reference) / reference < STICKING_POINT_THRESHOLD:
            points.append({
                "date": iso_day(dates[i]),
                "session_index": i,
                "weight": round(float(intensity[i]), 2),
                "type": "intensity_plateau",
                "description": f"Intensity stuck around {intensity[i]:g} for multiple sessions",
            })
    return points


def _period(dates: list, volumes: list, start: int, end: int, active: bool) -> dict:
    return {
        "start_date": iso_day(dates[start]),
        "end_date": iso_day(dates[end]),
        "value": round(float(volumes[start]), 2),
        "duration_days": int((dates[end] - dates[start]).days),
        "sessions": end - start + 1,
        "active": active,
        "type": "volume_plateau",
    }


def plateau_periods(sessions: pd.DataFrame) -> list[dict]:
    """
    Maximal runs of consecutive sessions whose volume moves less than 3%
    from the session before. A run that reaches the latest session is
    emitted with `active=True`. A zero previous volume breaks a run.
    """
    if len(sessions) < 2:
        return []

    volumes = sessions["volume"].tolist()
    dates = sessions["date"].tolist()
    periods = []
    start = None
    for i in range(1, len(volumes)):
        previous = volumes[i - 1]
        flat = previous > 0 and abs(volumes[i] - previous) / previous < PLATEAU_THRESHOLD
        if flat:
            if start is None:
                start = i - 1
        elif start is not None:
            periods.append(_period(dates, volumes, start, i - 1, active=False))
            start = None

    if start is not None:
        periods.append(_period(dates, volumes, start, len(volumes) - 1, active=True))
    return periods


def needs_program_variation(periods: list[dict], min_days: int = PLATEAU_VARIATION_DAYS) -> bool:
    """True when the latest plateau is still running and has lasted ≥ min_days."""
    if not periods:
        return False
    last = periods[-1]
    return bool(last["active"] and last["duration_days"] >= min_days)


# ═══════════════════════════════════════════════════════════════════════
# 2. PER-EXERCISE ANALYSIS
# ═══════════════════════════════════════════════════════════════════════

def progression_status(volume_trend: dict, intensity_trend: dict, e1rm_trend: dict) -> str:
    directions = [t["direction"] for t in (volume_trend, intensity_trend, e1rm_trend)]
    if directions.count("increasing") >= 2:
        return "progressing"
    if directions.count("decreasing") >= 2:
        return "regressing"
    return "stagnant"


def exercise_recommendations(exercise: str, status: str, trends: dict,
                             points: list, periods: list) -> list[dict]:
    recs = []
    if status == "progressing":
        recs.append({
            "type": "maintain", "priority": "low",
            "message": f"Great progress on {exercise}! Continue with current progression strategy.",
        })
    elif status == "stagnant":
        if trends["intensity"]["direction"] == "stable":
            recs.append({
                "type": "intensity_increase", "priority": "high",
                "message": f"Increase weight by 2.5-5 lbs on {exercise} to break through plateau.",
            })
        if trends["volume"]["direction"] == "stable":
            recs.append({
                "type": "volume_increase", "priority": "medium",
                "message": f"Add an extra set or 2-3 reps per set for {exercise}.",
            })
    else:
        recs.append({
            "type": "deload", "priority": "high",
            "message": f"Consider a deload week for {exercise} - reduce weight by 10-20% and focus on form.",
        })

    if len(points) > TECHNIQUE_STICKING_POINTS:
        recs.append({
            "type": "technique_focus", "priority": "medium",
            "message": f"Multiple sticking points detected on {exercise}. "
                       "Focus on technique refinement and consider accessory exercises.",
        })

    if needs_program_variation(periods):
        recs.append({
            "type": "program_variation", "priority": "high",
            "message": f"Long plateau detected on {exercise}. "
                       "Consider changing rep ranges, tempo, or exercise variation.",
        })
    return recs


def next_progression_hint(sessions: pd.DataFrame, status: str) -> dict:
    last = sessions.iloc[-1]
    weight, sets, reps = float(last["weight"]), int(last["sets"]), int(last["reps"])

    if status == "progressing":
        return {
            "weight": weight + 2.5, "sets": sets, "reps": reps,
            "rationale": "Continue linear progression with small weight increase",
        }
    if status == "stagnant":
        return {"options": [
            {"type": "weight_increase", "weight": weight + 2.5, "sets": sets, "reps": reps,
             "rationale": "Increase weight while maintaining volume"},
            {"type": "volume_increase", "weight": weight, "sets": sets + 1, "reps": reps,
             "rationale": "Add extra set to increase total volume"},
            {"type": "rep_increase", "weight": weight, "sets": sets, "reps": reps + 2,
             "rationale": "Increase reps per set for volume progression"},
        ]}
    return {
        "weight": round(weight * 0.85, 2), "sets": sets, "reps": reps,
        "rationale": "Deload to recover and rebuild strength base",
    }


def analyze_exercise(sessions: pd.DataFrame, exercise: str, timeframe_days: int = 90) -> dict:
    """
    Full progressive-overload analysis of one exercise.
    `sessions` must be sorted oldest first (see exercise_sessions).
    """
    if sessions.empty:
        raise ValueError(f"No sessions to analyse for {exercise!r}")

    trends = {
        "volume": linear_trend(sessions["volume"]),
        "intensity": linear_trend(sessions["intensity"]),
        "e1rm": linear_trend(sessions["e1rm"]),
        "workload": linear_trend(sessions["workload"]),
    }
    status = progression_status(trends["volume"], trends["intensity"], trends["e1rm"])

    # % volume change per week over the analysis window
    first_volume = float(sessions["volume"].iloc[0])
    last_volume = float(sessions["volume"].iloc[-1])
    rate = None
    if first_volume > 0:
        rate = round((last_volume - first_volume) / first_volume * 100 * 7 / max(timeframe_days, 1), 2)

    points = sticking_points(sessions)
    periods = plateau_periods(sessions)
    last = sessions.iloc[-1]

    return {
        "exercise": exercise,
        "total_sessions": len(sessions),
        "progression_status": status,
        "progression_rate": rate,
        "trends": trends,
        "current": {
            "volume": round(last_volume, 2),
            "intensity": float(last["intensity"]),
            "e1rm": float(last["e1rm"]),
            "workload": int(last["workload"]),
        },
        "sticking_points": points,
        "plateau_periods": periods,
        "recommendations": exercise_recommendations(exercise, status, trends, points, periods),
        "next_progression": next_progression_hint(sessions, status),
    }


# ═══════════════════════════════════════════════════════════════════════
# 3. PROGRAM-WIDE REPORT
# ═══════════════════════════════════════════════════════════════════════

def overall_recommendations(metrics: dict) -> list[dict]:
    recs = []
    total = metrics["total_exercises"]
    if total == 0:
        return recs

    progressing_ratio = metrics["exercises_progressing"] / total
    if progressing_ratio < 0.3:
        recs.append({
            "type": "program_overhaul", "priority": "high",
            "message": "Most exercises are stagnating. Consider a new training program or deload week.",
        })
    elif progressing_ratio > 0.7:
        recs.append({
            "type": "maintain_program", "priority": "low",
            "message": "Excellent progress across most exercises! Stay consistent with current approach.",
        })

    if metrics["average_progression_rate"] < 0.5:
        recs.append({
            "type": "progression_adjustment", "priority": "medium",
            "message": "Consider smaller, more frequent progressions to maintain steady improvement.",
        })
    return recs


def progressive_overload_report(workouts: pd.DataFrame, min_sessions: int = 3,
                                timeframe_days: int = 90, exercise: str = None,
                                today: pd.Timestamp = None) -> dict:
    """
    Analyse every exercise with at least `min_sessions` sessions inside the
    window ending at `today` (default: the latest logged day).

    An exercise whose analysis raises is reported with status "error";
    its siblings are still analysed.
    """
    if workouts.empty:
        return {
            "message": "No workouts found for analysis",
            "exercises": {},
            "overall": None,
            "summary": {"total_workouts": 0, "timeframe_days": timeframe_days, "exercises_analyzed": 0},
        }

    end = pd.Timestamp(today).normalize() if today is not None else workouts["date"].max()
    window = workouts[
        (workouts["date"] > end - pd.Timedelta(days=timeframe_days)) & (workouts["date"] <= end)
    ]
    if exercise:
        window = window[exercise_key(window["exercise"]) == exercise.strip().lower()]

    exercises = {}
    metrics = {
        "total_exercises": 0,
        "exercises_progressing": 0,
        "exercises_needing_adjustment": 0,
        "exercises_failed": 0,
        "average_progression_rate": 0.0,
    }

    # one entry per exercise, named by its first logged spelling
    names = window["exercise"].groupby(exercise_key(window["exercise"])).first()
    for name in sorted(names):
        try:
            sessions = exercise_sessions(window, name)
            if len(sessions) < min_sessions:
                continue
            analysis = analyze_exercise(sessions, name, timeframe_days)
        except Exception as e:
            exercises[name] = {"exercise": name, "status": "error", "error": str(e)}
            metrics["exercises_failed"] += 1
            continue

        analysis["status"] = "ok"
        exercises[name] = analysis
        metrics["total_exercises"] += 1
        if analysis["progression_status"] == "progressing":
            metrics["exercises_progressing"] += 1
        else:
            metrics["exercises_needing_adjustment"] += 1

    rates = [a["progression_rate"] for a in exercises.values()
             if a["status"] == "ok" and a["progression_rate"] is not None]
    metrics["average_progression_rate"] = round(sum(rates) / len(rates), 2) if rates else 0.0
    metrics["recommendations"] = overall_recommendations(metrics)

    return {
        "exercises": exercises,
        "overall": metrics,
        "summary": {
            "total_workouts": len(window),
            "timeframe_days": timeframe_days,
            "exercises_analyzed": metrics["total_exercises"],
        },
    }
