"""
FitTrack Analytics — Goal predictions & progress

Per-goal likelihood of hitting the target by its target date:
- Body weight: regression trend of recent weigh-ins vs. the weekly change needed
- Exercise PR: recent per-session load gains vs. the weekly gain needed
- Frequency / Volume: trailing 4-week averages vs. the weekly target
- Anything else: linear projection of the recorded progress percentage

`today` is always passed in; nothing here reads the clock.
"""
import pandas as pd

from fittrack.config import (
    BODYWEIGHT_TREND_POINTS, PR_HISTORY_SESSIONS, PR_RATE_SESSIONS,
    SESSIONS_PER_WEEK, TRAILING_WEEKS, WEIGHT_UNIT,
)
from fittrack.records import field_value, iso_day, normalize_goal
from fittrack.stats import weekly_rate

LIKELY = ("very_likely", "likely")
NEEDS_ATTENTION = ("possible", "unlikely")


def goal_timeline(goal: dict, today) -> dict:
    today = pd.Timestamp(today).normalize()
    created, target = goal["created_date"], goal["target_date"]
    days_elapsed = max(1, (today - created).days)
    days_total = max(1, (target - created).days)
    days_remaining = max(0, (target - today).days)
    return {
        "today": today,
        "days_elapsed": days_elapsed,
        "days_total": days_total,
        "days_remaining": days_remaining,
        "time_elapsed_ratio": days_elapsed / days_total,
    }


def _ratio_bucket(ratio: float) -> tuple:
    if ratio >= 0.9:
        return "very_likely", "high"
    if ratio >= 0.7:
        return "likely", "medium"
    if ratio >= 0.5:
        return "possible", "medium"
    return "unlikely", "high"


def _days_from(today: pd.Timestamp, weeks: float) -> str:
    return iso_day(today + pd.Timedelta(days=round(weeks * 7)))


def _insufficient(message: str) -> dict:
    return {"likelihood": "insufficient_data", "confidence": "low", "predicted_date": None,
            "insights": [message], "metrics": {}}


# ═══════════════════════════════════════════════════════════════════════
# 1. PER-TYPE PREDICTORS
# ═══════════════════════════════════════════════════════════════════════

def predict_body_weight(goal: dict, weights: pd.DataFrame, timeline: dict) -> dict:
    history = weights[weights["date"] <= timeline["today"]] if not weights.empty else weights
    if len(history) < 3:
        return _insufficient("Need more weight data points for accurate prediction")

    current = float(history["weight"].iloc[-1])
    recent = history.tail(BODYWEIGHT_TREND_POINTS)
    trend = weekly_rate(recent["date"], recent["weight"])

    difference = goal["target_value"] - current
    weeks_remaining = max(timeline["days_remaining"], 1) / 7
    needed = difference / weeks_remaining
    gap = abs(trend - needed)

    if gap < 0.5:
        likelihood, confidence = "very_likely", "high"
        insight = "Current weight trend aligns well with goal requirements"
    elif gap < 1.0:
        likelihood, confidence = "likely", "medium"
        insight = "Small adjustment to current trend needed"
    elif gap < 2.0:
        likelihood, confidence = "possible", "medium"
        insight = "Significant change in habits required"
    else:
        likelihood, confidence = "unlikely", "high"
        insight = "Goal requires major lifestyle changes"
    insights = [insight]

    predicted = None
    if difference == 0:
        predicted = iso_day(timeline["today"])
        insights.append("Target weight already reached")
    elif abs(trend) > 0.1 and (trend > 0) == (difference > 0):
        predicted = _days_from(timeline["today"], abs(difference / trend))
    else:
        insights.append("Current trend is not moving toward the target")

    return {
        "likelihood": likelihood,
        "confidence": confidence,
        "predicted_date": predicted,
        "insights": insights,
        "metrics": {
            "current_weight": current,
            "weekly_change_needed": round(abs(needed), 1),
            "current_weekly_trend": round(trend, 1),
        },
    }


def pr_progression_rate(weights: list) -> float:
    """
    Spread of the session loads (heaviest - lightest), per session ×
    sessions/week. Session order does not matter.
    """
    if len(weights) < 2:
        return 0.0
    return (max(weights) - min(weights)) / len(weights) * SESSIONS_PER_WEEK


def predict_exercise_pr(goal: dict, workouts: pd.DataFrame, timeline: dict) -> dict:
    exercise = goal.get("exercise_name") or ""
    if workouts.empty or not exercise:
        return _insufficient(f"Need more {exercise or 'exercise'} workout data for accurate prediction")

    mask = (workouts["exercise"].str.strip().str.lower() == exercise.lower()) & \
           (workouts["date"] <= timeline["today"])
    sessions = workouts[mask].sort_values(["date", "record_id"], kind="mergesort").tail(PR_HISTORY_SESSIONS)
    if len(sessions) < 3:
        return _insufficient(f"Need more {exercise} workout data for accurate prediction")

    current_max = float(sessions["weight"].max())
    increase = goal["target_value"] - current_max
    rate = pr_progression_rate(sessions["weight"].tail(PR_RATE_SESSIONS).tolist())
    weeks_remaining = max(timeline["days_remaining"], 1) / 7
    needed = increase / weeks_remaining

    metrics = {
        "current_max": current_max,
        "weekly_progress_needed": round(needed, 1),
        "current_progression_rate": round(rate, 1),
    }
    if increase <= 0:
        return {"likelihood": "very_likely", "confidence": "high",
                "predicted_date": iso_day(timeline["today"]),
                "insights": [f"Target already lifted ({current_max:g}{WEIGHT_UNIT})"],
                "metrics": metrics}

    ratio = rate / needed
    if ratio >= 0.8:
        likelihood, confidence = "very_likely", "high"
        insight = "Strong progression trend supports goal achievement"
    elif ratio >= 0.5:
        likelihood, confidence = "likely", "medium"
        insight = "Good progress, minor adjustments may help"
    elif ratio > 0:
        likelihood, confidence = "possible", "medium"
        insight = "Current progression rate needs improvement"
    else:
        likelihood, confidence = "unlikely", "high"
        insight = "No recent progression detected"

    predicted = _days_from(timeline["today"], increase / rate) if rate > 0 else None
    return {"likelihood": likelihood, "confidence": confidence, "predicted_date": predicted,
            "insights": [insight], "metrics": metrics}


def _trailing(workouts: pd.DataFrame, today: pd.Timestamp) -> pd.DataFrame:
    if workouts.empty:
        return workouts
    start = today - pd.Timedelta(days=TRAILING_WEEKS * 7)
    return workouts[(workouts["date"] > start) & (workouts["date"] <= today)]


def predict_frequency(goal: dict, workouts: pd.DataFrame, timeline: dict) -> dict:
    recent = _trailing(workouts, timeline["today"])
    training_days = recent["date"].nunique() if not recent.empty else 0
    current = training_days / TRAILING_WEEKS
    target = goal["target_value"]
    ratio = current / target if target > 0 else 1.0

    likelihood, confidence = _ratio_bucket(ratio)
    insight = {
        "very_likely": "Current workout frequency is on track",
        "likely": "Slight increase in workout frequency needed",
        "possible": "Significant increase in workout frequency required",
        "unlikely": "Major lifestyle changes needed to reach frequency goal",
    }[likelihood]
    return {
        "likelihood": likelihood,
        "confidence": confidence,
        "predicted_date": None,
        "insights": [insight],
        "metrics": {"workouts_per_week_needed": target, "current_frequency": round(current, 1)},
    }


def predict_volume(goal: dict, workouts: pd.DataFrame, timeline: dict) -> dict:
    recent = _trailing(workouts, timeline["today"])
    current = float(recent["volume"].sum()) / TRAILING_WEEKS if not recent.empty else 0.0
    target = goal["target_value"]
    ratio = current / target if target > 0 else 1.0

    likelihood, confidence = _ratio_bucket(ratio)
    insight = {
        "very_likely": "Current training volume supports goal achievement",
        "likely": "Moderate increase in training volume needed",
        "possible": "Significant volume increase required",
        "unlikely": "Goal requires substantial training volume increase",
    }[likelihood]
    return {
        "likelihood": likelihood,
        "confidence": confidence,
        "predicted_date": None,
        "insights": [insight],
        "metrics": {"weekly_volume_needed": round(target), "current_weekly_volume": round(current)},
    }


def predict_generic(goal: dict, timeline: dict) -> dict:
    projected = goal["progress_percentage"] / timeline["time_elapsed_ratio"]
    if projected >= 95:
        likelihood, confidence, insight = "very_likely", "high", "Excellent progress rate"
    elif projected >= 80:
        likelihood, confidence, insight = "likely", "medium", "Good progress, stay consistent"
    elif projected >= 60:
        likelihood, confidence, insight = "possible", "medium", "Progress needs acceleration"
    else:
        likelihood, confidence, insight = "unlikely", "high", "Significant effort increase required"
    return {
        "likelihood": likelihood,
        "confidence": confidence,
        "predicted_date": None,
        "insights": [insight],
        "metrics": {"projected_progress": round(min(projected, 100.0))},
    }


# ═══════════════════════════════════════════════════════════════════════
# 2. PREDICTION ENTRY POINTS
# ═══════════════════════════════════════════════════════════════════════

def predict_goal(goal: dict, workouts: pd.DataFrame, weights: pd.DataFrame, today) -> dict:
    """
    Prediction for one normalised goal (see records.normalize_goal).
    Raises on bad input; predict_goals isolates those failures.
    """
    timeline = goal_timeline(goal, today)
    kind = goal["type"]
    if kind == "body_weight":
        prediction = predict_body_weight(goal, weights, timeline)
    elif kind == "exercise_pr":
        prediction = predict_exercise_pr(goal, workouts, timeline)
    elif kind == "frequency":
        prediction = predict_frequency(goal, workouts, timeline)
    elif kind == "volume":
        prediction = predict_volume(goal, workouts, timeline)
    else:
        prediction = predict_generic(goal, timeline)

    return {
        "goal_id": goal["id"],
        "title": goal["title"],
        "type": kind,
        "target_date": iso_day(goal["target_date"]),
        "days_remaining": timeline["days_remaining"],
        "current_progress": round(goal["progress_percentage"], 1),
        "time_elapsed_ratio": round(timeline["time_elapsed_ratio"], 3),
        **prediction,
    }


def predict_goals(goals: list, workouts: pd.DataFrame, weights: pd.DataFrame, today) -> dict:
    """
    Predict every goal. Goals may be raw records or normalised dicts; a goal
    that fails to normalise or predict becomes an `error` entry and the
    rest of the batch is unaffected.
    """
    predictions = []
    for record in goals or []:
        try:
            goal = record if isinstance(record.get("created_date"), pd.Timestamp) else normalize_goal(record)
            result = predict_goal(goal, workouts, weights, today)
            result["status"] = "ok"
        except Exception as e:
            raw = record if isinstance(record, dict) else {}
            result = {
                "goal_id": field_value(raw, "id"),
                "title": field_value(raw, "title"),
                "type": field_value(raw, "type"),
                "status": "error",
                "likelihood": "error",
                "confidence": "low",
                "predicted_date": None,
                "insights": ["Unable to generate prediction due to data issues", str(e)],
                "error": str(e),
            }
        predictions.append(result)

    likelihoods = [p["likelihood"] for p in predictions]
    summary = {
        "total_goals": len(predictions),
        "predictions_generated": sum(p["status"] == "ok" for p in predictions),
        "errors": sum(p["status"] == "error" for p in predictions),
        "likely_to_succeed": sum(lk in LIKELY for lk in likelihoods),
        "needs_attention": sum(lk in NEEDS_ATTENTION for lk in likelihoods),
        "insufficient_data": likelihoods.count("insufficient_data"),
    }
    return {"predictions": predictions, "summary": summary}


# ═══════════════════════════════════════════════════════════════════════
# 3. GOAL PROGRESS
# ═══════════════════════════════════════════════════════════════════════

def week_start(today) -> pd.Timestamp:
    """Sunday of the week containing `today`."""
    today = pd.Timestamp(today).normalize()
    return today - pd.Timedelta(days=(today.dayofweek + 1) % 7)


def body_weight_progress(start: float, current: float, target: float) -> float:
    """Share of the way from the starting weight to the target, 0-100, in either direction."""
    distance = target - start
    if distance == 0:
        return 100.0
    return min(max((current - start) / distance * 100, 0.0), 100.0)


def starting_weight(weights: pd.DataFrame, created: pd.Timestamp) -> float | None:
    """Last weigh-in on or before the goal was created, else the first one after."""
    if weights.empty:
        return None
    before = weights[weights["date"] <= created]
    if not before.empty:
        return float(before["weight"].iloc[-1])
    return float(weights["weight"].iloc[0])


def compute_goal_progress(goal: dict, workouts: pd.DataFrame, weights: pd.DataFrame, today) -> dict:
    """
    New current value for a goal from the logs, plus the capped percentage.
    Body-weight goals measure progress from the weight at goal creation, so
    cutting and bulking goals both start at 0%.
    The caller decides whether to persist it.
    """
    today = pd.Timestamp(today).normalize()
    kind = goal["type"]
    current = goal["current_value"]
    target = goal["target_value"]
    percentage = None

    if kind == "body_weight":
        history = weights[weights["date"] <= today] if not weights.empty else weights
        if not history.empty:
            current = float(history["weight"].iloc[-1])
            start = starting_weight(history, goal["created_date"])
            percentage = body_weight_progress(start, current, target)
        else:
            percentage = goal["progress_percentage"]
    elif kind == "exercise_pr":
        exercise = (goal.get("exercise_name") or "").lower()
        if not workouts.empty and exercise:
            lifts = workouts[(workouts["exercise"].str.strip().str.lower() == exercise)
                             & (workouts["date"] <= today)]
            if not lifts.empty:
                current = float(lifts["weight"].max())
    elif kind in ("frequency", "volume"):
        this_week = workouts[(workouts["date"] >= week_start(today)) & (workouts["date"] <= today)] \
            if not workouts.empty else workouts
        if kind == "frequency":
            current = float(this_week["date"].nunique()) if not this_week.empty else 0.0
        else:
            current = float(this_week["volume"].sum()) if not this_week.empty else 0.0

    if percentage is None:
        percentage = min(current / target * 100, 100.0) if target > 0 else 0.0
    return {
        "goal_id": goal["id"],
        "type": kind,
        "previous_value": goal["current_value"],
        "current_value": round(current, 2),
        "percentage": round(percentage, 1),
        "changed": round(current, 2) != round(goal["current_value"], 2),
    }
