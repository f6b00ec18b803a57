"""
FitTrack Analytics — Progression engine

Next-session suggestions per exercise. Two interchangeable strategies:
- WeeklyIncrementStrategy (default): fixed load increment, retry after a
  single miss, 25% deload after two consecutive misses
- DoubleProgressionStrategy: reps climb to the category ceiling before load
  goes up; load step scaled by recent success rate and weekly volume trend

Exercise categories (starter loads, rep ranges, increments) come from the
ordered rule list in config.EXERCISE_CATEGORIES.
"""
import math

import pandas as pd

from fittrack.config import (
    DELOAD_FACTOR, DOUBLE_PROGRESSION, EXERCISE_CATEGORIES, GENERIC_CATEGORY,
    WEEKLY_INCREMENT, WEIGHT_UNIT,
)
from fittrack.records import iso_day
from fittrack.stats import linear_trend, weekly_totals


def round_half_up(value: float) -> float:
    return float(math.floor(value + 0.5))


def round_to_step(value: float, step: float) -> float:
    if step <= 0:
        return float(value)
    return math.floor(value / step + 0.5) * step


# ═══════════════════════════════════════════════════════════════════════
# 1. CLASSIFICATION & HISTORY
# ═══════════════════════════════════════════════════════════════════════

class ExerciseClassifier:
    """
    Ordered keyword rules: the first category whose keyword appears in the
    lowercased exercise name wins. Unmatched names get the fallback.
    """

    def __init__(self, categories: list = None, fallback: dict = None):
        self.categories = EXERCISE_CATEGORIES if categories is None else categories
        self.fallback = fallback or GENERIC_CATEGORY

    def classify(self, exercise: str) -> dict:
        name = str(exercise or "").lower()
        for category in self.categories:
            if any(keyword in name for keyword in category["keywords"]):
                return category
        return self.fallback


def exercise_history(workouts: pd.DataFrame, exercise: str) -> pd.DataFrame:
    """
    All logged entries for `exercise` (case-insensitive), most recent first.
    Same-day ties: heavier entry first, then higher record id.
    """
    if workouts.empty:
        return workouts
    key = str(exercise).strip().lower()
    ex = workouts[workouts["exercise"].str.strip().str.lower() == key]
    return ex.sort_values(
        ["date", "weight", "record_id"], ascending=[False, False, False], kind="mergesort"
    ).reset_index(drop=True)


def consecutive_misses(weights: list) -> int:
    """Count leading sessions (newest first) lighter than the one before them."""
    misses = 0
    for i in range(len(weights) - 1):
        if weights[i] < weights[i + 1]:
            misses += 1
        else:
            break
    return misses


def _last_workout(row) -> dict:
    return {
        "date": iso_day(row["date"]),
        "sets": int(row["sets"]),
        "reps": int(row["reps"]),
        "weight": float(row["weight"]),
    }


# ═══════════════════════════════════════════════════════════════════════
# 2. STRATEGIES
# ═══════════════════════════════════════════════════════════════════════

class ProgressionStrategy:
    """Base class: turns an exercise history (newest first) into a suggestion."""

    name = "base"

    def __init__(self, classifier: ExerciseClassifier = None):
        self.classifier = classifier or ExerciseClassifier()

    def suggest(self, exercise: str, history: pd.DataFrame) -> dict:
        raise NotImplementedError

    def _suggestion(self, exercise, sets, reps, weight, status, rationale,
                    last=None, analysis=None) -> dict:
        return {
            "exercise": exercise,
            "sets": int(sets),
            "reps": int(reps),
            "weight": float(weight),
            "rationale": rationale,
            "status": status,
            "strategy": self.name,
            "last_workout": last,
            "analysis": analysis or {},
        }

    def first_workout(self, exercise: str) -> dict:
        category = self.classifier.classify(exercise)
        starter = category["starter"]
        return self._suggestion(
            exercise, starter["sets"], starter["reps"], starter["weight"],
            "first_workout", category["starter_note"],
            analysis={"category": category["name"], "sessions": 0},
        )


class WeeklyIncrementStrategy(ProgressionStrategy):
    """
    Compares the two most recent sessions:
    hit (last ≥ previous) → +increment, one miss → retry the missed weight,
    two or more consecutive misses → deload to round(last × factor).
    """

    name = "weekly_increment"

    def __init__(self, increment: float = WEEKLY_INCREMENT,
                 deload_factor: float = DELOAD_FACTOR,
                 classifier: ExerciseClassifier = None):
        super().__init__(classifier)
        self.increment = increment
        self.deload_factor = deload_factor

    def suggest(self, exercise: str, history: pd.DataFrame) -> dict:
        if history.empty:
            return self.first_workout(exercise)

        last = history.iloc[0]
        last_weight = float(last["weight"])
        sets, reps = int(last["sets"]), int(last["reps"])
        snapshot = _last_workout(last)
        category = self.classifier.classify(exercise)["name"]

        if len(history) == 1:
            return self._suggestion(
                exercise, sets, reps, last_weight + self.increment, "progressing",
                f"First progression: +{self.increment:g}{WEIGHT_UNIT} on your last session",
                snapshot, {"category": category, "sessions": 1, "consecutive_misses": 0},
            )

        previous_weight = float(history.iloc[1]["weight"])
        misses = consecutive_misses(history["weight"].tolist())
        analysis = {"category": category, "sessions": len(history), "consecutive_misses": misses}

        if last_weight >= previous_weight:
            return self._suggestion(
                exercise, sets, reps, last_weight + self.increment, "progressing",
                f"Target hit ({last_weight:g} ≥ {previous_weight:g}) - add {self.increment:g}{WEIGHT_UNIT}",
                snapshot, analysis,
            )
        if misses == 1:
            return self._suggestion(
                exercise, sets, reps, previous_weight, "retry",
                f"Missed {previous_weight:g}{WEIGHT_UNIT} last time - retry the same target",
                snapshot, analysis,
            )
        deload_weight = round_half_up(last_weight * self.deload_factor)
        return self._suggestion(
            exercise, sets, reps, deload_weight, "deloading",
            f"{misses} consecutive misses - deload {round((1 - self.deload_factor) * 100):g}% and rebuild",
            snapshot, analysis,
        )


class DoubleProgressionStrategy(ProgressionStrategy):
    """
    Double progression inside the category rep range.

    Order of rules:
    1. weekly volume trending down steeply → deload 10%
    2. last reps below the range floor → retry same weight at the floor
    3. last reps below the ceiling → add reps
    4. at the ceiling → add load (percentage step, at least the category
       increment, rounded to 0.25), reps back to the floor; with no load
       step (bodyweight) add a set instead, up to max_sets
    """

    name = "double_progression"

    def __init__(self, params: dict = None, classifier: ExerciseClassifier = None):
        super().__init__(classifier)
        self.params = {**DOUBLE_PROGRESSION, **(params or {})}

    def success_rate(self, history: pd.DataFrame, rep_range: tuple) -> float:
        recent = history.head(self.params["success_window"])
        if recent.empty:
            return 0.0
        low, high = rep_range
        hits = recent["reps"].between(low, high).sum()
        return round(float(hits) / len(recent), 3)

    def volume_trend(self, history: pd.DataFrame) -> dict:
        """linear_trend on weekly volume normalised by its mean (slope = share of mean per week)."""
        weekly = weekly_totals(history.sort_values("date"), "volume")
        if len(weekly) < 2:
            return linear_trend([], threshold=self.params["trend_threshold"])
        mean = weekly["total"].mean()
        if mean <= 0:
            return linear_trend(weekly["total"] * 0, threshold=self.params["trend_threshold"])
        return linear_trend(weekly["total"] / mean, threshold=self.params["trend_threshold"])

    def multiplier(self, success_rate: float, trend: dict) -> float:
        if success_rate >= 0.9:
            value = 1.2
        elif success_rate >= 0.7:
            value = 1.0
        else:
            value = 0.5
        if trend["direction"] == "increasing" and trend["confidence"] > self.params["trend_confidence"]:
            value *= 1.1
        elif trend["direction"] == "decreasing":
            value *= 0.7
        return round(value, 3)

    def suggest(self, exercise: str, history: pd.DataFrame) -> dict:
        if history.empty:
            return self.first_workout(exercise)

        category = self.classifier.classify(exercise)
        low, high = category["rep_range"]
        last = history.iloc[0]
        weight, sets, reps = float(last["weight"]), int(last["sets"]), int(last["reps"])
        snapshot = _last_workout(last)

        rate = self.success_rate(history, category["rep_range"])
        trend = self.volume_trend(history)
        multiplier = self.multiplier(rate, trend)
        analysis = {
            "category": category["name"],
            "sessions": len(history),
            "rep_range": [low, high],
            "success_rate": rate,
            "volume_trend": trend,
            "multiplier": multiplier,
        }

        if trend["direction"] == "decreasing" and trend["slope"] <= self.params["deload_slope"]:
            deload = round_to_step(weight * self.params["deload_factor"], self.params["weight_rounding"])
            return self._suggestion(
                exercise, sets, low, deload, "deloading",
                "Weekly volume is falling fast - deload 10% and rebuild reps from the bottom of the range",
                snapshot, analysis,
            )

        if reps < low:
            return self._suggestion(
                exercise, sets, low, weight, "retry",
                f"Below the {low}-{high} rep range - repeat {weight:g}{WEIGHT_UNIT} for {low} reps",
                snapshot, analysis,
            )

        if reps < high:
            new_reps = min(reps + self.params["rep_increment"], high)
            return self._suggestion(
                exercise, sets, new_reps, weight, "progressing",
                f"Add reps toward the top of the {low}-{high} range before adding weight",
                snapshot, analysis,
            )

        step = max(category["weight_increment"], weight * category["base_pct_increase"] * multiplier)
        step = round_to_step(step, self.params["weight_rounding"])
        if step > 0:
            return self._suggestion(
                exercise, sets, low, weight + step, "progressing",
                f"Top of the rep range reached - add {step:g}{WEIGHT_UNIT} and restart at {low} reps",
                snapshot, analysis,
            )

        if sets < self.params["max_sets"]:
            return self._suggestion(
                exercise, sets + 1, low, weight, "progressing",
                f"Top of the rep range reached - add a set ({sets + 1}) and restart at {low} reps",
                snapshot, analysis,
            )
        return self._suggestion(
            exercise, sets, reps, weight, "progressing",
            f"Maximum of {self.params['max_sets']} sets reached - consider a harder variation",
            snapshot, analysis,
        )


STRATEGIES = {
    WeeklyIncrementStrategy.name: WeeklyIncrementStrategy,
    DoubleProgressionStrategy.name: DoubleProgressionStrategy,
}


def get_strategy(strategy=None) -> ProgressionStrategy:
    """Strategy instance, registered name, or None (default). Unknown names fall back to the default."""
    if isinstance(strategy, ProgressionStrategy):
        return strategy
    cls = STRATEGIES.get(str(strategy or "").strip().lower(), WeeklyIncrementStrategy)
    return cls()


# ═══════════════════════════════════════════════════════════════════════
# 3. ENTRY POINTS
# ═══════════════════════════════════════════════════════════════════════

def suggest_next_workout(workouts: pd.DataFrame, exercise: str, strategy=None) -> dict:
    """Suggest the next session for `exercise` from the workout log."""
    return get_strategy(strategy).suggest(exercise, exercise_history(workouts, exercise))


def format_suggestion(suggestion: dict) -> dict:
    """Human-readable change list / summary for a suggestion."""
    last = suggestion.get("last_workout")
    plan = f"{suggestion['sets']}x{suggestion['reps']} @ {suggestion['weight']:g}{WEIGHT_UNIT}"
    if not last:
        return {
            "changes": [],
            "reason": suggestion["rationale"],
            "summary": f"Start {suggestion['exercise']} with {plan}",
        }

    changes = []
    if suggestion["weight"] != last["weight"]:
        diff = suggestion["weight"] - last["weight"]
        changes.append(
            f"Weight: {last['weight']:g} → {suggestion['weight']:g}{WEIGHT_UNIT} ({diff:+g})"
        )
    if suggestion["reps"] != last["reps"]:
        changes.append(f"Reps: {last['reps']} → {suggestion['reps']}")
    if suggestion["sets"] != last["sets"]:
        changes.append(f"Sets: {last['sets']} → {suggestion['sets']}")

    summary = f"{suggestion['exercise']}: {plan}"
    if not changes:
        summary += " (no change)"
    return {"changes": changes, "reason": suggestion["rationale"], "summary": summary}
