"""
Tests for the progression engine — weekly increment state machine,
double progression and exercise classification.
Run: pytest tests/ -v
"""
import pandas as pd
import pytest


def _make_workouts(rows: list[dict]) -> pd.DataFrame:
    """Helper: build a workout frame from simplified rows (defaults: Bench Press 3x8)."""
    from fittrack.records import workouts_to_dataframe
    defaults = {"exercise": "Bench Press", "sets": 3, "reps": 8}
    return workouts_to_dataframe([{**defaults, **r} for r in rows])


def _history(weights: list[float], start: str = "2026-03-02", every: int = 3, **fields) -> pd.DataFrame:
    """Helper: one session per `every` days with the given weights, oldest first."""
    days = pd.date_range(start, periods=len(weights), freq=f"{every}D")
    return _make_workouts([
        {"id": f"rec{i:03d}", "date": d.strftime("%Y-%m-%d"), "weight": w, **fields}
        for i, (d, w) in enumerate(zip(days, weights))
    ])


# ═══════════════════════════════════════════════════════════════════════
# WEEKLY INCREMENT (default strategy)
# ═══════════════════════════════════════════════════════════════════════

class TestWeeklyIncrement:

    def test_no_history_gives_category_starter(self):
        from fittrack.progression import suggest_next_workout
        s = suggest_next_workout(_history([]), "Bench Press")
        assert s["status"] == "first_workout"
        assert (s["sets"], s["reps"], s["weight"]) == (3, 8, 45)

    def test_single_session(self):
        from fittrack.progression import suggest_next_workout
        s = suggest_next_workout(_history([50]), "Bench Press")
        assert s["weight"] == 55
        assert s["status"] == "progressing"
        assert (s["sets"], s["reps"]) == (3, 8)

    def test_target_hit(self):
        from fittrack.progression import suggest_next_workout
        s = suggest_next_workout(_history([50, 55]), "Bench Press")
        assert s["weight"] == 60
        assert s["status"] == "progressing"

    def test_repeat_counts_as_hit(self):
        from fittrack.progression import suggest_next_workout
        s = suggest_next_workout(_history([55, 55]), "Bench Press")
        assert s["weight"] == 60
        assert s["status"] == "progressing"

    def test_single_miss_retries(self):
        from fittrack.progression import suggest_next_workout
        s = suggest_next_workout(_history([50, 45]), "Bench Press")
        assert s["weight"] == 50
        assert s["status"] == "retry"

    def test_two_misses_deload(self):
        from fittrack.progression import suggest_next_workout
        s = suggest_next_workout(_history([50, 47, 45]), "Bench Press")
        assert s["weight"] == 34   # round(45 * 0.75) = round(33.75)
        assert s["status"] == "deloading"
        assert s["analysis"]["consecutive_misses"] == 2

    def test_deload_rounds_half_up(self):
        from fittrack.progression import WeeklyIncrementStrategy, suggest_next_workout
        # 50 * 0.75 = 37.5 → 38
        s = suggest_next_workout(_history([60, 55, 50]), "Bench Press", WeeklyIncrementStrategy())
        assert s["weight"] == 38

    def test_configurable_increment(self):
        from fittrack.progression import WeeklyIncrementStrategy, suggest_next_workout
        s = suggest_next_workout(_history([50]), "Bench Press", WeeklyIncrementStrategy(increment=2.5))
        assert s["weight"] == 52.5

    def test_same_day_tie_prefers_heavier_entry(self):
        from fittrack.progression import exercise_history
        workouts = _make_workouts([
            {"id": "a", "date": "2026-03-01", "weight": 60},
            {"id": "b", "date": "2026-03-01", "weight": 70},
            {"id": "c", "date": "2026-02-27", "weight": 80},
        ])
        history = exercise_history(workouts, "bench press")
        assert list(history["record_id"]) == ["b", "a", "c"]

    def test_other_exercises_ignored(self):
        from fittrack.progression import suggest_next_workout
        workouts = _make_workouts([
            {"date": "2026-03-01", "weight": 50},
            {"date": "2026-03-03", "exercise": "Squat", "weight": 100},
        ])
        s = suggest_next_workout(workouts, "Bench Press")
        assert s["weight"] == 55
        assert s["last_workout"]["date"] == "2026-03-01"


# ═══════════════════════════════════════════════════════════════════════
# CLASSIFICATION & STRATEGY SELECTION
# ═══════════════════════════════════════════════════════════════════════

class TestExerciseClassifier:

    @pytest.mark.parametrize("name, category", [
        ("Romanian Deadlift", "deadlift"),
        ("Barbell Back Squat", "compound"),
        ("Dumbbell Bicep Curl", "isolation"),
        ("Pull-Up", "bodyweight"),
        ("Farmer's Walk", "general"),
        ("", "general"),
    ])
    def test_categories(self, name, category):
        from fittrack.progression import ExerciseClassifier
        assert ExerciseClassifier().classify(name)["name"] == category

    def test_custom_rules(self):
        from fittrack.progression import ExerciseClassifier
        rules = [{"name": "carry", "keywords": ["walk"]}]
        assert ExerciseClassifier(rules).classify("Farmer's Walk")["name"] == "carry"

    def test_deadlift_starter(self):
        from fittrack.progression import suggest_next_workout
        s = suggest_next_workout(_history([]), "Deadlift")
        assert (s["sets"], s["reps"], s["weight"]) == (3, 5, 95)

    def test_unknown_exercise_never_fails(self):
        from fittrack.progression import suggest_next_workout
        s = suggest_next_workout(_history([]), "Sled Push Variation #7")
        assert s["status"] == "first_workout"
        assert (s["sets"], s["reps"], s["weight"]) == (3, 10, 10)


class TestGetStrategy:

    def test_default_is_weekly_increment(self):
        from fittrack.progression import WeeklyIncrementStrategy, get_strategy
        assert isinstance(get_strategy(), WeeklyIncrementStrategy)

    def test_by_name(self):
        from fittrack.progression import DoubleProgressionStrategy, get_strategy
        assert isinstance(get_strategy("double_progression"), DoubleProgressionStrategy)

    def test_unknown_name_falls_back(self):
        from fittrack.progression import WeeklyIncrementStrategy, get_strategy
        assert isinstance(get_strategy("nonsense"), WeeklyIncrementStrategy)

    def test_instance_passthrough(self):
        from fittrack.progression import DoubleProgressionStrategy, get_strategy
        strategy = DoubleProgressionStrategy()
        assert get_strategy(strategy) is strategy


# ═══════════════════════════════════════════════════════════════════════
# DOUBLE PROGRESSION
# ═══════════════════════════════════════════════════════════════════════

class TestDoubleProgression:

    def test_adds_reps_below_ceiling(self):
        from fittrack.progression import suggest_next_workout
        s = suggest_next_workout(_history([100, 100], reps=8), "Bench Press", "double_progression")
        assert s["status"] == "progressing"
        assert s["reps"] == 9
        assert s["weight"] == 100

    def test_adds_weight_at_ceiling(self):
        from fittrack.progression import suggest_next_workout
        s = suggest_next_workout(_history([100, 100], reps=10), "Bench Press", "double_progression")
        # success rate 1.0 → ×1.2; step = max(2.5, 100 × 0.025 × 1.2 = 3.0)
        assert s["weight"] == 103.0
        assert s["reps"] == 6
        assert s["analysis"]["success_rate"] == 1.0

    def test_below_range_floor_retries(self):
        from fittrack.progression import suggest_next_workout
        s = suggest_next_workout(_history([100], reps=4), "Bench Press", "double_progression")
        assert s["status"] == "retry"
        assert s["reps"] == 6
        assert s["weight"] == 100

    def test_bodyweight_adds_set(self):
        from fittrack.progression import suggest_next_workout
        s = suggest_next_workout(_history([0], reps=15, exercise="Pull-Up"), "Pull-Up", "double_progression")
        assert s["sets"] == 4
        assert s["reps"] == 8
        assert s["weight"] == 0

    def test_bodyweight_set_cap(self):
        from fittrack.progression import suggest_next_workout
        s = suggest_next_workout(
            _history([0], reps=15, sets=5, exercise="Pull-Up"), "Pull-Up", "double_progression",
        )
        assert s["sets"] == 5

    def test_falling_weekly_volume_deloads(self):
        from fittrack.progression import suggest_next_workout
        # one session per week, volume collapsing week over week
        s = suggest_next_workout(
            _history([100, 80, 60, 40], every=7, reps=8), "Bench Press", "double_progression",
        )
        assert s["status"] == "deloading"
        assert s["weight"] == 36.0   # 40 × 0.9
        assert s["analysis"]["volume_trend"]["direction"] == "decreasing"

    def test_multiplier(self):
        from fittrack.progression import DoubleProgressionStrategy
        strategy = DoubleProgressionStrategy()
        rising = {"direction": "increasing", "confidence": 0.9}
        falling = {"direction": "decreasing", "confidence": 0.9}
        assert strategy.multiplier(0.95, rising) == pytest.approx(1.32)
        assert strategy.multiplier(0.75, falling) == pytest.approx(0.7)
        assert strategy.multiplier(0.2, {"direction": "stable", "confidence": 0}) == 0.5


# ═══════════════════════════════════════════════════════════════════════
# FORMATTING
# ═══════════════════════════════════════════════════════════════════════

class TestFormatSuggestion:

    def test_weight_change_line(self):
        from fittrack.progression import format_suggestion, suggest_next_workout
        text = format_suggestion(suggest_next_workout(_history([50]), "Bench Press"))
        assert text["changes"] == ["Weight: 50 → 55lbs (+5)"]
        assert text["summary"] == "Bench Press: 3x8 @ 55lbs"

    def test_first_workout(self):
        from fittrack.progression import format_suggestion, suggest_next_workout
        text = format_suggestion(suggest_next_workout(_history([]), "Bench Press"))
        assert text["changes"] == []
        assert text["summary"].startswith("Start Bench Press")
