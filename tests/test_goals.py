"""
Tests for goal predictions, batch isolation and goal progress.
Run: pytest tests/ -v
"""
import pandas as pd
import pytest

TODAY = pd.Timestamp("2026-04-01")


def _goal(**overrides) -> dict:
    """Helper: raw goal record in Airtable field names."""
    goal = {
        "id": "recGoal",
        "Goal Title": "Test goal",
        "Goal Type": "Body Weight",
        "Target Value": 170,
        "Current Value": 0,
        "Progress Percentage": 50,
        "Created Date": "2026-03-01",
        "Target Date": "2026-05-01",
    }
    goal.update(overrides)
    return goal


def _weights(values: list[float], start: str = "2026-03-01", every: int = 1) -> pd.DataFrame:
    from fittrack.records import weights_to_dataframe
    days = pd.date_range(start, periods=len(values), freq=f"{every}D")
    return weights_to_dataframe([{"date": d, "weight": v} for d, v in zip(days, values)])


def _workouts(rows: list[dict]) -> pd.DataFrame:
    from fittrack.records import workouts_to_dataframe
    defaults = {"exercise": "Bench Press", "sets": 3, "reps": 5, "weight": 100}
    return workouts_to_dataframe([{**defaults, **r} for r in rows])


def _predict(goal: dict, workouts=None, weights=None) -> dict:
    from fittrack.goals import predict_goal
    from fittrack.records import normalize_goal
    return predict_goal(
        normalize_goal(goal),
        workouts if workouts is not None else _workouts([]),
        weights if weights is not None else _weights([]),
        TODAY,
    )


# ═══════════════════════════════════════════════════════════════════════
# TIMELINE
# ═══════════════════════════════════════════════════════════════════════

class TestGoalTimeline:

    def test_derived_days(self):
        from fittrack.goals import goal_timeline
        from fittrack.records import normalize_goal
        t = goal_timeline(normalize_goal(_goal()), TODAY)
        assert t["days_elapsed"] == 31
        assert t["days_total"] == 61
        assert t["days_remaining"] == 30
        assert t["time_elapsed_ratio"] == pytest.approx(31 / 61)

    def test_overdue_goal_has_zero_remaining(self):
        from fittrack.goals import goal_timeline
        from fittrack.records import normalize_goal
        t = goal_timeline(normalize_goal(_goal(**{"Target Date": "2026-03-15"})), TODAY)
        assert t["days_remaining"] == 0

    def test_created_today_counts_one_day(self):
        from fittrack.goals import goal_timeline
        from fittrack.records import normalize_goal
        t = goal_timeline(normalize_goal(_goal(**{"Created Date": "2026-04-01"})), TODAY)
        assert t["days_elapsed"] == 1


# ═══════════════════════════════════════════════════════════════════════
# PER-TYPE PREDICTIONS
# ═══════════════════════════════════════════════════════════════════════

class TestBodyWeightPrediction:

    def test_fewer_than_three_points(self):
        p = _predict(_goal(), weights=_weights([180, 179]))
        assert p["likelihood"] == "insufficient_data"
        assert p["insights"]

    def test_on_track_trend(self):
        # losing 1 lb/week from 180 → 176; need (170 - 176) / (30/7) = -1.4/week
        weights = _weights([180, 179, 178, 177, 176], start="2026-02-25", every=7)
        p = _predict(_goal(), weights=weights)
        assert p["likelihood"] == "very_likely"
        assert p["metrics"]["current_weekly_trend"] == -1.0
        assert p["predicted_date"] == "2026-05-13"   # 6 lbs at 1 lb/week → 42 days
        assert p["goal_id"] == "recGoal"
        assert p["days_remaining"] == 30

    def test_trend_away_from_target_has_no_date(self):
        weights = _weights([170, 172, 174, 176], start="2026-03-04", every=7)
        p = _predict(_goal(**{"Target Value": 160}), weights=weights)
        assert p["likelihood"] == "unlikely"
        assert p["predicted_date"] is None


class TestExercisePrPrediction:

    def _goal(self, target=120):
        return _goal(**{"Goal Type": "Exercise PR", "Target Value": target, "Exercise Name": "Bench Press"})

    def test_insufficient_sessions(self):
        workouts = _workouts([{"date": "2026-03-01"}, {"date": "2026-03-03"}])
        assert _predict(self._goal(), workouts=workouts)["likelihood"] == "insufficient_data"

    def test_progressing_lift(self):
        workouts = _workouts([
            {"date": "2026-03-02", "weight": 100},
            {"date": "2026-03-05", "weight": 102.5},
            {"date": "2026-03-09", "weight": 105},
            {"date": "2026-03-12", "weight": 107.5},
            {"date": "2026-03-16", "weight": 110},
        ])
        p = _predict(self._goal(), workouts=workouts)
        # rate = 10 / 5 × 2.5 = 5/week; need 10 over 30 days = 2.33/week
        assert p["metrics"]["current_progression_rate"] == 5.0
        assert p["likelihood"] == "very_likely"
        assert p["predicted_date"] == "2026-04-15"

    def test_flat_lift_is_unlikely(self):
        workouts = _workouts([{"date": f"2026-03-0{d}"} for d in (2, 4, 6)])
        p = _predict(self._goal(), workouts=workouts)
        assert p["likelihood"] == "unlikely"
        assert p["predicted_date"] is None

    def test_rate_uses_spread_not_endpoints(self):
        from fittrack.goals import pr_progression_rate
        # heaviest 110 - lightest 95 = 15 over 5 sessions × 2.5
        assert pr_progression_rate([100, 110, 105, 100, 95]) == 7.5
        assert pr_progression_rate([110]) == 0.0

    def test_dip_after_heavy_session_still_possible(self):
        workouts = _workouts([
            {"date": "2026-03-02", "weight": 100},
            {"date": "2026-03-05", "weight": 110},
            {"date": "2026-03-09", "weight": 105},
            {"date": "2026-03-12", "weight": 100},
            {"date": "2026-03-16", "weight": 95},
        ])
        p = _predict(self._goal(target=200), workouts=workouts)
        # need 90 over 30 days = 21/week; 7.5 / 21 ≈ 0.36 → possible
        assert p["metrics"]["current_progression_rate"] == 7.5
        assert p["likelihood"] == "possible"

    def test_already_lifted(self):
        workouts = _workouts([{"date": f"2026-03-0{d}", "weight": 125} for d in (2, 4, 6)])
        assert _predict(self._goal(), workouts=workouts)["likelihood"] == "very_likely"


class TestFrequencyPrediction:

    def test_three_sessions_a_week(self):
        days = pd.date_range("2026-03-05", "2026-04-01", freq="D")
        rows = [{"date": d.strftime("%Y-%m-%d")} for d in days if d.dayofweek in (0, 2, 4)]
        goal = _goal(**{"Goal Type": "Frequency", "Target Value": 3})
        p = _predict(goal, workouts=_workouts(rows))
        assert p["metrics"]["current_frequency"] == 3.0
        assert p["likelihood"] == "very_likely"
        assert p["predicted_date"] is None

    def test_same_day_entries_count_once(self):
        rows = [{"date": "2026-03-30"}, {"date": "2026-03-30", "exercise": "Squat"}]
        goal = _goal(**{"Goal Type": "Frequency", "Target Value": 1})
        p = _predict(goal, workouts=_workouts(rows))
        assert p["metrics"]["current_frequency"] == 0.25
        assert p["likelihood"] == "unlikely"


class TestVolumePrediction:

    def test_ratio_bucket(self):
        # 4 sessions × 1500 in the trailing 4 weeks = 1500/week vs 2000 target → 0.75
        rows = [{"date": d} for d in ("2026-03-10", "2026-03-17", "2026-03-24", "2026-03-31")]
        goal = _goal(**{"Goal Type": "Volume", "Target Value": 2000})
        p = _predict(goal, workouts=_workouts(rows))
        assert p["metrics"]["current_weekly_volume"] == 1500
        assert p["likelihood"] == "likely"


class TestGenericPrediction:

    @pytest.mark.parametrize("progress, expected", [
        (50, "very_likely"),   # 50 / (31/61) ≈ 98
        (42, "likely"),        # ≈ 83
        (32, "possible"),      # ≈ 63
        (10, "unlikely"),
    ])
    def test_projection_buckets(self, progress, expected):
        p = _predict(_goal(**{"Goal Type": "Flexibility", "Progress Percentage": progress}))
        assert p["likelihood"] == expected
        assert p["type"] == "Flexibility"


# ═══════════════════════════════════════════════════════════════════════
# BATCH
# ═══════════════════════════════════════════════════════════════════════

class TestPredictGoals:

    def test_failing_goal_is_isolated(self):
        from fittrack.goals import predict_goals
        goals = [
            _goal(id="ok-1", **{"Goal Type": "Flexibility", "Progress Percentage": 50}),
            _goal(id="broken", **{"Target Date": "2025-01-01"}),   # target before created
            _goal(id="ok-2", **{"Goal Type": "Body Weight"}),
        ]
        result = predict_goals(goals, _workouts([]), _weights([180, 179]), TODAY)
        by_id = {p["goal_id"]: p for p in result["predictions"]}

        assert by_id["broken"]["status"] == "error"
        assert by_id["broken"]["likelihood"] == "error"
        assert by_id["broken"]["insights"]
        assert by_id["ok-1"]["likelihood"] == "very_likely"
        assert by_id["ok-2"]["likelihood"] == "insufficient_data"

        summary = result["summary"]
        assert summary["total_goals"] == 3
        assert summary["predictions_generated"] == 2
        assert summary["errors"] == 1
        assert summary["likely_to_succeed"] == 1
        assert summary["insufficient_data"] == 1

    def test_raising_predictor_is_isolated(self, monkeypatch):
        from fittrack import goals as goals_mod

        def explode(goal, weights, timeline):
            raise ZeroDivisionError("bad data")

        monkeypatch.setattr(goals_mod, "predict_body_weight", explode)
        result = goals_mod.predict_goals(
            [_goal(id="bw"), _goal(id="gen", **{"Goal Type": "Flexibility"})],
            _workouts([]), _weights([]), TODAY,
        )
        statuses = {p["goal_id"]: p["status"] for p in result["predictions"]}
        assert statuses == {"bw": "error", "gen": "ok"}

    def test_empty(self):
        from fittrack.goals import predict_goals
        result = predict_goals([], _workouts([]), _weights([]), TODAY)
        assert result["predictions"] == []
        assert result["summary"]["total_goals"] == 0


# ═══════════════════════════════════════════════════════════════════════
# GOAL PROGRESS
# ═══════════════════════════════════════════════════════════════════════

class TestComputeGoalProgress:

    def _progress(self, goal, workouts=None, weights=None, today=TODAY):
        from fittrack.goals import compute_goal_progress
        from fittrack.records import normalize_goal
        return compute_goal_progress(
            normalize_goal(goal),
            workouts if workouts is not None else _workouts([]),
            weights if weights is not None else _weights([]),
            today,
        )

    def test_body_weight_uses_latest_weigh_in(self):
        p = self._progress(_goal(**{"Target Value": 200}), weights=_weights([180, 182]))
        assert p["current_value"] == 182
        assert p["percentage"] == 10.0   # 2 of the 20 lbs from 180
        assert p["changed"] is True

    def test_cutting_goal_measured_from_start(self):
        weights = _weights([180, 179, 177.5])
        p = self._progress(_goal(**{"Target Value": 175}), weights=weights)
        assert p["percentage"] == 50.0

    def test_cutting_goal_moving_away_is_zero(self):
        weights = _weights([180, 181, 182])
        p = self._progress(_goal(**{"Target Value": 175}), weights=weights)
        assert p["percentage"] == 0.0

    def test_start_is_last_weigh_in_before_creation(self):
        from fittrack.goals import starting_weight
        weights = _weights([190, 185, 180], start="2026-02-27")
        assert starting_weight(weights, pd.Timestamp("2026-02-28")) == 185
        assert starting_weight(weights, pd.Timestamp("2026-02-01")) == 190

    def test_exercise_pr_uses_best_lift(self):
        goal = _goal(**{"Goal Type": "Exercise PR", "Target Value": 200, "Exercise Name": "bench press"})
        workouts = _workouts([{"date": "2026-03-02", "weight": 150}, {"date": "2026-03-05", "weight": 140}])
        assert self._progress(goal, workouts=workouts)["current_value"] == 150

    def test_frequency_counts_this_week_from_sunday(self):
        # 2026-04-01 is a Wednesday; week started Sunday 2026-03-29
        goal = _goal(**{"Goal Type": "Frequency", "Target Value": 4})
        workouts = _workouts([
            {"date": "2026-03-28"}, {"date": "2026-03-29"}, {"date": "2026-03-31"},
        ])
        p = self._progress(goal, workouts=workouts)
        assert p["current_value"] == 2
        assert p["percentage"] == 50.0

    def test_volume_this_week(self):
        goal = _goal(**{"Goal Type": "Volume", "Target Value": 1000})
        workouts = _workouts([{"date": "2026-03-30"}])
        p = self._progress(goal, workouts=workouts)
        assert p["current_value"] == 1500
        assert p["percentage"] == 100.0
