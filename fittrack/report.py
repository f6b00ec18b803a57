"""
FitTrack Analytics — Report Orchestrator
Run manually or on a schedule: python -m fittrack.report [--dry-run] [--user=ID]
"""
import json
import sys
from datetime import datetime

import pandas as pd

from fittrack.airtable_client import fetch_goals, fetch_weights, fetch_workouts, persist_goal_progress
from fittrack.alerts import trend_alerts
from fittrack.config import DEFAULT_USER_ID, WEIGHT_UNIT
from fittrack.correlation import weight_performance_report
from fittrack.goals import compute_goal_progress, predict_goals
from fittrack.plateaus import progressive_overload_report
from fittrack.progression import format_suggestion, suggest_next_workout
from fittrack.prs import pr_report
from fittrack.records import InvalidRecordError, normalize_goal, weights_to_dataframe, workouts_to_dataframe

SUGGESTION_LOOKBACK_DAYS = 30


def _stage(name: str, errors: dict, fn, *args, **kwargs):
    """Run one analysis stage; a failure is recorded and the next stage still runs."""
    try:
        return fn(*args, **kwargs)
    except Exception as e:
        errors[name] = str(e)
        print(f"   ❌ {name} FAILED: {e}")
        return None


def update_goal_progress(goals: list[dict], workouts: pd.DataFrame, weights: pd.DataFrame,
                         today, dry_run: bool = False) -> list[dict]:
    """
    Recompute each goal's current value; persist the ones that changed.
    A goal that fails is reported with status "error" and left untouched;
    the rest of the batch still runs.
    """
    updates = []
    for goal in goals:
        try:
            progress = compute_goal_progress(goal, workouts, weights, today)
            persisted = progress["changed"] and not dry_run
            if persisted:
                persist_goal_progress(goal["id"], progress["current_value"])
        except Exception as e:
            updates.append({"goal_id": goal["id"], "status": "error", "error": str(e)})
            print(f"   ❌ {goal['title']}: {e}")
            continue

        goal["current_value"] = progress["current_value"]
        goal["progress_percentage"] = progress["percentage"]
        progress["persisted"] = persisted
        progress["status"] = "ok"
        updates.append(progress)
        mark = "✏️" if progress["changed"] else "·"
        print(f"   {mark} {goal['title']}: {progress['current_value']:g} ({progress['percentage']:.0f}%)")
    return updates


def next_workouts(workouts: pd.DataFrame, today, strategy=None) -> list[dict]:
    """Suggestions for every exercise trained in the last 30 days."""
    if workouts.empty:
        return []
    recent = workouts[workouts["date"] > today - pd.Timedelta(days=SUGGESTION_LOOKBACK_DAYS)]
    suggestions = []
    for exercise in sorted(recent["exercise"].unique()):
        suggestion = suggest_next_workout(workouts, exercise, strategy)
        suggestion["display"] = format_suggestion(suggestion)
        suggestions.append(suggestion)
    return suggestions


def run_report(user_id: str = DEFAULT_USER_ID, today=None, dry_run: bool = False,
               strategy: str = None) -> dict:
    """
    Full pipeline:
    1. Fetch workouts, weigh-ins and active goals from Airtable
    2. Validate into DataFrames / goal dicts
    3. Recompute goal progress and write it back (unless dry run)
    4. Predictions, overload report, personal records, correlation, alerts,
       next-session suggestions
    """
    today = pd.Timestamp(today or datetime.now()).normalize()
    print("🔄 FitTrack Report — Starting...")
    print(f"   user={user_id} today={today.date()}")

    print("\n📥 Fetching records from Airtable...")
    raw_workouts = fetch_workouts(user_id)
    raw_weights = fetch_weights(user_id)
    raw_goals = fetch_goals(user_id)
    workouts = workouts_to_dataframe(raw_workouts)
    weights = weights_to_dataframe(raw_weights)
    print(f"   {len(workouts)} workout entries ({len(raw_workouts) - len(workouts)} dropped)")
    print(f"   {len(weights)} weigh-ins ({len(raw_weights) - len(weights)} dropped)")

    goals, goal_inputs = [], []
    for record in raw_goals:
        try:
            goal = normalize_goal(record)
        except InvalidRecordError as e:
            print(f"   ⚠️  Skipping goal progress for {record.get('id')}: {e}")
            goal_inputs.append(record)
            continue
        goals.append(goal)
        goal_inputs.append(goal)
    print(f"   {len(raw_goals)} active goals ({len(goals)} valid)")

    errors = {}
    result = {"user_id": user_id, "today": today.strftime("%Y-%m-%d"), "errors": errors}

    print("\n🎯 Updating goal progress...")
    if dry_run:
        print("   🏃 DRY RUN — skipping Airtable write")
    result["goal_progress"] = _stage("goal progress", errors, update_goal_progress,
                                     goals, workouts, weights, today, dry_run)
    failed = [u for u in result["goal_progress"] or [] if u["status"] == "error"]
    if failed:
        ids = ", ".join(u["goal_id"] for u in failed)
        errors["goal progress"] = f"{len(failed)} goal(s) failed: {ids}"

    print("\n🔮 Predicting goals...")
    result["predictions"] = _stage("predictions", errors, predict_goals,
                                   goal_inputs, workouts, weights, today)
    if result["predictions"]:
        s = result["predictions"]["summary"]
        print(f"   {s['likely_to_succeed']} likely, {s['needs_attention']} need attention, "
              f"{s['insufficient_data']} without enough data, {s['errors']} errors")

    print("\n📈 Progressive overload...")
    result["overload"] = _stage("overload", errors, progressive_overload_report, workouts, today=today)
    if result["overload"] and result["overload"]["overall"]:
        overall = result["overload"]["overall"]
        print(f"   {overall['exercises_progressing']}/{overall['total_exercises']} exercises progressing")

    print("\n🏆 Personal records...")
    result["prs"] = _stage("personal records", errors, pr_report, workouts, today)
    if result["prs"]:
        for pr in result["prs"]["new_prs"]:
            gain = f" (+{pr['improvement']:g})" if pr["previous_pr"] is not None else ""
            print(f"   🎉 {pr['exercise']}: {pr['new_pr']:g}{WEIGHT_UNIT} x{pr['reps']}{gain}")
        print(f"   {result['prs']['summary']['total_prs']} PRs across "
              f"{result['prs']['summary']['total_exercises']} exercises")

    print("\n⚖️  Weight vs. performance...")
    result["correlation"] = _stage("correlation", errors, weight_performance_report, weights, workouts)
    if result["correlation"]:
        c = result["correlation"]["correlation"]
        print(f"   r={c['coefficient']} ({c['strength']}, {c['data_points']} pairs)")

    print("\n🚨 Trend alerts...")
    result["alerts"] = _stage("alerts", errors, trend_alerts, weights, workouts, goals, today)
    if result["alerts"]:
        for alert in result["alerts"]["alerts"]:
            icon = "🔴" if alert["priority"] == "high" else "🟡"
            print(f"   {icon} {alert['title']}")

    print("\n🏋️ Next workouts...")
    result["suggestions"] = _stage("suggestions", errors, next_workouts, workouts, today, strategy)
    for suggestion in result["suggestions"] or []:
        print(f"   {suggestion['display']['summary']} [{suggestion['status']}]")

    print(f"\n{'='*50}")
    print("📊 Summary:")
    print(f"   Workouts: {len(workouts)} | Weigh-ins: {len(weights)} | Goals: {len(goals)}")
    return result


if __name__ == "__main__":
    args = sys.argv[1:]
    dry = "--dry-run" in args
    user = next((a.split("=", 1)[1] for a in args if a.startswith("--user=")), DEFAULT_USER_ID)
    strategy = next((a.split("=", 1)[1] for a in args if a.startswith("--strategy=")), None)
    out = next((a.split("=", 1)[1] for a in args if a.startswith("--out=")), None)

    try:
        report = run_report(user_id=user, dry_run=dry, strategy=strategy)
    except Exception as e:
        print(f"\n❌ Report FAILED: {e}")
        sys.exit(1)

    if out:
        with open(out, "w") as f:
            json.dump(report, f, indent=2, default=str)
        print(f"💾 Report written → {out}")

    if report["errors"]:
        print("⚠️  Errors occurred:")
        for stage, message in report["errors"].items():
            print(f"  {stage}: {message}")
        sys.exit(1)
