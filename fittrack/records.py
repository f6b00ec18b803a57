"""
FitTrack Analytics — Record boundary

Raw records from the record store (or any caller) are validated and coerced
here, once. Everything downstream works on the strict DataFrames / dicts
built by this module and never re-checks types.
"""
import math

import pandas as pd

from fittrack.config import FIELD_ALIASES, GOAL_TYPE_ALIASES

WORKOUT_COLUMNS = [
    "record_id", "date", "exercise", "sets", "reps", "weight",
    "volume", "intensity", "e1rm", "workload",
]
WEIGHT_COLUMNS = ["date", "weight"]


class InvalidRecordError(ValueError):
    """A record that cannot be coerced into the engine's schema."""


def field_value(record: dict, name: str, default=None):
    for key in FIELD_ALIASES.get(name, [name]):
        if key in record and record[key] is not None:
            return record[key]
    return default


def _to_number(value) -> float | None:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def parse_day(value) -> pd.Timestamp | None:
    """Parse any date-like value to a tz-naive midnight Timestamp, or None."""
    if value is None or value == "":
        return None
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError):
        return None
    if pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert(None)
    return ts.normalize()


def estimated_one_rep_max(weight: float, reps: int) -> float:
    """Brzycki estimate: weight / (1.0278 - 0.0278 * reps).

    A single rep is its own max. Above 36 reps the formula's denominator
    goes non-positive, so the lifted weight is returned unchanged.
    """
    if reps <= 1 or reps >= 37:
        return round(float(weight), 1)
    return round(weight / (1.0278 - 0.0278 * reps), 1)


def workouts_to_dataframe(records: list[dict]) -> pd.DataFrame:
    """
    Convert raw workout records to the engine's workout DataFrame.
    One row per logged exercise entry, sorted by date.

    Rows with an unparseable date, a blank exercise, non-positive sets/reps
    or a negative / non-finite weight are dropped.
    """
    rows = []
    for position, rec in enumerate(records or []):
        date = parse_day(field_value(rec, "date"))
        exercise = str(field_value(rec, "exercise", "") or "").strip()
        sets = _to_number(field_value(rec, "sets"))
        reps = _to_number(field_value(rec, "reps"))
        weight = _to_number(field_value(rec, "weight", 0))
        if date is None or not exercise:
            continue
        if sets is None or reps is None or weight is None:
            continue
        sets, reps = int(sets), int(reps)
        if sets <= 0 or reps <= 0 or weight < 0:
            continue

        record_id = field_value(rec, "id")
        rows.append({
            "record_id": str(record_id) if record_id is not None else f"{position:08d}",
            "date": date,
            "exercise": exercise,
            "sets": sets,
            "reps": reps,
            "weight": weight,
            "volume": sets * reps * weight,
            "intensity": weight,
            "e1rm": estimated_one_rep_max(weight, reps),
            "workload": sets * reps,
        })

    df = pd.DataFrame(rows, columns=WORKOUT_COLUMNS)
    if not df.empty:
        df = df.sort_values(["date", "record_id"], kind="mergesort").reset_index(drop=True)
    return df


def weights_to_dataframe(records: list[dict]) -> pd.DataFrame:
    """Convert raw body-weight records to a (date, weight) DataFrame sorted by date."""
    rows = []
    for rec in records or []:
        date = parse_day(field_value(rec, "date"))
        weight = _to_number(field_value(rec, "weight"))
        if date is None or weight is None or weight <= 0:
            continue
        rows.append({"date": date, "weight": weight})

    df = pd.DataFrame(rows, columns=WEIGHT_COLUMNS)
    if not df.empty:
        df = df.sort_values("date", kind="mergesort").reset_index(drop=True)
    return df


def canonical_goal_type(label) -> str:
    """Map a goal-type label ("Body Weight", "ExercisePR", ...) to its canonical key."""
    raw = str(label or "").strip()
    return GOAL_TYPE_ALIASES.get(raw.lower(), raw)


def normalize_goal(record: dict) -> dict:
    """
    Validate a goal record and return the engine's goal dict.

    Raises InvalidRecordError for missing / inverted dates or a missing
    target value. Called per goal, so batch callers can isolate failures.
    """
    created = parse_day(field_value(record, "created_date"))
    target_date = parse_day(field_value(record, "target_date"))
    if created is None or target_date is None:
        raise InvalidRecordError(f"Goal {field_value(record, 'id')!r} has no valid created/target date")
    if target_date < created:
        raise InvalidRecordError(
            f"Goal {field_value(record, 'id')!r} target date {target_date.date()} "
            f"is before its created date {created.date()}"
        )

    target_value = _to_number(field_value(record, "target_value"))
    if target_value is None:
        raise InvalidRecordError(f"Goal {field_value(record, 'id')!r} has no numeric target value")

    current_value = _to_number(field_value(record, "current_value", 0)) or 0.0
    progress = _to_number(field_value(record, "progress_percentage"))
    if progress is None:
        progress = min(current_value / target_value * 100, 100.0) if target_value else 0.0

    exercise_name = field_value(record, "exercise_name")
    return {
        "id": field_value(record, "id"),
        "title": field_value(record, "title", ""),
        "type": canonical_goal_type(field_value(record, "type")),
        "target_value": target_value,
        "current_value": current_value,
        "progress_percentage": progress,
        "created_date": created,
        "target_date": target_date,
        "exercise_name": str(exercise_name).strip() if exercise_name else None,
    }


def iso_day(value) -> str | None:
    """Timestamp → 'YYYY-MM-DD' for JSON-friendly results."""
    if value is None or pd.isna(value):
        return None
    return pd.Timestamp(value).strftime("%Y-%m-%d")
