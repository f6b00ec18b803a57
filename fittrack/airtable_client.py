"""
FitTrack Analytics — Airtable API Client
Reads workouts, weigh-ins and goals; writes back goal progress.
"""
import time
import requests
from fittrack.config import (
    AIRTABLE_TOKEN, AIRTABLE_BASE_ID, WORKOUTS_TABLE, WEIGHTS_TABLE, GOALS_TABLE,
)

BASE_URL = "https://api.airtable.com/v0"

# Airtable allows 5 requests/s per base
RATE_LIMIT_DELAY = 0.25  # seconds between requests
MAX_RETRIES = 3
RETRY_BACKOFF = 2  # exponential backoff multiplier
PAGE_SIZE = 100


def _headers() -> dict:
    return {
        "Authorization": f"Bearer {AIRTABLE_TOKEN}",
        "Content-Type": "application/json",
    }


def _request(method: str, path: str, params: dict = None, body: dict = None) -> dict:
    """Request against the Airtable base with retry and rate limiting."""
    if not AIRTABLE_TOKEN or not AIRTABLE_BASE_ID:
        raise RuntimeError(
            "Missing Airtable credentials: set AIRTABLE_PERSONAL_ACCESS_TOKEN and AIRTABLE_BASE_ID"
        )
    time.sleep(RATE_LIMIT_DELAY)
    url = f"{BASE_URL}/{AIRTABLE_BASE_ID}/{path}"
    for attempt in range(1, MAX_RETRIES + 1):
        try:
            r = requests.request(
                method, url, headers=_headers(),
                params=params or {}, json=body, timeout=15,
            )
            if r.status_code == 429:
                wait = RETRY_BACKOFF ** attempt
                print(f"  ⏳ Airtable rate limit, retrying in {wait}s (attempt {attempt}/{MAX_RETRIES})")
                time.sleep(wait)
                continue
            r.raise_for_status()
            return r.json()
        except requests.exceptions.Timeout:
            if attempt < MAX_RETRIES:
                print(f"  ⏳ Airtable timeout, retrying (attempt {attempt}/{MAX_RETRIES})")
                time.sleep(RETRY_BACKOFF ** attempt)
            else:
                raise
        except requests.exceptions.HTTPError:
            if attempt < MAX_RETRIES and r.status_code >= 500:
                print(f"  ⏳ Airtable {r.status_code}, retrying (attempt {attempt}/{MAX_RETRIES})")
                time.sleep(RETRY_BACKOFF ** attempt)
            else:
                raise
    raise requests.exceptions.RetryError(f"Airtable API failed after {MAX_RETRIES} attempts")


def escape_formula_value(value) -> str:
    """Quote-escape a value for use inside a single-quoted formula string."""
    return str(value).replace("\\", "\\\\").replace("'", "\\'")


def list_records(table: str, formula: str = None, sort_field: str = None,
                 direction: str = "asc", max_records: int = None) -> list[dict]:
    """
    All records of a table, following `offset` pagination.
    Each record is flattened to {"id": ..., **fields}.
    """
    params = {"pageSize": PAGE_SIZE}
    if formula:
        params["filterByFormula"] = formula
    if sort_field:
        params["sort[0][field]"] = sort_field
        params["sort[0][direction]"] = direction
    if max_records:
        params["maxRecords"] = max_records

    records = []
    while True:
        data = _request("GET", table, params=params)
        for rec in data.get("records", []):
            records.append({"id": rec["id"], **rec.get("fields", {})})
        offset = data.get("offset")
        if not offset or (max_records and len(records) >= max_records):
            break
        params["offset"] = offset
    return records[:max_records] if max_records else records


def _and(*clauses: str) -> str:
    clauses = [c for c in clauses if c]
    return clauses[0] if len(clauses) == 1 else f"AND({', '.join(clauses)})"


def _user_clause(user_id: str) -> str:
    return f"{{User ID}} = '{escape_formula_value(user_id)}'"


def _since_clause(since) -> str | None:
    if since is None:
        return None
    day = since.strftime("%Y-%m-%d") if hasattr(since, "strftime") else str(since)
    return f"IS_SAME_OR_AFTER({{Date}}, '{escape_formula_value(day)}')"


# ═══════════════════════════════════════════════════════════════════════
# COLLABORATOR CONTRACT
# ═══════════════════════════════════════════════════════════════════════

def fetch_workouts(user_id: str, exercise: str = None, since=None, max_records: int = None) -> list[dict]:
    """Raw workout records for a user, oldest first."""
    exercise_clause = f"{{Exercise}} = '{escape_formula_value(exercise)}'" if exercise else None
    formula = _and(_user_clause(user_id), exercise_clause, _since_clause(since))
    return list_records(WORKOUTS_TABLE, formula, sort_field="Date", max_records=max_records)


def fetch_weights(user_id: str, since=None, max_records: int = None) -> list[dict]:
    """Raw body-weight records for a user, oldest first."""
    formula = _and(_user_clause(user_id), _since_clause(since))
    return list_records(WEIGHTS_TABLE, formula, sort_field="Date", max_records=max_records)


def fetch_goals(user_id: str, status: str = "Active") -> list[dict]:
    """Raw goal records with the given status, nearest target date first."""
    status_clause = f"{{Status}} = '{escape_formula_value(status)}'" if status else None
    formula = _and(_user_clause(user_id), status_clause)
    return list_records(GOALS_TABLE, formula, sort_field="Target Date")


def persist_goal_progress(goal_id: str, new_current_value: float) -> dict:
    """
    Write a goal's new current value. Only `Current Value` is written:
    progress percentage and days remaining are formula fields in the base.
    """
    return _request(
        "PATCH", f"{GOALS_TABLE}/{goal_id}",
        body={"fields": {"Current Value": new_current_value}},
    )
