"""
FitTrack Analytics — Configuration

Secrets and tunables come from the environment with sane defaults.
Exercise categories, goal-type labels and record field names are plain
data tables so rules can be tested and extended without touching the engine.
"""
import os

# ── API Keys ─────────────────────────────────────────────────────────
AIRTABLE_TOKEN = os.environ.get(
    "AIRTABLE_PERSONAL_ACCESS_TOKEN", os.environ.get("AIRTABLE_API_KEY", "")
)
AIRTABLE_BASE_ID = os.environ.get("AIRTABLE_BASE_ID", "")

# ── Airtable tables ──────────────────────────────────────────────────
WORKOUTS_TABLE = os.environ.get("FITTRACK_WORKOUTS_TABLE", "Workouts")
WEIGHTS_TABLE = os.environ.get("FITTRACK_WEIGHTS_TABLE", "BodyWeight")
GOALS_TABLE = os.environ.get("FITTRACK_GOALS_TABLE", "Goals")

DEFAULT_USER_ID = os.environ.get("FITTRACK_USER_ID", "default-user")
WEIGHT_UNIT = os.environ.get("FITTRACK_WEIGHT_UNIT", "lbs")

# ── Trend & plateau thresholds ───────────────────────────────────────
TREND_SLOPE_THRESHOLD = 0.1      # |slope| above this is a real change
STICKING_POINT_THRESHOLD = 0.05  # 5% intensity variation
PLATEAU_THRESHOLD = 0.03         # 3% session-to-session volume variation
PLATEAU_VARIATION_DAYS = 14      # active plateau this long → change program
TECHNIQUE_STICKING_POINTS = 2    # more than this → technique focus

# ── Progression ──────────────────────────────────────────────────────
# Weekly increment rule. Older call sites used 2.5; 5 is the current rule.
WEEKLY_INCREMENT = float(os.environ.get("FITTRACK_WEEKLY_INCREMENT", "5"))
DELOAD_FACTOR = float(os.environ.get("FITTRACK_DELOAD_FACTOR", "0.75"))

DOUBLE_PROGRESSION = {
    "success_window": 6,         # sessions used for the rolling success rate
    "rep_increment": 1,
    "max_sets": 5,
    "deload_factor": 0.90,
    "deload_slope": -0.10,       # normalised weekly volume slope
    "trend_threshold": 0.02,     # normalised weekly volume slope
    "trend_confidence": 0.7,
    "weight_rounding": 0.25,
}

# ═════════════════════════════════════════════════════════════════════
# EXERCISE CATEGORIES — ordered, first keyword match wins
#
# Matching is a case-insensitive substring test on the exercise name.
# Anything unmatched gets GENERIC_CATEGORY.
# ═════════════════════════════════════════════════════════════════════

EXERCISE_CATEGORIES = [
    {
        "name": "bodyweight",
        "keywords": ["pull-up", "pullup", "push-up", "pushup", "chin-up", "chinup", "dip"],
        "starter": {"sets": 3, "reps": 8, "weight": 0},
        "starter_note": "Bodyweight only - build clean reps before adding load",
        "rep_range": (8, 15),
        "weight_increment": 0.0,
        "base_pct_increase": 0.05,
    },
    {
        "name": "deadlift",
        "keywords": ["deadlift"],
        "starter": {"sets": 3, "reps": 5, "weight": 95},
        "starter_note": "Starting with 95lbs (bar + 25lb plates) for proper bar height",
        "rep_range": (5, 8),
        "weight_increment": 5.0,
        "base_pct_increase": 0.025,
    },
    {
        "name": "compound",
        "keywords": ["squat", "bench", "press", "row"],
        "starter": {"sets": 3, "reps": 8, "weight": 45},
        "starter_note": "Starting with the empty Olympic barbell (45lbs) - master the movement pattern",
        "rep_range": (6, 10),
        "weight_increment": 2.5,
        "base_pct_increase": 0.025,
    },
    {
        "name": "isolation",
        "keywords": ["curl", "extension", "fly", "raise", "lateral", "tricep", "bicep"],
        "starter": {"sets": 3, "reps": 12, "weight": 10},
        "starter_note": "Light isolation start - control the eccentric",
        "rep_range": (10, 15),
        "weight_increment": 1.25,
        "base_pct_increase": 0.02,
    },
]

GENERIC_CATEGORY = {
    "name": "general",
    "keywords": [],
    "starter": {"sets": 3, "reps": 10, "weight": 10},
    "starter_note": "Conservative starting point - adjust based on your strength level",
    "rep_range": (8, 12),
    "weight_increment": 2.5,
    "base_pct_increase": 0.025,
}

MAJOR_LIFTS = {"squat", "bench press", "deadlift", "overhead press", "bent over row"}

# ── Goals ────────────────────────────────────────────────────────────
GOAL_TYPE_ALIASES = {
    "body weight": "body_weight",
    "bodyweight": "body_weight",
    "body_weight": "body_weight",
    "exercise pr": "exercise_pr",
    "exercisepr": "exercise_pr",
    "exercise_pr": "exercise_pr",
    "frequency": "frequency",
    "volume": "volume",
}

SESSIONS_PER_WEEK = 2.5      # assumed cadence when converting per-session gains
TRAILING_WEEKS = 4           # window for current frequency / volume
BODYWEIGHT_TREND_POINTS = 14
PR_HISTORY_SESSIONS = 10
PR_RATE_SESSIONS = 5

# ── Personal records ─────────────────────────────────────────────────
PR_LOOKBACK_DAYS = 7         # window checked for new PRs
STALE_PR_DAYS = 60           # no PR for longer than this → stagnation warning

# Absolute weight standards (lbs); unlisted exercises use the bench press row
STRENGTH_STANDARDS = {
    "squat": {"beginner": 135, "intermediate": 225, "advanced": 315, "elite": 405},
    "bench press": {"beginner": 95, "intermediate": 135, "advanced": 225, "elite": 315},
    "deadlift": {"beginner": 155, "intermediate": 275, "advanced": 405, "elite": 500},
    "overhead press": {"beginner": 65, "intermediate": 95, "advanced": 135, "elite": 185},
}
DEFAULT_STRENGTH_STANDARD = "bench press"

# ── Record field names ───────────────────────────────────────────────
# Airtable returns display names; local callers use snake_case.
FIELD_ALIASES = {
    "id": ["id", "record_id"],
    "date": ["date", "Date"],
    "exercise": ["exercise", "Exercise"],
    "sets": ["sets", "Sets"],
    "reps": ["reps", "Reps"],
    "weight": ["weight", "Weight"],
    "title": ["title", "Goal Title"],
    "type": ["type", "Goal Type"],
    "target_value": ["target_value", "targetValue", "Target Value"],
    "current_value": ["current_value", "currentValue", "Current Value"],
    "progress_percentage": ["progress_percentage", "Progress Percentage"],
    "created_date": ["created_date", "createdDate", "Created Date"],
    "target_date": ["target_date", "targetDate", "Target Date"],
    "exercise_name": ["exercise_name", "exerciseName", "Exercise Name"],
}
