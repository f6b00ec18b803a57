"""
FitTrack Analytics — Time-series statistics

Numeric primitives shared by every analyser:
- Linear trend (OLS slope, R² confidence, direction)
- Moving averages with partial leading windows
- Population variance
- Pearson correlation with strength buckets
- Weekly aggregation (weeks start on Sunday)

All functions are pure: inputs are never mutated and non-finite values are
dropped before any arithmetic.
"""
import numpy as np
import pandas as pd

from fittrack.config import TREND_SLOPE_THRESHOLD


def _finite(values) -> np.ndarray:
    arr = np.asarray(values, dtype=float)
    return arr[np.isfinite(arr)]


# ═══════════════════════════════════════════════════════════════════════
# 1. TREND
# ═══════════════════════════════════════════════════════════════════════

def _trend(slope: float, direction: str, confidence: float) -> dict:
    return {
        "slope": round(float(slope), 4),
        "direction": direction,
        "confidence": round(float(confidence), 3),
        "change_rate": round(float(slope) * 100, 2),
    }


def linear_trend(values, positions=None, threshold: float = TREND_SLOPE_THRESHOLD) -> dict:
    """
    Ordinary least-squares fit of value against position.

    Positions default to the index (0, 1, 2, ...). Pass explicit positions
    (e.g. day offsets) to get a slope per unit of that axis.
    `confidence` is R²; a constant series has no explained variance, so it
    reports slope 0, `stable`, confidence 0.
    Fewer than 2 usable points → `insufficient_data`.
    """
    y = np.asarray(values, dtype=float)
    x = np.arange(len(y), dtype=float) if positions is None else np.asarray(positions, dtype=float)
    if len(x) != len(y):
        raise ValueError(f"positions ({len(x)}) and values ({len(y)}) differ in length")

    mask = np.isfinite(x) & np.isfinite(y)
    x, y = x[mask], y[mask]
    if len(y) < 2 or np.ptp(x) == 0:
        return _trend(0.0, "insufficient_data", 0.0)
    if np.ptp(y) == 0:
        return _trend(0.0, "stable", 0.0)

    slope, intercept = np.polyfit(x, y, 1)
    total = ((y - y.mean()) ** 2).sum()
    residual = ((y - (slope * x + intercept)) ** 2).sum()
    r_squared = min(1.0, max(0.0, 1 - residual / total))

    direction = "stable"
    if abs(slope) > threshold:
        direction = "increasing" if slope > 0 else "decreasing"
    return _trend(slope, direction, r_squared)


def weekly_rate(dates, values) -> float:
    """Regression slope of values against calendar days, scaled to a week."""
    dates = pd.to_datetime(pd.Series(dates)).reset_index(drop=True)
    if dates.empty:
        return 0.0
    days = (dates - dates.iloc[0]).dt.days.to_numpy(dtype=float)
    return linear_trend(values, positions=days)["slope"] * 7


# ═══════════════════════════════════════════════════════════════════════
# 2. SMOOTHING & DISPERSION
# ═══════════════════════════════════════════════════════════════════════

def moving_average(series, window_size: int) -> list[float]:
    """
    Trailing simple moving average.

    Element i is the mean of the last min(i + 1, window_size) points, so the
    first few entries average over a partial window rather than padding with
    zeros. Non-finite entries are skipped inside their windows.
    """
    if window_size < 1:
        raise ValueError(f"window_size must be >= 1, got {window_size}")
    values = pd.Series(np.asarray(series, dtype=float))
    values = values.where(np.isfinite(values))
    return values.rolling(window=window_size, min_periods=1).mean().tolist()


def add_moving_averages(weights: pd.DataFrame, windows: tuple = (7, 30)) -> pd.DataFrame:
    """Add `ma{n}` columns (trailing, partial windows allowed) to a weight log."""
    if weights.empty:
        return weights
    df = weights.sort_values("date", kind="mergesort").reset_index(drop=True)
    for window in windows:
        df[f"ma{window}"] = df["weight"].rolling(window=window, min_periods=1).mean().round(1)
    return df


def variance(values) -> float:
    """Population variance; 0 for an empty series."""
    arr = _finite(values)
    if arr.size == 0:
        return 0.0
    return float(np.var(arr))


# ═══════════════════════════════════════════════════════════════════════
# 3. CORRELATION
# ═══════════════════════════════════════════════════════════════════════

def correlation_strength(r: float) -> str:
    magnitude = abs(r)
    if magnitude < 0.1:
        return "negligible"
    if magnitude < 0.3:
        return "weak"
    if magnitude < 0.5:
        return "moderate"
    if magnitude < 0.7:
        return "strong"
    return "very_strong"


def pearson_correlation(xs, ys) -> dict:
    """
    Pearson's r between two equally long series.

    Empty input → `no_data`. Mismatched lengths or fewer than 3 finite pairs
    → `insufficient_data` with coefficient 0. A series with zero variance
    correlates at 0.
    """
    x = np.asarray(xs, dtype=float)
    y = np.asarray(ys, dtype=float)
    if x.size == 0 or y.size == 0:
        return {"coefficient": 0.0, "strength": "no_data", "data_points": 0}
    if x.size != y.size:
        return {"coefficient": 0.0, "strength": "insufficient_data", "data_points": int(min(x.size, y.size))}

    mask = np.isfinite(x) & np.isfinite(y)
    x, y = x[mask], y[mask]
    n = int(x.size)
    if n < 3:
        return {"coefficient": 0.0, "strength": "insufficient_data", "data_points": n}

    r = 0.0 if np.ptp(x) == 0 or np.ptp(y) == 0 else float(np.corrcoef(x, y)[0, 1])
    r = min(1.0, max(-1.0, r))
    return {"coefficient": round(r, 3), "strength": correlation_strength(r), "data_points": n}


# ═══════════════════════════════════════════════════════════════════════
# 4. WEEKLY AGGREGATION
# ═══════════════════════════════════════════════════════════════════════

def weekly_totals(df: pd.DataFrame, value_col: str = "volume") -> pd.DataFrame:
    """Sum `value_col` per week (Sunday start), oldest week first."""
    if df.empty:
        return pd.DataFrame(columns=["week_start", "total", "sessions"])
    data = df.copy()
    data["week_start"] = data["date"].dt.to_period("W-SAT").dt.start_time
    weekly = (
        data.groupby("week_start")
        .agg(total=(value_col, "sum"), sessions=("date", "nunique"))
        .reset_index()
        .sort_values("week_start")
        .reset_index(drop=True)
    )
    return weekly
