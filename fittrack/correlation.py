"""
FitTrack Analytics — Body weight vs. training performance

Weight log and daily training volume are sampled independently; each
weigh-in is paired with the first training day less than 24h away and the
pairs are fed to a Pearson correlation with narrative insights.
"""
import pandas as pd

from fittrack.records import iso_day
from fittrack.stats import add_moving_averages, pearson_correlation

ALIGN_TOLERANCE = pd.Timedelta(hours=24)
MIN_INSIGHT_POINTS = 5


def daily_volume(workouts: pd.DataFrame) -> pd.DataFrame:
    """Total volume per training day, oldest first."""
    if workouts.empty:
        return pd.DataFrame(columns=["date", "volume"])
    return (
        workouts.groupby("date")["volume"].sum()
        .reset_index()
        .sort_values("date")
        .reset_index(drop=True)
    )


def align_by_date(weights: pd.DataFrame, volumes: pd.DataFrame) -> pd.DataFrame:
    """
    Pair each weigh-in with the first volume point strictly less than 24h
    away. Weigh-ins without a match, or whose match has no volume
    (bodyweight-only days), are dropped.
    """
    if weights.empty or volumes.empty:
        return pd.DataFrame(columns=["date", "weight", "volume"])

    volume_dates = volumes["date"].tolist()
    volume_values = volumes["volume"].tolist()
    rows = []
    for date, weight in zip(weights["date"], weights["weight"]):
        for v_date, v_value in zip(volume_dates, volume_values):
            if abs(v_date - date) < ALIGN_TOLERANCE:
                if weight > 0 and v_value > 0:
                    rows.append({"date": date, "weight": weight, "volume": v_value})
                break
    return pd.DataFrame(rows, columns=["date", "weight", "volume"])


def weight_volume_correlation(weights: pd.DataFrame, volumes: pd.DataFrame) -> dict:
    """CorrelationResult for aligned (weight, volume) pairs, plus the pairs themselves."""
    if weights.empty or volumes.empty:
        return {"coefficient": 0.0, "strength": "no_data", "data_points": 0, "aligned": []}

    aligned = align_by_date(weights, volumes)
    result = pearson_correlation(aligned["weight"], aligned["volume"])
    if len(aligned) == 0:
        result = {"coefficient": 0.0, "strength": "insufficient_data", "data_points": 0}
    result["aligned"] = [
        {"date": iso_day(r.date), "weight": float(r.weight), "volume": float(r.volume)}
        for r in aligned.itertuples(index=False)
    ]
    return result


def correlation_insights(result: dict) -> list[dict]:
    r = result["coefficient"]
    if result["data_points"] < MIN_INSIGHT_POINTS:
        return [{
            "type": "warning",
            "title": "Insufficient Data for Correlation",
            "message": f"Only {result['data_points']} matching data points. "
                       "Need more consistent logging for meaningful analysis.",
            "priority": "medium",
        }]

    if result["strength"] in ("strong", "very_strong"):
        if r > 0:
            return [{
                "type": "success",
                "title": "Positive Weight-Performance Correlation",
                "message": f"Strong positive correlation ({r}) suggests muscle gain "
                           "as training volume increases with body weight.",
                "priority": "high",
            }]
        return [{
            "type": "info",
            "title": "Inverse Weight-Performance Relationship",
            "message": f"Strong negative correlation ({r}) indicates improved performance "
                       "as weight decreases, suggesting effective cutting phase.",
            "priority": "high",
        }]
    if result["strength"] == "moderate":
        return [{
            "type": "info",
            "title": "Moderate Correlation Detected",
            "message": f"Moderate correlation ({r}) between weight and performance. "
                       "Monitor trends over time.",
            "priority": "medium",
        }]
    return [{
        "type": "neutral",
        "title": "Weight and Performance Independent",
        "message": "No strong correlation between body weight and training performance detected.",
        "priority": "low",
    }]


def weight_performance_report(weights: pd.DataFrame, workouts: pd.DataFrame) -> dict:
    """Weight log with moving averages, daily volume, correlation and insights."""
    smoothed = add_moving_averages(weights)
    volumes = daily_volume(workouts)
    correlation = weight_volume_correlation(smoothed, volumes)
    aligned = correlation.pop("aligned")

    weight_log = [
        {"date": iso_day(r["date"]), "weight": float(r["weight"]),
         "ma7": float(r["ma7"]), "ma30": float(r["ma30"])}
        for r in smoothed.to_dict("records")
    ] if not smoothed.empty else []
    performance = [
        {"date": iso_day(d), "volume": float(v)}
        for d, v in zip(volumes["date"], volumes["volume"])
    ]

    return {
        "weight_data": weight_log,
        "performance_data": performance,
        "correlation": correlation,
        "aligned": aligned,
        "insights": correlation_insights(correlation),
        "summary": {
            "weight_data_points": len(weight_log),
            "performance_data_points": len(performance),
            "aligned_data_points": len(aligned),
            "date_range": {
                "start": weight_log[0]["date"] if weight_log else None,
                "end": weight_log[-1]["date"] if weight_log else None,
            },
        },
    }
