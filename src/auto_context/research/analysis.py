"""Analysis helpers — pandas-based utilities for exposure research workflows."""

from __future__ import annotations

from typing import Any, Iterable

import pandas as pd

from auto_context.models import ContextTick
from auto_context.streaming.trackers import TrackerRegistry

LABEL_COLUMNS = ["timestamp", "device_id", "label", "fork", "source", "pm25"]


def label_ticks(
    ticks: Iterable[ContextTick],
    *,
    registry: TrackerRegistry | None = None,
) -> pd.DataFrame:
    """Run every tick through its device's tracker and tabulate the labels.

    Ticks are processed in the given order, so pass each device's ticks
    chronologically.  Columns: :data:`LABEL_COLUMNS`.
    """
    registry = registry or TrackerRegistry()
    records = []
    for tick in ticks:
        decision = registry.process(tick)
        records.append(
            {
                "timestamp": tick.extras.timestamp,
                "device_id": tick.device_id,
                "label": decision.label,
                "fork": decision.fork.value,
                "source": decision.source.value,
                "pm25": tick.extras.pm25,
            }
        )
    return pd.DataFrame(records, columns=LABEL_COLUMNS)


def exposure_by_context(df: pd.DataFrame, default_interval: float = 1.0) -> pd.DataFrame:
    """Aggregate exposure per context label.

    Each tick counts for the time until the device's next tick; a device's
    last tick (or any tick without a usable timestamp) counts for
    ``default_interval`` seconds.  ``dose`` is the time-weighted PM2.5 sum in
    µg/m³·min.

    Returns one row per label with ``ticks``, ``minutes``, ``mean_pm25``,
    ``max_pm25`` and ``dose``, sorted by descending minutes.
    """
    columns = ["ticks", "minutes", "mean_pm25", "max_pm25", "dose"]
    if df.empty:
        return pd.DataFrame(columns=columns).rename_axis("label")

    work = df.sort_values(["device_id", "timestamp"]).copy()
    gaps = work.groupby("device_id")["timestamp"].shift(-1) - work["timestamp"]
    work["minutes"] = gaps.where(gaps > 0).fillna(default_interval) / 60
    work["dose"] = work["pm25"] * work["minutes"]

    out = work.groupby("label").agg(
        ticks=("label", "size"),
        minutes=("minutes", "sum"),
        mean_pm25=("pm25", "mean"),
        max_pm25=("pm25", "max"),
        dose=("dose", "sum"),
    )
    return out.round(3).sort_values("minutes", ascending=False)


def compute_summary(df: pd.DataFrame) -> dict[str, Any]:
    """Return summary statistics for a labelled tick DataFrame."""
    if df.empty:
        return {"count": 0}

    return {
        "count": int(len(df)),
        "devices": int(df["device_id"].nunique()),
        "labels": df["label"].value_counts().to_dict(),
        "sources": df["source"].value_counts().to_dict(),
        "mean_pm25": round(float(df["pm25"].mean()), 2) if df["pm25"].notna().any() else None,
    }
