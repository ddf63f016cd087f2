"""
Descriptive statistics over the canonical dataset.

District-level trends per year, year-over-year change of the performance
index, per-school rankings and simple correlation/regression between the
three metrics. Everything here reads canonical records only.
"""

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
import pandas as pd

from reportcard.schemas.canonical import NUMERIC_FIELDS
from reportcard.utils.logging import get_logger

log = get_logger(__name__)

SUMMARY_COLUMNS = [
    "year",
    "total_schools",
    "total_enrollment",
    "avg_enrollment",
    "avg_value_added",
    "avg_performance_index",
    "median_performance_index",
    "schools_with_enrollment",
    "schools_with_va",
    "schools_with_pi",
]


def summarize_by_year(
    records: pd.DataFrame, years: Sequence[str] | None = None
) -> pd.DataFrame:
    """
    District summary per school year.

    Means and medians skip nulls; a year without any value for a metric
    gets a null average rather than zero.

    Args:
        records: Canonical records.
        years: Years to report, in order. Defaults to the years present.

    Returns:
        DataFrame with SUMMARY_COLUMNS, one row per year.
    """
    if years is None:
        years = sorted(records["year"].dropna().unique())

    rows = []
    for year in years:
        subset = records[records["year"] == year]
        enrollment = subset["enrollment"]
        va = subset["value_added_composite"]
        pi = subset["performance_index_score"]
        rows.append(
            {
                "year": year,
                "total_schools": len(subset),
                "total_enrollment": float(enrollment.sum(min_count=0)),
                "avg_enrollment": round(enrollment.mean(), 1),
                "avg_value_added": round(va.mean(), 2),
                "avg_performance_index": round(pi.mean(), 1),
                "median_performance_index": round(pi.median(), 1),
                "schools_with_enrollment": int(enrollment.notna().sum()),
                "schools_with_va": int(va.notna().sum()),
                "schools_with_pi": int(pi.notna().sum()),
            }
        )

    summary = pd.DataFrame(rows, columns=SUMMARY_COLUMNS)
    log.debug("Summarized by year", years=list(years))
    return summary


def performance_trend(summary: pd.DataFrame) -> pd.DataFrame:
    """
    Year-over-year change of the average performance index.

    Years without an average are skipped; the first remaining year has
    null change.

    Args:
        summary: Output of summarize_by_year.

    Returns:
        DataFrame with year, avg_performance_index, pi_change and
        pi_change_percent.
    """
    has_pi = summary["avg_performance_index"].notna()
    trend = (
        summary.loc[has_pi, ["year", "avg_performance_index"]]
        .sort_values("year")
        .reset_index(drop=True)
    )
    previous = trend["avg_performance_index"].shift(1)
    trend["pi_change"] = (trend["avg_performance_index"] - previous).round(1)
    trend["pi_change_percent"] = (trend["pi_change"] / previous * 100).round(1)
    return trend


def correlation_matrix(records: pd.DataFrame, min_periods: int = 3) -> pd.DataFrame:
    """
    Pearson correlation of the three metrics.

    Each pair uses the records where both values are present.
    """
    return records[NUMERIC_FIELDS].corr(method="pearson", min_periods=min_periods)


@dataclass(frozen=True)
class LinearFit:
    """
    Least-squares line y = slope * x + intercept.

    Attributes:
        x: Predictor column.
        y: Response column.
        slope: Fitted slope.
        intercept: Fitted intercept.
        r: Pearson correlation of the pairs used.
        n: Number of complete pairs.
    """

    x: str
    y: str
    slope: float
    intercept: float
    r: float
    n: int

    def predict(self, values: float | np.ndarray) -> float | np.ndarray:
        return self.slope * values + self.intercept


def linear_fit(records: pd.DataFrame, x: str, y: str) -> LinearFit:
    """
    Fit a simple regression line between two metrics.

    Args:
        records: Canonical records.
        x: Predictor column.
        y: Response column.

    Returns:
        LinearFit over the records where both values are present.

    Raises:
        ValueError: If fewer than two complete pairs exist or x is constant.
    """
    for column in (x, y):
        if column not in NUMERIC_FIELDS:
            msg = f"Not a metric column: {column!r}; expected one of {NUMERIC_FIELDS}"
            raise ValueError(msg)

    pairs = records[[x, y]].dropna()
    if len(pairs) < 2:
        msg = f"Need at least two records with both {x} and {y}, got {len(pairs)}"
        raise ValueError(msg)

    xs = pairs[x].to_numpy(dtype="float64")
    ys = pairs[y].to_numpy(dtype="float64")
    if np.ptp(xs) == 0:
        msg = f"{x} is constant over the complete pairs; slope is undefined"
        raise ValueError(msg)

    slope, intercept = np.polyfit(xs, ys, deg=1)
    r = float(np.corrcoef(xs, ys)[0, 1]) if np.ptp(ys) > 0 else 0.0

    return LinearFit(
        x=x,
        y=y,
        slope=float(slope),
        intercept=float(intercept),
        r=r,
        n=len(pairs),
    )


def top_schools(
    records: pd.DataFrame,
    year: str,
    metric: str = "performance_index_score",
    n: int = 10,
    *,
    ascending: bool = False,
) -> pd.DataFrame:
    """
    Highest (or lowest) schools of one year by a metric.

    Ties keep the canonical order (school name, then id).
    """
    subset = records[(records["year"] == year) & records[metric].notna()]
    ranked = subset.sort_values(metric, ascending=ascending, kind="mergesort")
    return ranked.head(n).reset_index(drop=True)


def performance_change(
    records: pd.DataFrame,
    start_year: str,
    end_year: str,
    metric: str = "performance_index_score",
) -> pd.DataFrame:
    """
    Per-school change of a metric between two years.

    Only schools with a value in both years are listed, largest improvement
    first.

    Returns:
        DataFrame with school_id, school_name, start, end, change and
        change_percent.
    """

    def values_for(year: str) -> pd.DataFrame:
        subset = records.loc[
            (records["year"] == year) & records[metric].notna(),
            ["school_id", "school_name", metric],
        ]
        return subset.set_index("school_id")

    start = values_for(start_year)
    end = values_for(end_year)
    joined = start.join(end, how="inner", lsuffix="_start", rsuffix="_end")

    change = pd.DataFrame(
        {
            "school_id": joined.index,
            "school_name": joined["school_name_end"].fillna(joined["school_name_start"]),
            "start": joined[f"{metric}_start"],
            "end": joined[f"{metric}_end"],
        }
    ).reset_index(drop=True)
    change["change"] = (change["end"] - change["start"]).round(1)
    percent = change["change"] / change["start"] * 100
    change["change_percent"] = percent.replace([np.inf, -np.inf], np.nan).round(1)

    return change.sort_values(
        ["change", "school_id"], ascending=[False, True], kind="mergesort"
    ).reset_index(drop=True)
