"""Seasonality of monthly search volumes."""

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from seo_research.modules.analysis.scoring import relative_change


@dataclass
class SeasonalityReport:
    """Seasonality label, spread and direction for one keyword."""

    seasonality: str
    coefficient_of_variation: float
    peak_months: list[int] = field(default_factory=list)
    trend_direction: str = "stable"
    average_volume: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def ordered_monthly_volumes(monthly_searches: list[dict[str, Any]]) -> tuple[list[float], list[int]]:
    """Volumes and month numbers sorted oldest first.

    The provider lists ``monthly_searches`` newest first; entries without
    ``year``/``month`` keep their given order.
    """
    entries = [m for m in monthly_searches if isinstance(m, dict)]
    if entries and all("year" in m and "month" in m for m in entries):
        entries = sorted(entries, key=lambda m: (m["year"], m["month"]))
    volumes = [float(m.get("search_volume") or m.get("volume") or 0) for m in entries]
    months = [int(m.get("month") or index + 1) for index, m in enumerate(entries)]
    return volumes, months


def analyze_seasonality(
    volumes: list[float],
    months: Optional[list[int]] = None,
) -> SeasonalityReport:
    """Coefficient-of-variation seasonality over a run of monthly volumes.

    ``months`` labels each volume with its calendar month; without it the
    volumes are taken as January onward and peaks are reported as 1-based
    positions.
    """
    if not volumes:
        return SeasonalityReport(seasonality="low", coefficient_of_variation=0.0)
    if months is None or len(months) != len(volumes):
        months = list(range(1, len(volumes) + 1))

    mean = sum(volumes) / len(volumes)
    if mean == 0:
        return SeasonalityReport(seasonality="low", coefficient_of_variation=0.0)

    stddev = math.sqrt(sum((v - mean) ** 2 for v in volumes) / len(volumes))
    cv = stddev / mean
    if cv > 0.5:
        label = "high"
    elif cv > 0.25:
        label = "medium"
    else:
        label = "low"

    peaks = [month for month, volume in zip(months, volumes) if volume > mean * 1.2]

    change = relative_change(volumes[:3], volumes[-3:])
    if change > 0.1:
        direction = "increasing"
    elif change < -0.1:
        direction = "decreasing"
    else:
        direction = "stable"

    return SeasonalityReport(
        seasonality=label,
        coefficient_of_variation=round(cv, 4),
        peak_months=peaks,
        trend_direction=direction,
        average_volume=round(mean, 2),
    )
