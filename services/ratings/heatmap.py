"""
Heatmap aggregation of safety ratings.

Ratings are snapped to a fixed-resolution grid (0.001 degrees is roughly
100 m) and each occupied cell reports its mean score and a 0..1 intensity.
Callers pass ratings that are already restricted to the last 90 days.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from common.constants import HEATMAP_GRID_RESOLUTION_DEG
from libs.geo import round_half_up
from services.ratings.types import Rating

# Grid coordinates are rounded to this many decimals to drop float noise
GRID_DECIMALS = 6


@dataclass
class HeatmapCell:
    grid_lat: float
    grid_lng: float
    scores: List[int] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.scores)

    @property
    def average_score(self) -> float:
        return sum(self.scores) / len(self.scores)

    def summary(self) -> dict:
        average = self.average_score
        return {
            "lat": self.grid_lat,
            "lng": self.grid_lng,
            "intensity": average / 5,
            "average_score": average,
            "rating_count": self.count,
        }


def snap_to_grid(value: float, resolution: float) -> float:
    return round(round_half_up(value / resolution) * resolution, GRID_DECIMALS)


def build_heatmap(
    ratings: Sequence[Rating], resolution: float = HEATMAP_GRID_RESOLUTION_DEG
) -> List[dict]:
    """
    Group ratings into grid cells.

    Args:
        ratings: Ratings inside the requested area
        resolution: Grid cell size in degrees

    Returns:
        One summary dict per occupied cell: lat, lng, intensity,
        average_score and rating_count. Order is not significant.
    """
    cells: Dict[Tuple[float, float], HeatmapCell] = {}
    for rating in ratings:
        key = (snap_to_grid(rating.lat, resolution), snap_to_grid(rating.lng, resolution))
        cell = cells.get(key)
        if cell is None:
            cell = cells[key] = HeatmapCell(grid_lat=key[0], grid_lng=key[1])
        cell.scores.append(rating.safety_score)
    return [cell.summary() for cell in cells.values()]


def location_summary(ratings: Sequence[Rating]) -> dict:
    """Mean score of the ratings around a location, rounded to one decimal."""
    if not ratings:
        return {"average_score": 0, "total_ratings": 0}
    average = sum(r.safety_score for r in ratings) / len(ratings)
    return {"average_score": round(average, 1), "total_ratings": len(ratings)}
