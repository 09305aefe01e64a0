"""
Type definitions for the ratings service.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class TimeOfDay(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"


class RouteType(str, Enum):
    WALKING = "walking"
    DRIVING = "driving"
    CYCLING = "cycling"
    PUBLIC_TRANSPORT = "public_transport"


DAYS_OF_WEEK = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def time_of_day_for(moment: datetime) -> TimeOfDay:
    """Bucket a wall-clock hour: 6-11 morning, 12-16 afternoon, 17-20 evening, else night."""
    hour = moment.hour
    if 6 <= hour < 12:
        return TimeOfDay.MORNING
    if 12 <= hour < 17:
        return TimeOfDay.AFTERNOON
    if 17 <= hour < 21:
        return TimeOfDay.EVENING
    return TimeOfDay.NIGHT


def day_of_week_for(moment: datetime) -> str:
    return DAYS_OF_WEEK[moment.weekday()]


@dataclass
class Rating:
    id: str
    user_id: str
    lat: float
    lng: float
    safety_score: int
    time_of_day: str
    day_of_week: str
    route_type: str
    created_at: datetime
    comment: Optional[str] = None
