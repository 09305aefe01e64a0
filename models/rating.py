"""
Route safety rating database model.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Float, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from models.base import SCHEMA, Base


class Rating(Base):
    """A user's 1-5 safety rating of a location along a route."""

    __tablename__ = "ratings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lng: Mapped[float] = mapped_column(Float, nullable=False)

    safety_score: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)

    # Derived from the server clock when the rating is created
    time_of_day: Mapped[str] = mapped_column(String(10), nullable=False)
    day_of_week: Mapped[str] = mapped_column(String(10), nullable=False)

    route_type: Mapped[str] = mapped_column(String(20), nullable=False, default="walking")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )

    __table_args__ = (
        CheckConstraint("safety_score BETWEEN 1 AND 5", name="chk_ratings_safety_score"),
        CheckConstraint(
            "time_of_day IN ('morning', 'afternoon', 'evening', 'night')",
            name="chk_ratings_time_of_day",
        ),
        CheckConstraint(
            "route_type IN ('walking', 'driving', 'cycling', 'public_transport')",
            name="chk_ratings_route_type",
        ),
        Index("idx_ratings_lat_lng", "lat", "lng"),
        Index("idx_ratings_created_at", "created_at"),
        {"schema": SCHEMA},
    )
