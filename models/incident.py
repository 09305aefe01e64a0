"""
Incident (crime report) database model.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from models.base import SCHEMA, Base


class Incident(Base):
    """Incident reported by a user or imported into the local store."""

    __tablename__ = "crimes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lng: Mapped[float] = mapped_column(Float, nullable=False)

    # Store enum values as strings
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    severity: Mapped[str] = mapped_column(String(10), nullable=False, default="medium")

    description: Mapped[str] = mapped_column(Text, nullable=False)

    reported_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    incident_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )

    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )

    __table_args__ = (
        CheckConstraint("lat BETWEEN -90 AND 90", name="chk_crimes_lat"),
        CheckConstraint("lng BETWEEN -180 AND 180", name="chk_crimes_lng"),
        CheckConstraint(
            "category IN ('theft', 'assault', 'robbery', 'harassment', "
            "'vandalism', 'burglary', 'violence', 'other')",
            name="chk_crimes_category",
        ),
        CheckConstraint(
            "severity IN ('low', 'medium', 'high', 'critical')",
            name="chk_crimes_severity",
        ),
        Index("idx_crimes_lat_lng", "lat", "lng"),
        Index("idx_crimes_category", "category"),
        Index("idx_crimes_incident_date", "incident_date"),
        {"schema": SCHEMA},
    )
