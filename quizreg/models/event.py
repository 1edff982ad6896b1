"""Event model - a quiz or tournament teams can register for."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quizreg.models.base import Base, utcnow
from quizreg.models.enums import EventStatus

# Bounds enforced on create/update
MIN_TEAMS, MAX_TEAMS = 1, 50
MIN_TEAM_SIZE, MAX_TEAM_SIZE = 2, 10
MIN_DURATION, MAX_DURATION = 30, 300


class Event(Base):
    """Event with team capacity and team size bounds."""

    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)  # naive UTC
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)  # HH:MM
    duration: Mapped[int] = mapped_column(Integer, nullable=False)  # minutes
    max_teams: Mapped[int] = mapped_column(Integer, nullable=False)
    min_team_size: Mapped[int] = mapped_column(Integer, nullable=False)
    max_team_size: Mapped[int] = mapped_column(Integer, nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    price: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    status: Mapped[EventStatus] = mapped_column(
        Enum(EventStatus, native_enum=False, length=16), nullable=False, default=EventStatus.ACTIVE
    )
    # Number of CONFIRMED registrations, kept in step by the registration workflow
    confirmed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    registrations = relationship(
        "Registration", back_populates="event", cascade="all, delete-orphan"
    )

    @property
    def available_spots(self) -> int:
        return max(self.max_teams - self.confirmed_count, 0)

    @property
    def is_full(self) -> bool:
        return self.confirmed_count >= self.max_teams
