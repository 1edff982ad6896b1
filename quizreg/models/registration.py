"""Registration model - a team registered for an event."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quizreg.models.base import Base, utcnow
from quizreg.models.enums import RegistrationStatus, TeamExperience

_NOT_CANCELLED = text("status != 'CANCELLED'")


class Registration(Base):
    """Team registration for an event."""

    __tablename__ = "registrations"
    __table_args__ = (
        # One live registration per team name and event; cancelled rows don't count
        Index(
            "uq_registrations_event_team_live",
            "event_id",
            "team_name",
            unique=True,
            sqlite_where=_NOT_CANCELLED,
            postgresql_where=_NOT_CANCELLED,
        ),
        Index("ix_registrations_event_status_created", "event_id", "status", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    team_name: Mapped[str] = mapped_column(String(50), nullable=False)
    team_size: Mapped[int] = mapped_column(Integer, nullable=False)
    captain_first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    captain_last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    captain_email: Mapped[str] = mapped_column(String(254), nullable=False)
    captain_phone: Mapped[str] = mapped_column(String(32), nullable=False)
    experience: Mapped[TeamExperience] = mapped_column(
        Enum(TeamExperience, native_enum=False, length=16), nullable=False, default=TeamExperience.BEGINNER
    )
    how_heard_about: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[RegistrationStatus] = mapped_column(
        Enum(RegistrationStatus, native_enum=False, length=16), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    event: Mapped["Event"] = relationship("Event", back_populates="registrations")
