"""Closed status and level types shared by models, services and API schemas."""
from __future__ import annotations

import enum


class EventStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    FULL = "FULL"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class RegistrationStatus(str, enum.Enum):
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    WAITLIST = "WAITLIST"


class TeamExperience(str, enum.Enum):
    BEGINNER = "BEGINNER"
    EXPERIENCED = "EXPERIENCED"
    PROFESSIONAL = "PROFESSIONAL"
