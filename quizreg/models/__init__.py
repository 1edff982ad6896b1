"""Database models."""
from quizreg.models.base import Base, init_db
from quizreg.models.enums import EventStatus, RegistrationStatus, TeamExperience
from quizreg.models.event import Event
from quizreg.models.registration import Registration
from quizreg.models.user import User  # noqa: F401 - for metadata

__all__ = [
    "Base",
    "Event",
    "EventStatus",
    "Registration",
    "RegistrationStatus",
    "TeamExperience",
    "User",
    "init_db",
]
