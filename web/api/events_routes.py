"""Event catalog API: public listing, staff create/update/delete."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field, model_validator

from quizreg.models import EventStatus, User
from quizreg.models.base import async_session_factory
from quizreg.models.event import (
    MAX_DURATION,
    MAX_TEAM_SIZE,
    MAX_TEAMS,
    MIN_DURATION,
    MIN_TEAM_SIZE,
    MIN_TEAMS,
)
from quizreg.services import catalog
from quizreg.services.workflow import RegistrationWorkflow
from web.api.deps import get_workflow
from web.api.utils import event_to_dict
from web.auth import require_admin_user, require_moderator_user

router = APIRouter(prefix="/api/events", tags=["events"])

START_TIME_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"
NULLABLE_FIELDS = ("description", "location")


class EventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    date: datetime
    start_time: str = Field(pattern=START_TIME_PATTERN)
    duration: int = Field(ge=MIN_DURATION, le=MAX_DURATION)
    max_teams: int = Field(ge=MIN_TEAMS, le=MAX_TEAMS)
    min_team_size: int = Field(ge=MIN_TEAM_SIZE, le=MAX_TEAM_SIZE)
    max_team_size: int = Field(ge=MIN_TEAM_SIZE, le=MAX_TEAM_SIZE)
    location: Optional[str] = Field(default=None, max_length=300)
    price: float = Field(default=0, ge=0)

    @model_validator(mode="after")
    def check_team_sizes(self):
        if self.min_team_size > self.max_team_size:
            raise ValueError("min_team_size cannot exceed max_team_size")
        return self


class EventUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    date: Optional[datetime] = None
    start_time: Optional[str] = Field(default=None, pattern=START_TIME_PATTERN)
    duration: Optional[int] = Field(default=None, ge=MIN_DURATION, le=MAX_DURATION)
    max_teams: Optional[int] = Field(default=None, ge=MIN_TEAMS, le=MAX_TEAMS)
    min_team_size: Optional[int] = Field(default=None, ge=MIN_TEAM_SIZE, le=MAX_TEAM_SIZE)
    max_team_size: Optional[int] = Field(default=None, ge=MIN_TEAM_SIZE, le=MAX_TEAM_SIZE)
    location: Optional[str] = Field(default=None, max_length=300)
    price: Optional[float] = Field(default=None, ge=0)
    status: Optional[EventStatus] = None  # ACTIVE, CANCELLED or COMPLETED


@router.get("")
async def list_open_events():
    """Upcoming events still taking registrations, soonest first."""
    async with async_session_factory() as session:
        events = await catalog.list_open_events(session)
        return [event_to_dict(e) for e in events]


@router.get("/{event_id}")
async def get_event(event_id: int):
    async with async_session_factory() as session:
        event = await catalog.require_event(session, event_id)
        return event_to_dict(event)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_event(body: EventCreate, user: User = Depends(require_moderator_user)):
    """Publish a new event (staff only)."""
    async with async_session_factory() as session:
        event = await catalog.create_event(session, body.model_dump())
        await session.commit()
        return event_to_dict(event)


@router.patch("/{event_id}")
async def update_event(
    event_id: int,
    body: EventUpdate,
    user: User = Depends(require_moderator_user),
    workflow: RegistrationWorkflow = Depends(get_workflow),
):
    """Partial update. Capacity can't drop below the confirmed teams; new slots go to the waitlist."""
    changes = {
        k: v for k, v in body.model_dump(exclude_unset=True).items()
        if v is not None or k in NULLABLE_FIELDS
    }
    outcome = await workflow.update_event(event_id, changes)
    return event_to_dict(outcome.event)


@router.delete("/{event_id}")
async def delete_event(event_id: int, user: User = Depends(require_admin_user)):
    """Delete an event and all its registrations (admin only)."""
    async with async_session_factory() as session:
        await catalog.delete_event(session, event_id)
        await session.commit()
        return {"ok": True}
