"""Public team registration API: register, look up, cancel, check team name."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from quizreg.models import TeamExperience
from quizreg.models.base import async_session_factory
from quizreg.services import ledger
from quizreg.services.workflow import RegistrationWorkflow
from web.api.deps import get_workflow
from web.api.utils import registration_to_dict

router = APIRouter(prefix="/api/registrations", tags=["registrations"])


class TeamRegistrationRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    event_id: int
    team_name: str = Field(min_length=3, max_length=50)
    team_size: int = Field(ge=2, le=10)
    captain_first_name: str = Field(min_length=2, max_length=100)
    captain_last_name: str = Field(min_length=2, max_length=100)
    captain_email: EmailStr
    captain_phone: str = Field(min_length=10, max_length=32)
    experience: TeamExperience = TeamExperience.BEGINNER
    how_heard_about: Optional[str] = Field(default=None, max_length=200)
    notes: Optional[str] = Field(default=None, max_length=500)


@router.post("/team", status_code=status.HTTP_201_CREATED)
async def register_team(body: TeamRegistrationRequest, workflow: RegistrationWorkflow = Depends(get_workflow)):
    """Register a team: confirmed while the event has room, waitlisted after."""
    fields = body.model_dump(exclude={"event_id"})
    outcome = await workflow.register_team(body.event_id, fields)
    return {
        "message": outcome.message,
        "status": outcome.status.value,
        "registration": registration_to_dict(outcome.registration, outcome.event),
    }


@router.get("/team/{registration_id}")
async def get_team_registration(registration_id: int):
    async with async_session_factory() as session:
        reg = await ledger.get_registration(session, registration_id, with_event=True)
        if not reg:
            raise HTTPException(404, "Team registration not found")
        return registration_to_dict(reg, reg.event)


@router.put("/team/{registration_id}/cancel")
async def cancel_team_registration(registration_id: int, workflow: RegistrationWorkflow = Depends(get_workflow)):
    """Cancel a registration. A waitlisted team may take the freed spot."""
    outcome = await workflow.cancel_team(registration_id)
    return {
        "message": "Team registration cancelled successfully",
        "registration": registration_to_dict(outcome.registration),
    }


@router.get("/check-team/{team_name}/{event_id}")
async def check_team_name(team_name: str, event_id: int, workflow: RegistrationWorkflow = Depends(get_workflow)):
    """Whether a team name is already used on an event. Informational; registration re-checks."""
    result = await workflow.check_team_name(team_name.strip(), event_id)
    return {
        "is_taken": result["is_taken"],
        "status": result["status"].value if result["status"] else None,
    }
