"""Admin API: dashboard, registration list, CSV export, status override, reminders."""
from __future__ import annotations

import math
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from pydantic import BaseModel

from quizreg.models import RegistrationStatus, User
from quizreg.models.base import async_session_factory
from quizreg.services import catalog, ledger, reporting
from quizreg.services.notifications import Notifier, send_reminders
from quizreg.services.workflow import RegistrationWorkflow
from web.api.deps import get_notifier, get_workflow
from web.api.utils import event_to_dict, registration_to_dict
from web.auth import require_admin_user, require_moderator_user

router = APIRouter(prefix="/api/admin", tags=["admin"])


class StatusUpdate(BaseModel):
    status: RegistrationStatus


@router.get("/dashboard")
async def dashboard(user: User = Depends(require_moderator_user)):
    """Totals, newest registrations and per-event occupancy."""
    async with async_session_factory() as session:
        data = await reporting.dashboard_stats(session)
    return {
        "stats": data["stats"],
        "recent_registrations": [registration_to_dict(r, r.event) for r in data["recent_registrations"]],
        "event_stats": [
            {**row, "date": row["date"].isoformat(), "status": row["status"].value}
            for row in data["event_stats"]
        ],
    }


@router.get("/events")
async def list_all_events(user: User = Depends(require_moderator_user)):
    """Every event regardless of status or date."""
    async with async_session_factory() as session:
        events = await catalog.list_events(session)
        return [event_to_dict(e) for e in events]


@router.get("/registrations")
async def list_registrations(
    event_id: Optional[int] = None,
    status: Optional[RegistrationStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(require_moderator_user),
):
    """Filtered, paginated registrations, newest first."""
    async with async_session_factory() as session:
        rows, total = await ledger.list_registrations(session, event_id, status, page, limit)
    return {
        "registrations": [registration_to_dict(r, r.event) for r in rows],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        },
    }


@router.get("/export/{event_id}")
async def export_registrations(event_id: int, user: User = Depends(require_moderator_user)):
    """Confirmed teams for an event as CSV."""
    async with async_session_factory() as session:
        event = await catalog.require_event(session, event_id)
        rows = await ledger.list_confirmed_for_export(session, event_id)
    return Response(
        content=reporting.registrations_csv(rows),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{reporting.export_filename(event)}"'},
    )


@router.put("/registrations/{registration_id}/status")
async def update_registration_status(
    registration_id: int,
    body: StatusUpdate,
    user: User = Depends(require_admin_user),
    workflow: RegistrationWorkflow = Depends(get_workflow),
):
    """Override a registration's status; capacity and waitlist rules still apply."""
    outcome = await workflow.override_status(registration_id, body.status)
    return {
        "registration": registration_to_dict(outcome.registration, outcome.event),
        "promoted": registration_to_dict(outcome.promoted) if outcome.promoted else None,
    }


@router.post("/events/{event_id}/reminders")
async def send_event_reminders(
    event_id: int,
    user: User = Depends(require_admin_user),
    notifier: Notifier = Depends(get_notifier),
):
    """E-mail a reminder to every confirmed team of the event."""
    async with async_session_factory() as session:
        event = await catalog.require_event(session, event_id)
        rows = await ledger.list_confirmed_for_export(session, event_id)
    return await send_reminders(notifier, event, rows)
