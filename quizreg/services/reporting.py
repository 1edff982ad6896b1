"""Admin dashboard numbers and CSV export."""
from __future__ import annotations

import csv
import io
import re
from typing import Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from quizreg.models import Event, EventStatus, Registration, RegistrationStatus

EXPORT_HEADERS = [
    "Team name",
    "Team size",
    "Captain first name",
    "Captain last name",
    "Email",
    "Phone",
    "Experience",
    "Registered on",
]


async def dashboard_stats(session: AsyncSession) -> dict:
    """Totals, the ten newest registrations and per-event occupancy."""
    total_events = (await session.execute(select(func.count(Event.id)))).scalar_one()
    active_events = (
        await session.execute(select(func.count(Event.id)).where(Event.status == EventStatus.ACTIVE))
    ).scalar_one()
    total_registrations = (await session.execute(select(func.count(Registration.id)))).scalar_one()
    confirmed_registrations = (
        await session.execute(
            select(func.count(Registration.id)).where(Registration.status == RegistrationStatus.CONFIRMED)
        )
    ).scalar_one()

    recent_result = await session.execute(
        select(Registration)
        .options(selectinload(Registration.event))
        .order_by(Registration.created_at.desc(), Registration.id.desc())
        .limit(10)
    )
    recent = recent_result.scalars().all()

    waitlist_counts = dict(
        (
            await session.execute(
                select(Registration.event_id, func.count(Registration.id))
                .where(Registration.status == RegistrationStatus.WAITLIST)
                .group_by(Registration.event_id)
            )
        ).all()
    )
    events = (await session.execute(select(Event).order_by(Event.date.asc()))).scalars().all()

    return {
        "stats": {
            "total_events": total_events,
            "active_events": active_events,
            "total_registrations": total_registrations,
            "confirmed_registrations": confirmed_registrations,
        },
        "recent_registrations": recent,
        "event_stats": [
            {
                "id": e.id,
                "title": e.title,
                "date": e.date,
                "status": e.status,
                "max_teams": e.max_teams,
                "confirmed_count": e.confirmed_count,
                "waitlist_count": waitlist_counts.get(e.id, 0),
            }
            for e in events
        ],
    }


def registrations_csv(registrations: Sequence[Registration]) -> str:
    """CSV text with a UTF-8 BOM so spreadsheet apps pick the right encoding."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(EXPORT_HEADERS)
    for reg in registrations:
        writer.writerow([
            reg.team_name,
            reg.team_size,
            reg.captain_first_name,
            reg.captain_last_name,
            reg.captain_email,
            reg.captain_phone,
            reg.experience.value,
            reg.created_at.strftime("%d.%m.%Y"),
        ])
    return "\ufeff" + buf.getvalue()


def export_filename(event: Event) -> str:
    """Safe attachment name derived from the event title."""
    slug = re.sub(r"[^A-Za-z0-9_-]+", "_", event.title).strip("_") or f"event_{event.id}"
    return f"{slug}_team_registrations.csv"
