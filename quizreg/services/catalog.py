"""Event catalog: event lookup, availability and the capacity counter."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Sequence

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from quizreg.errors import ConstraintViolationError, NotFoundError
from quizreg.models import Event, EventStatus, Registration, RegistrationStatus
from quizreg.models.base import to_naive_utc, utcnow

# Statuses an administrator may set directly. FULL is derived from capacity.
ADMIN_SETTABLE_STATUSES = (EventStatus.ACTIVE, EventStatus.CANCELLED, EventStatus.COMPLETED)


async def get_event(session: AsyncSession, event_id: int) -> Optional[Event]:
    return await session.get(Event, event_id)


async def require_event(session: AsyncSession, event_id: int) -> Event:
    """Return the event or raise NotFoundError."""
    event = await session.get(Event, event_id)
    if event is None:
        raise NotFoundError("Event not found", code="event_not_found")
    return event


async def count_confirmed_registrations(session: AsyncSession, event_id: int) -> int:
    """Count CONFIRMED registrations straight from the ledger table."""
    result = await session.execute(
        select(func.count(Registration.id)).where(
            Registration.event_id == event_id,
            Registration.status == RegistrationStatus.CONFIRMED,
        )
    )
    return result.scalar_one()


async def set_event_status(session: AsyncSession, event_id: int, status: EventStatus) -> None:
    await session.execute(
        update(Event)
        .where(Event.id == event_id)
        .values(status=status)
        .execution_options(synchronize_session=False)
    )


async def claim_slot(session: AsyncSession, event_id: int) -> bool:
    """Atomically take one confirmed slot on an ACTIVE event with room left.

    The check and the increment are one conditional UPDATE, so two writers can
    never both take the last slot. Taking the last slot flips the event to FULL
    in the same statement. Returns False when no slot was available.
    """
    result = await session.execute(
        update(Event)
        .where(
            Event.id == event_id,
            Event.status == EventStatus.ACTIVE,
            Event.confirmed_count < Event.max_teams,
        )
        .values(
            confirmed_count=Event.confirmed_count + 1,
            status=case(
                (Event.confirmed_count + 1 >= Event.max_teams, EventStatus.FULL.value),
                else_=Event.status,
            ),
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def release_slot(session: AsyncSession, event_id: int) -> None:
    """Give back one confirmed slot; a FULL event reopens as ACTIVE."""
    await session.execute(
        update(Event)
        .where(Event.id == event_id, Event.confirmed_count > 0)
        .values(
            confirmed_count=Event.confirmed_count - 1,
            status=case(
                (Event.status == EventStatus.FULL, EventStatus.ACTIVE.value),
                else_=Event.status,
            ),
        )
        .execution_options(synchronize_session=False)
    )


async def list_open_events(session: AsyncSession, now: Optional[datetime] = None) -> Sequence[Event]:
    """ACTIVE events that haven't happened yet, soonest first."""
    now = now or utcnow()
    result = await session.execute(
        select(Event)
        .where(Event.status == EventStatus.ACTIVE, Event.date >= now)
        .order_by(Event.date.asc())
    )
    return result.scalars().all()


async def list_events(session: AsyncSession) -> Sequence[Event]:
    result = await session.execute(select(Event).order_by(Event.date.asc()))
    return result.scalars().all()


def _check_team_size_bounds(min_size: int, max_size: int) -> None:
    if min_size > max_size:
        raise ConstraintViolationError(
            "Minimum team size cannot exceed maximum team size",
            code="invalid_team_size_bounds",
        )


async def create_event(session: AsyncSession, data: dict[str, Any]) -> Event:
    """Create an ACTIVE event. Field ranges are validated by the API schema."""
    _check_team_size_bounds(data["min_team_size"], data["max_team_size"])
    event = Event(**{**data, "date": to_naive_utc(data["date"])})
    event.status = EventStatus.ACTIVE
    event.confirmed_count = 0
    session.add(event)
    await session.flush()
    return event


async def set_capacity(session: AsyncSession, event_id: int, max_teams: int) -> bool:
    """Change max_teams unless it would drop below the confirmed teams. Returns False if refused."""
    result = await session.execute(
        update(Event)
        .where(Event.id == event_id, Event.confirmed_count <= max_teams)
        .values(max_teams=max_teams)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def sync_open_status(session: AsyncSession, event_id: int) -> None:
    """Re-derive ACTIVE/FULL from the counter. CANCELLED and COMPLETED are left alone."""
    await session.execute(
        update(Event)
        .where(Event.id == event_id, Event.status.in_((EventStatus.ACTIVE, EventStatus.FULL)))
        .values(
            status=case(
                (Event.confirmed_count >= Event.max_teams, EventStatus.FULL.value),
                else_=EventStatus.ACTIVE.value,
            )
        )
        .execution_options(synchronize_session=False)
    )


async def update_event(session: AsyncSession, event: Event, changes: dict[str, Any]) -> Event:
    """Apply a partial update, keeping capacity and status consistent with confirmed_count.

    Capacity is written with a conditional UPDATE against the stored counter, so an
    admission committed after `event` was loaded is still taken into account.
    """
    min_size = changes.get("min_team_size", event.min_team_size)
    max_size = changes.get("max_team_size", event.max_team_size)
    _check_team_size_bounds(min_size, max_size)

    changes = dict(changes)
    max_teams = changes.pop("max_teams", None)
    status = changes.pop("status", None)
    if status is not None and status not in ADMIN_SETTABLE_STATUSES:
        raise ConstraintViolationError(f"Status {status.value} cannot be set directly", code="invalid_status")

    for key, value in changes.items():
        if key == "date":
            value = to_naive_utc(value)
        setattr(event, key, value)
    if status is not None:
        event.status = status
    await session.flush()

    if max_teams is not None and not await set_capacity(session, event.id, max_teams):
        await session.refresh(event)
        raise ConstraintViolationError(
            f"Capacity cannot be lower than the {event.confirmed_count} confirmed teams",
            code="capacity_below_confirmed",
        )
    await sync_open_status(session, event.id)
    await session.refresh(event)
    return event


async def delete_event(session: AsyncSession, event_id: int) -> None:
    event = await require_event(session, event_id)
    await session.delete(event)
    await session.flush()
