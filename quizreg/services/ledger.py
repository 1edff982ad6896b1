"""Registration ledger: reads and guarded status writes for team registrations."""
from __future__ import annotations

from typing import Any, Optional, Sequence

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from quizreg.models import Registration, RegistrationStatus
from quizreg.models.base import utcnow


async def create_registration(
    session: AsyncSession,
    event_id: int,
    fields: dict[str, Any],
    status: RegistrationStatus,
) -> Registration:
    """Insert a registration. Raises IntegrityError if the team name is already live for the event."""
    registration = Registration(event_id=event_id, status=status, **fields)
    session.add(registration)
    await session.flush()
    return registration


async def get_registration(
    session: AsyncSession, registration_id: int, with_event: bool = False
) -> Optional[Registration]:
    query = select(Registration).where(Registration.id == registration_id)
    if with_event:
        query = query.options(selectinload(Registration.event))
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def set_registration_status(
    session: AsyncSession,
    registration_id: int,
    status: RegistrationStatus,
    expected: Optional[RegistrationStatus] = None,
) -> bool:
    """Write a new status. With `expected`, only succeeds if the row still has that status."""
    stmt = update(Registration).where(Registration.id == registration_id)
    if expected is not None:
        stmt = stmt.where(Registration.status == expected)
    result = await session.execute(
        stmt.values(status=status, updated_at=utcnow()).execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def find_oldest_waitlisted(
    session: AsyncSession, event_id: int, exclude_id: Optional[int] = None
) -> Optional[Registration]:
    """First-come first-served: the earliest WAITLIST registration for the event."""
    query = select(Registration).where(
        Registration.event_id == event_id,
        Registration.status == RegistrationStatus.WAITLIST,
    )
    if exclude_id is not None:
        query = query.where(Registration.id != exclude_id)
    result = await session.execute(
        query.order_by(Registration.created_at.asc(), Registration.id.asc()).limit(1)
    )
    return result.scalar_one_or_none()


async def find_by_team_name_and_event(
    session: AsyncSession, team_name: str, event_id: int
) -> Optional[Registration]:
    """Registration holding this team name on the event. A live one wins over cancelled history."""
    live_first = case((Registration.status == RegistrationStatus.CANCELLED, 1), else_=0)
    result = await session.execute(
        select(Registration)
        .where(Registration.event_id == event_id, Registration.team_name == team_name)
        .order_by(live_first, Registration.created_at.desc(), Registration.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def list_registrations(
    session: AsyncSession,
    event_id: Optional[int] = None,
    status: Optional[RegistrationStatus] = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[Sequence[Registration], int]:
    """Newest first, with the event loaded. Returns (page of rows, total matching)."""
    conditions = []
    if event_id is not None:
        conditions.append(Registration.event_id == event_id)
    if status is not None:
        conditions.append(Registration.status == status)

    total = (
        await session.execute(select(func.count(Registration.id)).where(*conditions))
    ).scalar_one()
    result = await session.execute(
        select(Registration)
        .where(*conditions)
        .options(selectinload(Registration.event))
        .order_by(Registration.created_at.desc(), Registration.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return result.scalars().all(), total


async def list_confirmed_for_export(session: AsyncSession, event_id: int) -> Sequence[Registration]:
    result = await session.execute(
        select(Registration)
        .where(
            Registration.event_id == event_id,
            Registration.status == RegistrationStatus.CONFIRMED,
        )
        .order_by(Registration.created_at.asc(), Registration.id.asc())
    )
    return result.scalars().all()
