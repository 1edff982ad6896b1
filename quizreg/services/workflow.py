"""Capacity and waitlist workflow for team registrations.

Every operation that moves a registration in or out of CONFIRMED runs under a
per-event asyncio lock and inside one database transaction. The slot counter on
the event is only changed through conditional updates (see catalog.claim_slot),
and registration status changes are guarded by the status they expect, so a
second process sharing the database can't overshoot capacity or promote the
same team twice. Captains are notified only after the transaction commits, and
a failed notification never changes the outcome.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from quizreg.errors import (
    ConflictError,
    ConstraintViolationError,
    InvalidStateError,
    NotFoundError,
)
from quizreg.models import Event, EventStatus, Registration, RegistrationStatus
from quizreg.models.base import utcnow
from quizreg.services import catalog, ledger
from quizreg.services.notifications import Notifier

logger = logging.getLogger("quizreg.workflow")

CONFIRMED_MESSAGE = "Team registration successful!"
WAITLIST_MESSAGE = "Added to waitlist - we'll notify you if a spot opens up"


@dataclass
class RegistrationOutcome:
    registration: Registration
    event: Event

    @property
    def status(self) -> RegistrationStatus:
        return self.registration.status

    @property
    def message(self) -> str:
        if self.status == RegistrationStatus.CONFIRMED:
            return CONFIRMED_MESSAGE
        if self.status == RegistrationStatus.WAITLIST:
            return WAITLIST_MESSAGE
        raise ValueError(f"New registration cannot be {self.status}")


@dataclass
class StatusChangeOutcome:
    """Result of a cancellation or admin override. `promoted` is the team that took the freed slot."""

    registration: Registration
    event: Event
    promoted: Optional[Registration] = None


@dataclass
class EventUpdateOutcome:
    """Result of an event edit. `promoted` lists waitlisted teams that got the new slots, oldest first."""

    event: Event
    promoted: list[Registration] = field(default_factory=list)


def _event_accepts_registrations(status: EventStatus) -> bool:
    if status in (EventStatus.ACTIVE, EventStatus.FULL):
        return True
    if status in (EventStatus.CANCELLED, EventStatus.COMPLETED):
        return False
    raise ValueError(f"Unhandled event status {status}")


class RegistrationWorkflow:
    """Admission, cancellation and promotion for team registrations."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        notifier: Notifier,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self._notifier = notifier
        self._clock = clock
        self._locks: dict[int, asyncio.Lock] = {}
        self._lock_users: dict[int, int] = {}

    @asynccontextmanager
    async def _event_lock(self, event_id: int) -> AsyncIterator[None]:
        """Serialize work on one event. The lock is dropped once nobody holds or waits for it."""
        lock = self._locks.get(event_id)
        if lock is None:
            lock = self._locks[event_id] = asyncio.Lock()
        self._lock_users[event_id] = self._lock_users.get(event_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[event_id] -= 1
            if not self._lock_users[event_id]:
                del self._lock_users[event_id]
                del self._locks[event_id]

    # --- Admission ---

    async def register_team(self, event_id: int, fields: dict[str, Any]) -> RegistrationOutcome:
        """Admit a team as CONFIRMED while there is room, otherwise put it on the waitlist.

        `fields` holds the registration columns (team_name, team_size, captain_* ...).
        """
        async with self._event_lock(event_id):
            async with self._session_factory() as session:
                async with session.begin():
                    event = await catalog.require_event(session, event_id)
                    self._check_admission(event, fields["team_size"])

                    existing = await ledger.find_by_team_name_and_event(session, fields["team_name"], event_id)
                    if existing is not None and existing.status != RegistrationStatus.CANCELLED:
                        raise ConstraintViolationError(
                            "Team name already exists for this event", code="team_name_taken"
                        )

                    if await catalog.claim_slot(session, event_id):
                        status = RegistrationStatus.CONFIRMED
                    else:
                        status = RegistrationStatus.WAITLIST
                    try:
                        registration = await ledger.create_registration(session, event_id, fields, status)
                    except IntegrityError:
                        # Rolls back the claimed slot along with the insert
                        raise ConflictError(
                            "Team name already exists for this event", code="registration_conflict"
                        ) from None
                    await session.refresh(event)

        logger.info(
            "Team %r registered for event %s as %s (%d/%d confirmed, event %s)",
            registration.team_name, event_id, status.value,
            event.confirmed_count, event.max_teams, event.status.value,
        )
        await self._notify(self._notifier.notify_registration_outcome, registration, event)
        return RegistrationOutcome(registration=registration, event=event)

    def _check_admission(self, event: Event, team_size: int) -> None:
        if not _event_accepts_registrations(event.status):
            raise InvalidStateError("Event is not available for registration", code="event_not_open")
        if event.date < self._clock():
            raise InvalidStateError("Cannot register for a past event", code="event_in_past")
        if team_size < event.min_team_size:
            raise ConstraintViolationError(
                f"Team size must be at least {event.min_team_size} members", code="team_too_small"
            )
        if team_size > event.max_team_size:
            raise ConstraintViolationError(
                f"Team size cannot exceed {event.max_team_size} members", code="team_too_large"
            )

    # --- Cancellation ---

    async def cancel_team(self, registration_id: int) -> StatusChangeOutcome:
        """Cancel a registration. A freed slot on a FULL event goes to the oldest waitlisted team."""
        event_id = await self._event_id_for(registration_id)
        async with self._event_lock(event_id):
            async with self._session_factory() as session:
                async with session.begin():
                    registration = await self._require_registration(session, registration_id)
                    if registration.status == RegistrationStatus.CANCELLED:
                        raise InvalidStateError(
                            "Team registration is already cancelled", code="already_cancelled"
                        )
                    event = await catalog.require_event(session, registration.event_id)
                    promoted = await self._cancel_in_session(session, registration, event)

        logger.info("Registration %s (%r) cancelled", registration.id, registration.team_name)
        if promoted is not None:
            await self._notify(self._notifier.notify_promotion, promoted, event)
        return StatusChangeOutcome(registration=registration, event=event, promoted=promoted)

    async def _cancel_in_session(
        self, session: AsyncSession, registration: Registration, event: Event
    ) -> Optional[Registration]:
        previous = registration.status
        await self._move(session, registration, RegistrationStatus.CANCELLED, expected=previous)
        promoted = None
        if previous == RegistrationStatus.CONFIRMED:
            promoted = await self._free_slot(session, event, exclude_id=registration.id)
        elif previous != RegistrationStatus.WAITLIST:
            raise ValueError(f"Unhandled registration status {previous}")
        await session.refresh(event)
        return promoted

    async def _free_slot(
        self, session: AsyncSession, event: Event, exclude_id: Optional[int] = None
    ) -> Optional[Registration]:
        """Hand a released confirmed slot to the waitlist, or give it back to the event."""
        if event.status == EventStatus.FULL:
            promoted = await self._promote_oldest(session, event.id, exclude_id)
            if promoted is not None:
                return promoted
            await catalog.release_slot(session, event.id)
        elif event.status in (EventStatus.ACTIVE, EventStatus.CANCELLED, EventStatus.COMPLETED):
            await catalog.release_slot(session, event.id)
        else:
            raise ValueError(f"Unhandled event status {event.status}")
        return None

    async def _promote_oldest(
        self, session: AsyncSession, event_id: int, exclude_id: Optional[int]
    ) -> Optional[Registration]:
        while True:
            candidate = await ledger.find_oldest_waitlisted(session, event_id, exclude_id=exclude_id)
            if candidate is None:
                return None
            promoted = await ledger.set_registration_status(
                session, candidate.id, RegistrationStatus.CONFIRMED, expected=RegistrationStatus.WAITLIST
            )
            await session.refresh(candidate)
            if promoted:
                logger.info("Promoted %r from the waitlist of event %s", candidate.team_name, event_id)
                return candidate
            # Someone else moved this candidate first; try the next one

    # --- Event edits ---

    async def update_event(self, event_id: int, changes: dict[str, Any]) -> EventUpdateOutcome:
        """Edit an event under its lock. Slots opened by the edit go to the waitlist first."""
        async with self._event_lock(event_id):
            async with self._session_factory() as session:
                async with session.begin():
                    event = await catalog.require_event(session, event_id)
                    event = await catalog.update_event(session, event, changes)
                    promoted = await self._fill_from_waitlist(session, event)

        logger.info(
            "Event %s updated (%d/%d confirmed, event %s)",
            event_id, event.confirmed_count, event.max_teams, event.status.value,
        )
        for registration in promoted:
            await self._notify(self._notifier.notify_promotion, registration, event)
        return EventUpdateOutcome(event=event, promoted=promoted)

    async def _fill_from_waitlist(self, session: AsyncSession, event: Event) -> list[Registration]:
        """Promote waitlisted teams, oldest first, while the event has free slots."""
        promoted = []
        while await catalog.claim_slot(session, event.id):
            registration = await self._promote_oldest(session, event.id, exclude_id=None)
            if registration is None:
                await catalog.release_slot(session, event.id)
                break
            promoted.append(registration)
        await session.refresh(event)
        return promoted

    # --- Read-only ---

    async def check_team_name(self, team_name: str, event_id: int) -> dict:
        """Whether a registration already uses this team name on the event, and its status."""
        async with self._session_factory() as session:
            existing = await ledger.find_by_team_name_and_event(session, team_name, event_id)
        return {
            "is_taken": existing is not None,
            "status": existing.status if existing is not None else None,
        }

    # --- Admin override ---

    async def override_status(self, registration_id: int, status: RegistrationStatus) -> StatusChangeOutcome:
        """Set a registration's status on an admin's behalf while keeping capacity consistent.

        CANCELLED is terminal. Confirming a waitlisted team needs a free slot.
        Moving a confirmed team to the waitlist frees its slot like a cancellation.
        """
        event_id = await self._event_id_for(registration_id)
        async with self._event_lock(event_id):
            async with self._session_factory() as session:
                async with session.begin():
                    registration = await self._require_registration(session, registration_id)
                    event = await catalog.require_event(session, registration.event_id)
                    previous = registration.status
                    promoted = None
                    if status == previous:
                        pass
                    elif previous == RegistrationStatus.CANCELLED:
                        raise InvalidStateError(
                            "Cancelled registrations cannot be reopened", code="registration_cancelled"
                        )
                    elif status == RegistrationStatus.CANCELLED:
                        promoted = await self._cancel_in_session(session, registration, event)
                    elif status == RegistrationStatus.CONFIRMED:
                        await self._confirm_waitlisted(session, registration, event)
                    elif status == RegistrationStatus.WAITLIST:
                        await self._move(session, registration, status, expected=previous)
                        promoted = await self._free_slot(session, event, exclude_id=registration.id)
                        await session.refresh(event)
                    else:
                        raise ValueError(f"Unhandled registration status {status}")

        if status != previous:
            logger.info(
                "Admin moved registration %s (%r) from %s to %s",
                registration.id, registration.team_name, previous.value, status.value,
            )
        if status != previous and status == RegistrationStatus.CONFIRMED:
            await self._notify(self._notifier.notify_promotion, registration, event)
        elif status != previous and status == RegistrationStatus.WAITLIST:
            await self._notify(self._notifier.notify_registration_outcome, registration, event)
        if promoted is not None:
            await self._notify(self._notifier.notify_promotion, promoted, event)
        return StatusChangeOutcome(registration=registration, event=event, promoted=promoted)

    async def _confirm_waitlisted(self, session: AsyncSession, registration: Registration, event: Event) -> None:
        if not _event_accepts_registrations(event.status):
            raise InvalidStateError("Event is not available for registration", code="event_not_open")
        if not await catalog.claim_slot(session, event.id):
            raise InvalidStateError("Event is full", code="event_full")
        await self._move(session, registration, RegistrationStatus.CONFIRMED, expected=RegistrationStatus.WAITLIST)
        await session.refresh(event)

    # --- Helpers ---

    async def _event_id_for(self, registration_id: int) -> int:
        async with self._session_factory() as session:
            registration = await self._require_registration(session, registration_id)
            return registration.event_id

    @staticmethod
    async def _require_registration(session: AsyncSession, registration_id: int) -> Registration:
        registration = await ledger.get_registration(session, registration_id)
        if registration is None:
            raise NotFoundError("Team registration not found", code="registration_not_found")
        return registration

    @staticmethod
    async def _move(
        session: AsyncSession,
        registration: Registration,
        status: RegistrationStatus,
        expected: RegistrationStatus,
    ) -> None:
        if not await ledger.set_registration_status(session, registration.id, status, expected=expected):
            raise ConflictError("Registration was changed by another request", code="registration_conflict")
        await session.refresh(registration)

    @staticmethod
    async def _notify(send, registration: Registration, event: Event) -> None:
        try:
            await send(registration, event)
        except Exception:
            logger.exception(
                "Failed to notify %s about registration %s", registration.captain_email, registration.id
            )
