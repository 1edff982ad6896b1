"""Captain notifications: e-mail through the Resend HTTP API, or log-only."""
from __future__ import annotations

import logging
from typing import Iterable, Optional

import httpx

import config
from quizreg.models import Event, Registration
from quizreg.services.email_templates import promotion_email, registration_outcome_email, reminder_email

logger = logging.getLogger("quizreg.notify")


class Notifier:
    """Interface the registration workflow talks to. Implementations may raise; callers absorb."""

    async def notify_registration_outcome(self, registration: Registration, event: Event) -> None:
        raise NotImplementedError

    async def notify_promotion(self, registration: Registration, event: Event) -> None:
        raise NotImplementedError

    async def send_reminder(self, registration: Registration, event: Event) -> None:
        raise NotImplementedError


class LoggingNotifier(Notifier):
    """Records what would have been sent. Used when e-mail is not configured."""

    async def notify_registration_outcome(self, registration: Registration, event: Event) -> None:
        logger.info(
            "E-mail disabled; %s registration for %s (event %s) not mailed to %s",
            registration.status.value, registration.team_name, event.id, registration.captain_email,
        )

    async def notify_promotion(self, registration: Registration, event: Event) -> None:
        logger.info(
            "E-mail disabled; promotion of %s (event %s) not mailed to %s",
            registration.team_name, event.id, registration.captain_email,
        )

    async def send_reminder(self, registration: Registration, event: Event) -> None:
        logger.info("E-mail disabled; reminder for %s (event %s) not sent", registration.team_name, event.id)


class EmailNotifier(Notifier):
    """Sends HTML e-mails with one POST per message to the Resend API."""

    def __init__(
        self,
        api_key: str,
        from_email: str,
        api_url: str = "https://api.resend.com/emails",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = api_key
        self._from_email = from_email
        self._api_url = api_url
        self._timeout = timeout
        self._transport = transport

    async def _send(self, to: str, subject: str, html: str) -> None:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            r = await client.post(
                self._api_url,
                json={"from": self._from_email, "to": [to], "subject": subject, "html": html},
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
            r.raise_for_status()
        logger.info("Sent '%s' to %s", subject, to)

    async def notify_registration_outcome(self, registration: Registration, event: Event) -> None:
        subject, html = registration_outcome_email(registration, event)
        await self._send(registration.captain_email, subject, html)

    async def notify_promotion(self, registration: Registration, event: Event) -> None:
        subject, html = promotion_email(registration, event)
        await self._send(registration.captain_email, subject, html)

    async def send_reminder(self, registration: Registration, event: Event) -> None:
        subject, html = reminder_email(registration, event)
        await self._send(registration.captain_email, subject, html)


def build_notifier() -> Notifier:
    """EmailNotifier when RESEND_API_KEY is set, else LoggingNotifier."""
    if not config.RESEND_API_KEY:
        logger.warning("RESEND_API_KEY not set - captain e-mails will only be logged")
        return LoggingNotifier()
    return EmailNotifier(
        api_key=config.RESEND_API_KEY,
        from_email=config.FROM_EMAIL,
        api_url=config.RESEND_API_URL,
        timeout=config.EMAIL_TIMEOUT_SECONDS,
    )


async def send_reminders(notifier: Notifier, event: Event, registrations: Iterable[Registration]) -> dict:
    """Remind every given team; one failed e-mail doesn't stop the rest."""
    sent, failed = 0, []
    for reg in registrations:
        try:
            await notifier.send_reminder(reg, event)
            sent += 1
        except Exception:
            logger.exception("Reminder to %s for event %s failed", reg.captain_email, event.id)
            failed.append(reg.id)
    return {"sent": sent, "failed": failed}
