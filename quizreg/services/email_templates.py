"""HTML e-mails sent to team captains, rendered from Jinja2 templates."""
from __future__ import annotations

from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

import config
from quizreg.models import Event, Registration, RegistrationStatus

TEMPLATE_DIR = Path(__file__).parent / "templates"

env = Environment(
    loader=FileSystemLoader(TEMPLATE_DIR),
    autoescape=select_autoescape(["html"]),
)


def _render(template_name: str, reg: Registration, event: Event, **context) -> str:
    template = env.get_template(template_name)
    return template.render(
        reg=reg,
        event=event,
        event_date=event.date.strftime("%A, %d %B %Y"),
        site_name=config.SITE_NAME,
        currency=config.CURRENCY,
        **context,
    )


def registration_outcome_email(reg: Registration, event: Event) -> tuple[str, str]:
    """Subject and HTML for a new registration, confirmed or waitlisted."""
    if reg.status == RegistrationStatus.WAITLIST:
        subject = f'Team "{reg.team_name}" is on the waitlist: {event.title}'
        html = _render(
            "registration_waitlist.html", reg, event,
            heading="Your team is on the waitlist", status_class="waitlist",
        )
    elif reg.status == RegistrationStatus.CONFIRMED:
        subject = f'Team "{reg.team_name}" is registered: {event.title}'
        html = _render(
            "registration_confirmed.html", reg, event,
            heading="Team registration confirmed!", status_class="confirmed",
        )
    else:
        raise ValueError(f"No registration e-mail for status {reg.status}")
    return subject, html


def promotion_email(reg: Registration, event: Event) -> tuple[str, str]:
    """Subject and HTML for a team moved from the waitlist into the event."""
    subject = f'A spot opened up! Team "{reg.team_name}" is confirmed: {event.title}'
    html = _render("promotion.html", reg, event, heading="You're in!", status_class="confirmed")
    return subject, html


def reminder_email(reg: Registration, event: Event) -> tuple[str, str]:
    subject = f"Reminder: {event.title} is coming up"
    return subject, _render("reminder.html", reg, event)
