"""Tests for captain e-mails and the notifiers."""
import json
from datetime import datetime

import httpx
import pytest

from quizreg.models import Event, EventStatus, Registration, RegistrationStatus, TeamExperience
from quizreg.services import notifications
from quizreg.services.email_templates import promotion_email, registration_outcome_email, reminder_email
from quizreg.services.notifications import EmailNotifier, LoggingNotifier, build_notifier, send_reminders


def _event(**overrides):
    data = dict(
        id=7,
        title="Trivia <Night>",
        description=None,
        date=datetime(2026, 11, 20, 19, 0),
        start_time="19:00",
        duration=120,
        max_teams=10,
        min_team_size=2,
        max_team_size=6,
        location="The Crown & Anchor",
        price=10,
        status=EventStatus.ACTIVE,
        confirmed_count=0,
    )
    data.update(overrides)
    return Event(**data)


def _registration(reg_id=1, status=RegistrationStatus.CONFIRMED, **overrides):
    data = dict(
        id=reg_id,
        event_id=7,
        team_name="Brains & Co",
        team_size=4,
        captain_first_name="Ivan",
        captain_last_name="Sidorov",
        captain_email="ivan@quizteams.org",
        captain_phone="+375291112233",
        experience=TeamExperience.EXPERIENCED,
        status=status,
    )
    data.update(overrides)
    return Registration(**data)


def test_outcome_email_confirmed():
    subject, html = registration_outcome_email(_registration(), _event())
    assert subject == 'Team "Brains & Co" is registered: Trivia <Night>'
    assert "Your team registration is confirmed!" in html
    assert "Brains &amp; Co" in html
    assert "Trivia &lt;Night&gt;" in html
    assert "The Crown &amp; Anchor" in html
    assert "Friday, 20 November 2026" in html


def test_outcome_email_waitlist():
    subject, html = registration_outcome_email(_registration(status=RegistrationStatus.WAITLIST), _event(price=0))
    assert "waitlist" in subject
    assert "added to the waitlist" in html
    assert "Free entry" in html


def test_outcome_email_rejects_cancelled():
    with pytest.raises(ValueError):
        registration_outcome_email(_registration(status=RegistrationStatus.CANCELLED), _event())


def test_promotion_and_reminder_emails():
    subject, html = promotion_email(_registration(), _event())
    assert subject.startswith("A spot opened up!")
    assert "moved from the waitlist to confirmed" in html

    subject, html = reminder_email(_registration(), _event())
    assert subject == "Reminder: Trivia <Night> is coming up"
    assert "Hi Ivan!" in html
    assert "(4 people)" in html


@pytest.mark.asyncio
async def test_email_notifier_posts_to_resend():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"id": "msg_1"})

    notifier = EmailNotifier(
        api_key="re_test",
        from_email="Quiz <noreply@quizteams.org>",
        api_url="https://mail.test/emails",
        transport=httpx.MockTransport(handler),
    )
    await notifier.notify_registration_outcome(_registration(), _event())

    assert len(requests) == 1
    request = requests[0]
    assert request.method == "POST"
    assert str(request.url) == "https://mail.test/emails"
    assert request.headers["Authorization"] == "Bearer re_test"
    payload = json.loads(request.content)
    assert payload["from"] == "Quiz <noreply@quizteams.org>"
    assert payload["to"] == ["ivan@quizteams.org"]
    assert payload["subject"] == 'Team "Brains & Co" is registered: Trivia <Night>'
    assert "<html>" in payload["html"]


@pytest.mark.asyncio
async def test_email_notifier_raises_on_api_error():
    notifier = EmailNotifier(
        api_key="re_test",
        from_email="noreply@quizteams.org",
        transport=httpx.MockTransport(lambda request: httpx.Response(500, json={"message": "boom"})),
    )
    with pytest.raises(httpx.HTTPStatusError):
        await notifier.notify_promotion(_registration(), _event())


@pytest.mark.asyncio
async def test_logging_notifier_never_raises(caplog):
    notifier = LoggingNotifier()
    with caplog.at_level("INFO", logger="quizreg.notify"):
        await notifier.notify_registration_outcome(_registration(), _event())
        await notifier.notify_promotion(_registration(), _event())
        await notifier.send_reminder(_registration(), _event())
    assert "E-mail disabled" in caplog.text


def test_build_notifier(monkeypatch):
    monkeypatch.setattr(notifications.config, "RESEND_API_KEY", "")
    assert isinstance(build_notifier(), LoggingNotifier)

    monkeypatch.setattr(notifications.config, "RESEND_API_KEY", "re_live")
    assert isinstance(build_notifier(), EmailNotifier)


@pytest.mark.asyncio
async def test_send_reminders_counts_failures():
    def handler(request):
        to = json.loads(request.content)["to"][0]
        if to.startswith("bad"):
            return httpx.Response(422, json={"message": "invalid recipient"})
        return httpx.Response(200, json={"id": "ok"})

    notifier = EmailNotifier(api_key="re_test", from_email="noreply@quizteams.org", transport=httpx.MockTransport(handler))
    regs = [
        _registration(1, captain_email="one@quizteams.org"),
        _registration(2, captain_email="bad@quizteams.org"),
        _registration(3, captain_email="three@quizteams.org"),
    ]
    result = await send_reminders(notifier, _event(), regs)
    assert result == {"sent": 2, "failed": [2]}


def test_templates_escape_captain_input():
    reg = _registration(team_name="<script>alert(1)</script>", captain_first_name="O'Brien")
    for render in (registration_outcome_email, promotion_email, reminder_email):
        _, html = render(reg, _event())
        assert "<script>" not in html
        assert "&lt;script&gt;alert(1)&lt;/script&gt;" in html
        assert "O&#39;Brien" in html
