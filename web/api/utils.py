"""Shared API utilities: JSON shapes for events and registrations."""

from quizreg.models import Event, Registration


def _iso(value):
    return value.isoformat() if value else None


def event_to_dict(event: Event) -> dict:
    """Event fields plus derived availability."""
    return {
        "id": event.id,
        "title": event.title,
        "description": event.description,
        "date": _iso(event.date),
        "start_time": event.start_time,
        "duration": event.duration,
        "max_teams": event.max_teams,
        "min_team_size": event.min_team_size,
        "max_team_size": event.max_team_size,
        "location": event.location,
        "price": event.price,
        "status": event.status.value,
        "confirmed_count": event.confirmed_count,
        "available_spots": event.available_spots,
        "is_full": event.is_full,
    }


def registration_to_dict(reg: Registration, event: Event | None = None) -> dict:
    """Registration fields. Pass the event to embed a short summary of it."""
    data = {
        "id": reg.id,
        "event_id": reg.event_id,
        "team_name": reg.team_name,
        "team_size": reg.team_size,
        "captain_first_name": reg.captain_first_name,
        "captain_last_name": reg.captain_last_name,
        "captain_email": reg.captain_email,
        "captain_phone": reg.captain_phone,
        "experience": reg.experience.value,
        "how_heard_about": reg.how_heard_about,
        "notes": reg.notes,
        "status": reg.status.value,
        "created_at": _iso(reg.created_at),
    }
    if event is not None:
        data["event"] = {
            "id": event.id,
            "title": event.title,
            "date": _iso(event.date),
            "start_time": event.start_time,
            "status": event.status.value,
        }
    return data
