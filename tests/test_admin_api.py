"""Tests for the admin endpoints: dashboard, registration list, export, overrides and reminders."""
import csv
import io

import pytest

from conftest import load_event, team


async def _moderator_headers(client, auth_headers):
    await client.post(
        "/api/auth/users",
        json={"username": "host", "password": "hostpass1", "role": "moderator"},
        headers=auth_headers,
    )
    r = await client.post("/api/auth/login", json={"username": "host", "password": "hostpass1"})
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.mark.asyncio
async def test_admin_endpoints_require_auth(client, auth_headers, make_event):
    eid = await make_event()
    for path in ("/api/admin/dashboard", "/api/admin/events", "/api/admin/registrations", f"/api/admin/export/{eid}"):
        r = await client.get(path)
        assert r.status_code == 401, path

    mod_headers = await _moderator_headers(client, auth_headers)
    r = await client.get("/api/admin/dashboard", headers=mod_headers)
    assert r.status_code == 200
    r = await client.put("/api/admin/registrations/1/status", json={"status": "CONFIRMED"}, headers=mod_headers)
    assert r.status_code == 403
    r = await client.post(f"/api/admin/events/{eid}/reminders", headers=mod_headers)
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_dashboard(client, auth_headers, make_event, workflow):
    eid = await make_event(title="Music Quiz", max_teams=1)
    other = await make_event(title="Movie Quiz", max_teams=4)
    await workflow.register_team(eid, team("Owls"))
    await workflow.register_team(eid, team("Foxes"))
    await workflow.register_team(other, team("Bears"))

    r = await client.get("/api/admin/dashboard", headers=auth_headers)
    assert r.status_code == 200
    data = r.json()
    assert data["stats"] == {
        "total_events": 2,
        "active_events": 1,
        "total_registrations": 3,
        "confirmed_registrations": 2,
    }
    assert [reg["team_name"] for reg in data["recent_registrations"]] == ["Bears", "Foxes", "Owls"]
    assert data["recent_registrations"][0]["event"]["title"] == "Movie Quiz"

    by_id = {row["id"]: row for row in data["event_stats"]}
    assert by_id[eid]["status"] == "FULL"
    assert by_id[eid]["confirmed_count"] == 1
    assert by_id[eid]["waitlist_count"] == 1
    assert by_id[other]["waitlist_count"] == 0


@pytest.mark.asyncio
async def test_admin_events_include_closed(client, auth_headers, make_event, workflow):
    eid = await make_event(max_teams=1)
    await workflow.register_team(eid, team("Owls"))
    r = await client.get("/api/admin/events", headers=auth_headers)
    assert r.status_code == 200
    assert [(e["id"], e["status"]) for e in r.json()] == [(eid, "FULL")]


@pytest.mark.asyncio
async def test_list_registrations_filters_and_pages(client, auth_headers, make_event, workflow):
    eid = await make_event(max_teams=2)
    other = await make_event(max_teams=2)
    for name in ("Owls", "Foxes", "Bears"):
        await workflow.register_team(eid, team(name))
    await workflow.register_team(other, team("Wolves"))

    r = await client.get("/api/admin/registrations", params={"event_id": eid}, headers=auth_headers)
    assert r.status_code == 200
    data = r.json()
    assert [reg["team_name"] for reg in data["registrations"]] == ["Bears", "Foxes", "Owls"]
    assert data["pagination"] == {"page": 1, "limit": 50, "total": 3, "pages": 1}

    r = await client.get(
        "/api/admin/registrations", params={"event_id": eid, "status": "WAITLIST"}, headers=auth_headers
    )
    assert [reg["team_name"] for reg in r.json()["registrations"]] == ["Bears"]

    r = await client.get("/api/admin/registrations", params={"page": 2, "limit": 3}, headers=auth_headers)
    data = r.json()
    assert [reg["team_name"] for reg in data["registrations"]] == ["Owls"]
    assert data["pagination"] == {"page": 2, "limit": 3, "total": 4, "pages": 2}

    r = await client.get("/api/admin/registrations", params={"status": "BOGUS"}, headers=auth_headers)
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_export_confirmed_teams(client, auth_headers, make_event, workflow):
    eid = await make_event(title="Quiz Night: Finals", max_teams=1)
    await workflow.register_team(eid, team("Owls", 3, captain_first_name="Léa"))
    await workflow.register_team(eid, team("Foxes"))

    r = await client.get(f"/api/admin/export/{eid}", headers=auth_headers)
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    assert r.headers["content-disposition"] == 'attachment; filename="Quiz_Night_Finals_team_registrations.csv"'
    assert r.content.startswith(b"\xef\xbb\xbf")

    rows = list(csv.reader(io.StringIO(r.content.decode("utf-8-sig"))))
    assert rows[0] == [
        "Team name",
        "Team size",
        "Captain first name",
        "Captain last name",
        "Email",
        "Phone",
        "Experience",
        "Registered on",
    ]
    # Waitlisted teams are left out
    assert len(rows) == 2
    assert rows[1][:7] == ["Owls", "3", "Léa", "Petrova", "owls@quizteams.org", "+375291234567", "BEGINNER"]


@pytest.mark.asyncio
async def test_export_unknown_event(client, auth_headers):
    r = await client.get("/api/admin/export/999", headers=auth_headers)
    assert r.status_code == 404
    assert r.json()["code"] == "event_not_found"


@pytest.mark.asyncio
async def test_status_override(client, auth_headers, make_event, workflow, notifier):
    eid = await make_event(max_teams=1)
    owls = await workflow.register_team(eid, team("Owls"))
    foxes = await workflow.register_team(eid, team("Foxes"))

    r = await client.put(
        f"/api/admin/registrations/{foxes.registration.id}/status",
        json={"status": "CONFIRMED"},
        headers=auth_headers,
    )
    assert r.status_code == 400
    assert r.json()["code"] == "event_full"

    r = await client.put(
        f"/api/admin/registrations/{owls.registration.id}/status",
        json={"status": "WAITLIST"},
        headers=auth_headers,
    )
    assert r.status_code == 200
    data = r.json()
    assert data["registration"]["status"] == "WAITLIST"
    assert data["promoted"]["team_name"] == "Foxes"
    assert data["promoted"]["status"] == "CONFIRMED"
    assert ("promotion", "Foxes", "CONFIRMED") in notifier.sent

    event = await load_event(eid)
    assert event.confirmed_count == 1

    r = await client.put(
        f"/api/admin/registrations/{owls.registration.id}/status",
        json={"status": "CANCELLED"},
        headers=auth_headers,
    )
    assert r.status_code == 200
    assert r.json()["promoted"] is None

    r = await client.put(
        f"/api/admin/registrations/{owls.registration.id}/status",
        json={"status": "WAITLIST"},
        headers=auth_headers,
    )
    assert r.status_code == 400
    assert r.json()["code"] == "registration_cancelled"


@pytest.mark.asyncio
async def test_status_override_unknown_registration(client, auth_headers):
    r = await client.put("/api/admin/registrations/999/status", json={"status": "CONFIRMED"}, headers=auth_headers)
    assert r.status_code == 404
    assert r.json()["code"] == "registration_not_found"


@pytest.mark.asyncio
async def test_send_reminders(client, auth_headers, make_event, workflow, notifier):
    eid = await make_event(max_teams=2)
    await workflow.register_team(eid, team("Owls"))
    await workflow.register_team(eid, team("Foxes"))
    await workflow.register_team(eid, team("Bears"))
    notifier.sent.clear()

    r = await client.post(f"/api/admin/events/{eid}/reminders", headers=auth_headers)
    assert r.status_code == 200
    assert r.json() == {"sent": 2, "failed": []}
    assert notifier.sent == [("reminder", "Owls", "CONFIRMED"), ("reminder", "Foxes", "CONFIRMED")]
