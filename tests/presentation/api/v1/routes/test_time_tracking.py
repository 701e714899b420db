"""Test time tracking endpoints"""

from datetime import timedelta

import pytest
from fastapi import status

from shopfloor.infrastructure.persistence.models.time_tracking import WorkSession
from shopfloor.shared.enums import notification_event
from shopfloor.shared.utils import utc_now


async def start(client, headers):
    response = await client.post("/time-tracking/sessions/start", headers=headers)
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


async def backdate(db, session_id: str, hours: float) -> None:
    session = await db.get(WorkSession, session_id)
    session.start_time = utc_now() - timedelta(hours=hours)
    await db.commit()


@pytest.mark.asyncio
async def test_only_one_active_session(client, employee_user, auth_headers):
    headers = auth_headers(employee_user)
    session = await start(client, headers)
    assert session["end_time"] is None

    response = await client.post("/time-tracking/sessions/start", headers=headers)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "active work session" in response.json()["detail"]


@pytest.mark.asyncio
async def test_end_without_session(client, employee_user, auth_headers):
    response = await client.post("/time-tracking/sessions/end", headers=auth_headers(employee_user))

    assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.asyncio
async def test_break_requires_active_session(client, employee_user, auth_headers):
    response = await client.post("/time-tracking/breaks/start", headers=auth_headers(employee_user))

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "No active work session found"


@pytest.mark.asyncio
async def test_second_break_rejected(client, employee_user, auth_headers):
    headers = auth_headers(employee_user)
    await start(client, headers)
    first = await client.post("/time-tracking/breaks/start", headers=headers)
    assert first.status_code == status.HTTP_201_CREATED

    second = await client.post("/time-tracking/breaks/start", headers=headers)

    assert second.status_code == status.HTTP_400_BAD_REQUEST
    assert second.json()["detail"] == "You already have an active break"


@pytest.mark.asyncio
async def test_end_break_without_break(client, employee_user, auth_headers):
    headers = auth_headers(employee_user)
    await start(client, headers)

    response = await client.post("/time-tracking/breaks/end", headers=headers)

    assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.asyncio
async def test_end_session_closes_open_break(client, employee_user, auth_headers):
    headers = auth_headers(employee_user)
    await start(client, headers)
    await client.post("/time-tracking/breaks/start", headers=headers)

    response = await client.post(
        "/time-tracking/sessions/end", json={"notes": "Line 3 calibration"}, headers=headers
    )

    assert response.status_code == status.HTTP_200_OK
    session = response.json()
    assert session["end_time"] is not None
    assert session["notes"] == "Line 3 calibration"
    assert session["total_duration"] >= 0
    [closed] = session["breaks"]
    assert closed["end_time"] == session["end_time"]
    assert closed["duration"] is not None

    current = await client.get("/time-tracking/sessions/current", headers=headers)
    assert current.json() == {"session": None}


@pytest.mark.asyncio
async def test_total_duration_excludes_breaks(client, test_db, employee_user, auth_headers):
    headers = auth_headers(employee_user)
    session = await start(client, headers)
    await backdate(test_db, session["id"], hours=2)

    ended = await client.post("/time-tracking/sessions/end", headers=headers)

    # Two hours of wall time, no breaks; allow for the request itself
    assert 7200 <= ended.json()["total_duration"] <= 7205


@pytest.mark.asyncio
async def test_long_session_notifies_supervisors(
    client, test_db, notifier, manager_user, employee_user, auth_headers
):
    headers = auth_headers(employee_user)
    session = await start(client, headers)
    await backdate(test_db, session["id"], hours=13)

    ended = await client.post("/time-tracking/sessions/end", headers=headers)
    assert ended.status_code == status.HTTP_200_OK

    [(event, payload)] = notifier.for_user(manager_user.id)
    assert event == notification_event(manager_user.id)
    assert payload["content"].startswith("Work session of Emil Employee lasted 13.0 hours")
    assert payload["metadata"]["session_id"] == session["id"]
    assert notifier.for_user(employee_user.id) == []


@pytest.mark.asyncio
async def test_current_session_with_break(client, employee_user, auth_headers):
    headers = auth_headers(employee_user)
    session = await start(client, headers)
    await client.post("/time-tracking/breaks/start", headers=headers)

    current = (await client.get("/time-tracking/sessions/current", headers=headers)).json()

    assert current["session"]["id"] == session["id"]
    assert current["session"]["breaks"][0]["end_time"] is None


@pytest.mark.asyncio
async def test_list_sessions_with_stats(client, employee_user, auth_headers):
    headers = auth_headers(employee_user)
    for _ in range(2):
        await start(client, headers)
        await client.post("/time-tracking/sessions/end", headers=headers)
    await start(client, headers)

    response = await client.get("/time-tracking/sessions", params={"limit": 2}, headers=headers)

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert len(body["data"]) == 2
    assert body["pagination"]["total"] == 3
    assert body["stats"]["total_sessions"] == 3
    assert body["stats"]["total_break_duration"] == 0


@pytest.mark.asyncio
async def test_other_users_sessions_need_view_all(
    client, manager_user, employee_user, other_employee, auth_headers
):
    await start(client, auth_headers(other_employee))

    denied = await client.get(
        "/time-tracking/sessions",
        params={"user_id": other_employee.id},
        headers=auth_headers(employee_user),
    )
    assert denied.status_code == status.HTTP_403_FORBIDDEN

    allowed = await client.get(
        "/time-tracking/sessions",
        params={"user_id": other_employee.id},
        headers=auth_headers(manager_user),
    )
    assert allowed.status_code == status.HTTP_200_OK
    assert allowed.json()["pagination"]["total"] == 1

    active = await client.get("/time-tracking/sessions/active", headers=auth_headers(manager_user))
    assert [s["user_id"] for s in active.json()] == [other_employee.id]


@pytest.mark.asyncio
async def test_inverted_date_range_rejected(client, employee_user, auth_headers):
    response = await client.get(
        "/time-tracking/sessions",
        params={"from": "2026-03-02T00:00:00Z", "to": "2026-03-01T00:00:00Z"},
        headers=auth_headers(employee_user),
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.asyncio
async def test_notes_of_another_user_need_manage_level(
    client, manager_user, employee_user, other_employee, auth_headers
):
    session = await start(client, auth_headers(other_employee))
    url = f"/time-tracking/sessions/{session['id']}/notes"

    denied = await client.patch(url, json={"notes": "x"}, headers=auth_headers(employee_user))
    assert denied.status_code == status.HTTP_403_FORBIDDEN

    updated = await client.patch(
        url, json={"notes": "Covered for Wanda"}, headers=auth_headers(manager_user)
    )
    assert updated.status_code == status.HTTP_200_OK
    assert updated.json()["notes"] == "Covered for Wanda"


@pytest.mark.asyncio
async def test_settings(client, manager_user, employee_user, auth_headers):
    defaults = await client.get("/time-tracking/settings", headers=auth_headers(employee_user))
    assert defaults.json() == {
        "enable_break_button": True,
        "min_session_duration": 0,
        "max_session_duration": 720,
        "max_break_duration": 60,
    }

    denied = await client.put(
        "/time-tracking/settings",
        json={"enable_break_button": False},
        headers=auth_headers(employee_user),
    )
    assert denied.status_code == status.HTTP_403_FORBIDDEN

    updated = await client.put(
        "/time-tracking/settings",
        json={"enable_break_button": False},
        headers=auth_headers(manager_user),
    )
    assert updated.json()["enable_break_button"] is False

    headers = auth_headers(employee_user)
    await start(client, headers)
    response = await client.post("/time-tracking/breaks/start", headers=headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Breaks are disabled"


@pytest.mark.asyncio
async def test_invalid_settings_range(client, manager_user, auth_headers):
    response = await client.put(
        "/time-tracking/settings",
        json={"min_session_duration": 600, "max_session_duration": 60},
        headers=auth_headers(manager_user),
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
