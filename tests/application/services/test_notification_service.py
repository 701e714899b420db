"""Test notification scheduling and dispatch"""

from datetime import timedelta

import pytest

from shopfloor.application.services.notification_service import (NotificationService,
                                                                  notification_payload)
from shopfloor.domain.exceptions import ValidationException
from shopfloor.shared.enums import NotificationType
from shopfloor.shared.utils import ensure_utc, utc_now


@pytest.mark.asyncio
async def test_dispatch_due_sends_only_due(test_db, notifier, admin_user, employee_user):
    service = NotificationService(test_db, notifier)
    now = utc_now()
    soon = await service.schedule(employee_user.id, "soon", now + timedelta(minutes=1))
    later = await service.schedule(employee_user.id, "later", now + timedelta(hours=1))
    await test_db.commit()

    dispatch_time = now + timedelta(minutes=5)
    dispatched = await service.dispatch_due(now=dispatch_time)
    await test_db.commit()

    assert [n.id for n in dispatched] == [soon.id]
    assert ensure_utc(soon.sent_at) == dispatch_time
    assert ensure_utc(soon.created_at) == dispatch_time
    assert later.sent_at is None
    [(event, payload)] = notifier.for_user(employee_user.id)
    assert event == f"notification:{employee_user.id}"
    assert payload["content"] == "soon"

    # A second pass finds nothing left to send
    assert await service.dispatch_due(now=dispatch_time) == []


@pytest.mark.asyncio
async def test_schedule_rejects_inactive_recipient(test_db, employee_user):
    employee_user.is_active = False
    await test_db.commit()

    with pytest.raises(ValidationException):
        await NotificationService(test_db).schedule(
            employee_user.id, "hello", utc_now() + timedelta(hours=1)
        )


@pytest.mark.asyncio
async def test_create_without_push(test_db, notifier, employee_user):
    notification = await NotificationService(test_db, notifier).create(
        employee_user.id,
        "Line 2 stopped",
        type=NotificationType.PRODUCTION,
        metadata={"line": 2},
        push=False,
    )

    assert notifier.events == []
    payload = notification_payload(notification)
    assert payload["type"] == "PRODUCTION"
    assert payload["metadata"] == {"line": 2}
    assert payload["sent_at"] is None
    assert payload["created_at"].endswith("+00:00")
