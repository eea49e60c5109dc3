"""
Integration tests for shift scheduling routes.

Tests cover:
- Creating shifts and permission checks
- Window validation and overlap detection (with manager override)
- Listing shifts with own/any visibility
- Reading, rescheduling and deleting a single shift
"""

import uuid
from datetime import datetime

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy import select

from mesanet.core.config import settings
from mesanet.models.audit_log import AuditLog
from mesanet.models.enums import AuditAction

API = settings.api_prefix
SCHEDULES = f"{API}/timesheets/schedules"
DAY_SHIFT = ("2026-11-02T09:00:00Z", "2026-11-02T17:00:00Z")
EVENING_SHIFT = ("2026-11-02T18:00:00Z", "2026-11-02T22:00:00Z")


def shift(user_id, start: str, end: str, **extra) -> dict:
    return {
        "userId": str(user_id),
        "scheduledStart": start,
        "scheduledEnd": end,
        **extra,
    }


async def schedule(client: AsyncClient, headers: dict, user_id, start: str, end: str) -> dict:
    response = await client.post(SCHEDULES, headers=headers, json=shift(user_id, start, end))
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest_asyncio.fixture
async def manager_headers(async_client, manager_user, login) -> dict:
    return await login("manager@example.com")


# ============================================================================
# Create Tests
# ============================================================================
class TestCreateSchedule:
    """Test POST /timesheets/schedules."""

    @pytest.mark.asyncio
    async def test_manager_schedules_shift(
        self, async_client: AsyncClient, manager_headers, manager_user, test_user, db_session
    ):
        # Execute
        response = await async_client.post(
            SCHEDULES,
            headers=manager_headers,
            json=shift(
                test_user.id,
                "2026-11-02T09:00:00+01:00",
                "2026-11-02T17:00:00+01:00",
                locationId="store-12",
                notes="Opening shift",
            ),
        )

        # Verify
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["userId"] == str(test_user.id)
        assert data["status"] == "scheduled"
        assert data["createdBy"] == str(manager_user.id)
        assert data["locationId"] == "store-12"
        start = datetime.fromisoformat(data["scheduledStart"])
        assert start == datetime.fromisoformat("2026-11-02T08:00:00+00:00")
        assert start.utcoffset().total_seconds() == 0

        result = await db_session.execute(
            select(AuditLog).where(AuditLog.action == AuditAction.SHIFT_CREATE)
        )
        entry = result.scalar_one()
        assert entry.resource_name == "testuser@example.com"
        assert entry.details["override"] is False

    @pytest.mark.asyncio
    async def test_user_cannot_schedule(self, async_client: AsyncClient, test_user, login):
        headers = await login("testuser@example.com")

        response = await async_client.post(
            SCHEDULES,
            headers=headers,
            json=shift(test_user.id, "2026-11-02T09:00:00Z", "2026-11-02T17:00:00Z"),
        )

        assert response.status_code == 403
        assert response.json()["messages"] == [
            "Missing required permission: shift:create:any"
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "start, end",
        [
            ("2026-11-02T17:00:00Z", "2026-11-02T09:00:00Z"),
            ("2026-11-02T09:00:00Z", "2026-11-02T09:00:00Z"),
        ],
    )
    async def test_end_must_follow_start(
        self, async_client: AsyncClient, manager_headers, test_user, start, end
    ):
        response = await async_client.post(
            SCHEDULES, headers=manager_headers, json=shift(test_user.id, start, end)
        )

        assert response.status_code == 400
        assert response.json()["messages"] == ["Scheduled end time must be after start time"]

    @pytest.mark.asyncio
    async def test_naive_timestamp_is_rejected(
        self, async_client: AsyncClient, manager_headers, test_user
    ):
        response = await async_client.post(
            SCHEDULES,
            headers=manager_headers,
            json=shift(test_user.id, "2026-11-02T09:00:00", "2026-11-02T17:00:00Z"),
        )

        assert response.status_code == 400
        assert response.json()["messages"][0].startswith("scheduledStart:")

    @pytest.mark.asyncio
    async def test_unknown_employee(self, async_client: AsyncClient, manager_headers):
        response = await async_client.post(
            SCHEDULES,
            headers=manager_headers,
            json=shift(uuid.uuid4(), "2026-11-02T09:00:00Z", "2026-11-02T17:00:00Z"),
        )

        assert response.status_code == 404
        assert response.json()["messages"] == ["User not found"]


class TestOverlap:
    """Overlapping scheduled shifts of the same employee."""

    @pytest.mark.asyncio
    async def test_overlap_is_rejected(
        self, async_client: AsyncClient, manager_headers, test_user
    ):
        first = await async_client.post(
            SCHEDULES,
            headers=manager_headers,
            json=shift(test_user.id, "2026-11-02T09:00:00Z", "2026-11-02T17:00:00Z"),
        )
        second = await async_client.post(
            SCHEDULES,
            headers=manager_headers,
            json=shift(test_user.id, "2026-11-02T16:00:00Z", "2026-11-02T20:00:00Z"),
        )

        assert first.status_code == 201
        assert second.status_code == 400
        assert second.json()["messages"] == [
            "Employee already has a scheduled shift during this time"
        ]

    @pytest.mark.asyncio
    async def test_back_to_back_shifts_are_allowed(
        self, async_client: AsyncClient, manager_headers, test_user
    ):
        await async_client.post(
            SCHEDULES,
            headers=manager_headers,
            json=shift(test_user.id, "2026-11-02T09:00:00Z", "2026-11-02T17:00:00Z"),
        )

        response = await async_client.post(
            SCHEDULES,
            headers=manager_headers,
            json=shift(test_user.id, "2026-11-02T17:00:00Z", "2026-11-02T21:00:00Z"),
        )

        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_other_employees_do_not_clash(
        self, async_client: AsyncClient, manager_headers, test_user, manager_user
    ):
        await async_client.post(
            SCHEDULES,
            headers=manager_headers,
            json=shift(test_user.id, "2026-11-02T09:00:00Z", "2026-11-02T17:00:00Z"),
        )

        response = await async_client.post(
            SCHEDULES,
            headers=manager_headers,
            json=shift(manager_user.id, "2026-11-02T09:00:00Z", "2026-11-02T17:00:00Z"),
        )

        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_manager_override(
        self, async_client: AsyncClient, manager_headers, test_user, db_session
    ):
        await async_client.post(
            SCHEDULES,
            headers=manager_headers,
            json=shift(test_user.id, "2026-11-02T09:00:00Z", "2026-11-02T17:00:00Z"),
        )

        response = await async_client.post(
            SCHEDULES,
            headers=manager_headers,
            json=shift(
                test_user.id,
                "2026-11-02T12:00:00Z",
                "2026-11-02T14:00:00Z",
                overrideAllowed=True,
            ),
        )

        assert response.status_code == 201
        result = await db_session.execute(
            select(AuditLog)
            .where(AuditLog.action == AuditAction.SHIFT_CREATE)
            .order_by(AuditLog.created_at)
        )
        assert [e.details["override"] for e in result.scalars()] == [False, True]

    @pytest.mark.asyncio
    async def test_override_needs_update_permission(
        self, async_client: AsyncClient, manager_headers, admin_user, test_user, login
    ):
        await async_client.post(
            SCHEDULES,
            headers=manager_headers,
            json=shift(test_user.id, "2026-11-02T09:00:00Z", "2026-11-02T17:00:00Z"),
        )
        admin_headers = await login("admin@example.com")

        response = await async_client.post(
            SCHEDULES,
            headers=admin_headers,
            json=shift(
                test_user.id,
                "2026-11-02T12:00:00Z",
                "2026-11-02T14:00:00Z",
                overrideAllowed=True,
            ),
        )

        assert response.status_code == 400


# ============================================================================
# List Tests
# ============================================================================
class TestListSchedules:
    """Test GET /timesheets/schedules."""

    @pytest_asyncio.fixture
    async def shifts(self, async_client, manager_headers, manager_user, test_user):
        for user_id, day in ((test_user.id, "02"), (test_user.id, "03"), (manager_user.id, "02")):
            response = await async_client.post(
                SCHEDULES,
                headers=manager_headers,
                json=shift(user_id, f"2026-11-{day}T09:00:00Z", f"2026-11-{day}T17:00:00Z"),
            )
            assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_user_sees_only_own_shifts(
        self, async_client: AsyncClient, shifts, test_user, manager_user, login
    ):
        headers = await login("testuser@example.com")

        response = await async_client.get(
            SCHEDULES, headers=headers, params={"userId": str(manager_user.id)}
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data) == 2
        assert {s["userId"] for s in data} == {str(test_user.id)}

    @pytest.mark.asyncio
    async def test_manager_sees_everyone(self, async_client: AsyncClient, shifts, manager_headers):
        response = await async_client.get(SCHEDULES, headers=manager_headers)

        data = response.json()["data"]
        assert len(data) == 3
        starts = [s["scheduledStart"] for s in data]
        assert starts == sorted(starts)

    @pytest.mark.asyncio
    async def test_manager_filters_by_user_and_window(
        self, async_client: AsyncClient, shifts, manager_headers, test_user
    ):
        response = await async_client.get(
            SCHEDULES,
            headers=manager_headers,
            params={
                "userId": str(test_user.id),
                "start": "2026-11-03T00:00:00Z",
                "end": "2026-11-04T00:00:00Z",
            },
        )

        data = response.json()["data"]
        assert len(data) == 1
        assert datetime.fromisoformat(data[0]["scheduledStart"]).day == 3

    @pytest.mark.asyncio
    async def test_user_without_shift_permissions(
        self, async_client: AsyncClient, make_user, login
    ):
        await make_user("noroles@example.com", roles=())
        headers = await login("noroles@example.com")

        response = await async_client.get(SCHEDULES, headers=headers)

        assert response.status_code == 403
        assert response.json()["messages"] == ["Missing required permissions"]


# ============================================================================
# Single Shift Tests
# ============================================================================
class TestGetSchedule:
    """Test GET /timesheets/schedules/{shift_id}."""

    @pytest.mark.asyncio
    async def test_manager_reads_shift(
        self, async_client: AsyncClient, manager_headers, test_user
    ):
        created = await schedule(async_client, manager_headers, test_user.id, *DAY_SHIFT)

        response = await async_client.get(f"{SCHEDULES}/{created['id']}", headers=manager_headers)

        assert response.status_code == 200
        assert response.json()["data"] == created

    @pytest.mark.asyncio
    async def test_unknown_and_malformed_ids(self, async_client: AsyncClient, manager_headers):
        unknown = await async_client.get(f"{SCHEDULES}/{uuid.uuid4()}", headers=manager_headers)
        malformed = await async_client.get(f"{SCHEDULES}/shift-1", headers=manager_headers)

        assert unknown.status_code == 404
        assert unknown.json()["messages"] == ["Shift not found"]
        assert malformed.status_code == 400
        assert malformed.json()["messages"] == ["Invalid shift_id"]

    @pytest.mark.asyncio
    async def test_user_cannot_read_by_id(
        self, async_client: AsyncClient, manager_headers, test_user, login
    ):
        created = await schedule(async_client, manager_headers, test_user.id, *DAY_SHIFT)
        headers = await login("testuser@example.com")

        response = await async_client.get(f"{SCHEDULES}/{created['id']}", headers=headers)

        assert response.status_code == 403
        assert response.json()["messages"] == ["Missing required permission: shift:read:any"]


class TestUpdateSchedule:
    """Test PATCH /timesheets/schedules/{shift_id}."""

    @pytest.mark.asyncio
    async def test_reschedule_is_audited(
        self, async_client: AsyncClient, manager_headers, test_user, db_session
    ):
        created = await schedule(async_client, manager_headers, test_user.id, *DAY_SHIFT)

        # Moving a shift within its own window is not an overlap
        response = await async_client.patch(
            f"{SCHEDULES}/{created['id']}",
            headers=manager_headers,
            json={"scheduledStart": "2026-11-02T10:00:00Z", "notes": "Late start"},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert datetime.fromisoformat(data["scheduledStart"]) == datetime.fromisoformat(
            "2026-11-02T10:00:00+00:00"
        )
        assert data["scheduledEnd"] == created["scheduledEnd"]
        assert data["notes"] == "Late start"

        result = await db_session.execute(
            select(AuditLog).where(AuditLog.action == AuditAction.SHIFT_UPDATE)
        )
        entry = result.scalar_one()
        assert entry.resource_id == created["id"]
        assert set(entry.changes) == {"scheduled_start", "notes"}
        assert entry.changes["notes"] == {"before": None, "after": "Late start"}
        assert entry.details == {"override": False}

    @pytest.mark.asyncio
    async def test_reschedule_onto_another_shift_is_rejected(
        self, async_client: AsyncClient, manager_headers, test_user
    ):
        await schedule(async_client, manager_headers, test_user.id, *DAY_SHIFT)
        later = await schedule(async_client, manager_headers, test_user.id, *EVENING_SHIFT)

        clash = await async_client.patch(
            f"{SCHEDULES}/{later['id']}",
            headers=manager_headers,
            json={"scheduledStart": "2026-11-02T16:00:00Z"},
        )
        override = await async_client.patch(
            f"{SCHEDULES}/{later['id']}",
            headers=manager_headers,
            json={"scheduledStart": "2026-11-02T16:00:00Z", "overrideAllowed": True},
        )

        assert clash.status_code == 400
        assert clash.json()["messages"] == [
            "Employee already has a scheduled shift during this time"
        ]
        assert override.status_code == 200

    @pytest.mark.asyncio
    async def test_cancelled_shift_frees_the_window(
        self, async_client: AsyncClient, manager_headers, test_user
    ):
        first = await schedule(async_client, manager_headers, test_user.id, *DAY_SHIFT)

        cancel = await async_client.patch(
            f"{SCHEDULES}/{first['id']}", headers=manager_headers, json={"status": "cancelled"}
        )
        replacement = await async_client.post(
            SCHEDULES,
            headers=manager_headers,
            json=shift(test_user.id, "2026-11-02T09:00:00Z", "2026-11-02T17:00:00Z"),
        )
        restore = await async_client.patch(
            f"{SCHEDULES}/{first['id']}", headers=manager_headers, json={"status": "scheduled"}
        )

        assert cancel.status_code == 200
        assert cancel.json()["data"]["status"] == "cancelled"
        assert replacement.status_code == 201
        assert restore.status_code == 400

    @pytest.mark.asyncio
    async def test_window_must_stay_ordered(
        self, async_client: AsyncClient, manager_headers, test_user
    ):
        created = await schedule(async_client, manager_headers, test_user.id, *DAY_SHIFT)

        response = await async_client.patch(
            f"{SCHEDULES}/{created['id']}",
            headers=manager_headers,
            json={"scheduledEnd": "2026-11-02T08:00:00Z"},
        )

        assert response.status_code == 400
        assert response.json()["messages"] == ["Scheduled end time must be after start time"]

    @pytest.mark.asyncio
    async def test_admin_cannot_update(
        self, async_client: AsyncClient, manager_headers, admin_user, test_user, login
    ):
        created = await schedule(async_client, manager_headers, test_user.id, *DAY_SHIFT)
        admin_headers = await login("admin@example.com")

        response = await async_client.patch(
            f"{SCHEDULES}/{created['id']}", headers=admin_headers, json={"notes": "x"}
        )

        assert response.status_code == 403
        assert response.json()["messages"] == ["Missing required permission: shift:update:any"]


class TestDeleteSchedule:
    """Test DELETE /timesheets/schedules/{shift_id}."""

    @pytest.mark.asyncio
    async def test_super_admin_deletes_shift(
        self,
        async_client: AsyncClient,
        manager_headers,
        super_admin_user,
        test_user,
        login,
        db_session,
    ):
        created = await schedule(async_client, manager_headers, test_user.id, *DAY_SHIFT)
        root_headers = await login("root@example.com")

        response = await async_client.delete(
            f"{SCHEDULES}/{created['id']}", headers=root_headers
        )

        assert response.status_code == 200
        assert response.json()["data"]["message"] == "Shift deleted successfully"
        missing = await async_client.get(f"{SCHEDULES}/{created['id']}", headers=root_headers)
        assert missing.status_code == 404

        result = await db_session.execute(
            select(AuditLog).where(AuditLog.action == AuditAction.SHIFT_DELETE)
        )
        entry = result.scalar_one()
        assert entry.resource_id == created["id"]
        assert entry.details["user_id"] == str(test_user.id)

    @pytest.mark.asyncio
    async def test_manager_cannot_delete(
        self, async_client: AsyncClient, manager_headers, test_user
    ):
        created = await schedule(async_client, manager_headers, test_user.id, *DAY_SHIFT)

        response = await async_client.delete(
            f"{SCHEDULES}/{created['id']}", headers=manager_headers
        )

        assert response.status_code == 403
        assert response.json()["messages"] == ["Missing required permission: shift:delete:any"]
        still_there = await async_client.get(
            f"{SCHEDULES}/{created['id']}", headers=manager_headers
        )
        assert still_there.status_code == 200
