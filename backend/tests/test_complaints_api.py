from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from app.models.complaint import Complaint
from app.services.complaint_service import refresh_open_complaint_scores


async def _insert(session_factory, **fields) -> int:
    defaults = {
        "title": "Broken projector",
        "description": "Room 204 projector has been dead for a week",
        "category": "facility",
        "urgency": "low",
        "status": "pending",
        "is_anonymous": True,
        "priority_score": 0,
    }
    defaults.update(fields)
    created_at = defaults.setdefault("created_at", datetime.now(timezone.utc))
    defaults.setdefault("updated_at", created_at)
    async with session_factory() as session:
        complaint = Complaint(**defaults)
        session.add(complaint)
        await session.commit()
        return complaint.id


async def _load(session_factory, complaint_id) -> Complaint:
    async with session_factory() as session:
        result = await session.execute(select(Complaint).where(Complaint.id == complaint_id))
        return result.scalar_one()


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_anonymous_complaint_scores_at_creation(client):
    response = await client.post(
        "/api/complaint/create",
        json={"title": "Ragging in hostel", "description": "Seniors in block C", "category": "bullying", "urgency": "critical"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    complaint = body["complaint"]
    assert complaint["priorityScore"] == 150
    assert complaint["priorityLevel"] == "high"
    assert complaint["isAnonymous"] is True
    assert complaint["user"] is None
    assert complaint["status"] == "pending"
    assert complaint["updates"] == []


@pytest.mark.asyncio
async def test_create_defaults_category_and_urgency(client):
    response = await client.post(
        "/api/complaint/create",
        json={"title": "Wifi", "description": "Library wifi drops", "category": "parking", "urgency": "asap"},
    )

    assert response.status_code == 201
    complaint = response.json()["complaint"]
    assert complaint["category"] == "other"
    assert complaint["urgency"] == "medium"
    assert complaint["priorityScore"] == 35
    assert complaint["priorityLevel"] == "low"


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    {"description": "no title"},
    {"title": "no description"},
    {"title": "   ", "description": "blank title"},
])
async def test_create_requires_title_and_description(client, payload):
    response = await client.post("/api/complaint/create", json=payload)

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "statusCode": 400,
        "message": "Title and description are required",
    }


@pytest.mark.asyncio
async def test_signed_in_user_can_attach_identity(client, student_user, student_headers):
    response = await client.post(
        "/api/complaint/create",
        json={"title": "Marks", "description": "Internal marks missing", "category": "academic", "isAnonymous": False},
        headers=student_headers,
    )

    assert response.status_code == 201
    complaint = response.json()["complaint"]
    assert complaint["isAnonymous"] is False
    assert complaint["user"]["username"] == student_user.username


@pytest.mark.asyncio
async def test_signed_in_user_is_anonymous_by_default(client, student_headers):
    response = await client.post(
        "/api/complaint/create",
        json={"title": "Canteen", "description": "Food quality"},
        headers=student_headers,
    )

    complaint = response.json()["complaint"]
    assert complaint["isAnonymous"] is True
    assert complaint["user"] is None


@pytest.mark.asyncio
async def test_invalid_token_on_create_falls_back_to_anonymous(client):
    response = await client.post(
        "/api/complaint/create",
        json={"title": "Lab", "description": "No chemicals", "isAnonymous": False},
        headers={"Authorization": "Bearer not-a-jwt"},
    )

    assert response.status_code == 201
    assert response.json()["complaint"]["isAnonymous"] is True


@pytest.mark.asyncio
async def test_null_anonymity_flag_counts_as_anonymous(client, student_headers):
    response = await client.post(
        "/api/complaint/create",
        json={"title": "Hostel", "description": "No water since Monday", "isAnonymous": None},
        headers=student_headers,
    )

    assert response.status_code == 201
    complaint = response.json()["complaint"]
    assert complaint["isAnonymous"] is True
    assert complaint["user"] is None


@pytest.mark.asyncio
async def test_create_rejects_overlong_title(client):
    response = await client.post(
        "/api/complaint/create",
        json={"title": "x" * 300, "description": "Title longer than the column allows"},
    )

    assert response.status_code == 422
    assert response.json()["success"] is False


# ---------------------------------------------------------------------------
# Admin listing
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_admin_list_refreshes_open_scores_and_ranks(client, session_factory, admin_headers):
    now = datetime.now(timezone.utc)
    urgent_id = await _insert(
        session_factory, category="bullying", urgency="critical", created_at=now - timedelta(days=2),
    )
    closed_id = await _insert(
        session_factory, category="bullying", urgency="critical", status="resolved",
        created_at=now - timedelta(days=40), priority_score=150,
    )
    working_id = await _insert(
        session_factory, category="staff", urgency="high", status="in-progress",
        created_at=now - timedelta(days=10), priority_score=60,
    )
    stale_updated_at = (await _load(session_factory, working_id)).updated_at

    response = await client.get("/api/complaint/all", headers=admin_headers)

    assert response.status_code == 200
    complaints = response.json()["complaints"]
    assert [c["id"] for c in complaints] == [urgent_id, closed_id, working_id]
    assert [c["priorityScore"] for c in complaints] == [152, 150, 70]

    # Refreshed scores are persisted; closed ones are left alone
    assert (await _load(session_factory, urgent_id)).priority_score == 152
    assert (await _load(session_factory, working_id)).priority_score == 70
    assert (await _load(session_factory, closed_id)).priority_score == 150
    assert (await _load(session_factory, working_id)).updated_at == stale_updated_at


@pytest.mark.asyncio
async def test_admin_list_ties_go_to_older_complaint(client, session_factory, admin_headers):
    now = datetime.now(timezone.utc)
    newer = await _insert(session_factory, status="rejected", priority_score=80, created_at=now - timedelta(days=1))
    older = await _insert(session_factory, status="resolved", priority_score=80, created_at=now - timedelta(days=5))
    top = await _insert(session_factory, status="resolved", priority_score=95, created_at=now)

    response = await client.get("/api/complaint/all", headers=admin_headers)

    assert [c["id"] for c in response.json()["complaints"]] == [top, older, newer]


@pytest.mark.asyncio
async def test_admin_list_requires_admin(client, student_headers):
    response = await client.get("/api/complaint/all", headers=student_headers)

    assert response.status_code == 403
    assert response.json()["message"] == "Access denied. Admin only."


@pytest.mark.asyncio
async def test_admin_list_requires_authentication(client):
    response = await client.get("/api/complaint/all")

    assert response.status_code == 401
    assert response.json()["success"] is False


# ---------------------------------------------------------------------------
# Own complaints
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_my_complaints_only_returns_linked_complaints(client, student_headers):
    await client.post(
        "/api/complaint/create",
        json={"title": "Mine", "description": "linked", "isAnonymous": False},
        headers=student_headers,
    )
    await client.post(
        "/api/complaint/create",
        json={"title": "Anon", "description": "not linked"},
        headers=student_headers,
    )

    response = await client.get("/api/complaint/my-complaints", headers=student_headers)

    assert response.status_code == 200
    assert [c["title"] for c in response.json()["complaints"]] == ["Mine"]


@pytest.mark.asyncio
async def test_my_complaints_requires_authentication(client):
    response = await client.get("/api/complaint/my-complaints")
    assert response.status_code == 401


# ---------------------------------------------------------------------------
# Update / delete
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_status_appends_to_log(client, session_factory, admin_user, admin_headers):
    complaint_id = await _insert(session_factory)

    first = await client.put(
        f"/api/complaint/{complaint_id}/update",
        json={"status": "in-progress", "adminResponse": "Technician assigned"},
        headers=admin_headers,
    )
    second = await client.put(
        f"/api/complaint/{complaint_id}/update",
        json={"adminResponse": "Part ordered"},
        headers=admin_headers,
    )

    assert first.status_code == 200
    assert second.status_code == 200
    complaint = second.json()["complaint"]
    assert complaint["status"] == "in-progress"
    assert complaint["adminResponse"] == "Part ordered"
    assert [(u["status"], u["message"]) for u in complaint["updates"]] == [
        ("in-progress", "Technician assigned"),
        (None, "Part ordered"),
    ]
    assert complaint["updates"][0]["updatedBy"]["username"] == admin_user.username


@pytest.mark.asyncio
async def test_raising_urgency_rescores_open_complaint(client, session_factory, admin_headers):
    complaint_id = await _insert(session_factory, category="facility", urgency="low", priority_score=15)

    response = await client.put(
        f"/api/complaint/{complaint_id}/update",
        json={"urgency": "critical"},
        headers=admin_headers,
    )

    complaint = response.json()["complaint"]
    assert complaint["urgency"] == "critical"
    assert complaint["priorityScore"] == 60


@pytest.mark.asyncio
async def test_reprioritising_closed_complaint_keeps_frozen_score(client, session_factory, admin_headers):
    complaint_id = await _insert(
        session_factory, category="facility", urgency="low", status="resolved", priority_score=20,
    )

    response = await client.put(
        f"/api/complaint/{complaint_id}/update",
        json={"category": "bullying"},
        headers=admin_headers,
    )

    complaint = response.json()["complaint"]
    assert complaint["category"] == "bullying"
    assert complaint["priorityScore"] == 20


@pytest.mark.asyncio
async def test_update_requires_some_change(client, session_factory, admin_headers):
    complaint_id = await _insert(session_factory)

    response = await client.put(f"/api/complaint/{complaint_id}/update", json={}, headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Provide a status or progress update message."


@pytest.mark.asyncio
async def test_update_rejects_unknown_status(client, session_factory, admin_headers):
    complaint_id = await _insert(session_factory)

    response = await client.put(
        f"/api/complaint/{complaint_id}/update", json={"status": "closed"}, headers=admin_headers,
    )

    assert response.status_code == 422
    assert response.json()["success"] is False


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{"category": "bulying"}, {"urgency": "urgent"}])
async def test_update_rejects_unknown_category_or_urgency(client, session_factory, admin_headers, payload):
    complaint_id = await _insert(session_factory, category="bullying", urgency="critical", priority_score=150)

    response = await client.put(f"/api/complaint/{complaint_id}/update", json=payload, headers=admin_headers)

    assert response.status_code == 422
    complaint = await _load(session_factory, complaint_id)
    assert complaint.category == "bullying"
    assert complaint.urgency == "critical"
    assert complaint.priority_score == 150


@pytest.mark.asyncio
async def test_update_missing_complaint(client, admin_headers):
    response = await client.put("/api/complaint/999/update", json={"status": "resolved"}, headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_requires_admin(client, session_factory, student_headers):
    complaint_id = await _insert(session_factory)

    response = await client.put(
        f"/api/complaint/{complaint_id}/update", json={"status": "resolved"}, headers=student_headers,
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_delete_complaint(client, session_factory, admin_headers):
    complaint_id = await _insert(session_factory)

    response = await client.delete(f"/api/complaint/{complaint_id}/delete", headers=admin_headers)
    missing = await client.delete(f"/api/complaint/{complaint_id}/delete", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["message"] == "Complaint deleted successfully"
    assert missing.status_code == 404


# ---------------------------------------------------------------------------
# Scheduled refresh
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_scheduled_refresh_updates_open_complaints_only(session_factory):
    now = datetime.now(timezone.utc)
    open_id = await _insert(session_factory, category="academic", urgency="high", created_at=now - timedelta(days=4))
    closed_id = await _insert(
        session_factory, category="academic", urgency="high", status="rejected",
        created_at=now - timedelta(days=4), priority_score=1,
    )

    await refresh_open_complaint_scores(session_factory)

    assert (await _load(session_factory, open_id)).priority_score == 64
    assert (await _load(session_factory, closed_id)).priority_score == 1
