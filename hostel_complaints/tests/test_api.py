"""
API endpoint tests for all routes.
Uses in-memory SQLite + dependency-overridden FastAPI test client.
"""
import os

from sqlalchemy.exc import OperationalError

from hostel_complaints.config import get_settings
from hostel_complaints.models.notification import Notification, NotificationType

COMPLAINT = {
    "title": "Broken chair in hostel",
    "description": "The chair in my room has a broken leg and wobbles",
    "category": "furniture",
    "priority": "high",
}


async def _file(client, **overrides):
    r = await client.post("/api/complaints/", data={**COMPLAINT, **overrides})
    assert r.status_code == 201, r.text
    return r.json()["complaint"]


# ===================== HEALTH / ROOT =====================


async def test_root(unauth_client):
    r = await unauth_client.get("/")
    assert r.status_code == 200
    assert r.json()["status"] == "running"


async def test_health(unauth_client):
    r = await unauth_client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"


# ===================== AUTH =====================


async def test_login_success(unauth_client, seed_data):
    r = await unauth_client.post(
        "/api/auth/login",
        json={"email": "asha@hostel.edu", "password": "student123"},
    )
    assert r.status_code == 200
    body = r.json()
    assert "access_token" in body
    assert body["user"]["role"] == "student"


async def test_login_wrong_password(unauth_client, seed_data):
    r = await unauth_client.post(
        "/api/auth/login",
        json={"email": "asha@hostel.edu", "password": "wrong"},
    )
    assert r.status_code == 401
    assert r.json()["success"] is False


async def test_login_role_mismatch(unauth_client, seed_data):
    r = await unauth_client.post(
        "/api/auth/login",
        json={"email": "asha@hostel.edu", "password": "student123", "role": "admin"},
    )
    assert r.status_code == 403


async def test_register_new_user(unauth_client, seed_data):
    r = await unauth_client.post(
        "/api/auth/register",
        json={
            "name": "New Student",
            "email": "Newbie@Hostel.edu",
            "password": "pass1234",
            "room_no": "310",
            "hostel": "Block C",
        },
    )
    assert r.status_code == 201
    body = r.json()
    assert body["user"]["email"] == "newbie@hostel.edu"
    assert body["user"]["role"] == "student"

    r = await unauth_client.get(
        "/api/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"}
    )
    assert r.status_code == 200
    assert r.json()["user"]["room_no"] == "310"


async def test_register_duplicate_email(unauth_client, seed_data):
    r = await unauth_client.post(
        "/api/auth/register",
        json={"name": "Copy", "email": "asha@hostel.edu", "password": "pass1234"},
    )
    assert r.status_code == 400
    assert r.json()["message"] == "Email already registered"


async def test_me_requires_token(unauth_client):
    r = await unauth_client.get("/api/auth/me")
    assert r.status_code == 401


async def test_bad_token_rejected(unauth_client, seed_data):
    r = await unauth_client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


# ===================== COMPLAINTS =====================


async def test_create_complaint(client):
    complaint = await _file(client)
    assert complaint["status"] == "pending"
    assert complaint["approval_status"] == "pending_approval"
    assert complaint["version"] == 1
    assert complaint["category"] == "furniture"
    assert complaint["images"] == []


async def test_create_with_images(client):
    r = await client.post(
        "/api/complaints/",
        data=COMPLAINT,
        files=[
            ("images", ("chair.jpg", b"\xff\xd8fake-jpeg", "image/jpeg")),
            ("images", ("leg.png", b"\x89PNGfake", "image/png")),
        ],
    )
    assert r.status_code == 201, r.text
    complaint = r.json()["complaint"]
    assert len(complaint["images"]) == 2
    assert complaint["proof_image"] == complaint["images"][0]
    assert complaint["images"][0].startswith("/uploads/")

    stored = os.path.join(get_settings().UPLOAD_DIR, os.path.basename(complaint["images"][0]))
    assert os.path.exists(stored)


async def test_create_rejects_bad_image_type(client):
    r = await client.post(
        "/api/complaints/",
        data=COMPLAINT,
        files=[("images", ("virus.exe", b"MZ", "application/octet-stream"))],
    )
    assert r.status_code == 400
    assert r.json()["success"] is False


async def test_create_rejects_too_many_images(client):
    files = [("images", (f"p{i}.jpg", b"img", "image/jpeg")) for i in range(6)]
    r = await client.post("/api/complaints/", data=COMPLAINT, files=files)
    assert r.status_code == 400


async def test_create_validation_error(client):
    r = await client.post("/api/complaints/", data={**COMPLAINT, "title": "Bad"})
    assert r.status_code == 400
    assert "Title" in r.json()["message"]


async def test_admin_cannot_file_complaint(admin_client):
    r = await admin_client.post("/api/complaints/", data=COMPLAINT)
    assert r.status_code == 403


async def test_duplicate_complaint_conflict(client):
    first = await _file(client, title="Leaking tap in room 204")

    r = await client.post(
        "/api/complaints/",
        data={**COMPLAINT, "title": "Leaking tap in room 204 again"},
    )
    assert r.status_code == 409
    body = r.json()
    assert body["success"] is False
    assert body["possible_duplicate_id"] == first["id"]
    assert body["similar_complaints"][0]["id"] == first["id"]


async def test_check_duplicate_endpoint(client):
    first = await _file(client)
    r = await client.post(
        "/api/complaints/check-duplicate",
        json={"title": "Broken chair in hostel", "description": "anything at all really"},
    )
    assert r.status_code == 200
    assert r.json()["is_possible_duplicate"] is True
    assert r.json()["existing_id"] == first["id"]


async def test_list_scoped_to_owner(client, other_client, admin_client):
    await _file(client)
    await _file(other_client, title="Mess food was cold", description="Dinner was served cold again tonight")

    r = await client.get("/api/complaints/")
    assert r.status_code == 200
    assert r.json()["pagination"]["total"] == 1

    r = await admin_client.get("/api/complaints/")
    body = r.json()
    assert body["pagination"] == {"total": 2, "page": 1, "limit": 50, "pages": 1}
    assert {c["student"]["name"] for c in body["complaints"]} == {"Asha Student", "Ravi Student"}


async def test_get_other_students_complaint_forbidden(client, other_client):
    complaint = await _file(client)
    r = await other_client.get(f"/api/complaints/{complaint['id']}")
    assert r.status_code == 403


async def test_get_missing_complaint(client):
    r = await client.get("/api/complaints/9999")
    assert r.status_code == 404
    assert r.json() == {"success": False, "message": "Complaint not found"}


async def test_status_flow_with_notifications(client, admin_client):
    complaint = await _file(client)
    cid = complaint["id"]

    r = await admin_client.put(
        f"/api/complaints/{cid}/status",
        json={"status": "in_progress", "admin_notes": "Carpenter booked", "estimated_days": 2},
    )
    assert r.status_code == 200, r.text
    updated = r.json()["complaint"]
    assert updated["version"] == 2
    assert updated["admin_notes"] == "Carpenter booked"
    assert updated["expected_completion_date"] is not None

    r = await admin_client.put(f"/api/complaints/{cid}/status", json={"status": "resolved"})
    assert r.json()["complaint"]["version"] == 3
    assert r.json()["complaint"]["resolved_at"] is not None

    r = await client.get(f"/api/complaints/{cid}/versions")
    versions = r.json()["versions"]
    assert [v["version"] for v in versions] == [3, 2]

    r = await client.get("/api/notifications/")
    body = r.json()
    types = [n["type"] for n in body["notifications"]]
    assert types.count("status_update") == 2
    assert types.count("high_priority_alert") == 2
    assert body["unread_count"] == 4


async def test_student_cannot_change_status(client):
    complaint = await _file(client)
    r = await client.put(f"/api/complaints/{complaint['id']}/status", json={"status": "resolved"})
    assert r.status_code == 403


async def test_invalid_status_value(client, admin_client):
    complaint = await _file(client)
    r = await admin_client.put(f"/api/complaints/{complaint['id']}/status", json={"status": "closed"})
    assert r.status_code == 400


async def test_malformed_body_is_400(client, admin_client):
    complaint = await _file(client)
    r = await admin_client.put(
        f"/api/complaints/{complaint['id']}/status",
        json={"status": "in_progress", "estimated_days": "soon"},
    )
    assert r.status_code == 400
    assert r.json()["success"] is False


async def test_cost_and_approval(client, admin_client):
    cid = (await _file(client))["id"]

    r = await admin_client.put(f"/api/complaints/{cid}/cost", json={"estimated_cost": 800})
    assert r.status_code == 200
    assert r.json()["complaint"]["estimated_cost"] == 800
    assert r.json()["complaint"]["currency"] == "INR"

    r = await admin_client.put(f"/api/complaints/{cid}/approve", json={"action": "approved"})
    assert r.status_code == 200
    assert r.json()["complaint"]["approval_status"] == "approved"
    assert r.json()["complaint"]["version"] == 3

    r = await admin_client.put(f"/api/complaints/{cid}/approve", json={"action": "perhaps"})
    assert r.status_code == 400

    r = await client.put(f"/api/complaints/{cid}/cost", json={"estimated_cost": 1})
    assert r.status_code == 403


async def test_student_edit_and_feedback(client, admin_client):
    cid = (await _file(client))["id"]

    r = await client.put(f"/api/complaints/{cid}", json={"title": "Broken chair and desk"})
    assert r.status_code == 200
    assert r.json()["complaint"]["title"] == "Broken chair and desk"

    r = await client.post(f"/api/complaints/{cid}/feedback", json={"rating": 5})
    assert r.status_code == 400

    await admin_client.put(f"/api/complaints/{cid}/status", json={"status": "resolved"})

    r = await client.put(f"/api/complaints/{cid}", json={"title": "Too late to edit"})
    assert r.status_code == 400

    r = await client.post(f"/api/complaints/{cid}/feedback", json={"rating": 7})
    assert r.status_code == 400

    r = await client.post(
        f"/api/complaints/{cid}/feedback", json={"rating": 4.5, "feedback": "Quick fix, thanks"}
    )
    assert r.status_code == 200
    assert r.json()["complaint"]["resolution_rating"] == 4.5


async def test_delete_and_restore(client, admin_client):
    cid = (await _file(client))["id"]

    r = await admin_client.delete(f"/api/complaints/{cid}")
    assert r.status_code == 400
    assert r.json()["message"] == "Admins can only delete resolved complaints"

    r = await client.delete(f"/api/complaints/{cid}")
    assert r.status_code == 200

    r = await client.get("/api/complaints/")
    assert r.json()["complaints"] == []

    r = await admin_client.get("/api/complaints/", params={"include_deleted": True})
    assert r.json()["complaints"][0]["deleted_at"] is not None

    r = await client.post(f"/api/complaints/{cid}/restore")
    assert r.status_code == 403

    r = await admin_client.post(f"/api/complaints/{cid}/restore")
    assert r.status_code == 200

    r = await client.get("/api/complaints/")
    assert [c["id"] for c in r.json()["complaints"]] == [cid]


async def test_commit_failure_reports_storage_error(client, db_session, monkeypatch):
    cid = (await _file(client))["id"]

    async def locked_commit():
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(db_session, "commit", locked_commit)

    r = await client.put(f"/api/complaints/{cid}", json={"title": "Broken chair and desk"})
    assert r.status_code == 500
    assert r.json() == {"success": False, "message": "Data store unavailable during commit"}


async def test_edit_with_empty_title_rejected(client):
    cid = (await _file(client))["id"]
    r = await client.put(f"/api/complaints/{cid}", json={"title": ""})
    assert r.status_code == 400
    assert "Title" in r.json()["message"]


# ===================== NOTIFICATIONS =====================


async def test_notification_read_and_delete(client, other_client, db_session, seed_data):
    student = seed_data["student"]
    first = Notification(user_id=student.id, message="One", type=NotificationType.STATUS_UPDATE)
    second = Notification(user_id=student.id, message="Two", type=NotificationType.NEW_ADMIN_NOTE)
    db_session.add_all([first, second])
    await db_session.commit()

    r = await other_client.put(f"/api/notifications/{first.id}/read")
    assert r.status_code == 404

    r = await client.put(f"/api/notifications/{first.id}/read")
    assert r.status_code == 200
    assert r.json()["notification"]["read"] is True

    r = await client.get("/api/notifications/")
    assert r.json()["unread_count"] == 1

    r = await client.put("/api/notifications/read-all")
    assert r.status_code == 200
    r = await client.get("/api/notifications/")
    assert r.json()["unread_count"] == 0

    r = await other_client.delete(f"/api/notifications/{second.id}")
    assert r.status_code == 404
    r = await client.delete(f"/api/notifications/{second.id}")
    assert r.status_code == 200

    r = await client.get("/api/notifications/")
    assert [n["message"] for n in r.json()["notifications"]] == ["One"]


# ===================== FEATURE TOGGLES =====================


async def test_feature_toggles(client, admin_client):
    r = await client.get("/api/feature-toggles/")
    assert r.status_code == 200
    assert [t["key"] for t in r.json()["toggles"]] == ["duplicate_detection"]

    r = await client.put("/api/feature-toggles/duplicate_detection", json={"enabled": False})
    assert r.status_code == 403

    r = await admin_client.put("/api/feature-toggles/duplicate_detection", json={"enabled": False})
    assert r.status_code == 200
    assert r.json()["toggle"]["enabled"] is False

    r = await admin_client.put("/api/feature-toggles/duplicate_detection", json={})
    assert r.json()["toggle"]["enabled"] is True

    r = await client.get("/api/feature-toggles/duplicate_detection")
    assert r.json()["toggle"]["enabled"] is True

    r = await client.get("/api/feature-toggles/unknown")
    assert r.status_code == 404
    assert r.json()["message"] == "Feature not found"


# ===================== ANALYTICS =====================


async def test_analytics_admin_only(client, admin_client):
    await _file(client)

    r = await client.get("/api/analytics/summary")
    assert r.status_code == 403

    r = await admin_client.get("/api/analytics/summary")
    assert r.status_code == 200
    assert r.json()["analytics"]["total_complaints"] == 1

    r = await admin_client.get("/api/analytics/statistics")
    assert r.status_code == 200
    body = r.json()
    assert body["stats"]["pending"] == 1
    assert len(body["status_trend"]) == 7
    assert body["status_trend"][-1]["total"] == 1
