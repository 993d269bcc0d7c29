NOTIFICATION = {
    "userId": "user-1",
    "type": "new_voicemail",
    "title": "Nieuwe voicemail",
    "message": "Bericht van +31 6 00000000",
}


def test_demo_notifications_when_empty(client):
    r = client.get("/api/notifications", params={"userId": "user-1"})
    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 3
    types = [n["type"] for n in body["notifications"]]
    assert types == ["new_voicemail", "transcription_ready", "forwarding_status"]
    assert all(n["user_id"] == "user-1" for n in body["notifications"])


def test_list_requires_user(client):
    r = client.get("/api/notifications")
    assert r.status_code == 400
    assert r.json() == {"error": "User ID is required"}


def test_create_and_list(client):
    r = client.post("/api/notifications", json=NOTIFICATION)
    assert r.status_code == 200
    body = r.json()
    assert body["message"] == "Notification created successfully"
    created = body["notification"]
    assert created["id"].startswith("notif-")
    assert created["read"] is False
    assert created["priority"] == "medium"

    r = client.get("/api/notifications", params={"userId": "user-1"})
    assert r.json()["total"] == 1
    assert r.json()["notifications"][0]["id"] == created["id"]


def test_create_validates_fields_and_type(client):
    r = client.post("/api/notifications", json={"userId": "user-1", "type": "new_voicemail"})
    assert r.status_code == 400
    r = client.post("/api/notifications", json={**NOTIFICATION, "type": "party"})
    assert r.status_code == 400


def test_create_degrades_when_store_fails(client, db, monkeypatch):
    def boom(row):
        raise RuntimeError("table missing")

    monkeypatch.setattr(db, "create_notification", boom)
    r = client.post("/api/notifications", json=NOTIFICATION)
    assert r.status_code == 200
    assert r.json()["message"] == "Notification created (in-memory only)"


def test_mark_read_and_mark_all(client):
    first = client.post("/api/notifications", json=NOTIFICATION).json()["notification"]
    client.post("/api/notifications", json={**NOTIFICATION, "type": "missed_call"})

    r = client.post("/api/notifications/mark-read", json={"notificationId": first["id"]})
    assert r.status_code == 200
    assert r.json()["notification"]["read"] is True

    r = client.post("/api/notifications/mark-all-read", json={"userId": "user-1"})
    assert r.json()["updatedCount"] == 1
    r = client.post("/api/notifications/mark-all-read", json={"userId": "user-1"})
    assert r.json()["updatedCount"] == 0


def test_mark_read_unknown_id_degrades(client):
    r = client.post("/api/notifications/mark-read", json={"notificationId": "notif-missing"})
    assert r.status_code == 200
    assert r.json()["message"] == "Notification marked as read (in-memory only)"


def test_delete(client):
    created = client.post("/api/notifications", json=NOTIFICATION).json()["notification"]
    r = client.request("DELETE", "/api/notifications/delete", json={"notificationId": created["id"]})
    assert r.status_code == 200
    assert r.json() == {"message": "Notification deleted successfully", "deletedCount": 1}

    r = client.request("DELETE", "/api/notifications/delete", json={})
    assert r.status_code == 400
