from unittest.mock import patch


def test_root(client):
    r = client.get("/")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_api_responses_carry_security_headers(client):
    r = client.get("/api/agent/chat")
    assert r.headers["x-content-type-options"] == "nosniff"
    assert r.headers["x-frame-options"] == "DENY"
    assert r.headers["referrer-policy"] == "strict-origin-when-cross-origin"


def test_root_has_no_security_headers(client):
    r = client.get("/")
    assert "x-frame-options" not in r.headers


def test_http_errors_use_error_key(client):
    r = client.get("/api/agenda-events")
    assert r.status_code == 400
    assert r.json() == {"error": "userId is required"}


def test_validation_errors_are_400(client):
    with patch("voicemailai.main.log_security_event") as log_event:
        r = client.post("/api/agent/chat", json={"message": "", "sessionId": "s1"})
    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "Validation failed"
    assert body["details"]
    assert log_event.call_args.args[0] == "validation_failure"
