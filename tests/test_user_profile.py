def test_requires_cookie(client):
    assert client.get("/api/user/profile").status_code == 401
    r = client.put("/api/user/profile", json={"name": "Anna"})
    assert r.status_code == 401
    assert r.json() == {"error": "Unauthorized"}


def test_default_profile(client):
    client.cookies.set("userId", "user-1")
    r = client.get("/api/user/profile")
    assert r.status_code == 200
    assert r.json() == {
        "name": "",
        "companyName": "",
        "mobileNumber": "",
        "information": "",
        "calUsername": "",
        "calApiKey": "",
        "calEventTypeId": "",
    }


def test_save_and_read_back(client, db):
    client.cookies.set("userId", "user-1")
    r = client.put("/api/user/profile", json={
        "name": "Anna",
        "companyName": "Anna Design",
        "calUsername": "anna",
    })
    assert r.status_code == 200
    assert r.json() == {"success": True}
    assert db.profiles["user-1"]["company_name"] == "Anna Design"

    r = client.put("/api/user/profile", json={"name": "Anna B", "calEventTypeId": "42"})
    assert r.status_code == 200

    profile = client.get("/api/user/profile").json()
    assert profile["name"] == "Anna B"
    # a full replace: omitted fields become empty
    assert profile["companyName"] == ""
    assert profile["calEventTypeId"] == "42"


def test_store_error_is_500_with_details(client, db, monkeypatch):
    class RpcError(Exception):
        message = "function insert_profile does not exist"
        details = "rpc missing"
        hint = "run the migrations"

    def boom(*args):
        raise RpcError()

    monkeypatch.setattr(db, "save_profile", boom)
    client.cookies.set("userId", "user-1")
    r = client.put("/api/user/profile", json={"name": "Anna"})
    assert r.status_code == 500
    assert r.json() == {
        "error": "function insert_profile does not exist",
        "details": "rpc missing",
        "hint": "run the migrations",
    }
