from bangroute.extensions import db
from bangroute.models import User


def _create_user(username: str, password: str, is_active=True):
    user = User(username=username, is_active=is_active)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


def _token(client, username: str, password: str):
    response = client.post(
        "/api/v1/auth/token",
        json={"username": username, "password": password},
    )
    assert response.status_code == 200
    return response.get_json()["token"]


def _auth(client, username="ann", password="secret"):
    return {"Authorization": f"Bearer {_token(client, username, password)}"}


def _settings(last_modified, *triggers, user_id="999"):
    return {
        "userId": user_id,
        "customBangs": [
            {"t": t, "s": t.title(), "u": f"https://{t}.test/?q=%s", "d": f"{t}.test"}
            for t in triggers
        ],
        "lastModified": last_modified,
    }


def test_health(client):
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"


def test_token_requires_valid_credentials(client, app):
    with app.app_context():
        _create_user("ann", "secret")
        _create_user("gone", "secret", is_active=False)

    assert client.post("/api/v1/auth/token", json={"username": "ann", "password": "bad"}).status_code == 401
    assert client.post("/api/v1/auth/token", json={"username": "gone", "password": "secret"}).status_code == 401

    response = client.post("/api/v1/auth/token", json={"username": "ann", "password": "secret"})
    payload = response.get_json()
    assert payload["token"]
    assert payload["expires_at"]


def test_current_user(client, app):
    with app.app_context():
        user_id = _create_user("ann", "secret").id

    response = client.get("/api/v1/user/current", headers=_auth(client))

    assert response.status_code == 200
    assert response.get_json()["id"] == str(user_id)
    assert response.get_json()["username"] == "ann"


def test_settings_require_bearer_token(client):
    assert client.get("/api/v1/settings").status_code == 401
    response = client.get("/api/v1/settings", headers={"Authorization": "Bearer forged"})
    assert response.status_code == 401
    assert response.get_json() == {"error": "authentication required"}


def test_get_settings_creates_empty_snapshot(client, app):
    with app.app_context():
        user_id = _create_user("ann", "secret").id

    response = client.get("/api/v1/settings", headers=_auth(client))

    payload = response.get_json()
    assert payload["userId"] == str(user_id)
    assert payload["customBangs"] == []
    assert "defaultBang" not in payload
    assert payload["lastModified"]


def test_put_settings_round_trip_uses_token_user(client, app):
    with app.app_context():
        user_id = _create_user("ann", "secret").id
    auth = _auth(client)

    body = _settings("2099-01-01T00:00:00+00:00", "mine")
    body["defaultBang"] = {"t": "ddg", "s": "DuckDuckGo", "u": "https://duckduckgo.com/?q={{{s}}}", "d": "duckduckgo.com"}
    response = client.put("/api/v1/settings", headers=auth, json=body)

    assert response.status_code == 200
    stored = client.get("/api/v1/settings", headers=auth).get_json()
    assert stored["userId"] == str(user_id)
    assert stored["customBangs"] == [
        {"t": "mine", "s": "Mine", "u": "https://mine.test/?q=%s", "d": "mine.test", "c": True}
    ]
    assert stored["defaultBang"]["t"] == "ddg"
    assert stored["lastModified"].startswith("2099-01-01T00:00:00")


def test_put_stale_settings_conflicts_unless_forced(client, app):
    with app.app_context():
        _create_user("ann", "secret")
    auth = _auth(client)

    assert client.put(
        "/api/v1/settings", headers=auth, json=_settings("2030-01-01T00:00:00Z", "new")
    ).status_code == 200

    response = client.put(
        "/api/v1/settings", headers=auth, json=_settings("2029-01-01T00:00:00Z", "old")
    )
    assert response.status_code == 409

    same_time = client.put(
        "/api/v1/settings", headers=auth, json=_settings("2030-01-01T00:00:00Z", "same")
    )
    assert same_time.status_code == 200

    forced = client.put(
        "/api/v1/settings?force=1", headers=auth, json=_settings("2029-01-01T00:00:00Z", "old")
    )
    assert forced.status_code == 200
    assert forced.get_json()["customBangs"][0]["t"] == "old"


def test_put_invalid_settings_is_rejected(client, app):
    with app.app_context():
        _create_user("ann", "secret")
    auth = _auth(client)

    assert client.put("/api/v1/settings", headers=auth, json={"customBangs": []}).status_code == 400
    response = client.put(
        "/api/v1/settings",
        headers=auth,
        json={"customBangs": [{"t": "x"}], "lastModified": "2030-01-01T00:00:00Z"},
    )
    assert response.status_code == 400
    assert "error" in response.get_json()


def test_put_settings_keeps_the_instant_of_offset_timestamps(client, app):
    with app.app_context():
        _create_user("ann", "secret")
    auth = _auth(client)

    response = client.put(
        "/api/v1/settings", headers=auth, json=_settings("2024-06-01T14:00:00+02:00", "mine")
    )
    assert response.status_code == 200

    stored = client.get("/api/v1/settings", headers=auth).get_json()
    assert stored["lastModified"] == "2024-06-01T12:00:00+00:00"

    # 13:30 UTC is later than the stored 12:00 UTC, despite the smaller wall clock.
    later = client.put(
        "/api/v1/settings", headers=auth, json=_settings("2024-06-01T13:30:00+00:00", "new")
    )
    assert later.status_code == 200
    earlier = client.put(
        "/api/v1/settings", headers=auth, json=_settings("2024-06-01T15:00:00+02:00", "old")
    )
    assert earlier.status_code == 409
