from __future__ import annotations

from mysecrets.models.refresh_token import RefreshToken
from mysecrets.models.user import User

from conftest import USER_PASSWORD

REGISTER = {"email": "newuser@example.com", "password": "Password_12345", "first_name": "New", "last_name": "User"}


def _auth_header(body: dict) -> dict:
    return {"Authorization": f"Bearer {body['access_token']}"}


def test_auth_register_me_refresh_logout(anon_client, db_session):
    res = anon_client.post("/auth/register", json=REGISTER)
    assert res.status_code == 200
    body = res.json()
    assert body["email"] == "newuser@example.com"
    assert body["token_type"] == "bearer"
    assert isinstance(body.get("access_token"), str) and body["access_token"]
    assert "refresh_token" in res.cookies
    assert "httponly" in res.headers["set-cookie"].lower()

    u = db_session.query(User).filter(User.email == "newuser@example.com").first()
    assert u is not None
    assert body["user_id"] == u.id

    # Access token authenticates /auth/me
    me = anon_client.get("/auth/me", headers=_auth_header(body))
    assert me.status_code == 200
    assert me.json()["email"] == "newuser@example.com"
    assert me.json()["is_google_user"] is False

    # Refresh should rotate via cookie and return a new access token
    first_cookie = res.cookies["refresh_token"]
    res2 = anon_client.post("/auth/refresh")
    assert res2.status_code == 200
    assert res2.json()["access_token"]
    assert res2.cookies["refresh_token"] != first_cookie

    # Logout clears cookie
    res3 = anon_client.post("/auth/logout")
    assert res3.status_code == 200
    assert res3.json()["message"] == "Logged out"

    db_session.expire_all()
    assert all(not t.is_active() for t in db_session.query(RefreshToken).all())


def test_login_sets_cookie_and_returns_user(anon_client, users):
    res = anon_client.post("/auth/login", json={"email": "TEST@example.com", "password": USER_PASSWORD})
    assert res.status_code == 200
    body = res.json()
    assert body["email"] == "test@example.com"
    assert body["first_name"] == "Test"
    assert "refresh_token" in res.cookies


def test_login_wrong_password_and_unknown_user_same_response(anon_client, users):
    wrong = anon_client.post("/auth/login", json={"email": "test@example.com", "password": "wrong"})
    unknown = anon_client.post("/auth/login", json={"email": "ghost@example.com", "password": "wrong"})

    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json() == unknown.json() == {"error": "UNAUTHORIZED", "message": "Invalid email or password"}


def test_login_inactive_user_is_403(anon_client, users, db_session):
    user, _ = users
    user.is_active = False
    db_session.commit()

    res = anon_client.post("/auth/login", json={"email": "test@example.com", "password": USER_PASSWORD})
    assert res.status_code == 403
    assert res.json()["error"] == "FORBIDDEN"
    assert "refresh_token" not in res.cookies


def test_register_duplicate_email_is_409(anon_client):
    assert anon_client.post("/auth/register", json=REGISTER).status_code == 200
    res = anon_client.post("/auth/register", json=REGISTER)
    assert res.status_code == 409
    assert res.json()["error"] == "CONFLICT"


def test_auth_refresh_missing_cookie_is_401(anon_client):
    anon_client.cookies.clear()
    res = anon_client.post("/auth/refresh")
    assert res.status_code == 401
    assert res.json() == {"error": "UNAUTHORIZED", "message": "Missing refresh token"}


def test_refresh_accepts_body_fallback(anon_client):
    res = anon_client.post("/auth/register", json=REGISTER)
    raw = res.cookies["refresh_token"]
    anon_client.cookies.clear()

    res2 = anon_client.post("/auth/refresh", json={"refresh_token": raw})
    assert res2.status_code == 200


def test_refresh_reuse_is_401_and_kills_all_sessions(anon_client, users, db_session):
    login_1 = anon_client.post("/auth/login", json={"email": "test@example.com", "password": USER_PASSWORD})
    stolen = login_1.cookies["refresh_token"]

    assert anon_client.post("/auth/refresh").status_code == 200
    rotated = anon_client.cookies.get("refresh_token")
    assert rotated and rotated != stolen

    anon_client.cookies.clear()
    replay = anon_client.post("/auth/refresh", json={"refresh_token": stolen})
    assert replay.status_code == 401
    assert replay.json()["message"] == "Invalid refresh token"
    assert "Max-Age=0" in replay.headers.get("set-cookie", "")

    # The legitimate rotated token died with it.
    res = anon_client.post("/auth/refresh", json={"refresh_token": rotated})
    assert res.status_code == 401

    user, _ = users
    db_session.expire_all()
    assert all(not t.is_active() for t in db_session.query(RefreshToken).filter(RefreshToken.user_id == user.id))


def test_logout_without_token_still_succeeds(anon_client):
    anon_client.cookies.clear()
    res = anon_client.post("/auth/logout")
    assert res.status_code == 200
    assert res.json()["message"] == "Logged out"


def test_logout_all_revokes_every_session(anon_client, users, db_session):
    bodies = [
        anon_client.post("/auth/login", json={"email": "test@example.com", "password": USER_PASSWORD}).json()
        for _ in range(2)
    ]

    res = anon_client.post("/auth/logout-all", headers=_auth_header(bodies[-1]))
    assert res.status_code == 200
    assert res.json()["revoked"] == 2

    user, _ = users
    db_session.expire_all()
    assert all(not t.is_active() for t in db_session.query(RefreshToken).filter(RefreshToken.user_id == user.id))


def test_google_login_endpoint(anon_client, fake_google):
    fake_google.add("google-id-token", subject="sub-123", email="person@gmail.com", first_name="Per", last_name="Son")

    res = anon_client.post("/auth/google", json={"id_token": "google-id-token"})
    assert res.status_code == 200
    assert res.json()["email"] == "person@gmail.com"
    assert "refresh_token" in res.cookies

    bad = anon_client.post("/auth/google", json={"id_token": "forged"})
    assert bad.status_code == 401


def test_google_login_conflicts_with_password_account(anon_client, users, fake_google):
    fake_google.add("google-id-token", subject="sub-123", email="test@example.com")
    res = anon_client.post("/auth/google", json={"id_token": "google-id-token"})
    assert res.status_code == 409
    assert "login with your password" in res.json()["message"]


def test_me_requires_bearer_token(anon_client):
    res = anon_client.get("/auth/me")
    assert res.status_code == 401
    assert res.headers.get("www-authenticate") == "Bearer"


def test_me_rejects_token_of_deactivated_user(anon_client, users, db_session):
    body = anon_client.post("/auth/login", json={"email": "test@example.com", "password": USER_PASSWORD}).json()
    user, _ = users
    user.is_active = False
    db_session.commit()

    res = anon_client.get("/auth/me", headers=_auth_header(body))
    assert res.status_code == 401
