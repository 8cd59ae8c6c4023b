from core.security import hash_password, verify_password, create_access_token, decode_token
from models.log import SystemLog


def test_hash_truncate_and_verify():
    # long password larger than 72 bytes
    long_pw = "a" * 200
    h = hash_password(long_pw)
    assert h
    assert verify_password(long_pw, h) is True
    # Create a password that differs within the first 72 bytes so truncation
    # will produce a different value and verification should fail.
    long_pw_diff = "b" + long_pw[1:]
    assert verify_password(long_pw_diff, h) is False


def test_token_roundtrip():
    token = create_access_token({"sub": "42"})
    assert decode_token(token)["sub"] == "42"


def test_register_login_and_me(client, db):
    r = client.post("/auth/register", json={"name": "Tester", "email": "tester@example.com", "password": "s3cret"})
    assert r.status_code == 201, r.text

    r = client.post("/auth/register", json={"name": "Tester", "email": "tester@example.com", "password": "s3cret"})
    assert r.status_code == 400

    r = client.post("/auth/login", json={"email": "tester@example.com", "password": "s3cret"})
    assert r.status_code == 200
    body = r.json()
    assert "access_token" in body

    headers = {"Authorization": f"Bearer {body['access_token']}"}
    r = client.get("/auth/me", headers=headers)
    assert r.status_code == 200
    assert r.json()["email"] == "tester@example.com"
    assert r.json()["last_login"] is not None

    actions = [row.action for row in db.query(SystemLog).all()]
    assert "user_create" in actions
    assert "login_success" in actions


def test_login_rejects_bad_password(client, alice, db):
    r = client.post("/auth/login", json={"email": "alice@example.com", "password": "wrong"})
    assert r.status_code == 401
    assert db.query(SystemLog).filter(SystemLog.action == "login_failed").count() == 1


def test_short_password_rejected(client):
    r = client.post("/auth/register", json={"name": "X", "email": "x@example.com", "password": "123"})
    assert r.status_code == 400


def test_protected_route_requires_token(client):
    assert client.get("/devices/").status_code == 401
    r = client.get("/devices/", headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401


def test_change_password(client, alice):
    token = client.post("/auth/login", json={"email": "alice@example.com", "password": "secret123"}).json()["access_token"]
    headers = {"Authorization": f"Bearer {token}"}
    r = client.post("/auth/change_password", json={"old_password": "nope", "new_password": "newsecret"}, headers=headers)
    assert r.status_code == 400
    r = client.post("/auth/change_password", json={"old_password": "secret123", "new_password": "newsecret"}, headers=headers)
    assert r.status_code == 200
    r = client.post("/auth/login", json={"email": "alice@example.com", "password": "newsecret"})
    assert r.status_code == 200
