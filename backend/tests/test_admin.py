import importlib
import time

import jwt
from fastapi.testclient import TestClient

from samloc.settings import get_settings

app_mod = importlib.import_module("main")
client = TestClient(app_mod.app)


def _token(payload: dict) -> str:
    settings = get_settings()
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def test_admin_requires_credentials():
    r = client.get("/api/admin/rooms")
    assert r.status_code == 401
    assert r.json()["detail"] == "credentials_not_provided"


def test_admin_rejects_bad_tokens():
    r = client.get("/api/admin/rooms", headers=_auth("garbage.token.value"))
    assert r.status_code == 401
    assert r.json()["detail"] == "invalid_token"

    forged = jwt.encode({"sub": "root", "role": "admin"}, "not-the-secret", algorithm="HS256")
    r = client.get("/api/admin/rooms", headers=_auth(forged))
    assert r.status_code == 401
    assert r.json()["detail"] == "invalid_token"

    expired = _token({"sub": "root", "role": "admin", "exp": int(time.time()) - 60})
    r = client.get("/api/admin/rooms", headers=_auth(expired))
    assert r.status_code == 401
    assert r.json()["detail"] == "token_expired"

    r = client.get("/api/admin/rooms", headers=_auth(_token({"role": "admin"})))
    assert r.status_code == 401
    assert r.json()["detail"] == "invalid_subject"


def test_admin_only_for_admin_role():
    r = client.get("/api/admin/rooms", headers=_auth(_token({"sub": "player1", "role": "player"})))
    assert r.status_code == 403
    assert r.json()["detail"] == "admin_only"


def test_admin_sees_every_hand():
    r = client.post("/api/room/create", json={}, headers={"x-user-id": "adminA", "x-user-name": "A"})
    room_id = r.json()["room_id"]
    client.post("/api/room/join", json={"room_id": room_id}, headers={"x-user-id": "adminB"})
    room = app_mod.ROOMS[room_id]

    r = client.get("/api/admin/rooms", headers=_auth(_token({"sub": "root", "role": "admin"})))
    assert r.status_code == 200
    dump = r.json()[room_id]
    assert dump["phase"] == "LOBBY"
    assert set(dump["hands"]) == {"adminA", "adminB"}
    assert dump["points"] == {"adminA": 0, "adminB": 0}
    assert dump["turnId"] == room.turn_id
