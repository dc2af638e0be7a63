from __future__ import annotations

import os

import pytest
from fastapi.testclient import TestClient

from apps.dispatch_backend.main import app
from common_core.passwords import WeakPinError, check_pin_policy, hash_pin, verify_pin
from common_core.security import verify_jwt

client = TestClient(app)


def _bootstrap():
    os.environ["BOOTSTRAP_TOKEN"] = "boot"
    r = client.post(
        "/bootstrap/create-admin",
        headers={"X-Bootstrap-Token": "boot"},
        json={"username": "chief@test.local", "pin": "48151623"},
    )
    assert r.status_code == 200
    return r


def test_login_with_bootstrap_admin():
    _bootstrap()

    r = client.post("/auth/login", json={"username": "chief@test.local", "pin": "48151623"})
    assert r.status_code == 200
    claims = verify_jwt(r.json()["token"])
    assert claims["sub"] == "chief@test.local"
    assert claims["roles"] == ["admin"]


def test_bootstrap_only_once_and_needs_token():
    assert client.post("/bootstrap/create-admin", json={"username": "x", "pin": "48151623"}).status_code == 403
    _bootstrap()
    r = client.post(
        "/bootstrap/create-admin",
        headers={"X-Bootstrap-Token": "boot"},
        json={"username": "second", "pin": "48151623"},
    )
    assert r.status_code == 409


def test_wrong_pin_and_throttle():
    _bootstrap()
    bad = {"username": "chief@test.local", "pin": "00000000"}
    for _ in range(5):
        assert client.post("/auth/login", json=bad).status_code == 401
    assert client.post("/auth/login", json=bad).status_code == 429
    # blocked pair stays blocked even with the right PIN
    good = {"username": "chief@test.local", "pin": "48151623"}
    assert client.post("/auth/login", json=good).status_code == 429


def test_admin_creates_station_admin_who_can_log_in(seed):
    _bootstrap()
    token = client.post("/auth/login", json={"username": "chief@test.local", "pin": "48151623"}).json()["token"]
    sid = seed.station("Sub 1", 14.60, 120.98)

    r = client.post(
        "/auth/users",
        json={"username": "sub1", "pin": "27182818", "roles": "substation_admin", "assigned_station_id": sid},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert r.status_code == 201

    r = client.post("/auth/login", json={"username": "sub1", "pin": "27182818"})
    assert r.status_code == 200
    assert r.json()["station_id"] == sid
    assert verify_jwt(r.json()["token"])["station_id"] == sid


def test_create_user_rejects_bad_input(seed):
    headers = seed.auth("admin")
    base = {"username": "sub1", "pin": "27182818", "roles": "substation_admin"}
    assert client.post("/auth/users", json={**base, "roles": "wizard"}, headers=headers).status_code == 400
    assert client.post("/auth/users", json={**base, "pin": "123456"}, headers=headers).status_code == 400
    assert client.post("/auth/users", json={**base, "assigned_station_id": 5555}, headers=headers).status_code == 404
    assert client.post("/auth/users", json=base, headers=seed.auth("sub", roles=("substation_admin",))).status_code == 403
    assert client.post("/auth/users", json=base, headers=headers).status_code == 201
    assert client.post("/auth/users", json=base, headers=headers).status_code == 409


def test_invalid_token_is_401():
    r = client.get("/incidents", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    assert r.json()["detail"] == "AUTH_INVALID"


def test_pin_hashing():
    h = hash_pin("90210555")
    assert h.startswith("$2b$12$")
    assert verify_pin("90210555", h)
    assert not verify_pin("90210556", h)
    assert not verify_pin("90210555", "not-a-bcrypt-hash")


@pytest.mark.parametrize("pin", ["", "12345", "123456", "777777", "000000"])
def test_weak_pins_rejected(pin):
    with pytest.raises(WeakPinError):
        check_pin_policy(pin)
