from __future__ import annotations

import json
import time
from datetime import datetime, timedelta, timezone

import pytest
from cryptography.fernet import Fernet

from factory_inventory.core.auth import PinGate
from factory_inventory.core.crypto import _derive_fernet_key, decrypt_str, encrypt_str


def test_crypto_roundtrip_and_tamper():
    token = encrypt_str("k1", "hello")
    assert decrypt_str("k1", token) == "hello"
    with pytest.raises(ValueError):
        decrypt_str("k2", token)


def test_gate_rejects_wrong_pin():
    gate = PinGate(pin="2025", secret_key="s", ttl_sec=60)
    assert gate.authenticate("0000") is None
    token = gate.authenticate("2025")
    assert gate.verify(token) is not None
    assert gate.verify("garbage") is None
    assert gate.verify(None) is None


def test_gate_expires_tokens():
    gate = PinGate(pin="2025", secret_key="s", ttl_sec=60)
    stale = Fernet(_derive_fernet_key("s")).encrypt_at_time(
        json.dumps({"sid": "abc", "iat": "2024-01-01T00:00:00+00:00"}).encode("utf-8"),
        int(time.time()) - 3600,
    )
    assert gate.verify(stale.decode("utf-8")) is None


def test_gate_logout_and_close():
    gate = PinGate(pin="2025", secret_key="s", ttl_sec=60)
    token = gate.authenticate("2025")
    assert gate.logout(token) is True
    assert gate.verify(token) is None
    assert gate.logout(token) is False

    gate.close()
    with pytest.raises(RuntimeError):
        gate.authenticate("2025")


async def test_pin_login_flow(client):
    assert (await client.post("/auth/pin", json={"pin": "1111"})).status_code == 401

    token = (await client.post("/auth/pin", json={"pin": "2025"})).json()["access_token"]
    headers = {"Authorization": f"Bearer {token}"}
    assert (await client.get("/auth/status", headers=headers)).json() == {"authenticated": True}
    assert (await client.get("/materials", headers=headers)).status_code == 200

    r = await client.post("/auth/logout", headers=headers)
    assert r.json() == {"ok": True, "revoked": True}
    assert (await client.get("/materials", headers=headers)).status_code == 401
    assert (await client.get("/auth/status", headers=headers)).json() == {"authenticated": False}


def test_logout_forgets_revocations_past_ttl():
    gate = PinGate(pin="2025", secret_key="s", ttl_sec=60)
    gate._revoked["stale"] = datetime.now(timezone.utc) - timedelta(hours=2)

    token = gate.authenticate("2025")
    sid = gate.verify(token).session_id
    assert gate.logout(token) is True

    assert set(gate._revoked) == {sid}
    assert gate.verify(token) is None
