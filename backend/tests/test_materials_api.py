from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError

from factory_inventory.services import ledger_service, material_log_service, material_service


async def test_requires_pin_session(client):
    r = await client.get("/materials")
    assert r.status_code == 401
    assert (await client.get("/health")).status_code == 200


async def test_create_material_writes_audit_row(auth_client, new_material):
    m = await new_material(name="Copper Wire")

    r = await auth_client.get("/material-logs", params={"material_id": m["id"]})
    assert r.status_code == 200
    logs = r.json()
    assert len(logs) == 1
    assert logs[0]["action_type"] == "create"
    assert logs[0]["username"] == "alice"
    assert logs[0]["details"]["name"] == "Copper Wire"
    assert logs[0]["material_name"] == "Copper Wire"


async def test_create_rejects_blank_name(auth_client):
    r = await auth_client.post("/materials", json={"name": "  ", "category": "Raw", "unit": "kg"})
    assert r.status_code == 422


async def test_update_records_changes(auth_client, new_material):
    m = await new_material()
    r = await auth_client.patch(f"/materials/{m['id']}", json={"threshold": 35, "username": "bob"})
    assert r.status_code == 200
    body = r.json()
    assert body["material"]["threshold"] == 35
    assert body["audit"]["ok"] is True

    logs = (await auth_client.get("/material-logs", params={"action_type": "update"})).json()
    assert len(logs) == 1
    assert logs[0]["details"]["changes"] == {"threshold": {"old": 20.0, "new": 35.0}}
    assert logs[0]["details"]["old"]["threshold"] == 20.0


async def test_set_stock_overwrites(auth_client, new_material):
    m = await new_material()
    r = await auth_client.put(f"/materials/{m['id']}/stock", json={"current_stock": 7})
    assert r.status_code == 200
    assert r.json()["material"]["current_stock"] == 7


async def test_audit_failure_does_not_undo_mutation(auth_client, monkeypatch):
    async def _broken(*args, **kwargs):
        raise SQLAlchemyError("audit table unavailable")

    monkeypatch.setattr(material_log_service, "_write_log", _broken)

    r = await auth_client.post(
        "/materials", json={"name": "Paint", "category": "Finish", "unit": "l", "current_stock": 4}
    )
    assert r.status_code == 201
    body = r.json()
    assert body["audit"]["ok"] is False
    assert body["audit"]["log_id"] is None
    assert "audit table unavailable" in body["audit"]["error"]

    got = await auth_client.get(f"/materials/{body['material']['id']}")
    assert got.status_code == 200
    assert got.json()["current_stock"] == 4


async def test_stock_addition_shows_in_history(auth_client, new_material):
    m = await new_material(current_stock=10)
    r = await auth_client.post(
        f"/materials/{m['id']}/stock-additions", json={"quantity": 15, "bill_number": "INV-9", "username": "carol"}
    )
    assert r.status_code == 200
    assert r.json()["material"]["current_stock"] == 25

    history = (await auth_client.get(f"/materials/{m['id']}/history")).json()
    assert history[0]["category"] == "Purchase"
    assert history[0]["inflow"] == 15
    assert history[0]["reference"] == "Bill #INV-9"
    assert history[0]["stock"] == 25
    assert history[0]["id"].startswith("addition-")
    assert history[-1]["id"] == "starting-balance"
    assert history[-1]["stock"] == 10

    usage = (await auth_client.get("/usage-logs", params={"material_id": m["id"]})).json()
    assert usage[0]["quantity"] == -15
    assert usage[0]["username"] == "System"


async def test_stock_addition_requires_positive_quantity(auth_client, new_material):
    m = await new_material()
    r = await auth_client.post(f"/materials/{m['id']}/stock-additions", json={"quantity": 0})
    assert r.status_code == 422


async def test_history_unknown_material(auth_client):
    r = await auth_client.get("/materials/999/history")
    assert r.status_code == 404


async def test_history_store_failure_is_reported(auth_client, new_material, monkeypatch):
    m = await new_material()

    async def _broken(db, material_id):
        raise SQLAlchemyError("connection reset")

    monkeypatch.setattr(ledger_service, "_load_usage", _broken)
    r = await auth_client.get(f"/materials/{m['id']}/history")
    assert r.status_code == 503
    assert r.json()["detail"]["retry"] is True


async def test_history_date_window(auth_client, new_material):
    m = await new_material(current_stock=100)
    for qty, day in ((10, "2024-03-05T10:00:00Z"), (5, "2024-03-06T10:00:00Z")):
        r = await auth_client.post(
            "/usage-logs", json={"material_id": m["id"], "quantity": qty, "date": day, "username": "dan"}
        )
        assert r.status_code == 201

    r = await auth_client.get(
        f"/materials/{m['id']}/history",
        params={"date_from": "2024-03-05T10:00:00Z", "date_to": "2024-03-05T10:00:00Z"},
    )
    rows = r.json()
    assert [row["category"] for row in rows] == ["Consumption", "Purchase"]
    assert rows[0]["stock"] == 105
    assert rows[0]["formatted_date"] == "05 Mar 24"
    assert rows[1]["id"] == "starting-balance"
    assert rows[1]["stock"] == 115


async def test_delete_detaches_history_rows(auth_client, new_material):
    m = await new_material(name="Glue")
    r = await auth_client.post(
        "/usage-logs", json={"material_id": m["id"], "quantity": 3, "username": "erin", "notes": "line 2"}
    )
    usage_id = r.json()["id"]

    r = await auth_client.delete(f"/materials/{m['id']}", params={"username": "erin"})
    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is True
    assert body["material_logs_detached"] == 1
    assert body["usage_logs_detached"] == 1
    assert body["audit"]["ok"] is True

    assert (await auth_client.get(f"/materials/{m['id']}")).status_code == 404

    u = (await auth_client.get(f"/usage-logs/{usage_id}")).json()
    assert u["material_id"] is None
    assert u["quantity"] == 3
    assert u["username"] == "erin"
    assert u["notes"] == "line 2"

    logs = (await auth_client.get("/material-logs")).json()
    assert [log["action_type"] for log in logs] == ["delete", "create"]
    assert all(log["material_id"] is None for log in logs)
    assert logs[0]["details"]["name"] == "Glue"
    assert logs[0]["material_name"] == "Glue"
    assert logs[1]["details"]["name"] == "Glue"


async def test_delete_allocated_material_is_refused(auth_client, new_material):
    m = await new_material()
    batch = (await auth_client.post("/batches", json={"batch_number": "B-1", "product": "Chair"})).json()
    r = await auth_client.post(f"/batches/{batch['id']}/materials", json={"material_id": m["id"], "quantity": 2})
    assert r.status_code == 201

    r = await auth_client.delete(f"/materials/{m['id']}")
    assert r.status_code == 409
    assert r.json()["detail"]["batch_material_count"] == 1
    assert (await auth_client.get(f"/materials/{m['id']}")).status_code == 200


async def test_low_stock_listing(auth_client, new_material):
    await new_material(name="Bolts", current_stock=5, threshold=10)
    await new_material(name="Nuts", current_stock=50, threshold=10)
    names = [m["name"] for m in (await auth_client.get("/materials/low-stock")).json()]
    assert names == ["Bolts"]


async def test_update_rejects_null_for_required_fields(auth_client, new_material):
    m = await new_material()
    for field in ("name", "category", "unit", "current_stock", "threshold"):
        r = await auth_client.patch(f"/materials/{m['id']}", json={field: None})
        assert r.status_code == 422, field
        assert r.json()["detail"][0]["loc"][-1] == field

    # optional columns may still be cleared
    r = await auth_client.patch(f"/materials/{m['id']}", json={"bill_number": None})
    assert r.status_code == 200
    assert r.json()["material"]["name"] == "Steel Rod"


async def test_delete_aborts_when_detaching_fails(auth_client, new_material, monkeypatch):
    m = await new_material(name="Primer")
    r = await auth_client.post("/usage-logs", json={"material_id": m["id"], "quantity": 2, "username": "fay"})
    usage_id = r.json()["id"]

    async def _broken(db, material_id):
        raise SQLAlchemyError("lock timeout")

    monkeypatch.setattr(material_service, "_detach_log_rows", _broken)

    r = await auth_client.delete(f"/materials/{m['id']}")
    assert r.status_code == 409
    assert r.json()["detail"]["material_id"] == m["id"]

    assert (await auth_client.get(f"/materials/{m['id']}")).status_code == 200
    assert (await auth_client.get(f"/usage-logs/{usage_id}")).json()["material_id"] == m["id"]
    logs = (await auth_client.get("/material-logs", params={"material_id": m["id"]})).json()
    assert [log["action_type"] for log in logs] == ["create"]
