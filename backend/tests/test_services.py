from __future__ import annotations

from datetime import datetime, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from factory_inventory.db.models.material import Material
from factory_inventory.db.models.material_log import MaterialLog
from factory_inventory.db.models.setting import Setting
from factory_inventory.services import ledger_service, material_service, settings_service
from factory_inventory.services.errors import MaterialNotFound
from factory_inventory.services.material_log_service import get_changes


async def _material(db, stock: float = 10) -> Material:
    result = await material_service.create_material(
        db, {"name": "Tape", "category": "Misc", "unit": "roll", "current_stock": stock}, username="ops"
    )
    return result.primary


def test_get_changes_ignores_keys_missing_on_one_side():
    changes = get_changes({"a": 1, "b": [1, 2], "gone": 3}, {"a": 1, "b": [2, 1], "added": 4})
    assert list(changes) == ["b"]
    assert changes["b"].old == [1, 2]
    assert changes["b"].new == [2, 1]


async def test_direct_addition_rejects_non_positive_quantity(db):
    m = await _material(db)
    with pytest.raises(ValueError):
        await ledger_service.record_direct_stock_addition(db, m.id, 0)


async def test_direct_addition_unknown_material(db):
    with pytest.raises(MaterialNotFound):
        await ledger_service.record_direct_stock_addition(db, 404, 1)


async def test_history_reads_stock_from_database(db, session_factory):
    m = await _material(db, stock=10)
    await material_service.add_stock(db, m.id, 5, bill_number="B-1", username="ops")

    # a second writer changes the stock behind this session's back
    async with session_factory() as other:
        row = await other.get(Material, m.id)
        row.current_stock = 40
        await other.commit()

    txs = await ledger_service.get_material_history(db, m.id)
    assert txs[0].stock == 40
    assert txs[-1].stock == 35


async def test_history_window_with_naive_bounds(db):
    m = await _material(db, stock=3)
    txs = await ledger_service.get_material_history(
        db, m.id, date_from=datetime(2000, 1, 1), date_to=datetime.now(timezone.utc)
    )
    assert txs == []


async def test_audit_rows_are_written_in_their_own_transaction(db):
    m = await _material(db)
    await material_service.update_material(db, m.id, {"name": "Duct Tape"}, username="ops")
    rows = (await db.execute(select(MaterialLog).order_by(MaterialLog.id))).scalars().all()
    assert [r.action_type for r in rows] == ["create", "update"]
    assert rows[1].details["changes"] == {"name": {"old": "Tape", "new": "Duct Tape"}}


async def test_settings_are_unique_per_key_and_user(db):
    now = datetime.now(timezone.utc)
    db.add(Setting(key="theme", value="dark", user_id=None, created_at=now))
    db.add(Setting(key="theme", value="light", user_id="u1", created_at=now))
    await db.commit()

    db.add(Setting(key="theme", value="system", user_id=None, created_at=now))
    with pytest.raises(IntegrityError):
        await db.commit()
    await db.rollback()


async def test_set_setting_recovers_from_concurrent_insert(db, session_factory, monkeypatch):
    async with session_factory() as other:
        other.add(Setting(key="currency", value="EUR", user_id=None, created_at=datetime.now(timezone.utc)))
        await other.commit()

    real_get = settings_service.get_by_key
    calls = []

    async def _miss_first(*args, **kwargs):
        calls.append(args)
        if len(calls) == 1:
            return None
        return await real_get(*args, **kwargs)

    monkeypatch.setattr(settings_service, "get_by_key", _miss_first)

    s = await settings_service.set_setting(db, "currency", "USD")
    assert s.value == "USD"
    rows = (await db.execute(select(Setting))).scalars().all()
    assert [(r.key, r.value) for r in rows] == [("currency", "USD")]
