from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from factory_inventory.db.models.material import Material
from factory_inventory.db.models.material_log import MaterialLog
from factory_inventory.schemas.material_log import (
    CreateDetails,
    DeleteDetails,
    FieldChange,
    MaterialSnapshot,
    UpdateDetails,
)
from factory_inventory.services.ledger_service import as_utc

logger = logging.getLogger("audit")

ACTION_CREATE = "create"
ACTION_UPDATE = "update"
ACTION_DELETE = "delete"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AuditResult:
    """Outcome of the audit hook, reported separately from the mutation it describes."""

    ok: bool
    log_id: int | None = None
    error: str | None = None


def snapshot_material(m: Material) -> MaterialSnapshot:
    return MaterialSnapshot(
        name=m.name or "Unknown",
        category=m.category or "Unknown",
        unit=m.unit or "",
        current_stock=float(m.current_stock or 0),
        threshold=float(m.threshold or 0),
        bill_number=m.bill_number or None,
    )


def get_changes(old: dict[str, Any], new: dict[str, Any]) -> dict[str, FieldChange]:
    """Fields present in both snapshots whose values differ."""
    changes: dict[str, FieldChange] = {}
    for key, new_value in new.items():
        if key not in old:
            continue
        if json.dumps(old[key], sort_keys=True, default=str) != json.dumps(new_value, sort_keys=True, default=str):
            changes[key] = FieldChange(old=old[key], new=new_value)
    return changes


async def _write_log(
    db: AsyncSession,
    *,
    material_id: int | None,
    action_type: str,
    username: str,
    details: BaseModel,
) -> MaterialLog:
    row = MaterialLog(
        material_id=material_id,
        action_type=action_type,
        username=username,
        timestamp=_utcnow(),
        details=details.model_dump(mode="json"),
    )
    db.add(row)
    await db.commit()
    return row


async def _append(
    db: AsyncSession,
    *,
    material_id: int | None,
    action_type: str,
    username: str,
    details: BaseModel,
) -> AuditResult:
    """
    Post-commit hook: write one audit row in a session of its own.

    The primary mutation has already been committed by the caller. Failures here
    are logged and reported in the result, never raised.
    """
    try:
        async with AsyncSession(db.bind, expire_on_commit=False) as audit_db:
            row = await _write_log(
                audit_db,
                material_id=material_id,
                action_type=action_type,
                username=username,
                details=details,
            )
            log_id = int(row.id)
    except Exception as e:
        logger.warning(
            "material audit write failed action=%s material_id=%s user=%s: %s",
            action_type,
            material_id,
            username,
            e,
            exc_info=True,
        )
        return AuditResult(ok=False, error=str(e) or e.__class__.__name__)
    logger.info("material audit recorded id=%s action=%s material_id=%s", log_id, action_type, material_id)
    return AuditResult(ok=True, log_id=log_id)


async def record_creation(db: AsyncSession, material: Material, *, username: str) -> AuditResult:
    details = CreateDetails(**snapshot_material(material).model_dump())
    return await _append(db, material_id=material.id, action_type=ACTION_CREATE, username=username, details=details)


async def record_update(
    db: AsyncSession,
    material_id: int,
    *,
    username: str,
    old: MaterialSnapshot,
    new: MaterialSnapshot,
) -> AuditResult:
    old_d = old.model_dump(mode="json")
    new_d = new.model_dump(mode="json")
    details = UpdateDetails(old=old_d, new=new_d, changes=get_changes(old_d, new_d))
    return await _append(db, material_id=material_id, action_type=ACTION_UPDATE, username=username, details=details)


async def record_deletion(db: AsyncSession, snapshot: MaterialSnapshot, *, username: str) -> AuditResult:
    # The material row is gone by now; the snapshot carries its name for later display.
    details = DeleteDetails(**snapshot.model_dump(), deleted_at=_utcnow())
    return await _append(db, material_id=None, action_type=ACTION_DELETE, username=username, details=details)


def _row_out(log: MaterialLog, name: str | None, category: str | None, unit: str | None) -> dict:
    details = log.details or {}
    if name is None:
        # deleted material: fall back to the names captured in the payload
        captured = details.get("new") if log.action_type == ACTION_UPDATE else details
        if isinstance(captured, dict):
            name = captured.get("name")
            category = category or captured.get("category")
            unit = unit or captured.get("unit")
    return {
        "id": log.id,
        "material_id": log.material_id,
        "action_type": log.action_type,
        "username": log.username,
        "timestamp": log.timestamp,
        "details": details,
        "material_name": name,
        "material_category": category,
        "material_unit": unit,
    }


def _base_query():
    return select(MaterialLog, Material.name, Material.category, Material.unit).outerjoin(
        Material, Material.id == MaterialLog.material_id
    )


async def list_material_logs(
    db: AsyncSession,
    *,
    material_id: int | None = None,
    action_type: str | None = None,
    username: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> list[dict]:
    stmt = _base_query()
    if material_id is not None:
        stmt = stmt.where(MaterialLog.material_id == material_id)
    if action_type:
        stmt = stmt.where(MaterialLog.action_type == action_type)
    if username:
        stmt = stmt.where(MaterialLog.username.ilike(f"%{username}%"))
    if date_from is not None:
        stmt = stmt.where(MaterialLog.timestamp >= as_utc(date_from))
    if date_to is not None:
        stmt = stmt.where(MaterialLog.timestamp <= as_utc(date_to))
    stmt = stmt.order_by(MaterialLog.timestamp.desc(), MaterialLog.id.desc())
    rows = (await db.execute(stmt)).all()
    return [_row_out(log, name, category, unit) for log, name, category, unit in rows]
