from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from factory_inventory.api.deps import bearer, get_gate
from factory_inventory.core.auth import PinGate
from factory_inventory.schemas.auth import PinLogin, SessionStatus, SessionToken

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/pin", response_model=SessionToken)
async def login_with_pin(body: PinLogin, gate: PinGate = Depends(get_gate)) -> SessionToken:
    token = gate.authenticate(body.pin)
    if token is None:
        raise HTTPException(status_code=401, detail="invalid pin")
    return SessionToken(access_token=token, expires_in=gate.ttl_sec)


@router.get("/status", response_model=SessionStatus)
async def session_status(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    gate: PinGate = Depends(get_gate),
) -> SessionStatus:
    return SessionStatus(authenticated=gate.verify(credentials.credentials if credentials else None) is not None)


@router.post("/logout")
async def logout(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    gate: PinGate = Depends(get_gate),
) -> dict:
    revoked = gate.logout(credentials.credentials if credentials else None)
    return {"ok": True, "revoked": revoked}
