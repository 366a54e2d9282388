from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from factory_inventory.core.auth import PinGate, SessionInfo
from factory_inventory.db.session import get_session as _get_session

bearer = HTTPBearer(auto_error=False)


async def get_db() -> AsyncIterator[AsyncSession]:
    async for s in _get_session():
        yield s


def get_gate(request: Request) -> PinGate:
    gate = getattr(request.app.state, "pin_gate", None)
    if gate is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="session gate not initialized")
    return gate


def require_session(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    gate: PinGate = Depends(get_gate),
) -> SessionInfo:
    info = gate.verify(credentials.credentials if credentials else None)
    if info is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="pin session required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return info
