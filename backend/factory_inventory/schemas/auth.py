from __future__ import annotations

from pydantic import BaseModel, Field

from factory_inventory.schemas.common import APIModel


class PinLogin(BaseModel):
    pin: str = Field(min_length=1)


class SessionToken(APIModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class SessionStatus(APIModel):
    authenticated: bool
