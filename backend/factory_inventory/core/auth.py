from __future__ import annotations

import hmac
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from factory_inventory.core.crypto import decrypt_str, encrypt_str

logger = logging.getLogger("auth")


@dataclass
class SessionInfo:
    session_id: str
    issued_at: datetime


@dataclass
class PinGate:
    """
    Shared-PIN session context for the dashboard.

    One instance lives for the lifetime of the application (created in the
    FastAPI lifespan, closed on shutdown). Tokens are Fernet-encrypted session
    ids; logout revokes the id in-process.

    The PIN comparison is a convenience gate for a single-tenant shop floor
    terminal, not an authorization model.
    """

    pin: str
    secret_key: str
    ttl_sec: int
    # session id -> issued_at; entries go once their token would have expired anyway
    _revoked: dict[str, datetime] = field(default_factory=dict)
    _closed: bool = False

    def authenticate(self, pin: str) -> str | None:
        if self._closed:
            raise RuntimeError("pin gate is closed")
        if not hmac.compare_digest(str(pin).encode("utf-8"), self.pin.encode("utf-8")):
            logger.info("pin rejected")
            return None
        now = datetime.now(timezone.utc)
        payload = {"sid": uuid.uuid4().hex, "iat": now.isoformat()}
        return encrypt_str(self.secret_key, json.dumps(payload))

    def verify(self, token: str | None) -> SessionInfo | None:
        if self._closed or not token:
            return None
        try:
            raw = decrypt_str(self.secret_key, token, ttl_sec=self.ttl_sec)
            payload = json.loads(raw)
            sid = str(payload["sid"])
            issued_at = datetime.fromisoformat(payload["iat"])
        except (ValueError, KeyError, TypeError):
            return None
        if sid in self._revoked:
            return None
        return SessionInfo(session_id=sid, issued_at=issued_at)

    def logout(self, token: str | None) -> bool:
        info = self.verify(token)
        if info is None:
            return False
        self._revoked[info.session_id] = info.issued_at
        self._prune_revoked()
        return True

    def _prune_revoked(self) -> None:
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=self.ttl_sec)
        for sid, issued_at in list(self._revoked.items()):
            if issued_at < cutoff:
                del self._revoked[sid]

    def close(self) -> None:
        self._revoked.clear()
        self._closed = True
