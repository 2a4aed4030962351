# impostor_game/sessions.py
"""
Session Token Authority: signed bearer tokens binding player, room and host flag.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from impostor_game.config import JWT_ALGORITHM, JWT_SECRET, SESSION_TTL_HOURS
from impostor_game.errors import Forbidden, Unauthorized


@dataclass(frozen=True)
class SessionClaims:
    player_id: str
    room_code: str
    is_host: bool

    def require_host(self, action: str = "do that"):
        if not self.is_host:
            raise Forbidden(f"Only host can {action}")


def issue_token(player_id: str, room_code: str, is_host: bool, secret: str = JWT_SECRET) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "player_id": player_id,
        "room_code": room_code,
        "is_host": bool(is_host),
        "iat": now,
        "exp": now + timedelta(hours=SESSION_TTL_HOURS),
    }
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def verify_token(token: str, secret: str = JWT_SECRET) -> SessionClaims:
    try:
        payload = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Session expired") from None
    except jwt.InvalidTokenError:
        raise Unauthorized("Invalid session token") from None

    player_id = payload.get("player_id")
    room_code = payload.get("room_code")
    if not player_id or not room_code:
        raise Unauthorized("Invalid session token")
    return SessionClaims(player_id=player_id, room_code=room_code, is_host=bool(payload.get("is_host")))


bearer_scheme = HTTPBearer(auto_error=False)


def get_session(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> SessionClaims:
    """FastAPI dependency: verified claims of the caller."""
    if credentials is None or not credentials.credentials:
        raise Unauthorized("No token provided")
    return verify_token(credentials.credentials)
