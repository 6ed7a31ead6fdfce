# session_auth.py
from __future__ import annotations

from fastapi import Header, HTTPException
from itsdangerous import BadSignature, URLSafeSerializer

from local_pulse.settings import settings


_serializer = URLSafeSerializer(secret_key=settings.session_secret, salt="local-pulse-user-v1")


def sign_user(user_id: str) -> str:
    return _serializer.dumps({"uid": user_id})


def verify_user(user_id: str, user_token: str) -> None:
    try:
        payload = _serializer.loads(user_token)
    except BadSignature:
        raise HTTPException(status_code=401, detail="Invalid user token")

    if not isinstance(payload, dict) or payload.get("uid") != user_id:
        raise HTTPException(status_code=401, detail="User token mismatch")


def require_user(
    x_user_id: str = Header(..., alias="x-user-id"),
    x_user_token: str = Header(..., alias="x-user-token"),
) -> str:
    verify_user(x_user_id, x_user_token)
    return x_user_id
