from __future__ import annotations

from typing import Optional

from itsdangerous import BadSignature, BadTimeSignature, URLSafeTimedSerializer

from gateway.auth.config import GatewayConfig

SESSION_SALT = "gateway-session-v1"


def _serializer(cfg: GatewayConfig) -> Optional[URLSafeTimedSerializer]:
    if not cfg.session_secret:
        return None
    return URLSafeTimedSerializer(secret_key=cfg.session_secret, salt=SESSION_SALT)


def encode_session_id(cfg: GatewayConfig, session_id: str) -> Optional[str]:
    s = _serializer(cfg)
    if s is None:
        return None
    # The cookie carries only the opaque id; everything else stays in the store.
    return s.dumps(session_id)


def decode_session_id(cfg: GatewayConfig, value: str | None) -> Optional[str]:
    if not value:
        return None
    s = _serializer(cfg)
    if s is None:
        return None
    try:
        sid = s.loads(value, max_age=cfg.session_ttl_seconds)
    except (BadSignature, BadTimeSignature, ValueError):
        return None
    if not isinstance(sid, str) or not sid:
        return None
    return sid


def session_cookie_kwargs(cfg: GatewayConfig, value: str) -> dict:
    return {
        "key": cfg.session_cookie_name,
        "value": value,
        "max_age": cfg.session_ttl_seconds,
        "httponly": True,
        "secure": cfg.cookie_secure,
        "samesite": cfg.cookie_samesite,
        "path": "/",
    }


def clear_session_cookie_kwargs(cfg: GatewayConfig) -> dict:
    return {
        "key": cfg.session_cookie_name,
        "value": "",
        "max_age": 0,
        "httponly": True,
        "secure": cfg.cookie_secure,
        "samesite": cfg.cookie_samesite,
        "path": "/",
    }
