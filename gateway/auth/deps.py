from __future__ import annotations

from typing import Optional

from fastapi import Request

from gateway.auth.config import GatewayConfig
from gateway.auth.models import Session
from gateway.auth.session import decode_session_id
from gateway.auth.store import SessionStore


def session_id_from_request(cfg: GatewayConfig, request: Request) -> Optional[str]:
    """Return the verified session id from the cookie, or None if absent/tampered/stale."""
    return decode_session_id(cfg, request.cookies.get(cfg.session_cookie_name))


def current_session(request: Request) -> Optional[Session]:
    """
    Resolve the caller's session from the signed cookie.

    The cookie is the only capability; there is no further authorization check.
    """
    cfg: GatewayConfig = request.app.state.config
    store: SessionStore = request.app.state.sessions
    return store.get(session_id_from_request(cfg, request))
