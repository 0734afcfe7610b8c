"""
Session gateway server.

Sits between the browser SPA and the upstream identity service: credentials are
exchanged upstream for a bearer token, the token is kept server-side, and the
browser gets only an HttpOnly session cookie.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, Optional

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, ConfigDict

from gateway.auth.config import GatewayConfig, load_gateway_config
from gateway.auth.deps import current_session, session_id_from_request
from gateway.auth.origins import OriginGatekeeper
from gateway.auth.session import clear_session_cookie_kwargs, encode_session_id, session_cookie_kwargs
from gateway.auth.store import SessionStore, SessionStoreError
from gateway.auth.upstream import UpstreamClient, UpstreamError
from gateway.auth.util import spa_url

logger = logging.getLogger(__name__)

_CORS_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
_CORS_HEADERS = ["Content-Type", "Authorization"]


class CredentialsRequest(BaseModel):
    # Validation belongs to the upstream: whatever the browser sent is forwarded untouched.
    model_config = ConfigDict(extra="allow")

    email: Optional[Any] = None
    password: Optional[Any] = None


class ResendVerificationRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    email: Optional[Any] = None


def _forwarded(payload: BaseModel) -> Dict[str, Any]:
    # Only keys the browser actually sent; declared fields default to None otherwise.
    body = {k: getattr(payload, k) for k in type(payload).model_fields if k in payload.model_fields_set}
    body.update(payload.model_extra or {})
    return body


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return value is True


def _message(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


def _passthrough(e: UpstreamError) -> JSONResponse:
    # Keep the upstream opaque: same status, same body.
    return JSONResponse(status_code=e.status, content=e.body)


def _no_store(resp):  # type: ignore[no-untyped-def]
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _config(request: Request) -> GatewayConfig:
    return request.app.state.config


def _sessions(request: Request) -> SessionStore:
    return request.app.state.sessions


def _upstream(request: Request) -> UpstreamClient:
    return request.app.state.upstream


router = APIRouter()


@router.get("/health")
def health(request: Request) -> Dict[str, Any]:
    cfg = _config(request)
    return {
        "status": "ok",
        "message": "Session gateway is running",
        "upstreamApi": cfg.upstream_base_url,
        "environment": cfg.environment,
    }


@router.get("/healthz")
def healthz(request: Request) -> Dict[str, Any]:
    cfg = _config(request)
    return {"ok": True, "upstream": cfg.upstream_base_url, "environment": cfg.environment}


@router.post("/api/auth/signup")
def auth_signup(request: Request, payload: CredentialsRequest) -> JSONResponse:
    """Proxy signup to the upstream. No session is created."""
    logger.info("Signup request received: %s", payload.email)
    try:
        body = _upstream(request).signup(_forwarded(payload))
    except UpstreamError as e:
        logger.warning("Signup error for %s (status=%d)", payload.email, e.status)
        return _passthrough(e)
    return JSONResponse(content=body)


@router.post("/api/auth/login")
def auth_login(request: Request, payload: CredentialsRequest) -> JSONResponse:
    """
    Exchange credentials for an upstream bearer token and open a session.

    The token is stored server-side only; the response carries the session cookie and
    the verification flag, never the token itself.
    """
    cfg = _config(request)
    store = _sessions(request)
    if not cfg.signing_enabled:
        return _message(500, "Session signing is not configured (SESSION_SECRET)")

    logger.info("Login request received: %s", payload.email)
    try:
        data = _upstream(request).login(_forwarded(payload))
    except UpstreamError as e:
        logger.warning("Login error for %s (status=%d)", payload.email, e.status)
        return _passthrough(e)

    token = str(data.get("token") or "").strip() if isinstance(data, dict) else ""
    if not token:
        logger.error("Upstream login succeeded without a token for %s", payload.email)
        return _message(502, "Login failed")
    is_verified = _flag(data.get("isVerified"))

    # One cookie, one record: a re-login replaces whatever session the browser held.
    previous = session_id_from_request(cfg, request)
    if previous:
        try:
            store.destroy(previous)
        except SessionStoreError:
            logger.warning("Failed to drop previous session on re-login", exc_info=True)

    try:
        session_id = store.create(str(payload.email or ""), token, is_verified)
    except SessionStoreError:
        logger.exception("Login error: session could not be stored")
        return _message(500, "Login failed")

    cookie_value = encode_session_id(cfg, session_id) or ""

    logger.info("Login successful, session created for %s", payload.email)
    resp = _no_store(JSONResponse(content={"message": "Login successful", "isVerified": is_verified}))
    resp.set_cookie(**session_cookie_kwargs(cfg, cookie_value))
    return resp


@router.get("/api/auth/me")
async def auth_me(request: Request) -> JSONResponse:
    """Report the stored identity snapshot; polled by the SPA to observe verification."""
    session = current_session(request)
    if session is None:
        return _message(401, "Not authenticated")
    return _no_store(JSONResponse(content=session.to_status()))


@router.post("/api/auth/logout")
async def auth_logout(request: Request) -> JSONResponse:
    cfg = _config(request)
    session_id = session_id_from_request(cfg, request)
    if session_id:
        try:
            _sessions(request).destroy(session_id)
        except SessionStoreError:
            logger.exception("Logout error")
            return _message(500, "Logout failed")

    resp = _no_store(JSONResponse(content={"message": "Logged out successfully"}))
    resp.set_cookie(**clear_session_cookie_kwargs(cfg))
    return resp


@router.get("/api/auth/verify")
def auth_verify(request: Request, token: Optional[str] = Query(None)) -> RedirectResponse:
    """
    Verification link target (reached by browser navigation, not XHR).

    Both outcomes are redirects into the SPA. The upstream owns the verified state;
    flipping the local session is a cache update for whichever browser is logged in.
    """
    cfg = _config(request)
    error_url = spa_url(cfg.frontend_url, cfg.verify_error_path, {"error": "verification_failed"})

    token = (token or "").strip()
    if not token:
        logger.warning("Verification error: missing token")
        return _no_store(RedirectResponse(url=error_url, status_code=302))

    try:
        _upstream(request).verify(token)
    except UpstreamError as e:
        logger.warning("Verification error (status=%d)", e.status)
        return _no_store(RedirectResponse(url=error_url, status_code=302))

    # Upstream already accepted the token; the local flip must not turn success into an error.
    session_id = session_id_from_request(cfg, request)
    try:
        if _sessions(request).set_verified(session_id):
            logger.info("Session marked as verified")
    except Exception:
        logger.exception("Verification succeeded upstream but the local session could not be updated")

    success_url = spa_url(cfg.frontend_url, cfg.verify_success_path, {"verified": "true"})
    return _no_store(RedirectResponse(url=success_url, status_code=302))


@router.post("/api/auth/resend-verification")
def auth_resend_verification(request: Request, payload: ResendVerificationRequest) -> JSONResponse:
    try:
        body = _upstream(request).resend_verification(_forwarded(payload))
    except UpstreamError as e:
        logger.warning("Resend verification error for %s (status=%d)", payload.email, e.status)
        return _passthrough(e)
    return JSONResponse(content=body)


def create_app(
    cfg: Optional[GatewayConfig] = None,
    *,
    upstream: Optional[UpstreamClient] = None,
    store: Optional[SessionStore] = None,
) -> FastAPI:
    cfg = cfg if cfg is not None else load_gateway_config()
    gatekeeper = OriginGatekeeper(cfg.allowed_origins, cfg.allowed_origin_patterns)

    app = FastAPI(title="Session gateway")
    app.state.config = cfg
    app.state.gatekeeper = gatekeeper
    app.state.sessions = store if store is not None else SessionStore(ttl_seconds=cfg.session_ttl_seconds)
    app.state.upstream = (
        upstream
        if upstream is not None
        else UpstreamClient(cfg.upstream_base_url, timeout=cfg.upstream_timeout_seconds)
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=gatekeeper.exact,
        allow_origin_regex=gatekeeper.origin_regex,
        allow_credentials=True,
        allow_methods=_CORS_METHODS,
        allow_headers=_CORS_HEADERS,
    )

    # Registered after CORSMiddleware so it wraps it: denied origins never reach CORS or handlers.
    @app.middleware("http")
    async def gate_requests(request: Request, call_next):  # type: ignore[no-untyped-def]
        start_time = time.time()
        logger.debug("%s %s", request.method, request.url.path)

        if not gatekeeper.is_allowed(request.headers.get("origin")):
            return _message(403, "Not allowed by CORS")

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.exception("%s %s - ERROR after %.3fs: %s", request.method, request.url.path, process_time, str(e))
            raise
        process_time = time.time() - start_time
        logger.debug("%s %s - %d (%.3fs)", request.method, request.url.path, response.status_code, process_time)
        return response

    app.include_router(router)
    return app


def run(host: Optional[str] = None, port: Optional[int] = None) -> None:
    import uvicorn

    # Configure logging for the application
    log_level = os.getenv("LOG_LEVEL", "info").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    # Map Python logging levels to uvicorn log levels
    uvicorn_log_level = (
        log_level.lower() if log_level.lower() in ["critical", "error", "warning", "info", "debug", "trace"] else "info"
    )

    cfg = load_gateway_config()
    host = host or cfg.host
    port = port or cfg.port
    if not cfg.signing_enabled:
        logger.warning("SESSION_SECRET is not set; logins will fail until it is configured")
    if cfg.is_production and not cfg.cookie_secure:
        logger.warning("COOKIE_SECURE is off in production; session cookies will be sent over plain HTTP")

    logger.info("Starting session gateway on %s:%d (log_level=%s)", host, port, log_level)
    logger.info("Upstream identity service: %s", cfg.upstream_base_url)
    logger.info("Allowed origins: %s", ", ".join(cfg.allowed_origins + cfg.allowed_origin_patterns))
    uvicorn.run(create_app(cfg), host=host, port=port, log_level=uvicorn_log_level)
