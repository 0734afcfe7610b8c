from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional

_SAMESITE_VALUES = ("lax", "strict", "none")


@dataclass(frozen=True)
class GatewayConfig:
    # Upstream identity service
    upstream_base_url: str
    upstream_timeout_seconds: float

    # Session configuration
    session_secret: Optional[str]  # Required for session signing
    session_cookie_name: str
    session_ttl_seconds: int
    cookie_secure: bool
    cookie_samesite: str

    # Origin allow-list (exact strings + full-match regexes)
    allowed_origins: List[str]
    allowed_origin_patterns: List[str]

    # SPA routes for the verification callback redirects
    frontend_url: str
    verify_success_path: str
    verify_error_path: str

    environment: str
    host: str
    port: int

    @property
    def signing_enabled(self) -> bool:
        return bool(self.session_secret)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def _parse_csv(value: str) -> List[str]:
    items = [x.strip() for x in (value or "").split(",")]
    return [x for x in items if x]


def _parse_bool(value: str) -> Optional[bool]:
    v = (value or "").strip().lower()
    if v in ("1", "true", "yes", "on"):
        return True
    if v in ("0", "false", "no", "off"):
        return False
    return None


def _route(value: str, default: str) -> str:
    p = (value or "").strip() or default
    return p if p.startswith("/") else "/" + p


@lru_cache(maxsize=1)
def load_gateway_config() -> GatewayConfig:
    """
    Load gateway configuration from environment variables.

    Cookies default to Secure + SameSite=None in production (the SPA and the gateway
    live on different sites there) and to Lax over plain HTTP for local development.
    """
    environment = (os.getenv("GATEWAY_ENV", "") or "development").strip().lower()

    cookie_secure = _parse_bool(os.getenv("COOKIE_SECURE", ""))
    if cookie_secure is None:
        cookie_secure = environment == "production"

    samesite = (os.getenv("COOKIE_SAMESITE", "") or "").strip().lower()
    if samesite not in _SAMESITE_VALUES:
        samesite = "none" if cookie_secure else "lax"
    if samesite == "none" and not cookie_secure:
        # Browsers drop SameSite=None cookies that are not Secure.
        samesite = "lax"

    ttl = int(float((os.getenv("SESSION_TTL_SECONDS", "") or "86400").strip() or "86400"))  # 24h default
    if ttl <= 60:
        ttl = 60

    timeout = float((os.getenv("UPSTREAM_TIMEOUT_SECONDS", "") or "10").strip() or "10")
    if timeout <= 0:
        timeout = 10.0

    allowed_origins = _parse_csv(
        os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000")
    )

    return GatewayConfig(
        upstream_base_url=(os.getenv("UPSTREAM_API_URL", "") or "http://localhost:8080/api").strip().rstrip("/"),
        upstream_timeout_seconds=timeout,
        session_secret=(os.getenv("SESSION_SECRET", "") or "").strip() or None,
        session_cookie_name=(os.getenv("SESSION_COOKIE_NAME", "") or "gateway_session").strip(),
        session_ttl_seconds=ttl,
        cookie_secure=cookie_secure,
        cookie_samesite=samesite,
        allowed_origins=[o.rstrip("/") for o in allowed_origins],
        allowed_origin_patterns=_parse_csv(os.getenv("ALLOWED_ORIGIN_PATTERNS", "")),
        frontend_url=(os.getenv("FRONTEND_URL", "") or "http://localhost:5173").strip().rstrip("/"),
        verify_success_path=_route(os.getenv("VERIFY_SUCCESS_PATH", ""), "/dashboard"),
        verify_error_path=_route(os.getenv("VERIFY_ERROR_PATH", ""), "/login"),
        environment=environment,
        host=(os.getenv("HOST", "") or "0.0.0.0").strip(),
        port=int((os.getenv("PORT", "") or "3001").strip() or "3001"),
    )
