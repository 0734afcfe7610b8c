"""
Pytest config.

Tests import the local `gateway/` package from the repo root; pin the repo root on
sys.path so a global `pytest` entrypoint collects them without an editable install.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()

from gateway.auth.config import GatewayConfig, load_gateway_config  # noqa: E402
from gateway.auth.upstream import UpstreamError  # noqa: E402

TEST_SECRET = "test-secret-key-for-testing-purposes-only"


class FakeUpstream:
    """
    In-process stand-in for the upstream identity service.

    Each operation returns the configured body, or raises the configured UpstreamError.
    Calls are recorded as (operation, argument).
    """

    def __init__(self) -> None:
        self.calls: List[Tuple[str, Any]] = []
        self.responses: Dict[str, Any] = {
            "signup": {"message": "Signup successful! Please check your email to verify your account.", "success": True},
            "login": {"token": "t1", "isVerified": False, "message": "Login successful"},
            "verify": "<html>Email verified!</html>",
            "resend_verification": {"message": "Verification email sent", "success": True},
        }
        self.errors: Dict[str, UpstreamError] = {}

    def _reply(self, op: str, arg: Any) -> Any:
        self.calls.append((op, arg))
        err = self.errors.get(op)
        if err is not None:
            raise err
        return self.responses[op]

    def signup(self, payload: Dict[str, Any]) -> Any:
        return self._reply("signup", payload)

    def login(self, payload: Dict[str, Any]) -> Any:
        return self._reply("login", payload)

    def verify(self, token: str) -> Any:
        return self._reply("verify", token)

    def resend_verification(self, payload: Dict[str, Any]) -> Any:
        return self._reply("resend_verification", payload)

    def ops(self) -> List[str]:
        return [op for op, _ in self.calls]


def make_config(**overrides: Any) -> GatewayConfig:
    values: Dict[str, Any] = dict(
        upstream_base_url="http://upstream.test/api",
        upstream_timeout_seconds=5.0,
        session_secret=TEST_SECRET,
        session_cookie_name="gateway_session",
        session_ttl_seconds=86400,
        cookie_secure=False,
        cookie_samesite="lax",
        allowed_origins=["http://localhost:5173", "http://localhost:3000"],
        allowed_origin_patterns=[r"https://auth-frontend-.*\.vercel\.app"],
        frontend_url="http://localhost:5173",
        verify_success_path="/dashboard",
        verify_error_path="/login",
        environment="test",
        host="127.0.0.1",
        port=3001,
    )
    values.update(overrides)
    return GatewayConfig(**values)


@pytest.fixture(autouse=True)
def _reset_config_cache() -> None:
    load_gateway_config.cache_clear()
    yield
    load_gateway_config.cache_clear()


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def cfg() -> GatewayConfig:
    return make_config()


@pytest.fixture
def client(cfg: GatewayConfig, upstream: FakeUpstream):  # type: ignore[no-untyped-def]
    from fastapi.testclient import TestClient

    from gateway.api.server import create_app

    return TestClient(create_app(cfg, upstream=upstream), follow_redirects=False)


def cookie_header(resp: Any, name: str = "gateway_session") -> Optional[str]:
    for value in resp.headers.get_list("set-cookie"):
        if value.startswith(f"{name}="):
            return value
    return None
