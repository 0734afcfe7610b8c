"""
Thin client for the upstream identity service.

Every call is a single attempt bounded by a fixed timeout. Upstream failures are
re-raised as `UpstreamError(status, body)` so the gateway can hand the browser the
same status and body the identity service produced.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)


class UpstreamError(Exception):
    def __init__(self, status: int, body: Any) -> None:
        super().__init__(f"Upstream request failed (status={status})")
        self.status = status
        self.body = body


def _decode_body(r: requests.Response) -> Any:
    ctype = (r.headers.get("Content-Type") or "").lower()
    if "json" in ctype:
        try:
            return r.json()
        except ValueError:
            return r.text
    return r.text


class UpstreamClient:
    def __init__(self, base_url: str, *, timeout: float = 10.0, session: Optional[requests.Session] = None) -> None:
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout
        self._http = session if session is not None else requests.Session()

    def _request(
        self,
        method: str,
        path: str,
        *,
        fallback_message: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        try:
            r = self._http.request(method, url, json=json, params=params, timeout=self.timeout)
        except requests.Timeout:
            logger.error("Upstream %s %s timed out after %.1fs", method, path, self.timeout)
            raise UpstreamError(504, {"message": fallback_message})
        except requests.RequestException as e:
            logger.error("Upstream %s %s unreachable: %s", method, path, str(e))
            raise UpstreamError(500, {"message": fallback_message})

        body = _decode_body(r)
        if r.status_code >= 400:
            logger.warning("Upstream %s %s returned %d", method, path, r.status_code)
            raise UpstreamError(r.status_code, body)
        return body

    def signup(self, payload: Dict[str, Any]) -> Any:
        return self._request("POST", "/auth/signup", json=payload, fallback_message="Signup failed")

    def login(self, payload: Dict[str, Any]) -> Any:
        return self._request("POST", "/auth/login", json=payload, fallback_message="Login failed")

    def verify(self, token: str) -> Any:
        return self._request("GET", "/auth/verify", params={"token": token}, fallback_message="Verification failed")

    def resend_verification(self, payload: Dict[str, Any]) -> Any:
        return self._request(
            "POST",
            "/auth/resend-verification",
            json=payload,
            fallback_message="Failed to resend verification email",
        )
