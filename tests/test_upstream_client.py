"""
Unit tests for the upstream identity client with a mocked HTTP session.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from gateway.auth.upstream import UpstreamClient, UpstreamError


def _response(status: int, body, content_type: str = "application/json") -> MagicMock:  # type: ignore[no-untyped-def]
    r = MagicMock()
    r.status_code = status
    r.headers = {"Content-Type": content_type}
    if isinstance(body, str):
        r.text = body
        r.json.side_effect = ValueError("not json")
    else:
        r.json.return_value = body
        r.text = str(body)
    return r


def _client(resp=None, exc=None):  # type: ignore[no-untyped-def]
    http = MagicMock()
    if exc is not None:
        http.request.side_effect = exc
    else:
        http.request.return_value = resp
    return UpstreamClient("http://upstream.test/api/", timeout=3.0, session=http), http


def test_signup_forwards_payload_and_returns_body() -> None:
    client, http = _client(_response(200, {"message": "Signup successful", "success": True}))
    body = client.signup({"email": "a@example.com", "password": "pw"})
    assert body == {"message": "Signup successful", "success": True}
    http.request.assert_called_once_with(
        "POST",
        "http://upstream.test/api/auth/signup",
        json={"email": "a@example.com", "password": "pw"},
        params=None,
        timeout=3.0,
    )


def test_login_returns_token_body() -> None:
    client, http = _client(_response(200, {"token": "t1", "isVerified": False}))
    assert client.login({"email": "a@example.com", "password": "pw"}) == {"token": "t1", "isVerified": False}
    assert http.request.call_args[0][1] == "http://upstream.test/api/auth/login"


def test_verify_passes_token_as_query_param_and_accepts_text() -> None:
    client, http = _client(_response(200, "<html>Email verified!</html>", content_type="text/html"))
    assert client.verify("abc") == "<html>Email verified!</html>"
    args, kwargs = http.request.call_args
    assert args == ("GET", "http://upstream.test/api/auth/verify")
    assert kwargs["params"] == {"token": "abc"}


def test_resend_verification_path() -> None:
    client, http = _client(_response(200, {"message": "sent"}))
    client.resend_verification({"email": "a@example.com"})
    assert http.request.call_args[0][1] == "http://upstream.test/api/auth/resend-verification"


def test_upstream_error_keeps_status_and_body() -> None:
    client, _ = _client(_response(401, {"message": "Invalid email or password", "success": False}))
    with pytest.raises(UpstreamError) as ei:
        client.login({"email": "a@example.com", "password": "wrong"})
    assert ei.value.status == 401
    assert ei.value.body == {"message": "Invalid email or password", "success": False}


def test_non_json_error_body_is_text() -> None:
    client, _ = _client(_response(404, "<html>Invalid token</html>", content_type="text/html"))
    with pytest.raises(UpstreamError) as ei:
        client.verify("bad")
    assert ei.value.status == 404
    assert ei.value.body == "<html>Invalid token</html>"


def test_unreachable_upstream_maps_to_500() -> None:
    client, _ = _client(exc=requests.ConnectionError("connection refused"))
    with pytest.raises(UpstreamError) as ei:
        client.signup({"email": "a@example.com", "password": "pw"})
    assert ei.value.status == 500
    assert ei.value.body == {"message": "Signup failed"}


def test_timeout_maps_to_504_without_retry() -> None:
    client, http = _client(exc=requests.Timeout("read timed out"))
    with pytest.raises(UpstreamError) as ei:
        client.login({"email": "a@example.com", "password": "pw"})
    assert ei.value.status == 504
    assert ei.value.body == {"message": "Login failed"}
    assert http.request.call_count == 1


@pytest.mark.parametrize(
    "op,arg,message",
    [
        ("verify", "tok", "Verification failed"),
        ("resend_verification", {"email": "a@example.com"}, "Failed to resend verification email"),
    ],
)
def test_fallback_messages(op, arg, message) -> None:  # type: ignore[no-untyped-def]
    client, _ = _client(exc=requests.ConnectionError("down"))
    with pytest.raises(UpstreamError) as ei:
        getattr(client, op)(arg)
    assert ei.value.body == {"message": message}
