from __future__ import annotations

import base64
import os
from typing import Dict
from urllib.parse import urlencode


def b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def random_token(nbytes: int = 32) -> str:
    return b64url(os.urandom(nbytes))


def spa_url(base_url: str, path: str, params: Dict[str, str]) -> str:
    """
    Build an absolute SPA URL like `https://app.example/login?error=...`.
    """
    base = (base_url or "").rstrip("/")
    p = (path or "/").strip()
    if not p.startswith("/"):
        p = "/" + p
    # Keep it simple: strip any CR/LF.
    p = p.replace("\r", "").replace("\n", "")
    if not params:
        return f"{base}{p}"
    sep = "&" if "?" in p else "?"
    return f"{base}{p}{sep}{urlencode(params)}"
