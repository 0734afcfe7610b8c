from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional, Pattern

logger = logging.getLogger(__name__)


class OriginGatekeeper:
    """
    Decide whether a request's declared `Origin` may talk to the gateway.

    - No origin (curl, server-to-server, mobile apps) -> allowed.
    - Exact string match or full regex match -> allowed.
    - Anything else -> denied (and logged).
    """

    def __init__(self, exact: Iterable[str] = (), patterns: Iterable[str] = ()) -> None:
        self._exact = {o.strip().rstrip("/") for o in exact if o and o.strip()}
        self._patterns: List[Pattern[str]] = [re.compile(p) for p in patterns if p]

    @property
    def exact(self) -> List[str]:
        return sorted(self._exact)

    @property
    def origin_regex(self) -> Optional[str]:
        """Single alternation of all patterns (Starlette's CORSMiddleware takes one regex)."""
        if not self._patterns:
            return None
        return "|".join(f"(?:{p.pattern})" for p in self._patterns)

    def is_allowed(self, origin: Optional[str]) -> bool:
        if not origin:
            return True
        if origin in self._exact:
            return True
        for p in self._patterns:
            if p.fullmatch(origin):
                return True
        logger.warning("Blocked origin: %s", origin)
        return False
