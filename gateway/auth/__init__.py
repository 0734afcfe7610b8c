"""
Session bridging between the browser SPA and the upstream identity service.

Design goals:
- The browser only ever holds an opaque, signed, HttpOnly session cookie.
- Upstream bearer tokens stay server-side in the session store.
- Cross-origin callers are gated by an explicit origin allow-list.
"""
