from __future__ import annotations

from collections.abc import Callable

from fastapi import Request, Response

# Issue payloads depend on the caller's location and identity
_PRIVATE_PREFIXES = ("/issues", "/admin/issues")


async def security_headers_middleware(request: Request, call_next: Callable) -> Response:
    """Attach security headers to every response.

    - X-Content-Type-Options: nosniff
    - Referrer-Policy: strict-origin-when-cross-origin
    - Permissions-Policy: geolocation=(self)
    - Cache-Control: private, no-store on issue routes so shared caches never
      serve one caller's nearby issues to another
    """
    response = await call_next(request)
    headers = response.headers
    headers.setdefault("X-Content-Type-Options", "nosniff")
    headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    headers.setdefault("Permissions-Policy", "geolocation=(self)")
    if request.url.path.startswith(_PRIVATE_PREFIXES):
        headers["Cache-Control"] = "private, no-store"
        headers.setdefault("Vary", "Authorization")
    return response
