"""
Security Headers Middleware

Every response here is computed for one session, so beyond the usual
hardening headers the middleware marks responses as private and as varying
by the credentials that selected them.
"""
from typing import Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from core.config import settings

BASE_HEADERS: Dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}

# JSON API over HTTPS: nothing should be rendered, framed or downgraded
PRODUCTION_HEADERS: Dict[str, str] = {
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none';",
}

SESSION_VARY = ("Cookie", "Authorization")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds security headers to all responses.

    - BASE_HEADERS always
    - Cache-Control: private, no-store unless the route set its own
    - Vary: Cookie, Authorization merged with any existing Vary
    - PRODUCTION_HEADERS when running in production
    """

    def __init__(self, app: ASGIApp, production: Optional[bool] = None):
        super().__init__(app)
        self.production = settings.is_production if production is None else production

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        response.headers.update(BASE_HEADERS)
        response.headers.setdefault("Cache-Control", "private, no-store")

        vary = [v.strip() for v in response.headers.get("Vary", "").split(",") if v.strip()]
        for name in SESSION_VARY:
            if name.lower() not in {v.lower() for v in vary}:
                vary.append(name)
        response.headers["Vary"] = ", ".join(vary)

        if self.production:
            response.headers.update(PRODUCTION_HEADERS)

        return response
