"""CORS gate for the browser client.

Preflight requests are answered here and never reach the routes. Other
requests get access-control headers when their origin is allowed and a
403 when an origin is sent but not allowed.
"""

from collections.abc import Awaitable, Callable, Iterable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from istock_rag.config import CORSSettings, get_settings
from istock_rag.exceptions import CORSPolicyError
from istock_rag.logging_config import get_logger

logger = get_logger(__name__)

WILDCARD = "*"
ALLOW_METHODS = "POST, GET, OPTIONS"
ALLOW_HEADERS = (
    "Content-Type, Authorization, X-Requested-With, trpc-accept-type, trpc-content-type"
)
MAX_AGE = "3600"
LOCAL_HOST_MARKERS = ("localhost", "127.0.0.1")


class CORSPolicy:
    """Decides which origins may call the API."""

    def __init__(
        self,
        allowed_origins: Iterable[str],
        hosting_suffixes: Iterable[str] = (),
    ) -> None:
        self.allowed_origins = frozenset(allowed_origins)
        self.hosting_suffixes = tuple(hosting_suffixes)

    @classmethod
    def from_settings(cls, settings: CORSSettings | None = None) -> "CORSPolicy":
        settings = settings or get_settings().cors
        return cls(settings.allowed_origins, settings.hosting_suffixes)

    def resolve(self, origin: str | None) -> str | None:
        """Value for ``Access-Control-Allow-Origin``.

        Args:
            origin: The request's ``Origin`` header.

        Returns:
            The origin itself when allowed, ``*`` when no origin was sent,
            None when the origin is not allowed.
        """
        if not origin:
            return WILDCARD
        if origin in self.allowed_origins:
            return origin
        if any(marker in origin for marker in LOCAL_HOST_MARKERS):
            return origin
        if self.hosting_suffixes and origin.endswith(self.hosting_suffixes):
            return origin
        return None

    def preflight_headers(self, origin: str | None) -> dict[str, str]:
        """Headers for a preflight (OPTIONS) response.

        Unknown origins get no allow-origin header, which the browser
        treats as a rejection.
        """
        headers = {
            "Access-Control-Allow-Methods": ALLOW_METHODS,
            "Access-Control-Allow-Headers": ALLOW_HEADERS,
        }
        allowed = self.resolve(origin)
        if allowed == WILDCARD:
            headers["Access-Control-Allow-Origin"] = WILDCARD
        elif allowed is not None:
            headers["Access-Control-Allow-Origin"] = allowed
            headers["Access-Control-Allow-Credentials"] = "true"
            headers["Access-Control-Max-Age"] = MAX_AGE
            headers["Vary"] = "Origin"
        return headers

    def response_headers(self, allowed: str | None) -> dict[str, str]:
        """Headers added to an actual response for a resolved origin."""
        if allowed is None:
            return {}
        headers = {
            "Access-Control-Allow-Origin": allowed,
            "Access-Control-Allow-Methods": ALLOW_METHODS,
            "Access-Control-Allow-Headers": ALLOW_HEADERS,
            "Access-Control-Max-Age": MAX_AGE,
        }
        if allowed != WILDCARD:
            headers["Access-Control-Allow-Credentials"] = "true"
            headers["Vary"] = "Origin"
        return headers


class CORSGateMiddleware(BaseHTTPMiddleware):
    """Applies the CORS policy to every request."""

    def __init__(self, app: ASGIApp, policy: CORSPolicy | None = None) -> None:
        """Initialize the middleware.

        Args:
            app: Wrapped ASGI application.
            policy: Origin policy (from settings by default).
        """
        super().__init__(app)
        self._policy = policy or CORSPolicy.from_settings()

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        origin = request.headers.get("origin")

        if request.method == "OPTIONS":
            headers = self._policy.preflight_headers(origin)
            if origin and "Access-Control-Allow-Origin" not in headers:
                logger.warning("CORS preflight from unknown origin", extra={"origin": origin})
            return Response(status_code=204, headers=headers)

        allowed = self._policy.resolve(origin)
        if origin and allowed is None:
            error = CORSPolicyError(origin)
            logger.warning(error.message, extra={"origin": origin, "path": request.url.path})
            return JSONResponse(status_code=error.status_code, content=error.to_dict())

        response = await call_next(request)
        response.headers.update(self._policy.response_headers(allowed))
        return response
