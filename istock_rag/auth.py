"""Google Cloud access tokens for Vertex AI REST calls."""

import asyncio
from abc import ABC, abstractmethod

import google.auth
from google.auth.credentials import Credentials
from google.auth.exceptions import GoogleAuthError, TransportError
from google.auth.transport.requests import Request

from istock_rag.exceptions import AuthenticationError, ErrorCode, UpstreamError
from istock_rag.logging_config import get_logger

logger = get_logger(__name__)

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"


class TokenProvider(ABC):
    """Supplies bearer tokens for Google Cloud APIs."""

    @abstractmethod
    async def get_token(self) -> str:
        """Return a valid OAuth2 access token.

        Raises:
            AuthenticationError: If no token can be obtained.
            UpstreamError: If the token endpoint is unreachable.
        """
        ...


class GoogleTokenProvider(TokenProvider):
    """Token provider backed by Application Default Credentials.

    Credentials are discovered once and refreshed whenever they expire.
    google-auth is synchronous, so discovery and refresh run in a worker
    thread.
    """

    def __init__(
        self,
        scopes: list[str] | None = None,
        credentials: Credentials | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            scopes: OAuth scopes (cloud-platform by default).
            credentials: Pre-built credentials (skips ADC discovery).
        """
        self._scopes = scopes or [CLOUD_PLATFORM_SCOPE]
        self._credentials = credentials
        self._lock = asyncio.Lock()

    async def get_token(self) -> str:
        async with self._lock:
            try:
                token = await asyncio.to_thread(self._refresh)
            except TransportError as e:
                logger.error(f"Token endpoint unreachable: {e}")
                raise UpstreamError(
                    f"Network error obtaining access token: {e}",
                    code=ErrorCode.UPSTREAM_UNAVAILABLE,
                ) from e
            except GoogleAuthError as e:
                logger.error(f"Failed to obtain access token: {e}")
                raise AuthenticationError(
                    f"Failed to obtain access token: {e}",
                ) from e

        if not token:
            raise AuthenticationError("Failed to obtain access token")
        return token

    def _refresh(self) -> str | None:
        if self._credentials is None:
            self._credentials, _ = google.auth.default(scopes=self._scopes)
        if not self._credentials.valid:
            self._credentials.refresh(Request())
        return self._credentials.token
