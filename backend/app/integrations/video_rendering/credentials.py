"""Credential providers for Vertex AI bearer tokens."""

import asyncio
import logging
from abc import ABC, abstractmethod

import google.auth
import google.auth.exceptions
import google.auth.transport.requests

from .exceptions import ErrorCode, VideoRendererError

logger = logging.getLogger(__name__)

CLOUD_SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]


class CredentialProvider(ABC):
    """Supplies a bearer token for each outbound call. Implementations must not cache."""

    @abstractmethod
    async def get_access_token(self) -> str:
        ...

    async def get_project_id(self) -> str | None:
        """Project inferred from the credentials, when available."""
        return None


class StaticTokenProvider(CredentialProvider):
    """Fixed token, e.g. from VERTEX_ACCESS_TOKEN or a test fixture."""

    def __init__(self, token: str, project_id: str | None = None):
        self._token = token
        self._project_id = project_id

    async def get_access_token(self) -> str:
        if not self._token:
            raise VideoRendererError(
                "Vertex access token is empty", ErrorCode.CONFIGURATION_ERROR, {"provider": "veo"}
            )
        return self._token

    async def get_project_id(self) -> str | None:
        return self._project_id


class GoogleADCCredentialProvider(CredentialProvider):
    """Application Default Credentials, refreshed on every call."""

    def __init__(self, scopes: list[str] | None = None):
        self.scopes = scopes or CLOUD_SCOPES

    def _fetch(self) -> tuple[str, str | None]:
        credentials, project_id = google.auth.default(scopes=self.scopes)
        credentials.refresh(google.auth.transport.requests.Request())
        return credentials.token, project_id

    async def get_access_token(self) -> str:
        try:
            token, _ = await asyncio.to_thread(self._fetch)
        except google.auth.exceptions.DefaultCredentialsError as e:
            raise VideoRendererError(
                f"Google Application Default Credentials are not configured: {e}",
                ErrorCode.CONFIGURATION_ERROR,
                {"provider": "veo"},
            ) from e
        except google.auth.exceptions.GoogleAuthError as e:
            raise VideoRendererError(
                f"Unable to obtain Vertex access token: {e}",
                ErrorCode.AUTH_ERROR,
                {"provider": "veo"},
            ) from e
        if not token:
            raise VideoRendererError(
                "Unable to obtain Vertex access token via ADC",
                ErrorCode.AUTH_ERROR,
                {"provider": "veo"},
            )
        return token

    async def get_project_id(self) -> str | None:
        try:
            _, project_id = await asyncio.to_thread(google.auth.default, scopes=self.scopes)
        except google.auth.exceptions.DefaultCredentialsError:
            logger.warning("Unable to infer Google Cloud project from ADC")
            return None
        return project_id
