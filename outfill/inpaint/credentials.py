"""Bearer-token sources for the Vertex AI predict endpoint.

Each provider fetches once and reuses the token afterwards. Providers are
passed to the inpaint client explicitly; nothing here is module-global.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

import structlog

from outfill.config import Settings, settings

logger = structlog.get_logger(__name__)

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"


class CredentialError(RuntimeError):
    pass


class CredentialProvider(Protocol):
    async def get_token(self) -> str:
        """Return a bearer token, fetching it on first use."""


class StaticTokenProvider:
    def __init__(self, token: str) -> None:
        if not token.strip():
            raise CredentialError("static access token is empty")
        self._token = token.strip()

    async def get_token(self) -> str:
        return self._token


class GcloudCredentialProvider:
    """Token from `gcloud auth print-access-token`, cached for the process lifetime."""

    def __init__(self, gcloud_path: str = "gcloud") -> None:
        self._cmd = [gcloud_path, "auth", "print-access-token"]
        self._token: str | None = None
        self._lock = asyncio.Lock()

    async def get_token(self) -> str:
        if self._token is not None:
            return self._token
        async with self._lock:
            if self._token is None:
                self._token = await self._fetch()
        return self._token

    async def _fetch(self) -> str:
        logger.info("credentials.gcloud.fetch", cmd=" ".join(self._cmd))
        try:
            process = await asyncio.create_subprocess_exec(
                *self._cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await process.communicate()
        except OSError as exc:
            raise CredentialError(f"failed to run {self._cmd[0]}: {exc}") from exc

        err_text = stderr.decode("utf-8", errors="replace").strip()
        if process.returncode != 0:
            raise CredentialError(err_text or f"gcloud exited with code {process.returncode}")
        if err_text:
            logger.warning("credentials.gcloud.stderr", stderr=err_text)

        token = stdout.decode("utf-8", errors="replace").strip()
        if not token:
            raise CredentialError("gcloud returned an empty access token")
        return token


class ServiceAccountCredentialProvider:
    """Token minted from a service-account key file via google-auth.

    The token is reused until google-auth reports it expired.
    """

    def __init__(self, key_file: str) -> None:
        from google.oauth2.service_account import Credentials  # noqa: PLC0415

        try:
            self._credentials = Credentials.from_service_account_file(
                key_file,
                scopes=[CLOUD_PLATFORM_SCOPE],
            )
        except (OSError, ValueError) as exc:
            raise CredentialError(f"cannot load service account file {key_file}: {exc}") from exc
        self._lock = asyncio.Lock()

    async def get_token(self) -> str:
        async with self._lock:
            if not self._credentials.valid:
                await asyncio.to_thread(self._refresh)
            token = self._credentials.token
        if not token:
            raise CredentialError("service account refresh produced no token")
        return token

    def _refresh(self) -> None:
        from google.auth.exceptions import GoogleAuthError  # noqa: PLC0415
        from google.auth.transport.requests import Request  # noqa: PLC0415

        logger.info("credentials.service_account.refresh")
        try:
            self._credentials.refresh(Request())
        except GoogleAuthError as exc:
            raise CredentialError(f"service account token refresh failed: {exc}") from exc


def create_default_credential_provider(config: Settings | None = None) -> CredentialProvider:
    cfg = config or settings
    provider = cfg.credential_provider.lower().strip()

    if provider == "static":
        if cfg.access_token is None:
            raise CredentialError("credential_provider=static requires access_token")
        return StaticTokenProvider(cfg.access_token.get_secret_value())

    if provider == "service_account":
        if not cfg.service_account_file:
            raise CredentialError("credential_provider=service_account requires service_account_file")
        return ServiceAccountCredentialProvider(cfg.service_account_file)

    if provider == "gcloud":
        return GcloudCredentialProvider(cfg.gcloud_path)

    raise CredentialError(f"unknown credential provider: {cfg.credential_provider}")
