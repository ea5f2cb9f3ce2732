"""Shared HTTP plumbing for platforms whose APIs wrap every response in a
``{"code": 0, "message": ..., "data": {...}}`` envelope (TikTok, NewsBreak).
"""

from __future__ import annotations

from typing import Any

import httpx

from campaign_builder.platforms.base import AdPlatformAdapter
from campaign_builder.platforms.exceptions import (
    PlatformRequestError,
    PlatformTimeoutError,
)


class EnvelopeApiAdapter(AdPlatformAdapter):
    """Base for adapters talking to a JSON envelope API over ``httpx``."""

    # Keys the platform uses for the human-readable error message
    error_message_keys: tuple[str, ...] = ("message",)

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        access_token: str,
        *,
        json: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        try:
            response = await self._client.request(
                method,
                url,
                headers={"Access-Token": access_token, "Accept": "application/json"},
                json=json,
                data=data,
                files=files,
            )
        except httpx.TimeoutException as exc:
            raise PlatformTimeoutError(
                f"{self.platform.value} API request timed out: {path}",
                details={"path": path},
            ) from exc
        except httpx.HTTPError as exc:
            raise PlatformRequestError(
                f"{self.platform.value} API request failed: {exc}",
                details={"path": path, "error": str(exc)},
            ) from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise PlatformRequestError(
                f"{self.platform.value} API returned invalid JSON: {response.text[:200]}",
                details={"path": path, "status_code": response.status_code},
            ) from exc

        if response.is_error or body.get("code") != 0:
            message = next(
                (body[k] for k in self.error_message_keys if body.get(k)),
                f"{self.platform.value} API error (code {body.get('code')})",
            )
            raise PlatformRequestError(
                message,
                details={
                    "path": path,
                    "status_code": response.status_code,
                    "code": body.get("code"),
                },
            )
        return body.get("data") or {}
