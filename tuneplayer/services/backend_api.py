# Music backend client: JSON over httpx with retries and bearer auth
from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx

from tuneplayer.config import (
    API_BASE_URL,
    AUTH_TOKEN,
    HTTP_BACKOFF_FACTOR,
    HTTP_MAX_RETRIES,
    HTTP_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """The music backend could not be reached or answered with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthenticationRequired(BackendError):
    pass


class BackendApi:
    def __init__(
        self,
        base_url: str = API_BASE_URL,
        *,
        token: Optional[str] = AUTH_TOKEN or None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        max_retries: int = HTTP_MAX_RETRIES,
        backoff_factor: float = HTTP_BACKOFF_FACTOR,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.max_retries = max(0, max_retries)
        self.backoff_factor = backoff_factor

    def clear_auth_token(self) -> None:
        self.token = None

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def get_json(self, path: str, params: dict[str, Any] | None = None,
                       *, timeout: float | None = None) -> Any:
        return await self._request("GET", path, params=params, timeout=timeout)

    async def post_json(self, path: str, body: dict[str, Any] | None = None,
                        *, timeout: float | None = None, retry: bool = False) -> Any:
        """POSTs are not retried unless the caller knows the endpoint is idempotent."""
        return await self._request("POST", path, json=body or {}, timeout=timeout, retry=retry)

    async def _request(self, method: str, path: str, *, timeout: float | None = None,
                       retry: bool = True, **kwargs) -> Any:
        retries = self.max_retries if retry else 0
        for attempt in range(retries + 1):
            try:
                async with httpx.AsyncClient(
                    base_url=self.base_url,
                    timeout=timeout or self.timeout,
                ) as client:
                    if method == "GET":
                        response = await client.get(path, headers=self._headers(), **kwargs)
                    else:
                        response = await client.post(path, headers=self._headers(), **kwargs)

                if response.status_code == 401:
                    # token expired or revoked: forget it
                    self.clear_auth_token()
                    raise AuthenticationRequired("Authentication required", status_code=401)

                if response.status_code >= 500 and attempt < retries:
                    logger.warning("%s %s → %s, retrying (%d/%d)",
                                   method, path, response.status_code, attempt + 1, retries)
                    await asyncio.sleep(self.backoff_factor ** attempt)
                    continue

                if response.status_code >= 400:
                    raise BackendError(_error_message(response), status_code=response.status_code)

                return response.json()

            except httpx.TransportError as exc:
                if attempt < retries:
                    logger.warning("%s %s network error (%s), retrying (%d/%d)",
                                   method, path, exc, attempt + 1, retries)
                    await asyncio.sleep(self.backoff_factor ** attempt)
                    continue
                raise BackendError(f"Network error: {exc}") from exc
            except ValueError as exc:
                raise BackendError(f"Invalid JSON from {path}: {exc}") from exc

        raise BackendError(f"{method} {path} failed after {retries + 1} attempts")


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or f"HTTP {response.status_code}")
    return f"HTTP {response.status_code}"
