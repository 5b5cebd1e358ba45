"""
client.py - httpx-based client for the Udyam registration API.

Retry policy (transport-owned; the wizard itself never retries):
  - up to max_retries extra attempts
  - only for 5xx, 408, 429 and connection-level failures
  - exponential backoff: retry_delay * 2**attempt

Non-2xx responses are parsed from the standard {error: {code, message, details}}
envelope into ApiError.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx

from udyam_wizard.config import settings
from udyam_wizard.errors import ApiError

logger = logging.getLogger(__name__)


class ApiClient:
    """Thin async JSON client. Owns one httpx.AsyncClient; close with aclose()."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.max_retries = max_retries if max_retries is not None else settings.api_max_retries
        self.retry_delay = retry_delay if retry_delay is not None else settings.api_retry_delay_seconds
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=timeout if timeout is not None else settings.api_timeout_seconds,
            transport=transport,
            headers={"User-Agent": f"udyam-wizard/{settings.app_version}"},
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ---------------------------------------------------------------------------
    # Request helpers
    # ---------------------------------------------------------------------------

    async def get(self, path: str) -> Any:
        return await self.request("GET", path)

    async def post(self, path: str, payload: Optional[dict[str, Any]] = None) -> Any:
        return await self.request("POST", path, payload=payload)

    async def request(self, method: str, path: str, *, payload: Optional[dict[str, Any]] = None) -> Any:
        """Send a request, retrying transient failures. Returns the decoded body."""
        attempt = 0
        while True:
            try:
                response = await self._client.request(method, path, json=payload)
                return self._process_response(response)
            except httpx.TransportError as exc:
                error = ApiError(f"Network error: {exc}", status=0, code="NETWORK_ERROR")
                error.__cause__ = exc
                retryable = True
            except ApiError as exc:
                error = exc
                retryable = exc.retryable

            if attempt >= self.max_retries or not retryable:
                raise error

            delay = self.retry_delay * (2 ** attempt)
            logger.warning(
                "%s %s failed (status=%d code=%s), retrying in %.2fs attempt=%d/%d",
                method,
                path,
                error.status,
                error.code,
                delay,
                attempt + 1,
                self.max_retries,
            )
            await asyncio.sleep(delay)
            attempt += 1

    @staticmethod
    def _process_response(response: httpx.Response) -> Any:
        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            data = response.json()
        else:
            data = response.text

        if response.is_success:
            return data

        envelope = data.get("error") if isinstance(data, dict) else None
        envelope = envelope if isinstance(envelope, dict) else {}
        raise ApiError(
            envelope.get("message") or f"HTTP {response.status_code}: {response.reason_phrase}",
            status=response.status_code,
            code=envelope.get("code") or "HTTP_ERROR",
            details=envelope.get("details") or data,
        )
