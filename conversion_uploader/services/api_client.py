"""HTTP adapter for destination API operations."""
from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

import httpx


class HTTPAPIClient:
    """
    HTTP client adapter for API calls.

    Implements IAPIClient protocol. `max_retries` counts attempts; the default of 1
    sends each request exactly once. Only 5xx responses and transport errors are
    retried.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 60,
        max_retries: int = 1,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url
        self._token = token
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers=headers,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def post(self, endpoint: str, json: Dict) -> Any:
        return await self._request("POST", endpoint, json=json)

    async def get(self, endpoint: str, params: Optional[Dict] = None) -> Any:
        return await self._request("GET", endpoint, params=params)

    async def _request(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        if not self._client:
            raise RuntimeError("HTTPAPIClient not initialized. Use 'async with' context.")

        for attempt in range(self._max_retries):
            last_attempt = attempt == self._max_retries - 1
            try:
                response = await self._client.request(method, endpoint, **kwargs)
            except (httpx.RequestError, httpx.TimeoutException):
                if not last_attempt:
                    await asyncio.sleep(0.5 * (attempt + 1))
                    continue
                raise

            if response.status_code >= 500 and not last_attempt:
                await asyncio.sleep(0.5 * (attempt + 1))
                continue

            if response.status_code >= 400:
                try:
                    error_detail = response.json()
                except ValueError:
                    error_detail = response.text
                raise RuntimeError(
                    f"API error {response.status_code} on {method} {endpoint}: {error_detail}"
                )

            return response

        raise RuntimeError(f"Failed to {method} {endpoint} after {self._max_retries} attempts")
