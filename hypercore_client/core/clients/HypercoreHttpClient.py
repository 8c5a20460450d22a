import time
from typing import Any

import httpx
from loguru import logger

from hypercore_client.core.constants.base import (
    DEFAULT_HTTP_TIMEOUT,
    EXCHANGE_PATH,
    INFO_PATH,
)
from hypercore_client.core.errors import TransportError


class HypercoreHttpClient:
    """JSON-over-POST transport for the ``/info`` and ``/exchange`` endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self.headers = {
            "Content-Type": "application/json",
        }

    async def post(self, path: str, payload: dict[str, Any]) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug(f"Making POST request to {url}")
        start_time = time.time()

        try:
            resp = await self.client.post(url, json=payload, headers=self.headers)
        except httpx.HTTPError as exc:
            raise TransportError(f"hyperliquid: POST {path} failed: {exc}") from exc

        elapsed = time.time() - start_time
        if resp.status_code >= 400:
            logger.warning(
                f"HTTP {resp.status_code} response for POST {url} after {elapsed:.2f}s"
            )
            raise TransportError(
                f"hyperliquid: POST {path} returned HTTP {resp.status_code}: {resp.text}",
                status_code=resp.status_code,
                body=resp.text,
            )
        logger.debug(
            f"HTTP {resp.status_code} response for POST {url} after {elapsed:.2f}s"
        )

        try:
            return resp.json()
        except ValueError as exc:
            raise TransportError(
                f"hyperliquid: POST {path} returned non-JSON body",
                status_code=resp.status_code,
                body=resp.text,
            ) from exc

    async def info(self, payload: dict[str, Any]) -> Any:
        return await self.post(INFO_PATH, payload)

    async def exchange(self, payload: dict[str, Any]) -> Any:
        return await self.post(EXCHANGE_PATH, payload)

    async def close(self) -> None:
        await self.client.aclose()
