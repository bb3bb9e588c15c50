"""Native asset USD pricing with a per-run cache."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any

import requests

from .config import DEFAULT_REQUEST_TIMEOUT
from .constants import COINGECKO_API_URL, COINGECKO_PRO_API_URL
from .exceptions import PriceUnavailableError

logger = logging.getLogger(__name__)


class CoinGeckoPriceSource:
    """Blocking client for the CoinGecko ``simple/price`` endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        *,
        plan: str = "demo",
        base_url: str | None = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self._api_key = api_key
        self._key_header = "x-cg-pro-api-key" if plan == "pro" else "x-cg-demo-api-key"
        if base_url is None:
            base_url = COINGECKO_PRO_API_URL if plan == "pro" else COINGECKO_API_URL
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()

    def fetch_usd_price(self, asset_id: str) -> Decimal:
        """Return the USD price of ``asset_id``.

        Raises:
            PriceUnavailableError: On transport errors or unexpected payloads.
        """
        url = f"{self._base_url}/simple/price"
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers[self._key_header] = self._api_key

        try:
            response = self._session.get(
                url,
                params={"ids": asset_id, "vs_currencies": "usd"},
                headers=headers,
                timeout=self._timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise PriceUnavailableError(
                f"Failed to fetch USD price for {asset_id}: {exc}",
                asset_id=asset_id,
            ) from exc

        price = _extract_usd_price(payload, asset_id)
        logger.info("Fetched USD price for %s: %s", asset_id, price)
        return price

    def close(self) -> None:
        self._session.close()


def _extract_usd_price(payload: Any, asset_id: str) -> Decimal:
    entry = payload.get(asset_id) if isinstance(payload, Mapping) else None
    raw = entry.get("usd") if isinstance(entry, Mapping) else None
    if raw is None or isinstance(raw, bool):
        raise PriceUnavailableError(
            f"Price response for {asset_id} is missing a USD quote",
            asset_id=asset_id,
            details={"payload": payload},
        )

    try:
        price = Decimal(str(raw))
    except InvalidOperation as exc:
        raise PriceUnavailableError(
            f"Price response for {asset_id} is not numeric",
            asset_id=asset_id,
            details={"usd": raw},
        ) from exc

    if not price.is_finite() or price <= 0:
        raise PriceUnavailableError(
            f"Price response for {asset_id} is not a positive number",
            asset_id=asset_id,
            details={"usd": raw},
        )
    return price


class PriceCache:
    """Memoise one USD price per native asset for the duration of a run.

    Concurrent first requests for an asset share a single in-flight fetch.
    A failed fetch is remembered, so every later lookup for that asset raises
    the same :class:`PriceUnavailableError` instead of fetching again.
    """

    def __init__(self, source: CoinGeckoPriceSource) -> None:
        self._source = source
        self._tasks: dict[str, asyncio.Task[Decimal]] = {}
        self._fetch_count: dict[str, int] = {}

    def fetch_count(self, asset_id: str) -> int:
        return self._fetch_count.get(asset_id, 0)

    async def get_usd_price(self, asset_id: str) -> Decimal:
        task = self._tasks.get(asset_id)
        if task is None:
            task = asyncio.get_running_loop().create_task(self._fetch(asset_id))
            self._tasks[asset_id] = task
        return await asyncio.shield(task)

    async def _fetch(self, asset_id: str) -> Decimal:
        self._fetch_count[asset_id] = self._fetch_count.get(asset_id, 0) + 1
        try:
            return await asyncio.to_thread(self._source.fetch_usd_price, asset_id)
        except PriceUnavailableError:
            raise
        except Exception as exc:
            raise PriceUnavailableError(
                f"Failed to fetch USD price for {asset_id}: {exc}",
                asset_id=asset_id,
            ) from exc
