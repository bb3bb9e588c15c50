"""Tests for the CoinGecko price source and the per-run price cache."""

from __future__ import annotations

import asyncio
import threading
import time
from decimal import Decimal
from typing import Any, cast

import pytest
import requests

from chaincost.exceptions import PriceUnavailableError
from chaincost.pricing import CoinGeckoPriceSource, PriceCache


class DummyResponse:
    def __init__(self, payload: Any, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class DummySession:
    def __init__(self, response: DummyResponse | Exception) -> None:
        self._response = response
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def get(self, url: str, **kwargs: Any) -> DummyResponse:
        self.calls.append({"url": url, **kwargs})
        if isinstance(self._response, Exception):
            raise self._response
        return self._response

    def close(self) -> None:
        self.closed = True


def _source(response: DummyResponse | Exception, api_key: str | None = None):
    session = DummySession(response)
    source = CoinGeckoPriceSource(
        api_key, base_url="https://prices.test/api/v3/", session=cast(requests.Session, session)
    )
    return source, session


class TestCoinGeckoPriceSource:
    def test_fetches_usd_price(self):
        source, session = _source(DummyResponse({"solana": {"usd": 142.5}}))

        assert source.fetch_usd_price("solana") == Decimal("142.5")

        call = session.calls[0]
        assert call["url"] == "https://prices.test/api/v3/simple/price"
        assert call["params"] == {"ids": "solana", "vs_currencies": "usd"}
        assert "x-cg-demo-api-key" not in call["headers"]

    def test_sends_api_key_header(self):
        source, session = _source(DummyResponse({"ripple": {"usd": "0.5"}}), api_key="secret")

        source.fetch_usd_price("ripple")

        assert session.calls[0]["headers"]["x-cg-demo-api-key"] == "secret"

    def test_pro_plan_uses_pro_host_and_header(self):
        session = DummySession(DummyResponse({"ripple": {"usd": "0.5"}}))
        source = CoinGeckoPriceSource(
            "secret", plan="pro", session=cast(requests.Session, session)
        )

        source.fetch_usd_price("ripple")

        call = session.calls[0]
        assert call["url"] == "https://pro-api.coingecko.com/api/v3/simple/price"
        assert call["headers"]["x-cg-pro-api-key"] == "secret"
        assert "x-cg-demo-api-key" not in call["headers"]

    def test_missing_quote_raises(self):
        source, _ = _source(DummyResponse({}))

        with pytest.raises(PriceUnavailableError) as exc_info:
            source.fetch_usd_price("stellar")
        assert exc_info.value.asset_id == "stellar"

    def test_non_positive_quote_raises(self):
        source, _ = _source(DummyResponse({"stellar": {"usd": 0}}))

        with pytest.raises(PriceUnavailableError):
            source.fetch_usd_price("stellar")

    def test_http_error_raises(self):
        source, _ = _source(DummyResponse({}, status_code=429))

        with pytest.raises(PriceUnavailableError):
            source.fetch_usd_price("ethereum")

    def test_transport_error_raises(self):
        source, _ = _source(requests.ConnectionError("unreachable"))

        with pytest.raises(PriceUnavailableError):
            source.fetch_usd_price("ethereum")

    def test_invalid_json_raises(self):
        source, _ = _source(DummyResponse(ValueError("not json")))

        with pytest.raises(PriceUnavailableError):
            source.fetch_usd_price("ethereum")

    def test_close_closes_session(self):
        source, session = _source(DummyResponse({}))
        source.close()
        assert session.closed


class SlowPriceSource:
    def __init__(self, price: Decimal | None = None, delay: float = 0.05) -> None:
        self._price = price
        self._delay = delay
        self._lock = threading.Lock()
        self.calls = 0

    def fetch_usd_price(self, asset_id: str) -> Decimal:
        with self._lock:
            self.calls += 1
        time.sleep(self._delay)
        if self._price is None:
            raise PriceUnavailableError(f"no price for {asset_id}", asset_id=asset_id)
        return self._price


class TestPriceCache:
    def test_concurrent_requests_share_one_fetch(self):
        source = SlowPriceSource(Decimal("3.5"))
        cache = PriceCache(cast(CoinGeckoPriceSource, source))

        async def scenario():
            return await asyncio.gather(*(cache.get_usd_price("avalanche-2") for _ in range(5)))

        prices = asyncio.run(scenario())

        assert prices == [Decimal("3.5")] * 5
        assert source.calls == 1
        assert cache.fetch_count("avalanche-2") == 1

    def test_distinct_assets_fetched_separately(self):
        source = SlowPriceSource(Decimal("1"), delay=0)
        cache = PriceCache(cast(CoinGeckoPriceSource, source))

        async def scenario():
            await cache.get_usd_price("solana")
            await cache.get_usd_price("stellar")
            await cache.get_usd_price("solana")

        asyncio.run(scenario())

        assert cache.fetch_count("solana") == 1
        assert cache.fetch_count("stellar") == 1
        assert source.calls == 2

    def test_failure_is_remembered(self):
        source = SlowPriceSource(None, delay=0)
        cache = PriceCache(cast(CoinGeckoPriceSource, source))

        async def scenario():
            errors = []
            for _ in range(3):
                try:
                    await cache.get_usd_price("ripple")
                except PriceUnavailableError as exc:
                    errors.append(exc)
            return errors

        errors = asyncio.run(scenario())

        assert len(errors) == 3
        assert source.calls == 1
        assert cache.fetch_count("ripple") == 1

    def test_unexpected_error_wrapped(self):
        class BrokenSource:
            def fetch_usd_price(self, asset_id: str) -> Decimal:
                raise RuntimeError("boom")

        cache = PriceCache(cast(CoinGeckoPriceSource, BrokenSource()))

        with pytest.raises(PriceUnavailableError) as exc_info:
            asyncio.run(cache.get_usd_price("ethereum"))
        assert "boom" in str(exc_info.value)
