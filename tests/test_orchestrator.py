"""End-to-end orchestration scenarios with in-memory adapters."""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import ClassVar, cast

import pytest

from chaincost.base import NOT_APPLICABLE, ChainAdapter, OperationTable
from chaincost.config import Settings, get_chain_config
from chaincost.exceptions import ConfigurationError, NoHealthyChainsError, ValidationError
from chaincost.orchestrator import ChainRunState, Orchestrator
from chaincost.pricing import CoinGeckoPriceSource
from chaincost.types import (
    ChainId,
    GasFee,
    LedgerDropFee,
    NetworkType,
    OperationId,
    OperationStatus,
    RawOperationResult,
)

OPS = [
    OperationId.CREATE_NATIVE_FT,
    OperationId.MINT_NATIVE_FT,
    OperationId.CREATE_ERC20_RPC,
    OperationId.SUBMIT_MESSAGE,
]


class DummyPriceSource:
    def __init__(self) -> None:
        self.calls: list[str] = []
        self.closed = False

    def fetch_usd_price(self, asset_id: str) -> Decimal:
        self.calls.append(asset_id)
        return Decimal("2")

    def close(self) -> None:
        self.closed = True


class DummyAdapter(ChainAdapter):
    OPERATIONS: ClassVar[OperationTable] = {
        OperationId.CREATE_NATIVE_FT: "create",
        OperationId.MINT_NATIVE_FT: "mint",
        OperationId.CREATE_ERC20_RPC: NOT_APPLICABLE,
        OperationId.SUBMIT_MESSAGE: "message",
    }

    def __init__(
        self,
        chain: ChainId,
        *,
        healthy: bool = True,
        failing: set[str] | None = None,
        log: list[tuple[ChainId, str]] | None = None,
    ) -> None:
        super().__init__(get_chain_config(chain, NetworkType.TESTNET), Settings())
        self.healthy = healthy
        self.failing = failing or set()
        self.log = log if log is not None else []
        self.closed = False
        self.in_flight = 0
        self.peak = 0

    async def is_healthy(self) -> bool:
        await asyncio.sleep(0)
        return self.healthy

    async def aclose(self) -> None:
        self.closed = True

    async def _run(self, name: str) -> RawOperationResult:
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(0.001)
            self.log.append((self.chain, name))
            if name in self.failing:
                raise RuntimeError("insufficient balance")
            return RawOperationResult(f"{self.chain.value}-{name}", True, LedgerDropFee(drops=10))
        finally:
            self.in_flight -= 1

    async def create(self) -> RawOperationResult:
        return await self._run("create")

    async def mint(self) -> RawOperationResult:
        return await self._run("mint")

    async def message(self) -> RawOperationResult:
        return await self._run("message")


class RaisingHealthAdapter(DummyAdapter):
    async def is_healthy(self) -> bool:
        raise ConnectionError("refused")


def _orchestrator(adapters: dict[ChainId, ChainAdapter | Exception], source=None):
    price_source = source or DummyPriceSource()

    def factory(chain: ChainId, settings: Settings) -> ChainAdapter:
        adapter = adapters[chain]
        if isinstance(adapter, Exception):
            raise adapter
        return adapter

    orchestrator = Orchestrator(
        Settings(),
        adapter_factory=factory,
        price_source_factory=lambda: cast(CoinGeckoPriceSource, price_source),
    )
    return orchestrator, price_source


def test_unhealthy_chain_contributes_no_rows():
    a = DummyAdapter(ChainId.SOLANA, healthy=False)
    b = DummyAdapter(ChainId.STELLAR)
    orchestrator, _ = _orchestrator({ChainId.SOLANA: a, ChainId.STELLAR: b})

    results = asyncio.run(
        orchestrator.run([ChainId.SOLANA, ChainId.STELLAR], [OperationId.CREATE_NATIVE_FT])
    )

    assert len(results) == 1
    assert results[0].chain is ChainId.STELLAR
    assert results[0].status is OperationStatus.SUCCESS
    assert a.log == []


def test_all_unhealthy_is_fatal():
    a = DummyAdapter(ChainId.SOLANA, healthy=False)
    b = RaisingHealthAdapter(ChainId.STELLAR)
    orchestrator, source = _orchestrator({ChainId.SOLANA: a, ChainId.STELLAR: b})

    with pytest.raises(NoHealthyChainsError) as exc_info:
        asyncio.run(orchestrator.run([ChainId.SOLANA, ChainId.STELLAR], OPS))

    assert str(exc_info.value) == "No healthy chains available"
    assert exc_info.value.unhealthy == ["solana", "stellar"]
    assert a.closed and b.closed
    assert source.closed


def test_results_follow_caller_order():
    log: list[tuple[ChainId, str]] = []
    adapters = {
        ChainId.STELLAR: DummyAdapter(ChainId.STELLAR, log=log),
        ChainId.RIPPLE: DummyAdapter(ChainId.RIPPLE, log=log),
        ChainId.SOLANA: DummyAdapter(ChainId.SOLANA, log=log),
    }
    orchestrator, _ = _orchestrator(adapters)
    chains = [ChainId.STELLAR, ChainId.RIPPLE, ChainId.SOLANA]

    results = asyncio.run(orchestrator.run(chains, OPS))

    assert [(r.chain, r.operation) for r in results] == [
        (chain, operation) for chain in chains for operation in OPS
    ]
    for chain in chains:
        per_chain = [name for logged_chain, name in log if logged_chain is chain]
        assert per_chain == ["create", "mint", "message"]
        assert adapters[chain].peak == 1


def test_failure_is_isolated_to_one_row():
    adapter = DummyAdapter(ChainId.STELLAR, failing={"mint"})
    orchestrator, _ = _orchestrator({ChainId.STELLAR: adapter})

    results = asyncio.run(orchestrator.run([ChainId.STELLAR], OPS))

    statuses = [r.status for r in results]
    assert statuses == [
        OperationStatus.SUCCESS,
        OperationStatus.FAILED,
        OperationStatus.NOT_APPLICABLE,
        OperationStatus.SUCCESS,
    ]
    assert results[1].error == "insufficient balance"
    assert results[3].native_cost == "0.000001"
    assert results[3].usd_cost == "0.000002"


def test_construction_failure_counts_as_unhealthy():
    adapters: dict[ChainId, ChainAdapter | Exception] = {
        ChainId.RIPPLE: ConfigurationError("No wallet credentials found for ripple"),
        ChainId.STELLAR: DummyAdapter(ChainId.STELLAR),
    }
    orchestrator, _ = _orchestrator(adapters)

    report = asyncio.run(
        orchestrator.run_report([ChainId.RIPPLE, ChainId.STELLAR], [OperationId.MINT_NATIVE_FT])
    )

    assert [r.chain for r in report.results] == [ChainId.STELLAR]
    assert report.states[ChainId.RIPPLE] is ChainRunState.SKIPPED
    assert report.states[ChainId.STELLAR] is ChainRunState.COMPLETED
    assert report.skipped_chains == [ChainId.RIPPLE]
    assert report.completed_chains == [ChainId.STELLAR]


def test_adapters_closed_and_price_fetched_once_per_asset():
    adapter = DummyAdapter(ChainId.SOLANA)
    orchestrator, source = _orchestrator({ChainId.SOLANA: adapter})

    asyncio.run(orchestrator.run([ChainId.SOLANA], OPS))

    assert adapter.closed
    assert source.closed
    assert source.calls == ["solana"]


def test_each_run_uses_a_fresh_price_cache():
    adapter = DummyAdapter(ChainId.SOLANA)
    source = DummyPriceSource()
    orchestrator, _ = _orchestrator({ChainId.SOLANA: adapter}, source)

    asyncio.run(orchestrator.run([ChainId.SOLANA], [OperationId.CREATE_NATIVE_FT]))
    asyncio.run(orchestrator.run([ChainId.SOLANA], [OperationId.CREATE_NATIVE_FT]))

    assert source.calls == ["solana", "solana"]


class NegativeFeeAdapter(DummyAdapter):
    async def create(self) -> RawOperationResult:
        return RawOperationResult(
            f"{self.chain.value}-create", True, GasFee(1, 1, additional_cost=-5)
        )


def test_normalization_error_does_not_abort_the_run():
    adapters = {
        ChainId.STELLAR: NegativeFeeAdapter(ChainId.STELLAR),
        ChainId.RIPPLE: NegativeFeeAdapter(ChainId.RIPPLE),
    }
    orchestrator, _ = _orchestrator(adapters)
    operations = [OperationId.CREATE_NATIVE_FT, OperationId.MINT_NATIVE_FT]

    results = asyncio.run(orchestrator.run([ChainId.STELLAR, ChainId.RIPPLE], operations))

    assert len(results) == 4
    assert [(r.chain, r.status) for r in results] == [
        (ChainId.STELLAR, OperationStatus.FAILED),
        (ChainId.STELLAR, OperationStatus.SUCCESS),
        (ChainId.RIPPLE, OperationStatus.FAILED),
        (ChainId.RIPPLE, OperationStatus.SUCCESS),
    ]
    assert results[0].transaction_hash == "stellar-create"
    assert adapters[ChainId.STELLAR].closed and adapters[ChainId.RIPPLE].closed


def test_duplicate_chains_are_rejected():
    adapter = DummyAdapter(ChainId.STELLAR)
    orchestrator, _ = _orchestrator({ChainId.STELLAR: adapter})

    with pytest.raises(ValidationError) as exc_info:
        asyncio.run(orchestrator.run([ChainId.STELLAR, ChainId.STELLAR], OPS))

    assert exc_info.value.field == "chains"
    assert "stellar" in str(exc_info.value)
    assert adapter.log == []
