"""Cross-chain run orchestration: health checks, dispatch and result ordering."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from .base import ChainAdapter
from .config import Settings
from .dispatcher import OperationDispatcher
from .exceptions import NoHealthyChainsError, ValidationError
from .normalizer import CostNormalizer
from .pricing import CoinGeckoPriceSource, PriceCache
from .registry import create_adapter
from .types import ChainId, OperationId, OperationResult

logger = logging.getLogger(__name__)


class ChainRunState(str, Enum):
    """Lifecycle of one chain within a run."""

    UNCHECKED = "unchecked"
    SKIPPED = "skipped"
    RUNNING = "running"
    COMPLETED = "completed"


@dataclass
class RunReport:
    """Outcome of a run: ordered result rows plus per-chain state."""

    results: list[OperationResult] = field(default_factory=list)
    states: dict[ChainId, ChainRunState] = field(default_factory=dict)

    @property
    def skipped_chains(self) -> list[ChainId]:
        return [chain for chain, state in self.states.items() if state is ChainRunState.SKIPPED]

    @property
    def completed_chains(self) -> list[ChainId]:
        return [
            chain for chain, state in self.states.items() if state is ChainRunState.COMPLETED
        ]


class Orchestrator:
    """Run a list of operations across a list of chains.

    Example:
        >>> orchestrator = Orchestrator(Settings.from_env())
        >>> results = asyncio.run(orchestrator.run([ChainId.STELLAR], list(OperationId)))
    """

    def __init__(
        self,
        settings: Settings,
        *,
        adapter_factory: Callable[[ChainId, Settings], ChainAdapter] = create_adapter,
        price_source_factory: Callable[[], CoinGeckoPriceSource] | None = None,
    ) -> None:
        self._settings = settings
        self._adapter_factory = adapter_factory
        self._price_source_factory = price_source_factory or self._default_price_source

    def _default_price_source(self) -> CoinGeckoPriceSource:
        return CoinGeckoPriceSource(
            self._settings.coingecko_api_key,
            plan=self._settings.coingecko_api_plan,
            timeout=self._settings.request_timeout,
        )

    async def run(
        self, chains: Sequence[ChainId], operations: Sequence[OperationId]
    ) -> list[OperationResult]:
        """Execute ``operations`` on every healthy chain and return the rows.

        Rows are ordered chain-major, operation-minor, following the order of
        the arguments. Unhealthy chains contribute no rows.

        Raises:
            NoHealthyChainsError: If none of the requested chains is healthy.
        """
        report = await self.run_report(chains, operations)
        return report.results

    async def run_report(
        self, chains: Sequence[ChainId], operations: Sequence[OperationId]
    ) -> RunReport:
        """Like :meth:`run`, but also report the state reached by every chain.

        Raises:
            ValidationError: If a chain identifier is repeated.
            NoHealthyChainsError: If none of the requested chains is healthy.
        """
        counts = Counter(chains)
        duplicates = [chain.value for chain, count in counts.items() if count > 1]
        if duplicates:
            raise ValidationError(
                f"Duplicate chain identifiers: {', '.join(duplicates)}",
                field="chains",
                value=duplicates,
            )

        report = RunReport(states={chain: ChainRunState.UNCHECKED for chain in chains})
        adapters = self._build_adapters(chains)

        source = self._price_source_factory()
        dispatcher = OperationDispatcher(CostNormalizer(PriceCache(source)))
        try:
            healthy = await self._check_health(adapters)
            for chain in chains:
                if chain not in healthy:
                    report.states[chain] = ChainRunState.SKIPPED
                    logger.warning("Skipping %s: health check failed", chain.value)

            if not healthy:
                raise NoHealthyChainsError([chain.value for chain in chains])

            logger.info(
                "Running %d operation(s) on %s",
                len(operations),
                ", ".join(chain.value for chain in adapters if chain in healthy),
            )
            ordered = [adapter for adapter in adapters.values() if adapter.chain in healthy]
            per_chain = await asyncio.gather(
                *(self._run_chain(adapter, operations, dispatcher, report) for adapter in ordered)
            )
        finally:
            await self._close_adapters(adapters.values())
            source.close()

        for rows in per_chain:
            report.results.extend(rows)
        return report

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _build_adapters(self, chains: Sequence[ChainId]) -> dict[ChainId, ChainAdapter]:
        adapters: dict[ChainId, ChainAdapter] = {}
        for chain in chains:
            try:
                adapters[chain] = self._adapter_factory(chain, self._settings)
            except Exception as exc:
                logger.warning("Failed to initialise %s adapter: %s", chain.value, exc)
        return adapters

    async def _check_health(self, adapters: dict[ChainId, ChainAdapter]) -> set[ChainId]:
        checks = await asyncio.gather(
            *(self._health(adapter) for adapter in adapters.values())
        )
        return {chain for chain, ok in zip(adapters, checks, strict=True) if ok}

    @staticmethod
    async def _health(adapter: ChainAdapter) -> bool:
        try:
            healthy = await adapter.is_healthy()
        except Exception as exc:
            logger.warning("Health check raised for %s: %s", adapter.chain.value, exc)
            return False
        logger.info("%s health check: %s", adapter.chain.value, "ok" if healthy else "failed")
        return bool(healthy)

    @staticmethod
    async def _run_chain(
        adapter: ChainAdapter,
        operations: Sequence[OperationId],
        dispatcher: OperationDispatcher,
        report: RunReport,
    ) -> list[OperationResult]:
        report.states[adapter.chain] = ChainRunState.RUNNING
        rows = []
        for operation in operations:
            rows.append(await dispatcher.execute_operation(operation, adapter))
        report.states[adapter.chain] = ChainRunState.COMPLETED
        logger.info("Completed %d operation(s) on %s", len(rows), adapter.chain.value)
        return rows

    @staticmethod
    async def _close_adapters(adapters) -> None:
        for adapter in adapters:
            try:
                await adapter.aclose()
            except Exception as exc:
                logger.warning("Failed to close %s adapter: %s", adapter.chain.value, exc)
