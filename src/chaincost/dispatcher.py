"""Dispatch of operation identifiers to adapter methods with failure isolation."""

from __future__ import annotations

import logging

from .base import NOT_APPLICABLE, ChainAdapter
from .exceptions import OperationNotApplicableError, PriceUnavailableError
from .normalizer import CostNormalizer
from .types import OperationId, OperationResult, OperationStatus, RawOperationResult, utc_timestamp

logger = logging.getLogger(__name__)


def combine_errors(*messages: str | None) -> str | None:
    """Join the non-empty messages with ``"; "``."""

    parts = [message for message in messages if message]
    return "; ".join(parts) if parts else None


class OperationDispatcher:
    """Run one operation on one adapter and always return a result row."""

    def __init__(self, normalizer: CostNormalizer) -> None:
        self._normalizer = normalizer

    async def execute_operation(
        self, operation: OperationId, adapter: ChainAdapter
    ) -> OperationResult:
        handler = adapter.resolve(operation)

        if handler is None:
            message = (
                f"Operation '{operation.value}' is not implemented or supported "
                f"on {adapter.chain.value}"
            )
            logger.warning("%s", message)
            return self._failed(operation, adapter, message)

        if handler is NOT_APPLICABLE:
            return self._not_applicable(operation, adapter)

        logger.info("Running %s on %s", operation.value, adapter.chain.value)
        try:
            raw = await handler()
        except OperationNotApplicableError:
            return self._not_applicable(operation, adapter)
        except Exception as exc:
            logger.exception(
                "Execution failed for operation '%s' on %s", operation.value, adapter.chain.value
            )
            return self._failed(operation, adapter, str(exc) or exc.__class__.__name__)

        return await self._complete(operation, adapter, raw)

    async def _complete(
        self, operation: OperationId, adapter: ChainAdapter, raw: RawOperationResult
    ) -> OperationResult:
        config = adapter.config
        status = OperationStatus.SUCCESS if raw.success else OperationStatus.FAILED
        error = None if raw.success else (raw.error or "Transaction failed")
        logger.debug(
            "Raw result for %s on %s: block=%s details=%s",
            operation.value,
            adapter.chain.value,
            raw.block_number,
            dict(raw.details),
        )

        try:
            native = self._normalizer.native_cost(raw.fee, config)
        except Exception as exc:
            logger.exception(
                "Fee normalization failed for %s on %s", operation.value, adapter.chain.value
            )
            return self._failed(
                operation,
                adapter,
                combine_errors(error, f"Fee normalization failed: {exc}") or "",
                transaction_hash=raw.transaction_hash,
            )

        try:
            cost = await self._normalizer.normalize(raw.fee, config)
        except PriceUnavailableError as exc:
            logger.error(
                "USD cost unavailable for %s on %s: %s",
                operation.value,
                adapter.chain.value,
                exc,
            )
            return self._failed(
                operation,
                adapter,
                combine_errors(error, str(exc)) or "",
                transaction_hash=raw.transaction_hash,
                native_cost=native,
            )
        except Exception as exc:
            logger.exception(
                "USD conversion failed for %s on %s", operation.value, adapter.chain.value
            )
            return self._failed(
                operation,
                adapter,
                combine_errors(error, f"USD conversion failed: {exc}") or "",
                transaction_hash=raw.transaction_hash,
                native_cost=native,
            )

        logger.info(
            "Completed %s on %s: status=%s tx=%s block=%s native=%s %s usd=%s",
            operation.value,
            adapter.chain.value,
            status.value,
            raw.transaction_hash,
            raw.block_number,
            cost.native_cost,
            config.native_currency.symbol,
            cost.usd_cost,
        )
        return OperationResult(
            chain=adapter.chain,
            operation=operation,
            status=status,
            timestamp=utc_timestamp(),
            native_currency_symbol=config.native_currency.symbol,
            transaction_hash=raw.transaction_hash,
            transaction_link=config.transaction_link(raw.transaction_hash),
            native_cost=cost.native_cost,
            usd_cost=cost.usd_cost,
            error=error,
        )

    @staticmethod
    def _failed(
        operation: OperationId,
        adapter: ChainAdapter,
        message: str,
        *,
        transaction_hash: str | None = None,
        native_cost: str | None = None,
    ) -> OperationResult:
        return OperationResult(
            chain=adapter.chain,
            operation=operation,
            status=OperationStatus.FAILED,
            timestamp=utc_timestamp(),
            native_currency_symbol=adapter.config.native_currency.symbol,
            transaction_hash=transaction_hash,
            transaction_link=adapter.config.transaction_link(transaction_hash),
            native_cost=native_cost,
            error=message,
        )

    @staticmethod
    def _not_applicable(operation: OperationId, adapter: ChainAdapter) -> OperationResult:
        logger.info("%s is not applicable on %s", operation.value, adapter.chain.value)
        return OperationResult(
            chain=adapter.chain,
            operation=operation,
            status=OperationStatus.NOT_APPLICABLE,
            timestamp=utc_timestamp(),
            native_currency_symbol=adapter.config.native_currency.symbol,
        )
