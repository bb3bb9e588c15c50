"""Exception hierarchy for the chain cost comparison engine."""

from typing import Any


class ChainCostError(Exception):
    """Base exception for all chain cost comparison errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(ChainCostError):
    """Raised when configuration or credentials are missing or invalid."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.field = field
        self.value = value


class NetworkError(ChainCostError):
    """Raised when network/connection issues occur."""

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        status_code: int | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.endpoint = endpoint
        self.status_code = status_code


class ValidationError(ChainCostError):
    """Raised when input or response validation fails."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.field = field
        self.value = value


class PriceUnavailableError(ChainCostError):
    """Raised when the USD price of a native asset cannot be obtained."""

    def __init__(self, message: str, asset_id: str | None = None, details: dict | None = None):
        super().__init__(message, details)
        self.asset_id = asset_id


class TransactionFailedError(ChainCostError):
    """Raised when a submitted transaction is rejected by the ledger."""

    def __init__(
        self,
        message: str,
        tx_hash: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.tx_hash = tx_hash


class OperationNotApplicableError(ChainCostError):
    """Raised when an operation has no equivalent on the target chain."""

    def __init__(self, operation: str, chain: str):
        super().__init__(f"Operation '{operation}' is not applicable on {chain}")
        self.operation = operation
        self.chain = chain


class NoHealthyChainsError(ChainCostError):
    """Raised when none of the requested chains passed the health check."""

    def __init__(self, unhealthy: list[str] | None = None):
        super().__init__("No healthy chains available", {"unhealthy": unhealthy or []})
        self.unhealthy = unhealthy or []
