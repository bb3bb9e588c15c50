"""Cross-chain operation cost comparison.

This library runs equivalent asset and messaging operations on several
ledgers, captures the fee each one charged and normalises it into native
units and USD.
"""

from .base import NOT_APPLICABLE, ChainAdapter
from .config import CHAIN_CONFIGS, ChainConfig, NativeCurrency, Settings, get_chain_config
from .dispatcher import OperationDispatcher
from .exceptions import (
    ChainCostError,
    ConfigurationError,
    NetworkError,
    NoHealthyChainsError,
    OperationNotApplicableError,
    PriceUnavailableError,
    TransactionFailedError,
    ValidationError,
)
from .export import write_csv
from .mutex import AccountCreationMutex
from .normalizer import CostNormalizer, NormalizedCost
from .orchestrator import ChainRunState, Orchestrator, RunReport
from .pricing import CoinGeckoPriceSource, PriceCache
from .registry import create_adapter
from .types import (
    ChainId,
    FixedNativeFee,
    GasFee,
    LedgerDropFee,
    NetworkType,
    OperationId,
    OperationResult,
    OperationStatus,
    RawOperationResult,
)

__version__ = "0.1.0"

__all__ = [
    # Orchestration
    "Orchestrator",
    "RunReport",
    "ChainRunState",
    "OperationDispatcher",
    "CostNormalizer",
    "NormalizedCost",
    "PriceCache",
    "CoinGeckoPriceSource",
    "AccountCreationMutex",
    # Adapters
    "ChainAdapter",
    "NOT_APPLICABLE",
    "create_adapter",
    # Configuration
    "Settings",
    "ChainConfig",
    "NativeCurrency",
    "CHAIN_CONFIGS",
    "get_chain_config",
    # Types and enums
    "ChainId",
    "NetworkType",
    "OperationId",
    "OperationStatus",
    "OperationResult",
    "RawOperationResult",
    "GasFee",
    "FixedNativeFee",
    "LedgerDropFee",
    # Exceptions
    "ChainCostError",
    "ConfigurationError",
    "NetworkError",
    "ValidationError",
    "PriceUnavailableError",
    "TransactionFailedError",
    "OperationNotApplicableError",
    "NoHealthyChainsError",
    # Export
    "write_csv",
]
