"""Type definitions and data models for the chain cost comparison engine."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any


class ChainId(str, Enum):
    """Supported ledger families."""

    AVALANCHE = "avalanche"
    HEDERA = "hedera"
    OPTIMISM = "optimism"
    RIPPLE = "ripple"
    SOLANA = "solana"
    STELLAR = "stellar"


class NetworkType(str, Enum):
    """Network kinds a chain configuration can target."""

    MAINNET = "mainnet"
    TESTNET = "testnet"
    PREVIEWNET = "previewnet"


class OperationId(str, Enum):
    """Uniform operation vocabulary shared by every adapter."""

    # Native tokens - fungible
    CREATE_NATIVE_FT = "create-native-ft"
    ASSOCIATE_NATIVE_FT = "associate-native-ft"
    MINT_NATIVE_FT = "mint-native-ft"
    TRANSFER_NATIVE_FT = "transfer-native-ft"

    # Native tokens - non fungible
    CREATE_NATIVE_NFT = "create-native-nft"
    ASSOCIATE_NATIVE_NFT = "associate-native-nft"
    MINT_NATIVE_NFT = "mint-native-nft"
    TRANSFER_NATIVE_NFT = "transfer-native-nft"

    # ERC20 smart contracts (JSON-RPC)
    CREATE_ERC20_RPC = "deploy-erc20-hardhat"
    MINT_ERC20_RPC = "mint-erc20-hardhat"
    TRANSFER_ERC20_RPC = "transfer-erc20-hardhat"

    # ERC20 smart contracts (SDK)
    CREATE_ERC20_SDK = "deploy-erc20-sdk"
    MINT_ERC20_SDK = "mint-erc20-sdk"
    TRANSFER_ERC20_SDK = "transfer-erc20-sdk"

    # ERC721 smart contracts (JSON-RPC)
    CREATE_ERC721_RPC = "deploy-erc721-hardhat"
    MINT_ERC721_RPC = "mint-erc721-hardhat"
    TRANSFER_ERC721_RPC = "transfer-erc721-hardhat"

    # ERC721 smart contracts (SDK)
    CREATE_ERC721_SDK = "deploy-erc721-sdk"
    MINT_ERC721_SDK = "mint-erc721-sdk"
    TRANSFER_ERC721_SDK = "transfer-erc721-sdk"

    # Consensus message / memo
    SUBMIT_MESSAGE = "hcs-message-submit"


class OperationStatus(str, Enum):
    """Outcome of a single (chain, operation) attempt."""

    SUCCESS = "success"
    FAILED = "failed"
    NOT_APPLICABLE = "not_applicable"


# ----------------------------------------------------------------------
# Raw fee shapes
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class GasFee:
    """Gas-metered fee expressed in the smallest native unit (wei, weibar)."""

    gas_used: int
    gas_price: int
    additional_cost: int = 0


@dataclass(frozen=True)
class FixedNativeFee:
    """Fee already expressed in whole native units."""

    amount: Decimal


@dataclass(frozen=True)
class LedgerDropFee:
    """Fee in the ledger's smallest integer unit (drops, stroops, lamports)."""

    drops: int


FeeShape = GasFee | FixedNativeFee | LedgerDropFee


@dataclass(frozen=True)
class RawOperationResult:
    """Unprocessed adapter output, consumed immediately by the normalizer."""

    transaction_hash: str | None
    success: bool
    fee: FeeShape
    block_number: int | None = None
    error: str | None = None
    details: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class OperationResult:
    """Final, normalized record of a (chain, operation) attempt."""

    chain: ChainId
    operation: OperationId
    status: OperationStatus
    timestamp: str
    native_currency_symbol: str | None = None
    transaction_hash: str | None = None
    transaction_link: str | None = None
    native_cost: str | None = None
    usd_cost: str | None = None
    error: str | None = None

    def as_row(self) -> dict[str, str]:
        """Return a flat, string-only mapping suitable for CSV export."""

        return {
            "chain": self.chain.value,
            "operation": self.operation.value,
            "status": self.status.value,
            "transactionHash": self.transaction_hash or "",
            "transactionLink": self.transaction_link or "",
            "nativeCost": self.native_cost or "",
            "usdCost": self.usd_cost or "",
            "nativeCurrencySymbol": self.native_currency_symbol or "",
            "timestamp": self.timestamp,
            "error": self.error or "",
        }


@dataclass(frozen=True)
class AccountData:
    """Credentials of an account created on the fly during an operation."""

    address: str
    private_key: str
    public_key: str


def utc_timestamp() -> str:
    """Return the current time as an ISO-8601 UTC string."""

    return datetime.now(timezone.utc).isoformat(timespec="seconds")
