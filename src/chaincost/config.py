"""Configuration containers for chains, credentials and run settings."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

from dotenv import load_dotenv

from .exceptions import ConfigurationError
from .types import ChainId, NetworkType

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_RECEIPT_TIMEOUT = 180.0
DEFAULT_CONTRACTS_DIR = "contracts"
COINGECKO_API_PLANS = ("demo", "pro")


@dataclass(frozen=True)
class NativeCurrency:
    """Native asset of a chain."""

    name: str
    symbol: str
    decimals: int


@dataclass(frozen=True)
class ChainConfig:
    """Immutable configuration for one chain on one network."""

    chain: ChainId
    network: NetworkType
    name: str
    native_currency: NativeCurrency
    rpc_urls: tuple[str, ...]
    price_asset_id: str
    explorer_tx_url: str | None = None
    evm_chain_id: int | None = None

    @property
    def rpc_url(self) -> str:
        """Primary RPC endpoint."""

        return self.rpc_urls[0]

    def transaction_link(self, tx_hash: str | None) -> str | None:
        if not tx_hash or not self.explorer_tx_url:
            return None
        return self.explorer_tx_url.format(tx_hash=tx_hash)


_AVAX = NativeCurrency(name="Avalanche", symbol="AVAX", decimals=18)
_HBAR = NativeCurrency(name="HBAR", symbol="HBAR", decimals=18)
_ETH = NativeCurrency(name="Ether", symbol="ETH", decimals=18)

CHAIN_CONFIGS: tuple[ChainConfig, ...] = (
    ChainConfig(
        chain=ChainId.AVALANCHE,
        network=NetworkType.MAINNET,
        name="Avalanche",
        native_currency=_AVAX,
        rpc_urls=("https://api.avax.network/ext/bc/C/rpc",),
        price_asset_id="avalanche-2",
        explorer_tx_url="https://snowtrace.io/tx/{tx_hash}",
        evm_chain_id=43114,
    ),
    ChainConfig(
        chain=ChainId.AVALANCHE,
        network=NetworkType.TESTNET,
        name="Avalanche Fuji",
        native_currency=_AVAX,
        rpc_urls=("https://api.avax-test.network/ext/bc/C/rpc",),
        price_asset_id="avalanche-2",
        explorer_tx_url="https://testnet.snowtrace.io/tx/{tx_hash}",
        evm_chain_id=43113,
    ),
    ChainConfig(
        chain=ChainId.HEDERA,
        network=NetworkType.MAINNET,
        name="Hedera Mainnet",
        native_currency=_HBAR,
        rpc_urls=("https://mainnet.hashio.io/api",),
        price_asset_id="hedera-hashgraph",
        explorer_tx_url="https://hashscan.io/mainnet/transaction/{tx_hash}",
        evm_chain_id=295,
    ),
    ChainConfig(
        chain=ChainId.HEDERA,
        network=NetworkType.TESTNET,
        name="Hedera Testnet",
        native_currency=_HBAR,
        rpc_urls=("https://testnet.hashio.io/api",),
        price_asset_id="hedera-hashgraph",
        explorer_tx_url="https://hashscan.io/testnet/transaction/{tx_hash}",
        evm_chain_id=296,
    ),
    ChainConfig(
        chain=ChainId.HEDERA,
        network=NetworkType.PREVIEWNET,
        name="Hedera Previewnet",
        native_currency=_HBAR,
        rpc_urls=("https://previewnet.hashio.io/api",),
        price_asset_id="hedera-hashgraph",
        explorer_tx_url="https://hashscan.io/previewnet/transaction/{tx_hash}",
        evm_chain_id=297,
    ),
    ChainConfig(
        chain=ChainId.OPTIMISM,
        network=NetworkType.MAINNET,
        name="OP Mainnet",
        native_currency=_ETH,
        rpc_urls=("https://mainnet.optimism.io",),
        price_asset_id="ethereum",
        explorer_tx_url="https://optimistic.etherscan.io/tx/{tx_hash}",
        evm_chain_id=10,
    ),
    ChainConfig(
        chain=ChainId.OPTIMISM,
        network=NetworkType.TESTNET,
        name="OP Sepolia",
        native_currency=NativeCurrency(name="Sepolia Ether", symbol="ETH", decimals=18),
        rpc_urls=("https://sepolia.optimism.io",),
        price_asset_id="ethereum",
        explorer_tx_url="https://sepolia-optimism.etherscan.io/tx/{tx_hash}",
        evm_chain_id=11155420,
    ),
    ChainConfig(
        chain=ChainId.SOLANA,
        network=NetworkType.MAINNET,
        name="Solana Mainnet",
        native_currency=NativeCurrency(name="Solana", symbol="SOL", decimals=9),
        rpc_urls=("https://api.mainnet-beta.solana.com",),
        price_asset_id="solana",
        explorer_tx_url="https://explorer.solana.com/tx/{tx_hash}",
    ),
    ChainConfig(
        chain=ChainId.SOLANA,
        network=NetworkType.TESTNET,
        name="Solana Devnet",
        native_currency=NativeCurrency(name="Solana", symbol="SOL", decimals=9),
        rpc_urls=("https://api.devnet.solana.com",),
        price_asset_id="solana",
        explorer_tx_url="https://explorer.solana.com/tx/{tx_hash}?cluster=devnet",
    ),
    ChainConfig(
        chain=ChainId.RIPPLE,
        network=NetworkType.MAINNET,
        name="Ripple Mainnet",
        native_currency=NativeCurrency(name="XRP", symbol="XRP", decimals=6),
        rpc_urls=("https://s1.ripple.com:51234",),
        price_asset_id="ripple",
        explorer_tx_url="https://livenet.xrpl.org/transactions/{tx_hash}",
    ),
    ChainConfig(
        chain=ChainId.RIPPLE,
        network=NetworkType.TESTNET,
        name="Ripple Testnet",
        native_currency=NativeCurrency(name="Test XRP", symbol="TXRP", decimals=6),
        rpc_urls=("https://s.altnet.rippletest.net:51234",),
        price_asset_id="ripple",
        explorer_tx_url="https://testnet.xrpl.org/transactions/{tx_hash}",
    ),
    ChainConfig(
        chain=ChainId.STELLAR,
        network=NetworkType.MAINNET,
        name="Stellar Mainnet",
        native_currency=NativeCurrency(name="Lumen", symbol="XLM", decimals=7),
        rpc_urls=("https://horizon.stellar.org",),
        price_asset_id="stellar",
        explorer_tx_url="https://stellar.expert/explorer/public/tx/{tx_hash}",
    ),
    ChainConfig(
        chain=ChainId.STELLAR,
        network=NetworkType.TESTNET,
        name="Stellar Testnet",
        native_currency=NativeCurrency(name="Test Lumen", symbol="TXLM", decimals=7),
        rpc_urls=("https://horizon-testnet.stellar.org",),
        price_asset_id="stellar",
        explorer_tx_url="https://stellar.expert/explorer/testnet/tx/{tx_hash}",
    ),
)


def get_chain_config(chain: ChainId, network: NetworkType) -> ChainConfig:
    """Look up the static configuration of a chain on a network.

    Raises:
        ConfigurationError: If the chain has no configuration for the network.
    """
    for config in CHAIN_CONFIGS:
        if config.chain == chain and config.network == network:
            return config
    raise ConfigurationError(
        f"No configuration for {chain.value} on {network.value}",
        field="network",
        value=network.value,
    )


@dataclass(frozen=True)
class WalletCredentials:
    """Secret material for the funding/operator account of a chain."""

    private_key: str | None = None
    address: str | None = None

    def require_private_key(self, chain: ChainId) -> str:
        if not self.private_key:
            env_name = f"WALLET_{chain.value.upper()}_PRIVATE_KEY"
            raise ConfigurationError(
                f"No wallet credentials found for {chain.value}. "
                f"Please set {env_name} in your .env file",
                field=env_name,
            )
        return self.private_key


@dataclass(frozen=True)
class Settings:
    """Run-wide settings shared by every adapter."""

    network: NetworkType = NetworkType.TESTNET
    credentials: Mapping[ChainId, WalletCredentials] = field(default_factory=dict)
    coingecko_api_key: str | None = None
    coingecko_api_plan: str = "demo"
    contracts_dir: Path = Path(DEFAULT_CONTRACTS_DIR)
    rpc_overrides: Mapping[ChainId, str] = field(default_factory=dict)
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT

    @classmethod
    def from_env(
        cls,
        network: NetworkType | str | None = None,
        *,
        dotenv_path: str | os.PathLike[str] | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> Settings:
        """Build settings from the process environment (and a ``.env`` file)."""

        if environ is None:
            load_dotenv(dotenv_path)
            environ = os.environ

        raw_network = network or environ.get("CHAINCOST_NETWORK") or NetworkType.TESTNET.value
        try:
            resolved_network = NetworkType(raw_network)
        except ValueError as exc:
            raise ConfigurationError(
                f"Unknown network: {raw_network}", field="network", value=raw_network
            ) from exc

        credentials: dict[ChainId, WalletCredentials] = {}
        overrides: dict[ChainId, str] = {}
        for chain in ChainId:
            prefix = f"WALLET_{chain.value.upper()}"
            credentials[chain] = WalletCredentials(
                private_key=environ.get(f"{prefix}_PRIVATE_KEY") or environ.get(f"{prefix}_SEED"),
                address=environ.get(f"{prefix}_ADDRESS"),
            )
            override = environ.get(f"CHAINCOST_{chain.value.upper()}_RPC_URL")
            if override:
                overrides[chain] = override

        api_plan = (environ.get("COINGECKO_API_PLAN") or "demo").strip().lower()
        if api_plan not in COINGECKO_API_PLANS:
            raise ConfigurationError(
                f"COINGECKO_API_PLAN must be one of: {', '.join(COINGECKO_API_PLANS)}",
                field="COINGECKO_API_PLAN",
                value=api_plan,
            )

        timeout_raw = environ.get("CHAINCOST_REQUEST_TIMEOUT")
        try:
            request_timeout = float(timeout_raw) if timeout_raw else DEFAULT_REQUEST_TIMEOUT
        except ValueError as exc:
            raise ConfigurationError(
                "CHAINCOST_REQUEST_TIMEOUT must be a number",
                field="CHAINCOST_REQUEST_TIMEOUT",
                value=timeout_raw,
            ) from exc

        settings = cls(
            network=resolved_network,
            credentials=credentials,
            coingecko_api_key=environ.get("COINGECKO_API_KEY") or None,
            coingecko_api_plan=api_plan,
            contracts_dir=Path(environ.get("CHAINCOST_CONTRACTS_DIR") or DEFAULT_CONTRACTS_DIR),
            rpc_overrides=overrides,
            request_timeout=request_timeout,
        )
        logger.debug("Loaded settings for network=%s", resolved_network.value)
        return settings

    def credentials_for(self, chain: ChainId) -> WalletCredentials:
        return self.credentials.get(chain, WalletCredentials())

    def chain_config(self, chain: ChainId) -> ChainConfig:
        """Return the chain configuration with any RPC override applied."""

        config = get_chain_config(chain, self.network)
        override = self.rpc_overrides.get(chain)
        if override:
            config = replace(config, rpc_urls=(override.rstrip("/"),) + config.rpc_urls)
        return config
