"""Static registry of chain adapter factories."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping

from .base import ChainAdapter
from .config import Settings
from .exceptions import ConfigurationError
from .types import ChainId

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[Settings], ChainAdapter]


# Vendor SDKs are imported on first use so one chain's stack is only loaded
# when that chain is requested.
def _avalanche(settings: Settings) -> ChainAdapter:
    from .adapters.evm import AvalancheAdapter

    return AvalancheAdapter(settings.chain_config(ChainId.AVALANCHE), settings)


def _optimism(settings: Settings) -> ChainAdapter:
    from .adapters.evm import OptimismAdapter

    return OptimismAdapter(settings.chain_config(ChainId.OPTIMISM), settings)


def _hedera(settings: Settings) -> ChainAdapter:
    from .adapters.hedera import HederaAdapter

    return HederaAdapter(settings.chain_config(ChainId.HEDERA), settings)


def _ripple(settings: Settings) -> ChainAdapter:
    from .adapters.ripple import RippleChainAdapter

    return RippleChainAdapter(settings.chain_config(ChainId.RIPPLE), settings)


def _solana(settings: Settings) -> ChainAdapter:
    from .adapters.solana import SolanaChainAdapter

    return SolanaChainAdapter(settings.chain_config(ChainId.SOLANA), settings)


def _stellar(settings: Settings) -> ChainAdapter:
    from .adapters.stellar import StellarChainAdapter

    return StellarChainAdapter(settings.chain_config(ChainId.STELLAR), settings)


ADAPTER_FACTORIES: Mapping[ChainId, AdapterFactory] = {
    ChainId.AVALANCHE: _avalanche,
    ChainId.HEDERA: _hedera,
    ChainId.OPTIMISM: _optimism,
    ChainId.RIPPLE: _ripple,
    ChainId.SOLANA: _solana,
    ChainId.STELLAR: _stellar,
}


def create_adapter(chain: ChainId, settings: Settings) -> ChainAdapter:
    """Instantiate the adapter registered for ``chain``.

    Raises:
        ConfigurationError: If no adapter is registered for the chain or the
            chain has no configuration for the selected network.
    """
    factory = ADAPTER_FACTORIES.get(chain)
    if factory is None:
        raise ConfigurationError(f"No adapter registered for {chain}", field="chain", value=chain)

    adapter = factory(settings)
    logger.debug("Created %r", adapter)
    return adapter
