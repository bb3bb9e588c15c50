"""Hedera adapter combining the JSON-RPC relay and the native SDK.

ERC contract variants suffixed ``-hardhat`` run through the relay with the
inherited :class:`~chaincost.adapters.evm.EvmChainAdapter` flows. Token
service (HTS), consensus service (HCS) and ``-sdk`` contract operations are
signed by the Hedera account configured in ``WALLET_HEDERA_ADDRESS`` and
executed through :class:`~chaincost.adapters.hedera_native.HederaNativeClient`.
Native fees come from the transaction record in tinybars.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar, TypeVar

from web3 import AsyncWeb3

from ..base import ChainAdapter, OperationTable
from ..config import ChainConfig, Settings
from ..constants import (
    ERC20_MINT_AMOUNT,
    ERC20_TRANSFER_AMOUNT,
    HEDERA_ERC20_DEPLOY_GAS,
    HEDERA_ERC20_MINT_GAS,
    HEDERA_ERC20_TRANSFER_GAS,
    HEDERA_ERC721_CALL_GAS,
    HEDERA_ERC721_DEPLOY_GAS,
    HEDERA_FT_MINT_AMOUNT,
    HEDERA_FT_TRANSFER_AMOUNT,
    HEDERA_NFT_METADATA,
    HEDERA_TINYBAR_DECIMALS,
    ContractArtifact,
)
from ..exceptions import ConfigurationError, TransactionFailedError, ValidationError
from ..mutex import AccountCreationMutex
from ..types import FixedNativeFee, OperationId, RawOperationResult
from ..utils import memo_message, shift_decimals
from .evm import _ERC_OPERATIONS, FIRST_TOKEN_ID, EvmChainAdapter

if TYPE_CHECKING:
    from .hedera_native import HederaNativeClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

SUCCESS_STATUS = "SUCCESS"


@dataclass(frozen=True)
class HederaOutcome:
    """Receipt and record data of one executed Hedera transaction."""

    transaction_id: str
    status: str
    fee_tinybars: int
    entity_id: str | None = None
    serials: tuple[int, ...] = field(default_factory=tuple)

    @property
    def success(self) -> bool:
        return self.status == SUCCESS_STATUS


@dataclass(frozen=True)
class HederaAccount:
    """Account created for a benchmark and the ECDSA key controlling it."""

    account_id: str
    private_key: str


def parse_entity_id(entity_id: str) -> tuple[int, int, int]:
    """Split ``shard.realm.num`` into integers.

    Raises:
        ValidationError: If the identifier is not three dot separated integers.
    """
    parts = entity_id.strip().split(".")
    if len(parts) != 3 or not all(part.isdigit() for part in parts):
        raise ValidationError(
            "Hedera entity ids must look like 0.0.1234", field="entity_id", value=entity_id
        )
    shard, realm, num = (int(part) for part in parts)
    return shard, realm, num


def solidity_address(entity_id: str) -> str:
    """Return the long-zero EVM address of a Hedera entity."""

    shard, realm, num = parse_entity_id(entity_id)
    raw = shard.to_bytes(4, "big") + realm.to_bytes(8, "big") + num.to_bytes(8, "big")
    return AsyncWeb3.to_checksum_address("0x" + raw.hex())


def mirror_transaction_id(transaction_id: str) -> str:
    """Convert ``0.0.5@1700000000.000000001`` into the explorer form.

    HashScan and the mirror node address transactions as
    ``0.0.5-1700000000-000000001``. Identifiers already in that form are
    returned unchanged.
    """
    if "@" not in transaction_id:
        return transaction_id
    account, _, valid_start = transaction_id.partition("@")
    seconds, _, nanos = valid_start.partition(".")
    return f"{account}-{seconds}-{nanos.ljust(9, '0')}"


_HEDERA_OPERATIONS: dict[OperationId, str] = {
    OperationId.CREATE_NATIVE_FT: "create_native_ft",
    OperationId.ASSOCIATE_NATIVE_FT: "associate_native_ft",
    OperationId.MINT_NATIVE_FT: "mint_native_ft",
    OperationId.TRANSFER_NATIVE_FT: "transfer_native_ft",
    OperationId.CREATE_NATIVE_NFT: "create_native_nft",
    OperationId.ASSOCIATE_NATIVE_NFT: "associate_native_nft",
    OperationId.MINT_NATIVE_NFT: "mint_native_nft",
    OperationId.TRANSFER_NATIVE_NFT: "transfer_native_nft",
    OperationId.CREATE_ERC20_SDK: "create_erc20_sdk",
    OperationId.MINT_ERC20_SDK: "mint_erc20_sdk",
    OperationId.TRANSFER_ERC20_SDK: "transfer_erc20_sdk",
    OperationId.CREATE_ERC721_SDK: "create_erc721_sdk",
    OperationId.MINT_ERC721_SDK: "mint_erc721_sdk",
    OperationId.TRANSFER_ERC721_SDK: "transfer_erc721_sdk",
    OperationId.SUBMIT_MESSAGE: "submit_consensus_message",
}


class HederaAdapter(EvmChainAdapter):
    """Hedera through its JSON-RPC relay and the native token and consensus services."""

    OPERATIONS: ClassVar[OperationTable] = {**_ERC_OPERATIONS, **_HEDERA_OPERATIONS}

    def __init__(
        self,
        config: ChainConfig,
        settings: Settings,
        *,
        web3: AsyncWeb3 | None = None,
        native: HederaNativeClient | None = None,
    ) -> None:
        super().__init__(config, settings, web3=web3)
        self._native = native
        self._mutex = AccountCreationMutex(f"{config.chain.value}-account")

    @property
    def native(self) -> HederaNativeClient:
        if self._native is None:
            credentials = self._settings.credentials_for(self.chain)
            private_key = credentials.require_private_key(self.chain)
            if not credentials.address:
                raise ConfigurationError(
                    "No Hedera account id configured. Set WALLET_HEDERA_ADDRESS in your .env file",
                    field="WALLET_HEDERA_ADDRESS",
                )
            parse_entity_id(credentials.address)

            from .hedera_native import HederaNativeClient

            self._native = HederaNativeClient(self.config.network, credentials.address, private_key)
        return self._native

    @property
    def mutex(self) -> AccountCreationMutex:
        return self._mutex

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def is_healthy(self) -> bool:
        if not await super().is_healthy():
            return False
        if self._native is None and not self._settings.credentials_for(self.chain).address:
            logger.warning(
                "WALLET_HEDERA_ADDRESS is not set; only relay operations can run on hedera"
            )
            return True
        try:
            return await self._call(self.native.is_healthy)
        except Exception as exc:
            logger.warning("Hedera native client unavailable: %s", exc)
            return False

    async def aclose(self) -> None:
        await super().aclose()
        if self._native is not None:
            await self._call(self._native.close)

    # ------------------------------------------------------------------
    # Token service
    # ------------------------------------------------------------------
    async def create_native_ft(self) -> RawOperationResult:
        return self._native_result(await self._call(self.native.create_token, nft=False))

    async def associate_native_ft(self) -> RawOperationResult:
        return await self._associate(nft=False)

    async def mint_native_ft(self) -> RawOperationResult:
        token_id = await self._create_token(nft=False)
        outcome = await self._call(self.native.mint_fungible, token_id, HEDERA_FT_MINT_AMOUNT)
        return self._native_result(outcome)

    async def transfer_native_ft(self) -> RawOperationResult:
        account = await self.create_account()
        token_id = await self._create_token(nft=False)
        self._require(await self._call(self.native.associate, account, token_id), "associate")
        outcome = await self._call(
            self.native.transfer_fungible, token_id, account.account_id, HEDERA_FT_TRANSFER_AMOUNT
        )
        return self._native_result(outcome)

    async def create_native_nft(self) -> RawOperationResult:
        return self._native_result(await self._call(self.native.create_token, nft=True))

    async def associate_native_nft(self) -> RawOperationResult:
        return await self._associate(nft=True)

    async def mint_native_nft(self) -> RawOperationResult:
        token_id = await self._create_token(nft=True)
        outcome = await self._call(self.native.mint_nft, token_id, HEDERA_NFT_METADATA)
        return self._native_result(outcome)

    async def transfer_native_nft(self) -> RawOperationResult:
        account = await self.create_account()
        token_id = await self._create_token(nft=True)
        minted = self._require(
            await self._call(self.native.mint_nft, token_id, HEDERA_NFT_METADATA), "mint NFT"
        )
        if not minted.serials:
            raise ValidationError("NFT mint receipt carries no serial number", field="serials")
        self._require(await self._call(self.native.associate, account, token_id), "associate")
        outcome = await self._call(
            self.native.transfer_nft, token_id, minted.serials[0], account.account_id
        )
        return self._native_result(outcome)

    # ------------------------------------------------------------------
    # Smart contract service
    # ------------------------------------------------------------------
    async def create_erc20_sdk(self) -> RawOperationResult:
        return self._native_result(await self._deploy_native(ContractArtifact.ERC20))

    async def mint_erc20_sdk(self) -> RawOperationResult:
        contract_id = await self._deployed_native(ContractArtifact.ERC20)
        outcome = await self._execute(
            contract_id,
            "mint",
            HEDERA_ERC20_MINT_GAS,
            [("address", self.account.address), ("uint256", ERC20_MINT_AMOUNT)],
        )
        return self._native_result(outcome)

    async def transfer_erc20_sdk(self) -> RawOperationResult:
        contract_id = await self._deployed_native(ContractArtifact.ERC20)
        self._require(
            await self._execute(
                contract_id,
                "mint",
                HEDERA_ERC20_MINT_GAS,
                [("address", self.account.address), ("uint256", ERC20_MINT_AMOUNT)],
            ),
            "mint ERC-20",
        )
        recipient = await self.create_account()
        outcome = await self._execute(
            contract_id,
            "transfer",
            HEDERA_ERC20_TRANSFER_GAS,
            [
                ("address", solidity_address(recipient.account_id)),
                ("uint256", ERC20_TRANSFER_AMOUNT),
            ],
        )
        return self._native_result(outcome)

    async def create_erc721_sdk(self) -> RawOperationResult:
        return self._native_result(await self._deploy_native(ContractArtifact.ERC721))

    async def mint_erc721_sdk(self) -> RawOperationResult:
        contract_id = await self._deployed_native(ContractArtifact.ERC721)
        outcome = await self._execute(
            contract_id, "safeMint", HEDERA_ERC721_CALL_GAS, [("address", self.account.address)]
        )
        return self._native_result(outcome)

    async def transfer_erc721_sdk(self) -> RawOperationResult:
        owner = self.account.address
        contract_id = await self._deployed_native(ContractArtifact.ERC721)
        self._require(
            await self._execute(
                contract_id, "safeMint", HEDERA_ERC721_CALL_GAS, [("address", owner)]
            ),
            "mint ERC-721",
        )
        recipient = await self.create_account()
        outcome = await self._execute(
            contract_id,
            "transferFrom",
            HEDERA_ERC721_CALL_GAS,
            [
                ("address", owner),
                ("address", solidity_address(recipient.account_id)),
                ("uint256", FIRST_TOKEN_ID),
            ],
        )
        return self._native_result(outcome)

    # ------------------------------------------------------------------
    # Consensus service
    # ------------------------------------------------------------------
    async def submit_consensus_message(self) -> RawOperationResult:
        """Create a topic, then measure a 900 byte message submitted to it."""

        topic = self._require(await self._call(self.native.create_topic), "create topic")
        if topic.entity_id is None:
            raise ValidationError("Topic receipt carries no topic id", field="topic_id")
        outcome = await self._call(self.native.submit_message, topic.entity_id, memo_message())
        return self._native_result(outcome)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def create_account(self) -> HederaAccount:
        """Create a funded account, one at a time per adapter."""

        return await self._mutex.run_exclusive(lambda: self._call(self.native.create_account))

    async def _associate(self, *, nft: bool) -> RawOperationResult:
        account = await self.create_account()
        token_id = await self._create_token(nft=nft)
        return self._native_result(await self._call(self.native.associate, account, token_id))

    async def _create_token(self, *, nft: bool) -> str:
        outcome = self._require(
            await self._call(self.native.create_token, nft=nft), "create token"
        )
        if outcome.entity_id is None:
            raise ValidationError("Token receipt carries no token id", field="token_id")
        return outcome.entity_id

    async def _deploy_native(self, artifact: ContractArtifact) -> HederaOutcome:
        if artifact is ContractArtifact.ERC20:
            gas = HEDERA_ERC20_DEPLOY_GAS
        else:
            gas = HEDERA_ERC721_DEPLOY_GAS
        return await self._call(
            self.native.deploy_contract,
            self.artifact(artifact)["bytecode"],
            gas,
            self.account.address,
        )

    async def _deployed_native(self, artifact: ContractArtifact) -> str:
        outcome = self._require(await self._deploy_native(artifact), f"deploy {artifact.name}")
        if outcome.entity_id is None:
            raise ValidationError("Contract receipt carries no contract id", field="contract_id")
        return outcome.entity_id

    async def _execute(
        self, contract_id: str, function: str, gas: int, arguments: Sequence[tuple[str, Any]]
    ) -> HederaOutcome:
        return await self._call(self.native.execute_contract, contract_id, function, gas, arguments)

    @staticmethod
    async def _call(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        return await asyncio.to_thread(func, *args, **kwargs)

    @staticmethod
    def _require(outcome: HederaOutcome, action: str) -> HederaOutcome:
        if not outcome.success:
            raise TransactionFailedError(
                f"Transaction for {action} failed with status {outcome.status}",
                tx_hash=outcome.transaction_id,
            )
        return outcome

    @staticmethod
    def _native_result(outcome: HederaOutcome) -> RawOperationResult:
        return RawOperationResult(
            transaction_hash=mirror_transaction_id(outcome.transaction_id),
            success=outcome.success,
            fee=FixedNativeFee(shift_decimals(outcome.fee_tinybars, HEDERA_TINYBAR_DECIMALS)),
            error=None if outcome.success else f"Transaction status {outcome.status}",
            details={"status": outcome.status, "entity_id": outcome.entity_id},
        )
