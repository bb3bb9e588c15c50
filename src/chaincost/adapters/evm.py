"""EVM chain adapter built on ``AsyncWeb3``.

Serves Avalanche C-Chain and OP Mainnet/Sepolia, and is the relay half of
:mod:`chaincost.adapters.hedera`. Native token operations are benchmarked
through ERC-20/ERC-721 contracts, the way an EVM application would issue
assets.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, ClassVar, cast

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.contract import AsyncContract
from web3.types import TxParams, TxReceipt

from ..base import NOT_APPLICABLE, ChainAdapter, OperationTable
from ..config import ChainConfig, Settings
from ..constants import (
    ERC20_MINT_AMOUNT,
    ERC20_TRANSFER_AMOUNT,
    MESSAGE_VALUE_WEI,
    ContractArtifact,
)
from ..exceptions import ConfigurationError, NetworkError, TransactionFailedError, ValidationError
from ..types import GasFee, OperationId, RawOperationResult
from ..utils import coerce_int, evm_private_key, memo_message, serialise_receipt

logger = logging.getLogger(__name__)

# Token id assigned by the benchmark ERC-721 contract to its first mint.
FIRST_TOKEN_ID = 0


def load_artifact(contracts_dir: Path, artifact: ContractArtifact) -> dict[str, Any]:
    """Load a compiled Hardhat artifact exposing ``abi`` and ``bytecode``.

    Raises:
        ConfigurationError: If the file is missing or malformed.
    """
    path = Path(contracts_dir) / artifact.value
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigurationError(
            f"Contract artifact not found: {path}", field="contracts_dir", value=str(path)
        ) from exc
    except (OSError, ValueError) as exc:
        raise ConfigurationError(
            f"Unable to read contract artifact {path}: {exc}",
            field="contracts_dir",
            value=str(path),
        ) from exc

    abi = payload.get("abi") if isinstance(payload, Mapping) else None
    bytecode = payload.get("bytecode") if isinstance(payload, Mapping) else None
    if not isinstance(abi, list) or not isinstance(bytecode, str) or not bytecode:
        raise ConfigurationError(
            f"Contract artifact {path} must define 'abi' and 'bytecode'",
            field="contracts_dir",
            value=str(path),
        )
    return {"abi": abi, "bytecode": bytecode}


_ERC_OPERATIONS: dict[OperationId, str] = {
    OperationId.CREATE_ERC20_RPC: "create_erc20",
    OperationId.MINT_ERC20_RPC: "mint_erc20",
    OperationId.TRANSFER_ERC20_RPC: "transfer_erc20",
    OperationId.CREATE_ERC721_RPC: "create_erc721",
    OperationId.MINT_ERC721_RPC: "mint_erc721",
    OperationId.TRANSFER_ERC721_RPC: "transfer_erc721",
    OperationId.SUBMIT_MESSAGE: "submit_message",
}


class EvmChainAdapter(ChainAdapter):
    """Benchmark operations on an EVM JSON-RPC endpoint."""

    OPERATIONS: ClassVar[OperationTable] = {
        **_ERC_OPERATIONS,
        OperationId.CREATE_NATIVE_FT: "create_erc20",
        OperationId.ASSOCIATE_NATIVE_FT: NOT_APPLICABLE,
        OperationId.MINT_NATIVE_FT: "mint_erc20",
        OperationId.TRANSFER_NATIVE_FT: "transfer_erc20",
        OperationId.CREATE_NATIVE_NFT: "create_erc721",
        OperationId.ASSOCIATE_NATIVE_NFT: NOT_APPLICABLE,
        OperationId.MINT_NATIVE_NFT: "mint_erc721",
        OperationId.TRANSFER_NATIVE_NFT: "transfer_erc721",
        OperationId.CREATE_ERC20_SDK: "create_erc20",
        OperationId.MINT_ERC20_SDK: "mint_erc20",
        OperationId.TRANSFER_ERC20_SDK: "transfer_erc20",
        OperationId.CREATE_ERC721_SDK: "create_erc721",
        OperationId.MINT_ERC721_SDK: "mint_erc721",
        OperationId.TRANSFER_ERC721_SDK: "transfer_erc721",
    }

    def __init__(
        self,
        config: ChainConfig,
        settings: Settings,
        *,
        web3: AsyncWeb3 | None = None,
    ) -> None:
        super().__init__(config, settings)
        self._web3 = web3 or AsyncWeb3(
            AsyncHTTPProvider(
                config.rpc_url, request_kwargs={"timeout": settings.request_timeout}
            )
        )
        self._account: LocalAccount | None = None
        self._artifacts: dict[ContractArtifact, dict[str, Any]] = {}

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def web3(self) -> AsyncWeb3:
        return self._web3

    @property
    def account(self) -> LocalAccount:
        if self._account is None:
            raw_key = self._settings.credentials_for(self.chain).require_private_key(self.chain)
            private_key = evm_private_key(raw_key)
            try:
                self._account = cast(LocalAccount, Account.from_key(private_key))
            except Exception as exc:
                raise ValidationError(
                    "Failed to derive signer account from provided private key",
                    field="private_key",
                    details={"error": str(exc)},
                ) from exc
        return self._account

    def artifact(self, artifact: ContractArtifact) -> dict[str, Any]:
        if artifact not in self._artifacts:
            self._artifacts[artifact] = load_artifact(self._settings.contracts_dir, artifact)
        return self._artifacts[artifact]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def is_healthy(self) -> bool:
        try:
            block_number = await self._web3.eth.block_number
        except Exception as exc:
            logger.warning(
                "%s RPC unreachable at %s: %s", self.chain.value, self.config.rpc_url, exc
            )
            return False
        expected = self.config.evm_chain_id
        if expected is not None:
            try:
                chain_id = await self._web3.eth.chain_id
            except Exception as exc:
                logger.warning("%s chain id lookup failed: %s", self.chain.value, exc)
                return False
            if chain_id != expected:
                logger.warning(
                    "%s RPC at %s reports chain id %s, expected %s",
                    self.chain.value,
                    self.config.rpc_url,
                    chain_id,
                    expected,
                )
                return False
        logger.info(
            "Connected to %s RPC at %s (block %s)",
            self.chain.value,
            self.config.rpc_url,
            block_number,
        )
        return True

    async def aclose(self) -> None:
        provider = self._web3.provider
        disconnect = getattr(provider, "disconnect", None)
        if disconnect is not None:
            await disconnect()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    async def create_erc20(self) -> RawOperationResult:
        tx_hash, receipt = await self._deploy(ContractArtifact.ERC20)
        return self._result(tx_hash, receipt)

    async def mint_erc20(self) -> RawOperationResult:
        contract = await self._deployed_contract(ContractArtifact.ERC20)
        tx_hash, receipt = await self._transact(
            contract.functions.mint(self.account.address, ERC20_MINT_AMOUNT), action="mint ERC-20"
        )
        return self._result(tx_hash, receipt)

    async def transfer_erc20(self) -> RawOperationResult:
        recipient = Account.create().address
        contract = await self._deployed_contract(ContractArtifact.ERC20)
        await self._transact(
            contract.functions.mint(self.account.address, ERC20_MINT_AMOUNT),
            action="mint ERC-20",
            require_success=True,
        )
        tx_hash, receipt = await self._transact(
            contract.functions.transfer(recipient, ERC20_TRANSFER_AMOUNT),
            action="transfer ERC-20",
        )
        return self._result(tx_hash, receipt)

    async def create_erc721(self) -> RawOperationResult:
        tx_hash, receipt = await self._deploy(ContractArtifact.ERC721)
        return self._result(tx_hash, receipt)

    async def mint_erc721(self) -> RawOperationResult:
        contract = await self._deployed_contract(ContractArtifact.ERC721)
        tx_hash, receipt = await self._transact(
            contract.functions.safeMint(self.account.address), action="mint ERC-721"
        )
        return self._result(tx_hash, receipt)

    async def transfer_erc721(self) -> RawOperationResult:
        recipient = Account.create().address
        owner = self.account.address
        contract = await self._deployed_contract(ContractArtifact.ERC721)
        await self._transact(
            contract.functions.safeMint(owner), action="mint ERC-721", require_success=True
        )
        tx_hash, receipt = await self._transact(
            contract.functions.transferFrom(owner, recipient, FIRST_TOKEN_ID),
            action="transfer ERC-721",
        )
        return self._result(tx_hash, receipt)

    async def submit_message(self) -> RawOperationResult:
        """Send 1 wei to a fresh address with the memo as calldata."""

        recipient = Account.create().address
        payload = memo_message().encode("utf-8")
        tx: TxParams = {
            "to": recipient,
            "value": MESSAGE_VALUE_WEI,
            "data": AsyncWeb3.to_hex(payload),
        }
        tx_hash, receipt = await self._send(tx, action="submit message")
        return self._result(tx_hash, receipt, value=MESSAGE_VALUE_WEI)

    # ------------------------------------------------------------------
    # Transaction helpers
    # ------------------------------------------------------------------
    async def _base_params(self) -> TxParams:
        address = self.account.address
        eth = self._web3.eth
        return {
            "from": address,
            "chainId": self.config.evm_chain_id or await eth.chain_id,
            "nonce": await eth.get_transaction_count(address, "pending"),
            "gasPrice": await eth.gas_price,
        }

    async def _deploy(self, artifact: ContractArtifact) -> tuple[str, TxReceipt]:
        compiled = self.artifact(artifact)
        factory = self._web3.eth.contract(abi=compiled["abi"], bytecode=compiled["bytecode"])
        tx = await factory.constructor(self.account.address).build_transaction(
            await self._base_params()
        )
        return await self._sign_and_send(tx, action=f"deploy {artifact.name}")

    async def _deployed_contract(self, artifact: ContractArtifact) -> AsyncContract:
        _, receipt = await self._deploy(artifact)
        if receipt.get("status") != 1:
            raise TransactionFailedError(
                f"Deployment of {artifact.name} reverted",
                tx_hash=AsyncWeb3.to_hex(receipt.get("transactionHash")),
            )
        address = receipt.get("contractAddress")
        if not address:
            raise ValidationError(
                "Deployment receipt carries no contract address", field="contractAddress"
            )
        return self._web3.eth.contract(address=address, abi=self.artifact(artifact)["abi"])

    async def _transact(
        self, function: Any, *, action: str, require_success: bool = False
    ) -> tuple[str, TxReceipt]:
        tx = await function.build_transaction(await self._base_params())
        tx_hash, receipt = await self._sign_and_send(tx, action=action)
        if require_success and receipt.get("status") != 1:
            raise TransactionFailedError(f"Transaction for {action} reverted", tx_hash=tx_hash)
        return tx_hash, receipt

    async def _send(self, tx: TxParams, *, action: str) -> tuple[str, TxReceipt]:
        params = dict(await self._base_params())
        params.update(tx)
        params["gas"] = await self._web3.eth.estimate_gas(cast(TxParams, params))
        return await self._sign_and_send(cast(TxParams, params), action=action)

    async def _sign_and_send(self, tx: TxParams, *, action: str) -> tuple[str, TxReceipt]:
        signed = self.account.sign_transaction(cast(dict[str, Any], tx))
        logger.info("Dispatching %s on %s", action, self.chain.value)
        try:
            raw_hash = await self._web3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as exc:
            raise NetworkError(
                f"Failed to submit transaction for {action}: {exc}",
                endpoint=self.config.rpc_url,
                details={"error": str(exc)},
            ) from exc

        tx_hash = raw_hash.to_0x_hex()
        logger.info("Transaction sent for action=%s hash=%s", action, tx_hash)
        receipt = await self._web3.eth.wait_for_transaction_receipt(
            raw_hash, timeout=self._settings.receipt_timeout
        )
        logger.info(
            "Transaction confirmed for action=%s hash=%s block=%s",
            action,
            tx_hash,
            receipt.get("blockNumber"),
        )
        return tx_hash, receipt

    # ------------------------------------------------------------------
    # Fee extraction
    # ------------------------------------------------------------------
    def extra_fee(self, receipt: Mapping[str, Any]) -> int:
        """Chain specific fee charged outside of ``gasUsed * effectiveGasPrice``."""

        return 0

    def _result(self, tx_hash: str, receipt: TxReceipt, *, value: int = 0) -> RawOperationResult:
        gas_used = coerce_int(receipt.get("gasUsed"), field="gasUsed")
        gas_price = coerce_int(receipt.get("effectiveGasPrice"), field="effectiveGasPrice")
        fee = GasFee(
            gas_used=gas_used,
            gas_price=gas_price,
            additional_cost=self.extra_fee(receipt) + value,
        )
        success = receipt.get("status") == 1
        return RawOperationResult(
            transaction_hash=tx_hash,
            success=success,
            fee=fee,
            block_number=receipt.get("blockNumber"),
            error=None if success else "Transaction reverted",
            details={"receipt": serialise_receipt(receipt)},
        )


class AvalancheAdapter(EvmChainAdapter):
    """Avalanche C-Chain."""


class OptimismAdapter(EvmChainAdapter):
    """OP Stack chain; receipts carry the L1 data fee separately."""

    def extra_fee(self, receipt: Mapping[str, Any]) -> int:
        return coerce_int(receipt.get("l1Fee"), field="l1Fee")

