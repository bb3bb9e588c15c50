"""Blocking client for Hedera native services built on ``hiero-sdk-python``.

Every method executes one transaction with the configured operator, fetches
its record for the charged fee, and returns a :class:`HederaOutcome`.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from hiero_sdk_python import (
    AccountCreateTransaction,
    AccountId,
    Client,
    ContractCreateTransaction,
    ContractExecuteTransaction,
    ContractFunctionParameters,
    ContractId,
    CryptoGetAccountBalanceQuery,
    Hbar,
    Network,
    NftId,
    PrivateKey,
    ResponseCode,
    SupplyType,
    TokenAssociateTransaction,
    TokenCreateTransaction,
    TokenId,
    TokenMintTransaction,
    TokenType,
    TopicCreateTransaction,
    TopicId,
    TopicMessageSubmitTransaction,
    TransactionRecordQuery,
    TransferTransaction,
)

from ..constants import (
    HEDERA_ACCOUNT_INITIAL_HBAR,
    HEDERA_FT_INITIAL_SUPPLY,
    HEDERA_NFT_MAX_SUPPLY,
)
from ..exceptions import TransactionFailedError, ValidationError
from ..types import NetworkType
from ..utils import evm_private_key
from .hedera import HederaAccount, HederaOutcome

logger = logging.getLogger(__name__)


def _ecdsa_key(raw_key: str) -> PrivateKey:
    try:
        return PrivateKey.from_string_ecdsa(evm_private_key(raw_key)[2:])
    except ValidationError:
        raise
    except Exception as exc:
        raise ValidationError(
            "Failed to load Hedera ECDSA private key",
            field="private_key",
            details={"error": str(exc)},
        ) from exc


def _status_name(status: Any) -> str:
    try:
        return ResponseCode(status).name
    except ValueError:
        return str(status)


def _entity(value: Any) -> str | None:
    return None if value is None else str(value)


class HederaNativeClient:
    """Operator-signed access to the token, consensus and contract services."""

    def __init__(self, network: NetworkType, account_id: str, private_key: str) -> None:
        self._operator_id = AccountId.from_string(account_id)
        self._operator_key = _ecdsa_key(private_key)
        self._client = Client(Network(network=network.value))
        self._client.set_operator(self._operator_id, self._operator_key)
        logger.info("Hedera client initialised for operator %s on %s", account_id, network.value)

    def is_healthy(self) -> bool:
        balance = (
            CryptoGetAccountBalanceQuery()
            .set_account_id(self._operator_id)
            .execute(self._client)
        )
        logger.info("Hedera operator %s balance: %s", self._operator_id, balance.hbars)
        return True

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------
    def create_account(self) -> HederaAccount:
        key = PrivateKey.generate_ecdsa()
        transaction = (
            AccountCreateTransaction()
            .set_key(key.public_key())
            .set_initial_balance(Hbar(HEDERA_ACCOUNT_INITIAL_HBAR))
        )
        receipt = transaction.execute(self._client)
        status = _status_name(receipt.status)
        if receipt.status != ResponseCode.SUCCESS or receipt.account_id is None:
            raise TransactionFailedError(
                f"Account creation failed with status {status}",
                tx_hash=_entity(transaction.transaction_id),
            )
        account_id = str(receipt.account_id)
        logger.info("Created Hedera account %s", account_id)
        return HederaAccount(account_id=account_id, private_key=key.to_string_raw())

    # ------------------------------------------------------------------
    # Token service
    # ------------------------------------------------------------------
    def create_token(self, *, nft: bool) -> HederaOutcome:
        transaction = (
            TokenCreateTransaction()
            .set_treasury_account_id(self._operator_id)
            .set_supply_key(self._operator_key.public_key())
            .set_admin_key(self._operator_key.public_key())
        )
        if nft:
            transaction = (
                transaction.set_token_name("Benchmark NFT")
                .set_token_symbol("NFT")
                .set_token_type(TokenType.NON_FUNGIBLE_UNIQUE)
                .set_supply_type(SupplyType.FINITE)
                .set_max_supply(HEDERA_NFT_MAX_SUPPLY)
                .set_decimals(0)
                .set_initial_supply(0)
            )
        else:
            transaction = (
                transaction.set_token_name("Benchmark Token")
                .set_token_symbol("F")
                .set_token_type(TokenType.FUNGIBLE_COMMON)
                .set_decimals(0)
                .set_initial_supply(HEDERA_FT_INITIAL_SUPPLY)
            )
        return self._execute(transaction, action="create token")

    def associate(self, account: HederaAccount, token_id: str) -> HederaOutcome:
        transaction = (
            TokenAssociateTransaction()
            .set_account_id(AccountId.from_string(account.account_id))
            .add_token_id(TokenId.from_string(token_id))
        )
        return self._execute(
            transaction, action="associate token", signers=[_ecdsa_key(account.private_key)]
        )

    def mint_fungible(self, token_id: str, amount: int) -> HederaOutcome:
        transaction = (
            TokenMintTransaction().set_token_id(TokenId.from_string(token_id)).set_amount(amount)
        )
        return self._execute(transaction, action="mint token")

    def mint_nft(self, token_id: str, metadata: bytes) -> HederaOutcome:
        transaction = (
            TokenMintTransaction()
            .set_token_id(TokenId.from_string(token_id))
            .set_metadata([metadata])
        )
        return self._execute(transaction, action="mint NFT")

    def transfer_fungible(self, token_id: str, receiver: str, amount: int) -> HederaOutcome:
        token = TokenId.from_string(token_id)
        transaction = (
            TransferTransaction()
            .add_token_transfer(token, self._operator_id, -amount)
            .add_token_transfer(token, AccountId.from_string(receiver), amount)
        )
        return self._execute(transaction, action="transfer token")

    def transfer_nft(self, token_id: str, serial: int, receiver: str) -> HederaOutcome:
        nft_id = NftId(token_id=TokenId.from_string(token_id), serial_number=serial)
        transaction = TransferTransaction().add_nft_transfer(
            nft_id, self._operator_id, AccountId.from_string(receiver)
        )
        return self._execute(transaction, action="transfer NFT")

    # ------------------------------------------------------------------
    # Consensus service
    # ------------------------------------------------------------------
    def create_topic(self) -> HederaOutcome:
        public_key = self._operator_key.public_key()
        transaction = TopicCreateTransaction().set_admin_key(public_key).set_submit_key(public_key)
        return self._execute(transaction, action="create topic")

    def submit_message(self, topic_id: str, message: str) -> HederaOutcome:
        transaction = (
            TopicMessageSubmitTransaction()
            .set_topic_id(TopicId.from_string(topic_id))
            .set_message(message)
        )
        return self._execute(transaction, action="submit topic message")

    # ------------------------------------------------------------------
    # Smart contract service
    # ------------------------------------------------------------------
    def deploy_contract(self, bytecode: str, gas: int, owner: str) -> HederaOutcome:
        code = bytecode[2:] if bytecode.startswith("0x") else bytecode
        transaction = (
            ContractCreateTransaction()
            .set_bytecode(bytes.fromhex(code))
            .set_gas(gas)
            .set_constructor_parameters(ContractFunctionParameters().add_address(owner))
        )
        return self._execute(transaction, action="deploy contract")

    def execute_contract(
        self,
        contract_id: str,
        function: str,
        gas: int,
        arguments: Sequence[tuple[str, Any]],
    ) -> HederaOutcome:
        params = ContractFunctionParameters()
        for kind, value in arguments:
            if kind == "address":
                params = params.add_address(value)
            elif kind == "uint256":
                params = params.add_uint256(value)
            else:
                raise ValidationError(
                    f"Unsupported contract argument type: {kind}", field="arguments", value=kind
                )
        transaction = (
            ContractExecuteTransaction()
            .set_contract_id(ContractId.from_string(contract_id))
            .set_gas(gas)
            .set_function(function, params)
        )
        return self._execute(transaction, action=f"call {function}")

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------
    def _execute(
        self, transaction: Any, *, action: str, signers: Sequence[PrivateKey] = ()
    ) -> HederaOutcome:
        transaction.freeze_with(self._client)
        for key in signers:
            transaction.sign(key)

        logger.info("Dispatching %s on hedera", action)
        receipt = transaction.execute(self._client)
        transaction_id = transaction.transaction_id
        record = TransactionRecordQuery().set_transaction_id(transaction_id).execute(self._client)

        entity = (
            receipt.token_id or receipt.topic_id or receipt.contract_id or receipt.account_id
        )
        outcome = HederaOutcome(
            transaction_id=str(transaction_id),
            status=_status_name(receipt.status),
            fee_tinybars=int(record.transaction_fee),
            entity_id=_entity(entity),
            serials=tuple(int(serial) for serial in receipt.serial_numbers or ()),
        )
        logger.info(
            "Transaction confirmed for action=%s id=%s status=%s fee=%s tinybars",
            action,
            outcome.transaction_id,
            outcome.status,
            outcome.fee_tinybars,
        )
        return outcome
