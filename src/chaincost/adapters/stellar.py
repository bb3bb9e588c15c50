"""Stellar adapter built on ``stellar-sdk``'s asynchronous Horizon server."""

from __future__ import annotations

import logging
import secrets
from collections.abc import Mapping
from typing import Any, ClassVar

from stellar_sdk import Asset, Keypair, Network, ServerAsync, TransactionBuilder
from stellar_sdk.client.aiohttp_client import AiohttpClient
from stellar_sdk.transaction_envelope import TransactionEnvelope

from ..base import NOT_APPLICABLE, Applicability, ChainAdapter, OperationTable
from ..config import ChainConfig, Settings
from ..constants import (
    STELLAR_FT_MINT_AMOUNT,
    STELLAR_FT_TRANSFER_AMOUNT,
    STELLAR_MEMO_PAYMENT_AMOUNT,
    STELLAR_MEMO_TEXT,
    STELLAR_NFT_AMOUNT,
    STELLAR_STARTING_BALANCE,
    STELLAR_TX_TIMEOUT_SECONDS,
)
from ..exceptions import TransactionFailedError, ValidationError
from ..mutex import AccountCreationMutex
from ..types import AccountData, LedgerDropFee, NetworkType, OperationId, RawOperationResult
from ..utils import coerce_int

logger = logging.getLogger(__name__)

_ERC_NOT_APPLICABLE: dict[OperationId, Applicability] = {
    operation: NOT_APPLICABLE
    for operation in OperationId
    if "erc20" in operation.value or "erc721" in operation.value
}


def network_passphrase(network: NetworkType) -> str:
    if network is NetworkType.MAINNET:
        return Network.PUBLIC_NETWORK_PASSPHRASE
    return Network.TESTNET_NETWORK_PASSPHRASE


def nft_asset_code() -> str:
    return f"NFT{1000 + secrets.randbelow(9000)}"


class StellarChainAdapter(ChainAdapter):
    """Classic Stellar assets and memo payments.

    Each operation funds a fresh distributor from the configured issuer. The
    issuer's sequence number is shared, so funding goes through the account
    creation mutex.
    """

    OPERATIONS: ClassVar[OperationTable] = {
        OperationId.CREATE_NATIVE_FT: "create_native_ft",
        OperationId.ASSOCIATE_NATIVE_FT: "associate_native_ft",
        OperationId.MINT_NATIVE_FT: "mint_native_ft",
        OperationId.TRANSFER_NATIVE_FT: "transfer_native_ft",
        OperationId.CREATE_NATIVE_NFT: "create_native_nft",
        OperationId.ASSOCIATE_NATIVE_NFT: "associate_native_nft",
        OperationId.MINT_NATIVE_NFT: "mint_native_nft",
        OperationId.TRANSFER_NATIVE_NFT: "transfer_native_nft",
        **_ERC_NOT_APPLICABLE,
        OperationId.SUBMIT_MESSAGE: "submit_message",
    }

    def __init__(
        self,
        config: ChainConfig,
        settings: Settings,
        *,
        server: ServerAsync | None = None,
    ) -> None:
        super().__init__(config, settings)
        self._server = server or ServerAsync(
            horizon_url=config.rpc_url,
            client=AiohttpClient(request_timeout=settings.request_timeout),
        )
        self._passphrase = network_passphrase(config.network)
        self._issuer: Keypair | None = None
        self._mutex = AccountCreationMutex(f"{config.chain.value}-distributor")

    @property
    def issuer(self) -> Keypair:
        if self._issuer is None:
            secret = self._settings.credentials_for(self.chain).require_private_key(self.chain)
            try:
                self._issuer = Keypair.from_secret(secret)
            except Exception as exc:
                raise ValidationError(
                    "Failed to derive Stellar keypair from secret",
                    field="private_key",
                    details={"error": str(exc)},
                ) from exc
        return self._issuer

    @property
    def mutex(self) -> AccountCreationMutex:
        return self._mutex

    async def is_healthy(self) -> bool:
        try:
            stats = await self._server.fee_stats().call()
        except Exception as exc:
            logger.warning("Horizon unreachable at %s: %s", self.config.rpc_url, exc)
            return False
        return stats.get("last_ledger_base_fee") is not None

    async def aclose(self) -> None:
        await self._server.close()

    # ------------------------------------------------------------------
    # Fungible tokens
    # ------------------------------------------------------------------
    async def create_native_ft(self) -> RawOperationResult:
        distributor = await self.create_account()
        return self._result(await self._change_trust(distributor, self._asset("TOKENCREATE")))

    async def associate_native_ft(self) -> RawOperationResult:
        distributor = await self.create_account()
        return self._result(await self._change_trust(distributor, self._asset("TOKENTRUST")))

    async def mint_native_ft(self) -> RawOperationResult:
        asset = self._asset("TOKENMINT")
        distributor = await self._trusting_account(asset)
        return self._result(await self._issue(distributor, asset, STELLAR_FT_MINT_AMOUNT))

    async def transfer_native_ft(self) -> RawOperationResult:
        asset = self._asset("TOKENXFER")
        result = await self._transfer(asset, STELLAR_FT_MINT_AMOUNT, STELLAR_FT_TRANSFER_AMOUNT)
        return self._result(result)

    # ------------------------------------------------------------------
    # Non fungible tokens (single-unit classic assets)
    # ------------------------------------------------------------------
    async def create_native_nft(self) -> RawOperationResult:
        distributor = await self.create_account()
        asset = self._asset(nft_asset_code())
        return self._result(await self._change_trust(distributor, asset))

    async def associate_native_nft(self) -> RawOperationResult:
        distributor = await self.create_account()
        asset = self._asset(nft_asset_code())
        return self._result(await self._change_trust(distributor, asset))

    async def mint_native_nft(self) -> RawOperationResult:
        asset = self._asset(nft_asset_code())
        distributor = await self._trusting_account(asset)
        return self._result(await self._issue(distributor, asset, STELLAR_NFT_AMOUNT))

    async def transfer_native_nft(self) -> RawOperationResult:
        asset = self._asset(nft_asset_code())
        return self._result(await self._transfer(asset, STELLAR_NFT_AMOUNT, STELLAR_NFT_AMOUNT))

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------
    async def submit_message(self) -> RawOperationResult:
        """Native payment back to the issuer carrying a short text memo."""

        distributor = await self.create_account()
        source = await self._server.load_account(distributor.address)
        envelope = (
            self._builder(source)
            .add_text_memo(STELLAR_MEMO_TEXT)
            .append_payment_op(
                destination=self.issuer.public_key,
                asset=Asset.native(),
                amount=STELLAR_MEMO_PAYMENT_AMOUNT,
            )
            .set_timeout(STELLAR_TX_TIMEOUT_SECONDS)
            .build()
        )
        signer = Keypair.from_secret(distributor.private_key)
        return self._result(await self._submit(envelope, signer, "memo payment"))

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------
    async def create_account(self) -> AccountData:
        """Fund a fresh account from the issuer under the account creation mutex."""

        async def fund() -> AccountData:
            keypair = Keypair.random()
            issuer_account = await self._server.load_account(self.issuer.public_key)
            envelope = (
                self._builder(issuer_account)
                .append_create_account_op(
                    destination=keypair.public_key,
                    starting_balance=STELLAR_STARTING_BALANCE,
                )
                .set_timeout(STELLAR_TX_TIMEOUT_SECONDS)
                .build()
            )
            self._require_success(await self._submit(envelope, self.issuer, "create account"))
            logger.info("Created Stellar distributor %s", keypair.public_key)
            return AccountData(
                address=keypair.public_key,
                private_key=keypair.secret,
                public_key=keypair.public_key,
            )

        return await self._mutex.run_exclusive(fund)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _asset(self, code: str) -> Asset:
        return Asset(code, self.issuer.public_key)

    def _builder(self, source: Any) -> TransactionBuilder:
        return TransactionBuilder(
            source_account=source,
            network_passphrase=self._passphrase,
            base_fee=100,
        )

    async def _change_trust(self, account: AccountData, asset: Asset) -> dict[str, Any]:
        source = await self._server.load_account(account.address)
        envelope = (
            self._builder(source)
            .append_change_trust_op(asset=asset)
            .set_timeout(STELLAR_TX_TIMEOUT_SECONDS)
            .build()
        )
        signer = Keypair.from_secret(account.private_key)
        return await self._submit(envelope, signer, "change trust")

    async def _trusting_account(self, asset: Asset) -> AccountData:
        account = await self.create_account()
        self._require_success(await self._change_trust(account, asset))
        return account

    async def _issue(self, account: AccountData, asset: Asset, amount: str) -> dict[str, Any]:
        source = await self._server.load_account(self.issuer.public_key)
        envelope = (
            self._builder(source)
            .append_payment_op(destination=account.address, asset=asset, amount=amount)
            .set_timeout(STELLAR_TX_TIMEOUT_SECONDS)
            .build()
        )
        return await self._submit(envelope, self.issuer, f"issue {asset.code}")

    async def _transfer(self, asset: Asset, minted: str, amount: str) -> dict[str, Any]:
        sender = await self._trusting_account(asset)
        recipient = await self._trusting_account(asset)
        self._require_success(await self._issue(sender, asset, minted))

        source = await self._server.load_account(sender.address)
        envelope = (
            self._builder(source)
            .append_payment_op(destination=recipient.address, asset=asset, amount=amount)
            .set_timeout(STELLAR_TX_TIMEOUT_SECONDS)
            .build()
        )
        signer = Keypair.from_secret(sender.private_key)
        return await self._submit(envelope, signer, f"transfer {asset.code}")

    async def _submit(
        self, envelope: TransactionEnvelope, signer: Keypair, action: str
    ) -> dict[str, Any]:
        envelope.sign(signer)
        logger.info("Dispatching %s on stellar", action)
        response = await self._server.submit_transaction(envelope)
        logger.info(
            "Transaction confirmed for action=%s hash=%s ledger=%s",
            action,
            response.get("hash"),
            response.get("ledger"),
        )
        return dict(response)

    @staticmethod
    def _require_success(response: Mapping[str, Any]) -> Mapping[str, Any]:
        if response.get("successful") is False:
            raise TransactionFailedError(
                "Stellar transaction was not successful", tx_hash=response.get("hash")
            )
        return response

    @staticmethod
    def _result(response: Mapping[str, Any]) -> RawOperationResult:
        success = response.get("successful", True) is not False
        return RawOperationResult(
            transaction_hash=response.get("hash"),
            success=success,
            fee=LedgerDropFee(drops=coerce_int(response.get("fee_charged"), field="fee_charged")),
            block_number=response.get("ledger"),
            error=None if success else "Transaction was not successful",
        )
