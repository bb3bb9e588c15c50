"""XRP Ledger adapter built on the ``xrpl-py`` asyncio client."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, ClassVar

from xrpl.asyncio.clients import AsyncJsonRpcClient
from xrpl.asyncio.transaction import submit_and_wait
from xrpl.models.amounts import IssuedCurrencyAmount
from xrpl.models.requests import AccountNFTs, ServerInfo
from xrpl.models.transactions import (
    AccountSet,
    AccountSetAsfFlag,
    Memo,
    NFTokenAcceptOffer,
    NFTokenCreateOffer,
    NFTokenMint,
    Payment,
    Transaction,
    TrustSet,
)
from xrpl.utils import str_to_hex
from xrpl.wallet import Wallet

from ..base import NOT_APPLICABLE, ChainAdapter, OperationTable
from ..config import ChainConfig, Settings
from ..constants import (
    RIPPLE_HOLDER_FUNDING_DROPS,
    RIPPLE_NFT_TRANSFERABLE_FLAG,
    RIPPLE_NFT_URI,
    RIPPLE_SELL_OFFER_FLAG,
    RIPPLE_TOKEN_AMOUNT,
    RIPPLE_TOKEN_CODE,
    RIPPLE_TRUST_LIMIT,
)
from ..exceptions import TransactionFailedError, ValidationError
from ..mutex import AccountCreationMutex
from ..types import LedgerDropFee, OperationId, RawOperationResult
from ..utils import coerce_int, memo_message

logger = logging.getLogger(__name__)

TES_SUCCESS = "tesSUCCESS"
MESSAGE_PAYMENT_DROPS = 1


def transaction_fee(result: Mapping[str, Any]) -> int:
    """Return the fee in drops from a validated ``tx`` response."""

    tx_json = result.get("tx_json")
    source = tx_json if isinstance(tx_json, Mapping) else result
    return coerce_int(source.get("Fee"), field="Fee")


def engine_result(result: Mapping[str, Any]) -> str | None:
    meta = result.get("meta")
    if isinstance(meta, Mapping):
        return meta.get("TransactionResult")
    return None


class RippleChainAdapter(ChainAdapter):
    """Issued currencies, NFTokens and memo payments on the XRP Ledger.

    The configured seed is the issuer. Operations that need a counterparty
    fund a throwaway holder from the issuer while holding the account creation
    mutex.
    """

    OPERATIONS: ClassVar[OperationTable] = {
        OperationId.CREATE_NATIVE_FT: "create_native_ft",
        OperationId.ASSOCIATE_NATIVE_FT: "associate_native_ft",
        OperationId.MINT_NATIVE_FT: "mint_native_ft",
        OperationId.TRANSFER_NATIVE_FT: "transfer_native_ft",
        OperationId.CREATE_NATIVE_NFT: NOT_APPLICABLE,
        OperationId.ASSOCIATE_NATIVE_NFT: NOT_APPLICABLE,
        OperationId.MINT_NATIVE_NFT: "mint_native_nft",
        OperationId.TRANSFER_NATIVE_NFT: "transfer_native_nft",
        OperationId.CREATE_ERC20_RPC: NOT_APPLICABLE,
        OperationId.MINT_ERC20_RPC: NOT_APPLICABLE,
        OperationId.TRANSFER_ERC20_RPC: NOT_APPLICABLE,
        OperationId.CREATE_ERC20_SDK: NOT_APPLICABLE,
        OperationId.MINT_ERC20_SDK: NOT_APPLICABLE,
        OperationId.TRANSFER_ERC20_SDK: NOT_APPLICABLE,
        OperationId.CREATE_ERC721_RPC: NOT_APPLICABLE,
        OperationId.MINT_ERC721_RPC: NOT_APPLICABLE,
        OperationId.TRANSFER_ERC721_RPC: NOT_APPLICABLE,
        OperationId.CREATE_ERC721_SDK: NOT_APPLICABLE,
        OperationId.MINT_ERC721_SDK: NOT_APPLICABLE,
        OperationId.TRANSFER_ERC721_SDK: NOT_APPLICABLE,
        OperationId.SUBMIT_MESSAGE: "submit_message",
    }

    def __init__(
        self,
        config: ChainConfig,
        settings: Settings,
        *,
        client: AsyncJsonRpcClient | None = None,
    ) -> None:
        super().__init__(config, settings)
        self._client = client or AsyncJsonRpcClient(config.rpc_url)
        self._issuer: Wallet | None = None
        self._mutex = AccountCreationMutex(f"{config.chain.value}-holder")

    @property
    def issuer(self) -> Wallet:
        if self._issuer is None:
            seed = self._settings.credentials_for(self.chain).require_private_key(self.chain)
            try:
                self._issuer = Wallet.from_seed(seed)
            except Exception as exc:
                raise ValidationError(
                    "Failed to derive Ripple wallet from seed",
                    field="seed",
                    details={"error": str(exc)},
                ) from exc
        return self._issuer

    @property
    def mutex(self) -> AccountCreationMutex:
        return self._mutex

    async def is_healthy(self) -> bool:
        try:
            response = await self._client.request(ServerInfo())
        except Exception as exc:
            logger.warning("Ripple node unreachable at %s: %s", self.config.rpc_url, exc)
            return False
        if not response.is_successful():
            logger.warning("Ripple server_info failed: %s", response.result)
            return False
        return True

    # ------------------------------------------------------------------
    # Fungible tokens
    # ------------------------------------------------------------------
    async def create_native_ft(self) -> RawOperationResult:
        """Enable rippling on the issuer, the XRPL prerequisite for issuing."""

        tx = AccountSet(
            account=self.issuer.address, set_flag=AccountSetAsfFlag.ASF_DEFAULT_RIPPLE
        )
        return self._result(await self._submit(tx, self.issuer, action="enable rippling"))

    async def associate_native_ft(self) -> RawOperationResult:
        holder = await self._fund_holder()
        return self._result(await self._trust(holder))

    async def mint_native_ft(self) -> RawOperationResult:
        holder = await self._fund_holder()
        self._require_success(await self._trust(holder))
        return self._result(await self._issue(holder, action="mint issued currency"))

    async def transfer_native_ft(self) -> RawOperationResult:
        holder = await self._fund_holder()
        self._require_success(await self._trust(holder))
        self._require_success(await self._issue(holder, action="mint issued currency"))
        return self._result(await self._issue(holder, action="transfer issued currency"))

    # ------------------------------------------------------------------
    # Non fungible tokens
    # ------------------------------------------------------------------
    async def mint_native_nft(self) -> RawOperationResult:
        return self._result(await self._mint_nft())

    async def transfer_native_nft(self) -> RawOperationResult:
        """Sell offer from the issuer accepted by a fresh holder; both fees count."""

        minted = self._require_success(await self._mint_nft())
        token_id = await self._minted_token_id(minted)
        holder = await self._fund_holder()

        offer_tx = NFTokenCreateOffer(
            account=self.issuer.address,
            nftoken_id=token_id,
            amount="0",
            destination=holder.address,
            flags=RIPPLE_SELL_OFFER_FLAG,
        )
        offer = self._require_success(
            await self._submit(offer_tx, self.issuer, action="create NFT sell offer")
        )
        offer_id = offer.get("meta", {}).get("offer_id")
        if not offer_id:
            raise ValidationError("Sell offer result carries no offer_id", field="offer_id")

        accept_tx = NFTokenAcceptOffer(account=holder.address, nftoken_sell_offer=offer_id)
        accepted = await self._submit(accept_tx, holder, action="accept NFT sell offer")
        return self._result(accepted, extra_drops=transaction_fee(offer))

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------
    async def submit_message(self) -> RawOperationResult:
        holder = await self._fund_holder()
        tx = Payment(
            account=self.issuer.address,
            destination=holder.address,
            amount=str(MESSAGE_PAYMENT_DROPS),
            memos=[Memo(memo_data=str_to_hex(memo_message()))],
        )
        result = await self._submit(tx, self.issuer, action="submit memo payment")
        return self._result(result, extra_drops=MESSAGE_PAYMENT_DROPS)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _fund_holder(self) -> Wallet:
        async def fund() -> Wallet:
            holder = Wallet.create()
            tx = Payment(
                account=self.issuer.address,
                destination=holder.address,
                amount=RIPPLE_HOLDER_FUNDING_DROPS,
            )
            self._require_success(await self._submit(tx, self.issuer, action="fund holder"))
            logger.info("Funded Ripple holder %s", holder.address)
            return holder

        return await self._mutex.run_exclusive(fund)

    def _token(self, value: str) -> IssuedCurrencyAmount:
        return IssuedCurrencyAmount(
            currency=RIPPLE_TOKEN_CODE, issuer=self.issuer.address, value=value
        )

    async def _trust(self, holder: Wallet) -> dict[str, Any]:
        tx = TrustSet(account=holder.address, limit_amount=self._token(RIPPLE_TRUST_LIMIT))
        return await self._submit(tx, holder, action="create trust line")

    async def _issue(self, holder: Wallet, *, action: str) -> dict[str, Any]:
        tx = Payment(
            account=self.issuer.address,
            destination=holder.address,
            amount=self._token(RIPPLE_TOKEN_AMOUNT),
        )
        return await self._submit(tx, self.issuer, action=action)

    async def _mint_nft(self) -> dict[str, Any]:
        tx = NFTokenMint(
            account=self.issuer.address,
            nftoken_taxon=0,
            flags=RIPPLE_NFT_TRANSFERABLE_FLAG,
            uri=str_to_hex(RIPPLE_NFT_URI),
        )
        return await self._submit(tx, self.issuer, action="mint NFToken")

    async def _minted_token_id(self, minted: Mapping[str, Any]) -> str:
        token_id = minted.get("meta", {}).get("nftoken_id")
        if token_id:
            return token_id

        response = await self._client.request(AccountNFTs(account=self.issuer.address))
        nfts = response.result.get("account_nfts") or []
        if not nfts:
            raise ValidationError("Issuer holds no NFTokens after minting", field="account_nfts")
        return nfts[-1]["NFTokenID"]

    async def _submit(self, tx: Transaction, wallet: Wallet, *, action: str) -> dict[str, Any]:
        logger.info("Dispatching %s on ripple from %s", action, wallet.address)
        response = await submit_and_wait(tx, self._client, wallet)
        result = dict(response.result)
        logger.info(
            "Transaction confirmed for action=%s hash=%s result=%s",
            action,
            result.get("hash"),
            engine_result(result),
        )
        return result

    @staticmethod
    def _require_success(result: dict[str, Any]) -> dict[str, Any]:
        outcome = engine_result(result)
        if outcome != TES_SUCCESS:
            raise TransactionFailedError(
                f"Ripple transaction failed with {outcome}", tx_hash=result.get("hash")
            )
        return result

    @staticmethod
    def _result(result: Mapping[str, Any], *, extra_drops: int = 0) -> RawOperationResult:
        outcome = engine_result(result)
        success = outcome == TES_SUCCESS
        return RawOperationResult(
            transaction_hash=result.get("hash"),
            success=success,
            fee=LedgerDropFee(drops=transaction_fee(result) + extra_drops),
            block_number=result.get("ledger_index"),
            error=None if success else f"Transaction result {outcome}",
            details={"engine_result": outcome},
        )
