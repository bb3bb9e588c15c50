"""Solana adapter built on ``solana-py``'s async RPC client and ``solders``."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import ClassVar

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.types import TxOpts
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import CreateAccountParams, TransferParams, create_account, transfer
from solders.transaction import Transaction
from spl.memo.constants import MEMO_PROGRAM_ID
from spl.memo.instructions import MemoParams, create_memo
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import (
    AuthorityType,
    InitializeMintParams,
    MintToParams,
    SetAuthorityParams,
    TransferCheckedParams,
    create_associated_token_account,
    get_associated_token_address,
    initialize_mint,
    mint_to,
    set_authority,
    transfer_checked,
)

from ..base import NOT_APPLICABLE, ChainAdapter, OperationTable
from ..config import ChainConfig, Settings
from ..constants import (
    SOLANA_MEMO_TRANSFER_LAMPORTS,
    SOLANA_MINT_ACCOUNT_SIZE,
    SOLANA_NFT_DECIMALS,
    SOLANA_NFT_SUPPLY,
    SOLANA_TOKEN_DECIMALS,
    SOLANA_TRANSFER_AMOUNT,
)
from ..exceptions import NetworkError, TransactionFailedError, ValidationError
from ..types import LedgerDropFee, OperationId, RawOperationResult
from ..utils import memo_message

logger = logging.getLogger(__name__)


def parse_keypair(raw: str) -> Keypair:
    """Parse a secret key given as hex, base58 or a JSON byte array."""

    value = raw.strip()
    if value.startswith("["):
        array = json.loads(value)
        if not isinstance(array, list):
            raise ValidationError("Solana key JSON must be an integer array", field="private_key")
        return Keypair.from_bytes(bytes(array))

    try:
        secret = bytes.fromhex(value.removeprefix("0x"))
    except ValueError:
        return Keypair.from_base58_string(value)
    if len(secret) != 64:
        raise ValidationError("Solana secret key must be 64 bytes", field="private_key")
    return Keypair.from_bytes(secret)


class SolanaChainAdapter(ChainAdapter):
    """SPL token and memo operations on Solana.

    NFTs are SPL mints with zero decimals whose mint authority is revoked after
    a supply of one. No Metaplex metadata account is created.
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
        client: AsyncClient | None = None,
    ) -> None:
        super().__init__(config, settings)
        self._client = client or AsyncClient(
            config.rpc_url, commitment=Confirmed, timeout=settings.request_timeout
        )
        self._payer: Keypair | None = None

    @property
    def payer(self) -> Keypair:
        if self._payer is None:
            raw = self._settings.credentials_for(self.chain).require_private_key(self.chain)
            try:
                self._payer = parse_keypair(raw)
            except ValidationError:
                raise
            except Exception as exc:
                raise ValidationError(
                    "Failed to derive Solana keypair from secret key",
                    field="private_key",
                    details={"error": str(exc)},
                ) from exc
        return self._payer

    async def is_healthy(self) -> bool:
        try:
            version = await self._client.get_version()
        except Exception as exc:
            logger.warning("Solana RPC unreachable at %s: %s", self.config.rpc_url, exc)
            return False
        return bool(version.value.solana_core)

    async def aclose(self) -> None:
        await self._client.close()

    # ------------------------------------------------------------------
    # Fungible tokens
    # ------------------------------------------------------------------
    async def create_native_ft(self) -> RawOperationResult:
        """Allocate and initialise a new SPL mint in one transaction."""

        mint = Keypair()
        instructions = await self._create_mint_instructions(mint)
        signature = await self._send(instructions, [self.payer, mint], action="create mint")
        return await self._result(signature)

    async def associate_native_ft(self) -> RawOperationResult:
        mint = await self._create_mint()
        owner = Keypair().pubkey()
        signature = await self._create_token_account(mint, owner)
        return await self._result(signature)

    async def mint_native_ft(self) -> RawOperationResult:
        mint = await self._create_mint()
        await self._require_success(await self._create_token_account(mint, self.payer.pubkey()))
        signature = await self._mint_to(mint, SOLANA_TRANSFER_AMOUNT)
        return await self._result(signature)

    async def transfer_native_ft(self) -> RawOperationResult:
        payer = self.payer
        mint = await self._create_mint()
        recipient = Keypair().pubkey()
        await self._require_success(await self._create_token_account(mint, payer.pubkey()))
        await self._require_success(await self._create_token_account(mint, recipient))
        await self._require_success(await self._mint_to(mint, SOLANA_TRANSFER_AMOUNT))

        instruction = transfer_checked(
            TransferCheckedParams(
                program_id=TOKEN_PROGRAM_ID,
                source=get_associated_token_address(payer.pubkey(), mint),
                mint=mint,
                dest=get_associated_token_address(recipient, mint),
                owner=payer.pubkey(),
                amount=SOLANA_TRANSFER_AMOUNT,
                decimals=SOLANA_TOKEN_DECIMALS,
            )
        )
        signature = await self._send([instruction], [payer], action="transfer SPL token")
        return await self._result(signature)

    # ------------------------------------------------------------------
    # Non-fungible tokens
    # ------------------------------------------------------------------
    async def create_native_nft(self) -> RawOperationResult:
        mint = Keypair()
        instructions = await self._create_mint_instructions(mint, decimals=SOLANA_NFT_DECIMALS)
        signature = await self._send(instructions, [self.payer, mint], action="create NFT mint")
        return await self._result(signature)

    async def associate_native_nft(self) -> RawOperationResult:
        mint = await self._create_mint(decimals=SOLANA_NFT_DECIMALS)
        signature = await self._create_token_account(mint, Keypair().pubkey())
        return await self._result(signature)

    async def mint_native_nft(self) -> RawOperationResult:
        mint = await self._create_mint(decimals=SOLANA_NFT_DECIMALS)
        await self._require_success(await self._create_token_account(mint, self.payer.pubkey()))
        signature = await self._mint_nft(mint)
        return await self._result(signature)

    async def transfer_native_nft(self) -> RawOperationResult:
        payer = self.payer
        mint = await self._create_mint(decimals=SOLANA_NFT_DECIMALS)
        recipient = Keypair().pubkey()
        await self._require_success(await self._create_token_account(mint, payer.pubkey()))
        await self._require_success(await self._create_token_account(mint, recipient))
        await self._require_success(await self._mint_nft(mint))

        instruction = transfer_checked(
            TransferCheckedParams(
                program_id=TOKEN_PROGRAM_ID,
                source=get_associated_token_address(payer.pubkey(), mint),
                mint=mint,
                dest=get_associated_token_address(recipient, mint),
                owner=payer.pubkey(),
                amount=SOLANA_NFT_SUPPLY,
                decimals=SOLANA_NFT_DECIMALS,
            )
        )
        signature = await self._send([instruction], [payer], action="transfer NFT")
        return await self._result(signature)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------
    async def submit_message(self) -> RawOperationResult:
        payer = self.payer
        recipient = Keypair().pubkey()
        instructions = [
            transfer(
                TransferParams(
                    from_pubkey=payer.pubkey(),
                    to_pubkey=recipient,
                    lamports=SOLANA_MEMO_TRANSFER_LAMPORTS,
                )
            ),
            create_memo(
                MemoParams(
                    program_id=MEMO_PROGRAM_ID,
                    signer=payer.pubkey(),
                    message=memo_message().encode("utf-8"),
                )
            ),
        ]
        signature = await self._send(instructions, [payer], action="memo transfer")
        return await self._result(signature)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _create_mint_instructions(
        self, mint: Keypair, *, decimals: int = SOLANA_TOKEN_DECIMALS
    ) -> list[Instruction]:
        payer = self.payer.pubkey()
        rent = await self._client.get_minimum_balance_for_rent_exemption(SOLANA_MINT_ACCOUNT_SIZE)
        return [
            create_account(
                CreateAccountParams(
                    from_pubkey=payer,
                    to_pubkey=mint.pubkey(),
                    lamports=rent.value,
                    space=SOLANA_MINT_ACCOUNT_SIZE,
                    owner=TOKEN_PROGRAM_ID,
                )
            ),
            initialize_mint(
                InitializeMintParams(
                    decimals=decimals,
                    program_id=TOKEN_PROGRAM_ID,
                    mint=mint.pubkey(),
                    mint_authority=payer,
                )
            ),
        ]

    async def _create_mint(self, *, decimals: int = SOLANA_TOKEN_DECIMALS) -> Pubkey:
        mint = Keypair()
        instructions = await self._create_mint_instructions(mint, decimals=decimals)
        signature = await self._send(instructions, [self.payer, mint], action="create mint")
        await self._require_success(signature)
        return mint.pubkey()

    async def _create_token_account(self, mint: Pubkey, owner: Pubkey) -> Signature:
        instruction = create_associated_token_account(
            payer=self.payer.pubkey(), owner=owner, mint=mint
        )
        return await self._send([instruction], [self.payer], action="create token account")

    def _mint_to_instruction(self, mint: Pubkey, amount: int) -> Instruction:
        payer = self.payer.pubkey()
        return mint_to(
            MintToParams(
                program_id=TOKEN_PROGRAM_ID,
                mint=mint,
                dest=get_associated_token_address(payer, mint),
                mint_authority=payer,
                amount=amount,
            )
        )

    async def _mint_to(self, mint: Pubkey, amount: int) -> Signature:
        instruction = self._mint_to_instruction(mint, amount)
        return await self._send([instruction], [self.payer], action="mint SPL token")

    async def _mint_nft(self, mint: Pubkey) -> Signature:
        """Mint the single unit and revoke the mint authority in one transaction."""

        payer = self.payer.pubkey()
        instructions = [
            self._mint_to_instruction(mint, SOLANA_NFT_SUPPLY),
            set_authority(
                SetAuthorityParams(
                    program_id=TOKEN_PROGRAM_ID,
                    account=mint,
                    authority=AuthorityType.MINT_TOKENS,
                    current_authority=payer,
                    new_authority=None,
                )
            ),
        ]
        return await self._send(instructions, [self.payer], action="mint NFT")

    async def _send(
        self, instructions: Sequence[Instruction], signers: Sequence[Keypair], *, action: str
    ) -> Signature:
        blockhash = (await self._client.get_latest_blockhash()).value.blockhash
        tx = Transaction.new_signed_with_payer(
            list(instructions), self.payer.pubkey(), list(signers), blockhash
        )
        logger.info("Dispatching %s on solana", action)
        response = await self._client.send_transaction(
            tx, opts=TxOpts(preflight_commitment=Confirmed)
        )
        signature = response.value
        await self._client.confirm_transaction(signature, commitment=Confirmed)
        logger.info("Transaction confirmed for action=%s signature=%s", action, signature)
        return signature

    async def _transaction_meta(self, signature: Signature):
        response = await self._client.get_transaction(
            signature, commitment=Confirmed, max_supported_transaction_version=0
        )
        if response.value is None or response.value.transaction.meta is None:
            raise NetworkError(
                f"Transaction {signature} not found after confirmation",
                endpoint=self.config.rpc_url,
            )
        return response.value

    async def _require_success(self, signature: Signature) -> None:
        confirmed = await self._transaction_meta(signature)
        if confirmed.transaction.meta.err is not None:
            raise TransactionFailedError(
                f"Solana transaction failed: {confirmed.transaction.meta.err}",
                tx_hash=str(signature),
            )

    async def _result(self, signature: Signature) -> RawOperationResult:
        confirmed = await self._transaction_meta(signature)
        meta = confirmed.transaction.meta
        success = meta.err is None
        return RawOperationResult(
            transaction_hash=str(signature),
            success=success,
            fee=LedgerDropFee(drops=meta.fee),
            block_number=confirmed.slot,
            error=None if success else str(meta.err),
        )
