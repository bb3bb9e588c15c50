"""Multi-step adapter flows driven against in-memory ledger fakes."""

from __future__ import annotations

import asyncio
import threading
import time
from decimal import Decimal
from types import SimpleNamespace
from typing import Any, cast

import pytest
from stellar_sdk import Account as StellarAccount
from stellar_sdk import Keypair as StellarKeypair
from xrpl.wallet import Wallet

from chaincost.adapters import ripple as ripple_module
from chaincost.adapters.hedera import HederaAccount, HederaAdapter, HederaOutcome
from chaincost.adapters.ripple import RippleChainAdapter
from chaincost.adapters.stellar import StellarChainAdapter
from chaincost.config import Settings, WalletCredentials, get_chain_config
from chaincost.constants import HEDERA_NFT_METADATA, MEMO_SIZE_BYTES
from chaincost.exceptions import ConfigurationError
from chaincost.types import ChainId, FixedNativeFee, LedgerDropFee, NetworkType

NFTOKEN_ID = "000800006B2C2F7E5D9A1B3C4D5E6F708192A3B4C5D6E7F80000099B00000000"


class InFlightCounter:
    """Track how many calls overlap."""

    def __init__(self) -> None:
        self.current = 0
        self.peak = 0

    def enter(self) -> None:
        self.current += 1
        self.peak = max(self.peak, self.current)

    def exit(self) -> None:
        self.current -= 1


# ----------------------------------------------------------------------
# XRP Ledger
# ----------------------------------------------------------------------
class DummySubmitAndWait:
    """Replacement for ``xrpl.asyncio.transaction.submit_and_wait``."""

    def __init__(self, fees: dict[str, str] | None = None) -> None:
        self.fees = fees or {}
        self.submitted: list[Any] = []
        self.payments = InFlightCounter()

    async def __call__(self, tx: Any, client: Any, wallet: Wallet) -> SimpleNamespace:
        kind = tx.transaction_type.value
        self.submitted.append(tx)
        if kind == "Payment":
            self.payments.enter()
            try:
                await asyncio.sleep(0.01)
            finally:
                self.payments.exit()

        meta: dict[str, Any] = {"TransactionResult": "tesSUCCESS"}
        if kind == "NFTokenMint":
            meta["nftoken_id"] = NFTOKEN_ID
        if kind == "NFTokenCreateOffer":
            meta["offer_id"] = "AB" * 32
        return SimpleNamespace(
            result={
                "hash": f"{kind.upper()}{len(self.submitted)}",
                "ledger_index": 10 + len(self.submitted),
                "meta": meta,
                "tx_json": {"Fee": self.fees.get(kind, "10")},
            }
        )


@pytest.fixture
def ripple_adapter(monkeypatch):
    def build(fees: dict[str, str] | None = None):
        fake = DummySubmitAndWait(fees)
        monkeypatch.setattr(ripple_module, "submit_and_wait", fake)
        settings = Settings(
            credentials={ChainId.RIPPLE: WalletCredentials(private_key=Wallet.create().seed)}
        )
        adapter = RippleChainAdapter(
            get_chain_config(ChainId.RIPPLE, NetworkType.TESTNET),
            settings,
            client=cast(Any, SimpleNamespace()),
        )
        return adapter, fake

    return build


class TestRippleFlows:
    def test_nft_transfer_sums_offer_and_accept_fees(self, ripple_adapter):
        adapter, fake = ripple_adapter({"NFTokenCreateOffer": "12", "NFTokenAcceptOffer": "10"})

        result = asyncio.run(adapter.transfer_native_nft())

        kinds = [tx.transaction_type.value for tx in fake.submitted]
        assert kinds == ["NFTokenMint", "Payment", "NFTokenCreateOffer", "NFTokenAcceptOffer"]
        offer = fake.submitted[2]
        assert offer.nftoken_id == NFTOKEN_ID
        assert fake.submitted[3].nftoken_sell_offer == "AB" * 32
        assert result.success
        assert result.fee == LedgerDropFee(drops=22)
        assert result.transaction_hash == "NFTOKENACCEPTOFFER4"

    def test_memo_payment_adds_the_drop_sent(self, ripple_adapter):
        adapter, fake = ripple_adapter({"Payment": "15"})

        result = asyncio.run(adapter.submit_message())

        memo_payment = fake.submitted[-1]
        assert memo_payment.amount == "1"
        assert len(memo_payment.memos[0].memo_data) == MEMO_SIZE_BYTES * 2
        assert result.fee == LedgerDropFee(drops=16)

    def test_holder_funding_is_serialised(self, ripple_adapter):
        adapter, fake = ripple_adapter()

        async def fund_two():
            return await asyncio.gather(adapter._fund_holder(), adapter._fund_holder())

        first, second = asyncio.run(fund_two())

        assert first.address != second.address
        assert fake.payments.peak == 1
        assert len(fake.submitted) == 2


# ----------------------------------------------------------------------
# Stellar
# ----------------------------------------------------------------------
class DummyHorizon:
    """Subset of ``ServerAsync`` used by the Stellar adapter."""

    def __init__(self) -> None:
        self.in_flight = InFlightCounter()
        self.submitted: list[Any] = []
        self.loaded: list[str] = []

    async def load_account(self, account_id: str) -> StellarAccount:
        self.loaded.append(account_id)
        return StellarAccount(account_id, 1)

    async def submit_transaction(self, envelope: Any) -> dict[str, Any]:
        self.in_flight.enter()
        try:
            await asyncio.sleep(0.01)
        finally:
            self.in_flight.exit()
        self.submitted.append(envelope)
        return {
            "hash": f"stellar-{len(self.submitted)}",
            "successful": True,
            "fee_charged": "100",
            "ledger": 40 + len(self.submitted),
        }

    async def close(self) -> None:
        pass


def _stellar_adapter(server: DummyHorizon) -> StellarChainAdapter:
    settings = Settings(
        credentials={
            ChainId.STELLAR: WalletCredentials(private_key=StellarKeypair.random().secret)
        }
    )
    return StellarChainAdapter(
        get_chain_config(ChainId.STELLAR, NetworkType.TESTNET),
        settings,
        server=cast(Any, server),
    )


class TestStellarFlows:
    def test_account_creation_is_serialised(self):
        server = DummyHorizon()
        adapter = _stellar_adapter(server)

        async def create_two():
            return await asyncio.gather(adapter.create_account(), adapter.create_account())

        first, second = asyncio.run(create_two())

        assert first.address != second.address
        assert server.in_flight.peak == 1
        assert len(server.submitted) == 2
        assert server.loaded == [adapter.issuer.public_key] * 2

    def test_memo_payment_from_new_distributor(self):
        server = DummyHorizon()
        adapter = _stellar_adapter(server)

        result = asyncio.run(adapter.submit_message())

        assert result.success
        assert result.fee == LedgerDropFee(drops=100)
        assert result.transaction_hash == "stellar-2"
        memo = server.submitted[-1].transaction.memo
        assert memo.memo_text == b"What is Lorem Ipsum? Lorem I"


# ----------------------------------------------------------------------
# Hedera
# ----------------------------------------------------------------------
class DummyHederaNative:
    """Blocking native client stand-in recording every call."""

    def __init__(self, *, status: str = "SUCCESS", fee_tinybars: int = 123_456_789) -> None:
        self.status = status
        self.fee_tinybars = fee_tinybars
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self._lock = threading.Lock()
        self._accounts = 0
        self.account_in_flight = 0
        self.account_peak = 0

    def _outcome(self, name: str, *args: Any, entity_id: str | None = None, serials=()):
        with self._lock:
            self.calls.append((name, args))
            index = len(self.calls)
        return HederaOutcome(
            transaction_id=f"0.0.2@1700000000.{index:09d}",
            status=self.status,
            fee_tinybars=self.fee_tinybars,
            entity_id=entity_id,
            serials=tuple(serials),
        )

    def is_healthy(self) -> bool:
        return True

    def close(self) -> None:
        self.calls.append(("close", ()))

    def create_account(self) -> HederaAccount:
        with self._lock:
            self.account_in_flight += 1
            self.account_peak = max(self.account_peak, self.account_in_flight)
        time.sleep(0.01)
        with self._lock:
            self.account_in_flight -= 1
            self._accounts += 1
            self.calls.append(("create_account", ()))
            return HederaAccount(account_id=f"0.0.{1000 + self._accounts}", private_key="11" * 32)

    def create_token(self, *, nft: bool) -> HederaOutcome:
        return self._outcome("create_token", nft, entity_id="0.0.900")

    def associate(self, account: HederaAccount, token_id: str) -> HederaOutcome:
        return self._outcome("associate", account.account_id, token_id)

    def mint_fungible(self, token_id: str, amount: int) -> HederaOutcome:
        return self._outcome("mint_fungible", token_id, amount)

    def mint_nft(self, token_id: str, metadata: bytes) -> HederaOutcome:
        return self._outcome("mint_nft", token_id, metadata, serials=(1,))

    def transfer_fungible(self, token_id: str, receiver: str, amount: int) -> HederaOutcome:
        return self._outcome("transfer_fungible", token_id, receiver, amount)

    def transfer_nft(self, token_id: str, serial: int, receiver: str) -> HederaOutcome:
        return self._outcome("transfer_nft", token_id, serial, receiver)

    def create_topic(self) -> HederaOutcome:
        return self._outcome("create_topic", entity_id="0.0.777")

    def submit_message(self, topic_id: str, message: str) -> HederaOutcome:
        return self._outcome("submit_message", topic_id, message)

    def deploy_contract(self, bytecode: str, gas: int, owner: str) -> HederaOutcome:
        return self._outcome("deploy_contract", bytecode, gas, owner, entity_id="0.0.555")

    def execute_contract(
        self, contract_id: str, function: str, gas: int, arguments: Any
    ) -> HederaOutcome:
        return self._outcome("execute_contract", contract_id, function, gas, list(arguments))


def _hedera_adapter(native: DummyHederaNative | None, **settings_kwargs: Any) -> HederaAdapter:
    credentials = WalletCredentials(private_key="0x" + "22" * 32, address="0.0.2")
    settings = Settings(credentials={ChainId.HEDERA: credentials}, **settings_kwargs)
    web3 = cast(Any, SimpleNamespace(provider=SimpleNamespace()))
    return HederaAdapter(
        get_chain_config(ChainId.HEDERA, NetworkType.TESTNET),
        settings,
        web3=web3,
        native=cast(Any, native),
    )


class TestHederaFlows:
    def test_create_token_fee_in_hbar(self):
        native = DummyHederaNative()
        adapter = _hedera_adapter(native)

        result = asyncio.run(adapter.create_native_ft())

        assert native.calls == [("create_token", (False,))]
        assert result.success
        assert result.fee == FixedNativeFee(Decimal("1.23456789"))
        assert result.transaction_hash == "0.0.2-1700000000-000000001"

    def test_nft_transfer_associates_then_moves_first_serial(self):
        native = DummyHederaNative()
        adapter = _hedera_adapter(native)

        result = asyncio.run(adapter.transfer_native_nft())

        names = [name for name, _ in native.calls]
        assert names == ["create_account", "create_token", "mint_nft", "associate", "transfer_nft"]
        assert native.calls[2][1] == ("0.0.900", HEDERA_NFT_METADATA)
        assert native.calls[4][1] == ("0.0.900", 1, "0.0.1001")
        assert result.success

    def test_consensus_message_goes_to_created_topic(self):
        native = DummyHederaNative()
        adapter = _hedera_adapter(native)

        result = asyncio.run(adapter.submit_consensus_message())

        name, (topic_id, message) = native.calls[-1]
        assert name == "submit_message"
        assert topic_id == "0.0.777"
        assert len(message.encode("utf-8")) == MEMO_SIZE_BYTES
        assert result.success

    def test_failed_status_is_reported(self):
        adapter = _hedera_adapter(DummyHederaNative(status="INSUFFICIENT_PAYER_BALANCE"))

        result = asyncio.run(adapter.create_native_nft())

        assert not result.success
        assert result.error == "Transaction status INSUFFICIENT_PAYER_BALANCE"
        assert result.fee == FixedNativeFee(Decimal("1.23456789"))

    def test_account_creation_is_serialised(self):
        native = DummyHederaNative()
        adapter = _hedera_adapter(native)

        async def create_two():
            return await asyncio.gather(adapter.create_account(), adapter.create_account())

        first, second = asyncio.run(create_two())

        assert {first.account_id, second.account_id} == {"0.0.1001", "0.0.1002"}
        assert native.account_peak == 1

    def test_sdk_erc20_transfer_targets_new_account(self, tmp_path):
        (tmp_path / "ERC-20.json").write_text('{"abi": [], "bytecode": "0x6000"}')
        native = DummyHederaNative()
        adapter = _hedera_adapter(native, contracts_dir=tmp_path)

        asyncio.run(adapter.transfer_erc20_sdk())

        names = [name for name, _ in native.calls]
        assert names == [
            "deploy_contract",
            "execute_contract",
            "create_account",
            "execute_contract",
        ]
        assert native.calls[0][1][2] == adapter.account.address
        contract_id, function, _, arguments = native.calls[-1][1]
        assert (contract_id, function) == ("0.0.555", "transfer")
        kind, address = arguments[0]
        assert kind == "address"
        assert address.lower() == "0x00000000000000000000000000000000000003e9"

    def test_missing_account_id(self):
        settings = Settings(
            credentials={ChainId.HEDERA: WalletCredentials(private_key="0x" + "22" * 32)}
        )
        adapter = HederaAdapter(
            get_chain_config(ChainId.HEDERA, NetworkType.TESTNET),
            settings,
            web3=cast(Any, SimpleNamespace(provider=SimpleNamespace())),
        )

        with pytest.raises(ConfigurationError) as exc_info:
            adapter.native
        assert exc_info.value.field == "WALLET_HEDERA_ADDRESS"

    def test_aclose_closes_native_client(self):
        native = DummyHederaNative()

        asyncio.run(_hedera_adapter(native).aclose())

        assert native.calls == [("close", ())]


class RelayEth:
    """Healthy Hedera testnet relay."""

    @staticmethod
    async def _value(value: Any) -> Any:
        return value

    @property
    def block_number(self):
        return self._value(1)

    @property
    def chain_id(self):
        return self._value(296)


def test_hedera_health_without_account_id_keeps_relay_usable(caplog):
    settings = Settings(
        credentials={ChainId.HEDERA: WalletCredentials(private_key="0x" + "22" * 32)}
    )
    adapter = HederaAdapter(
        get_chain_config(ChainId.HEDERA, NetworkType.TESTNET),
        settings,
        web3=cast(Any, SimpleNamespace(provider=SimpleNamespace(), eth=RelayEth())),
    )

    assert asyncio.run(adapter.is_healthy()) is True
    assert "WALLET_HEDERA_ADDRESS" in caplog.text


def test_hedera_health_checks_native_client():
    native = DummyHederaNative()
    adapter = _hedera_adapter(native)
    adapter._web3 = cast(Any, SimpleNamespace(provider=SimpleNamespace(), eth=RelayEth()))

    assert asyncio.run(adapter.is_healthy()) is True
