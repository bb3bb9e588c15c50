"""Utility functions for the chain cost comparison engine."""

from collections.abc import Mapping, Sequence
from decimal import Decimal, localcontext
from typing import Any

from hexbytes import HexBytes

from .constants import MEMO_SEED_TEXT, MEMO_SIZE_BYTES
from .exceptions import ValidationError

# DER prefix of a raw secp256k1 private key as exported by the Hedera portal.
_HEDERA_ECDSA_DER_PREFIX = "3030020100300706052b8104000a04220420"


def shift_decimals(amount: int, decimals: int) -> Decimal:
    """Convert an integer amount of smallest units into whole native units."""
    if amount < 0:
        raise ValidationError("Amount cannot be negative", field="amount", value=amount)
    if decimals < 0:
        raise ValidationError("Decimals cannot be negative", field="decimals", value=decimals)

    with localcontext() as ctx:
        ctx.prec = max(28, len(str(amount)) + decimals + 2)
        return Decimal(amount).scaleb(-decimals)


def format_decimal(value: Decimal) -> str:
    """Render a decimal in plain notation without trailing zeros."""
    if value.is_zero():
        return "0"

    with localcontext() as ctx:
        ctx.prec = max(28, len(value.as_tuple().digits) + 2)
        normalized = value.normalize()
    return format(normalized, "f")


def memo_message(size: int = MEMO_SIZE_BYTES) -> str:
    """Return an ASCII message of exactly ``size`` bytes."""
    if size <= 0:
        raise ValidationError("Memo size must be positive", field="size", value=size)

    repeats = size // len(MEMO_SEED_TEXT) + 1
    return (MEMO_SEED_TEXT * repeats)[:size]


def evm_private_key(raw_key: str) -> str:
    """Normalise an ECDSA private key (hex or Hedera DER) to ``0x`` hex."""
    key = raw_key.strip().lower()
    if key.startswith("0x"):
        key = key[2:]

    if key.startswith(_HEDERA_ECDSA_DER_PREFIX):
        key = key[len(_HEDERA_ECDSA_DER_PREFIX) :]

    if len(key) != 64:
        raise ValidationError(
            "Private key must be 32 bytes of hex or a DER encoded ECDSA key",
            field="private_key",
        )

    try:
        bytes.fromhex(key)
    except ValueError as exc:
        raise ValidationError("Private key is not valid hex", field="private_key") from exc

    return f"0x{key}"


def serialise_receipt(receipt: Any) -> Any:
    """Serialise web3 receipt objects into JSON-friendly structures."""
    if receipt is None:
        return None
    if isinstance(receipt, Mapping):
        return {key: serialise_receipt(value) for key, value in receipt.items()}
    if isinstance(receipt, Sequence) and not isinstance(
        receipt, str | bytes | bytearray | HexBytes
    ):
        return [serialise_receipt(item) for item in receipt]
    if isinstance(receipt, bytes | bytearray | HexBytes):
        return HexBytes(receipt).to_0x_hex()
    return receipt


def coerce_int(value: Any, *, field: str) -> int:
    """Convert an int, decimal string or ``0x`` hex string into an int."""
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ValidationError(f"Unexpected boolean for {field}", field=field, value=value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text, 16) if text.lower().startswith("0x") else int(text)
        except ValueError as exc:
            raise ValidationError(f"Invalid integer for {field}", field=field, value=value) from exc
    raise ValidationError(f"Unsupported type for {field}", field=field, value=value)
