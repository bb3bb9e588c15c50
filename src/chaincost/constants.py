"""Constants shared by the chain adapters."""

from enum import Enum

# Memo payload used by message submission benchmarks.
MEMO_SEED_TEXT = (
    "Lorem Ipsum is simply dummy text of the printing and typesetting industry. "
    "It has survived not only five centuries, but also the leap into electronic "
    "typesetting, remaining essentially unchanged. "
)
MEMO_SIZE_BYTES = 900

# Stellar text memos are limited to 28 bytes.
# https://developers.stellar.org/docs/learn/encyclopedia/transactions-specialized/memos
STELLAR_MEMO_TEXT = "What is Lorem Ipsum? Lorem I"
STELLAR_TX_TIMEOUT_SECONDS = 180
STELLAR_STARTING_BALANCE = "3"
STELLAR_FT_MINT_AMOUNT = "1000"
STELLAR_FT_TRANSFER_AMOUNT = "100"
STELLAR_NFT_AMOUNT = "1"
STELLAR_MEMO_PAYMENT_AMOUNT = "1"

# XRPL currency code for the benchmark token ("MYTOK" padded to 160 bits).
RIPPLE_TOKEN_CODE = "4D59544F4B000000000000000000000000000000"
RIPPLE_TRUST_LIMIT = "1000000000"
RIPPLE_TOKEN_AMOUNT = "100"
RIPPLE_HOLDER_FUNDING_DROPS = "20000000"
RIPPLE_NFT_URI = "https://example.com/nft"
RIPPLE_NFT_TRANSFERABLE_FLAG = 8
RIPPLE_SELL_OFFER_FLAG = 1

# Solana SPL token parameters.
SOLANA_MINT_ACCOUNT_SIZE = 82
SOLANA_TOKEN_DECIMALS = 6
SOLANA_NFT_DECIMALS = 0
SOLANA_NFT_SUPPLY = 1
SOLANA_TRANSFER_AMOUNT = 1_000_000
SOLANA_MEMO_TRANSFER_LAMPORTS = 1_000_000

# ERC token parameters (18 decimals).
ERC20_MINT_AMOUNT = 100 * 10**18
ERC20_TRANSFER_AMOUNT = 10 * 10**18
MESSAGE_VALUE_WEI = 1

# Hedera token service and smart contract service parameters.
HEDERA_TINYBAR_DECIMALS = 8
HEDERA_FT_INITIAL_SUPPLY = 1000
HEDERA_FT_MINT_AMOUNT = 1000
HEDERA_FT_TRANSFER_AMOUNT = 1
HEDERA_NFT_MAX_SUPPLY = 1000
HEDERA_NFT_METADATA = b"https://ipfs.io/ipfs/QmTW9HWfb2wsQqEVJiixkQ73Nsfp2Rx4ESaDSiQ7ThwnFM"
HEDERA_ACCOUNT_INITIAL_HBAR = 10
HEDERA_ERC20_DEPLOY_GAS = 1_095_808
HEDERA_ERC721_DEPLOY_GAS = 2_095_808
HEDERA_ERC20_MINT_GAS = 100_388
HEDERA_ERC20_TRANSFER_GAS = 56_311
HEDERA_ERC721_CALL_GAS = 2_095_808

COINGECKO_API_URL = "https://api.coingecko.com/api/v3"
COINGECKO_PRO_API_URL = "https://pro-api.coingecko.com/api/v3"


class ContractArtifact(str, Enum):
    """Compiled contract artifacts expected in the contracts directory."""

    ERC20 = "ERC-20.json"
    ERC721 = "ERC-721.json"
