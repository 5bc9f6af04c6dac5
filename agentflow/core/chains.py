"""Supported chains and token addresses."""

BASE = 8453
ARBITRUM = 42161

CHAIN_IDS = {
    "base": BASE,
    "arbitrum": ARBITRUM,
}

CHAIN_NAMES = {chain_id: name for name, chain_id in CHAIN_IDS.items()}

RPC_URLS = {
    BASE: "https://mainnet.base.org",
    ARBITRUM: "https://arb1.arbitrum.io/rpc",
}

TOKEN_ADDRESSES: dict[int, dict[str, str]] = {
    BASE: {
        "USDC": "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
        "WETH": "0x4200000000000000000000000000000000000006",
    },
    ARBITRUM: {
        "USDC": "0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
        "WETH": "0x82aF49447D8a07e3bd95BD0d56f35241523fBab1",
    },
}

TOKEN_DECIMALS = {
    "USDC": 6,
    "WETH": 18,
}

# Reference stable asset, 6 decimals
USDC_UNIT = 10**6


def get_chain_name(chain_id: int) -> str | None:
    """Get the short name of a supported chain."""
    return CHAIN_NAMES.get(chain_id)


def get_token_address(chain_id: int, symbol: str) -> str | None:
    """Get the address of `symbol` on `chain_id`, if supported."""
    return TOKEN_ADDRESSES.get(chain_id, {}).get(symbol)


def asset_key(chain_id: int, symbol: str) -> str:
    """Build the "{chain}:{symbol}" key used for target allocations."""
    return f"{chain_id}:{symbol}"


def parse_asset_key(key: str) -> tuple[int, str]:
    """Split an asset key into (chain_id, symbol).

    Raises:
        ValueError: If the key is not of the form "{chain}:{symbol}"
    """
    chain_part, sep, symbol = key.partition(":")
    if not sep or not symbol:
        raise ValueError(f"Invalid asset key: {key!r}")
    return int(chain_part), symbol
