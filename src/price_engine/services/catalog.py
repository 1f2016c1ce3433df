from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CoinRef:
    """Tracked coin as stored in the coins table."""
    id: str
    symbol: str
    name: str


@dataclass(frozen=True)
class CurrencyRef:
    """Quote currency as stored in the currencies table."""
    code: str
    name: str


# polygon (matic) is left out: CoinGecko answers 404 for it.
TRACKED_COINS: tuple[CoinRef, ...] = (
    CoinRef("bitcoin", "btc", "Bitcoin"),
    CoinRef("ethereum", "eth", "Ethereum"),
    CoinRef("solana", "sol", "Solana"),
    CoinRef("cardano", "ada", "Cardano"),
    CoinRef("ripple", "xrp", "XRP"),
    CoinRef("polkadot", "dot", "Polkadot"),
    CoinRef("dogecoin", "doge", "Dogecoin"),
    CoinRef("avalanche-2", "avax", "Avalanche"),
    CoinRef("chainlink", "link", "Chainlink"),
    CoinRef("uniswap", "uni", "Uniswap"),
    CoinRef("litecoin", "ltc", "Litecoin"),
)

TRACKED_CURRENCIES: tuple[CurrencyRef, ...] = (
    CurrencyRef("usd", "US Dollar"),
    CurrencyRef("try", "Turkish Lira"),
    CurrencyRef("eur", "Euro"),
    CurrencyRef("gbp", "British Pound"),
)
