"""Static currency metadata and demo fallback tables."""

from __future__ import annotations

from typing import Dict

from .base import CurrencyInfo

CURRENCY_NAMES: Dict[str, str] = {
    "BTC": "Bitcoin",
    "ETH": "Ethereum",
    "LTC": "Litecoin",
    "BCH": "Bitcoin Cash",
    "XRP": "Ripple",
    "ADA": "Cardano",
    "DOT": "Polkadot",
    "LINK": "Chainlink",
    "USDT": "Tether",
    "USDC": "USD Coin",
    "DAI": "Dai",
    "UNI": "Uniswap",
    "AAVE": "Aave",
    "COMP": "Compound",
    "MKR": "Maker",
    "YFI": "Yearn Finance",
}

CURRENCY_SYMBOLS: Dict[str, str] = {
    "BTC": "₿",
    "ETH": "Ξ",
    "LTC": "Ł",
    "BCH": "₿",
    "XRP": "XRP",
    "ADA": "₳",
    "DOT": "DOT",
    "LINK": "LINK",
    "USDT": "₮",
    "USDC": "$",
    "DAI": "$",
    "UNI": "UNI",
    "AAVE": "AAVE",
    "COMP": "COMP",
    "MKR": "MKR",
    "YFI": "YFI",
}

# Approximate USD prices for demos; not market data.
FALLBACK_USD_RATES: Dict[str, float] = {
    "BTC": 45000,
    "LTC": 150,
    "ETH": 3000,
    "BCH": 400,
    "XMR": 200,
    "XRP": 1.2,
    "ADA": 1.5,
    "DOT": 25,
    "LINK": 15,
    "USDT": 1,
    "USDC": 1,
    "DAI": 1,
}

FALLBACK_MINIMUM_AMOUNTS: Dict[str, float] = {
    "BTC": 0.0001,
    "ETH": 0.001,
    "LTC": 0.01,
    "BCH": 0.001,
    "XMR": 0.001,
}

BTCPAY_CURRENCIES: tuple[CurrencyInfo, ...] = (
    CurrencyInfo("BTC", "Bitcoin", "₿"),
    CurrencyInfo("LTC", "Litecoin", "Ł"),
    CurrencyInfo("ETH", "Ethereum", "Ξ"),
    CurrencyInfo("BCH", "Bitcoin Cash", "₿"),
    CurrencyInfo("XMR", "Monero", "ɱ"),
)

NOWPAYMENTS_FALLBACK_CURRENCIES: tuple[CurrencyInfo, ...] = (
    CurrencyInfo("BTC", "Bitcoin", "₿"),
    CurrencyInfo("ETH", "Ethereum", "Ξ"),
    CurrencyInfo("LTC", "Litecoin", "Ł"),
    CurrencyInfo("BCH", "Bitcoin Cash", "₿"),
    CurrencyInfo("XRP", "Ripple", "XRP"),
    CurrencyInfo("ADA", "Cardano", "₳"),
    CurrencyInfo("DOT", "Polkadot", "DOT"),
    CurrencyInfo("LINK", "Chainlink", "LINK"),
)


def currency_name(code: str) -> str:
    normalized = code.upper()
    return CURRENCY_NAMES.get(normalized, normalized)


def currency_symbol(code: str) -> str:
    normalized = code.upper()
    return CURRENCY_SYMBOLS.get(normalized, normalized)


def describe_currency(code: str) -> CurrencyInfo:
    normalized = code.upper()
    return CurrencyInfo(normalized, currency_name(normalized), currency_symbol(normalized))


def fallback_rate(code: str) -> float:
    return FALLBACK_USD_RATES.get(code.upper(), 1)


def fallback_conversion(usd_amount: float, code: str) -> float:
    """Convert ``usd_amount`` with the static demo table."""
    return usd_amount / fallback_rate(code)

