"""Price text parsing: currency tokens, decimal separators and normalization."""

from __future__ import annotations

import re
from typing import Optional, Tuple

from .text import normalize_text

_CURRENCY = r"(?:€|£|\$|¥|(?<![A-Za-z])(?:EUR|USD|GBP|CHF|RMB|CNY)(?![A-Za-z]))"
_AMOUNT = r"\d{1,3}(?:[.,]\d{3})+(?:[.,]\d{1,2})?|\d+(?:[.,]\d{1,2})?"

PRICE_WITH_CURRENCY = re.compile(
    rf"{_CURRENCY}\s*(?:{_AMOUNT})|(?:{_AMOUNT})\s*{_CURRENCY}",
    re.IGNORECASE,
)
DECIMAL_PRICE = re.compile(r"(?<![\d.,])\d{1,3}(?:[.,]\d{3})*[.,]\d{2}(?![.,]?\d)")

_CURRENCY_CODES = {
    "€": "EUR",
    "EUR": "EUR",
    "$": "USD",
    "USD": "USD",
    "£": "GBP",
    "GBP": "GBP",
    "CHF": "CHF",
    "¥": "CNY",
    "RMB": "CNY",
    "CNY": "CNY",
}
_CURRENCY_TOKEN = re.compile(_CURRENCY, re.IGNORECASE)
_NUMBER = re.compile(r"\d[\d.,]*")


def has_price_token(text: str) -> bool:
    return bool(PRICE_WITH_CURRENCY.search(text) or DECIMAL_PRICE.search(text))


def _normalize_amount(token: str) -> str:
    token = token.strip(".,")
    if "," in token and "." in token:
        decimal = "," if token.rfind(",") > token.rfind(".") else "."
        thousands = "." if decimal == "," else ","
        token = token.replace(thousands, "").replace(decimal, ".")
    elif "," in token:
        if re.fullmatch(r"\d{1,3}(?:,\d{3})+", token):
            token = token.replace(",", "")
        else:
            token = token.replace(",", ".")
    elif token.count(".") > 1 or re.fullmatch(r"\d{1,3}(?:\.\d{3})+", token):
        token = token.replace(".", "")
    return token


def normalize_price(text: Optional[str]) -> Tuple[str, str]:
    """
    Split messy price text into a dot-decimal amount and an ISO currency code.

    Handles German and English separators ("1.299,00 €", "$1,299.00").
    Returns empty strings for the parts that could not be found.
    """
    text = normalize_text(text)
    if not text:
        return "", ""

    currency = ""
    currency_match = _CURRENCY_TOKEN.search(text)
    if currency_match:
        currency = _CURRENCY_CODES.get(currency_match.group(0).upper(), "")

    with_currency = PRICE_WITH_CURRENCY.search(text)
    if with_currency:
        number = _NUMBER.search(with_currency.group(0))
        token = number.group(0) if number else ""
    else:
        decimal = DECIMAL_PRICE.search(text)
        if decimal:
            token = decimal.group(0)
        else:
            number = _NUMBER.search(text)
            token = number.group(0) if number else ""

    amount = _normalize_amount(token) if token else ""
    if amount and not re.fullmatch(r"\d+(?:\.\d+)?", amount):
        amount = ""
    return amount, currency
