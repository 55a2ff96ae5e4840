"""
Price and order-confirmation parsing.

Demoblaze renders prices as free text: ``$360`` on listing cards,
``$1100 *includes tax`` on product pages and bare numbers such as ``790``
in the cart table.  The confirmation alert after a purchase lists the
order fields one per line (``Id: 123``, ``Amount: 360 USD`` ...).  These
helpers turn that text into numbers and records so page objects and tests
can compare values instead of strings.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from demoblaze_e2e.errors import NoPricesFoundError

CURRENCY_SYMBOL = "$"


@dataclass(frozen=True)
class OrderConfirmation:
    """Fields shown in the purchase confirmation alert."""

    order_id: str = ""
    amount: str = ""
    card: str = ""
    name: str = ""
    date: str = ""


def parse_price(text: str | None, require_currency: bool = True) -> float | None:
    """
    Parse a displayed price into a float.

    Only the first whitespace-separated token is considered, so trailing
    notes like ``*includes tax`` are ignored.

    Args:
        text: Raw text content of the price element.
        require_currency: When True, text without a leading ``$`` is
            rejected.  Cart cells show bare numbers and pass False.

    Returns:
        The price, or None when the text does not hold a number.
    """
    if text is None:
        return None

    stripped = text.strip()
    if require_currency and not stripped.startswith(CURRENCY_SYMBOL):
        return None

    tokens = stripped.replace(CURRENCY_SYMBOL, "", 1).split()
    if not tokens:
        return None

    try:
        return float(tokens[0].replace(",", ""))
    except ValueError:
        return None


def find_highest_price(texts: Iterable[str | None]) -> tuple[int, float]:
    """
    Find the most expensive entry among listing price strings.

    Args:
        texts: Price strings in display order.

    Returns:
        ``(index, price)`` of the highest price.  The first occurrence
        wins when several entries share the maximum.

    Raises:
        NoPricesFoundError: If no entry parses as a price.
    """
    best_index = -1
    best_price = 0.0

    for index, text in enumerate(texts):
        price = parse_price(text)
        if price is None:
            continue
        if best_index == -1 or price > best_price:
            best_index = index
            best_price = price

    if best_index == -1:
        raise NoPricesFoundError("No valid product prices found")

    return best_index, best_price


def sum_prices(texts: Iterable[str | None]) -> float:
    """Add up cart cell prices, ignoring cells that are not numbers."""
    total = 0.0
    for text in texts:
        price = parse_price(text, require_currency=False)
        if price is not None:
            total += price
    return total


def _match(pattern: str, text: str) -> str:
    match = re.search(pattern, text, re.DOTALL)
    return match.group(1).strip() if match else ""


def parse_order_details(text: str | None) -> OrderConfirmation:
    """
    Extract order fields from the confirmation alert body.

    Works on both ``inner_text`` output (one field per line) and
    ``text_content`` output, where the fields run together because the
    alert separates them with ``<br>`` tags.  Missing fields are returned
    as empty strings.
    """
    if not text:
        return OrderConfirmation()

    return OrderConfirmation(
        order_id=_match(r"Id:\s*(\d+)", text),
        amount=_match(r"Amount:\s*(\d+)", text),
        card=_match(r"Card Number:\s*(\d+)", text),
        name=_match(r"Name:\s*(.*?)\s*(?=Date:|$)", text),
        date=_match(r"Date:\s*(\S+)", text),
    )
