from decimal import Decimal, ROUND_HALF_UP

from ledger.exceptions import CurrencyError

SUPPORTED_CURRENCIES = ("KSH", "USD")

# One rate in both directions so KSH -> USD -> KSH comes back to the start.
USD_TO_KSH = Decimal("129.76")

EXCHANGE_RATES = {
    "USD_TO_KSH": USD_TO_KSH,
    "KSH_TO_USD": Decimal(1) / USD_TO_KSH,
}

CENTS = Decimal("0.01")

SYMBOLS = {
    "KSH": "KSh",
    "USD": "$",
}


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except Exception:
        raise CurrencyError(f"Invalid amount: {value!r}")


def quantize(value) -> Decimal:
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def convert_currency(amount, from_currency: str, to_currency: str) -> Decimal:
    """
    Convert between KSH and USD through USD. The result is not rounded;
    callers quantize when they persist.
    """
    for code in (from_currency, to_currency):
        if code not in SUPPORTED_CURRENCIES:
            raise CurrencyError(f"Unsupported currency: {code}")

    value = to_decimal(amount)
    if from_currency == to_currency:
        return value

    in_usd = value if from_currency == "USD" else value / USD_TO_KSH
    if to_currency == "USD":
        return in_usd
    return in_usd * USD_TO_KSH


def format_currency(amount, currency: str) -> str:
    """Display string, e.g. 'KSh 1,200.00' or '$9.25'."""
    value = quantize(amount or 0)
    symbol = SYMBOLS.get(currency, currency or "")
    sign = "-" if value < 0 else ""
    body = f"{abs(value):,.2f}"
    if currency == "USD":
        return f"{sign}{symbol}{body}"
    return f"{sign}{symbol} {body}"


def other_currency(currency: str) -> str:
    return "USD" if currency == "KSH" else "KSH"
