from ledger.config import LedgerConfig
from ledger.currency import convert_currency, format_currency, quantize
from ledger.exceptions import (
    CurrencyError,
    InsufficientBalanceError,
    LedgerError,
    LedgerValidationError,
    NotFoundError,
)

__all__ = [
    "LedgerConfig",
    "convert_currency",
    "format_currency",
    "quantize",
    "LedgerError",
    "LedgerValidationError",
    "InsufficientBalanceError",
    "CurrencyError",
    "NotFoundError",
]
