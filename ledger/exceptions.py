# ==========================================================
#                  LEDGER EXCEPTIONS
# ==========================================================


class LedgerError(Exception):
    """Base ledger exception; carries the HTTP status it maps to."""
    status_code = 400

    def __init__(self, message, status_code=None, payload=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload or {}

    def to_dict(self):
        data = {"error": self.message}
        data.update(self.payload)
        return data


class LedgerValidationError(LedgerError):
    pass


class InsufficientBalanceError(LedgerError):

    def __init__(self, message="Insufficient balance", payload=None):
        super().__init__(message, payload=payload)


class CurrencyError(LedgerError):
    pass


class NotFoundError(LedgerError):
    status_code = 404
