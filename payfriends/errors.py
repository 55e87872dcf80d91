class PayFriendsError(Exception):
    """Base class for errors raised by this package."""


class ConfigError(PayFriendsError):
    """Missing or malformed settings. Fatal at startup."""


class StorageError(PayFriendsError):
    """The document store could not be read or written."""


class LedgerError(PayFriendsError):
    status_code = 400
    code = "ledger_error"

    def __init__(self, code: str = "", message: str = "") -> None:
        super().__init__(message or code or self.code)
        if code:
            self.code = code


class ValidationError(LedgerError):
    status_code = 400
    code = "invalid_request"


class PermissionDenied(LedgerError):
    status_code = 403
    code = "forbidden"


class ExpenseNotFound(LedgerError):
    status_code = 404
    code = "expense_not_found"


class OutstandingBalance(LedgerError):
    status_code = 409
    code = "expense_not_settled"
