from typing import Optional


class WalletError(Exception):
    """
    Base for every failure a handler turns into a JSON error response.
    """

    status_code = 500
    message = "Internal server error"

    def __init__(self, error: str, message: Optional[str] = None, status_code: Optional[int] = None, data=None):
        super().__init__(error)
        self.error = error
        if message is not None:
            self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.data = data

    def to_dict(self) -> dict:
        body = {"message": self.message, "error": self.error}
        if self.data is not None:
            body["data"] = self.data
        return body


class ValidationError(WalletError):
    status_code = 400
    message = "Bad request"


class NotFoundError(WalletError):
    status_code = 404
    message = "Not found"


class AuthorizationError(WalletError):
    status_code = 403
    message = "Transaction failed"


class InsufficientFundsError(WalletError):
    status_code = 400
    message = "Purchase failed"


class ConflictError(WalletError):
    status_code = 409
    message = "Stale transaction"


class UpstreamError(WalletError):
    status_code = 502
    message = "Provider unavailable"


class InternalError(WalletError):
    status_code = 500
    message = "Internal server error"
