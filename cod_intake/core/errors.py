# cod_intake/core/errors.py
"""Domain exceptions for the COD intake pipeline.

Services raise these; `main.py` renders every one of them as
``{"success": false, "error": <message>}`` with the status code from
``ERROR_STATUS_CODES``.
"""


class CodIntakeError(Exception):
    """Base exception for all COD intake errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class OrderValidationError(CodIntakeError):
    """Raised when a submission is missing or has a malformed field."""


class ShopNotFoundError(CodIntakeError):
    """Raised when the shop is unknown or the app was uninstalled."""

    def __init__(self, shop_domain: str | None = None):
        self.shop_domain = shop_domain
        super().__init__("Shop not found or app not installed")


class FormDisabledError(CodIntakeError):
    """Raised when the merchant has not enabled the COD form."""

    def __init__(self, shop_domain: str, message: str = "COD form is not enabled for this shop"):
        self.shop_domain = shop_domain
        super().__init__(message)


class OrderNotFoundError(CodIntakeError):
    def __init__(self, order_id: object):
        self.order_id = order_id
        super().__init__("Order not found")


class InvalidStatusTransitionError(CodIntakeError):
    def __init__(self, current: str, new: str):
        self.current = current
        self.new = new
        super().__init__(f"Invalid status transition: {current} -> {new}")


class StoreFailure(CodIntakeError):
    """Raised when the record store is unreachable or rejects a write.

    The caller only ever sees the generic message; the cause is logged.
    """

    def __init__(self, message: str = "Failed to process order. Please try again."):
        super().__init__(message)


class AuthenticationFailed(CodIntakeError):
    """Raised when neither storefront nor merchant credentials are valid."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message)


class ExternalPlatformError(CodIntakeError):
    """Raised when the commerce platform rejects or fails a draft order.

    ``user_error`` is True when the message is the platform's own
    validation text, which the storefront can show verbatim.
    """

    def __init__(self, message: str, user_error: bool = False):
        self.user_error = user_error
        super().__init__(message)


ERROR_STATUS_CODES: dict[type[CodIntakeError], int] = {
    OrderValidationError: 400,
    ShopNotFoundError: 404,
    FormDisabledError: 403,
    OrderNotFoundError: 404,
    InvalidStatusTransitionError: 400,
    StoreFailure: 500,
    AuthenticationFailed: 401,
    ExternalPlatformError: 502,
}


def status_code_for(exc: CodIntakeError) -> int:
    if isinstance(exc, ExternalPlatformError) and exc.user_error:
        return 400
    return ERROR_STATUS_CODES.get(type(exc), 500)
