"""Error taxonomy for the checkout API.

Every error carries the HTTP status it maps to and a message that is safe
to show to the caller. ``main.py`` turns them into
``{"success": false, "message": ...}`` responses.
"""

from typing import Optional


class CheckoutError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        if message is not None:
            self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(CheckoutError):
    status_code = 400
    message = "Missing required fields"


class UpstreamError(CheckoutError):
    status_code = 500
    message = "Upstream service error"


class PersistenceError(CheckoutError):
    status_code = 500
    message = "Database error"


class AuthError(CheckoutError):
    status_code = 401
    message = "Access token required"


class VerificationMismatch(CheckoutError):
    status_code = 400
    message = "Invalid signature"


class OrderNotFound(CheckoutError):
    status_code = 404
    message = "Order not found"


class OrderAlreadyFinalized(CheckoutError):
    status_code = 409
    message = "Order already finalized"


class UserNotFound(CheckoutError):
    status_code = 404
    message = "User not found"
