"""
Purchase flow errors.

Every error carries the HTTP status it maps to; the application handler in
``app.main`` turns them into ``{"success": false, "message": ...}`` bodies.
"""


class PurchaseError(Exception):
    status_code = 400
    default_message = "Purchase request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(PurchaseError):
    status_code = 404
    default_message = "Course not found"


class PurchaseNotFound(PurchaseError):
    status_code = 404
    default_message = "Purchase record not found"


class InvalidSignature(PurchaseError):
    status_code = 400
    default_message = "Webhook signature verification failed"


class PaymentProviderError(PurchaseError):
    status_code = 502
    default_message = "Payment provider request failed"


class PaymentIncomplete(PurchaseError):
    status_code = 400
    default_message = "Payment not completed"


class ReconciliationError(PurchaseError):
    """Raised when state found mid-reconciliation contradicts the purchase."""

    status_code = 500
    default_message = "Failed to process payment"


class InvalidStatusTransition(ReconciliationError):
    default_message = "Invalid purchase status transition"
