"""
Error taxonomy shared by the stores, the engine and the controller.

Controllers catch DomainError subclasses and surface them as user messages;
anything else is a bug and propagates.
"""
from __future__ import annotations


class DomainError(Exception):
    """Domain-level error the controller/UI can surface (toast/message box)."""

    title = "Error"


class ValidationError(DomainError):
    """Bad input: return quantities, empty cart, malformed phone or barcode."""

    title = "Invalid input"


class InvalidReturnQuantity(ValidationError):
    def __init__(self, message: str, *, line_item_id=None, requested=None, max_returnable=None):
        super().__init__(message)
        self.line_item_id = line_item_id
        self.requested = requested
        self.max_returnable = max_returnable


class EmptyReturn(ValidationError):
    def __init__(self, message: str = "Select at least one item quantity to return."):
        super().__init__(message)


class EmptyCart(ValidationError):
    def __init__(self, message: str = "The cart is empty. Add products first."):
        super().__init__(message)


class NotFoundError(DomainError):
    """Barcode, product or invoice missing."""

    title = "Not found"


class NetworkError(DomainError):
    """The store is unreachable or rejected the request. Never retried automatically."""

    title = "Store unavailable"


class RetryLimitExceeded(DomainError):
    """Too many failed barcode resolutions; a new distinct value is required."""

    title = "Retry limit reached"
