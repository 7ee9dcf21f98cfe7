"""Exceptions for order fulfillment."""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fulfillment.domain.results import RemoteErrorDetails


class FulfillmentError(Exception):
    """Base exception for fulfillment errors."""
    pass


class OrderNotFound(FulfillmentError):
    """Raised when the order to provision does not exist."""

    def __init__(self, order_id):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class ValidationError(FulfillmentError):
    """Raised when an item precondition fails before any remote call."""
    pass


class PersistenceError(FulfillmentError):
    """Raised when a local write for a single item fails."""
    pass


class RemoteError(FulfillmentError):
    """Base exception for failures reported by or on the way to the remote platform."""

    def __init__(self, message: str, details: RemoteErrorDetails | None = None):
        self.details = details
        super().__init__(message)

    @property
    def composite_message(self) -> str:
        """Human-readable error combining the remote code and description."""
        details = self.details
        if details is not None and (details.error_code or details.description):
            parts = [str(self)]
            if details.error_code:
                parts.append(f"Error {details.error_code}")
            if details.description:
                parts.append(details.description)
            return ": ".join(parts)
        return str(self)


class TransportError(RemoteError):
    """Raised on network failures and timeouts."""
    pass


class RemoteRejection(RemoteError):
    """Raised when the platform answers with an error or a malformed body."""
    pass


class NotificationError(FulfillmentError):
    """Raised when a notification channel rejects a message."""
    pass
