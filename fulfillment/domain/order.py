"""
Domain rules for order and order item fulfillment states.
"""
from __future__ import annotations

from enum import Enum
from typing import Iterable


class OrderStatus(str, Enum):
    """Commercial order status."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class OrderFulfillmentStatus(str, Enum):
    """Order-level fulfillment status, derived from its items."""
    UNFULFILLED = "unfulfilled"
    PARTIAL = "partial"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"
    FAILED = "failed"


class ItemFulfillmentStatus(str, Enum):
    """Per-item provisioning status."""
    PENDING = "pending"
    PROCESSING = "processing"
    FULFILLED = "fulfilled"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


# Items the orchestrator may pick up. PROCESSING is only eligible once stale.
ELIGIBLE_ITEM_STATUSES = (
    ItemFulfillmentStatus.PENDING,
    ItemFulfillmentStatus.PROCESSING,
    ItemFulfillmentStatus.FAILED,
)

# Order statuses the engine must never overwrite.
CLOSED_ORDER_STATUSES = (OrderStatus.CANCELLED, OrderStatus.REFUNDED)


def derive_fulfillment_status(item_statuses: Iterable[str]) -> OrderFulfillmentStatus:
    """
    Derive the order fulfillment status from the statuses of all its items.

    - no items: unfulfilled
    - every item fulfilled: fulfilled
    - nothing fulfilled, at least one item touched: failed
    - some fulfilled, the rest not: partial
    - nothing touched yet: unfulfilled
    """
    statuses = [ItemFulfillmentStatus(status) for status in item_statuses]
    if not statuses:
        return OrderFulfillmentStatus.UNFULFILLED

    fulfilled = sum(1 for s in statuses if s == ItemFulfillmentStatus.FULFILLED)
    touched = sum(1 for s in statuses if s != ItemFulfillmentStatus.PENDING)

    if fulfilled == len(statuses):
        return OrderFulfillmentStatus.FULFILLED
    if fulfilled > 0:
        return OrderFulfillmentStatus.PARTIAL
    if touched > 0:
        return OrderFulfillmentStatus.FAILED
    return OrderFulfillmentStatus.UNFULFILLED


def derive_order_status(
    current: str,
    fulfillment_status: OrderFulfillmentStatus,
) -> OrderStatus:
    """Order status after a provisioning run."""
    current_status = OrderStatus(current)
    if current_status in CLOSED_ORDER_STATUSES:
        return current_status
    if fulfillment_status == OrderFulfillmentStatus.FULFILLED:
        return OrderStatus.COMPLETED
    # Kept open for manual review
    return OrderStatus.PROCESSING
