from fulfillment.domain.classifier import ErrorCategory, classify
from fulfillment.domain.order import (
    ItemFulfillmentStatus,
    OrderFulfillmentStatus,
    OrderStatus,
    derive_fulfillment_status,
)
from fulfillment.domain.results import ItemResult, ProvisioningResult, RemoteErrorDetails

__all__ = [
    "ErrorCategory",
    "classify",
    "ItemFulfillmentStatus",
    "OrderFulfillmentStatus",
    "OrderStatus",
    "derive_fulfillment_status",
    "ItemResult",
    "ProvisioningResult",
    "RemoteErrorDetails",
]
