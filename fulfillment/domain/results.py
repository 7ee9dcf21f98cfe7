"""
Value objects exchanged between the provisioning components.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping
from uuid import UUID

from fulfillment.domain.classifier import ErrorCategory


@dataclass(frozen=True)
class RemoteErrorDetails:
    """Diagnostics returned by the remote platform for a failed call."""
    http_status: int | None = None
    error_code: str | None = None
    description: str | None = None
    correlation_id: str | None = None
    request_id: str | None = None
    raw_response: str | None = None

    @classmethod
    def from_response(cls, response) -> RemoteErrorDetails:
        """Build details from a ``requests.Response``."""
        body: Any = None
        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, Mapping):
            body = {}
        error_code = body.get("code")
        return cls(
            http_status=response.status_code,
            error_code=str(error_code) if error_code is not None else None,
            description=body.get("description"),
            correlation_id=response.headers.get("MS-CorrelationId"),
            request_id=response.headers.get("MS-RequestId"),
            raw_response=response.text,
        )

    @classmethod
    def from_order_error(cls, order_error: Mapping, response) -> RemoteErrorDetails:
        """Build details from a checkout ``orderErrors`` entry."""
        code = order_error.get("code")
        return cls(
            http_status=response.status_code,
            error_code=str(code) if code is not None else None,
            description=order_error.get("description"),
            correlation_id=response.headers.get("MS-CorrelationId"),
            request_id=response.headers.get("MS-RequestId"),
            raw_response=response.text,
        )

    @classmethod
    def from_exception(cls, exc: Exception) -> RemoteErrorDetails:
        """Build details for a transport-level failure (no HTTP status)."""
        return cls(description=f"{type(exc).__name__}: {exc}")

    def as_dict(self) -> dict:
        return {key: value for key, value in self.__dict__.items() if value is not None}


@dataclass(frozen=True)
class TermParams:
    """Billing parameters sent with a subscription purchase."""
    billing_cycle: str = "Monthly"
    term_duration: str | None = None


@dataclass(frozen=True)
class CreatedSubscription:
    """Remote subscription created by a successful checkout."""
    subscription_id: str
    cart_id: str | None = None
    offer_id: str | None = None
    term_duration: str | None = None
    transaction_type: str | None = None
    friendly_name: str | None = None
    quantity: int | None = None
    list_price: Decimal | None = None
    created_at: datetime | None = None


class ItemOutcome(str, Enum):
    SUCCEEDED = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class ItemResult:
    """Outcome of provisioning one order item."""
    order_item_id: UUID
    product_id: UUID | None
    product_title: str
    quantity: int
    outcome: ItemOutcome
    processed_at: datetime
    subscription_id: str | None = None
    remote_cart_id: str | None = None
    error_message: str | None = None
    error_category: ErrorCategory | None = None
    remote_error_details: RemoteErrorDetails | None = None

    @property
    def success(self) -> bool:
        return self.outcome == ItemOutcome.SUCCEEDED

    @property
    def skipped(self) -> bool:
        return self.outcome == ItemOutcome.SKIPPED

    def as_detail(self) -> dict:
        """Serialize as a ``product_details`` entry."""
        detail = {
            "product_id": self.product_id,
            "product_title": self.product_title,
            "quantity": self.quantity,
            "status": "success" if self.success else "failed",
            "processed_at": self.processed_at,
        }
        if self.success:
            detail["subscription_id"] = self.subscription_id
            if self.remote_cart_id:
                detail["remote_cart_id"] = self.remote_cart_id
        else:
            detail["error_message"] = self.error_message
            if self.error_category is not None:
                detail["error_category"] = self.error_category.value
            if self.remote_error_details is not None:
                detail["remote_error_details"] = self.remote_error_details.as_dict()
        return detail


@dataclass(frozen=True)
class ProvisioningSummary:
    """Aggregate counts computed over all items of an order."""
    total_products: int
    successful_products: int
    failed_products: int
    products_processed_this_run: int
    products_successful_this_run: int

    @property
    def products_failed_this_run(self) -> int:
        return self.products_processed_this_run - self.products_successful_this_run


@dataclass
class ProvisioningResult:
    """Result contract returned by every entry point."""
    success: bool
    message: str
    order_id: UUID
    summary: ProvisioningSummary
    order_status: str
    fulfillment_status: str
    product_details: list[dict] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "order_id": self.order_id,
            "total_products": self.summary.total_products,
            "successful_products": self.summary.successful_products,
            "failed_products": self.summary.failed_products,
            "products_processed_this_run": self.summary.products_processed_this_run,
            "products_successful_this_run": self.summary.products_successful_this_run,
            "order_status": self.order_status,
            "fulfillment_status": self.fulfillment_status,
            "product_details": self.product_details,
        }
