"""
Operator reports on provisioning outcomes.
"""
from __future__ import annotations

from collections import Counter
from datetime import timedelta
from uuid import UUID

from django.utils import timezone

from fulfillment.domain.classifier import classify
from fulfillment.domain.errors import OrderNotFound
from fulfillment.domain.order import ItemFulfillmentStatus
from fulfillment.infra.repositories import OrderItemRepository, OrderRepository


def _rate(part: int, total: int) -> float:
    return round(part * 100 / total, 1) if total else 0.0


class ProvisioningReportService:
    """Builds per-order and time-window provisioning statistics."""

    def __init__(
        self,
        order_repo: OrderRepository | None = None,
        item_repo: OrderItemRepository | None = None,
    ):
        self.order_repo = order_repo or OrderRepository()
        self.item_repo = item_repo or OrderItemRepository()

    def order_report(self, order_id: UUID) -> dict:
        order = self.order_repo.get_by_id(order_id)
        if order is None:
            raise OrderNotFound(order_id)

        items = self.item_repo.list_for_order(order)
        counts = Counter(i.fulfillment_status for i in items)
        customer = order.customer
        account = order.remote_account
        return {
            "order_id": order.id,
            "order_number": order.order_number,
            "customer_name": customer.name if customer else None,
            "customer_email": customer.email if customer else None,
            "remote_domain": account.domain if account else None,
            "total_amount": order.total_amount,
            "currency": order.currency,
            "created_at": order.created_at,
            "order_status": order.status,
            "fulfillment_status": order.fulfillment_status,
            "summary": {
                "total": len(items),
                "fulfilled": counts[ItemFulfillmentStatus.FULFILLED.value],
                "failed": counts[ItemFulfillmentStatus.FAILED.value],
                "pending": counts[ItemFulfillmentStatus.PENDING.value],
                "processing": counts[ItemFulfillmentStatus.PROCESSING.value],
            },
            "items": [
                {
                    "order_item_id": item.id,
                    "product_title": item.product_title,
                    "sku_id": item.sku_id,
                    "quantity": item.quantity,
                    "status": item.fulfillment_status,
                    "error": item.fulfillment_error,
                    "error_category": (
                        classify(item.fulfillment_error).label if item.fulfillment_error else None
                    ),
                    "subscription_id": item.remote_subscription_id,
                    "processed_at": item.fulfilled_at or item.processing_started_at,
                    "updated_at": item.updated_at,
                }
                for item in items
            ],
        }

    def overall_report(self, days: int = 7) -> dict:
        since = timezone.now() - timedelta(days=days)

        total_orders = self.order_repo.created_since(since).count()
        totals = self.item_repo.status_totals(since)
        total_products = totals["total_products"] or 0
        successful = totals["successful"] or 0
        success_rate = _rate(successful, total_products)

        order_breakdown = [
            {
                "fulfillment_status": row["fulfillment_status"],
                "count": row["count"],
                "percentage": _rate(row["count"], total_orders),
            }
            for row in self.order_repo.fulfillment_status_counts(since)
        ]

        product_stats = [
            {
                **row,
                "success_rate": _rate(row["successful"], row["total_attempts"]),
            }
            for row in self.item_repo.product_stats(since)[:10]
        ]

        recent_failures = [
            {
                "order_number": item.order.order_number,
                "product_title": item.product_title,
                "error": item.fulfillment_error,
                "updated_at": item.updated_at,
            }
            for item in self.item_repo.failed(since=since)[:10]
        ]

        common_errors = [
            {
                "category": classify(row["fulfillment_error"]).label,
                "count": row["count"],
                "example": row["fulfillment_error"],
            }
            for row in self.item_repo.common_errors(since)[:5]
        ]

        return {
            "days": days,
            "since": since,
            "total_orders": total_orders,
            "total_products": total_products,
            "successful_products": successful,
            "failed_products": totals["failed"] or 0,
            "success_rate": success_rate,
            "failure_rate": round(100 - success_rate, 1) if total_products else 0.0,
            "order_breakdown": order_breakdown,
            "product_stats": product_stats,
            "recent_failures": recent_failures,
            "common_errors": common_errors,
        }
