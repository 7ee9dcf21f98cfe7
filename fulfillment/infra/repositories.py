"""
Infrastructure repositories for orders, order items and subscriptions.
"""
from __future__ import annotations

from datetime import datetime
from uuid import UUID

from django.db.models import Count, Q, QuerySet
from django.utils import timezone

from fulfillment.domain.order import ItemFulfillmentStatus, OrderFulfillmentStatus, OrderStatus
from fulfillment.domain.results import CreatedSubscription
from fulfillment.infra.models import OrderItemORM, OrderORM, ProductORM, SubscriptionORM


class OrderRepository:
    """Repository for Order aggregate."""

    def get_by_id(self, order_id: UUID) -> OrderORM | None:
        """Get order by ID with customer and remote account."""
        try:
            return (
                OrderORM.objects
                .select_related("customer", "remote_account")
                .get(id=order_id)
            )
        except (OrderORM.DoesNotExist, ValueError):
            return None

    def save_status(
        self,
        order: OrderORM,
        status: OrderStatus,
        fulfillment_status: OrderFulfillmentStatus | None = None,
    ) -> None:
        """Persist the order status and, optionally, its fulfillment status."""
        order.status = status.value
        fields = ["status", "updated_at"]
        if fulfillment_status is not None:
            order.fulfillment_status = fulfillment_status.value
            fields.append("fulfillment_status")
        order.save(update_fields=fields)

    def created_since(self, since: datetime) -> QuerySet:
        return OrderORM.objects.filter(created_at__gte=since)

    def fulfillment_status_counts(self, since: datetime) -> list[dict]:
        return list(
            self.created_since(since)
            .values("fulfillment_status")
            .annotate(count=Count("id"))
            .order_by("-count")
        )


class OrderItemRepository:
    """Repository for order items and their fulfillment state."""

    def list_for_order(self, order: OrderORM) -> list[OrderItemORM]:
        return list(
            OrderItemORM.objects
            .filter(order=order)
            .select_related("order__remote_account", "order__customer", "product")
            .order_by("created_at", "id")
        )

    def claim(self, item: OrderItemORM) -> bool:
        """
        Move the item to PROCESSING if nobody changed it since it was read.

        The status and ``processing_started_at`` observed by the caller act as
        the version; zero updated rows means another run owns the item.
        """
        now = timezone.now()
        updated = (
            OrderItemORM.objects
            .filter(
                pk=item.pk,
                fulfillment_status=item.fulfillment_status,
                processing_started_at=item.processing_started_at,
            )
            .update(
                fulfillment_status=ItemFulfillmentStatus.PROCESSING.value,
                processing_started_at=now,
                updated_at=now,
            )
        )
        if updated:
            item.fulfillment_status = ItemFulfillmentStatus.PROCESSING.value
            item.processing_started_at = now
            item.updated_at = now
        return bool(updated)

    def current_product(self, item: OrderItemORM) -> ProductORM | None:
        """Re-read the item's product; availability may have changed since the item was listed."""
        product = ProductORM.objects.filter(pk=item.product_id).first() if item.product_id else None
        if product is not None:
            item.product = product
        return product

    def mark_fulfilled(self, item: OrderItemORM, remote_subscription_id: str) -> None:
        item.fulfillment_status = ItemFulfillmentStatus.FULFILLED.value
        item.fulfilled_at = timezone.now()
        item.remote_subscription_id = remote_subscription_id
        item.fulfillment_error = None
        item.save(update_fields=[
            "fulfillment_status",
            "fulfilled_at",
            "remote_subscription_id",
            "fulfillment_error",
            "updated_at",
        ])

    def mark_failed(self, item: OrderItemORM, error: str) -> None:
        item.fulfillment_status = ItemFulfillmentStatus.FAILED.value
        item.fulfillment_error = error
        item.save(update_fields=["fulfillment_status", "fulfillment_error", "updated_at"])

    def reset_failed(self, order: OrderORM) -> int:
        """Put the order's failed items back to PENDING."""
        return (
            OrderItemORM.objects
            .filter(order=order, fulfillment_status=ItemFulfillmentStatus.FAILED.value)
            .update(
                fulfillment_status=ItemFulfillmentStatus.PENDING.value,
                fulfillment_error=None,
                processing_started_at=None,
                fulfilled_at=None,
                updated_at=timezone.now(),
            )
        )

    def failed(self, order_id: UUID | None = None, since: datetime | None = None) -> QuerySet:
        """Failed items, optionally for one order or updated since a moment."""
        items = (
            OrderItemORM.objects
            .filter(fulfillment_status=ItemFulfillmentStatus.FAILED.value)
            .select_related("order")
        )
        if order_id is not None:
            items = items.filter(order_id=order_id)
        if since is not None:
            items = items.filter(updated_at__gte=since)
        return items.order_by("-updated_at")

    def failed_order_ids(self, since: datetime) -> list[UUID]:
        """Orders with at least one item that failed since the given moment."""
        return list(
            self.failed(since=since)
            .order_by("order_id")
            .values_list("order_id", flat=True)
            .distinct()
        )

    def status_totals(self, since: datetime) -> dict:
        return OrderItemORM.objects.filter(created_at__gte=since).aggregate(
            total_products=Count("id"),
            successful=Count("id", filter=Q(fulfillment_status=ItemFulfillmentStatus.FULFILLED.value)),
            failed=Count("id", filter=Q(fulfillment_status=ItemFulfillmentStatus.FAILED.value)),
        )

    def product_stats(self, since: datetime, min_attempts: int = 3) -> list[dict]:
        return list(
            OrderItemORM.objects
            .filter(created_at__gte=since)
            .values("sku_id", "product_title")
            .annotate(
                total_attempts=Count("id"),
                successful=Count("id", filter=Q(fulfillment_status=ItemFulfillmentStatus.FULFILLED.value)),
                failed=Count("id", filter=Q(fulfillment_status=ItemFulfillmentStatus.FAILED.value)),
            )
            .filter(total_attempts__gte=min_attempts)
            .order_by("-total_attempts")
        )

    def common_errors(self, since: datetime) -> list[dict]:
        return list(
            self.failed(since=since)
            .exclude(fulfillment_error__isnull=True)
            .values("fulfillment_error")
            .annotate(count=Count("id"))
            .order_by("-count")
        )


class SubscriptionRepository:
    """Repository for provisioned subscriptions."""

    def create_for_item(
        self,
        item: OrderItemORM,
        remote: CreatedSubscription,
    ) -> tuple[SubscriptionORM, bool]:
        """Record the remote subscription of an item; never creates a second row."""
        order = item.order
        product = item.product
        return SubscriptionORM.objects.get_or_create(
            order_item=item,
            defaults={
                "order": order,
                "remote_account": order.remote_account,
                "product": product,
                "sku_id": item.sku_id or (product.remote_sku_id if product else ""),
                "remote_subscription_id": remote.subscription_id,
                "remote_cart_id": remote.cart_id,
                "offer_id": remote.offer_id,
                "term_duration": remote.term_duration,
                "transaction_type": remote.transaction_type,
                "friendly_name": remote.friendly_name,
                "quantity": remote.quantity or item.quantity,
                "price": remote.list_price if remote.list_price is not None else item.unit_price,
            },
        )

    def known_remote_ids(self, remote_ids: list[str]) -> set[str]:
        return set(
            SubscriptionORM.objects
            .filter(remote_subscription_id__in=remote_ids)
            .values_list("remote_subscription_id", flat=True)
        )

    def count_for_order(self, order: OrderORM) -> int:
        return SubscriptionORM.objects.filter(order=order).count()
