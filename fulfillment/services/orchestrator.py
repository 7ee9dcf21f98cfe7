"""
Order-level provisioning: item selection, aggregation and status derivation.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from uuid import UUID

from django.utils import timezone

from fulfillment.config import ProvisioningConfig
from fulfillment.domain.classifier import classify
from fulfillment.domain.errors import OrderNotFound, RemoteError
from fulfillment.domain.order import (
    ItemFulfillmentStatus,
    derive_fulfillment_status,
    derive_order_status,
)
from fulfillment.domain.results import (
    ItemOutcome,
    ItemResult,
    ProvisioningResult,
    ProvisioningSummary,
)
from fulfillment.infra.models import OrderItemORM, OrderORM
from fulfillment.infra.partner_center import PlatformClient, build_platform_client
from fulfillment.infra.repositories import OrderItemRepository, OrderRepository
from fulfillment.services.escalation import NotificationEscalator
from fulfillment.services.provisioner import ItemProvisioner

logger = logging.getLogger(__name__)

# Items not touched by a run are reported only once they have an outcome.
SETTLED_ITEM_STATUSES = (
    ItemFulfillmentStatus.FULFILLED.value,
    ItemFulfillmentStatus.FAILED.value,
)


class ProvisioningOrchestrator:
    """Service that provisions every eligible item of an order."""

    def __init__(
        self,
        config: ProvisioningConfig | None = None,
        client: PlatformClient | None = None,
        provisioner: ItemProvisioner | None = None,
        escalator: NotificationEscalator | None = None,
        order_repo: OrderRepository | None = None,
        item_repo: OrderItemRepository | None = None,
    ):
        self.config = config or ProvisioningConfig.from_settings()
        self.client = client or build_platform_client(self.config)
        self.order_repo = order_repo or OrderRepository()
        self.item_repo = item_repo or OrderItemRepository()
        self.provisioner = provisioner or ItemProvisioner(self.client, item_repo=self.item_repo)
        self.escalator = escalator or NotificationEscalator(self.config)

    def process_order(self, order_id: UUID) -> ProvisioningResult:
        """
        Provision the pending, failed and stale processing items of an order.

        Only ``OrderNotFound`` is raised; item failures are reported in the
        result and escalated to operators.
        """
        order = self.order_repo.get_by_id(order_id)
        if order is None:
            raise OrderNotFound(order_id)

        items = self.item_repo.list_for_order(order)
        eligible = self.select_eligible(items)
        logger.info(
            "order_provisioning_started",
            extra={
                "order_id": str(order.id),
                "order_number": order.order_number,
                "status": f"{len(eligible)}/{len(items)} eligible",
            },
        )

        results = [self._provision(item) for item in eligible]
        processed = [r for r in results if not r.skipped]

        items = self.item_repo.list_for_order(order)
        summary = self._summarize(items, processed)
        fulfillment_status = derive_fulfillment_status(i.fulfillment_status for i in items)
        order_status = derive_order_status(order.status, fulfillment_status)
        self.order_repo.save_status(order, order_status, fulfillment_status)

        self._apply_spending_budget(order, eligible, processed)

        processed_ids = {r.order_item_id for r in processed}
        stored = [
            self._stored_result(i) for i in items
            if i.id not in processed_ids and i.fulfillment_status in SETTLED_ITEM_STATUSES
        ]

        if summary.failed_products > 0:
            self.escalator.escalate(order, summary, processed + stored)

        details = processed if processed else stored
        result = ProvisioningResult(
            success=summary.products_failed_this_run == 0,
            message=self.build_message(summary),
            order_id=order.id,
            summary=summary,
            order_status=order_status.value,
            fulfillment_status=fulfillment_status.value,
            product_details=[r.as_detail() for r in details],
        )
        logger.info(
            "order_provisioning_finished",
            extra={
                "order_id": str(order.id),
                "order_number": order.order_number,
                "status": fulfillment_status.value,
            },
        )
        return result

    def select_eligible(self, items: list[OrderItemORM]) -> list[OrderItemORM]:
        """Items to provision now; fresh PROCESSING items belong to a running pass."""
        stale_before = timezone.now() - self.config.stale_processing_after
        eligible = []
        for item in items:
            status = item.fulfillment_status
            if status in (ItemFulfillmentStatus.PENDING.value, ItemFulfillmentStatus.FAILED.value):
                eligible.append(item)
            elif status == ItemFulfillmentStatus.PROCESSING.value:
                started = item.processing_started_at
                if started is None or started <= stale_before:
                    eligible.append(item)
        return eligible

    def _provision(self, item: OrderItemORM) -> ItemResult:
        try:
            return self.provisioner.provision_item(item)
        except Exception as e:
            logger.exception(
                "item_provisioning_crashed",
                extra={"order_id": str(item.order_id), "order_item_id": str(item.id)},
            )
            message = f"Unexpected error: {e}"
            try:
                self.item_repo.mark_failed(item, message)
            except Exception:
                logger.exception(
                    "item_failure_not_recorded",
                    extra={"order_id": str(item.order_id), "order_item_id": str(item.id)},
                )
            return ItemResult(
                order_item_id=item.id,
                product_id=item.product_id,
                product_title=item.product_title,
                quantity=item.quantity,
                outcome=ItemOutcome.FAILED,
                processed_at=timezone.now(),
                error_message=message,
                error_category=classify(message),
            )

    @staticmethod
    def _summarize(items: list[OrderItemORM], processed: list[ItemResult]) -> ProvisioningSummary:
        statuses = [i.fulfillment_status for i in items]
        return ProvisioningSummary(
            total_products=len(items),
            successful_products=statuses.count(ItemFulfillmentStatus.FULFILLED.value),
            failed_products=statuses.count(ItemFulfillmentStatus.FAILED.value),
            products_processed_this_run=len(processed),
            products_successful_this_run=sum(1 for r in processed if r.success),
        )

    @staticmethod
    def _stored_result(item: OrderItemORM) -> ItemResult:
        """Describe an item that was not processed in this run from its stored state."""
        fulfilled = item.fulfillment_status == ItemFulfillmentStatus.FULFILLED.value
        return ItemResult(
            order_item_id=item.id,
            product_id=item.product_id,
            product_title=item.product_title,
            quantity=item.quantity,
            outcome=ItemOutcome.SUCCEEDED if fulfilled else ItemOutcome.FAILED,
            processed_at=item.fulfilled_at if fulfilled else item.updated_at,
            subscription_id=item.remote_subscription_id,
            error_message=None if fulfilled else item.fulfillment_error,
            error_category=None if fulfilled or not item.fulfillment_error
            else classify(item.fulfillment_error),
        )

    def _apply_spending_budget(
        self,
        order: OrderORM,
        eligible: list[OrderItemORM],
        processed: list[ItemResult],
    ) -> None:
        """Set the usage budget for prepaid credits bought in this run."""
        succeeded = {r.order_item_id for r in processed if r.success}
        credits = sum(
            item.quantity for item in eligible
            if item.id in succeeded and item.product is not None and item.product.is_prepaid_credit
        )
        if not credits or order.remote_account is None:
            return

        amount = (Decimal(credits) * self.config.spending_budget_factor).quantize(Decimal("0.01"))
        try:
            self.client.set_spending_budget(order.remote_account.remote_customer_id, amount)
        except RemoteError as e:
            logger.warning(
                "spending_budget_not_set",
                extra={"order_id": str(order.id), "error": e.composite_message},
            )
            return
        logger.info(
            "spending_budget_set",
            extra={"order_id": str(order.id), "status": str(amount)},
        )

    @staticmethod
    def build_message(summary: ProvisioningSummary) -> str:
        total = summary.total_products
        successful = summary.successful_products
        processed = summary.products_processed_this_run
        succeeded = summary.products_successful_this_run
        totals = f"Total: {successful}/{total} products provisioned"

        if total == 0:
            return "Order has no products to provision"
        if processed == 0:
            if successful == total:
                return f"Order already complete: all {total} products were provisioned"
            return f"No products pending provisioning. {totals}"
        if successful == total:
            return f"Order complete: {succeeded} products provisioned in this run. {totals}"
        if succeeded == processed:
            return f"Provisioned {succeeded}/{processed} products in this run. {totals}"
        if succeeded > 0:
            return f"Partial provisioning: {succeeded}/{processed} products provisioned in this run. {totals}"
        return f"Provisioning failed: 0/{processed} products provisioned in this run. {totals}"
