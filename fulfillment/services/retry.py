"""
Re-entry points for orders whose items failed to provision.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from django.utils import timezone

from fulfillment.domain.errors import OrderNotFound
from fulfillment.domain.order import CLOSED_ORDER_STATUSES, OrderStatus
from fulfillment.domain.results import ProvisioningResult
from fulfillment.infra.models import OrderItemORM
from fulfillment.infra.repositories import OrderItemRepository, OrderRepository
from fulfillment.services.orchestrator import ProvisioningOrchestrator

logger = logging.getLogger(__name__)


class RetryCoordinator:
    """Service that resets failed items and provisions them again."""

    def __init__(
        self,
        orchestrator: ProvisioningOrchestrator | None = None,
        order_repo: OrderRepository | None = None,
        item_repo: OrderItemRepository | None = None,
    ):
        self.order_repo = order_repo or OrderRepository()
        self.item_repo = item_repo or OrderItemRepository()
        self.orchestrator = orchestrator or ProvisioningOrchestrator(
            order_repo=self.order_repo,
            item_repo=self.item_repo,
        )

    def retry_order(self, order_id: UUID) -> ProvisioningResult:
        """Put the failed items of an order back to pending and run the order again."""
        order = self.order_repo.get_by_id(order_id)
        if order is None:
            raise OrderNotFound(order_id)

        reset = self.item_repo.reset_failed(order)
        if OrderStatus(order.status) not in CLOSED_ORDER_STATUSES:
            self.order_repo.save_status(order, OrderStatus.PROCESSING)

        logger.info(
            "order_retry_started",
            extra={
                "order_id": str(order.id),
                "order_number": order.order_number,
                "status": f"{reset} items reset",
            },
        )
        return self.orchestrator.process_order(order.id)

    def retry_recent_failures(self, window_hours: int = 24) -> list[ProvisioningResult]:
        """Retry every order with an item that failed within the last ``window_hours``."""
        since = timezone.now() - timedelta(hours=window_hours)
        results = []
        for order_id in self.item_repo.failed_order_ids(since):
            try:
                results.append(self.retry_order(order_id))
            except OrderNotFound:
                logger.warning("retry_order_missing", extra={"order_id": str(order_id)})
        return results

    def find_retry_candidates(
        self,
        window_hours: int | None = None,
        order_id: UUID | None = None,
    ) -> list[OrderItemORM]:
        """Failed items a retry would reset, without touching them."""
        since = None
        if window_hours is not None:
            since = timezone.now() - timedelta(hours=window_hours)
        return list(self.item_repo.failed(order_id=order_id, since=since))
