"""
Provisioning of a single order item on the remote platform.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone as dt_timezone

from django.db import DatabaseError, transaction
from django.utils import timezone

from fulfillment.domain.classifier import classify
from fulfillment.domain.errors import PersistenceError, RemoteError, ValidationError
from fulfillment.domain.order import ItemFulfillmentStatus
from fulfillment.domain.results import (
    CreatedSubscription,
    ItemOutcome,
    ItemResult,
    RemoteErrorDetails,
    TermParams,
)
from fulfillment.infra.models import OrderItemORM
from fulfillment.infra.partner_center import PlatformClient
from fulfillment.infra.repositories import OrderItemRepository, SubscriptionRepository

logger = logging.getLogger(__name__)


class ItemProvisioner:
    """
    Creates the remote subscription for one order item and records the outcome.

    Every step is persisted before the next one starts: the item is marked
    PROCESSING before the remote call, then FULFILLED or FAILED. Errors are
    returned inside the ``ItemResult`` and never raised to the caller. There
    are no retries here.
    """

    def __init__(
        self,
        client: PlatformClient,
        item_repo: OrderItemRepository | None = None,
        subscription_repo: SubscriptionRepository | None = None,
    ):
        self.client = client
        self.item_repo = item_repo or OrderItemRepository()
        self.subscription_repo = subscription_repo or SubscriptionRepository()

    def provision_item(self, item: OrderItemORM) -> ItemResult:
        previous_status = item.fulfillment_status
        previous_started_at = item.processing_started_at

        try:
            claimed = self.item_repo.claim(item)
        except DatabaseError as e:
            return self._record_failure(
                item, str(PersistenceError(f"Could not mark item as processing: {e}"))
            )
        if not claimed:
            logger.info(
                "item_claimed_by_another_run",
                extra={"order_id": str(item.order_id), "order_item_id": str(item.id)},
            )
            return self._result(
                item,
                ItemOutcome.SKIPPED,
                error_message="Item is being provisioned by another run",
            )

        try:
            account_ref, catalog_item_id, term = self._prepare(item)
            if previous_status == ItemFulfillmentStatus.PROCESSING.value:
                adopted = self._find_existing_subscription(
                    item, account_ref, catalog_item_id, previous_started_at
                )
                if adopted is not None:
                    return self._record_success(item, adopted)
            remote = self.client.create_subscription(
                account_ref, catalog_item_id, item.quantity, term
            )
        except ValidationError as e:
            return self._record_failure(item, str(e))
        except RemoteError as e:
            return self._record_failure(item, e.composite_message, e.details)

        return self._record_success(item, remote)

    def _prepare(self, item: OrderItemORM) -> tuple[str, str, TermParams]:
        """Resolve remote references; raise ValidationError before any remote call."""
        product = self.item_repo.current_product(item)
        if product is None:
            raise ValidationError(f"Product for order item {item.id} no longer exists")

        catalog_item_id = product.catalog_item_id
        if catalog_item_id is None:
            raise ValidationError(
                f"Invalid Catalogitem Id for '{product.title}': "
                "product, sku and availability ids are required"
            )
        if product.availability_checked_at is None:
            raise ValidationError(f"Availability of '{product.title}' has not been checked")
        if not product.is_available:
            reason = product.availability_error or "marked unavailable"
            raise ValidationError(f"'{product.title}' is not available: {reason}")

        account = item.order.remote_account
        if account is None or not account.remote_customer_id:
            raise ValidationError(f"Order {item.order.order_number} has no remote customer account")

        term_duration = product.term_duration or None
        if product.is_prepaid_credit:
            term_duration = None
        term = TermParams(
            billing_cycle=product.billing_plan or "Monthly",
            term_duration=term_duration,
        )
        return account.remote_customer_id, catalog_item_id, term

    def _find_existing_subscription(
        self,
        item: OrderItemORM,
        account_ref: str,
        catalog_item_id: str,
        started_at: datetime | None,
    ) -> CreatedSubscription | None:
        """
        Look for a subscription bought by an earlier run that crashed before
        recording it: same offer, created after that run started, and not
        already recorded locally.
        """
        if started_at is None:
            return None

        product = item.product
        prefix = f"{product.remote_product_id}:{product.remote_sku_id}".lower()
        candidates = [
            sub for sub in self.client.list_subscriptions(account_ref)
            if sub.created_at is not None
            and _aware(sub.created_at) >= started_at
            and (sub.offer_id or "").lower() in (catalog_item_id.lower(), prefix)
        ]
        if not candidates:
            return None

        known = self.subscription_repo.known_remote_ids([c.subscription_id for c in candidates])
        for candidate in candidates:
            if candidate.subscription_id not in known:
                logger.warning(
                    "stale_item_adopted_remote_subscription",
                    extra={
                        "order_id": str(item.order_id),
                        "order_item_id": str(item.id),
                        "subscription_id": candidate.subscription_id,
                    },
                )
                return candidate
        return None

    def _record_success(self, item: OrderItemORM, remote: CreatedSubscription) -> ItemResult:
        try:
            with transaction.atomic():
                self.subscription_repo.create_for_item(item, remote)
                self.item_repo.mark_fulfilled(item, remote.subscription_id)
        except DatabaseError as e:
            logger.critical(
                "remote_subscription_not_recorded",
                extra={
                    "order_id": str(item.order_id),
                    "order_item_id": str(item.id),
                    "subscription_id": remote.subscription_id,
                    "error": str(e),
                },
                exc_info=True,
            )
            error = PersistenceError(
                f"Remote subscription {remote.subscription_id} was created "
                f"but could not be recorded: {e}"
            )
            return self._record_failure(item, str(error))

        logger.info(
            "item_provisioned",
            extra={
                "order_id": str(item.order_id),
                "order_item_id": str(item.id),
                "subscription_id": remote.subscription_id,
            },
        )
        return self._result(
            item,
            ItemOutcome.SUCCEEDED,
            subscription_id=remote.subscription_id,
            remote_cart_id=remote.cart_id,
        )

    def _record_failure(
        self,
        item: OrderItemORM,
        message: str,
        details: RemoteErrorDetails | None = None,
    ) -> ItemResult:
        try:
            self.item_repo.mark_failed(item, message)
        except DatabaseError:
            # The item stays PROCESSING and is picked up again once stale.
            logger.exception(
                "item_failure_not_recorded",
                extra={"order_id": str(item.order_id), "order_item_id": str(item.id)},
            )

        category = classify(message)
        logger.warning(
            "item_provisioning_failed",
            extra={
                "order_id": str(item.order_id),
                "order_item_id": str(item.id),
                "error": message,
                "error_code": details.error_code if details else None,
                "http_status": details.http_status if details else None,
                "correlation_id": details.correlation_id if details else None,
                "remote_request_id": details.request_id if details else None,
            },
        )
        return self._result(
            item,
            ItemOutcome.FAILED,
            error_message=message,
            error_category=category,
            remote_error_details=details,
        )

    def _result(self, item: OrderItemORM, outcome: ItemOutcome, **kwargs) -> ItemResult:
        return ItemResult(
            order_item_id=item.id,
            product_id=item.product_id,
            product_title=item.product_title,
            quantity=item.quantity,
            outcome=outcome,
            processed_at=timezone.now(),
            **kwargs,
        )


def _aware(value: datetime) -> datetime:
    """Remote timestamps without an offset are UTC."""
    if timezone.is_naive(value):
        return timezone.make_aware(value, dt_timezone.utc)
    return value
