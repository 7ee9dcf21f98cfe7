"""
Tests for single item provisioning.
"""
from datetime import timedelta, timezone as dt_timezone
from unittest import mock

from django.db import DatabaseError
from django.test import TestCase
from django.utils import timezone

from fulfillment.domain.classifier import ErrorCategory
from fulfillment.domain.errors import RemoteRejection, TransportError
from fulfillment.domain.results import CreatedSubscription, ItemOutcome, RemoteErrorDetails
from fulfillment.infra.models import OrderItemORM, ProductORM, SubscriptionORM
from fulfillment.infra.repositories import SubscriptionRepository
from fulfillment.services.provisioner import ItemProvisioner
from fulfillment.test.helpers import ScriptedClient, items_of, make_order, make_product


class ItemProvisionerTest(TestCase):

    def setUp(self):
        self.product = make_product()
        self.order = make_order([(self.product, 3)])
        self.item = items_of(self.order)[0]

    def provision(self, client, item=None):
        return ItemProvisioner(client).provision_item(item or self.item)

    def test_success_records_subscription_and_fulfils_item(self):
        client = ScriptedClient()

        result = self.provision(client)

        self.assertEqual(result.outcome, ItemOutcome.SUCCEEDED)
        account_ref, catalog_id, quantity, term = client.calls[0]
        self.assertEqual(account_ref, self.order.remote_account.remote_customer_id)
        self.assertEqual(catalog_id, self.product.catalog_item_id)
        self.assertEqual(quantity, 3)
        self.assertEqual(term.billing_cycle, "Monthly")
        self.assertEqual(term.term_duration, "P1Y")

        item = OrderItemORM.objects.get(pk=self.item.pk)
        self.assertEqual(item.fulfillment_status, "fulfilled")
        self.assertEqual(item.remote_subscription_id, result.subscription_id)
        self.assertIsNotNone(item.fulfilled_at)
        self.assertIsNone(item.fulfillment_error)

        subscription = SubscriptionORM.objects.get(order_item=item)
        self.assertEqual(subscription.remote_subscription_id, result.subscription_id)
        self.assertEqual(subscription.remote_cart_id, result.remote_cart_id)
        self.assertEqual(subscription.created_by, "Marketplace")

    def test_prepaid_credit_is_bought_without_term(self):
        product = make_product(title="Azure plan prepago", term_duration="P1M")
        order = make_order([(product, 100)])
        client = ScriptedClient()

        self.provision(client, items_of(order)[0])

        self.assertIsNone(client.calls[0][3].term_duration)

    def test_incomplete_catalog_item_fails_without_remote_call(self):
        self.product.remote_availability_id = ""
        self.product.save()
        client = ScriptedClient()

        result = self.provision(client)

        self.assertEqual(result.outcome, ItemOutcome.FAILED)
        self.assertEqual(result.error_category, ErrorCategory.INVALID_CATALOG_ITEM)
        self.assertEqual(client.calls, [])
        self.assertEqual(OrderItemORM.objects.get(pk=self.item.pk).fulfillment_status, "failed")

    def test_unavailable_product_fails_without_remote_call(self):
        self.product.is_available = False
        self.product.availability_error = "Sku retired"
        self.product.save()
        client = ScriptedClient()

        result = self.provision(client)

        self.assertFalse(result.success)
        self.assertIn("Sku retired", result.error_message)
        self.assertEqual(client.calls, [])

    def test_unchecked_availability_fails(self):
        self.product.availability_checked_at = None
        self.product.save()
        client = ScriptedClient()

        result = self.provision(client)

        self.assertFalse(result.success)
        self.assertIn("has not been checked", result.error_message)
        self.assertEqual(client.calls, [])

    def test_missing_remote_account_fails(self):
        order = make_order([(make_product(), 1)], with_account=False)
        client = ScriptedClient()

        result = self.provision(client, items_of(order)[0])

        self.assertFalse(result.success)
        self.assertIn("no remote customer account", result.error_message)
        self.assertEqual(client.calls, [])

    def test_remote_rejection_keeps_details(self):
        details = RemoteErrorDetails(
            http_status=400,
            error_code="800002",
            description="The TermDuration is not valid for this offer",
            correlation_id="corr-123",
            request_id="req-456",
        )
        client = ScriptedClient({
            self.product.catalog_item_id: RemoteRejection("Partner Center rejected the order", details),
        })

        result = self.provision(client)

        self.assertEqual(result.outcome, ItemOutcome.FAILED)
        self.assertEqual(result.error_category, ErrorCategory.INVALID_TERM_DURATION)
        self.assertEqual(result.remote_error_details, details)
        item = OrderItemORM.objects.get(pk=self.item.pk)
        self.assertEqual(item.fulfillment_status, "failed")
        self.assertIn("Error 800002", item.fulfillment_error)
        self.assertFalse(SubscriptionORM.objects.filter(order_item=item).exists())

    def test_timeout_has_no_http_status(self):
        client = ScriptedClient({
            self.product.catalog_item_id: TransportError(
                "checkout timeout after 180s",
                RemoteErrorDetails(description="ReadTimeout: read timed out"),
            ),
        })

        result = self.provision(client)

        self.assertEqual(result.error_category, ErrorCategory.TIMEOUT_ERROR)
        self.assertIsNone(result.remote_error_details.http_status)

    def test_item_claimed_elsewhere_is_skipped(self):
        OrderItemORM.objects.filter(pk=self.item.pk).update(
            fulfillment_status="processing",
            processing_started_at=timezone.now(),
        )
        client = ScriptedClient()

        result = self.provision(client)

        self.assertTrue(result.skipped)
        self.assertEqual(client.calls, [])
        self.assertEqual(OrderItemORM.objects.get(pk=self.item.pk).fulfillment_status, "processing")

    def test_stale_item_adopts_existing_remote_subscription(self):
        started = timezone.now() - timedelta(minutes=30)
        OrderItemORM.objects.filter(pk=self.item.pk).update(
            fulfillment_status="processing",
            processing_started_at=started,
        )
        item = items_of(self.order)[0]
        existing = CreatedSubscription(
            subscription_id="sub-from-crashed-run",
            offer_id=self.product.catalog_item_id.upper(),
            quantity=3,
            created_at=started + timedelta(minutes=1),
        )
        client = ScriptedClient(existing=[existing])

        result = self.provision(client, item)

        self.assertTrue(result.success)
        self.assertEqual(result.subscription_id, "sub-from-crashed-run")
        self.assertEqual(client.calls, [])
        self.assertEqual(
            OrderItemORM.objects.get(pk=item.pk).remote_subscription_id,
            "sub-from-crashed-run",
        )

    def test_stale_item_ignores_older_subscriptions(self):
        started = timezone.now() - timedelta(minutes=30)
        OrderItemORM.objects.filter(pk=self.item.pk).update(
            fulfillment_status="processing",
            processing_started_at=started,
        )
        item = items_of(self.order)[0]
        older = CreatedSubscription(
            subscription_id="sub-bought-last-year",
            offer_id=self.product.catalog_item_id,
            created_at=started - timedelta(days=365),
        )
        client = ScriptedClient(existing=[older])

        result = self.provision(client, item)

        self.assertTrue(result.success)
        self.assertNotEqual(result.subscription_id, "sub-bought-last-year")
        self.assertEqual(len(client.calls), 1)
        self.assertEqual(client.list_calls, [self.order.remote_account.remote_customer_id])

    def test_stale_item_accepts_naive_remote_timestamps(self):
        started = timezone.now() - timedelta(minutes=30)
        OrderItemORM.objects.filter(pk=self.item.pk).update(
            fulfillment_status="processing",
            processing_started_at=started,
        )
        item = items_of(self.order)[0]
        existing = CreatedSubscription(
            subscription_id="sub-naive-date",
            offer_id=self.product.catalog_item_id,
            created_at=timezone.make_naive(started + timedelta(minutes=1), dt_timezone.utc),
        )
        client = ScriptedClient(existing=[existing])

        result = self.provision(client, item)

        self.assertTrue(result.success)
        self.assertEqual(result.subscription_id, "sub-naive-date")
        self.assertEqual(client.calls, [])

    def test_product_is_reread_before_validation(self):
        item = items_of(self.order)[0]
        self.assertTrue(item.product.is_available)
        ProductORM.objects.filter(pk=self.product.pk).update(is_available=False)
        client = ScriptedClient()

        result = self.provision(client, item)

        self.assertFalse(result.success)
        self.assertIn("is not available", result.error_message)
        self.assertEqual(client.calls, [])

    def test_pending_item_does_not_list_subscriptions(self):
        client = ScriptedClient()

        self.provision(client)

        self.assertEqual(client.list_calls, [])

    def test_local_write_failure_is_reported_with_subscription_id(self):
        client = ScriptedClient({
            self.product.catalog_item_id: CreatedSubscription(subscription_id="sub-orphan", cart_id="cart-9"),
        })

        with mock.patch.object(
            SubscriptionRepository, "create_for_item", side_effect=DatabaseError("disk full"),
        ):
            result = self.provision(client)

        self.assertFalse(result.success)
        self.assertIn("sub-orphan", result.error_message)
        item = OrderItemORM.objects.get(pk=self.item.pk)
        self.assertEqual(item.fulfillment_status, "failed")
        self.assertFalse(SubscriptionORM.objects.exists())
