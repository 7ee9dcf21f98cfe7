"""
Tests for retrying failed provisioning.
"""
from datetime import timedelta
from uuid import uuid4

from django.test import TestCase
from django.utils import timezone

from fulfillment.config import ProvisioningConfig
from fulfillment.domain.errors import OrderNotFound, RemoteRejection
from fulfillment.infra.models import OrderItemORM
from fulfillment.services.orchestrator import ProvisioningOrchestrator
from fulfillment.services.retry import RetryCoordinator
from fulfillment.test.helpers import ScriptedClient, StubEscalator, make_order, make_product


class RetryCoordinatorTest(TestCase):

    def setUp(self):
        self.client_stub = ScriptedClient()
        self.coordinator = RetryCoordinator(
            orchestrator=ProvisioningOrchestrator(
                config=ProvisioningConfig(),
                client=self.client_stub,
                escalator=StubEscalator(),
            ),
        )

    def fail_items(self, order, hours_ago=0):
        OrderItemORM.objects.filter(order=order).update(
            fulfillment_status="failed",
            fulfillment_error="Failed to create cart in Partner Center: HTTP 500",
            processing_started_at=timezone.now() - timedelta(hours=hours_ago, minutes=1),
            updated_at=timezone.now() - timedelta(hours=hours_ago),
        )

    def test_retry_order_resets_and_provisions(self):
        order = make_order([(make_product(), 1)])
        self.fail_items(order)

        result = self.coordinator.retry_order(order.id)

        self.assertTrue(result.success)
        item = OrderItemORM.objects.get(order=order)
        self.assertEqual(item.fulfillment_status, "fulfilled")
        self.assertIsNone(item.fulfillment_error)
        self.assertEqual(len(self.client_stub.calls), 1)

    def test_retry_order_that_fails_again(self):
        product = make_product()
        order = make_order([(product, 1)])
        self.fail_items(order)
        self.client_stub.outcomes[product.catalog_item_id] = RemoteRejection(
            "Failed to checkout cart in Partner Center: HTTP 409",
        )

        result = self.coordinator.retry_order(order.id)

        self.assertFalse(result.success)
        self.assertEqual(result.fulfillment_status, "failed")
        self.assertIn("HTTP 409", OrderItemORM.objects.get(order=order).fulfillment_error)

    def test_retry_unknown_order(self):
        with self.assertRaises(OrderNotFound):
            self.coordinator.retry_order(uuid4())

    def test_recent_failures_respect_window(self):
        recent = make_order([(make_product(), 1)])
        old = make_order([(make_product(), 1)])
        self.fail_items(recent, hours_ago=2)
        self.fail_items(old, hours_ago=48)

        results = self.coordinator.retry_recent_failures(window_hours=24)

        self.assertEqual([r.order_id for r in results], [recent.id])
        self.assertEqual(OrderItemORM.objects.get(order=recent).fulfillment_status, "fulfilled")
        self.assertEqual(OrderItemORM.objects.get(order=old).fulfillment_status, "failed")

    def test_recent_failures_with_nothing_to_do(self):
        make_order([(make_product(), 1)])

        self.assertEqual(self.coordinator.retry_recent_failures(window_hours=24), [])
        self.assertEqual(self.client_stub.calls, [])

    def test_find_retry_candidates_is_read_only(self):
        recent = make_order([(make_product(), 1)])
        old = make_order([(make_product(), 1)])
        self.fail_items(recent, hours_ago=1)
        self.fail_items(old, hours_ago=30)

        in_window = self.coordinator.find_retry_candidates(window_hours=24)
        for_order = self.coordinator.find_retry_candidates(order_id=old.id)

        self.assertEqual([i.order_id for i in in_window], [recent.id])
        self.assertEqual([i.order_id for i in for_order], [old.id])
        self.assertEqual(OrderItemORM.objects.filter(fulfillment_status="failed").count(), 2)
        self.assertEqual(self.client_stub.calls, [])
