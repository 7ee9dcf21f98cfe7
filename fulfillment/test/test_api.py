"""
Integration tests for GraphQL API.
"""
import json
from datetime import timedelta
from uuid import uuid4

from django.test import TestCase, override_settings
from django.utils import timezone

from fulfillment.infra.models import OrderItemORM, SubscriptionORM
from fulfillment.test.helpers import make_order, make_product

FAKE_FULFILLMENT = {"FAKE_MODE": True}


@override_settings(FULFILLMENT=FAKE_FULFILLMENT)
class GraphQLAPITest(TestCase):
    """Integration tests for GraphQL API."""

    def setUp(self):
        self.order = make_order([(make_product(), 2), (make_product(title="Azure plan prepago", term_duration="P1M"), 50)])

    def execute(self, query, variables=None):
        response = self.client.post(
            "/graphql/",
            data={"query": query, "variables": variables or {}},
            content_type="application/json",
            HTTP_X_REQUEST_ID="req-test-1",
        )
        self.assertEqual(response["X-Request-ID"], "req-test-1")
        return response, json.loads(response.content)

    def test_provision_order_mutation(self):
        query = """
            mutation Provision($orderId: UUID!) {
                provisionOrder(orderId: $orderId) {
                    success
                    message
                    orderId
                    totalProducts
                    successfulProducts
                    productsProcessedThisRun
                    orderStatus
                    fulfillmentStatus
                    productDetails {
                        productTitle
                        status
                        subscriptionId
                        processedAt
                    }
                }
            }
        """

        response, data = self.execute(query, {"orderId": str(self.order.id)})

        self.assertEqual(response.status_code, 200)
        self.assertNotIn("errors", data)
        result = data["data"]["provisionOrder"]
        self.assertTrue(result["success"])
        self.assertEqual(result["orderId"], str(self.order.id))
        self.assertEqual(result["totalProducts"], 2)
        self.assertEqual(result["successfulProducts"], 2)
        self.assertEqual(result["orderStatus"], "completed")
        self.assertEqual(result["fulfillmentStatus"], "fulfilled")
        for detail in result["productDetails"]:
            self.assertEqual(detail["status"], "success")
            self.assertTrue(detail["subscriptionId"].startswith("fake-sub-"))
        self.assertEqual(SubscriptionORM.objects.filter(order=self.order).count(), 2)

    def test_unknown_order_is_not_found(self):
        query = """
            mutation {
                provisionOrder(orderId: "%s") { success }
            }
        """ % uuid4()

        response, data = self.execute(query)

        self.assertEqual(data["errors"][0]["extensions"]["code"], "NOT_FOUND")
        self.assertIn("not found", data["errors"][0]["message"])

    def test_retry_order_mutation(self):
        OrderItemORM.objects.filter(order=self.order).update(
            fulfillment_status="failed",
            fulfillment_error="checkout timeout after 180s",
        )
        query = """
            mutation Retry($orderId: UUID!) {
                retryOrder(orderId: $orderId) {
                    success
                    productsProcessedThisRun
                    productsSuccessfulThisRun
                }
            }
        """

        _, data = self.execute(query, {"orderId": str(self.order.id)})

        result = data["data"]["retryOrder"]
        self.assertTrue(result["success"])
        self.assertEqual(result["productsProcessedThisRun"], 2)
        self.assertEqual(result["productsSuccessfulThisRun"], 2)

    def test_retry_recent_failures_mutation(self):
        OrderItemORM.objects.filter(order=self.order).update(
            fulfillment_status="failed",
            fulfillment_error="Failed to create cart in Partner Center: HTTP 500",
            updated_at=timezone.now() - timedelta(hours=1),
        )

        _, data = self.execute("mutation { retryRecentFailures(hours: 6) { orderId success } }")

        results = data["data"]["retryRecentFailures"]
        self.assertEqual(results, [{"orderId": str(self.order.id), "success": True}])

    def test_retry_candidates_query(self):
        OrderItemORM.objects.filter(order=self.order).update(
            fulfillment_status="failed",
            fulfillment_error="Invalid token response from Partner Center",
        )
        query = """
            query Candidates($orderId: UUID) {
                retryCandidates(orderId: $orderId) { orderNumber productTitle error }
            }
        """

        _, data = self.execute(query, {"orderId": str(self.order.id)})

        candidates = data["data"]["retryCandidates"]
        self.assertEqual(len(candidates), 2)
        self.assertEqual(candidates[0]["orderNumber"], self.order.order_number)
        self.assertEqual(OrderItemORM.objects.filter(fulfillment_status="failed").count(), 2)

    def test_order_provisioning_report_query(self):
        OrderItemORM.objects.filter(order=self.order).update(
            fulfillment_status="failed",
            fulfillment_error="checkout timeout after 180s",
        )
        query = """
            query Report($orderId: UUID!) {
                orderProvisioningReport(orderId: $orderId) {
                    orderNumber
                    totalAmount
                    summary { total failed fulfilled }
                    items { status errorCategory }
                }
            }
        """

        _, data = self.execute(query, {"orderId": str(self.order.id)})

        report = data["data"]["orderProvisioningReport"]
        self.assertEqual(report["orderNumber"], self.order.order_number)
        self.assertEqual(report["summary"], {"total": 2, "failed": 2, "fulfilled": 0})
        self.assertEqual({i["errorCategory"] for i in report["items"]}, {"Timeout Error"})

    def test_provisioning_report_query(self):
        query = """
            query {
                provisioningReport(days: 7) {
                    days
                    totalOrders
                    totalProducts
                    successRate
                    orderBreakdown { fulfillmentStatus count percentage }
                    commonErrors { category count }
                }
            }
        """

        _, data = self.execute(query)

        report = data["data"]["provisioningReport"]
        self.assertEqual(report["days"], 7)
        self.assertEqual(report["totalOrders"], 1)
        self.assertEqual(report["totalProducts"], 2)
        self.assertEqual(report["orderBreakdown"][0]["fulfillmentStatus"], "unfulfilled")

    def test_invalid_json(self):
        response = self.client.post("/graphql/", data="{not json", content_type="application/json")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(json.loads(response.content)["error"]["code"], "VALIDATION_ERROR")

    def test_get_returns_hint(self):
        response = self.client.get("/graphql/")

        self.assertEqual(response.status_code, 200)
