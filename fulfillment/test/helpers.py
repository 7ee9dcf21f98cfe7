"""
Shared fixtures for fulfillment tests.
"""
from decimal import Decimal
from uuid import uuid4

from django.utils import timezone

from fulfillment.domain.results import CreatedSubscription
from fulfillment.infra.models import (
    CustomerORM,
    OrderItemORM,
    OrderORM,
    ProductORM,
    RemoteAccountORM,
)


def make_product(title="Microsoft 365 Business Basic", term_duration="P1Y", **kwargs):
    suffix = uuid4().hex[:6].upper()
    defaults = {
        "title": title,
        "remote_product_id": f"CFQ7TTC0{suffix}",
        "remote_sku_id": "0001",
        "remote_availability_id": f"AV{suffix}",
        "billing_plan": "Monthly",
        "term_duration": term_duration,
        "is_available": True,
        "availability_checked_at": timezone.now(),
    }
    defaults.update(kwargs)
    return ProductORM.objects.create(**defaults)


def make_order(products, status="pending", with_account=True):
    """
    Create an order with one item per ``(product, quantity)`` pair.
    """
    customer = CustomerORM.objects.create(
        name="Contoso Ltd",
        email="buyer@contoso.example",
        phone="5512345678",
    )
    account = None
    if with_account:
        account = RemoteAccountORM.objects.create(
            customer=customer,
            remote_customer_id=str(uuid4()),
            domain="contoso.onmicrosoft.com",
        )
    order = OrderORM.objects.create(
        order_number=f"ORD-{uuid4().hex[:8].upper()}",
        customer=customer,
        remote_account=account,
        status=status,
        total_amount=Decimal("0.00"),
    )
    total = Decimal("0.00")
    for product, quantity in products:
        unit_price = Decimal("100.00")
        OrderItemORM.objects.create(
            order=order,
            product=product,
            sku_id=product.remote_sku_id if product else "",
            product_title=product.title if product else "Deleted product",
            quantity=quantity,
            unit_price=unit_price,
            line_total=unit_price * quantity,
        )
        total += unit_price * quantity
    order.total_amount = total
    order.save(update_fields=["total_amount"])
    return order


def items_of(order):
    return list(OrderItemORM.objects.filter(order=order).select_related("order__remote_account", "product"))


class ScriptedClient:
    """
    Platform client whose answers are scripted per catalog item id.

    An outcome is a ``CreatedSubscription``, an exception to raise, or a list
    of those consumed one call at a time. Unscripted items succeed.
    """

    def __init__(self, outcomes=None, existing=None, budget_error=None):
        self.outcomes = dict(outcomes or {})
        self.existing = list(existing or [])
        self.budget_error = budget_error
        self.calls = []
        self.list_calls = []
        self.budget_calls = []

    def create_subscription(self, account_ref, catalog_item_id, quantity, term):
        self.calls.append((account_ref, catalog_item_id, quantity, term))
        outcome = self.outcomes.get(catalog_item_id)
        if isinstance(outcome, list):
            outcome = outcome.pop(0) if outcome else None
        if isinstance(outcome, Exception):
            raise outcome
        if outcome is None:
            number = len(self.calls)
            outcome = CreatedSubscription(
                subscription_id=f"sub-{number}-{uuid4().hex[:6]}",
                cart_id=f"cart-{number}",
                offer_id=catalog_item_id,
                quantity=quantity,
            )
        return outcome

    def list_subscriptions(self, account_ref):
        self.list_calls.append(account_ref)
        return list(self.existing)

    def set_spending_budget(self, account_ref, amount):
        self.budget_calls.append((account_ref, amount))
        if self.budget_error is not None:
            raise self.budget_error

    def catalog_ids(self):
        return [call[1] for call in self.calls]


class StubEscalator:
    def __init__(self):
        self.calls = []

    def escalate(self, order, summary, item_results):
        self.calls.append((order, summary, item_results))
