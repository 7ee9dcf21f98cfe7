from __future__ import annotations

from uuid import uuid4

from django.db import models


ORDER_STATUS_CHOICES = (
    ("pending", "Pending"),
    ("processing", "Processing"),
    ("completed", "Completed"),
    ("cancelled", "Cancelled"),
    ("refunded", "Refunded"),
)

ORDER_FULFILLMENT_STATUS_CHOICES = (
    ("unfulfilled", "Unfulfilled"),
    ("partial", "Partially fulfilled"),
    ("fulfilled", "Fulfilled"),
    ("cancelled", "Cancelled"),
    ("failed", "Failed"),
)

ITEM_FULFILLMENT_STATUS_CHOICES = (
    ("pending", "Pending"),
    ("processing", "Processing"),
    ("fulfilled", "Fulfilled"),
    ("failed", "Failed"),
    ("cancelled", "Cancelled"),
    ("refunded", "Refunded"),
)

PREPAID_TITLE_MARKERS = ("prepago", "prepaid")


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class CustomerORM(TimeStampedModel):
    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)
    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True, default="")
    phone = models.CharField(max_length=32, blank=True, default="")

    def __str__(self):
        return self.name


class RemoteAccountORM(TimeStampedModel):
    """Customer tenant on the remote commerce platform."""
    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)
    customer = models.ForeignKey(
        CustomerORM,
        on_delete=models.PROTECT,
        related_name="remote_accounts",
    )
    remote_customer_id = models.CharField(max_length=100, blank=True, default="")
    domain = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        indexes = [
            models.Index(fields=("remote_customer_id",)),
        ]

    def __str__(self):
        return self.domain or self.remote_customer_id


class ProductORM(TimeStampedModel):
    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)
    title = models.CharField(max_length=255)
    remote_product_id = models.CharField(max_length=100, blank=True, default="")
    remote_sku_id = models.CharField(max_length=100, blank=True, default="")
    remote_availability_id = models.CharField(max_length=100, blank=True, default="")
    billing_plan = models.CharField(max_length=50, blank=True, default="Monthly")
    term_duration = models.CharField(max_length=20, blank=True, default="")
    # Refreshed by the availability sync
    is_available = models.BooleanField(default=True)
    availability_checked_at = models.DateTimeField(null=True, blank=True)
    availability_error = models.TextField(blank=True, default="")

    class Meta:
        indexes = [
            models.Index(fields=("remote_product_id", "remote_sku_id")),
        ]

    def __str__(self):
        return self.title

    @property
    def catalog_item_id(self) -> str | None:
        """``product:sku:availability`` reference, or None when incomplete."""
        parts = (self.remote_product_id, self.remote_sku_id, self.remote_availability_id)
        if not all(parts):
            return None
        return ":".join(parts)

    @property
    def is_prepaid_credit(self) -> bool:
        title = self.title.lower()
        return self.term_duration == "P1M" and any(m in title for m in PREPAID_TITLE_MARKERS)


class OrderORM(TimeStampedModel):
    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)
    order_number = models.CharField(max_length=50, unique=True)
    customer = models.ForeignKey(
        CustomerORM,
        on_delete=models.PROTECT,
        related_name="orders",
    )
    remote_account = models.ForeignKey(
        RemoteAccountORM,
        on_delete=models.PROTECT,
        related_name="orders",
        null=True,
        blank=True,
    )
    status = models.CharField(max_length=20, choices=ORDER_STATUS_CHOICES, default="pending")
    fulfillment_status = models.CharField(
        max_length=20,
        choices=ORDER_FULFILLMENT_STATUS_CHOICES,
        default="unfulfilled",
    )
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, default="MXN")

    class Meta:
        indexes = [
            models.Index(fields=("customer", "status")),
            models.Index(fields=("fulfillment_status",)),
        ]

    def __str__(self):
        return self.order_number


class OrderItemORM(TimeStampedModel):
    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)
    order = models.ForeignKey(
        OrderORM,
        on_delete=models.CASCADE,
        related_name="items",
    )
    # Purchase snapshot
    product = models.ForeignKey(
        ProductORM,
        on_delete=models.SET_NULL,
        related_name="order_items",
        null=True,
        blank=True,
    )
    sku_id = models.CharField(max_length=100, blank=True, default="")
    product_title = models.CharField(max_length=255)
    quantity = models.IntegerField()
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    line_total = models.DecimalField(max_digits=12, decimal_places=2)
    # Fulfillment state
    fulfillment_status = models.CharField(
        max_length=20,
        choices=ITEM_FULFILLMENT_STATUS_CHOICES,
        default="pending",
    )
    fulfillment_error = models.TextField(null=True, blank=True)
    processing_started_at = models.DateTimeField(null=True, blank=True)
    fulfilled_at = models.DateTimeField(null=True, blank=True)
    remote_subscription_id = models.CharField(max_length=100, null=True, blank=True)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=("order",)),
            models.Index(fields=("fulfillment_status", "updated_at")),
        ]

    def __str__(self):
        return f"{self.product_title} x{self.quantity}"


class SubscriptionORM(TimeStampedModel):
    STATUS_CHOICES = (
        ("active", "Active"),
        ("suspended", "Suspended"),
        ("cancelled", "Cancelled"),
    )

    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)
    order = models.ForeignKey(
        OrderORM,
        on_delete=models.PROTECT,
        related_name="subscriptions",
    )
    # One subscription per fulfilled item
    order_item = models.OneToOneField(
        OrderItemORM,
        on_delete=models.PROTECT,
        related_name="subscription",
    )
    remote_account = models.ForeignKey(
        RemoteAccountORM,
        on_delete=models.PROTECT,
        related_name="subscriptions",
        null=True,
        blank=True,
    )
    product = models.ForeignKey(
        ProductORM,
        on_delete=models.SET_NULL,
        related_name="subscriptions",
        null=True,
        blank=True,
    )
    sku_id = models.CharField(max_length=100, blank=True, default="")
    remote_subscription_id = models.CharField(max_length=100)
    remote_cart_id = models.CharField(max_length=100, null=True, blank=True)
    offer_id = models.CharField(max_length=255, null=True, blank=True)
    term_duration = models.CharField(max_length=20, null=True, blank=True)
    transaction_type = models.CharField(max_length=50, null=True, blank=True)
    friendly_name = models.CharField(max_length=255, null=True, blank=True)
    quantity = models.IntegerField(default=1)
    price = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="active")
    created_by = models.CharField(max_length=50, default="Marketplace")

    class Meta:
        indexes = [
            models.Index(fields=("order",)),
            models.Index(fields=("remote_subscription_id",)),
        ]

    def __str__(self):
        return self.remote_subscription_id
