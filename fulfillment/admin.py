from django.contrib import admin, messages

from fulfillment.infra.models import (
    CustomerORM,
    OrderItemORM,
    OrderORM,
    ProductORM,
    RemoteAccountORM,
    SubscriptionORM,
)
from fulfillment.services.retry import RetryCoordinator


@admin.register(CustomerORM)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "email", "created_at")
    search_fields = ("name", "email")


@admin.register(RemoteAccountORM)
class RemoteAccountAdmin(admin.ModelAdmin):
    list_display = ("id", "customer", "remote_customer_id", "domain", "created_at")
    search_fields = ("remote_customer_id", "domain", "customer__name")


@admin.register(ProductORM)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("title", "remote_product_id", "remote_sku_id", "term_duration", "is_available", "availability_checked_at")
    list_filter = ("is_available", "term_duration", "billing_plan")
    search_fields = ("title", "remote_product_id", "remote_sku_id")


class OrderItemInline(admin.TabularInline):
    model = OrderItemORM
    extra = 0
    fields = ("product_title", "quantity", "fulfillment_status", "fulfillment_error", "remote_subscription_id")
    readonly_fields = fields


@admin.register(OrderORM)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("order_number", "customer", "status", "fulfillment_status", "total_amount", "created_at")
    list_filter = ("status", "fulfillment_status", "created_at")
    search_fields = ("order_number", "customer__name")
    inlines = (OrderItemInline,)
    actions = ("retry_provisioning",)

    @admin.action(description="Retry provisioning of failed products")
    def retry_provisioning(self, request, queryset):
        coordinator = RetryCoordinator()
        for order in queryset:
            result = coordinator.retry_order(order.id)
            level = messages.SUCCESS if result.success else messages.WARNING
            self.message_user(request, f"{order.order_number}: {result.message}", level)


@admin.register(OrderItemORM)
class OrderItemAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "product_title", "quantity", "fulfillment_status", "updated_at")
    list_filter = ("fulfillment_status", "updated_at")
    search_fields = ("order__order_number", "product_title", "sku_id")


@admin.register(SubscriptionORM)
class SubscriptionAdmin(admin.ModelAdmin):
    list_display = ("remote_subscription_id", "order", "offer_id", "quantity", "status", "created_at")
    list_filter = ("status", "created_at")
    search_fields = ("remote_subscription_id", "order__order_number")
    readonly_fields = ("id", "order", "order_item", "remote_subscription_id", "remote_cart_id")
