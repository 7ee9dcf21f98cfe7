"""
Escalation of provisioning failures to human operators.

Each channel is isolated: a failure is logged and never reaches the caller
or the other channels.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Protocol

import requests
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.mail import EmailMultiAlternatives
from django.core.validators import validate_email
from django.template.loader import render_to_string
from django.utils import timezone

from fulfillment.config import ProvisioningConfig
from fulfillment.domain.errors import NotificationError
from fulfillment.domain.results import ItemResult, ProvisioningSummary
from fulfillment.infra.models import OrderORM
from fulfillment.infra.pii_masker import mask_recipient

logger = logging.getLogger(__name__)

ALL_FAILED_HEADLINE = "All products failed during provisioning"


@dataclass
class FailureReportItem:
    product_title: str
    quantity: int
    success: bool
    subscription_id: str | None = None
    error_message: str | None = None
    error_category: str | None = None
    http_status: int | None = None
    error_code: str | None = None
    correlation_id: str | None = None
    request_id: str | None = None
    processed_at: datetime | None = None


@dataclass
class FailureReport:
    """Everything an operator needs to act on a failed provisioning run."""
    order_id: str
    order_number: str
    order_status: str
    total_amount: Decimal
    currency: str
    headline: str
    total_products: int
    successful_products: int
    failed_products: int
    customer_name: str = ""
    customer_email: str = ""
    customer_phone: str = ""
    remote_customer_id: str = ""
    remote_domain: str = ""
    items: list[FailureReportItem] = field(default_factory=list)
    generated_at: datetime = field(default_factory=timezone.now)


def headline_for(summary: ProvisioningSummary) -> str:
    if summary.successful_products == 0:
        return ALL_FAILED_HEADLINE
    return (
        f"Partial provisioning: {summary.successful_products}/"
        f"{summary.total_products} products successful"
    )


def build_failure_report(
    order: OrderORM,
    summary: ProvisioningSummary,
    item_results: list[ItemResult],
) -> FailureReport:
    items = []
    for result in item_results:
        details = result.remote_error_details
        items.append(FailureReportItem(
            product_title=result.product_title,
            quantity=result.quantity,
            success=result.success,
            subscription_id=result.subscription_id,
            error_message=result.error_message,
            error_category=result.error_category.label if result.error_category else None,
            http_status=details.http_status if details else None,
            error_code=details.error_code if details else None,
            correlation_id=details.correlation_id if details else None,
            request_id=details.request_id if details else None,
            processed_at=result.processed_at,
        ))

    customer = order.customer
    account = order.remote_account
    return FailureReport(
        order_id=str(order.id),
        order_number=order.order_number,
        order_status=order.status,
        total_amount=order.total_amount,
        currency=order.currency,
        headline=headline_for(summary),
        total_products=summary.total_products,
        successful_products=summary.successful_products,
        failed_products=summary.failed_products,
        customer_name=customer.name if customer else "",
        customer_email=customer.email if customer else "",
        customer_phone=customer.phone if customer else "",
        remote_customer_id=account.remote_customer_id if account else "",
        remote_domain=account.domain if account else "",
        items=items,
    )


class NotificationChannel(Protocol):
    name: str

    def send(self, report: FailureReport) -> None:
        ...


class EmailChannel:
    """Sends the report as a text and HTML email to each operator address."""

    name = "email"
    text_template = "fulfillment/emails/provisioning_failure.txt"
    html_template = "fulfillment/emails/provisioning_failure.html"

    def __init__(self, recipients: tuple[str, ...] | list[str], from_email: str):
        self.recipients = list(recipients)
        self.from_email = from_email

    def send(self, report: FailureReport) -> None:
        recipients = [r for r in self.recipients if _is_valid_email(r)]
        if not recipients:
            logger.warning(
                "notification_channel_not_configured",
                extra={"channel": self.name, "order_id": report.order_id},
            )
            return

        context = {"report": report}
        subject = f"[Provisioning] Order {report.order_number}: {report.headline}"
        text_body = render_to_string(self.text_template, context)
        html_body = render_to_string(self.html_template, context)

        for recipient in recipients:
            message = EmailMultiAlternatives(
                subject=subject,
                body=text_body,
                from_email=self.from_email,
                to=[recipient],
            )
            message.attach_alternative(html_body, "text/html")
            try:
                message.send()
            except Exception as e:
                logger.error(
                    "notification_send_failed",
                    extra={
                        "channel": self.name,
                        "order_id": report.order_id,
                        "recipient": mask_recipient(recipient),
                        "error": str(e),
                    },
                )
                continue
            logger.info(
                "notification_sent",
                extra={
                    "channel": self.name,
                    "order_id": report.order_id,
                    "recipient": mask_recipient(recipient),
                },
            )


def _is_valid_email(address: str) -> bool:
    try:
        validate_email(address)
    except DjangoValidationError:
        logger.warning("invalid_notification_email", extra={"recipient": mask_recipient(address)})
        return False
    return True


def format_whatsapp_phone(phone: str) -> str:
    """Digits only; ten-digit national numbers get the 52 country code."""
    digits = re.sub(r"\D", "", phone)
    if len(digits) == 10:
        return "52" + digits
    return digits


def format_whatsapp_message(report: FailureReport) -> str:
    lines = [
        f"*ORDER NOT PROVISIONED: {report.headline}*",
        "",
        f"*Order:* {report.order_number}",
        f"*Total:* {report.total_amount:,.2f} {report.currency}",
    ]
    if report.customer_name:
        lines.append(f"*Customer:* {report.customer_name}")
    if report.customer_email:
        lines.append(f"*Email:* {report.customer_email}")
    if report.customer_phone:
        lines.append(f"*Phone:* {report.customer_phone}")
    if report.remote_customer_id:
        lines.append(f"*Account:* {report.remote_customer_id}")
    if report.remote_domain:
        lines.append(f"*Domain:* {report.remote_domain}")

    lines += ["", "*Products:*"]
    for index, item in enumerate(report.items, start=1):
        mark = "OK" if item.success else "FAILED"
        lines.append(f"{index}. [{mark}] {item.product_title} (x{item.quantity})")
        if not item.success and item.error_message:
            lines.append(f"   Error: {item.error_message}")
        if item.error_code:
            lines.append(f"   Code: {item.error_code}")
        if item.http_status:
            lines.append(f"   HTTP: {item.http_status}")

    lines += [
        "",
        f"*Summary:* {report.successful_products}/{report.total_products} successful, "
        f"{report.failed_products} failed",
        f"*Date:* {report.generated_at:%d/%m/%Y %H:%M:%S}",
        "",
        "Action required: review the failed products.",
    ]
    return "\n".join(lines)


class WhatsAppChannel:
    """Sends the report through the WhatsApp Cloud API to each operator number."""

    name = "whatsapp"

    def __init__(self, config: ProvisioningConfig, session: requests.Session | None = None):
        self.numbers = list(config.whatsapp_numbers)
        self.token = config.whatsapp_graph_token
        self.phone_id = config.whatsapp_phone_id
        self.api_url = config.whatsapp_api_url
        self.template = config.whatsapp_template
        self.template_language = config.whatsapp_template_language
        self.timeout = config.whatsapp_timeout
        self.session = session or requests.Session()

    def send(self, report: FailureReport) -> None:
        if not (self.numbers and self.token and self.phone_id):
            logger.warning(
                "notification_channel_not_configured",
                extra={"channel": self.name, "order_id": report.order_id},
            )
            return

        message = format_whatsapp_message(report)
        for number in self.numbers:
            recipient = format_whatsapp_phone(number)
            try:
                self.send_message(recipient, message)
            except (requests.RequestException, NotificationError) as e:
                logger.error(
                    "notification_send_failed",
                    extra={
                        "channel": self.name,
                        "order_id": report.order_id,
                        "recipient": mask_recipient(recipient),
                        "error": str(e),
                    },
                )
                continue
            logger.info(
                "notification_sent",
                extra={
                    "channel": self.name,
                    "order_id": report.order_id,
                    "recipient": mask_recipient(recipient),
                },
            )

    def send_message(self, recipient: str, message: str) -> None:
        """Send the approved template when configured, falling back to plain text."""
        url = f"{self.api_url}/{self.phone_id}/messages"
        headers = {"Authorization": f"Bearer {self.token}"}

        if self.template:
            response = self.session.post(
                url,
                json=self._template_payload(recipient, message),
                headers=headers,
                timeout=self.timeout,
            )
            if response.ok:
                return
            logger.warning(
                "whatsapp_template_rejected",
                extra={
                    "channel": self.name,
                    "recipient": mask_recipient(recipient),
                    "http_status": response.status_code,
                },
            )

        response = self.session.post(
            url,
            json={
                "messaging_product": "whatsapp",
                "to": recipient,
                "type": "text",
                "text": {"body": message},
            },
            headers=headers,
            timeout=self.timeout,
        )
        if not response.ok:
            raise NotificationError(
                f"WhatsApp API error: HTTP {response.status_code}: {response.text}"
            )

    def _template_payload(self, recipient: str, message: str) -> dict:
        return {
            "messaging_product": "whatsapp",
            "to": recipient,
            "type": "template",
            "template": {
                "name": self.template,
                "language": {"code": self.template_language},
                "components": [
                    {
                        "type": "body",
                        "parameters": [{"type": "text", "text": message}],
                    },
                ],
            },
        }


class NotificationEscalator:
    """Dispatches failure reports over every configured channel; never raises."""

    def __init__(
        self,
        config: ProvisioningConfig | None = None,
        channels: list[NotificationChannel] | None = None,
    ):
        if channels is None:
            config = config or ProvisioningConfig.from_settings()
            channels = [
                EmailChannel(config.notification_emails, config.email_from),
                WhatsAppChannel(config),
            ]
        self.channels = channels

    def escalate(
        self,
        order: OrderORM,
        summary: ProvisioningSummary,
        item_results: list[ItemResult],
    ) -> None:
        try:
            report = build_failure_report(order, summary, item_results)
        except Exception:
            logger.exception("failure_report_not_built", extra={"order_id": str(order.id)})
            return

        logger.info(
            "escalating_provisioning_failure",
            extra={
                "order_id": report.order_id,
                "order_number": report.order_number,
                "status": report.headline,
            },
        )
        for channel in self.channels:
            try:
                channel.send(report)
            except Exception:
                logger.exception(
                    "notification_channel_failed",
                    extra={"channel": channel.name, "order_id": report.order_id},
                )
