"""
Client for the remote commerce platform (Partner Center REST API).
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol
from uuid import uuid4

import requests
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from fulfillment.config import ProvisioningConfig
from fulfillment.domain.errors import RemoteRejection, TransportError
from fulfillment.domain.results import CreatedSubscription, RemoteErrorDetails, TermParams
from fulfillment.infra.retry import retry_with_backoff

logger = logging.getLogger(__name__)


class PlatformClient(Protocol):
    """Operations the provisioning engine needs from the remote platform."""

    def create_subscription(
        self,
        account_ref: str,
        catalog_item_id: str,
        quantity: int,
        term: TermParams,
    ) -> CreatedSubscription:
        ...

    def list_subscriptions(self, account_ref: str) -> list[CreatedSubscription]:
        ...

    def set_spending_budget(self, account_ref: str, amount: Decimal) -> None:
        ...


def _to_decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def _parse_creation_date(value: Any) -> datetime | None:
    """Parse a remote ISO timestamp; values without an offset are UTC."""
    if not value:
        return None
    parsed = parse_datetime(value)
    if parsed is None:
        raise ValueError(f"not an ISO 8601 datetime: {value!r}")
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, dt_timezone.utc)
    return parsed


class PartnerCenterClient:
    """HTTP client that buys subscriptions through a one-line cart and checkout."""

    def __init__(self, config: ProvisioningConfig, session: requests.Session | None = None):
        self.config = config
        self.base_url = config.partner_center_base_url
        self.session = session or requests.Session()
        self._token: str | None = None

    # Transport

    def _request(self, method: str, url: str, *, operation: str, timeout: float, **kwargs) -> requests.Response:
        try:
            return self.session.request(method, url, timeout=timeout, **kwargs)
        except requests.Timeout as e:
            raise TransportError(
                f"{operation} timeout after {timeout}s",
                RemoteErrorDetails.from_exception(e),
            ) from e
        except requests.RequestException as e:
            raise TransportError(
                f"{operation} failed: {type(e).__name__}",
                RemoteErrorDetails.from_exception(e),
            ) from e

    def _json(self, response: requests.Response, operation: str) -> dict:
        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            raise RemoteRejection(
                f"Malformed {operation} response from Partner Center",
                RemoteErrorDetails.from_response(response),
            )
        return data

    def _auth_headers(self) -> dict:
        return {"Authorization": f"Bearer {self.get_token()}"}

    # Authentication

    def get_token(self) -> str:
        """Fetch the access token once per client, retrying transport errors."""
        if self._token is None:
            fetch = retry_with_backoff(
                max_retries=self.config.token_max_retries,
                initial_delay=self.config.token_retry_delay,
                exceptions=(TransportError,),
            )(self._fetch_token)
            self._token = fetch()
        return self._token

    def _fetch_token(self) -> str:
        if not self.config.credentials_url:
            raise RemoteRejection("Authentication with Partner Center failed: no credentials URL configured")

        response = self._request(
            "GET",
            self.config.credentials_url,
            operation="token request",
            timeout=self.config.token_timeout,
        )
        if not response.ok:
            raise RemoteRejection(
                f"Authentication with Partner Center failed: token request returned HTTP {response.status_code}",
                RemoteErrorDetails.from_response(response),
            )
        data = self._json(response, "token")
        token = (data.get("item") or {}).get("token")
        if not token:
            raise RemoteRejection(
                "Invalid token response from Partner Center",
                RemoteErrorDetails.from_response(response),
            )
        return token

    # Operations

    def create_subscription(
        self,
        account_ref: str,
        catalog_item_id: str,
        quantity: int,
        term: TermParams,
    ) -> CreatedSubscription:
        """Create a single-line cart for the account and check it out."""
        headers = self._auth_headers()

        line_item = {
            "id": 0,
            "catalogItemId": catalog_item_id,
            "quantity": quantity,
            "billingCycle": term.billing_cycle,
        }
        if term.term_duration:
            line_item["termDuration"] = term.term_duration

        response = self._request(
            "POST",
            f"{self.base_url}/customers/{account_ref}/carts",
            operation="create cart",
            timeout=self.config.create_cart_timeout,
            json={"lineItems": [line_item]},
            headers=headers,
        )
        if not response.ok:
            raise RemoteRejection(
                f"Failed to create cart in Partner Center: HTTP {response.status_code}",
                RemoteErrorDetails.from_response(response),
            )
        cart_id = self._json(response, "create cart").get("id")
        if not cart_id:
            raise RemoteRejection(
                "Invalid cart response from Partner Center",
                RemoteErrorDetails.from_response(response),
            )

        response = self._request(
            "POST",
            f"{self.base_url}/customers/{account_ref}/carts/{cart_id}/checkout",
            operation="checkout",
            timeout=self.config.checkout_timeout,
            headers=headers,
        )
        if not response.ok:
            raise RemoteRejection(
                f"Failed to checkout cart in Partner Center: HTTP {response.status_code}",
                RemoteErrorDetails.from_response(response),
            )
        data = self._json(response, "checkout")

        if "code" in data:
            raise RemoteRejection(
                f"Failed to checkout cart in Partner Center: HTTP {response.status_code}",
                RemoteErrorDetails.from_response(response),
            )

        order_errors = data.get("orderErrors") or []
        if order_errors:
            raise RemoteRejection(
                "Partner Center rejected the order",
                RemoteErrorDetails.from_order_error(order_errors[0], response),
            )

        orders = data.get("orders") or []
        line_items = (orders[0].get("lineItems") or []) if orders else []
        if not line_items:
            raise RemoteRejection(
                f"No line items found in checkout response. Orders: {len(orders)}, LineItems: {len(line_items)}",
                RemoteErrorDetails.from_response(response),
            )

        line = line_items[0]
        subscription_id = line.get("subscriptionId")
        if not subscription_id:
            raise RemoteRejection(
                "Checkout response has no subscription id",
                RemoteErrorDetails.from_response(response),
            )

        logger.info(
            "remote_subscription_created",
            extra={
                "subscription_id": subscription_id,
                "correlation_id": response.headers.get("MS-CorrelationId"),
            },
        )
        return CreatedSubscription(
            subscription_id=subscription_id,
            cart_id=cart_id,
            offer_id=line.get("offerId"),
            term_duration=line.get("termDuration"),
            transaction_type=line.get("transactionType"),
            friendly_name=line.get("friendlyName"),
            quantity=line.get("quantity"),
            list_price=_to_decimal((line.get("pricing") or {}).get("listPrice")),
        )

    def list_subscriptions(self, account_ref: str) -> list[CreatedSubscription]:
        """List the subscriptions the account already owns."""
        response = self._request(
            "GET",
            f"{self.base_url}/customers/{account_ref}/subscriptions",
            operation="list subscriptions",
            timeout=self.config.create_cart_timeout,
            headers=self._auth_headers(),
        )
        if not response.ok:
            raise RemoteRejection(
                f"Failed to list subscriptions in Partner Center: HTTP {response.status_code}",
                RemoteErrorDetails.from_response(response),
            )
        items = self._json(response, "list subscriptions").get("items") or []
        if not isinstance(items, list):
            raise RemoteRejection(
                "Malformed list subscriptions response from Partner Center",
                RemoteErrorDetails.from_response(response),
            )
        subscriptions = []
        for item in items:
            if not isinstance(item, dict) or not item.get("id"):
                continue
            try:
                created_at = _parse_creation_date(item.get("creationDate"))
            except (TypeError, ValueError) as e:
                raise RemoteRejection(
                    f"Malformed creationDate for subscription {item['id']}: {e}",
                    RemoteErrorDetails.from_response(response),
                ) from e
            subscriptions.append(CreatedSubscription(
                subscription_id=item["id"],
                offer_id=item.get("offerId"),
                term_duration=item.get("termDuration"),
                friendly_name=item.get("friendlyName"),
                quantity=item.get("quantity"),
                created_at=created_at,
            ))
        return subscriptions

    def set_spending_budget(self, account_ref: str, amount: Decimal) -> None:
        """Set the Azure usage budget of the account."""
        response = self._request(
            "PATCH",
            f"{self.base_url}/customers/{account_ref}/usagebudget",
            operation="usage budget",
            timeout=self.config.budget_timeout,
            json={"Amount": float(amount), "Attributes": {"ObjectType": "SpendingBudget"}},
            headers=self._auth_headers(),
        )
        if not response.ok:
            raise RemoteRejection(
                f"Failed to set usage budget in Partner Center: HTTP {response.status_code}",
                RemoteErrorDetails.from_response(response),
            )


class FakePartnerCenterClient:
    """Offline stand-in used when fake mode is enabled."""

    def create_subscription(
        self,
        account_ref: str,
        catalog_item_id: str,
        quantity: int,
        term: TermParams,
    ) -> CreatedSubscription:
        subscription = CreatedSubscription(
            subscription_id=f"fake-sub-{uuid4().hex[:12]}",
            cart_id=f"fake-cart-{uuid4().hex[:12]}",
            offer_id=catalog_item_id,
            term_duration=term.term_duration,
            transaction_type="New",
            quantity=quantity,
        )
        logger.info(
            "fake_subscription_created",
            extra={"subscription_id": subscription.subscription_id},
        )
        return subscription

    def list_subscriptions(self, account_ref: str) -> list[CreatedSubscription]:
        return []

    def set_spending_budget(self, account_ref: str, amount: Decimal) -> None:
        logger.info("fake_spending_budget_set", extra={"status": str(amount)})


def build_platform_client(config: ProvisioningConfig) -> PlatformClient:
    if config.fake_mode:
        return FakePartnerCenterClient()
    return PartnerCenterClient(config)
