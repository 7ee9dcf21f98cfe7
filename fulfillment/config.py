"""
Provisioning engine configuration.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from django.conf import settings


@dataclass(frozen=True)
class ProvisioningConfig:
    """Immutable settings handed to the engine components at construction."""
    partner_center_base_url: str = ""
    credentials_url: str = ""
    token_timeout: float = 60
    create_cart_timeout: float = 120
    checkout_timeout: float = 180
    budget_timeout: float = 90
    token_max_retries: int = 3
    token_retry_delay: float = 2.0
    fake_mode: bool = False
    stale_processing_after: timedelta = timedelta(minutes=10)
    spending_budget_factor: Decimal = Decimal("0.86")
    notification_emails: tuple[str, ...] = ()
    email_from: str = ""
    whatsapp_numbers: tuple[str, ...] = ()
    whatsapp_graph_token: str = ""
    whatsapp_phone_id: str = ""
    whatsapp_api_url: str = "https://graph.facebook.com/v18.0"
    whatsapp_template: str = ""
    whatsapp_template_language: str = "es"
    whatsapp_timeout: float = 30

    @classmethod
    def from_settings(cls) -> ProvisioningConfig:
        """Build the configuration from ``settings.FULFILLMENT``."""
        conf = getattr(settings, "FULFILLMENT", {})
        defaults = cls()
        return cls(
            partner_center_base_url=conf.get("PARTNER_CENTER_BASE_URL", "").rstrip("/"),
            credentials_url=conf.get("CREDENTIALS_URL", ""),
            token_timeout=conf.get("TOKEN_TIMEOUT", defaults.token_timeout),
            create_cart_timeout=conf.get("CREATE_CART_TIMEOUT", defaults.create_cart_timeout),
            checkout_timeout=conf.get("CHECKOUT_TIMEOUT", defaults.checkout_timeout),
            budget_timeout=conf.get("BUDGET_TIMEOUT", defaults.budget_timeout),
            token_max_retries=conf.get("TOKEN_MAX_RETRIES", defaults.token_max_retries),
            token_retry_delay=conf.get("TOKEN_RETRY_DELAY", defaults.token_retry_delay),
            fake_mode=bool(conf.get("FAKE_MODE", False)),
            stale_processing_after=timedelta(
                minutes=conf.get("STALE_PROCESSING_MINUTES", 10)
            ),
            spending_budget_factor=Decimal(
                str(conf.get("SPENDING_BUDGET_FACTOR", defaults.spending_budget_factor))
            ),
            notification_emails=tuple(conf.get("NOTIFICATION_EMAILS", ())),
            email_from=conf.get("EMAIL_FROM", "") or settings.DEFAULT_FROM_EMAIL,
            whatsapp_numbers=tuple(conf.get("WHATSAPP_NUMBERS", ())),
            whatsapp_graph_token=conf.get("WHATSAPP_GRAPH_TOKEN", ""),
            whatsapp_phone_id=conf.get("WHATSAPP_PHONE_ID", ""),
            whatsapp_api_url=conf.get("WHATSAPP_API_URL", defaults.whatsapp_api_url).rstrip("/"),
            whatsapp_template=conf.get("WHATSAPP_TEMPLATE", ""),
            whatsapp_template_language=conf.get(
                "WHATSAPP_TEMPLATE_LANGUAGE", defaults.whatsapp_template_language
            ),
            whatsapp_timeout=conf.get("WHATSAPP_TIMEOUT", defaults.whatsapp_timeout),
        )
