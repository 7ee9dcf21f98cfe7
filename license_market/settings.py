"""
Django settings for license_market project.
"""
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def env_list(name: str, default: str = "") -> list[str]:
    """Read a comma-separated environment variable as a list."""
    raw = os.environ.get(name, default)
    return [part.strip() for part in raw.split(",") if part.strip()]


def env_bool(name: str, default: bool = False) -> bool:
    return os.environ.get(name, str(default)).lower() in ("true", "1", "yes")


SECRET_KEY = os.environ.get("SECRET_KEY", "django-insecure-license-market-dev-key")

DEBUG = env_bool("DEBUG", True)

ALLOWED_HOSTS = env_list("ALLOWED_HOSTS", "*")

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "fulfillment.apps.FulfillmentConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
]

ROOT_URLCONF = "license_market.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

ASGI_APPLICATION = "license_market.asgi.application"

if os.environ.get("POSTGRES_DB"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.environ["POSTGRES_DB"],
            "USER": os.environ.get("POSTGRES_USER", "postgres"),
            "PASSWORD": os.environ.get("POSTGRES_PASSWORD", "postgres"),
            "HOST": os.environ.get("POSTGRES_HOST", "localhost"),
            "PORT": os.environ.get("POSTGRES_PORT", "5432"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

USE_TZ = True
TIME_ZONE = "UTC"

EMAIL_BACKEND = os.environ.get(
    "EMAIL_BACKEND", "django.core.mail.backends.smtp.EmailBackend"
)
EMAIL_HOST = os.environ.get("EMAIL_HOST", "localhost")
EMAIL_PORT = int(os.environ.get("EMAIL_PORT", "25"))
DEFAULT_FROM_EMAIL = os.environ.get("DEFAULT_FROM_EMAIL", "marketplace@localhost")

# Provisioning engine
FULFILLMENT = {
    "PARTNER_CENTER_BASE_URL": os.environ.get(
        "PARTNER_CENTER_BASE_URL", "https://api.partnercenter.microsoft.com/v1"
    ),
    "CREDENTIALS_URL": os.environ.get("PARTNER_CENTER_CREDENTIALS_URL", ""),
    "TOKEN_TIMEOUT": int(os.environ.get("PARTNER_CENTER_TOKEN_TIMEOUT", "60")),
    "CREATE_CART_TIMEOUT": int(os.environ.get("PARTNER_CENTER_CREATE_CART_TIMEOUT", "120")),
    "CHECKOUT_TIMEOUT": int(os.environ.get("PARTNER_CENTER_CHECKOUT_TIMEOUT", "180")),
    "BUDGET_TIMEOUT": int(os.environ.get("PARTNER_CENTER_BUDGET_TIMEOUT", "90")),
    "TOKEN_MAX_RETRIES": int(os.environ.get("PARTNER_CENTER_MAX_RETRIES", "3")),
    "TOKEN_RETRY_DELAY": float(os.environ.get("PARTNER_CENTER_RETRY_DELAY", "2")),
    "FAKE_MODE": env_bool("PARTNER_CENTER_FAKE_MODE", False),
    "STALE_PROCESSING_MINUTES": int(os.environ.get("STALE_PROCESSING_MINUTES", "10")),
    "SPENDING_BUDGET_FACTOR": os.environ.get("SPENDING_BUDGET_FACTOR", "0.86"),
    "NOTIFICATION_EMAILS": env_list("FULFILLMENT_NOTIFICATION_EMAILS"),
    "EMAIL_FROM": os.environ.get("FULFILLMENT_EMAIL_FROM", DEFAULT_FROM_EMAIL),
    "WHATSAPP_NUMBERS": env_list("WHATSAPP_NOTIFICATION_NUMBERS"),
    "WHATSAPP_GRAPH_TOKEN": os.environ.get("WHATSAPP_GRAPH_TOKEN", ""),
    "WHATSAPP_PHONE_ID": os.environ.get("WHATSAPP_PHONE_ID", ""),
    "WHATSAPP_API_URL": os.environ.get("WHATSAPP_API_URL", "https://graph.facebook.com/v18.0"),
    "WHATSAPP_TEMPLATE": os.environ.get("WHATSAPP_TEMPLATE", ""),
    "WHATSAPP_TEMPLATE_LANGUAGE": os.environ.get("WHATSAPP_TEMPLATE_LANGUAGE", "es"),
    "WHATSAPP_TIMEOUT": int(os.environ.get("WHATSAPP_TIMEOUT", "30")),
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "json": {"()": "fulfillment.utils.logging.JsonFormatter"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "json"},
    },
    "loggers": {
        "fulfillment": {
            "handlers": ["console"],
            "level": os.environ.get("FULFILLMENT_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}
