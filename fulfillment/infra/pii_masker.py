"""
PII masking for log output.
"""
import re
from typing import Any

PHONE_RE = re.compile(r'^[\d\s\+\-\(\)]+$')
UUID_RE = re.compile(
    r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$', re.I
)

PII_KEYS = {"email", "phone", "recipient", "customer_id", "remote_customer_id"}


def mask_email(email: str) -> str:
    """Mask the local part of an email address."""
    if "@" not in email:
        return email
    local, domain = email.split("@", 1)
    if len(local) <= 2:
        masked = "**"
    else:
        masked = local[:2] + "*" * (len(local) - 2)
    return f"{masked}@{domain}"


def mask_phone(phone: str) -> str:
    """Keep the first and last two digits of a phone number."""
    if len(phone) <= 4:
        return "*" * len(phone)
    return phone[:2] + "*" * (len(phone) - 4) + phone[-2:]


def mask_uuid(uuid_str: str) -> str:
    """Show only the first 8 chars of a UUID."""
    if len(uuid_str) < 8:
        return "*" * len(uuid_str)
    return uuid_str[:8] + "-****-****-****-************"


def mask_recipient(recipient: str) -> str:
    """Mask an email address or phone number used as a notification target."""
    if "@" in recipient:
        return mask_email(recipient)
    return mask_phone(recipient)


def mask_value(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    if "@" in value:
        return mask_email(value)
    if UUID_RE.match(value):
        return mask_uuid(value)
    if PHONE_RE.match(value):
        return mask_phone(value)
    return value


def mask_pii_in_dict(data: dict) -> dict:
    """Mask PII values in a dictionary recursively."""
    masked = {}
    for key, value in data.items():
        if isinstance(value, dict):
            masked[key] = mask_pii_in_dict(value)
        elif isinstance(value, list):
            masked[key] = [
                mask_pii_in_dict(item) if isinstance(item, dict) else item
                for item in value
            ]
        elif key.lower() in PII_KEYS:
            masked[key] = mask_value(value)
        else:
            masked[key] = value
    return masked
