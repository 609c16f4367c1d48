"""Shopify webhook topics and HMAC verification."""

import base64
import enum
import hashlib
import hmac


class WebhookTopic(str, enum.Enum):
    """Webhook topics the ingester handles."""

    CUSTOMERS_CREATE = "customers/create"
    CUSTOMERS_UPDATE = "customers/update"
    PRODUCTS_CREATE = "products/create"
    PRODUCTS_UPDATE = "products/update"
    ORDERS_CREATE = "orders/create"
    ORDERS_UPDATED = "orders/updated"
    ORDERS_PAID = "orders/paid"
    ORDERS_CANCELLED = "orders/cancelled"


def verify_webhook(data: bytes, hmac_header: str | None, secret: str) -> bool:
    """Verify a Shopify webhook's HMAC-SHA256 signature.

    Args:
        data: The raw request body bytes.
        hmac_header: The X-Shopify-Hmac-Sha256 header value.
        secret: The shared webhook secret.

    Returns:
        True if the signature is valid. A missing header or an unset secret
        never verifies.
    """
    if not hmac_header or not secret:
        return False

    computed = base64.b64encode(
        hmac.new(
            secret.encode("utf-8"),
            data,
            hashlib.sha256,
        ).digest()
    ).decode("utf-8")

    return hmac.compare_digest(computed.encode("utf-8"), hmac_header.encode("utf-8"))
