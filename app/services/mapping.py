"""Mapping of Shopify resource JSON to local model fields."""

from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from app.core.exceptions import MappingError


# Numeric(12, 2) columns hold at most 10 integer digits
MAX_AMOUNT = Decimal(10) ** 10


def parse_decimal(value: Any) -> Decimal:
    """Parse a monetary/numeric field, defaulting to zero when absent.

    Raises MappingError for non-numeric, non-finite or out-of-range values.
    """
    if value is None or value == "":
        return Decimal("0")
    try:
        amount = Decimal(str(value))
    except InvalidOperation as e:
        raise MappingError(f"Invalid numeric value: {value!r}") from e
    if not amount.is_finite() or abs(amount) >= MAX_AMOUNT:
        raise MappingError(f"Numeric value out of range: {value!r}")
    return amount


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a platform ISO-8601 timestamp."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError as e:
        raise MappingError(f"Invalid timestamp: {value!r}") from e
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def split_tags(value: Any) -> list[str]:
    """Split a comma-separated tag string into trimmed tags."""
    if not value:
        return []
    if isinstance(value, list):
        return [str(t).strip() for t in value if str(t).strip()]
    return [t.strip() for t in str(value).split(",") if t.strip()]


def external_id(data: dict[str, Any], key: str = "id") -> int:
    """Read a required platform id."""
    try:
        return int(data[key])
    except (KeyError, TypeError, ValueError) as e:
        raise MappingError(f"Record has no valid {key!r}: {data.get(key)!r}") from e


def parse_int(value: Any, default: int | None = 0) -> int | None:
    """Parse an integer field (counts, ids), falling back to default when absent."""
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise MappingError(f"Invalid integer: {value!r}") from e


def _as_dict(data: Any) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise MappingError(f"Expected an object, got {type(data).__name__}")
    return data


def _string(value: Any) -> str | None:
    return None if value is None else str(value)


def map_customer(store_id: UUID, data: dict[str, Any]) -> dict[str, Any]:
    """Map a Shopify customer JSON to Customer fields."""
    data = _as_dict(data)
    return {
        "store_id": store_id,
        "external_id": external_id(data),
        "email": data.get("email"),
        "first_name": data.get("first_name"),
        "last_name": data.get("last_name"),
        "phone": data.get("phone"),
        "state": data.get("state"),
        "note": data.get("note"),
        "accepts_marketing": bool(data.get("accepts_marketing")),
        "verified_email": bool(data.get("verified_email")),
        "tax_exempt": bool(data.get("tax_exempt")),
        "total_spent": parse_decimal(data.get("total_spent")),
        "orders_count": parse_int(data.get("orders_count")),
        "tags": split_tags(data.get("tags")),
        "default_address": data.get("default_address"),
        "platform_created_at": parse_timestamp(data.get("created_at")),
        "platform_updated_at": parse_timestamp(data.get("updated_at")),
        "synced_at": datetime.now(UTC),
    }


def map_product(store_id: UUID, data: dict[str, Any]) -> dict[str, Any]:
    """Map a Shopify product JSON to Product fields."""
    data = _as_dict(data)
    return {
        "store_id": store_id,
        "external_id": external_id(data),
        "title": data.get("title") or "",
        "body_html": data.get("body_html"),
        "handle": data.get("handle"),
        "vendor": data.get("vendor"),
        "product_type": data.get("product_type"),
        "status": data.get("status"),
        "published_scope": data.get("published_scope"),
        "tags": split_tags(data.get("tags")),
        "variants": data.get("variants") or [],
        "options": data.get("options") or [],
        "images": data.get("images") or [],
        "image": data.get("image"),
        "platform_created_at": parse_timestamp(data.get("created_at")),
        "platform_updated_at": parse_timestamp(data.get("updated_at")),
        "synced_at": datetime.now(UTC),
    }


def map_order(store_id: UUID, data: dict[str, Any], customer_id: UUID | None) -> dict[str, Any]:
    """Map a Shopify order JSON to Order fields.

    customer_id is the already-resolved local customer id, not the
    platform's.
    """
    data = _as_dict(data)
    return {
        "store_id": store_id,
        "customer_id": customer_id,
        "external_id": external_id(data),
        "order_number": _string(data.get("order_number")),
        "name": data.get("name"),
        "email": data.get("email"),
        "phone": data.get("phone"),
        "financial_status": data.get("financial_status"),
        "fulfillment_status": data.get("fulfillment_status"),
        "currency": data.get("currency") or "USD",
        "total_price": parse_decimal(data.get("total_price")),
        "subtotal_price": parse_decimal(data.get("subtotal_price")),
        "total_tax": parse_decimal(data.get("total_tax")),
        "total_discounts": parse_decimal(data.get("total_discounts")),
        "total_weight": parse_decimal(data.get("total_weight")),
        "taxes_included": bool(data.get("taxes_included")),
        "confirmed": bool(data.get("confirmed")),
        "test": bool(data.get("test")),
        "tags": split_tags(data.get("tags")),
        "note": data.get("note"),
        "source_name": data.get("source_name"),
        "referring_site": data.get("referring_site"),
        "landing_site": data.get("landing_site"),
        "cancel_reason": data.get("cancel_reason"),
        "shipping_address": data.get("shipping_address"),
        "billing_address": data.get("billing_address"),
        "customer_data": data.get("customer"),
        "shipping_lines": data.get("shipping_lines") or [],
        "discount_codes": data.get("discount_codes") or [],
        "processed_at": parse_timestamp(data.get("processed_at")),
        "cancelled_at": parse_timestamp(data.get("cancelled_at")),
        "closed_at": parse_timestamp(data.get("closed_at")),
        "platform_created_at": parse_timestamp(data.get("created_at")),
        "platform_updated_at": parse_timestamp(data.get("updated_at")),
        "synced_at": datetime.now(UTC),
    }


def map_order_item(order_id: UUID, data: dict[str, Any], product_id: UUID | None) -> dict[str, Any]:
    """Map a Shopify line item JSON to OrderItem fields."""
    data = _as_dict(data)
    return {
        "order_id": order_id,
        "product_id": product_id,
        "external_id": external_id(data),
        "variant_id": parse_int(data.get("variant_id"), None),
        "title": data.get("title"),
        "variant_title": data.get("variant_title"),
        "name": data.get("name"),
        "sku": data.get("sku"),
        "vendor": data.get("vendor"),
        "quantity": parse_int(data.get("quantity")),
        "price": parse_decimal(data.get("price")),
        "total_discount": parse_decimal(data.get("total_discount")),
        "grams": parse_int(data.get("grams"), None),
        "fulfillment_status": data.get("fulfillment_status"),
        "requires_shipping": bool(data.get("requires_shipping", True)),
        "taxable": bool(data.get("taxable", True)),
        "gift_card": bool(data.get("gift_card")),
        "properties": data.get("properties") or [],
        "tax_lines": data.get("tax_lines") or [],
        "synced_at": datetime.now(UTC),
    }
