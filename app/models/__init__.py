"""SQLAlchemy models."""

from app.models.base import Base
from app.models.custom_event import CustomEvent
from app.models.customer import Customer
from app.models.order import Order, OrderItem
from app.models.product import Product
from app.models.store import DEFAULT_SYNC_SETTINGS, Store, SyncStatus

__all__ = [
    # Base
    "Base",
    # Store
    "Store",
    "SyncStatus",
    "DEFAULT_SYNC_SETTINGS",
    # Mirrored records
    "Customer",
    "Product",
    "Order",
    "OrderItem",
    # Analytics side channel
    "CustomEvent",
]
