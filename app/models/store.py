"""Store model for connected Shopify shops."""

import enum
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import Boolean, DateTime, Enum, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, JSONType

if TYPE_CHECKING:
    from app.models.customer import Customer
    from app.models.order import Order
    from app.models.product import Product


class SyncStatus(str, enum.Enum):
    """Pull sync state of a store."""

    PENDING = "pending"
    SYNCING = "syncing"
    COMPLETED = "completed"
    FAILED = "failed"


DEFAULT_SYNC_SETTINGS: dict[str, Any] = {
    "sync_customers": True,
    "sync_products": True,
    "sync_orders": True,
    "sync_events": True,
    "auto_sync": True,
    "sync_interval_seconds": 3600,
}


def _default_settings() -> dict[str, Any]:
    return dict(DEFAULT_SYNC_SETTINGS)


class Store(Base):
    """A connected Shopify shop owned by a tenant.

    Each tenant can connect many stores. Customers, products and orders are
    mirrored per store and keyed by the platform's own ids. Stores are
    deactivated on disconnect, never deleted.
    """

    __tablename__ = "stores"

    # Owning tenant (managed outside this service)
    tenant_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )

    # Shop information
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    shop_domain: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
    )
    shop_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), default="UTC", nullable=False)

    # Encrypted Admin API access token
    access_token: Mapped[str] = mapped_column(Text, nullable=False)

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    # Sync tracking
    sync_status: Mapped[SyncStatus] = mapped_column(
        Enum(SyncStatus, name="sync_status", values_callable=lambda x: [e.value for e in x]),
        default=SyncStatus.PENDING,
        nullable=False,
    )
    last_sync_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    sync_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Per-resource toggles, auto_sync and sync_interval_seconds
    settings: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        default=_default_settings,
        nullable=False,
    )

    # Relationships
    customers: Mapped[list["Customer"]] = relationship(
        "Customer",
        back_populates="store",
        cascade="all, delete-orphan",
    )
    products: Mapped[list["Product"]] = relationship(
        "Product",
        back_populates="store",
        cascade="all, delete-orphan",
    )
    orders: Mapped[list["Order"]] = relationship(
        "Order",
        back_populates="store",
        cascade="all, delete-orphan",
    )

    @property
    def sync_settings(self) -> dict[str, Any]:
        """Persisted settings layered over the defaults."""
        return {**DEFAULT_SYNC_SETTINGS, **(self.settings or {})}

    def __repr__(self) -> str:
        return f"<Store {self.shop_domain} ({self.sync_status.value})>"
