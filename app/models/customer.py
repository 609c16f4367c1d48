"""Customer model mirrored from Shopify."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, JSONType

if TYPE_CHECKING:
    from app.models.order import Order
    from app.models.store import Store


class Customer(Base):
    """A customer of a connected store.

    Identified within its store by the platform's customer id.
    """

    __tablename__ = "customers"

    store_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("stores.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    external_id: Mapped[int] = mapped_column(BigInteger, nullable=False)

    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    first_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    state: Mapped[str | None] = mapped_column(String(50), nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    accepts_marketing: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    verified_email: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    tax_exempt: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    total_spent: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        default=Decimal("0"),
        nullable=False,
    )
    orders_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    tags: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    default_address: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    # Platform timestamps, carried through as supplied
    platform_created_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    platform_updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Last time this row was written by a sync or webhook
    synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    store: Mapped["Store"] = relationship("Store", back_populates="customers")
    orders: Mapped[list["Order"]] = relationship("Order", back_populates="customer")

    __table_args__ = (
        UniqueConstraint("store_id", "external_id", name="uq_customers_store_external_id"),
    )

    def __repr__(self) -> str:
        return f"<Customer {self.email} ({self.external_id})>"
