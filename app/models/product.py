"""Product model for synced Shopify products."""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import BigInteger, DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, JSONType

if TYPE_CHECKING:
    from app.models.store import Store


class Product(Base):
    """Product model synced from Shopify.

    Products are scoped to a store. external_id is the platform's product id
    and, together with store_id, the upsert key.
    """

    __tablename__ = "products"

    store_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("stores.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    external_id: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Product data
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    body_html: Mapped[str | None] = mapped_column(Text, nullable=True)
    handle: Mapped[str | None] = mapped_column(String(255), nullable=True)
    vendor: Mapped[str | None] = mapped_column(String(255), nullable=True)
    product_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    published_scope: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Arrays and JSON fields
    tags: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    variants: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list, nullable=False)
    options: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list, nullable=False)
    images: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list, nullable=False)
    image: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    platform_created_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    platform_updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Sync tracking
    synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    store: Mapped["Store"] = relationship("Store", back_populates="products")

    __table_args__ = (
        UniqueConstraint("store_id", "external_id", name="uq_products_store_external_id"),
    )

    def __repr__(self) -> str:
        return f"<Product {self.title} ({self.external_id})>"
