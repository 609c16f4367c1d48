"""Pydantic schemas for client-side analytics events."""

from typing import Any
from uuid import UUID

from pydantic import Field

from app.schemas.common import BaseSchema


class CustomEventCreate(BaseSchema):
    """A custom event posted by storefront code.

    Field names are camelCase on the wire; snake_case is accepted too.
    """

    store_id: UUID = Field(alias="storeId")
    event_type: str = Field(alias="eventType", min_length=1, max_length=100)
    event_name: str = Field(alias="eventName", min_length=1, max_length=255)
    event_data: dict[str, Any] = Field(default_factory=dict, alias="eventData")
    properties: dict[str, Any] = Field(default_factory=dict)
    context: dict[str, Any] = Field(default_factory=dict)
    traits: dict[str, Any] = Field(default_factory=dict)
    session_id: str | None = Field(default=None, alias="sessionId")
    user_id: str | None = Field(default=None, alias="userId")
    anonymous_id: str | None = Field(default=None, alias="anonymousId")
    customer_id: UUID | None = Field(default=None, alias="customerId")
    url: str | None = None
    referrer: str | None = None


class CustomEventResponse(BaseSchema):
    """Acknowledgement of a recorded event."""

    status: str
    id: UUID
