"""Exceptions raised by the store synchronization engine."""


class StoreSyncError(Exception):
    """Base exception for sync engine errors."""

    default_message = "Store sync error"
    code = "sync_error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r})"


class WebhookSignatureError(StoreSyncError):
    """Raised when a webhook body does not match its HMAC header."""

    default_message = "Invalid webhook signature"
    code = "invalid_signature"


class CredentialError(StoreSyncError):
    """Raised when a store's access token is unusable or rejected by the platform."""

    default_message = "Store credentials are invalid or expired"
    code = "invalid_credentials"


class StoreNotFoundError(StoreSyncError):
    """Raised when a store cannot be resolved."""

    default_message = "Store not found"
    code = "store_not_found"


class SyncInProgressError(StoreSyncError):
    """Raised when a sync is requested for a store that is already syncing."""

    default_message = "A sync is already running for this store"
    code = "sync_in_progress"


class ShopifyAPIError(StoreSyncError):
    """Raised when the Shopify API is unreachable or answers with a non-2xx status."""

    default_message = "Shopify API request failed"
    code = "shopify_api_error"

    def __init__(self, message: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MappingError(StoreSyncError):
    """Raised when a platform record cannot be mapped to the local schema."""

    default_message = "Malformed platform record"
    code = "mapping_error"
