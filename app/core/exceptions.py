class CustomerServiceError(Exception):
    """Base class for failures raised by the customer services."""


class ValidationError(CustomerServiceError, ValueError):
    """Caller-supplied data violates a precondition."""


class NotFoundError(CustomerServiceError, ValueError):
    """The referenced customer does not exist."""


class StoreError(CustomerServiceError):
    """The document store call failed."""


class StorageError(CustomerServiceError):
    """The blob storage call failed."""
