"""Error taxonomy shared by the stores, the engine and the import pipeline.

Every error carries a stable ``code`` and a ``context`` dict so callers can
render a message without parsing strings. The API layer maps codes to HTTP
status codes; the scheduler logs and continues.
"""

from __future__ import annotations

from typing import Any


class PeopleFlowError(Exception):
    """Base class for all domain errors."""

    code = "INTERNAL"

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(message)


class NotFoundError(PeopleFlowError):
    """Raised when a referenced entity does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, key: Any):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} not found: {key}", entity=entity, key=str(key))


class InvalidInputError(PeopleFlowError):
    """Raised on a constraint violation; always names the offending field."""

    code = "INVALID"

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}", field=field)


class InvalidTransitionError(PeopleFlowError):
    """Raised when an invalid status transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, from_status=from_status, to_status=to_status)


class QuotaExceededError(PeopleFlowError):
    """Raised when approving a vacation would exceed the annual entitlement."""

    code = "QUOTA_EXCEEDED"

    def __init__(self, employee_id: Any, year: int, entitlement: Any, used: Any, requested: Any):
        self.employee_id = employee_id
        self.year = year
        self.entitlement = entitlement
        self.used = used
        self.requested = requested
        super().__init__(
            f"Vacation quota exceeded for {year}: "
            f"{used} used + {requested} requested > {entitlement} entitled",
            employee_id=str(employee_id),
            year=year,
            entitlement=str(entitlement),
            used=str(used),
            requested=str(requested),
        )


class ConflictError(PeopleFlowError):
    """Raised when an import key collides with an incompatible existing record."""

    code = "CONFLICT"


class ProviderAuthError(PeopleFlowError):
    """Raised when a provider rejects the stored credentials."""

    code = "AUTH"

    def __init__(self, provider: str, message: str = "authentication failed"):
        self.provider = provider
        super().__init__(f"{provider}: {message}", provider=provider)


class ProviderTransportError(PeopleFlowError):
    """Raised on remote I/O failure or an unparseable provider response."""

    code = "TRANSPORT"

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}", provider=provider)


class SyncCancelledError(PeopleFlowError):
    """Raised at a checkpoint when the running sync was asked to stop."""

    code = "CANCELLED"
