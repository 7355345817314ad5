"""
Error taxonomy for the ingestion and management API.

Every terminal error carries the HTTP status it maps to and a human-readable
message. The app-level exception handler renders them as {"message": ..., **extra}.
"""
from typing import Any, Optional


class MonitorFlowError(Exception):
    """Base class for all errors surfaced to API callers."""
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"message": self.message, **self.extra}


class AuthError(MonitorFlowError):
    status_code = 401
    default_message = "Unauthorized"


class MissingNotificationAddressError(MonitorFlowError):
    status_code = 403
    default_message = "Please enter your discord ID in your account settings"


class PlanLimitError(MonitorFlowError):
    status_code = 403
    default_message = "Plan limit reached. Please upgrade your plan."


class MalformedRequestError(MonitorFlowError):
    status_code = 400
    default_message = "Invalid JSON request body"


class ValidationError(MonitorFlowError):
    status_code = 422
    default_message = "Invalid request"


class NotFoundError(MonitorFlowError):
    status_code = 404
    default_message = "Not found"


class ConflictError(MonitorFlowError):
    status_code = 409
    default_message = "Resource already exists"


class QuotaExceededError(MonitorFlowError):
    status_code = 429
    default_message = "Monthly quota reached. Please upgrade your plan for more events"


class RateLimitedError(MonitorFlowError):
    status_code = 429
    default_message = "Too many requests. Please try again later."


class TransportError(MonitorFlowError):
    """Outbound delivery failed. Non-fatal for webhooks, fatal for the notification channel."""
    status_code = 502
    default_message = "Delivery failed"


class PersistenceError(MonitorFlowError):
    status_code = 500
    default_message = "Internal server error"


class DeliveryFinalizationError(PersistenceError):
    """Notification or quota finalization failed. The event persists in FAILED state."""
    default_message = "Failed to deliver event to Discord"

    def __init__(self, event_id: str, error: str, message: Optional[str] = None):
        self.event_id = event_id
        self.error = error
        super().__init__(message, eventId=event_id, error=error)


def format_validation_errors(errors: list[dict]) -> str:
    """Flatten pydantic error dicts into one readable message."""
    messages = []
    for error in errors:
        msg = error.get("msg", "Invalid value")
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        loc = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(messages)
