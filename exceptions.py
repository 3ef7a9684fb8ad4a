# pretext_sync/exceptions.py

class PretextError(Exception):
    """Base for every outcome that stops the pretext workflow."""
    kind = "ERROR"

    def __init__(self, message: str, *, orno: str | None = None, step: str | None = None):
        super().__init__(message)
        self.orno = orno
        self.step = step


class ValidationError(PretextError):
    """Required input missing or blank."""
    kind = "VALIDATION"


class NotFoundError(PretextError):
    """Order does not exist, or is deleted (status 90)."""
    kind = "NOT_FOUND"

    def __init__(self, message: str, *, variant: str = "not_found", **kw):
        super().__init__(message, **kw)
        self.variant = variant


class ConflictError(PretextError):
    """Delivery progress blocks the change. Reported as a warning, never escalated."""
    kind = "CONFLICT"


class ExternalServiceError(PretextError):
    """
    A CRS980MI transaction answered NOK or could not be reached. Keeps the
    transaction name, HTTP status and M3 messages for the run ledger and the
    failure email.
    """
    kind = "EXTERNAL_SERVICE"

    def __init__(
        self,
        message: str,
        *,
        api_transaction: str | None = None,
        api_status: int | None = None,
        api_messages: list | None = None,
        raw_response_text: str | None = None,
        **kw,
    ):
        super().__init__(message, **kw)
        self.api_transaction = api_transaction
        self.api_status = api_status
        self.api_messages = api_messages or []
        self.raw_response_text = raw_response_text


class LockError(PretextError):
    """OOHEAD row could not be locked, updated or committed."""
    kind = "LOCK"
