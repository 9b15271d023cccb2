"""Error taxonomy shared by the services and the HTTP layer.

Every error raised on purpose by this code base is an ``AppError``. The HTTP
layer renders any ``AppError`` as ``{"error": message, "code": code, ...}``
with the class status code; anything else surfaces as a 500.
"""

from typing import Any


class AppError(Exception):
    """Base class for all expected failures."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def extra(self) -> dict[str, Any]:
        """Additional machine-readable fields for the JSON error body."""
        return {}

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.code, **self.extra()}


class ValidationError(AppError):
    """A required field is missing or malformed."""

    status_code = 400
    code = "validation_error"


class AuthError(AppError):
    """Missing or invalid bearer token. The message never names the subject."""

    status_code = 401
    code = "unauthorized"

    def __init__(self, message: str = "Invalid or missing token.") -> None:
        super().__init__(message)


class PermissionDeniedError(AppError):
    status_code = 403
    code = "forbidden"


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"


class QuotaExceededError(AppError):
    """A write would push a scope's character counter past its limit.

    Carries the exact integers so clients can render "X/Y characters used".
    """

    status_code = 402
    code = "quota_exceeded"

    def __init__(self, scope_label: str, used: int, limit: int, attempted: int, is_pro: bool = False, upgrade_hint: str = "") -> None:
        self.scope_label = scope_label
        self.used = used
        self.limit = limit
        self.attempted = attempted
        self.is_pro = is_pro
        message = (
            f"Adding this would exceed your {scope_label} limit. "
            f"Used: {used:,}/{limit:,} characters ({round(used / 5):,}/{round(limit / 5):,} words). "
            f"This upload: {attempted:,} characters ({round(attempted / 5):,} words)."
        )
        if upgrade_hint and not is_pro:
            message += f" {upgrade_hint}"
        super().__init__(message)

    def extra(self) -> dict[str, Any]:
        return {
            "scope": self.scope_label,
            "used": self.used,
            "limit": self.limit,
            "attempted": self.attempted,
            "isPro": self.is_pro,
        }


class ProjectLimitError(AppError):
    """The owner already has as many projects as the tier allows."""

    status_code = 402
    code = "project_limit_reached"

    def __init__(self, limit: int, current: int, is_pro: bool = False) -> None:
        self.limit = limit
        self.current = current
        message = f"You've reached your project limit ({limit})."
        if not is_pro:
            message += " Upgrade to Pro for more projects!"
        super().__init__(message)

    def extra(self) -> dict[str, Any]:
        return {"limit": self.limit, "current": self.current}


class OAuthError(AppError):
    """OAuth token-endpoint failure; ``code`` is the RFC 6749 error code."""

    status_code = 400

    def __init__(self, code: str, message: str | None = None) -> None:
        super().__init__(message or code)
        self.code = code


class SignatureError(AppError):
    status_code = 400
    code = "invalid_signature"


class UpstreamError(AppError):
    """An external collaborator (model provider, vector store, document store) failed."""

    status_code = 500
    code = "upstream_error"


class ExtractionError(UpstreamError):
    """An uploaded binary could not be turned into text."""

    code = "extraction_failed"
