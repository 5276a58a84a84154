"""
Error taxonomy for notification delivery.

Every failure the client core can surface is one of these. Callers branch on
the class (or ``code``) to decide what to render; ``retryable`` tells them
whether trying again without user or admin action can help.

  Unsupported         no push transport on this device      permanent
  PermissionDenied    user declined the permission prompt   until changed out-of-band
  ServiceUnavailable  registry has no VAPID key configured  after admin config
  NetworkFailure      transport error, timeout, 5xx         transient
  InvalidKeyFormat    server key is not URL-safe base64     fatal to one subscribe
  RegistryError       registry rejected the request (4xx)   depends on status
"""


class NotificationError(Exception):
    code = "notification_error"
    retryable = False

    def __init__(self, message: str = "", *, cause: BaseException | None = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        self.cause = cause

    def __str__(self) -> str:
        return self.message


class Unsupported(NotificationError):
    code = "unsupported"


class PermissionDenied(NotificationError):
    code = "permission_denied"


class ServiceUnavailable(NotificationError):
    code = "service_unavailable"
    retryable = True


class NetworkFailure(NotificationError):
    code = "network_failure"
    retryable = True


class InvalidKeyFormat(NotificationError):
    code = "invalid_key_format"


class RegistryError(NotificationError):
    """The registry answered with a non-success status that is not a 503."""

    code = "registry_error"

    def __init__(self, message: str = "", *, status_code: int, cause: BaseException | None = None) -> None:
        super().__init__(message, cause=cause)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.status_code >= 500


def as_notification_error(exc: BaseException) -> NotificationError:
    """Wrap anything that is not already typed as a transient failure."""
    if isinstance(exc, NotificationError):
        return exc
    return NetworkFailure(str(exc) or exc.__class__.__name__, cause=exc)
