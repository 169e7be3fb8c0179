"""
Certificate verifier exceptions.

Collaborator failures carry an error code from ErrorCode. Clients convert
them into TRANSPORT_ERROR lookup results; they never reach API callers.
"""

from .api_models import ErrorCode


class CertVerifyError(Exception):
    """Base exception for verifier operations.

    Carries an error code that maps to ErrorCode constants.
    """

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


class CollaboratorError(CertVerifyError):
    """A collaborator service could not answer a lookup."""


class TransportError(CollaboratorError):
    """Network-level failure talking to a collaborator.

    Used when:
    - Request timed out
    - Connection refused or reset
    - Non-404 HTTP error status
    """

    def __init__(self, service: str, message: str):
        code = (
            ErrorCode.UNIVERSITY_SERVICE_UNAVAILABLE
            if service == "university-service"
            else ErrorCode.CERTIFICATE_SERVICE_UNAVAILABLE
        )
        self.service = service
        super().__init__(code, f"{service}: {message}")


class MalformedResponseError(CollaboratorError):
    """Collaborator answered, but not with a usable record.

    Used when:
    - Body is not JSON
    - Envelope is not an object
    - Record is missing required fields or has an unknown status
    """

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(ErrorCode.COLLABORATOR_RESPONSE_INVALID, f"{service}: {message}")


class BulkLimitExceededError(CertVerifyError):
    """Bulk request larger than the configured maximum."""

    def __init__(self, size: int, limit: int):
        super().__init__(
            ErrorCode.BULK_LIMIT_EXCEEDED,
            f"Maximum {limit} certificates can be verified at once (got {size})",
        )


class RateLimitExceededError(CertVerifyError):
    """Client used up its request quota for the current window.

    ``retry_after`` is the number of whole seconds until the oldest counted
    request leaves the window.
    """

    def __init__(self, message: str, retry_after: int):
        self.retry_after = retry_after
        super().__init__(ErrorCode.RATE_LIMIT_EXCEEDED, message)
