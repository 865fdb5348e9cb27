"""Exception classes."""

from __future__ import annotations


class CurveUnavailableError(RuntimeError):
    """
    Raised when the SECP224R1 curve cannot be used by the cryptographic backend.

    Without the curve, no key can be derived and no report can be decrypted,
    so this error aborts a whole batch.
    """


class ReportDecryptionError(RuntimeError):
    """Base class for errors that prevent a single location report from being decrypted."""


class MalformedPayloadError(ReportDecryptionError):
    """Raised when a report payload has an unexpected length or cannot be parsed."""


class AuthenticationFailureError(ReportDecryptionError):
    """
    Raised when the AES-GCM authentication tag of a report does not verify.

    This usually means the report was decrypted with the wrong key.
    """


class NoDecryptionBackendError(ReportDecryptionError):
    """Raised when none of the configured AES-GCM backends could decrypt a report."""


class ReportStoreError(RuntimeError):
    """Base class for errors that occur while querying the report store."""


class UnauthorizedError(ReportStoreError):
    """Raised when the report store rejects the provided credentials (HTTP 401)."""


class EndpointNotFoundError(ReportStoreError):
    """Raised when the report store endpoint does not exist (HTTP 404)."""


class RequestTimeoutError(ReportStoreError):
    """Raised when the report store does not respond before the request timeout."""


class BackendError(ReportStoreError):
    """Raised when the report store answers with an unexpected HTTP status."""

    def __init__(self, status: int, body: str) -> None:
        """Initialize the error with the HTTP status code and response body."""
        super().__init__(f"HTTP {status}: {body}")

        self.status = status
        self.body = body


class UnhandledProtocolError(ReportStoreError):
    """
    Raised when the report store returns a response that cannot be understood.

    For example: a successful status code with a body that is not a JSON object.
    """
