"""
Error kinds raised by the delivery pipeline.

Every error is terminal for the invocation: the pipeline surfaces the first
one it meets and the entry point logs it and exits non-zero. No partial
request is ever sent.
"""

from typing import Optional


class MdaError(Exception):
    """Base class for all pipeline failures."""
    pass


# ============================================================================
# Configuration and Input
# ============================================================================

class ConfigurationError(MdaError):
    """Raised when required process configuration is missing or invalid."""
    pass


class NoHeadersError(MdaError):
    """Raised when the input bytes do not parse as a MIME message."""
    pass


class MalformedHeaderValueError(MdaError):
    """Raised when the API key or a content-type is not a valid header value."""
    pass


# ============================================================================
# Header and Address Errors
# ============================================================================

class InvalidFromError(MdaError):
    """Raised when From is missing, a group, a list, or lacks an email."""
    pass


class MissingHeaderError(MdaError):
    """Raised when Subject or To is absent or empty."""

    def __init__(self, message: str, header: Optional[str] = None):
        super().__init__(message)
        self.header = header


class TooManyHeadersError(MdaError):
    """Raised when Subject or Reply-To occurs more often than allowed."""

    def __init__(self, message: str, header: Optional[str] = None):
        super().__init__(message)
        self.header = header


# ============================================================================
# DKIM Errors
# ============================================================================

class NoSenderDomainError(MdaError):
    """Raised when the sender email has no domain after an '@'."""

    def __init__(self, message: str, email: str):
        super().__init__(f"{message}: {email!r}")
        self.email = email


class NoDkimForDomainError(MdaError):
    """Raised when no readable key exists for the sender domain."""

    def __init__(self, message: str, domain: str, location: Optional[str] = None):
        detail = location or domain
        super().__init__(f"{message}: {detail}")
        self.domain = domain
        self.location = location


class DkimKeyDecodeError(MdaError):
    """Raised when a key file lacks the expected PEM header or footer."""

    def __init__(self, message: str, location: str):
        super().__init__(f"{message}: {location}")
        self.location = location


# ============================================================================
# Content Errors
# ============================================================================

class AttachmentIssueError(MdaError):
    """Raised for an attachment without filename or a body without content-type."""

    def __init__(self, message: str, filename: Optional[str] = None):
        super().__init__(message)
        self.filename = filename


class InvalidUtf8Error(MdaError):
    """Raised when a body or header value cannot be decoded."""

    def __init__(self, message: str, content_type: Optional[str] = None, header: Optional[str] = None):
        super().__init__(message)
        self.content_type = content_type
        self.header = header


class SerializationError(MdaError):
    """Raised when the outbound request cannot be encoded as JSON."""
    pass


# ============================================================================
# Delivery Errors
# ============================================================================

class TransportError(MdaError):
    """Raised on network or TLS failure while talking to the provider."""
    pass


class ApiError(MdaError):
    """Raised when the provider answers with a non-success status."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"provider returned status {status_code}: {body}")
        self.status_code = status_code
        self.body = body
