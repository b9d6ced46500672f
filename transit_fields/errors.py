"""Typed errors for transit-backed field encryption

Callers need to tell a transient outage (retried, then surfaced) apart from a
permanent problem with configuration, input or ciphertext. Every error carries
the HTTP status (when there was one) and whether the retry policy may try again.

Taxonomy:
- ConfigurationError: a required setting is missing or unusable
- TransitConnectionError: the transit service could not be reached (retryable)
- ServiceError: the transit service failed with a 5xx status (retryable)
- RequestError: the transit service rejected the request with a 4xx status
- ValidationError: invalid options or call, raised before any network attempt
"""

from typing import List, Optional


class TransitError(Exception):
    """Base error for everything raised by transit_fields"""

    retryable = False

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        errors: Optional[List[str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.errors = errors or []

    def to_dict(self) -> dict:
        data = {
            "error": type(self).__name__,
            "message": self.message,
            "retryable": self.retryable,
        }
        if self.status_code is not None:
            data["status_code"] = self.status_code
        if self.errors:
            data["errors"] = list(self.errors)
        return data


class ConfigurationError(TransitError):
    """A required setting is missing; fix configuration before retrying"""


class TransitConnectionError(TransitError):
    """Transport-level failure reaching the transit service"""

    retryable = True


class ServiceError(TransitError):
    """Transit service internal failure (5xx)"""

    retryable = True


class RequestError(TransitError):
    """Transit service rejected the request (4xx): bad ciphertext, missing context, unknown key"""


class ValidationError(TransitError):
    """Invalid combination of options or arguments"""


class UnknownSerializerError(ValidationError):
    """No codec is registered under the requested name"""

    def __init__(self, name, valid_names: List[str]):
        super().__init__(
            f"Unknown serializer {name!r}. Valid serializers are: "
            + ", ".join(repr(n) for n in sorted(valid_names))
        )
        self.name = name


def is_retryable(error: BaseException) -> bool:
    """True for connection failures and 5xx service errors only"""
    return isinstance(error, TransitError) and error.retryable
