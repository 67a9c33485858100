"""
trackhound Errors - Failure taxonomy shared by normalizers and the orchestrator

Classification failures are booleans and "not found" is an empty result, so
neither appears here.
"""

from typing import Optional


class TrackingError(Exception):
    """Base class for every error raised by trackhound."""


class TrackingNumberMissingError(ValueError, TrackingError):
    """Raised when an empty tracking number is passed to ``track``."""

    def __init__(self, message: str = "Tracking number is not specified."):
        super().__init__(message)


class UnknownCarrierError(TrackingError):
    """No carrier was declared and none of the classifiers accepted the number."""

    def __init__(self, message: str = "Unknown carrier."):
        super().__init__(message)


class UnsupportedCarrierError(TrackingError):
    """The carrier has no fallback chain, or none of its providers is configured."""

    def __init__(self, carrier: str, reason: str = "is not supported"):
        self.carrier = carrier
        super().__init__(f"Carrier {carrier} {reason}.")


class ConfigurationError(TrackingError):
    """Raised when the configuration file is malformed."""


class TransportError(TrackingError):
    """
    Network failure, non-2xx response, malformed payload or timeout.

    Retried a bounded number of times, then treated as a fallback trigger.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        provider: Optional[str] = None,
    ):
        self.status_code = status_code
        self.provider = provider
        super().__init__(message)


class AuthenticationError(TransportError):
    """Credentials were rejected. Never retried."""
