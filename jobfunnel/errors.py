"""
Exception taxonomy for the job funnel.

Stage-internal failures are caught by the stage that owns them and turned
into zero contributions.  The exceptions below are the ones that either
end a run (``CreditDeniedError``, ``ProfileNotFoundError``), abort
construction (``ConfigurationError``) or carry enough context for the
caller to decide whether to retry (``MalformedResponseError``).
"""

from __future__ import annotations


class FunnelError(Exception):
    """Base class for all errors raised by jobfunnel."""


class ConfigurationError(FunnelError):
    """Raised when required configuration or environment values are missing or invalid."""


class RetryableError(FunnelError):
    """Marks an error as transient regardless of its message."""


class MalformedResponseError(FunnelError):
    """Model output could not be parsed as JSON or failed shape validation."""

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(message)
        # Keep a short excerpt only; model output can be very long
        self.raw = raw[:500]


class CreditDeniedError(FunnelError):
    """The billing collaborator refused the requested action."""

    def __init__(self, user_id: str, action: str) -> None:
        super().__init__(f"Insufficient credits for {action} (user {user_id})")
        self.user_id = user_id
        self.action = action


class ProfileNotFoundError(FunnelError):
    def __init__(self, profile_id: str) -> None:
        super().__init__(f"Profile not found: {profile_id}")
        self.profile_id = profile_id
