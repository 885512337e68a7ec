"""Custom exceptions for Mail Dispatcher.

This module defines the exception hierarchy used throughout the
mail_dispatcher package. Transport, routing and storage failures each
have their own type so callers can decide whether a failure ends a poll
task, becomes a failed outcome, or is simply logged.
"""


class MailDispatcherError(Exception):
    """Base exception for all Mail Dispatcher errors.

    Attributes:
        message: A human-readable description of the error.
    """

    def __init__(self, message: str = "An error occurred in Mail Dispatcher") -> None:
        """Initialize the exception with an optional message.

        Args:
            message: A description of the error that occurred.
        """
        self.message = message
        super().__init__(self.message)


class ConfigurationError(MailDispatcherError):
    """Raised when configuration is missing or contains invalid values."""

    def __init__(self, message: str = "Configuration error") -> None:
        super().__init__(message)


class MailConnectionError(MailDispatcherError):
    """Raised when a mailbox session cannot be opened or is lost.

    Retried with bounded attempts while reconnecting, then surfaced to the
    poll task that owns the transport.
    """

    def __init__(self, message: str = "Mail connection error") -> None:
        super().__init__(message)


class AuthError(MailDispatcherError):
    """Raised when the mail server rejects the configured credentials."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message)


class FetchError(MailDispatcherError):
    """Raised when selecting, searching or fetching the inbox fails.

    Never retried inside the transport; the next scheduled poll pass
    naturally tries again.
    """

    def __init__(self, message: str = "Mail fetch error") -> None:
        super().__init__(message)


class DeliveryError(MailDispatcherError):
    """Raised when a message cannot be re-delivered to its destination.

    Recorded as a failed outcome for the message and not retried.
    """

    def __init__(self, message: str = "Email delivery error") -> None:
        super().__init__(message)


class SubjectFormatError(MailDispatcherError):
    """Raised when a subject does not follow ``<keyword> - <targetName>``."""

    def __init__(self, message: str = "Subject must look like '<keyword> - <targetName>'") -> None:
        super().__init__(message)


class TargetNotFoundError(MailDispatcherError):
    """Raised when no forward target exists for a routing name.

    Attributes:
        name: The target name that could not be resolved.
    """

    def __init__(self, name: str) -> None:
        """Initialize the exception for a missing target.

        Args:
            name: The target name that could not be resolved.
        """
        self.name = name
        super().__init__(f"forward target not found: {name}")


class StoreError(MailDispatcherError):
    """Raised when the account directory or audit log store fails."""

    def __init__(self, message: str = "Store error") -> None:
        super().__init__(message)


class SchedulerStateError(MailDispatcherError):
    """Raised when the scheduler is asked to make an invalid state transition."""

    def __init__(self, message: str = "Invalid scheduler state transition") -> None:
        super().__init__(message)
