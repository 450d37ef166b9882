"""Exceptions raised by SafeCall itself.

Failures of wrapped operations are never raised; they come back as failed
``InvocationResult`` values. The exceptions here signal misuse of the library.
"""


class SafeCallError(Exception):
    """Base class for SafeCall errors."""

    pass


class ConfigurationError(SafeCallError):
    """Raised when a required collaborator is missing or misused."""

    pass
