"""Hostwatch exceptions."""

from typing import Optional


class HostwatchException(Exception):
    """Base exception for Hostwatch operations."""

    pass


class HostwatchValidationException(HostwatchException):
    """Validation/bad request errors."""

    pass


class CredentialParseError(HostwatchValidationException):
    """A credential line could not be parsed.

    The message is complete on its own (it carries the 1-based line number
    of the original input and the expected shape), so callers can show
    ``str(exc)`` directly.
    """

    def __init__(self, line: int, reason: str):
        self.line = line
        self.reason = reason
        super().__init__(reason)


class CredentialFileError(HostwatchValidationException):
    """The credential file itself is unusable (wrong type, unreadable)."""

    pass


class HostNotFound(HostwatchException):
    """No host status exists for the given id."""

    pass


class ProbeError(HostwatchException):
    """A probe against a single target host failed."""

    pass


class ProbeTimeout(ProbeError):
    """A probe call exceeded its time budget."""

    pass


class ProbeRefused(ProbeError):
    """The target host refused the connection or rejected the login."""

    pass


class ProbeBackendError(ProbeError):
    """The probing backend answered, but with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class BackendUnavailable(HostwatchException):
    """The probing backend itself cannot be reached.

    Never reported against a host; the orchestrator answers it by running
    the whole operation on the simulator.
    """

    pass
