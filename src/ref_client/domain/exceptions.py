from enum import Enum


class StatusCode(str, Enum):
    """Transport-level failure kinds reported by the backend or the transport itself."""
    UNKNOWN = "UNKNOWN"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    FAILED_PRECONDITION = "FAILED_PRECONDITION"
    UNAVAILABLE = "UNAVAILABLE"
    DEADLINE_EXCEEDED = "DEADLINE_EXCEEDED"
    INTERNAL = "INTERNAL"


class RefClientException(Exception):
    """Base exception for all ref client errors."""
    pass

class ConfigurationError(RefClientException):
    """Raised when required settings are missing or malformed."""
    pass

class InvalidArgumentError(RefClientException, ValueError):
    """Raised for malformed caller input (bad sort key, malformed ref name)."""
    pass

class InvalidRefError(RefClientException):
    """Raised when the backend semantically rejects a ref mutation."""
    pass

class BackendUnavailableError(RefClientException):
    """Raised when the transport could not complete the round trip."""
    def __init__(self, code: StatusCode, details: str = ""):
        self.code = code
        self.details = details
        super().__init__(f"{code.value}: {details}" if details else code.value)

class ProtocolMismatchError(RefClientException):
    """Raised when the backend answers with a status this client does not know."""
    pass
