"""Error taxonomy for the agent app and admin portal.

Capture components never raise these past their public methods; they report
them through an ``error`` attribute instead. The submission, mutation and
queue helpers raise them for the UI layer to render.
"""

import enum
from typing import Any, Optional


class PropertyClientError(Exception):
    """Base class for every client-side failure."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PropertyClientError):
    """Detected before any network call; attributable to one draft field."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class DeviceErrorKind(str, enum.Enum):
    UNSUPPORTED = "UNSUPPORTED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    POSITION_UNAVAILABLE = "POSITION_UNAVAILABLE"
    TIMEOUT = "TIMEOUT"
    DEVICE_NOT_FOUND = "DEVICE_NOT_FOUND"
    OTHER = "OTHER"
    UNKNOWN = "UNKNOWN"


class DeviceError(PropertyClientError):
    """Camera or location hardware / permission failure."""

    def __init__(self, kind: DeviceErrorKind, message: str):
        super().__init__(message)
        self.kind = kind


class NetworkError(PropertyClientError):
    """Transport failure: no response was received."""


class ServerError(PropertyClientError):
    """Non-2xx response or an envelope with ``success: false``."""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class NotFoundError(ServerError):
    pass


class AuthError(PropertyClientError):
    """401/403. Routed to re-authentication rather than a retry banner."""

    def __init__(self, message: str, status_code: int = 401):
        super().__init__(message)
        self.status_code = status_code


class ForbiddenError(AuthError):
    def __init__(self, message: str):
        super().__init__(message, status_code=403)
