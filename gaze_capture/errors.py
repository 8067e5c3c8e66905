"""
Error taxonomy for the capture wizard and the upload server.

Server-side failures are raised as `CaptureError` subclasses and converted to
JSON responses at the HTTP boundary. Capture-side failures are reported as
`CaptureOutcome` values carrying an `ErrorKind`; nothing is retried.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    INVALID_INPUT = "InvalidInput"
    CONFIGURATION_MISSING = "ConfigurationMissing"
    STORE_WRITE_FAILED = "StoreWriteFailed"
    CAMERA_UNAVAILABLE = "CameraUnavailable"
    ENCODING_FAILED = "EncodingFailed"
    NETWORK_FAILURE = "NetworkFailure"
    UPLOAD_REJECTED = "UploadRejected"
    INTERNAL_ERROR = "InternalError"


class CaptureError(Exception):
    """Base class for all gaze capture errors"""

    kind: ErrorKind = ErrorKind.INTERNAL_ERROR
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {'error': self.message, 'kind': self.kind.value}
        payload.update(self.details)
        return payload


class InvalidInput(CaptureError):
    kind = ErrorKind.INVALID_INPUT
    status_code = 400


class ConfigurationMissing(CaptureError):
    kind = ErrorKind.CONFIGURATION_MISSING
    status_code = 500


class StoreWriteFailed(CaptureError):
    kind = ErrorKind.STORE_WRITE_FAILED
    status_code = 500


class CameraUnavailable(CaptureError):
    kind = ErrorKind.CAMERA_UNAVAILABLE


class EncodingFailed(CaptureError):
    kind = ErrorKind.ENCODING_FAILED

