"""
HTTP client that submits captured frames to the upload server.

Best effort, no retry: every call returns an `UploadResult` and never raises
for transport or server errors.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

from gaze_capture import constants as const
from gaze_capture.errors import ErrorKind


@dataclass
class UploadResult:
    """Result of one upload attempt"""
    success: bool
    status_code: Optional[int] = None
    filename: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    message: str = ""
    data: Dict[str, Any] = field(default_factory=dict)


class UploadClient:
    """Posts `{label, image}` multipart payloads to the upload endpoint."""

    def __init__(
        self,
        url: str = const.DEFAULT_UPLOAD_URL,
        timeout: float = const.DEFAULT_UPLOAD_TIMEOUT,
        session: Optional[requests.Session] = None
    ):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = logging.getLogger(__name__)

    def submit(self, label: str, image: bytes, filename: str) -> UploadResult:
        """
        Upload one JPEG frame.

        Args:
            label: Direction label
            image: JPEG bytes
            filename: Client-side name for the multipart file part

        Returns:
            UploadResult describing the outcome
        """
        try:
            response = self.session.post(
                self.url,
                data={'label': label},
                files={'image': (filename, image, const.JPEG_CONTENT_TYPE)},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            self.logger.error(f"Error uploading image: {e}")
            return UploadResult(
                success=False,
                error_kind=ErrorKind.NETWORK_FAILURE,
                message=str(e),
            )

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if not response.ok:
            kind = _parse_kind(body.get('kind'))
            message = str(body.get('error') or response.reason or f"HTTP {response.status_code}")
            self.logger.error(f"Failed to upload image ({response.status_code}): {message}")
            return UploadResult(
                success=False,
                status_code=response.status_code,
                error_kind=kind,
                message=message,
                data=body,
            )

        return UploadResult(
            success=True,
            status_code=response.status_code,
            filename=body.get('filename'),
            data=body,
        )

    def close(self):
        self.session.close()


def _parse_kind(value: Any) -> ErrorKind:
    try:
        return ErrorKind(value)
    except ValueError:
        return ErrorKind.UPLOAD_REJECTED
