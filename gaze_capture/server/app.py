"""
Flask upload server.

    GET  /upload-status   liveness check
    POST /upload          multipart {label, image} -> stored at {user_id}/{label}/{epoch_ms}.jpg

Every failure is converted into a JSON response carrying a machine-readable
`kind`; nothing propagates out of a request handler.
"""

import logging
import re
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

from flask import Flask, jsonify, request

from gaze_capture import constants as const
from gaze_capture.errors import CaptureError, ErrorKind, InvalidInput, StoreWriteFailed
from gaze_capture.server.storage import StoreSettings, SupabaseStorage


StoreFactory = Callable[[StoreSettings], Any]

# One path segment: no separators, no dots
LABEL_PATTERN = re.compile(r"[A-Za-z0-9_-]+")


class UploadService:
    """
    Validates an upload and writes it to the blob store.

    Store credentials are read from the environment on every call, so the
    server starts (and answers with a configuration error) without them.
    """

    def __init__(
        self,
        store_factory: StoreFactory = SupabaseStorage.from_settings,
        bucket: str = const.DEFAULT_BUCKET,
        user_id: str = const.DEFAULT_USER_ID,
        clock: Callable[[], float] = time.time,
        environ: Optional[Mapping[str, str]] = None
    ):
        self.store_factory = store_factory
        self.bucket = bucket
        self.user_id = user_id
        self.clock = clock
        self.environ = environ
        self.logger = logging.getLogger(__name__)

    def object_path(self, label: str) -> str:
        timestamp = int(self.clock() * 1000)
        return f"{self.user_id}/{label}/{timestamp}.jpg"

    def handle(self, label: Optional[str], image: Optional[bytes]) -> Dict[str, Any]:
        """
        Store one image.

        Returns:
            Success payload with the object filename and store metadata

        Raises:
            InvalidInput: label or image missing/empty, or label not a single path segment
            ConfigurationMissing: store URL or key not configured
            StoreWriteFailed: bucket missing or write rejected
        """
        self.logger.debug(f"Received upload request: hasImage={bool(image)} size={len(image) if image else 0} label={label!r}")

        if not image or not label:
            self.logger.error(f"Missing image or label: hasImage={bool(image)} label={label!r}")
            raise InvalidInput("Missing image or label")

        if not LABEL_PATTERN.fullmatch(label):
            self.logger.error(f"Rejected label {label!r}")
            raise InvalidInput("Invalid label", details={'label': label})

        settings = StoreSettings.from_env(self.environ)
        store = self.store_factory(settings)

        self._check_bucket(store)

        filename = self.object_path(label)
        try:
            data = store.upload(self.bucket, filename, image, content_type=const.JPEG_CONTENT_TYPE, upsert=False)
        except StoreWriteFailed as e:
            self.logger.error(f"Store upload error for {filename}: {e.message}")
            e.details.setdefault('filename', filename)
            raise

        self.logger.info(f"Stored {filename} ({len(image)} bytes)")
        return {'success': True, 'filename': filename, 'data': data}

    def _check_bucket(self, store):
        """Fail early with a helpful message if the bucket does not exist. Listing errors are only logged."""
        try:
            buckets = store.list_buckets()
        except StoreWriteFailed as e:
            self.logger.warning(f"Error listing buckets: {e.message}")
            return

        names = [bucket.get('name') for bucket in buckets]
        if self.bucket not in names:
            self.logger.error(f"Bucket '{self.bucket}' not found. Available buckets: {names}")
            raise StoreWriteFailed(
                f"Storage bucket '{self.bucket}' not found. Please create it in the store dashboard.",
                details={'availableBuckets': names},
            )


def create_app(service: Optional[UploadService] = None) -> Flask:
    """Create the upload server application."""
    app = Flask(__name__)
    service = service or UploadService()
    logger = logging.getLogger(__name__)

    @app.get("/upload-status")
    def upload_status():
        return jsonify({
            'message': "Upload route is working",
            'timestamp': datetime.now(timezone.utc).isoformat(),
        }), 200

    @app.post("/upload")
    def upload():
        try:
            image_file = request.files.get("image")
            label = request.form.get("label")
            image = image_file.read() if image_file is not None else None
            return jsonify(service.handle(label, image)), 200
        except CaptureError as e:
            return jsonify(e.to_dict()), e.status_code
        except Exception as e:
            logger.error(f"Error in upload route: {e}", exc_info=True)
            return jsonify({
                'error': "Internal server error",
                'kind': ErrorKind.INTERNAL_ERROR.value,
                'message': str(e),
            }), 500

    return app
