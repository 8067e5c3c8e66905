"""
Blob store access through the Supabase client.

The upload server only lists buckets and creates objects; objects are never
read back or overwritten.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

import httpx
from supabase import Client, StorageException, create_client

from gaze_capture import constants as const
from gaze_capture.errors import ConfigurationMissing, StoreWriteFailed


@dataclass(frozen=True)
class StoreSettings:
    """Store endpoint and secret key, read from the environment per request."""
    url: str
    secret_key: str

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "StoreSettings":
        """
        Raises:
            ConfigurationMissing: if the URL or the key is unset or empty
        """
        environ = os.environ if environ is None else environ
        url = (environ.get(const.STORE_URL_ENV) or "").strip()
        secret_key = (environ.get(const.STORE_KEY_ENV) or "").strip()
        if not url or not secret_key:
            raise ConfigurationMissing(
                "Store configuration missing",
                details={'hasUrl': bool(url), 'hasKey': bool(secret_key)},
            )
        return cls(url=url.rstrip('/'), secret_key=secret_key)


class SupabaseStorage:
    """
    Wraps a Supabase client's storage API and converts its failures into
    `StoreWriteFailed`.
    """

    def __init__(self, client: Client):
        self.client = client
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_settings(cls, settings: StoreSettings) -> "SupabaseStorage":
        return cls(create_client(settings.url, settings.secret_key))

    def list_buckets(self) -> List[Dict[str, Any]]:
        """
        Returns:
            One {'id', 'name'} dict per bucket

        Raises:
            StoreWriteFailed: if the store rejects the call or cannot be reached
        """
        try:
            buckets = self.client.storage.list_buckets()
        except StorageException as e:
            raise _store_error(e)
        except httpx.HTTPError as e:
            raise StoreWriteFailed(f"Error listing buckets: {e}", details={'errorName': type(e).__name__})

        return [{'id': bucket.id, 'name': bucket.name} for bucket in buckets]

    def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str = const.JPEG_CONTENT_TYPE,
        upsert: bool = False
    ) -> Dict[str, Any]:
        """
        Create an object. With upsert=False an existing object at `path` is
        rejected by the store rather than overwritten.

        Returns:
            Store metadata: path and fullPath

        Raises:
            StoreWriteFailed: if the store rejects the write or cannot be reached
        """
        file_options = {
            'content-type': content_type,
            'upsert': 'true' if upsert else 'false',
        }
        try:
            response = self.client.storage.from_(bucket).upload(path, data, file_options)
        except StorageException as e:
            raise _store_error(e)
        except httpx.HTTPError as e:
            raise StoreWriteFailed(str(e), details={'errorName': type(e).__name__})

        self.logger.debug(f"Created {bucket}/{path} ({len(data)} bytes)")
        return {'path': response.path, 'fullPath': response.full_path}


def _store_error(error: StorageException) -> StoreWriteFailed:
    """Convert the client's error payload ({statusCode, error, message}) into a StoreWriteFailed."""
    payload = error.args[0] if error.args and isinstance(error.args[0], dict) else {}
    message = payload.get('message') or payload.get('error') or str(error)
    return StoreWriteFailed(
        str(message),
        details={
            'errorName': payload.get('error', 'StorageApiError'),
            'statusCode': str(payload.get('statusCode', '')),
        },
    )
