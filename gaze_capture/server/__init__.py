"""
Upload server module.

Receives captured frames over HTTP and writes them to the blob store.
"""

from .app import UploadService, create_app
from .storage import StoreSettings, SupabaseStorage

__all__ = ["UploadService", "create_app", "StoreSettings", "SupabaseStorage"]
