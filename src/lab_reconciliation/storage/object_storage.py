# ============================================================================
# src/lab_reconciliation/storage/object_storage.py
# ============================================================================
"""
Local Object Storage

Write-once storage for the original document bytes, laid out as
<root>/<account_id>/<timestamp>_<document id prefix>_<file_name>. Objects are never
overwritten. The presentation layer gets short-lived signed URLs:

    <PUBLIC_BASE_URL>/<path>?expires=<unix>&signature=<hmac-sha256 hex>
"""

import hashlib
import hmac
import re
import time
from pathlib import Path
from typing import Optional
from urllib.parse import quote
import logging

from ..config.base_config import BaseSettingsConfig, base_settings
from ..utils.exceptions import ObjectExistsError, ObjectStorageError

logger = logging.getLogger(__name__)

_UNSAFE_NAME_RE = re.compile(r'[^A-Za-z0-9._-]+')


def safe_file_name(file_name: str) -> str:
    """Strip directories and characters that do not belong in a path segment."""
    name = Path(file_name or "document").name
    name = _UNSAFE_NAME_RE.sub('_', name).strip('._')
    return name or "document"


class LocalObjectStorage:

    def __init__(
        self,
        root: Optional[Path] = None,
        signing_secret: Optional[str] = None,
        public_base_url: Optional[str] = None,
        settings: Optional[BaseSettingsConfig] = None,
    ):
        settings = settings or base_settings
        self.root = Path(root or settings.STORAGE_DIR)
        self.signing_secret = (signing_secret or settings.STORAGE_SIGNING_SECRET).encode("utf-8")
        self.public_base_url = (public_base_url or settings.PUBLIC_BASE_URL).rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    def object_path(self, account_id: str, file_name: str, timestamp_ms: int, document_id: str) -> str:
        # document id prefix keeps same-name uploads in one millisecond apart
        return f"{account_id}/{timestamp_ms}_{document_id[:8]}_{safe_file_name(file_name)}"

    def _resolve(self, path: str) -> Path:
        full = (self.root / path).resolve()
        if self.root.resolve() not in full.parents:
            raise ObjectStorageError(f"Path escapes storage root: {path}")
        return full

    def upload(self, path: str, data: bytes) -> str:
        """Store bytes at path. Raises ObjectExistsError if the path is taken."""
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(target, "xb") as f:
                f.write(data)
        except FileExistsError as e:
            raise ObjectExistsError(f"Object already exists: {path}") from e
        except OSError as e:
            raise ObjectStorageError(f"Upload failed for {path}: {e}") from e

        logger.debug(f"Stored {len(data)} bytes at {path}")
        return path

    def read(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return target.read_bytes()
        except FileNotFoundError as e:
            raise ObjectStorageError(f"Object not found: {path}") from e

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def _signature(self, path: str, expires: int) -> str:
        message = f"{path}:{expires}".encode("utf-8")
        return hmac.new(self.signing_secret, message, hashlib.sha256).hexdigest()

    def signed_url(self, path: str, expires_in: int, now: Optional[float] = None) -> str:
        now = time.time() if now is None else now
        expires = int(now) + int(expires_in)
        signature = self._signature(path, expires)
        return f"{self.public_base_url}/{quote(path)}?expires={expires}&signature={signature}"

    def verify_signature(self, path: str, expires: int, signature: str, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        if now > expires:
            return False
        return hmac.compare_digest(self._signature(path, int(expires)), signature)
