"""
cards/blob.py -- Blob storage collaborator for uploaded card files.

The card repository only persists the durable URL a blob store hands back.
Two backends share one small interface:

  LocalBlobStore -- writes bytes under a directory on disk; asgi.py mounts that
      directory so the returned URL is servable. Used in development and when
      no remote token is configured.

  HttpBlobStore  -- PUTs bytes to a Vercel-Blob-compatible HTTP API with a
      bearer token and returns the URL from the JSON response.

build_blob_store() picks the backend from Settings.

Object names are "<random prefix>/<sanitised filename>" so two uploads with
the same filename never overwrite each other.
"""

from __future__ import annotations

import logging
import re
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

import requests

from core.config import Settings

logger = logging.getLogger("profiledash.blob")

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class BlobStoreError(Exception):
    """The blob backend could not store the object."""


@dataclass
class StoredBlob:
    url: str
    pathname: str
    size: int
    content_type: Optional[str] = None


class BlobStore(Protocol):
    def put(self, name: str, data: bytes, content_type: Optional[str] = None) -> StoredBlob: ...

    def is_configured(self) -> bool: ...


def safe_filename(name: str) -> str:
    """Reduce a client-supplied filename to a single safe path segment."""
    base = name.replace("\\", "/").rsplit("/", 1)[-1]
    cleaned = _UNSAFE_CHARS.sub("_", base).strip("._")
    return cleaned or "file"


def _object_path(name: str) -> str:
    return f"{secrets.token_hex(8)}/{safe_filename(name)}"


# ---------------------------------------------------------------------------
# Local filesystem backend
# ---------------------------------------------------------------------------


class LocalBlobStore:
    """Stores blobs under root and returns URLs under base_url."""

    def __init__(self, root: str | Path, base_url: str = "/files") -> None:
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def is_configured(self) -> bool:
        return True

    def put(self, name: str, data: bytes, content_type: Optional[str] = None) -> StoredBlob:
        pathname = _object_path(name)
        target = self.root / pathname
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise BlobStoreError(f"Could not write {pathname}: {exc}") from exc
        logger.info("Stored blob %s (%d bytes) on local disk", pathname, len(data))
        return StoredBlob(
            url=f"{self.base_url}/{pathname}",
            pathname=pathname,
            size=len(data),
            content_type=content_type,
        )


# ---------------------------------------------------------------------------
# Remote HTTP backend
# ---------------------------------------------------------------------------


class HttpBlobStore:
    """Client for a Vercel-Blob-style API: PUT {api_url}/{pathname} -> {"url": ...}."""

    def __init__(self, api_url: str, token: str, timeout: float = 30.0) -> None:
        self.api_url = api_url.rstrip("/")
        self._token = token
        self.timeout = timeout
        self._session = requests.Session()
        # Uploads go to one known host; a long redirect chain is never legitimate.
        self._session.max_redirects = 3

    def is_configured(self) -> bool:
        return bool(self._token)

    def put(self, name: str, data: bytes, content_type: Optional[str] = None) -> StoredBlob:
        if not self._token:
            raise BlobStoreError("Blob storage token is not configured.")
        pathname = _object_path(name)
        headers = {
            "Authorization": f"Bearer {self._token}",
            "x-api-version": "7",
            "x-content-type": content_type or "application/octet-stream",
        }
        try:
            resp = self._session.put(
                f"{self.api_url}/{pathname}",
                data=data,
                headers=headers,
                params={"access": "public"},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            payload = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Blob upload failed for %s: %s", pathname, exc)
            raise BlobStoreError(f"Blob upload failed: {exc}") from exc

        url = payload.get("url")
        if not url:
            raise BlobStoreError("Blob API response did not include a URL.")
        logger.info("Stored blob %s (%d bytes) remotely", payload.get("pathname", pathname), len(data))
        return StoredBlob(
            url=url,
            pathname=payload.get("pathname", pathname),
            size=len(data),
            content_type=payload.get("contentType", content_type),
        )


def build_blob_store(settings: Settings) -> BlobStore:
    """Remote store when a token is configured, local directory otherwise."""
    if settings.blob_read_write_token:
        return HttpBlobStore(settings.blob_api_url, settings.blob_read_write_token)
    return LocalBlobStore(settings.upload_dir, settings.upload_base_url)
