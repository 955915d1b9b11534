"""
DescriptorStore - flat key/value blob store for descriptors and bindings.

The store manages:
- services/<name>.json descriptors (written by create-service)
- bindings/<app>-<service> markers (written by bind-service)

Storage backends:
- In-memory (for testing)
- File-based (single host / development)
- WebDAV over HTTP (the platform's blob store)

Any transport failure surfaces as DescriptorStoreError. Nothing here retries.
"""

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Optional
from urllib.parse import quote, unquote, urlsplit
from xml.etree import ElementTree

import httpx

from servicectl.errors import DescriptorStoreError

if TYPE_CHECKING:
    from servicectl.config import ServicectlConfig

logger = logging.getLogger(__name__)

DAV_NAMESPACE = "{DAV:}"
BLOBS_PATH = "blobs"


class DescriptorStore(ABC):
    """
    Abstract base class for blob storage.

    Implementations must provide list, upload and delete. Stores are context
    managers; leaving the block calls close().
    """

    @abstractmethod
    def list(self) -> list[str]:
        """
        List every key in the store.

        Returns:
            Keys in ascending order
        """
        pass

    @abstractmethod
    def upload(self, key: str, content: bytes) -> None:
        """Create or replace the blob at `key`."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete the blob at `key`. Deleting a missing key is not an error."""
        pass

    def exists(self, key: str) -> bool:
        return key in self.list()

    def close(self) -> None:
        """Release any connection held by the store."""

    def __enter__(self) -> "DescriptorStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class InMemoryDescriptorStore(DescriptorStore):
    """In-memory store for testing."""

    def __init__(self, blobs: Optional[dict[str, bytes]] = None):
        self._blobs: dict[str, bytes] = dict(blobs or {})

    def list(self) -> list[str]:
        return sorted(self._blobs)

    def upload(self, key: str, content: bytes) -> None:
        self._blobs[key] = bytes(content)

    def delete(self, key: str) -> None:
        self._blobs.pop(key, None)

    def exists(self, key: str) -> bool:
        return key in self._blobs

    def get(self, key: str) -> Optional[bytes]:
        return self._blobs.get(key)


class FileDescriptorStore(DescriptorStore):
    """
    File-based store: one file per key under a root directory.

    Directory structure:
        {root}/
            services/
                db.json
            bindings/
                web-db
    """

    def __init__(self, root: Path | str):
        self._root = Path(root).expanduser()

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if self._root.resolve() not in path.parents:
            raise DescriptorStoreError(f"Key escapes store root: {key}")
        return path

    def list(self) -> list[str]:
        if not self._root.exists():
            return []
        try:
            return sorted(
                p.relative_to(self._root).as_posix()
                for p in self._root.rglob("*")
                if p.is_file()
            )
        except OSError as e:
            raise DescriptorStoreError(f"Failed to list {self._root}: {e}") from e

    def upload(self, key: str, content: bytes) -> None:
        path = self._path(key)
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(content)
            os.replace(tmp_path, path)
        except OSError as e:
            raise DescriptorStoreError(f"Failed to write {key}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise DescriptorStoreError(f"Failed to delete {key}: {e}") from e

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()


class DavDescriptorStore(DescriptorStore):
    """
    WebDAV-backed store.

    Keys live under {base_url}/blobs/. Listing uses PROPFIND with
    Depth: infinity; uploads are PUT, removals DELETE.

    Args:
        base_url: Blob store URL, e.g. "http://blobs.example.io:8444"
        username: Basic auth user (optional)
        password: Basic auth password (optional)
        timeout: Request timeout in seconds
        transport: httpx transport override (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        base_url: str,
        username: str | None = None,
        password: str | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        auth = (username, password or "") if username else None
        self._client = httpx.Client(
            base_url=self.base_url,
            auth=auth,
            timeout=timeout,
            transport=transport,
        )
        self._blobs_root = urlsplit(f"{self.base_url}/{BLOBS_PATH}/").path

    def _url(self, key: str) -> str:
        return f"/{BLOBS_PATH}/{quote(key)}"

    def _request(self, method: str, key: str, **kwargs) -> httpx.Response:
        try:
            return self._client.request(method, self._url(key), **kwargs)
        except httpx.HTTPError as e:
            raise DescriptorStoreError(f"{method} {key} failed: {e}") from e

    def list(self) -> list[str]:
        response = self._request("PROPFIND", "", headers={"Depth": "infinity"})
        if response.status_code == 404:
            return []
        if response.status_code != 207:
            raise DescriptorStoreError(
                f"PROPFIND failed: {response.status_code} {response.text}"
            )
        try:
            tree = ElementTree.fromstring(response.content)
        except ElementTree.ParseError as e:
            raise DescriptorStoreError(f"Malformed PROPFIND response: {e}") from e

        keys = []
        for href in tree.iter(f"{DAV_NAMESPACE}href"):
            path = unquote(urlsplit((href.text or "").strip()).path)
            if path.endswith("/") or not path.startswith(self._blobs_root):
                continue
            keys.append(path[len(self._blobs_root):])
        return sorted(keys)

    def upload(self, key: str, content: bytes) -> None:
        response = self._request("PUT", key, content=content)
        if response.status_code not in (200, 201, 204):
            raise DescriptorStoreError(
                f"PUT {key} failed: {response.status_code} {response.text}"
            )
        logger.debug(f"Uploaded {key} ({len(content)} bytes)")

    def delete(self, key: str) -> None:
        response = self._request("DELETE", key)
        if response.status_code not in (200, 202, 204, 404):
            raise DescriptorStoreError(
                f"DELETE {key} failed: {response.status_code} {response.text}"
            )

    def exists(self, key: str) -> bool:
        response = self._request("HEAD", key)
        if response.status_code == 404:
            return False
        if response.is_success:
            return True
        raise DescriptorStoreError(f"HEAD {key} failed: {response.status_code}")

    def close(self) -> None:
        self._client.close()


def build_descriptor_store(config: "ServicectlConfig") -> DescriptorStore:
    """
    Create the store selected by config.blob_store["type"].

    Raises:
        ValueError: If the type is unknown or required settings are missing
    """
    settings = config.blob_store
    store_type = settings.get("type", "file")

    if store_type == "memory":
        return InMemoryDescriptorStore()
    if store_type == "file":
        return FileDescriptorStore(settings.get("path") or config.home / "blobs")
    if store_type == "dav":
        url = settings.get("url")
        if not url:
            raise ValueError("blob_store.url is required for the dav store")
        return DavDescriptorStore(
            url,
            username=settings.get("username") or os.environ.get("SERVICECTL_BLOB_USERNAME"),
            password=settings.get("password") or os.environ.get("SERVICECTL_BLOB_PASSWORD"),
            timeout=float(settings.get("timeout", 30.0)),
        )
    raise ValueError(f"Unknown blob_store type: {store_type}. Expected memory, file or dav")
