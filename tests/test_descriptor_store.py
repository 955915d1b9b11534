"""Tests for DescriptorStore adapters.

Tests cover:
- InMemoryDescriptorStore
- FileDescriptorStore (atomic writes, key layout, root escape)
- DavDescriptorStore against httpx.MockTransport
- build_descriptor_store selection
"""

import httpx
import pytest
from servicectl.clients.descriptor_store import (
    DavDescriptorStore,
    FileDescriptorStore,
    InMemoryDescriptorStore,
    build_descriptor_store,
)
from servicectl.config import ServicectlConfig
from servicectl.errors import DescriptorStoreError


class TestInMemoryDescriptorStore:
    """Tests for InMemoryDescriptorStore."""

    def test_upload_list_delete(self):
        store = InMemoryDescriptorStore()
        store.upload("services/db.json", b"{}")
        store.upload("bindings/web-db", b"")
        assert store.list() == ["bindings/web-db", "services/db.json"]
        assert store.exists("services/db.json")
        assert store.get("services/db.json") == b"{}"

        store.delete("services/db.json")
        store.delete("services/db.json")
        assert store.list() == ["bindings/web-db"]
        assert not store.exists("services/db.json")

    def test_context_manager_returns_store(self):
        with InMemoryDescriptorStore() as store:
            store.upload("services/db.json", b"{}")
        assert store.exists("services/db.json")


class TestFileDescriptorStore:
    """Tests for FileDescriptorStore."""

    def test_upload_creates_nested_file(self, tmp_path):
        store = FileDescriptorStore(tmp_path / "blobs")
        store.upload("services/db.json", b'{"a":1}')
        assert (tmp_path / "blobs" / "services" / "db.json").read_bytes() == b'{"a":1}'
        assert not (tmp_path / "blobs" / "services" / "db.json.tmp").exists()

    def test_list_is_sorted_posix_keys(self, tmp_path):
        store = FileDescriptorStore(tmp_path)
        store.upload("services/b.json", b"")
        store.upload("services/a.json", b"")
        store.upload("bindings/web-a", b"")
        assert store.list() == ["bindings/web-a", "services/a.json", "services/b.json"]

    def test_list_missing_root(self, tmp_path):
        assert FileDescriptorStore(tmp_path / "nope").list() == []

    def test_overwrite(self, tmp_path):
        store = FileDescriptorStore(tmp_path)
        store.upload("services/db.json", b"old")
        store.upload("services/db.json", b"new")
        assert (tmp_path / "services" / "db.json").read_bytes() == b"new"

    def test_delete_and_exists(self, tmp_path):
        store = FileDescriptorStore(tmp_path)
        store.upload("services/db.json", b"")
        assert store.exists("services/db.json")
        store.delete("services/db.json")
        store.delete("services/db.json")
        assert not store.exists("services/db.json")

    def test_key_cannot_escape_root(self, tmp_path):
        store = FileDescriptorStore(tmp_path / "blobs")
        with pytest.raises(DescriptorStoreError, match="escapes"):
            store.upload("../outside.json", b"")

    def test_write_failure_is_store_error(self, tmp_path):
        root = tmp_path / "blobs"
        root.mkdir()
        (root / "services").write_text("not a directory")
        store = FileDescriptorStore(root)
        with pytest.raises(DescriptorStoreError, match="Failed to write"):
            store.upload("services/db.json", b"")


PROPFIND_BODY = b"""<?xml version="1.0" encoding="utf-8"?>
<D:multistatus xmlns:D="DAV:">
  <D:response><D:href>/blobs/</D:href></D:response>
  <D:response><D:href>/blobs/services/</D:href></D:response>
  <D:response><D:href>/blobs/services/db.json</D:href></D:response>
  <D:response><D:href>http://blobs.example.io:8444/blobs/services/cache.json</D:href></D:response>
  <D:response><D:href>/blobs/bindings/web-db</D:href></D:response>
</D:multistatus>
"""


class FakeDav:
    """Minimal WebDAV server for httpx.MockTransport."""

    def __init__(self, propfind_status=207):
        self.requests = []
        self.blobs = {}
        self.propfind_status = propfind_status

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.method == "PROPFIND":
            return httpx.Response(self.propfind_status, content=PROPFIND_BODY)
        if request.method == "PUT":
            self.blobs[path] = request.content
            return httpx.Response(201)
        if request.method == "DELETE":
            return httpx.Response(204 if self.blobs.pop(path, None) is not None else 404)
        if request.method == "HEAD":
            return httpx.Response(200 if path in self.blobs else 404)
        return httpx.Response(405)


def make_dav_store(server, **kwargs):
    return DavDescriptorStore(
        "http://blobs.example.io:8444",
        transport=httpx.MockTransport(server),
        **kwargs,
    )


class TestDavDescriptorStore:
    """Tests for DavDescriptorStore."""

    def test_list_parses_multistatus(self):
        server = FakeDav()
        store = make_dav_store(server)
        assert store.list() == ["bindings/web-db", "services/cache.json", "services/db.json"]

        request = server.requests[0]
        assert request.method == "PROPFIND"
        assert request.headers["Depth"] == "infinity"
        assert request.url.path == "/blobs/"

    def test_list_missing_collection(self):
        assert make_dav_store(FakeDav(propfind_status=404)).list() == []

    def test_list_error_status(self):
        with pytest.raises(DescriptorStoreError, match="PROPFIND failed: 500"):
            make_dav_store(FakeDav(propfind_status=500)).list()

    def test_upload_exists_delete(self):
        server = FakeDav()
        store = make_dav_store(server)
        store.upload("services/db.json", b'{"x":1}')
        assert server.blobs["/blobs/services/db.json"] == b'{"x":1}'
        assert store.exists("services/db.json")

        store.delete("services/db.json")
        assert not store.exists("services/db.json")
        # missing key is not an error
        store.delete("services/db.json")

    def test_basic_auth(self):
        server = FakeDav()
        store = make_dav_store(server, username="user", password="pass")
        store.upload("bindings/web-db", b"")
        assert server.requests[0].headers["Authorization"].startswith("Basic ")

    def test_upload_rejected(self):
        store = make_dav_store(lambda request: httpx.Response(403, text="forbidden"))
        with pytest.raises(DescriptorStoreError, match="PUT services/db.json failed: 403"):
            store.upload("services/db.json", b"")

    def test_transport_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        store = make_dav_store(refuse)
        with pytest.raises(DescriptorStoreError, match="connection refused"):
            store.list()

    def test_context_manager_closes_client(self):
        server = FakeDav()
        with make_dav_store(server) as store:
            store.upload("bindings/web-db", b"")
            assert not store._client.is_closed
        assert store._client.is_closed
        assert server.requests[0].method == "PUT"


class TestBuildDescriptorStore:
    """Tests for build_descriptor_store."""

    def test_memory(self, tmp_path):
        config = ServicectlConfig(blob_store={"type": "memory"}, home=tmp_path)
        assert isinstance(build_descriptor_store(config), InMemoryDescriptorStore)

    def test_file_defaults_under_home(self, tmp_path):
        config = ServicectlConfig(blob_store={"type": "file"}, home=tmp_path)
        store = build_descriptor_store(config)
        assert isinstance(store, FileDescriptorStore)
        assert store.root == tmp_path / "blobs"

    def test_dav_credentials_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SERVICECTL_BLOB_USERNAME", "envuser")
        monkeypatch.setenv("SERVICECTL_BLOB_PASSWORD", "envpass")
        config = ServicectlConfig(blob_store={"type": "dav", "url": "http://blobs:8444/"}, home=tmp_path)
        store = build_descriptor_store(config)
        assert isinstance(store, DavDescriptorStore)
        assert store.base_url == "http://blobs:8444"
        store.close()

    def test_dav_requires_url(self, tmp_path):
        config = ServicectlConfig(blob_store={"type": "dav"}, home=tmp_path)
        with pytest.raises(ValueError, match="url"):
            build_descriptor_store(config)

    def test_unknown_type(self, tmp_path):
        config = ServicectlConfig(blob_store={"type": "s3"}, home=tmp_path)
        with pytest.raises(ValueError, match="Unknown blob_store type"):
            build_descriptor_store(config)
