"""Shared test fixtures and utilities."""

import http.client
import io
import json
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple

import pytest
import requests

from lfs_client.client import LfsClient
from lfs_client.config import ClientConfig
from lfs_client.local_cache import ObjectStore
from lfs_client.pointer import Pointer

REMOTE = "https://lfs.example.com/org/repo.git"
ENDPOINT = "https://lfs.example.com/org/repo.git/info/lfs/"
STORAGE = "https://storage.example.com"


def make_response(status: int, body: bytes = b"", url: str = "", headers: Optional[dict] = None) -> requests.Response:
    """Build a real requests.Response without a network."""
    resp = requests.Response()
    resp.status_code = status
    resp.url = url
    resp.reason = http.client.responses.get(status, "")
    resp.headers.update(headers or {})
    resp.encoding = "utf-8"
    resp._content = body
    resp._content_consumed = True
    resp.raw = io.BytesIO(body)
    return resp


@dataclass
class Call:
    """One HTTP request seen by the fake server."""
    method: str
    url: str
    headers: dict
    body: bytes = b""

    def json(self):
        return json.loads(self.body)


class FakeLfsServer(requests.Session):
    """In-process LFS server injected as the client's HTTP session.

    Stores objects by hex oid and records every request so tests can assert
    on what went over the wire.
    """

    def __init__(self):
        super().__init__()
        self.objects: Dict[str, bytes] = {}
        self.errors: Dict[str, Tuple[int, str]] = {}
        self.tampered: Set[str] = set()
        self.with_verify = False
        self.reverse_order = False
        self.batch_status = 200
        self.batch_body: Optional[bytes] = None
        self.network_down = False
        self.calls: List[Call] = []

    # ---- helpers for tests ----

    def add(self, content: bytes) -> Pointer:
        p = Pointer.from_content(content)
        self.objects[p.oid.hex] = content
        return p

    def calls_for(self, method: str, prefix: str = "") -> List[Call]:
        return [c for c in self.calls if c.method == method and c.url.startswith(prefix)]

    @property
    def batch_calls(self) -> List[Call]:
        return [c for c in self.calls if c.url.endswith("/objects/batch")]

    # ---- transport ----

    def request(self, method, url, headers=None, data=None, auth=None, timeout=None, stream=False, **kwargs):
        if self.network_down:
            raise requests.ConnectionError(f"connection refused: {url}")

        prepared = requests.Request(method, url, headers=headers, data=data, auth=auth).prepare()
        if hasattr(data, "read"):
            body = data.read()
        elif isinstance(data, str):
            body = data.encode("utf-8")
        else:
            body = data or b""
        self.calls.append(Call(method, url, dict(prepared.headers), body))

        if url == ENDPOINT + "objects/batch" and method == "POST":
            return self._batch(url, json.loads(body))
        if url.startswith(f"{STORAGE}/upload/") and method == "PUT":
            self.objects[url.rsplit("/", 1)[1]] = body
            return make_response(200, url=url)
        if url.startswith(f"{STORAGE}/objects/") and method == "GET":
            oid = url.rsplit("/", 1)[1]
            if oid not in self.objects:
                return make_response(404, b'{"message": "not found"}', url=url)
            content = self.objects[oid]
            if oid in self.tampered:
                content = b"X" + content[1:] if content else b"X"
            return make_response(200, content, url=url)
        if url.startswith(f"{STORAGE}/verify/") and method == "POST":
            status = 200 if json.loads(body)["oid"] in self.objects else 404
            return make_response(status, url=url)
        return make_response(404, b"no route", url=url)

    def _batch(self, url, request):
        if self.batch_status != 200 or self.batch_body is not None:
            return make_response(self.batch_status, self.batch_body or b"", url=url)

        operation = request["operation"]
        out = []
        for obj in request["objects"]:
            oid = obj["oid"]
            entry = {"oid": oid, "size": obj["size"], "authenticated": True}
            if oid in self.errors:
                code, message = self.errors[oid]
                entry["error"] = {"code": code, "message": message}
            elif operation == "download" and oid in self.objects:
                entry["actions"] = {
                    "download": {
                        "href": f"{STORAGE}/objects/{oid}",
                        "header": {"X-Transfer-Token": f"dl-{oid[:8]}"},
                        "expires_in": 3600,
                    }
                }
            elif operation == "upload" and oid not in self.objects:
                entry["actions"] = {
                    "upload": {
                        "href": f"{STORAGE}/upload/{oid}",
                        "header": {"X-Transfer-Token": f"ul-{oid[:8]}"},
                    }
                }
                if self.with_verify:
                    entry["actions"]["verify"] = {"href": f"{STORAGE}/verify/{oid}", "header": {}}
            out.append(entry)

        if self.reverse_order:
            out.reverse()
        body = json.dumps({"transfer": "basic", "objects": out}).encode()
        return make_response(200, body, url=url, headers={"Content-Type": "application/vnd.git-lfs+json"})


@pytest.fixture
def server():
    return FakeLfsServer()


@pytest.fixture
def client(server):
    config = ClientConfig.from_remote(REMOTE).with_token("secret-token").build()
    return LfsClient(config, session=server)


@pytest.fixture
def store(tmp_path):
    """Create ObjectStore instance with temp directory."""
    return ObjectStore(root=tmp_path / "objects")
