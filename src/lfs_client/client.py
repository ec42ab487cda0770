"""LFS HTTP client for batch negotiation, upload and download.

Every object goes through the same small state machine in both directions::

    NEGOTIATE -> ALREADY_SATISFIED
    NEGOTIATE -> TRANSFER -> [VERIFY] -> DONE

with ERROR reachable from any state (raised as an ``LfsError``).

Batch calls abort on the first per-object problem: the whole negotiation
response is checked before any bytes move, and the first problem (in input
order) is raised. No partial results are
returned and, for uploads, no partial transfers happen.

The core never retries. Timeouts come from ``ClientConfig.timeout`` and are
enforced by the injected ``requests.Session``.
"""

from __future__ import annotations
import json
import logging
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import requests

from .batch import Action, BatchObject, BatchRequest, BatchResponse, Operation
from .config import ClientConfig
from .constants import CHUNK_SIZE, LFS_MEDIA_TYPE, OCTET_STREAM
from .endpoint import join_endpoint
from .errors import (
    AuthError,
    InvalidPointerError,
    NotFoundError,
    ServerError,
    TransportError,
)
from .hashing import HashingWriter, Oid, hash_file
from .local_cache import ObjectStore
from .pointer import Pointer

logger = logging.getLogger(__name__)


class TransferState(str, Enum):
    """Per-object transfer states."""
    NEGOTIATE = "negotiate"
    ALREADY_SATISFIED = "already-satisfied"
    TRANSFER = "transfer"
    VERIFY = "verify"
    DONE = "done"
    ERROR = "error"


def _error_message(resp: requests.Response) -> str:
    """Best human-readable message from an error response."""
    try:
        body = resp.json()
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
    except ValueError:
        pass
    text = (resp.text or "").strip()
    return text[:500] if text else (resp.reason or "unknown error")


def _raise_for_status(resp: requests.Response, subject: str) -> None:
    """Map HTTP failures onto the lfs-client error hierarchy.

    Args:
        resp: Response to check
        subject: What was requested (oid or URL), used in messages
    """
    status = resp.status_code
    if status < 400:
        return
    if status in (401, 403):
        raise AuthError(f"Authentication failed for {subject} (HTTP {status})")
    if status == 404:
        raise NotFoundError(subject)
    raise ServerError(status, _error_message(resp))


def _raise_object_error(obj: BatchObject) -> None:
    if obj.error is not None:
        raise ServerError(obj.error.code, obj.error.message)


class LfsClient:
    """Client for one LFS endpoint.

    The configuration is immutable and can be shared freely; the HTTP session
    is per client. Use ``clone()`` to get an independent client for another
    thread.

    Args:
        config: Endpoint, credentials and request settings
        session: HTTP transport; a new ``requests.Session`` if omitted
    """

    def __init__(self, config: ClientConfig, session: Optional[requests.Session] = None):
        self.config = config
        self._session = session if session is not None else requests.Session()

    @classmethod
    def from_remote(
        cls,
        remote_url: str,
        token: Optional[str] = None,
        ref: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ) -> "LfsClient":
        """Client for a Git remote URL, optionally with a bearer token."""
        builder = ClientConfig.from_remote(remote_url).with_ref(ref)
        if token:
            builder = builder.with_token(token)
        return cls(builder.build(), session=session)

    @property
    def endpoint(self) -> str:
        return self.config.endpoint

    def clone(self) -> "LfsClient":
        """Independent client sharing this client's configuration."""
        return LfsClient(self.config)

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "LfsClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ---- HTTP plumbing ----

    def _send(
        self,
        method: str,
        url: str,
        subject: str,
        headers: Optional[Dict[str, str]] = None,
        data: Union[bytes, BinaryIO, str, None] = None,
        auth: Optional[requests.auth.AuthBase] = None,
        stream: bool = False,
    ) -> requests.Response:
        try:
            resp = self._session.request(
                method,
                url,
                headers=headers,
                data=data,
                auth=auth,
                timeout=self.config.timeout,
                stream=stream,
            )
        except requests.RequestException as e:
            raise TransportError(f"{method} {url} failed: {e}") from e
        _raise_for_status(resp, subject)
        return resp

    def batch(self, request: BatchRequest) -> BatchResponse:
        """Send one negotiation call to ``<endpoint>/objects/batch``.

        Raises:
            AuthError: On 401/403
            ServerError: On other HTTP failures or a malformed response body
            TransportError: On network failures
        """
        url = join_endpoint(self.config.endpoint, "objects/batch")
        headers = {
            "Accept": LFS_MEDIA_TYPE,
            "Content-Type": LFS_MEDIA_TYPE,
            "User-Agent": self.config.user_agent,
        }
        auth = self.config.credential.to_requests_auth() if self.config.credential else None

        logger.debug(
            "Batch %s request for %d object(s) to %s",
            request.operation.value, len(request.objects), url,
        )
        resp = self._send(
            "POST", url, url, headers=headers, data=json.dumps(request.to_wire()), auth=auth
        )
        try:
            return BatchResponse.model_validate(resp.json())
        except ValueError as e:
            raise ServerError(resp.status_code, f"invalid batch response: {e}") from e

    def _negotiate(self, operation: Operation, pointers: Iterable[Pointer]) -> BatchResponse:
        pointers = list(pointers)
        if operation is Operation.UPLOAD:
            request = BatchRequest.upload(
                pointers, ref=self.config.ref_name, transfers=self.config.transfers
            )
        else:
            request = BatchRequest.download(
                pointers, ref=self.config.ref_name, transfers=self.config.transfers
            )
        for pointer in pointers:
            logger.debug("%s %s: %s", operation.value, pointer.oid, TransferState.NEGOTIATE.value)
        resp = self.batch(request)
        if resp.transfer_adapter not in request.transfer_adapters:
            raise ServerError(
                500,
                f"server chose transfer adapter {resp.transfer_adapter!r}, "
                f"requested {request.transfer_adapters}",
            )
        return resp

    # ---- upload ----

    def _put(self, obj: BatchObject, pointer: Pointer, body: Union[bytes, BinaryIO]) -> TransferState:
        """Run TRANSFER and VERIFY for one negotiated upload."""
        _raise_object_error(obj)
        action = obj.upload_action()
        if action is None:
            logger.debug("upload %s: %s", pointer.oid, TransferState.ALREADY_SATISFIED.value)
            return TransferState.ALREADY_SATISFIED

        logger.debug("upload %s: %s -> %s", pointer.oid, TransferState.TRANSFER.value, action.href)
        headers = dict(action.headers)
        headers["Content-Type"] = OCTET_STREAM
        headers["Content-Length"] = str(pointer.size)
        self._send("PUT", action.href, str(pointer.oid), headers=headers, data=body)

        verify = obj.verify_action()
        if verify is not None:
            logger.debug("upload %s: %s", pointer.oid, TransferState.VERIFY.value)
            self._verify(verify, pointer)

        logger.debug("upload %s: %s", pointer.oid, TransferState.DONE.value)
        return TransferState.DONE

    def _verify(self, action: Action, pointer: Pointer) -> None:
        headers = dict(action.headers)
        headers["Accept"] = LFS_MEDIA_TYPE
        headers["Content-Type"] = LFS_MEDIA_TYPE
        body = json.dumps({"oid": pointer.oid.hex, "size": pointer.size})
        self._send("POST", action.href, str(pointer.oid), headers=headers, data=body)

    def _upload_object(self, resp: BatchResponse, pointer: Pointer) -> BatchObject:
        if not resp.objects:
            raise ServerError(500, "no objects in batch response")
        obj = resp.by_oid().get(pointer.oid.hex)
        if obj is None:
            raise ServerError(500, f"batch response missing object {pointer.oid}")
        return obj

    def upload(self, pointer: Pointer, content: bytes) -> TransferState:
        """Upload one object.

        Content is checked against the pointer before any network call.

        Returns:
            ``ALREADY_SATISFIED`` if the server already has the object,
            otherwise ``DONE``

        Raises:
            InvalidPointerError: If content does not match pointer
            ServerError: If the server reports an error for the object
        """
        if not pointer.matches(content):
            raise InvalidPointerError("content does not match pointer")
        resp = self._negotiate(Operation.UPLOAD, [pointer])
        return self._put(self._upload_object(resp, pointer), pointer, content)

    def upload_file(self, pointer: Pointer, path: Path) -> TransferState:
        """Upload one object streamed from disk."""
        path = Path(path)
        oid, size = hash_file(path)
        if oid != pointer.oid or size != pointer.size:
            raise InvalidPointerError(f"{path} does not match pointer")
        resp = self._negotiate(Operation.UPLOAD, [pointer])
        obj = self._upload_object(resp, pointer)
        with path.open("rb") as f:
            return self._put(obj, pointer, f)

    def upload_batch(self, items: Sequence[Tuple[Pointer, bytes]]) -> List[TransferState]:
        """Upload many objects with one negotiation call.

        Returns:
            Terminal state per item, in input order

        Raises:
            InvalidPointerError: If any content does not match its pointer
            ServerError: If any object has an error or is missing from the
                response; nothing is transferred in that case
        """
        if not items:
            return []

        for pointer, content in items:
            if not pointer.matches(content):
                raise InvalidPointerError(f"content does not match pointer for oid {pointer.oid}")

        resp = self._negotiate(Operation.UPLOAD, [p for p, _ in items])
        objects = [self._upload_object(resp, pointer) for pointer, _ in items]
        for obj in objects:
            _raise_object_error(obj)

        done: Dict[Oid, TransferState] = {}
        states = []
        for obj, (pointer, content) in zip(objects, items):
            if pointer.oid not in done:
                done[pointer.oid] = self._put(obj, pointer, content)
            states.append(done[pointer.oid])
        return states

    # ---- download ----

    def _download_action(self, obj: Optional[BatchObject], pointer: Pointer) -> Action:
        if obj is None:
            raise NotFoundError(pointer.oid.hex)
        _raise_object_error(obj)
        action = obj.download_action()
        if action is None:
            raise NotFoundError(pointer.oid.hex)
        return action

    def _get(self, action: Action, pointer: Pointer) -> bytes:
        logger.debug("download %s: %s -> %s", pointer.oid, TransferState.TRANSFER.value, action.href)
        resp = self._send("GET", action.href, pointer.oid.hex, headers=dict(action.headers))
        content = resp.content
        if not pointer.matches(content):
            raise InvalidPointerError(
                f"downloaded content hash mismatch for oid {pointer.oid}"
            )
        logger.debug("download %s: %s", pointer.oid, TransferState.DONE.value)
        return content

    def download(self, pointer: Pointer) -> bytes:
        """Download one object and verify it against its pointer.

        Raises:
            NotFoundError: If the server has no download action for it
            ServerError: If the server reports an error for the object
            InvalidPointerError: If the downloaded bytes do not match
        """
        resp = self._negotiate(Operation.DOWNLOAD, [pointer])
        action = self._download_action(resp.by_oid().get(pointer.oid.hex), pointer)
        return self._get(action, pointer)

    def download_batch(self, pointers: Sequence[Pointer]) -> List[bytes]:
        """Download many objects with one negotiation call.

        Results are in input order whatever order the server answers in.
        """
        if not pointers:
            return []
        objects = self._negotiate(Operation.DOWNLOAD, pointers).by_oid()
        actions = [self._download_action(objects.get(p.oid.hex), p) for p in pointers]
        return [self._get(action, pointer) for action, pointer in zip(actions, pointers)]

    def download_to_store(self, pointer: Pointer, store: ObjectStore) -> Path:
        """Stream one object from the server straight into a store.

        Bytes are hashed while they are written; the store entry is committed
        only if size and hash match the pointer.

        Returns:
            Path of the committed store entry
        """
        resp = self._negotiate(Operation.DOWNLOAD, [pointer])
        action = self._download_action(resp.by_oid().get(pointer.oid.hex), pointer)

        logger.debug("download %s: %s -> %s (streaming)", pointer.oid, TransferState.TRANSFER.value, action.href)
        r = self._send("GET", action.href, pointer.oid.hex, headers=dict(action.headers), stream=True)
        with r, store.writer(pointer.oid) as w:
            hashing = HashingWriter(w)
            try:
                for chunk in r.iter_content(chunk_size=CHUNK_SIZE):
                    hashing.write(chunk)
            except requests.RequestException as e:
                raise TransportError(f"GET {action.href} failed: {e}") from e
            oid, size, _ = hashing.finish()
            if oid != pointer.oid or size != pointer.size:
                raise InvalidPointerError(
                    f"downloaded content hash mismatch for oid {pointer.oid}"
                )
            path = w.finish()
        logger.debug("download %s: %s", pointer.oid, TransferState.DONE.value)
        return path

    def check_exists(self, pointers: Sequence[Pointer]) -> List[Oid]:
        """Object ids the server can serve, in input order, without transferring."""
        if not pointers:
            return []
        objects = self._negotiate(Operation.DOWNLOAD, pointers).by_oid()
        existing: List[Oid] = []
        for pointer in pointers:
            obj = objects.get(pointer.oid.hex)
            if obj is not None and obj.download_action() is not None and pointer.oid not in existing:
                existing.append(pointer.oid)
        return existing


__all__ = ["LfsClient", "TransferState"]
