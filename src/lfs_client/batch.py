"""Batch API data models.

The batch call exchanges object identities for transfer actions. These are
pure wire models: no I/O happens here. Field names follow the wire format
through aliases (``header``, ``transfer``, ``transfers``) while the Python
attributes use the descriptive names.

See https://github.com/git-lfs/git-lfs/blob/main/docs/api/batch.md
"""

import json
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple, Union

from pydantic import BaseModel, Field

from .constants import BASIC_TRANSFER
from .hashing import Oid
from .pointer import Pointer


class Operation(str, Enum):
    """Direction of a batch request."""
    DOWNLOAD = "download"
    UPLOAD = "upload"


class RefInfo(BaseModel):
    """Git ref the request is made on behalf of (e.g. refs/heads/main)."""
    name: str


class BatchRequestObject(BaseModel):
    """Single object identity in a batch request."""
    oid: str
    size: int = Field(ge=0)

    @classmethod
    def from_pointer(cls, pointer: Pointer) -> "BatchRequestObject":
        return cls(oid=pointer.oid.hex, size=pointer.size)


ObjectSpec = Union[Pointer, Tuple[Oid, int]]


def _request_objects(items: Iterable[ObjectSpec]) -> List[BatchRequestObject]:
    objects = []
    for item in items:
        if isinstance(item, Pointer):
            objects.append(BatchRequestObject.from_pointer(item))
        else:
            oid, size = item
            objects.append(BatchRequestObject(oid=str(oid), size=size))
    return objects


class BatchRequest(BaseModel):
    """Body of ``POST <endpoint>/objects/batch``."""
    operation: Operation
    transfer_adapters: Optional[List[str]] = Field(None, alias="transfers")
    ref: Optional[RefInfo] = None
    objects: List[BatchRequestObject] = Field(default_factory=list)

    model_config = {"populate_by_name": True}

    @classmethod
    def download(
        cls,
        items: Iterable[ObjectSpec],
        ref: Optional[str] = None,
        transfers: Optional[Iterable[str]] = None,
    ) -> "BatchRequest":
        return cls._build(Operation.DOWNLOAD, items, ref, transfers)

    @classmethod
    def upload(
        cls,
        items: Iterable[ObjectSpec],
        ref: Optional[str] = None,
        transfers: Optional[Iterable[str]] = None,
    ) -> "BatchRequest":
        return cls._build(Operation.UPLOAD, items, ref, transfers)

    @classmethod
    def _build(
        cls,
        operation: Operation,
        items: Iterable[ObjectSpec],
        ref: Optional[str],
        transfers: Optional[Iterable[str]],
    ) -> "BatchRequest":
        """Transfer adapters default to ``["basic"]``."""
        return cls(
            operation=operation,
            transfer_adapters=list(transfers) if transfers else [BASIC_TRANSFER],
            ref=RefInfo(name=ref) if ref else None,
            objects=_request_objects(items),
        )

    def with_ref(self, name: str) -> "BatchRequest":
        """Return a copy of this request scoped to a ref name."""
        return self.model_copy(update={"ref": RefInfo(name=name)})

    def to_wire(self) -> dict:
        """JSON-ready dict using wire field names, omitting unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Action(BaseModel):
    """Server-issued descriptor authorizing one HTTP call."""
    href: str
    headers: Dict[str, str] = Field(default_factory=dict, alias="header")
    expires_in: Optional[int] = None
    expires_at: Optional[str] = None

    model_config = {"populate_by_name": True}


class ObjectError(BaseModel):
    """Per-object error reported in a batch response."""
    code: int
    message: str


class BatchObject(BaseModel):
    """Single object in a batch response.

    Use the accessors instead of reading ``actions`` directly: any action may
    be absent, and an ``error`` takes precedence over actions.
    """
    oid: str
    size: int = Field(ge=0)
    authenticated: Optional[bool] = None
    actions: Optional[Dict[str, Action]] = None
    error: Optional[ObjectError] = None

    def action(self, name: str) -> Optional[Action]:
        if self.error is not None or not self.actions:
            return None
        return self.actions.get(name)

    def download_action(self) -> Optional[Action]:
        return self.action(Operation.DOWNLOAD.value)

    def upload_action(self) -> Optional[Action]:
        return self.action(Operation.UPLOAD.value)

    def verify_action(self) -> Optional[Action]:
        return self.action("verify")

    def has_error(self) -> bool:
        return self.error is not None


class BatchResponse(BaseModel):
    """Body returned by the batch endpoint."""
    transfer_adapter: str = Field(BASIC_TRANSFER, alias="transfer")
    objects: List[BatchObject] = Field(default_factory=list)

    model_config = {"populate_by_name": True}

    def by_oid(self) -> Dict[str, BatchObject]:
        """Re-key response objects by lowercase oid.

        Servers may return objects in any order, so callers must look each
        requested object up rather than rely on position.
        """
        return {obj.oid.lower(): obj for obj in self.objects}

    def to_json(self, **kwargs) -> str:
        return json.dumps(
            self.model_dump(mode="json", by_alias=True, exclude_none=True), **kwargs
        )


__all__ = [
    "Operation",
    "RefInfo",
    "BatchRequestObject",
    "BatchRequest",
    "Action",
    "ObjectError",
    "BatchObject",
    "BatchResponse",
]
