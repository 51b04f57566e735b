"""
Dual-layer JSON Storage Provider.

This module implements the StorageProvider protocol on top of two JSON
documents:

- the *cache* layer: system-owned data regenerated from route scans
  (the auto-captured collection and its requests) plus request history;
- the *custom* layer: user-owned edits, safe to commit alongside the host
  project and to edit by hand while the server runs.

Reads overlay custom records onto cache records with the same id, field by
field. Writes are routed to exactly one layer and the whole layer document
is rewritten immediately.
"""
import asyncio
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

logger = logging.getLogger(__name__)

RECORD_KINDS = ("collections", "requests", "environments", "history")
HISTORY_LIMIT = 50
DEFAULT_AUTO_COLLECTION_NAME = "Auto-Captured"

_EMPTY_BODIES = (None, "", "{}", "null")
_EMPTY_HEADERS = (None, "", "{}")

Document = Dict[str, List[Dict[str, Any]]]


class Layer(str, Enum):
    """Storage partitions."""

    CACHE = "cache"
    CUSTOM = "custom"


# ============================================================================
# Helper Functions (stateless utilities)
# ============================================================================

def empty_document() -> Document:
    return {kind: [] for kind in RECORD_KINDS}


def parse_document(raw: str) -> Document:
    """
    Parse a persisted layer document.

    Missing or non-list arrays become empty, non-object entries are dropped
    and unknown top-level keys are ignored.

    Raises:
        ValueError: If ``raw`` is not a JSON object.
    """
    parsed = json.loads(raw)
    if not isinstance(parsed, dict):
        raise ValueError("store document must be a JSON object")
    document = empty_document()
    for kind in RECORD_KINDS:
        items = parsed.get(kind)
        if isinstance(items, list):
            document[kind] = [item for item in items if isinstance(item, dict)]
    return document


def owning_layer(
    kind: str,
    collection_name: Optional[str],
    auto_collection_name: str,
) -> Layer:
    """
    Decide which layer a newly created record belongs to.

    History is always system-owned. Collections and requests are system-owned
    only when they live under the auto-captured collection name. Everything
    else belongs to the user.
    """
    if kind == "history":
        return Layer.CACHE
    if kind in ("collections", "requests") and collection_name == auto_collection_name:
        return Layer.CACHE
    return Layer.CUSTOM


def merge_records(
    base: Iterable[Dict[str, Any]],
    overlay: Iterable[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    """
    Overlay records onto base records by id.

    A same-id pair becomes a shallow merge where overlay fields win and
    base-only fields survive. Base order is kept; overlay-only records follow
    in overlay order.
    """
    merged: Dict[Any, Dict[str, Any]] = {}
    for record in base:
        merged[record.get("id")] = record
    for record in overlay:
        existing = merged.get(record.get("id"))
        merged[record.get("id")] = {**existing, **record} if existing is not None else record
    return list(merged.values())


def is_empty_body(value: Any) -> bool:
    """True when a stored request body carries no documentation."""
    return value in _EMPTY_BODIES


def is_empty_headers(value: Any) -> bool:
    """True when stored request headers carry no documentation."""
    return value in _EMPTY_HEADERS


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class StoreLayer:
    """One JSON document and its in-memory copy."""

    name: Layer
    path: Optional[Path]
    data: Document = field(default_factory=empty_document)

    def read(self) -> Document:
        """Read the backing file. Raises OSError/ValueError on failure."""
        if self.path is None:
            raise FileNotFoundError(f"{self.name.value} layer has no backing file")
        return parse_document(self.path.read_text(encoding="utf-8"))

    def save(self) -> None:
        """Rewrite the whole backing file. No-op for an in-memory layer."""
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self.data, indent=2, default=str), encoding="utf-8")

    def find(self, kind: str, record_id: str) -> Optional[Dict[str, Any]]:
        for record in self.data[kind]:
            if record.get("id") == record_id:
                return record
        return None


class JsonStorageProvider:
    """
    File-backed implementation of StorageProvider.

    Usage:
        store = JsonStorageProvider(".restiqo/db.json", "api-tester.json")
        await store.init()
        collection = await store.create_collection("system", {"name": "Users"})
    """

    def __init__(
        self,
        storage_path: Union[str, Path],
        customization_path: Optional[Union[str, Path]] = None,
        auto_collection_name: str = DEFAULT_AUTO_COLLECTION_NAME,
    ):
        self.cache = StoreLayer(Layer.CACHE, Path(storage_path))
        self.custom = StoreLayer(
            Layer.CUSTOM,
            Path(customization_path) if customization_path else None,
        )
        self.auto_collection_name = auto_collection_name
        self._init_task: Optional[asyncio.Future] = None

    def set_auto_collection_name(self, name: str) -> None:
        self.auto_collection_name = name

    def _layer(self, layer: Layer) -> StoreLayer:
        return self.cache if layer is Layer.CACHE else self.custom

    # =========================================================================
    # Loading
    # =========================================================================

    async def init(self) -> None:
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._load())
        await asyncio.shield(self._init_task)

    async def _load(self) -> None:
        self.cache.data = self._read_or_empty(self.cache)
        if self.custom.path is not None:
            self.custom.data = self._read_or_empty(self.custom)
        logger.debug(
            "Loaded store: %d cached requests, %d custom requests",
            len(self.cache.data["requests"]),
            len(self.custom.data["requests"]),
        )

    @staticmethod
    def _read_or_empty(layer: StoreLayer) -> Document:
        try:
            return layer.read()
        except (OSError, ValueError) as e:
            logger.debug("Starting %s layer empty (%s)", layer.name.value, e)
            return empty_document()

    async def reload_custom_data(self) -> None:
        """Pick up out-of-process edits to the custom file."""
        if self.custom.path is None:
            return
        try:
            self.custom.data = self.custom.read()
        except (OSError, ValueError) as e:
            # Missing or half-written file: keep what we have
            logger.debug("Keeping in-memory custom layer (%s)", e)

    async def _wait_initialized(self) -> None:
        await self.init()

    async def _ensure_fresh(self) -> None:
        await self._wait_initialized()
        await self.reload_custom_data()

    async def clear_cache(self) -> None:
        await self._wait_initialized()
        self.cache.data = empty_document()
        self.cache.save()

    # =========================================================================
    # Merge / mutation internals
    # =========================================================================

    def _merged(self, kind: str) -> List[Dict[str, Any]]:
        return merge_records(self.cache.data[kind], self.custom.data[kind])

    def _insert(self, kind: str, record: Dict[str, Any], layer: Layer) -> Dict[str, Any]:
        target = self._layer(layer)
        target.data[kind].append(record)
        target.save()
        return dict(record)

    def _edit(self, kind: str, record_id: str, changes: Dict[str, Any]) -> bool:
        """Apply changes through the custom layer, copying a cache record over if needed."""
        existing = self.custom.find(kind, record_id)
        if existing is not None:
            existing.update(changes)
        else:
            base = self.cache.find(kind, record_id)
            if base is None:
                return False
            self.custom.data[kind].append({**base, **changes})
        self.custom.save()
        return True

    def _update(self, kind: str, record_id: str, data: Dict[str, Any]) -> bool:
        changes = {k: v for k, v in data.items() if k != "id"}
        changes["updated_at"] = _now()
        return self._edit(kind, record_id, changes)

    # =========================================================================
    # Collections
    # =========================================================================

    async def get_collections(self, user_id: str) -> List[Dict[str, Any]]:
        await self._ensure_fresh()
        requests = [r for r in self._merged("requests") if not r.get("is_deleted")]
        return [
            {
                **collection,
                "requests": [dict(r) for r in requests if r.get("collection_id") == collection.get("id")],
            }
            for collection in self._merged("collections")
            if collection.get("user_id") == user_id and not collection.get("is_deleted")
        ]

    async def create_collection(self, user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        await self._wait_initialized()
        now = _now()
        record = {
            **data,
            "id": _new_id(),
            "user_id": user_id,
            "is_deleted": False,
            "created_at": now,
            "updated_at": now,
        }
        layer = owning_layer("collections", data.get("name"), self.auto_collection_name)
        return self._insert("collections", record, layer)

    async def update_collection(self, collection_id: str, data: Dict[str, Any]) -> bool:
        await self._wait_initialized()
        return self._update("collections", collection_id, data)

    async def delete_collection(self, collection_id: str) -> bool:
        await self._wait_initialized()
        return self._edit("collections", collection_id, {"is_deleted": True})

    # =========================================================================
    # Requests
    # =========================================================================

    async def get_requests(self, collection_id: str) -> List[Dict[str, Any]]:
        await self._ensure_fresh()
        return [
            dict(r)
            for r in self._merged("requests")
            if r.get("collection_id") == collection_id and not r.get("is_deleted")
        ]

    async def get_request(self, request_id: str) -> Optional[Dict[str, Any]]:
        await self._ensure_fresh()
        for r in self._merged("requests"):
            if r.get("id") == request_id and not r.get("is_deleted"):
                return dict(r)
        return None

    async def create_request(self, data: Dict[str, Any]) -> Dict[str, Any]:
        await self._wait_initialized()
        now = _now()
        record = {
            **data,
            "id": _new_id(),
            "is_deleted": False,
            "created_at": now,
            "updated_at": now,
        }
        collection = next(
            (c for c in self._merged("collections") if c.get("id") == data.get("collection_id")),
            None,
        )
        collection_name = collection.get("name") if collection is not None else None
        layer = owning_layer("requests", collection_name, self.auto_collection_name)
        return self._insert("requests", record, layer)

    async def update_request(self, request_id: str, data: Dict[str, Any]) -> bool:
        await self._wait_initialized()
        return self._update("requests", request_id, data)

    async def delete_request(self, request_id: str) -> bool:
        await self._wait_initialized()
        return self._edit("requests", request_id, {"is_deleted": True})

    async def backfill_request(
        self,
        request_id: str,
        *,
        body: Optional[str] = None,
        headers: Optional[str] = None,
    ) -> bool:
        await self._wait_initialized()
        current = next(
            (r for r in self._merged("requests") if r.get("id") == request_id and not r.get("is_deleted")),
            None,
        )
        if current is None:
            return False

        changes: Dict[str, Any] = {}
        if body is not None and is_empty_body(current.get("body")):
            changes["body"] = body
        if headers is not None and is_empty_headers(current.get("headers")):
            changes["headers"] = headers
        if not changes:
            return False
        return self._update("requests", request_id, changes)

    # =========================================================================
    # Environments
    # =========================================================================

    async def get_environments(self) -> List[Dict[str, Any]]:
        await self._ensure_fresh()
        return [dict(e) for e in self._merged("environments") if not e.get("is_deleted")]

    async def create_environment(self, data: Dict[str, Any]) -> Dict[str, Any]:
        await self._wait_initialized()
        now = _now()
        record = {
            **data,
            "id": _new_id(),
            "is_deleted": False,
            "created_at": now,
            "updated_at": now,
        }
        return self._insert("environments", record, owning_layer("environments", None, self.auto_collection_name))

    async def update_environment(self, environment_id: str, data: Dict[str, Any]) -> bool:
        await self._wait_initialized()
        return self._update("environments", environment_id, data)

    async def delete_environment(self, environment_id: str) -> bool:
        await self._wait_initialized()
        return self._edit("environments", environment_id, {"is_deleted": True})

    # =========================================================================
    # History
    # =========================================================================

    async def get_history(self, user_id: str) -> List[Dict[str, Any]]:
        await self._ensure_fresh()
        entries = [h for h in self._merged("history") if h.get("user_id") == user_id]
        # Insertion order breaks ties between equal timestamps
        ranked = sorted(
            enumerate(entries),
            key=lambda pair: (str(pair[1].get("created_at", "")), pair[0]),
            reverse=True,
        )
        return [dict(entry) for _, entry in ranked[:HISTORY_LIMIT]]

    async def add_to_history(self, user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        await self._wait_initialized()
        record = {
            **data,
            "id": _new_id(),
            "user_id": user_id,
            "created_at": _now(),
        }
        return self._insert("history", record, owning_layer("history", None, self.auto_collection_name))

    async def clear_history(self, user_id: str) -> None:
        await self._wait_initialized()
        for layer in (self.cache, self.custom):
            layer.data["history"] = [h for h in layer.data["history"] if h.get("user_id") != user_id]
            layer.save()

    async def delete_history_item(self, entry_id: str) -> bool:
        await self._wait_initialized()
        found = False
        for layer in (self.cache, self.custom):
            kept = [h for h in layer.data["history"] if h.get("id") != entry_id]
            if len(kept) != len(layer.data["history"]):
                found = True
                layer.data["history"] = kept
                layer.save()
        return found
