"""
Shared document store: point reads, merge writes, set transforms and
push-based subscriptions

Paths are slash-separated. A document path has an even number of segments
(`system/config`, `sessions/vibe-live/teams/team-ada-1f2e3d`), a collection
path an odd number (`sessions/vibe-live/teams`). Every change notifies the
listeners of the document and of its parent collection with a full snapshot.

Writes to one document are serialized by a per-document lock; nothing orders
writes across different documents.
"""
import asyncio
import copy
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Union

from classroom_arena.errors import NotFoundError, PreconditionFailed, StoreUnavailableError


logger = logging.getLogger(__name__)

Precondition = Callable[[Dict[str, Any]], bool]


# ==================== FIELD TRANSFORMS ====================

class FieldTransform:
    """Server-side field update applied against the stored value"""

    def apply(self, current: Any) -> Any:
        raise NotImplementedError


class ArrayUnion(FieldTransform):
    """Add values to an array field, skipping ones already present"""

    def __init__(self, *values: Any):
        self.values = list(values)

    def apply(self, current: Any) -> List[Any]:
        result = list(current) if isinstance(current, list) else []
        for value in self.values:
            if value not in result:
                result.append(value)
        return result


class ArrayRemove(FieldTransform):
    """Remove every occurrence of values from an array field"""

    def __init__(self, *values: Any):
        self.values = list(values)

    def apply(self, current: Any) -> List[Any]:
        if not isinstance(current, list):
            return []
        return [item for item in current if item not in self.values]


class Increment(FieldTransform):
    """Add to a numeric field; a missing or non-numeric field counts as 0"""

    def __init__(self, amount: Union[int, float]):
        self.amount = amount

    def apply(self, current: Any) -> Union[int, float]:
        if isinstance(current, bool) or not isinstance(current, (int, float)):
            current = 0
        return current + self.amount


# ==================== SNAPSHOTS ====================

@dataclass
class DocumentSnapshot:
    path: str
    data: Optional[Dict[str, Any]] = None

    @property
    def id(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def exists(self) -> bool:
        return self.data is not None


@dataclass
class QuerySnapshot:
    collection: str
    docs: List[DocumentSnapshot] = field(default_factory=list)

    def __iter__(self):
        return iter(self.docs)

    def __len__(self) -> int:
        return len(self.docs)


_CLOSED = object()


class Subscription:
    """
    Async iterator of snapshots for one document or one collection

    The current state is delivered first, then one snapshot per change.
    Use as an async context manager, or call close(), to detach the listener.
    """

    def __init__(self, store: "InMemoryDocumentStore", target: str, is_query: bool):
        self.target = target
        self.is_query = is_query
        self._store = store
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, snapshot: Union[DocumentSnapshot, QuerySnapshot]) -> None:
        if not self._closed:
            self._queue.put_nowait(snapshot)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._store._detach(self)
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.close()


# ==================== STORE ====================

class DocumentStore(Protocol):
    """Operations the session core consumes from a document store"""

    async def read_once(self, path: str) -> DocumentSnapshot: ...

    async def write(self, path: str, fields: Dict[str, Any], merge: bool = True) -> DocumentSnapshot: ...

    async def update(
        self, path: str, fields: Dict[str, Any], precondition: Optional[Precondition] = None
    ) -> DocumentSnapshot: ...

    async def delete(self, path: str) -> None: ...

    async def query(
        self,
        collection: str,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> QuerySnapshot: ...

    def subscribe(self, path: str) -> Subscription: ...

    def subscribe_query(self, collection: str) -> Subscription: ...


def _is_document_path(path: str) -> bool:
    parts = [p for p in path.split("/") if p]
    return len(parts) > 0 and len(parts) % 2 == 0


def _parent(path: str) -> str:
    return path.rsplit("/", 1)[0]


class InMemoryDocumentStore:
    """
    Process-local document store

    Subclasses can back `_read`, `_write`, `_delete` and `_query` with a real
    service; any timeout, OSError or ConnectionError from them surfaces as
    StoreUnavailableError.
    """

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout
        self._docs: Dict[str, Dict[str, Any]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}
        self._doc_listeners: Dict[str, List[Subscription]] = {}
        self._query_listeners: Dict[str, List[Subscription]] = {}

    # ---- public API ----

    async def read_once(self, path: str) -> DocumentSnapshot:
        return await self._guarded(self._read(path), f"read {path}")

    async def write(self, path: str, fields: Dict[str, Any], merge: bool = True) -> DocumentSnapshot:
        """Create or overwrite a document; with merge, unspecified fields are kept"""
        return await self._guarded(
            self._write(path, fields, merge=merge, must_exist=False, precondition=None),
            f"write {path}",
        )

    async def update(
        self, path: str, fields: Dict[str, Any], precondition: Optional[Precondition] = None
    ) -> DocumentSnapshot:
        """
        Merge fields into an existing document in one atomic step

        Raises:
            NotFoundError: document does not exist
            PreconditionFailed: precondition returned False for the stored data
        """
        return await self._guarded(
            self._write(path, fields, merge=True, must_exist=True, precondition=precondition),
            f"update {path}",
        )

    async def delete(self, path: str) -> None:
        await self._guarded(self._delete(path), f"delete {path}")

    async def query(
        self,
        collection: str,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> QuerySnapshot:
        return await self._guarded(
            self._query(collection, order_by, descending, limit), f"query {collection}"
        )

    def subscribe(self, path: str) -> Subscription:
        if not _is_document_path(path):
            raise ValueError(f"Not a document path: {path}")
        sub = Subscription(self, path, is_query=False)
        self._doc_listeners.setdefault(path, []).append(sub)
        sub.push(self._snapshot(path))
        return sub

    def subscribe_query(self, collection: str) -> Subscription:
        if _is_document_path(collection):
            raise ValueError(f"Not a collection path: {collection}")
        sub = Subscription(self, collection, is_query=True)
        self._query_listeners.setdefault(collection, []).append(sub)
        sub.push(self._collection_snapshot(collection))
        return sub

    def close(self) -> None:
        """Detach every listener (application shutdown)"""
        for listeners in list(self._doc_listeners.values()) + list(self._query_listeners.values()):
            for sub in list(listeners):
                sub.close()

    @property
    def listener_count(self) -> int:
        return sum(len(v) for v in self._doc_listeners.values()) + sum(
            len(v) for v in self._query_listeners.values()
        )

    # ---- backend operations ----

    async def _read(self, path: str) -> DocumentSnapshot:
        if not _is_document_path(path):
            raise ValueError(f"Not a document path: {path}")
        return self._snapshot(path)

    async def _write(
        self,
        path: str,
        fields: Dict[str, Any],
        merge: bool,
        must_exist: bool,
        precondition: Optional[Precondition],
    ) -> DocumentSnapshot:
        if not _is_document_path(path):
            raise ValueError(f"Not a document path: {path}")

        async with self._locked(path):
            current = self._docs.get(path)
            if current is None and must_exist:
                raise NotFoundError(f"Document {path} does not exist")
            if precondition is not None and not precondition(copy.deepcopy(current or {})):
                raise PreconditionFailed(f"Precondition failed for {path}")

            data = copy.deepcopy(current) if (merge and current is not None) else {}
            for key, value in fields.items():
                if isinstance(value, FieldTransform):
                    data[key] = value.apply(data.get(key))
                else:
                    data[key] = copy.deepcopy(value)
            self._docs[path] = data

        self._notify(path)
        return self._snapshot(path)

    async def _delete(self, path: str) -> None:
        if not _is_document_path(path):
            raise ValueError(f"Not a document path: {path}")
        async with self._locked(path):
            existed = self._docs.pop(path, None) is not None
        if existed:
            self._notify(path)

    async def _query(
        self,
        collection: str,
        order_by: Optional[str],
        descending: bool,
        limit: Optional[int],
    ) -> QuerySnapshot:
        docs = self._collection_snapshot(collection).docs
        if order_by:
            present = [d for d in docs if d.data.get(order_by) is not None]
            missing = [d for d in docs if d.data.get(order_by) is None]
            present.sort(key=lambda d: d.data[order_by], reverse=descending)
            docs = present + missing
        if limit is not None:
            docs = docs[:limit]
        return QuerySnapshot(collection, docs)

    # ---- internals ----

    async def _guarded(self, operation: Awaitable, what: str):
        try:
            return await asyncio.wait_for(operation, self.timeout)
        except asyncio.TimeoutError as exc:
            logger.error(f"❌ Store timeout after {self.timeout}s: {what}")
            raise StoreUnavailableError(f"Store did not answer: {what}") from exc
        except (OSError, ConnectionError) as exc:
            logger.error(f"❌ Store failure on {what}: {exc}")
            raise StoreUnavailableError(f"Store unavailable: {what}") from exc

    @asynccontextmanager
    async def _locked(self, path: str):
        """Hold the document lock; it is dropped once unused and the document is gone"""
        lock = self._locks.get(path)
        if lock is None:
            lock = self._locks[path] = asyncio.Lock()
        self._lock_users[path] = self._lock_users.get(path, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[path] -= 1
            if not self._lock_users[path]:
                del self._lock_users[path]
                if path not in self._docs:
                    self._locks.pop(path, None)

    def _snapshot(self, path: str) -> DocumentSnapshot:
        data = self._docs.get(path)
        return DocumentSnapshot(path, copy.deepcopy(data) if data is not None else None)

    def _collection_snapshot(self, collection: str) -> QuerySnapshot:
        docs = [
            self._snapshot(path)
            for path in self._docs
            if _parent(path) == collection
        ]
        return QuerySnapshot(collection, docs)

    def _notify(self, path: str) -> None:
        for sub in list(self._doc_listeners.get(path, [])):
            sub.push(self._snapshot(path))
        collection = _parent(path)
        listeners = list(self._query_listeners.get(collection, []))
        if listeners:
            snapshot = self._collection_snapshot(collection)
            for sub in listeners:
                sub.push(copy.deepcopy(snapshot))

    def _detach(self, sub: Subscription) -> None:
        registry = self._query_listeners if sub.is_query else self._doc_listeners
        listeners = registry.get(sub.target, [])
        if sub in listeners:
            listeners.remove(sub)
        if not listeners:
            registry.pop(sub.target, None)
