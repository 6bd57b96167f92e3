# src/wholesale/db/documents.py
"""
Path-addressed document client backed by the local sqlite file.

Collections are addressed by slash separated paths
(``tenant/app/users/u1/orders``), documents by (collection path, id).
Document bodies are stored as JSON. Writes can carry server-side sentinels
(timestamp, array union/remove, increment, field delete) that are resolved
inside the write transaction, and every commit is pushed to the live
listeners registered on the touched collections.
"""
from __future__ import annotations

import asyncio
import copy
import inspect
import json
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

import aiosqlite

from wholesale.db.database import connect
from wholesale.db.errors import StoreError
from wholesale.utils.logger import get_logger

_logger = get_logger(__name__)


# ---------------------------
# Server-side sentinels
# ---------------------------


class _ServerTimestamp:
    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


class _DeleteField:
    def __repr__(self) -> str:
        return "DELETE_FIELD"


SERVER_TIMESTAMP = _ServerTimestamp()
DELETE_FIELD = _DeleteField()


@dataclass(frozen=True)
class ArrayUnion:
    """Append values not already present, keeping existing order."""

    values: Tuple[Any, ...]

    def __init__(self, *values: Any) -> None:
        object.__setattr__(self, "values", tuple(values))


@dataclass(frozen=True)
class ArrayRemove:
    """Remove every occurrence of the given values."""

    values: Tuple[Any, ...]

    def __init__(self, *values: Any) -> None:
        object.__setattr__(self, "values", tuple(values))


@dataclass(frozen=True)
class Increment:
    amount: float


def server_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_doc_id() -> str:
    return uuid.uuid4().hex[:20]


def _resolve(value: Any, current: Any, now: str) -> Any:
    """Resolve a (possibly sentinel) value against the stored one."""
    if value is SERVER_TIMESTAMP:
        return now
    if isinstance(value, ArrayUnion):
        base = list(current) if isinstance(current, list) else []
        for v in value.values:
            if v not in base:
                base.append(v)
        return base
    if isinstance(value, ArrayRemove):
        base = list(current) if isinstance(current, list) else []
        return [v for v in base if v not in value.values]
    if isinstance(value, Increment):
        base = current if isinstance(current, (int, float)) else 0
        return base + value.amount
    if isinstance(value, dict):
        return {
            k: _resolve(v, None, now) for k, v in value.items() if v is not DELETE_FIELD
        }
    if isinstance(value, (list, tuple)):
        return [_resolve(v, None, now) for v in value]
    return value


def merge_data(existing: Dict[str, Any], incoming: Dict[str, Any], now: str) -> Dict[str, Any]:
    """
    Merge ``incoming`` into ``existing``: nested maps merge recursively, other
    values replace, fields absent from ``incoming`` are kept.
    """
    merged = copy.deepcopy(existing)
    for key, value in incoming.items():
        if value is DELETE_FIELD:
            merged.pop(key, None)
        elif isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_data(merged[key], value, now)
        else:
            merged[key] = _resolve(value, merged.get(key), now)
    return merged


# ---------------------------
# Queries
# ---------------------------


_MISSING = object()


def _lookup(data: Dict[str, Any], path: str) -> Any:
    cur: Any = data
    for part in path.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return _MISSING
        cur = cur[part]
    return cur


@dataclass(frozen=True)
class Filter:
    field: str
    op: str
    value: Any

    OPS = ("==", "!=", "<", "<=", ">", ">=", "in", "array-contains")

    def __post_init__(self):
        if self.op not in self.OPS:
            raise ValueError(f"Unsupported filter operator {self.op!r}.")

    def matches(self, data: Dict[str, Any]) -> bool:
        val = _lookup(data, self.field)
        if val is _MISSING:
            return self.op == "!="
        try:
            if self.op == "==":
                return val == self.value
            if self.op == "!=":
                return val != self.value
            if self.op == "<":
                return val < self.value
            if self.op == "<=":
                return val <= self.value
            if self.op == ">":
                return val > self.value
            if self.op == ">=":
                return val >= self.value
            if self.op == "in":
                return val in self.value
            return isinstance(val, list) and self.value in val
        except TypeError:
            # mismatched types never match, same as the hosted databases do
            return False


@dataclass(frozen=True)
class Document:
    id: str
    data: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, **self.data}


def _apply_query(
    docs: List[Document],
    filters: Sequence[Filter] = (),
    order_by: Optional[str] = None,
    descending: bool = False,
    limit: Optional[int] = None,
) -> List[Document]:
    docs = [d for d in docs if all(f.matches(d.data) for f in filters)]
    if order_by:
        with_key = [d for d in docs if _lookup(d.data, order_by) is not _MISSING]
        without = [d for d in docs if _lookup(d.data, order_by) is _MISSING]
        try:
            with_key.sort(key=lambda d: _lookup(d.data, order_by), reverse=descending)
        except TypeError:
            with_key.sort(key=lambda d: str(_lookup(d.data, order_by)), reverse=descending)
        docs = with_key + without
    if limit is not None:
        docs = docs[:limit]
    return docs


# ---------------------------
# Transactions
# ---------------------------


class Transaction:
    """
    Reads go straight to the locked connection, writes are buffered and
    applied in order when the ``DocumentStore.transaction`` block exits.
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn
        self._writes: List[Tuple[str, str, str, Optional[Dict[str, Any]], bool]] = []
        self.touched: Set[str] = set()

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        return await _read_doc(self._conn, collection, doc_id)

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        self._writes.append(("set", collection, doc_id, data, merge))

    def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self._writes.append(("update", collection, doc_id, data, True))

    def delete(self, collection: str, doc_id: str) -> None:
        self._writes.append(("delete", collection, doc_id, None, False))

    async def _apply(self) -> None:
        now = server_now()
        for kind, collection, doc_id, data, merge in self._writes:
            if kind == "delete":
                await self._conn.execute(
                    "DELETE FROM documents WHERE collection = ? AND doc_id = ?;",
                    (collection, doc_id),
                )
            else:
                existing = await _read_doc(self._conn, collection, doc_id)
                if kind == "update" and existing is None:
                    raise StoreError(f"No document to update: {collection}/{doc_id}")
                if merge and existing is not None:
                    body = merge_data(existing.data, data, now)
                else:
                    body = merge_data({}, data, now)
                await self._conn.execute(
                    """
                    INSERT INTO documents(collection, doc_id, data)
                    VALUES (?, ?, ?)
                    ON CONFLICT(collection, doc_id) DO UPDATE SET data = excluded.data;
                    """,
                    (collection, doc_id, json.dumps(body)),
                )
            self.touched.add(collection)


async def _read_doc(conn: aiosqlite.Connection, collection: str, doc_id: str) -> Optional[Document]:
    cur = await conn.execute(
        "SELECT doc_id, data FROM documents WHERE collection = ? AND doc_id = ?;",
        (collection, doc_id),
    )
    row = await cur.fetchone()
    await cur.close()
    if not row:
        return None
    return Document(id=row[0], data=json.loads(row[1]))


# ---------------------------
# Live listeners
# ---------------------------


Listener = Callable[[List[Document]], Any]


@dataclass(eq=False)
class _Subscription:
    collection: str
    callback: Listener
    filters: Tuple[Filter, ...] = ()
    order_by: Optional[str] = None
    descending: bool = False
    active: bool = field(default=True)


class DocumentStore:
    """
    Client handle for the document database. One instance is shared by the
    whole process; listeners only see writes made through that instance.
    """

    def __init__(self, path: Optional[str] = None) -> None:
        self._path = path
        self._subs: Dict[str, List[_Subscription]] = {}

    @property
    def path(self) -> Optional[str]:
        return self._path

    # reads

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        try:
            async with connect(self._path) as conn:
                return await _read_doc(conn, collection, doc_id)
        except aiosqlite.Error as e:
            raise StoreError(f"Read of {collection}/{doc_id} failed: {e}") from e

    async def query(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Document]:
        try:
            async with connect(self._path) as conn:
                cur = await conn.execute(
                    "SELECT doc_id, data FROM documents WHERE collection = ? ORDER BY rowid;",
                    (collection,),
                )
                rows = await cur.fetchall()
                await cur.close()
        except aiosqlite.Error as e:
            raise StoreError(f"Query on {collection} failed: {e}") from e
        docs = [Document(id=row[0], data=json.loads(row[1])) for row in rows]
        return _apply_query(docs, tuple(filters), order_by, descending, limit)

    # writes

    @asynccontextmanager
    async def transaction(self):
        """
        Atomic unit of work. Holds the sqlite write lock for the whole block,
        so reads made through the transaction cannot go stale before commit.
        """
        touched: Set[str] = set()
        try:
            async with connect(self._path) as conn:
                await conn.execute("BEGIN IMMEDIATE;")
                txn = Transaction(conn)
                try:
                    yield txn
                    await txn._apply()
                except BaseException:
                    await conn.execute("ROLLBACK;")
                    raise
                await conn.execute("COMMIT;")
                touched = txn.touched
        except aiosqlite.Error as e:
            raise StoreError(f"Transaction failed: {e}") from e
        await self._notify(touched)

    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        doc_id = new_doc_id()
        async with self.transaction() as txn:
            txn.set(collection, doc_id, data)
        return doc_id

    async def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        async with self.transaction() as txn:
            txn.set(collection, doc_id, data, merge=merge)

    async def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        async with self.transaction() as txn:
            txn.update(collection, doc_id, data)

    async def delete(self, collection: str, doc_id: str) -> None:
        async with self.transaction() as txn:
            txn.delete(collection, doc_id)

    # listeners

    async def listen(
        self,
        collection: str,
        callback: Listener,
        filters: Iterable[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> Callable[[], None]:
        """
        Register ``callback`` for snapshots of ``collection``. The current
        snapshot is delivered before this returns. Returns the unsubscribe
        function.
        """
        sub = _Subscription(collection, callback, tuple(filters), order_by, descending)
        self._subs.setdefault(collection, []).append(sub)
        await self._deliver(sub)

        def unsubscribe() -> None:
            sub.active = False
            subs = self._subs.get(collection, [])
            if sub in subs:
                subs.remove(sub)

        return unsubscribe

    def listener_count(self, collection: str) -> int:
        return len(self._subs.get(collection, []))

    async def _deliver(self, sub: _Subscription) -> None:
        try:
            docs = await self.query(
                sub.collection, sub.filters, sub.order_by, sub.descending
            )
            if not sub.active:
                return
            result = sub.callback(docs)
            if inspect.isawaitable(result):
                await result
        except Exception:
            _logger.exception(f"Listener on {sub.collection} raised, skipping it")

    async def _notify(self, collections: Iterable[str]) -> None:
        subs = [s for c in sorted(collections) for s in list(self._subs.get(c, []))]
        if subs:
            await asyncio.gather(*(self._deliver(s) for s in subs))
