# src/wholesale/db/gateway.py
"""
Tenant-scoped access to the document store.

Private data lives under ``tenant/{app}/users/{tenant_id}/{collection}``,
shared data under ``tenant/{app}/public/data/{collection}``. The tenant id
defaults to the signed-in uid and can be overridden to write into somebody
else's space (order copies, notifications).

Simple operations never raise: without a session, or when the store fails,
they log and return a sentinel (``None``, ``False`` or ``[]``).
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Iterable, List, Optional

from wholesale.db.documents import (
    SERVER_TIMESTAMP,
    ArrayRemove,
    ArrayUnion,
    Document,
    DocumentStore,
    Filter,
    Transaction,
)
from wholesale.db.errors import StoreError
from wholesale.utils.logger import get_logger
from wholesale.utils.session import IdentityAdapter

_logger = get_logger(__name__)

DocCallback = Callable[[List[Dict[str, Any]]], Any]


def private_path(app_id: str, tenant_id: str, collection: str) -> str:
    return f"tenant/{app_id}/users/{tenant_id}/{collection}"


def public_path(app_id: str, collection: str) -> str:
    return f"tenant/{app_id}/public/data/{collection}"


class GatewayTransaction:
    """``Transaction`` wrapper that speaks collection names instead of paths."""

    def __init__(self, gateway: "TenantGateway", txn: Transaction) -> None:
        self._gw = gateway
        self._txn = txn

    async def get(self, collection: str, doc_id: str, public: bool = False, tenant_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        doc = await self._txn.get(self._gw._require_path(collection, public, tenant_id), doc_id)
        return doc.to_dict() if doc else None

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], public: bool = False, tenant_id: Optional[str] = None) -> None:
        body = {**data, "created_at": SERVER_TIMESTAMP}
        self._txn.set(self._gw._require_path(collection, public, tenant_id), doc_id, body)

    def merge(self, collection: str, doc_id: str, data: Dict[str, Any], public: bool = False, tenant_id: Optional[str] = None) -> None:
        body = {**data, "updated_at": SERVER_TIMESTAMP}
        self._txn.set(self._gw._require_path(collection, public, tenant_id), doc_id, body, merge=True)

    def update(self, collection: str, doc_id: str, data: Dict[str, Any], public: bool = False, tenant_id: Optional[str] = None) -> None:
        body = {**data, "updated_at": SERVER_TIMESTAMP}
        self._txn.update(self._gw._require_path(collection, public, tenant_id), doc_id, body)

    def delete(self, collection: str, doc_id: str, public: bool = False, tenant_id: Optional[str] = None) -> None:
        self._txn.delete(self._gw._require_path(collection, public, tenant_id), doc_id)


class TenantGateway:
    def __init__(self, store: DocumentStore, session: IdentityAdapter, app_id: str) -> None:
        self._store = store
        self._session = session
        self._app_id = app_id

    @property
    def app_id(self) -> str:
        return self._app_id

    @property
    def uid(self) -> Optional[str]:
        return self._session.current.uid if self._session.current else None

    @property
    def ready(self) -> bool:
        return self._session.current is not None

    # ---------------------------
    # Paths
    # ---------------------------

    def collection_path(self, collection: str, public: bool = False, tenant_id: Optional[str] = None) -> Optional[str]:
        """
        Storage path of ``collection`` or None when there is no session yet.
        """
        if not self.ready:
            return None
        if public:
            return public_path(self._app_id, collection)
        return private_path(self._app_id, tenant_id or self.uid, collection)

    def _require_path(self, collection: str, public: bool, tenant_id: Optional[str]) -> str:
        path = self.collection_path(collection, public, tenant_id)
        if path is None:
            raise StoreError("No session established.")
        return path

    # ---------------------------
    # Reads
    # ---------------------------

    async def fetch_all(
        self,
        collection: str,
        public: bool = False,
        tenant_id: Optional[str] = None,
        filters: Iterable[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Dict[str, Any]]:
        path = self.collection_path(collection, public, tenant_id)
        if path is None:
            return []
        try:
            docs = await self._store.query(path, filters, order_by, descending)
        except StoreError as e:
            _logger.error(f"Fetching {collection} failed: {e}")
            return []
        return [d.to_dict() for d in docs]

    async def fetch_one(self, collection: str, doc_id: str, public: bool = False, tenant_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        path = self.collection_path(collection, public, tenant_id)
        if path is None:
            return None
        try:
            doc = await self._store.get(path, doc_id)
        except StoreError as e:
            _logger.error(f"Fetching {collection}/{doc_id} failed: {e}")
            return None
        return doc.to_dict() if doc else None

    # ---------------------------
    # Writes
    # ---------------------------

    async def add(self, collection: str, data: Dict[str, Any], public: bool = False, tenant_id: Optional[str] = None) -> Optional[str]:
        """Create a document with a generated id; returns the id or None."""
        path = self.collection_path(collection, public, tenant_id)
        if path is None:
            return None
        try:
            return await self._store.add(path, {**data, "created_at": SERVER_TIMESTAMP})
        except StoreError as e:
            _logger.error(f"Adding to {collection} failed: {e}")
            return None

    async def set_merge(self, collection: str, doc_id: str, data: Dict[str, Any], public: bool = False, tenant_id: Optional[str] = None) -> bool:
        """Upsert: create the document or merge ``data`` into the stored fields."""
        path = self.collection_path(collection, public, tenant_id)
        if path is None:
            return False
        try:
            await self._store.set(path, doc_id, {**data, "updated_at": SERVER_TIMESTAMP}, merge=True)
        except StoreError as e:
            _logger.error(f"Saving {collection}/{doc_id} failed: {e}")
            return False
        return True

    async def delete(self, collection: str, doc_id: str, public: bool = False, tenant_id: Optional[str] = None) -> bool:
        """Delete by id; a missing document counts as deleted."""
        path = self.collection_path(collection, public, tenant_id)
        if path is None:
            return False
        try:
            await self._store.delete(path, doc_id)
        except StoreError as e:
            _logger.error(f"Deleting {collection}/{doc_id} failed: {e}")
            return False
        return True

    async def append(self, collection: str, doc_id: str, field: str, *values: Any, public: bool = False, tenant_id: Optional[str] = None) -> bool:
        """Atomically add ``values`` to the array ``field`` (skipping ones already there)."""
        return await self.set_merge(collection, doc_id, {field: ArrayUnion(*values)}, public, tenant_id)

    async def remove_values(self, collection: str, doc_id: str, field: str, *values: Any, public: bool = False, tenant_id: Optional[str] = None) -> bool:
        return await self.set_merge(collection, doc_id, {field: ArrayRemove(*values)}, public, tenant_id)

    @asynccontextmanager
    async def transaction(self):
        """
        Atomic multi-document write across tenants. Raises StoreError when
        there is no session or the commit fails.
        """
        if not self.ready:
            raise StoreError("No session established.")
        async with self._store.transaction() as txn:
            yield GatewayTransaction(self, txn)

    # ---------------------------
    # Live feeds
    # ---------------------------

    async def subscribe(
        self,
        collection: str,
        callback: DocCallback,
        public: bool = False,
        tenant_id: Optional[str] = None,
        filters: Iterable[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> Optional[Callable[[], None]]:
        """
        Deliver the current documents of ``collection`` to ``callback`` and
        again after every write to it. Returns the unsubscribe function, or
        None when there is no session.
        """
        path = self.collection_path(collection, public, tenant_id)
        if path is None:
            return None

        def on_snapshot(docs: List[Document]):
            return callback([d.to_dict() for d in docs])

        return await self._store.listen(path, on_snapshot, filters, order_by, descending)
