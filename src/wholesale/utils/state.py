from __future__ import annotations

from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Dict, Iterable, List, Optional

from wholesale.db import crud, models
from wholesale.db.gateway import TenantGateway
from wholesale.utils.logger import get_logger
from wholesale.utils.session import Identity, IdentityAdapter

_logger = get_logger(__name__)


class EntityCache:
    """
    Normalized client-side store: ``kind -> id -> document``.

    Feeds replace a whole kind at once; screens read projections of it
    instead of keeping their own copies.
    """

    def __init__(self) -> None:
        self._items: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def replace(self, kind: str, docs: List[Dict[str, Any]]) -> None:
        self._items[kind] = {d["id"]: d for d in docs}

    def upsert(self, kind: str, doc: Dict[str, Any]) -> None:
        self._items.setdefault(kind, {})[doc["id"]] = doc

    def remove(self, kind: str, doc_id: str) -> None:
        self._items.get(kind, {}).pop(doc_id, None)

    def get(self, kind: str, doc_id: str) -> Optional[Dict[str, Any]]:
        return self._items.get(kind, {}).get(doc_id)

    def all(self, kind: str) -> List[Dict[str, Any]]:
        """Documents of ``kind`` in the order the feed delivered them."""
        return list(self._items.get(kind, {}).values())

    def project(self, kind: str, factory: Callable[[Dict[str, Any]], Any]) -> List[Any]:
        return [factory(d) for d in self.all(kind)]

    def has(self, kind: str) -> bool:
        return kind in self._items

    def clear(self) -> None:
        self._items.clear()


@dataclass
class GlobalState:
    """
    Centralized application state shared by screens.

    Fields:
      - session: identity adapter, the source of the current uid
      - role: "retailer" | "wholesaler" | "admin", read from the profile
      - profile: the signed-in user's profile, None for guests
      - entities: normalized cache fed by the live subscriptions
    """

    session: IdentityAdapter
    role: Optional[str] = None
    profile: Optional[models.Profile] = None
    entities: EntityCache = field(default_factory=EntityCache)

    @property
    def identity(self) -> Optional[Identity]:
        return self.session.current

    @property
    def uid(self) -> Optional[str]:
        return self.session.current.uid if self.session.current else None

    @property
    def is_guest(self) -> bool:
        return self.session.current is None or self.session.current.is_anonymous

    @property
    def me(self) -> models.Profile:
        """Profile to stamp on writes; guests get a placeholder."""
        if self.profile:
            return self.profile
        return models.Profile(uid=self.uid or "", company_name="Guest", role=self.role or models.DEFAULT_ROLE)

    async def load_profile(self, gw: TenantGateway) -> str:
        """
        Read the authoritative role once per session start.
        Sessions without a profile (guests) browse as retailers.
        """
        self.entities.clear()
        self.profile = await crud.get_profile(gw) if self.uid else None
        if self.profile:
            self.role = self.profile.role
        else:
            if self.identity and not self.identity.is_anonymous:
                _logger.warning(f"User {self.uid} has no profile, using the default role.")
            self.role = models.DEFAULT_ROLE
        return self.role

    def reset(self) -> None:
        self.role = None
        self.profile = None
        self.entities.clear()


class FeedSet:
    """
    Live subscriptions owned by one screen, bound to the uid they were
    opened for.

    Suspended screens stay mounted across a logout, so the set also watches
    the session and drops its subscriptions as soon as the identity
    changes. Snapshots that still arrive for an older uid are ignored.
    """

    def __init__(self, state: GlobalState, gateway: TenantGateway, on_change: Callable[[str], Any]) -> None:
        self.state = state
        self.gateway = gateway
        self._on_change = on_change
        self._unsubscribers: List[Callable[[], None]] = []
        self._unwatch_session: Optional[Callable[[], None]] = None
        self.uid: Optional[str] = None

    @property
    def active(self) -> bool:
        return self.uid is not None and self.uid == self.state.uid

    async def start(self, kinds: Iterable[str]) -> None:
        """(Re)subscribe every feed in ``kinds`` for the current session."""
        self.stop()
        self.uid = self.state.uid
        if self.uid is None:
            return
        self._unwatch_session = self.state.session.subscribe(self._on_identity)
        for kind in kinds:
            unsubscribe = await crud.watch(self.gateway, kind, partial(self._deliver, kind, self.uid))
            if unsubscribe is None:
                _logger.warning(f"No feed for {kind}")
                continue
            self._unsubscribers.append(unsubscribe)

    def stop(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        if self._unwatch_session:
            self._unwatch_session()
            self._unwatch_session = None
        self.uid = None

    def _on_identity(self, identity: Optional[Identity]) -> None:
        if (identity.uid if identity else None) != self.uid:
            _logger.debug(f"Session moved away from {self.uid}, stopping feeds")
            self.stop()

    def _deliver(self, kind: str, uid: str, docs: List[Dict[str, Any]]) -> None:
        if uid != self.state.uid:
            return
        self.state.entities.replace(kind, docs)
        self._on_change(kind)
