from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from textual.screen import Screen

from wholesale.db.models import DEFAULT_ROLE

ScreenFactory = Callable[..., Screen]


@dataclass(frozen=True)
class Route:
    key: str
    label: str
    screen: ScreenFactory


class ViewRouter:
    """
    Maps ``(role, view key)`` to a screen. The first route of a role is its
    default view; unknown keys and keys of other roles fall back to it.
    """

    def __init__(self, routes: Dict[str, List[Route]]) -> None:
        if not routes:
            raise ValueError("At least one role needs routes.")
        for role, items in routes.items():
            if not items:
                raise ValueError(f"Role {role!r} has no routes.")
        self._routes = routes

    @property
    def roles(self) -> Tuple[str, ...]:
        return tuple(self._routes)

    def _role(self, role: Optional[str]) -> str:
        if role in self._routes:
            return role
        return DEFAULT_ROLE if DEFAULT_ROLE in self._routes else next(iter(self._routes))

    def nav_items(self, role: Optional[str]) -> List[Tuple[str, str]]:
        """(key, label) pairs for the sidebar menu."""
        return [(r.key, r.label) for r in self._routes[self._role(role)]]

    def default_view(self, role: Optional[str]) -> str:
        return self._routes[self._role(role)][0].key

    def resolve(self, role: Optional[str], view_key: Optional[str]) -> Route:
        items = self._routes[self._role(role)]
        for route in items:
            if route.key == view_key:
                return route
        return items[0]

    def allowed(self, role: Optional[str], view_key: str) -> bool:
        return any(r.key == view_key for r in self._routes[self._role(role)])

    def screens(self) -> Dict[str, ScreenFactory]:
        """Every distinct view key with its screen, for mode registration."""
        found: Dict[str, ScreenFactory] = {}
        for items in self._routes.values():
            for route in items:
                existing = found.setdefault(route.key, route.screen)
                if existing is not route.screen:
                    raise ValueError(f"View {route.key!r} maps to two screens.")
        return found
