"""Middleware chain with canonical slots.

Units are appended in any order; ``ordered()`` sorts them by slot and keeps
insertion order inside a slot, so the assembled chain does not depend on
the order in which callers configured the application. The chain is frozen
once the listener binds.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Iterator, List

from core.exceptions import FrozenChainError


class Slot(IntEnum):
    RESPONSE_TIME = 10
    LOGGER = 20
    BODY = 30
    PLUGIN = 40
    ROUTES = 50
    ALLOWED_METHODS = 60
    STATIC = 70


class UnitKind(str, Enum):
    # async handler(ctx, call_next)
    MIDDLEWARE = "middleware"
    # (asgi_middleware_class, kwargs) mounted as-is
    ASGI = "asgi"
    # installer(http_app) that adds routes or mounts
    ROUTING = "routing"


@dataclass(frozen=True, slots=True)
class MiddlewareUnit:
    name: str
    slot: Slot
    handler: Any
    kind: UnitKind = UnitKind.MIDDLEWARE


class MiddlewareChain:
    def __init__(self) -> None:
        self._units: List[MiddlewareUnit] = []
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def add(self, unit: MiddlewareUnit) -> MiddlewareUnit:
        if self._frozen:
            raise FrozenChainError(
                f"cannot add '{unit.name}': middleware chain is frozen"
            )
        if unit.name in self:
            raise ValueError(f"Middleware unit '{unit.name}' already added")
        self._units.append(unit)
        return unit

    def freeze(self) -> None:
        self._frozen = True

    def ordered(self) -> list[MiddlewareUnit]:
        # sorted() is stable: same-slot units keep insertion order
        return sorted(self._units, key=lambda u: u.slot)

    def names(self) -> list[str]:
        return [u.name for u in self.ordered()]

    def get(self, name: str) -> MiddlewareUnit | None:
        for unit in self._units:
            if unit.name == name:
                return unit
        return None

    def __contains__(self, name: object) -> bool:
        return any(u.name == name for u in self._units)

    def __iter__(self) -> Iterator[MiddlewareUnit]:
        return iter(self.ordered())

    def __len__(self) -> int:
        return len(self._units)


__all__ = ["Slot", "UnitKind", "MiddlewareUnit", "MiddlewareChain"]
