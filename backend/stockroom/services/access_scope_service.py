# Overview: Resolves which inventories a user may read or write.

"""
Inventory access scope.

superadmin -> unrestricted
admin      -> inventories listed in Manages for that user (possibly none)
any other  -> none

Unknown roles degrade to an empty scope; nothing here raises.
"""
from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import false

from ..extensions import db
from ..models import Manages
from ..models.auth import ROLE_ADMIN, ROLE_SUPERADMIN


@dataclass(frozen=True)
class AccessScope:
    """None means unrestricted; an empty frozenset means no inventories."""

    inventory_ids: frozenset[int] | None

    @classmethod
    def unrestricted(cls) -> "AccessScope":
        return cls(None)

    @classmethod
    def empty(cls) -> "AccessScope":
        return cls(frozenset())

    @property
    def is_unrestricted(self) -> bool:
        return self.inventory_ids is None

    @property
    def is_empty(self) -> bool:
        return self.inventory_ids is not None and not self.inventory_ids

    def allows(self, inventory_id) -> bool:
        if inventory_id is None:
            return False
        if self.is_unrestricted:
            return True
        try:
            return int(inventory_id) in self.inventory_ids
        except (TypeError, ValueError):
            return False

    def restrict(self, inventory_id: int | None) -> "AccessScope":
        """Intersect with an explicit inventory filter."""
        if inventory_id is None:
            return self
        if self.allows(inventory_id):
            return AccessScope(frozenset({int(inventory_id)}))
        return AccessScope.empty()

    def apply(self, query, column):
        """Filter a query to this scope before any aggregation happens."""
        if self.is_unrestricted:
            return query
        if self.is_empty:
            return query.filter(false())
        return query.filter(column.in_(sorted(self.inventory_ids)))

    def to_list(self) -> list[int] | None:
        return None if self.inventory_ids is None else sorted(self.inventory_ids)


def get_managed_inventory_ids(user_id: int, *, session=None) -> set[int]:
    session = session or db.session
    rows = session.query(Manages.inventory_id).filter_by(user_id=user_id).all()
    return {row[0] for row in rows}


def resolve_scope(user_id: int, role: str | None, *, session=None) -> AccessScope:
    if role == ROLE_SUPERADMIN:
        return AccessScope.unrestricted()
    if role == ROLE_ADMIN:
        ids = get_managed_inventory_ids(user_id, session=session)
        if not ids:
            return AccessScope.empty()
        return AccessScope(frozenset(ids))
    return AccessScope.empty()


def check_access(user_id: int, role: str | None, inventory_id, *, session=None) -> bool:
    if role == ROLE_SUPERADMIN:
        return True
    if role == ROLE_ADMIN:
        return resolve_scope(user_id, role, session=session).allows(inventory_id)
    return False
