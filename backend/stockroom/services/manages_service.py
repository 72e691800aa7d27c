from __future__ import annotations

from ..extensions import db
from ..models import Inventory, Manages, User
from ..models.auth import ROLE_ADMIN
from ..errors import ConflictError, NotFoundError, ValidationError
from .stock_service import parse_id


def list_manages(*, user_id: int | None = None, session=None) -> list[Manages]:
    session = session or db.session
    query = session.query(Manages)
    if user_id is not None:
        query = query.filter_by(user_id=user_id)
    return query.order_by(Manages.user_id.asc(), Manages.inventory_id.asc()).all()


def grant_manages(*, user_id, inventory_id, session=None) -> Manages:
    session = session or db.session
    user_id = parse_id(user_id, "userId")
    inventory_id = parse_id(inventory_id, "inventoryId")

    user = session.get(User, user_id)
    if not user:
        raise NotFoundError("User")
    if user.role != ROLE_ADMIN:
        raise ValidationError("Only admin users can be assigned to manage inventories")

    if session.get(Inventory, inventory_id) is None:
        raise NotFoundError("Inventory")

    existing = session.query(Manages).filter_by(user_id=user_id, inventory_id=inventory_id).first()
    if existing:
        raise ConflictError("This user already manages this inventory")

    access = Manages(user_id=user_id, inventory_id=inventory_id)
    session.add(access)
    session.commit()
    return access


def revoke_manages(manages_id: int, *, session=None) -> None:
    session = session or db.session
    access = session.get(Manages, manages_id)
    if not access:
        raise NotFoundError("Manages relationship")

    session.delete(access)
    session.commit()
