# Overview: Flask API routes for admin-to-inventory assignments.

from flask import Blueprint, request, g, current_app

from ..extensions import db
from ..errors import ServiceError
from ..models.auth import ROLE_SUPERADMIN
from ..responses import success, failure, from_service_error
from ..decorators import require_auth, require_role
from ..services import manages_service

manages_bp = Blueprint("manages", __name__, url_prefix="/api/manages")


@manages_bp.get("")
@require_auth
@require_role("admin", "superadmin")
def list_manages():
    """Superadmin sees every assignment; admins see their own."""
    user = g.current_user
    user_id = None if user.role == ROLE_SUPERADMIN else user.id
    rows = manages_service.list_manages(user_id=user_id)
    return success("Manages relationships retrieved successfully", [m.to_dict() for m in rows])


@manages_bp.post("")
@require_auth
@require_role("superadmin")
def grant_manages():
    data = request.get_json(silent=True) or {}
    try:
        row = manages_service.grant_manages(
            user_id=data.get("userId"),
            inventory_id=data.get("inventoryId"),
        )
    except ServiceError as e:
        db.session.rollback()
        return from_service_error(e)
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("Failed to create manages relationship")
        return failure("Error creating manages relationship", 500, error=str(e))

    return success("Manages relationship created successfully", row.to_dict(), 201)


@manages_bp.delete("/<int:manages_id>")
@require_auth
@require_role("superadmin")
def revoke_manages(manages_id: int):
    try:
        manages_service.revoke_manages(manages_id)
    except ServiceError as e:
        db.session.rollback()
        return from_service_error(e)
    return success("Manages relationship deleted successfully", None)
