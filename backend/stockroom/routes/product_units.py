# Overview: Flask API routes for product-unit rates; parses input and returns JSON responses.

from flask import Blueprint, request, current_app

from ..extensions import db
from ..errors import ServiceError
from ..responses import success, failure, from_service_error
from ..decorators import require_auth, require_role
from ..services import catalog_service

product_units_bp = Blueprint("product_units", __name__, url_prefix="/api/product-units")


@product_units_bp.get("")
@require_auth
def list_rates():
    rows = catalog_service.list_rates(product_id=request.args.get("productId", type=int))
    return success("Product units retrieved successfully", [r.to_dict() for r in rows])


@product_units_bp.get("/<int:rate_id>")
@require_auth
def get_rate(rate_id: int):
    try:
        row = catalog_service.get_rate(rate_id)
    except ServiceError as e:
        return from_service_error(e)
    return success("Product unit retrieved successfully", row.to_dict())


@product_units_bp.post("")
@require_auth
@require_role("admin", "superadmin")
def create_rate():
    """
    Request body: { "productId": int, "unitId": int, "rate": number >= 0 }
    """
    data = request.get_json(silent=True) or {}
    try:
        row = catalog_service.create_rate(
            product_id=data.get("productId"),
            unit_id=data.get("unitId"),
            rate=data.get("rate"),
        )
    except ServiceError as e:
        db.session.rollback()
        return from_service_error(e)
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("Failed to create product unit rate")
        return failure("Error creating product unit", 500, error=str(e))

    return success("Product unit created successfully", row.to_dict(), 201)


@product_units_bp.put("/<int:rate_id>")
@require_auth
@require_role("admin", "superadmin")
def update_rate(rate_id: int):
    data = request.get_json(silent=True) or {}
    try:
        row = catalog_service.update_rate(rate_id, rate=data.get("rate"))
    except ServiceError as e:
        db.session.rollback()
        return from_service_error(e)
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("Failed to update product unit rate")
        return failure("Error updating product unit", 500, error=str(e))

    return success("Product unit updated successfully", row.to_dict())


@product_units_bp.delete("/<int:rate_id>")
@require_auth
@require_role("superadmin")
def delete_rate(rate_id: int):
    try:
        catalog_service.delete_rate(rate_id)
    except ServiceError as e:
        db.session.rollback()
        return from_service_error(e)
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("Failed to delete product unit rate")
        return failure("Error deleting product unit", 500, error=str(e))

    return success("Product unit deleted successfully", None)
