# Overview: Flask API routes for sales and stock summaries per inventory.

from flask import Blueprint, request, g, current_app

from ..errors import ServiceError
from ..responses import success, failure, from_service_error
from ..decorators import require_auth
from ..services import summary_service

summary_bp = Blueprint("summary", __name__, url_prefix="/api/summary")


@summary_bp.get("")
@require_auth
def get_summary():
    """
    Query params:
    - period: daily | weekly | monthly | yearly | all (required)
    - inventoryId: int (optional; admins must manage it)
    """
    try:
        data = summary_service.summarize(
            period=request.args.get("period"),
            user_id=g.current_user.id,
            role=g.current_user.role,
            inventory_id=request.args.get("inventoryId"),
        )
    except ServiceError as e:
        return from_service_error(e)
    except Exception as e:
        current_app.logger.exception("Failed to build summary")
        return failure("Failed to fetch summary", 500, error=str(e))

    return success("Summary retrieved successfully", data)
