# Overview: Flask API routes for login/logout; issues the bearer tokens other routes require.

from flask import Blueprint, request, g, current_app

from ..responses import success, failure
from ..decorators import require_auth
from ..services import auth_service, session_service

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login():
    payload = request.get_json(silent=True) or {}
    email = payload.get("email")
    password = payload.get("password")
    if not email or not password:
        return failure("email and password are required", 400)

    try:
        user = auth_service.authenticate(email, password)
        if not user:
            return failure("Invalid email or password", 401)
        _, token = session_service.create_session(user.id)
    except Exception as e:
        current_app.logger.exception("Failed to login user")
        return failure("Error logging in", 500, error=str(e))

    return success("Login successful", {"token": token, "user": user.to_dict()})


@auth_bp.post("/logout")
@require_auth
def logout():
    token = request.headers["Authorization"].split(" ", 1)[1]
    session_service.revoke_session(token)
    return success("Logged out", None)


@auth_bp.get("/me")
@require_auth
def me():
    return success("Current user retrieved successfully", g.current_user.to_dict())
