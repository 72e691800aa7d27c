# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, g

from .responses import failure
from .services import session_service


def require_auth(f):
    """
    Require a valid bearer token.

    Sets g.current_user to the authenticated User. The rest of the request
    trusts g.current_user.id and g.current_user.role completely.

    Returns 401 if the Authorization header is missing, or the token is
    unknown, expired, revoked, or belongs to a deactivated user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return failure("Access token required", 401)

        token = auth_header.split(" ", 1)[1]
        user = session_service.validate_session(token)
        if not user:
            return failure("Invalid or expired token", 401)

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles):
    """
    Require the authenticated user to hold one of the given roles.

    Must be applied after @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "current_user"):
                return failure("Authentication required", 401)

            if g.current_user.role not in roles:
                return failure(
                    f"Access denied. Requires role: {' or '.join(roles)}",
                    403,
                    requiredRoles=list(roles),
                )
            return f(*args, **kwargs)

        return decorated_function
    return decorator
