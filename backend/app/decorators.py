# Overview: Request decorators for API routes; bearer-token auth and department gating.

from functools import wraps
from flask import request, jsonify, g, current_app

from .services import session_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid session token.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_token: The SessionToken row backing the request

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"success": False, "message": "Authentication required"}), 401

        session = session_service.validate_session(token)
        if not session:
            return jsonify({"success": False, "message": "Invalid or expired token"}), 401

        g.current_user = session.user
        g.session_token = session

        return f(*args, **kwargs)

    return decorated_function


def require_department(department: str | None = None):
    """
    Require the authenticated user to belong to a department (case-insensitive).

    Defaults to the ADMIN_DEPARTMENT config value. Must be stacked under
    @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"success": False, "message": "Authentication required"}), 401

            required = department or current_app.config.get("ADMIN_DEPARTMENT", "IT")
            actual = (g.current_user.department or "").strip().upper()

            if actual != required.upper():
                current_app.logger.warning(
                    "Department access denied: user=%s department=%s path=%s",
                    g.current_user.user_id, g.current_user.department, request.path,
                )
                return jsonify({
                    "success": False,
                    "message": f"Access denied. {required} department only.",
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
