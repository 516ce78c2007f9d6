# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/app/routes/auth.py
"""
Authentication API routes

Two ways to open a session:
- POST /login with user_id (or email) and password (desk clients)
- POST /login-rfid with a tapped RFID card (floor terminals)

Both return a bearer token that must be sent as
"Authorization: Bearer <token>" on every protected route.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..decorators import require_auth, bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/sap")


def _login_response(user, login_method: str):
    session, token = session_service.create_session(
        user_id=user.id,
        login_method=login_method,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    return jsonify({
        "success": True,
        "message": "Login successful",
        "data": {
            "user": user.to_dict(),
            "token": token,
            "token_type": "Bearer",
            "session": session.to_dict(),
        }
    }), 200


@auth_bp.post("/login")
def login_route():
    """
    Authenticate with user_id (or email) and password and create a session.

    Only active accounts can log in.
    """
    try:
        data = request.get_json(silent=True) or {}
        identifier = data.get("user_id") or data.get("email") or data.get("identifier")
        password = data.get("password")

        if not identifier or not password:
            return jsonify({
                "success": False,
                "message": "Validation failed",
                "errors": {
                    k: f"The {k} field is required."
                    for k, v in (("user_id", identifier), ("password", password)) if not v
                },
            }), 422

        user = auth_service.authenticate(str(identifier).strip(), password)
        if not user:
            current_app.logger.warning("Failed password login for %s", identifier)
            return jsonify({"success": False, "message": "Invalid credentials"}), 401

        return _login_response(user, "password")

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"success": False, "message": "Internal server error"}), 500


@auth_bp.post("/login-rfid")
def login_rfid_route():
    """Authenticate by RFID card tap and create a session."""
    try:
        data = request.get_json(silent=True) or {}
        id_card = data.get("id_card") or data.get("credential")

        if not id_card or not str(id_card).strip():
            return jsonify({
                "success": False,
                "message": "Validation failed",
                "errors": {"id_card": "The id_card field is required."},
            }), 422

        user = auth_service.authenticate_rfid(str(id_card))
        if not user:
            current_app.logger.warning("Failed RFID login for card %s", id_card)
            return jsonify({
                "success": False,
                "message": "RFID card not registered or account is not active",
            }), 401

        return _login_response(user, "rfid")

    except Exception:
        current_app.logger.exception("Failed to login user by RFID")
        return jsonify({"success": False, "message": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the current session token."""
    try:
        session_service.revoke_session(bearer_token(), reason="User logout")
        return jsonify({"success": True, "message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"success": False, "message": "Internal server error"}), 500


@auth_bp.post("/logout-all")
@require_auth
def logout_all_route():
    """Revoke every open session of the current account (all terminals)."""
    try:
        count = session_service.revoke_all_user_sessions(
            g.current_user.id, reason="User logout from all devices"
        )
        return jsonify({
            "success": True,
            "message": "Logged out from all devices",
            "data": {"sessions_revoked": count},
        }), 200

    except Exception:
        current_app.logger.exception("Failed to logout user from all devices")
        return jsonify({"success": False, "message": "Internal server error"}), 500


@auth_bp.get("/profile")
@require_auth
def profile_route():
    return jsonify({
        "success": True,
        "data": {
            "user": g.current_user.to_dict(),
            "session": g.session_token.to_dict(),
        }
    }), 200


@auth_bp.get("/check-auth")
@require_auth
def check_auth_route():
    """Lightweight token check for clients; 401 comes from @require_auth."""
    return jsonify({
        "success": True,
        "authenticated": True,
        "data": {
            "user_id": g.current_user.user_id,
            "full_name": g.current_user.display_name,
            "department": g.current_user.department,
            "has_rfid": bool(g.current_user.id_card),
            "login_method": g.session_token.login_method,
        }
    }), 200
