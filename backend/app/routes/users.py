# Overview: Flask API routes for user directory administration; parses input and returns JSON responses.

# backend/app/routes/users.py
"""
User directory administration.

Provides endpoints for:
- Listing accounts
- Creating accounts (user_id assigned in sequence)
- Updating accounts
- Changing a password
- Deactivating an account (never deleted)

All endpoints require a session belonging to the IT department.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import user_service
from ..services.user_service import UserNotFoundError
from ..validation import StructuralValidationError
from ..decorators import require_auth, require_department

users_bp = Blueprint("users", __name__, url_prefix="/api/sap/users")


def _validation_failed(e: StructuralValidationError):
    return jsonify({"success": False, "message": str(e), "errors": e.errors}), 422


def _not_found():
    return jsonify({"success": False, "message": "User not found"}), 404


@users_bp.get("")
@require_auth
@require_department()
def list_users():
    """
    List all accounts ordered by user_id.

    Query params:
    - include_inactive: bool (default true)
    """
    include_inactive = request.args.get("include_inactive", "true").lower() != "false"
    users = user_service.list_users(include_inactive=include_inactive)
    return jsonify({
        "success": True,
        "data": [u.to_dict() for u in users],
        "meta": {"total": len(users)},
    })


@users_bp.post("")
@require_auth
@require_department()
def create_user():
    """
    Create a new account.

    Request body:
    - first_name, last_name, role (or jabatan), department, email: str (required)
    - password: str (required, min 6)
    - id_card: str (optional, unique)
    - status: "active" | "inactive" (optional, default active)
    """
    try:
        user = user_service.create_user(request.get_json(silent=True) or {})
        current_app.logger.info("Created user %s", user.user_id)
        return jsonify({
            "success": True,
            "message": "User created successfully",
            "data": user.to_dict(),
        }), 201

    except StructuralValidationError as e:
        return _validation_failed(e)
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"success": False, "message": "Failed to create user"}), 500


@users_bp.put("/<user_id>")
@require_auth
@require_department()
def update_user(user_id: str):
    """Update any subset of first_name, last_name, role, department, email, id_card, status."""
    try:
        user = user_service.update_user(user_id, request.get_json(silent=True) or {})
        return jsonify({
            "success": True,
            "message": "User updated successfully",
            "data": user.to_dict(),
        })

    except UserNotFoundError:
        return _not_found()
    except StructuralValidationError as e:
        return _validation_failed(e)
    except Exception:
        current_app.logger.exception("Failed to update user %s", user_id)
        return jsonify({"success": False, "message": "Failed to update user"}), 500


@users_bp.put("/<user_id>/change-password")
@require_auth
@require_department()
def change_password(user_id: str):
    data = request.get_json(silent=True) or {}
    try:
        user = user_service.change_password(user_id, data.get("new_password"))
        return jsonify({
            "success": True,
            "message": "Password changed successfully",
            "data": {"user_id": user.user_id, "full_name": user.display_name},
        })

    except UserNotFoundError:
        return _not_found()
    except StructuralValidationError as e:
        return _validation_failed(e)
    except Exception:
        current_app.logger.exception("Failed to change password for %s", user_id)
        return jsonify({"success": False, "message": "Failed to change password"}), 500


@users_bp.patch("/<user_id>/deactivate")
@require_auth
@require_department()
def deactivate_user(user_id: str):
    """Set status to inactive and revoke the account's sessions."""
    try:
        user = user_service.deactivate_user(user_id)
        return jsonify({
            "success": True,
            "message": "User deactivated successfully",
            "data": {
                "user_id": user.user_id,
                "full_name": user.display_name,
                "status": user.status,
            },
        })

    except UserNotFoundError:
        return _not_found()
    except Exception:
        current_app.logger.exception("Failed to deactivate user %s", user_id)
        return jsonify({"success": False, "message": "Failed to deactivate user"}), 500
