# backend/app/routes/system.py
"""
System health and version endpoints.

Health covers the local database and whether the ERP connection is
configured. The ERP itself is not called from here; a health probe must not
depend on the ERP being reachable.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import User, SessionToken, GoodsReceipt
from ..models.receipts import PENDING_MESSAGE
from ..services.erp_client import get_erp_client
from app.time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        user_count = db.session.query(User).count()
        receipt_count = db.session.query(GoodsReceipt).count()
        pending_count = db.session.query(GoodsReceipt).filter(
            GoodsReceipt.success.is_(False),
            GoodsReceipt.error_message == PENDING_MESSAGE,
        ).count()
        active_sessions = db.session.query(SessionToken).filter_by(is_revoked=False).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "users": user_count,
                "good_receipts": receipt_count,
                "pending_good_receipts": pending_count,
                "active_sessions": active_sessions,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_erp_config_health() -> dict:
    """Report whether ERP connection settings are present (no network call)."""
    config = get_erp_client().config
    if not config.is_configured:
        return {
            "status": "degraded",
            "warning": "ERP base URL or credentials not configured",
        }
    return {
        "status": "healthy",
        "details": {
            "base_url": config.base_url,
            "client": config.client,
            "timeout_seconds": config.timeout_seconds,
        }
    }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded (ERP not configured)
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    erp_health = check_erp_config_health()

    all_checks = [database_health, erp_health]
    unhealthy_count = sum(1 for check in all_checks if check["status"] == "unhealthy")
    degraded_count = sum(1 for check in all_checks if check["status"] == "degraded")

    if unhealthy_count > 0:
        overall_status = "unhealthy"
        http_status = 503
    elif degraded_count > 0:
        overall_status = "degraded"
        http_status = 200  # Degraded is still operational
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "erp": erp_health,
        }
    }

    return response, http_status


@system_bp.get("/version")
def version():
    """
    Version endpoint for deployment debugging.

    Does NOT expose secrets or ERP credentials.
    """
    import sys

    env = "production" if not current_app.debug else "development"

    return {
        "api_version": "1.0.0",
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": utcnow().isoformat() + "Z",
    }
