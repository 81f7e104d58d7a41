"""
API routes (AJAX endpoints).

Handles:
- /health             - Health check endpoint
- /api/limits         - Current limit snapshot of the signed-in student
- /api/limits/refresh - Refresh trigger (tab visibility regained)
"""

from flask import Blueprint, current_app

from routes.common import current_student, get_service
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

api_bp = Blueprint("api", __name__)


@api_bp.route("/api/limits", methods=["GET"])
def limits():
    """
    The student's snapshot as the evaluator sees it.

    An unconfirmed snapshot means no fetch has succeeded yet; every item is
    blocked until one does.
    """
    student = current_student()
    snapshot = get_service("LIMITS_SERVICE").get_snapshot(student.id)
    return {"success": True, "data": snapshot.to_dict()}


@api_bp.route("/api/limits/refresh", methods=["POST"])
def refresh_limits():
    """
    Request a refresh without waiting for it.

    Triggers coalesce in the limits thread, so repeated calls are cheap.
    """
    student = current_student()
    limits_service = get_service("LIMITS_SERVICE")
    trigger_id = limits_service.request_refresh(student.id, "visibility")
    if trigger_id == 0:
        # Server restarted since sign-in; start tracking again
        trigger_id = limits_service.register(student)
    return {"success": True, "triggerId": trigger_id}, 202


@api_bp.route("/health", methods=["GET"])
def health():
    """Health check endpoint with service status."""
    health_status = {
        "status": "ok",
        "environment": current_app.config.get("ENVIRONMENT", "unknown"),
        "checks": {}
    }

    limits_service = current_app.config.get("LIMITS_SERVICE")
    if limits_service and limits_service.is_running:
        health_status["checks"]["limits"] = "running"
        health_status["checks"]["tracked_students"] = len(limits_service.student_ids)
    else:
        health_status["checks"]["limits"] = "stopped"
        health_status["status"] = "degraded"

    realtime_service = current_app.config.get("REALTIME_SERVICE")
    if realtime_service is None:
        health_status["checks"]["realtime"] = "disabled"
    elif realtime_service.is_connected:
        health_status["checks"]["realtime"] = "connected"
    else:
        health_status["checks"]["realtime"] = "disconnected"

    status_code = 200 if health_status["status"] == "ok" else 503
    return health_status, status_code
