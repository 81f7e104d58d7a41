"""
Session routes.

Handles:
- POST /session   - Sign in with an upstream bearer token
- DELETE /session - Sign out
"""

from flask import Blueprint, current_app, request, session

from core.exceptions import NotAuthenticatedError, UpstreamResponseError
from models.student import Student
from routes.common import (
    get_service,
    json_error,
    optional_student,
    public_student,
    save_cart,
)
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

auth_bp = Blueprint("auth", __name__)


@auth_bp.route("/session", methods=["POST"])
def sign_in():
    """
    Start a session for the student owning ``token``.

    The profile is fetched once; the limits service then keeps the
    student's snapshot fresh in the background.
    """
    data = request.get_json(silent=True) or {}
    token = (data.get("token") or "").strip()
    if not token:
        return json_error("A token is required to sign in", 400)

    client_factory = get_service("API_CLIENT_FACTORY")
    try:
        profile = client_factory(token).get_profile()
    except UpstreamResponseError as e:
        if e.http_status in (401, 403):
            raise NotAuthenticatedError("Your session has expired. Please sign in again.")
        raise

    student = Student.from_profile(profile, token)
    if not student.id:
        return json_error("Profile has no student id", 502)

    previous = optional_student()
    if previous is None or previous.id != student.id:
        save_cart([])
    session["student"] = student.to_session_dict()
    session.modified = True

    get_service("LIMITS_SERVICE").register(student)
    logger.info(f"Student {student.id} signed in ({student.student_type} student)")

    return {"success": True, "data": public_student(student)}


@auth_bp.route("/session", methods=["DELETE"])
def sign_out():
    """End the session and stop tracking the student's limits."""
    student = optional_student()
    if student is not None:
        limits_service = current_app.config.get("LIMITS_SERVICE")
        if limits_service:
            limits_service.unregister(student.id)
        order_service = current_app.config.get("ORDER_SERVICE")
        if order_service:
            order_service.forget(student.id)
        logger.info(f"Student {student.id} signed out")

    session.clear()
    return {"success": True}
