"""
Helpers shared by the route blueprints.

Session layout:
    session["student"] - Student.to_session_dict() of the signed-in student
    session["cart"]    - list of CartLine.to_dict()
"""

from typing import Dict, Any, List, Optional

import bleach
from flask import current_app, session

from core.exceptions import NotAuthenticatedError, UniformPortalError
from models.limits import LimitSnapshot
from models.order import CartLine, cart_from_session, cart_to_session
from models.student import Student


MAX_NOTES_LENGTH = 1000
MAX_FIELD_LENGTH = 200


def sanitize_text(text: str, max_length: int = None) -> str:
    """Sanitize user input text."""
    if not text:
        return ""
    text = str(text).strip()
    text = bleach.clean(text, tags=[], strip=True)
    if max_length and len(text) > max_length:
        text = text[:max_length]
    return text


def get_service(name: str):
    """
    Service stored in ``app.config`` by create_app().

    Raises:
        UniformPortalError: Service not configured
    """
    service = current_app.config.get(name)
    if service is None:
        raise UniformPortalError(f"{name.replace('_', ' ').title()} unavailable")
    return service


def optional_student() -> Optional[Student]:
    data = session.get("student")
    if not data:
        return None
    return Student.from_session_dict(data)


def current_student() -> Student:
    """
    The signed-in student.

    Raises:
        NotAuthenticatedError: Nobody is signed in
    """
    student = optional_student()
    if student is None:
        raise NotAuthenticatedError()
    return student


def public_student(student: Student) -> Dict[str, Any]:
    """Student fields safe to return to the browser (no token)."""
    data = student.to_session_dict()
    data.pop("token", None)
    return data


def snapshot_for(student: Optional[Student]) -> LimitSnapshot:
    """Current limit snapshot; anonymous visitors get the placeholder."""
    if student is None:
        return LimitSnapshot.create_unconfirmed()
    return get_service("LIMITS_SERVICE").get_snapshot(student.id)


def get_cart() -> List[CartLine]:
    return cart_from_session(session.get("cart"))


def save_cart(lines: List[CartLine]) -> None:
    session["cart"] = cart_to_session(lines)
    session.modified = True


def json_error(message: str, status_code: int = 400, **extra):
    """JSON error body in the ``{success: false, message}`` shape."""
    body = {"success": False, "message": message}
    body.update(extra)
    return body, status_code


def portal_error_response(error: UniformPortalError, **extra):
    """Render a portal exception with its own HTTP status."""
    reasons = error.details.get("reasons") if error.details else None
    if reasons:
        extra.setdefault("reasons", reasons)
    return json_error(error.message, error.status_code, **extra)
