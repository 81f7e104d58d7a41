"""
Student session model.

Built from ``GET /auth/profile`` on sign-in and kept in the Flask session.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional


OLD_STUDENT = "old"
NEW_STUDENT = "new"


@dataclass(frozen=True)
class Student:
    """A signed-in student and the attributes the evaluator needs."""

    id: str
    name: str = ""
    email: str = ""
    student_type: str = NEW_STUDENT
    """'old' students may only order explicitly permitted items."""

    gender: Optional[str] = None
    education_level: Optional[str] = None
    token: str = ""
    """Bearer token for the upstream API."""

    @property
    def is_old_student(self) -> bool:
        return (self.student_type or "").strip().lower() == OLD_STUDENT

    def to_session_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for session storage."""
        return asdict(self)

    @classmethod
    def from_session_dict(cls, data: Dict[str, Any]) -> "Student":
        """Create from dictionary (e.g., from session)."""
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            email=data.get("email", ""),
            student_type=data.get("student_type") or NEW_STUDENT,
            gender=data.get("gender"),
            education_level=data.get("education_level"),
            token=data.get("token", ""),
        )

    @classmethod
    def from_profile(cls, profile: Dict[str, Any], token: str) -> "Student":
        """
        Create from an upstream profile body.

        Accepts the camelCase and snake_case spellings the API mixes.
        """
        return cls(
            id=str(profile.get("id") or profile.get("uid") or profile.get("studentId") or ""),
            name=profile.get("name") or profile.get("displayName") or "",
            email=profile.get("email") or "",
            student_type=(
                profile.get("studentType") or profile.get("student_type") or NEW_STUDENT
            ).strip().lower(),
            gender=profile.get("gender") or None,
            education_level=(
                profile.get("educationLevel") or profile.get("education_level") or None
            ),
            token=token,
        )
