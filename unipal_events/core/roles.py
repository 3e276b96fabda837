"""
Role normalisation and the authenticated actor passed to every workflow operation.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class Role(str, Enum):
    """Canonical platform roles."""
    STUDENT = "student"
    COORDINATOR = "coordinator"
    DEAN = "dean"


# Legacy role names still present in older accounts and tokens
ROLE_ALIASES = {
    "student": Role.STUDENT,
    "attender": Role.STUDENT,
    "coordinator": Role.COORDINATOR,
    "faculty": Role.COORDINATOR,
    "dean": Role.DEAN,
    "admin": Role.DEAN,
    "superadmin": Role.DEAN,
}

# Stored role values that receive dean-level reports and approvals
DEAN_ROLE_NAMES = ("dean", "superadmin", "admin")


def normalize_role(raw_role: Any) -> Role:
    """
    Map a stored or token role onto the canonical enum.

    Args:
        raw_role: Role string (case-insensitive) or Role member

    Returns:
        Canonical role

    Raises:
        ValueError: If the role is unknown
    """
    if isinstance(raw_role, Role):
        return raw_role
    if not isinstance(raw_role, str):
        raise ValueError(f"Unknown role: {raw_role!r}")
    role = ROLE_ALIASES.get(raw_role.strip().lower())
    if role is None:
        raise ValueError(f"Unknown role: {raw_role!r}")
    return role


@dataclass(frozen=True)
class Actor:
    """Authenticated caller of a workflow operation."""

    id: int
    role: Role
    name: Optional[str] = None
    email: Optional[str] = None
    school: Optional[str] = None
    department: Optional[str] = None

    @property
    def is_dean(self) -> bool:
        return self.role == Role.DEAN

    @classmethod
    def from_token_payload(cls, payload: Dict[str, Any]) -> "Actor":
        """Build an actor from a verified JWT payload."""
        return cls(
            id=int(payload["user_id"]),
            role=normalize_role(payload["role"]),
            name=payload.get("name"),
            email=payload.get("email"),
            school=payload.get("school"),
            department=payload.get("department"),
        )
