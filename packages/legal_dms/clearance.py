"""Clearance levels (1-10) and their per-role bounds."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

__all__ = [
    "MIN_CLEARANCE",
    "MAX_CLEARANCE",
    "DEFAULT_CLEARANCE",
    "RoleClearance",
    "ROLE_CLEARANCE",
    "LEVEL_DESCRIPTIONS",
    "ClearanceValidation",
    "recommended_level",
    "clearance_range",
    "validate_level",
    "describe_level",
    "can_access",
]

MIN_CLEARANCE = 1
MAX_CLEARANCE = 10
DEFAULT_CLEARANCE = 5


@dataclass(frozen=True)
class RoleClearance:
    default: int
    minimum: int
    maximum: int


ROLE_CLEARANCE: Mapping[str, RoleClearance] = {
    "super_admin": RoleClearance(default=10, minimum=8, maximum=10),
    "firm_admin": RoleClearance(default=8, minimum=6, maximum=10),
    "legal_manager": RoleClearance(default=7, minimum=5, maximum=9),
    "legal_professional": RoleClearance(default=5, minimum=3, maximum=8),
    "paralegal": RoleClearance(default=4, minimum=2, maximum=6),
    "support_staff": RoleClearance(default=3, minimum=1, maximum=5),
    "client_user": RoleClearance(default=2, minimum=1, maximum=4),
}

LEVEL_DESCRIPTIONS: Mapping[int, str] = {
    1: "Public",
    2: "Internal",
    3: "Confidential",
    4: "Restricted",
    5: "Secret",
    6: "Top Secret",
    7: "Compartmented",
    8: "Special Access",
    9: "Critical",
    10: "Ultra Classified",
}


@dataclass(frozen=True)
class ClearanceValidation:
    valid: bool
    message: str | None = None
    recommendation: int | None = None


def _known(roles: Iterable[str]) -> list[RoleClearance]:
    return [ROLE_CLEARANCE[role] for role in roles if role in ROLE_CLEARANCE]


def recommended_level(roles: Iterable[str]) -> int:
    """Highest default among the user's roles."""

    known = _known(roles)
    if not known:
        return DEFAULT_CLEARANCE
    return max(item.default for item in known)


def clearance_range(roles: Iterable[str]) -> tuple[int, int]:
    """Widest ``(min, max)`` span allowed by any of the roles."""

    known = _known(roles)
    if not known:
        return MIN_CLEARANCE, MAX_CLEARANCE
    return min(item.minimum for item in known), max(item.maximum for item in known)


def validate_level(level: int, roles: Iterable[str]) -> ClearanceValidation:
    roles = list(roles)
    if level < MIN_CLEARANCE or level > MAX_CLEARANCE:
        return ClearanceValidation(
            valid=False,
            message=f"Clearance level must be between {MIN_CLEARANCE} and {MAX_CLEARANCE}",
            recommendation=recommended_level(roles),
        )
    low, high = clearance_range(roles)
    if level < low or level > high:
        return ClearanceValidation(
            valid=False,
            message=(
                f"Clearance level {level} is outside the allowed range "
                f"{low}-{high} for roles: {', '.join(roles) or 'none'}"
            ),
            recommendation=recommended_level(roles),
        )
    return ClearanceValidation(valid=True)


def describe_level(level: int) -> str:
    return LEVEL_DESCRIPTIONS.get(level, "Unknown")


def can_access(user_level: int, security_class: int) -> bool:
    return user_level >= security_class
