"""
Payout categories -- closed classification of team members.

Responsibility:
    Map a member's role and department to exactly one PayoutCategory.
    Every call site that needs a category goes through classify_member;
    no other module compares role or department strings.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Total: every (Role, Department) pair maps to exactly one category.
    - Unknown role strings parse to Role.OTHER, unknown departments to
      Department.OPS, so the partition holds for any input.
    - The model category is reserved for talent lines; no team member is
      classified as MODEL.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, assert_never


class Role(str, Enum):
    CHATTER = "chatter"
    CHATTING_MANAGER = "chatting_manager"
    VA = "va"
    VA_MANAGER = "va_manager"
    MARKETING_MANAGER = "marketing_manager"
    EDITOR = "editor"
    PRODUCTION = "production"
    AFFILIATOR = "affiliator"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Any) -> Role:
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value == text:
                return member
        return cls.OTHER


class Department(str, Enum):
    CHATTING = "chatting"
    MARKETING = "marketing"
    PRODUCTION = "production"
    OPS = "ops"
    AFFILIATE = "affiliate"

    @classmethod
    def parse(cls, value: Any) -> Department:
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value == text:
                return member
        return cls.OPS


class PayoutCategory(str, Enum):
    """Mutually exclusive payout bucket of a line."""

    CHATTER = "chatter"
    MANAGER = "manager"
    VA = "va"
    MODEL = "model"
    AFFILIATE = "affiliate"
    NONE = "none"


def classify_member(role: Role, department: Department) -> PayoutCategory:
    """
    Category of a team member.

    Chatter and VA roles win over the department; an affiliator role or
    the affiliate department means AFFILIATE; management roles (and
    ``other`` in production) are MANAGER; anything else is NONE.
    """
    if department is Department.AFFILIATE and role not in (Role.CHATTER, Role.VA):
        return PayoutCategory.AFFILIATE

    match role:
        case Role.CHATTER:
            return PayoutCategory.CHATTER
        case Role.VA:
            return PayoutCategory.VA
        case Role.AFFILIATOR:
            return PayoutCategory.AFFILIATE
        case Role.CHATTING_MANAGER | Role.VA_MANAGER | Role.MARKETING_MANAGER | Role.EDITOR | Role.PRODUCTION:
            return PayoutCategory.MANAGER
        case Role.OTHER:
            if department is Department.PRODUCTION:
                return PayoutCategory.MANAGER
            return PayoutCategory.NONE
        case _:
            assert_never(role)


def uses_eur_agency_formula(category: PayoutCategory) -> bool:
    """Managers, VAs and unclassified members are paid natively in EUR."""
    match category:
        case PayoutCategory.MANAGER | PayoutCategory.VA | PayoutCategory.NONE:
            return True
        case PayoutCategory.CHATTER | PayoutCategory.MODEL | PayoutCategory.AFFILIATE:
            return False
        case _:
            assert_never(category)
