"""
Compensation inputs -- team members, talent and agency revenue.

Responsibility:
    Immutable, normalized views of the externally owned records the
    payout engines read: a TeamMember's compensation configuration, a
    talent (Model) compensation configuration and the month's agency
    revenue buckets.  ``from_record`` constructors coerce record-store
    values at the boundary so engines only ever see Decimal or None.

Architecture position:
    Engines -- value types, zero I/O.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from agency_engines.categories import Department, PayoutCategory, Role, classify_member
from agency_kernel.domain.values import to_decimal
from agency_kernel.logging_config import get_logger

logger = get_logger("engines.members")

_ZERO = Decimal("0")


class PayoutType(str, Enum):
    PERCENTAGE = "percentage"
    FLAT_FEE = "flat_fee"
    HYBRID = "hybrid"
    NONE = "none"

    @classmethod
    def parse(cls, value: Any) -> PayoutType:
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value == text:
                return member
        if text:
            logger.warning("payout_type_unknown", extra={"payout_type": text})
        return cls.NONE


class CompensationType(str, Enum):
    SALARY = "Salary"
    PERCENTAGE = "Percentage"
    HYBRID = "Hybrid"
    TIERED_DEAL = "Tiered deal (threshold)"

    @classmethod
    def parse(cls, value: Any) -> CompensationType | None:
        text = str(value or "").strip()
        for member in cls:
            if member.value == text:
                return member
        return None


@dataclass(frozen=True)
class TeamMember:
    """Compensation configuration of one staff member."""

    id: str
    name: str = ""
    role: Role = Role.OTHER
    department: Department = Department.OPS
    is_active: bool = True
    payout_type: PayoutType = PayoutType.NONE
    payout_percentage: Decimal | None = None
    payout_percentage_chatters: Decimal | None = None
    chatting_percentage: Decimal | None = None
    chatting_percentage_messages_tips: Decimal | None = None
    gunzo_percentage: Decimal | None = None
    gunzo_percentage_messages_tips: Decimal | None = None
    payout_flat_fee: Decimal | None = None

    @property
    def category(self) -> PayoutCategory:
        return classify_member(self.role, self.department)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> TeamMember:
        status = str(record.get("status") or "active").strip().lower()
        return cls(
            id=str(record.get("id") or ""),
            name=str(record.get("name") or ""),
            role=Role.parse(record.get("role")),
            department=Department.parse(record.get("department")),
            is_active=status != "inactive",
            payout_type=PayoutType.parse(record.get("payout_type")),
            payout_percentage=to_decimal(record.get("payout_percentage")),
            payout_percentage_chatters=to_decimal(record.get("payout_percentage_chatters")),
            chatting_percentage=to_decimal(record.get("chatting_percentage")),
            chatting_percentage_messages_tips=to_decimal(
                record.get("chatting_percentage_messages_tips")
            ),
            gunzo_percentage=to_decimal(record.get("gunzo_percentage")),
            gunzo_percentage_messages_tips=to_decimal(record.get("gunzo_percentage_messages_tips")),
            payout_flat_fee=to_decimal(record.get("payout_flat_fee")),
        )


@dataclass(frozen=True)
class Model:
    """Talent compensation configuration.  All deal amounts are optional."""

    id: str
    name: str = ""
    compensation_type: CompensationType | None = None
    creator_payout_pct: Decimal | None = None
    salary_eur: Decimal | None = None
    salary_usd: Decimal | None = None
    deal_threshold: Decimal | None = None
    deal_flat_under_threshold: Decimal | None = None
    deal_flat_under_threshold_usd: Decimal | None = None
    deal_percent_above_threshold: Decimal | None = None
    payee_team_member_id: str | None = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Model:
        payee = record.get("payee_team_member_id") or record.get("team_member_id")
        return cls(
            id=str(record.get("id") or ""),
            name=str(record.get("name") or ""),
            compensation_type=CompensationType.parse(record.get("compensation_type")),
            creator_payout_pct=to_decimal(record.get("creator_payout_pct")),
            salary_eur=to_decimal(record.get("salary_eur")),
            salary_usd=to_decimal(record.get("salary_usd")),
            deal_threshold=to_decimal(record.get("deal_threshold")),
            deal_flat_under_threshold=to_decimal(record.get("deal_flat_under_threshold")),
            deal_flat_under_threshold_usd=to_decimal(record.get("deal_flat_under_threshold_usd")),
            deal_percent_above_threshold=to_decimal(record.get("deal_percent_above_threshold")),
            payee_team_member_id=str(payee) if payee else None,
        )


@dataclass(frozen=True)
class AgencyRevenue:
    """The month's agency revenue buckets, all EUR."""

    chatting_amount_eur: Decimal = _ZERO
    gunzo_amount_eur: Decimal = _ZERO
    chatting_msgs_tips_net_eur: Decimal = _ZERO
    gunzo_msgs_tips_net_eur: Decimal = _ZERO

    @classmethod
    def from_record(cls, record: Mapping[str, Any] | None) -> AgencyRevenue:
        if not record:
            return cls()
        return cls(
            chatting_amount_eur=to_decimal(record.get("chatting_amount_eur")) or _ZERO,
            gunzo_amount_eur=to_decimal(record.get("gunzo_amount_eur")) or _ZERO,
            chatting_msgs_tips_net_eur=to_decimal(record.get("chatting_msgs_tips_net_eur")) or _ZERO,
            gunzo_msgs_tips_net_eur=to_decimal(record.get("gunzo_msgs_tips_net_eur")) or _ZERO,
        )
