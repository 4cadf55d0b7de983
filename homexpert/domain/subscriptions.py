"""
Subscription records and pure usage rules.

The purchase row stores its plan snapshot, monthly usage buckets and audit
history as JSON. These dataclasses are the only way that JSON is produced or
read back, so every stored shape is validated in one place.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from homexpert.errors import AppError, ValidationError
from homexpert.utils.dates import isoformat, month_key, parse_datetime

NO_LEADS_REMAINING_MESSAGE = "No leads remaining in subscription."

DURATION_DAYS: Dict[str, int] = {
    "1-month": 30,
    "3-month": 90,
    "6-month": 180,
    "12-month": 365,
}


class SubscriptionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class HistoryAction(str, Enum):
    PURCHASED = "purchased"
    ACTIVATED = "activated"
    LEAD_CONSUMED = "lead_consumed"
    LEADS_INCREASED = "leads_increased"
    LEADS_DECREASED = "leads_decreased"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class AdjustmentType(str, Enum):
    INCREASE = "increase"
    DECREASE = "decrease"


class NoLeadsRemainingError(AppError):
    status_code = 403

    def __init__(self, message=NO_LEADS_REMAINING_MESSAGE):
        super().__init__(message, payload={"needsUpgrade": True})


class LeadLimitExceededError(AppError):
    status_code = 400


def _require_int(data: Mapping[str, Any], key: str, minimum: int = 0) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ValidationError(f"{key} must be an integer >= {minimum}")
    return value


@dataclass(frozen=True)
class PlanSnapshot:
    """Copy of the plan taken at purchase time. Never updated afterwards."""

    plan_name: str
    duration: str
    duration_in_days: int
    total_leads: int
    leads_per_month: int
    price: float
    discounted_price: Optional[float] = None
    currency: str = "INR"
    features: List[str] = field(default_factory=list)

    @classmethod
    def from_plan(cls, plan) -> PlanSnapshot:
        return cls(
            plan_name=plan.plan_name,
            duration=plan.duration,
            duration_in_days=plan.duration_in_days,
            total_leads=plan.total_leads,
            leads_per_month=plan.leads_per_month,
            price=float(plan.price),
            discounted_price=float(plan.discounted_price) if plan.discounted_price is not None else None,
            currency=plan.currency,
            features=list(plan.features or []),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PlanSnapshot:
        if not data.get("plan_name"):
            raise ValidationError("plan_name is required")
        return cls(
            plan_name=data["plan_name"],
            duration=data.get("duration", "1-month"),
            duration_in_days=_require_int(data, "duration_in_days", 1),
            total_leads=_require_int(data, "total_leads", 1),
            leads_per_month=_require_int(data, "leads_per_month", 0),
            price=float(data.get("price", 0)),
            discounted_price=data.get("discounted_price"),
            currency=data.get("currency", "INR"),
            features=list(data.get("features") or []),
        )

    @property
    def effective_price(self) -> float:
        if self.discounted_price is not None:
            return self.discounted_price
        return self.price

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MonthlyUsage:
    month: str
    year: int
    month_number: int
    leads_used: int = 0
    leads_allocated: int = 0
    usage_percentage: int = 0

    @classmethod
    def start(cls, moment: datetime, leads_allocated: int) -> MonthlyUsage:
        return cls(
            month=month_key(moment),
            year=moment.year,
            month_number=moment.month,
            leads_allocated=leads_allocated,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> MonthlyUsage:
        return cls(
            month=data["month"],
            year=int(data["year"]),
            month_number=int(data["month_number"]),
            leads_used=int(data.get("leads_used", 0)),
            leads_allocated=int(data.get("leads_allocated", 0)),
            usage_percentage=int(data.get("usage_percentage", 0)),
        )

    def record_use(self) -> None:
        self.leads_used += 1
        self.usage_percentage = usage_percentage(self.leads_used, self.leads_allocated)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class HistoryEntry:
    action: HistoryAction
    date: datetime
    previous_status: Optional[str] = None
    new_status: Optional[str] = None
    performed_by: Optional[str] = None
    reason: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> HistoryEntry:
        return cls(
            action=HistoryAction(data["action"]),
            date=parse_datetime(data["date"]),
            previous_status=data.get("previous_status"),
            new_status=data.get("new_status"),
            performed_by=data.get("performed_by"),
            reason=data.get("reason"),
            metadata=dict(data.get("metadata") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action.value,
            "date": isoformat(self.date),
            "previous_status": self.previous_status,
            "new_status": self.new_status,
            "performed_by": self.performed_by,
            "reason": self.reason,
            "metadata": self.metadata,
        }


@dataclass(frozen=True)
class LeadAdjustment:
    """Admin request to move leads between the consumed and remaining counters."""

    type: AdjustmentType
    amount: int
    reason: str

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> LeadAdjustment:
        try:
            adjustment_type = AdjustmentType(data.get("type"))
        except ValueError:
            raise ValidationError('Invalid adjustment type. Must be "increase" or "decrease"')

        amount = data.get("amount")
        if isinstance(amount, str) and amount.strip().lstrip("-").isdigit():
            amount = int(amount)
        elif isinstance(amount, float) and amount.is_integer():
            amount = int(amount)
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError("Amount must be a positive number")

        reason = str(data.get("reason") or "").strip()
        if not reason:
            raise ValidationError("Reason is required")

        return cls(type=adjustment_type, amount=amount, reason=reason)


@dataclass(frozen=True)
class LeadCounters:
    leads_consumed: int
    leads_remaining: int

    @property
    def total(self) -> int:
        return self.leads_consumed + self.leads_remaining


def compute_adjustment(current: LeadCounters, adjustment: LeadAdjustment, total_leads: int) -> LeadCounters:
    """
    Apply ``adjustment`` to ``current`` without mutating anything.

    Raises ``LeadLimitExceededError`` when the result would hold more leads
    than the plan grants.
    """
    if adjustment.type is AdjustmentType.INCREASE:
        new = LeadCounters(
            leads_consumed=max(0, current.leads_consumed - adjustment.amount),
            leads_remaining=current.leads_remaining + adjustment.amount,
        )
    else:
        new = LeadCounters(
            leads_consumed=current.leads_consumed + adjustment.amount,
            leads_remaining=max(0, current.leads_remaining - adjustment.amount),
        )

    if new.total > total_leads:
        raise LeadLimitExceededError(
            f"Adjustment would exceed original plan limit of {total_leads} leads"
        )
    return new


def usage_percentage(used: int, allocated: int) -> int:
    if allocated <= 0:
        return 0
    return int(round(used / allocated * 100))


def leads_per_month_for(total_leads: int, duration_in_days: int) -> int:
    months = duration_in_days / 30
    if months <= 0:
        return total_leads
    return int(math.ceil(total_leads / months))


def duration_days_for(duration: str) -> int:
    try:
        return DURATION_DAYS[duration]
    except KeyError:
        raise ValidationError(
            f"Invalid duration. Must be one of: {', '.join(DURATION_DAYS)}"
        )
