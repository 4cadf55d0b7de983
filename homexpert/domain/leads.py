"""
Lead follow-through after a vendor has taken it.

Pure rules over plain values: which statuses a vendor may set, how far along
a lead is, and what a vendor should do next. Persistence lives on ``Lead``.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from homexpert.errors import ValidationError
from homexpert.utils.dates import SECONDS_PER_DAY, parse_datetime

MAX_NOTE_LENGTH = 1000
MAX_FOLLOW_UP_LENGTH = 500
OVERDUE_AFTER_DAYS = 7

VENDOR_STATUSES = (
    "contacted",
    "interested",
    "not_interested",
    "scheduled",
    "in_progress",
    "completed",
    "converted",
    "cancelled",
)
COMPLETED_STATUSES = ("completed", "converted")
CLOSED_STATUSES = ("completed", "converted", "cancelled", "not_interested")
PROGRESS_FLOW = ("taken", "contacted", "interested", "scheduled", "in_progress", "completed")

MILESTONES = (
    ("taken", "Lead Taken"),
    ("contacted", "Customer Contacted"),
    ("interested", "Customer Interested"),
    ("scheduled", "Service Scheduled"),
    ("completed", "Service Completed"),
)

NEXT_STEPS: Dict[str, List[str]] = {
    "taken": [
        "Call the customer immediately",
        "Understand their exact requirements",
        "Provide an initial estimate if possible",
    ],
    "contacted": [
        "Follow up on the conversation",
        "Provide a written quote if needed",
        "Schedule a site visit if required",
    ],
    "interested": [
        "Schedule the service appointment",
        "Send appointment confirmation",
    ],
    "scheduled": [
        "Confirm the appointment a day before",
        "Prepare all necessary materials",
    ],
    "in_progress": [
        "Keep the customer informed of progress",
        "Prepare final documentation",
    ],
    "completed": [
        "Request payment if not received",
        "Ask the customer for a review",
    ],
}

PRIORITIES = ("low", "normal", "high", "urgent")
FOLLOW_UP_ORDER = {"pending": 0, "overdue": 1, "completed": 2}


def validate_vendor_status(status: str) -> str:
    if status not in VENDOR_STATUSES:
        raise ValidationError(f"Status must be one of: {', '.join(VENDOR_STATUSES)}")
    return status


def clean_text(value: Any, label: str, max_length: int) -> str:
    text = str(value or "").strip()
    if not text:
        raise ValidationError(f"{label} content is required")
    if len(text) > max_length:
        raise ValidationError(f"{label} content cannot exceed {max_length} characters")
    return text


def parse_follow_up_date(value: Any) -> datetime:
    if not value:
        raise ValidationError("Follow-up date is required")
    try:
        return parse_datetime(value)
    except (TypeError, ValueError):
        raise ValidationError("Invalid follow-up date")


def completion_percentage(status: str) -> int:
    if status not in PROGRESS_FLOW:
        return 0
    return int(round((PROGRESS_FLOW.index(status) + 1) / len(PROGRESS_FLOW) * 100))


def milestones(history: List[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """First time each milestone status was reached, read from ``progress_history``."""
    reached: Dict[str, Optional[str]] = {}
    for entry in history:
        reached.setdefault(entry.get("to"), entry.get("date"))
    return [
        {"status": status, "label": label, "completed": status in reached, "date": reached.get(status)}
        for status, label in MILESTONES
    ]


def next_steps(status: str, days_since_taken: int = 0) -> List[str]:
    steps = list(NEXT_STEPS.get(status, ["Update lead status appropriately"]))
    if status == "taken" and days_since_taken >= 1:
        steps.insert(0, "URGENT: Contact customer immediately - lead is overdue")
    return steps


def timing(taken_at: Optional[datetime], status: str, now: datetime) -> Dict[str, Any]:
    elapsed = (now - taken_at).total_seconds() if taken_at else 0
    days = int(elapsed // SECONDS_PER_DAY)
    overdue = days > OVERDUE_AFTER_DAYS and status in ("taken", "contacted")
    return {
        "daysSinceTaken": days,
        "hoursSinceTaken": int(elapsed // 3600),
        "isOverdue": overdue,
        "needsUrgentAction": overdue or (status == "taken" and days >= 1),
    }


def status_flags(status: str) -> Dict[str, bool]:
    return {
        "canContact": status == "taken",
        "canSchedule": status in ("contacted", "interested"),
        "canComplete": status in ("scheduled", "in_progress"),
        "canCancel": status not in ("completed", "converted", "cancelled"),
        "isCompleted": status in COMPLETED_STATUSES,
        "isClosed": status in CLOSED_STATUSES,
    }


def follow_up_view(entry: Mapping[str, Any], now: datetime) -> Dict[str, Any]:
    """A stored follow-up plus its derived state relative to ``now``."""
    due = parse_datetime(entry["date"])
    completed = bool(entry.get("completed"))
    overdue = not completed and due < now
    return dict(
        entry,
        status="completed" if completed else "overdue" if overdue else "pending",
        isOverdue=overdue,
        isPending=not completed and due >= now,
        daysFromNow=math.ceil((due - now).total_seconds() / SECONDS_PER_DAY),
    )


def sort_follow_ups(views: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(views, key=lambda f: (FOLLOW_UP_ORDER[f["status"]], f["date"]))
