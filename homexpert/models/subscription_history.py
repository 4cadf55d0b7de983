"""
Vendor subscription purchases and their lead usage.

A row is created per purchase and carries a frozen copy of the plan. The
usage counters always satisfy ``leads_consumed + leads_remaining <=
plan_snapshot.total_leads``; every lifecycle transition appends to
``history`` rather than being reconstructed later.
"""

import logging
from datetime import timedelta

from sqlalchemy import event

from homexpert.domain.subscriptions import (
    AdjustmentType,
    HistoryAction,
    HistoryEntry,
    LeadCounters,
    MonthlyUsage,
    NoLeadsRemainingError,
    PaymentStatus,
    PlanSnapshot,
    SubscriptionStatus,
    compute_adjustment,
    usage_percentage,
)
from homexpert.errors import ValidationError
from homexpert.extensions import db
from homexpert.models.base import TimestampMixin, new_id
from homexpert.utils.dates import days_until, isoformat, month_key, utcnow

logger = logging.getLogger(__name__)

EXPIRING_SOON_DAYS = 7


class SubscriptionHistory(TimestampMixin, db.Model):
    __tablename__ = "subscription_history"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    vendor_id = db.Column(db.String(36), db.ForeignKey("vendors.id"), nullable=True, index=True)
    plan_id = db.Column(db.String(36), db.ForeignKey("subscription_plans.id"), nullable=False, index=True)
    plan_snapshot = db.Column(db.JSON, nullable=False)

    # Lifecycle
    status = db.Column(db.String(20), nullable=False, default=SubscriptionStatus.PENDING.value, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=False)
    start_date = db.Column(db.DateTime, nullable=False, default=utcnow)
    end_date = db.Column(db.DateTime, nullable=True, index=True)

    # Usage
    leads_consumed = db.Column(db.Integer, nullable=False, default=0)
    leads_remaining = db.Column(db.Integer, nullable=False, default=0)
    last_lead_consumed_at = db.Column(db.DateTime)
    monthly_usage = db.Column(db.JSON, nullable=False, default=list)

    # Payment
    payment_amount = db.Column(db.Float, nullable=False, default=0)
    payment_currency = db.Column(db.String(3), nullable=False, default="INR")
    payment_method = db.Column(db.String(30), nullable=False, default="online")
    transaction_id = db.Column(db.String(100), unique=True, nullable=True)
    payment_status = db.Column(db.String(20), nullable=False, default=PaymentStatus.PENDING.value, index=True)
    payment_date = db.Column(db.DateTime)
    discount_code = db.Column(db.String(50))

    # Append-only logs
    history = db.Column(db.JSON, nullable=False, default=list)
    admin_notes = db.Column(db.JSON, nullable=False, default=list)
    lead_assignments = db.Column(db.JSON, nullable=False, default=list)

    user = db.relationship("User", backref=db.backref("subscriptions", lazy="dynamic"))
    vendor = db.relationship("Vendor", backref=db.backref("subscriptions", lazy="dynamic"))
    plan = db.relationship("SubscriptionPlan", backref=db.backref("purchases", lazy="dynamic"))

    __table_args__ = (
        db.CheckConstraint("leads_consumed >= 0", name="ck_subscription_consumed_non_negative"),
        db.CheckConstraint("leads_remaining >= 0", name="ck_subscription_remaining_non_negative"),
        db.Index("idx_subscription_user_status", "user_id", "status"),
        db.Index("idx_subscription_status_end", "status", "end_date"),
    )

    # ========== DERIVED ==========

    @property
    def snapshot(self):
        return PlanSnapshot.from_dict(self.plan_snapshot or {})

    @property
    def total_leads(self):
        return (self.plan_snapshot or {}).get("total_leads", 0)

    @property
    def counters(self):
        return LeadCounters(self.leads_consumed or 0, self.leads_remaining or 0)

    def days_remaining(self, now=None):
        return days_until(self.end_date, now)

    @property
    def usage_percentage(self):
        return usage_percentage(self.leads_consumed or 0, self.total_leads)

    def is_expiring_soon(self, now=None):
        return 0 < self.days_remaining(now) <= EXPIRING_SOON_DAYS

    def is_expired(self, now=None):
        return self.days_remaining(now) <= 0

    @property
    def is_current(self):
        return self.status == SubscriptionStatus.ACTIVE.value and self.is_active

    def history_entries(self):
        return [HistoryEntry.from_dict(item) for item in self.history or []]

    # ========== MUTATIONS ==========

    def _append(self, attr, item):
        # JSON columns only notice reassignment
        setattr(self, attr, [*(getattr(self, attr) or []), item])

    def record(self, action, now=None, **fields):
        entry = HistoryEntry(action=action, date=now or utcnow(), **fields)
        self._append("history", entry.to_dict())
        return entry

    def initialise_usage(self):
        snapshot = self.snapshot
        self.leads_consumed = self.leads_consumed or 0
        self.leads_remaining = max(0, snapshot.total_leads - self.leads_consumed)
        if self.start_date is None:
            self.start_date = utcnow()
        if self.end_date is None:
            self.end_date = self.start_date + timedelta(days=snapshot.duration_in_days)

    def activate(self, performed_by=None, reason=None, now=None):
        if self.status != SubscriptionStatus.PENDING.value:
            raise ValidationError(f"Cannot activate a subscription that is {self.status}")
        previous = self.status
        self.status = SubscriptionStatus.ACTIVE.value
        self.is_active = True
        self.record(
            HistoryAction.ACTIVATED,
            now=now,
            previous_status=previous,
            new_status=self.status,
            performed_by=performed_by,
            reason=reason,
        )
        logger.info("Subscription %s activated", self.id)

    def cancel(self, reason="", performed_by=None, now=None):
        if self.status != SubscriptionStatus.ACTIVE.value:
            raise ValidationError("Only active subscriptions can be cancelled")
        self.status = SubscriptionStatus.CANCELLED.value
        self.is_active = False
        self.record(
            HistoryAction.CANCELLED,
            now=now,
            previous_status=SubscriptionStatus.ACTIVE.value,
            new_status=self.status,
            performed_by=performed_by,
            reason=reason,
        )
        logger.info("Subscription %s cancelled: %s", self.id, reason)

    def expire_if_due(self, now=None):
        """Flip an overdue active subscription to expired. Returns True if it did."""
        now = now or utcnow()
        if self.status != SubscriptionStatus.ACTIVE.value:
            return False
        if self.end_date is None or not now > self.end_date:
            return False

        self.status = SubscriptionStatus.EXPIRED.value
        self.is_active = False
        self.record(
            HistoryAction.EXPIRED,
            now=now,
            previous_status=SubscriptionStatus.ACTIVE.value,
            new_status=self.status,
            reason="Subscription period ended",
        )
        logger.info("Subscription %s expired (end date %s)", self.id, isoformat(self.end_date))
        return True

    def consume_lead(self, now=None):
        """Use one lead from the quota. The row is untouched when none are left."""
        if (self.leads_remaining or 0) <= 0:
            raise NoLeadsRemainingError()

        now = now or utcnow()
        self.leads_consumed = (self.leads_consumed or 0) + 1
        self.leads_remaining -= 1
        self.last_lead_consumed_at = now

        key = month_key(now)
        buckets = [MonthlyUsage.from_dict(item) for item in self.monthly_usage or []]
        bucket = next((b for b in buckets if b.month == key), None)
        if bucket is None:
            bucket = MonthlyUsage.start(now, self.snapshot.leads_per_month)
            buckets.append(bucket)
        bucket.record_use()
        self.monthly_usage = [b.to_dict() for b in buckets]

        self.record(
            HistoryAction.LEAD_CONSUMED,
            now=now,
            metadata={"leadsConsumed": self.leads_consumed, "leadsRemaining": self.leads_remaining},
        )
        return self

    def adjust_leads(self, adjustment, performed_by=None, now=None):
        """
        Apply an admin lead adjustment.

        Returns ``(previous, new)`` counters. Nothing changes when the
        subscription is not active or the plan limit would be exceeded.
        """
        if not self.is_current:
            raise ValidationError("Can only adjust leads for active subscriptions")

        now = now or utcnow()
        previous = self.counters
        new = compute_adjustment(previous, adjustment, self.total_leads)

        self.leads_consumed = new.leads_consumed
        self.leads_remaining = new.leads_remaining

        action = (
            HistoryAction.LEADS_INCREASED
            if adjustment.type is AdjustmentType.INCREASE
            else HistoryAction.LEADS_DECREASED
        )
        self.record(
            action,
            now=now,
            performed_by=performed_by,
            reason=adjustment.reason,
            previous_status=f"{previous.leads_consumed} consumed, {previous.leads_remaining} remaining",
            new_status=f"{new.leads_consumed} consumed, {new.leads_remaining} remaining",
            metadata={
                "adjustmentType": adjustment.type.value,
                "adjustmentAmount": adjustment.amount,
                "previousLeadsConsumed": previous.leads_consumed,
                "previousLeadsRemaining": previous.leads_remaining,
                "newLeadsConsumed": new.leads_consumed,
                "newLeadsRemaining": new.leads_remaining,
            },
        )
        self.add_note(
            f"Leads {adjustment.type.value} by {adjustment.amount}. Reason: {adjustment.reason}",
            added_by=performed_by,
            now=now,
        )
        return previous, new

    def add_note(self, note, added_by=None, is_internal=False, now=None):
        self._append("admin_notes", {
            "note": note,
            "addedBy": added_by,
            "addedAt": isoformat(now or utcnow()),
            "isInternal": is_internal,
        })

    def record_lead_assignment(self, lead_id, status="assigned", now=None):
        self._append("lead_assignments", {
            "leadId": lead_id,
            "status": status,
            "assignedAt": isoformat(now or utcnow()),
        })

    def complete_lead_assignment(self, lead_id, revenue=0, now=None):
        """Mark the assignment for ``lead_id`` completed. Returns False when it is not on this subscription."""
        assignments = list(self.lead_assignments or [])
        for index, assignment in enumerate(assignments):
            if assignment.get("leadId") == lead_id:
                assignments[index] = dict(
                    assignment,
                    status="completed",
                    completedAt=isoformat(now or utcnow()),
                    revenue=revenue or 0,
                )
                self.lead_assignments = assignments
                return True
        return False

    # ========== SERIALIZATION ==========

    def payment_dict(self):
        return {
            "amount": self.payment_amount,
            "currency": self.payment_currency,
            "paymentMethod": self.payment_method,
            "status": self.payment_status,
            "transactionId": self.transaction_id,
            "paymentDate": isoformat(self.payment_date),
        }

    def to_dict(self, now=None, include_logs=True):
        snapshot = self.plan_snapshot or {}
        data = {
            "id": self.id,
            "userId": self.user_id,
            "vendorId": self.vendor_id,
            "planId": self.plan_id,
            "planName": snapshot.get("plan_name"),
            "planSnapshot": snapshot,
            "status": self.status,
            "isActive": self.is_active,
            "startDate": isoformat(self.start_date),
            "endDate": isoformat(self.end_date),
            "totalLeads": self.total_leads,
            "usage": {
                "leadsConsumed": self.leads_consumed,
                "leadsRemaining": self.leads_remaining,
                "lastLeadConsumedAt": isoformat(self.last_lead_consumed_at),
                "monthlyUsage": list(self.monthly_usage or []),
            },
            "leadsRemaining": self.leads_remaining,
            "daysRemaining": self.days_remaining(now),
            "usagePercentage": self.usage_percentage,
            "isExpiringSoon": self.is_expiring_soon(now),
            "isExpired": self.is_expired(now),
            "payment": self.payment_dict(),
            "createdAt": isoformat(self.created_at),
        }
        if include_logs:
            data["history"] = list(self.history or [])
            data["adminNotes"] = list(self.admin_notes or [])
            data["leadAssignments"] = list(self.lead_assignments or [])
        return data

    def __repr__(self):
        return f"<SubscriptionHistory {self.id} {self.status}>"


@event.listens_for(SubscriptionHistory, "before_insert")
def _subscription_before_insert(mapper, connection, target):
    target.initialise_usage()
    target.expire_if_due()


@event.listens_for(SubscriptionHistory, "before_update")
def _subscription_before_update(mapper, connection, target):
    target.expire_if_due()
