import logging
import secrets
import time

from homexpert.domain.subscriptions import (
    HistoryAction,
    LeadAdjustment,
    PaymentStatus,
    PlanSnapshot,
    SubscriptionStatus,
)
from homexpert.errors import AppError, NotFoundError, ValidationError
from homexpert.extensions import db
from homexpert.models import SubscriptionHistory, SubscriptionPlan
from homexpert.models.base import is_valid_id
from homexpert.utils.dates import isoformat, utcnow
from homexpert.utils.validation import require_fields

logger = logging.getLogger(__name__)

ADJUST_FIELDS = ("subscriptionId", "type", "amount", "reason")
ACTIVE_EXISTS_MESSAGE = "You already have an active subscription. Please upgrade or wait for it to expire."
LOW_LEADS_THRESHOLD = 5

NEXT_STEPS = [
    "Complete your profile verification for better lead matching",
    "Set up your service preferences",
    "Start browsing available leads",
]


def _transaction_id():
    return f"TXN{int(time.time() * 1000)}{secrets.token_hex(3).upper()}"


class SubscriptionService:
    """Purchases, lazy expiry and lead usage for vendor subscriptions."""

    @staticmethod
    def expire_due(subscription, now=None):
        """Persist a lazy expiry. Returns True when the subscription just expired."""
        if subscription.expire_if_due(now):
            db.session.commit()
            return True
        return False

    @classmethod
    def get_active_subscription(cls, user_id, now=None, for_update=False):
        """The user's current active subscription, or None once it has lapsed."""
        query = SubscriptionHistory.query.filter_by(
            user_id=user_id,
            status=SubscriptionStatus.ACTIVE.value,
            is_active=True,
        ).order_by(SubscriptionHistory.start_date.desc())
        if for_update:
            query = query.with_for_update()

        subscription = query.first()
        if subscription is not None and cls.expire_due(subscription, now):
            return None
        return subscription

    @classmethod
    def purchase(cls, user, vendor, data, now=None):
        """Buy ``planId`` for ``user`` and activate it straight away."""
        plan_id = data.get("planId")
        if not plan_id:
            raise ValidationError("Subscription plan ID is required")

        plan = db.session.get(SubscriptionPlan, plan_id) if is_valid_id(plan_id) else None
        if plan is None or not plan.is_active:
            raise NotFoundError("Subscription plan not found or inactive")

        if cls.get_active_subscription(user.id, now) is not None:
            raise ValidationError(ACTIVE_EXISTS_MESSAGE)

        now = now or utcnow()
        snapshot = PlanSnapshot.from_plan(plan)
        subscription = SubscriptionHistory(
            user_id=user.id,
            vendor_id=vendor.id if vendor else None,
            plan_id=plan.id,
            plan_snapshot=snapshot.to_dict(),
            start_date=now,
            status=SubscriptionStatus.PENDING.value,
            is_active=False,
            payment_amount=snapshot.effective_price,
            payment_currency=plan.currency,
            payment_method=data.get("paymentMethod") or "online",
            discount_code=data.get("discountCode"),
        )
        subscription.initialise_usage()
        subscription.record(
            HistoryAction.PURCHASED,
            now=now,
            new_status=SubscriptionStatus.PENDING.value,
            reason=f"Subscription purchased: {plan.plan_name}",
        )
        db.session.add(subscription)
        db.session.flush()

        # Payment is marked completed immediately and the purchase auto-activates
        subscription.payment_status = PaymentStatus.COMPLETED.value
        subscription.payment_date = now
        subscription.transaction_id = _transaction_id()
        subscription.activate(reason="Payment completed successfully", now=now)
        db.session.commit()

        logger.info(
            "Subscription %s purchased by user %s: plan %s, %d leads, %s %.2f",
            subscription.id, user.id, plan.plan_name, snapshot.total_leads,
            subscription.payment_currency, subscription.payment_amount,
        )
        return subscription

    @staticmethod
    def purchase_response(subscription, now=None):
        return {
            "subscription": {
                "id": subscription.id,
                "planName": subscription.snapshot.plan_name,
                "status": subscription.status,
                "startDate": isoformat(subscription.start_date),
                "endDate": isoformat(subscription.end_date),
                "totalLeads": subscription.total_leads,
                "leadsRemaining": subscription.leads_remaining,
                "daysRemaining": subscription.days_remaining(now),
                "payment": {
                    "amount": subscription.payment_amount,
                    "currency": subscription.payment_currency,
                    "status": subscription.payment_status,
                    "transactionId": subscription.transaction_id,
                },
            },
            "message": "Your subscription is now active! You can start receiving leads.",
            "nextSteps": list(NEXT_STEPS),
        }

    @classmethod
    def require_usable_subscription(cls, user_id, now=None, for_update=False, purpose="view leads"):
        """
        Active subscription with leads left, or a 403 telling the vendor
        whether to subscribe or upgrade.
        """
        subscription = cls.get_active_subscription(user_id, now, for_update=for_update)
        if subscription is None:
            raise AppError(
                f"No active subscription found. Please purchase a subscription to {purpose}.",
                status_code=403,
                payload={"requiresSubscription": True},
            )
        if subscription.leads_remaining <= 0:
            raise AppError(
                "No leads remaining in your subscription. Please upgrade your plan.",
                status_code=403,
                payload={
                    "needsUpgrade": True,
                    "subscription": {
                        "id": subscription.id,
                        "planName": subscription.snapshot.plan_name,
                        "leadsConsumed": subscription.leads_consumed,
                        "totalLeads": subscription.total_leads,
                    },
                },
            )
        return subscription

    @staticmethod
    def consume_lead(subscription, lead_id=None, now=None):
        """Use one lead from a locked subscription row. The caller commits."""
        subscription.consume_lead(now)
        if lead_id:
            subscription.record_lead_assignment(lead_id, now=now)
        logger.info(
            "Lead consumed on subscription %s: %d used, %d remaining",
            subscription.id, subscription.leads_consumed, subscription.leads_remaining,
        )
        return subscription

    @classmethod
    def adjust_leads(cls, data, performed_by, now=None):
        """Admin lead adjustment. Returns the response ``data`` mapping."""
        require_fields(data, ADJUST_FIELDS, message="Missing required fields: subscriptionId, type, amount, reason")

        subscription_id = data["subscriptionId"]
        if not is_valid_id(subscription_id):
            raise ValidationError("Invalid subscription ID")

        adjustment = LeadAdjustment.from_payload(data)

        subscription = (
            SubscriptionHistory.query
            .filter_by(id=subscription_id)
            .with_for_update()
            .first()
        )
        if subscription is None:
            raise NotFoundError("Subscription not found")

        now = now or utcnow()
        expired = subscription.expire_if_due(now)

        # The row lock is held until the single commit below.
        try:
            previous, new = subscription.adjust_leads(adjustment, performed_by=performed_by, now=now)
        except AppError:
            if expired:
                db.session.commit()
            else:
                db.session.rollback()
            raise
        db.session.commit()

        logger.info(
            "Leads %s by %d on subscription %s by %s: %d/%d -> %d/%d (consumed/remaining)",
            adjustment.type.value, adjustment.amount, subscription.id, performed_by,
            previous.leads_consumed, previous.leads_remaining,
            new.leads_consumed, new.leads_remaining,
        )
        return {
            "subscriptionId": subscription_id,
            "adjustmentType": adjustment.type.value,
            "adjustmentAmount": adjustment.amount,
            "previousLeadsConsumed": previous.leads_consumed,
            "previousLeadsRemaining": previous.leads_remaining,
            "newLeadsConsumed": new.leads_consumed,
            "newLeadsRemaining": new.leads_remaining,
        }

    @classmethod
    def history_for_user(cls, user_id, now=None):
        subscriptions = (
            SubscriptionHistory.query
            .filter_by(user_id=user_id)
            .order_by(SubscriptionHistory.created_at.desc())
            .all()
        )
        for subscription in subscriptions:
            cls.expire_due(subscription, now)
        return subscriptions

    @classmethod
    def list_history(cls, status=None, user_id=None, now=None):
        query = SubscriptionHistory.query
        if user_id:
            query = query.filter_by(user_id=user_id)
        subscriptions = query.order_by(SubscriptionHistory.created_at.desc()).all()
        for subscription in subscriptions:
            cls.expire_due(subscription, now)
        if status:
            subscriptions = [s for s in subscriptions if s.status == status]
        return subscriptions

    @staticmethod
    def usage_summary(subscriptions):
        active = [s for s in subscriptions if s.is_current]
        consumed = sum(s.leads_consumed or 0 for s in subscriptions)
        percentages = [s.usage_percentage for s in subscriptions]
        return {
            "totalSubscriptions": len(subscriptions),
            "activeSubscriptions": len(active),
            "totalLeadsConsumed": consumed,
            "totalLeadsRemaining": sum(s.leads_remaining or 0 for s in active),
            "totalRevenue": sum(
                s.payment_amount or 0
                for s in subscriptions
                if s.payment_status == PaymentStatus.COMPLETED.value
            ),
            "averageUsagePercentage": round(sum(percentages) / len(percentages)) if percentages else 0,
        }

    @staticmethod
    def cancel(subscription_id, reason, performed_by, now=None):
        if not is_valid_id(subscription_id):
            raise ValidationError("Invalid subscription ID")
        subscription = SubscriptionHistory.query.filter_by(id=subscription_id).with_for_update().first()
        if subscription is None:
            raise NotFoundError("Subscription not found")
        subscription.cancel(reason=reason or "", performed_by=performed_by, now=now)
        db.session.commit()
        return subscription

    @classmethod
    def get_for_user(cls, subscription_id, user_id, now=None):
        """One of ``user_id``'s own subscriptions, expired first if overdue."""
        subscription = (
            SubscriptionHistory.query.filter_by(id=subscription_id, user_id=user_id).first()
            if is_valid_id(subscription_id) else None
        )
        if subscription is None:
            raise NotFoundError("Subscription not found")
        cls.expire_due(subscription, now)
        return subscription

    @staticmethod
    def cancel_for_user(subscription_id, user_id, now=None):
        """Vendor self-cancellation of their own active subscription."""
        subscription = (
            SubscriptionHistory.query
            .filter_by(id=subscription_id, user_id=user_id)
            .with_for_update()
            .first()
            if is_valid_id(subscription_id) else None
        )
        now = now or utcnow()
        if subscription is not None and subscription.expire_if_due(now):
            db.session.commit()
            subscription = None
        if subscription is None or not subscription.is_current:
            raise NotFoundError("Active subscription not found")
        subscription.cancel(reason="Cancelled by user", performed_by=user_id, now=now)
        db.session.commit()
        return subscription

    @staticmethod
    def complete_lead_assignment(user_id, lead_id, revenue=0, now=None):
        """Flag the subscription assignment for ``lead_id`` as completed. Caller commits."""
        for subscription in SubscriptionHistory.query.filter_by(user_id=user_id).all():
            if subscription.complete_lead_assignment(lead_id, revenue=revenue, now=now):
                return subscription
        return None
