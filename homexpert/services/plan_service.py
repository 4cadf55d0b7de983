import logging

from homexpert.domain.subscriptions import DURATION_DAYS, duration_days_for
from homexpert.errors import ConflictError, NotFoundError, ValidationError
from homexpert.extensions import db
from homexpert.models import SubscriptionHistory, SubscriptionPlan
from homexpert.models.base import is_valid_id
from homexpert.utils.validation import parse_bool, require_fields

logger = logging.getLogger(__name__)

SAMPLE_PLANS = [
    {
        "planName": "Starter",
        "description": "Try the platform with a small monthly quota",
        "duration": "1-month",
        "totalLeads": 10,
        "price": 999,
        "features": ["10 verified leads", "Email support"],
    },
    {
        "planName": "Growth",
        "description": "Most popular plan for growing businesses",
        "duration": "3-month",
        "totalLeads": 45,
        "price": 2699,
        "discountedPrice": 2399,
        "features": ["45 verified leads", "Priority support"],
    },
    {
        "planName": "Professional",
        "description": "Half-year plan with a better price per lead",
        "duration": "6-month",
        "totalLeads": 100,
        "price": 4999,
        "discountedPrice": 4499,
        "features": ["100 verified leads", "Priority support", "Profile boost"],
    },
    {
        "planName": "Enterprise",
        "description": "Full year of leads at the lowest price per lead",
        "duration": "12-month",
        "totalLeads": 240,
        "price": 8999,
        "discountedPrice": 7999,
        "features": ["240 verified leads", "Dedicated account manager"],
    },
]


def _positive_int(value, field):
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a positive integer")
    if number <= 0:
        raise ValidationError(f"{field} must be a positive integer")
    return number


def _price(value, field, allow_none=False):
    if value is None and allow_none:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number")
    if number < 0:
        raise ValidationError(f"{field} cannot be negative")
    return number


class PlanService:

    @staticmethod
    def get(plan_id):
        plan = db.session.get(SubscriptionPlan, plan_id) if is_valid_id(plan_id) else None
        if plan is None:
            raise NotFoundError("Subscription plan not found")
        return plan

    @staticmethod
    def list_plans(active_only=False, duration=None, search=None):
        query = SubscriptionPlan.query
        if active_only:
            query = query.filter_by(is_active=True)
        if duration:
            query = query.filter_by(duration=duration)
        if search:
            query = query.filter(SubscriptionPlan.plan_name.ilike(f"%{search}%"))
        return query.order_by(SubscriptionPlan.price.asc()).all()

    @staticmethod
    def _apply(plan, data, partial=False):
        if "planName" in data or not partial:
            name = (data.get("planName") or "").strip()
            if not name:
                raise ValidationError("Plan name is required")
            clash = SubscriptionPlan.query.filter(
                SubscriptionPlan.plan_name == name, SubscriptionPlan.id != plan.id
            ).first()
            if clash:
                raise ConflictError("A plan with this name already exists")
            plan.plan_name = name
        if "description" in data:
            plan.description = data["description"]
        if "duration" in data or not partial:
            duration = data.get("duration") or "1-month"
            duration_days_for(duration)
            plan.duration = duration
        if "totalLeads" in data or not partial:
            plan.total_leads = _positive_int(data.get("totalLeads"), "totalLeads")
        if "price" in data or not partial:
            plan.price = _price(data.get("price"), "price")
        if "discountedPrice" in data:
            plan.discounted_price = _price(data["discountedPrice"], "discountedPrice", allow_none=True)
        if "currency" in data:
            plan.currency = (data["currency"] or "INR").upper()
        if "features" in data:
            features = data["features"] or []
            if not isinstance(features, list):
                raise ValidationError("features must be a list")
            plan.features = [str(f) for f in features]
        if "isActive" in data:
            plan.is_active = parse_bool(data["isActive"])
        plan.apply_defaults()

    @classmethod
    def create(cls, data, created_by=None):
        require_fields(data, ("planName", "totalLeads", "price"))
        plan = SubscriptionPlan(created_by=created_by, currency="INR", features=[])
        cls._apply(plan, data)
        db.session.add(plan)
        db.session.commit()
        logger.info("Subscription plan %s created by %s", plan.plan_name, created_by)
        return plan

    @classmethod
    def update(cls, plan_id, data):
        plan = cls.get(plan_id)
        cls._apply(plan, data, partial=True)
        db.session.commit()
        logger.info("Subscription plan %s updated", plan.plan_name)
        return plan

    @classmethod
    def toggle(cls, plan_id):
        plan = cls.get(plan_id)
        plan.is_active = not plan.is_active
        db.session.commit()
        logger.info("Subscription plan %s %s", plan.plan_name, "activated" if plan.is_active else "deactivated")
        return plan

    @classmethod
    def delete(cls, plan_id):
        plan = cls.get(plan_id)
        if SubscriptionHistory.query.filter_by(plan_id=plan.id).count():
            raise ValidationError("Cannot delete a plan that has been purchased. Deactivate it instead.")
        db.session.delete(plan)
        db.session.commit()
        logger.info("Subscription plan %s deleted", plan.plan_name)

    @classmethod
    def seed_sample_plans(cls):
        created = 0
        for data in SAMPLE_PLANS:
            if SubscriptionPlan.query.filter_by(plan_name=data["planName"]).first():
                continue
            plan = SubscriptionPlan(currency="INR", features=[])
            cls._apply(plan, data)
            db.session.add(plan)
            created += 1
        db.session.commit()
        return created

    @staticmethod
    def durations():
        return list(DURATION_DAYS)
