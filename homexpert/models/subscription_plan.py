from sqlalchemy import event, inspect

from homexpert.domain.subscriptions import DURATION_DAYS, leads_per_month_for
from homexpert.extensions import db
from homexpert.models.base import TimestampMixin, new_id
from homexpert.utils.dates import isoformat

MONTHS_BY_DURATION = {"1-month": 1, "3-month": 3, "6-month": 6, "12-month": 12}


class SubscriptionPlan(TimestampMixin, db.Model):
    __tablename__ = "subscription_plans"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    plan_name = db.Column(db.String(100), unique=True, nullable=False, index=True)
    description = db.Column(db.Text)
    duration = db.Column(db.String(20), nullable=False, default="1-month")
    duration_in_days = db.Column(db.Integer, nullable=False, default=30)
    total_leads = db.Column(db.Integer, nullable=False)
    leads_per_month = db.Column(db.Integer, nullable=False, default=0)
    price = db.Column(db.Float, nullable=False)
    discounted_price = db.Column(db.Float, nullable=True)
    currency = db.Column(db.String(3), nullable=False, default="INR")
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    features = db.Column(db.JSON, nullable=False, default=list)
    created_by = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)

    __table_args__ = (
        db.CheckConstraint("total_leads > 0", name="ck_plan_positive_leads"),
        db.CheckConstraint("price >= 0", name="ck_plan_non_negative_price"),
        db.Index("idx_plan_duration_active", "duration", "is_active"),
    )

    @property
    def is_discounted(self):
        return self.discounted_price is not None and self.discounted_price < self.price

    @property
    def effective_price(self):
        return self.discounted_price if self.is_discounted else self.price

    @property
    def discount_percentage(self):
        if not self.is_discounted:
            return 0
        return int(round((self.price - self.discounted_price) / self.price * 100))

    @property
    def price_per_lead(self):
        if not self.total_leads:
            return 0
        return int(round(self.effective_price / self.total_leads))

    @property
    def monthly_equivalent(self):
        months = MONTHS_BY_DURATION.get(self.duration, 1)
        return int(round(self.effective_price / months))

    def apply_defaults(self, recompute_leads=True):
        """Derive the day count and monthly allocation and drop a non-discount."""
        self.duration_in_days = DURATION_DAYS.get(self.duration, 30)
        if recompute_leads and self.total_leads:
            self.leads_per_month = leads_per_month_for(self.total_leads, self.duration_in_days)
        if self.discounted_price is not None and self.discounted_price >= self.price:
            self.discounted_price = None

    @classmethod
    def active_plans(cls):
        return cls.query.filter_by(is_active=True).order_by(cls.price.asc()).all()

    def to_dict(self):
        return {
            "id": self.id,
            "planName": self.plan_name,
            "description": self.description,
            "duration": self.duration,
            "durationInDays": self.duration_in_days,
            "totalLeads": self.total_leads,
            "leadsPerMonth": self.leads_per_month,
            "price": self.price,
            "discountedPrice": self.discounted_price,
            "effectivePrice": self.effective_price,
            "discountPercentage": self.discount_percentage,
            "pricePerLead": self.price_per_lead,
            "monthlyEquivalent": self.monthly_equivalent,
            "isDiscounted": self.is_discounted,
            "currency": self.currency,
            "isActive": self.is_active,
            "features": list(self.features or []),
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }

    def __repr__(self):
        return f"<SubscriptionPlan {self.plan_name}>"


@event.listens_for(SubscriptionPlan, "before_insert")
def _plan_before_insert(mapper, connection, target):
    target.apply_defaults()


@event.listens_for(SubscriptionPlan, "before_update")
def _plan_before_update(mapper, connection, target):
    state = inspect(target)
    changed = state.attrs.total_leads.history.has_changes() or state.attrs.duration.history.has_changes()
    target.apply_defaults(recompute_leads=changed)
