import logging

from homexpert.domain import leads as progress
from homexpert.errors import ConflictError, NotFoundError, ValidationError
from homexpert.extensions import db
from homexpert.models import Lead, LeadStatus, Vendor
from homexpert.models.base import is_valid_id
from homexpert.services.subscription_service import SubscriptionService
from homexpert.utils.dates import isoformat, utcnow
from homexpert.utils.validation import normalize_email, normalize_phone, parse_bool

logger = logging.getLogger(__name__)

OPEN_STATUSES = (LeadStatus.AVAILABLE.value, LeadStatus.ASSIGNED.value)

EDITABLE_FIELDS = {
    "customerName": "customer_name",
    "service": "service",
    "selectedService": "selected_service",
    "selectedSubService": "selected_sub_service",
    "description": "description",
    "address": "address",
    "city": "city",
    "state": "state",
    "pincode": "pincode",
    "preferredDate": "preferred_date",
    "preferredTime": "preferred_time",
    "notes": "notes",
}


def _price(value):
    if value in (None, ""):
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise ValidationError("Price must be a number")
    if price < 0:
        raise ValidationError("Price cannot be negative")
    return price


class LeadService:

    @staticmethod
    def get(lead_id):
        lead = db.session.get(Lead, lead_id) if is_valid_id(lead_id) else None
        if lead is None:
            raise NotFoundError("Lead not found")
        return lead

    @staticmethod
    def build(data, created_by=None):
        """Validate a lead form and return an unsaved ``Lead``."""
        name = (data.get("name") or data.get("customerName") or "").strip()
        phone = data.get("phone") or data.get("customerPhone")
        if not name or not phone:
            raise ValidationError("Name and phone number are required")
        phone = normalize_phone(phone)

        service = (data.get("service") or data.get("selectedService") or "").strip()
        if not service:
            raise ValidationError("Service is required")

        email = data.get("email") or data.get("customerEmail")
        if email:
            email = normalize_email(email)

        return Lead(
            customer_name=name,
            customer_phone=phone,
            customer_email=email or None,
            service=service,
            selected_service=data.get("selectedService") or service,
            selected_sub_service=data.get("selectedSubService"),
            description=data.get("description"),
            address=data.get("address"),
            city=data.get("city"),
            state=data.get("state"),
            pincode=data.get("pincode"),
            price=_price(data.get("price")),
            get_quote=parse_bool(data.get("getQuote")),
            preferred_date=data.get("preferredDate"),
            preferred_time=data.get("preferredTime"),
            notes=data.get("notes"),
            status=LeadStatus.PENDING.value,
            available_to_vendors=[],
            progress_history=[],
            created_by=created_by,
        )

    @classmethod
    def create(cls, data, created_by=None):
        lead = cls.build(data, created_by=created_by)
        db.session.add(lead)
        db.session.commit()
        logger.info("Lead %s created for %s (%s)", lead.id, lead.service, "admin" if created_by else "public form")
        return lead

    @staticmethod
    def search(status=None, service=None, city=None, search=None):
        query = Lead.query
        if status:
            query = query.filter(Lead.status == status)
        if service:
            query = query.filter(Lead.service.ilike(f"%{service}%"))
        if city:
            query = query.filter(Lead.city.ilike(f"%{city}%"))
        if search:
            term = f"%{search}%"
            query = query.filter(db.or_(
                Lead.customer_name.ilike(term),
                Lead.customer_phone.ilike(term),
                Lead.customer_email.ilike(term),
            ))
        return query.order_by(Lead.created_at.desc())

    @classmethod
    def update(cls, lead_id, data, user_id):
        lead = cls.get(lead_id)
        for key, attr in EDITABLE_FIELDS.items():
            if key in data:
                setattr(lead, attr, data[key])
        if "customerPhone" in data:
            lead.customer_phone = normalize_phone(data["customerPhone"])
        if "customerEmail" in data:
            lead.customer_email = normalize_email(data["customerEmail"]) if data["customerEmail"] else None
        if "price" in data:
            lead.price = _price(data["price"])
        if "getQuote" in data:
            lead.get_quote = parse_bool(data["getQuote"])
        if "status" in data:
            try:
                lead.update_status(data["status"], user_id=user_id, note=data.get("statusNote"))
            except ValueError as exc:
                raise ValidationError(str(exc))
        lead.modified_by = user_id
        db.session.commit()
        return lead

    @classmethod
    def delete(cls, lead_id):
        lead = cls.get(lead_id)
        db.session.delete(lead)
        db.session.commit()
        logger.info("Lead %s deleted", lead_id)

    @classmethod
    def assign(cls, lead_ids, vendor_ids, user_id):
        """Make ``lead_ids`` available to ``vendor_ids``."""
        if not isinstance(lead_ids, list) or not lead_ids:
            raise ValidationError("leadIds must be a non-empty list")
        if not isinstance(vendor_ids, list) or not vendor_ids:
            raise ValidationError("vendorIds must be a non-empty list")

        vendors = Vendor.query.filter(Vendor.id.in_(vendor_ids)).all()
        found = {v.id for v in vendors}
        missing = [v for v in vendor_ids if v not in found]
        if missing:
            raise ValidationError(f"Unknown vendor ids: {', '.join(missing)}")

        leads = [cls.get(lead_id) for lead_id in lead_ids]
        for lead in leads:
            if lead.is_taken:
                raise ConflictError(f"Lead {lead.id} has already been taken")
            lead.make_available_to(vendor_ids, user_id=user_id)
        db.session.commit()
        logger.info("%d leads made available to %d vendors by %s", len(leads), len(vendor_ids), user_id)
        return leads

    @staticmethod
    def _matches_services(lead, services):
        if not services:
            return True
        service = (lead.service or "").lower()
        return any(s.lower() in service for s in services)

    @classmethod
    def available_for_vendor(cls, vendor, service=None, location=None, max_price=None):
        query = Lead.query.filter(Lead.status.in_(OPEN_STATUSES), Lead.taken_by_id.is_(None))
        if service:
            query = query.filter(Lead.service.ilike(f"%{service}%"))
        if location:
            term = f"%{location}%"
            query = query.filter(db.or_(Lead.address.ilike(term), Lead.city.ilike(term)))
        if max_price is not None:
            query = query.filter(Lead.price <= _price(max_price))

        leads = query.order_by(Lead.created_at.desc()).all()
        services = [] if service else list(vendor.services or [])
        return [
            lead for lead in leads
            if lead.is_available_to(vendor.id) and cls._matches_services(lead, services)
        ]

    @staticmethod
    def vendor_leads(vendor, status=None):
        query = Lead.query.filter(Lead.taken_by_id == vendor.id)
        if status:
            query = query.filter(Lead.status == status)
        return query.order_by(Lead.taken_at.desc())

    @classmethod
    def take(cls, vendor, lead_id, now=None):
        """
        Take ``lead_id`` for ``vendor`` and consume one lead from its
        subscription. Returns ``(lead, subscription)``.
        """
        if not lead_id:
            raise ValidationError("Lead ID is required")

        now = now or utcnow()
        subscription = SubscriptionService.require_usable_subscription(
            vendor.user_id, now, for_update=True, purpose="take leads"
        )

        lead = db.session.get(Lead, lead_id) if is_valid_id(lead_id) else None
        if (
            lead is None
            or lead.is_taken
            or lead.status not in OPEN_STATUSES
            or not lead.is_available_to(vendor.id)
        ):
            raise NotFoundError(
                "Lead not found, not available to you, or already taken",
                payload={"alreadyTaken": True},
            )

        history = [*(lead.progress_history or []), {
            "from": lead.status,
            "to": LeadStatus.TAKEN.value,
            "changedBy": vendor.user_id,
            "note": None,
            "date": isoformat(now),
        }]
        # Conditional update so only one vendor can win the lead
        taken = (
            Lead.query
            .filter(Lead.id == lead.id, Lead.taken_by_id.is_(None))
            .update(
                {
                    Lead.taken_by_id: vendor.id,
                    Lead.taken_at: now,
                    Lead.status: LeadStatus.TAKEN.value,
                    Lead.progress_history: history,
                    Lead.modified_by: vendor.user_id,
                },
                synchronize_session=False,
            )
        )
        if not taken:
            db.session.rollback()
            raise ConflictError("Lead has already been taken by another vendor", payload={"alreadyTaken": True})

        SubscriptionService.consume_lead(subscription, lead_id=lead.id, now=now)
        db.session.commit()
        db.session.refresh(lead)
        logger.info("Lead %s taken by vendor %s", lead.id, vendor.id)
        return lead, subscription

    # ========== VENDOR FOLLOW-THROUGH ==========

    @staticmethod
    def taken_by(vendor, lead_id):
        """A lead this vendor has taken, or 404."""
        lead = db.session.get(Lead, lead_id) if is_valid_id(lead_id) else None
        if lead is None or lead.taken_by_id != vendor.id:
            raise NotFoundError("Lead not found or not accessible")
        return lead

    @staticmethod
    def vendor_detail(lead, now=None):
        now = now or utcnow()
        lead_timing = progress.timing(lead.taken_at, lead.status, now)
        history = list(lead.progress_history or [])
        return dict(
            lead.to_dict(),
            timing=lead_timing,
            flags=progress.status_flags(lead.status),
            progress={
                "milestones": progress.milestones(history),
                "completion": progress.completion_percentage(lead.status),
                "nextSteps": progress.next_steps(lead.status, lead_timing["daysSinceTaken"]),
            },
        )

    @classmethod
    def vendor_update(cls, vendor, lead_id, data, now=None):
        """
        Move a taken lead forward. Status changes land in ``progress_history``;
        completing or converting it closes the subscription assignment.
        """
        lead = cls.taken_by(vendor, lead_id)
        now = now or utcnow()

        status = data.get("status")
        changed = bool(status) and status != lead.status
        if changed:
            progress.validate_vendor_status(status)
        amounts = {
            attr: _price(data[key])
            for key, attr in (("conversionValue", "conversion_value"), ("actualServiceCost", "actual_service_cost"))
            if key in data
        }
        note = progress.clean_text(data["note"], "Note", progress.MAX_NOTE_LENGTH) if data.get("note") else None

        if changed:
            reason = data.get("reason") or f"Status updated to {status}"
            lead.update_status(status, user_id=vendor.user_id, note=reason, now=now)
        for key, attr in (("scheduledDate", "scheduled_date"), ("scheduledTime", "scheduled_time")):
            if data.get(key):
                setattr(lead, attr, data[key])
        for attr, value in amounts.items():
            setattr(lead, attr, value)
        if note:
            lead.add_vendor_note(note, vendor.user_id, now=now)
        lead.modified_by = vendor.user_id

        if changed and status in progress.COMPLETED_STATUSES:
            revenue = lead.conversion_value or lead.actual_service_cost or 0
            SubscriptionService.complete_lead_assignment(vendor.user_id, lead.id, revenue=revenue, now=now)

        db.session.commit()
        logger.info("Lead %s updated by vendor %s (status %s)", lead.id, vendor.id, lead.status)
        return lead

    @classmethod
    def add_note(cls, vendor, lead_id, data, now=None):
        lead = cls.taken_by(vendor, lead_id)
        text = progress.clean_text(data.get("note"), "Note", progress.MAX_NOTE_LENGTH)
        entry = lead.add_vendor_note(text, vendor.user_id, note_type=data.get("type") or "general", now=now)
        lead.modified_by = vendor.user_id
        db.session.commit()
        return lead, entry

    @staticmethod
    def notes_newest_first(lead):
        return sorted(lead.vendor_notes or [], key=lambda n: n["date"], reverse=True)

    @classmethod
    def add_follow_up(cls, vendor, lead_id, data, now=None):
        text = progress.clean_text(data.get("followUp"), "Follow-up", progress.MAX_FOLLOW_UP_LENGTH)
        due = progress.parse_follow_up_date(data.get("date"))
        priority = data.get("priority") or "normal"
        if priority not in progress.PRIORITIES:
            raise ValidationError(f"Priority must be one of: {', '.join(progress.PRIORITIES)}")

        lead = cls.taken_by(vendor, lead_id)
        entry = lead.add_follow_up(
            text, due, vendor.user_id,
            priority=priority, follow_up_type=data.get("type") or "general", now=now,
        )
        lead.modified_by = vendor.user_id
        db.session.commit()
        return lead, entry

    @classmethod
    def update_follow_up(cls, vendor, lead_id, data, now=None):
        follow_up_id = data.get("followUpId")
        if not follow_up_id:
            raise ValidationError("Follow-up ID is required")
        if "completed" not in data:
            raise ValidationError("completed is required")

        lead = cls.taken_by(vendor, lead_id)
        entry = lead.set_follow_up_completed(
            follow_up_id,
            parse_bool(data["completed"]),
            completed_by=vendor.user_id,
            completion_note=data.get("completionNote"),
            now=now,
        )
        if entry is None:
            raise NotFoundError("Follow-up not found")
        lead.modified_by = vendor.user_id
        db.session.commit()
        return lead, entry

    @staticmethod
    def follow_up_views(lead, status=None, now=None):
        """Follow-ups with derived state, pending first. Returns ``(views, summary)``."""
        now = now or utcnow()
        views = [progress.follow_up_view(entry, now) for entry in lead.follow_ups or []]
        summary = {"total": len(views)}
        for state in progress.FOLLOW_UP_ORDER:
            summary[state] = sum(1 for view in views if view["status"] == state)
        if status:
            views = [view for view in views if view["status"] == status]
        return progress.sort_follow_ups(views), summary
