from enum import Enum

from homexpert.extensions import db
from homexpert.models.base import TimestampMixin, new_id
from homexpert.utils.dates import isoformat, utcnow


class LeadStatus(str, Enum):
    PENDING = "pending"
    AVAILABLE = "available"
    ASSIGNED = "assigned"
    TAKEN = "taken"
    CONTACTED = "contacted"
    INTERESTED = "interested"
    NOT_INTERESTED = "not_interested"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CONVERTED = "converted"
    CANCELLED = "cancelled"

    @classmethod
    def values(cls):
        return [status.value for status in cls]


class Lead(TimestampMixin, db.Model):
    __tablename__ = "leads"

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    # Customer
    customer_name = db.Column(db.String(100), nullable=False)
    customer_phone = db.Column(db.String(20), nullable=False, index=True)
    customer_email = db.Column(db.String(120), index=True)

    # Service
    service = db.Column(db.String(100), nullable=False, index=True)
    selected_service = db.Column(db.String(100))
    selected_sub_service = db.Column(db.String(100))
    description = db.Column(db.Text)
    price = db.Column(db.Float)
    get_quote = db.Column(db.Boolean, default=False, nullable=False)
    preferred_date = db.Column(db.String(20))
    preferred_time = db.Column(db.String(20))

    # Location
    address = db.Column(db.String(255))
    city = db.Column(db.String(100), index=True)
    state = db.Column(db.String(100))
    pincode = db.Column(db.String(10))

    # Workflow
    status = db.Column(db.String(30), nullable=False, default=LeadStatus.PENDING.value, index=True)
    available_to_vendors = db.Column(db.JSON, nullable=False, default=list)
    taken_by_id = db.Column(db.String(36), db.ForeignKey("vendors.id"), nullable=True, index=True)
    taken_at = db.Column(db.DateTime)
    progress_history = db.Column(db.JSON, nullable=False, default=list)
    notes = db.Column(db.Text)

    # Vendor follow-through
    scheduled_date = db.Column(db.String(20))
    scheduled_time = db.Column(db.String(20))
    conversion_value = db.Column(db.Float)
    actual_service_cost = db.Column(db.Float)
    vendor_notes = db.Column(db.JSON, nullable=False, default=list)
    follow_ups = db.Column(db.JSON, nullable=False, default=list)

    created_by = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
    modified_by = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)

    taken_by = db.relationship("Vendor", backref=db.backref("taken_leads", lazy="dynamic"))

    __table_args__ = (
        db.Index("idx_lead_status_created", "status", "created_at"),
    )

    @property
    def is_taken(self):
        return self.taken_by_id is not None

    def is_available_to(self, vendor_id):
        return vendor_id in (self.available_to_vendors or [])

    def update_status(self, new_status, user_id=None, note=None, now=None):
        """Move to ``new_status`` and append the transition to ``progress_history``."""
        if new_status not in LeadStatus.values():
            raise ValueError(f"Invalid lead status: {new_status}")
        if new_status == self.status:
            return False

        entry = {
            "from": self.status,
            "to": new_status,
            "changedBy": user_id,
            "note": note,
            "date": isoformat(now or utcnow()),
        }
        # JSON columns only notice reassignment
        self.progress_history = [*(self.progress_history or []), entry]
        self.status = new_status
        if user_id:
            self.modified_by = user_id
        return True

    def make_available_to(self, vendor_ids, user_id=None, now=None):
        merged = list(self.available_to_vendors or [])
        for vendor_id in vendor_ids:
            if vendor_id not in merged:
                merged.append(vendor_id)
        self.available_to_vendors = merged
        if self.status == LeadStatus.PENDING.value:
            self.update_status(LeadStatus.AVAILABLE.value, user_id=user_id, now=now)
        elif user_id:
            self.modified_by = user_id

    def add_vendor_note(self, note, created_by, note_type="general", now=None):
        entry = {
            "id": new_id(),
            "note": note,
            "type": note_type,
            "createdBy": created_by,
            "date": isoformat(now or utcnow()),
        }
        self.vendor_notes = [*(self.vendor_notes or []), entry]
        return entry

    def add_follow_up(self, text, due, created_by, priority="normal", follow_up_type="general", now=None):
        entry = {
            "id": new_id(),
            "followUp": text,
            "date": isoformat(due),
            "priority": priority,
            "type": follow_up_type,
            "createdBy": created_by,
            "createdAt": isoformat(now or utcnow()),
            "completed": False,
            "completedAt": None,
            "completedBy": None,
            "completionNote": None,
        }
        self.follow_ups = [*(self.follow_ups or []), entry]
        return entry

    def set_follow_up_completed(self, follow_up_id, completed, completed_by=None, completion_note=None, now=None):
        """Mark a follow-up done or reopen it. Returns the entry, or None when unknown."""
        updated = None
        follow_ups = []
        for entry in self.follow_ups or []:
            if entry.get("id") == follow_up_id:
                entry = dict(entry, completed=bool(completed))
                if completed:
                    entry.update(
                        completedAt=isoformat(now or utcnow()),
                        completedBy=completed_by,
                        completionNote=completion_note or entry.get("completionNote"),
                    )
                else:
                    entry.update(completedAt=None, completedBy=None, completionNote=None)
                updated = entry
            follow_ups.append(entry)
        if updated is not None:
            self.follow_ups = follow_ups
        return updated

    def to_dict(self, include_contact=True):
        data = {
            "id": self.id,
            "customerName": self.customer_name,
            "service": self.service,
            "selectedService": self.selected_service,
            "selectedSubService": self.selected_sub_service,
            "description": self.description,
            "price": self.price,
            "getQuote": self.get_quote,
            "preferredDate": self.preferred_date,
            "preferredTime": self.preferred_time,
            "city": self.city,
            "state": self.state,
            "pincode": self.pincode,
            "status": self.status,
            "availableToVendors": list(self.available_to_vendors or []),
            "takenBy": self.taken_by_id,
            "takenAt": isoformat(self.taken_at),
            "progressHistory": list(self.progress_history or []),
            "notes": self.notes,
            "scheduledDate": self.scheduled_date,
            "scheduledTime": self.scheduled_time,
            "conversionValue": self.conversion_value,
            "actualServiceCost": self.actual_service_cost,
            "vendorNotes": list(self.vendor_notes or []),
            "followUps": list(self.follow_ups or []),
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }
        if include_contact:
            data.update({
                "customerPhone": self.customer_phone,
                "customerEmail": self.customer_email,
                "address": self.address,
            })
        return data

    def __repr__(self):
        return f"<Lead {self.id} {self.status}>"
