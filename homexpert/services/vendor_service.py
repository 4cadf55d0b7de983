import logging

from homexpert.errors import ConflictError, NotFoundError, ValidationError
from homexpert.extensions import db
from homexpert.models import Lead, SubscriptionHistory, User, Vendor
from homexpert.models.base import is_valid_id
from homexpert.services.auth_service import AuthService
from homexpert.utils.validation import normalize_email, normalize_phone, parse_bool

logger = logging.getLogger(__name__)

PROFILE_FIELDS = {
    "businessName": "business_name",
    "address": "address",
    "city": "city",
    "state": "state",
    "pincode": "pincode",
}


class VendorService:

    @staticmethod
    def get(vendor_id):
        vendor = db.session.get(Vendor, vendor_id) if is_valid_id(vendor_id) else None
        if vendor is None:
            raise NotFoundError("Vendor not found")
        return vendor

    @staticmethod
    def search(search=None, city=None, service=None, is_active=None, is_verified=None):
        query = Vendor.query.join(User)
        if search:
            term = f"%{search}%"
            query = query.filter(db.or_(
                Vendor.business_name.ilike(term),
                User.name.ilike(term),
                User.email.ilike(term),
                User.phone.ilike(term),
            ))
        if city:
            query = query.filter(Vendor.city.ilike(f"%{city}%"))
        if is_active is not None:
            query = query.filter(Vendor.is_active == parse_bool(is_active))
        if is_verified is not None:
            query = query.filter(Vendor.is_verified == parse_bool(is_verified))
        vendors = query.order_by(Vendor.created_at.desc()).all()
        if service:
            service = service.lower()
            vendors = [v for v in vendors if any(service in s.lower() for s in v.services or [])]
        return vendors

    @staticmethod
    def create(data, created_by=None):
        vendor = AuthService.create_vendor(data, created_by=created_by)
        db.session.commit()
        return vendor

    @classmethod
    def update(cls, vendor_id, data, cache=None):
        vendor = cls.get(vendor_id)
        user = vendor.user
        for key, attr in PROFILE_FIELDS.items():
            if key in data:
                setattr(vendor, attr, data[key])
        if "services" in data:
            if not isinstance(data["services"], list):
                raise ValidationError("services must be a list")
            vendor.services = [str(s).strip() for s in data["services"] if str(s).strip()]
        if "name" in data and data["name"]:
            user.name = data["name"].strip()
        if "phone" in data:
            user.phone = normalize_phone(data["phone"])
        if "email" in data:
            email = normalize_email(data["email"])
            other = User.find_by_email(email)
            if other and other.id != user.id:
                raise ConflictError("A user with this email already exists")
            user.email = email
        if "isVerified" in data:
            vendor.is_verified = parse_bool(data["isVerified"])
        if "isActive" in data:
            active = parse_bool(data["isActive"])
            if active != vendor.is_active:
                logger.info("Vendor %s %s", vendor.id, "activated" if active else "deactivated")
            vendor.is_active = active
            user.is_active = active
            if not active and cache is not None:
                cache.clear(user.id)
        db.session.commit()
        return vendor

    @classmethod
    def delete(cls, vendor_id):
        vendor = cls.get(vendor_id)
        if Lead.query.filter_by(taken_by_id=vendor.id).count():
            raise ValidationError("Cannot delete a vendor that has taken leads. Deactivate it instead.")
        SubscriptionHistory.query.filter_by(user_id=vendor.user_id).delete(synchronize_session=False)
        db.session.delete(vendor.user)
        db.session.commit()
        logger.info("Vendor %s deleted", vendor_id)
