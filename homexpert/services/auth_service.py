import logging
import secrets

from homexpert.errors import ConflictError, UnauthorizedError, ValidationError
from homexpert.extensions import db
from homexpert.models import Role, User, Vendor
from homexpert.security.tokens import issue_access_token
from homexpert.utils.dates import utcnow
from homexpert.utils.validation import normalize_email, normalize_phone, require_fields

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"


class AuthService:

    @staticmethod
    def _authenticate(email, password, user_type):
        user = User.find_by_email(email)
        if user is None or user.user_type != user_type or not user.check_password(password or ""):
            logger.info("Failed %s login for %s", user_type, email)
            raise UnauthorizedError(INVALID_CREDENTIALS)
        if not user.is_active:
            raise UnauthorizedError("Account is deactivated")
        user.last_login_at = utcnow()
        return user

    @staticmethod
    def _session(user, vendor_id=None):
        permissions = user.permission_strings()
        token = issue_access_token(user, permissions=permissions, vendor_id=vendor_id)
        return {
            "accessToken": token,
            "user": user.to_dict(),
            "permissions": permissions,
        }

    @classmethod
    def login_employee(cls, data):
        require_fields(data, ("email", "password"), message="Email and password are required")
        user = cls._authenticate(data["email"].strip().lower(), data["password"], "employee")
        db.session.commit()
        logger.info("Employee %s logged in", user.id)
        return cls._session(user)

    @classmethod
    def login_vendor(cls, data):
        require_fields(data, ("email", "password"), message="Email and password are required")
        user = cls._authenticate(data["email"].strip().lower(), data["password"], "vendor")
        vendor = user.vendor
        if vendor is None:
            raise UnauthorizedError("Vendor profile not found")
        if not vendor.is_active:
            raise UnauthorizedError("Vendor account is inactive")
        db.session.commit()
        logger.info("Vendor %s logged in", vendor.id)
        session = cls._session(user, vendor_id=vendor.id)
        session["vendor"] = vendor.to_dict()
        return session

    @staticmethod
    def create_vendor(data, password=None, created_by=None):
        """Create a vendor user with the vendor role and its profile."""
        require_fields(data, ("name", "email", "phone", "businessName"))
        email = normalize_email(data["email"])
        phone = normalize_phone(data["phone"])
        if User.find_by_email(email):
            raise ConflictError("A user with this email already exists")

        role = Role.find_by_name("vendor")
        if role is None:
            raise ValidationError("Vendor role is not configured. Run the permission seed first.")

        services = data.get("services") or []
        if not isinstance(services, list):
            raise ValidationError("services must be a list")

        user = User(name=data["name"].strip(), email=email, phone=phone, user_type="vendor", role=role)
        user.set_password(password or data.get("password") or secrets.token_urlsafe(12))
        vendor = Vendor(
            user=user,
            business_name=data["businessName"].strip(),
            services=[str(s).strip() for s in services if str(s).strip()],
            address=data.get("address"),
            city=data.get("city"),
            state=data.get("state"),
            pincode=data.get("pincode"),
        )
        db.session.add_all([user, vendor])
        db.session.flush()
        logger.info("Vendor %s created (user %s) by %s", vendor.id, user.id, created_by or "self-registration")
        return vendor

    @classmethod
    def register_vendor(cls, data):
        require_fields(data, ("password",))
        if len(data["password"]) < 8:
            raise ValidationError("Password must be at least 8 characters")
        vendor = cls.create_vendor(data)
        db.session.commit()
        session = cls._session(vendor.user, vendor_id=vendor.id)
        session["vendor"] = vendor.to_dict()
        return session
