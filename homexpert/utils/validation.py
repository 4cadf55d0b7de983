import re

from homexpert.errors import ValidationError

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
INDIAN_MOBILE_RE = re.compile(r"^[6-9]\d{9}$")


def get_json_body(request):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def require_fields(data, fields, message=None):
    """Raise unless every field in ``fields`` is present and truthy."""
    missing = [field for field in fields if not data.get(field)]
    if missing:
        raise ValidationError(message or f"Missing required fields: {', '.join(missing)}")


def normalize_email(email):
    email = (email or "").strip().lower()
    if not EMAIL_RE.match(email):
        raise ValidationError("Invalid email address")
    return email


def normalize_phone(phone):
    """Strip spaces, dashes and a leading +91 then check for a 10 digit Indian mobile number."""
    digits = re.sub(r"[\s-]", "", str(phone or ""))
    if digits.startswith("+91"):
        digits = digits[3:]
    if not INDIAN_MOBILE_RE.match(digits):
        raise ValidationError("Please enter a valid 10-digit mobile number")
    return digits


def parse_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")
