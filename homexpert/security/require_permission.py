import logging
from functools import wraps

from flask import current_app, request
from flask_jwt_extended import get_jwt, get_jwt_identity, verify_jwt_in_request

from homexpert.errors import NotFoundError, PermissionDeniedError, UnauthorizedError
from homexpert.extensions import get_permission_cache
from homexpert.security.cache import CachedGrant
from homexpert.security.context import AuthorizationContext
from homexpert.services.permission_service import PermissionService

logger = logging.getLogger(__name__)


def load_authorization_context():
    """
    Verify the bearer token and build the caller's ``AuthorizationContext``.

    The role and permissions come from the permission cache when present,
    otherwise from the database, which also rejects deactivated or deleted
    accounts. Token claims only supply the user type and vendor id.
    """
    verify_jwt_in_request()
    user_id = get_jwt_identity()
    claims = get_jwt()

    cache = get_permission_cache(current_app)
    grant = cache.get_grant(user_id)
    if grant is None or grant.role is None:
        try:
            user, permissions = PermissionService.resolve(user_id)
        except NotFoundError:
            raise UnauthorizedError("User no longer exists")
        cache.set(user.id, permissions, role=user.role_name)
        grant = CachedGrant(role=user.role_name, permissions=permissions)

    return AuthorizationContext.from_claims(user_id, claims, grant.permissions, role=grant.role)


def _deny(auth, message, permission=None):
    logger.warning(
        "Permission denied for user %s (%s) on %s %s: %s",
        auth.user_id, auth.role, request.method, request.path, permission or message,
    )
    raise PermissionDeniedError(message, permission=permission)


def authenticated(fn):
    """Any valid token. Passes ``auth`` to the view."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        kwargs["auth"] = load_authorization_context()
        return fn(*args, **kwargs)
    return wrapper


def require_permission(permission, allow_vendors=False):
    """Employees holding ``permission``; vendors too when ``allow_vendors``."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            auth = load_authorization_context()
            if auth.is_vendor and not allow_vendors:
                _deny(auth, "Admin access required")
            if not auth.has_permission(permission):
                _deny(auth, "Permission denied", permission=str(getattr(permission, "value", permission)))
            kwargs["auth"] = auth
            return fn(*args, **kwargs)
        return wrapper
    return decorator


def require_any_permission(*permissions):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            auth = load_authorization_context()
            if auth.is_vendor:
                _deny(auth, "Admin access required")
            if not auth.has_any_permission(permissions):
                _deny(auth, "Permission denied")
            kwargs["auth"] = auth
            return fn(*args, **kwargs)
        return wrapper
    return decorator


def admin_required(fn):
    """Administrative users (employees) only."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        auth = load_authorization_context()
        roles = current_app.config.get("ADMINISTRATIVE_ROLES", ())
        if auth.user_type != "employee" or auth.role not in roles:
            _deny(auth, "Admin access required")
        kwargs["auth"] = auth
        return fn(*args, **kwargs)
    return wrapper


def vendor_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        auth = load_authorization_context()
        if not auth.is_vendor or not auth.vendor_id:
            _deny(auth, "Vendor access required")
        kwargs["auth"] = auth
        return fn(*args, **kwargs)
    return wrapper
