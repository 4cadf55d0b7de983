"""Access token issuing.

Identity is the user id as a string; authorization data rides along as
additional claims so request handlers never need a database round trip to
authorize.
"""

from flask_jwt_extended import create_access_token


def build_claims(user, permissions=None, vendor_id=None):
    if permissions is None:
        permissions = user.permission_strings()
    return {
        "role": user.role_name,
        "user_type": user.user_type,
        "permissions": sorted(permissions),
        "vendor_id": vendor_id,
        "email": user.email,
    }


def issue_access_token(user, permissions=None, vendor_id=None):
    """Create a bearer token for ``user`` carrying its flattened permissions."""
    claims = build_claims(user, permissions=permissions, vendor_id=vendor_id)
    return create_access_token(identity=str(user.id), additional_claims=claims)
