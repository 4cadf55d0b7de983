from homexpert.models.permission import Permission, role_permissions
from homexpert.models.role import Role
from homexpert.models.user import User
from homexpert.models.vendor import Vendor
from homexpert.models.lead import Lead, LeadStatus
from homexpert.models.subscription_plan import SubscriptionPlan
from homexpert.models.subscription_history import SubscriptionHistory

__all__ = [
    "Permission",
    "role_permissions",
    "Role",
    "User",
    "Vendor",
    "Lead",
    "LeadStatus",
    "SubscriptionPlan",
    "SubscriptionHistory",
]
