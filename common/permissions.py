import logging

from rest_framework.permissions import BasePermission

from core.models import User

logger = logging.getLogger("security.authorization")

ROLE_CAPABILITY_MATRIX = {
    "stock.view": {User.Role.ADMIN, User.Role.STOCK_VIEWER},
    "stock.manage": {User.Role.ADMIN},
    "sales.view": {User.Role.ADMIN},
    "sales.manage": {User.Role.ADMIN},
    "customers.view": {User.Role.ADMIN},
    "customers.manage": {User.Role.ADMIN},
    "payments.view": {User.Role.ADMIN},
    "payments.manage": {User.Role.ADMIN},
    "reports.view": {User.Role.ADMIN},
    "settings.manage": {User.Role.ADMIN},
}

# Flags the client uses to decide which screens to show.
VIEW_FLAG_CAPABILITIES = {
    "can_view_stock": "stock.view",
    "can_view_sales": "sales.view",
    "can_view_customers": "customers.view",
    "can_view_reports": "reports.view",
    "can_view_payments": "payments.view",
    "can_view_settings": "settings.manage",
}


def get_user_role(user):
    if not user or not user.is_authenticated:
        return None
    if user.is_superuser:
        return User.Role.ADMIN
    role = getattr(user, "role", None)
    if role:
        return role
    if getattr(user, "is_staff", False):
        return User.Role.ADMIN
    return User.Role.STOCK_VIEWER


def user_has_capability(user, capability):
    if not user or not user.is_authenticated:
        return False
    if user.is_superuser:
        return True
    allowed_roles = ROLE_CAPABILITY_MATRIX.get(capability)
    if not allowed_roles:
        return False
    return get_user_role(user) in allowed_roles


def permission_flags(user):
    return {flag: user_has_capability(user, capability) for flag, capability in VIEW_FLAG_CAPABILITIES.items()}


class RoleCapabilityPermission(BasePermission):
    """Permission class that validates role capability by action/method and logs denied attempts."""

    message = "You do not have permission to perform this action."

    def has_permission(self, request, view):
        capability_map = getattr(view, "permission_action_map", {})
        action_key = getattr(view, "action", None) or request.method.lower()
        capability = capability_map.get(action_key)
        if capability is None:
            return True

        allowed = user_has_capability(request.user, capability)
        if not allowed:
            logger.warning(
                "permission_denied capability=%s user=%s role=%s method=%s path=%s view=%s action=%s",
                capability,
                getattr(request.user, "username", "anonymous"),
                get_user_role(request.user),
                request.method,
                request.path,
                view.__class__.__name__,
                action_key,
            )
        return allowed
