from rest_framework.permissions import BasePermission

from apps.accounts.models import UserRole


ROLE_CAPABILITIES = {
    UserRole.ADMIN: {
        "users.view",
        "users.manage",
        "geography.view",
        "geography.manage",
        "audit.view",
    },
    UserRole.TEACHER: {
        "geography.view",
    },
    UserRole.STAFF: {
        "users.view",
        "geography.view",
    },
}


class RolePermission(BasePermission):
    @staticmethod
    def _resolve_role(user):
        group_names = set(user.groups.values_list("name", flat=True))
        for role in (UserRole.ADMIN, UserRole.TEACHER, UserRole.STAFF):
            if role in group_names:
                return role
        return getattr(user, "role", UserRole.STAFF)

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        capability_map = getattr(view, "capability_map", {})
        action = getattr(view, "action", request.method.lower())
        required = capability_map.get(action) or capability_map.get(request.method.lower()) or set()
        if not required:
            return True

        user_role = self._resolve_role(request.user)
        user_caps = ROLE_CAPABILITIES.get(user_role, set())
        return all(cap in user_caps for cap in required)
