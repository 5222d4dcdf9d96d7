"""DRF permission class restricting views to a declared set of roles."""

from rest_framework import permissions


class RolePermission(permissions.BasePermission):
    """Allow the request only when ``request.user.role`` is in ``view.allowed_roles``.

    Views opt in by declaring ``allowed_roles``. A view that lists this
    permission without declaring roles denies everyone; the
    ``access_control.E001`` system check reports such views at startup.
    """

    message = "You do not have permission to perform this action on this resource."

    def has_permission(self, request, view) -> bool:
        user = getattr(request, "user", None)
        if not user or not getattr(user, "is_authenticated", False):
            return False

        allowed_roles = getattr(view, "allowed_roles", None)
        if not allowed_roles:
            return False

        return getattr(user, "role", None) in allowed_roles


__all__ = ["RolePermission"]
