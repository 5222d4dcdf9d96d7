"""System checks for role-gated views."""

from django.core.checks import Error, register

from access_control.permissions import RolePermission


@register()
def role_gated_views_declare_roles(app_configs, **kwargs):
    """Ensure views using RolePermission declare a non-empty allowed_roles.

    Only the admin views known to this project are inspected. New role-gated
    views should be added to the list below.
    """
    errors: list[Error] = []

    # Import here to avoid circular imports at module load time.
    from access_control.views import ConfigurationViewSet, OperationViewSet, PolicyViewSet, ResetView
    from authentication.views import UserAdminViewSet

    gated_views = [OperationViewSet, PolicyViewSet, ConfigurationViewSet, ResetView, UserAdminViewSet]

    for view_cls in gated_views:
        permission_classes = getattr(view_cls, "permission_classes", [])
        if RolePermission in permission_classes and not getattr(view_cls, "allowed_roles", None):
            errors.append(
                Error(
                    f"{view_cls.__name__} uses RolePermission but does not define allowed_roles.",
                    obj=view_cls,
                    id="access_control.E001",
                )
            )

    return errors
