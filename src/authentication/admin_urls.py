"""Routing for administrator user management."""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import UserAdminViewSet

router = DefaultRouter(trailing_slash=True)
router.include_root_view = False
router.register(r"users", UserAdminViewSet, basename="admin-user")

urlpatterns = [
    path("", include(router.urls)),
]
