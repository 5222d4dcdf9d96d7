"""Routing for access control admin endpoints."""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import ConfigurationViewSet, OperationViewSet, PolicyViewSet, ResetView

router = DefaultRouter()
router.include_root_view = False
router.register(r"operations", OperationViewSet, basename="operation")
router.register(r"policies", PolicyViewSet, basename="policy")
router.register(r"configuration", ConfigurationViewSet, basename="configuration")

urlpatterns = [
    path("reset/", ResetView.as_view(), name="admin-reset"),
    path("", include(router.urls)),
]
