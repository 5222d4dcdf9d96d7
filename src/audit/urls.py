"""URL patterns for audit log and dashboard endpoints."""

from django.urls import path

from .views import DashboardView, LogsView

urlpatterns = [
    path("logs/", LogsView.as_view(), name="audit-logs"),
    path("dashboard/", DashboardView.as_view(), name="audit-dashboard"),
]
