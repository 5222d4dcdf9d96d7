"""Root URL configuration for the Syscall Gateway API."""
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView

urlpatterns = [
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("auth/", include("authentication.urls")),
    path("manage/", include("access_control.urls")),
    path("manage/", include("authentication.admin_urls")),
    path("", include("syscalls.urls")),
    path("", include("audit.urls")),
]
