"""URL patterns for the operation endpoint."""

from django.urls import path

from .views import SyscallView

urlpatterns = [
    path("syscall/", SyscallView.as_view(), name="syscall"),
]
