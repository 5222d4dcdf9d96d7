"""Django settings for the Syscall Gateway project.

Environment-driven configuration for the database, Redis, the file sandbox,
login throttling, and logging.
"""
import os
from pathlib import Path
from urllib.parse import urlparse

from django.core.exceptions import ImproperlyConfigured

BASE_DIR = Path(__file__).resolve().parent.parent


def _get_env(name: str, default: str | None = None) -> str | None:
    """Read an environment variable with an optional fallback."""
    return os.environ.get(name, default)


def _parse_database_url(url: str) -> dict:
    """Parse a PostgreSQL- or SQLite-style DATABASE_URL into a DATABASES entry."""
    parsed = urlparse(url)
    if parsed.scheme == "sqlite":
        return {
            "ENGINE": "django.db.backends.sqlite3",
            # sqlite:///relative.db and sqlite:////absolute/path.db
            "NAME": parsed.path[1:] or str(BASE_DIR / "db.sqlite3"),
        }
    return {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": parsed.path.lstrip("/"),
        "USER": parsed.username,
        "PASSWORD": parsed.password,
        "HOST": parsed.hostname,
        "PORT": parsed.port or "5432",
    }


SECRET_KEY = _get_env("SECRET_KEY", "dev-secret-key-change-me")
DEBUG = _get_env("DEBUG", "True") == "True"
if not DEBUG and SECRET_KEY in ("change-me", "dev-secret-key-change-me"):
    raise ImproperlyConfigured("SECRET_KEY must be set in production")
ALLOWED_HOSTS = [
    h.strip()
    for h in _get_env("ALLOWED_HOSTS", "localhost,127.0.0.1,0.0.0.0,testserver").split(",")
    if h.strip()
]

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.staticfiles",
    "rest_framework",
    "drf_spectacular",
    "core",
    "authentication",
    "access_control",
    "audit",
    "syscalls",
    "scripts",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    # JWTAuthMiddleware runs after the common middlewares and sets request.user.
    "core.middleware.JWTAuthMiddleware",
]

ROOT_URLCONF = "core.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
            ],
        },
    },
]

WSGI_APPLICATION = "core.wsgi.application"
ASGI_APPLICATION = "core.asgi.application"

DATABASE_URL = _get_env("DATABASE_URL")
if DATABASE_URL:
    DATABASES = {"default": _parse_database_url(DATABASE_URL)}
elif _get_env("POSTGRES_HOST"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": _get_env("POSTGRES_DB", "syscall_gateway"),
            "USER": _get_env("POSTGRES_USER", "syscall_gateway"),
            "PASSWORD": _get_env("POSTGRES_PASSWORD", "syscall_gateway"),
            "HOST": _get_env("POSTGRES_HOST"),
            "PORT": _get_env("POSTGRES_PORT", "5432"),
        }
    }
else:
    # Local development and test runs without a Postgres server.
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": str(BASE_DIR / "db.sqlite3"),
        }
    }

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

AUTH_USER_MODEL = "authentication.User"

DEBUG_AUTH_ERRORS = _get_env("DEBUG_AUTH_ERRORS", "False") == "True"
REDIS_URL = _get_env("REDIS_URL", "redis://localhost:6379/0")

# File operations never resolve outside this directory.
SANDBOX_ROOT = Path(_get_env("SANDBOX_ROOT_DIR", str(BASE_DIR / "safe-root")))

MAX_LOGIN_ATTEMPTS = int(_get_env("MAX_LOGIN_ATTEMPTS", "5"))
LOGIN_TIMEOUT_MINUTES = int(_get_env("LOGIN_TIMEOUT_MINUTES", "15"))

AUDIT_RETENTION_DAYS = int(_get_env("AUDIT_RETENTION_DAYS", "90"))

BCRYPT_ROUNDS = int(_get_env("BCRYPT_ROUNDS", "12"))

LOG_LEVEL = (_get_env("LOG_LEVEL", "INFO") or "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": LOG_LEVEL,
    },
    "loggers": {
        "django.db.backends": {"level": "WARNING"},
    },
}

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": ["core.authentication.MiddlewareUserAuthentication"],
    "DEFAULT_PERMISSION_CLASSES": [],
    "EXCEPTION_HANDLER": "core.exceptions.custom_exception_handler",
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Syscall Gateway API",
    "DESCRIPTION": (
        "OpenAPI schema for the role-gated system call gateway: JWT auth, "
        "database-backed operation policies, sandboxed executors, and audit log."
    ),
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
    "SERVE_PUBLIC": True,
    "APPEND_COMPONENTS": {
        "securitySchemes": {
            "bearerAuth": {
                "type": "http",
                "scheme": "bearer",
                "bearerFormat": "JWT",
            }
        }
    },
    # Apply JWT bearer auth by default to operations unless overridden.
    "SECURITY": [{"bearerAuth": []}],
}
