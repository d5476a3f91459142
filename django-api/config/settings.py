"""Django settings for the studio ledger API.

Values come from the environment; the defaults suit local development
and the test suite (SQLite, in-memory cache, console email).
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: bool) -> bool:
    return os.environ.get(name, str(default)).lower() in {"1", "true", "yes", "on"}


SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "dev-only-insecure-key")
DEBUG = _env_bool("DJANGO_DEBUG", True)
ALLOWED_HOSTS = [h for h in os.environ.get("DJANGO_ALLOWED_HOSTS", "*").split(",") if h]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "ledger.apps.LedgerAppConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
]

ROOT_URLCONF = "config.urls"
WSGI_APPLICATION = "config.wsgi.application"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

# Database: SQLite unless POSTGRES_DB is set. Postgres sessions get
# statement and lock timeouts so a stuck row lock surfaces as a
# retryable error instead of hanging the request.
if os.environ.get("POSTGRES_DB"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.environ["POSTGRES_DB"],
            "USER": os.environ.get("POSTGRES_USER", "postgres"),
            "PASSWORD": os.environ.get("POSTGRES_PASSWORD", ""),
            "HOST": os.environ.get("POSTGRES_HOST", "localhost"),
            "PORT": os.environ.get("POSTGRES_PORT", "5432"),
            "OPTIONS": {
                "options": "-c statement_timeout={} -c lock_timeout={}".format(
                    os.environ.get("POSTGRES_STATEMENT_TIMEOUT_MS", "5000"),
                    os.environ.get("POSTGRES_LOCK_TIMEOUT_MS", "3000"),
                ),
            },
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": os.environ.get("SQLITE_PATH", str(BASE_DIR / "db.sqlite3")),
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "ledger",
    }
}

REST_FRAMEWORK = {
    # Basic first so unauthenticated requests get a 401 with a challenge.
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.BasicAuthentication",
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.IsAuthenticated"],
    "EXCEPTION_HANDLER": "ledger.handlers.errors.exception_handler",
}

EMAIL_BACKEND = os.environ.get(
    "EMAIL_BACKEND", "django.core.mail.backends.console.EmailBackend"
)
EMAIL_HOST = os.environ.get("EMAIL_HOST", "localhost")
EMAIL_PORT = int(os.environ.get("EMAIL_PORT", "25"))
EMAIL_HOST_USER = os.environ.get("EMAIL_HOST_USER", "")
EMAIL_HOST_PASSWORD = os.environ.get("EMAIL_HOST_PASSWORD", "")
EMAIL_USE_TLS = _env_bool("EMAIL_USE_TLS", False)

LEDGER = {
    "DEFAULT_CUTOFF_MINUTES": int(os.environ.get("LEDGER_DEFAULT_CUTOFF_MINUTES", "180")),
    # 0 disables caching of the schedule; seat counts change on every booking.
    "CLASS_LIST_CACHE_SECONDS": int(os.environ.get("LEDGER_CLASS_LIST_CACHE_SECONDS", "0")),
    "PACKAGE_LIST_CACHE_SECONDS": int(os.environ.get("LEDGER_PACKAGE_LIST_CACHE_SECONDS", "30")),
    "RETRY_ATTEMPTS": int(os.environ.get("LEDGER_RETRY_ATTEMPTS", "3")),
    "RETRY_BACKOFF_SECONDS": float(os.environ.get("LEDGER_RETRY_BACKOFF_SECONDS", "0.05")),
    "RETRY_BACKOFF_MAX_SECONDS": float(os.environ.get("LEDGER_RETRY_BACKOFF_MAX_SECONDS", "1")),
    "FROM_EMAIL": os.environ.get("LEDGER_FROM_EMAIL", "studio@example.com"),
    "STUDIO_NAME": os.environ.get("LEDGER_STUDIO_NAME", "The Studio"),
    "APP_URL": os.environ.get("LEDGER_APP_URL", "http://localhost:3000"),
    "WHATSAPP_NOTICES": _env_bool("LEDGER_WHATSAPP_NOTICES", False),
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "standard"},
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "ledger": {"level": os.environ.get("LEDGER_LOG_LEVEL", "INFO")},
    },
}

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
