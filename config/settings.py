"""
Django settings for the cash card service.

Values that differ between environments are read from environment variables.
The CASHCARDS_* settings are looked up at call time by the cashcards app, so
they can be overridden per test with ``override_settings``.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "insecure-dev-key-change-me")
DEBUG = os.environ.get("DJANGO_DEBUG", "false").lower() in {"1", "true", "yes"}
ALLOWED_HOSTS = [
    host.strip()
    for host in os.environ.get("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1").split(",")
    if host.strip()
]

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "rest_framework",
    "cashcards",
]

# Basic auth on every request: no sessions, cookies or CSRF.
MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
    "cashcards.middleware.RequestResponseLoggingMiddleware",
]

ROOT_URLCONF = "config.urls"
WSGI_APPLICATION = "config.wsgi.application"
APPEND_SLASH = False

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("DATABASE_PATH", str(BASE_DIR / "cashcards.sqlite3")),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.BCryptSHA256PasswordHasher",
    "django.contrib.auth.hashers.PBKDF2PasswordHasher",
]

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = False
USE_TZ = True

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "cashcards.authentication.DirectoryBasicAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "cashcards.permissions.HasCardOwnerRole",
    ],
    "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
    "DEFAULT_PARSER_CLASSES": ["rest_framework.parsers.JSONParser"],
    "TEST_REQUEST_DEFAULT_FORMAT": "json",
    "COERCE_DECIMAL_TO_STRING": False,
    "EXCEPTION_HANDLER": "cashcards.exceptions.card_exception_handler",
    "UNAUTHENTICATED_USER": None,
}

# Cash card service
CASHCARDS_REQUIRED_ROLE = os.environ.get("CASHCARDS_REQUIRED_ROLE", "CARD-OWNER")
CASHCARDS_USER_DIRECTORY = os.environ.get(
    "CASHCARDS_USER_DIRECTORY", "cashcards.directory.DjangoUserDirectory"
)
CASHCARDS_IN_MEMORY_USERS = []
CASHCARDS_DEFAULT_PAGE_SIZE = int(os.environ.get("CASHCARDS_DEFAULT_PAGE_SIZE", "20"))
CASHCARDS_MAX_PAGE_SIZE = int(os.environ.get("CASHCARDS_MAX_PAGE_SIZE", "2000"))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
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
        "django": {
            "handlers": ["console"],
            "level": "WARNING",
            "propagate": False,
        },
    },
}
