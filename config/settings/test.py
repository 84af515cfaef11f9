# config/settings/test.py
from .base import *  # noqa

ENVIRONMENT = "test"
DEBUG = False

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

RBAC_AUDIT_PERMISSION_CHECKS = True
