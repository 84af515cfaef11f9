# config/settings/local.py
from .base import *  # noqa

ENVIRONMENT = "local"
DEBUG = os.getenv("DJANGO_DEBUG", "1") == "1"  # noqa: F405
