"""
Test settings.

In-memory SQLite and placeholder Stripe credentials. Stripe is always mocked.
"""

from .base import *  # noqa: F403
from .base import settings

DEBUG = False
ALLOWED_HOSTS = ["testserver", "localhost"]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

settings.APP_URL = "https://app.example.com"
settings.STRIPE_SECRET_KEY = "sk_test_placeholder"
settings.STRIPE_WEBHOOK_SECRET = "whsec_test_placeholder"
settings.STRIPE_BASIC_PRICE_ID = "price_basic_test"
settings.STRIPE_PRO_PRICE_ID = "price_pro_test"
settings.LOG_JSON = False
