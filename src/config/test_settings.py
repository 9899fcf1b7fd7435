"""Settings for the test suite: sqlite, local-memory cache, eager Celery."""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite://:memory:")

from config.settings import *  # noqa: E402,F401,F403

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = False
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

SITE_URL = "https://lockers.test"
OTP_MODE = "code"
DEFAULT_COUNTRY_CODE = "44"
BANK_DETAILS = {"accountName": "Green Hub Ltd", "sortCode": "00-00-00", "accountNumber": "12345678"}

PAYMENT_WEBHOOK_SECRET = ""
NOWPAYMENTS_IPN_SECRET = ""
WEBHOOK_REQUIRE_SIGNATURES = False

REST_FRAMEWORK = {
    **REST_FRAMEWORK,  # noqa: F405
    "DEFAULT_THROTTLE_CLASSES": [],
}
