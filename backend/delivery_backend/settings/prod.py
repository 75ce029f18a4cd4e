"""
Production overrides. Postgres and the Redis channel layer are required.

Expects SECRET_KEY, POSTGRES_* and REDIS_URL in the environment (or .env).
"""

from .settings import *  # noqa: F401,F403

import os

from django.core.exceptions import ImproperlyConfigured

DEBUG = False

if SECRET_KEY.startswith("django-insecure"):
    raise ImproperlyConfigured("Set SECRET_KEY for production")

if DATABASES["default"]["ENGINE"] != "django.db.backends.postgresql":
    raise ImproperlyConfigured("Set POSTGRES_DB; conditional updates are not run on SQLite in production")

DATABASES["default"]["CONN_MAX_AGE"] = int(os.getenv("POSTGRES_CONN_MAX_AGE", "60"))

ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(',')
CORS_ALLOW_ALL_ORIGINS = False
CORS_ALLOWED_ORIGINS = os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:3000").split(',')

CHANNEL_LAYERS = {
    "default": {
        "BACKEND": "channels_redis.core.RedisChannelLayer",
        "CONFIG": {
            "hosts": [REDIS_URL],
        },
    }
}

# Session auth is only for the admin site
REST_FRAMEWORK = {
    **REST_FRAMEWORK,
    'DEFAULT_RENDERER_CLASSES': ('rest_framework.renderers.JSONRenderer',),
}

SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')

# Redeliver notification tasks if a worker dies mid-fanout
CELERY_TASK_REJECT_ON_WORKER_LOST = True
CELERY_WORKER_PREFETCH_MULTIPLIER = 1
