"""
Django settings for the settlement engine.

This is the single settings file for all environments. Configuration is driven
by environment variables using django-environ, following the 12-factor app
methodology.

Environment files:
    - .env.development: Development settings (DEBUG=True, sandbox provider)
    - .env.production: Production settings (DEBUG=False, Stripe provider)

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/topics/settings/

For the full list of settings and their values, see:
https://docs.djangoproject.com/en/5.2/ref/settings/
"""

import os
from pathlib import Path

import environ
from celery.schedules import crontab

# =============================================================================
# Path Configuration
# =============================================================================
# Build paths inside the project: BASE_DIR / 'subdir'
BASE_DIR = Path(__file__).resolve().parent.parent

# =============================================================================
# Environment Configuration
# =============================================================================
# Initialize django-environ
env = environ.Env(
    # Set default values and casting for common settings
    DEBUG=(bool, False),  # Default to False for safety
    ALLOWED_HOSTS=(list, []),
    LOG_LEVEL=(str, "INFO"),
)

# Note: In Docker, env vars are passed directly; .env files are for local dev
env_file = os.environ.get("ENV_FILE", BASE_DIR.parent / ".env.development")
if Path(env_file).exists():
    environ.Env.read_env(env_file)

# =============================================================================
# Core Settings
# =============================================================================
# SECURITY WARNING: keep the secret key used in production secret!
# Also salts provider idempotency keys
SECRET_KEY = env("SECRET_KEY", default="django-insecure-settlements-development-key")

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = env("DEBUG")

ALLOWED_HOSTS = env("ALLOWED_HOSTS")

# =============================================================================
# Application Definition
# =============================================================================
INSTALLED_APPS = [
    # Django core apps
    "django.contrib.contenttypes",
    # Local apps
    "core",
    "payouts",
    "settlements",
]

# =============================================================================
# Database Configuration
# =============================================================================
# https://docs.djangoproject.com/en/5.2/ref/settings/#databases
# Using psycopg3 (not psycopg2) in production
DATABASES = {
    "default": env.db(
        "DATABASE_URL",
        default=f"sqlite:///{BASE_DIR.parent / 'db.sqlite3'}",
    ),
}

if DATABASES["default"]["ENGINE"] == "django.db.backends.postgresql":
    # Use psycopg3's native connection options
    DATABASES["default"]["OPTIONS"] = {
        "connect_timeout": 10,
    }

# =============================================================================
# Cache Configuration
# =============================================================================
# https://docs.djangoproject.com/en/5.2/topics/cache/
# Also backs DistributedLock (get_redis_connection) and the exchange-rate cache
CACHES = {
    "default": {
        "BACKEND": "django_redis.cache.RedisCache",
        "LOCATION": env("REDIS_URL", default="redis://redis:6379/0"),
        "OPTIONS": {
            "CLIENT_CLASS": "django_redis.client.DefaultClient",
            # Gracefully handle Redis connection failures
            "IGNORE_EXCEPTIONS": True,
        },
    }
}

# =============================================================================
# Celery Configuration
# =============================================================================
CELERY_BROKER_URL = env("CELERY_BROKER_URL", default="redis://redis:6379/1")
CELERY_RESULT_BACKEND = env("CELERY_RESULT_BACKEND", default="redis://redis:6379/1")
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = "UTC"
CELERY_TASK_TRACK_STARTED = True
CELERY_TASK_TIME_LIMIT = 30 * 60  # 30 minutes
CELERY_TASK_ALWAYS_EAGER = env.bool("CELERY_TASK_ALWAYS_EAGER", default=False)

# Stale payout recovery always runs; the nightly payout run is disabled
# unless PAYOUT_SCHEDULE_ENABLED is set
CELERY_BEAT_SCHEDULE = {
    "recover-stale-payouts": {
        "task": "settlements.tasks.recover_stale_payouts",
        "schedule": crontab(minute="*/10"),
    },
}
if env.bool("PAYOUT_SCHEDULE_ENABLED", default=False):
    CELERY_BEAT_SCHEDULE["complete-processing-payments"] = {
        "task": "settlements.tasks.complete_processing_payments",
        "schedule": crontab(
            hour=env.int("PAYOUT_SCHEDULE_HOUR", default=2),
            minute=0,
        ),
    }

# =============================================================================
# Stripe Configuration
# =============================================================================
# Get your API keys from: https://dashboard.stripe.com/apikeys
# Use test keys (sk_test_...) for development, live keys (sk_live_...) for production
STRIPE_SECRET_KEY = env("STRIPE_SECRET_KEY", default="")

# API timeout in seconds (default: 10)
# Keep low for responsive error handling; increase if experiencing timeouts
STRIPE_API_TIMEOUT_SECONDS = env.int("STRIPE_API_TIMEOUT_SECONDS", default=10)

# =============================================================================
# Payout Provider Configuration
# =============================================================================
# "sandbox" simulates the provider (micro-deposits of 32 and 45 cents);
# "stripe" uses Stripe Connect and bank accounts
PAYOUT_PROVIDER = env("PAYOUT_PROVIDER", default="sandbox")

# Blocking provider calls give up after this many seconds
PAYOUT_PROVIDER_TIMEOUT_SECONDS = env.int(
    "PAYOUT_PROVIDER_TIMEOUT_SECONDS",
    default=STRIPE_API_TIMEOUT_SECONDS,
)

# Where the provider sends creators after e-transfer onboarding
PAYOUT_ONBOARDING_RETURN_URL = env(
    "PAYOUT_ONBOARDING_RETURN_URL",
    default="http://localhost:3000/payouts/onboarding/complete",
)
PAYOUT_ONBOARDING_REFRESH_URL = env(
    "PAYOUT_ONBOARDING_REFRESH_URL",
    default="http://localhost:3000/payouts/onboarding/refresh",
)

# =============================================================================
# Exchange Rate Configuration
# =============================================================================
EXCHANGE_RATES_URL = env("EXCHANGE_RATES_URL", default="https://bitpay.com/api/rates")
EXCHANGE_RATES_FALLBACK_URL = env(
    "EXCHANGE_RATES_FALLBACK_URL",
    default=(
        "https://api.coingecko.com/api/v3/simple/price"
        "?ids=bitcoin,ethereum,matic-network,binancecoin,tron&vs_currencies=usd"
    ),
)
EXCHANGE_RATES_TIMEOUT_SECONDS = env.float("EXCHANGE_RATES_TIMEOUT_SECONDS", default=5.0)

# Rates are cached in the default cache for this long (~5 minutes)
EXCHANGE_RATES_CACHE_SECONDS = env.int("EXCHANGE_RATES_CACHE_SECONDS", default=300)

# Serve fixed rates instead of calling the rates endpoint
EXCHANGE_RATES_SANDBOX = env.bool(
    "EXCHANGE_RATES_SANDBOX",
    default=PAYOUT_PROVIDER == "sandbox",
)

# =============================================================================
# Platform Fee Configuration
# =============================================================================
DEFAULT_PAYMENT_CURRENCY = env("DEFAULT_PAYMENT_CURRENCY", default="CAD")

# Initial values of the platform fee config row; admins change them at runtime
DEFAULT_PLATFORM_FEE_PERCENTAGE = env("DEFAULT_PLATFORM_FEE_PERCENTAGE", default="4")
DEFAULT_PROCESSING_FEE_PERCENTAGE = env("DEFAULT_PROCESSING_FEE_PERCENTAGE", default="3")
DEFAULT_MINIMUM_PAYOUT_THRESHOLD = env("DEFAULT_MINIMUM_PAYOUT_THRESHOLD", default="10.00")
DEFAULT_RESERVE_PERCENTAGE = env("DEFAULT_RESERVE_PERCENTAGE", default="10")

# =============================================================================
# Internationalization
# =============================================================================
# https://docs.djangoproject.com/en/5.2/topics/i18n/
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# =============================================================================
# Default Primary Key Field Type
# =============================================================================
# https://docs.djangoproject.com/en/5.2/ref/settings/#default-auto-field
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# =============================================================================
# Logging Configuration
# =============================================================================
LOG_LEVEL = env("LOG_LEVEL")

# Log file name determined by service (celery-worker, celery-beat)
# Set via LOG_FILE_NAME environment variable in docker-compose.yaml
LOG_FILE_NAME = env("LOG_FILE_NAME", default="django.log")
LOG_DIR = BASE_DIR / "logs"

# Ensure log directory exists (handles local development without Docker)
LOG_DIR.mkdir(parents=True, exist_ok=True)

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {process:d} {thread:d} {message}",
            "style": "{",
        },
        "simple": {
            "format": "{levelname} {message}",
            "style": "{",
        },
        "file": {
            # Detailed format for persistent logs with timestamp, level, logger name, and location
            "format": "[{asctime}] {levelname} {name} {module}:{lineno} - {message}",
            "style": "{",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
        "file": {
            # Rotating file handler prevents unbounded disk usage
            # Max 10MB per file, keeps 5 backups (60MB total per log type)
            "level": "DEBUG",
            "class": "logging.handlers.RotatingFileHandler",
            "filename": LOG_DIR / LOG_FILE_NAME,
            "maxBytes": 10 * 1024 * 1024,  # 10MB
            "backupCount": 5,
            "formatter": "file",
            "encoding": "utf-8",
        },
    },
    "root": {
        "handlers": ["console", "file"],
        "level": LOG_LEVEL,
    },
    "loggers": {
        "django": {
            "handlers": ["console", "file"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
        "celery": {
            "handlers": ["console", "file"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
        "settlements": {
            "handlers": ["console", "file"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
        "payouts": {
            "handlers": ["console", "file"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
    },
}
