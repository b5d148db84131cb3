from pathlib import Path
import os
import sys

import environ
from django.core.exceptions import ImproperlyConfigured

BASE_DIR = Path(__file__).resolve().parent.parent

env = environ.Env(
    DEBUG=(bool, False),
)

# Optional local env file support (docker-compose already sets env vars).
environ.Env.read_env(os.path.join(BASE_DIR, ".env"))

DEBUG = env.bool("DEBUG", default=False)

# Management commands (migrate, check, ...) and test runs do not serve traffic,
# so they do not need production secrets.
_RELAXED_COMMANDS = {"check", "makemigrations", "migrate", "showmigrations", "test"}
RUNTIME_REQUIREMENTS_RELAXED = (
    "pytest" in sys.modules
    or (len(sys.argv) > 1 and sys.argv[1] in _RELAXED_COMMANDS)
)

SECRET_KEY = env(
    "SECRET_KEY",
    default="django-insecure-dev-only-change-me",
)
if not DEBUG and not RUNTIME_REQUIREMENTS_RELAXED and SECRET_KEY.startswith("django-insecure-dev-only"):
    raise ImproperlyConfigured("SECRET_KEY must be set in production.")

_dev_allowed_hosts = ["localhost", "127.0.0.1", "[::1]", "testserver"]
ALLOWED_HOSTS = env.list(
    "ALLOWED_HOSTS",
    default=_dev_allowed_hosts if DEBUG or RUNTIME_REQUIREMENTS_RELAXED else [],
)
if not DEBUG and not RUNTIME_REQUIREMENTS_RELAXED and not ALLOWED_HOSTS:
    raise ImproperlyConfigured("ALLOWED_HOSTS must be set in production.")

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'elections',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
    'elections.middleware.PrincipalMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'config.urls'

TEMPLATES = []

WSGI_APPLICATION = 'config.wsgi.application'

# Database
# https://docs.djangoproject.com/en/5.1/ref/settings/#databases
DATABASES = {
    'default': {
        **env.db(
            'DATABASE_URL',
            default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
        ),
    }
}

# Every storage call is bounded. SQLite waits at most this long for a write
# lock; PostgreSQL aborts statements that run longer.
DATABASE_TIMEOUT_SECONDS = env.int("DATABASE_TIMEOUT_SECONDS", default=5)

_db = DATABASES['default']
if _db['ENGINE'] == 'django.db.backends.sqlite3':
    # IMMEDIATE transactions take the write lock up front, so concurrent
    # ballots for the same voter queue behind each other instead of failing
    # with "database is locked" on upgrade.
    _db.setdefault('OPTIONS', {}).update(
        {
            'timeout': DATABASE_TIMEOUT_SECONDS,
            'transaction_mode': 'IMMEDIATE',
        }
    )
    # File-backed test database so threaded tests share one database.
    _db.setdefault('TEST', {})['NAME'] = str(BASE_DIR / 'test_db.sqlite3')
elif _db['ENGINE'] in {'django.db.backends.postgresql', 'django.db.backends.postgresql_psycopg2'}:
    _db.setdefault('OPTIONS', {})['options'] = f"-c statement_timeout={DATABASE_TIMEOUT_SECONDS * 1000}"

# Internationalization
# https://docs.djangoproject.com/en/5.1/topics/i18n/
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

# Security
# Keep these production-oriented but configurable; many deployments sit behind
# a TLS-terminating proxy/load balancer.
if not DEBUG:
    # If you're behind a reverse proxy that sets X-Forwarded-Proto.
    if env.bool("SECURE_PROXY_SSL", default=True):
        SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")

    SECURE_SSL_REDIRECT = env.bool("SECURE_SSL_REDIRECT", default=False)
    SECURE_CONTENT_TYPE_NOSNIFF = True
    SECURE_REFERRER_POLICY = env("SECURE_REFERRER_POLICY", default="same-origin")

    # HSTS is opt-in by default because it can brick HTTP-only deployments.
    SECURE_HSTS_SECONDS = env.int("SECURE_HSTS_SECONDS", default=0)
    SECURE_HSTS_INCLUDE_SUBDOMAINS = env.bool("SECURE_HSTS_INCLUDE_SUBDOMAINS", default=False)
    SECURE_HSTS_PRELOAD = env.bool("SECURE_HSTS_PRELOAD", default=False)

# Default primary key field type
# https://docs.djangoproject.com/en/5.1/ref/settings/#default-auto-field
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Principal provider
# Resolves the bearer credential of each request to the calling principal.
# The default verifies credentials signed with SECRET_KEY by the auth service.
ELECTIONS_PRINCIPAL_PROVIDER = env(
    "ELECTIONS_PRINCIPAL_PROVIDER",
    default="elections.principals.SignedTokenPrincipalProvider",
)
ELECTIONS_PRINCIPAL_TOKEN_MAX_AGE = env.int("ELECTIONS_PRINCIPAL_TOKEN_MAX_AGE", default=60 * 60 * 24)

# Notification sink
# Receives lifecycle, vote and result events after they are committed.
ELECTIONS_EVENT_PUBLISHER = env(
    "ELECTIONS_EVENT_PUBLISHER",
    default="elections.events.LoggingEventPublisher",
)
ELECTIONS_EVENT_WEBHOOK_URL = env("ELECTIONS_EVENT_WEBHOOK_URL", default="")
ELECTIONS_EVENT_WEBHOOK_TIMEOUT = env.float("ELECTIONS_EVENT_WEBHOOK_TIMEOUT", default=2.0)

# Logging
# Ensure app logs are visible in container stdout.
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'filters': {
        'skip_healthz': {
            '()': 'config.logging_filters.SkipHealthzFilter',
        },
    },
    'formatters': {
        'console': {
            'format': '[{asctime}] {levelname} {name}: {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'console',
            'filters': ['skip_healthz'],
        },
    },
    'loggers': {
        # Our app
        'elections': {
            'handlers': ['console'],
            'level': 'DEBUG' if DEBUG else 'INFO',
            'propagate': False,
        },
        # Django request errors still visible
        'django.request': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': False,
        },
        # Access logs from `runserver`.
        'django.server': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
    },
}
