"""
Meta tracking settings - dev profile
"""

from pathlib import Path
import environ, os

LOG_LEVEL = os.getenv("DJANGO_LOG_LEVEL", "INFO")

BASE_DIR = Path(__file__).resolve().parent.parent
env = environ.Env(
    DEBUG=(bool, False),
)
# loads .env at the project root when running locally
env_file = BASE_DIR / ".env"
if env_file.exists():
    environ.Env.read_env(env_file)

RELEASE_ENV = os.getenv("META_TRACKING_RELEASE_ENV", "local")

if RELEASE_ENV == "local":
    # Non-secret dev defaults; deployed environments pass explicit values.
    os.environ.setdefault("DEBUG", "1")
    os.environ.setdefault("DJANGO_SECRET_KEY", "dev-insecure")
    os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")

# ────────── Core ──────────
DEBUG = env.bool("DEBUG", default=False)
SECRET_KEY = env("DJANGO_SECRET_KEY")
ALLOWED_HOSTS = env.list("DJANGO_ALLOWED_HOSTS", default=["*"])

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.staticfiles",
    "meta_tracking",
    "config.apps.TracingInitialization",
]

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [BASE_DIR / "templates"],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.template.context_processors.debug",
            ],
            # Manually register project-local template tag libraries
            "libraries": {
                "tracking_tags": "templatetags.tracking_tags",
            },
        },
    },
]

DATABASES = {
    "default": env.db("DATABASE_URL", default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
}

STATIC_URL = "static/"
USE_I18N = USE_TZ = True
TIME_ZONE = "UTC"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ────────── Celery ──────────
REDIS_URL = env("REDIS_URL", default="redis://localhost:6379/0")
CELERY_BROKER_URL = env("CELERY_BROKER_URL", default=REDIS_URL)
CELERY_RESULT_BACKEND = env("CELERY_RESULT_BACKEND", default=REDIS_URL)
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TIMEZONE = "UTC"
CELERY_ENABLE_UTC = True

# ────────── Logging ──────────
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,

    # ---------------- Handlers ----------------
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
            "stream": "ext://sys.stdout",
        },
    },

    # --------------- Formatters ---------------
    "formatters": {
        "verbose": {
            "format": "{asctime} [{levelname}] {name}: {message}",
            "style": "{",
        },
    },

    # --------------- Root logger --------------
    "root": {
        "handlers": ["console"],
        "level": LOG_LEVEL,
    },

    # --------------- Other loggers -----------
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,         # prevent double-logging
        },
        # Set META_TRACKING_LOG_LEVEL=DEBUG to see every queued pixel / data-layer event
        "meta_tracking": {
            "handlers": ["console"],
            "level": os.getenv("META_TRACKING_LOG_LEVEL", LOG_LEVEL),
            "propagate": False,
        },
    },
}

# ────────── OpenTelemetry ──────────
META_TRACKING_ENABLE_TRACING = env.bool("META_TRACKING_ENABLE_TRACING", default=False)
OTEL_EXPORTER_OTLP_ENDPOINT = env("OTEL_EXPORTER_OTLP_ENDPOINT", default="http://localhost:4318/v1/traces")

# ────────── Meta Pixel / Conversions API ──────────
# Pixel IDs (empty disables)
META_PIXEL_ID = env("META_PIXEL_ID", default="")
FACEBOOK_PIXEL_ID = env(
    "FACEBOOK_PIXEL_ID",
    default=META_PIXEL_ID,
)
FACEBOOK_ACCESS_TOKEN = env("FACEBOOK_ACCESS_TOKEN", default="")
FACEBOOK_APP_SECRET = env("FACEBOOK_APP_SECRET", default="")
FACEBOOK_TEST_EVENT_CODE = env("FACEBOOK_TEST_EVENT_CODE", default="")
FACEBOOK_CAPI_TEST_MODE = env.bool("FACEBOOK_CAPI_TEST_MODE", default=False)

META_GRAPH_API_VERSION = env("META_GRAPH_API_VERSION", default="v20.0")
META_PARTNER_AGENT = env("META_PARTNER_AGENT", default="")
META_TRACKING_ENABLED = env.bool("META_TRACKING_ENABLED", default=bool(FACEBOOK_ACCESS_TOKEN))
META_TRACKING_DEBUG = env.bool("META_TRACKING_DEBUG", default=False)
# "auto" and "requests" post with requests; "socket" speaks HTTP/1.1 over a raw TLS socket
META_TRACKING_TRANSPORT = env("META_TRACKING_TRANSPORT", default="auto")
META_TRACKING_RETRY_ATTEMPTS = env.int("META_TRACKING_RETRY_ATTEMPTS", default=3)
META_TRACKING_RETRY_BASE_DELAY = env.float("META_TRACKING_RETRY_BASE_DELAY", default=1.0)
META_TRACKING_TIMEOUT = env.float("META_TRACKING_TIMEOUT", default=6)
FBP_COOKIE_NAME = env("FBP_COOKIE_NAME", default="_fbp")

# ────────── Google Tag Manager ──────────
GTM_CONTAINER_ID = env("GTM_CONTAINER_ID", default="")
GTM_DATA_LAYER_NAME = env("GTM_DATA_LAYER_NAME", default="dataLayer")
