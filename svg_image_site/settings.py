from pathlib import Path
import os
import sys

try:
    from dotenv import load_dotenv
except Exception:
    load_dotenv = None

try:
    import sentry_sdk
    from sentry_sdk.integrations.django import DjangoIntegration
except Exception:  # pragma: no cover - optional during local dev
    sentry_sdk = None  # type: ignore
    DjangoIntegration = None  # type: ignore

BASE_DIR = Path(__file__).resolve().parent.parent


def _ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default) in {"1", "true", "True"}


def _split_env_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


if load_dotenv:
    load_dotenv(os.fspath(BASE_DIR / ".env"))

_configured_storage = os.environ.get("DJANGO_STORAGE_DIR")
if _configured_storage:
    DATA_ROOT = Path(_configured_storage).expanduser().resolve()
else:
    DATA_ROOT = (BASE_DIR / "storage_bundle").resolve()

DATA_ROOT = _ensure_dir(DATA_ROOT)

DEFAULT_SECRET_KEY = "django-insecure-change-me"
SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", DEFAULT_SECRET_KEY)

DEBUG_DEFAULT = "1" if "test" in sys.argv or "pytest" in sys.modules else "0"
DEBUG = os.environ.get("DJANGO_DEBUG", DEBUG_DEFAULT) not in {"0", "false", "False"}

if not DEBUG and SECRET_KEY == DEFAULT_SECRET_KEY and not _env_flag("DJANGO_ALLOW_INSECURE_KEY", "0"):
    raise RuntimeError("DJANGO_SECRET_KEY must be set when DEBUG=0")

if sentry_sdk and os.environ.get("SENTRY_DSN"):
    sentry_sdk.init(
        dsn=os.environ["SENTRY_DSN"],
        integrations=[DjangoIntegration()] if DjangoIntegration else [],
        traces_sample_rate=float(os.environ.get("SENTRY_TRACES_SAMPLE_RATE", "0.15")),
        send_default_pii=_env_flag("SENTRY_SEND_PII", "0"),
    )

ALLOWED_HOSTS: list[str] = _split_env_list(os.environ.get("DJANGO_ALLOWED_HOSTS")) or ["127.0.0.1", "localhost"]

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.staticfiles",
    "svg_image",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "svg_image_site.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [BASE_DIR / "templates"],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
            ],
        },
    },
]

WSGI_APPLICATION = "svg_image_site.wsgi.application"
ASGI_APPLICATION = "svg_image_site.asgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": DATA_ROOT / "db.sqlite3",
    }
}

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
STATIC_ROOT = _ensure_dir(DATA_ROOT / "staticfiles")

MEDIA_URL = "/media/"
MEDIA_ROOT = _ensure_dir(DATA_ROOT / "media")

STORAGES = {
    "default": {
        "BACKEND": "django.core.files.storage.FileSystemStorage",
    },
    "private": {
        "BACKEND": "django.core.files.storage.FileSystemStorage",
        "OPTIONS": {
            "location": os.fspath(_ensure_dir(DATA_ROOT / "private")),
            "base_url": "/system/files/",
        },
    },
    "staticfiles": {
        "BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage",
    },
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

SECURE_CONTENT_TYPE_NOSNIFF = True

# Image field formatter. Keys follow the formatter's own setting names.
SVG_IMAGE_FORMATTER = {
    "svg_render_as_image": _env_flag("SVG_IMAGE_RENDER_AS_IMAGE", "1"),
    "alt_as_title": _env_flag("SVG_IMAGE_ALT_AS_TITLE", "0"),
    "svg_attributes": {
        "width": os.environ.get("SVG_IMAGE_WIDTH", ""),
        "height": os.environ.get("SVG_IMAGE_HEIGHT", ""),
    },
    "image_style": os.environ.get("SVG_IMAGE_STYLE", ""),
    "image_link": os.environ.get("SVG_IMAGE_LINK", "none"),
    "image_loading": os.environ.get("SVG_IMAGE_LOADING", "lazy"),
}
SVG_IMAGE_STORAGE_SCHEMES = {
    "public": "default",
    "private": "private",
}
SVG_IMAGE_MAX_BYTES = int(os.environ.get("SVG_IMAGE_MAX_BYTES", 5 * 1024 * 1024))
SVG_IMAGE_STYLES = {
    "thumbnail": {"width": 100, "height": 100},
    "medium": {"width": 220, "height": 220},
    "large": {"width": 480, "height": 480},
}
SVG_IMAGE_METRICS_PATH = os.environ.get(
    "SVG_IMAGE_METRICS_PATH",
    os.fspath(DATA_ROOT / "telemetry.ndjson"),
)
SVG_IMAGE_METRICS_MAX_BYTES = int(os.environ.get("SVG_IMAGE_METRICS_MAX_BYTES", str(5 * 1024 * 1024)) or 0)

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "plain",
        },
    },
    "loggers": {
        "svg_image": {
            "handlers": ["console"],
            "level": os.environ.get("SVG_IMAGE_LOG_LEVEL", "INFO"),
            "propagate": True,
        },
    },
}
