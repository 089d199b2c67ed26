# learnhub/settings.py
import os
from pathlib import Path
import dj_database_url

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("SECRET_KEY", "django-insecure-placeholder")
DEBUG = os.environ.get("DEBUG", "False") == "True"

ALLOWED_HOSTS = os.environ.get("ALLOWED_HOSTS", "")
ALLOWED_HOSTS = ALLOWED_HOSTS.split(",") if ALLOWED_HOSTS else ["localhost", "127.0.0.1", "testserver"]

CSRF_TRUSTED_ORIGINS = os.environ.get("CSRF_TRUSTED_ORIGINS", "")
CSRF_TRUSTED_ORIGINS = CSRF_TRUSTED_ORIGINS.split(",") if CSRF_TRUSTED_ORIGINS else []

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "courses",
    "assessments",
    "certificates",
    # Storage backends (for S3-compatible object storage)
    "storages",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "learnhub.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "learnhub.wsgi.application"

# Database: prefer DATABASE_URL, else DATABASE_PUBLIC_URL, else sqlite3
_db_url = os.environ.get("DATABASE_URL") or os.environ.get("DATABASE_PUBLIC_URL")

if _db_url:
    db_cfg = dj_database_url.parse(_db_url, conn_max_age=600, ssl_require=False)
    host = (db_cfg.get("HOST") or "").lower()
    if db_cfg.get("ENGINE", "").endswith("postgresql"):
        if host in ("localhost", "127.0.0.1"):
            db_cfg.setdefault("OPTIONS", {})["sslmode"] = "disable"
        else:
            db_cfg.setdefault("OPTIONS", {})["sslmode"] = "require"
    DATABASES = {"default": db_cfg}
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "public" / "static"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

CACHES = {"default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"}}

REST_FRAMEWORK = {
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.IsAuthenticated"],
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
    ],
    "COERCE_DECIMAL_TO_STRING": False,
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,

    "formatters": {
        "verbose": {
            "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        }
    },

    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",
            "formatter": "verbose",
        }
    },
    "root": {
        "handlers": ["console"],
        "level": os.environ.get("DJANGO_LOG_LEVEL", "INFO"),
    },
    "loggers": {
        "assessments": {
            "handlers": ["console"],
            "level": os.environ.get("LEARNHUB_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
        "certificates": {
            "handlers": ["console"],
            "level": os.environ.get("LEARNHUB_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
        "courses": {
            "handlers": ["console"],
            "level": os.environ.get("LEARNHUB_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}

# Media storage: local filesystem by default.
# Set USE_S3_MEDIA=true and the AWS_* variables to keep uploads and certificate
# PDFs in S3-compatible object storage with signed download URLs.
USE_S3_MEDIA = os.environ.get("USE_S3_MEDIA", "false").lower() == "true"

STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"},
}

if USE_S3_MEDIA:
    _AWS_BUCKET = os.environ.get("AWS_STORAGE_BUCKET_NAME")
    if _AWS_BUCKET:
        AWS_STORAGE_BUCKET_NAME = _AWS_BUCKET
        AWS_S3_REGION_NAME = os.environ.get("AWS_S3_REGION_NAME", "us-east-1")
        AWS_S3_ENDPOINT_URL = os.environ.get("AWS_S3_ENDPOINT_URL") or None
        AWS_S3_SIGNATURE_VERSION = os.environ.get("AWS_S3_SIGNATURE_VERSION", "s3v4")
        AWS_S3_ADDRESSING_STYLE = os.environ.get("AWS_S3_ADDRESSING_STYLE", "virtual")
        AWS_DEFAULT_ACL = os.environ.get("AWS_DEFAULT_ACL") or None
        AWS_S3_FILE_OVERWRITE = os.environ.get("AWS_S3_FILE_OVERWRITE", "False").lower() == "true"
        AWS_QUERYSTRING_AUTH = os.environ.get("AWS_QUERYSTRING_AUTH", "True").lower() == "true"
        # Presigned URLs are capped at 7 days by SigV4.
        AWS_QUERYSTRING_EXPIRE = int(os.environ.get("AWS_QUERYSTRING_EXPIRE", 7 * 24 * 3600))
        STORAGES["default"] = {"BACKEND": "storages.backends.s3.S3Storage"}
    else:
        USE_S3_MEDIA = False  # fallback to local if no bucket

MEDIA_URL = os.environ.get("MEDIA_URL", "/media/")
MEDIA_ROOT = os.environ.get("MEDIA_ROOT", str(BASE_DIR / "media"))

# Submissions
SUBMISSION_MAX_UPLOAD_MB = int(os.environ.get("SUBMISSION_MAX_UPLOAD_MB", 10))
SUBMISSION_ALLOWED_EXTENSIONS = [
    ext.strip().lower()
    for ext in os.environ.get("SUBMISSION_ALLOWED_EXTENSIONS", "").split(",")
    if ext.strip()
]

# Certificates
_validity_days = os.environ.get("CERTIFICATE_VALIDITY_DAYS")
CERTIFICATE_VALIDITY_DAYS = int(_validity_days) if _validity_days else None
CERTIFICATE_FONT_PATH = os.environ.get(
    "CERTIFICATE_FONT_PATH", "/usr/share/fonts/truetype/dejavu/DejaVuSerif.ttf"
)
CERTIFICATE_BOLD_FONT_PATH = os.environ.get(
    "CERTIFICATE_BOLD_FONT_PATH", "/usr/share/fonts/truetype/dejavu/DejaVuSerif-Bold.ttf"
)
