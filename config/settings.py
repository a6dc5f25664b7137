"""
Django settings for the surveyor tracking backend.

Deployment-specific values (secret key, debug, hosts, database file, log
level, online window) come from the environment or a ``.env`` file via
python-decouple.
"""

from pathlib import Path

from decouple import Csv, config

BASE_DIR: Path = Path(__file__).resolve().parent.parent

SECRET_KEY: str = str(config('SECRET_KEY', default='django-insecure-change-me-in-production'))

DEBUG: bool = config('DEBUG', default=True, cast=bool)

ALLOWED_HOSTS: list[str] = config('ALLOWED_HOSTS', default='*', cast=Csv())

INSTALLED_APPS: list[str] = [
    'daphne',
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'channels',
    'surveyor_tracking.apps.SurveyorTrackingConfig',
]

MIDDLEWARE: list[str] = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

# The API accepts paths with and without trailing slash, POSTs included
APPEND_SLASH: bool = False

ROOT_URLCONF: str = 'config.urls'

# Only the admin site renders templates
TEMPLATES: list[dict] = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

ASGI_APPLICATION: str = 'config.asgi.application'

DATABASES: dict = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / str(config('DATABASE_NAME', default='db.sqlite3')),
    }
}

LANGUAGE_CODE: str = 'en-us'

# Timestamps are stored and served in UTC
TIME_ZONE: str = 'UTC'
USE_I18N: bool = True
USE_TZ: bool = True

STATIC_URL: str = 'static/'

DEFAULT_AUTO_FIELD: str = 'django.db.models.BigAutoField'

# REST Framework settings
REST_FRAMEWORK: dict = {
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'DEFAULT_PARSER_CLASSES': [
        'rest_framework.parsers.JSONParser',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.AllowAny',
    ],
}

# Surveyor tracking
# A surveyor is online when its latest sample (or login) is this recent
SURVEYOR_ONLINE_TIMEOUT_SECONDS: int = config('SURVEYOR_ONLINE_TIMEOUT_SECONDS', default=720, cast=int)
# Seconds between keepalive comments on idle event streams
EVENT_STREAM_KEEPALIVE_SECONDS: float = config('EVENT_STREAM_KEEPALIVE_SECONDS', default=15.0, cast=float)

# Logging configuration
import logging
import time

# Add custom TRACE level (below DEBUG)
TRACE_LEVEL = 5
logging.addLevelName(TRACE_LEVEL, 'TRACE')

def trace(self, message, *args, **kwargs):
    if self.isEnabledFor(TRACE_LEVEL):
        self._log(TRACE_LEVEL, message, args, **kwargs)

logging.Logger.trace = trace

# Health checks are polled constantly; demote them to TRACE
class HealthCheckFilter(logging.Filter):
    def filter(self, record):
        if '/health/' in record.getMessage():
            record.levelno = TRACE_LEVEL
            record.levelname = 'TRACE'
        return True

class LocalTimeFormatter(logging.Formatter):
    converter = time.localtime

LOG_LEVEL: str = str(config('LOG_LEVEL', default='INFO'))

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'filters': {
        'health_check_filter': {
            '()': 'config.settings.HealthCheckFilter',
        },
    },
    'formatters': {
        'verbose': {
            '()': 'config.settings.LocalTimeFormatter',
            'format': '%(asctime)s.%(msecs)03d %(levelname)-7s %(module)s %(message)s',
            'datefmt': '%Y%m%d-%H:%M:%S',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
            'filters': ['health_check_filter'],
        },
    },
    'root': {
        'handlers': ['console'],
        'level': LOG_LEVEL,
    },
    'loggers': {
        'surveyor_tracking': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'django.server': {
            'handlers': ['console'],
            'level': TRACE_LEVEL,
            'propagate': False,
        },
    },
}

CSRF_TRUSTED_ORIGINS: list[str] = config('CSRF_TRUSTED_ORIGINS', default='', cast=Csv())

# Channels configuration
CHANNEL_LAYERS: dict = {
    'default': {
        'BACKEND': 'channels.layers.InMemoryChannelLayer',
    }
}
