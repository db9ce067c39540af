"""
Django settings for the wallet dashboard project.

Everything environment-specific is read from environment variables so the
same module serves local development, tests and deployment.
"""

import os
from decimal import Decimal
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


def env_bool(name, default=''):
    value = os.getenv(name, default)
    return value.lower() in ('1', 'true', 'yes', 'on')


SECRET_KEY = os.getenv('DJANGO_SECRET_KEY', 'dev-only-insecure-key')
DEBUG = env_bool('DEBUG', '1')
ALLOWED_HOSTS = os.getenv('ALLOWED_HOSTS', '*').split(',')
CSRF_TRUSTED_ORIGINS = (
    os.getenv('CSRF_TRUSTED_ORIGINS').split(',')
    if os.getenv('CSRF_TRUSTED_ORIGINS') else []
)


INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'wallets',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
]

ROOT_URLCONF = 'dashboard.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'dashboard.wsgi.application'


# Every store call is bounded; an expired wait surfaces as a retryable error.
STORE_TIMEOUT_SECONDS = int(os.getenv('STORE_TIMEOUT_SECONDS', '20'))

DB_ENGINE = os.getenv('DB_ENGINE', 'sqlite')
if DB_ENGINE == 'postgres':
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': os.getenv('POSTGRES_DB', 'wallets'),
            'USER': os.getenv('POSTGRES_USER', 'wallets'),
            'PASSWORD': os.getenv('POSTGRES_PASSWORD', 'wallets'),
            'HOST': os.getenv('POSTGRES_HOST', 'localhost'),
            'PORT': os.getenv('POSTGRES_PORT', '5432'),
            'OPTIONS': {
                'connect_timeout': STORE_TIMEOUT_SECONDS,
                'options': f'-c statement_timeout={STORE_TIMEOUT_SECONDS * 1000}',
            },
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
            'OPTIONS': {
                'timeout': STORE_TIMEOUT_SECONDS,
            },
        }
    }


AUTH_PASSWORD_VALIDATORS = []

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'
MEDIA_URL = '/media/'
MEDIA_ROOT = Path(os.getenv('MEDIA_ROOT', BASE_DIR / 'media'))

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework.authentication.SessionAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAdminUser',
    ],
}


CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL', 'redis://localhost:6379/0')
CELERY_RESULT_BACKEND = os.getenv('CELERY_RESULT_BACKEND', CELERY_BROKER_URL)
CELERY_TASK_ALWAYS_EAGER = env_bool('CELERY_TASK_ALWAYS_EAGER')
CELERY_TIMEZONE = TIME_ZONE


LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'standard': {
            'format': '%(asctime)s %(levelname)s [%(name)s] %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'standard',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'wallets': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
    },
}


#######################
# Wallet engine

# Receipts: images or PDF only, 5 MB ceiling.
WALLET_RECEIPT_MAX_BYTES = 5 * 1024 * 1024
WALLET_RECEIPT_CONTENT_TYPES = (
    'image/png',
    'image/jpeg',
    'image/gif',
    'image/webp',
    'application/pdf',
)
WALLET_RECEIPT_UPLOAD_DIR = 'transfer-receipts'

# Short reference codes (transfer numbers, order/party reference codes).
WALLET_SHORT_CODE_LENGTH = 8
WALLET_SHORT_CODE_MAX_ATTEMPTS = 10
WALLET_BACKFILL_BATCH_SIZE = 500

# Balance at which `raise_payout_requests` opens a request automatically.
WALLET_PAYOUT_THRESHOLD = Decimal(os.getenv('WALLET_PAYOUT_THRESHOLD', '500.00'))
#######################
