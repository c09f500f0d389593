"""
Settings used by the test suite.
"""

from .settings import *  # noqa: F401,F403

DEBUG = False

SECRET_KEY = 'test-secret-key-not-for-production'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'

STORAGES = {
    'default': {
        'BACKEND': 'django.core.files.storage.FileSystemStorage',
    },
    'staticfiles': {
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}

SECURE_SSL_REDIRECT = False

STRIPE_SECRET_KEY = 'sk_test_shophub'
STRIPE_WEBHOOK_SECRET = 'whsec_shophub_test'

LOG_LEVEL = 'WARNING'
LOGGING['loggers'].update({  # noqa: F405
    app: {'handlers': ['console'], 'level': 'CRITICAL', 'propagate': False}
    for app in ('accounts', 'products', 'location', 'order', 'payments', 'api', 'ShopHub')
})
