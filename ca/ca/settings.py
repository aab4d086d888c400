# This file is part of django-pki.
#
# django-pki is free software: you can redistribute it and/or modify it under the terms of the GNU General
# Public License as published by the Free Software Foundation, either version 3 of the License, or (at your
# option) any later version.
#
# django-pki is distributed in the hope that it will be useful, but WITHOUT ANY WARRANTY; without even the
# implied warranty of MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the GNU General Public License
# for more details.
#
# You should have received a copy of the GNU General Public License along with django-pki. If not, see
# <http://www.gnu.org/licenses/>.

"""Default settings for the django-pki Django project."""

import os
from pathlib import Path
from typing import Any

from ca.settings_utils import load_secret_key, load_settings_from_environment, load_settings_from_files

# Build paths inside the project like this: os.path.join(BASE_DIR, ...)
BASE_DIR = Path(__file__).resolve().parent.parent  # ca/

DEBUG = False

# All state is kept in the PKI directory, there is no database.
DATABASES: dict[str, Any] = {}

# Hosts/domain names that are valid for this site; required if DEBUG is False
# See https://docs.djangoproject.com/en/dev/ref/settings/#allowed-hosts
ALLOWED_HOSTS: list[str] = ["*"]

TIME_ZONE = "UTC"
LANGUAGE_CODE = "en-us"
USE_I18N = False
USE_TZ = True

# Make this unique, and don't share it with anybody.
SECRET_KEY = os.environ.get("DJANGO_PKI_SECRET_KEY", "")
SECRET_KEY_FILE = ""

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "ca.urls"

# Python dotted path to the WSGI application used by Django's runserver.
WSGI_APPLICATION = "ca.wsgi.application"

INSTALLED_APPS = [
    "django_pki",
]
PKI_CUSTOM_APPS: list[str] = []

# Directory holding the root and intermediate authorities
PKI_DIR = BASE_DIR / "pki"

LOGGING = None
LOG_FORMAT = "[%(levelname)-8s %(asctime).19s] %(message)s"
LOG_LEVEL = "WARNING"
LIBRARY_LOG_LEVEL = "WARNING"

# OCSP and CRL URLs are served via unencrypted HTTP. HSTS headers and SSL redirects should be handled by the
# HTTP server in front of the application.
SILENCED_SYSTEM_CHECKS = [
    "security.W004",  # no SECURE_HSTS_SECONDS setting
    "security.W008",  # no SECURE_SSL_REDIRECT setting
]

# Load settings from files
for _setting, _value in load_settings_from_files(BASE_DIR):
    globals()[_setting] = _value

# Load settings from environment variables
for _setting, _value in load_settings_from_environment():
    globals()[_setting] = _value

# Load SECRET_KEY from a file if not already defined.
# NOTE: This must be called AFTER load_settings_from_environment(), as this might set SECRET_KEY_FILE in the
#       first place.
SECRET_KEY = load_secret_key(SECRET_KEY, SECRET_KEY_FILE)

INSTALLED_APPS = INSTALLED_APPS + PKI_CUSTOM_APPS

if LOGGING is None:
    LOGGING = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "main": {
                "format": LOG_FORMAT,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "main",
            },
        },
        "loggers": {
            "django_pki": {
                "handlers": ["console"],
                "level": LOG_LEVEL,
                "propagate": False,
            },
            "django.request": {
                "handlers": ["console"],
                "level": "ERROR",
                "propagate": False,
            },
        },
        "root": {
            "handlers": ["console"],
            "level": LIBRARY_LOG_LEVEL,
        },
    }
