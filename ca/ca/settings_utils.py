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

"""Utility functions for loading settings."""

import json
import logging
import os
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import yaml

from django.core.exceptions import ImproperlyConfigured
from django.core.management.utils import get_random_secret_key

#: Prefix for environment variables holding settings.
ENVIRONMENT_PREFIX = "DJANGO_PKI_"

#: Settings that are parsed as JSON when loaded from the environment.
JSON_SETTINGS = ("PKI_AUTHORITIES", "PKI_DEFAULT_SUBJECT", "PKI_PASSWORDS")


def load_secret_key(secret_key: str | None, secret_key_file: str | None) -> str:
    """Load SECRET_KEY from file if not set elsewhere.

    A random key is used if none is configured, as no views use sessions or signed cookies.
    """
    if secret_key:
        return secret_key

    if secret_key_file:
        if not os.path.exists(secret_key_file):
            raise ImproperlyConfigured(f"{secret_key_file}: No such file or directory.")
        with open(secret_key_file, encoding="utf-8") as stream:
            return stream.read()
    return get_random_secret_key()


def get_settings_files(base_dir: Path, paths: str) -> Iterator[Path]:
    """Get relevant settings files."""
    for settings_path in [base_dir / p for p in paths.split(":") if p]:
        if not settings_path.exists():
            raise ImproperlyConfigured(f"{settings_path}: No such file or directory.")

        if settings_path.is_dir():
            # exclude files that don't end with '.yaml' and any directories
            yield from sorted(
                [
                    settings_path / _f.name
                    for _f in settings_path.iterdir()
                    if _f.suffix == ".yaml" and not _f.is_dir()
                ]
            )
        else:
            yield settings_path

    settings_yaml = base_dir / "ca" / "settings.yaml"
    if settings_yaml.exists():
        yield settings_yaml


def load_settings_from_files(base_dir: Path) -> Iterator[tuple[str, Any]]:
    """Load settings from YAML files."""
    # CONFIGURATION_DIRECTORY is set by the SystemD ConfigurationDirectory= directive.
    settings_paths = os.environ.get("DJANGO_PKI_SETTINGS", os.environ.get("CONFIGURATION_DIRECTORY", ""))

    settings_files = []

    for full_path in get_settings_files(base_dir, settings_paths):
        with open(full_path, encoding="utf-8") as stream:
            try:
                data = yaml.safe_load(stream)
            except yaml.YAMLError as ex:
                logging.exception(ex)
                raise ImproperlyConfigured(f"{full_path}: Invalid YAML.") from ex

        if data is None:
            pass  # silently ignore empty files
        elif not isinstance(data, dict):
            raise ImproperlyConfigured(f"{full_path}: File is not a key/value mapping.")
        else:
            settings_files.append(full_path)
            yield from data.items()

    # ALSO yield the SETTINGS_FILES setting with the loaded files.
    yield "SETTINGS_FILES", tuple(settings_files)


def load_settings_from_environment() -> Iterator[tuple[str, Any]]:
    """Load settings from the environment."""
    prefix_length = len(ENVIRONMENT_PREFIX)
    for key, value in {
        k[prefix_length:]: v for k, v in os.environ.items() if k.startswith(ENVIRONMENT_PREFIX)
    }.items():
        if key == "SETTINGS":  # points to yaml files loaded in get_settings_files
            continue

        if key == "ALLOWED_HOSTS":
            yield key, value.split()
        elif key == "DEBUG":
            yield key, parse_bool(value)
        elif key in JSON_SETTINGS:
            try:
                parsed = json.loads(value)
            except json.JSONDecodeError as ex:
                raise ImproperlyConfigured(f"{ENVIRONMENT_PREFIX}{key}: Invalid JSON.") from ex
            yield key, parsed
        else:
            yield key, value


def parse_bool(value: str) -> bool:
    """Parse a variable that is supposed to represent a boolean value."""
    return value.strip().lower() in ("true", "yes", "1")
