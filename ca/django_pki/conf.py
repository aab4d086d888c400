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

"""Application configuration for django-pki."""

from collections.abc import Iterable
from datetime import timedelta
from pathlib import Path
from typing import Annotated, Any, Callable, Literal, Optional

from annotated_types import Ge
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator, model_validator

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec

from django.conf import settings as _settings
from django.core.exceptions import ImproperlyConfigured
from django.core.signals import setting_changed

from django_pki import constants
from django_pki.constants import AuthorityKind


def timedelta_as_number_parser(unit: Literal["seconds", "hours", "days"] = "seconds") -> Callable[[Any], Any]:
    """Validator for timedeltas that also accepts plain numbers in the given unit."""

    def validator(value: Any) -> Any:
        if isinstance(value, (float, int)):
            return timedelta(**{unit: value})  # type: ignore[misc]  # mypy complains that unit is not a str
        return value

    return validator


DayValidator = BeforeValidator(timedelta_as_number_parser("days"))
SecondsValidator = BeforeValidator(timedelta_as_number_parser("seconds"))
PositiveTimedelta = Annotated[timedelta, Ge(timedelta(days=1)), DayValidator]


class AuthoritySettingsModel(BaseModel):
    """Configuration for a single authority in the ``PKI_AUTHORITIES`` setting."""

    model_config = ConfigDict(frozen=True)

    common_name: str
    crl_url: Optional[str] = None
    ocsp_url: Optional[str] = None


_DEFAULT_AUTHORITIES: dict[AuthorityKind, AuthoritySettingsModel] = {
    AuthorityKind.root: AuthoritySettingsModel(common_name="Root CA"),
    AuthorityKind.intermediate: AuthoritySettingsModel(common_name="Intermediate CA"),
}


class SettingsModel(BaseModel):
    """Pydantic model defining available settings."""

    model_config = ConfigDict(from_attributes=True, frozen=True, arbitrary_types_allowed=True)

    PKI_AUTHORITIES: dict[AuthorityKind, AuthoritySettingsModel] = Field(
        default_factory=lambda: dict(_DEFAULT_AUTHORITIES)
    )
    PKI_CRL_VALIDITY: PositiveTimedelta = timedelta(days=30)
    PKI_CRYPTO_PROVIDER: str = "django_pki.crypto.CryptographyProvider"
    PKI_DEFAULT_SUBJECT: dict[str, str] = Field(default_factory=dict)
    PKI_DEFAULT_VALIDITY: PositiveTimedelta = timedelta(days=375)
    PKI_DIR: Path = Path("pki")
    PKI_ELLIPTIC_CURVE: str = "secp256r1"
    PKI_INTERMEDIATE_VALIDITY: PositiveTimedelta = timedelta(days=3650)
    PKI_KEY_SIZE: Annotated[int, Ge(1024)] = 4096
    PKI_KEY_TYPE: Literal["RSA", "EC"] = "RSA"
    PKI_MIN_PASSWORD_LENGTH: Annotated[int, Ge(1)] = 4
    PKI_OCSP_RESPONDER_VALIDITY: PositiveTimedelta = timedelta(days=375)
    PKI_OCSP_RESPONSE_VALIDITY: Annotated[timedelta, Ge(timedelta(seconds=60)), SecondsValidator] = timedelta(
        seconds=600
    )
    PKI_PASSWORDS: dict[AuthorityKind, str] = Field(default_factory=dict)
    PKI_ROOT_VALIDITY: PositiveTimedelta = timedelta(days=7300)
    PKI_SERIAL_START: Annotated[int, Ge(1)] = 0x1000
    PKI_SIGNATURE_HASH_ALGORITHM: str = "SHA-256"

    @field_validator("PKI_AUTHORITIES", mode="before")
    @classmethod
    def parse_authorities(cls, value: Any) -> Any:
        """Update the default authority configuration with the value from settings."""
        if isinstance(value, dict):
            authorities: dict[Any, Any] = {
                kind.value: model.model_dump() for kind, model in _DEFAULT_AUTHORITIES.items()
            }
            for name, config in value.items():
                if isinstance(name, AuthorityKind):
                    name = name.value
                if isinstance(config, AuthoritySettingsModel):
                    config = config.model_dump()
                authorities.setdefault(name, {}).update(config)
            return authorities
        return value

    @field_validator("PKI_DEFAULT_SUBJECT")
    @classmethod
    def validate_default_subject(cls, value: dict[str, str]) -> dict[str, str]:
        """Validate that only known subject fields are used."""
        for key in value:
            if key not in constants.NAME_OID_TYPES:
                raise ValueError(f"{key}: Unknown subject field.")
            if key == "CN":
                raise ValueError("CN: The common name cannot be set as a default.")
        return value

    @field_validator("PKI_ELLIPTIC_CURVE")
    @classmethod
    def validate_elliptic_curve(cls, value: str) -> str:
        """Validate that the elliptic curve is supported."""
        if value not in constants.ELLIPTIC_CURVE_TYPES:
            raise ValueError(f"{value}: Unknown elliptic curve.")
        return value

    @field_validator("PKI_SIGNATURE_HASH_ALGORITHM")
    @classmethod
    def validate_signature_hash_algorithm(cls, value: str) -> str:
        """Validate that the hash algorithm is supported."""
        if value not in constants.HASH_ALGORITHM_TYPES:
            raise ValueError(f"{value}: Unknown hash algorithm.")
        return value

    @model_validator(mode="after")
    def check_key_size(self) -> "SettingsModel":
        """Validate that the RSA key size is a power of two."""
        if self.PKI_KEY_TYPE == "RSA" and self.PKI_KEY_SIZE & (self.PKI_KEY_SIZE - 1) != 0:
            raise ValueError(f"{self.PKI_KEY_SIZE}: Key size must be a power of two.")
        return self

    @property
    def elliptic_curve(self) -> ec.EllipticCurve:
        """The configured elliptic curve as instance."""
        return constants.ELLIPTIC_CURVE_TYPES[self.PKI_ELLIPTIC_CURVE]()

    @property
    def signature_hash_algorithm(self) -> hashes.HashAlgorithm:
        """The configured signature hash algorithm as instance."""
        return constants.HASH_ALGORITHM_TYPES[self.PKI_SIGNATURE_HASH_ALGORITHM]()


class SettingsProxy:
    """Proxy class to access settings from the model.

    This class exists to enable reloading of settings in test cases.
    """

    __settings: SettingsModel

    def __init__(self) -> None:
        self.reload()

    def __dir__(self, object: Any = None) -> Iterable[str]:  # pylint: disable=redefined-builtin
        return list(super().__dir__()) + list(SettingsModel.model_fields)

    def reload(self) -> None:
        """Reload settings model from django settings."""
        try:
            self.__settings = SettingsModel.model_validate(_settings)
        except ValueError as ex:
            raise ImproperlyConfigured(str(ex)) from ex

    def __getattr__(self, item: str) -> Any:
        return getattr(self.__settings, item)


model_settings = SettingsProxy()


def reload_settings(  # pylint: disable=unused-argument
    sender: type[Any], setting: str, **kwargs: Any
) -> None:
    """Reload ``django_pki.conf.model_settings`` if the settings are changed."""
    if setting.startswith("PKI_"):
        model_settings.reload()


setting_changed.connect(reload_settings)
