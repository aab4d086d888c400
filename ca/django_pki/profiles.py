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

"""Profiles select the extensions and validity of issued certificates.

Precedence of values:

* Subject alternative names passed when issuing
* Profile values
* Authority values (CRL and OCSP URLs)
"""

from collections.abc import Iterable, Sequence
from datetime import timedelta
from types import MappingProxyType
from typing import Optional

from cryptography import x509
from cryptography.x509.oid import AuthorityInformationAccessOID, ExtendedKeyUsageOID

from django_pki.conf import model_settings
from django_pki.constants import Policy
from django_pki.crypto import PublicKeyTypes
from django_pki.utils import get_common_name, is_hostname

KEY_USAGE_NAMES = (
    "digital_signature",
    "content_commitment",
    "key_encipherment",
    "data_encipherment",
    "key_agreement",
    "key_cert_sign",
    "crl_sign",
    "encipher_only",
    "decipher_only",
)


class Profile:
    """A certificate profile.

    Parameters
    ----------
    name : str
        The name of the profile, as used on the command line.
    ca : bool
        If certificates issued with this profile are authorities.
    key_usage : iterable of str
        Names of the key usages, as used in :py:class:`~cg:cryptography.x509.KeyUsage`.
    extended_key_usage : iterable of :py:class:`~cg:cryptography.x509.ObjectIdentifier`
        Extended key usages. No extension is added if empty.
    validity_setting : str
        Name of the setting holding the default validity.
    policy : :py:class:`~django_pki.constants.Policy`
        The policy applied to the subject when signing requests with this profile.
    """

    def __init__(
        self,
        name: str,
        description: str = "",
        ca: bool = False,
        path_length: Optional[int] = None,
        key_usage: Iterable[str] = (),
        extended_key_usage: Iterable[x509.ObjectIdentifier] = (),
        extended_key_usage_critical: bool = False,
        cn_in_san: bool = False,
        ocsp_no_check: bool = False,
        add_crl_url: bool = True,
        add_ocsp_url: bool = True,
        validity_setting: str = "PKI_DEFAULT_VALIDITY",
        policy: Policy = Policy.loose,
    ) -> None:
        self.name = name
        self.description = description
        self.ca = ca
        self.path_length = path_length
        self.key_usage = frozenset(key_usage)
        self.extended_key_usage = tuple(extended_key_usage)
        self.extended_key_usage_critical = extended_key_usage_critical
        self.cn_in_san = cn_in_san
        self.ocsp_no_check = ocsp_no_check
        self.add_crl_url = add_crl_url
        self.add_ocsp_url = add_ocsp_url
        self.validity_setting = validity_setting
        self.policy = policy

        unknown = self.key_usage - set(KEY_USAGE_NAMES)
        if unknown:
            raise ValueError(f"{', '.join(sorted(unknown))}: Unknown key usage.")

    def __repr__(self) -> str:
        return f"<Profile: {self.name}>"

    def __str__(self) -> str:
        return self.name

    @property
    def validity(self) -> timedelta:
        """The default validity of certificates issued with this profile."""
        return getattr(model_settings, self.validity_setting)  # type: ignore[no-any-return]

    def get_key_usage(self) -> x509.KeyUsage:
        """Get the key usage extension value."""
        values = {name: name in self.key_usage for name in KEY_USAGE_NAMES}
        return x509.KeyUsage(**values)

    def get_subject_alternative_names(
        self, subject: x509.Name, subject_alternative_names: Sequence[x509.GeneralName] = ()
    ) -> list[x509.GeneralName]:
        """Get the merged list of subject alternative names.

        If the profile has `cn_in_san` set, the common name is added as DNS name if it is a valid host name.
        """
        names = list(dict.fromkeys(subject_alternative_names))
        common_name = get_common_name(subject)
        if self.cn_in_san and common_name and is_hostname(common_name):
            dns_name = x509.DNSName(common_name)
            if dns_name not in names:
                names.insert(0, dns_name)
        return names

    def get_extensions(
        self,
        subject: x509.Name,
        public_key: PublicKeyTypes,
        issuer_public_key: PublicKeyTypes,
        subject_alternative_names: Sequence[x509.GeneralName] = (),
        crl_url: Optional[str] = None,
        ocsp_url: Optional[str] = None,
    ) -> list[x509.Extension[x509.ExtensionType]]:
        """Get the extensions for a certificate issued with this profile."""
        extensions: list[x509.Extension[x509.ExtensionType]] = [
            x509.Extension(
                oid=x509.BasicConstraints.oid,
                critical=True,
                value=x509.BasicConstraints(ca=self.ca, path_length=self.path_length if self.ca else None),
            ),
            x509.Extension(oid=x509.KeyUsage.oid, critical=True, value=self.get_key_usage()),
            x509.Extension(
                oid=x509.SubjectKeyIdentifier.oid,
                critical=False,
                value=x509.SubjectKeyIdentifier.from_public_key(public_key),
            ),
            x509.Extension(
                oid=x509.AuthorityKeyIdentifier.oid,
                critical=False,
                value=x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_public_key),
            ),
        ]

        if self.extended_key_usage:
            extensions.append(
                x509.Extension(
                    oid=x509.ExtendedKeyUsage.oid,
                    critical=self.extended_key_usage_critical,
                    value=x509.ExtendedKeyUsage(self.extended_key_usage),
                )
            )

        names = self.get_subject_alternative_names(subject, subject_alternative_names)
        if names:
            extensions.append(
                x509.Extension(
                    oid=x509.SubjectAlternativeName.oid,
                    critical=False,
                    value=x509.SubjectAlternativeName(names),
                )
            )

        if self.add_crl_url and crl_url:
            distribution_point = x509.DistributionPoint(
                full_name=[x509.UniformResourceIdentifier(crl_url)],
                relative_name=None,
                reasons=None,
                crl_issuer=None,
            )
            extensions.append(
                x509.Extension(
                    oid=x509.CRLDistributionPoints.oid,
                    critical=False,
                    value=x509.CRLDistributionPoints([distribution_point]),
                )
            )

        if self.add_ocsp_url and ocsp_url:
            access_description = x509.AccessDescription(
                access_method=AuthorityInformationAccessOID.OCSP,
                access_location=x509.UniformResourceIdentifier(ocsp_url),
            )
            extensions.append(
                x509.Extension(
                    oid=x509.AuthorityInformationAccess.oid,
                    critical=False,
                    value=x509.AuthorityInformationAccess([access_description]),
                )
            )

        if self.ocsp_no_check:
            extensions.append(
                x509.Extension(oid=x509.OCSPNoCheck.oid, critical=False, value=x509.OCSPNoCheck())
            )

        return extensions


ROOT_CA = Profile(
    "root",
    description="Self-signed root certificate authority.",
    ca=True,
    key_usage=("digital_signature", "crl_sign", "key_cert_sign"),
    add_crl_url=False,
    add_ocsp_url=False,
    validity_setting="PKI_ROOT_VALIDITY",
    policy=Policy.strict,
)

INTERMEDIATE_CA = Profile(
    "intermediate",
    description="Intermediate certificate authority signed by the root.",
    ca=True,
    path_length=0,
    key_usage=("digital_signature", "crl_sign", "key_cert_sign"),
    validity_setting="PKI_INTERMEDIATE_VALIDITY",
    policy=Policy.strict,
)

SERVER = Profile(
    "server",
    description="A certificate for a server.",
    key_usage=("digital_signature", "key_encipherment"),
    extended_key_usage=(ExtendedKeyUsageOID.SERVER_AUTH,),
    cn_in_san=True,
)

USER = Profile(
    "user",
    description="A certificate for a user, for client authentication and email protection.",
    key_usage=("content_commitment", "digital_signature", "key_encipherment"),
    extended_key_usage=(ExtendedKeyUsageOID.CLIENT_AUTH, ExtendedKeyUsageOID.EMAIL_PROTECTION),
)

OCSP = Profile(
    "ocsp",
    description="A certificate used for signing OCSP responses.",
    key_usage=("digital_signature",),
    extended_key_usage=(ExtendedKeyUsageOID.OCSP_SIGNING,),
    extended_key_usage_critical=True,
    ocsp_no_check=True,
    add_ocsp_url=False,
    validity_setting="PKI_OCSP_RESPONDER_VALIDITY",
)

#: Profiles available for end-entity certificates.
END_ENTITY_PROFILES = MappingProxyType({SERVER.name: SERVER, USER.name: USER})

#: All profiles.
PROFILES = MappingProxyType({p.name: p for p in (ROOT_CA, INTERMEDIATE_CA, SERVER, USER, OCSP)})


def get_profile(name: str) -> Profile:
    """Get the profile with the given name."""
    try:
        return PROFILES[name]
    except KeyError as ex:
        raise ValueError(f"{name}: Unknown profile.") from ex
