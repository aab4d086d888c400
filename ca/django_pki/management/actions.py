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

"""Collection of argparse actions for django-pki management commands."""

import abc
import argparse
import typing
from datetime import timedelta
from typing import Any, Optional

from django_pki.constants import REASON_CODES, ReasonFlags
from django_pki.profiles import END_ENTITY_PROFILES, Profile
from django_pki.utils import parse_subject_alternative_names

ActionType = typing.TypeVar("ActionType")  # pylint: disable=invalid-name
ParseType = typing.TypeVar("ParseType")  # pylint: disable=invalid-name


class SingleValueAction(argparse.Action, typing.Generic[ParseType, ActionType], metaclass=abc.ABCMeta):
    """Abstract/generic base class for arguments that take a single value.

    The main purpose of this class is to improve type hinting.
    """

    type: type[ActionType]

    @abc.abstractmethod
    def parse_value(self, value: ParseType) -> ActionType:
        """Parse the value passed to the command line. Implementing classes must implement this method.

        Parameters
        ----------
        value : str
            The value passed by the command line.
        """
        raise NotImplementedError

    def __call__(  # type: ignore[override] # argparse.Action defines much looser type
        self,
        parser: argparse.ArgumentParser,
        namespace: argparse.Namespace,
        values: ParseType,
        option_string: Optional[str] = None,
    ) -> None:
        setattr(namespace, self.dest, self.parse_value(values))


class ValidityAction(SingleValueAction[str, timedelta]):
    """Action for passing a validity in days.

    >>> parser = argparse.ArgumentParser()
    >>> parser.add_argument('--validity', action=ValidityAction)  # doctest: +ELLIPSIS
    ValidityAction(...)
    >>> parser.parse_args(['--validity', '3']).validity.days
    3
    """

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("metavar", "DAYS")
        super().__init__(**kwargs)

    def parse_value(self, value: str) -> timedelta:
        """Parse the value for this action."""
        try:
            days = int(value)
        except ValueError as ex:
            raise argparse.ArgumentError(self, f"{value}: Value must be an integer.") from ex
        if days <= 0:
            raise argparse.ArgumentError(self, f"{value}: Value must be greater than zero.")

        return timedelta(days=days)


class IntegerRangeAction(SingleValueAction[int, int]):
    """An int action with an optional min/max value.

    >>> parser = argparse.ArgumentParser()
    >>> parser.add_argument('port', action=IntegerRangeAction, min=1, max=65535)  # doctest: +ELLIPSIS
    IntegerRangeAction(...)
    >>> parser.parse_args(['8888'])
    Namespace(port=8888)

    Parameters
    ----------
    min: int, Optional
        The optional minimum value.
    max: int, Optional
        The optional maximum value.
    """

    def __init__(self, **kwargs: Any) -> None:
        self.min = kwargs.pop("min", None)
        self.max = kwargs.pop("max", None)
        kwargs["type"] = int  # so parse_value() will receive an int
        kwargs.setdefault("metavar", "INT")
        super().__init__(**kwargs)

    def parse_value(self, value: int) -> int:
        if self.min is not None and self.min > value:
            raise argparse.ArgumentError(self, f"{self.metavar} must be equal or greater then {self.min}.")
        if self.max is not None and self.max < value:
            raise argparse.ArgumentError(self, f"{self.metavar} must be equal or smaller then {self.max}.")
        return value


class ProfileAction(SingleValueAction[str, Profile]):
    """Action to select the profile of an end-entity certificate.

    >>> parser = argparse.ArgumentParser()
    >>> parser.add_argument('profile', action=ProfileAction)  # doctest: +ELLIPSIS
    ProfileAction(...)
    >>> parser.parse_args(['server'])
    Namespace(profile=<Profile: server>)
    """

    def __init__(self, **kwargs: Any) -> None:
        kwargs["choices"] = list(END_ENTITY_PROFILES)
        super().__init__(**kwargs)

    def parse_value(self, value: str) -> Profile:
        """Parse the value for this action."""
        # NOTE: set of choices already assures that value is a valid profile
        return END_ENTITY_PROFILES[value]


class ReasonAction(SingleValueAction[str, ReasonFlags]):
    """Action to select a revocation reason.

    The reason can be given as name used in the index file, as name of the enum or as reason code as defined
    in RFC 5280, section 5.3.1:

    >>> parser = argparse.ArgumentParser()
    >>> parser.add_argument('reason', action=ReasonAction, nargs="?")  # doctest: +ELLIPSIS
    ReasonAction(...)
    >>> parser.parse_args(['keyCompromise'])
    Namespace(reason=<ReasonFlags.key_compromise: 'keyCompromise'>)
    >>> parser.parse_args(['1'])
    Namespace(reason=<ReasonFlags.key_compromise: 'keyCompromise'>)
    >>> parser.parse_args([])
    Namespace(reason=<ReasonFlags.unspecified: 'unspecified'>)
    """

    def __init__(self, **kwargs: Any) -> None:
        # NOTE: the default is a string so that argparse passes it through this action for positionals.
        kwargs.setdefault("default", ReasonFlags.unspecified.value)
        kwargs.setdefault("metavar", "reasonCode")
        super().__init__(**kwargs)

    def parse_value(self, value: str) -> ReasonFlags:
        """Parse the value for this action."""
        if isinstance(value, ReasonFlags):
            return value
        if value.isdigit() and int(value) in REASON_CODES:
            return REASON_CODES[int(value)]

        for reason in ReasonFlags:
            if value in (reason.value, reason.name):
                return reason

        valid = ", ".join(r.value for r in ReasonFlags)
        raise argparse.ArgumentError(self, f"{value}: Unknown reason (valid reasons are: {valid}).")


class AlternativeNameAction(argparse.Action):
    """Action for subject alternative names.

    The option may be given multiple times, every value may contain multiple comma-separated names.

    >>> parser = argparse.ArgumentParser()
    >>> parser.add_argument('-SAN', action=AlternativeNameAction, dest="san")  # doctest: +ELLIPSIS
    AlternativeNameAction(...)
    >>> parser.parse_args(['-SAN', 'DNS:example.com,IP:127.0.0.1']).san
    ['DNS:example.com', 'IP:127.0.0.1']
    """

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("metavar", "subjectAltName")
        kwargs.setdefault("default", [])
        super().__init__(**kwargs)

    def __call__(  # type: ignore[override] # argparse.Action defines much looser type for values
        self,
        parser: argparse.ArgumentParser,
        namespace: argparse.Namespace,
        values: str,
        option_string: Optional[str] = None,
    ) -> None:
        names: list[str] = list(getattr(namespace, self.dest) or [])
        new_names = [name.strip() for name in values.split(",") if name.strip()]

        try:
            parse_subject_alternative_names(new_names)
        except ValueError as ex:
            raise argparse.ArgumentError(self, str(ex)) from ex

        names += [name for name in new_names if name not in names]
        setattr(namespace, self.dest, names)
