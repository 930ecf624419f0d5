# -*- Mode:Python; indent-tabs-mode:nil; tab-width:4 -*-
#
# Copyright 2022 Canonical Ltd.
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License version 3 as
# published by the Free Software Foundation.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <http://www.gnu.org/licenses/>.

"""The dependencies extension."""

from typing import TYPE_CHECKING, Dict, List, Optional

import pydantic

from .base import OFFICIAL_EXTENSIONS_PREFIX, ExtensionModel, read_payload

if TYPE_CHECKING:
    from porter.cnab.bundle import Bundle

DEPENDENCIES_SHORTHAND = "dependencies"
DEPENDENCIES_KEY = OFFICIAL_EXTENSIONS_PREFIX + DEPENDENCIES_SHORTHAND
DEPENDENCIES_SCHEMA = "https://cnab.io/v1/dependencies.schema.json"


class DependencyVersion(ExtensionModel):
    """Version constraints of a dependency."""

    ranges: List[str] = pydantic.Field(default_factory=list)
    prereleases: bool = False


class Dependency(ExtensionModel):
    """A bundle required by another bundle."""

    name: str = pydantic.Field(default="", exclude=True)
    bundle: str
    version: Optional[DependencyVersion] = None

    @property
    def allow_prereleases(self) -> bool:
        return self.version is not None and self.version.prereleases

    @property
    def ranges(self) -> List[str]:
        if self.version is None:
            return []
        return self.version.ranges


class Dependencies(ExtensionModel):
    """The dependencies of a bundle, keyed by alias."""

    sequence: List[str] = pydantic.Field(default_factory=list)
    requires: Dict[str, Dependency] = pydantic.Field(default_factory=dict)

    @pydantic.model_validator(mode="after")
    def _set_names(self) -> "Dependencies":
        for alias, dep in self.requires.items():
            dep.name = alias
        return self

    def list_by_sequence(self) -> List[Dependency]:
        """Return the dependencies in install order.

        The declared sequence wins when it names every dependency,
        otherwise the order they were declared in is used.
        """
        if self.sequence and set(self.sequence) == set(self.requires):
            return [self.requires[alias] for alias in self.sequence]
        return list(self.requires.values())


def read_dependencies(bundle: "Bundle") -> Dependencies:
    return read_payload(bundle, DEPENDENCIES_KEY, Dependencies)


def has_dependencies(bundle: "Bundle") -> bool:
    return DEPENDENCIES_KEY in bundle.custom
