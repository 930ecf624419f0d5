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

"""The parameter sources extension.

A parameter source declares that a parameter is set from an output of a
previous run of the bundle, or from an output of one of its dependencies.
"""

from typing import TYPE_CHECKING, Any, Dict, List, Union

import pydantic

from porter import errors

from .base import OFFICIAL_EXTENSIONS_PREFIX, ExtensionModel, read_payload

if TYPE_CHECKING:
    from porter.cnab.bundle import Bundle

PARAMETER_SOURCES_SHORTHAND = "parameter-sources"
PARAMETER_SOURCES_KEY = OFFICIAL_EXTENSIONS_PREFIX + PARAMETER_SOURCES_SHORTHAND
PARAMETER_SOURCES_SCHEMA = "https://cnab.io/v1/parameter-sources.schema.json"

SOURCE_TYPE_OUTPUT = "output"
SOURCE_TYPE_DEPENDENCY_OUTPUT = "dependencyOutput"


class OutputParameterSource(ExtensionModel):
    """Value of an output from the previous run of this bundle."""

    name: str


class DependencyOutputParameterSource(ExtensionModel):
    """Value of an output of a dependency."""

    dependency: str
    name: str


ParameterSourceDefinition = Union[OutputParameterSource, DependencyOutputParameterSource]

_SOURCE_TYPES = {
    SOURCE_TYPE_OUTPUT: OutputParameterSource,
    SOURCE_TYPE_DEPENDENCY_OUTPUT: DependencyOutputParameterSource,
}


class ParameterSource(ExtensionModel):
    """Where a single parameter gets its value from."""

    priority: List[str] = pydantic.Field(default_factory=list)
    sources: Dict[str, ParameterSourceDefinition] = pydantic.Field(
        default_factory=dict
    )

    @pydantic.field_validator("sources", mode="before")
    @classmethod
    def _parse_sources(cls, value: Any) -> Dict[str, ParameterSourceDefinition]:
        if not isinstance(value, dict):
            return value
        sources: Dict[str, ParameterSourceDefinition] = {}
        for key, definition in value.items():
            if isinstance(definition, ExtensionModel):
                sources[key] = definition
                continue
            try:
                source_type = _SOURCE_TYPES[key]
            except KeyError as err:
                raise errors.ExtensionError(
                    f"unsupported parameter source key {key}"
                ) from err
            sources[key] = source_type.model_validate(definition)
        return sources

    def list_sources_by_priority(self) -> List[ParameterSourceDefinition]:
        """Return the sources in the order they should be tried."""
        if not self.priority:
            return list(self.sources.values())
        return [self.sources[key] for key in self.priority if key in self.sources]


class ParameterSources(pydantic.RootModel[Dict[str, ParameterSource]]):
    """Parameter sources keyed by parameter name."""

    root: Dict[str, ParameterSource] = pydantic.Field(default_factory=dict)

    def __getitem__(self, name: str) -> ParameterSource:
        return self.root[name]

    def __contains__(self, name: object) -> bool:
        return name in self.root

    def __len__(self) -> int:
        return len(self.root)

    def items(self):
        return self.root.items()

    def set_parameter_from_output(self, parameter: str, output: str) -> None:
        self.root[parameter] = ParameterSource(
            priority=[SOURCE_TYPE_OUTPUT],
            sources={SOURCE_TYPE_OUTPUT: OutputParameterSource(name=output)},
        )

    def set_parameter_from_dependency_output(
        self, parameter: str, dependency: str, output: str
    ) -> None:
        self.root[parameter] = ParameterSource(
            priority=[SOURCE_TYPE_DEPENDENCY_OUTPUT],
            sources={
                SOURCE_TYPE_DEPENDENCY_OUTPUT: DependencyOutputParameterSource(
                    dependency=dependency, name=output
                )
            },
        )

    def marshal(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def read_parameter_sources(bundle: "Bundle") -> ParameterSources:
    """Read the parameter sources of a bundle.

    :raises ExtensionError: if the payload is missing or names an unknown
        source type.
    """
    return read_payload(bundle, PARAMETER_SOURCES_KEY, ParameterSources)


def has_parameter_sources(bundle: "Bundle") -> bool:
    return PARAMETER_SOURCES_KEY in bundle.custom
