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

"""Bundle descriptor (bundle.json) model."""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import pydantic
from craft_application.util import strtobool
from pydantic import ConfigDict
from pydantic.alias_generators import to_camel

from porter import const, errors
from porter.cnab import reference
from porter.cnab.extensions import file_parameters


class BundleModel(pydantic.BaseModel):
    """Base for the bundle descriptor types.

    Keys are lowerCamelCase on the wire and unknown keys are preserved.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def marshal(self) -> Dict[str, Any]:
        """Convert to a dictionary, omitting unset and empty values."""
        return self.model_dump(
            mode="json", by_alias=True, exclude_none=True, exclude_defaults=True
        )


class Location(BundleModel):
    """Where a value is delivered inside the installer image."""

    env: Optional[str] = None
    path: Optional[str] = None


class Scoped(BundleModel):
    """Item that may be restricted to a subset of actions."""

    apply_to: Optional[List[str]] = None

    def applies_to(self, action: str) -> bool:
        """Return whether the item is used by ``action``."""
        if not self.apply_to:
            return True
        return action in self.apply_to


class Parameter(Scoped):
    definition: str
    description: Optional[str] = None
    required: bool = False
    destination: Optional[Location] = None


class Credential(Scoped):
    description: Optional[str] = None
    required: bool = False
    env: Optional[str] = None
    path: Optional[str] = None


class Output(Scoped):
    definition: str
    description: Optional[str] = None
    path: Optional[str] = None


class BaseImage(BundleModel):
    image: str
    image_type: str = ""
    content_digest: Optional[str] = None
    media_type: Optional[str] = None
    size: Optional[int] = None
    labels: Optional[Dict[str, str]] = None


class InvocationImage(BaseImage):
    """Image that runs the bundle actions."""


class Image(BaseImage):
    """Application image used by the bundle."""

    description: Optional[str] = None


class Action(BundleModel):
    description: Optional[str] = None
    modifies: bool = False
    stateless: bool = False


class Maintainer(BundleModel):
    name: Optional[str] = None
    email: Optional[str] = None
    url: Optional[str] = None


class Bundle(BundleModel):
    """A CNAB bundle descriptor.

    Definitions are kept as plain JSON schema documents.
    """

    schema_version: str
    name: str
    version: str
    description: Optional[str] = None
    maintainers: List[Maintainer] = pydantic.Field(default_factory=list)
    invocation_images: List[InvocationImage] = pydantic.Field(default_factory=list)
    images: Dict[str, Image] = pydantic.Field(default_factory=dict)
    actions: Dict[str, Action] = pydantic.Field(default_factory=dict)
    parameters: Dict[str, Parameter] = pydantic.Field(default_factory=dict)
    credentials: Dict[str, Credential] = pydantic.Field(default_factory=dict)
    outputs: Dict[str, Output] = pydantic.Field(default_factory=dict)
    definitions: Dict[str, Dict[str, Any]] = pydantic.Field(default_factory=dict)
    custom: Dict[str, Any] = pydantic.Field(default_factory=dict)
    required_extensions: List[str] = pydantic.Field(default_factory=list)

    @classmethod
    def unmarshal(cls, data: Dict[str, Any]) -> "Bundle":
        """Create a bundle from its dictionary representation.

        :raises BundleLoadError: if the data is not a valid bundle.
        """
        try:
            return cls.model_validate(data)
        except pydantic.ValidationError as err:
            raise errors.BundleLoadError(
                f"invalid bundle descriptor: {err.error_count()} validation errors",
                details=str(err),
            ) from err

    @classmethod
    def load(cls, path: Path) -> "Bundle":
        """Load a bundle descriptor from a file.

        :raises BundleLoadError: if the file cannot be read or parsed.
        """
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except OSError as err:
            raise errors.BundleLoadError(
                f"cannot read bundle at {path}: {err.strerror}"
            ) from err
        except json.JSONDecodeError as err:
            raise errors.BundleLoadError(
                f"cannot load bundle from {path}: {err}"
            ) from err
        return cls.unmarshal(data)

    def to_json(self) -> str:
        return json.dumps(self.marshal(), indent=2)

    def write(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json(), encoding="utf-8")

    def is_porter_bundle(self) -> bool:
        """Determine if the bundle was built by Porter."""
        return const.STAMP_KEY in self.custom

    def _parameter_definition(self, name: str) -> Optional[Dict[str, Any]]:
        param = self.parameters.get(name)
        if param is None:
            return None
        return self.definitions.get(param.definition)

    def _output_definition(self, name: str) -> Optional[Dict[str, Any]]:
        output = self.outputs.get(name)
        if output is None:
            return None
        return self.definitions.get(output.definition)

    def is_internal_parameter(self, name: str) -> bool:
        definition = self._parameter_definition(name)
        return bool(definition) and definition.get("$comment") == const.PORTER_INTERNAL

    def is_internal_output(self, name: str) -> bool:
        definition = self._output_definition(name)
        return bool(definition) and definition.get("$comment") == const.PORTER_INTERNAL

    def is_sensitive_parameter(self, name: str) -> bool:
        definition = self._parameter_definition(name)
        return bool(definition) and definition.get("writeOnly") is True

    def is_output_sensitive(self, name: str) -> bool:
        definition = self._output_definition(name)
        return bool(definition) and definition.get("writeOnly") is True

    def supports_extension(self, key: str) -> bool:
        """Check if ``key`` is declared as a required extension."""
        return key in self.required_extensions

    def supports_file_parameters(self) -> bool:
        return self.supports_extension(file_parameters.FILE_PARAMETERS_KEY)

    def is_file_type(self, definition: Dict[str, Any]) -> bool:
        """Determine if a definition holds a file encoded by Porter."""
        return (
            self.supports_file_parameters()
            and definition.get("type") == "string"
            and definition.get("contentEncoding") == "base64"
        )

    def get_parameter_type(self, definition: Dict[str, Any]) -> str:
        """Return the type of a definition, accounting for the file type."""
        if self.is_file_type(definition):
            return "file"
        return str(definition.get("type", ""))

    def convert_parameter_value(self, name: str, value: str) -> Any:
        """Convert a parameter's string value to the type of its definition.

        Values that do not convert are returned unchanged.
        """
        definition = self._parameter_definition(name) or {}
        return convert_value(definition.get("type"), value)

    def get_referenced_registries(self) -> List[str]:
        """Return the registries of the invocation and referenced images."""
        registries = set()
        for image in self.invocation_images:
            registries.add(reference.parse_reference(image.image).registry)
        for image in self.images.values():
            registries.add(reference.parse_reference(image.image).registry)
        return sorted(registries)


def convert_value(schema_type: Any, value: str) -> Any:
    """Decode a string value according to a JSON schema type."""
    try:
        if schema_type == "integer":
            return int(value)
        if schema_type == "number":
            return float(value)
        if schema_type == "boolean":
            return strtobool(value)
        if schema_type in ("object", "array"):
            return json.loads(value)
    except ValueError:
        return value
    return value


def write_parameter_to_string(value: Any) -> str:
    """Return the runtime string representation of a typed value."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value)
