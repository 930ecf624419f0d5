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

"""Porter manifest (porter.yaml) models and validation."""

import dataclasses
from typing import Any, Dict, Iterable, List, Optional, Tuple

import jsonschema
import pydantic
from craft_cli import emit
from pydantic import ConfigDict, PrivateAttr
from pydantic.alias_generators import to_camel

from porter import const, errors, utils
from porter.cnab import reference

from .templates import get_dependency_output, get_output_name

_INVALID_STEP_ERROR = 'validation of action "{action}" failed: {error}'


class ManifestModel(pydantic.BaseModel):
    """Base for the manifest types.

    Keys are lowerCamelCase in porter.yaml.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        validate_assignment=True,
    )


class _SchemaModel(ManifestModel):
    """Item carrying an inline JSON schema.

    Any key that is not a field is kept as a JSON schema keyword.
    """

    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    default: Any = None
    description: Optional[str] = None

    @property
    def has_default(self) -> bool:
        return "default" in self.model_fields_set and self.default is not None

    def get_schema(self) -> Dict[str, Any]:
        """Return the JSON schema of the item."""
        schema: Dict[str, Any] = {}
        if self.type:
            schema["type"] = self.type
        if self.has_default:
            schema["default"] = self.default
        if self.description:
            schema["description"] = self.description
        schema.update(self.model_extra or {})
        return schema

    def _validate_schema(self, kind: str, name: str) -> List[str]:
        schema = self.get_schema()
        if schema.get("type") == "file":
            schema["type"] = "string"
            schema["contentEncoding"] = "base64"

        validator_class = jsonschema.validators.validator_for(schema)
        try:
            validator_class.check_schema(schema)
        except jsonschema.SchemaError as err:
            return [
                f"encountered an error while validating definition for {kind} "
                f"{name!r}: {err.message}"
            ]

        if not self.has_default:
            return []
        validator = validator_class(schema)
        return [
            f"encountered an error validating the default value {self.default!r} "
            f"for {kind} {name!r}: {error.message}"
            for error in validator.iter_errors(self.default)
        ]


class ParameterSource(ManifestModel):
    """Output a parameter is set from."""

    dependency: str = ""
    output: str = ""


class Parameter(_SchemaModel):
    """A parameter of the bundle.

    The value is delivered through ``env`` or, for file parameters, ``path``.
    """

    name: str
    sensitive: bool = False
    source: Optional[ParameterSource] = None
    apply_to: Optional[List[str]] = None
    env: str = ""
    path: str = ""

    def applies_to(self, action: str) -> bool:
        return utils.applies_to(self.apply_to, action)

    def is_file_type(self) -> bool:
        return self.type == "file"

    def validate_parameter(self) -> List[str]:
        problems = []
        if self.is_file_type() and not self.path:
            problems.append(f"no destination path supplied for parameter {self.name}")
        problems.extend(self._validate_schema("parameter", self.name))
        return problems

    def update_apply_to(self, manifest: "Manifest") -> None:
        """Keep parameters sourced from an output out of install.

        The output does not exist until the bundle has been installed.
        """
        if self.source is None or not self.source.output:
            return
        if self.apply_to is not None or self.has_default:
            return

        apply_to = [const.ACTION_UNINSTALL]
        if manifest.upgrade is not None:
            apply_to.append(const.ACTION_UPGRADE)
        apply_to.extend(manifest.custom_actions)
        self.apply_to = sorted(apply_to)


class Credential(ManifestModel):
    """A credential the bundle needs, always treated as sensitive."""

    name: str
    description: str = ""
    required: bool = True
    apply_to: Optional[List[str]] = None
    env: str = ""
    path: str = ""

    def applies_to(self, action: str) -> bool:
        return utils.applies_to(self.apply_to, action)


class Output(_SchemaModel):
    """An output of the bundle."""

    name: str
    sensitive: bool = False
    apply_to: Optional[List[str]] = None
    path: str = ""

    def applies_to(self, action: str) -> bool:
        return utils.applies_to(self.apply_to, action)

    def is_file_type(self) -> bool:
        return self.type == "file"

    def validate_output(self) -> List[str]:
        problems = []
        if self.is_file_type() and not self.path:
            problems.append(f"no path supplied for output {self.name}")
        problems.extend(self._validate_schema("output", self.name))
        return problems


class Dependency(ManifestModel):
    """Another bundle this bundle depends on."""

    name: str = pydantic.Field(default="", exclude=True)
    tag: str
    versions: List[str] = pydantic.Field(default_factory=list)
    allow_prereleases: bool = False

    def validate_dependency(self) -> List[str]:
        if not self.versions:
            return []
        try:
            ref = reference.parse_reference(self.tag)
        except errors.InvalidReference as err:
            return [f"invalid reference for dependency {self.name}: {err}"]
        if ref.has_tag() or ref.has_digest():
            return [
                f"reference for dependency {self.name} can specify only a "
                "repository, without a digest or tag, when a version constraint "
                "is specified"
            ]
        return []


class MappedImage(ManifestModel):
    """An application image used by the bundle."""

    repository: str
    tag: str = ""
    digest: str = ""
    size: int = 0
    media_type: str = ""
    labels: Dict[str, str] = pydantic.Field(default_factory=dict)
    image_type: str = ""
    description: str = ""

    def to_reference(self) -> str:
        """Return the image reference, preferring the digest."""
        if self.digest:
            return f"{self.repository}@{self.digest}"
        if self.tag:
            return f"{self.repository}:{self.tag}"
        return f"{self.repository}:latest"


class CustomActionDefinition(ManifestModel):
    description: str = ""
    modifies: bool = False
    stateless: bool = False


class StateVariable(ManifestModel):
    """A file carried between runs of the bundle."""

    name: str
    path: str
    description: str = ""
    mixin: str = ""


class Maintainer(ManifestModel):
    name: str = ""
    email: str = ""
    url: str = ""


def _split_named_config(value: Any, what: str) -> Any:
    if isinstance(value, str):
        return {"name": value}
    if isinstance(value, dict) and "name" not in value:
        if len(value) == 0:
            raise ValueError(f"{what} was empty")
        if len(value) > 1:
            raise ValueError(f"{what} contained more than one entry")
        name, config = next(iter(value.items()))
        return {"name": name, "config": config}
    return value


class MixinDeclaration(ManifestModel):
    """A mixin used by the bundle, with its optional build configuration."""

    name: str
    config: Any = None

    @pydantic.model_validator(mode="before")
    @classmethod
    def _from_yaml(cls, value: Any) -> Any:
        return _split_named_config(value, "mixin declaration")


class RequiredExtension(ManifestModel):
    """An extension the bundle requires, with its optional configuration."""

    name: str
    config: Optional[Dict[str, Any]] = None

    @pydantic.model_validator(mode="before")
    @classmethod
    def _from_yaml(cls, value: Any) -> Any:
        return _split_named_config(value, "required extension")


@dataclasses.dataclass
class Step:
    """A step of an action, a one-key mapping of mixin name to step body.

    The body is opaque and handed to the mixin.
    """

    data: Any

    @property
    def mixin_name(self) -> str:
        if isinstance(self.data, dict) and len(self.data) == 1:
            return str(next(iter(self.data)))
        return ""

    @property
    def body(self) -> Dict[str, Any]:
        body = self.data.get(self.mixin_name) if isinstance(self.data, dict) else None
        return body if isinstance(body, dict) else {}

    @property
    def description(self) -> str:
        description = self.body.get("description", "")
        return description if isinstance(description, str) else ""

    @property
    def outputs(self) -> List[Dict[str, Any]]:
        outputs = self.body.get("outputs") or []
        return [output for output in outputs if isinstance(output, dict)]

    def validate_step(self, manifest: "Manifest") -> None:
        """Check the step against the mixins declared in the manifest.

        :raises ManifestValidationError: if the step is invalid.
        """
        if self.data is None:
            raise errors.ManifestValidationError("found an empty step")
        if not isinstance(self.data, dict) or len(self.data) == 0:
            raise errors.ManifestValidationError("no mixin specified")
        if len(self.data) > 1:
            raise errors.ManifestValidationError("more than one mixin specified")

        mixin_name = self.mixin_name
        if mixin_name not in manifest.mixin_names:
            raise errors.ManifestValidationError(
                f"mixin ({mixin_name}) was not declared"
            )

        description = self.body.get("description")
        if description is not None and not isinstance(description, str):
            raise errors.ManifestValidationError(
                f"invalid description type ({type(description).__name__}) "
                f"for mixin step ({mixin_name})"
            )
        if not description:
            raise errors.ManifestValidationError("no description specified")


def _to_steps(raw: Optional[List[Any]]) -> Optional[List[Step]]:
    if raw is None:
        return None
    return [Step(data=item) for item in raw]


class Manifest(ManifestModel):
    """Porter manifest definition.

    Custom actions are the top-level keys that are not fields; the loader
    sets them after parsing.
    """

    schema_version: str = ""
    name: str = ""
    version: str = ""
    description: str = ""
    maintainers: List[Maintainer] = pydantic.Field(default_factory=list)
    registry: str = ""
    reference: str = ""
    dockerfile: str = ""
    mixins: List[MixinDeclaration] = pydantic.Field(default_factory=list)
    install: Optional[List[Any]] = None
    upgrade: Optional[List[Any]] = None
    uninstall: Optional[List[Any]] = None
    custom: Dict[str, Any] = pydantic.Field(default_factory=dict)
    custom_action_definitions: Dict[str, CustomActionDefinition] = pydantic.Field(
        default_factory=dict, alias="customActions"
    )
    state: List[StateVariable] = pydantic.Field(default_factory=list)
    parameters: List[Parameter] = pydantic.Field(default_factory=list)
    credentials: List[Credential] = pydantic.Field(default_factory=list)
    outputs: List[Output] = pydantic.Field(default_factory=list)
    dependencies: Dict[str, Dependency] = pydantic.Field(default_factory=dict)
    images: Dict[str, MappedImage] = pydantic.Field(default_factory=dict)
    required: List[RequiredExtension] = pydantic.Field(default_factory=list)

    _custom_actions: Dict[str, List[Any]] = PrivateAttr(default_factory=dict)
    _manifest_path: str = PrivateAttr(default="")
    _raw: bytes = PrivateAttr(default=b"")
    _tree: Dict[str, Any] = PrivateAttr(default_factory=dict)
    _template_variables: List[str] = PrivateAttr(default_factory=list)
    _image: str = PrivateAttr(default="")

    @pydantic.model_validator(mode="after")
    def _set_dependency_names(self) -> "Manifest":
        for alias, dep in self.dependencies.items():
            dep.name = alias
        return self

    @classmethod
    def unmarshal(cls, data: Dict[str, Any]) -> "Manifest":
        """Create and populate a new ``Manifest`` object from dictionary data.

        :raises ManifestValidationError: if the data does not match the model.
        """
        try:
            return cls.model_validate(data)
        except pydantic.ValidationError as err:
            raise errors.ManifestValidationError(
                format_pydantic_errors(err.errors())
            ) from err

    @property
    def custom_actions(self) -> Dict[str, List[Any]]:
        return self._custom_actions

    @property
    def manifest_path(self) -> str:
        return self._manifest_path

    @property
    def raw(self) -> bytes:
        """The manifest bytes as read from disk."""
        return self._raw

    @property
    def tree(self) -> Dict[str, Any]:
        """The untyped manifest document."""
        return self._tree

    @property
    def template_variables(self) -> List[str]:
        return self._template_variables

    @property
    def image(self) -> str:
        """The installer image reference."""
        return self._image

    @property
    def mixin_names(self) -> List[str]:
        return [mixin.name for mixin in self.mixins]

    def set_source(
        self,
        *,
        path: str,
        raw: bytes,
        tree: Dict[str, Any],
        custom_actions: Dict[str, List[Any]],
        template_variables: List[str],
    ) -> None:
        self._manifest_path = path
        self._raw = raw
        self._tree = tree
        self._custom_actions = custom_actions
        self._template_variables = template_variables
        for param in self.parameters:
            param.update_apply_to(self)

    def set_installer_image(self, image: str) -> None:
        self._image = image

    def get_steps(self, action: str) -> Optional[List[Step]]:
        """Return the steps of an action, or None if it is not defined."""
        if action == const.ACTION_INSTALL:
            return _to_steps(self.install)
        if action == const.ACTION_UPGRADE:
            return _to_steps(self.upgrade)
        if action == const.ACTION_UNINSTALL:
            return _to_steps(self.uninstall)
        return _to_steps(self.custom_actions.get(action))

    def get_parameter(self, name: str) -> Optional[Parameter]:
        for param in self.parameters:
            if param.name == name:
                return param
        return None

    def get_output(self, name: str) -> Optional[Output]:
        for output in self.outputs:
            if output.name == name:
                return output
        return None

    def get_mixin(self, name: str) -> Optional[MixinDeclaration]:
        for mixin in self.mixins:
            if mixin.name == name:
                return mixin
        return None

    def get_templated_outputs(self) -> List[str]:
        """Return the names of bundle outputs referenced from templates."""
        names = set()
        for variable in self.template_variables:
            name = get_output_name(variable)
            if name is not None:
                names.add(name)
        return sorted(names)

    def get_templated_dependency_outputs(self) -> List[Tuple[str, str]]:
        """Return the (dependency, output) pairs referenced from templates."""
        refs = set()
        for variable in self.template_variables:
            ref = get_dependency_output(variable)
            if ref is not None:
                refs.add(ref)
        return sorted(refs)

    def validate_manifest(self) -> None:
        """Validate the manifest and derive the bundle reference.

        :raises ManifestValidationError: if the manifest is invalid, listing
            every problem found.
        """
        self._validate_metadata()
        self.set_invocation_image_and_reference()

        if self.dockerfile and self.dockerfile.rsplit("/", 1)[-1].lower() == "dockerfile":
            raise errors.ManifestValidationError(
                "Dockerfile template cannot be named 'Dockerfile' because that is "
                "the filename generated during porter build"
            )

        problems: List[str] = []
        if not self.mixins:
            problems.append("no mixins declared")

        actions = []
        if self.install is None:
            problems.append("no install action defined")
        else:
            actions.append(const.ACTION_INSTALL)
        if self.upgrade is not None:
            actions.append(const.ACTION_UPGRADE)
        if self.uninstall is None:
            problems.append("no uninstall action defined")
        else:
            actions.append(const.ACTION_UNINSTALL)
        actions.extend(self.custom_actions)

        for action in actions:
            try:
                self.validate_action(action)
            except errors.ManifestValidationError as err:
                problems.append(
                    _INVALID_STEP_ERROR.format(action=action, error=err)
                )

        for dep in self.dependencies.values():
            problems.extend(dep.validate_dependency())
        for output in self.outputs:
            problems.extend(output.validate_output())
        for param in self.parameters:
            problems.extend(param.validate_parameter())

        if problems:
            raise errors.ManifestValidationError(_combine(problems))

    def validate_action(self, action: str) -> None:
        """Validate every step of an action.

        :raises ManifestValidationError: for the first invalid step.
        """
        for step in self.get_steps(action) or []:
            step.validate_step(self)

    def _validate_metadata(self) -> None:
        if not self.name:
            raise errors.ManifestValidationError("bundle name must be set")

        if not self.registry and not self.reference:
            raise errors.ManifestValidationError(
                "a registry or reference value must be provided"
            )

        if self.registry and self.reference:
            emit.verbose(
                "WARNING: both registry and reference were provided; using the "
                f"reference value of {self.reference} for the bundle reference"
            )

        if self.version:
            version = utils.parse_version(self.version)
            if version is None:
                raise errors.ManifestValidationError(
                    f'version "{self.version}" is not a valid semver value'
                )
            self.version = str(version)

    def set_invocation_image_and_reference(self, ref: str = "") -> None:
        """Set the bundle reference and installer image.

        A reference without a tag is tagged ``v<version>``.
        """
        if ref:
            self.reference = ref

        if not self.reference and self.registry:
            repo = reference.parse_reference(f"{self.registry}/{self.name}")
            self.reference = repo.repository

        bundle_ref = reference.parse_reference(self.reference)
        if not bundle_ref.has_tag():
            if bundle_ref.has_digest():
                raise errors.ManifestValidationError(
                    f"unable to derive docker tag from bundle reference "
                    f"{self.reference!r}: invalid bundle tag format, must be an "
                    "OCI image tag"
                )
            bundle_ref = bundle_ref.with_tag("v" + self.version.replace("+", "_"))
            self.reference = str(bundle_ref)

        self._image = str(reference.get_installer_image(bundle_ref))


def _combine(problems: List[str]) -> str:
    if len(problems) == 1:
        return problems[0]
    lines = [f"{len(problems)} errors occurred:"]
    lines.extend(f"* {problem}" for problem in problems)
    return "\n".join(lines)


def format_pydantic_errors(
    errors: Iterable[Dict[str, Any]], *, file_name: str = "porter.yaml"
) -> str:
    """Format errors.

    Example 1: Single error.

    Bad porter.yaml content:
    - field 'name' required in 'parameters[0]' configuration

    Example 2: Multiple errors.

    Bad porter.yaml content:
    - field 'name' required in 'parameters[0]' configuration
    - extra field 'foo' not permitted in top-level configuration
    """
    combined = [f"Bad {file_name} content:"]
    for error in errors:
        formatted_loc = _format_pydantic_error_location(error["loc"])
        formatted_msg = _format_pydantic_error_message(error["msg"])

        if error["type"] == "missing":
            field_name, location = _printable_field_location_split(formatted_loc)
            combined.append(
                f"- field {field_name} required in {location} configuration"
            )
        elif error["type"] == "extra_forbidden":
            field_name, location = _printable_field_location_split(formatted_loc)
            combined.append(
                f"- extra field {field_name} not permitted in {location} configuration"
            )
        elif not formatted_loc:
            combined.append(f"- {formatted_msg}")
        else:
            combined.append(f"- {formatted_msg} (in field {formatted_loc!r})")

    return "\n".join(combined)


def _format_pydantic_error_location(loc: Iterable[Any]) -> str:
    """Format location."""
    loc_parts: List[str] = []
    for loc_part in loc:
        if isinstance(loc_part, int) and loc_parts:
            # Integer indicates an index. Go
            # back and fix up previous part.
            previous_part = loc_parts.pop()
            previous_part += f"[{loc_part}]"
            loc_parts.append(previous_part)
        else:
            loc_parts.append(str(loc_part))

    return ".".join(loc_parts)


def _format_pydantic_error_message(msg: str) -> str:
    """Format pydantic's error message field."""
    # Drop the prefix pydantic adds to errors raised from validators.
    for prefix in ("Value error, ", "Assertion failed, "):
        if msg.startswith(prefix):
            msg = msg[len(prefix) :]
    return msg


def _printable_field_location_split(location: str) -> Tuple[str, str]:
    """Return split field location.

    If top-level, location is returned as unquoted "top-level".
    If not top-level, location is returned as quoted location, e.g.

    (1) field1[idx].foo => 'foo', 'field1[idx]'
    (2) field2 => 'field2', top-level

    :returns: Tuple of <field name>, <location> as printable representations.
    """
    loc_split = location.split(".")
    field_name = repr(loc_split.pop())

    if loc_split:
        return field_name, repr(".".join(loc_split))

    return field_name, "top-level"
