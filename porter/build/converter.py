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

"""Conversion of a porter manifest into a CNAB bundle descriptor."""

import copy
from typing import Any, Dict, List, Mapping, Optional

from craft_cli import emit

from porter import const, errors, utils
from porter.cnab import bundle as cnab
from porter.cnab.extensions import dependencies as deps_ext
from porter.cnab.extensions import file_parameters, parameter_sources, registry
from porter.manifest import Manifest, Output, Parameter

from . import stamp

STATE_DESCRIPTION = (
    "Supports persisting state for bundles. Porter internal parameter that "
    "should not be set manually."
)

# Well-known custom actions and how they behave
_DEFAULT_ACTIONS = {
    "dry-run": cnab.Action(
        description=(
            "Execute the installation in a dry-run mode, allowing to see what "
            "would happen with the given set of parameter values"
        ),
        modifies=False,
        stateless=True,
    ),
    "help": cnab.Action(
        description="Print an help message to the standard output",
        modifies=False,
        stateless=True,
    ),
    "log": cnab.Action(
        description="Print logs of the installed system to the standard output",
        modifies=False,
        stateless=False,
    ),
    "status": cnab.Action(
        description="Print a human readable status message to the standard output",
        modifies=False,
        stateless=False,
    ),
    "status+json": cnab.Action(
        description=(
            "Print a json payload describing the detailed status with the "
            "following the CNAB status schema"
        ),
        modifies=False,
        stateless=False,
    ),
}


def get_parameter_source_for_output(output: str) -> str:
    """Return the name of the parameter wiring up a bundle output."""
    return f"porter-{output}-output"


def get_parameter_source_for_dependency(dependency: str, output: str) -> str:
    """Return the name of the parameter wiring up a dependency output."""
    return f"porter-{dependency}-{output}-dep-output"


def generate_default_action(action: str) -> cnab.Action:
    """Return the definition of a custom action that was not declared."""
    name = action[len("io.cnab.") :] if action.startswith("io.cnab.") else action
    default = _DEFAULT_ACTIONS.get(name)
    if default is not None:
        return default.model_copy()
    return cnab.Action(description=action, modifies=True, stateless=False)


def lookup_extension_key(name: str) -> str:
    """Return the key of a required extension given its key or shorthand."""
    try:
        return registry.get_supported_extension(name).key
    except errors.ExtensionError:
        return name


class ManifestConverter:
    """Generate a bundle descriptor from a manifest.

    :param manifest: The validated manifest.
    :param mixin_versions: Installed mixin versions, by mixin name.
    :param image_digests: Digests of built images, by image reference.
    """

    def __init__(
        self,
        manifest: Manifest,
        *,
        mixin_versions: Optional[Mapping[str, str]] = None,
        image_digests: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.manifest = manifest
        self.mixin_versions = dict(mixin_versions or {})
        self.image_digests = dict(image_digests or {})

    def to_bundle(self) -> cnab.Bundle:
        """Build the bundle descriptor."""
        porter_stamp = stamp.generate_stamp(self.manifest, self.mixin_versions)

        bun = cnab.Bundle(
            schema_version=const.CNAB_SCHEMA_VERSION,
            name=self.manifest.name,
            version=self.manifest.version,
            description=self.manifest.description or None,
            maintainers=[
                cnab.Maintainer(
                    name=item.name or None,
                    email=item.email or None,
                    url=item.url or None,
                )
                for item in self.manifest.maintainers
            ],
            invocation_images=[
                cnab.InvocationImage(
                    image=self.manifest.image,
                    image_type="docker",
                    content_digest=self.image_digests.get(self.manifest.image),
                )
            ],
        )
        bun.actions = self._generate_custom_action_definitions()
        bun.parameters = self._generate_parameters(bun.definitions)
        bun.outputs = self._generate_outputs(bun.definitions)
        bun.credentials = self._generate_credentials()
        bun.images = self._generate_images()
        bun.custom = self._generate_custom_extensions(bun)
        bun.required_extensions = self._generate_required_extensions(bun)
        bun.custom[const.STAMP_KEY] = porter_stamp.marshal()
        return bun

    def _generate_custom_action_definitions(self) -> Dict[str, cnab.Action]:
        if not self.manifest.custom_actions:
            return {}

        actions = {
            name: cnab.Action(
                description=definition.description or None,
                modifies=definition.modifies,
                stateless=definition.stateless,
            )
            for name, definition in self.manifest.custom_action_definitions.items()
        }
        for name in self.manifest.custom_actions:
            if name not in actions:
                actions[name] = generate_default_action(name)
        return actions

    @staticmethod
    def _add_definition(
        name: str, kind: str, schema: Dict[str, Any], definitions: Dict[str, Any]
    ) -> str:
        def_name = name if name.endswith(kind) else f"{name}-{kind}"
        schema = copy.deepcopy(schema)
        if schema.get("type") == "file":
            schema["type"] = "string"
            schema["contentEncoding"] = "base64"
        definitions[def_name] = schema
        return def_name

    def _parameter_schema(self, param: Parameter) -> Dict[str, Any]:
        schema = param.get_schema()
        if param.sensitive:
            schema["writeOnly"] = True
        if not schema.get("type"):
            schema["type"] = "file" if param.path else "string"
            emit.debug(
                f"Defaulting the type of parameter {param.name} to {schema['type']}"
            )
        return schema

    def _generate_parameters(
        self, definitions: Dict[str, Any]
    ) -> Dict[str, cnab.Parameter]:
        params: Dict[str, cnab.Parameter] = {}
        for param in self.manifest.parameters:
            if param.env or param.path:
                destination = cnab.Location(
                    env=param.env or None, path=utils.resolve_path(param.path) or None
                )
            else:
                destination = cnab.Location(env=utils.param_to_env_var(param.name))

            params[param.name] = cnab.Parameter(
                definition=self._add_definition(
                    param.name, "parameter", self._parameter_schema(param), definitions
                ),
                description=param.description or None,
                apply_to=param.apply_to,
                required=not param.has_default,
                destination=destination,
            )

        params[const.DEBUG_PARAMETER] = cnab.Parameter(
            definition=self._add_definition(
                const.DEBUG_PARAMETER,
                "parameter",
                {
                    "$id": f"{const.GENERATED_BUNDLE_ID}#porter-debug",
                    "$comment": const.PORTER_INTERNAL,
                    "description": (
                        "Print debug information from Porter when executing the bundle"
                    ),
                    "type": "boolean",
                    "default": False,
                },
                definitions,
            ),
            description="Print debug information from Porter when executing the bundle",
            destination=cnab.Location(env=const.ENV_DEBUG),
        )

        if self.manifest.state:
            params[const.STATE_NAME] = cnab.Parameter(
                definition=self._add_definition(
                    const.STATE_NAME, "state", _state_schema(), definitions
                ),
                description=STATE_DESCRIPTION,
                destination=cnab.Location(path=const.STATE_ARCHIVE_PATH.as_posix()),
            )
        return params

    def _output_schema(self, output: Output) -> Dict[str, Any]:
        schema = output.get_schema()
        if output.sensitive:
            schema["writeOnly"] = True
        if not schema.get("type"):
            schema["type"] = "file" if output.path else "string"
            emit.debug(
                f"Defaulting the type of output {output.name} to {schema['type']}"
            )
        return schema

    def _generate_outputs(self, definitions: Dict[str, Any]) -> Dict[str, cnab.Output]:
        outputs: Dict[str, cnab.Output] = {}
        for output in self.manifest.outputs:
            outputs[output.name] = cnab.Output(
                definition=self._add_definition(
                    output.name, "output", self._output_schema(output), definitions
                ),
                description=output.description or None,
                apply_to=output.apply_to,
                path=(const.BUNDLE_OUTPUTS_DIR / output.name).as_posix(),
            )

        if self.manifest.state:
            outputs[const.STATE_NAME] = cnab.Output(
                definition=self._add_definition(
                    const.STATE_NAME, "state", _state_schema(), definitions
                ),
                description=STATE_DESCRIPTION,
                path=(const.BUNDLE_OUTPUTS_DIR / const.STATE_NAME).as_posix(),
            )
        return outputs

    def _generate_credentials(self) -> Dict[str, cnab.Credential]:
        return {
            cred.name: cnab.Credential(
                description=cred.description or None,
                required=cred.required,
                env=cred.env or None,
                path=utils.resolve_path(cred.path) or None,
                apply_to=cred.apply_to,
            )
            for cred in self.manifest.credentials
        }

    def _generate_images(self) -> Dict[str, cnab.Image]:
        return {
            alias: cnab.Image(
                image=image.to_reference(),
                image_type=image.image_type or "docker",
                content_digest=image.digest or None,
                media_type=image.media_type or None,
                size=image.size or None,
                labels=image.labels or None,
                description=image.description or None,
            )
            for alias, image in self.manifest.images.items()
        }

    def _generate_dependencies(self) -> Optional[deps_ext.Dependencies]:
        if not self.manifest.dependencies:
            return None

        requires = {}
        for alias, dep in self.manifest.dependencies.items():
            version = None
            if dep.versions or dep.allow_prereleases:
                version = deps_ext.DependencyVersion(
                    ranges=list(dep.versions), prereleases=dep.allow_prereleases
                )
            requires[alias] = deps_ext.Dependency(bundle=dep.tag, version=version)
        return deps_ext.Dependencies(
            sequence=list(self.manifest.dependencies), requires=requires
        )

    def _generate_parameter_sources(
        self, bun: cnab.Bundle
    ) -> parameter_sources.ParameterSources:
        sources = parameter_sources.ParameterSources()
        for param in self.manifest.parameters:
            if param.source is None or not param.source.output:
                continue
            if param.source.dependency:
                sources.set_parameter_from_dependency_output(
                    param.name, param.source.dependency, param.source.output
                )
            else:
                sources.set_parameter_from_output(param.name, param.source.output)

        if self.manifest.state:
            sources.set_parameter_from_output(const.STATE_NAME, const.STATE_NAME)

        for output_name in self.manifest.get_templated_outputs():
            wiring_name = get_parameter_source_for_output(output_name)
            definition: Dict[str, Any] = {}
            if output_name in bun.outputs:
                definition = copy.deepcopy(
                    bun.definitions.get(bun.outputs[output_name].definition, {})
                )
            self._add_wiring_parameter(
                bun,
                wiring_name,
                f"Wires up the {output_name} output for use as a parameter. "
                "Porter internal parameter that should not be set manually.",
                definition,
            )
            sources.set_parameter_from_output(wiring_name, output_name)

        for dependency, output_name in self.manifest.get_templated_dependency_outputs():
            wiring_name = get_parameter_source_for_dependency(dependency, output_name)
            self._add_wiring_parameter(
                bun,
                wiring_name,
                f"Wires up the {dependency} dependency {output_name} output for use "
                "as a parameter. Porter internal parameter that should not be set "
                "manually.",
                {},
            )
            sources.set_parameter_from_dependency_output(
                wiring_name, dependency, output_name
            )
        return sources

    @staticmethod
    def _add_wiring_parameter(
        bun: cnab.Bundle, name: str, description: str, definition: Dict[str, Any]
    ) -> None:
        definition["$id"] = const.WIRING_DEFINITION_ID
        definition["$comment"] = const.PORTER_INTERNAL
        bun.definitions[name] = definition
        bun.parameters[name] = cnab.Parameter(
            definition=name,
            description=description,
            required=False,
            destination=cnab.Location(env=utils.param_to_env_var(name)),
        )

    def _generate_custom_extensions(self, bun: cnab.Bundle) -> Dict[str, Any]:
        custom: Dict[str, Any] = {file_parameters.FILE_PARAMETERS_KEY: {}}
        custom.update(copy.deepcopy(self.manifest.custom))

        dependencies = self._generate_dependencies()
        if dependencies is not None:
            custom[deps_ext.DEPENDENCIES_KEY] = dependencies.marshal()

        sources = self._generate_parameter_sources(bun)
        if len(sources) > 0:
            custom[parameter_sources.PARAMETER_SOURCES_KEY] = sources.marshal()

        for ext in self.manifest.required:
            custom[lookup_extension_key(ext.name)] = ext.config or {}
        return custom

    def _generate_required_extensions(self, bun: cnab.Bundle) -> List[str]:
        required = [file_parameters.FILE_PARAMETERS_KEY]
        if deps_ext.has_dependencies(bun):
            required.append(deps_ext.DEPENDENCIES_KEY)
        if parameter_sources.has_parameter_sources(bun):
            required.append(parameter_sources.PARAMETER_SOURCES_KEY)
        for ext in self.manifest.required:
            required.append(lookup_extension_key(ext.name))
        return list(dict.fromkeys(required))


def _state_schema() -> Dict[str, Any]:
    return {
        "$id": f"{const.GENERATED_BUNDLE_ID}#porter-state",
        "$comment": const.PORTER_INTERNAL,
        "description": STATE_DESCRIPTION,
        "type": "string",
        "contentEncoding": "base64",
    }
