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

"""The data the steps of a bundle are rendered against."""

from typing import Any, Dict, Mapping, Optional, Set

from craft_cli import emit

from porter import const, errors, utils
from porter.build.converter import (
    get_parameter_source_for_dependency,
    get_parameter_source_for_output,
)
from porter.cnab import Bundle
from porter.cnab import bundle as cnab_bundle
from porter.cnab.extensions import (
    DependencyOutputParameterSource,
    OutputParameterSource,
    get_parameter_sources,
    process_required_extensions,
)
from porter.manifest import Credential, Manifest, Parameter


class TemplateDataBuilder:
    """Build the ``bundle``, ``installation`` and ``env`` template data.

    The data is rebuilt before every step so the outputs of a step are seen
    by the next one. Every sensitive value met along the way is added to
    ``sensitive_values``, which only grows.

    :param environ: The process environment.
    :param action: The action being run.
    :param manifest: The bundle manifest.
    :param bundle: The bundle descriptor.
    :param dependencies: Descriptors of the dependencies, by alias.
    """

    def __init__(
        self,
        *,
        environ: Mapping[str, str],
        action: str,
        manifest: Manifest,
        bundle: Bundle,
        dependencies: Optional[Dict[str, Bundle]] = None,
    ) -> None:
        self.environ = environ
        self.action = action
        self.manifest = manifest
        self.bundle = bundle
        self.dependencies = dependencies or {}
        self.sensitive_values: Set[str] = set()

    def _set_sensitive(self, value: Optional[str]) -> None:
        if value:
            self.sensitive_values.add(value)

    def resolve_parameter(self, param: Parameter) -> Optional[str]:
        """Return the value of a parameter, or None if it has no value."""
        if param.path and not param.env:
            return param.path
        value = self.environ.get(param.env or utils.param_to_env_var(param.name))
        if value is None and param.has_default:
            value = cnab_bundle.write_parameter_to_string(param.default)
        return value

    def resolve_credential(self, cred: Credential) -> str:
        """Return the value of a credential.

        :raises PorterError: if the credential has no destination.
        """
        if cred.env:
            return self.environ.get(cred.env, "")
        if cred.path:
            return cred.path
        raise errors.PorterError(f"credential: {cred.name} is malformed")

    def build(self, step_outputs: Mapping[str, str]) -> Dict[str, Any]:
        """Return the template data.

        :param step_outputs: Outputs produced by the steps run so far.

        :raises PorterError: if a credential is malformed or the bundle
            extensions cannot be read.
        :raises MissingParameterSourceError: if a wiring parameter was not
            injected.
        """
        bun: Dict[str, Any] = {
            "name": self.manifest.name,
            "version": self.manifest.version,
            "description": self.manifest.description,
            "installerImage": self.manifest.image,
            "custom": self.manifest.custom,
        }
        data: Dict[str, Any] = {
            "bundle": bun,
            "installation": {
                "namespace": self.environ.get(const.ENV_INSTALLATION_NAMESPACE, ""),
                "name": self.environ.get(const.ENV_INSTALLATION_NAME, ""),
            },
            "env": dict(self.environ),
        }

        params: Dict[str, Any] = {}
        for param in self.manifest.parameters:
            if not param.applies_to(self.action):
                continue
            value = self.resolve_parameter(param)
            if value is None:
                emit.debug(f"Parameter {param.name} has no value, leaving it unset")
                continue
            if param.sensitive:
                self._set_sensitive(value)
            params[param.name] = value
        bun["parameters"] = params

        creds: Dict[str, Any] = {}
        for cred in self.manifest.credentials:
            value = self.resolve_credential(cred)
            self._set_sensitive(value)
            creds[cred.name] = value
        bun["credentials"] = creds

        deps: Dict[str, Any] = {}
        for alias, dep_bundle in self.dependencies.items():
            deps[alias] = {
                "name": dep_bundle.name,
                "version": dep_bundle.version,
                "description": dep_bundle.description or "",
            }
        bun["dependencies"] = deps

        outputs = dict(step_outputs)
        for name, value in outputs.items():
            output = self.manifest.get_output(name)
            if output is not None and not output.sensitive:
                continue
            self._set_sensitive(value)
        bun["outputs"] = outputs

        self._apply_parameter_sources(outputs, deps)

        bun["images"] = {
            alias: _image_data(image.model_dump(by_alias=True))
            for alias, image in self.manifest.images.items()
        }
        return data

    def _apply_parameter_sources(
        self, outputs: Dict[str, Any], deps: Dict[str, Any]
    ) -> None:
        processed = process_required_extensions(self.bundle)
        sources, _ = get_parameter_sources(processed)

        templated_outputs = set(self.manifest.get_templated_outputs())
        templated_dependency_outputs = set(
            self.manifest.get_templated_dependency_outputs()
        )
        for param_name, param_source in sources.items():
            param = self.bundle.parameters.get(param_name)
            if param is None or not param.applies_to(self.action):
                continue

            for source in param_source.list_sources_by_priority():
                if isinstance(source, DependencyOutputParameterSource):
                    ref = (source.dependency, source.name)
                    if ref not in templated_dependency_outputs:
                        continue
                    value = self._read_dependency_output(source)
                    dep = deps.setdefault(source.dependency, {})
                    dep.setdefault("outputs", {})[source.name] = value
                    if self._is_dependency_output_sensitive(source):
                        self._set_sensitive(value)

                elif isinstance(source, OutputParameterSource):
                    if source.name not in templated_outputs:
                        continue
                    if outputs.get(source.name):
                        continue
                    wiring = utils.param_to_env_var(
                        get_parameter_source_for_output(source.name)
                    )
                    value = self.environ.get(wiring)
                    if value is None:
                        raise errors.MissingParameterSourceError(source.name)
                    outputs[source.name] = value
                    output = self.manifest.get_output(source.name)
                    if output is not None and output.sensitive:
                        self._set_sensitive(value)

    def _read_dependency_output(self, source: DependencyOutputParameterSource) -> str:
        wiring = utils.param_to_env_var(
            get_parameter_source_for_dependency(source.dependency, source.name)
        )
        value = self.environ.get(wiring)
        if value is None:
            raise errors.MissingParameterSourceError(
                f"{source.dependency}.outputs.{source.name}"
            )
        return value

    def _is_dependency_output_sensitive(
        self, source: DependencyOutputParameterSource
    ) -> bool:
        dep_bundle = self.dependencies.get(source.dependency)
        if dep_bundle is None or source.name not in dep_bundle.outputs:
            return True
        return dep_bundle.is_output_sensitive(source.name)


def _image_data(image: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: value if isinstance(value, dict) else str(value)
        for key, value in image.items()
    }
