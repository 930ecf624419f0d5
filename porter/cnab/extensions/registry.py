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

"""Required extension registry."""

import dataclasses
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from porter import errors

from . import dependencies, docker, file_parameters, parameter_sources
from .base import unused

if TYPE_CHECKING:
    from porter.cnab.bundle import Bundle


@dataclasses.dataclass(frozen=True)
class RequiredExtension:
    """A bundle extension Porter knows how to handle.

    :param shorthand: The short name used in porter.yaml.
    :param key: The key of the extension in the bundle.
    :param schema: The URL of the payload schema.
    :param reader: Reads the typed payload from a bundle.
    """

    shorthand: str
    key: str
    schema: str
    reader: Callable[["Bundle"], Any]


DEPENDENCIES = RequiredExtension(
    shorthand=dependencies.DEPENDENCIES_SHORTHAND,
    key=dependencies.DEPENDENCIES_KEY,
    schema=dependencies.DEPENDENCIES_SCHEMA,
    reader=dependencies.read_dependencies,
)
PARAMETER_SOURCES = RequiredExtension(
    shorthand=parameter_sources.PARAMETER_SOURCES_SHORTHAND,
    key=parameter_sources.PARAMETER_SOURCES_KEY,
    schema=parameter_sources.PARAMETER_SOURCES_SCHEMA,
    reader=parameter_sources.read_parameter_sources,
)
DOCKER = RequiredExtension(
    shorthand=docker.DOCKER_SHORTHAND,
    key=docker.DOCKER_KEY,
    schema=docker.DOCKER_SCHEMA,
    reader=docker.read_docker,
)
FILE_PARAMETERS = RequiredExtension(
    shorthand=file_parameters.FILE_PARAMETERS_SHORTHAND,
    key=file_parameters.FILE_PARAMETERS_KEY,
    schema=file_parameters.FILE_PARAMETERS_SCHEMA,
    reader=unused,
)

_EXTENSIONS: Dict[str, RequiredExtension] = {
    ext.key: ext
    for ext in (DEPENDENCIES, PARAMETER_SOURCES, DOCKER, FILE_PARAMETERS)
}

# Payload of each processed extension, keyed by extension key.
ProcessedExtensions = Dict[str, Any]


def get_extension_keys() -> List[str]:
    """Obtain the keys of the supported extensions."""
    return list(_EXTENSIONS.keys())


def get_supported_extension(name: str) -> RequiredExtension:
    """Obtain a supported extension given its key or shorthand.

    :param name: The extension key or shorthand.
    :return: The extension.
    :raises ExtensionError: If the extension is not supported.
    """
    try:
        return _EXTENSIONS[name]
    except KeyError as key_error:
        for ext in _EXTENSIONS.values():
            if ext.shorthand == name:
                return ext
        raise errors.ExtensionError(
            f"unsupported required extension: {name}"
        ) from key_error


def register(extension: RequiredExtension) -> None:
    """Register an extension.

    :param extension: the extension to register under its key.
    """
    _EXTENSIONS[extension.key] = extension


def unregister(key: str) -> None:
    """Unregister the extension with key ``key``.

    :raises KeyError: if key is not registered.
    """
    del _EXTENSIONS[key]


def process_required_extensions(bundle: "Bundle") -> ProcessedExtensions:
    """Read the payload of every extension the bundle requires.

    :raises ExtensionError: if an extension is unsupported or its payload
        cannot be read.
    """
    processed: ProcessedExtensions = {}
    for name in bundle.required_extensions:
        ext = get_supported_extension(name)
        try:
            processed[ext.key] = ext.reader(bundle)
        except errors.ExtensionError as err:
            raise errors.ExtensionError(
                f"unable to process extension: {ext.key}: {err}", details=err.details
            ) from err
    return processed


def supports_dependencies(bundle: "Bundle") -> bool:
    return bundle.supports_extension(dependencies.DEPENDENCIES_KEY)


def supports_parameter_sources(bundle: "Bundle") -> bool:
    return bundle.supports_extension(parameter_sources.PARAMETER_SOURCES_KEY)


def supports_docker(bundle: "Bundle") -> bool:
    return bundle.supports_extension(docker.DOCKER_KEY)


def supports_file_parameters(bundle: "Bundle") -> bool:
    return bundle.supports_extension(file_parameters.FILE_PARAMETERS_KEY)


def get_docker(
    processed: ProcessedExtensions,
) -> Tuple[Optional[docker.Docker], bool]:
    """Return the docker extension payload and whether it is required.

    :raises ExtensionError: if the processed payload is not a docker payload.
    """
    required = docker.DOCKER_KEY in processed
    value = processed.get(docker.DOCKER_KEY)
    if required and not isinstance(value, docker.Docker):
        raise errors.ExtensionError(
            f"unable to parse Docker extension config: {value!r}"
        )
    return value, required


def get_parameter_sources(
    processed: ProcessedExtensions,
) -> Tuple[parameter_sources.ParameterSources, bool]:
    """Return the parameter sources payload and whether it is required."""
    required = parameter_sources.PARAMETER_SOURCES_KEY in processed
    value = processed.get(parameter_sources.PARAMETER_SOURCES_KEY)
    if value is None:
        return parameter_sources.ParameterSources(), required
    if not isinstance(value, parameter_sources.ParameterSources):
        raise errors.ExtensionError(
            f"unable to parse Parameter Sources extension config: {value!r}"
        )
    return value, required
