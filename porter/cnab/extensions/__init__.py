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

"""Well-known bundle extensions."""

from .dependencies import DEPENDENCIES_KEY, Dependencies, Dependency
from .docker import DOCKER_KEY, Docker
from .file_parameters import FILE_PARAMETERS_KEY
from .parameter_sources import (
    PARAMETER_SOURCES_KEY,
    SOURCE_TYPE_DEPENDENCY_OUTPUT,
    SOURCE_TYPE_OUTPUT,
    DependencyOutputParameterSource,
    OutputParameterSource,
    ParameterSource,
    ParameterSources,
)
from .registry import (
    RequiredExtension,
    get_docker,
    get_parameter_sources,
    get_supported_extension,
    process_required_extensions,
)

__all__ = [
    "DEPENDENCIES_KEY",
    "DOCKER_KEY",
    "FILE_PARAMETERS_KEY",
    "PARAMETER_SOURCES_KEY",
    "SOURCE_TYPE_DEPENDENCY_OUTPUT",
    "SOURCE_TYPE_OUTPUT",
    "Dependencies",
    "Dependency",
    "DependencyOutputParameterSource",
    "Docker",
    "OutputParameterSource",
    "ParameterSource",
    "ParameterSources",
    "RequiredExtension",
    "get_docker",
    "get_parameter_sources",
    "get_supported_extension",
    "process_required_extensions",
]
