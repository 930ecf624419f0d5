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

"""Constants used throughout Porter.

Paths are read through this module at call time so they can be redirected
as a group (the test suite points them into a temporary directory).
"""

from pathlib import Path

# Installer image layout
CNAB_DIR = Path("/cnab")
BUNDLE_PATH = Path("/cnab/bundle.json")
APP_DIR = Path("/cnab/app")
MANIFEST_PATH = Path("/cnab/app/porter.yaml")
MIXINS_DIR = Path("/cnab/app/mixins")
MIXIN_OUTPUTS_DIR = Path("/cnab/app/porter/outputs")
BUNDLE_OUTPUTS_DIR = Path("/cnab/app/outputs")
DEPENDENCIES_DIR = Path("/cnab/app/dependencies")
RELOCATION_MAPPING_PATH = Path("/cnab/app/relocation-mapping.json")
STATE_ARCHIVE_PATH = Path("/porter/state.tgz")

STATE_NAME = "porter-state"
STATE_ARCHIVE_PREFIX = "porter-state"

# Build output, relative to the bundle directory
LOCAL_CNAB_DIR = Path(".cnab")
LOCAL_BUNDLE_PATH = Path(".cnab/bundle.json")
LOCAL_MANIFEST_PATH = Path(".cnab/app/porter.yaml")
LOCAL_DOCKERFILE_PATH = Path(".cnab/Dockerfile")
DEFAULT_MANIFEST_NAME = "porter.yaml"

# Environment
ENV_INSTALLATION_NAMESPACE = "PORTER_INSTALLATION_NAMESPACE"
ENV_INSTALLATION_NAME = "PORTER_INSTALLATION_NAME"
ENV_BUNDLE_NAME = "PORTER_BUNDLE_NAME"
ENV_DEBUG = "PORTER_DEBUG"
ENV_CORRELATION_ID = "PORTER_CORRELATION_ID"
ENV_HOME = "PORTER_HOME"
ENV_VERBOSITY = "PORTER_VERBOSITY_LEVEL"
ENV_ACTION = "CNAB_ACTION"

# Actions
ACTION_INSTALL = "install"
ACTION_UPGRADE = "upgrade"
ACTION_UNINSTALL = "uninstall"
CORE_ACTIONS = (ACTION_INSTALL, ACTION_UPGRADE, ACTION_UNINSTALL)

# Subcommands every mixin understands; anything else goes through "invoke".
MIXIN_COMMANDS = ("install", "upgrade", "uninstall", "build", "schema", "version")

# Bundle descriptor
CNAB_SCHEMA_VERSION = "1.2.0"
STAMP_KEY = "sh.porter"
PORTER_INTERNAL = "porterInternal"
DEBUG_PARAMETER = "porter-debug"
GENERATED_BUNDLE_ID = "https://getporter.org/generated-bundle/"
WIRING_DEFINITION_ID = (
    "https://getporter.org/generated-bundle/#porter-parameter-source-definition"
)

# Manifests at or below this schema version use {{ }} template delimiters
LEGACY_TEMPLATE_SCHEMA_VERSION = "1.0.0-alpha.1"

SENSITIVE_MASK = "*******"
