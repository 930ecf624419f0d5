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

"""Porter configuration.

Settings are layered: defaults, then ``$PORTER_HOME/config.yaml``, then
``PORTER_*`` environment variables.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import pydantic
from craft_application.util import strtobool
from craft_cli import emit
from pydantic import ConfigDict
from pydantic.alias_generators import to_camel

from porter import const, errors, yaml_utils
from porter.manifest.models import format_pydantic_errors

CONFIG_FILE_NAME = "config.yaml"

# Environment variables that override a configuration field
_ENV_OVERRIDES = {
    "PORTER_MIXINS_DIR": "mixins_dir",
    "PORTER_PLUGINS_DIR": "plugins_dir",
    "PORTER_DEBUG": "debug",
    "PORTER_DEFAULT_SIGNING": "default_signing",
    "PORTER_DEFAULT_SIGNING_PLUGIN": "default_signing_plugin",
    "PORTER_DEFAULT_SBOM_GENERATOR": "default_sbom_generator",
    "PORTER_DEFAULT_SBOM_GENERATOR_PLUGIN": "default_sbom_generator_plugin",
    "PORTER_PLUGIN_START_TIMEOUT": "plugin_start_timeout",
    "PORTER_PLUGIN_STOP_TIMEOUT": "plugin_stop_timeout",
    "PORTER_PLUGIN_TIMEOUT": "plugin_timeout",
    "PORTER_REGISTRY_TIMEOUT": "registry_timeout",
}

DEFAULT_SIGNING_PLUGIN = "notation"
DEFAULT_SBOM_GENERATOR_PLUGIN = "syft"


class ConfigModel(pydantic.BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class PluginConfig(ConfigModel):
    """A named plugin configuration.

    :param name: The name the configuration is selected by.
    :param plugin: The plugin key, e.g. ``signing.notation``.
    :param config: Configuration passed to the plugin when it starts.
    """

    name: str
    plugin: str
    config: Dict[str, Any] = pydantic.Field(default_factory=dict)


class Config(ConfigModel):
    """Porter configuration."""

    home: Path = pydantic.Field(default_factory=lambda: Path.home() / ".porter")
    mixins_dir: Optional[Path] = None
    plugins_dir: Optional[Path] = None
    debug: bool = False
    default_signing: str = ""
    default_signing_plugin: str = ""
    default_sbom_generator: str = ""
    default_sbom_generator_plugin: str = ""
    signing: List[PluginConfig] = pydantic.Field(default_factory=list)
    sbom_generators: List[PluginConfig] = pydantic.Field(default_factory=list)
    plugin_start_timeout: float = 1.0
    plugin_stop_timeout: float = 0.1
    plugin_timeout: float = 30.0
    registry_timeout: float = 30.0

    @pydantic.field_validator("debug", mode="before")
    @classmethod
    def _parse_debug(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return strtobool(value)
            except ValueError:
                return False
        return value

    @pydantic.model_validator(mode="after")
    def _set_directories(self) -> "Config":
        if self.mixins_dir is None:
            self.mixins_dir = self.home / "mixins"
        if self.plugins_dir is None:
            self.plugins_dir = self.home / "plugins"
        return self

    @classmethod
    def unmarshal(cls, data: Dict[str, Any]) -> "Config":
        """Create a configuration from dictionary data.

        :raises PorterError: if the data is not a valid configuration.
        """
        try:
            return cls.model_validate(data)
        except pydantic.ValidationError as err:
            raise errors.PorterError(
                format_pydantic_errors(err.errors(), file_name=CONFIG_FILE_NAME)
            ) from err

    def get_signing_plugin(self, name: str) -> Optional[PluginConfig]:
        for entry in self.signing:
            if entry.name == name:
                return entry
        return None

    def get_sbom_generator(self, name: str) -> Optional[PluginConfig]:
        for entry in self.sbom_generators:
            if entry.name == name:
                return entry
        return None


def get_home(environ: Optional[Mapping[str, str]] = None) -> Path:
    if environ is None:
        environ = os.environ
    home = environ.get(const.ENV_HOME)
    if home:
        return Path(home)
    return Path.home() / ".porter"


def load_config(environ: Optional[Mapping[str, str]] = None) -> Config:
    """Load the configuration for the current environment.

    :raises PorterError: if the configuration file is invalid.
    """
    if environ is None:
        environ = os.environ

    home = get_home(environ)
    data: Dict[str, Any] = {}
    config_file = home / CONFIG_FILE_NAME
    if config_file.is_file():
        emit.debug(f"Loading configuration from {str(config_file)!r}")
        with config_file.open(encoding="utf-8") as file:
            data = yaml_utils.safe_load(file)

    data["home"] = str(home)
    for env_name, field_name in _ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value:
            data.pop(to_camel(field_name), None)
            data[field_name] = value

    return Config.unmarshal(data)
