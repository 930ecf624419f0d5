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

"""Generate SBOMs with the configured SBOM generator plugin."""

from typing import Optional

from craft_cli import emit

from porter import errors
from porter.config import DEFAULT_SBOM_GENERATOR_PLUGIN, Config

from .base import SBOM_GENERATOR_INTERFACE, SBOMGeneratorProtocol
from .loader import PluginConnection, PluginLoader, PluginTypeConfig
from .protocol import SBOMGeneratorClient


def get_sbom_generator_plugin_type() -> PluginTypeConfig:
    return PluginTypeConfig(
        interface=SBOM_GENERATOR_INTERFACE,
        get_default_pluggable=lambda config: config.default_sbom_generator,
        get_pluggable=lambda config, name: config.get_sbom_generator(name),
        get_default_plugin=lambda config: (
            config.default_sbom_generator_plugin or DEFAULT_SBOM_GENERATOR_PLUGIN
        ),
        create_client=SBOMGeneratorClient,
    )


class SBOMGenerator:
    """Plugin backed SBOM generator, started on first use.

    :param config: The porter configuration.
    :param loader: The plugin loader, one for ``config`` by default.
    """

    def __init__(self, config: Config, loader: Optional[PluginLoader] = None) -> None:
        self.config = config
        self.loader = loader if loader is not None else PluginLoader(config)
        self._plugin: Optional[SBOMGeneratorProtocol] = None
        self._conn: Optional[PluginConnection] = None

    def connect(self) -> SBOMGeneratorProtocol:
        if self._plugin is not None:
            return self._plugin

        conn = self.loader.load(get_sbom_generator_plugin_type())
        if not isinstance(conn.client, SBOMGeneratorProtocol):
            conn.close()
            raise errors.PluginError(
                f"the interface ({type(conn.client).__name__}) exposed by the "
                f"{conn} plugin is not an SBOM generator protocol"
            )
        self._conn = conn
        try:
            conn.client.connect()
        except errors.PluginError:
            self.close()
            raise
        self._plugin = conn.client
        return self._plugin

    def generate(self, ref: str, path: str, insecure_registry: bool = False) -> None:
        emit.debug(f"Generating SBOM for {ref} at {path}")
        self.connect().generate(ref, path, insecure_registry)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        self._plugin = None
