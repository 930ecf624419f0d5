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

"""Sign bundles with the configured signing plugin."""

from typing import Optional

from craft_cli import emit

from porter import errors
from porter.config import DEFAULT_SIGNING_PLUGIN, Config

from .base import SIGNING_INTERFACE, SigningProtocol
from .loader import PluginConnection, PluginLoader, PluginTypeConfig
from .protocol import SigningClient

VERIFY_NOT_IMPLEMENTED = (
    "the current signing plugin does not support verifying signatures. You need "
    "to edit your porter configuration file and configure a different signing plugin"
)


def get_signing_plugin_type() -> PluginTypeConfig:
    return PluginTypeConfig(
        interface=SIGNING_INTERFACE,
        get_default_pluggable=lambda config: config.default_signing,
        get_pluggable=lambda config, name: config.get_signing_plugin(name),
        get_default_plugin=lambda config: (
            config.default_signing_plugin or DEFAULT_SIGNING_PLUGIN
        ),
        create_client=SigningClient,
    )


class Signer:
    """Plugin backed signer.

    The plugin is started on first use and stopped by ``close``.

    :param config: The porter configuration.
    :param loader: The plugin loader, one for ``config`` by default.
    """

    def __init__(self, config: Config, loader: Optional[PluginLoader] = None) -> None:
        self.config = config
        self.loader = loader if loader is not None else PluginLoader(config)
        self._plugin: Optional[SigningProtocol] = None
        self._conn: Optional[PluginConnection] = None

    def connect(self) -> SigningProtocol:
        if self._plugin is not None:
            return self._plugin

        conn = self.loader.load(get_signing_plugin_type())
        if not isinstance(conn.client, SigningProtocol):
            conn.close()
            raise errors.PluginError(
                f"the interface ({type(conn.client).__name__}) exposed by the "
                f"{conn} plugin is not a signing protocol"
            )
        self._conn = conn
        try:
            conn.client.connect()
        except errors.PluginError:
            self.close()
            raise
        self._plugin = conn.client
        return self._plugin

    def sign(self, ref: str) -> None:
        emit.debug(f"Signing {ref}")
        self.connect().sign(ref)

    def verify(self, ref: str) -> None:
        """Verify the signature of ``ref``.

        :raises PluginError: if the plugin cannot verify signatures or the
            signature is not valid.
        """
        emit.debug(f"Verifying {ref}")
        try:
            self.connect().verify(ref)
        except errors.PluginNotImplemented as err:
            raise errors.PluginError(f"{VERIFY_NOT_IMPLEMENTED}: {err}") from err

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        self._plugin = None
