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

"""Find, start and connect to plugins."""

import dataclasses
import json
import os
import select
import subprocess
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

import grpc
from craft_cli import emit
from typing_extensions import Final

from porter import errors
from porter.config import Config, PluginConfig

from . import builtin
from .base import PluginKey

# Handshake shared by porter and its plugins
MAGIC_COOKIE_KEY: Final = "PORTER"
MAGIC_COOKIE_VALUE: Final = "bbc2dd71-def4-4311-906e-e98dc27208ce"
CORE_PROTOCOL_VERSION: Final = 1


@dataclasses.dataclass
class PluginTypeConfig:
    """How a type of plugin is selected and talked to.

    :param interface: The plugin interface, e.g. ``signing``.
    :param get_default_pluggable: Name of the configured plugin entry to use.
    :param get_pluggable: Look up a named plugin entry.
    :param get_default_plugin: Plugin key used when no entry is selected.
    :param create_client: Build the protocol client over a gRPC channel.
    :param protocol_version: The application protocol version.
    """

    interface: str
    get_default_pluggable: Callable[[Config], str]
    get_pluggable: Callable[[Config, str], Optional[PluginConfig]]
    get_default_plugin: Callable[[Config], str]
    create_client: Callable[[grpc.Channel, float], Any]
    protocol_version: int = 1


@dataclasses.dataclass
class Handshake:
    """The line a plugin prints once it is ready to serve."""

    core_protocol_version: int
    app_protocol_version: int
    network: str
    address: str
    protocol: str

    @classmethod
    def parse(cls, line: str) -> "Handshake":
        """Parse a handshake line.

        :raises PluginError: if the line is not a handshake.
        """
        parts = line.strip().split("|")
        if len(parts) < 5:
            raise errors.PluginError(f"unrecognized plugin handshake: {line.strip()!r}")
        try:
            core, app = int(parts[0]), int(parts[1])
        except ValueError as err:
            raise errors.PluginError(
                f"unrecognized plugin handshake: {line.strip()!r}"
            ) from err
        return cls(
            core_protocol_version=core,
            app_protocol_version=app,
            network=parts[2],
            address=parts[3],
            protocol=parts[4],
        )

    @property
    def target(self) -> str:
        if self.network == "unix":
            return f"unix:{self.address}"
        return self.address


class PluginConnection:
    """A connection to a plugin, closable more than once.

    :param key: The plugin key.
    :param client: The protocol implementation to call.
    :param cleanup: Called once when the connection is closed.
    """

    def __init__(
        self, key: str, client: Any, cleanup: Optional[Callable[[], None]] = None
    ) -> None:
        self.key = key
        self.client = client
        self._cleanup = cleanup

    def close(self) -> None:
        if self._cleanup is not None:
            cleanup, self._cleanup = self._cleanup, None
            cleanup()

    def __str__(self) -> str:
        return self.key


class PluginLoader:
    """Select the configured plugin for a plugin type and connect to it.

    :param config: The porter configuration.
    :param environ: Environment of the plugin processes.
    """

    def __init__(self, config: Config, environ: Optional[Dict[str, str]] = None) -> None:
        self.config = config
        self.environ = dict(os.environ if environ is None else environ)

    def select_plugin(
        self, plugin_type: PluginTypeConfig
    ) -> Tuple[PluginKey, Dict[str, Any]]:
        """Return the key and configuration of the plugin to use.

        :raises PluginError: if the named plugin entry is not configured.
        """
        plugin_key = ""
        plugin_config: Dict[str, Any] = {}

        name = plugin_type.get_default_pluggable(self.config)
        if name:
            entry = plugin_type.get_pluggable(self.config, name)
            if entry is None:
                raise errors.PluginError(
                    f"the {plugin_type.interface} plugin {name!r} is not defined "
                    "in the porter configuration"
                )
            plugin_key = entry.plugin
            plugin_config = entry.config
            emit.debug(f"Selected configured plugin {name} ({plugin_key})")

        if not plugin_key:
            plugin_key = plugin_type.get_default_plugin(self.config)
            emit.debug(f"Selected default plugin {plugin_key}")

        key = PluginKey.parse(plugin_key)
        key.interface = plugin_type.interface
        return key, plugin_config

    def load(self, plugin_type: PluginTypeConfig) -> PluginConnection:
        """Start the selected plugin and connect to it.

        :raises PluginError: if the plugin cannot be started or reached.
        """
        key, plugin_config = self.select_plugin(plugin_type)
        if key.is_internal:
            client = builtin.get_builtin_plugin(
                plugin_type.interface, key.implementation, plugin_config
            )
            return PluginConnection(str(key), client, client.close)
        return self._start(key, plugin_config, plugin_type)

    def get_plugin_path(self, binary: str) -> Path:
        assert self.config.plugins_dir is not None
        return self.config.plugins_dir / binary / binary

    def _start(
        self, key: PluginKey, plugin_config: Dict[str, Any], plugin_type: PluginTypeConfig
    ) -> PluginConnection:
        path = self.get_plugin_path(key.binary)
        if not path.is_file():
            raise errors.PluginError(
                f"the {key.binary} plugin is not installed",
                details=f"expected an executable at {path}",
                resolution=f"Install the {key.binary} plugin into the porter plugins directory.",
            )

        env = dict(self.environ)
        env[MAGIC_COOKIE_KEY] = MAGIC_COOKIE_VALUE
        env["PLUGIN_PROTOCOL_VERSIONS"] = str(plugin_type.protocol_version)

        args = [str(path), "run", str(key)]
        emit.debug(f"Starting plugin: {' '.join(args)}")
        try:
            proc = subprocess.Popen(  # pylint: disable=consider-using-with
                args,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=env,
                text=True,
            )
        except OSError as err:
            raise errors.PluginError(f"could not start the {key} plugin: {err}") from err

        def _stop() -> None:
            emit.debug(f"Stopping plugin {key}")
            proc.terminate()
            try:
                proc.wait(timeout=self.config.plugin_stop_timeout)
            except subprocess.TimeoutExpired:
                emit.debug("Plugin stop timeout was exceeded, killing the plugin process")
                proc.kill()
                proc.wait()

        assert proc.stdin is not None
        assert proc.stdout is not None
        try:
            proc.stdin.write(json.dumps(plugin_config))
            proc.stdin.close()
            ready, _, _ = select.select(
                [proc.stdout], [], [], self.config.plugin_start_timeout
            )
            if not ready:
                raise errors.PluginError(
                    f"timeout while waiting for the {key} plugin to start"
                )
            handshake = self._check_handshake(proc.stdout.readline(), plugin_type)
        except errors.PluginError:
            _stop()
            raise
        except OSError as err:
            _stop()
            raise errors.PluginError(f"could not start the {key} plugin: {err}") from err

        channel = grpc.insecure_channel(handshake.target)
        try:
            grpc.channel_ready_future(channel).result(
                timeout=self.config.plugin_start_timeout
            )
        except grpc.FutureTimeoutError as err:
            channel.close()
            _stop()
            raise errors.PluginError(f"could not connect to the {key} plugin") from err

        def _cleanup() -> None:
            channel.close()
            _stop()

        client = plugin_type.create_client(channel, self.config.plugin_timeout)
        return PluginConnection(str(key), client, _cleanup)

    @staticmethod
    def _check_handshake(line: str, plugin_type: PluginTypeConfig) -> Handshake:
        if not line:
            raise errors.PluginError("the plugin exited before completing the handshake")
        handshake = Handshake.parse(line)
        if handshake.core_protocol_version != CORE_PROTOCOL_VERSION:
            raise errors.PluginError(
                f"incompatible core plugin protocol version "
                f"{handshake.core_protocol_version}, expected {CORE_PROTOCOL_VERSION}"
            )
        if handshake.app_protocol_version != plugin_type.protocol_version:
            raise errors.PluginError(
                f"incompatible {plugin_type.interface} plugin protocol version "
                f"{handshake.app_protocol_version}, expected {plugin_type.protocol_version}"
            )
        if handshake.protocol != "grpc":
            raise errors.PluginError(
                f"unsupported plugin protocol {handshake.protocol!r}"
            )
        return handshake
