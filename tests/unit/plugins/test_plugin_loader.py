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

import pytest

from porter import errors
from porter.config import Config, PluginConfig
from porter.plugins import Handshake, MockSigner, PluginConnection, PluginLoader
from porter.plugins.signing import get_signing_plugin_type


@pytest.fixture
def plugin_type():
    return get_signing_plugin_type()


def test_select_default_plugin(plugin_type):
    loader = PluginLoader(Config())

    key, config = loader.select_plugin(plugin_type)

    assert str(key) == "signing.porter.notation"
    assert key.is_internal
    assert config == {}


def test_select_default_plugin_from_config(plugin_type):
    loader = PluginLoader(Config(default_signing_plugin="azure.keyvault"))

    key, config = loader.select_plugin(plugin_type)

    assert str(key) == "signing.azure.keyvault"
    assert not key.is_internal


def test_select_configured_plugin(plugin_type):
    config = Config(
        default_signing="mysigner",
        signing=[
            PluginConfig(
                name="mysigner", plugin="azure.keyvault", config={"vault": "myvault"}
            )
        ],
    )
    loader = PluginLoader(config)

    key, plugin_config = loader.select_plugin(plugin_type)

    assert str(key) == "signing.azure.keyvault"
    assert plugin_config == {"vault": "myvault"}


def test_select_configured_plugin_missing(plugin_type):
    loader = PluginLoader(Config(default_signing="mysigner"))

    with pytest.raises(errors.PluginError) as raised:
        loader.select_plugin(plugin_type)

    assert str(raised.value) == (
        "the signing plugin 'mysigner' is not defined in the porter configuration"
    )


def test_load_internal_plugin(plugin_type):
    loader = PluginLoader(Config(default_signing_plugin="mock"))

    conn = loader.load(plugin_type)

    assert isinstance(conn.client, MockSigner)
    assert str(conn) == "signing.porter.mock"
    conn.close()
    assert conn.client.closed
    conn.close()


def test_connection_closes_once(mocker):
    cleanup = mocker.Mock()
    conn = PluginConnection("signing.azure.keyvault", object(), cleanup)

    conn.close()
    conn.close()

    assert cleanup.call_count == 1


def test_load_plugin_not_installed(tmp_path, plugin_type):
    config = Config(home=tmp_path, default_signing_plugin="azure.keyvault")
    loader = PluginLoader(config)

    with pytest.raises(errors.PluginError) as raised:
        loader.load(plugin_type)

    assert str(raised.value) == "the azure plugin is not installed"
    assert raised.value.details == (
        f"expected an executable at {tmp_path / 'plugins' / 'azure' / 'azure'}"
    )


def test_load_plugin_cannot_start(tmp_path, plugin_type, mocker):
    plugin = tmp_path / "plugins" / "azure" / "azure"
    plugin.parent.mkdir(parents=True)
    plugin.write_text("#!/bin/sh\n")
    plugin.chmod(0o755)
    mocker.patch(
        "subprocess.Popen", side_effect=PermissionError(13, "Permission denied")
    )
    config = Config(home=tmp_path, default_signing_plugin="azure.keyvault")
    loader = PluginLoader(config)

    with pytest.raises(errors.PluginError) as raised:
        loader.load(plugin_type)

    assert str(raised.value) == (
        "could not start the signing.azure.keyvault plugin: "
        "[Errno 13] Permission denied"
    )


def test_handshake_parse():
    handshake = Handshake.parse("1|1|unix|/tmp/plugin123|grpc\n")

    assert handshake == Handshake(
        core_protocol_version=1,
        app_protocol_version=1,
        network="unix",
        address="/tmp/plugin123",
        protocol="grpc",
    )
    assert handshake.target == "unix:/tmp/plugin123"


def test_handshake_tcp_target():
    assert Handshake.parse("1|1|tcp|127.0.0.1:1234|grpc").target == "127.0.0.1:1234"


@pytest.mark.parametrize("line", ["hello world\n", "a|b|unix|/tmp/x|grpc"])
def test_handshake_parse_invalid(line):
    with pytest.raises(errors.PluginError) as raised:
        Handshake.parse(line)

    assert str(raised.value) == f"unrecognized plugin handshake: {line.strip()!r}"


@pytest.mark.parametrize(
    "line,message",
    [
        ("", "the plugin exited before completing the handshake"),
        (
            "2|1|unix|/tmp/x|grpc",
            "incompatible core plugin protocol version 2, expected 1",
        ),
        (
            "1|3|unix|/tmp/x|grpc",
            "incompatible signing plugin protocol version 3, expected 1",
        ),
        ("1|1|unix|/tmp/x|netrpc", "unsupported plugin protocol 'netrpc'"),
    ],
)
def test_check_handshake_errors(plugin_type, line, message):
    with pytest.raises(errors.PluginError) as raised:
        PluginLoader._check_handshake(line, plugin_type)

    assert str(raised.value) == message


def test_check_handshake(plugin_type):
    handshake = PluginLoader._check_handshake("1|1|unix|/tmp/x|grpc\n", plugin_type)

    assert handshake.address == "/tmp/x"
