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
from porter.config import Config
from porter.plugins import MockSigner, PluginConnection, PluginLoader, Signer
from porter.plugins.signing import VERIFY_NOT_IMPLEMENTED

REF = "localhost:5000/mybuns:v0.1.0"


@pytest.fixture
def signer():
    value = Signer(Config(default_signing_plugin="mock"))
    yield value
    value.close()


def test_sign(signer):
    signer.sign(REF)
    signer.sign("localhost:5000/mybuns-installer:v0.1.0")

    plugin = signer.connect()
    assert isinstance(plugin, MockSigner)
    assert plugin.connected
    assert plugin.signed == [REF, "localhost:5000/mybuns-installer:v0.1.0"]


def test_verify_not_implemented(signer):
    with pytest.raises(errors.PluginError) as raised:
        signer.verify(REF)

    assert str(raised.value) == (
        f"{VERIFY_NOT_IMPLEMENTED}: verify is not implemented by the plugin"
    )


def test_close(signer):
    plugin = signer.connect()

    signer.close()

    assert plugin.closed
    assert signer.connect() is not plugin


def test_wrong_interface(mocker):
    cleanup = mocker.Mock()
    loader = mocker.Mock(spec=PluginLoader)
    loader.load.return_value = PluginConnection(
        "signing.azure.keyvault", object(), cleanup
    )
    signer = Signer(Config(), loader)

    with pytest.raises(errors.PluginError) as raised:
        signer.sign(REF)

    assert str(raised.value) == (
        "the interface (object) exposed by the signing.azure.keyvault plugin is not "
        "a signing protocol"
    )
    cleanup.assert_called_once_with()


def test_connect_failure(mocker):
    plugin = MockSigner()
    mocker.patch.object(plugin, "connect", side_effect=errors.PluginError("boom"))
    cleanup = mocker.Mock()
    loader = mocker.Mock(spec=PluginLoader)
    loader.load.return_value = PluginConnection("signing.porter.mock", plugin, cleanup)
    signer = Signer(Config(), loader)

    with pytest.raises(errors.PluginError) as raised:
        signer.sign(REF)

    assert str(raised.value) == "boom"
    cleanup.assert_called_once_with()
    assert plugin.signed == []
