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

import json

import grpc
import pytest

from porter import errors
from porter.plugins.protocol import SBOMGeneratorClient, SigningClient

REF = "localhost:5000/mybuns:v0.1.0"


class FakeRpcError(grpc.RpcError, grpc.Call):
    """An RPC failure as raised by a gRPC stub."""

    def __init__(self, code, details):
        super().__init__()
        self._code = code
        self._details = details

    def code(self):
        return self._code

    def details(self):
        return self._details

    def initial_metadata(self):
        return None

    def trailing_metadata(self):
        return None

    def is_active(self):
        return False

    def time_remaining(self):
        return None

    def cancel(self):
        return False

    def add_callback(self, callback):
        return False


@pytest.fixture
def channel(mocker):
    value = mocker.Mock(spec=grpc.Channel)
    value.unary_unary.return_value.return_value = {}
    return value


def test_sign(channel):
    SigningClient(channel, 5).sign(REF)

    method = channel.unary_unary.call_args
    assert method.args == ("/plugins.SigningProtocol/Sign",)
    stub = channel.unary_unary.return_value
    stub.assert_called_once_with({"ref": REF}, timeout=5)


def test_connect(channel):
    SigningClient(channel).connect()

    assert channel.unary_unary.call_args.args == ("/plugins.SigningProtocol/Connect",)
    channel.unary_unary.return_value.assert_called_once_with({}, timeout=None)


def test_generate(channel):
    SBOMGeneratorClient(channel, 10).generate(REF, "/tmp/sbom.json", True)

    assert channel.unary_unary.call_args.args == (
        "/plugins.SBOMGeneratorProtocol/Generate",
    )
    channel.unary_unary.return_value.assert_called_once_with(
        {"ref": REF, "sbomPath": "/tmp/sbom.json", "insecureRegistry": True},
        timeout=10,
    )


def test_messages_are_json(channel):
    SigningClient(channel).verify(REF)

    kwargs = channel.unary_unary.call_args.kwargs
    serialized = kwargs["request_serializer"]({"ref": REF})
    assert serialized == json.dumps({"ref": REF}).encode()
    assert kwargs["response_deserializer"](b'{"ok": true}') == {"ok": True}
    assert kwargs["response_deserializer"](b"") == {}


def test_not_implemented(channel):
    channel.unary_unary.return_value.side_effect = FakeRpcError(
        grpc.StatusCode.UNIMPLEMENTED, "unknown method Verify"
    )

    with pytest.raises(errors.PluginNotImplemented) as raised:
        SigningClient(channel).verify(REF)

    assert str(raised.value) == "verify is not implemented by the plugin"


def test_call_failure(channel):
    channel.unary_unary.return_value.side_effect = FakeRpcError(
        grpc.StatusCode.UNAVAILABLE, "connection refused"
    )

    with pytest.raises(errors.PluginError) as raised:
        SigningClient(channel).sign(REF)

    assert str(raised.value) == (
        "plugin call /plugins.SigningProtocol/Sign failed: connection refused"
    )


def test_invalid_response(channel):
    channel.unary_unary.return_value.side_effect = ValueError("Expecting value")

    with pytest.raises(errors.PluginError) as raised:
        SigningClient(channel).sign(REF)

    assert str(raised.value) == (
        "invalid response from plugin call /plugins.SigningProtocol/Sign: "
        "Expecting value"
    )
