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

"""gRPC clients for plugins running out of process.

Requests and responses are JSON documents sent through generic unary calls.
"""

import json
from typing import Any, Dict, Optional

import grpc
from craft_cli import emit
from overrides import overrides

from porter import errors

from .base import SBOMGeneratorProtocol, SigningProtocol

SIGNING_SERVICE = "plugins.SigningProtocol"
SBOM_GENERATOR_SERVICE = "plugins.SBOMGeneratorProtocol"


def _serialize(message: Dict[str, Any]) -> bytes:
    return json.dumps(message).encode()


def _deserialize(data: bytes) -> Dict[str, Any]:
    if not data:
        return {}
    return json.loads(data)


class _GRPCClient:
    def __init__(
        self, channel: grpc.Channel, service: str, timeout: Optional[float] = None
    ) -> None:
        self.channel = channel
        self.service = service
        self.timeout = timeout

    def call(self, method: str, request: Dict[str, Any]) -> Dict[str, Any]:
        """Invoke a method of the plugin.

        :raises PluginNotImplemented: if the plugin does not implement it.
        :raises PluginError: if the call fails.
        """
        path = f"/{self.service}/{method}"
        emit.debug(f"Calling plugin method {path}")
        stub = self.channel.unary_unary(
            path,
            request_serializer=_serialize,
            response_deserializer=_deserialize,
        )
        try:
            return stub(request, timeout=self.timeout)
        except grpc.RpcError as err:
            code = err.code() if isinstance(err, grpc.Call) else None
            if code == grpc.StatusCode.UNIMPLEMENTED:
                raise errors.PluginNotImplemented(method.lower()) from err
            details = err.details() if isinstance(err, grpc.Call) else str(err)
            raise errors.PluginError(
                f"plugin call {path} failed: {details}"
            ) from err
        except ValueError as err:
            raise errors.PluginError(
                f"invalid response from plugin call {path}: {err}"
            ) from err


class SigningClient(SigningProtocol):
    """Signing plugin reached over gRPC."""

    def __init__(self, channel: grpc.Channel, timeout: Optional[float] = None) -> None:
        self._client = _GRPCClient(channel, SIGNING_SERVICE, timeout)

    @overrides
    def connect(self) -> None:
        self._client.call("Connect", {})

    @overrides
    def sign(self, ref: str) -> None:
        self._client.call("Sign", {"ref": ref})

    @overrides
    def verify(self, ref: str) -> None:
        self._client.call("Verify", {"ref": ref})


class SBOMGeneratorClient(SBOMGeneratorProtocol):
    """SBOM generator plugin reached over gRPC."""

    def __init__(self, channel: grpc.Channel, timeout: Optional[float] = None) -> None:
        self._client = _GRPCClient(channel, SBOM_GENERATOR_SERVICE, timeout)

    @overrides
    def connect(self) -> None:
        self._client.call("Connect", {})

    @overrides
    def generate(self, ref: str, path: str, insecure_registry: bool) -> None:
        self._client.call(
            "Generate",
            {"ref": ref, "sbomPath": path, "insecureRegistry": insecure_registry},
        )
