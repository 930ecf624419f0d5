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

"""Plugin protocols and keys."""

import abc
import dataclasses

from porter import errors

SIGNING_INTERFACE = "signing"
SBOM_GENERATOR_INTERFACE = "sbom-generator"

INTERNAL_BINARY = "porter"


@dataclasses.dataclass
class PluginKey:
    """Identify a plugin implementation, e.g. ``signing.porter.notation``.

    A key with a single part names a plugin built into porter.
    """

    binary: str
    implementation: str
    interface: str = ""
    is_internal: bool = False

    @classmethod
    def parse(cls, value: str) -> "PluginKey":
        """Parse a plugin key.

        :raises PluginError: if the key has too many parts.
        """
        parts = value.split(".")
        if len(parts) == 1:
            return cls(binary=INTERNAL_BINARY, implementation=parts[0], is_internal=True)
        if len(parts) == 2:
            return cls(binary=parts[0], implementation=parts[1])
        if len(parts) == 3:
            return cls(interface=parts[0], binary=parts[1], implementation=parts[2])
        raise errors.PluginError(
            f"invalid plugin key {value!r}, allowed format is "
            "[INTERFACE].BINARY.IMPLEMENTATION"
        )

    def __str__(self) -> str:
        return f"{self.interface}.{self.binary}.{self.implementation}"


class SigningProtocol(abc.ABC):
    """Sign and verify bundles and images."""

    def connect(self) -> None:
        """Prepare the plugin for use."""

    def close(self) -> None:
        """Release the resources held by the plugin."""

    @abc.abstractmethod
    def sign(self, ref: str) -> None:
        """Sign the artifact at ``ref``."""

    @abc.abstractmethod
    def verify(self, ref: str) -> None:
        """Verify the signature of the artifact at ``ref``.

        :raises PluginNotImplemented: if the plugin cannot verify signatures.
        """


class SBOMGeneratorProtocol(abc.ABC):
    """Generate software bills of materials."""

    def connect(self) -> None:
        """Prepare the plugin for use."""

    def close(self) -> None:
        """Release the resources held by the plugin."""

    @abc.abstractmethod
    def generate(self, ref: str, path: str, insecure_registry: bool) -> None:
        """Write the SBOM of the image at ``ref`` to ``path``."""
