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

"""Plugins built into porter.

The signing and SBOM plugins drive the notation, cosign and syft command line
tools. The mock plugins record what they were asked to do.
"""

import os
import subprocess
from typing import Any, Callable, Dict, List, Optional

import pydantic
from craft_cli import emit
from overrides import overrides

from porter import errors

from .base import (
    SBOM_GENERATOR_INTERFACE,
    SIGNING_INTERFACE,
    SBOMGeneratorProtocol,
    SigningProtocol,
)


class PluginConfigModel(pydantic.BaseModel):
    """Plugin configuration, keys are matched without separators or case."""

    model_config = pydantic.ConfigDict(
        alias_generator=lambda field: field.replace("_", ""),
        populate_by_name=True,
        extra="ignore",
    )

    @pydantic.model_validator(mode="before")
    @classmethod
    def _lowercase_keys(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {str(key).lower(): item for key, item in value.items()}
        return value


def _run_tool(args: List[str], env: Optional[Dict[str, str]] = None) -> str:
    emit.debug(f"Running {' '.join(args)}")
    try:
        proc = subprocess.run(
            args,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            check=True,
            env=env,
        )
    except OSError as err:
        raise errors.PluginError(f"could not run {args[0]}: {err}") from err
    except subprocess.CalledProcessError as err:
        raise errors.PluginError(
            f"{args[0]} failed with exit code {err.returncode}",
            details=err.stdout.strip() if err.stdout else None,
        ) from err
    return proc.stdout


class NotationConfig(PluginConfigModel):
    key: str = ""
    insecure_registry: bool = False


class Notation(SigningProtocol):
    """Sign with the notation command line tool."""

    def __init__(self, config: NotationConfig) -> None:
        self.config = config

    @overrides
    def sign(self, ref: str) -> None:
        emit.progress(f"Notation signing {ref}")
        args = ["notation", "sign", ref]
        if self.config.key:
            args.extend(["--key", self.config.key])
        if self.config.insecure_registry:
            args.append("--insecure-registry")
        emit.debug(_run_tool(args))

    @overrides
    def verify(self, ref: str) -> None:
        emit.progress(f"Notation verifying {ref}")
        args = ["notation", "verify", ref]
        if self.config.insecure_registry:
            args.append("--insecure-registry")
        emit.debug(_run_tool(args))


class CosignConfig(PluginConfigModel):
    public_key: str = ""
    private_key: str = ""
    registry_mode: str = ""
    experimental: bool = False
    insecure_registry: bool = False


class Cosign(SigningProtocol):
    """Sign with the cosign command line tool."""

    def __init__(self, config: CosignConfig) -> None:
        self.config = config

    @overrides
    def sign(self, ref: str) -> None:
        emit.progress(f"Cosign signing {ref}")
        args = [
            "cosign",
            "sign",
            ref,
            "--tlog-upload=false",
            "--key",
            self.config.private_key,
            "--yes",
        ]
        if self.config.registry_mode:
            args.extend(["--registry-referrers-mode", self.config.registry_mode])
        if self.config.insecure_registry:
            args.append("--allow-insecure-registry")
        env = dict(os.environ)
        if self.config.experimental:
            env["COSIGN_EXPERIMENTAL"] = "1"
        emit.debug(_run_tool(args, env))

    @overrides
    def verify(self, ref: str) -> None:
        emit.progress(f"Cosign verifying {ref}")
        args = [
            "cosign",
            "verify",
            "--key",
            self.config.public_key,
            ref,
            "--insecure-ignore-tlog",
        ]
        if self.config.registry_mode == "oci-1-1":
            args.append("--experimental-oci11")
        if self.config.insecure_registry:
            args.append("--allow-insecure-registry")
        emit.debug(_run_tool(args))


class Syft(SBOMGeneratorProtocol):
    """Generate SPDX documents with the syft command line tool."""

    @overrides
    def generate(self, ref: str, path: str, insecure_registry: bool) -> None:
        emit.progress(f"Generating SBOM for {ref}")
        env = dict(os.environ)
        if insecure_registry:
            env["SYFT_REGISTRY_INSECURE_SKIP_TLS_VERIFY"] = "true"
            env["SYFT_REGISTRY_INSECURE_USE_HTTP"] = "true"
        _run_tool(["syft", "scan", ref, "-o", f"spdx-json={path}"], env)


class MockSigner(SigningProtocol):
    """Signer that records the references it signs."""

    def __init__(self) -> None:
        self.signed: List[str] = []
        self.connected = False
        self.closed = False

    @overrides
    def connect(self) -> None:
        self.connected = True

    @overrides
    def close(self) -> None:
        self.closed = True

    @overrides
    def sign(self, ref: str) -> None:
        self.signed.append(ref)

    @overrides
    def verify(self, ref: str) -> None:
        raise errors.PluginNotImplemented("verify")


class MockSBOMGenerator(SBOMGeneratorProtocol):
    """SBOM generator that records its calls and writes an empty document."""

    def __init__(self) -> None:
        self.generated: List[str] = []

    @overrides
    def generate(self, ref: str, path: str, insecure_registry: bool) -> None:
        self.generated.append(ref)
        with open(path, "w", encoding="utf-8") as sbom:
            sbom.write("{}")


def _notation(config: Dict[str, Any]) -> SigningProtocol:
    return Notation(NotationConfig.model_validate(config))


def _cosign(config: Dict[str, Any]) -> SigningProtocol:
    return Cosign(CosignConfig.model_validate(config))


_BUILTIN_PLUGINS: Dict[str, Dict[str, Callable[[Dict[str, Any]], Any]]] = {
    SIGNING_INTERFACE: {
        "notation": _notation,
        "cosign": _cosign,
        "mock": lambda config: MockSigner(),
    },
    SBOM_GENERATOR_INTERFACE: {
        "syft": lambda config: Syft(),
        "mock": lambda config: MockSBOMGenerator(),
    },
}


def get_builtin_plugin(interface: str, implementation: str, config: Dict[str, Any]):
    """Instantiate a plugin built into porter.

    :raises PluginError: if there is no such plugin or its config is invalid.
    """
    factory = _BUILTIN_PLUGINS.get(interface, {}).get(implementation)
    if factory is None:
        raise errors.PluginError(
            f"porter has no built-in {interface} plugin named {implementation!r}"
        )
    try:
        return factory(config)
    except pydantic.ValidationError as err:
        raise errors.PluginError(
            f"invalid configuration for the {implementation} plugin: {err}"
        ) from err
