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
from porter.plugins import MockSBOMGenerator, MockSigner
from porter.plugins.builtin import (
    Cosign,
    CosignConfig,
    Notation,
    NotationConfig,
    Syft,
    get_builtin_plugin,
)

REF = "localhost:5000/mybuns:v0.1.0"


def test_notation_sign(fake_process):
    cmd = ["notation", "sign", REF, "--key", "mykey", "--insecure-registry"]
    fake_process.register_subprocess(cmd, stdout="Successfully signed\n")
    notation = get_builtin_plugin(
        "signing", "notation", {"key": "mykey", "insecureRegistry": True}
    )

    notation.sign(REF)

    assert isinstance(notation, Notation)
    assert fake_process.call_count(cmd) == 1


def test_notation_verify(fake_process):
    cmd = ["notation", "verify", REF]
    fake_process.register_subprocess(cmd)

    Notation(NotationConfig()).verify(REF)

    assert fake_process.call_count(cmd) == 1


def test_notation_failure(fake_process):
    fake_process.register_subprocess(
        ["notation", "verify", REF], returncode=1, stdout="signature not found\n"
    )

    with pytest.raises(errors.PluginError) as raised:
        Notation(NotationConfig()).verify(REF)

    assert str(raised.value) == "notation failed with exit code 1"
    assert raised.value.details == "signature not found"


def test_tool_not_found(mocker):
    mocker.patch(
        "subprocess.run",
        side_effect=FileNotFoundError(2, "No such file or directory", "notation"),
    )

    with pytest.raises(errors.PluginError) as raised:
        Notation(NotationConfig()).sign(REF)

    assert str(raised.value) == (
        "could not run notation: [Errno 2] No such file or directory: 'notation'"
    )


def test_cosign_sign(fake_process):
    cmd = [
        "cosign",
        "sign",
        REF,
        "--tlog-upload=false",
        "--key",
        "cosign.key",
        "--yes",
        "--registry-referrers-mode",
        "oci-1-1",
        "--allow-insecure-registry",
    ]
    fake_process.register_subprocess(cmd)
    cosign = get_builtin_plugin(
        "signing",
        "cosign",
        {
            "PrivateKey": "cosign.key",
            "registryMode": "oci-1-1",
            "insecureRegistry": True,
        },
    )

    cosign.sign(REF)

    assert isinstance(cosign, Cosign)
    assert fake_process.call_count(cmd) == 1


def test_cosign_verify(fake_process):
    cmd = [
        "cosign",
        "verify",
        "--key",
        "cosign.pub",
        REF,
        "--insecure-ignore-tlog",
        "--experimental-oci11",
    ]
    fake_process.register_subprocess(cmd)

    Cosign(CosignConfig(public_key="cosign.pub", registry_mode="oci-1-1")).verify(REF)

    assert fake_process.call_count(cmd) == 1


def test_syft_generate(fake_process, tmp_path):
    sbom = tmp_path / "sbom.json"
    cmd = ["syft", "scan", REF, "-o", f"spdx-json={sbom}"]
    fake_process.register_subprocess(cmd)

    Syft().generate(REF, str(sbom), True)

    assert fake_process.call_count(cmd) == 1


def test_syft_failure(fake_process, tmp_path):
    sbom = tmp_path / "sbom.json"
    fake_process.register_subprocess(
        ["syft", "scan", REF, "-o", f"spdx-json={sbom}"], returncode=2
    )

    with pytest.raises(errors.PluginError) as raised:
        get_builtin_plugin("sbom-generator", "syft", {}).generate(REF, str(sbom), False)

    assert str(raised.value) == "syft failed with exit code 2"
    assert raised.value.details is None


def test_unknown_builtin_plugin():
    with pytest.raises(errors.PluginError) as raised:
        get_builtin_plugin("signing", "syft", {})

    assert str(raised.value) == "porter has no built-in signing plugin named 'syft'"


def test_invalid_builtin_plugin_config():
    with pytest.raises(errors.PluginError) as raised:
        get_builtin_plugin("signing", "notation", {"insecureRegistry": "maybe"})

    assert str(raised.value).startswith(
        "invalid configuration for the notation plugin: "
    )


def test_mock_signer():
    signer = get_builtin_plugin("signing", "mock", {})
    signer.connect()
    signer.sign(REF)

    assert isinstance(signer, MockSigner)
    assert signer.connected
    assert signer.signed == [REF]
    with pytest.raises(errors.PluginNotImplemented):
        signer.verify(REF)


def test_mock_sbom_generator(tmp_path):
    sbom = tmp_path / "sbom.json"
    generator = get_builtin_plugin("sbom-generator", "mock", {})

    generator.generate(REF, str(sbom), False)

    assert isinstance(generator, MockSBOMGenerator)
    assert generator.generated == [REF]
    assert sbom.read_text() == "{}"
