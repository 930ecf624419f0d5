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
from porter.manifest import MappedImage, Step, unmarshal_manifest


def test_validate_manifest(make_manifest):
    manifest = make_manifest()

    manifest.validate_manifest()

    assert manifest.reference == "localhost:5000/mybuns:v0.1.0"
    assert manifest.image == "localhost:5000/mybuns-installer:v0.1.0"
    assert manifest.mixin_names == ["exec"]


def test_validate_manifest_with_reference(make_manifest):
    manifest = make_manifest(registry="", reference="ghcr.io/getporter/mybuns:v1")

    manifest.validate_manifest()

    assert manifest.reference == "ghcr.io/getporter/mybuns:v1"
    assert manifest.image == "ghcr.io/getporter/mybuns-installer:v1"


def test_validate_manifest_normalizes_version(make_manifest):
    manifest = make_manifest(version="v1.2")

    manifest.validate_manifest()

    assert manifest.version == "1.2.0"
    assert manifest.reference == "localhost:5000/mybuns:v1.2.0"


def test_validate_manifest_build_metadata_in_tag(make_manifest):
    manifest = make_manifest(version="0.1.0+build.1")

    manifest.validate_manifest()

    assert manifest.reference == "localhost:5000/mybuns:v0.1.0_build.1"


@pytest.mark.parametrize(
    "kwargs,message",
    [
        ({"name": ""}, "bundle name must be set"),
        ({"registry": ""}, "a registry or reference value must be provided"),
        ({"version": "latest"}, 'version "latest" is not a valid semver value'),
        (
            {"dockerfile": "build/Dockerfile"},
            "Dockerfile template cannot be named 'Dockerfile' because that is the "
            "filename generated during porter build",
        ),
        (
            {"reference": "localhost:5000/mybuns@sha256:" + "a" * 64},
            "unable to derive docker tag from bundle reference "
            "'localhost:5000/mybuns@sha256:" + "a" * 64 + "': invalid bundle tag "
            "format, must be an OCI image tag",
        ),
    ],
)
def test_validate_manifest_metadata_errors(make_manifest, kwargs, message):
    manifest = make_manifest(**kwargs)

    with pytest.raises(errors.ManifestValidationError) as raised:
        manifest.validate_manifest()

    assert str(raised.value) == message


def test_validate_manifest_collects_problems(make_manifest):
    manifest = make_manifest(mixins=[])

    with pytest.raises(errors.ManifestValidationError) as raised:
        manifest.validate_manifest()

    assert str(raised.value) == (
        "3 errors occurred:\n"
        "* no mixins declared\n"
        '* validation of action "install" failed: mixin (exec) was not declared\n'
        '* validation of action "uninstall" failed: mixin (exec) was not declared'
    )


def test_validate_manifest_requires_uninstall(make_manifest):
    manifest = make_manifest(uninstall=None)

    with pytest.raises(errors.ManifestValidationError) as raised:
        manifest.validate_manifest()

    assert str(raised.value) == "no uninstall action defined"


@pytest.mark.parametrize(
    "step,message",
    [
        (None, "found an empty step"),
        ({}, "no mixin specified"),
        (
            {"exec": {"description": "a"}, "helm3": {"description": "b"}},
            "more than one mixin specified",
        ),
        ({"exec": {"command": "bash"}}, "no description specified"),
        (
            {"exec": {"description": 42}},
            "invalid description type (int) for mixin step (exec)",
        ),
    ],
)
def test_validate_step_errors(make_manifest, step, message):
    manifest = make_manifest(upgrade=[step])

    with pytest.raises(errors.ManifestValidationError) as raised:
        manifest.validate_manifest()

    assert str(raised.value) == f'validation of action "upgrade" failed: {message}'


def test_validate_custom_action(make_manifest):
    manifest = make_manifest(status=[{"helm3": {"description": "Get status"}}])

    with pytest.raises(errors.ManifestValidationError) as raised:
        manifest.validate_manifest()

    assert str(raised.value) == (
        'validation of action "status" failed: mixin (helm3) was not declared'
    )


@pytest.mark.parametrize(
    "parameters,message",
    [
        (
            [{"name": "kubeconfig", "type": "file"}],
            "no destination path supplied for parameter kubeconfig",
        ),
        (
            [{"name": "port", "type": "integer", "default": "abc"}],
            "encountered an error validating the default value 'abc' for "
            "parameter 'port': 'abc' is not of type 'integer'",
        ),
        (
            [{"name": "port", "type": "integer", "minimum": "zero"}],
            "encountered an error while validating definition for parameter "
            "'port': 'zero' is not of type 'number'",
        ),
    ],
)
def test_validate_parameters(make_manifest, parameters, message):
    manifest = make_manifest(parameters=parameters)

    with pytest.raises(errors.ManifestValidationError) as raised:
        manifest.validate_manifest()

    assert str(raised.value) == message


def test_validate_file_output_requires_path(make_manifest):
    manifest = make_manifest(outputs=[{"name": "kubeconfig", "type": "file"}])

    with pytest.raises(errors.ManifestValidationError) as raised:
        manifest.validate_manifest()

    assert str(raised.value) == "no path supplied for output kubeconfig"


def test_validate_dependency_version_with_tag(make_manifest):
    manifest = make_manifest(
        dependencies={"mysql": {"tag": "getporter/mysql:v0.1.0", "versions": ["1.x"]}}
    )

    with pytest.raises(errors.ManifestValidationError) as raised:
        manifest.validate_manifest()

    assert str(raised.value) == (
        "reference for dependency mysql can specify only a repository, without a "
        "digest or tag, when a version constraint is specified"
    )


def test_unmarshal_invalid_model():
    with pytest.raises(errors.ManifestValidationError) as raised:
        unmarshal_manifest(b"name: mybuns\nparameters:\n  - type: string\n")

    assert str(raised.value) == (
        "Bad porter.yaml content:\n"
        "- field 'name' required in 'parameters[0]' configuration"
    )


def test_unmarshal_invalid_custom_action():
    with pytest.raises(errors.ManifestValidationError) as raised:
        unmarshal_manifest(b"name: mybuns\nzombies: true\n")

    assert str(raised.value) == (
        "unsupported property set or a custom action is defined incorrectly: zombies"
    )


def test_unmarshal_not_a_mapping():
    with pytest.raises(errors.ManifestValidationError) as raised:
        unmarshal_manifest(b"- install\n")

    assert str(raised.value) == (
        "Bad porter.yaml content:\n- expected a mapping at the top level"
    )


def test_unmarshal_ignores_deprecated_keys(make_manifest):
    manifest = make_manifest(tag="localhost:5000/mybuns:v1")

    assert manifest.reference == ""
    assert manifest.custom_actions == {}


def test_custom_actions(make_manifest):
    manifest = make_manifest(
        status=[{"exec": {"description": "Get status", "command": "./status.sh"}}],
        customActions={"status": {"description": "Print status"}},
    )

    assert list(manifest.custom_actions) == ["status"]
    assert manifest.custom_action_definitions["status"].description == "Print status"
    assert manifest.get_steps("status")[0].mixin_name == "exec"
    assert manifest.get_steps("upgrade") is None
    assert manifest.get_steps("missing") is None


def test_parameter_from_output_apply_to(make_manifest):
    manifest = make_manifest(
        upgrade=[{"exec": {"description": "Upgrade", "command": "./upgrade.sh"}}],
        status=[{"exec": {"description": "Status", "command": "./status.sh"}}],
        parameters=[
            {"name": "tfstate", "type": "file", "path": "tfstate.json",
             "source": {"output": "tfstate"}},
            {"name": "token", "source": {"output": "token"}, "default": "none"},
            {"name": "user", "source": {"output": "user"}, "applyTo": ["install"]},
        ],
    )

    assert manifest.get_parameter("tfstate").apply_to == ["status", "uninstall", "upgrade"]
    assert manifest.get_parameter("token").apply_to is None
    assert manifest.get_parameter("user").apply_to == ["install"]


def test_templated_outputs(make_manifest):
    manifest = make_manifest(
        upgrade=[
            {
                "exec": {
                    "description": "Upgrade",
                    "command": "./upgrade.sh",
                    "arguments": [
                        "${ bundle.outputs.token }",
                        "${ bundle.dependencies.mysql.outputs.db-password }",
                        "${ bundle.parameters.region }",
                    ],
                }
            }
        ]
    )

    assert manifest.get_templated_outputs() == ["token"]
    assert manifest.get_templated_dependency_outputs() == [("mysql", "db-password")]


def test_mixin_declarations(make_manifest):
    manifest = make_manifest(
        mixins=["exec", {"helm3": {"clientVersion": "v3.12.0"}}],
    )

    assert manifest.mixin_names == ["exec", "helm3"]
    assert manifest.get_mixin("exec").config is None
    assert manifest.get_mixin("helm3").config == {"clientVersion": "v3.12.0"}
    assert manifest.get_mixin("az") is None


def test_mixin_declaration_with_many_entries(make_manifest):
    with pytest.raises(errors.ManifestValidationError) as raised:
        make_manifest(mixins=[{"helm3": {}, "exec": {}}])

    assert str(raised.value) == (
        "Bad porter.yaml content:\n"
        "- mixin declaration contained more than one entry (in field 'mixins[0]')"
    )


@pytest.mark.parametrize(
    "image,expected",
    [
        ({"repository": "nginx"}, "nginx:latest"),
        ({"repository": "nginx", "tag": "1.25"}, "nginx:1.25"),
        (
            {"repository": "nginx", "tag": "1.25", "digest": "sha256:abc"},
            "nginx@sha256:abc",
        ),
    ],
)
def test_mapped_image_to_reference(image, expected):
    assert MappedImage.model_validate(image).to_reference() == expected


def test_step_properties():
    step = Step(
        data={
            "helm3": {
                "description": "Install MySQL",
                "outputs": [{"name": "password", "secret": "mysql"}, "bad"],
            }
        }
    )

    assert step.mixin_name == "helm3"
    assert step.description == "Install MySQL"
    assert step.outputs == [{"name": "password", "secret": "mysql"}]


def test_step_without_body():
    step = Step(data={"exec": None})

    assert step.body == {}
    assert step.description == ""
    assert step.outputs == []
