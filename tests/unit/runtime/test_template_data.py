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
from porter.build import ManifestConverter
from porter.cnab import Bundle
from porter.runtime import TemplateDataBuilder

ENVIRON = {
    "PORTER_INSTALLATION_NAME": "wordpress",
    "PORTER_INSTALLATION_NAMESPACE": "dev",
    "MYSQL_USER": "admin",
    "PASSWORD": "s3cret",
    "GITHUB_TOKEN": "ghp_abc",
}


@pytest.fixture
def make_builder(make_manifest):
    def _make(*, environ=None, action="install", dependencies=None, **kwargs):
        manifest = make_manifest(**kwargs)
        manifest.validate_manifest()
        bun = ManifestConverter(manifest).to_bundle()
        return TemplateDataBuilder(
            environ=ENVIRON if environ is None else environ,
            action=action,
            manifest=manifest,
            bundle=bun,
            dependencies=dependencies,
        )

    return _make


def _upgrade_step(*arguments):
    return [
        {
            "exec": {
                "description": "Upgrade",
                "command": "./helpers.sh",
                "arguments": list(arguments),
            }
        }
    ]


def test_build_metadata(make_builder):
    builder = make_builder(custom={"app": {"color": "blue"}})

    data = builder.build({})

    bun = data["bundle"]
    assert bun["name"] == "mybuns"
    assert bun["version"] == "0.1.0"
    assert bun["description"] == "An example bundle"
    assert bun["installerImage"] == "localhost:5000/mybuns-installer:v0.1.0"
    assert bun["custom"] == {"app": {"color": "blue"}}
    assert bun["parameters"] == {}
    assert bun["credentials"] == {}
    assert bun["dependencies"] == {}
    assert bun["outputs"] == {}
    assert bun["images"] == {}
    assert data["installation"] == {"namespace": "dev", "name": "wordpress"}
    assert data["env"] == ENVIRON
    assert builder.sensitive_values == set()


def test_build_parameters(make_builder):
    builder = make_builder(
        parameters=[
            {"name": "mysql-user", "type": "string", "default": "root", "env": "MYSQL_USER"},
            {"name": "password", "sensitive": True},
            {"name": "port", "type": "integer", "default": 3306},
            {"name": "kubeconfig", "type": "file", "path": "/home/nonroot/.kube/config"},
            {"name": "region"},
            {"name": "cleanup", "applyTo": ["uninstall"]},
        ]
    )

    data = builder.build({})

    assert data["bundle"]["parameters"] == {
        "mysql-user": "admin",
        "password": "s3cret",
        "port": "3306",
        "kubeconfig": "/home/nonroot/.kube/config",
    }
    assert builder.sensitive_values == {"s3cret"}


def test_build_credentials(make_builder):
    builder = make_builder(
        credentials=[
            {"name": "github-token", "env": "GITHUB_TOKEN"},
            {"name": "kubeconfig", "path": "/home/nonroot/.kube/config"},
            {"name": "missing", "env": "MISSING_TOKEN"},
        ]
    )

    data = builder.build({})

    assert data["bundle"]["credentials"] == {
        "github-token": "ghp_abc",
        "kubeconfig": "/home/nonroot/.kube/config",
        "missing": "",
    }
    assert builder.sensitive_values == {"ghp_abc", "/home/nonroot/.kube/config"}


def test_build_malformed_credential(make_builder):
    builder = make_builder(credentials=[{"name": "github-token"}])

    with pytest.raises(errors.PorterError) as raised:
        builder.build({})

    assert str(raised.value) == "credential: github-token is malformed"


def test_build_step_outputs(make_builder):
    builder = make_builder(
        outputs=[
            {"name": "user", "type": "string"},
            {"name": "password", "type": "string", "sensitive": True},
        ]
    )

    data = builder.build({"user": "admin", "password": "topsecret", "token": "abc"})

    assert data["bundle"]["outputs"] == {
        "user": "admin",
        "password": "topsecret",
        "token": "abc",
    }
    assert builder.sensitive_values == {"topsecret", "abc"}


def test_build_sensitive_values_only_grow(make_builder):
    builder = make_builder(outputs=[{"name": "password", "sensitive": True}])

    builder.build({"password": "first"})
    builder.build({"password": "second"})

    assert builder.sensitive_values == {"first", "second"}


def test_build_images(make_builder):
    builder = make_builder(
        images={"nginx": {"repository": "nginx", "tag": "1.25", "labels": {"a": "b"}}}
    )

    data = builder.build({})

    image = data["bundle"]["images"]["nginx"]
    assert image["repository"] == "nginx"
    assert image["tag"] == "1.25"
    assert image["digest"] == ""
    assert image["size"] == "0"
    assert image["labels"] == {"a": "b"}


def test_build_wired_output(make_builder):
    builder = make_builder(
        action="upgrade",
        environ={**ENVIRON, "PORTER_TOKEN_OUTPUT": "tok-123"},
        outputs=[{"name": "token", "type": "string", "sensitive": True}],
        upgrade=_upgrade_step("${ bundle.outputs.token }"),
    )

    data = builder.build({})

    assert data["bundle"]["outputs"] == {"token": "tok-123"}
    assert builder.sensitive_values == {"tok-123"}


def test_build_step_output_wins_over_wired_output(make_builder):
    builder = make_builder(
        action="upgrade",
        environ={**ENVIRON, "PORTER_TOKEN_OUTPUT": "tok-123"},
        outputs=[{"name": "token", "type": "string"}],
        upgrade=_upgrade_step("${ bundle.outputs.token }"),
    )

    data = builder.build({"token": "fresh"})

    assert data["bundle"]["outputs"] == {"token": "fresh"}


def test_build_wired_output_missing(make_builder):
    builder = make_builder(
        action="upgrade",
        outputs=[{"name": "token", "type": "string"}],
        upgrade=_upgrade_step("${ bundle.outputs.token }"),
    )

    with pytest.raises(errors.MissingParameterSourceError) as raised:
        builder.build({})

    assert raised.value.output_name == "token"
    assert str(raised.value) == "no parameter source was injected for output token"


def _mysql_bundle(write_only):
    return Bundle.unmarshal(
        {
            "schemaVersion": "1.2.0",
            "name": "mysql",
            "version": "0.1.0",
            "description": "MySQL database",
            "outputs": {"db-password": {"definition": "db-password-output"}},
            "definitions": {
                "db-password-output": {"type": "string", "writeOnly": write_only}
            },
        }
    )


@pytest.mark.parametrize(
    "write_only,sensitive",
    [(True, {"hunter2"}), (False, set())],
)
def test_build_dependency_output(make_builder, write_only, sensitive):
    builder = make_builder(
        action="upgrade",
        environ={**ENVIRON, "PORTER_MYSQL_DB_PASSWORD_DEP_OUTPUT": "hunter2"},
        dependencies={"mysql": _mysql_bundle(write_only)},
        upgrade=_upgrade_step("${ bundle.dependencies.mysql.outputs.db-password }"),
    )

    data = builder.build({})

    assert data["bundle"]["dependencies"] == {
        "mysql": {
            "name": "mysql",
            "version": "0.1.0",
            "description": "MySQL database",
            "outputs": {"db-password": "hunter2"},
        }
    }
    assert builder.sensitive_values == sensitive


def test_build_unknown_dependency_output_is_sensitive(make_builder):
    builder = make_builder(
        action="upgrade",
        environ={**ENVIRON, "PORTER_MYSQL_DB_PASSWORD_DEP_OUTPUT": "hunter2"},
        upgrade=_upgrade_step("${ bundle.dependencies.mysql.outputs.db-password }"),
    )

    data = builder.build({})

    assert data["bundle"]["dependencies"] == {
        "mysql": {"outputs": {"db-password": "hunter2"}}
    }
    assert builder.sensitive_values == {"hunter2"}


def test_build_dependency_output_missing(make_builder):
    builder = make_builder(
        action="upgrade",
        upgrade=_upgrade_step("${ bundle.dependencies.mysql.outputs.db-password }"),
    )

    with pytest.raises(errors.MissingParameterSourceError) as raised:
        builder.build({})

    assert raised.value.output_name == "mysql.outputs.db-password"
