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

import io
from pathlib import Path

import pytest
import yaml

from porter import errors
from porter.context import Context
from porter.mixins import MixinRunner
from porter.runtime import PorterRuntime, read_mixin_outputs

GZIP_HEADER = b"\x1f\x8b\x08\x00\xff"


@pytest.fixture
def context():
    return Context(
        environ={"PORTER_INSTALLATION_NAME": "wordpress", "REGION": "eastus"},
        stdout=io.StringIO(),
        stderr=io.StringIO(),
    )


@pytest.fixture
def fake_runner(mocker):
    return mocker.Mock(spec=MixinRunner)


@pytest.fixture
def runtime(context, fake_runner):
    return PorterRuntime(context, fake_runner)


@pytest.fixture
def manifest(make_manifest, write_bundle):
    def _make(**kwargs):
        value = make_manifest(**kwargs)
        write_bundle(value)
        return value

    return _make


def test_read_mixin_outputs(cnab_dirs):
    cnab_dirs.MIXIN_OUTPUTS_DIR.mkdir(parents=True)
    (cnab_dirs.MIXIN_OUTPUTS_DIR / "user").write_text("admin")
    (cnab_dirs.MIXIN_OUTPUTS_DIR / "nested").mkdir()

    assert read_mixin_outputs() == {"user": "admin"}
    assert not (cnab_dirs.MIXIN_OUTPUTS_DIR / "user").exists()


def test_read_mixin_outputs_no_directory(cnab_dirs):
    assert read_mixin_outputs() == {}


def test_read_mixin_outputs_binary(cnab_dirs):
    cnab_dirs.MIXIN_OUTPUTS_DIR.mkdir(parents=True)
    (cnab_dirs.MIXIN_OUTPUTS_DIR / "archive").write_bytes(GZIP_HEADER)

    outputs = read_mixin_outputs()

    assert outputs["archive"].encode("utf-8", errors="surrogateescape") == GZIP_HEADER


def test_load_manifest_skips_validation(runtime, porter_yaml, cnab_dirs):
    porter_yaml(registry="")
    cnab_dirs.MANIFEST_PATH.write_bytes(Path("porter.yaml").read_bytes())

    loaded = runtime.load_manifest()

    assert loaded.name == "mybuns"
    assert loaded.registry == ""


def test_execute(runtime, fake_runner, manifest, cnab_dirs, emitter):
    def _write_output(cmd):
        (cnab_dirs.MIXIN_OUTPUTS_DIR / "user").write_text("admin")

    fake_runner.run.side_effect = _write_output
    value = manifest(
        outputs=[{"name": "user", "type": "string"}],
        parameters=[{"name": "region", "type": "string"}],
        install=[
            {
                "exec": {
                    "description": "Install Hello World",
                    "command": "./helpers.sh",
                    "arguments": ["install", "${ bundle.parameters.region }"],
                }
            }
        ],
    )

    runtime.execute("install", value)

    assert fake_runner.run.call_count == 1
    cmd = fake_runner.run.call_args.args[0]
    assert cmd.name == "exec"
    assert cmd.command == "install"
    assert cmd.runtime is True
    assert yaml.safe_load(cmd.input) == {
        "install": [
            {
                "exec": {
                    "description": "Install Hello World",
                    "command": "./helpers.sh",
                    "arguments": ["install", "eastus"],
                }
            }
        ]
    }
    assert (cnab_dirs.BUNDLE_OUTPUTS_DIR / "user").read_text() == "admin"
    assert not (cnab_dirs.MIXIN_OUTPUTS_DIR / "user").exists()
    emitter.assert_message(
        "executing install action from mybuns (installation: wordpress)"
    )
    emitter.assert_progress("Install Hello World")
    emitter.assert_message("execution completed successfully!")


def test_execute_outputs_feed_next_step(
    runtime, fake_runner, manifest, cnab_dirs, context
):
    context.environ["PORTER_TOKEN_OUTPUT"] = "stale"

    def _write_output(cmd):
        if "first" in cmd.input:
            (cnab_dirs.MIXIN_OUTPUTS_DIR / "token").write_text("tok-123")

    fake_runner.run.side_effect = _write_output
    value = manifest(
        install=[
            {"exec": {"description": "first", "command": "./helpers.sh"}},
            {
                "exec": {
                    "description": "second",
                    "command": "./helpers.sh",
                    "arguments": ["${ bundle.outputs.token }"],
                }
            },
        ],
    )

    runtime.execute("install", value)

    second = yaml.safe_load(fake_runner.run.call_args_list[1].args[0].input)
    assert second["install"][0]["exec"]["arguments"] == ["tok-123"]


def test_execute_masks_sensitive_values(
    runtime, fake_runner, manifest, context, cnab_dirs
):
    def _print(cmd):
        context.stdout.write("the password is s3cret\n")

    fake_runner.run.side_effect = _print
    context.environ["PASSWORD"] = "s3cret"
    value = manifest(parameters=[{"name": "password", "sensitive": True}])

    runtime.execute("install", value)

    assert context.stdout.target.getvalue() == "the password is *******\n"


def test_execute_without_steps(runtime, fake_runner, manifest, emitter):
    runtime.execute("upgrade", manifest())

    assert fake_runner.run.call_count == 0
    emitter.assert_message("execution completed successfully!")


def test_execute_step_failure(runtime, fake_runner, manifest, cnab_dirs, tmp_path):
    tfstate = tmp_path / "terraform.tfstate"
    tfstate.write_text("{}")
    kubeconfig = tmp_path / "kubeconfig"
    kubeconfig.write_text("apiVersion: v1\n")
    error = errors.MixinCommandError("mixin command failed exec", exit_code=3)
    fake_runner.run.side_effect = error
    value = manifest(
        outputs=[{"name": "kubeconfig", "type": "file", "path": str(kubeconfig)}],
        state=[{"name": "tfstate", "path": str(tfstate)}],
    )

    with pytest.raises(errors.MixinCommandError) as raised:
        runtime.execute("install", value)

    assert raised.value is error
    dst = cnab_dirs.BUNDLE_OUTPUTS_DIR / "kubeconfig"
    assert dst.read_text() == "apiVersion: v1\n"
    assert not (cnab_dirs.BUNDLE_OUTPUTS_DIR / "porter-state").exists()


def test_execute_collects_failures(
    runtime, fake_runner, manifest, cnab_dirs, tmp_path, mocker
):
    kubeconfig = tmp_path / "kubeconfig"
    kubeconfig.write_text("apiVersion: v1\n")
    error = errors.MixinCommandError("mixin command failed exec", exit_code=3)
    fake_runner.run.side_effect = error
    value = manifest(
        outputs=[{"name": "kubeconfig", "type": "file", "path": str(kubeconfig)}],
    )
    mocker.patch(
        "porter.utils.write_file", side_effect=PermissionError(13, "Permission denied")
    )

    with pytest.raises(errors.AggregateError) as raised:
        runtime.execute("install", value)

    dst = cnab_dirs.BUNDLE_OUTPUTS_DIR / "kubeconfig"
    assert raised.value.errors[0] is error
    assert raised.value.exit_code == 3
    assert str(raised.value) == (
        "2 errors occurred:\n"
        "* mixin command failed exec\n"
        f"* unable to copy output file from {kubeconfig} to {dst}: Permission denied"
    )


def test_execute_unsupported_action(runtime, manifest):
    with pytest.raises(errors.PorterError) as raised:
        runtime.execute("zombies", manifest())

    assert str(raised.value) == (
        'unsupported action "zombies", custom actions are defined for: '
    )


def test_execute_binary_output(runtime, fake_runner, manifest, cnab_dirs):
    def _write_output(cmd):
        (cnab_dirs.MIXIN_OUTPUTS_DIR / "archive").write_bytes(GZIP_HEADER)

    fake_runner.run.side_effect = _write_output
    value = manifest(
        outputs=[{"name": "archive", "type": "file", "path": "/cnab/app/archive.tgz"}],
        install=[
            {
                "exec": {
                    "description": "Pack the archive",
                    "command": "./helpers.sh",
                }
            }
        ],
    )

    runtime.execute("install", value)

    assert (cnab_dirs.BUNDLE_OUTPUTS_DIR / "archive").read_bytes() == GZIP_HEADER


def test_execute_reports_rendered_description(
    runtime, fake_runner, manifest, cnab_dirs, emitter
):
    value = manifest(
        parameters=[{"name": "region", "type": "string"}],
        install=[
            {
                "exec": {
                    "description": "Deploy to ${ bundle.parameters.region }",
                    "command": "./helpers.sh",
                }
            }
        ],
    )

    runtime.execute("install", value)

    emitter.assert_progress("Deploy to eastus")
