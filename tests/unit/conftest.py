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
import types
from pathlib import Path
from typing import Any, Dict

import pytest
import yaml

from porter import const
from porter.build import ManifestConverter
from porter.context import Context
from porter.manifest import unmarshal_manifest
from porter.mixins import MixinRunner


def _manifest_content(**kwargs) -> Dict[str, Any]:
    return {
        "schemaVersion": "1.0.1",
        "name": "mybuns",
        "version": "0.1.0",
        "description": "An example bundle",
        "registry": "localhost:5000",
        "mixins": ["exec"],
        "install": [
            {
                "exec": {
                    "description": "Install Hello World",
                    "command": "./helpers.sh",
                    "arguments": ["install"],
                }
            }
        ],
        "uninstall": [
            {
                "exec": {
                    "description": "Uninstall Hello World",
                    "command": "./helpers.sh",
                    "arguments": ["uninstall"],
                }
            }
        ],
        **kwargs,
    }


@pytest.fixture
def porter_yaml(new_dir):
    """Return a fixture that can write a porter.yaml."""

    def write_file(*, filename: str = "porter.yaml", **kwargs) -> Dict[str, Any]:
        content = _manifest_content(**kwargs)
        yaml_path = Path(filename)
        yaml_path.parent.mkdir(parents=True, exist_ok=True)
        yaml_path.write_text(
            yaml.safe_dump(content, indent=2, sort_keys=False), encoding="utf-8"
        )
        return content

    yield write_file


@pytest.fixture
def make_manifest():
    """Return a fixture that parses a manifest from keyword arguments."""

    def _make(**kwargs):
        content = _manifest_content(**kwargs)
        raw = yaml.safe_dump(content, indent=2, sort_keys=False).encode()
        return unmarshal_manifest(raw, path="porter.yaml")

    yield _make


@pytest.fixture
def cnab_dirs(tmp_path, mocker):
    """Point the installer image layout into a temporary directory."""
    root = tmp_path / "cnab"
    app = root / "app"
    paths = types.SimpleNamespace(
        CNAB_DIR=root,
        BUNDLE_PATH=root / "bundle.json",
        APP_DIR=app,
        MANIFEST_PATH=app / "porter.yaml",
        MIXINS_DIR=app / "mixins",
        MIXIN_OUTPUTS_DIR=app / "porter" / "outputs",
        BUNDLE_OUTPUTS_DIR=app / "outputs",
        DEPENDENCIES_DIR=app / "dependencies",
        RELOCATION_MAPPING_PATH=app / "relocation-mapping.json",
        STATE_ARCHIVE_PATH=tmp_path / "porter" / "state.tgz",
    )
    for name, value in vars(paths).items():
        mocker.patch.object(const, name, value)
    app.mkdir(parents=True)

    yield paths


@pytest.fixture
def mixins_dir(tmp_path):
    """A mixins directory with the exec and helm3 mixins installed."""
    path = tmp_path / "mixins"
    for name in ("exec", "helm3"):
        mixin_dir = path / name
        mixin_dir.mkdir(parents=True)
        for executable in (name, f"{name}-runtime"):
            exe = mixin_dir / executable
            exe.write_text("#!/bin/sh\n", encoding="utf-8")
            exe.chmod(0o755)

    yield path


@pytest.fixture
def runner(mixins_dir):
    """A mixin runner with sinks that can be inspected."""
    context = Context(
        environ={"PATH": "/usr/bin:/bin"}, stdout=io.StringIO(), stderr=io.StringIO()
    )
    return MixinRunner(context, mixins_dir)


@pytest.fixture
def write_bundle(cnab_dirs):
    """Write the bundle descriptor of a manifest into the installer layout."""

    def _write(manifest, *, images=None):
        manifest.validate_manifest()
        bun = ManifestConverter(manifest).to_bundle()
        bun.images.update(images or {})
        bun.write(cnab_dirs.BUNDLE_PATH)
        return bun

    return _write
