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

"""Prepare the build context of a bundle."""

import shutil
from pathlib import Path
from typing import Dict, Optional

import jinja2
from craft_cli import emit

from porter import const, errors, utils
from porter.cnab import Bundle
from porter.manifest import Manifest
from porter.mixins import MixinQuery, MixinRunner

from .converter import ManifestConverter
from .dockerfile import DockerfileGenerator


def get_mixin_versions(manifest: Manifest, runner: MixinRunner) -> Dict[str, str]:
    """Return the installed version of each mixin used by the manifest.

    :raises MixinNotInstalled: if a mixin is not installed.
    """
    versions = {}
    for name in manifest.mixin_names:
        runner.validate(name)
        versions[name] = runner.get_version(name)
        emit.debug(f"Using mixin {name} {versions[name]}")
    return versions


class BundleBuilder:
    """Lay out the ``.cnab`` directory of a bundle.

    :param manifest: The validated manifest.
    :param runner: Runner for the installed mixins.
    :param project_dir: The bundle directory.
    """

    def __init__(
        self,
        manifest: Manifest,
        runner: MixinRunner,
        project_dir: Optional[Path] = None,
    ) -> None:
        self.manifest = manifest
        self.runner = runner
        self.project_dir = project_dir if project_dir is not None else Path()

    @property
    def cnab_dir(self) -> Path:
        return self.project_dir / const.LOCAL_CNAB_DIR

    def build(self) -> Bundle:
        """Write the bundle descriptor, the runtime files and the Dockerfile.

        :raises PorterError: if any part of the build context fails.
        """
        versions = get_mixin_versions(self.manifest, self.runner)

        emit.progress("Generating the bundle definition")
        bundle = ManifestConverter(self.manifest, mixin_versions=versions).to_bundle()
        bundle.write(self.project_dir / const.LOCAL_BUNDLE_PATH)

        self.prepare_filesystem()

        emit.progress("Generating Dockerfile")
        query = MixinQuery(self.runner, require_all=True, log_errors=True)
        DockerfileGenerator(self.manifest, query, self.project_dir).generate(
            self.project_dir / const.LOCAL_DOCKERFILE_PATH
        )
        return bundle

    def prepare_filesystem(self) -> None:
        app_dir = self.cnab_dir / "app"
        app_dir.mkdir(parents=True, exist_ok=True)

        utils.write_file(
            self.project_dir / const.LOCAL_MANIFEST_PATH, self.manifest.raw, mode=0o644
        )

        emit.progress("Copying porter runtime")
        env = jinja2.Environment(
            loader=jinja2.PackageLoader("porter", "templates"),
            keep_trailing_newline=True,
        )
        run_script = env.get_template("run.j2").render()
        utils.write_file(app_dir / "run", run_script.encode(), mode=0o755)

        for name in self.manifest.mixin_names:
            self.copy_mixin(name, app_dir / "mixins" / name)

    def copy_mixin(self, name: str, destination: Path) -> None:
        emit.progress(f"Copying mixin {name}")
        source = self.runner.mixins_dir / name
        try:
            shutil.copytree(source, destination, dirs_exist_ok=True)
        except (OSError, shutil.Error) as err:
            raise errors.PorterError(
                f"could not copy mixin directory contents for {name}: {err}"
            ) from err
