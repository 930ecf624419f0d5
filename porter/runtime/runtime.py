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

"""Execute a bundle action inside the installer image."""

from pathlib import Path
from typing import Dict, List, Optional

from craft_cli import emit

from porter import const, errors, yaml_utils
from porter.context import Context
from porter.manifest import Manifest, load_manifest
from porter.mixins import MixinCommand, MixinRunner

from .manifest import RuntimeManifest, load_relocation_mapping


def read_mixin_outputs() -> Dict[str, str]:
    """Collect the outputs written by the last mixin and remove their files.

    Bytes that are not valid UTF-8 are kept as surrogate escapes so binary
    outputs are written back unchanged.
    """
    outputs: Dict[str, str] = {}
    if not const.MIXIN_OUTPUTS_DIR.is_dir():
        return outputs

    for path in sorted(const.MIXIN_OUTPUTS_DIR.iterdir()):
        if not path.is_file():
            continue
        try:
            outputs[path.name] = path.read_bytes().decode(
                "utf-8", errors="surrogateescape"
            )
            path.unlink()
        except OSError as err:
            raise errors.PorterError(
                f"could not read step output {path.name}: {err.strerror}"
            ) from err
    return outputs


class PorterRuntime:
    """Run the steps of an action, one mixin invocation per step.

    :param context: The process context.
    :param runner: Runner for the installed mixins.
    """

    def __init__(self, context: Context, runner: Optional[MixinRunner] = None) -> None:
        self.context = context
        self.runner = runner if runner is not None else MixinRunner(context)

    def load_manifest(self, path: Optional[Path] = None) -> Manifest:
        return load_manifest(
            path if path is not None else const.MANIFEST_PATH, validate=False
        )

    def execute(self, action: str, manifest: Manifest) -> None:
        """Execute an action.

        Steps run in order and the first failure stops the rest. The outputs
        and the state are collected whether or not a step failed.

        :raises PorterError: if the action fails to run.
        :raises AggregateError: if several errors happened; it carries the
            exit code of the first one.
        """
        installation = self.context.getenv(const.ENV_INSTALLATION_NAME, "")
        emit.message(
            f"executing {action} action from {manifest.name} "
            f"(installation: {installation})"
        )

        rm = RuntimeManifest(
            environ=self.context.environ, action=action, manifest=manifest
        )
        rm.validate()
        rm.initialize()
        rm.resolve_images(load_relocation_mapping(const.RELOCATION_MAPPING_PATH))
        const.MIXIN_OUTPUTS_DIR.mkdir(parents=True, exist_ok=True)

        failures: List[Exception] = []
        try:
            self._run_steps(rm)
        except errors.PorterError as err:
            failures.append(err)

        try:
            rm.finalize(pack_state=not failures)
        except errors.AggregateError as err:
            failures.extend(err.errors)

        if len(failures) == 1:
            raise failures[0]
        if failures:
            raise errors.AggregateError(failures)
        emit.message("execution completed successfully!")

    def _run_steps(self, rm: RuntimeManifest) -> None:
        for index, step in enumerate(rm.steps):
            rendered = rm.resolve_step(index)
            description = rendered.get(step.mixin_name, {}).get("description")
            if description:
                emit.progress(description)

            self.context.set_sensitive_values(rm.sensitive_values)
            cmd = MixinCommand(
                name=step.mixin_name,
                command=rm.action,
                input=yaml_utils.dump({rm.action: [rendered]}),
                runtime=True,
            )
            self.runner.run(cmd)

            outputs = read_mixin_outputs()
            emit.debug(f"Step {index} produced outputs: {sorted(outputs)}")
            rm.apply_step_outputs(outputs)
