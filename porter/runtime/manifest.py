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

"""The manifest of a bundle as seen from inside its installer image."""

import base64
import binascii
import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Set

from craft_cli import emit

from porter import const, errors, utils
from porter.cnab import Bundle, parse_reference
from porter.manifest import Manifest, Step, render_step

from . import state
from .template_data import TemplateDataBuilder


class RuntimeManifest:
    """Run-time view of a manifest for a single action.

    :param environ: The process environment.
    :param action: The action to run.
    :param manifest: The bundle manifest.
    """

    def __init__(
        self, *, environ: Mapping[str, str], action: str, manifest: Manifest
    ) -> None:
        self.environ = environ
        self.action = action
        self.manifest = manifest
        self.bundle: Optional[Bundle] = None
        self.dependencies: Dict[str, Bundle] = {}
        self.steps: List[Step] = []
        self.outputs: Dict[str, str] = {}
        self._builder: Optional[TemplateDataBuilder] = None

    @property
    def sensitive_values(self) -> Set[str]:
        if self._builder is None:
            return set()
        return set(self._builder.sensitive_values)

    def validate(self) -> None:
        """Load the bundle descriptors and check the steps of the action.

        :raises BundleLoadError: if a descriptor cannot be loaded.
        :raises PorterError: if the action is not defined.
        :raises ManifestValidationError: if a step is invalid.
        """
        self.bundle = Bundle.load(const.BUNDLE_PATH)
        self._load_dependencies()
        self.steps = self._get_steps()
        try:
            for step in self.steps:
                step.validate_step(self.manifest)
        except errors.ManifestValidationError as err:
            raise errors.ManifestValidationError(
                f"invalid action configuration: {err}"
            ) from err

        self._builder = TemplateDataBuilder(
            environ=self.environ,
            action=self.action,
            manifest=self.manifest,
            bundle=self.bundle,
            dependencies=self.dependencies,
        )

    def _load_dependencies(self) -> None:
        self.dependencies = {}
        for alias in self.manifest.dependencies:
            path = const.DEPENDENCIES_DIR / alias / "bundle.json"
            emit.debug(f"Loading the definition of dependency {alias} from {path}")
            self.dependencies[alias] = Bundle.load(path)

    def _get_steps(self) -> List[Step]:
        steps = self.manifest.get_steps(self.action)
        if steps is not None:
            return steps
        if self.action in const.CORE_ACTIONS:
            return []
        actions = ", ".join(self.manifest.custom_actions)
        raise errors.PorterError(
            f'unsupported action "{self.action}", custom actions are defined for: {actions}'
        )

    def initialize(self) -> None:
        """Prepare the container for the steps.

        File parameters are decoded in place and the state bag is unpacked.

        :raises PorterError: if a file parameter cannot be decoded.
        :raises StateBagError: if the state archive cannot be read.
        """
        if self.bundle is None:
            raise errors.PorterError("the runtime manifest must be validated first")

        const.BUNDLE_OUTPUTS_DIR.mkdir(parents=True, exist_ok=True)
        for name, param in self.bundle.parameters.items():
            if not param.applies_to(self.action):
                continue
            definition = self.bundle.definitions.get(param.definition)
            if definition is None or not self.bundle.is_file_type(definition):
                continue
            if param.destination is None or not param.destination.path:
                raise errors.PorterError(
                    f"destination path is not supplied for parameter {name}"
                )
            self._decode_file_parameter(name, Path(param.destination.path))

        state.unpack_state(const.STATE_ARCHIVE_PATH, self.manifest.state)

    @staticmethod
    def _decode_file_parameter(name: str, path: Path) -> None:
        try:
            content = path.read_bytes()
        except FileNotFoundError:
            emit.debug(f"No value was supplied for file parameter {name}")
            return
        except OSError as err:
            raise errors.PorterError(
                f"unable to acquire value for parameter {name}: {err.strerror}"
            ) from err

        if content == b"null":
            path.unlink()
            return

        try:
            decoded = base64.b64decode(content, validate=True)
        except binascii.Error as err:
            raise errors.PorterError(
                f"unable to decode parameter {name}: {err}"
            ) from err
        utils.write_file(path, decoded, mode=0o644)

    def resolve_images(self, relocation_mapping: Dict[str, str]) -> None:
        """Point the manifest images at the references the bundle was deployed with.

        :raises PorterError: if the bundle holds an image the manifest lacks.
        """
        if self.bundle is None:
            return

        if self.bundle.invocation_images:
            installer = self.bundle.invocation_images[0].image
            self.manifest.set_installer_image(
                relocation_mapping.get(installer, installer)
            )

        if not self.manifest.images:
            return

        reverse_lookup: Dict[str, str] = {}
        for alias, image in self.bundle.images.items():
            mapped = self.manifest.images.get(alias)
            if mapped is None:
                raise errors.PorterError(
                    f"unable to find image in porter manifest: {alias}"
                )
            if image.content_digest:
                mapped.digest = image.content_digest
            _update_image(mapped, image.image)
            reverse_lookup[image.image] = alias

        for original, relocated in relocation_mapping.items():
            alias = reverse_lookup.get(original)
            if alias is None:
                continue
            _update_image(self.manifest.images[alias], relocated)

    def build_template_data(self) -> Dict[str, Any]:
        if self._builder is None:
            raise errors.PorterError("the runtime manifest must be validated first")
        return self._builder.build(self.outputs)

    def resolve_step(self, index: int) -> Dict[str, Any]:
        """Render a step of the action against the current template data.

        :raises TemplateError: if the step cannot be rendered.
        """
        data = self.build_template_data()
        emit.debug(f"Rendering step {self.action}[{index}]")
        try:
            return render_step(self.manifest, self.action, index, data)
        except errors.TemplateError as err:
            raise errors.TemplateError(
                f"unable to resolve step {self.action}[{index}]: {err}"
            ) from err

    def apply_step_outputs(self, outputs: Mapping[str, str]) -> None:
        """Record the outputs of a step and write the bundle outputs among them."""
        self.outputs.update(outputs)
        for name, value in outputs.items():
            output = self.manifest.get_output(name)
            if output is None or not output.applies_to(self.action):
                continue
            emit.debug(f"Writing bundle output {name}")
            utils.write_file(
                const.BUNDLE_OUTPUTS_DIR / name,
                value.encode("utf-8", errors="surrogateescape"),
            )

    def finalize(self, *, pack_state: bool = True) -> None:
        """Collect the file outputs and pack the state bag.

        :raises AggregateError: listing everything that failed.
        """
        failures: List[Exception] = []
        try:
            self._apply_unbound_outputs()
        except errors.AggregateError as err:
            failures.extend(err.errors)

        if pack_state and self.manifest.state:
            try:
                state.pack_state(
                    const.BUNDLE_OUTPUTS_DIR / const.STATE_NAME, self.manifest.state
                )
            except errors.AggregateError as err:
                failures.extend(err.errors)
            except OSError as err:
                failures.append(
                    errors.StateBagError(f"error creating porter statefile: {err}")
                )
        elif not pack_state:
            emit.debug("Skipping the bundle state since the action failed")

        if failures:
            raise errors.AggregateError(failures)

    def _apply_unbound_outputs(self) -> None:
        if self.bundle is None or not self.bundle.outputs:
            return

        emit.debug("Collecting bundle outputs...")
        failures: List[Exception] = []
        for name, bundle_output in self.bundle.outputs.items():
            output = self.manifest.get_output(name)
            if output is None or not output.path:
                continue
            if not bundle_output.applies_to(self.action) or name in self.outputs:
                continue

            src = Path(utils.resolve_path(output.path))
            dst = const.BUNDLE_OUTPUTS_DIR / name
            if not src.exists() or dst.exists():
                continue
            emit.debug(f"  - {name}")
            try:
                utils.write_file(dst, src.read_bytes())
            except OSError as err:
                failures.append(
                    errors.PorterError(
                        f"unable to copy output file from {src} to {dst}: {err.strerror}"
                    )
                )
        if failures:
            raise errors.AggregateError(failures)


def _update_image(image, ref: str) -> None:
    parsed = parse_reference(ref)
    image.repository = parsed.repository
    if parsed.has_digest():
        image.digest = parsed.digest
    if parsed.has_tag():
        image.tag = parsed.tag
    if parsed.is_repository_only():
        image.tag = "latest"


def load_relocation_mapping(path: Path) -> Dict[str, str]:
    """Read the relocation mapping, empty when the bundle was not relocated.

    :raises PorterError: if the mapping cannot be read.
    """
    if not path.exists():
        return {}
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as err:
        raise errors.PorterError(f"couldn't load relocation file: {err}") from err
