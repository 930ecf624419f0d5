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

"""Reading porter.yaml from disk or a URL."""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import requests
import yaml
from craft_cli import emit

from porter import errors, yaml_utils

from . import templates
from .models import Manifest

_DEPRECATED_KEYS = ("invocationImage", "tag")


def _known_keys() -> List[str]:
    return [
        field.alias or name for name, field in Manifest.model_fields.items()
    ]


def read_manifest_data(path: Union[str, Path]) -> bytes:
    """Read the manifest bytes from a file or an http(s) URL.

    :raises ManifestNotFound: if the file does not exist.
    :raises PorterError: if the manifest could not be read.
    """
    location = str(path)
    if location.startswith(("http://", "https://")):
        try:
            response = requests.get(location, timeout=30)
            response.raise_for_status()
        except requests.RequestException as err:
            raise errors.PorterError(f"could not reach url {location}: {err}") from err
        return response.content

    manifest_path = Path(location)
    if not manifest_path.is_file():
        raise errors.ManifestNotFound(location)
    try:
        return manifest_path.read_bytes()
    except OSError as err:
        raise errors.PorterError(
            f"could not read manifest at {location!r}: {err.strerror}"
        ) from err


def unmarshal_manifest(data: bytes, *, path: str = "") -> Manifest:
    """Parse manifest bytes into a ``Manifest``.

    Top-level keys that are not manifest fields are custom actions.

    :raises PorterError: if the document is not valid YAML.
    :raises ManifestValidationError: if the document does not match the model.
    """
    tree = yaml_utils.load(data)
    if tree is None:
        tree = {}
    if not isinstance(tree, dict):
        raise errors.ManifestValidationError(
            "Bad porter.yaml content:\n- expected a mapping at the top level"
        )

    known = _known_keys()
    typed: Dict[str, Any] = {}
    custom_actions: Dict[str, List[Any]] = {}
    for key, value in tree.items():
        if key in known:
            typed[key] = value
        elif key in _DEPRECATED_KEYS:
            emit.verbose(
                f'WARNING: The "{key}" field has been deprecated and can no longer '
                "be user-specified; ignoring."
            )
        else:
            if not isinstance(value, list):
                raise errors.ManifestValidationError(
                    "unsupported property set or a custom action is defined "
                    f"incorrectly: {key}"
                )
            custom_actions[str(key)] = value

    manifest = Manifest.unmarshal(typed)
    variables = templates.scan_tree(tree, manifest.schema_version)
    manifest.set_source(
        path=path,
        raw=data,
        tree=tree,
        custom_actions=custom_actions,
        template_variables=variables,
    )
    return manifest


def load_manifest(path: Union[str, Path], *, validate: bool = True) -> Manifest:
    """Read, parse and optionally validate the manifest at ``path``."""
    emit.debug(f"Loading manifest from {str(path)!r}")
    data = read_manifest_data(path)
    manifest = unmarshal_manifest(data, path=str(path))
    if validate:
        manifest.validate_manifest()
    return manifest


def get_step_template(manifest: Manifest, action: str, index: int) -> str:
    """Return the step as authored in the manifest, keeping its layout.

    :raises PorterError: if the step cannot be found in the manifest.
    """
    text = manifest.raw.decode("utf-8")
    node = _find_step_node(yaml.compose(text), action, index)
    if node is None:
        raise errors.PorterError(
            f"could not find step {index} of action {action!r} in the manifest"
        )
    # Indent the first line like the others so the block parses on its own.
    return " " * node.start_mark.column + text[
        node.start_mark.index : node.end_mark.index
    ]


def _find_step_node(
    root: Optional[yaml.Node], action: str, index: int
) -> Optional[yaml.Node]:
    if not isinstance(root, yaml.MappingNode):
        return None
    for key_node, value_node in root.value:
        if key_node.value != action:
            continue
        if isinstance(value_node, yaml.SequenceNode) and index < len(value_node.value):
            return value_node.value[index]
        return None
    return None


def render_step(
    manifest: Manifest, action: str, index: int, data: Dict[str, Any]
) -> Dict[str, Any]:
    """Render a step of an action against template data.

    :returns: The rendered step, a one-key mapping of mixin name to body.

    :raises TemplateError: if the step cannot be rendered.
    """
    template = get_step_template(manifest, action, index)
    rendered = templates.render(template, data, manifest.schema_version)
    try:
        step = yaml_utils.load(rendered, what="rendered step")
    except errors.PorterError as err:
        raise errors.TemplateError(
            f"invalid step yaml after rendering the template: {err}"
        ) from err
    if not isinstance(step, dict):
        raise errors.TemplateError(
            f"invalid step yaml after rendering the template: {rendered!r}"
        )
    return step
