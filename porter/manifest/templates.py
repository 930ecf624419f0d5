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

"""Templating of manifest steps.

Steps are rendered with jinja2. Manifests with a schema version newer than
1.0.0-alpha.1 delimit variables with ``${ }``, older ones with ``{{ }}``.
"""

import json
import re
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

import jinja2
from jinja2 import nodes

from porter import const, errors, utils

_DOLLAR_DELIMITERS = ("${", "}")
_MUSTACHE_DELIMITERS = ("{{", "}}")

# Steps have no block or comment syntax
_BLOCK_DELIMITERS = ("\x00%", "%\x00")
_COMMENT_DELIMITERS = ("\x00#", "#\x00")

_SEGMENT_NEEDS_QUOTING = re.compile(r"^\d|-")


def get_delimiters(schema_version: str) -> Tuple[str, str]:
    """Return the variable delimiters used by a manifest schema version."""
    if not schema_version:
        return _DOLLAR_DELIMITERS

    version = utils.parse_version(schema_version)
    legacy = utils.parse_version(const.LEGACY_TEMPLATE_SCHEMA_VERSION)
    if version is not None and legacy is not None and version.compare(legacy) > 0:
        return _DOLLAR_DELIMITERS
    return _MUSTACHE_DELIMITERS


def _finalize(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return value


class _StepEnvironment(jinja2.Environment):
    """Environment resolving dotted names to mapping keys before attributes."""

    def getattr(self, obj: Any, attribute: str) -> Any:
        if isinstance(obj, dict) and attribute in obj:
            return obj[attribute]
        return super().getattr(obj, attribute)


@lru_cache(maxsize=None)
def _get_environment(start: str, end: str) -> jinja2.Environment:
    return _StepEnvironment(
        variable_start_string=start,
        variable_end_string=end,
        block_start_string=_BLOCK_DELIMITERS[0],
        block_end_string=_BLOCK_DELIMITERS[1],
        comment_start_string=_COMMENT_DELIMITERS[0],
        comment_end_string=_COMMENT_DELIMITERS[1],
        undefined=jinja2.StrictUndefined,
        finalize=_finalize,
        keep_trailing_newline=True,
        autoescape=False,
    )


@lru_cache(maxsize=None)
def _get_path_pattern(start: str, end: str) -> "re.Pattern[str]":
    return re.compile(
        re.escape(start)
        + r"(\s*)([A-Za-z_][\w-]*(?:\.[\w-]+)*)(\s*)"
        + re.escape(end)
    )


def _quote_segments(path: str) -> str:
    segments = path.split(".")
    quoted = [segments[0]]
    for segment in segments[1:]:
        if _SEGMENT_NEEDS_QUOTING.search(segment):
            quoted.append(f'["{segment}"]')
        else:
            quoted.append(f".{segment}")
    return "".join(quoted)


def normalize(text: str, start: str, end: str) -> str:
    """Make dashed path segments such as ``bundle.outputs.my-out`` addressable."""
    pattern = _get_path_pattern(start, end)

    def _replace(match: "re.Match[str]") -> str:
        lead, path, trail = match.groups()
        return f"{start}{lead}{_quote_segments(path)}{trail}{end}"

    return pattern.sub(_replace, text)


def _dotted(node: nodes.Node) -> Optional[str]:
    if isinstance(node, nodes.Name):
        return node.name if node.ctx == "load" else None
    if isinstance(node, nodes.Getattr):
        parent = _dotted(node.node)
        return None if parent is None else f"{parent}.{node.attr}"
    if isinstance(node, nodes.Getitem) and isinstance(node.arg, nodes.Const):
        parent = _dotted(node.node)
        return None if parent is None else f"{parent}.{node.arg.value}"
    return None


def _collect(node: nodes.Node, found: Set[str]) -> None:
    if isinstance(node, (nodes.Name, nodes.Getattr, nodes.Getitem)):
        name = _dotted(node)
        if name is not None:
            found.add(name)
            return
    for child in node.iter_child_nodes():
        _collect(child, found)


def _parse(text: str, schema_version: str) -> Tuple[jinja2.Environment, str, Any]:
    start, end = get_delimiters(schema_version)
    env = _get_environment(start, end)
    source = normalize(text, start, end)
    try:
        return env, source, env.parse(source)
    except jinja2.TemplateSyntaxError as err:
        raise errors.TemplateError(
            f"error parsing the templating used in the manifest: {err}"
        ) from err


def get_variables(text: str, schema_version: str) -> List[str]:
    """Return the sorted variable paths referenced in a template."""
    _, _, tree = _parse(text, schema_version)
    found: Set[str] = set()
    _collect(tree, found)
    return sorted(found)


def scan_tree(tree: Any, schema_version: str) -> List[str]:
    """Return the sorted variable paths referenced by the string leaves of a tree."""
    found: Set[str] = set()
    for leaf in _iter_strings(tree):
        found.update(get_variables(leaf, schema_version))
    return sorted(found)


def _iter_strings(tree: Any) -> Iterable[str]:
    if isinstance(tree, str):
        yield tree
    elif isinstance(tree, dict):
        for key, value in tree.items():
            if isinstance(key, str):
                yield key
            yield from _iter_strings(value)
    elif isinstance(tree, list):
        for item in tree:
            yield from _iter_strings(item)


def _lookup(data: Dict[str, Any], path: str) -> bool:
    current: Any = data
    for segment in path.split("."):
        if isinstance(current, dict) and segment in current:
            current = current[segment]
        else:
            return False
    return True


def render(text: str, data: Dict[str, Any], schema_version: str) -> str:
    """Render a template against the template data.

    :raises TemplateError: if a referenced variable is not set or the
        template is invalid.
    """
    env, source, tree = _parse(text, schema_version)
    found: Set[str] = set()
    _collect(tree, found)
    for variable in sorted(found):
        if not _lookup(data, variable):
            raise errors.TemplateError(
                f'unable to resolve step template: missing variable "{variable}"'
            )

    try:
        return env.from_string(source).render(data)
    except jinja2.TemplateError as err:
        raise errors.TemplateError(
            f"unable to resolve step template: {err}"
        ) from err


_OUTPUT_VARIABLE = re.compile(r"^bundle\.outputs\.(.+)$")
_DEPENDENCY_OUTPUT_VARIABLE = re.compile(r"^bundle\.dependencies\.(.+?)\.outputs\.(.+)$")


def get_output_name(variable: str) -> Optional[str]:
    """Return X for a ``bundle.outputs.X`` variable."""
    match = _OUTPUT_VARIABLE.match(variable)
    if match is None:
        return None
    return match.group(1)


def get_dependency_output(variable: str) -> Optional[Tuple[str, str]]:
    """Return (D, X) for a ``bundle.dependencies.D.outputs.X`` variable."""
    match = _DEPENDENCY_OUTPUT_VARIABLE.match(variable)
    if match is None:
        return None
    return match.group(1), match.group(2)
