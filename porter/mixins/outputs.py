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

"""Step output extractors.

After a successful mixin run, each output declared on the step is extracted
from the mixin stdout or from a file and written to the mixin outputs
directory, where the runtime collects it.
"""

import abc
import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from craft_cli import emit
from jsonpath_ng.exceptions import JSONPathError
from jsonpath_ng.ext import parse as jsonpath_parse

from porter import const, errors, utils

# Expressions that can select more than one value
_INDEFINITE_JSONPATH = re.compile(r"\*|\.\.|\?\(|\[[^\]]*[:,][^\]]*\]")


class OutputExtractor(abc.ABC):
    """Extract the value of a named output.

    :param name: The output name.
    """

    def __init__(self, name: str) -> None:
        self.name = name

    @abc.abstractmethod
    def extract(self, stdout: str) -> bytes:
        """Return the output value.

        :raises OutputExtractionError: if the value cannot be extracted.
        """

    def write(self, stdout: str) -> Path:
        """Extract the value and write it to the mixin outputs directory."""
        path = const.MIXIN_OUTPUTS_DIR / self.name
        utils.write_file(path, self.extract(stdout))
        return path


class FileOutput(OutputExtractor):
    """Read a file written by the mixin, relative to the bundle directory."""

    def __init__(self, name: str, path: str) -> None:
        super().__init__(name)
        self.path = path

    def extract(self, stdout: str) -> bytes:
        try:
            return Path(self.path).read_bytes()
        except OSError as err:
            raise errors.OutputExtractionError(
                f"error reading file {self.path} for output {self.name}: {err.strerror}"
            ) from err


class JsonPathOutput(OutputExtractor):
    """Evaluate a JSONPath expression against the JSON printed by the mixin."""

    def __init__(self, name: str, expression: str) -> None:
        super().__init__(name)
        self.expression = expression

    def _load(self, stdout: str) -> Any:
        text = stdout.strip()
        if not text:
            return {}
        try:
            data, _ = json.JSONDecoder().raw_decode(text)
        except json.JSONDecodeError as err:
            raise errors.OutputExtractionError(
                f"error unmarshaling stdout as json for output {self.name}: {err}"
            ) from err
        return data

    def extract(self, stdout: str) -> bytes:
        data = self._load(stdout)
        try:
            expression = jsonpath_parse(self.expression)
        except JSONPathError as err:
            raise errors.OutputExtractionError(
                f"invalid jsonpath {self.expression!r} for output {self.name}: {err}"
            ) from err

        matches = [match.value for match in expression.find(data)]
        if not matches:
            result: Any = None
        elif len(matches) == 1 and not _INDEFINITE_JSONPATH.search(self.expression):
            result = matches[0]
        else:
            result = matches
        return json.dumps(result, separators=(",", ":")).encode()


class RegexOutput(OutputExtractor):
    """Collect the capture groups of every match in the mixin stdout."""

    def __init__(self, name: str, pattern: str) -> None:
        super().__init__(name)
        self.pattern = pattern

    def extract(self, stdout: str) -> bytes:
        try:
            regex = re.compile(self.pattern)
        except re.error as err:
            raise errors.OutputExtractionError(
                f"invalid regular expression {self.pattern!r} for output "
                f"{self.name}: {err}"
            ) from err

        values: List[str] = []
        for match in regex.finditer(stdout):
            values.extend(group for group in match.groups() if group is not None)
        return "\n".join(values).encode()


def get_extractor(definition: Dict[str, Any]) -> Optional[OutputExtractor]:
    """Select the extractor for an output declared on a step.

    Both the flat ``{name, path|jsonPath|regex}`` form and the nested
    ``{file: {path}}``, ``{jsonpath: {path}}`` and ``{regex: {pattern}}``
    forms are understood. The nested forms are named after their kind
    unless a name is given.
    """
    name = definition.get("name")

    nested = definition.get("file")
    if isinstance(nested, dict):
        return FileOutput(name or "file", str(nested.get("path", "")))
    nested = definition.get("jsonpath")
    if isinstance(nested, dict):
        return JsonPathOutput(name or "jsonpath", str(nested.get("path", "")))
    nested = definition.get("regex")
    if isinstance(nested, dict):
        return RegexOutput(name or "regex", str(nested.get("pattern", "")))

    if not name:
        return None
    if definition.get("path"):
        return FileOutput(name, str(definition["path"]))
    if definition.get("jsonPath"):
        return JsonPathOutput(name, str(definition["jsonPath"]))
    if definition.get("regex"):
        return RegexOutput(name, str(definition["regex"]))
    return None


def apply_output(definition: Dict[str, Any], stdout: str) -> Optional[Path]:
    """Extract a declared output and write it to the mixin outputs directory.

    :returns: The written file, or None if the output needs no extraction.
    """
    extractor = get_extractor(definition)
    if extractor is None:
        emit.debug(f"No extractor for output {definition!r}")
        return None
    emit.debug(f"Extracting output {extractor.name} with {type(extractor).__name__}")
    return extractor.write(stdout)
