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

"""Manifest linting through the mixins."""

import enum
import json
from typing import List

import pydantic
import tabulate
from craft_cli import emit
from pydantic import ConfigDict
from pydantic.alias_generators import to_camel

from porter import errors
from porter.manifest import Manifest
from porter.mixins import ManifestInputGenerator, MixinQuery, MixinRunner


@enum.unique
class Level(str, enum.Enum):
    """Severity of a lint result."""

    ERROR = "error"
    WARNING = "warning"

    def __str__(self):
        """Use the enum value as the string representation."""
        return self.value


class LintModel(pydantic.BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class Location(LintModel):
    """Where in the manifest a result was found."""

    action: str = ""
    mixin: str = ""
    step_number: int = 0
    step_description: str = ""

    def __str__(self):
        return (
            f"{self.action}: {_ordinal(self.step_number)} step in the {self.mixin} "
            f"mixin ({self.step_description})"
        )


class Result(LintModel):
    """A problem reported by a mixin linter."""

    level: Level
    code: str
    title: str
    message: str = ""
    url: str = ""
    location: Location = pydantic.Field(default_factory=Location)

    def __str__(self):
        lines = [f"{self.level}({self.code}) - {self.title}", str(self.location)]
        if self.message:
            lines.append(self.message.rstrip("\n"))
        if self.url:
            lines.append(f"See {self.url} for more information")
        lines.append("---")
        return "\n".join(lines)


def _ordinal(number: int) -> str:
    if 10 <= number % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")
    return f"{number}{suffix}"


def has_error(results: List[Result]) -> bool:
    return any(result.level == Level.ERROR for result in results)


def dump_results(results: List[Result]) -> str:
    """Serialize results the way mixins report them."""
    return json.dumps(
        [result.model_dump(mode="json", by_alias=True) for result in results],
        indent=2,
    )


def format_results(results: List[Result]) -> str:
    """Render results as a table."""
    rows = [
        [
            str(result.level),
            result.code,
            result.location.action,
            result.location.mixin,
            result.location.step_number,
            result.title,
        ]
        for result in results
    ]
    return tabulate.tabulate(
        rows,
        headers=["Level", "Code", "Action", "Mixin", "Step", "Title"],
        tablefmt="plain",
    )


class Linter:
    """Collect lint results from every mixin used by a manifest.

    :param runner: The mixin runner.
    """

    def __init__(self, runner: MixinRunner) -> None:
        self.runner = runner

    def lint(self, manifest: Manifest) -> List[Result]:
        """Run the ``lint`` command of each mixin.

        Mixins that do not implement linting are skipped.

        :raises PorterError: if a mixin response cannot be parsed.
        """
        emit.debug("Running linters for each mixin used in the manifest...")
        query = MixinQuery(self.runner, require_all=False)
        responses = query.execute("lint", ManifestInputGenerator(manifest))

        results: List[Result] = []
        for mixin in sorted(responses):
            response = responses[mixin].strip()
            if not response:
                continue
            try:
                data = json.loads(response)
                results.extend(Result.model_validate(item) for item in data or [])
            except (json.JSONDecodeError, TypeError, pydantic.ValidationError) as err:
                raise errors.PorterError(
                    f"unable to parse lint response from mixin {mixin!r}: {err}"
                ) from err
        return results
