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

"""Best-practice checks for exec steps."""

from typing import List

from porter.linter import Level, Location, Result

from .models import Action

CODE_EMBEDDED_BASH = "exec-100"
CODE_BASH_C_ARG_MISSING_QUOTES = "exec-101"

_MISSING_QUOTES_MESSAGE = """\
The bash -c flag argument must be wrapped in quotes, for example
exec:
  description: Say Hello
  command: bash
  flags:
    c: '"echo Hello World"'
"""


def _is_quoted(value: str) -> bool:
    return any(
        len(value) >= 2 and value.startswith(quote) and value.endswith(quote)
        for quote in ('"', "'")
    )


def lint_actions(actions: List[Action]) -> List[Result]:
    """Report ``bash -c`` steps.

    Embedding a script is a warning, and a script argument without wrapping
    quotes is an error since YAML and bash both consume one level of quoting.
    """
    results: List[Result] = []
    for action in actions:
        for index, step in enumerate(action.steps):
            instruction = step.exec
            if instruction.command != "bash":
                continue
            flag = instruction.get_flag("c")
            if flag is None:
                continue

            location = Location(
                action=action.name,
                mixin="exec",
                step_number=index + 1,
                step_description=instruction.description,
            )
            results.append(
                Result(
                    level=Level.WARNING,
                    code=CODE_EMBEDDED_BASH,
                    location=location,
                    title="Best Practice: Avoid Embedded Bash",
                    url="https://getporter.org/best-practices/exec-mixin/#use-scripts",
                )
            )
            if any(not _is_quoted(value) for value in flag.values):
                results.append(
                    Result(
                        level=Level.ERROR,
                        code=CODE_BASH_C_ARG_MISSING_QUOTES,
                        location=location,
                        title="bash -c argument missing wrapping quotes",
                        message=_MISSING_QUOTES_MESSAGE,
                        url=(
                            "https://getporter.org/best-practices/exec-mixin/"
                            "#quoting-escaping-bash-and-yaml"
                        ),
                    )
                )
    return results
