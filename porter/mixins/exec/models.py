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

"""Exec mixin step definitions."""

import re
from typing import Any, Dict, List, Optional

import pydantic
from craft_cli import emit
from pydantic import ConfigDict

from porter import errors, yaml_utils
from porter.manifest import format_pydantic_errors


class ExecModel(pydantic.BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        validate_assignment=True,
    )


class Flag(pydantic.BaseModel):
    """A command line flag and its values.

    A flag without values is passed alone, a flag with several values is
    repeated once per value.
    """

    name: str
    values: List[str] = pydantic.Field(default_factory=list)

    def to_args(self) -> List[str]:
        dash = "-" if len(self.name) == 1 else "--"
        flag = f"{dash}{self.name}"
        if not self.values:
            return [flag]
        args = []
        for value in self.values:
            args.extend([flag, value])
        return args


def _flag_values(name: str, value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, list):
        values = []
        for item in value:
            if not isinstance(item, str):
                raise ValueError(
                    f"invalid yaml type for flag {name}: {type(item).__name__}"
                )
            values.append(item)
        return values
    if isinstance(value, bool):
        return [str(value).lower()]
    return [str(value)]


def _env_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)


class OutputDefinition(ExecModel):
    """An output extracted from the command result."""

    name: str
    path: Optional[str] = None
    json_path: Optional[str] = pydantic.Field(default=None, alias="jsonPath")
    regex: Optional[str] = None
    sensitive: bool = False

    def to_extractor_definition(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class IgnoreErrorOutput(ExecModel):
    contains: List[str] = pydantic.Field(default_factory=list)
    regex: List[str] = pydantic.Field(default_factory=list)


class IgnoreErrorHandler(ExecModel):
    """Rules that turn a failed command into a successful step.

    Rules are evaluated in order: ``all``, ``exitCodes``, ``output.contains``
    and ``output.regex``. The output rules are matched against stderr.
    """

    all: bool = False
    exit_codes: List[int] = pydantic.Field(default_factory=list, alias="exitCodes")
    output: IgnoreErrorOutput = pydantic.Field(default_factory=IgnoreErrorOutput)

    def handles(self, exit_code: int, stderr: str) -> bool:
        """Return True if the failure should be ignored.

        :raises PorterError: if an ``output.regex`` rule is not a valid
            regular expression.
        """
        if exit_code == 0:
            return True

        if self.all:
            emit.debug(
                "Ignoring mixin command error because all was specified in the "
                "mixin step definition"
            )
            return True

        if exit_code in self.exit_codes:
            emit.debug(
                f"Ignoring mixin command error (exit code: {exit_code}) because it "
                "was included in the allowed exitCodes list"
            )
            return True

        for text in self.output.contains:
            if text in stderr:
                emit.debug(
                    f"Ignoring mixin command error because the error contained {text!r}"
                )
                return True

        for pattern in self.output.regex:
            try:
                expression = re.compile(pattern)
            except re.error as err:
                raise errors.PorterError(
                    "Could not ignore failed command because the regex specified by "
                    f"the mixin step definition ({pattern!r}) is invalid: {err}"
                ) from err
            if expression.search(stderr):
                emit.debug(
                    f"Ignoring mixin command error because the error matched {pattern!r}"
                )
                return True

        return False


class Instruction(ExecModel):
    """The body of an exec step."""

    description: str
    command: str
    working_dir: Optional[str] = pydantic.Field(default=None, alias="dir")
    arguments: List[str] = pydantic.Field(default_factory=list)
    suffix_arguments: List[str] = pydantic.Field(
        default_factory=list, alias="suffix-arguments"
    )
    flags: List[Flag] = pydantic.Field(default_factory=list)
    envs: Dict[str, str] = pydantic.Field(default_factory=dict)
    outputs: List[OutputDefinition] = pydantic.Field(default_factory=list)
    suppress_output: bool = pydantic.Field(default=False, alias="suppress-output")
    ignore_error: Optional[IgnoreErrorHandler] = pydantic.Field(
        default=None, alias="ignoreError"
    )

    @pydantic.field_validator("flags", mode="before")
    @classmethod
    def _flags_from_mapping(cls, value: Any) -> Any:
        if value is None:
            return []
        if not isinstance(value, dict):
            return value
        return [
            {"name": str(name), "values": _flag_values(str(name), flag_value)}
            for name, flag_value in value.items()
        ]

    @pydantic.field_validator("envs", mode="before")
    @classmethod
    def _stringify_envs(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {str(k): _env_value(v) for k, v in value.items()}
        return value

    def get_flag(self, name: str) -> Optional[Flag]:
        for flag in self.flags:
            if flag.name == name:
                return flag
        return None


class Step(ExecModel):
    exec: Instruction


class Action(ExecModel):
    """The steps of a single action."""

    name: str
    steps: List[Step] = pydantic.Field(default_factory=list)


def _to_actions(data: Any) -> List[Action]:
    if not isinstance(data, dict):
        raise errors.PorterError(
            "could not unmarshal yaml into an action map of exec steps"
        )
    actions = []
    for name, steps in data.items():
        try:
            actions.append(Action.model_validate({"name": str(name), "steps": steps or []}))
        except pydantic.ValidationError as err:
            raise errors.PorterError(
                format_pydantic_errors(err.errors(), file_name="exec input")
            ) from err
    return actions


def load_action(contents: str) -> Action:
    """Parse the YAML sent to the mixin for a single action.

    :raises PorterError: if the input is not a single action of exec steps.
    """
    data = yaml_utils.load(contents, what="exec input")
    actions = _to_actions(data)
    if len(actions) != 1:
        raise errors.PorterError(f"expected a single action, but got {len(actions)}")
    return actions[0]


def load_build_input(contents: str) -> List[Action]:
    """Parse the ``{config, actions}`` document sent to build and lint.

    :raises PorterError: if the input is not valid.
    """
    data = yaml_utils.load(contents, what="exec input") or {}
    if not isinstance(data, dict):
        raise errors.PorterError("could not unmarshal input: expected a mapping")
    return _to_actions(data.get("actions") or {})
