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

"""Run exec steps."""

import shlex
from typing import List

from craft_cli import emit

from porter import errors, utils
from porter.context import Context
from porter.mixins import outputs

from .models import Action, Instruction


def split_command(chunks: List[str]) -> List[str]:
    """Split flag values into words, keeping quoted text together.

    A chunk with unbalanced quotes is kept as a single word.
    """
    words: List[str] = []
    for chunk in chunks:
        try:
            words.extend(shlex.split(chunk))
        except ValueError:
            words.append(chunk)
    return words


def build_command(instruction: Instruction) -> List[str]:
    """Return the command line of a step.

    Flags are sorted by name and placed between the arguments and the
    suffix arguments.
    """
    flag_args: List[str] = []
    for flag in sorted(instruction.flags, key=lambda f: f.name):
        flag_args.extend(flag.to_args())
    return [
        instruction.command,
        *instruction.arguments,
        *split_command(flag_args),
        *instruction.suffix_arguments,
    ]


def execute_step(context: Context, instruction: Instruction) -> str:
    """Run the command of a step.

    :returns: The command stdout.

    :raises PorterError: if the command cannot be started.
    :raises MixinCommandError: if the command fails and the step error
        handler does not ignore the failure.
    """
    args = build_command(instruction)
    env = dict(context.environ)
    env.update(instruction.envs)
    cwd = instruction.working_dir
    if not cwd or cwd == ".":
        cwd = None

    pretty = " ".join(args)
    if instruction.suppress_output:
        emit.debug(f"Output suppressed for command {pretty}")
    else:
        emit.debug(f"Running {pretty}" + (f" in {cwd}" if cwd else ""))

    tee = not instruction.suppress_output
    try:
        proc = utils.run_streamed(
            args,
            stdout=context.stdout if tee else None,
            stderr=context.stderr if tee else None,
            env=env,
            cwd=cwd,
        )
    except OSError as err:
        raise errors.PorterError(
            f"couldn't run command {pretty}", details=str(err)
        ) from err

    if proc.returncode != 0:
        handler = instruction.ignore_error
        if handler is None or not handler.handles(proc.returncode, proc.stderr):
            raise errors.MixinCommandError(
                f"error running command {pretty}",
                exit_code=proc.returncode,
                details=proc.stderr.strip() or None,
            )

    return proc.stdout


def execute_action(context: Context, action: Action) -> str:
    """Run the single step of an action and extract its outputs.

    :raises PorterError: if the action does not hold exactly one step.
    """
    if len(action.steps) != 1:
        raise errors.PorterError(f"expected a single step, but got {len(action.steps)}")

    instruction = action.steps[0].exec
    emit.progress(instruction.description)
    stdout = execute_step(context, instruction)
    for output in instruction.outputs:
        outputs.apply_output(output.to_extractor_definition(), stdout)
    return stdout
