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

"""Run mixin executables."""

import dataclasses
import json
import re
import subprocess
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from craft_cli import emit

from porter import const, errors, utils
from porter.context import Context

from . import outputs

# Lines of mixin stderr kept in error details
_STDERR_TAIL_LINES = 20

_VERSION_PATTERN = re.compile(r"v?\d+\.\d+\.\d+\S*")


@dataclasses.dataclass
class MixinCommand:
    """A command to send to a mixin.

    :param name: The mixin name.
    :param command: The mixin command or action name.
    :param input: YAML document written to the mixin stdin.
    :param runtime: Run the runtime executable instead of the client.
    :param file: Optional file passed with ``-f``.
    :param outputs: Output extractors applied to a successful run.
    """

    name: str
    command: str
    input: str = ""
    runtime: bool = False
    file: str = ""
    outputs: List[Dict[str, Any]] = dataclasses.field(default_factory=list)


class MixinRunner:
    """Locate and run mixins installed in a mixins directory.

    :param context: The process context.
    :param mixins_dir: Directory holding one subdirectory per mixin.
    """

    def __init__(self, context: Context, mixins_dir: Optional[Path] = None) -> None:
        self.context = context
        self.mixins_dir = mixins_dir if mixins_dir is not None else const.MIXINS_DIR

    def get_executable(self, name: str, runtime: bool = False) -> Path:
        """Return the path of the mixin executable."""
        if runtime:
            return self.mixins_dir / name / f"{name}-runtime"
        exe = f"{name}.exe" if sys.platform == "win32" else name
        return self.mixins_dir / name / exe

    def validate(self, name: str, runtime: bool = False) -> None:
        """Check a mixin is installed.

        :raises MixinNotInstalled: if the executable is missing.
        """
        executable = self.get_executable(name, runtime)
        if not executable.is_file():
            raise errors.MixinNotInstalled(name, str(executable))

    def list_installed(self) -> List[str]:
        """Return the names of the installed mixins."""
        if not self.mixins_dir.is_dir():
            return []
        return sorted(
            path.name
            for path in self.mixins_dir.iterdir()
            if self.get_executable(path.name).is_file()
        )

    def build_args(self, cmd: MixinCommand) -> List[str]:
        """Return the command line for a mixin command."""
        args = [str(self.get_executable(cmd.name, cmd.runtime))]
        if cmd.command in const.MIXIN_COMMANDS:
            args.append(cmd.command)
        else:
            args.extend(["invoke", "--action", cmd.command])
        if cmd.file:
            args.extend(["-f", cmd.file])
        if self.context.debug:
            args.append("--debug")
        return args

    def run(self, cmd: MixinCommand, context: Optional[Context] = None) -> str:
        """Run a mixin command and apply its output extractors.

        :param cmd: The command to run.
        :param context: Context whose sinks receive the mixin output, the
            runner context by default.

        :returns: The mixin stdout.

        :raises MixinStartError: if the mixin cannot be launched.
        :raises MixinCommandError: if the mixin exits with an error.
        :raises OutputExtractionError: if an output cannot be extracted.
        """
        if context is None:
            context = self.context

        args = self.build_args(cmd)
        command_line = " ".join(args)
        emit.debug(
            f"Running mixin command: {command_line} "
            f"(correlation id {context.correlation_id or 'unset'})"
        )
        try:
            proc = utils.run_streamed(
                args,
                input=cmd.input,
                stdout=context.stdout,
                stderr=context.stderr,
                env=context.environ,
            )
        except OSError as err:
            raise errors.MixinStartError(
                f"could not start mixin command {command_line}",
                details=str(err),
            ) from err

        stdout, stderr = proc.stdout, proc.stderr

        if proc.returncode != 0:
            tail = "\n".join(stderr.splitlines()[-_STDERR_TAIL_LINES:]) if stderr else None
            raise errors.MixinCommandError(
                f"mixin command failed {command_line}",
                exit_code=proc.returncode,
                details=context.stderr.censor(tail) if tail else None,
            )

        for definition in cmd.outputs:
            outputs.apply_output(definition, stdout)

        return stdout

    def get_version(self, name: str) -> str:
        """Return the version reported by a mixin.

        :raises MixinStartError: if the mixin cannot be launched.
        :raises MixinCommandError: if the mixin exits with an error.
        """
        args = self.build_args(MixinCommand(name=name, command="version"))
        args.extend(["--output", "json"])
        emit.debug(f"Getting mixin version: {' '.join(args)}")
        try:
            proc = subprocess.run(
                args,
                capture_output=True,
                check=True,
                text=True,
                env=self.context.environ,
            )
        except OSError as err:
            raise errors.MixinStartError(
                f"could not start mixin command {' '.join(args)}", details=str(err)
            ) from err
        except subprocess.CalledProcessError as err:
            raise errors.MixinCommandError(
                f"mixin command failed {' '.join(args)}",
                exit_code=err.returncode,
                details=err.stderr.strip() if err.stderr else None,
            ) from err

        output = proc.stdout.strip()
        try:
            data = json.loads(output)
        except json.JSONDecodeError:
            match = _VERSION_PATTERN.search(output)
            return match.group(0) if match else output
        if isinstance(data, dict):
            return str(data.get("version", ""))
        return str(data)
