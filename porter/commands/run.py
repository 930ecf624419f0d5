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

"""Porter run command, the entry point of the installer image."""

import argparse
import os
import textwrap
from pathlib import Path

from craft_cli import BaseCommand
from craft_cli.errors import ArgumentParsingError
from overrides import overrides

from porter import const
from porter.config import load_config
from porter.context import Context
from porter.mixins import MixinRunner
from porter.runtime import PorterRuntime


class RunCommand(BaseCommand):
    """Execute a bundle action inside the installer image."""

    name = "run"
    help_msg = "Execute a bundle action"
    overview = textwrap.dedent(
        f"""
        Execute an action of the bundle.

        This runs inside the installer image. The action is read from
        {const.ENV_ACTION} unless it is given with --action.
        """
    )

    @overrides
    def fill_parser(self, parser: "argparse.ArgumentParser") -> None:
        parser.add_argument(
            "--action",
            default="",
            help=f"The action to execute, {const.ENV_ACTION} by default",
        )
        parser.add_argument(
            "-f",
            "--file",
            dest="file",
            type=Path,
            default=None,
            help=f"Path to the porter manifest, {const.MANIFEST_PATH} by default",
        )

    @overrides
    def run(self, parsed_args: argparse.Namespace):
        """Run the command.

        :raises ArgumentParsingError: if no action is given.
        """
        action = parsed_args.action or os.environ.get(const.ENV_ACTION, "")
        if not action:
            raise ArgumentParsingError(
                f"no action was specified, set {const.ENV_ACTION} or pass --action"
            )

        config = load_config()
        context = Context()
        mixins_dir = const.MIXINS_DIR if const.MIXINS_DIR.is_dir() else config.mixins_dir
        runtime = PorterRuntime(context, MixinRunner(context, mixins_dir))
        runtime.execute(action, runtime.load_manifest(parsed_args.file))
