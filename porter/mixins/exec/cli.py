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

"""Command-line entry point of the exec mixin."""

import argparse
import json
import sys
import textwrap
from typing import Optional

import craft_cli
from craft_cli import ArgumentParsingError, BaseCommand, EmitterMode, ProvideHelpException, emit
from overrides import overrides

from porter import __commit__, __version__, const, errors, linter
from porter.context import Context

from . import execute, lint, models, schema

MIXIN_NAME = "exec"


def _read_input(path: Optional[str]) -> str:
    if not path:
        return sys.stdin.read()
    try:
        with open(path, encoding="utf-8") as file:
            return file.read()
    except OSError as err:
        raise errors.PorterError(
            f"could not load input from {path}: {err.strerror}"
        ) from err


class _InputCommand(BaseCommand):
    """Base for commands that read the step definitions from stdin or a file."""

    @overrides
    def fill_parser(self, parser: "argparse.ArgumentParser") -> None:
        parser.add_argument(
            "-f",
            "--file",
            dest="file",
            default="",
            help="Path to the input file, read from stdin when unset",
        )


class _ActionCommand(_InputCommand):
    action = ""

    @overrides
    def run(self, parsed_args: argparse.Namespace):
        """Run the single step of the action."""
        action = models.load_action(_read_input(parsed_args.file))
        execute.execute_action(Context(), action)


class InstallCommand(_ActionCommand):
    """Run an install step."""

    name = const.ACTION_INSTALL
    help_msg = "Execute the install functionality of this mixin"
    overview = "Execute the install step read from the input."
    action = const.ACTION_INSTALL


class UpgradeCommand(_ActionCommand):
    """Run an upgrade step."""

    name = const.ACTION_UPGRADE
    help_msg = "Execute the upgrade functionality of this mixin"
    overview = "Execute the upgrade step read from the input."
    action = const.ACTION_UPGRADE


class UninstallCommand(_ActionCommand):
    """Run an uninstall step."""

    name = const.ACTION_UNINSTALL
    help_msg = "Execute the uninstall functionality of this mixin"
    overview = "Execute the uninstall step read from the input."
    action = const.ACTION_UNINSTALL


class InvokeCommand(_ActionCommand):
    """Run a custom action step."""

    name = "invoke"
    help_msg = "Execute the invoke functionality of this mixin"
    overview = "Execute the step of a custom action read from the input."

    @overrides
    def fill_parser(self, parser: "argparse.ArgumentParser") -> None:
        super().fill_parser(parser)
        parser.add_argument(
            "--action",
            required=True,
            help="Custom action name to invoke",
        )


class BuildCommand(_InputCommand):
    """Generate Dockerfile lines for the bundle invocation image."""

    name = "build"
    help_msg = "Generate Dockerfile lines for the bundle invocation image"
    overview = textwrap.dedent(
        """
        Generate Dockerfile lines for the bundle invocation image.

        The exec mixin runs commands available in the base image and adds
        nothing to the Dockerfile.
        """
    )

    @overrides
    def run(self, parsed_args: argparse.Namespace):
        """Validate the input; there are no lines to generate."""
        models.load_build_input(_read_input(parsed_args.file))


class LintCommand(_InputCommand):
    """Check exec steps against best practices."""

    name = "lint"
    help_msg = "Check exec steps against best practices"
    overview = "Print the lint results of the steps read from the input as JSON."

    @overrides
    def run(self, parsed_args: argparse.Namespace):
        """Print the lint results."""
        actions = models.load_build_input(_read_input(parsed_args.file))
        emit.message(linter.dump_results(lint.lint_actions(actions)))


class SchemaCommand(BaseCommand):
    """Print the JSON schema of exec steps."""

    name = "schema"
    help_msg = "Print the json schema for the mixin"
    overview = "Print the json schema for the mixin."

    @overrides
    def run(self, parsed_args: argparse.Namespace):
        """Print the schema."""
        emit.message(json.dumps(schema.get_schema(), indent=2))


class VersionCommand(BaseCommand):
    """Show the mixin version."""

    name = "version"
    help_msg = "Print the mixin version"
    overview = "Print the mixin version"

    @overrides
    def fill_parser(self, parser: "argparse.ArgumentParser") -> None:
        parser.add_argument(
            "-o",
            "--output",
            choices=["plaintext", "json"],
            default="plaintext",
            help="Output format",
        )

    @overrides
    def run(self, parsed_args: argparse.Namespace):
        """Run the command."""
        if parsed_args.output == "json":
            emit.message(
                json.dumps(
                    {
                        "name": MIXIN_NAME,
                        "version": __version__,
                        "commit": __commit__,
                        "author": "Porter Authors",
                    },
                    indent=2,
                )
            )
        else:
            emit.message(f"{MIXIN_NAME} {__version__} ({__commit__}) by Porter Authors")


COMMAND_GROUPS = [
    craft_cli.CommandGroup(
        "Lifecycle",
        [InstallCommand, UpgradeCommand, UninstallCommand, InvokeCommand],
    ),
    craft_cli.CommandGroup(
        "Other",
        [BuildCommand, LintCommand, SchemaCommand, VersionCommand],
    ),
]

GLOBAL_ARGS = [
    craft_cli.GlobalArgument(
        "debug", "flag", None, "--debug", "Enable debug logging"
    ),
]


def get_dispatcher() -> craft_cli.Dispatcher:
    """Return an instance of Dispatcher."""
    return craft_cli.Dispatcher(
        MIXIN_NAME,
        COMMAND_GROUPS,
        summary="Run commands as the steps of a bundle",
        extra_global_args=GLOBAL_ARGS,
    )


def run() -> int:
    """Run the exec mixin CLI."""
    emit.init(
        EmitterMode.BRIEF,
        MIXIN_NAME,
        f"Starting the {MIXIN_NAME} mixin, version {__version__}",
    )
    dispatcher = get_dispatcher()
    retcode = 1

    try:
        global_args = dispatcher.pre_parse_args(sys.argv[1:])
        if global_args.get("debug"):
            emit.set_mode(EmitterMode.DEBUG)
        dispatcher.load_command(None)
        dispatcher.run()
        emit.ended_ok()
        retcode = 0
    except ArgumentParsingError as err:
        print(err, file=sys.stderr)  # to stderr, as argparse normally does
        emit.ended_ok()
        retcode = 1
    except ProvideHelpException as err:
        print(err, file=sys.stderr)  # to stderr, as argparse normally does
        emit.ended_ok()
        retcode = 0
    except KeyboardInterrupt as err:
        error = craft_cli.errors.CraftError("Interrupted.")
        error.__cause__ = err
        emit.error(error)
        retcode = 1
    except errors.MixinCommandError as err:
        emit.error(err)
        retcode = err.exit_code
    except errors.PorterError as err:
        emit.error(err)
        retcode = 1

    return retcode
