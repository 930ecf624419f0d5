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

"""Command-line application entry point."""

import contextlib
import os
import sys
from dataclasses import dataclass
from typing import Any, Dict

import craft_cli
from craft_application.util import strtobool
from craft_cli import ArgumentParsingError, EmitterMode, ProvideHelpException, emit

from porter import __version__, const, errors, utils

from . import commands


@dataclass
class CommandGroup:
    """Dataclass to hold a command group."""

    name: str
    commands: list


COMMAND_GROUPS = [
    CommandGroup(
        "Bundle",
        [
            commands.BuildCommand,
            commands.LintCommand,
        ],
    ),
    CommandGroup(
        "Runtime",
        [
            commands.RunCommand,
        ],
    ),
    CommandGroup(
        "Other",
        [
            commands.VersionCommand,
        ],
    ),
]

GLOBAL_ARGS = [
    craft_cli.GlobalArgument(
        "version", "flag", "-V", "--version", "Show the application version and exit"
    ),
]


def get_verbosity() -> EmitterMode:
    """Return the verbosity level to use.

    If PORTER_DEBUG is set, the default verbosity will be set to
    EmitterMode.DEBUG.

    If stdin is closed, the default verbosity will be set to
    EmitterMode.VERBOSE.
    """
    verbosity = EmitterMode.BRIEF

    if not sys.stdin.isatty():
        verbosity = EmitterMode.VERBOSE

    with contextlib.suppress(ValueError):
        if strtobool(os.getenv(const.ENV_DEBUG, "n").strip()):
            verbosity = EmitterMode.DEBUG

    # if defined, use environmental variable PORTER_VERBOSITY_LEVEL
    verbosity_env = os.getenv(const.ENV_VERBOSITY)
    if verbosity_env:
        try:
            verbosity = EmitterMode[verbosity_env.strip().upper()]
        except KeyError:
            values = utils.humanize_list(
                [e.name.lower() for e in EmitterMode], "and", sort=False
            )
            raise ArgumentParsingError(
                f"cannot parse verbosity level {verbosity_env!r} from environment "
                f"variable {const.ENV_VERBOSITY} (valid values are {values})"
            ) from KeyError

    return verbosity


def get_dispatcher() -> craft_cli.Dispatcher:
    """Return an instance of Dispatcher."""
    craft_cli_command_groups = [
        craft_cli.CommandGroup(group.name, group.commands) for group in COMMAND_GROUPS
    ]

    return craft_cli.Dispatcher(
        "porter",
        craft_cli_command_groups,
        summary="Build and run cloud-native application bundles",
        extra_global_args=GLOBAL_ARGS,
    )


def _run_dispatcher(
    dispatcher: craft_cli.Dispatcher, global_args: Dict[str, Any]
) -> None:
    if global_args.get("version"):
        emit.message(f"porter {__version__}")
    else:
        dispatcher.load_command(None)
        dispatcher.run()
    emit.ended_ok()


def _emit_error(error, cause=None):
    """Emit the error in a centralized way so we can alter it consistently."""
    if cause is not None:
        error.__cause__ = cause
    emit.error(error)


def run():
    """Run the CLI."""
    emit.init(EmitterMode.BRIEF, "porter", f"Starting porter, version {__version__}")
    dispatcher = get_dispatcher()
    retcode = 1

    try:
        emit.set_mode(get_verbosity())
        global_args = dispatcher.pre_parse_args(sys.argv[1:])
        _run_dispatcher(dispatcher, global_args)
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
        _emit_error(craft_cli.errors.CraftError("Interrupted."), cause=err)
        retcode = 1
    except errors.LinterError as err:
        emit.error(craft_cli.errors.CraftError(f"linter error: {err}"))
        retcode = err.exit_code
    except (errors.MixinCommandError, errors.AggregateError) as err:
        _emit_error(err)
        retcode = err.exit_code
    except errors.PorterError as err:
        _emit_error(err)
        retcode = 1

    return retcode
