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

"""Porter lint command."""

import argparse
import textwrap

from craft_cli import BaseCommand, emit
from overrides import overrides

from porter import errors, linter

from ._common import add_file_argument, get_runner, load_project


class LintCommand(BaseCommand):
    """Lint the manifest with the mixins it uses."""

    name = "lint"
    help_msg = "Lint a bundle"
    overview = textwrap.dedent(
        """
        Check the manifest for problems.

        Each mixin used by the bundle checks its own steps. Mixins that do
        not support linting are skipped.
        """
    )

    @overrides
    def fill_parser(self, parser: "argparse.ArgumentParser") -> None:
        add_file_argument(parser)

    @overrides
    def run(self, parsed_args: argparse.Namespace):
        """Run the linter command.

        :raises LinterError: if any result is an error.
        """
        emit.progress("Running linter.", permanent=True)
        config, manifest = load_project(parsed_args)
        results = linter.Linter(get_runner(config)).lint(manifest)
        if not results:
            emit.message("No issues found.")
            return

        emit.message(linter.format_results(results))
        if linter.has_error(results):
            raise errors.LinterError("lint errors were found", exit_code=1)
