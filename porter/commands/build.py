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

"""Porter build command."""

import argparse
import textwrap

from craft_cli import BaseCommand, emit
from overrides import overrides

from porter.build import BundleBuilder

from ._common import add_file_argument, get_runner, load_project


class BuildCommand(BaseCommand):
    """Build the bundle definition and the installer Dockerfile."""

    name = "build"
    help_msg = "Build a bundle"
    overview = textwrap.dedent(
        """
        Build the bundle in the current directory.

        The bundle definition is written to .cnab/bundle.json together with
        the porter runtime, the mixins used by the bundle and the Dockerfile
        of the installer image.
        """
    )

    @overrides
    def fill_parser(self, parser: "argparse.ArgumentParser") -> None:
        add_file_argument(parser)

    @overrides
    def run(self, parsed_args: argparse.Namespace):
        """Run the command."""
        config, manifest = load_project(parsed_args)
        project_dir = parsed_args.file.resolve().parent
        bundle = BundleBuilder(manifest, get_runner(config), project_dir).build()
        emit.message(f"Built bundle {bundle.name} {bundle.version}")
