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

"""Helpers shared by the porter commands."""

import argparse
from pathlib import Path
from typing import Tuple

from porter import const
from porter.config import Config, load_config
from porter.context import Context
from porter.manifest import Manifest, load_manifest
from porter.mixins import MixinRunner


def add_file_argument(parser: "argparse.ArgumentParser") -> None:
    parser.add_argument(
        "-f",
        "--file",
        dest="file",
        type=Path,
        default=Path(const.DEFAULT_MANIFEST_NAME),
        help="Path to the porter manifest, porter.yaml by default",
    )


def get_runner(config: Config) -> MixinRunner:
    return MixinRunner(Context(), config.mixins_dir)


def load_project(parsed_args: argparse.Namespace) -> Tuple[Config, Manifest]:
    """Load the configuration and the manifest named on the command line."""
    config = load_config()
    manifest = load_manifest(parsed_args.file)
    return config, manifest
