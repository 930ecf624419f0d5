#!/usr/bin/env python3
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

import os
import subprocess


def determine_version():
    # Examples (git describe -> python package version):
    # v1.0.1-0-gad012482d -> 1.0.1
    # v1.0.1-16-g2d8943dbc -> 1.0.1.post16+g2d8943dbc
    #
    # For shallow clones or repositories missing tags:
    # 0ae7c04

    try:
        desc = subprocess.run(
            ["git", "describe", "--always", "--long"],
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            check=False,
            text=True,
        ).stdout.strip()
    except FileNotFoundError:
        desc = ""

    split_desc = desc.split("-")
    if len(split_desc) != 3:
        return os.environ.get("PORTER_VERSION", "0.0.0+devel")

    version = split_desc[0].lstrip("v")
    distance = split_desc[1]
    commit = split_desc[2]

    if distance == "0":
        return version

    return f"{version}.post{distance}+git{commit[1:]}"


if __name__ == "__main__":
    print(determine_version())
