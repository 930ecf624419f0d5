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

"""The docker host access extension."""

from typing import TYPE_CHECKING

from .base import OFFICIAL_EXTENSIONS_PREFIX, ExtensionModel, read_payload

if TYPE_CHECKING:
    from porter.cnab.bundle import Bundle

DOCKER_SHORTHAND = "docker"
DOCKER_KEY = OFFICIAL_EXTENSIONS_PREFIX + DOCKER_SHORTHAND
DOCKER_SCHEMA = "schema/io-cnab-docker.schema.json"


class Docker(ExtensionModel):
    """Access to the host Docker daemon."""

    privileged: bool = False


def read_docker(bundle: "Bundle") -> Docker:
    return read_payload(bundle, DOCKER_KEY, Docker)
