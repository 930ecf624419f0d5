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

"""Execution of bundle actions inside the installer image."""

from .manifest import RuntimeManifest, load_relocation_mapping
from .runtime import PorterRuntime, read_mixin_outputs
from .state import pack_state, unpack_state
from .template_data import TemplateDataBuilder

__all__ = [
    "PorterRuntime",
    "RuntimeManifest",
    "TemplateDataBuilder",
    "load_relocation_mapping",
    "pack_state",
    "read_mixin_outputs",
    "unpack_state",
]
