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

import pytest


@pytest.fixture(autouse=True)
def temp_porter_home(tmp_path, mocker):
    """Use a temporary porter home and drop porter settings from the environment."""
    environ = {
        name: value
        for name, value in os.environ.items()
        if not name.startswith("PORTER_") and name != "CNAB_ACTION"
    }
    environ["PORTER_HOME"] = str(tmp_path / ".porter")
    mocker.patch.dict(os.environ, environ, clear=True)


@pytest.fixture
def new_dir(tmp_path):
    """Change to a new temporary directory."""

    cwd = os.getcwd()
    os.chdir(tmp_path)

    yield tmp_path

    os.chdir(cwd)
