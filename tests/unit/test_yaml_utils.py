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

import io
from textwrap import dedent

import pytest

from porter import errors, yaml_utils


def test_load_duplicate_keys():
    content = dedent(
        """\
        name: mybuns
        name: otherbuns
        """
    )

    with pytest.raises(errors.PorterError) as raised:
        yaml_utils.load(content)

    assert str(raised.value).startswith("porter.yaml parsing error: while constructing")
    assert "found duplicate key 'name'" in str(raised.value)


def test_load_invalid_yaml():
    with pytest.raises(errors.PorterError) as raised:
        yaml_utils.load("name: [unclosed", what="exec input")

    assert str(raised.value).startswith("exec input parsing error: ")


def test_load_merge_tags():
    content = dedent(
        """\
        base: &base
          command: bash
        step:
          <<: *base
          description: Say hello
        """
    )

    data = yaml_utils.load(content)

    assert data["step"] == {"command": "bash", "description": "Say hello"}


def test_dump_keeps_order():
    assert yaml_utils.dump({"b": 1, "a": [1, 2]}) == "b: 1\na:\n- 1\n- 2\n"


def test_safe_load_empty():
    assert yaml_utils.safe_load(io.StringIO("")) == {}


def test_safe_load_not_a_mapping():
    with pytest.raises(errors.PorterError) as raised:
        yaml_utils.safe_load(io.StringIO("- a\n- b\n"))

    assert str(raised.value) == "YAML parsing error: expected a mapping"
