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

"""JSON schema of the exec mixin steps, merged into the porter.yaml schema."""

_STRING_LIST = {"type": "array", "items": {"type": "string"}}

_OUTPUT = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "path": {"type": "string"},
        "jsonPath": {"type": "string"},
        "regex": {"type": "string"},
        "sensitive": {"type": "boolean"},
    },
    "additionalProperties": False,
    "required": ["name"],
}

_IGNORE_ERROR = {
    "type": "object",
    "properties": {
        "all": {"type": "boolean"},
        "exitCodes": {"type": "array", "items": {"type": "integer"}},
        "output": {
            "type": "object",
            "properties": {"contains": _STRING_LIST, "regex": _STRING_LIST},
            "additionalProperties": False,
        },
    },
    "additionalProperties": False,
}

_INSTRUCTION = {
    "type": "object",
    "properties": {
        "description": {"type": "string", "minLength": 1},
        "command": {"type": "string"},
        "dir": {"type": "string"},
        "arguments": _STRING_LIST,
        "suffix-arguments": _STRING_LIST,
        "flags": {
            "type": "object",
            "additionalProperties": {
                "type": ["null", "boolean", "number", "string", "array"],
                "items": {"type": "string"},
            },
        },
        "envs": {"type": "object", "additionalProperties": {"type": "string"}},
        "outputs": {"type": "array", "items": {"$ref": "#/definitions/output"}},
        "suppress-output": {"type": "boolean"},
        "ignoreError": {"$ref": "#/definitions/ignoreError"},
    },
    "additionalProperties": False,
    "required": ["description", "command"],
}

_STEPS = {"type": "array", "items": {"$ref": "#/definitions/exec"}}


def get_schema() -> dict:
    """Return the schema of the steps accepted by the mixin."""
    return {
        "$schema": "http://json-schema.org/draft-07/schema#",
        "definitions": {
            "exec": {
                "type": "object",
                "properties": {"exec": {"$ref": "#/definitions/instruction"}},
                "additionalProperties": False,
                "required": ["exec"],
            },
            "instruction": _INSTRUCTION,
            "output": _OUTPUT,
            "ignoreError": _IGNORE_ERROR,
        },
        "type": "object",
        "properties": {
            "install": _STEPS,
            "upgrade": _STEPS,
            "uninstall": _STEPS,
        },
        "additionalProperties": _STEPS,
    }
