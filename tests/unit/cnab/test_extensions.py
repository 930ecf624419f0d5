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

import pytest

from porter import errors
from porter.cnab import Bundle
from porter.cnab.extensions import (
    DEPENDENCIES_KEY,
    DOCKER_KEY,
    FILE_PARAMETERS_KEY,
    PARAMETER_SOURCES_KEY,
    DependencyOutputParameterSource,
    Docker,
    OutputParameterSource,
    ParameterSources,
    get_docker,
    get_parameter_sources,
    get_supported_extension,
    process_required_extensions,
)
from porter.cnab.extensions import registry
from porter.cnab.extensions.dependencies import Dependencies, read_dependencies


def _bundle(custom, required):
    return Bundle.unmarshal(
        {
            "schemaVersion": "1.2.0",
            "name": "mybuns",
            "version": "0.1.0",
            "custom": custom,
            "requiredExtensions": required,
        }
    )


@pytest.mark.parametrize(
    "name,key",
    [
        ("dependencies", DEPENDENCIES_KEY),
        ("io.cnab.dependencies", DEPENDENCIES_KEY),
        ("docker", DOCKER_KEY),
        ("parameter-sources", PARAMETER_SOURCES_KEY),
        ("file-parameters", FILE_PARAMETERS_KEY),
    ],
)
def test_get_supported_extension(name, key):
    assert get_supported_extension(name).key == key


def test_get_supported_extension_unknown():
    with pytest.raises(errors.ExtensionError) as raised:
        get_supported_extension("io.cnab.unknown")

    assert str(raised.value) == "unsupported required extension: io.cnab.unknown"


def test_register_extension():
    ext = registry.RequiredExtension(
        shorthand="custom", key="com.example.custom", schema="", reader=registry.unused
    )
    registry.register(ext)
    try:
        assert get_supported_extension("custom") is ext
    finally:
        registry.unregister("com.example.custom")

    assert "com.example.custom" not in registry.get_extension_keys()


def test_process_required_extensions():
    bun = _bundle(
        {
            DOCKER_KEY: {"privileged": True},
            PARAMETER_SOURCES_KEY: {
                "tfstate": {
                    "priority": ["output"],
                    "sources": {"output": {"name": "tfstate"}},
                },
                "porter-mysql-password-dep-output": {
                    "priority": ["dependencyOutput"],
                    "sources": {
                        "dependencyOutput": {"dependency": "mysql", "name": "password"}
                    },
                },
            },
            FILE_PARAMETERS_KEY: {},
        },
        [DOCKER_KEY, PARAMETER_SOURCES_KEY, FILE_PARAMETERS_KEY],
    )

    processed = process_required_extensions(bun)

    docker, required = get_docker(processed)
    assert required is True
    assert docker == Docker(privileged=True)

    sources, required = get_parameter_sources(processed)
    assert required is True
    assert sources["tfstate"].list_sources_by_priority() == [
        OutputParameterSource(name="tfstate")
    ]
    assert sources["porter-mysql-password-dep-output"].list_sources_by_priority() == [
        DependencyOutputParameterSource(dependency="mysql", name="password")
    ]
    assert processed[FILE_PARAMETERS_KEY] is None


def test_process_required_extensions_unsupported():
    bun = _bundle({}, ["io.cnab.unknown"])

    with pytest.raises(errors.ExtensionError) as raised:
        process_required_extensions(bun)

    assert str(raised.value) == "unsupported required extension: io.cnab.unknown"


def test_process_required_extensions_missing_payload():
    bun = _bundle({}, [DOCKER_KEY])

    with pytest.raises(errors.ExtensionError) as raised:
        process_required_extensions(bun)

    assert str(raised.value) == (
        "unable to process extension: io.cnab.docker: "
        "no custom extension configuration found"
    )


def test_process_required_extensions_unknown_source_type():
    bun = _bundle(
        {PARAMETER_SOURCES_KEY: {"tfstate": {"sources": {"magic": {"name": "x"}}}}},
        [PARAMETER_SOURCES_KEY],
    )

    with pytest.raises(errors.ExtensionError) as raised:
        process_required_extensions(bun)

    assert str(raised.value) == (
        "unable to process extension: io.cnab.parameter-sources: "
        "unsupported parameter source key magic"
    )


def test_get_parameter_sources_not_required():
    sources, required = get_parameter_sources({})

    assert required is False
    assert len(sources) == 0


def test_get_docker_not_required():
    assert get_docker({}) == (None, False)


def test_parameter_sources_marshal():
    sources = ParameterSources()
    sources.set_parameter_from_output("porter-state", "porter-state")
    sources.set_parameter_from_dependency_output(
        "porter-mysql-password-dep-output", "mysql", "password"
    )

    assert sources.marshal() == {
        "porter-state": {
            "priority": ["output"],
            "sources": {"output": {"name": "porter-state"}},
        },
        "porter-mysql-password-dep-output": {
            "priority": ["dependencyOutput"],
            "sources": {
                "dependencyOutput": {"dependency": "mysql", "name": "password"}
            },
        },
    }


def test_dependencies_sequence():
    bun = _bundle(
        {
            DEPENDENCIES_KEY: {
                "sequence": ["db", "cache"],
                "requires": {
                    "cache": {"bundle": "getporter/redis:v0.1.0"},
                    "db": {
                        "bundle": "getporter/mysql",
                        "version": {"ranges": ["1.x"], "prereleases": True},
                    },
                },
            }
        },
        [DEPENDENCIES_KEY],
    )

    deps = read_dependencies(bun)

    assert [dep.name for dep in deps.list_by_sequence()] == ["db", "cache"]
    assert deps.requires["db"].ranges == ["1.x"]
    assert deps.requires["db"].allow_prereleases is True
    assert deps.requires["cache"].ranges == []


def test_dependencies_incomplete_sequence_uses_declared_order():
    deps = Dependencies.model_validate(
        {
            "sequence": ["db"],
            "requires": {
                "cache": {"bundle": "getporter/redis:v0.1.0"},
                "db": {"bundle": "getporter/mysql:v0.1.0"},
            },
        }
    )

    assert [dep.name for dep in deps.list_by_sequence()] == ["cache", "db"]
