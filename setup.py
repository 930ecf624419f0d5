#!/usr/bin/env python3
# -*- Mode:Python; indent-tabs-mode:nil; tab-width:4 -*-
#
# Copyright 2015-2022 Canonical Ltd.
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

from setuptools import find_namespace_packages, setup

from tools.version import determine_version

# Common distribution data
name = "porter"
description = "Build and run cloud-native application bundles."
url = "https://github.com/getporter/porter"
license_ = "GPL v3"
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "License :: OSI Approved :: GNU General Public License v3 (GPLv3)",
    "Natural Language :: English",
    "Programming Language :: Python",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3.10",
    "Topic :: Software Development :: Build Tools",
    "Topic :: System :: Software Distribution",
]

dev_requires = [
    "black",
    "coverage[toml]",
    "mypy",
    "pytest",
    "pytest-cov",
    "pytest-mock",
    "pytest-subprocess",
    "ruff",
    "types-PyYAML",
    "types-requests",
    "types-setuptools",
    "types-tabulate",
]

install_requires = [
    "craft-application",
    "craft-cli",
    "grpcio",
    "jinja2",
    "jsonpath-ng",
    "jsonschema",
    "overrides",
    "pydantic>=2",
    "pyyaml",
    "requests",
    "semver>=3",
    "tabulate",
    "typing-extensions",
]

extras_requires = {
    "dev": dev_requires,
}

setup(
    name=name,
    version=determine_version(),
    description=description,
    url=url,
    packages=find_namespace_packages(include=["porter", "porter.*"]),
    package_data={"porter": ["templates/*.j2"]},
    license=license_,
    classifiers=classifiers,
    entry_points=dict(
        console_scripts=[
            "porter = porter.cli:run",
            "porter-exec = porter.mixins.exec.cli:run",
        ]
    ),
    python_requires=">=3.10",
    install_requires=install_requires,
    extras_require=extras_requires,
    test_suite="tests.unit",
)
