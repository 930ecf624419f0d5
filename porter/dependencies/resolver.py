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

"""Resolving bundle dependencies to concrete references."""

import dataclasses
from typing import List, Optional, Protocol, Tuple

import semver
from craft_cli import emit

from porter import errors, utils
from porter.cnab import Bundle
from porter.cnab.extensions import Dependency
from porter.cnab.extensions import dependencies as dependencies_ext
from porter.cnab.reference import OCIReference, parse_reference

LATEST_TAG = "latest"


class TagLister(Protocol):
    """Something that can list the tags of a repository."""

    def list_tags(self, reference: OCIReference) -> List[str]:
        """Return the tags of the repository of ``reference``."""


@dataclasses.dataclass(frozen=True)
class DependencyLock:
    """A dependency pinned to a reference.

    :param alias: The name the bundle uses for the dependency.
    :param reference: The resolved bundle reference.
    """

    alias: str
    reference: str


class DependencyResolver:
    """Pin the dependencies of a bundle to concrete tags.

    :param tag_lister: Source of repository tags, queried only for
        dependencies that do not carry a tag.
    """

    def __init__(self, tag_lister: TagLister) -> None:
        self.tag_lister = tag_lister

    def resolve_dependencies(self, bundle: Bundle) -> List[DependencyLock]:
        """Resolve every dependency of a bundle, in install order.

        :raises DependencyResolutionError: if a dependency cannot be resolved.
        """
        if not dependencies_ext.has_dependencies(bundle):
            return []

        deps = dependencies_ext.read_dependencies(bundle)
        locks = []
        for dep in deps.list_by_sequence():
            reference = self.resolve_version(dep.name, dep)
            emit.debug(f"Resolved dependency {dep.name} to {reference}")
            locks.append(DependencyLock(alias=dep.name, reference=str(reference)))
        return locks

    def resolve_version(self, name: str, dep: Dependency) -> OCIReference:
        """Return the reference to use for a dependency.

        A reference with a tag is used as is. Otherwise the highest semantic
        version tag of the repository is used, falling back to ``latest``.

        :raises DependencyResolutionError: if no usable tag is found.
        :raises FeatureNotImplemented: if a version range is given.
        """
        try:
            reference = parse_reference(dep.bundle)
        except errors.InvalidReference as err:
            raise errors.DependencyResolutionError(
                f"error parsing dependency ({name}) bundle {dep.bundle!r} as OCI reference: {err}"
            ) from err

        if dep.ranges:
            raise errors.FeatureNotImplemented(
                f"dependency version range specified for {reference}"
            )

        if reference.has_tag():
            return reference

        tags = self.tag_lister.list_tags(reference)
        tag = select_tag(tags, allow_prereleases=dep.allow_prereleases)
        if tag is None:
            raise errors.DependencyResolutionError(
                f"no tag was specified for {reference} and none of the tags defined "
                "in the registry meet the criteria: semver formatted or 'latest'"
            )
        return reference.with_tag(tag)


def select_tag(tags: List[str], *, allow_prereleases: bool = False) -> Optional[str]:
    """Pick the tag to use from a repository listing.

    :returns: The tag of the highest semantic version, ``latest`` when no tag
        is a usable version, or None.
    """
    versions: List[Tuple[semver.Version, str]] = []
    for tag in tags:
        version = utils.parse_version(tag)
        if version is None:
            continue
        if version.prerelease and not allow_prereleases:
            continue
        versions.append((version, tag))

    if versions:
        return max(versions, key=lambda item: item[0])[1]
    if LATEST_TAG in tags:
        return LATEST_TAG
    return None
