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

"""OCI image and bundle references."""

import re
from dataclasses import dataclass, replace
from porter import errors, utils

DEFAULT_REGISTRY = "docker.io"
_LEGACY_REGISTRY = "index.docker.io"
_OFFICIAL_PREFIX = "library/"

_COMPONENT = r"[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*"
_DOMAIN_COMPONENT = r"(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])"
_DOMAIN = rf"{_DOMAIN_COMPONENT}(?:\.{_DOMAIN_COMPONENT})*(?::[0-9]+)?"
_TAG = r"[\w][\w.-]{0,127}"
_DIGEST = r"[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}"

_REFERENCE_REGEX = re.compile(
    rf"^(?P<name>(?:{_DOMAIN}/)?{_COMPONENT}(?:/{_COMPONENT})*)"
    rf"(?::(?P<tag>{_TAG}))?(?:@(?P<digest>{_DIGEST}))?$"
)
_TAG_REGEX = re.compile(rf"^{_TAG}$")
_DIGEST_REGEX = re.compile(rf"^{_DIGEST}$")


@dataclass(frozen=True)
class OCIReference:
    """A normalized reference such as ``ghcr.io/getporter/mybuns:v0.1.1``.

    Unqualified names are normalized the way docker does it: the registry
    defaults to docker.io and single component names get the ``library/``
    prefix.
    """

    registry: str
    path: str
    tag: str = ""
    digest: str = ""

    @classmethod
    def parse(cls, value: str) -> "OCIReference":
        """Parse a reference.

        :raises InvalidReference: if the value is not a valid reference.
        """
        match = _REFERENCE_REGEX.match(value or "")
        if not match:
            raise errors.InvalidReference(
                f"failed to parse named reference {value}: invalid reference format"
            )

        name = match.group("name")
        registry, _, remainder = name.partition("/")
        if not remainder or not (
            "." in registry or ":" in registry or registry == "localhost"
        ):
            registry, remainder = DEFAULT_REGISTRY, name
        if registry == _LEGACY_REGISTRY:
            registry = DEFAULT_REGISTRY
        if registry == DEFAULT_REGISTRY and "/" not in remainder:
            remainder = _OFFICIAL_PREFIX + remainder
        if remainder != remainder.lower():
            raise errors.InvalidReference(
                f"failed to parse named reference {value}: "
                "repository name must be lowercase"
            )

        return cls(
            registry=registry,
            path=remainder,
            tag=match.group("tag") or "",
            digest=match.group("digest") or "",
        )

    @property
    def repository(self) -> str:
        """Familiar repository name, e.g. ``getporter/mybuns``."""
        if self.registry == DEFAULT_REGISTRY:
            return self.path.removeprefix(_OFFICIAL_PREFIX)
        return f"{self.registry}/{self.path}"

    @property
    def full_name(self) -> str:
        """Fully qualified repository, e.g. ``docker.io/library/nginx``."""
        return f"{self.registry}/{self.path}"

    def has_tag(self) -> bool:
        return bool(self.tag)

    def has_digest(self) -> bool:
        return bool(self.digest)

    def is_repository_only(self) -> bool:
        return not self.has_tag() and not self.has_digest()

    def has_version(self) -> bool:
        return utils.parse_version(self.tag) is not None

    @property
    def version(self) -> str:
        """The tag parsed as a semantic version, or an empty string."""
        parsed = utils.parse_version(self.tag)
        return str(parsed) if parsed is not None else ""

    def with_tag(self, tag: str) -> "OCIReference":
        if not _TAG_REGEX.match(tag):
            raise errors.InvalidReference(f"invalid tag format: {tag!r}")
        return replace(self, tag=tag, digest="")

    def with_version(self, version: str) -> "OCIReference":
        parsed = utils.parse_version(version)
        if parsed is None:
            raise errors.InvalidReference(
                f"invalid bundle version specified {version}"
            )
        return self.with_tag(f"v{parsed}")

    def with_digest(self, digest: str) -> "OCIReference":
        if not _DIGEST_REGEX.match(digest):
            raise errors.InvalidReference(f"invalid digest format: {digest!r}")
        return replace(self, tag="", digest=digest)

    def __str__(self) -> str:
        value = self.repository
        if self.tag:
            value += f":{self.tag}"
        if self.digest:
            value += f"@{self.digest}"
        return value


def parse_reference(value: str) -> OCIReference:
    """Parse ``value`` as an OCI reference."""
    return OCIReference.parse(value)


def get_installer_image(bundle_ref: OCIReference) -> OCIReference:
    """Return the installer image reference derived from a bundle reference."""
    return replace(bundle_ref, path=f"{bundle_ref.path}-installer", digest="")
