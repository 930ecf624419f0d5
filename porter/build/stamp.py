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

"""Provenance record embedded in the bundle custom section."""

import base64
import binascii
import hashlib
from typing import Dict, Mapping

import pydantic
from craft_cli import emit
from pydantic import ConfigDict
from pydantic.alias_generators import to_camel

import porter
from porter import const, errors
from porter.cnab.bundle import Bundle
from porter.manifest import Manifest


class MixinRecord(pydantic.BaseModel):
    version: str


class Stamp(pydantic.BaseModel):
    """Porter metadata about how a bundle was built.

    The manifest digest covers everything that goes into a build so a stale
    build can be detected.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    manifest_digest: str = ""
    mixins: Dict[str, MixinRecord] = pydantic.Field(default_factory=dict)
    encoded_manifest: str = ""
    version: str = ""
    commit: str = ""

    def marshal(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

    def decode_manifest(self) -> bytes:
        """Return the manifest bytes embedded in the stamp.

        :raises PorterError: if there is no manifest or it cannot be decoded.
        """
        if not self.encoded_manifest:
            raise errors.PorterError("no Porter manifest was embedded in the bundle")
        try:
            return base64.b64decode(self.encoded_manifest, validate=True)
        except binascii.Error as err:
            raise errors.PorterError(
                "could not base64 decode the manifest in the stamp"
            ) from err


def get_used_mixins(
    manifest: Manifest, installed: Mapping[str, str]
) -> Dict[str, str]:
    """Return the version of each declared mixin that is installed, by name."""
    return {
        name: installed[name]
        for name in sorted(manifest.mixin_names)
        if name in installed
    }


def digest_manifest(manifest: Manifest, mixins: Mapping[str, str]) -> str:
    """Digest the manifest, the porter version and the used mixins.

    :raises PorterError: if the manifest bytes are not available.
    """
    if not manifest.raw:
        raise errors.PorterError(
            f"the specified porter configuration file {manifest.manifest_path} "
            "does not exist"
        )
    data = manifest.raw + porter.__version__.encode()
    for name in sorted(mixins):
        data += name.encode() + mixins[name].encode()
    return hashlib.sha256(data).hexdigest()


def generate_stamp(manifest: Manifest, installed_mixins: Mapping[str, str]) -> Stamp:
    """Create the stamp for a manifest."""
    used = get_used_mixins(manifest, installed_mixins)
    try:
        digest = digest_manifest(manifest, used)
    except errors.PorterError as err:
        emit.verbose(f"WARNING: Could not digest the porter manifest file: {err}")
        digest = "unknown"

    return Stamp(
        manifest_digest=digest,
        mixins={name: MixinRecord(version=version) for name, version in used.items()},
        encoded_manifest=base64.b64encode(manifest.raw).decode(),
        version=porter.__version__,
        commit=porter.__commit__,
    )


def load_stamp(bundle: Bundle) -> Stamp:
    """Read the stamp of a bundle built by Porter.

    :raises PorterError: if the bundle has no valid stamp.
    """
    try:
        data = bundle.custom[const.STAMP_KEY]
    except KeyError as err:
        raise errors.PorterError(
            f"porter stamp (custom.{const.STAMP_KEY}) was not present on the bundle"
        ) from err
    try:
        return Stamp.model_validate(data)
    except pydantic.ValidationError as err:
        raise errors.PorterError(
            f"could not unmarshal the porter stamp {data!r}"
        ) from err
