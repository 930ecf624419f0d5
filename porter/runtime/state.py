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

"""The state bag, files carried between runs of a bundle."""

import gzip
import io
import tarfile
from pathlib import Path, PurePosixPath
from typing import Dict, List

from craft_cli import emit

from porter import const, errors
from porter.manifest import StateVariable


def unpack_state(archive: Path, state: List[StateVariable]) -> List[str]:
    """Restore the state variables from an archive.

    A missing or empty archive, or one holding a literal ``null``, means
    there is no previous state.

    :returns: The names of the restored variables.

    :raises StateBagError: if the archive cannot be read.
    """
    if not state or not archive.exists():
        emit.debug("No existing bundle state to unpack")
        return []

    try:
        data = archive.read_bytes()
    except OSError as err:
        raise errors.StateBagError(
            f"could not open statefile at {archive}: {err.strerror}"
        ) from err

    if not data.strip():
        emit.debug("Statefile exists but is empty")
        return []
    if data.strip() == b"null":
        emit.debug("Bundle state file has null content")
        archive.unlink()
        return []

    try:
        raw = gzip.decompress(data)
    except (gzip.BadGzipFile, EOFError, OSError) as err:
        raise errors.StateBagError(
            f"could not create a gzip reader for the statefile: {err}"
        ) from err
    if not raw:
        emit.debug("Statefile holds no state")
        return []

    destinations: Dict[str, str] = {var.name: var.path for var in state}
    restored = []
    emit.debug("Unpacking bundle state...")
    try:
        with tarfile.open(fileobj=io.BytesIO(raw), mode="r:") as tar:
            for member in tar:
                if not member.isreg():
                    continue
                member_path = PurePosixPath(member.name)
                if member_path.parent.name != const.STATE_ARCHIVE_PREFIX:
                    continue
                dest = destinations.get(member_path.name)
                if dest is None:
                    continue
                source = tar.extractfile(member)
                if source is None:
                    continue
                emit.debug(f"  - {member_path.name} -> {dest}")
                dest_path = Path(dest)
                dest_path.parent.mkdir(parents=True, exist_ok=True)
                dest_path.write_bytes(source.read())
                dest_path.chmod(member.mode & 0o777 or 0o600)
                restored.append(member_path.name)
    except tarfile.TarError as err:
        raise errors.StateBagError(f"could not unpack the statefile: {err}") from err
    except OSError as err:
        raise errors.StateBagError(
            f"error unpacking state file: {err.strerror or err}"
        ) from err
    return restored


def pack_state(archive: Path, state: List[StateVariable]) -> None:
    """Write the state variables that exist on disk into an archive.

    Every variable is attempted; failures are reported together.

    :raises AggregateError: if some variables could not be archived.
    """
    emit.debug("Packing bundle state...")
    failures: List[Exception] = []
    archive.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(archive, mode="w:gz") as tar:
        for var in state:
            path = Path(var.path)
            if not path.exists():
                continue
            emit.debug(f"  - {var.path}")
            try:
                tar.add(
                    str(path),
                    arcname=f"{const.STATE_ARCHIVE_PREFIX}/{var.name}",
                    recursive=False,
                )
            except OSError as err:
                failures.append(
                    errors.StateBagError(
                        f"error archiving state file {var.path} for variable "
                        f"{var.name}: {err.strerror or err}"
                    )
                )
    if failures:
        raise errors.AggregateError(failures)
