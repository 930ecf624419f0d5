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

"""Generate the Dockerfile of the installer image."""

from pathlib import Path
from typing import List, Optional

import jinja2
from craft_cli import emit
from typing_extensions import Final

from porter import errors
from porter.manifest import Manifest
from porter.mixins import ManifestInputGenerator, MixinQuery

DEFAULT_DOCKERFILE_SYNTAX: Final = "docker/dockerfile-upstream:1.4.0"
DEFAULT_BASE_IMAGE: Final = "debian:stable-slim"

PORTER_INIT_TOKEN: Final = "# PORTER_INIT"
PORTER_MIXINS_TOKEN: Final = "# PORTER_MIXINS"


def _get_index_of_token(lines: List[str], token: str) -> int:
    for index, line in enumerate(lines):
        if line.strip() == token:
            return index
    return -1


def _get_index_of_from(lines: List[str]) -> int:
    for index, line in enumerate(lines):
        if line.strip().upper().startswith("FROM "):
            return index
    return -1


class DockerfileGenerator:
    """Build the installer image Dockerfile from a template.

    The template is the ``dockerfile`` declared in the manifest, or the
    default template shipped with porter.

    :param manifest: The bundle manifest.
    :param query: Query used to collect the Dockerfile lines of the mixins.
    :param project_dir: The bundle directory.
    """

    def __init__(
        self, manifest: Manifest, query: MixinQuery, project_dir: Optional[Path] = None
    ) -> None:
        self.manifest = manifest
        self.query = query
        self.project_dir = project_dir if project_dir is not None else Path()

    def generate(self, path: Path) -> str:
        """Write the Dockerfile and return its contents.

        :raises PorterError: if the template is missing or a mixin fails.
        """
        emit.debug("Generating Dockerfile")
        contents = "\n".join(self.build_dockerfile())
        emit.debug(contents)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(contents, encoding="utf-8")
        except OSError as err:
            raise errors.PorterError(
                f"couldn't write the Dockerfile: {err.strerror}"
            ) from err
        return contents

    def build_dockerfile(self) -> List[str]:
        lines = self.get_base_dockerfile()
        lines.extend(self.build_porter_section())
        lines.extend(self.build_cnab_section())
        lines.append("WORKDIR ${BUNDLE_DIR}")
        lines.append('CMD ["/cnab/app/run"]')
        return lines

    def get_base_dockerfile(self) -> List[str]:
        if self.manifest.dockerfile:
            template = self.project_dir / self.manifest.dockerfile
            if not template.is_file():
                raise errors.PorterError(
                    "the Dockerfile specified in the manifest doesn't exist: "
                    f"{self.manifest.dockerfile!r}"
                )
            lines = template.read_text(encoding="utf-8").splitlines()
        else:
            env = jinja2.Environment(
                loader=jinja2.PackageLoader("porter", "templates"),
                keep_trailing_newline=True,
            )
            lines = (
                env.get_template("Dockerfile.j2")
                .render(syntax=DEFAULT_DOCKERFILE_SYNTAX, base_image=DEFAULT_BASE_IMAGE)
                .splitlines()
            )

        if not any(line.startswith("# syntax=") for line in lines):
            emit.verbose(
                "WARNING: No syntax was declared in the template Dockerfile, "
                f"using {DEFAULT_DOCKERFILE_SYNTAX}"
            )
            lines.insert(0, f"# syntax={DEFAULT_DOCKERFILE_SYNTAX}")

        return self.replace_tokens(lines)

    def replace_tokens(self, lines: List[str]) -> List[str]:
        """Replace the PORTER_INIT and PORTER_MIXINS tokens of a template.

        Without a PORTER_INIT token the init section follows the first FROM
        line. Without a PORTER_MIXINS token the mixin lines are appended.
        """
        try:
            mixin_lines = self.build_mixins_section()
        except errors.PorterError as err:
            raise errors.PorterError(
                f"error generating Dockerfile content for mixins: {err}"
            ) from err

        lines = list(lines)
        index = _get_index_of_token(lines, PORTER_INIT_TOKEN)
        if index != -1:
            lines[index : index + 1] = self.build_init_section()
        else:
            from_index = _get_index_of_from(lines)
            if from_index == -1:
                lines.extend(self.build_init_section())
            else:
                lines[from_index + 1 : from_index + 1] = self.build_init_section()

        index = _get_index_of_token(lines, PORTER_MIXINS_TOKEN)
        if index != -1:
            lines[index : index + 1] = mixin_lines
        else:
            lines.extend(mixin_lines)
        return lines

    def build_mixins_section(self) -> List[str]:
        results = self.query.execute("build", ManifestInputGenerator(self.manifest))
        lines: List[str] = []
        for name in self.manifest.mixin_names:
            if name in results:
                lines.extend(results[name].split("\n"))
        return lines

    @staticmethod
    def build_init_section() -> List[str]:
        return [
            "ARG BUNDLE_DIR",
            "ARG BUNDLE_UID=65532",
            "ARG BUNDLE_USER=nonroot",
            "ARG BUNDLE_GID=0",
            "RUN useradd ${BUNDLE_USER} -m -u ${BUNDLE_UID} -g ${BUNDLE_GID} -o",
        ]

    def build_porter_section(self) -> List[str]:
        """Remove the authored manifest, the canonical copy lives in .cnab."""
        if not self.manifest.manifest_path:
            return []
        manifest_path = Path(self.manifest.manifest_path).resolve()
        try:
            relative = manifest_path.relative_to(self.project_dir.resolve())
        except ValueError:
            return []
        return [f"RUN rm ${{BUNDLE_DIR}}/{relative.as_posix()}"]

    @staticmethod
    def build_cnab_section() -> List[str]:
        return [
            "RUN rm -fr ${BUNDLE_DIR}/.cnab",
            "COPY --link .cnab /cnab",
            "RUN chgrp -R ${BUNDLE_GID} /cnab && chmod -R g=u /cnab",
            "USER ${BUNDLE_UID}",
        ]
