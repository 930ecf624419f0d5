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

"""Utilities for Porter."""

import os
import re
import subprocess
import threading
from pathlib import Path, PurePosixPath
from typing import IO, Any, Dict, Iterable, List, Optional, Sequence, TextIO

import semver
from craft_application.util import strtobool

from porter import const

_ENV_VAR_UNSAFE = re.compile(r"[-.]")


def param_to_env_var(name: str) -> str:
    """Return the environment variable a parameter is delivered through.

    :param name: The parameter name, e.g. ``porter-mysql-password-dep-output``.

    :returns: The upper-cased name with dashes and dots turned into underscores.
    """
    return _ENV_VAR_UNSAFE.sub("_", name).upper()


def resolve_path(path: str) -> str:
    """Resolve a path declared in the manifest to a path inside the bundle.

    Relative paths are relative to the bundle directory, ``/cnab/app``.
    """
    if not path:
        return path
    if PurePosixPath(path).is_absolute():
        return path
    return str(PurePosixPath(const.APP_DIR.as_posix()) / path)


def applies_to(apply_to: Optional[Sequence[str]], action: str) -> bool:
    """Check if an item restricted by ``applyTo`` is used for an action.

    An empty restriction applies to every action.
    """
    if not apply_to:
        return True
    return action in apply_to


def is_debug(environ: Optional[dict] = None) -> bool:
    """Return whether PORTER_DEBUG is set to a truthy value."""
    if environ is None:
        environ = dict(os.environ)
    try:
        return strtobool(environ.get(const.ENV_DEBUG, "n").strip() or "n")
    except ValueError:
        return False


def parse_version(value: str) -> Optional[semver.Version]:
    """Parse a semantic version, allowing a leading ``v`` and short forms.

    :returns: The parsed version or None if the value is not a version.
    """
    if not value:
        return None
    if value[0] in "vV":
        value = value[1:]
    try:
        return semver.Version.parse(value, optional_minor_and_patch=True)
    except (ValueError, TypeError):
        return None


def humanize_list(
    items: Iterable[str],
    conjunction: str,
    item_format: str = "{!r}",
    sort: bool = True,
) -> str:
    """Format a list into a human-readable string.

    :param items: list to humanize.
    :param conjunction: the conjunction used to join the final element to
                        the rest of the list (e.g. 'and').
    :param item_format: format string to use per item.
    :param sort: if true, sort the list.
    """
    quoted_items = [item_format.format(item) for item in items]
    if not quoted_items:
        return ""

    if sort:
        quoted_items = sorted(quoted_items)

    if len(quoted_items) == 1:
        return quoted_items[0]

    humanized = ", ".join(quoted_items[:-1])

    if len(quoted_items) > 2:
        humanized += ","

    return f"{humanized} {conjunction} {quoted_items[-1]}"


def write_file(path: Path, content: bytes, *, mode: int = 0o600) -> None:
    """Write a file, creating its parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    path.chmod(mode)


def run_streamed(
    args: Sequence[str],
    *,
    input: str = "",  # pylint: disable=redefined-builtin
    stdout: Optional[TextIO] = None,
    stderr: Optional[TextIO] = None,
    **kwargs: Any,
) -> subprocess.CompletedProcess:
    """Run a command, copying its output to the sinks line by line as it arrives.

    :param args: The command line.
    :param input: Text written to the command stdin.
    :param stdout: Sink for the command stdout, or None to only capture it.
    :param stderr: Sink for the command stderr, or None to only capture it.

    :returns: The completed process with the captured stdout and stderr.

    :raises OSError: if the command cannot be started.
    """
    proc = subprocess.Popen(  # pylint: disable=consider-using-with
        list(args),
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        **kwargs,
    )

    captured: Dict[str, List[str]] = {"stdout": [], "stderr": []}

    def _pump(name: str, pipe: IO[str], sink: Optional[TextIO]) -> None:
        for line in pipe:
            captured[name].append(line)
            if sink is not None:
                sink.write(line)
                sink.flush()
        pipe.close()

    threads = [
        threading.Thread(target=_pump, args=(name, pipe, sink), daemon=True)
        for name, pipe, sink in (
            ("stdout", proc.stdout, stdout),
            ("stderr", proc.stderr, stderr),
        )
    ]
    for thread in threads:
        thread.start()

    assert proc.stdin is not None
    try:
        if input:
            proc.stdin.write(input)
        proc.stdin.close()
    except BrokenPipeError:
        # the command exited without reading its input
        pass

    returncode = proc.wait()
    for thread in threads:
        thread.join()

    return subprocess.CompletedProcess(
        list(args),
        returncode,
        "".join(captured["stdout"]),
        "".join(captured["stderr"]),
    )
