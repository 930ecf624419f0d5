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

"""Process context shared by the runtime, the mixin runner and the queries."""

import io
import os
import sys
import threading
from typing import Iterable, Mapping, Optional, Set, TextIO

from porter import const, utils


class CensoredWriter(io.TextIOBase):
    """Text sink that masks sensitive values before they reach the target."""

    def __init__(self, target: TextIO) -> None:
        super().__init__()
        self.target = target
        self._sensitive: tuple[str, ...] = ()

    def set_sensitive_values(self, values: Iterable[str]) -> None:
        """Replace the values to mask, longest first."""
        self._sensitive = tuple(
            sorted((v for v in values if v), key=len, reverse=True)
        )

    def censor(self, text: str) -> str:
        for value in self._sensitive:
            text = text.replace(value, const.SENSITIVE_MASK)
        return text

    def writable(self) -> bool:
        return True

    def write(self, text: str) -> int:  # type: ignore[override]
        self.target.write(self.censor(text))
        return len(text)

    def flush(self) -> None:
        self.target.flush()


class Context:
    """Environment and output sinks of the running process.

    :param environ: Environment to expose, a copy of ``os.environ`` by default.
    :param stdout: Sink for standard output.
    :param stderr: Sink for standard error.
    """

    def __init__(
        self,
        *,
        environ: Optional[Mapping[str, str]] = None,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
    ) -> None:
        self.environ = dict(os.environ if environ is None else environ)
        self.stdout = CensoredWriter(stdout if stdout is not None else sys.stdout)
        self.stderr = CensoredWriter(stderr if stderr is not None else sys.stderr)
        self.debug = utils.is_debug(self.environ)
        self.correlation_id = self.environ.get(const.ENV_CORRELATION_ID, "")
        self._sensitive: Set[str] = set()
        self._lock = threading.Lock()

    def getenv(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.environ.get(name, default)

    def set_sensitive_values(self, values: Iterable[str]) -> None:
        """Add values to mask in everything written to the sinks."""
        with self._lock:
            self._sensitive.update(v for v in values if v)
            snapshot = frozenset(self._sensitive)
        self.stdout.set_sensitive_values(snapshot)
        self.stderr.set_sensitive_values(snapshot)

    @property
    def sensitive_values(self) -> frozenset:
        with self._lock:
            return frozenset(self._sensitive)

    def clone(
        self, *, stdout: Optional[TextIO] = None, stderr: Optional[TextIO] = None
    ) -> "Context":
        """Derive a child context with its own sinks.

        Unset sinks are shared with this context.
        """
        child = Context(
            environ=self.environ,
            stdout=stdout if stdout is not None else self.stdout.target,
            stderr=stderr if stderr is not None else self.stderr.target,
        )
        child.debug = self.debug
        child.set_sensitive_values(self.sensitive_values)
        return child
