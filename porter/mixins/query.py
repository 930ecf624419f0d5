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

"""Send a command to every mixin used by a bundle."""

import dataclasses
import io
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Protocol

from craft_cli import emit

from porter import const, errors, yaml_utils
from porter.manifest import Manifest

from .runner import MixinCommand, MixinRunner


class InputGenerator(Protocol):
    """Produce the stdin of each mixin taking part in a query."""

    def list_mixins(self) -> List[str]:
        """Return the names of the mixins to query."""

    def build_input(self, mixin: str) -> str:
        """Return the input document for a mixin."""


class ManifestInputGenerator:
    """Input generator for the mixins declared in a manifest.

    Each mixin receives its declared configuration and the steps that use it,
    grouped by action.
    """

    def __init__(self, manifest: Manifest) -> None:
        self.manifest = manifest

    def list_mixins(self) -> List[str]:
        return self.manifest.mixin_names

    def build_input(self, mixin: str) -> str:
        actions: Dict[str, List[Any]] = {}
        names = list(const.CORE_ACTIONS) + list(self.manifest.custom_actions)
        for action in names:
            steps = self.manifest.get_steps(action)
            if steps is None:
                continue
            actions[action] = [step.data for step in steps if step.mixin_name == mixin]

        data: Dict[str, Any] = {}
        declaration = self.manifest.get_mixin(mixin)
        if declaration is not None and declaration.config is not None:
            data["config"] = declaration.config
        data["actions"] = actions
        return yaml_utils.dump(data)


@dataclasses.dataclass
class QueryResult:
    """Response of a single mixin."""

    mixin: str
    stdout: str = ""
    error: Optional[Exception] = None


class MixinQuery:
    """Run a command across mixins concurrently.

    :param runner: Runner used to invoke each mixin.
    :param require_all: Fail when any mixin fails, otherwise return the
        responses of the mixins that succeeded.
    :param log_errors: Send the mixin stderr to the porter output.
    """

    def __init__(
        self, runner: MixinRunner, *, require_all: bool = True, log_errors: bool = False
    ) -> None:
        self.runner = runner
        self.require_all = require_all
        self.log_errors = log_errors

    def _query_mixin(self, command: str, mixin: str, generator: InputGenerator) -> QueryResult:
        stdout = io.StringIO()
        stderr = self.runner.context.stderr.target if self.log_errors else io.StringIO()
        context = self.runner.context.clone(stdout=stdout, stderr=stderr)
        result = QueryResult(mixin=mixin)
        try:
            cmd = MixinCommand(
                name=mixin, command=command, input=generator.build_input(mixin)
            )
            self.runner.run(cmd, context)
        except errors.PorterError as err:
            result.error = err
        result.stdout = stdout.getvalue()
        return result

    def execute(self, command: str, generator: InputGenerator) -> Dict[str, str]:
        """Send a command to every mixin listed by the generator.

        :returns: The stdout of each mixin that succeeded, by mixin name.

        :raises AggregateError: if a mixin failed and all responses are required.
        """
        mixins = generator.list_mixins()
        if not mixins:
            return {}

        emit.debug(f"Querying mixins {', '.join(mixins)} with {command!r}")
        with ThreadPoolExecutor(max_workers=len(mixins)) as executor:
            futures = [
                executor.submit(self._query_mixin, command, mixin, generator)
                for mixin in mixins
            ]
            results = [future.result() for future in futures]

        failures = [_wrap_error(result) for result in results if result.error is not None]
        if failures:
            aggregate = errors.AggregateError(failures)
            if self.require_all:
                raise aggregate
            emit.debug(f"not all mixins responded successfully: {aggregate}")

        return {result.mixin: result.stdout for result in results if result.error is None}


def _wrap_error(result: QueryResult) -> errors.PorterError:
    error = errors.PorterError(
        f'error encountered from mixin "{result.mixin}": {result.error}'
    )
    error.exit_code = getattr(result.error, "exit_code", None)  # type: ignore[attr-defined]
    return error
