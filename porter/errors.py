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

"""Porter error definitions."""

from typing import Iterable, Optional

from craft_cli import CraftError


class PorterError(CraftError):
    """Failure in a Porter operation."""


class ManifestValidationError(PorterError):
    """Error validating porter.yaml."""


class ManifestNotFound(PorterError):
    """No porter.yaml found."""

    def __init__(self, path: str) -> None:
        super().__init__(
            f"Could not find the porter manifest at {path!r}.",
            resolution="Run the command from a bundle directory or pass --file.",
        )


class TemplateError(PorterError):
    """A step template could not be rendered."""


class MissingParameterSourceError(PorterError):
    """An output value expected through a parameter source was not injected."""

    def __init__(self, output_name: str) -> None:
        self.output_name = output_name
        super().__init__(f"no parameter source was injected for output {output_name}")


class MixinNotInstalled(PorterError):
    """The requested mixin is not installed."""

    def __init__(self, name: str, path: str) -> None:
        self.name = name
        super().__init__(
            f"mixin {name} not installed",
            details=f"expected an executable at {path}",
            resolution=f"Install the {name} mixin into the porter mixins directory.",
        )


class MixinStartError(PorterError):
    """The mixin executable could not be launched."""


class MixinCommandError(PorterError):
    """The mixin command exited with a non-zero status.

    :param message: The error description.
    :param exit_code: The exit code of the mixin process.
    """

    def __init__(
        self, message: str, *, exit_code: int, details: Optional[str] = None
    ) -> None:
        self.exit_code = exit_code
        super().__init__(message, details=details, retcode=exit_code)


class OutputExtractionError(PorterError):
    """A declared step output could not be extracted."""


class StateBagError(PorterError):
    """The state archive could not be read or written."""


class ExtensionError(PorterError):
    """A required bundle extension is unsupported or could not be read."""


class InvalidReference(PorterError):
    """An OCI reference could not be parsed."""


class DependencyResolutionError(PorterError):
    """A bundle dependency could not be resolved to a concrete reference."""


class RegistryError(PorterError):
    """Error talking to an OCI registry."""


class BundleLoadError(PorterError):
    """A bundle descriptor could not be loaded."""


class PluginError(PorterError):
    """A plugin could not be loaded or failed to respond."""


class PluginNotImplemented(PluginError):
    """The plugin does not implement the requested operation."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"{operation} is not implemented by the plugin")


class FeatureNotImplemented(PorterError):
    """Attempt to use an unimplemented feature."""

    def __init__(self, msg: str) -> None:
        super().__init__(f"not implemented: {msg}")


class AggregateError(PorterError):
    """Several independent operations failed.

    The whole batch is attempted before this is raised; ``errors`` keeps every
    failure in the order it happened.
    """

    def __init__(self, errors: Iterable[Exception], *, message: str = "") -> None:
        self.errors = list(errors)
        lines = []
        if message:
            lines.append(message)
        if len(self.errors) == 1 and not message:
            lines.append(str(self.errors[0]))
        else:
            if not message:
                lines.append(f"{len(self.errors)} errors occurred:")
            lines.extend(f"* {error}" for error in self.errors)
        super().__init__("\n".join(lines), retcode=self.exit_code)

    @property
    def exit_code(self) -> int:
        """Exit code of the first failed mixin, 1 otherwise."""
        for error in self.errors:
            exit_code = getattr(error, "exit_code", None)
            if exit_code:
                return exit_code
        return 1


class LinterError(PorterError):
    """Linting the manifest found errors.

    :param message: The error description.
    :exit_code: The shell return code to use.
    """

    def __init__(self, message: str, *, exit_code: int):
        self.exit_code = exit_code
        super().__init__(
            message,
            resolution="Make sure the issues reported for porter.yaml are addressed.",
        )
