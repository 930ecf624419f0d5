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

"""Shared helpers for bundle extension readers."""

from typing import TYPE_CHECKING, Any, Type, TypeVar

import pydantic
from pydantic import ConfigDict
from pydantic.alias_generators import to_camel

from porter import errors

if TYPE_CHECKING:
    from porter.cnab.bundle import Bundle

OFFICIAL_EXTENSIONS_PREFIX = "io.cnab."

_T = TypeVar("_T", bound="ExtensionModel")


class ExtensionModel(pydantic.BaseModel):
    """Typed view of an extension payload stored in the bundle custom section."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def marshal(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def read_payload(bundle: "Bundle", key: str, model: Type[_T]) -> _T:
    """Read the custom section entry ``key`` of a bundle into ``model``.

    :raises ExtensionError: if the entry is missing or malformed.
    """
    try:
        data = bundle.custom[key]
    except KeyError as err:
        raise errors.ExtensionError(
            "no custom extension configuration found"
        ) from err

    try:
        return model.model_validate(data if data is not None else {})
    except pydantic.ValidationError as err:
        raise errors.ExtensionError(
            f"could not unmarshal the {key!r} extension {data!r}",
            details=str(err),
        ) from err


def unused(bundle: "Bundle") -> Any:  # pylint: disable=unused-argument
    """Reader for extensions that carry no payload."""
    return None
