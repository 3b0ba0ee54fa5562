# Recidiviz - a data platform for criminal justice reform
# Copyright (C) 2024 Recidiviz, Inc.
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.
# =============================================================================
"""Contains helper functions for attrs validators that can be passed to the
`validator=` arg of any attr field. For example:

@attr.s(frozen=True)
class MyClass:
  name: str = attr.ib(validator=is_non_empty_str)
  aliases: Optional[List[str]] = attr.ib(validator=is_opt_str_list)
"""

from typing import Any, List, Optional

import attr


def is_non_empty_str(_instance: Any, attribute: attr.Attribute, value: str) -> None:
    if not isinstance(value, str):
        raise ValueError(
            f"Expected [{attribute.name}] value type str, found {type(value)}."
        )
    if not value:
        raise ValueError(f"String value for [{attribute.name}] should not be empty.")


def is_opt_non_empty_str(
    instance: Any, attribute: attr.Attribute, value: Optional[str]
) -> None:
    if value is not None:
        is_non_empty_str(instance, attribute, value)


def is_str_list(_instance: Any, attribute: attr.Attribute, value: List[str]) -> None:
    if not isinstance(value, list):
        raise ValueError(
            f"Expected [{attribute.name}] value type list, found {type(value)}."
        )
    for item in value:
        if not isinstance(item, str) or not item:
            raise ValueError(
                f"Expected [{attribute.name}] to only contain non-empty strings, "
                f"found [{item}]."
            )
    if len(set(value)) != len(value):
        raise ValueError(f"Found duplicate values in [{attribute.name}]: {value}")


def is_non_empty_str_list(
    instance: Any, attribute: attr.Attribute, value: List[str]
) -> None:
    is_str_list(instance, attribute, value)
    if not value:
        raise ValueError(f"List value for [{attribute.name}] should not be empty.")


def is_opt_str_list(
    instance: Any, attribute: attr.Attribute, value: Optional[List[str]]
) -> None:
    if value is not None:
        is_str_list(instance, attribute, value)
