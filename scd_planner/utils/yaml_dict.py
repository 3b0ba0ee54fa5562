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
"""Functionality for reading planner configuration parsed from YAML."""
from typing import Any, Dict, List, Optional, Type, TypeVar

import yaml

T = TypeVar("T")


class YAMLDict:
    """Wraps a dict parsed from YAML and provides type safety when reading items out
    of it. Values are popped as they are read so that callers can detect leftover,
    unrecognized keys once they are done.
    """

    def __init__(self, raw_yaml: Dict[str, Any]):
        self.raw_yaml = raw_yaml

    @classmethod
    def from_path(cls, yaml_path: str) -> "YAMLDict":
        with open(yaml_path, encoding="utf-8") as yaml_file:
            loaded_raw_yaml = yaml.safe_load(yaml_file)
            if not isinstance(loaded_raw_yaml, dict):
                raise ValueError(
                    f"Expected config to contain a top-level dictionary, but "
                    f"received: {type(loaded_raw_yaml)} at path [{yaml_path}]."
                )
            return YAMLDict(loaded_raw_yaml)

    @classmethod
    def _assert_type(cls, field: str, value: Any, value_type: Type[T]) -> T:
        if value is None or not isinstance(value, value_type):
            raise ValueError(
                f"Invalid [{field}] value, expected type [{value_type}] but received: "
                f"{type(value)}"
            )
        return value

    def pop(self, field: str, value_type: Type[T]) -> T:
        """Pops and returns the value at |field|. Throws if the field does not exist,
        is None, or is not of type |value_type|.
        """
        try:
            value = self.raw_yaml.pop(field)
        except KeyError as e:
            raise KeyError(
                f"Expected nonnull [{field}] in input: {self.raw_yaml}"
            ) from e
        return self._assert_type(field, value, value_type)

    def pop_optional(self, field: str, value_type: Type[T]) -> Optional[T]:
        """Pops and returns the value at |field|, or None if the field does not exist
        or is None. Throws if the value is nonnull but not of type |value_type|.
        """
        value = self.raw_yaml.pop(field, None)
        if value is None:
            return None
        return self._assert_type(field, value, value_type)

    def pop_list(self, field: str, list_values_type: Type[T]) -> List[T]:
        raw_values = self.pop(field, list)
        return [
            self._assert_type(field, raw_val, list_values_type)
            for raw_val in raw_values
        ]

    def pop_list_optional(
        self, field: str, list_values_type: Type[T]
    ) -> Optional[List[T]]:
        if self.raw_yaml.get(field) is None:
            self.raw_yaml.pop(field, None)
            return None
        return self.pop_list(field, list_values_type)

    def __len__(self) -> int:
        return len(self.raw_yaml)

    def __repr__(self) -> str:
        return str(self.raw_yaml)

    def keys(self) -> List[str]:
        return list(self.raw_yaml.keys())
