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
"""Describes which fields of a record play which role in a history."""
from typing import List, Optional

import attr

from scd_planner.common import attr_validators
from scd_planner.planner.errors import PlannerConfigurationError
from scd_planner.utils.yaml_dict import YAMLDict


@attr.s(frozen=True, kw_only=True)
class RecordModel:
    """The roles of the fields of the records of a single history (dimension)."""

    # The fields that together form the business key, in key order
    key_field_names: List[str] = attr.ib(
        converter=list, validator=attr_validators.is_non_empty_str_list
    )

    # The event time of an observation
    timestamp_field_name: str = attr.ib(validator=attr_validators.is_non_empty_str)

    # The fields compared to decide whether two observations at the same timestamp
    # differ
    value_field_names: List[str] = attr.ib(
        converter=list, validator=attr_validators.is_str_list
    )

    effective_from_field_name: str = attr.ib(validator=attr_validators.is_non_empty_str)
    effective_to_field_name: str = attr.ib(validator=attr_validators.is_non_empty_str)

    current_flag_field_name: Optional[str] = attr.ib(
        default=None, validator=attr_validators.is_opt_non_empty_str
    )
    last_updated_field_name: Optional[str] = attr.ib(
        default=None, validator=attr_validators.is_opt_non_empty_str
    )

    # The declared shape of the records, if known. When set, every field named above
    # must be one of these.
    field_names: Optional[List[str]] = attr.ib(
        default=None,
        converter=attr.converters.optional(list),
        validator=attr_validators.is_opt_str_list,
    )

    def __attrs_post_init__(self) -> None:
        boundary_fields = [
            self.timestamp_field_name,
            self.effective_from_field_name,
            self.effective_to_field_name,
        ]
        if len(set(boundary_fields)) != len(boundary_fields):
            raise PlannerConfigurationError(
                f"The timestamp, effective from and effective to fields must be "
                f"distinct, found: {boundary_fields}"
            )

        if overlap := set(self.key_field_names) & set(self.value_field_names):
            raise PlannerConfigurationError(
                f"Fields cannot be both key and value fields: {sorted(overlap)}"
            )

        if self.field_names is None:
            return

        undeclared = [
            field_name
            for field_name in self.referenced_field_names()
            if field_name not in self.field_names
        ]
        if undeclared:
            raise PlannerConfigurationError(
                f"Record model references fields that are not part of the declared "
                f"record shape {self.field_names}: {undeclared}"
            )

    def has_current_flag_field(self) -> bool:
        return self.current_flag_field_name is not None

    def has_last_updated_field(self) -> bool:
        return self.last_updated_field_name is not None

    def referenced_field_names(self) -> List[str]:
        """Returns every field name this model assigns a role to."""
        field_names = [
            *self.key_field_names,
            self.timestamp_field_name,
            *self.value_field_names,
            self.effective_from_field_name,
            self.effective_to_field_name,
        ]
        if self.current_flag_field_name:
            field_names.append(self.current_flag_field_name)
        if self.last_updated_field_name:
            field_names.append(self.last_updated_field_name)
        return field_names

    @classmethod
    def from_yaml_dict(cls, yaml_dict: YAMLDict) -> "RecordModel":
        """Builds a RecordModel from a config dictionary such as:

        key_fields: [customer_id]
        timestamp_field: event_time
        value_fields: [name, tier]
        effective_from_field: valid_from
        effective_to_field: valid_to
        current_flag_field: is_current  # optional
        last_updated_field: updated_at  # optional
        fields: [...]  # optional
        """
        try:
            record_model = RecordModel(
                key_field_names=yaml_dict.pop_list("key_fields", str),
                timestamp_field_name=yaml_dict.pop("timestamp_field", str),
                value_field_names=yaml_dict.pop_list_optional("value_fields", str)
                or [],
                effective_from_field_name=yaml_dict.pop("effective_from_field", str),
                effective_to_field_name=yaml_dict.pop("effective_to_field", str),
                current_flag_field_name=yaml_dict.pop_optional(
                    "current_flag_field", str
                ),
                last_updated_field_name=yaml_dict.pop_optional(
                    "last_updated_field", str
                ),
                field_names=yaml_dict.pop_list_optional("fields", str),
            )
        except (KeyError, ValueError) as e:
            raise PlannerConfigurationError(f"Invalid record model config: {e}") from e

        if len(yaml_dict):
            raise PlannerConfigurationError(
                f"Found unexpected record model config keys: {yaml_dict.keys()}"
            )
        return record_model
