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
"""Options that control how a HistoryPlanner plans mutations."""
from typing import Any, Dict

import attr

from scd_planner.common.date import TimestampType
from scd_planner.planner.errors import PlannerConfigurationError
from scd_planner.utils.yaml_dict import YAMLDict

# Alternate spellings accepted for config keys
_CONFIG_KEY_ALIASES: Dict[str, str] = {
    "carry.forward.when.null": "carry_forward_when_null",
}


@attr.s(frozen=True, kw_only=True)
class HistoryPlannerConfig:
    """Configuration for a HistoryPlanner."""

    # When set, null fields on an arriving record that closes an earlier interval
    # are filled in with the values of that earlier interval.
    carry_forward_when_null: bool = attr.ib(
        default=False, validator=attr.validators.instance_of(bool)
    )

    timestamp_type: TimestampType = attr.ib(
        default=TimestampType.EPOCH_MILLIS,
        validator=attr.validators.instance_of(TimestampType),
    )

    # When set, a same-timestamp correction keeps the effective interval and current
    # flag of the record it replaces. Otherwise the correction is emitted with only
    # the interval fields it arrived with.
    retain_interval_on_correction: bool = attr.ib(
        default=True, validator=attr.validators.instance_of(bool)
    )

    # When set, two arriving records with the same key and timestamp but different
    # values raise an AmbiguousOrderError. Otherwise the last arrival wins.
    fail_on_ambiguous_order: bool = attr.ib(
        default=False, validator=attr.validators.instance_of(bool)
    )

    @classmethod
    def from_yaml_dict(cls, yaml_dict: YAMLDict) -> "HistoryPlannerConfig":
        """Builds a HistoryPlannerConfig from a config dictionary. Every key is
        optional, e.g.:

        carry_forward_when_null: true
        timestamp_type: DATETIME
        """
        for alias, field_name in _CONFIG_KEY_ALIASES.items():
            if alias in yaml_dict.raw_yaml:
                if field_name in yaml_dict.raw_yaml:
                    raise PlannerConfigurationError(
                        f"Found both [{alias}] and [{field_name}] in planner config."
                    )
                yaml_dict.raw_yaml[field_name] = yaml_dict.raw_yaml.pop(alias)

        kwargs: Dict[str, Any] = {}
        try:
            for field_name in (
                "carry_forward_when_null",
                "retain_interval_on_correction",
                "fail_on_ambiguous_order",
            ):
                value = yaml_dict.pop_optional(field_name, bool)
                if value is not None:
                    kwargs[field_name] = value

            timestamp_type = yaml_dict.pop_optional("timestamp_type", str)
            if timestamp_type is not None:
                kwargs["timestamp_type"] = TimestampType(timestamp_type.upper())
        except ValueError as e:
            raise PlannerConfigurationError(f"Invalid planner config: {e}") from e

        if len(yaml_dict):
            raise PlannerConfigurationError(
                f"Found unexpected planner config keys: {yaml_dict.keys()}"
            )
        return cls(**kwargs)
