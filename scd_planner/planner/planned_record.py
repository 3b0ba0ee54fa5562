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
"""A record paired with the mutation required to persist it."""
from typing import Any, Dict

import attr

from scd_planner.common.constants.mutation_type import MutationType

Record = Dict[str, Any]


@attr.s(eq=True)
class PlannedRecord:
    """A record of a history along with the mutation that must be applied to storage
    for it. The record is owned by the planner while planning is in progress and may
    be modified in place.
    """

    record: Record = attr.ib(validator=attr.validators.instance_of(dict))
    mutation_type: MutationType = attr.ib(
        validator=attr.validators.instance_of(MutationType)
    )

    def get(self, field_name: str) -> Any:
        return self.record.get(field_name)

    def put(self, field_name: str, value: Any) -> None:
        self.record[field_name] = value

    def promote_to_update(self) -> None:
        """Marks a record that was loaded from storage as changed. Records that are
        already pending insertion stay inserts."""
        if self.mutation_type is MutationType.NONE:
            self.mutation_type = MutationType.UPDATE
