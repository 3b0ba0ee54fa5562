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
"""Interface for a strategy that plans the storage mutations for a batch of arriving
records."""
import abc
from typing import List, Sequence, Set

from scd_planner.common.constants.mutation_type import MutationType
from scd_planner.planner.planned_record import PlannedRecord, Record
from scd_planner.planner.record_model import RecordModel


class MutationPlanner(abc.ABC):
    """Base class for planners that turn arriving records into storage mutations.

    The capability declarations tell the calling framework what a planner needs
    before it can run: whether the existing records for the arriving keys must be
    fetched from storage, and whether all records of a key must be planned together
    by a single worker.
    """

    @abc.abstractmethod
    def plan_mutations(
        self,
        arriving_records: Sequence[Record],
        existing_records: Sequence[Record],
        record_model: RecordModel,
    ) -> List[PlannedRecord]:
        """Returns the records that must be written to storage, each tagged with the
        mutation that writes it. Records that need no mutation are not returned."""

    @abc.abstractmethod
    def requires_existing_records(self) -> bool:
        """Whether the stored records for the arriving keys must be supplied."""

    @abc.abstractmethod
    def requires_key_colocation(self) -> bool:
        """Whether all arriving records of a key must be planned in the same call."""

    @abc.abstractmethod
    def get_emitted_mutation_types(self) -> Set[MutationType]:
        """The mutation types this planner may emit."""
