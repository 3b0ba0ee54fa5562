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
"""Beam transforms that plan the history mutations for collections of records.

All records of a key must be planned together, so arriving and existing records are
grouped by key before the planner runs on each key group. Key groups are planned
independently and in parallel across workers.
"""
import logging
from typing import Any, Dict, Generator, Iterable, Tuple, Union

import apache_beam as beam
from apache_beam.pvalue import PCollection
from apache_beam.typehints.decorators import with_input_types, with_output_types

from scd_planner.planner.errors import KeyGroupPlanningError
from scd_planner.planner.history_planner import HistoryPlanner
from scd_planner.planner.planned_record import PlannedRecord, Record
from scd_planner.planner.record_model import RecordModel
from scd_planner.planner.record_utils import (
    RecordKey,
    key_for_record,
    validate_key_group,
)

ARRIVING_RECORDS = "arriving"
EXISTING_RECORDS = "existing"

PLANNED_OUTPUT = "planned"
INVALID_KEY_GROUPS_OUTPUT = "invalid_key_groups"


def _key_record(record: Record, key_field_names: Iterable[str]) -> Tuple[RecordKey, Record]:
    return key_for_record(record, list(key_field_names)), record


class PlanHistoryMutations(beam.PTransform):
    """Transforms a dictionary of arriving and existing record PCollections into the
    PlannedRecords that merge the arriving records into the history of each key.

    The output has two tagged PCollections: PLANNED_OUTPUT holds the PlannedRecords of
    every key group that could be planned, and INVALID_KEY_GROUPS_OUTPUT holds a
    (key, error message) tuple for every key group that could not be.
    """

    def __init__(self, planner: HistoryPlanner, record_model: RecordModel):
        super().__init__()
        self._planner = planner
        self._record_model = record_model

    def expand(self, input_or_inputs: Dict[str, PCollection]) -> Any:
        key_field_names = self._record_model.key_field_names

        keyed_arriving = input_or_inputs[
            ARRIVING_RECORDS
        ] | "Key arriving records" >> beam.Map(_key_record, key_field_names)
        keyed_existing = input_or_inputs[
            EXISTING_RECORDS
        ] | "Key existing records" >> beam.Map(_key_record, key_field_names)

        grouped_records = {
            ARRIVING_RECORDS: keyed_arriving,
            EXISTING_RECORDS: keyed_existing,
        } | "Group records by key" >> beam.CoGroupByKey()

        return grouped_records | "Plan mutations per key group" >> beam.ParDo(
            PlanMutationsForKeyGroup(), self._planner, self._record_model
        ).with_outputs(INVALID_KEY_GROUPS_OUTPUT, main=PLANNED_OUTPUT)


@with_input_types(
    beam.typehints.Tuple[Any, Dict[str, Iterable[Any]]],
    HistoryPlanner,
    RecordModel,
)
@with_output_types(PlannedRecord)
class PlanMutationsForKeyGroup(beam.DoFn):
    """Plans the mutations for the arriving and existing records of a single key."""

    # Silence `Method 'process_batch' is abstract in class 'DoFn' but is not overridden (abstract-method)`
    # pylint: disable=W0223

    # pylint: disable=arguments-differ
    def process(
        self,
        element: Tuple[RecordKey, Dict[str, Iterable[Record]]],
        planner: HistoryPlanner,
        record_model: RecordModel,
    ) -> Generator[Union[PlannedRecord, beam.pvalue.TaggedOutput], None, None]:
        """Plans the mutations for one key group.

        The order of the arriving records of a key is not preserved by the grouping,
        so they are planned in timestamp order.

        Args:
            element: Tuple containing the key and a dictionary with the arriving and
                existing records of that key
            planner: The planner to run on the key group
            record_model: Describes the fields of the records

        Yields:
            Each PlannedRecord of the key, or a TaggedOutput with the key and the
            error if the key group could not be planned.
        """
        key, grouped_records = element

        arriving = list(grouped_records[ARRIVING_RECORDS])
        if not arriving:
            # Keys with no arriving records are never touched
            return
        existing = list(grouped_records[EXISTING_RECORDS])

        try:
            # Arriving records must be valid before they can be ordered
            validate_key_group(
                key,
                [*arriving, *existing],
                record_model,
                planner.config.timestamp_type,
            )
            arriving.sort(
                key=lambda record: record[record_model.timestamp_field_name]
            )
            planned = planner.plan_mutations_for_key(
                key,
                arriving,
                existing,
                record_model,
            )
        except KeyGroupPlanningError as e:
            logging.warning("Could not plan mutations for key %s: %s", key, e)
            yield beam.pvalue.TaggedOutput(INVALID_KEY_GROUPS_OUTPUT, (key, str(e)))
            return

        yield from planned
