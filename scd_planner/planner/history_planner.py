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
"""A planner that stores every version of the values of a key (its history) using
Type II slowly changing dimension modeling.

Each version of a key is a record with an effective interval. The intervals of a key,
ordered by timestamp, are contiguous and do not overlap: each record is effective up
until the timestamp just before the next record's timestamp, and the latest record is
effective until the far future and is flagged as current.

Arriving records may be timestamped before, between or after the records already
stored for their key, or may correct a stored record with the same timestamp. The
planner works out which new records must be inserted and which stored records must be
updated to keep the intervals of each key contiguous.
"""
import enum
import logging
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

import attr

from scd_planner.common.constants.mutation_type import MutationType
from scd_planner.common.date import (
    Timestamp,
    TimestampType,
    current_timestamp_string,
    preceding_timestamp,
)
from scd_planner.planner import record_utils
from scd_planner.planner.errors import AmbiguousOrderError, KeyGroupPlanningError
from scd_planner.planner.mutation_planner import MutationPlanner
from scd_planner.planner.planned_record import PlannedRecord, Record
from scd_planner.planner.planner_config import HistoryPlannerConfig
from scd_planner.planner.record_model import RecordModel
from scd_planner.planner.record_utils import RecordKey
from scd_planner.utils.future_executor import map_fn_with_results

CURRENT_FLAG_YES = "Y"
CURRENT_FLAG_NO = "N"


class _Placement(enum.Enum):
    """Where an arriving record falls relative to the existing timeline of its key."""

    # Same timestamp as an entry, but with different values
    CORRECTION = "CORRECTION"
    # Before the earliest entry
    BEFORE_FIRST = "BEFORE_FIRST"
    # After an entry and before the entry that follows it
    BETWEEN = "BETWEEN"
    # After the latest entry
    AFTER_LAST = "AFTER_LAST"


@attr.define(kw_only=True)
class KeyGroupPlanningResult:
    """The outcome of planning each key group of a batch independently."""

    # Planned mutations for each key group that was planned successfully
    planned_by_key: Dict[RecordKey, List[PlannedRecord]]

    # The error raised for each key group that could not be planned
    failures_by_key: Dict[RecordKey, Exception]

    @property
    def planned(self) -> List[PlannedRecord]:
        return [
            planned_record
            for planned_records in self.planned_by_key.values()
            for planned_record in planned_records
        ]


@attr.s(frozen=True)
class HistoryPlanner(MutationPlanner):
    """Plans the inserts and updates that merge arriving records into the Type II
    history of their key."""

    config: HistoryPlannerConfig = attr.ib(
        factory=HistoryPlannerConfig,
        validator=attr.validators.instance_of(HistoryPlannerConfig),
    )

    # Returns the value stamped onto the last updated field of changed records
    clock: Callable[[], str] = attr.ib(default=current_timestamp_string)

    def requires_existing_records(self) -> bool:
        return True

    def requires_key_colocation(self) -> bool:
        return True

    def get_emitted_mutation_types(self) -> Set[MutationType]:
        return {MutationType.INSERT, MutationType.UPDATE}

    def plan_mutations(
        self,
        arriving_records: Sequence[Record],
        existing_records: Sequence[Record],
        record_model: RecordModel,
    ) -> List[PlannedRecord]:
        """Plans the mutations for every key that has arriving records. Keys that only
        have existing records are left untouched.

        Arriving records of a key are applied in the order they are given, so callers
        that send several records for one key in a batch should sort them by
        timestamp first.

        Throws a KeyGroupPlanningError for the first key group that cannot be planned.
        Use plan_mutations_by_key_group to plan the other key groups regardless.
        """
        arriving_by_key, existing_by_key = self._group_by_key(
            arriving_records, existing_records, record_model
        )

        planned: List[PlannedRecord] = []
        for key, arriving_for_key in arriving_by_key.items():
            planned.extend(
                self.plan_mutations_for_key(
                    key,
                    arriving_for_key,
                    existing_by_key.get(key, []),
                    record_model,
                )
            )

        logging.info(
            "Planned [%d] mutations for [%d] keys from [%d] arriving records.",
            len(planned),
            len(arriving_by_key),
            len(arriving_records),
        )
        return planned

    def plan_mutations_by_key_group(
        self,
        arriving_records: Sequence[Record],
        existing_records: Sequence[Record],
        record_model: RecordModel,
        max_workers: int = 8,
    ) -> KeyGroupPlanningResult:
        """Plans the mutations for every key that has arriving records, planning each
        key group in parallel. A key group that cannot be planned is reported in the
        result and does not prevent the other key groups from being planned.
        """
        arriving_by_key, existing_by_key = self._group_by_key(
            arriving_records, existing_records, record_model
        )

        def _plan_key_group(key: RecordKey) -> List[PlannedRecord]:
            return self.plan_mutations_for_key(
                key, arriving_by_key[key], existing_by_key.get(key, []), record_model
            )

        results = map_fn_with_results(
            work_items=list(arriving_by_key),
            work_fn=_plan_key_group,
            max_workers=max_workers,
        )

        failures_by_key: Dict[RecordKey, Exception] = {}
        for key, e in results.exceptions:
            if not isinstance(e, KeyGroupPlanningError):
                raise e
            logging.warning("Could not plan mutations for key %s: %s", key, e)
            failures_by_key[key] = e

        # Report key groups in the order they arrived in
        planned_by_key = dict(results.successes)
        return KeyGroupPlanningResult(
            planned_by_key={
                key: planned_by_key[key]
                for key in arriving_by_key
                if key in planned_by_key
            },
            failures_by_key=failures_by_key,
        )

    def plan_mutations_for_key(
        self,
        key: RecordKey,
        arriving_for_key: Sequence[Record],
        existing_for_key: Sequence[Record],
        record_model: RecordModel,
    ) -> List[PlannedRecord]:
        """Merges the arriving records of a single key into the existing history of
        that key, returning the records that were inserted or changed.

        The records passed in are not modified: the returned records are copies with
        their interval fields stamped.

        Throws an InvalidRecordError if any record does not belong to |key| or cannot
        be ordered against the other records of the key.
        """
        timestamp_type = self.config.timestamp_type
        record_utils.validate_key_group(
            key, [*arriving_for_key, *existing_for_key], record_model, timestamp_type
        )

        timestamp_field_name = record_model.timestamp_field_name
        timeline = _sorted_timeline(
            [
                PlannedRecord(dict(existing), MutationType.NONE)
                for existing in existing_for_key
            ],
            timestamp_field_name,
        )

        arrived_timestamps: Set[Timestamp] = set()
        for arriving in arriving_for_key:
            arrived = dict(arriving)
            arrived_timestamp = arrived[timestamp_field_name]
            is_repeat_arrival = arrived_timestamp in arrived_timestamps
            arrived_timestamps.add(arrived_timestamp)

            if not timeline:
                # There is no history for the key yet, so the arrived record becomes
                # the current version.
                self._stamp(
                    arrived,
                    record_model,
                    effective_from=arrived_timestamp,
                    effective_to=timestamp_type.far_future_for(arrived_timestamp),
                    is_current=True,
                )
                timeline = [PlannedRecord(arrived, MutationType.INSERT)]
                continue

            placement = _find_placement(arrived, timeline, record_model)
            if placement is None:
                # The timeline already holds this observation
                continue

            rule, position = placement
            if rule is _Placement.CORRECTION:
                if is_repeat_arrival:
                    self._handle_ambiguous_order(key, arrived_timestamp)
                timeline[position] = self._correct(
                    arrived, timeline[position], record_model
                )
            elif rule is _Placement.BEFORE_FIRST:
                timeline.append(
                    self._insert_before(arrived, timeline[position], record_model)
                )
            elif rule is _Placement.BETWEEN:
                timeline.append(
                    self._insert_between(
                        arrived,
                        timeline[position],
                        timeline[position + 1],
                        record_model,
                    )
                )
            else:
                timeline.append(
                    self._insert_after(arrived, timeline[position], record_model)
                )

            timeline = _sorted_timeline(timeline, timestamp_field_name)

        return [
            planned_record
            for planned_record in timeline
            if planned_record.mutation_type.requires_write
        ]

    def _correct(
        self, arrived: Record, plan: PlannedRecord, record_model: RecordModel
    ) -> PlannedRecord:
        """Replaces |plan| with |arrived|, which has the same timestamp but different
        values. A record that is already pending insertion is replaced by another
        insert, a stored record is updated."""
        if self.config.retain_interval_on_correction:
            interval_field_names = [
                record_model.effective_from_field_name,
                record_model.effective_to_field_name,
            ]
            if record_model.current_flag_field_name:
                interval_field_names.append(record_model.current_flag_field_name)
            for field_name in interval_field_names:
                arrived[field_name] = plan.get(field_name)

        self._stamp_last_updated(arrived, record_model)

        if plan.mutation_type is MutationType.INSERT:
            return PlannedRecord(arrived, MutationType.INSERT)
        return PlannedRecord(arrived, MutationType.UPDATE)

    def _insert_before(
        self, arrived: Record, first: PlannedRecord, record_model: RecordModel
    ) -> PlannedRecord:
        """The arrived record is effective up until just before the earliest record,
        which is left unchanged."""
        timestamp_field_name = record_model.timestamp_field_name
        self._stamp(
            arrived,
            record_model,
            effective_from=arrived[timestamp_field_name],
            effective_to=preceding_timestamp(
                first.get(timestamp_field_name), self.config.timestamp_type
            ),
            is_current=False,
        )
        return PlannedRecord(arrived, MutationType.INSERT)

    def _insert_between(
        self,
        arrived: Record,
        plan: PlannedRecord,
        next_plan: PlannedRecord,
        record_model: RecordModel,
    ) -> PlannedRecord:
        """The arrived record is effective up until just before |next_plan|, and
        |plan| is cut short to end just before the arrived record. Only the
        effective-to of |plan| moves: it stays effective from its own timestamp, so
        the two intervals meet without a gap or an overlap."""
        timestamp_field_name = record_model.timestamp_field_name
        self._stamp(
            arrived,
            record_model,
            effective_from=arrived[timestamp_field_name],
            effective_to=preceding_timestamp(
                next_plan.get(timestamp_field_name), self.config.timestamp_type
            ),
            is_current=False,
        )
        self._carry_forward(arrived, plan, record_model)
        self._close(plan, arrived[timestamp_field_name], record_model)
        return PlannedRecord(arrived, MutationType.INSERT)

    def _insert_after(
        self, arrived: Record, last: PlannedRecord, record_model: RecordModel
    ) -> PlannedRecord:
        """The arrived record becomes the current version, effective until the far
        future, and the previously current record is closed just before it. This is
        the usual case when data arrives in order."""
        timestamp_field_name = record_model.timestamp_field_name
        self._stamp(
            arrived,
            record_model,
            effective_from=arrived[timestamp_field_name],
            effective_to=self.config.timestamp_type.far_future_for(
                arrived[timestamp_field_name]
            ),
            is_current=True,
        )
        self._carry_forward(arrived, last, record_model)
        self._close(last, arrived[timestamp_field_name], record_model)
        return PlannedRecord(arrived, MutationType.INSERT)

    def _close(
        self,
        plan: PlannedRecord,
        successor_timestamp: Timestamp,
        record_model: RecordModel,
    ) -> None:
        plan.put(
            record_model.effective_to_field_name,
            preceding_timestamp(successor_timestamp, self.config.timestamp_type),
        )
        if record_model.current_flag_field_name:
            plan.put(record_model.current_flag_field_name, CURRENT_FLAG_NO)
        self._stamp_last_updated(plan.record, record_model)
        plan.promote_to_update()

    def _stamp(
        self,
        record: Record,
        record_model: RecordModel,
        *,
        effective_from: Timestamp,
        effective_to: Timestamp,
        is_current: bool,
    ) -> None:
        record[record_model.effective_from_field_name] = effective_from
        record[record_model.effective_to_field_name] = effective_to
        if record_model.current_flag_field_name:
            record[record_model.current_flag_field_name] = (
                CURRENT_FLAG_YES if is_current else CURRENT_FLAG_NO
            )
        self._stamp_last_updated(record, record_model)

    def _stamp_last_updated(self, record: Record, record_model: RecordModel) -> None:
        if record_model.last_updated_field_name:
            record[record_model.last_updated_field_name] = self.clock()

    def _carry_forward(
        self, arrived: Record, previous: PlannedRecord, record_model: RecordModel
    ) -> None:
        if self.config.carry_forward_when_null:
            record_utils.carry_forward_when_null(
                arrived, previous.record, record_model.field_names
            )

    def _handle_ambiguous_order(self, key: RecordKey, timestamp: Timestamp) -> None:
        msg = (
            f"Found multiple arriving records with different values for key {key} at "
            f"timestamp [{timestamp}]."
        )
        if self.config.fail_on_ambiguous_order:
            raise AmbiguousOrderError(msg, key)
        logging.warning("%s Keeping the last record to arrive.", msg)

    @staticmethod
    def _group_by_key(
        arriving_records: Sequence[Record],
        existing_records: Sequence[Record],
        record_model: RecordModel,
    ) -> Tuple[Dict[RecordKey, List[Record]], Dict[RecordKey, List[Record]]]:
        return (
            record_utils.records_by_key(
                arriving_records, record_model.key_field_names
            ),
            record_utils.records_by_key(
                existing_records, record_model.key_field_names
            ),
        )


def _sorted_timeline(
    timeline: List[PlannedRecord], timestamp_field_name: str
) -> List[PlannedRecord]:
    return sorted(timeline, key=lambda plan: plan.get(timestamp_field_name))


def _find_placement(
    arrived: Record, timeline: List[PlannedRecord], record_model: RecordModel
) -> Optional[Tuple[_Placement, int]]:
    """Scans the timeline in time order and returns the first rule that places the
    arrived record, along with the position of the entry the rule applies to. Returns
    None if the timeline already holds an identical observation at the same
    timestamp.
    """
    timestamp_field_name = record_model.timestamp_field_name
    for position, plan in enumerate(timeline):
        next_plan = timeline[position + 1] if position + 1 < len(timeline) else None

        if record_utils.simultaneous(arrived, plan.record, timestamp_field_name):
            if record_utils.different(
                arrived, plan.record, record_model.value_field_names
            ):
                return _Placement.CORRECTION, position
            return None

        if position == 0 and record_utils.before(
            arrived, plan.record, timestamp_field_name
        ):
            return _Placement.BEFORE_FIRST, position

        if not record_utils.after(arrived, plan.record, timestamp_field_name):
            continue

        if next_plan is None:
            return _Placement.AFTER_LAST, position
        if record_utils.before(arrived, next_plan.record, timestamp_field_name):
            return _Placement.BETWEEN, position

    return None
