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
"""Checks that the history of a single key is a contiguous, non-overlapping series of
intervals with exactly one current record."""
from typing import Any, List, Sequence

from more_itertools import pairwise

from scd_planner.common.date import (
    TimestampType,
    is_timezone_aware,
    preceding_timestamp,
)
from scd_planner.planner.history_planner import CURRENT_FLAG_NO, CURRENT_FLAG_YES
from scd_planner.planner.planned_record import Record
from scd_planner.planner.record_model import RecordModel


def find_timeline_violations(
    records: Sequence[Record],
    record_model: RecordModel,
    timestamp_type: TimestampType = TimestampType.EPOCH_MILLIS,
) -> List[str]:
    """Returns a description of each way the history |records| of a single key breaks
    the Type II interval rules. An empty list means the history is valid:
        - every record is effective from its own timestamp
        - each record is effective until just before the next record's timestamp
        - the latest record is effective until the far future
        - if the record model has a current flag field, only the latest record is
          flagged as current
    """
    if not records:
        return []

    from_field = record_model.effective_from_field_name
    to_field = record_model.effective_to_field_name
    timestamp_field = record_model.timestamp_field_name

    if len({is_timezone_aware(record[timestamp_field]) for record in records}) > 1:
        # The records cannot be put in order
        return [
            f"Found both timezone-aware and naive values for timestamp field "
            f"[{timestamp_field}]."
        ]

    ordered = sorted(records, key=lambda record: record[timestamp_field])
    violations: List[str] = []

    for record in ordered:
        if record.get(from_field) != record[timestamp_field]:
            violations.append(
                f"Record at [{record[timestamp_field]}] is effective from "
                f"[{record.get(from_field)}] instead of its own timestamp."
            )

    for record, next_record in pairwise(ordered):
        if record[timestamp_field] == next_record[timestamp_field]:
            violations.append(
                f"Found multiple records at timestamp [{record[timestamp_field]}]."
            )
            continue
        expected_to = preceding_timestamp(next_record[timestamp_field], timestamp_type)
        if record.get(to_field) != expected_to:
            kind = _boundary_problem(record.get(to_field), expected_to)
            violations.append(
                f"Record at [{record[timestamp_field]}] is effective until "
                f"[{record.get(to_field)}], expected [{expected_to}] ({kind})."
            )

    latest = ordered[-1]
    if latest.get(to_field) != timestamp_type.far_future_for(latest[timestamp_field]):
        violations.append(
            f"Latest record at [{latest[timestamp_field]}] is effective until "
            f"[{latest.get(to_field)}] instead of the far future."
        )

    flag_field = record_model.current_flag_field_name
    if flag_field:
        for record in ordered[:-1]:
            if record.get(flag_field) != CURRENT_FLAG_NO:
                violations.append(
                    f"Record at [{record[timestamp_field]}] has current flag "
                    f"[{record.get(flag_field)}], expected [{CURRENT_FLAG_NO}]."
                )
        if latest.get(flag_field) != CURRENT_FLAG_YES:
            violations.append(
                f"Latest record at [{latest[timestamp_field]}] has current flag "
                f"[{latest.get(flag_field)}], expected [{CURRENT_FLAG_YES}]."
            )

    return violations


def _boundary_problem(effective_to: Any, expected_to: Any) -> str:
    if effective_to is None:
        return "overlap or open interval"
    if type(effective_to) is not type(expected_to) or is_timezone_aware(
        effective_to
    ) != is_timezone_aware(expected_to):
        return "not comparable"
    return "gap" if effective_to < expected_to else "overlap or open interval"
