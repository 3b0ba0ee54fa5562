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
"""Helpers for comparing and grouping the records of a history."""
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from scd_planner.common.date import TimestampType, is_timezone_aware
from scd_planner.planner.errors import InvalidRecordError
from scd_planner.planner.planned_record import Record
from scd_planner.planner.record_model import RecordModel
from scd_planner.utils.list_helpers import group_by

RecordKey = Tuple[Any, ...]


def key_for_record(record: Record, key_field_names: Sequence[str]) -> RecordKey:
    """Returns the business key of |record|: its key field values in key field
    order."""
    return tuple(record.get(field_name) for field_name in key_field_names)


def records_by_key(
    records: Iterable[Record], key_field_names: Sequence[str]
) -> Dict[RecordKey, List[Record]]:
    """Groups |records| by business key, preserving the given order of the records
    within each key."""
    return group_by(records, lambda record: key_for_record(record, key_field_names))


def simultaneous(record: Record, other: Record, timestamp_field_name: str) -> bool:
    return record[timestamp_field_name] == other[timestamp_field_name]


def before(record: Record, other: Record, timestamp_field_name: str) -> bool:
    return record[timestamp_field_name] < other[timestamp_field_name]


def after(record: Record, other: Record, timestamp_field_name: str) -> bool:
    return record[timestamp_field_name] > other[timestamp_field_name]


def different(record: Record, other: Record, value_field_names: Sequence[str]) -> bool:
    """Returns whether any of the value fields differ between the two records. Values
    of different types are different even when Python considers them equal, e.g. 1
    and 1.0 or 1 and True.
    """
    for field_name in value_field_names:
        value = record.get(field_name)
        other_value = other.get(field_name)
        if type(value) is not type(other_value) or value != other_value:
            return True
    return False


def carry_forward_when_null(
    arrived: Record, previous: Record, field_names: Optional[Sequence[str]] = None
) -> None:
    """Fills in each field of |arrived| that is null with the non-null value of the
    same field on |previous|. This is useful for sparse streams where an observation
    only carries the fields that changed.

    |field_names| is the declared shape of the records. When it is not known, the
    fields of both records are considered.
    """
    if field_names is None:
        field_names = list(dict.fromkeys([*arrived.keys(), *previous.keys()]))

    for field_name in field_names:
        if arrived.get(field_name) is None and previous.get(field_name) is not None:
            arrived[field_name] = previous[field_name]


def validate_record(
    record: Record, record_model: RecordModel, timestamp_type: TimestampType
) -> None:
    """Throws an InvalidRecordError if |record| does not have the key and timestamp
    values required to place it in a history."""
    key = key_for_record(record, record_model.key_field_names)

    missing_key_fields = [
        field_name
        for field_name in record_model.key_field_names
        if record.get(field_name) is None
    ]
    if missing_key_fields:
        raise InvalidRecordError(
            f"Record is missing values for key fields {missing_key_fields}: {record}",
            key,
        )

    timestamp = record.get(record_model.timestamp_field_name)
    if timestamp is None:
        raise InvalidRecordError(
            f"Record is missing a value for timestamp field "
            f"[{record_model.timestamp_field_name}]: {record}",
            key,
        )
    if not timestamp_type.is_valid_timestamp(timestamp):
        raise InvalidRecordError(
            f"Expected [{record_model.timestamp_field_name}] to be a timestamp of type "
            f"[{timestamp_type.value}], found [{timestamp!r}]: {record}",
            key,
        )


def validate_key_group(
    key: RecordKey,
    records: Iterable[Record],
    record_model: RecordModel,
    timestamp_type: TimestampType,
) -> None:
    """Throws an InvalidRecordError if any of |records| cannot be placed in the
    history of |key|: the record is invalid on its own, belongs to a different key, or
    its timestamp cannot be ordered against the timestamps of the other records.
    """
    timestamp_field_name = record_model.timestamp_field_name
    first_timestamp_record: Optional[Record] = None
    for record in records:
        validate_record(record, record_model, timestamp_type)

        record_key = key_for_record(record, record_model.key_field_names)
        if record_key != key:
            raise InvalidRecordError(
                f"Expected a record with key {key}, found key {record_key}: {record}",
                key,
            )

        if first_timestamp_record is None:
            first_timestamp_record = record
            continue
        # Timezone-aware and naive datetimes cannot be ordered against each other
        if is_timezone_aware(record[timestamp_field_name]) != is_timezone_aware(
            first_timestamp_record[timestamp_field_name]
        ):
            raise InvalidRecordError(
                f"Found both timezone-aware and naive values for timestamp field "
                f"[{timestamp_field_name}] for key {key}: "
                f"[{first_timestamp_record[timestamp_field_name]!r}] and "
                f"[{record[timestamp_field_name]!r}]",
                key,
            )
