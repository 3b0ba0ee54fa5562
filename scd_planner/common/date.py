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
"""Utils for working with the timestamps that bound history intervals."""
import datetime
import enum
from typing import Any, Union

import pytz

Timestamp = Union[int, datetime.date, datetime.datetime]

# 9999-12-31T00:00:00Z in epoch milliseconds
FAR_FUTURE_MILLIS: int = 253402214400000
FAR_FUTURE_DATETIME = datetime.datetime(9999, 12, 31)
FAR_FUTURE_DATE = datetime.date(9999, 12, 31)

LAST_UPDATED_FORMAT = "%Y-%m-%d %H:%M:%S.%f"


class TimestampType(enum.Enum):
    """The representation and granularity of the timestamps in a history. The
    granularity defines the smallest possible gap between the end of one interval and
    the start of the next.
    """

    # Integer milliseconds since the epoch
    EPOCH_MILLIS = "EPOCH_MILLIS"
    # datetime.datetime values at millisecond granularity
    DATETIME = "DATETIME"
    # datetime.date values at day granularity
    DATE = "DATE"

    @property
    def far_future(self) -> Timestamp:
        """The sentinel effective-to value of the current interval of a history."""
        if self is TimestampType.EPOCH_MILLIS:
            return FAR_FUTURE_MILLIS
        if self is TimestampType.DATETIME:
            return FAR_FUTURE_DATETIME
        return FAR_FUTURE_DATE

    def far_future_for(self, timestamp: Timestamp) -> Timestamp:
        """The far-future sentinel for a history containing |timestamp|. Histories of
        timezone-aware datetimes end at the far future in UTC."""
        if self is TimestampType.DATETIME and is_timezone_aware(timestamp):
            return FAR_FUTURE_DATETIME.replace(tzinfo=pytz.UTC)
        return self.far_future

    def is_valid_timestamp(self, value: Any) -> bool:
        if self is TimestampType.EPOCH_MILLIS:
            return isinstance(value, int) and not isinstance(value, bool)
        if self is TimestampType.DATETIME:
            return isinstance(value, datetime.datetime)
        return isinstance(value, datetime.date) and not isinstance(
            value, datetime.datetime
        )


def is_timezone_aware(value: Any) -> bool:
    return isinstance(value, datetime.datetime) and value.utcoffset() is not None


def preceding_timestamp(timestamp: Timestamp, timestamp_type: TimestampType) -> Timestamp:
    """Returns the timestamp one unit of |timestamp_type| granularity before
    |timestamp|, i.e. the effective-to of an interval that is followed directly by an
    interval starting at |timestamp|.
    """
    if not timestamp_type.is_valid_timestamp(timestamp):
        raise ValueError(
            f"Expected timestamp of type [{timestamp_type.value}], found [{timestamp}]."
        )
    if timestamp_type is TimestampType.EPOCH_MILLIS:
        return timestamp - 1  # type: ignore[operator]
    if timestamp_type is TimestampType.DATETIME:
        return timestamp - datetime.timedelta(milliseconds=1)  # type: ignore[operator]
    return timestamp - datetime.timedelta(days=1)  # type: ignore[operator]


def current_datetime_utc() -> datetime.datetime:
    """Returns the current datetime in the UTC timezone."""
    return datetime.datetime.now(tz=pytz.UTC)


def current_timestamp_string() -> str:
    """Returns the current UTC wall-clock time formatted for last-updated fields,
    e.g. '2024-11-12 05:00:00.000000'."""
    return current_datetime_utc().strftime(LAST_UPDATED_FORMAT)
