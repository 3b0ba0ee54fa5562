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
"""Contains errors raised while planning history mutations."""
from typing import Any, Optional, Tuple


class HistoryPlanningError(Exception):
    """Base class for errors raised while planning the mutations of a history."""


class PlannerConfigurationError(HistoryPlanningError):
    """Raised when a record model or planner configuration is invalid."""


class KeyGroupPlanningError(HistoryPlanningError):
    """Raised when the records of a single key group cannot be planned. Errors of
    this type never affect the planning of other key groups.
    """

    def __init__(self, msg: str, key: Optional[Tuple[Any, ...]]):
        self.key = key
        super().__init__(msg)


class InvalidRecordError(KeyGroupPlanningError):
    """Raised when a record is missing a key field value or a timestamp value, or
    its timestamp is not of the configured type."""


class AmbiguousOrderError(KeyGroupPlanningError):
    """Raised when two arriving records for the same key share a timestamp but carry
    different values, and the planner is configured to reject the batch rather than
    let the last arrival win."""
