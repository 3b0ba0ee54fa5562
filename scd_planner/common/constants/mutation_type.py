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
"""Enum for the kinds of row-level mutations a planner may emit."""
import enum


class MutationType(enum.Enum):
    """The mutation that must be applied to storage for a planned record."""

    # The record already exists in storage and has not changed
    NONE = "NONE"
    # The record is new and must be written
    INSERT = "INSERT"
    # The record exists in storage but its contents have changed
    UPDATE = "UPDATE"
    # The record must be removed from storage. Never emitted by the history planner.
    DELETE = "DELETE"

    @property
    def requires_write(self) -> bool:
        return self is not MutationType.NONE
