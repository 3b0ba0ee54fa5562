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
"""Generic helpers for working with lists"""
from typing import Callable, Dict, Iterable, List, TypeVar

T = TypeVar("T")  # The type of the items
K = TypeVar("K")  # The type of the key


def group_by(items: Iterable[T], key_fn: Callable[[T], K]) -> Dict[K, List[T]]:
    """Groups items by the key returned by the key function. Groups are returned in
    the order their key was first seen, and items keep their relative order within
    a group.
    """
    grouped: Dict[K, List[T]] = {}
    for item in items:
        grouped.setdefault(key_fn(item), []).append(item)
    return grouped
