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
"""Function for running work items in parallel, tracking the exceptions raised by
individual items without failing the others."""

from concurrent import futures
from typing import Callable, Generic, List, Optional, Tuple

import attr

from scd_planner.utils.types import T, U


@attr.define(kw_only=True)
class ThreadPoolExecutorResult(Generic[T, U]):
    # The items that the operation succeeded for
    successes: List[Tuple[T, U]]

    # The items with an operation that raised an exception
    exceptions: List[Tuple[T, Exception]]


def map_fn_with_results(
    *,
    work_items: List[T],
    work_fn: Callable[[T], U],
    overall_timeout_sec: Optional[float] = None,
    max_workers: int = 8,
) -> ThreadPoolExecutorResult[T, U]:
    """Processes all items in |work_items| using the provided |work_fn| in parallel.

    Args:
        work_items: The list of items to process, passed as a single arg to |work_fn|
        work_fn: The function used to process items
        overall_timeout_sec: The timeout for ALL items to complete, or None to wait
            indefinitely
        max_workers: The maximum number of ThreadPoolExecutor workers to use
    """
    successes = []
    exceptions = []
    with futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_work_item = {
            executor.submit(work_fn, work_item): work_item for work_item in work_items
        }
        for future in futures.as_completed(
            future_to_work_item, timeout=overall_timeout_sec
        ):
            work_item = future_to_work_item[future]
            try:
                successes.append((work_item, future.result()))
            except Exception as e:
                exceptions.append((work_item, e))
    return ThreadPoolExecutorResult(successes=successes, exceptions=exceptions)
