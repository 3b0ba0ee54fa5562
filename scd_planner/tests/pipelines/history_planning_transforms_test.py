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
"""Tests for history_planning_transforms.py."""
import datetime
import unittest
from typing import Any, Dict, Tuple

import apache_beam as beam
import pytz
from apache_beam.testing.util import assert_that, equal_to

from scd_planner.common.date import FAR_FUTURE_MILLIS, TimestampType
from scd_planner.planner.history_planner import HistoryPlanner
from scd_planner.planner.planned_record import PlannedRecord
from scd_planner.planner.planner_config import HistoryPlannerConfig
from scd_planner.planner.record_model import RecordModel
from scd_planner.pipelines.history_planning_transforms import (
    ARRIVING_RECORDS,
    EXISTING_RECORDS,
    INVALID_KEY_GROUPS_OUTPUT,
    PLANNED_OUTPUT,
    PlanHistoryMutations,
    PlanMutationsForKeyGroup,
)
from scd_planner.tests.pipelines.beam_test_utils import create_test_pipeline

_RECORD_MODEL = RecordModel(
    key_field_names=["id"],
    timestamp_field_name="ts",
    value_field_names=["value"],
    effective_from_field_name="valid_from",
    effective_to_field_name="valid_to",
    current_flag_field_name="is_current",
)


def _summarize(
    planned: PlannedRecord,
) -> Tuple[Any, Any, Any, Any, Any, str]:
    return (
        planned.get("id"),
        planned.get("ts"),
        planned.get("value"),
        planned.get("valid_to"),
        planned.get("is_current"),
        planned.mutation_type.value,
    )


def _stored(id_: int, ts: int, value: str, valid_to: int, is_current: str) -> Dict[str, Any]:
    return {
        "id": id_,
        "ts": ts,
        "value": value,
        "valid_from": ts,
        "valid_to": valid_to,
        "is_current": is_current,
    }


class TestPlanHistoryMutations(unittest.TestCase):
    """Tests the PlanHistoryMutations PTransform."""

    def test_plan_history_mutations(self) -> None:
        existing = [
            _stored(1, 100, "a", FAR_FUTURE_MILLIS, "Y"),
            _stored(2, 100, "x", FAR_FUTURE_MILLIS, "Y"),
            # No arriving records for this key
            _stored(3, 100, "untouched", FAR_FUTURE_MILLIS, "Y"),
        ]
        arriving = [
            # Arrival order within a key is not preserved by the grouping
            {"id": 1, "ts": 200, "value": "c"},
            {"id": 1, "ts": 50, "value": "b"},
            {"id": 2, "ts": 100, "value": "x"},
            {"id": 4, "ts": 10, "value": "new"},
        ]

        with create_test_pipeline() as test_pipeline:
            outputs = {
                ARRIVING_RECORDS: test_pipeline
                | "Create arriving" >> beam.Create(arriving),
                EXISTING_RECORDS: test_pipeline
                | "Create existing" >> beam.Create(existing),
            } | "Plan" >> PlanHistoryMutations(HistoryPlanner(), _RECORD_MODEL)

            summaries = outputs[PLANNED_OUTPUT] | "Summarize" >> beam.Map(_summarize)

            assert_that(
                summaries,
                equal_to(
                    [
                        (1, 50, "b", 99, "N", "INSERT"),
                        (1, 100, "a", 199, "N", "UPDATE"),
                        (1, 200, "c", FAR_FUTURE_MILLIS, "Y", "INSERT"),
                        (4, 10, "new", FAR_FUTURE_MILLIS, "Y", "INSERT"),
                    ]
                ),
                label="Planned",
            )
            assert_that(
                outputs[INVALID_KEY_GROUPS_OUTPUT], equal_to([]), label="Invalid"
            )

    def test_plan_history_mutations_invalid_key_group(self) -> None:
        arriving = [
            {"id": 1, "ts": 100, "value": "a"},
            {"id": 2, "ts": None, "value": "b"},
        ]

        with create_test_pipeline() as test_pipeline:
            outputs = {
                ARRIVING_RECORDS: test_pipeline
                | "Create arriving" >> beam.Create(arriving),
                EXISTING_RECORDS: test_pipeline
                | "Create existing" >> beam.Create([]),
            } | "Plan" >> PlanHistoryMutations(HistoryPlanner(), _RECORD_MODEL)

            assert_that(
                outputs[PLANNED_OUTPUT] | "Summarize" >> beam.Map(_summarize),
                equal_to([(1, 100, "a", FAR_FUTURE_MILLIS, "Y", "INSERT")]),
                label="Planned",
            )
            assert_that(
                outputs[INVALID_KEY_GROUPS_OUTPUT] | "Keys" >> beam.Map(lambda e: e[0]),
                equal_to([(2,)]),
                label="Invalid",
            )


class TestPlanMutationsForKeyGroup(unittest.TestCase):
    """Tests the PlanMutationsForKeyGroup DoFn outside of a pipeline."""

    def test_process_sorts_arriving_records(self) -> None:
        element = (
            (1,),
            {
                ARRIVING_RECORDS: [
                    {"id": 1, "ts": 300, "value": "c"},
                    {"id": 1, "ts": 200, "value": "b"},
                ],
                EXISTING_RECORDS: [_stored(1, 100, "a", FAR_FUTURE_MILLIS, "Y")],
            },
        )

        planned = list(
            PlanMutationsForKeyGroup().process(element, HistoryPlanner(), _RECORD_MODEL)
        )

        self.assertEqual(
            [
                (1, 100, "a", 199, "N", "UPDATE"),
                (1, 200, "b", 299, "N", "INSERT"),
                (1, 300, "c", FAR_FUTURE_MILLIS, "Y", "INSERT"),
            ],
            [_summarize(p) for p in planned],
        )

    def test_process_no_arriving_records(self) -> None:
        element = (
            (1,),
            {
                ARRIVING_RECORDS: [],
                EXISTING_RECORDS: [_stored(1, 100, "a", FAR_FUTURE_MILLIS, "Y")],
            },
        )

        self.assertEqual(
            [],
            list(
                PlanMutationsForKeyGroup().process(
                    element, HistoryPlanner(), _RECORD_MODEL
                )
            ),
        )

    def test_process_invalid_record(self) -> None:
        element = (
            (1,),
            {
                ARRIVING_RECORDS: [{"id": 1, "ts": "yesterday", "value": "a"}],
                EXISTING_RECORDS: [],
            },
        )

        with self.assertLogs(level="WARNING"):
            outputs = list(
                PlanMutationsForKeyGroup().process(
                    element, HistoryPlanner(), _RECORD_MODEL
                )
            )

        self.assertEqual(1, len(outputs))
        self.assertIsInstance(outputs[0], beam.pvalue.TaggedOutput)
        self.assertEqual(INVALID_KEY_GROUPS_OUTPUT, outputs[0].tag)
        self.assertEqual((1,), outputs[0].value[0])

    def test_process_mixed_timezone_awareness(self) -> None:
        planner = HistoryPlanner(
            config=HistoryPlannerConfig(timestamp_type=TimestampType.DATETIME)
        )
        element = (
            (1,),
            {
                ARRIVING_RECORDS: [
                    {"id": 1, "ts": datetime.datetime(2024, 2, 1), "value": "b"},
                    {
                        "id": 1,
                        "ts": datetime.datetime(2024, 3, 1, tzinfo=pytz.UTC),
                        "value": "c",
                    },
                ],
                EXISTING_RECORDS: [],
            },
        )

        with self.assertLogs(level="WARNING"):
            outputs = list(
                PlanMutationsForKeyGroup().process(element, planner, _RECORD_MODEL)
            )

        self.assertEqual(1, len(outputs))
        self.assertIsInstance(outputs[0], beam.pvalue.TaggedOutput)
        self.assertEqual(INVALID_KEY_GROUPS_OUTPUT, outputs[0].tag)
        self.assertEqual((1,), outputs[0].value[0])
        self.assertIn("timezone-aware and naive", outputs[0].value[1])
