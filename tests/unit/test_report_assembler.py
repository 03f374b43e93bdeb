"""
Unit tests for report assembly and the serialized report shape.
"""

import json
from datetime import datetime, timezone

import pytest

from vdi_usage_report.reporting.report_assembler import ControllerResult, ReportAssembler
from vdi_usage_report.schemas import (
    ERROR_KIND_COLLECTION,
    ControllerError,
    DeliveryGroupSummary,
)

CREATED = datetime(2024, 1, 16, 12, 0, 5, tzinfo=timezone.utc)


@pytest.fixture
def assembler():
    return ReportAssembler(clock=lambda: CREATED)


@pytest.fixture
def summaries():
    return (
        DeliveryGroupSummary(name="Office", id="dg-1", max_concurrent_sessions=3, machine_count=2),
        DeliveryGroupSummary(name="Kiosk", id="dg-2", max_concurrent_sessions=0, machine_count=1),
    )


class TestAssemble:
    """Tests for report structure."""

    def test_one_entry_per_result_in_order(self, assembler, window, summaries):
        """Every controller result appears, in input order."""
        results = [
            ControllerResult("ddc02", summaries),
            ControllerResult("ddc01"),
            ControllerResult("ddc03", summaries[:1]),
        ]

        report = assembler.assemble(results, window)

        assert [c.address for c in report.controllers] == ["ddc02", "ddc01", "ddc03"]

    def test_window_and_creation_timestamp(self, assembler, window):
        """The report carries the window and a single creation timestamp."""
        report = assembler.assemble([ControllerResult("ddc01")], window)

        assert report.start == window.start
        assert report.end == window.end
        assert report.creation_timestamp == CREATED

    def test_explicit_now_overrides_clock(self, window):
        """An explicit now is used as the creation timestamp."""
        assembler = ReportAssembler(clock=lambda: pytest.fail("clock called"))

        report = assembler.assemble([], window, now=CREATED)

        assert report.creation_timestamp == CREATED
        assert report.controllers == ()

    def test_no_summaries_omits_delivery_groups(self, assembler, window):
        """A controller with no groups keeps its entry with groups omitted."""
        report = assembler.assemble([ControllerResult("ddc01")], window)

        entry = report.controllers[0]
        assert entry.delivery_groups is None
        assert not entry.has_delivery_groups

    def test_empty_summaries_omit_delivery_groups(self, assembler, window):
        """An empty summary tuple is treated the same as none."""
        report = assembler.assemble([ControllerResult("ddc01", ())], window)

        assert report.controllers[0].delivery_groups is None

    def test_summaries_are_kept(self, assembler, window, summaries):
        """Summaries pass through unchanged."""
        report = assembler.assemble([ControllerResult("ddc01", summaries)], window)

        assert report.controllers[0].delivery_groups == summaries

    def test_errors_are_carried(self, assembler, window):
        """Failed controllers keep their error marker."""
        error = ControllerError(ERROR_KIND_COLLECTION, "timed out")

        report = assembler.assemble(
            [ControllerResult("ddc01", error=error), ControllerResult("ddc02")], window
        )

        assert report.has_errors
        assert report.errors == [("ddc01", error)]
        assert report.get_controller("ddc02").error is None

    def test_get_controller_unknown(self, assembler, window):
        """Looking up an absent controller returns None."""
        report = assembler.assemble([ControllerResult("ddc01")], window)

        assert report.get_controller("ddc99") is None


class TestSerialization:
    """Tests for the published dictionary shape."""

    def test_field_names(self, assembler, window, summaries):
        """to_dict uses the published camelCase field names."""
        report = assembler.assemble([ControllerResult("ddc01", summaries)], window)

        data = report.to_dict()

        assert set(data) == {"creationTimestamp", "start", "end", "controllers"}
        assert data["start"] == "2024-01-15T00:00:00+00:00"
        assert data["end"] == "2024-01-15T23:59:59+00:00"
        assert data["controllers"][0] == {
            "address": "ddc01",
            "deliveryGroups": [
                {"name": "Office", "id": "dg-1", "maxConcurrentSessions": 3, "machineCount": 2},
                {"name": "Kiosk", "id": "dg-2", "maxConcurrentSessions": 0, "machineCount": 1},
            ],
        }

    def test_empty_controller_has_no_delivery_groups_key(self, assembler, window):
        """Omitted groups are absent from the dict, not an empty list."""
        report = assembler.assemble([ControllerResult("ddc01")], window)

        assert report.to_dict()["controllers"] == [{"address": "ddc01"}]

    def test_error_marker_serialized(self, assembler, window):
        """Failed controllers serialize their error."""
        error = ControllerError(ERROR_KIND_COLLECTION, "HTTP 500")
        report = assembler.assemble([ControllerResult("ddc01", error=error)], window)

        assert report.to_dict()["controllers"] == [
            {"address": "ddc01", "error": {"kind": "collection", "message": "HTTP 500"}}
        ]

    def test_dict_is_json_serializable(self, assembler, window, summaries):
        """The dict round-trips through json."""
        report = assembler.assemble([ControllerResult("ddc01", summaries)], window)

        assert json.loads(json.dumps(report.to_dict())) == report.to_dict()
