"""
Tests for applying classified paths to storage, including the
capture-then-recapture flow between two users.
"""
import unittest.mock

import pytest

from conftest import SQUARE_LOOP
from CORE.BACKEND.errors import InvalidInput, PartialCaptureError, StorageConflict, StorageUnavailable
from CORE.BACKEND.models import CaptureMethod, ClaimOutcome, PathInput, PathType


def loop_input(user, color="#FF0000"):
    return PathInput(user=user, color=color, points=[tuple(p) for p in SQUARE_LOOP])


class TestSquareLoopCapture:
    def test_first_capture_has_no_conflicts(self, engine):
        result = engine.submit_path("X", "#FF0000", SQUARE_LOOP)

        assert result.path_type == PathType.CLOSED_LOOP
        assert result.boundary_count == 4
        assert result.interior_count == 1
        assert result.conflicts == {}
        assert engine.get_user_stats("X").total_cells == 5

    def test_recapture_reports_every_cell_as_conflict(self, engine):
        engine.submit_path("X", "#FF0000", SQUARE_LOOP)
        region_before = engine.region_store.get_region("R0:0")
        assert region_before.owner_cell_counts["X"] == 5

        result = engine.submit_path("Y", "#0000FF", SQUARE_LOOP)

        assert len(result.conflicts) == 5
        assert set(result.conflicts.values()) == {"X"}
        assert engine.get_user_stats("Y").total_cells == 5
        assert engine.get_user_stats("X").total_cells == 0

        region_after = engine.region_store.get_region("R0:0")
        assert region_after.owner_cell_counts["X"] == 0
        assert region_after.owner_cell_counts["Y"] == 5
        assert region_after.cell_count == 5

    def test_same_user_recapture_is_idempotent(self, engine):
        engine.submit_path("X", "#FF0000", SQUARE_LOOP)
        result = engine.submit_path("X", "#FF0000", SQUARE_LOOP)

        assert result.conflicts == {}
        assert result.already_owned == 5
        stats = engine.get_user_stats("X")
        assert stats.total_cells == 5
        assert stats.total_captures == 2


class TestCaptureProcessor:
    def test_single_hex_uses_click(self, engine):
        result = engine.processor.process(
            PathInput(user="u1", color="#FF0000", points=[(0.5, 0.5)])
        )
        region = engine.region_store.get_region("R0:0")
        assert result.path_type == PathType.SINGLE_HEX
        assert region.territories["0:0"].method == CaptureMethod.CLICK

    def test_loop_uses_loop_method(self, engine):
        engine.processor.process(loop_input("u1"))
        region = engine.region_store.get_region("R0:0")
        assert {t.method for t in region.territories.values()} == {CaptureMethod.LOOP}

    def test_cells_grouped_by_region(self, engine):
        groups = engine.processor.group_by_region(["0:0", "10:0", "0:1", "0:10"])
        assert groups == {"R0:0": ["0:0", "0:1"], "R1:0": ["10:0"], "R0:1": ["0:10"]}

    def test_path_spanning_regions(self, engine):
        result = engine.processor.process(
            PathInput(user="u1", color="#FF0000", points=[(0.5, 8.5), (0.5, 11.5)])
        )
        assert result.regions_affected == ["R0:0", "R0:1"]
        assert engine.region_store.get_region("R0:1").owner_of("0:11") == "u1"

    def test_history_recorded(self, engine):
        result = engine.processor.process(loop_input("u1"))
        assert result.path_id.startswith("PATH_")

        entry = engine.history.get(result.path_id)
        assert entry.user == "u1"
        assert entry.result.path_type == PathType.CLOSED_LOOP
        assert entry.coordinates[0] == (0.5, 1.5)

    def test_invalid_input_writes_nothing(self, engine, memory_store):
        with pytest.raises(InvalidInput):
            engine.processor.process(PathInput(user="u1", color="#FF0000", points=[]))
        assert engine.region_store.all_regions() == []
        assert engine.history.count() == 0

    def test_conflict_mid_capture_is_partial_failure(self, engine):
        real_apply = engine.region_store.apply_claims

        def flaky_apply(region_id, claims):
            if region_id == "R0:1":
                raise StorageConflict("region:R0:1", 3)
            return real_apply(region_id, claims)

        with unittest.mock.patch.object(engine.region_store, "apply_claims", side_effect=flaky_apply):
            with pytest.raises(PartialCaptureError) as exc:
                engine.submit_path("u1", "#FF0000", [[0.5, 8.5], [0.5, 11.5]])

        assert exc.value.applied_regions == ["R0:0"]
        assert exc.value.failed_region == "R0:1"
        assert isinstance(exc.value.cause, StorageConflict)
        # Earlier region stays applied, nothing else is recorded
        assert engine.region_store.get_region("R0:0").owner_of("0:9") == "u1"
        assert engine.region_store.get_region("R0:1") is None
        assert engine.get_user_stats("u1") is None
        assert engine.history.count() == 0

    def test_storage_unavailable_propagates(self, engine):
        with unittest.mock.patch.object(
            engine.region_store, "apply_claims", side_effect=StorageUnavailable("down")
        ):
            with pytest.raises(StorageUnavailable):
                engine.submit_path("u1", "#FF0000", [[0.5, 0.5]])

    def test_claim_summary_merges_outcomes(self, engine):
        outcomes = [
            ClaimOutcome(previous_owners={"0:0": "a"}, already_owned=["0:1"]),
            ClaimOutcome(previous_owners={"0:10": "b"}, already_owned=[]),
        ]
        with unittest.mock.patch.object(engine.region_store, "apply_claims", side_effect=outcomes):
            summary = engine.processor.claim_cells("u1", "#FF0000", ["0:0", "0:1", "0:10"], "click")

        assert summary.regions_affected == ["R0:0", "R0:1"]
        assert summary.conflicts == {"0:0": "a", "0:10": "b"}
        assert summary.already_owned == 1
