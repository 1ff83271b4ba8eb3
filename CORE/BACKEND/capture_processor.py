"""
Applies a classified path to region storage.

Validation happens before the first write. Regions are written one at a
time and independently: if region N fails, regions before it keep the new
owner and the caller gets a PartialCaptureError naming them.
"""
import logging
import time
from dataclasses import dataclass, field

from .errors import PartialCaptureError, StorageConflict, StorageUnavailable
from .models import METHOD_FOR_PATH_TYPE, CaptureResult, Claim

logger = logging.getLogger(__name__)


@dataclass
class ClaimSummary:
    regions_affected: list = field(default_factory=list)
    conflicts: dict = field(default_factory=dict)
    already_owned: int = 0


class CaptureProcessor:
    def __init__(self, grid, classifier, region_store, history):
        self.grid = grid
        self.classifier = classifier
        self.region_store = region_store
        self.history = history

    def group_by_region(self, cells):
        """{region_id: [cells]} keeping first-seen order of regions and cells."""
        groups = {}
        for cell in cells:
            groups.setdefault(self.grid.parent_cell(cell), []).append(cell)
        return groups

    def claim_cells(self, user, color, cells, method):
        """
        Write ownership of cells for user, region by region.

        Raises:
            PartialCaptureError: a region hit StorageConflict after retries
            StorageUnavailable: store unreachable (earlier regions may be applied)
        """
        summary = ClaimSummary()

        for region_id, region_cells in self.group_by_region(cells).items():
            claims = [Claim(cell, user, color, method) for cell in region_cells]
            try:
                outcome = self.region_store.apply_claims(region_id, claims)
            except StorageConflict as e:
                logger.error(
                    f"Capture for {user} failed at region {region_id}, "
                    f"already applied: {summary.regions_affected}"
                )
                raise PartialCaptureError(summary.regions_affected, region_id, cause=e) from e
            except StorageUnavailable:
                logger.error(
                    f"Storage unavailable at region {region_id} for {user}, "
                    f"{len(summary.regions_affected)} regions already applied"
                )
                raise

            summary.regions_affected.append(region_id)
            summary.conflicts.update(outcome.previous_owners)
            summary.already_owned += len(outcome.already_owned)

        return summary

    def process(self, path_input, method=None):
        """
        Classify, claim and record one path.

        Args:
            path_input: PathInput
            method: overrides the capture method derived from the path type

        Returns:
            CaptureResult, with path_id of the stored history record
        """
        t0 = time.perf_counter()

        classification = self.classifier.classify(path_input)
        method = method or METHOD_FOR_PATH_TYPE[classification.path_type]

        logger.info(
            f"Processing {classification.path_type} for {path_input.user}: "
            f"{len(classification.claimed_cells)} cells"
        )

        summary = self.claim_cells(
            path_input.user, path_input.color, classification.claimed_cells, method
        )

        result = CaptureResult(
            user=path_input.user,
            path_type=classification.path_type,
            cell_path=classification.cell_path,
            claimed_cells=classification.claimed_cells,
            boundary_count=classification.boundary_count,
            interior_count=classification.interior_count,
            regions_affected=summary.regions_affected,
            conflicts=summary.conflicts,
            already_owned=summary.already_owned,
        )
        result.processing_time_ms = int((time.perf_counter() - t0) * 1000)

        self.history.record(path_input.user, path_input.points, result)

        logger.info(f"PERF: capture for {path_input.user} took {time.perf_counter() - t0:.4f}s")
        return result
