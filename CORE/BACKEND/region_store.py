"""
Ownership storage partitioned by region.

A region is the parent cell of a group of game cells and the unit of
storage and locking. Every write goes through DocumentStore.update, so
claims on one region are serialized. Claims that span several regions are
applied region by region; a concurrent reader can see some regions updated
and others not yet.
"""
import logging

from .geometry_utils import viewport_sample_points
from .models import Region, now_ms
from .redis_tools import KEY_REGION, KEY_REGIONS_INDEX

logger = logging.getLogger(__name__)


def region_key(region_id):
    return KEY_REGION.format(region_id)


class RegionStore:
    def __init__(self, store, grid, samples=5):
        self.store = store
        self.grid = grid
        self.samples = samples

    def get_region(self, region_id):
        """Region or None when nothing was ever claimed there."""
        doc = self.store.get(region_key(region_id))
        return Region.from_dict(doc) if doc else None

    def get_or_create_region(self, region_id):
        """Existing region, or a new empty one. Nothing is written."""
        return self.get_region(region_id) or Region(id=region_id, last_update=now_ms())

    def apply_claims(self, region_id, claims):
        """
        Apply [(cell, user, color, method)] to one region atomically.

        Returns:
            ClaimOutcome with previous owners (only where they differ from
            the claimant) and cells the claimant already held.

        Raises:
            StorageConflict: concurrent writers kept winning past the retry limit
            StorageUnavailable: store unreachable
        """
        claims = list(claims)

        def mutate(doc):
            region = Region.from_dict(doc) if doc else Region(id=region_id)
            outcome = region.apply_claims(claims)
            return region.to_dict(), outcome

        def index_entries(doc):
            return [(KEY_REGIONS_INDEX, region_id, doc["metadata"]["lastUpdate"])]

        outcome = self.store.update(region_key(region_id), mutate, index_entries)
        logger.info(
            f"Region {region_id}: applied {len(claims)} claims, "
            f"{len(outcome.previous_owners)} conflicts"
        )
        return outcome

    def regions_overlapping(self, bbox, resolution=None):
        """
        Region ids that may intersect bbox.

        Probes a fixed lattice of points (see viewport_sample_points) and maps
        each to its region. Cost does not depend on how much is stored; the
        result can include empty neighbouring regions and can miss a region
        that only grazes the box between probes.
        """
        region_ids = []
        seen = set()
        for lat, lng in viewport_sample_points(bbox, self.samples):
            cell = self.grid.cell_for_point(lat, lng, resolution)
            region_id = self.grid.parent_cell(cell)
            if region_id not in seen:
                seen.add(region_id)
                region_ids.append(region_id)
        return region_ids

    def get_territories_in_viewport(self, bbox, resolution=None):
        """
        Returns:
            {region_id: {cell: {"owner", "color"}}} for stored regions only
        """
        region_ids = self.regions_overlapping(bbox, resolution)
        docs = self.store.get_many([region_key(r) for r in region_ids])

        regions = {}
        for region_id, doc in zip(region_ids, docs):
            if not doc:
                continue
            region = Region.from_dict(doc)
            regions[region_id] = {
                cell: {"owner": t.owner, "color": t.color}
                for cell, t in region.territories.items()
            }
        return regions

    def all_regions(self):
        region_ids = self.store.index_members(KEY_REGIONS_INDEX)
        docs = self.store.get_many([region_key(r) for r in region_ids])
        return [Region.from_dict(doc) for doc in docs if doc]
