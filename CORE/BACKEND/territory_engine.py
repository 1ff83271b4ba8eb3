"""
Territory capture engine: wires grid, classifier, storage, ledger and
notifier together and exposes the operations the HTTP layer calls.

    raw path -> PathClassifier -> CaptureProcessor (RegionStore, history)
             -> UserStatsLedger -> RealtimeNotifier
"""
import logging
import threading

from .capture_processor import CaptureProcessor
from .document_store import MemoryDocumentStore
from .errors import InvalidInput
from .h3_grid import H3Grid
from .models import CaptureMethod, PathInput, PathOptions, parse_points, now_ms
from .notifier import LoggingNotifier, RedisPublishNotifier
from .path_classifier import PathClassifier
from .path_history import PathHistoryStore
from .redis_tools import RedisDocumentStore
from .region_store import RegionStore
from .settings import EngineSettings
from .user_stats import UserStatsLedger

logger = logging.getLogger(__name__)

DEFAULT_BATCH_COLOR = "#E8E8E8"
MAX_PAGE_SIZE = 100
LEADERBOARD_SIZE = 10


def build_store(settings):
    if settings.storage_backend == 'memory':
        logger.warning("Using in-memory storage, ownership is lost on restart")
        return MemoryDocumentStore()
    from CORE.redis_client import get_redis_client
    return RedisDocumentStore(get_redis_client(), max_retries=settings.storage_max_retries)


def build_notifier(settings):
    if settings.notifier_backend == 'redis':
        from CORE.redis_client import get_redis_client
        return RedisPublishNotifier(get_redis_client())
    return LoggingNotifier()


def _check_page(limit, offset):
    if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_PAGE_SIZE:
        raise InvalidInput(f"limit must be between 1 and {MAX_PAGE_SIZE}")
    if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
        raise InvalidInput("offset must be a non-negative integer")


def _check_identity(user, color):
    if not isinstance(user, str) or not user.strip():
        raise InvalidInput("user is required")
    if not isinstance(color, str) or not color.strip():
        raise InvalidInput("color is required")


class TerritoryEngine:
    def __init__(self, settings=None, store=None, grid=None, notifier=None):
        self.settings = settings or EngineSettings.from_env()
        self.store = store if store is not None else build_store(self.settings)
        self.grid = grid or H3Grid(self.settings.game_resolution, self.settings.region_resolution)
        self.notifier = notifier or build_notifier(self.settings)

        self.classifier = PathClassifier(
            self.grid, self.settings.max_path_points, self.settings.max_fill_cells
        )
        self.region_store = RegionStore(self.store, self.grid, self.settings.viewport_samples)
        self.history = PathHistoryStore(self.store)
        self.processor = CaptureProcessor(self.grid, self.classifier, self.region_store, self.history)
        self.ledger = UserStatsLedger(self.store)

    def default_options(self):
        return PathOptions(
            auto_close=self.settings.auto_close,
            min_loop_size=self.settings.min_loop_size,
        )

    # --- captures -----------------------------------------------------------

    def submit_path(self, user, color, points, options=None):
        """Capture a walked path. Returns CaptureResult."""
        path_input = PathInput(
            user=user,
            color=color,
            points=parse_points(points),
            options=options or self.default_options(),
        )
        return self._submit(path_input)

    def submit_path_payload(self, payload):
        """Capture from an API body {user, color, path, options}."""
        return self._submit(PathInput.from_dict(payload, self.default_options()))

    def submit_single_capture(self, user, color, lat, lng, method=CaptureMethod.CLICK):
        """Capture the one cell under (lat, lng)."""
        if method not in CaptureMethod.ALL:
            raise InvalidInput(f"method must be one of {', '.join(CaptureMethod.ALL)}")
        path_input = PathInput(
            user=user,
            color=color,
            points=parse_points([[lat, lng]]),
            options=self.default_options(),
        )
        return self._submit(path_input, method)

    def _submit(self, path_input, method=None):
        _check_identity(path_input.user, path_input.color)
        result = self.processor.process(path_input, method)
        stats = self.ledger.record_capture(result)
        self._notify(result, stats)
        return result

    def _notify(self, result, stats):
        try:
            self.notifier.on_capture_applied(result, stats)
        except Exception as e:
            logger.error(f"Notifier failed for path {result.path_id}: {e}")

    def batch_update(self, updates, colors=None):
        """
        Claim explicit cells for several users at once (method "click").
        Seeding path: no stats or history are written.

        Args:
            updates: {user: [cell, ...]}
            colors: optional {user: color}
        """
        if not isinstance(updates, dict) or not updates:
            raise InvalidInput("updates must be a non-empty object")
        colors = colors or {}
        if not isinstance(colors, dict):
            raise InvalidInput("colors must be an object")

        for user, cells in updates.items():
            _check_identity(user, colors.get(user, DEFAULT_BATCH_COLOR))
            if not isinstance(cells, list):
                raise InvalidInput(f"cells for {user} must be a list")
            for cell in cells:
                if not self.grid.is_valid_cell(cell, self.settings.game_resolution):
                    raise InvalidInput(f"Invalid cell id: {cell}")

        conflicts = {}
        regions_affected = []
        updated = 0
        for user, cells in updates.items():
            cells = list(dict.fromkeys(cells))
            summary = self.processor.claim_cells(
                user, colors.get(user, DEFAULT_BATCH_COLOR), cells, CaptureMethod.CLICK
            )
            updated += len(cells)
            for cell, previous in summary.conflicts.items():
                conflicts[cell] = {"previous": previous, "new": user}
            for region_id in summary.regions_affected:
                if region_id not in regions_affected:
                    regions_affected.append(region_id)

        logger.info(f"Batch update: {updated} cells for {len(updates)} users")
        return {
            "updated": updated,
            "users": len(updates),
            "regionsAffected": regions_affected,
            "conflicts": conflicts,
        }

    # --- queries --------------------------------------------------------------

    def get_viewport(self, bbox, resolution=None):
        """Stored territories of the regions probed for bbox."""
        if resolution is not None:
            if isinstance(resolution, bool) or not isinstance(resolution, int) \
                    or not self.settings.region_resolution <= resolution <= 15:
                raise InvalidInput(
                    f"resolution must be between {self.settings.region_resolution} and 15"
                )

        regions = self.region_store.get_territories_in_viewport(bbox, resolution)
        total_cells = sum(len(cells) for cells in regions.values())
        logger.info(f"Viewport: {len(regions)} regions, {total_cells} cells")
        return {
            "regions": regions,
            "regionIds": list(regions),
            "totalCells": total_cells,
        }

    def get_region(self, region_id):
        if not self.grid.is_valid_cell(region_id, self.settings.region_resolution):
            raise InvalidInput(f"Invalid region id: {region_id}")
        return self.region_store.get_region(region_id)

    def get_user_stats(self, user_id):
        return self.ledger.get_user_stats(user_id)

    def get_leaderboard(self, limit=10, offset=0):
        _check_page(limit, offset)
        return self.ledger.get_leaderboard(limit, offset)

    def get_user_paths(self, user_id, limit=50, offset=0):
        _check_page(limit, offset)
        paths = self.history.list_for_user(user_id, limit, offset)
        total = self.history.count_for_user(user_id)
        return {
            "paths": [p.to_dict() for p in paths],
            "total": total,
            "hasMore": offset + len(paths) < total,
        }

    def get_recent_paths(self, limit=50, offset=0, since=None, until=None):
        """Paths of every user, newest first, within an optional time window."""
        _check_page(limit, offset)
        if since is not None and until is not None and since > until:
            raise InvalidInput("since must not be after until")
        paths = self.history.list_recent(limit, offset, since, until)
        return {
            "paths": [p.to_dict() for p in paths],
            "hasMore": len(paths) == limit,
        }

    def get_region_ownership(self, user_id):
        """
        The user's share of each region they have captured in, computed
        from current region documents. A region counts as owned above 50%.
        """
        stats = self.ledger.get_user_stats(user_id)
        if stats is None:
            return []

        ownership = []
        for region_id in stats.active_regions:
            region = self.region_store.get_region(region_id)
            if region is None:
                continue
            cells = region.owner_cell_counts.get(user_id, 0)
            share = cells / region.cell_count if region.cell_count else 0.0
            ownership.append({
                "regionId": region_id,
                "cells": cells,
                "cellCount": region.cell_count,
                "share": round(share, 4),
                "owned": share > 0.5,
            })
        return ownership

    def get_global_stats(self):
        regions = self.region_store.all_regions()
        leaderboard = [
            {
                "userId": stats.user_id,
                "cellCount": stats.total_cells,
                "rank": rank,
            }
            for rank, stats in enumerate(self.ledger.get_leaderboard(LEADERBOARD_SIZE), start=1)
        ]
        return {
            "totalCellsCaptured": sum(r.cell_count for r in regions),
            "totalRegionsActive": len(regions),
            "totalPlayers": self.ledger.count_users(),
            "totalPaths": self.history.count(),
            "leaderboard": leaderboard,
            "lastUpdate": now_ms(),
        }

    def ping(self):
        return self.store.ping()


_engine = None
_engine_lock = threading.Lock()


def get_engine():
    """Process-wide engine, built from the environment on first use."""
    global _engine
    with _engine_lock:
        if _engine is None:
            _engine = TerritoryEngine()
            logger.info(
                f"Territory engine ready: storage={_engine.settings.storage_backend}, "
                f"resolution={_engine.settings.game_resolution}/{_engine.settings.region_resolution}"
            )
        return _engine
