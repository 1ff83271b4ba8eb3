"""
Per-user aggregate counters, updated after each successful capture.

Each user's stats live in one document updated through
DocumentStore.update, so concurrent captures by the same user serialize.
The leaderboard index is written in the same update as the document.
"""
import logging
from collections import Counter

from .models import UserStats, now_ms
from .redis_tools import KEY_LEADERBOARD, KEY_USER_STATS

logger = logging.getLogger(__name__)


def _leaderboard_entry(doc):
    return [(KEY_LEADERBOARD, doc["userId"], doc["totalCells"])]


class UserStatsLedger:
    def __init__(self, store):
        self.store = store

    def record_capture(self, result, now=None):
        """
        Fold a CaptureResult into the claimant's stats, then take the cells
        lost in conflicts off each previous owner's total.

        Cells the claimant already held do not count again; cells taken
        from someone else count in full.
        """
        now = now if now is not None else now_ms()
        user = result.user
        gained = len(result.claimed_cells) - result.already_owned

        def mutate(doc):
            stats = UserStats.from_dict(doc) if doc else UserStats(user_id=user)
            stats.total_cells += gained
            stats.total_captures += 1
            stats.largest_capture = max(stats.largest_capture, len(result.claimed_cells))
            stats.last_active = now
            for region_id in result.regions_affected:
                if region_id not in stats.active_regions:
                    stats.active_regions.append(region_id)
                    stats.total_regions += 1
            return stats.to_dict(), stats

        stats = self.store.update(KEY_USER_STATS.format(user), mutate, _leaderboard_entry)

        for loser, lost in Counter(result.conflicts.values()).items():
            self.record_loss(loser, lost)

        logger.info(f"Stats for {user}: +{gained} cells, total {stats.total_cells}")
        return stats

    def record_loss(self, user, cells_lost):
        """
        Take cells_lost off user's total. Users who never captured (cells
        seeded by batch_update) have no stats and get none created here.
        """
        def mutate(doc):
            if doc is None:
                return None, None
            stats = UserStats.from_dict(doc)
            stats.total_cells = max(0, stats.total_cells - cells_lost)
            return stats.to_dict(), stats

        return self.store.update(KEY_USER_STATS.format(user), mutate, _leaderboard_entry)

    def get_user_stats(self, user_id):
        doc = self.store.get(KEY_USER_STATS.format(user_id))
        return UserStats.from_dict(doc) if doc else None

    def get_leaderboard(self, limit=10, offset=0):
        """Users ordered by totalCells, highest first."""
        user_ids = self.store.index_range(KEY_LEADERBOARD, offset, limit)
        docs = self.store.get_many([KEY_USER_STATS.format(u) for u in user_ids])
        return [UserStats.from_dict(doc) for doc in docs if doc]

    def count_users(self):
        return self.store.index_size(KEY_LEADERBOARD)
