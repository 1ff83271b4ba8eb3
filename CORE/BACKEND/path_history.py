"""
Append-only history of processed paths, queryable by user and by time.
"""
import logging

from .models import PathHistory, now_ms
from .redis_tools import KEY_PATH, KEY_PATHS_INDEX, KEY_USER_PATHS
from .uid_utils import path_uid

logger = logging.getLogger(__name__)


class PathHistoryStore:
    def __init__(self, store):
        self.store = store

    def record(self, user, coordinates, result, timestamp=None):
        """Persist one immutable record and stamp its id onto result."""
        path_id = path_uid()
        timestamp = timestamp if timestamp is not None else now_ms()
        result.path_id = path_id

        entry = PathHistory(
            id=path_id,
            user=user,
            coordinates=list(coordinates),
            result=result,
            timestamp=timestamp,
        )
        self.store.put(
            KEY_PATH.format(path_id),
            entry.to_dict(),
            index_entries=[
                (KEY_PATHS_INDEX, path_id, timestamp),
                (KEY_USER_PATHS.format(user), path_id, timestamp),
            ],
        )
        logger.info(f"Saved path {path_id} for {user}")
        return entry

    def get(self, path_id):
        doc = self.store.get(KEY_PATH.format(path_id))
        return PathHistory.from_dict(doc) if doc else None

    def list_for_user(self, user, limit=50, offset=0):
        """Newest first."""
        path_ids = self.store.index_range(KEY_USER_PATHS.format(user), offset, limit)
        docs = self.store.get_many([KEY_PATH.format(p) for p in path_ids])
        return [PathHistory.from_dict(doc) for doc in docs if doc]

    def list_recent(self, limit=50, offset=0, since=None, until=None):
        """
        All users' paths, newest first, optionally limited to
        since <= timestamp <= until (epoch ms).
        """
        if since is None and until is None:
            path_ids = self.store.index_range(KEY_PATHS_INDEX, offset, limit)
        else:
            path_ids = self.store.index_range_by_score(
                KEY_PATHS_INDEX,
                since if since is not None else 0,
                until if until is not None else now_ms(),
                offset,
                limit,
            )
        docs = self.store.get_many([KEY_PATH.format(p) for p in path_ids])
        return [PathHistory.from_dict(doc) for doc in docs if doc]

    def count_for_user(self, user):
        return self.store.index_size(KEY_USER_PATHS.format(user))

    def count(self):
        return self.store.index_size(KEY_PATHS_INDEX)
