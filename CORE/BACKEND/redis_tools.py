import json
import logging
from contextlib import contextmanager

from redis.exceptions import RedisError, WatchError

from CORE.redis_client import get_redis_client
from .document_store import DocumentStore
from .errors import StorageConflict, StorageUnavailable

logger = logging.getLogger(__name__)

# Key Constants
KEY_REGION = "region:{}"
KEY_USER_STATS = "user:{}:stats"
KEY_PATH = "path:{}"

# Sorted-set indexes
KEY_REGIONS_INDEX = "regions:index"        # region id -> lastUpdate
KEY_LEADERBOARD = "users:leaderboard"      # user id -> totalCells
KEY_PATHS_INDEX = "paths:index"            # path id -> timestamp
KEY_USER_PATHS = "paths:user:{}"           # path id -> timestamp

# Pub/sub channels
CHANNEL_REGION = "region:{}"
CHANNEL_LEADERBOARD = "leaderboard"


@contextmanager
def _redis_call(action):
    """Translate connection-level redis failures into StorageUnavailable."""
    try:
        yield
    except WatchError:
        raise
    except RedisError as e:
        logger.error(f"REDIS: {action} failed: {e}")
        raise StorageUnavailable(f"{action} failed") from e


class RedisDocumentStore(DocumentStore):
    """
    JSON documents in plain string keys, indexes in sorted sets.
    update() uses WATCH/MULTI/EXEC and retries on WatchError.
    """

    def __init__(self, client=None, max_retries=3):
        self.client = client if client is not None else get_redis_client()
        self.max_retries = max(1, max_retries)

    def ping(self):
        with _redis_call("ping"):
            return bool(self.client.ping())

    def get(self, key):
        with _redis_call(f"get {key}"):
            raw = self.client.get(key)
        return json.loads(raw) if raw else None

    def get_many(self, keys):
        keys = list(keys)
        if not keys:
            return []
        with _redis_call(f"mget {len(keys)} keys"):
            values = self.client.mget(keys)
        return [json.loads(raw) if raw else None for raw in values]

    def put(self, key, doc, index_entries=()):
        with _redis_call(f"put {key}"):
            with self.client.pipeline() as pipe:
                pipe.set(key, json.dumps(doc))
                for index, member, score in index_entries:
                    pipe.zadd(index, {member: score})
                pipe.execute()

    def update(self, key, mutate, index_entries=None):
        with _redis_call(f"update {key}"):
            with self.client.pipeline() as pipe:
                for attempt in range(1, self.max_retries + 1):
                    try:
                        pipe.watch(key)
                        raw = pipe.get(key)
                        new_doc, result = mutate(json.loads(raw) if raw else None)
                        if new_doc is None:
                            pipe.unwatch()
                            return result

                        pipe.multi()
                        pipe.set(key, json.dumps(new_doc))
                        if index_entries:
                            for index, member, score in index_entries(new_doc):
                                pipe.zadd(index, {member: score})
                        pipe.execute()
                        return result
                    except WatchError:
                        logger.warning(
                            f"REDIS: {key} modified concurrently "
                            f"(attempt {attempt}/{self.max_retries})"
                        )

        logger.error(f"REDIS: giving up on {key} after {self.max_retries} attempts")
        raise StorageConflict(key, self.max_retries)

    def index_range(self, index, offset=0, limit=10):
        if limit <= 0:
            return []
        with _redis_call(f"zrevrange {index}"):
            return list(self.client.zrevrange(index, offset, offset + limit - 1))

    def index_range_by_score(self, index, min_score, max_score, offset=0, limit=10):
        if limit <= 0:
            return []
        with _redis_call(f"zrevrangebyscore {index}"):
            return list(self.client.zrevrangebyscore(index, max_score, min_score, start=offset, num=limit))

    def index_members(self, index):
        with _redis_call(f"zrange {index}"):
            return list(self.client.zrange(index, 0, -1))

    def index_size(self, index):
        with _redis_call(f"zcard {index}"):
            return int(self.client.zcard(index))
