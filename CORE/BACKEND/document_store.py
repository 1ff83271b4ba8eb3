"""
Document store contract used by the region store, the user stats ledger
and the path history.

Documents are JSON-serializable dicts addressed by string keys. Sorted
indexes map members to numeric scores and are read highest score first.

`update(key, mutate)` is the single-writer-per-key operation: the mutation
sees the current document and its result is written as one unit, so two
concurrent updates of the same key never lose each other's changes.
Different keys are independent.
"""
import json
import logging
import threading

logger = logging.getLogger(__name__)


class DocumentStore:
    """Interface. See RedisDocumentStore and MemoryDocumentStore."""

    def ping(self):
        raise NotImplementedError

    def get(self, key):
        """Return the document stored at key, or None."""
        raise NotImplementedError

    def get_many(self, keys):
        """Return documents for keys in order, None where missing."""
        raise NotImplementedError

    def put(self, key, doc, index_entries=()):
        """Write doc unconditionally and add (index, member, score) entries.
        Only for write-once keys; use update for anything written twice.
        """
        raise NotImplementedError

    def update(self, key, mutate, index_entries=None):
        """
        Atomically read-modify-write one document.

        Args:
            key: document key
            mutate: fn(doc or None) -> (new_doc, result). May be called more
                than once when a backend retries; it must not have side
                effects outside its return value.
                Returning new_doc None leaves the key untouched.
            index_entries: optional fn(new_doc) -> [(index, member, score)]
                written together with the document.

        Returns:
            The `result` returned by the mutation that was committed.
        """
        raise NotImplementedError

    def index_range(self, index, offset=0, limit=10):
        """Members of index ordered by score descending."""
        raise NotImplementedError

    def index_range_by_score(self, index, min_score, max_score, offset=0, limit=10):
        """Members with min_score <= score <= max_score, highest first."""
        raise NotImplementedError

    def index_members(self, index):
        raise NotImplementedError

    def index_size(self, index):
        raise NotImplementedError


class MemoryDocumentStore(DocumentStore):
    """
    In-process store. One lock per key serializes updates; documents are
    kept as JSON strings so callers never share mutable state with the store.
    """

    def __init__(self):
        self._docs = {}
        self._indexes = {}
        self._locks = {}
        self._guard = threading.Lock()
        self._index_lock = threading.Lock()

    def _lock_for(self, key):
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def _load(self, key):
        raw = self._docs.get(key)
        return json.loads(raw) if raw is not None else None

    def _add_index_entries(self, entries):
        with self._index_lock:
            for index, member, score in entries:
                self._indexes.setdefault(index, {})[member] = score

    def ping(self):
        return True

    def get(self, key):
        return self._load(key)

    def get_many(self, keys):
        return [self._load(key) for key in keys]

    def put(self, key, doc, index_entries=()):
        # put is only used for write-once keys, so no per-key lock
        raw = json.dumps(doc)
        with self._guard:
            self._docs[key] = raw
            self._add_index_entries(index_entries)

    def update(self, key, mutate, index_entries=None):
        with self._lock_for(key):
            new_doc, result = mutate(self._load(key))
            if new_doc is None:
                return result
            self._docs[key] = json.dumps(new_doc)
            if index_entries:
                self._add_index_entries(index_entries(new_doc))
        return result

    def index_range(self, index, offset=0, limit=10):
        with self._index_lock:
            scores = dict(self._indexes.get(index, {}))
        # Same tie order as ZREVRANGE: score desc, then member desc
        ordered = sorted(scores.items(), key=lambda item: (item[1], item[0]), reverse=True)
        return [member for member, _ in ordered[offset:offset + limit]]

    def index_members(self, index):
        with self._index_lock:
            return list(self._indexes.get(index, {}))

    def index_size(self, index):
        with self._index_lock:
            return len(self._indexes.get(index, {}))

    def index_range_by_score(self, index, min_score, max_score, offset=0, limit=10):
        with self._index_lock:
            scores = {
                member: score
                for member, score in self._indexes.get(index, {}).items()
                if min_score <= score <= max_score
            }
        ordered = sorted(scores.items(), key=lambda item: (item[1], item[0]), reverse=True)
        return [member for member, _ in ordered[offset:offset + limit]]
