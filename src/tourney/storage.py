"""
In-process record store with per-id file locks and YAML snapshots.

Tables hold live model objects keyed by id. Mutual exclusion is provided by
FileLock objects scoped to an id ("tournament", "bracket", "dispute"), so a
read-check-write sequence guarded by store.lock() is atomic across threads
(and processes sharing the lock directory). When the store has a data
directory, commit() persists the whole store as a YAML snapshot.
"""
import os
import logging
import tempfile
import threading
from contextlib import contextmanager
from typing import Callable, Dict, List, Optional

import yaml
from filelock import FileLock, Timeout

from .config import default_data_dir
from .errors import ConflictError, NotFoundError
from .models import (
    ArbitrationVote, Bracket, Dispute, Match, MatchResult, Participant, Tournament,
)

logger = logging.getLogger(__name__)

SNAPSHOT_FILE = 'store.yaml'

TABLES = {
    'tournaments': Tournament,
    'participants': Participant,
    'brackets': Bracket,
    'matches': Match,
    'results': MatchResult,
    'disputes': Dispute,
    'votes': ArbitrationVote,
}

_LABELS = {
    'tournaments': 'Tournament',
    'participants': 'Participant',
    'brackets': 'Bracket',
    'matches': 'Match',
    'results': 'Match result',
    'disputes': 'Dispute',
    'votes': 'Arbitration vote',
}


class Store:
    def __init__(self, data_dir: Optional[str] = None, lock_dir: Optional[str] = None,
                 lock_timeout: float = 10):
        self.data_dir = data_dir
        if lock_dir is None:
            if data_dir:
                lock_dir = os.path.join(data_dir, 'locks')
            else:
                lock_dir = tempfile.mkdtemp(prefix='tourney-locks-')
        os.makedirs(lock_dir, exist_ok=True)
        self.lock_dir = lock_dir
        self.lock_timeout = lock_timeout
        self._tables: Dict[str, Dict] = {name: {} for name in TABLES}
        self._tables_guard = threading.RLock()
        self._locks: Dict[str, FileLock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def open(cls, data_dir: Optional[str] = None, lock_timeout: float = 10) -> 'Store':
        """Open a store backed by data_dir (default $TOURNEY_DATA_DIR), loading any snapshot."""
        data_dir = data_dir or default_data_dir()
        if data_dir:
            os.makedirs(data_dir, exist_ok=True)
        store = cls(data_dir=data_dir, lock_timeout=lock_timeout)
        if data_dir:
            store.load(os.path.join(data_dir, SNAPSHOT_FILE))
        return store

    # ===== records =====

    def add(self, table: str, record):
        with self._tables_guard:
            self._tables[table][record.id] = record
        return record

    def get(self, table: str, record_id: str):
        record = self._tables[table].get(record_id)
        if record is None:
            raise NotFoundError(f"{_LABELS[table]} {record_id} not found")
        return record

    def maybe_get(self, table: str, record_id: Optional[str]):
        if record_id is None:
            return None
        return self._tables[table].get(record_id)

    def find(self, table: str, predicate: Optional[Callable] = None, **attrs) -> List:
        """Return records in insertion order matching every attr and the predicate."""
        with self._tables_guard:
            records = list(self._tables[table].values())
        matches = []
        for record in records:
            if any(getattr(record, key) != value for key, value in attrs.items()):
                continue
            if predicate is not None and not predicate(record):
                continue
            matches.append(record)
        return matches

    def remove(self, table: str, record_id: str):
        with self._tables_guard:
            if self._tables[table].pop(record_id, None) is None:
                raise NotFoundError(f"{_LABELS[table]} {record_id} not found")

    # ===== locking =====

    def _file_lock(self, scope: str, key: str) -> FileLock:
        path = os.path.join(self.lock_dir, f'{scope}-{key}.lock')
        # One FileLock per path keeps acquisition re-entrant within a thread
        with self._locks_guard:
            file_lock = self._locks.get(path)
            if file_lock is None:
                file_lock = FileLock(path, timeout=self.lock_timeout)
                self._locks[path] = file_lock
        return file_lock

    @contextmanager
    def lock(self, scope: str, key: str):
        """Hold the lock for (scope, key); a timeout surfaces as ConflictError."""
        file_lock = self._file_lock(scope, key)
        try:
            file_lock.acquire()
        except Timeout as e:
            raise ConflictError(f"Timed out waiting for {scope} lock on {key}") from e
        try:
            yield
        finally:
            file_lock.release()

    # ===== persistence =====

    def snapshot(self) -> Dict:
        with self._tables_guard:
            return {
                name: [record.to_dict() for record in table.values()]
                for name, table in self._tables.items()
            }

    def commit(self):
        """Persist a snapshot if the store is file-backed."""
        if self.data_dir:
            self.save(os.path.join(self.data_dir, SNAPSHOT_FILE))

    def save(self, path: str):
        """Save all tables to a YAML file."""
        data = self.snapshot()
        directory = os.path.dirname(path) or '.'
        os.makedirs(directory, exist_ok=True)
        with self._file_lock('snapshot', 'store'):
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix='.tmp')
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                yaml.dump(data, f, default_flow_style=False)
            os.replace(tmp_path, path)

    def load(self, path: str):
        """Load tables from a YAML snapshot, replacing current contents."""
        if not os.path.exists(path):
            return
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
        with self._tables_guard:
            for name, model in TABLES.items():
                records = [model.from_dict(row) for row in data.get(name, [])]
                self._tables[name] = {record.id: record for record in records}
        logger.info(f'Loaded store snapshot from {path}')
