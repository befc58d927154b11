"""
JsonStateStore - Persists the batch state and cumulative stats in a JSON file.
"""

import json
import logging
import os
import tempfile
import threading
from typing import Optional

from retrying import retry

from .batch_state import AggregateStats, BatchState
from .exceptions import StateStoreError


def _is_os_error(exc: Exception) -> bool:
    return isinstance(exc, OSError)


class JsonStateStore:
    """
    Single global record of batch progress plus cumulative stats.

    The file is rewritten atomically on every change so a crash mid-write
    leaves the previous state in place. A missing file reads as an idle
    state with zero stats.
    """

    STATE_KEY = 'batch_state'
    STATS_KEY = 'stats'

    def __init__(self, filepath: str, logger: Optional[logging.Logger] = None):
        """
        Initialize the store.

        Args:
            filepath: Path of the JSON state file
            logger: Optional logger instance
        """
        self.filepath = filepath
        self.logger = logger or logging.getLogger(__name__)
        self._lock = threading.RLock()

    def load_state(self) -> BatchState:
        with self._lock:
            return BatchState.from_dict(self._read().get(self.STATE_KEY, {}))

    def save_state(self, state: BatchState) -> None:
        with self._lock:
            data = self._read()
            data[self.STATE_KEY] = state.to_dict()
            self._write(data)

    def load_stats(self) -> AggregateStats:
        with self._lock:
            return AggregateStats.from_dict(self._read().get(self.STATS_KEY, {}))

    def add_stats(self, bytes_saved: int = 0, images: int = 0) -> AggregateStats:
        """Add chunk totals to the cumulative stats and persist them."""
        with self._lock:
            data = self._read()
            stats = AggregateStats.from_dict(data.get(self.STATS_KEY, {}))
            updated = stats.accumulate(bytes_saved=bytes_saved, images=images)
            if updated != stats:
                data[self.STATS_KEY] = updated.to_dict()
                self._write(data)
            return updated

    def reset(self) -> None:
        """Forget the batch state and the cumulative stats."""
        with self._lock:
            try:
                os.remove(self.filepath)
                self.logger.info(f"Removed state file: {self.filepath}")
            except FileNotFoundError:
                pass

    def _read(self) -> dict:
        try:
            with open(self.filepath, 'r') as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            raise StateStoreError(f"Cannot read state file {self.filepath}: {e}")
        if not isinstance(data, dict):
            raise StateStoreError(f"State file {self.filepath} does not hold an object")
        return data

    @retry(retry_on_exception=_is_os_error, stop_max_attempt_number=3, wait_exponential_multiplier=100)
    def _write(self, data: dict) -> None:
        directory = os.path.dirname(os.path.abspath(self.filepath))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix='.state-', suffix='.json', dir=directory)
        try:
            with os.fdopen(fd, 'w') as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.filepath)
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
