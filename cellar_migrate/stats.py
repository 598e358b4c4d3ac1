"""Thread-safe collection of per-object outcomes for one bucket."""

import threading
import time
from typing import List

from .errors import BucketMigrationError
from .models import BucketMigrationStats, ObjectDescriptor, ObjectError


class StatsAggregator:
    """Accumulates what the sync workers did to one bucket.

    Workers call ``record_*`` concurrently; ``finalize`` is called once they
    have all returned.
    """

    def __init__(self, bucket: str, destination_bucket: str, dry_run: bool):
        self.bucket = bucket
        self.destination_bucket = destination_bucket
        self.dry_run = dry_run
        self._lock = threading.Lock()
        self._synchronization_size = 0
        self._objects: List[ObjectDescriptor] = []
        self._objects_deleted: List[ObjectDescriptor] = []
        self._unverified: List[ObjectDescriptor] = []
        self._errors: List[ObjectError] = []
        self._start = time.monotonic()

    def record_synced(self, obj: ObjectDescriptor) -> None:
        with self._lock:
            self._objects.append(obj)
            self._synchronization_size += obj.size

    def record_deleted(self, obj: ObjectDescriptor) -> None:
        with self._lock:
            self._objects_deleted.append(obj)

    def record_unverified(self, obj: ObjectDescriptor) -> None:
        with self._lock:
            self._unverified.append(obj)

    def record_error(self, key: str, operation: str, error: Exception) -> None:
        with self._lock:
            self._errors.append(ObjectError(key=key, operation=operation, detail=str(error)))

    @property
    def error_count(self) -> int:
        with self._lock:
            return len(self._errors)

    def snapshot(self) -> BucketMigrationStats:
        with self._lock:
            return BucketMigrationStats(
                bucket=self.bucket,
                destination_bucket=self.destination_bucket,
                dry_run=self.dry_run,
                synchronization_size=self._synchronization_size,
                objects=tuple(sorted(self._objects, key=lambda o: o.key)),
                objects_deleted=tuple(sorted(self._objects_deleted, key=lambda o: o.key)),
                unverified=tuple(self._unverified),
                errors=tuple(self._errors),
                duration=time.monotonic() - self._start,
            )

    def finalize(self) -> BucketMigrationStats:
        """Return the final stats.

        Raises:
            BucketMigrationError: at least one object failed. The stats are
                attached to the error.
        """
        stats = self.snapshot()
        if stats.errors:
            raise BucketMigrationError(stats)
        return stats
