"""Human-readable summary of a migration run."""

import logging
from typing import List, Optional, Sequence

from .errors import BucketMigrationError
from .models import BucketMigrationStats, BucketOutcome

logger = logging.getLogger(__name__)


def format_bytes(num_bytes: int) -> str:
    """Convert bytes to human-readable format."""
    value = float(num_bytes)
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if value < 1024.0:
            return f"{value:.1f}{unit}"
        value /= 1024.0
    return f"{value:.1f}PB"


def format_duration(seconds: float) -> str:
    """Convert seconds to readable duration."""
    if seconds < 60:
        return f"{seconds:.0f}s"
    if seconds < 3600:
        return f"{seconds/60:.1f}m"
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    return f"{hours}h {minutes}m"


def throughput(num_bytes: int, seconds: float) -> float:
    """Bytes per second, 0 when nothing was timed."""
    if seconds <= 0:
        return 0.0
    return num_bytes / seconds


def outcome_stats(outcome: BucketOutcome) -> Optional[BucketMigrationStats]:
    """Stats of a bucket, including the partial ones attached to an error."""
    if outcome.stats is not None:
        return outcome.stats
    if isinstance(outcome.error, BucketMigrationError):
        return outcome.error.stats
    return None


def collect_stats(outcomes: Sequence[BucketOutcome]) -> List[BucketMigrationStats]:
    return [stats for stats in map(outcome_stats, outcomes) if stats is not None]


class RunReport:
    """Logs the final summary of a run across all its buckets."""

    def __init__(
        self,
        outcomes: Sequence[BucketOutcome],
        duration: float,
        dry_run: bool,
        delete: bool,
        log: Optional[logging.Logger] = None,
    ):
        self.outcomes = list(outcomes)
        self.duration = duration
        self.dry_run = dry_run
        self.delete = delete
        self.log = log or logger
        self.stats = collect_stats(self.outcomes)

    @property
    def synchronization_size(self) -> int:
        return sum(stats.synchronization_size for stats in self.stats)

    @property
    def failed_buckets(self) -> List[BucketOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    def object_lines(self, deleted: bool = False) -> List[str]:
        lines = []
        for stats in self.stats:
            objects = stats.objects_deleted if deleted else stats.objects
            for obj in objects:
                lines.append(f"{stats.bucket}/{obj.key} - {format_bytes(obj.size)}")
        return lines

    def log_plan(self) -> None:
        """Dry-run listing of what would change."""
        to_sync = self.object_lines()
        self.log.info("Those objects need to be synced:")
        for line in to_sync:
            self.log.info("  - %s", line)
        self.log.info(
            "Total files to sync: %d for a total of %s",
            len(to_sync),
            format_bytes(self.synchronization_size),
        )

        if self.delete:
            to_delete = self.object_lines(deleted=True)
            self.log.info(
                "Those objects will be deleted on the destination bucket "
                "because they are not on the source bucket:"
            )
            for line in to_delete:
                self.log.info("  - %s", line)
            self.log.info(
                "Total files to delete: %d for a total of %s",
                len(to_delete),
                format_bytes(sum(stats.deleted_size for stats in self.stats)),
            )

    def log_transferred(self) -> None:
        """Execute-mode listing of what was actually changed."""
        synced = self.object_lines()
        deleted = self.object_lines(deleted=True)
        self.log.info("Buckets:  %d", len(self.outcomes))
        if synced:
            self.log.info("Objects synced:")
            for line in synced:
                self.log.info("  - %s", line)
        if deleted:
            self.log.info("Objects deleted:")
            for line in deleted:
                self.log.info("  - %s", line)
        self.log.info("Objects:")
        self.log.info("  - Synced:    %d", len(synced))
        self.log.info("  - Deleted:   %d", len(deleted))

    def log_unverified(self) -> None:
        unverified = sum(len(stats.unverified) for stats in self.stats)
        if not unverified:
            return
        self.log.warning(
            "⚠ %d object(s) were considered in sync on size alone because "
            "their checksums are not comparable across clusters",
            unverified,
        )
        for stats in self.stats:
            for obj in stats.unverified:
                self.log.debug("  - %s/%s (etag %s)", stats.bucket, obj.key, obj.etag)

    def log_errors(self) -> None:
        for outcome in self.failed_buckets:
            if isinstance(outcome.error, BucketMigrationError):
                for error in outcome.error.errors:
                    self.log.error("Bucket %s | %s", outcome.bucket, error)
            else:
                self.log.error(
                    "Bucket %s | Error during synchronization: %s",
                    outcome.bucket,
                    outcome.error,
                )

    def log_summary(self) -> None:
        """Generate and log final summary report."""
        self.log.info("")
        self.log.info("=" * 70)
        self.log.info("FINAL SUMMARY%s", " (DRY-RUN)" if self.dry_run else "")
        self.log.info("=" * 70)

        if self.dry_run:
            self.log_plan()
        else:
            self.log_transferred()

        self.log_unverified()
        self.log_errors()

        size = self.synchronization_size
        self.log.info(
            "Sync took %s for %s (%s/s)",
            format_duration(self.duration),
            format_bytes(size),
            format_bytes(int(throughput(size, self.duration))),
        )

        self.log.info("")
        if self.failed_buckets:
            self.log.warning(
                "⚠ %d bucket(s) finished with errors", len(self.failed_buckets)
            )
            self.log.info("Status: COMPLETED WITH ERRORS")
        else:
            self.log.info("✓ Status: COMPLETED SUCCESSFULLY")
        self.log.info("=" * 70)
