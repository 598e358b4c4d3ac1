"""Hooks the migration engine calls for significant events.

The engine never touches a logger directly: it reports to an observer, and
the CLI plugs in :class:`LoggingObserver`. :class:`NullObserver` keeps the
engine usable without any logging set up.
"""

import logging
from typing import Optional

from .models import (
    BucketCreation,
    BucketMigrationConfiguration,
    MigrationPlan,
    MultipartUpload,
    ObjectDescriptor,
)
from .report import format_bytes


class MigrationObserver:
    """Base observer: every hook is a no-op."""

    def bucket_started(self, config: BucketMigrationConfiguration) -> None:
        pass

    def bucket_provisioned(
        self, config: BucketMigrationConfiguration, state: BucketCreation
    ) -> None:
        pass

    def plan_computed(
        self, config: BucketMigrationConfiguration, plan: MigrationPlan
    ) -> None:
        pass

    def object_unverified(
        self, config: BucketMigrationConfiguration, obj: ObjectDescriptor
    ) -> None:
        pass

    def object_synced(
        self, config: BucketMigrationConfiguration, obj: ObjectDescriptor, multipart: bool
    ) -> None:
        pass

    def object_deleted(
        self, config: BucketMigrationConfiguration, obj: ObjectDescriptor
    ) -> None:
        pass

    def object_failed(
        self,
        config: BucketMigrationConfiguration,
        key: str,
        operation: str,
        error: Exception,
    ) -> None:
        pass

    def multipart_abort_failed(
        self,
        config: BucketMigrationConfiguration,
        upload: MultipartUpload,
        error: Exception,
    ) -> None:
        pass

    def progress(
        self, config: BucketMigrationConfiguration, completed: int, total: int, failed: int
    ) -> None:
        pass

    def bucket_finished(
        self,
        config: BucketMigrationConfiguration,
        error: Optional[Exception] = None,
    ) -> None:
        pass


NullObserver = MigrationObserver


def bucket_prefix(config: BucketMigrationConfiguration) -> str:
    """Log line prefix, e.g. ``DRY-RUN | Bucket photos |``."""
    prefix = f"Bucket {config.source_bucket} |"
    if config.dry_run:
        return f"DRY-RUN | {prefix}"
    return prefix


class LoggingObserver(MigrationObserver):
    """Turns engine events into log records."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("cellar_migrate")

    def bucket_started(self, config):
        if config.dry_run:
            self.logger.info(
                "%s Starting listing of files that need to be synchronized",
                bucket_prefix(config),
            )
        else:
            self.logger.info("%s Starting migration of bucket", bucket_prefix(config))
        self.logger.debug(
            "%s Synchronizing with destination bucket %s",
            bucket_prefix(config),
            config.destination_bucket,
        )
        self.logger.debug("%s %r", bucket_prefix(config), config)

    def bucket_provisioned(self, config, state):
        if state is BucketCreation.ALREADY_EXISTS:
            self.logger.debug(
                "%s Destination bucket %s already exists",
                bucket_prefix(config),
                config.destination_bucket,
            )
        elif state is BucketCreation.CREATED:
            self.logger.info(
                "%s ✓ Created destination bucket %s",
                bucket_prefix(config),
                config.destination_bucket,
            )
        else:
            self.logger.info(
                "%s Destination bucket %s would be created",
                bucket_prefix(config),
                config.destination_bucket,
            )

    def plan_computed(self, config, plan):
        self.logger.info(
            "%s %d object(s) to sync (%s), %d to delete (%s)",
            bucket_prefix(config),
            len(plan.to_sync),
            format_bytes(plan.sync_size),
            len(plan.to_delete),
            format_bytes(plan.delete_size),
        )
        if plan.unverified:
            self.logger.warning(
                "%s %d object(s) skipped on size alone, checksums not comparable",
                bucket_prefix(config),
                len(plan.unverified),
            )

    def object_unverified(self, config, obj):
        self.logger.debug(
            "%s Unverified (size match only): %s [%s] etag=%s",
            bucket_prefix(config),
            obj.key,
            format_bytes(obj.size),
            obj.etag,
        )

    def object_synced(self, config, obj, multipart):
        verb = "Would sync" if config.dry_run else "✓ Synced"
        suffix = " (multipart)" if multipart else ""
        self.logger.debug(
            "%s %s %s [%s]%s",
            bucket_prefix(config),
            verb,
            obj.key,
            format_bytes(obj.size),
            suffix,
        )

    def object_deleted(self, config, obj):
        verb = "Would delete" if config.dry_run else "✓ Deleted"
        self.logger.debug("%s %s %s", bucket_prefix(config), verb, obj.key)

    def object_failed(self, config, key, operation, error):
        self.logger.error(
            "%s ✗ Failed to %s %s: %s", bucket_prefix(config), operation, key, error
        )

    def multipart_abort_failed(self, config, upload, error):
        self.logger.warning(
            "%s Could not abort multipart upload %s of %s, it may linger: %s",
            bucket_prefix(config),
            upload.upload_id,
            upload.key,
            error,
        )

    def progress(self, config, completed, total, failed):
        self.logger.debug(
            "%s Progress: %d/%d (%.0f%%) - %d ok, %d failed",
            bucket_prefix(config),
            completed,
            total,
            completed / total * 100,
            completed - failed,
            failed,
        )

    def bucket_finished(self, config, error=None):
        if error is not None:
            self.logger.error(
                "%s Migration finished with errors: %s", bucket_prefix(config), error
            )
        elif not config.dry_run:
            self.logger.info("%s Bucket has been synchronized", bucket_prefix(config))
