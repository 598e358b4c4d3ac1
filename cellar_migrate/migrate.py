"""Bucket migration: provision, diff, sync, and collect the outcome."""

from typing import Callable, List, Optional

from .config import MEGABYTE
from .diff import diff_buckets
from .errors import MigrationError
from .models import (
    BucketCreation,
    BucketMigrationConfiguration,
    BucketMigrationStats,
    BucketOutcome,
)
from .observer import MigrationObserver, NullObserver
from .provision import ensure_destination_bucket
from .radosgw import RadosGWClient
from .riakcs import RiakCSClient
from .stats import StatsAggregator
from .store import ObjectStoreClient
from .sync import SyncExecutor


def migrate_bucket(
    config: BucketMigrationConfiguration,
    source: ObjectStoreClient,
    destination: ObjectStoreClient,
    observer: Optional[MigrationObserver] = None,
) -> BucketMigrationStats:
    """Make the destination bucket match the source bucket.

    Raises:
        ProvisioningError: the destination bucket could not be created.
        ListingError: either side could not be listed completely.
        BucketMigrationError: some objects failed; carries the stats.
    """
    observer = observer or NullObserver()
    observer.bucket_started(config)
    aggregator = StatsAggregator(
        config.source_bucket, config.destination_bucket, config.dry_run
    )

    try:
        state = ensure_destination_bucket(
            destination, config.destination_bucket, config.dry_run
        )
        observer.bucket_provisioned(config, state)

        plan = diff_buckets(
            source,
            config.source_bucket,
            destination,
            config.destination_bucket,
            max_keys=config.max_keys,
            delete=config.delete_destination_files,
            destination_empty=state is not BucketCreation.ALREADY_EXISTS,
        )
        observer.plan_computed(config, plan)
        for obj in plan.unverified:
            aggregator.record_unverified(obj)
            observer.object_unverified(config, obj)

        SyncExecutor(source, destination, config, aggregator, observer).run(plan)
        stats = aggregator.finalize()
    except MigrationError as err:
        observer.bucket_finished(config, err)
        raise

    observer.bucket_finished(config)
    return stats


class Migration:
    """A run over one or every bucket of the source account.

    Buckets are migrated one after the other; a bucket that fails never
    stops the next one.
    """

    def __init__(
        self,
        config: dict,
        source: ObjectStoreClient,
        destination: ObjectStoreClient,
        observer: Optional[MigrationObserver] = None,
    ):
        self.config = config
        self.source = source
        self.destination = destination
        self.observer = observer or NullObserver()

        sync = config["sync"]
        self.source_bucket: Optional[str] = sync.get("source_bucket")
        self.destination_bucket: Optional[str] = sync.get("destination_bucket")
        prefix = sync.get("destination_bucket_prefix")
        self.destination_bucket_prefix = f"{prefix}-" if prefix else ""
        self.exclude_buckets = set(sync.get("exclude_buckets") or [])
        self.delete = bool(sync.get("delete_extraneous"))
        self.dry_run = not sync.get("execute")

    @classmethod
    def from_config(
        cls,
        config: dict,
        observer: Optional[MigrationObserver] = None,
        client_factory: Optional[Callable[..., object]] = None,
    ) -> "Migration":
        """Build the Riak CS source and RadosGW destination clients from config."""
        pool = int(config["performance"].get("max_pool_connections", 50))
        source = RiakCSClient(
            config["source"]["endpoint_url"],
            config["source"]["aws_access_key_id"],
            config["source"]["aws_secret_access_key"],
            region_name=config["source"].get("region_name", "us-east-1"),
            verify_ssl=config["source"].get("verify_ssl", True),
            max_pool_connections=pool,
            client_factory=client_factory,
        )
        destination = RadosGWClient(
            config["destination"]["endpoint_url"],
            config["destination"]["aws_access_key_id"],
            config["destination"]["aws_secret_access_key"],
            region_name=config["destination"].get("region_name", "us-east-1"),
            verify_ssl=config["destination"].get("verify_ssl", True),
            max_pool_connections=pool,
            client_factory=client_factory,
        )
        return cls(config, source, destination, observer)

    def buckets_to_migrate(self) -> List[str]:
        """The requested bucket, or every source bucket not excluded.

        Raises:
            ObjectStoreError: the source buckets could not be listed.
        """
        if self.source_bucket:
            return [self.source_bucket]
        return [
            bucket
            for bucket in self.source.list_buckets()
            if bucket not in self.exclude_buckets
        ]

    def destination_name(self, bucket: str) -> str:
        name = bucket
        if self.source_bucket and self.destination_bucket:
            name = self.destination_bucket
        return f"{self.destination_bucket_prefix}{name}"

    def bucket_configuration(self, bucket: str) -> BucketMigrationConfiguration:
        perf = self.config["performance"]
        return BucketMigrationConfiguration(
            source_bucket=bucket,
            source_access_key=self.config["source"]["aws_access_key_id"],
            source_secret_key=self.config["source"]["aws_secret_access_key"],
            source_endpoint=self.source_endpoint,
            destination_bucket=self.destination_name(bucket),
            destination_access_key=self.config["destination"]["aws_access_key_id"],
            destination_secret_key=self.config["destination"]["aws_secret_access_key"],
            destination_endpoint=self.destination_endpoint,
            sync_threads=int(perf["threads"]),
            chunk_size=int(perf["multipart_chunk_size_mb"]) * MEGABYTE,
            max_keys=int(perf["max_keys"]),
            delete_destination_files=self.delete,
            dry_run=self.dry_run,
        )

    @property
    def source_endpoint(self) -> str:
        return self.config["source"]["endpoint_url"]

    @property
    def destination_endpoint(self) -> str:
        return self.config["destination"]["endpoint_url"]

    def run(self, buckets: Optional[List[str]] = None) -> List[BucketOutcome]:
        if buckets is None:
            buckets = self.buckets_to_migrate()

        outcomes = []
        for bucket in buckets:
            config = self.bucket_configuration(bucket)
            try:
                stats = migrate_bucket(config, self.source, self.destination, self.observer)
            except MigrationError as err:
                outcomes.append(
                    BucketOutcome(bucket, config.destination_bucket, error=err)
                )
            else:
                outcomes.append(
                    BucketOutcome(bucket, config.destination_bucket, stats=stats)
                )
        return outcomes
