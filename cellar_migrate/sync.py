"""Execute a migration plan with a pool of worker threads."""

import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import BinaryIO, Iterator, List, Optional

from .errors import MigrationError, MultipartUploadError, ObjectChangedError
from .models import (
    BucketMigrationConfiguration,
    CompletedPart,
    MigrationPlan,
    MultipartUpload,
    ObjectDescriptor,
)
from .observer import MigrationObserver, NullObserver
from .stats import StatsAggregator
from .store import ObjectStoreClient

# S3 refuses multipart uploads with more parts than this
MAX_PARTS = 10_000

PROGRESS_EVERY = 50


class SyncCancelledError(MigrationError):
    """The executor was cancelled while an object was in flight."""


def read_chunk(stream: BinaryIO, size: int) -> bytes:
    """Read exactly ``size`` bytes, or fewer only at end of stream."""
    buffers = []
    remaining = size
    while remaining > 0:
        data = stream.read(remaining)
        if not data:
            break
        buffers.append(data)
        remaining -= len(data)
    return b"".join(buffers)


def iter_chunks(stream: BinaryIO, chunk_size: int) -> Iterator[bytes]:
    """Yield consecutive chunks of at most ``chunk_size`` bytes."""
    while True:
        chunk = read_chunk(stream, chunk_size)
        if not chunk:
            return
        yield chunk


def needs_multipart(obj: ObjectDescriptor, chunk_size: int) -> bool:
    return obj.size > chunk_size


class SyncExecutor:
    """Copies ``plan.to_sync`` and prunes ``plan.to_delete`` concurrently.

    Object failures are recorded in the aggregator and never stop the other
    workers. In dry-run nothing is read or written: every planned action is
    recorded as if it had succeeded.
    """

    def __init__(
        self,
        source: ObjectStoreClient,
        destination: ObjectStoreClient,
        config: BucketMigrationConfiguration,
        aggregator: StatsAggregator,
        observer: Optional[MigrationObserver] = None,
    ):
        self.source = source
        self.destination = destination
        self.config = config
        self.aggregator = aggregator
        self.observer = observer or NullObserver()
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        """Stop scheduling work; in-flight multipart uploads get aborted."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def run(self, plan: MigrationPlan) -> None:
        to_delete = plan.to_delete if self.config.delete_destination_files else []
        total = len(plan.to_sync) + len(to_delete)
        if not total:
            return

        with ThreadPoolExecutor(max_workers=max(1, self.config.sync_threads)) as executor:
            futures: List[Future] = [
                executor.submit(self.sync_object, obj) for obj in plan.to_sync
            ]
            futures.extend(executor.submit(self.delete_object, obj) for obj in to_delete)

            try:
                completed = 0
                failed = 0
                for future in as_completed(futures):
                    completed += 1
                    if not future.result():
                        failed += 1
                    if completed % PROGRESS_EVERY == 0:
                        self.observer.progress(self.config, completed, total, failed)
            except BaseException:
                self.cancel()
                for future in futures:
                    future.cancel()
                raise

    def sync_object(self, obj: ObjectDescriptor) -> bool:
        """Copy one object. Returns False if it failed (and was recorded)."""
        multipart = needs_multipart(obj, self.config.chunk_size)
        if self.config.dry_run:
            self.aggregator.record_synced(obj)
            self.observer.object_synced(self.config, obj, multipart)
            return True

        try:
            if self.cancelled:
                raise SyncCancelledError(f"Synchronization of {obj.key} cancelled")
            body = self.source.get_object_stream(self.config.source_bucket, obj.key)
            try:
                if multipart:
                    self._multipart_upload(obj, body)
                else:
                    data = read_chunk(body, obj.size)
                    if len(data) != obj.size:
                        raise ObjectChangedError(obj.key, obj.size, len(data))
                    if body.read(1):
                        raise ObjectChangedError(obj.key, obj.size, None)
                    self.destination.put_object(
                        self.config.destination_bucket, obj.key, data, len(data)
                    )
            finally:
                body.close()
        except Exception as err:  # pylint: disable=broad-except
            self.aggregator.record_error(obj.key, "sync", err)
            self.observer.object_failed(self.config, obj.key, "sync", err)
            return False

        self.aggregator.record_synced(obj)
        self.observer.object_synced(self.config, obj, multipart)
        return True

    def _multipart_upload(self, obj: ObjectDescriptor, body: BinaryIO) -> None:
        chunk_size = self.config.chunk_size
        part_count = -(-obj.size // chunk_size)
        if part_count > MAX_PARTS:
            raise MultipartUploadError(
                obj.key,
                None,
                ValueError(
                    f"{part_count} parts needed, at most {MAX_PARTS} allowed; "
                    "increase the multipart chunk size"
                ),
            )

        upload = self.destination.initiate_multipart_upload(
            self.config.destination_bucket, obj.key
        )
        parts: List[CompletedPart] = []
        part_number: Optional[int] = None
        transferred = 0
        try:
            for part_number, data in enumerate(iter_chunks(body, chunk_size), start=1):
                if self.cancelled:
                    raise SyncCancelledError(f"Multipart upload of {obj.key} cancelled")
                transferred += len(data)
                if transferred > obj.size:
                    raise ObjectChangedError(obj.key, obj.size, None)
                etag = self.destination.upload_part(upload, part_number, data)
                parts.append(CompletedPart(part_number=part_number, etag=etag))
            part_number = None
            if transferred != obj.size:
                raise ObjectChangedError(obj.key, obj.size, transferred)
            self.destination.complete_multipart_upload(upload, parts)
        except Exception as err:
            self._abort(upload)
            raise MultipartUploadError(obj.key, part_number, err) from err

    def _abort(self, upload: MultipartUpload) -> None:
        try:
            self.destination.abort_multipart_upload(upload)
        except Exception as err:  # pylint: disable=broad-except
            # the upload failure is what gets recorded for the object
            self.observer.multipart_abort_failed(self.config, upload, err)

    def delete_object(self, obj: ObjectDescriptor) -> bool:
        """Remove one extraneous object. Returns False if it failed."""
        if not self.config.dry_run:
            try:
                if self.cancelled:
                    raise SyncCancelledError(f"Deletion of {obj.key} cancelled")
                self.destination.delete_object(self.config.destination_bucket, obj.key)
            except Exception as err:  # pylint: disable=broad-except
                self.aggregator.record_error(obj.key, "delete", err)
                self.observer.object_failed(self.config, obj.key, "delete", err)
                return False

        self.aggregator.record_deleted(obj)
        self.observer.object_deleted(self.config, obj)
        return True
