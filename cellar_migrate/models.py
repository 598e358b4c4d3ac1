"""Value objects shared by the migration engine and the storage backends."""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple


class BucketCreation(enum.Enum):
    """State of a destination bucket after provisioning."""

    CREATED = "created"
    ALREADY_EXISTS = "already_exists"
    MISSING = "missing"


@dataclass(frozen=True)
class ObjectDescriptor:
    """One listed object. Immutable once produced by a listing."""

    key: str
    size: int
    etag: Optional[str] = None
    last_modified: Optional[datetime] = None


@dataclass(frozen=True)
class ObjectPage:
    """A single page of a bucket listing."""

    objects: List[ObjectDescriptor] = field(default_factory=list)
    next_token: Optional[str] = None


@dataclass(frozen=True)
class MultipartUpload:
    """Handle for an open multipart session on the destination."""

    bucket: str
    key: str
    upload_id: str


@dataclass(frozen=True)
class CompletedPart:
    part_number: int
    etag: str


@dataclass(frozen=True)
class BucketMigrationConfiguration:  # pylint: disable=too-many-instance-attributes
    """Everything needed to migrate one bucket.

    ``destination_bucket`` is the final name, with any prefix already applied.
    """

    source_bucket: str
    source_access_key: str
    source_secret_key: str
    source_endpoint: str
    destination_bucket: str
    destination_access_key: str
    destination_secret_key: str
    destination_endpoint: str
    sync_threads: int = 1
    chunk_size: int = 100 * 1024 * 1024
    max_keys: int = 1000
    delete_destination_files: bool = False
    dry_run: bool = True

    def __repr__(self) -> str:
        return (
            f"BucketMigrationConfiguration(source_bucket={self.source_bucket!r}, "
            f"source_endpoint={self.source_endpoint!r}, "
            f"destination_bucket={self.destination_bucket!r}, "
            f"destination_endpoint={self.destination_endpoint!r}, "
            f"sync_threads={self.sync_threads}, chunk_size={self.chunk_size}, "
            f"max_keys={self.max_keys}, "
            f"delete_destination_files={self.delete_destination_files}, "
            f"dry_run={self.dry_run})"
        )


@dataclass(frozen=True)
class MigrationPlan:
    """What has to happen to make the destination match the source.

    ``unverified`` holds objects left out of ``to_sync`` on a size match alone,
    because their checksums could not be compared.
    """

    to_sync: List[ObjectDescriptor] = field(default_factory=list)
    to_delete: List[ObjectDescriptor] = field(default_factory=list)
    unverified: List[ObjectDescriptor] = field(default_factory=list)

    @property
    def sync_size(self) -> int:
        return sum(obj.size for obj in self.to_sync)

    @property
    def delete_size(self) -> int:
        return sum(obj.size for obj in self.to_delete)

    def is_empty(self) -> bool:
        return not self.to_sync and not self.to_delete


@dataclass(frozen=True)
class ObjectError:
    """A failure of a single object operation."""

    key: str
    operation: str
    detail: str

    def __str__(self) -> str:
        return f"Failed to {self.operation} {self.key}: {self.detail}"


@dataclass(frozen=True)
class BucketMigrationStats:
    """Final, read-only statistics for one bucket migration."""

    bucket: str
    destination_bucket: str
    dry_run: bool
    synchronization_size: int = 0
    objects: Tuple[ObjectDescriptor, ...] = ()
    objects_deleted: Tuple[ObjectDescriptor, ...] = ()
    unverified: Tuple[ObjectDescriptor, ...] = ()
    errors: Tuple[ObjectError, ...] = ()
    duration: float = 0.0

    @property
    def deleted_size(self) -> int:
        return sum(obj.size for obj in self.objects_deleted)


@dataclass
class BucketOutcome:
    """Terminal result of one bucket: stats, an error, or both."""

    bucket: str
    destination_bucket: str
    stats: Optional[BucketMigrationStats] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None
