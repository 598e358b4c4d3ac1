"""Exception hierarchy for the migration tool."""

from typing import List, Optional

from .models import BucketMigrationStats, ObjectError


class MigrationError(Exception):
    """Base class for every error raised by the migration engine."""


class ConfigurationError(MigrationError):
    """Invalid options or configuration file, detected before any network call."""


class ObjectStoreError(MigrationError):
    """A storage backend rejected or failed a request."""

    def __init__(
        self,
        operation: str,
        message: str,
        bucket: Optional[str] = None,
        key: Optional[str] = None,
        code: Optional[str] = None,
    ):
        self.operation = operation
        self.message = message
        self.bucket = bucket
        self.key = key
        self.code = code
        super().__init__(str(self))

    def __str__(self) -> str:
        target = self.bucket or ""
        if self.key:
            target = f"{target}/{self.key}"
        if target:
            target = f" {target}"
        code = f" [{self.code}]" if self.code else ""
        return f"{self.operation}{target}{code}: {self.message}"


class ObjectNotFoundError(ObjectStoreError):
    """The requested object does not exist."""


class ListingError(MigrationError):
    """A bucket could not be listed completely. Fatal for that bucket."""

    def __init__(self, bucket: str, cause: Exception):
        self.bucket = bucket
        self.cause = cause
        super().__init__(f"Failed to list bucket {bucket}: {cause}")


class ProvisioningError(MigrationError):
    """The destination bucket could not be created. Fatal for that bucket."""

    def __init__(self, bucket: str, cause: Exception):
        self.bucket = bucket
        self.cause = cause
        super().__init__(f"Failed to create destination bucket {bucket}: {cause}")


class ObjectChangedError(MigrationError):
    """The source content does not match the size the object was listed with."""

    def __init__(self, key: str, expected: int, actual: Optional[int]):
        self.key = key
        self.expected = expected
        self.actual = actual
        read = f"more than {expected}" if actual is None else str(actual)
        super().__init__(
            f"Source object {key} changed since listing: "
            f"expected {expected} bytes, read {read}"
        )


class MultipartUploadError(MigrationError):
    """A multipart upload failed and its session was aborted."""

    def __init__(self, key: str, part_number: Optional[int], cause: Exception):
        self.key = key
        self.part_number = part_number
        self.cause = cause
        where = f"part {part_number}" if part_number else "completion"
        super().__init__(f"Multipart upload of {key} failed at {where}: {cause}")


class BucketMigrationError(MigrationError):
    """At least one object of the bucket failed; carries the stats snapshot."""

    def __init__(self, stats: BucketMigrationStats):
        self.stats = stats
        self.errors: List[ObjectError] = list(stats.errors)
        super().__init__(
            f"Bucket {stats.bucket}: {len(self.errors)} object(s) failed to migrate"
        )
