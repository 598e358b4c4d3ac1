"""Make sure the destination bucket exists before anything is transferred."""

from .errors import ObjectStoreError, ProvisioningError
from .models import BucketCreation
from .store import ObjectStoreClient


def ensure_destination_bucket(
    client: ObjectStoreClient, bucket: str, dry_run: bool
) -> BucketCreation:
    """Create ``bucket`` on the destination if it is missing.

    Returns ALREADY_EXISTS when nothing had to be done, CREATED when the
    bucket was created, and MISSING when it does not exist but dry-run kept
    us from creating it. An "already exists" answer to the creation request
    counts as success: another process won the race, and creation is
    idempotent anyway.

    Raises:
        ProvisioningError: the bucket could not be checked or created.
    """
    try:
        if client.bucket_exists(bucket):
            return BucketCreation.ALREADY_EXISTS
        if dry_run:
            return BucketCreation.MISSING
        return client.create_bucket(bucket)
    except ObjectStoreError as err:
        raise ProvisioningError(bucket, err) from err
