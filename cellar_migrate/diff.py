"""Work out which objects have to be copied or pruned."""

import re
from typing import Dict, List, Optional

from .errors import ListingError, ObjectStoreError
from .models import MigrationPlan, ObjectDescriptor
from .store import ObjectStoreClient

MD5_ETAG = re.compile(r"^[0-9a-f]{32}$")


def list_all_objects(
    client: ObjectStoreClient, bucket: str, max_keys: int = 1000
) -> List[ObjectDescriptor]:
    """List every object of ``bucket``, sorted by key.

    Raises:
        ListingError: any page could not be fetched. A partial listing is
            never returned since a plan built on it could delete live data.
    """
    objects: List[ObjectDescriptor] = []
    token: Optional[str] = None
    try:
        while True:
            page = client.list_objects(bucket, page_token=token, max_keys=max_keys)
            objects.extend(page.objects)
            if not page.next_token:
                break
            if page.next_token == token:
                raise ObjectStoreError(
                    "ListObjects",
                    f"listing did not advance past {token!r}",
                    bucket,
                )
            token = page.next_token
    except ObjectStoreError as err:
        raise ListingError(bucket, err) from err

    objects.sort(key=lambda obj: obj.key)
    return objects


def checksums_comparable(source: ObjectDescriptor, destination: ObjectDescriptor) -> bool:
    """True when both ETags are plain MD5 digests of the whole content.

    Multipart ETags (``<md5>-<parts>``) depend on how each cluster split the
    upload, so they say nothing across clusters.
    """
    return bool(
        source.etag
        and destination.etag
        and MD5_ETAG.match(source.etag.lower())
        and MD5_ETAG.match(destination.etag.lower())
    )


def compute_plan(
    source_objects: List[ObjectDescriptor],
    destination_objects: List[ObjectDescriptor],
    delete: bool = False,
) -> MigrationPlan:
    """Compare two listings.

    A source object is synced when the destination lacks it, or has it with
    another size, or with another comparable checksum. Objects that only
    match on size because the checksums cannot be compared are kept out of
    the sync but returned in ``unverified``.
    """
    destination_by_key: Dict[str, ObjectDescriptor] = {
        obj.key: obj for obj in destination_objects
    }

    to_sync: List[ObjectDescriptor] = []
    unverified: List[ObjectDescriptor] = []
    for obj in source_objects:
        existing = destination_by_key.get(obj.key)
        if existing is None or existing.size != obj.size:
            to_sync.append(obj)
        elif checksums_comparable(obj, existing):
            if obj.etag.lower() != existing.etag.lower():
                to_sync.append(obj)
        else:
            unverified.append(obj)

    to_delete: List[ObjectDescriptor] = []
    if delete:
        source_keys = {obj.key for obj in source_objects}
        to_delete = [obj for obj in destination_objects if obj.key not in source_keys]

    return MigrationPlan(to_sync=to_sync, to_delete=to_delete, unverified=unverified)


def diff_buckets(  # pylint: disable=too-many-arguments
    source: ObjectStoreClient,
    source_bucket: str,
    destination: ObjectStoreClient,
    destination_bucket: str,
    max_keys: int = 1000,
    delete: bool = False,
    destination_empty: bool = False,
) -> MigrationPlan:
    """List both sides and build the plan.

    ``destination_empty`` skips the destination listing, for a bucket that
    does not exist yet.
    """
    source_objects = list_all_objects(source, source_bucket, max_keys)
    destination_objects: List[ObjectDescriptor] = []
    if not destination_empty:
        destination_objects = list_all_objects(destination, destination_bucket, max_keys)
    return compute_plan(source_objects, destination_objects, delete)
