"""Legacy cluster backend: Riak CS speaking the signature-v2 S3 dialect."""

from typing import Optional

from .errors import ObjectStoreError
from .models import ObjectPage
from .store import BotoObjectStore

DEFAULT_ENDPOINT = "cellar.services.clever-cloud.com"


class RiakCSClient(BotoObjectStore):
    """Source side client.

    Riak CS only understands V1 listings, so pages are chained with ``Marker``
    rather than continuation tokens.
    """

    label = "Riak CS"
    signature_version = "s3"

    def list_objects(
        self, bucket: str, page_token: Optional[str] = None, max_keys: int = 1000
    ) -> ObjectPage:
        params = {"Bucket": bucket, "MaxKeys": max_keys}
        if page_token:
            params["Marker"] = page_token

        with self._translate_errors("ListObjects", bucket):
            response = self._client.list_objects(**params)

        objects = [self._descriptor(entry) for entry in response.get("Contents", [])]

        next_token = None
        if response.get("IsTruncated"):
            # NextMarker is only returned when a delimiter is used
            next_token = response.get("NextMarker") or (
                objects[-1].key if objects else None
            )
            if not next_token:
                raise ObjectStoreError(
                    "ListObjects", "truncated page without a marker to continue", bucket
                )
        return ObjectPage(objects=objects, next_token=next_token)
