"""Modern cluster backend: Ceph RadosGW with signature-v4 and ListObjectsV2."""

from typing import Optional

from .errors import ObjectStoreError
from .models import ObjectPage
from .store import BotoObjectStore

DEFAULT_ENDPOINT = "cellar-c2.services.clever-cloud.com"


class RadosGWClient(BotoObjectStore):
    """Destination side client."""

    label = "RadosGW"
    signature_version = "s3v4"

    def list_objects(
        self, bucket: str, page_token: Optional[str] = None, max_keys: int = 1000
    ) -> ObjectPage:
        params = {"Bucket": bucket, "MaxKeys": max_keys}
        if page_token:
            params["ContinuationToken"] = page_token

        with self._translate_errors("ListObjectsV2", bucket):
            response = self._client.list_objects_v2(**params)

        objects = [self._descriptor(entry) for entry in response.get("Contents", [])]
        next_token = None
        if response.get("IsTruncated"):
            next_token = response.get("NextContinuationToken")
            if not next_token:
                raise ObjectStoreError(
                    "ListObjectsV2",
                    "truncated page without a continuation token",
                    bucket,
                )
        return ObjectPage(objects=objects, next_token=next_token)
