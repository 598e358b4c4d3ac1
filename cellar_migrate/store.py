"""Object store capability shared by the source and destination clusters."""

import contextlib
import logging
from abc import ABC, abstractmethod
from typing import BinaryIO, Callable, Dict, Iterator, List, Optional, Union

import boto3
import botocore
import urllib3
from botocore.config import Config

from .errors import ObjectNotFoundError, ObjectStoreError
from .models import (
    BucketCreation,
    CompletedPart,
    MultipartUpload,
    ObjectDescriptor,
    ObjectPage,
)

logger = logging.getLogger(__name__)

ALREADY_EXISTS_CODES = frozenset({"BucketAlreadyOwnedByYou", "BucketAlreadyExists"})
NOT_FOUND_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


def normalize_etag(etag: Optional[str]) -> Optional[str]:
    """Strip the quotes S3 puts around ETag values."""
    if etag and etag.startswith('"') and etag.endswith('"') and etag != '"':
        etag = etag[1:-1]
    return etag or None


def normalize_endpoint(endpoint: str) -> str:
    """Return an endpoint URL, defaulting to HTTPS when no scheme is given."""
    if "://" in endpoint:
        return endpoint
    return f"https://{endpoint}"


class ObjectStoreClient(ABC):
    """Operations the migration engine needs from a storage cluster."""

    label = "object store"

    @abstractmethod
    def list_buckets(self) -> List[str]:
        """Return the names of the buckets owned by the credentials."""

    @abstractmethod
    def bucket_exists(self, name: str) -> bool:
        """Return True if the bucket exists and is reachable."""

    @abstractmethod
    def create_bucket(self, name: str) -> BucketCreation:
        """Create a bucket. Raises ObjectStoreError on rejection."""

    @abstractmethod
    def list_objects(
        self, bucket: str, page_token: Optional[str] = None, max_keys: int = 1000
    ) -> ObjectPage:
        """Return one page of objects; ``next_token`` is None on the last page."""

    @abstractmethod
    def get_object_stream(self, bucket: str, key: str) -> BinaryIO:
        """Open the object body for reading. Raises ObjectNotFoundError."""

    @abstractmethod
    def put_object(
        self, bucket: str, key: str, body: Union[bytes, BinaryIO], size: int
    ) -> None:
        """Store an object in a single request."""

    @abstractmethod
    def initiate_multipart_upload(self, bucket: str, key: str) -> MultipartUpload:
        """Open a multipart session."""

    @abstractmethod
    def upload_part(self, upload: MultipartUpload, part_number: int, data: bytes) -> str:
        """Upload one part and return its ETag."""

    @abstractmethod
    def complete_multipart_upload(
        self, upload: MultipartUpload, parts: List[CompletedPart]
    ) -> None:
        """Finalise the session from the ordered part manifest."""

    @abstractmethod
    def abort_multipart_upload(self, upload: MultipartUpload) -> None:
        """Release the parts of an unfinished session."""

    @abstractmethod
    def delete_object(self, bucket: str, key: str) -> None:
        """Remove an object."""


class BotoObjectStore(ObjectStoreClient):  # pylint: disable=abstract-method
    """ObjectStoreClient on top of a boto3 S3 client.

    Subclasses pick the request signature and the listing flavour.
    """

    signature_version = "s3v4"

    def __init__(  # pylint: disable=too-many-arguments
        self,
        endpoint: str,
        access_key: str,
        secret_key: str,
        region_name: str = "us-east-1",
        verify_ssl: bool = True,
        max_pool_connections: int = 50,
        client_factory: Optional[Callable[..., object]] = None,
    ):
        self.endpoint_url = normalize_endpoint(endpoint)
        self.access_key = access_key
        self._client_factory = client_factory or boto3.client
        if not verify_ssl:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
        self._client = self._create_client(
            access_key, secret_key, region_name, verify_ssl, max_pool_connections
        )

    def _create_client(
        self,
        access_key: str,
        secret_key: str,
        region_name: str,
        verify_ssl: bool,
        max_pool_connections: int,
    ):
        boto_config = Config(
            signature_version=self.signature_version,
            s3={"addressing_style": "path"},
            max_pool_connections=max_pool_connections,
            retries={"max_attempts": 3, "mode": "adaptive"},
            tcp_keepalive=True,
            request_checksum_calculation="when_required",
            response_checksum_validation="when_required",
        )

        logger.debug(
            "Creating %s client for %s (signature %s)",
            self.label,
            self.endpoint_url,
            self.signature_version,
        )

        return self._client_factory(
            "s3",
            endpoint_url=self.endpoint_url,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region_name,
            verify=verify_ssl,
            config=boto_config,
        )

    @contextlib.contextmanager
    def _translate_errors(
        self, operation: str, bucket: Optional[str] = None, key: Optional[str] = None
    ) -> Iterator[None]:
        try:
            yield
        except botocore.exceptions.ClientError as err:
            error = err.response.get("Error", {})
            code = str(error.get("Code", "")) or None
            message = error.get("Message") or str(err)
            if key is not None and code in NOT_FOUND_CODES:
                raise ObjectNotFoundError(operation, message, bucket, key, code) from err
            raise ObjectStoreError(operation, message, bucket, key, code) from err
        except botocore.exceptions.BotoCoreError as err:
            raise ObjectStoreError(operation, str(err), bucket, key) from err

    @staticmethod
    def _descriptor(entry: Dict) -> ObjectDescriptor:
        return ObjectDescriptor(
            key=entry["Key"],
            size=int(entry.get("Size", 0)),
            etag=normalize_etag(entry.get("ETag")),
            last_modified=entry.get("LastModified"),
        )

    def list_buckets(self) -> List[str]:
        with self._translate_errors("ListBuckets"):
            response = self._client.list_buckets()
        return [bucket["Name"] for bucket in response.get("Buckets", [])]

    def bucket_exists(self, name: str) -> bool:
        try:
            with self._translate_errors("HeadBucket", name):
                self._client.head_bucket(Bucket=name)
        except ObjectStoreError as err:
            if err.code in ("404", "NoSuchBucket", "NotFound"):
                return False
            raise
        return True

    def create_bucket(self, name: str) -> BucketCreation:
        try:
            with self._translate_errors("CreateBucket", name):
                self._client.create_bucket(Bucket=name)
        except ObjectStoreError as err:
            if err.code in ALREADY_EXISTS_CODES:
                return BucketCreation.ALREADY_EXISTS
            raise
        return BucketCreation.CREATED

    def get_object_stream(self, bucket: str, key: str) -> BinaryIO:
        with self._translate_errors("GetObject", bucket, key):
            response = self._client.get_object(Bucket=bucket, Key=key)
        return response["Body"]

    def put_object(
        self, bucket: str, key: str, body: Union[bytes, BinaryIO], size: int
    ) -> None:
        with self._translate_errors("PutObject", bucket, key):
            self._client.put_object(
                Bucket=bucket, Key=key, Body=body, ContentLength=size
            )

    def initiate_multipart_upload(self, bucket: str, key: str) -> MultipartUpload:
        with self._translate_errors("CreateMultipartUpload", bucket, key):
            response = self._client.create_multipart_upload(Bucket=bucket, Key=key)
        return MultipartUpload(bucket=bucket, key=key, upload_id=response["UploadId"])

    def upload_part(self, upload: MultipartUpload, part_number: int, data: bytes) -> str:
        with self._translate_errors("UploadPart", upload.bucket, upload.key):
            response = self._client.upload_part(
                Bucket=upload.bucket,
                Key=upload.key,
                UploadId=upload.upload_id,
                PartNumber=part_number,
                Body=data,
                ContentLength=len(data),
            )
        return response["ETag"]

    def complete_multipart_upload(
        self, upload: MultipartUpload, parts: List[CompletedPart]
    ) -> None:
        manifest = [
            {"PartNumber": part.part_number, "ETag": part.etag}
            for part in sorted(parts, key=lambda p: p.part_number)
        ]
        with self._translate_errors("CompleteMultipartUpload", upload.bucket, upload.key):
            self._client.complete_multipart_upload(
                Bucket=upload.bucket,
                Key=upload.key,
                UploadId=upload.upload_id,
                MultipartUpload={"Parts": manifest},
            )

    def abort_multipart_upload(self, upload: MultipartUpload) -> None:
        with self._translate_errors("AbortMultipartUpload", upload.bucket, upload.key):
            self._client.abort_multipart_upload(
                Bucket=upload.bucket, Key=upload.key, UploadId=upload.upload_id
            )

    def delete_object(self, bucket: str, key: str) -> None:
        with self._translate_errors("DeleteObject", bucket, key):
            self._client.delete_object(Bucket=bucket, Key=key)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.endpoint_url!r})"
