import hashlib
import io
import threading

from cellar_migrate.errors import ObjectNotFoundError, ObjectStoreError
from cellar_migrate.models import (
    BucketCreation,
    MultipartUpload,
    ObjectDescriptor,
    ObjectPage,
)
from cellar_migrate.store import ObjectStoreClient

MUTATIONS = {
    "create_bucket",
    "put_object",
    "initiate_multipart_upload",
    "upload_part",
    "complete_multipart_upload",
    "abort_multipart_upload",
    "delete_object",
}


def md5(data):
    return hashlib.md5(data).hexdigest()


class InMemoryStore(ObjectStoreClient):
    """Object store kept in dictionaries, recording every call."""

    def __init__(
        self,
        buckets=None,
        etags=None,
        fail_get=(),
        fail_put=(),
        fail_delete=(),
        fail_part=None,
        fail_complete=(),
        fail_list=(),
        fail_create=None,
        fail_abort=(),
    ):
        self.buckets = {name: dict(objects) for name, objects in (buckets or {}).items()}
        self.etags = dict(etags or {})
        self.fail_get = set(fail_get)
        self.fail_put = set(fail_put)
        self.fail_delete = set(fail_delete)
        self.fail_part = fail_part
        self.fail_complete = set(fail_complete)
        self.fail_list = set(fail_list)
        self.fail_create = fail_create
        self.fail_abort = set(fail_abort)
        self.calls = []
        self.uploads = {}
        self.aborted = []
        self.completed = {}
        self._lock = threading.Lock()
        self._next_upload = 0

    def _record(self, *call):
        with self._lock:
            self.calls.append(call)

    @property
    def mutations(self):
        return [call for call in self.calls if call[0] in MUTATIONS]

    def etag(self, bucket, key):
        return self.etags.get((bucket, key), md5(self.buckets[bucket][key]))

    def list_buckets(self):
        self._record("list_buckets")
        return sorted(self.buckets)

    def bucket_exists(self, name):
        self._record("bucket_exists", name)
        return name in self.buckets

    def create_bucket(self, name):
        self._record("create_bucket", name)
        if self.fail_create:
            raise ObjectStoreError("CreateBucket", "refused", name, code=self.fail_create)
        if name in self.buckets:
            return BucketCreation.ALREADY_EXISTS
        self.buckets[name] = {}
        return BucketCreation.CREATED

    def list_objects(self, bucket, page_token=None, max_keys=1000):
        self._record("list_objects", bucket, page_token, max_keys)
        if bucket in self.fail_list or bucket not in self.buckets:
            raise ObjectStoreError("ListObjects", "cannot list", bucket, code="NoSuchBucket")
        keys = sorted(key for key in self.buckets[bucket] if page_token is None or key > page_token)
        page = keys[:max_keys]
        objects = [
            ObjectDescriptor(key, len(self.buckets[bucket][key]), self.etag(bucket, key))
            for key in page
        ]
        next_token = page[-1] if len(keys) > max_keys else None
        return ObjectPage(objects=objects, next_token=next_token)

    def get_object_stream(self, bucket, key):
        self._record("get_object_stream", bucket, key)
        if key in self.fail_get:
            raise ObjectStoreError("GetObject", "boom", bucket, key, "InternalError")
        try:
            return io.BytesIO(self.buckets[bucket][key])
        except KeyError:
            raise ObjectNotFoundError("GetObject", "missing", bucket, key, "NoSuchKey") from None

    def put_object(self, bucket, key, body, size):
        self._record("put_object", bucket, key, size)
        if key in self.fail_put:
            raise ObjectStoreError("PutObject", "refused", bucket, key, "InternalError")
        data = body if isinstance(body, bytes) else body.read()
        with self._lock:
            self.buckets[bucket][key] = data
            self.etags.pop((bucket, key), None)

    def initiate_multipart_upload(self, bucket, key):
        with self._lock:
            self._next_upload += 1
            upload = MultipartUpload(bucket, key, f"upload-{self._next_upload}")
            self.uploads[upload.upload_id] = {}
        self._record("initiate_multipart_upload", bucket, key)
        return upload

    def upload_part(self, upload, part_number, data):
        self._record("upload_part", upload.key, part_number, len(data))
        if self.fail_part == (upload.key, part_number):
            raise ObjectStoreError("UploadPart", "broken pipe", upload.bucket, upload.key)
        with self._lock:
            self.uploads[upload.upload_id][part_number] = data
        return f'"{md5(data)}"'

    def complete_multipart_upload(self, upload, parts):
        self._record(
            "complete_multipart_upload",
            upload.key,
            [(part.part_number, part.etag) for part in parts],
        )
        if upload.key in self.fail_complete:
            raise ObjectStoreError("CompleteMultipartUpload", "bad manifest", upload.bucket, upload.key)
        with self._lock:
            stored = self.uploads.pop(upload.upload_id)
            data = b"".join(stored[part.part_number] for part in parts)
            self.buckets[upload.bucket][upload.key] = data
            self.completed[upload.key] = [part.part_number for part in parts]
            digest = md5(b"".join(hashlib.md5(stored[p.part_number]).digest() for p in parts))
            self.etags[(upload.bucket, upload.key)] = f"{digest}-{len(parts)}"

    def abort_multipart_upload(self, upload):
        self._record("abort_multipart_upload", upload.key)
        if upload.key in self.fail_abort:
            raise ObjectStoreError("AbortMultipartUpload", "timed out", upload.bucket, upload.key)
        with self._lock:
            self.uploads.pop(upload.upload_id, None)
            self.aborted.append(upload.key)

    def delete_object(self, bucket, key):
        self._record("delete_object", bucket, key)
        if key in self.fail_delete:
            raise ObjectStoreError("DeleteObject", "refused", bucket, key, "AccessDenied")
        with self._lock:
            del self.buckets[bucket][key]
