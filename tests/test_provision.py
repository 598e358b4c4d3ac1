import unittest

from cellar_migrate.errors import ProvisioningError
from cellar_migrate.models import BucketCreation
from cellar_migrate.provision import ensure_destination_bucket

from tests.fakes import InMemoryStore


class RacingStore(InMemoryStore):
    """Someone else creates the bucket between our check and our create."""

    def bucket_exists(self, name):
        self._record("bucket_exists", name)
        return False

    def create_bucket(self, name):
        self._record("create_bucket", name)
        return BucketCreation.ALREADY_EXISTS


class EnsureDestinationBucketTests(unittest.TestCase):
    def test_existing_bucket_is_left_alone(self):
        store = InMemoryStore({"dst": {}})

        state = ensure_destination_bucket(store, "dst", dry_run=False)

        self.assertIs(BucketCreation.ALREADY_EXISTS, state)
        self.assertEqual([], store.mutations)

    def test_missing_bucket_is_created(self):
        store = InMemoryStore({})

        state = ensure_destination_bucket(store, "dst", dry_run=False)

        self.assertIs(BucketCreation.CREATED, state)
        self.assertIn("dst", store.buckets)

    def test_dry_run_never_creates(self):
        store = InMemoryStore({})

        state = ensure_destination_bucket(store, "dst", dry_run=True)

        self.assertIs(BucketCreation.MISSING, state)
        self.assertEqual([], store.mutations)
        self.assertNotIn("dst", store.buckets)

    def test_concurrent_creation_counts_as_success(self):
        store = RacingStore({})

        state = ensure_destination_bucket(store, "dst", dry_run=False)

        self.assertIs(BucketCreation.ALREADY_EXISTS, state)

    def test_rejected_creation_is_fatal(self):
        store = InMemoryStore({}, fail_create="AccessDenied")

        with self.assertRaises(ProvisioningError) as ctx:
            ensure_destination_bucket(store, "dst", dry_run=False)

        self.assertEqual("dst", ctx.exception.bucket)
        self.assertEqual("AccessDenied", ctx.exception.cause.code)


if __name__ == "__main__":
    unittest.main()
