import logging
import unittest

from cellar_migrate.errors import BucketMigrationError, ListingError, ObjectStoreError
from cellar_migrate.models import (
    BucketMigrationStats,
    BucketOutcome,
    MultipartUpload,
    ObjectDescriptor,
    ObjectError,
)
from cellar_migrate.observer import LoggingObserver
from cellar_migrate.report import RunReport, format_bytes, format_duration, throughput

from tests.test_sync import make_config


def stats(bucket, objects=(), deleted=(), errors=(), unverified=(), dry_run=False):
    return BucketMigrationStats(
        bucket=bucket,
        destination_bucket=bucket,
        dry_run=dry_run,
        synchronization_size=sum(obj.size for obj in objects),
        objects=tuple(objects),
        objects_deleted=tuple(deleted),
        unverified=tuple(unverified),
        errors=tuple(errors),
    )


class FormattingTests(unittest.TestCase):
    def test_format_bytes(self):
        self.assertEqual("512.0B", format_bytes(512))
        self.assertEqual("10.0KB", format_bytes(10 * 1024))
        self.assertEqual("200.0MB", format_bytes(200 * 1024 * 1024))

    def test_format_duration(self):
        self.assertEqual("42s", format_duration(42))
        self.assertEqual("1.5m", format_duration(90))
        self.assertEqual("2h 5m", format_duration(2 * 3600 + 300))

    def test_throughput(self):
        self.assertEqual(50.0, throughput(100, 2))
        self.assertEqual(0.0, throughput(100, 0))


class RunReportTests(unittest.TestCase):
    def setUp(self):
        self.logger = logging.getLogger("tests.report")

    def test_dry_run_summary_lists_objects_and_totals(self):
        outcome = BucketOutcome(
            "photos",
            "photos",
            stats=stats(
                "photos",
                objects=[ObjectDescriptor("a.jpg", 1024)],
                deleted=[ObjectDescriptor("old.jpg", 2048)],
                dry_run=True,
            ),
        )

        with self.assertLogs(self.logger, level="INFO") as logs:
            RunReport([outcome], 2.0, dry_run=True, delete=True, log=self.logger).log_summary()

        output = "\n".join(logs.output)
        self.assertIn("photos/a.jpg - 1.0KB", output)
        self.assertIn("photos/old.jpg - 2.0KB", output)
        self.assertIn("Total files to sync: 1 for a total of 1.0KB", output)
        self.assertIn("Total files to delete: 1 for a total of 2.0KB", output)
        self.assertIn("(512.0B/s)", output)

    def test_execute_summary_lists_synced_and_deleted_objects(self):
        outcome = BucketOutcome(
            "photos",
            "photos",
            stats=stats(
                "photos",
                objects=[ObjectDescriptor("a.jpg", 1024), ObjectDescriptor("b.jpg", 2048)],
                deleted=[ObjectDescriptor("old.jpg", 512)],
            ),
        )

        with self.assertLogs(self.logger, level="INFO") as logs:
            RunReport([outcome], 1.0, dry_run=False, delete=True, log=self.logger).log_summary()

        info = [line for line in logs.output if line.startswith("INFO")]
        self.assertTrue(any("Objects synced:" in line for line in info))
        self.assertTrue(any("photos/a.jpg - 1.0KB" in line for line in info))
        self.assertTrue(any("photos/b.jpg - 2.0KB" in line for line in info))
        self.assertTrue(any("Objects deleted:" in line for line in info))
        self.assertTrue(any("photos/old.jpg - 512.0B" in line for line in info))
        self.assertTrue(any("Synced:    2" in line for line in info))

    def test_errors_are_grouped_by_bucket(self):
        partial = stats(
            "photos",
            objects=[ObjectDescriptor("a.jpg", 10)],
            errors=[ObjectError("b.jpg", "sync", "timeout")],
        )
        outcomes = [
            BucketOutcome("photos", "photos", error=BucketMigrationError(partial)),
            BucketOutcome(
                "logs", "logs", error=ListingError("logs", ObjectStoreError("ListObjects", "denied"))
            ),
        ]

        with self.assertLogs(self.logger, level="INFO") as logs:
            report = RunReport(outcomes, 1.0, dry_run=False, delete=False, log=self.logger)
            report.log_summary()

        self.assertEqual(10, report.synchronization_size)
        errors = [line for line in logs.output if line.startswith("ERROR")]
        self.assertEqual(2, len(errors))
        self.assertIn("Bucket photos | Failed to sync b.jpg: timeout", errors[0])
        self.assertIn("Bucket logs | Error during synchronization", errors[1])
        self.assertIn("COMPLETED WITH ERRORS", "\n".join(logs.output))

    def test_unverified_objects_are_flagged(self):
        outcome = BucketOutcome(
            "photos", "photos", stats=stats("photos", unverified=[ObjectDescriptor("big", 9, "x-2")])
        )

        with self.assertLogs(self.logger, level="WARNING") as logs:
            RunReport([outcome], 1.0, dry_run=False, delete=False, log=self.logger).log_summary()

        self.assertTrue(any("checksums are not comparable" in line for line in logs.output))


class LoggingObserverTests(unittest.TestCase):
    def test_messages_carry_the_bucket_prefix(self):
        logger = logging.getLogger("tests.observer")
        observer = LoggingObserver(logger)

        with self.assertLogs(logger, level="DEBUG") as logs:
            observer.bucket_started(make_config(dry_run=True))
            observer.object_synced(make_config(), ObjectDescriptor("a", 1), multipart=True)
            observer.object_failed(make_config(), "b", "sync", RuntimeError("boom"))

        self.assertIn("DRY-RUN | Bucket src | Starting listing", logs.output[0])
        self.assertTrue(any("✓ Synced a [1.0B] (multipart)" in line for line in logs.output))
        self.assertTrue(any("Bucket src | ✗ Failed to sync b: boom" in line for line in logs.output))

    def test_abort_failure_is_logged_as_a_warning(self):
        logger = logging.getLogger("tests.observer")
        observer = LoggingObserver(logger)
        upload = MultipartUpload("dst", "big", "upload-9")

        with self.assertLogs(logger, level="DEBUG") as logs:
            observer.multipart_abort_failed(make_config(), upload, RuntimeError("timeout"))

        self.assertEqual(1, len(logs.output))
        self.assertTrue(logs.output[0].startswith("WARNING"))
        self.assertIn("upload-9 of big", logs.output[0])
        self.assertNotIn("✗", logs.output[0])


if __name__ == "__main__":
    unittest.main()
