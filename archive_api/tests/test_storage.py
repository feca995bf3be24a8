import unittest
from unittest.mock import MagicMock

from supabase import StorageException

from archive_api.errors import BackendError
from archive_api.storage import (
    InMemoryStorageClient,
    SupabaseStorageClient,
    build_object_path,
    object_path_from_url,
)


class ObjectPathTests(unittest.TestCase):
    def test_build_object_path(self):
        self.assertEqual(
            build_object_path("user-1", "scan.png", now=1700000000.5),
            "user-1/1700000000500-scan.png",
        )

    def test_path_from_public_url(self):
        url = (
            "https://abc.supabase.co/storage/v1/object/public/archive-files/"
            "user-1/1700000000123-my%20scan.png"
        )
        self.assertEqual(
            object_path_from_url(url, "archive-files"),
            "user-1/1700000000123-my scan.png",
        )

    def test_path_from_foreign_url(self):
        with self.assertRaises(ValueError):
            object_path_from_url("https://elsewhere.test/file.png", "archive-files")
        with self.assertRaises(ValueError):
            object_path_from_url(
                "https://abc.supabase.co/storage/v1/object/public/other/x.png",
                "archive-files",
            )


class InMemoryStorageTests(unittest.TestCase):
    def test_upload_and_delete(self):
        storage = InMemoryStorageClient()
        stored = storage.upload_file("u1", "a.txt", b"hello", "text/plain")
        self.assertEqual(stored.metadata.size, 5)
        self.assertEqual(len(storage.stored_objects), 1)

        storage.delete_file(stored.url)
        self.assertEqual(storage.stored_objects, {})

    def test_delete_missing_raises_backend_error(self):
        storage = InMemoryStorageClient()
        with self.assertRaises(BackendError):
            storage.delete_file(storage.public_url("u1/1-gone.txt"))


class SupabaseStorageTests(unittest.TestCase):
    def setUp(self):
        self.client = MagicMock()
        self.bucket = self.client.storage.from_.return_value
        self.bucket.get_public_url.side_effect = (
            lambda path: f"https://abc.supabase.co/storage/v1/object/public/archive-files/{path}?"
        )
        self.storage = SupabaseStorageClient(self.client, "archive-files")

    def test_upload_uses_owner_prefix(self):
        stored = self.storage.upload_file("u1", "a.pdf", b"1234", "application/pdf")
        kwargs = self.bucket.upload.call_args.kwargs
        self.assertTrue(kwargs["path"].startswith("u1/"))
        self.assertTrue(kwargs["path"].endswith("-a.pdf"))
        self.assertEqual(kwargs["file_options"], {"content-type": "application/pdf"})
        self.assertFalse(stored.url.endswith("?"))
        self.client.storage.from_.assert_called_with("archive-files")

    def test_delete_removes_object_path(self):
        self.storage.delete_file(
            "https://abc.supabase.co/storage/v1/object/public/archive-files/u1/1-a.pdf"
        )
        self.bucket.remove.assert_called_once_with(["u1/1-a.pdf"])

    def test_storage_errors_become_backend_errors(self):
        self.bucket.remove.side_effect = StorageException(
            {"statusCode": 404, "error": "not_found", "message": "Object not found"}
        )
        with self.assertRaises(BackendError) as ctx:
            self.storage.delete_file(
                "https://abc.supabase.co/storage/v1/object/public/archive-files/u1/1-a.pdf"
            )
        self.assertEqual(ctx.exception.message, "Object not found")


if __name__ == "__main__":
    unittest.main()
