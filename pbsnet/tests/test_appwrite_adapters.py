import unittest
from unittest.mock import MagicMock, patch

from appwrite.exception import AppwriteException
from appwrite.query import Query

from pbsnet.blobs import AppwriteBlobStore
from pbsnet.directory import AppwriteUserDirectory
from pbsnet.documents import AppwriteDocumentStore, Filter
from pbsnet.errors import (
    Conflict,
    InvalidInput,
    NotFound,
    Unauthorized,
    UpstreamFailure,
)


class AppwriteDocumentStoreTests(unittest.TestCase):
    def setUp(self):
        patcher = patch("pbsnet.documents.Databases")
        self.databases_cls = patcher.start()
        self.addCleanup(patcher.stop)
        self.databases = self.databases_cls.return_value
        self.store = AppwriteDocumentStore(MagicMock(), "central_db")

    def test_get_returns_document(self):
        self.databases.get_document.return_value = {"$id": "u1", "full_name": "Alice"}
        self.assertEqual(self.store.get("user_profiles", "u1")["full_name"], "Alice")
        self.databases.get_document.assert_called_once_with(
            "central_db", "user_profiles", "u1"
        )

    def test_get_missing_document_is_none(self):
        self.databases.get_document.side_effect = AppwriteException("missing", 404)
        self.assertIsNone(self.store.get("system_data", "u1"))

    def test_get_other_errors_are_sanitized(self):
        self.databases.get_document.side_effect = AppwriteException(
            "internal provider detail", 500
        )
        with self.assertLogs("pbsnet.documents", level="ERROR"):
            with self.assertRaises(UpstreamFailure) as ctx:
                self.store.get("user_profiles", "u1")
        self.assertNotIn("provider detail", ctx.exception.message)

    def test_create_conflict(self):
        self.databases.create_document.side_effect = AppwriteException("exists", 409)
        with self.assertRaises(Conflict):
            self.store.create("system_data", "u1", {"app_json": "{}"})

    def test_update_missing_document(self):
        self.databases.update_document.side_effect = AppwriteException("missing", 404)
        with self.assertRaises(NotFound):
            self.store.update("user_profiles", "u1", {"username": "alice"})

    def test_find_builds_queries(self):
        self.databases.list_documents.return_value = {
            "total": 1,
            "documents": [{"$id": "u1"}],
        }
        docs = self.store.find(
            "user_profiles",
            [Filter.equal("pbs_name", "Dhaka"), Filter.search("full_name", "ali")],
            limit=20,
            offset=40,
        )
        self.assertEqual(docs, [{"$id": "u1"}])
        self.databases.list_documents.assert_called_once_with(
            "central_db",
            "user_profiles",
            queries=[
                Query.equal("pbs_name", "Dhaka"),
                Query.search("full_name", "ali"),
                Query.limit(20),
                Query.offset(40),
            ],
        )


class AppwriteUserDirectoryTests(unittest.TestCase):
    def setUp(self):
        users_patcher = patch("pbsnet.directory.Users")
        account_patcher = patch("pbsnet.directory.Account")
        self.users = users_patcher.start().return_value
        self.account_cls = account_patcher.start()
        self.addCleanup(users_patcher.stop)
        self.addCleanup(account_patcher.stop)
        self.directory = AppwriteUserDirectory(
            MagicMock(), endpoint="https://cloud.example.test/v1", project_id="proj"
        )

    def test_create_user(self):
        self.users.create.return_value = {"$id": "abc", "email": "a@x.com", "name": "A"}
        user = self.directory.create_user("a@x.com", "pw", "A")
        self.assertEqual(user.user_id, "abc")
        kwargs = self.users.create.call_args.kwargs
        self.assertEqual(kwargs["email"], "a@x.com")
        self.assertEqual(kwargs["password"], "pw")

    def test_create_user_duplicate(self):
        self.users.create.side_effect = AppwriteException("already exists", 409)
        with self.assertRaises(Conflict):
            self.directory.create_user("a@x.com", "pw", "A")

    def test_create_user_rejected(self):
        self.users.create.side_effect = AppwriteException("Password too short", 400)
        with self.assertRaises(InvalidInput) as ctx:
            self.directory.create_user("a@x.com", "pw", "A")
        self.assertNotIn("too short", ctx.exception.message)

    def test_find_by_email(self):
        self.users.list.return_value = {
            "total": 1,
            "users": [{"$id": "abc", "email": "a@x.com", "name": "A"}],
        }
        users = self.directory.find_by_email("a@x.com")
        self.assertEqual([user.user_id for user in users], ["abc"])
        self.users.list.assert_called_once_with(queries=[Query.equal("email", "a@x.com")])

    def test_verify_password_uses_public_session(self):
        self.directory.verify_password("a@x.com", "pw")
        account = self.account_cls.return_value
        account.create_email_password_session.assert_called_once_with("a@x.com", "pw")

    def test_verify_password_failure_collapses(self):
        account = self.account_cls.return_value
        account.create_email_password_session.side_effect = AppwriteException(
            "Invalid credentials. Please check the email and password.", 401
        )
        with self.assertRaises(Unauthorized):
            self.directory.verify_password("a@x.com", "wrong")

    def test_account_for_jwt(self):
        self.account_cls.return_value.get.return_value = {
            "$id": "g1",
            "email": "g@x.com",
            "name": "Gina",
        }
        user = self.directory.account_for_jwt("platform-jwt")
        self.assertEqual((user.user_id, user.email, user.name), ("g1", "g@x.com", "Gina"))

    def test_account_for_bad_jwt(self):
        self.account_cls.return_value.get.side_effect = AppwriteException("bad jwt", 401)
        with self.assertRaises(Unauthorized):
            self.directory.account_for_jwt("forged")

    def test_send_recovery_failure(self):
        self.account_cls.return_value.create_recovery.side_effect = AppwriteException(
            "smtp down", 500
        )
        with self.assertRaises(UpstreamFailure):
            self.directory.send_recovery("a@x.com", "https://front/reset-password")


class AppwriteBlobStoreTests(unittest.TestCase):
    def setUp(self):
        storage_patcher = patch("pbsnet.blobs.Storage")
        input_file_patcher = patch("pbsnet.blobs.InputFile")
        self.storage = storage_patcher.start().return_value
        self.input_file = input_file_patcher.start()
        self.addCleanup(storage_patcher.stop)
        self.addCleanup(input_file_patcher.stop)
        self.blobs = AppwriteBlobStore(MagicMock(), "profile_pics")

    def test_upload_returns_file_id(self):
        self.storage.create_file.return_value = {"$id": "file-1"}
        self.assertEqual(self.blobs.upload(b"bytes", "me.png"), "file-1")
        self.input_file.from_bytes.assert_called_once_with(b"bytes", "me.png")
        self.assertEqual(self.storage.create_file.call_args.args[0], "profile_pics")

    def test_upload_failure(self):
        self.storage.create_file.side_effect = AppwriteException("quota", 500)
        with self.assertRaises(UpstreamFailure):
            self.blobs.upload(b"bytes", "me.png")

    def test_delete_missing(self):
        self.storage.delete_file.side_effect = AppwriteException("missing", 404)
        with self.assertRaises(NotFound):
            self.blobs.delete("file-1")


if __name__ == "__main__":
    unittest.main()
