"""
Object stores: Cloudinary through its SDK and the local filesystem store.
"""
import unittest
from unittest.mock import patch

import pytest
from cloudinary.exceptions import Error as CloudinaryError

from app.core.errors import ObjectStoreError
from app.storage.cloudinary import CloudinaryObjectStore
from app.storage.local import LocalObjectStore


CONFIG = {"cloud_name": "demo", "api_key": "key", "api_secret": "secret", "timeout": 30}


class TestCloudinary(unittest.TestCase):
    @patch("cloudinary.uploader.upload")
    def test_upload(self, upload):
        upload.return_value = {
            "secure_url": "https://res.cloudinary.com/demo/outfits/a.png",
            "public_id": "outfits/a",
            "resource_type": "image",
        }
        stored = CloudinaryObjectStore(CONFIG).upload(b"PNG", "outfits", filename="a.png")

        self.assertEqual(stored.file_url, "https://res.cloudinary.com/demo/outfits/a.png")
        self.assertEqual(stored.file_public_id, "outfits/a")
        stream = upload.call_args.args[0]
        self.assertEqual(stream.getvalue(), b"PNG")
        options = upload.call_args.kwargs
        self.assertEqual(options["folder"], "outfits")
        self.assertEqual(options["resource_type"], "auto")
        self.assertEqual(options["cloud_name"], "demo")
        self.assertEqual(options["api_secret"], "secret")
        self.assertEqual(options["timeout"], 30)

    @patch("cloudinary.uploader.destroy")
    def test_delete(self, destroy):
        destroy.return_value = {"result": "ok"}
        self.assertTrue(CloudinaryObjectStore(CONFIG).delete("temp/v", "video"))
        self.assertEqual(destroy.call_args.args, ("temp/v",))
        self.assertEqual(destroy.call_args.kwargs["resource_type"], "video")

        destroy.return_value = {"result": "not found"}
        self.assertFalse(CloudinaryObjectStore(CONFIG).delete("temp/v"))

    @patch("cloudinary.uploader.upload", side_effect=CloudinaryError("Invalid api_key"))
    def test_sdk_error_becomes_object_store_error(self, upload):
        with self.assertRaises(ObjectStoreError):
            CloudinaryObjectStore(CONFIG).upload(b"x", "temp")

    @patch("cloudinary.uploader.upload", return_value={"public_id": "temp/x"})
    def test_upload_without_url_fails(self, upload):
        with self.assertRaises(ObjectStoreError):
            CloudinaryObjectStore(CONFIG).upload(b"x", "temp")

    @patch("cloudinary.uploader.upload")
    def test_unconfigured(self, upload):
        with self.assertRaises(ObjectStoreError):
            CloudinaryObjectStore({}).upload(b"x", "temp")
        upload.assert_not_called()


def test_local_store_roundtrip(tmp_path):
    store = LocalObjectStore(str(tmp_path), "http://localhost:8000/objects/")
    stored = store.upload(b"data", "avatars", filename="avatar.glb")

    assert stored.file_url.startswith("http://localhost:8000/objects/avatars/")
    assert stored.file_url.endswith(".glb")
    assert (tmp_path / stored.file_public_id).read_bytes() == b"data"
    assert store.delete(stored.file_public_id) is True
    assert store.delete(stored.file_public_id) is False


def test_local_store_rejects_escaping_ids(tmp_path):
    store = LocalObjectStore(str(tmp_path), "http://localhost")
    with pytest.raises(ValueError):
        store.delete("../outside")
