import unittest

from homeboard.errors import MediaNotFoundError, PartialCascadeFailure, TransportError, UploadError
from homeboard.media import (
    IncomingFile,
    delete_media_files,
    stream_media,
    upload_media_files,
)
from homeboard.storage import InMemoryMediaGateway
from homeboard.tests.helpers import make_media


def _files(*names: str) -> list[IncomingFile]:
    return [IncomingFile(data=name.encode(), file_name=name, mime_type="image/png") for name in names]


class UploadMediaFilesTests(unittest.TestCase):
    def setUp(self):
        self.gateway = InMemoryMediaGateway()

    def test_returns_references_in_submission_order(self):
        names = [f"photo-{i}.png" for i in range(8)]
        uploaded = upload_media_files(self.gateway, _files(*names))

        self.assertEqual([media.file_name for media in uploaded], names)
        self.assertTrue(all(media.mime_type == "image/png" for media in uploaded))
        for media in uploaded:
            stored, name, _ = self.gateway.stored_objects[media.google_drive_id]
            self.assertEqual(name, media.file_name)
            self.assertEqual(stored, media.file_name.encode())

    def test_empty_batch_makes_no_calls(self):
        self.assertEqual(upload_media_files(self.gateway, []), [])
        self.assertEqual(self.gateway.upload_calls, [])

    def test_single_failure_fails_batch_without_rollback(self):
        self.gateway.fail_uploads_for.add("b.png")
        with self.assertRaises(UploadError) as ctx:
            upload_media_files(self.gateway, _files("a.png", "b.png", "c.png"))

        self.assertEqual(ctx.exception.file_name, "b.png")
        # Every upload was attempted and the successful ones stay in storage.
        self.assertCountEqual(self.gateway.upload_calls, ["a.png", "b.png", "c.png"])
        self.assertEqual(len(self.gateway.stored_objects), 2)

    def test_unexpected_error_is_wrapped(self):
        class Broken(InMemoryMediaGateway):
            def upload(self, data, file_name, mime_type):
                raise RuntimeError("socket closed")

        with self.assertRaises(UploadError) as ctx:
            upload_media_files(Broken(), _files("a.png"))
        self.assertEqual(ctx.exception.file_name, "a.png")


class DeleteMediaFilesTests(unittest.TestCase):
    def setUp(self):
        self.gateway = InMemoryMediaGateway()
        self.ids = [self.gateway.upload(b"x", f"{i}.jpg", "image/jpeg") for i in range(3)]

    def test_deletes_every_file(self):
        result = delete_media_files(self.gateway, make_media(*self.ids))
        self.assertCountEqual(result.deleted, self.ids)
        self.assertEqual(result.failed, [])
        self.assertIsNone(result.as_failure("home"))
        self.assertEqual(self.gateway.stored_objects, {})

    def test_failures_and_missing_files_are_tolerated(self):
        self.gateway.fail_deletes_for.add(self.ids[0])
        media = make_media(*self.ids, "already-gone")

        result = delete_media_files(self.gateway, media)

        self.assertEqual(result.failed, [self.ids[0]])
        self.assertEqual(result.missing, ["already-gone"])
        self.assertCountEqual(result.deleted, self.ids[1:])
        self.assertEqual(result.attempted, 4)
        self.assertEqual(len(self.gateway.delete_calls), 4)

        failure = result.as_failure("home-1")
        self.assertIsInstance(failure, PartialCascadeFailure)
        self.assertEqual(failure.failed_ids, [self.ids[0]])

    def test_no_media_makes_no_calls(self):
        result = delete_media_files(self.gateway, [])
        self.assertEqual(result.attempted, 0)
        self.assertEqual(self.gateway.delete_calls, [])


class StreamMediaTests(unittest.TestCase):
    def setUp(self):
        self.gateway = InMemoryMediaGateway(chunk_size=3)
        self.file_id = self.gateway.upload(b"abcdefghij", "clip.mp4", "video/mp4")

    def test_streams_all_bytes_in_chunks(self):
        chunks = list(stream_media(self.gateway, self.file_id))
        self.assertEqual(chunks, [b"abc", b"def", b"ghi", b"j"])

    def test_unknown_id_fails_before_streaming(self):
        with self.assertRaises(MediaNotFoundError):
            stream_media(self.gateway, "missing")

    def test_mid_stream_error_surfaces_after_bytes_were_sent(self):
        self.gateway.break_streams_after[self.file_id] = 2
        received = []
        with self.assertRaises(TransportError):
            for chunk in stream_media(self.gateway, self.file_id):
                received.append(chunk)
        self.assertEqual(received, [b"abc", b"def"])


if __name__ == "__main__":
    unittest.main()
