import unittest

from fastapi.testclient import TestClient

from homeboard.app import create_app
from homeboard.config import Settings, get_settings
from homeboard.db import InMemoryListingStore
from homeboard.dependencies import get_listing_store, get_media_gateway
from homeboard.storage import InMemoryMediaGateway
from homeboard.tests.helpers import ticking_clock

HOME = {
    "title": "Lakeview Cottage",
    "address": "12 Shore Road",
    "price": 450000,
    "size": "2 bed, 1 bath",
}


class BackendApiTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryListingStore(clock=ticking_clock())
        self.gateway = InMemoryMediaGateway()
        self.settings = Settings(
            public_base_url="http://board.test", max_upload_bytes=1024
        )
        self.app = app = create_app()
        app.dependency_overrides[get_listing_store] = lambda: self.store
        app.dependency_overrides[get_media_gateway] = lambda: self.gateway
        app.dependency_overrides[get_settings] = lambda: self.settings
        self.client = TestClient(app)

    def _create(self, **overrides):
        response = self.client.post("/api/homes", json={**HOME, **overrides})
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()

    def _upload(self, *files):
        payload = [("files", (name, data, mime)) for name, data, mime in files]
        return self.client.post("/api/upload", files=payload)

    def test_root_and_health(self):
        self.assertEqual(self.client.get("/").text, "HomeBoard API is running...")
        self.assertEqual(self.client.get("/api/health").json(), {"status": "ok"})

    def test_create_then_get_round_trips_fields(self):
        extra = {
            "deposit": 50000,
            "listingUrl": "https://listings.test/1",
            "googleMapsUrl": "https://maps.test/?q=1",
            "notes": "South facing",
        }
        created = self._create(**extra)

        fetched = self.client.get(f"/api/homes/{created['_id']}")
        self.assertEqual(fetched.status_code, 200)
        home = fetched.json()
        for key, value in {**HOME, **extra}.items():
            self.assertEqual(home[key], value)
        self.assertEqual(home["_id"], created["_id"])
        self.assertEqual(home["createdAt"], created["createdAt"])
        self.assertEqual(home["mediaFiles"], [])
        self.assertIsNone(home["image"])

    def test_list_is_newest_first(self):
        for title in ("one", "two", "three"):
            self._create(title=title)
        titles = [home["title"] for home in self.client.get("/api/homes").json()]
        self.assertEqual(titles, ["three", "two", "one"])

    def test_invalid_payloads_are_rejected(self):
        self.assertEqual(
            self.client.post("/api/homes", json={**HOME, "price": -5}).status_code, 422
        )
        missing_title = {k: v for k, v in HOME.items() if k != "title"}
        self.assertEqual(self.client.post("/api/homes", json=missing_title).status_code, 422)
        self.assertEqual(
            self.client.post("/api/homes", json={**HOME, "size": "  "}).status_code, 422
        )
        for body in (
            '{"title": "a", "address": "b", "price": Infinity, "size": "c"}',
            '{"title": "a", "address": "b", "price": 1, "deposit": NaN, "size": "c"}',
        ):
            response = self.client.post(
                "/api/homes", content=body, headers={"Content-Type": "application/json"}
            )
            self.assertEqual(response.status_code, 422, response.text)
        self.assertEqual(self.client.get("/api/homes").json(), [])

    def test_unknown_or_malformed_id_is_not_found(self):
        self.assertEqual(self.client.get("/api/homes/nope").status_code, 404)
        self.assertEqual(self.client.get(f"/api/homes/{'a' * 32}").status_code, 404)

    def test_upload_preserves_order_and_metadata(self):
        files = [
            (f"photo-{i}.jpg", f"jpeg-{i}".encode(), "image/jpeg") for i in range(4)
        ] + [("tour.mp4", b"mp4", "video/mp4")]
        response = self._upload(*files)

        self.assertEqual(response.status_code, 200, response.text)
        media = response.json()
        self.assertEqual(len(media), 5)
        self.assertEqual([m["fileName"] for m in media], [f[0] for f in files])
        self.assertEqual([m["mimeType"] for m in media], [f[2] for f in files])
        for item, (_, data, _) in zip(media, files):
            self.assertEqual(self.gateway.stored_objects[item["googleDriveId"]][0], data)

    def test_upload_without_files_is_bad_request(self):
        response = self.client.post("/api/upload", data={"other": "x"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.gateway.upload_calls, [])

    def test_upload_rejects_oversized_file(self):
        response = self._upload(("big.jpg", b"x" * 2048, "image/jpeg"))
        self.assertEqual(response.status_code, 413)
        self.assertEqual(self.gateway.upload_calls, [])

    def test_upload_failure_fails_whole_request(self):
        self.gateway.fail_uploads_for.add("bad.jpg")
        response = self._upload(
            ("good.jpg", b"1", "image/jpeg"), ("bad.jpg", b"2", "image/jpeg")
        )
        self.assertEqual(response.status_code, 500)
        # The successful upload is not rolled back.
        self.assertEqual(len(self.gateway.stored_objects), 1)

    def test_image_points_at_first_uploaded_file(self):
        media = self._upload(
            ("front.jpg", b"front", "image/jpeg"), ("back.jpg", b"back", "image/jpeg")
        ).json()
        created = self._create(mediaFiles=media)

        first_id = media[0]["googleDriveId"]
        self.assertEqual(created["image"], f"http://board.test/api/files/{first_id}")
        fetched = self.client.get(f"/api/homes/{created['_id']}").json()
        self.assertEqual(fetched["image"], created["image"])
        self.assertEqual(fetched["mediaFiles"], media)

    def test_file_is_streamed_with_metadata_headers(self):
        file_id = self.gateway.upload(b"0123456789", "front.jpg", "image/jpeg")
        response = self.client.get(f"/api/files/{file_id}")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, b"0123456789")
        self.assertEqual(response.headers["content-type"], "image/jpeg")
        self.assertEqual(
            response.headers["content-disposition"], 'inline; filename="front.jpg"'
        )

    def test_control_characters_are_dropped_from_file_name_header(self):
        file_id = self.gateway.upload(b"abc", "a\r\nb\x00.jpg", "image/jpeg")
        response = self.client.get(f"/api/files/{file_id}")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.headers["content-disposition"], 'inline; filename="ab.jpg"'
        )

    def test_broken_upstream_truncates_the_transfer(self):
        file_id = self.gateway.upload(b"0123456789", "tour.mp4", "video/mp4")
        self.gateway.break_streams_after[file_id] = 1
        client = TestClient(self.app, raise_server_exceptions=False)

        response = client.get(f"/api/files/{file_id}")

        # Headers were already sent, so the status stays 200 and the body is cut short.
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.headers["content-type"], "video/mp4")
        self.assertEqual(response.content, b"0123")

    def test_unknown_file_is_not_found(self):
        response = self.client.get("/api/files/does-not-exist")
        self.assertEqual(response.status_code, 404)

    def test_delete_cascades_best_effort(self):
        media = self._upload(
            ("a.jpg", b"a", "image/jpeg"),
            ("b.jpg", b"b", "image/jpeg"),
            ("c.jpg", b"c", "image/jpeg"),
        ).json()
        home = self._create(mediaFiles=media)
        failing_id = media[1]["googleDriveId"]
        self.gateway.fail_deletes_for.add(failing_id)

        response = self.client.delete(f"/api/homes/{home['_id']}")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"msg": "Home removed"})
        self.assertCountEqual(self.gateway.delete_calls, [m["googleDriveId"] for m in media])
        self.assertEqual(list(self.gateway.stored_objects), [failing_id])
        self.assertEqual(self.client.get(f"/api/homes/{home['_id']}").status_code, 404)

    def test_second_delete_is_not_found_and_repeats_nothing(self):
        media = self._upload(("a.jpg", b"a", "image/jpeg")).json()
        home = self._create(mediaFiles=media)

        self.assertEqual(self.client.delete(f"/api/homes/{home['_id']}").status_code, 200)
        calls_after_first = list(self.gateway.delete_calls)
        self.assertEqual(self.client.delete(f"/api/homes/{home['_id']}").status_code, 404)
        self.assertEqual(self.gateway.delete_calls, calls_after_first)

    def test_delete_unknown_home_touches_no_files(self):
        response = self.client.delete(f"/api/homes/{'b' * 32}")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(self.gateway.delete_calls, [])


if __name__ == "__main__":
    unittest.main()
