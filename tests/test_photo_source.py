import unittest
from datetime import datetime, timezone
from unittest import mock

import requests

from spinner import photoprism_api
from spinner.exceptions import PhotoSourceResponseError
from spinner.models import PhotoRef
from spinner.services import PhotoSourceClient


class FieldExtractionTests(unittest.TestCase):
    def test_id_priority(self):
        self.assertEqual("h", photoprism_api.extract_photo_id({"id": 1, "UID": "u", "Hash": "h"}))
        self.assertEqual("u", photoprism_api.extract_photo_id({"Hash": "", "UID": "u", "ID": 3}))
        self.assertEqual("3", photoprism_api.extract_photo_id({"ID": 3}))
        self.assertEqual("9", photoprism_api.extract_photo_id({"id": 9}))
        self.assertIsNone(photoprism_api.extract_photo_id({"Title": "x"}))

    def test_taken_priority(self):
        record = {"CreatedAt": "2020-01-01T00:00:00Z", "TakenAtLocal": "2019-05-05T10:00:00",
                  "TakenAt": "2019-05-05T09:00:00Z"}
        self.assertEqual(datetime(2019, 5, 5, 9, tzinfo=timezone.utc), photoprism_api.extract_taken(record))
        self.assertEqual(datetime(2018, 2, 3, tzinfo=timezone.utc),
                         photoprism_api.extract_taken({"TakenAt": None, "date": "2018-02-03T00:00:00Z"}))
        self.assertIsNone(photoprism_api.extract_taken({}))

    def test_response_shapes(self):
        self.assertEqual([{"Hash": "a"}], photoprism_api.extract_photo_list([{"Hash": "a"}, "junk", 4]))
        self.assertEqual([{"Hash": "b"}], photoprism_api.extract_photo_list({"Photos": [{"Hash": "b"}]}))
        self.assertEqual([{"Hash": "c"}], photoprism_api.extract_photo_list({"photos": [{"Hash": "c"}]}))
        self.assertEqual([], photoprism_api.extract_photo_list({"error": "nope"}))
        with self.assertRaises(PhotoSourceResponseError):
            photoprism_api.extract_photo_list("not a list")

    def test_refs_skip_records_without_id(self):
        photos = photoprism_api.to_photo_refs([{"Hash": "a"}, {"Title": "no id"}, {"UID": "b"}])
        self.assertEqual(["a", "b"], [p.id for p in photos])

    def test_sort_oldest_first_undated_last(self):
        old = PhotoRef("old", datetime(2010, 1, 1, tzinfo=timezone.utc))
        new = PhotoRef("new", datetime(2020, 1, 1, tzinfo=timezone.utc))
        undated1, undated2 = PhotoRef("u1"), PhotoRef("u2")
        ordered = photoprism_api.sort_by_capture(iter([undated1, new, undated2, old]))
        self.assertEqual(["old", "new", "u1", "u2"], [p.id for p in ordered])


class UrlTests(unittest.TestCase):
    def test_host_normalisation(self):
        for host in ("http://pp:2342", "http://pp:2342/", "http://pp:2342/api/v1", "http://pp:2342/api/"):
            self.assertEqual("http://pp:2342/api/v1", photoprism_api.build_api_base(host))

    def test_photos_url(self):
        url = photoprism_api.photos_url("http://pp", count=1000, album="at 1", person=None)
        self.assertEqual("http://pp/api/v1/photos?public=true&count=1000&album=at+1", url)

    def test_thumbnail_url(self):
        self.assertEqual("http://pp/api/v1/t/abc/public/fit_1920", photoprism_api.thumbnail_url("http://pp", "abc"))
        self.assertEqual("https://cdn/x.jpg", photoprism_api.thumbnail_url("http://pp", "https://cdn/x.jpg"))
        self.assertEqual("", photoprism_api.thumbnail_url("http://pp", None))


def response(status=200, body=None, invalid_json=False):
    resp = mock.Mock(spec=requests.Response)
    resp.status_code = status
    resp.ok = status < 400
    if invalid_json:
        resp.json.side_effect = ValueError("Expecting value")
    else:
        resp.json.return_value = body
    return resp


class PhotoSourceClientTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session = mock.Mock(spec=requests.Session)
        self.session.headers = {}
        self.client = PhotoSourceClient("http://pp:2342/api/v1/", session=self.session)

    def test_fetch_album_sorts_and_builds_query(self):
        self.session.get.return_value = response(body=[
            {"Hash": "late", "TakenAt": "2021-01-01T00:00:00Z"},
            {"Hash": "nodate"},
            {"Hash": "early", "TakenAt": "2019-01-01T00:00:00Z"},
        ])
        photos = self.client.fetch_album("at1")
        self.assertEqual(["early", "late", "nodate"], [p.id for p in photos])
        url = self.session.get.call_args[0][0]
        self.assertEqual("http://pp:2342/api/v1/photos?public=true&count=1000&album=at1", url)
        self.assertEqual(15, self.session.get.call_args[1]["timeout"])

    def test_errors_become_empty_results(self):
        failures = [
            response(status=500),
            response(invalid_json=True),
            response(body="unexpected"),
            requests.exceptions.ConnectionError("refused"),
        ]
        for failure in failures:
            if isinstance(failure, Exception):
                self.session.get.side_effect = failure
            else:
                self.session.get.side_effect = None
                self.session.get.return_value = failure
            with self.assertLogs("spinner.services.photo_service", level="ERROR"):
                self.assertEqual([], self.client.fetch_album("at1"))

    def test_searches(self):
        self.session.get.return_value = response(body={"Photos": [{"UID": "p1"}]})
        self.assertEqual(["p1"], [p.id for p in self.client.search_person("Maddie")])
        self.assertIn("count=500&person=Maddie", self.session.get.call_args[0][0])

        self.client.search_month(2021, 4)
        self.assertIn("count=500&year=2021&month=4", self.session.get.call_args[0][0])

        self.client.search_query("taken:2025-09-19")
        self.assertIn("q=taken%3A2025-09-19", self.session.get.call_args[0][0])

    def test_fetch_albums(self):
        self.session.get.return_value = response(body=[{"UID": "a"}, "junk"])
        self.assertEqual([{"UID": "a"}], self.client.fetch_albums(50))
        self.assertEqual("http://pp:2342/api/v1/albums?count=50", self.session.get.call_args[0][0])

        self.session.get.return_value = response(body={"error": "denied"})
        with self.assertLogs("spinner.services.photo_service", level="ERROR"):
            self.assertEqual([], self.client.fetch_albums())

    def test_photo_url(self):
        self.assertEqual("http://pp:2342/api/v1/t/abc/public/fit_1920", self.client.photo_url("abc"))


if __name__ == "__main__":
    unittest.main()
