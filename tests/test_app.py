import unittest
from contextlib import contextmanager
from unittest import mock

from fastapi.testclient import TestClient

import app as app_module
from lib.cache_manager import get_playlist_cache
from lib.extraction.errors import BrowserLaunchError
from lib.extraction.models import PlaylistRecord, TrackRecord

PLAYLIST_URL = "https://music.amazon.com.au/my/playlists/Chill/B0PLAYLIST"

SNAPSHOT_HTML = """
<html><head><title>Uploaded Mix</title></head><body>
<music-image-row primary-text="Only Song" secondary-text-1="Someone"
    primary-href="/albums/B0ALBUM001?trackAsin=B0TRACK001"></music-image-row>
</body></html>
"""


@contextmanager
def fake_session(*args, **kwargs):
    yield object()


def record_with(*titles):
    tracks = tuple(
        TrackRecord(title=t, artist="Artist", playlist_position=i, confidence=1.0)
        for i, t in enumerate(titles, start=1)
    )
    return PlaylistRecord(name="Chill", url=PLAYLIST_URL, tracks=tracks, expected_count=len(titles))


class AppTests(unittest.TestCase):
    def setUp(self):
        get_playlist_cache().clear()
        self.client = TestClient(app_module.app)
        patcher = mock.patch.object(app_module, "browser_session", fake_session)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_health(self):
        res = self.client.get("/health")
        self.assertEqual(res.status_code, 200)
        self.assertTrue(res.json()["ok"])
        self.assertFalse(res.json()["scrape_busy"])

    def test_rejects_foreign_host(self):
        res = self.client.get("/api/playlist", params={"url": "https://example.com/playlists/x"})
        self.assertEqual(res.status_code, 422)
        self.assertIn("Unsupported URL host", res.json()["detail"])

    def test_playlist_is_scraped_then_cached(self):
        with mock.patch.object(app_module, "scrape_playlist", return_value=record_with("A", "B")) as scrape:
            first = self.client.get("/api/playlist", params={"url": PLAYLIST_URL})
            second = self.client.get("/api/playlist", params={"url": PLAYLIST_URL + "?ref=dm_sh"})

        self.assertEqual(first.status_code, 200)
        body = first.json()
        self.assertEqual(body["playlist_name"], "Chill")
        self.assertEqual([t["title"] for t in body["tracks"]], ["A", "B"])
        self.assertEqual(body["confidence"], 1.0)
        self.assertFalse(body["meta"]["cache_hit"])

        self.assertTrue(second.json()["meta"]["cache_hit"])
        self.assertEqual(scrape.call_count, 1)

    def test_refresh_bypasses_cache(self):
        with mock.patch.object(app_module, "scrape_playlist", return_value=record_with("A")) as scrape:
            self.client.get("/api/playlist", params={"url": PLAYLIST_URL})
            res = self.client.get("/api/playlist", params={"url": PLAYLIST_URL, "refresh": 1})
        self.assertFalse(res.json()["meta"]["cache_hit"])
        self.assertEqual(scrape.call_count, 2)

    def test_empty_playlist_is_not_cached(self):
        with mock.patch.object(app_module, "scrape_playlist", return_value=record_with()) as scrape:
            self.client.get("/api/playlist", params={"url": PLAYLIST_URL})
            self.client.get("/api/playlist", params={"url": PLAYLIST_URL})
        self.assertEqual(scrape.call_count, 2)

    def test_scrape_error_maps_to_502(self):
        error = BrowserLaunchError("Chromium failed to start", meta={"attempts": 2})
        with mock.patch.object(app_module, "scrape_playlist", side_effect=error):
            res = self.client.get("/api/playlist", params={"url": PLAYLIST_URL})
        self.assertEqual(res.status_code, 502)
        self.assertEqual(res.json()["detail"], {"error": "Chromium failed to start", "meta": {"attempts": 2}})

    def test_playlist_html(self):
        with mock.patch.object(app_module, "scrape_playlist", return_value=record_with("Song <One>")):
            res = self.client.get("/api/playlist.html", params={"url": PLAYLIST_URL})
        self.assertEqual(res.status_code, 200)
        self.assertIn("text/html", res.headers["content-type"])
        self.assertIn("Song &lt;One&gt;", res.text)

    def test_library(self):
        records = [record_with("A", "B"), record_with("C")]
        with mock.patch.object(app_module, "scrape_library", return_value=records) as scrape, \
                mock.patch.object(app_module, "build_enrichers", return_value=[]) as build, \
                mock.patch.object(app_module, "SqliteSink") as sqlite_sink:
            res = self.client.post("/api/library", json={"limit": 2})
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["total_tracks"], 3)
        self.assertEqual(scrape.call_args.kwargs["limit"], 2)
        build.assert_called_once_with(False)
        self.assertEqual(scrape.call_args.kwargs["enrichers"], [])
        sqlite_sink.return_value.close.assert_called_once()

    def test_replay_upload(self):
        res = self.client.post(
            "/api/replay",
            files={"file": ("page.html", SNAPSHOT_HTML.encode("utf-8"), "text/html")},
            data={"url": PLAYLIST_URL},
        )
        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertEqual(body["playlist_name"], "Uploaded Mix")
        self.assertEqual(body["playlist_url"], PLAYLIST_URL)
        self.assertEqual(body["tracks"][0]["external_id"], "B0TRACK001")
        self.assertEqual(body["meta"]["source"], "snapshot")

    def test_replay_rejects_empty_upload(self):
        res = self.client.post("/api/replay", files={"file": ("page.html", b"", "text/html")})
        self.assertEqual(res.status_code, 400)


if __name__ == "__main__":
    unittest.main()
