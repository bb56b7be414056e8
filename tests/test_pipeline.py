import unittest
from unittest import mock

from lib.extraction.debug_capture import DebugCapture
from lib.extraction.driver import SCROLL_PAGE_JS
from lib.extraction.models import PlaylistLink, TrackRecord
from lib.extraction.pipeline import FALLBACK_CONFIDENCE, PlaylistExtractor
from lib.extraction.readiness import ContentReadinessWaiter

from tests.fakes import FakeClock, FakeDriver, FakeElement, RecordingDebugSink, song_row

BASE = "https://music.amazon.com.au"
PLAYLIST_URL = f"{BASE}/my/playlists/B0PLAYLIST"


class StubKnownTitles:
    def __init__(self, by_id):
        self.by_id = by_id

    def title_for_id(self, track_id):
        return self.by_id.get(track_id)


def make_extractor(driver, **kwargs):
    clock = FakeClock()
    sink = RecordingDebugSink()
    sleeps = []
    extractor = PlaylistExtractor(
        driver,
        waiter=ContentReadinessWaiter(
            timeout_ms=1000, poll_interval_ms=250, poll_ceiling_ms=2000, clock=clock, sleep=clock.sleep
        ),
        debug=DebugCapture(enabled=True, sink=sink),
        base_url=BASE,
        sleep=sleeps.append,
        **kwargs,
    )
    return extractor, sink, sleeps


class ScrapePlaylistTests(unittest.TestCase):
    def _rows(self):
        return [
            song_row("Song One", "Artist A", "Album X", "/albums/B0ALBUM001?trackAsin=B0TRACK001", "3:45"),
            song_row(),
            song_row("Song Three (feat. Guest)", "Artist B", "Album Y", "/albums/B0ALBUM003?trackAsin=B0TRACK003", "4:01"),
        ]

    def test_end_to_end(self):
        driver = FakeDriver({"music-image-row": self._rows()}, title="Chill Mix", page_text="Chill Mix\n2 songs • 8 min")
        extractor, sink, _ = make_extractor(driver)

        record = extractor.scrape_playlist(PLAYLIST_URL)

        self.assertEqual(record.name, "Chill Mix")
        self.assertEqual(record.url, PLAYLIST_URL)
        self.assertEqual(record.expected_count, 2)
        self.assertEqual([t.playlist_position for t in record.tracks], [1, 3])
        self.assertEqual([t.title for t in record.tracks], ["Song One", "Song Three"])

        first = record.tracks[0]
        self.assertEqual(first.artist, "Artist A")
        self.assertEqual(first.album, "Album X")
        self.assertEqual(first.duration, "3:45")
        self.assertEqual(first.url, f"{BASE}/albums/B0ALBUM001?trackAsin=B0TRACK001")
        self.assertEqual(first.external_id, "B0TRACK001")
        self.assertEqual(first.confidence, 1.0)
        self.assertIsNone(first.explicit)
        self.assertEqual(first.source_details["title"], {"@primary-text": "Song One"})
        self.assertTrue(first.field_validation_status["title"])
        self.assertNotIn("genre", first.field_validation_status)

        self.assertEqual(driver.navigations, [PLAYLIST_URL])
        self.assertGreaterEqual(driver.idle_waits, 1)
        self.assertEqual(sink.snapshots, [])

    def test_fewer_tracks_than_page_reports_is_logged(self):
        driver = FakeDriver({"music-image-row": self._rows()}, title="Chill Mix", page_text="5 songs")
        extractor, _, _ = make_extractor(driver)
        with self.assertLogs("lib.extraction.pipeline", level="WARNING") as logs:
            record = extractor.scrape_playlist(PLAYLIST_URL)
        self.assertEqual(len(record.tracks), 2)
        self.assertTrue(any("page reports 5" in line for line in logs.output))

    def test_no_rows_captures_debug_snapshot(self):
        driver = FakeDriver(title="", html="<html><body>blocked</body></html>")
        extractor, sink, _ = make_extractor(driver)

        record = extractor.scrape_playlist(PLAYLIST_URL)

        self.assertEqual(record.tracks, ())
        self.assertEqual(record.name, PLAYLIST_URL)
        self.assertEqual(len(sink.snapshots), 1)
        label, html, shot = sink.snapshots[0]
        self.assertEqual(label, "debug-scrape-fail")
        self.assertIn("blocked", html)
        self.assertEqual(shot, b"\x89PNG")

    def test_failing_row_is_skipped_and_positions_kept(self):
        driver = FakeDriver()
        extractor, _, _ = make_extractor(driver)
        good = TrackRecord(title="Kept", playlist_position=2)
        with mock.patch.object(extractor, "extract_track", side_effect=[RuntimeError("detached"), good]):
            tracks = extractor.extract_tracks([FakeElement(), FakeElement()])
        self.assertEqual(tracks, [good])


class ExtractTrackFallbackTests(unittest.TestCase):
    def test_aria_label_fallback(self):
        row = FakeElement(attrs={
            "aria-label": "Song Z, Artist Z, Album Z",
            "primary-href": "/albums/B0ALBUMZZZ?trackAsin=B0TRACKZZZ",
        })
        extractor, _, _ = make_extractor(FakeDriver())

        track = extractor.extract_track(row, 7)

        self.assertEqual((track.title, track.artist, track.album), ("Song Z", "Artist Z", "Album Z"))
        self.assertEqual(track.playlist_position, 7)
        self.assertEqual(track.external_id, "B0TRACKZZZ")
        self.assertEqual(track.source_details["title"], {"aria-label": "Song Z"})
        self.assertFalse(track.field_validation_status["title"])
        # title, artist, album at fallback confidence; duration missing
        self.assertAlmostEqual(track.confidence, FALLBACK_CONFIDENCE * 3 / 4)

    def test_known_title_fallback(self):
        row = FakeElement(attrs={"primary-href": "/albums/B0ALBUM009?trackAsin=B0KNOWN009"})
        known = StubKnownTitles({"B0KNOWN009": ("Known Song", "Known Artist")})
        extractor, _, _ = make_extractor(FakeDriver(), known_titles=known)

        track = extractor.extract_track(row, 1)

        self.assertEqual(track.title, "Known Song")
        self.assertEqual(track.artist, "Known Artist")
        self.assertEqual(track.source_details["title"], {"known-titles": "Known Song"})

    def test_artist_from_artist_link(self):
        link = FakeElement(attrs={"href": "/artists/B000QJO1XG/daft-punk"})
        row = FakeElement(attrs={"primary-text": "Solo"}, children={"a[href*='/artists/']": [link]})
        extractor, _, _ = make_extractor(FakeDriver())

        track = extractor.extract_track(row, 1)

        self.assertEqual(track.artist, "Daft Punk")
        self.assertEqual(track.source_details["artist"], {"artist-link": "Daft Punk"})

    def test_row_without_title_is_dropped(self):
        extractor, _, _ = make_extractor(FakeDriver())
        self.assertIsNone(extractor.extract_track(song_row(artist="Only Artist"), 1))

    def test_explicit_and_track_number(self):
        row = song_row("Song", "Artist", "Album", "/albums/B0ALBUM001")
        row.children["span.index"] = [FakeElement(text="12.")]
        row.children[".explicit"] = [FakeElement(text="E")]
        extractor, _, _ = make_extractor(FakeDriver())

        track = extractor.extract_track(row, 1)

        self.assertEqual(track.track_number, 12)
        self.assertTrue(track.explicit)


class BrowserStepTests(unittest.TestCase):
    def test_scroll_stops_when_row_count_is_stable(self):
        rows = [song_row("Song 1")]

        def grow(driver, script):
            if script == SCROLL_PAGE_JS and len(rows) < 5:
                rows.append(song_row(f"Song {len(rows) + 1}"))

        driver = FakeDriver({"music-image-row": rows}, on_evaluate=grow)
        extractor, _, _ = make_extractor(driver, scroll_max_attempts=10)

        self.assertEqual(extractor.scroll_to_load(), 5)
        self.assertEqual(len(driver.evaluations), 5)

    def test_scroll_respects_attempt_ceiling(self):
        rows = []

        def grow(driver, script):
            rows.append(song_row("More"))

        driver = FakeDriver({"music-image-row": rows}, on_evaluate=grow)
        extractor, _, _ = make_extractor(driver, scroll_max_attempts=3)

        self.assertEqual(extractor.scroll_to_load(), 3)
        self.assertEqual(len(driver.evaluations), 3)

    def test_navigation_is_retried(self):
        driver = FakeDriver(navigate_failures=2)
        extractor, _, sleeps = make_extractor(driver)
        with self.assertLogs("lib.extraction.retry", level="WARNING"):
            self.assertTrue(extractor.navigate(PLAYLIST_URL))
        self.assertEqual(len(driver.navigations), 3)
        self.assertEqual(sleeps, [2, 4])

    def test_navigation_exhaustion_returns_false(self):
        driver = FakeDriver(navigate_failures=5)
        extractor, _, _ = make_extractor(driver)
        with self.assertLogs("lib.extraction.pipeline", level="ERROR"):
            self.assertFalse(extractor.navigate(PLAYLIST_URL))
        self.assertEqual(len(driver.navigations), 3)


class LibraryTests(unittest.TestCase):
    def test_playlist_links_are_filtered_and_deduplicated(self):
        tiles = [
            FakeElement(attrs={"primary-text": "Road Trip", "primary-href": "/my/playlists/abc"}),
            FakeElement(attrs={"primary-text": "Road Trip again", "primary-href": "/my/playlists/abc"}),
            FakeElement(attrs={"primary-text": "An Album", "primary-href": "/albums/B0ALBUM001"}),
            FakeElement(attrs={"primary-href": "/user-playlists/xyz"}),
            FakeElement(
                text="Late Night\n12 songs",
                children={"a[href]": [FakeElement(attrs={"href": "/playlists/late"})]},
            ),
        ]
        driver = FakeDriver({"music-vertical-item": tiles})
        extractor, sink, _ = make_extractor(driver)

        links = extractor.scrape_playlist_links()

        self.assertEqual(links, [
            PlaylistLink(name="Road Trip", url=f"{BASE}/my/playlists/abc"),
            PlaylistLink(name="(unknown)", url=f"{BASE}/user-playlists/xyz"),
            PlaylistLink(name="Late Night", url=f"{BASE}/playlists/late"),
        ])
        self.assertEqual(sink.snapshots, [])

    def test_no_links_captures_debug_snapshot(self):
        extractor, sink, _ = make_extractor(FakeDriver())
        with self.assertLogs("lib.extraction.pipeline", level="ERROR"):
            self.assertEqual(extractor.scrape_playlist_links(), [])
        self.assertEqual(sink.snapshots[0][0], "debug-playlist-links")

    def test_go_to_library_playlists(self):
        library = FakeElement(text="Library")
        tab = FakeElement(text="Playlists")
        driver = FakeDriver({
            "[aria-label='Library']": [library],
            "music-pill-item:has-text('Playlists')": [tab],
            "music-vertical-item": [FakeElement()],
        })
        extractor, _, _ = make_extractor(driver, navigation_pause_ms=1000)

        self.assertTrue(extractor.go_to_library_playlists())
        self.assertEqual((library.clicks, tab.clicks), (1, 1))
        self.assertIn(1000, driver.pauses)

    def test_playlists_tab_found_by_text_scan(self):
        button = FakeElement(text="Your Playlists")
        driver = FakeDriver({"button": [FakeElement(text="Home"), button]})
        extractor, _, _ = make_extractor(driver)

        self.assertTrue(extractor.go_to_library_playlists())
        self.assertEqual(button.clicks, 1)

    def test_playlists_tab_missing(self):
        extractor, sink, _ = make_extractor(FakeDriver())
        with self.assertLogs("lib.extraction.pipeline", level="ERROR"):
            self.assertFalse(extractor.go_to_library_playlists())
        self.assertEqual(sink.snapshots[0][0], "debug-playlists-tab")


if __name__ == "__main__":
    unittest.main()
