import tempfile
import unittest
from pathlib import Path

from lib.extraction.debug_capture import (
    ELEMENT_SEPARATOR,
    OUTER_HTML_JS,
    TRUNCATION_MARKER,
    DebugCapture,
    FileDebugSink,
    truncate_html,
)

from tests.fakes import FakeDriver, RecordingDebugSink


class TruncateTests(unittest.TestCase):
    def test_short_html_is_unchanged(self):
        self.assertEqual(truncate_html("<div/>", 100), "<div/>")

    def test_long_html_is_cut_and_marked(self):
        self.assertEqual(truncate_html("x" * 20, 10), "x" * 10 + TRUNCATION_MARKER)

    def test_script_joins_with_element_separator(self):
        self.assertIn(ELEMENT_SEPARATOR.replace("\n", "\\n"), OUTER_HTML_JS)


class DebugCaptureTests(unittest.TestCase):
    def test_disabled_is_a_no_op(self):
        sink = RecordingDebugSink()
        driver = FakeDriver()
        self.assertFalse(DebugCapture(enabled=False, sink=sink).capture(driver, "debug-scrape-fail", "music-image-row"))
        self.assertEqual(sink.snapshots, [])
        self.assertEqual(driver.evaluations, [])

    def test_element_html_is_truncated(self):
        sink = RecordingDebugSink()
        driver = FakeDriver(on_evaluate=lambda d, script: "<row>" * 10)
        capture = DebugCapture(enabled=True, sink=sink, max_bytes=12, max_elements=8)

        self.assertTrue(capture.capture(driver, "debug-scrape-fail", "music-image-row"))

        self.assertEqual(driver.evaluations, [(OUTER_HTML_JS, ["music-image-row", 8])])
        label, html, shot = sink.snapshots[0]
        self.assertEqual(html, "<row><row><r" + TRUNCATION_MARKER)
        self.assertEqual(shot, b"\x89PNG")

    def test_falls_back_to_page_content(self):
        sink = RecordingDebugSink()
        driver = FakeDriver(html="<html>whole page</html>", on_evaluate=lambda d, script: "")
        DebugCapture(enabled=True, sink=sink).capture(driver, "debug-playlist-links", "music-vertical-item")
        self.assertEqual(sink.snapshots[0][1], "<html>whole page</html>")

    def test_screenshot_failure_still_saves_html(self):
        sink = RecordingDebugSink()
        driver = FakeDriver(html="<html/>")
        driver.screenshot_error = RuntimeError("Target closed")
        self.assertTrue(DebugCapture(enabled=True, sink=sink).capture(driver, "debug-scrape-fail"))
        self.assertEqual(sink.snapshots, [("debug-scrape-fail", "<html/>", None)])

    def test_sink_failure_is_swallowed(self):
        class BrokenSink:
            def save_snapshot(self, label, html_fragment, screenshot):
                raise OSError("disk full")

        with self.assertLogs("lib.extraction.debug_capture", level="WARNING"):
            self.assertFalse(DebugCapture(enabled=True, sink=BrokenSink()).capture(FakeDriver(), "x"))


class FileDebugSinkTests(unittest.TestCase):
    def test_writes_html_and_png(self):
        with tempfile.TemporaryDirectory() as tmp:
            sink = FileDebugSink(Path(tmp) / "debug")
            sink.save_snapshot("debug scrape/fail", "<html/>", b"\x89PNG")

            files = sorted(p.name for p in (Path(tmp) / "debug").iterdir())
            self.assertEqual(len(files), 2)
            self.assertTrue(all(name.startswith("debug-scrape-fail-") for name in files))
            self.assertEqual({Path(name).suffix for name in files}, {".html", ".png"})

    def test_empty_parts_are_not_written(self):
        with tempfile.TemporaryDirectory() as tmp:
            sink = FileDebugSink(tmp)
            sink.save_snapshot("label", "   ", None)
            self.assertEqual(list(Path(tmp).iterdir()), [])


if __name__ == "__main__":
    unittest.main()
