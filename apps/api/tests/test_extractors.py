"""Extractor adapter tests against stand-in tool executables."""

from __future__ import annotations

from pathlib import Path
import sys
import tempfile
import textwrap
import unittest

from reelfetch.adapters.extractors import ExtractionError, InstaloaderExtractor, YtDlpExtractor
from reelfetch.adapters.extractors.artifacts import format_megabytes, quality_label
from reelfetch.adapters.extractors.instaloader import INSTALOADER_SCRIPT, parse_result_line
from reelfetch.repositories.memory import InMemoryProgressStore
from reelfetch.schemas.job import DownloadStatus
from reelfetch.services.downloads import DownloadService
from reelfetch.services.retention import RetentionSweeper

REEL_URL = "https://www.instagram.com/reel/Ab_C-12/"

# Stand-in for the yt-dlp binary. argv[1] selects the behavior; the remaining
# arguments are what the adapter passes to the real tool.
FAKE_YTDLP = textwrap.dedent(
    """
    import json
    import os
    import sys
    import time

    mode, args = sys.argv[1], sys.argv[2:]
    assert args[-2] == "--", args
    template = args[args.index("--output") + 1]
    output_dir = os.path.dirname(template)
    stem = os.path.join(output_dir, "Sample Clip")

    if mode == "sleep":
        time.sleep(30)
    if mode == "flood":
        sys.stdout.write("x" * (2 * 1024 * 1024))
        sys.stdout.flush()
        time.sleep(30)
    if mode == "fail":
        sys.stderr.write("ERROR: login required\\n")
        sys.exit(1)

    print("[info] Ab_C-12: Downloading webpage", flush=True)
    print("[download]  50.0% of 1.50MiB at 1.00MiB/s ETA 00:01", flush=True)
    print("[download] 100.0% of 1.50MiB in 00:01", flush=True)

    if mode == "empty":
        open(stem + ".mp4", "wb").close()
    elif mode == "ok":
        with open(stem + ".mp4", "wb") as handle:
            handle.write(b"v" * (1536 * 1024))
        with open(stem + ".jpg", "wb") as handle:
            handle.write(b"thumb")
        with open(stem + ".info.json", "w") as handle:
            json.dump({"title": "Sample Clip", "uploader": "someone", "duration": 12.5, "height": 1080}, handle)
    elif mode == "badmeta":
        with open(stem + ".mp4", "wb") as handle:
            handle.write(b"v" * 10)
        with open(stem + ".info.json", "w") as handle:
            handle.write("{not json")
    """
)

# Stand-in for the child interpreter: receives "-c <script> <shortcode> <dir>".
FAKE_INSTALOADER = textwrap.dedent(
    """
    import json
    import os
    import sys

    mode, flag, script, shortcode, output_dir = sys.argv[1:6]
    assert flag == "-c"

    print("Downloading post...")
    if mode == "ok":
        with open(os.path.join(output_dir, shortcode + ".mp4"), "wb") as handle:
            handle.write(b"v" * 2048)
        with open(os.path.join(output_dir, shortcode + ".jpg"), "wb") as handle:
            handle.write(b"thumb")
        print(json.dumps({
            "success": True,
            "video_path": os.path.join(output_dir, shortcode + ".mp4"),
            "title": "Caption text",
            "uploader": "owner",
        }))
    elif mode == "error":
        print(json.dumps({"success": False, "error": "Login required"}))
    elif mode == "garbage":
        print("Traceback (most recent call last):")
    elif mode == "outside":
        print(json.dumps({"success": True, "video_path": os.path.abspath(__file__)}))
    elif mode == "nul":
        print(json.dumps({"success": True, "video_path": os.path.join(output_dir, "clip\\u0000.mp4")}))
    elif mode == "crash":
        with open(os.path.join(output_dir, shortcode + ".mp4"), "wb") as handle:
            handle.write(b"v")
        print(json.dumps({"success": True, "video_path": os.path.join(output_dir, shortcode + ".mp4")}))
        sys.exit(3)
    """
)


class _ToolCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        base = Path(self._tmp.name)
        self.output_root = base / "downloads"
        self.output_root.mkdir()
        self.ytdlp_script = base / "fake_ytdlp.py"
        self.ytdlp_script.write_text(FAKE_YTDLP)
        self.instaloader_script = base / "fake_instaloader.py"
        self.instaloader_script.write_text(FAKE_INSTALOADER)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _ytdlp(self, mode: str, *, timeout_seconds: float = 20.0) -> YtDlpExtractor:
        return YtDlpExtractor(
            output_root=self.output_root,
            command=[sys.executable, str(self.ytdlp_script), mode],
            timeout_seconds=timeout_seconds,
            user_agent="test-agent",
            referer="https://www.instagram.com/",
        )

    def _instaloader(self, mode: str) -> InstaloaderExtractor:
        return InstaloaderExtractor(
            output_root=self.output_root,
            command=[sys.executable, str(self.instaloader_script), mode],
            timeout_seconds=20.0,
        )


class YtDlpExtractorTests(_ToolCase):
    async def test_successful_run_builds_artifact_from_sidecars(self) -> None:
        lines: list[str] = []

        result = await self._ytdlp("ok").extract(url=REEL_URL, job_id="job-1", on_output=lines.append)

        self.assertTrue(result.output_dir.name.startswith("ytdlp_"))
        self.assertEqual(result.output_dir.parent, self.output_root)
        artifact = result.artifact
        self.assertEqual(artifact.video_url, f"/download/Sample%20Clip.mp4?dir={result.output_dir.name}")
        self.assertEqual(artifact.thumbnail_url, f"/download/Sample%20Clip.jpg?dir={result.output_dir.name}")
        self.assertEqual(artifact.title, "Sample Clip")
        self.assertEqual(artifact.uploader, "someone")
        self.assertEqual(artifact.duration, 12.5)
        self.assertEqual(artifact.quality, "1080p")
        self.assertEqual(artifact.file_size, "1.5 MB")
        self.assertIn("[download]  50.0% of 1.50MiB at 1.00MiB/s ETA 00:01", lines)

    async def test_unreadable_metadata_falls_back_to_defaults(self) -> None:
        result = await self._ytdlp("badmeta").extract(url=REEL_URL, job_id="job-1")

        self.assertEqual(result.artifact.title, "Instagram Reel")
        self.assertEqual(result.artifact.uploader, "Unknown")
        self.assertEqual(result.artifact.quality, "HD")
        self.assertIsNone(result.artifact.thumbnail_url)

    async def test_non_zero_exit_fails_and_removes_directory(self) -> None:
        with self.assertRaises(ExtractionError) as context:
            await self._ytdlp("fail").extract(url=REEL_URL, job_id="job-1")

        self.assertEqual(context.exception.extractor, "yt-dlp")
        self.assertEqual(str(context.exception), "Download failed")
        self.assertEqual(list(self.output_root.iterdir()), [])

    async def test_zero_byte_video_is_a_failure(self) -> None:
        with self.assertRaises(ExtractionError) as context:
            await self._ytdlp("empty").extract(url=REEL_URL, job_id="job-1")

        self.assertIn("empty", str(context.exception))
        self.assertEqual(list(self.output_root.iterdir()), [])

    async def test_missing_video_is_a_failure(self) -> None:
        with self.assertRaises(ExtractionError) as context:
            await self._ytdlp("novideo").extract(url=REEL_URL, job_id="job-1")

        self.assertEqual(str(context.exception), "No video file found")

    async def test_timeout_kills_tool_and_fails(self) -> None:
        with self.assertRaises(ExtractionError) as context:
            await self._ytdlp("sleep", timeout_seconds=1.0).extract(url=REEL_URL, job_id="job-1")

        self.assertIn("timed out", str(context.exception))
        self.assertEqual(list(self.output_root.iterdir()), [])

    async def test_over_long_output_line_kills_tool_and_fails(self) -> None:
        with self.assertLogs("reelfetch.adapters.extractors.base", level="WARNING"):
            with self.assertRaises(ExtractionError) as context:
                await self._ytdlp("flood").extract(url=REEL_URL, job_id="job-1")

        self.assertEqual(str(context.exception), "yt-dlp output could not be read")
        self.assertEqual(list(self.output_root.iterdir()), [])

    async def test_missing_binary_is_a_failure(self) -> None:
        extractor = YtDlpExtractor(
            output_root=self.output_root,
            command=[str(self.output_root / "no-such-yt-dlp")],
            user_agent="test-agent",
            referer="https://www.instagram.com/",
        )

        with self.assertRaises(ExtractionError) as context:
            await extractor.extract(url=REEL_URL, job_id="job-1")

        self.assertEqual(str(context.exception), "yt-dlp not available")
        self.assertEqual(list(self.output_root.iterdir()), [])

    def test_url_follows_option_terminator(self) -> None:
        args = self._ytdlp("ok").build_args(url="--exec=touch /tmp/x /p/abc", output_dir=self.output_root / "d")

        self.assertEqual(args[-2:], ["--", "--exec=touch /tmp/x /p/abc"])
        self.assertIn("best[ext=mp4]", args)
        self.assertIn("--write-info-json", args)
        self.assertIn("--write-thumbnail", args)


class InstaloaderExtractorTests(_ToolCase):
    async def test_successful_run_reports_json_result(self) -> None:
        result = await self._instaloader("ok").extract(url=REEL_URL, job_id="job-2")

        self.assertTrue(result.output_dir.name.startswith("instaloader_"))
        artifact = result.artifact
        self.assertEqual(artifact.video_url, f"/download/Ab_C-12.mp4?dir={result.output_dir.name}")
        self.assertEqual(artifact.thumbnail_url, f"/download/Ab_C-12.jpg?dir={result.output_dir.name}")
        self.assertEqual(artifact.title, "Caption text")
        self.assertEqual(artifact.uploader, "owner")
        self.assertEqual(artifact.quality, "HD")

    async def test_tool_reported_error_is_surfaced(self) -> None:
        with self.assertRaises(ExtractionError) as context:
            await self._instaloader("error").extract(url=REEL_URL, job_id="job-2")

        self.assertEqual(str(context.exception), "Login required")
        self.assertEqual(list(self.output_root.iterdir()), [])

    async def test_unparseable_output_is_a_failure(self) -> None:
        with self.assertRaises(ExtractionError) as context:
            await self._instaloader("garbage").extract(url=REEL_URL, job_id="job-2")

        self.assertEqual(str(context.exception), "Failed to parse result")

    async def test_video_outside_output_directory_is_rejected(self) -> None:
        with self.assertRaises(ExtractionError) as context:
            await self._instaloader("outside").extract(url=REEL_URL, job_id="job-2")

        self.assertIn("outside", str(context.exception))

    async def test_non_zero_exit_is_a_failure_even_with_result(self) -> None:
        with self.assertRaises(ExtractionError) as context:
            await self._instaloader("crash").extract(url=REEL_URL, job_id="job-2")

        self.assertIn("status 3", str(context.exception))
        self.assertEqual(list(self.output_root.iterdir()), [])

    async def test_unusable_video_path_is_a_failure(self) -> None:
        with self.assertRaises(ExtractionError):
            await self._instaloader("nul").extract(url=REEL_URL, job_id="job-2")

        self.assertEqual(list(self.output_root.iterdir()), [])

    async def test_invalid_url_fails_before_running_tool(self) -> None:
        with self.assertRaises(ExtractionError):
            await self._instaloader("ok").extract(url="https://example.com/", job_id="job-2")

        self.assertEqual(list(self.output_root.iterdir()), [])

    def test_link_and_directory_travel_as_arguments(self) -> None:
        hostile = "x'; import os; os.system('id') #"
        args = self._instaloader("ok").build_args(shortcode=hostile, output_dir=self.output_root / "d")

        self.assertEqual(args[0], "-c")
        self.assertIs(args[1], INSTALOADER_SCRIPT)
        self.assertNotIn(hostile, INSTALOADER_SCRIPT)
        self.assertEqual(args[2:], [hostile, str(self.output_root / "d")])


class ExtractorFallbackTests(_ToolCase):
    async def test_unreadable_primary_output_falls_back_to_secondary(self) -> None:
        store = InMemoryProgressStore()
        sweeper = RetentionSweeper(delay_seconds=3600)
        self.addCleanup(sweeper.cancel_all)
        service = DownloadService(store, [self._ytdlp("flood"), self._instaloader("ok")], sweeper)
        job_id = service.submit(REEL_URL)

        with self.assertLogs("reelfetch.adapters.extractors.base", level="WARNING"):
            await service.run_job(job_id, REEL_URL)

        snapshot = service.get_progress(job_id)
        self.assertEqual(snapshot.status, DownloadStatus.COMPLETED)
        output_dirs = [path.name for path in self.output_root.iterdir()]
        self.assertEqual(len(output_dirs), 1)
        self.assertTrue(output_dirs[0].startswith("instaloader_"))
        self.assertIn(f"dir={output_dirs[0]}", snapshot.data.video_url)


class ArtifactHelperTests(unittest.TestCase):
    def test_parse_result_line_uses_last_non_empty_line(self) -> None:
        self.assertEqual(parse_result_line(["noise", '{"success": true}', "", "  "]), {"success": True})
        with self.assertRaises(ValueError):
            parse_result_line(["", ""])
        with self.assertRaises(ValueError):
            parse_result_line(["[1, 2]"])

    def test_megabyte_formatting(self) -> None:
        self.assertEqual(format_megabytes(1536 * 1024), "1.5 MB")
        self.assertEqual(format_megabytes(2 * 1024 * 1024), "2 MB")
        self.assertEqual(format_megabytes(1000), "0 MB")
        self.assertEqual(format_megabytes(1234567), "1.18 MB")

    def test_quality_label(self) -> None:
        self.assertEqual(quality_label(720), "720p")
        self.assertEqual(quality_label(None), "HD")
        self.assertEqual(quality_label("1080"), "HD")


if __name__ == "__main__":
    unittest.main()
