"""
Test suite for the end-to-end pipeline and the command line entry point.
"""

import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

# Add the project root to the Python path
sys.path.append(str(Path(__file__).parent.parent))

from hiring_scraper.exceptions import FetchError, PipelineError, ServiceError
from hiring_scraper.models import RunReport
from hiring_scraper.pipeline import HiringPipeline
from hiring_scraper.scheduler import ExtractionScheduler
from hiring_scraper.storage import ARTIFACT_NAME

from thread_fixtures import POSTINGS, thread_page

PROMPT = "Extract postings."


class FakeFetcher:
    """Serves canned pages; a page mapped to None fails to fetch."""

    def __init__(self, pages):
        self.pages = pages
        self.requested = []

    def fetch(self, url):
        self.requested.append(url)
        html = self.pages.get(url)
        if html is None:
            raise FetchError(url, "503 Server Error")
        return html


def upper_extract(system_prompt, text):
    return text.upper()


def failing_on(word):
    def extract(system_prompt, text):
        if word in text:
            raise ServiceError(f"rejected unit mentioning {word}")
        return text.upper()
    return extract


class TestHiringPipeline(unittest.TestCase):
    """Tests for the HiringPipeline class."""

    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.work_dir = Path(tmp.name)
        self.page = thread_page(POSTINGS)

    def make_pipeline(self, pages, extract=upper_extract, fail_fast=False, **kwargs):
        kwargs.setdefault("max_unit_size", 150)
        kwargs.setdefault("keywords", ["python"])
        scheduler = ExtractionScheduler(
            system_prompt=PROMPT,
            stagger_delay=0,
            fail_fast=fail_fast,
            sleep=lambda seconds: None,
            show_progress=False,
        )
        return HiringPipeline(
            system_prompt=PROMPT,
            extract=extract,
            fetcher=FakeFetcher(pages),
            work_dir=self.work_dir,
            scheduler=scheduler,
            fail_fast=fail_fast,
            **kwargs,
        )

    def test_end_to_end_run(self):
        """Test a full run over one page."""
        pipeline = self.make_pipeline({"page1": self.page})

        report = pipeline.run(["page1"])

        self.assertTrue(report.complete)
        self.assertEqual(report.pages_fetched, 1)
        self.assertEqual(report.units_total, 3)
        self.assertEqual(report.units_filtered_out, 1)

        lines = (self.work_dir / ARTIFACT_NAME).read_text(encoding="utf-8").splitlines()
        self.assertEqual(len(lines), 2)
        self.assertIn("ACME CORP", lines[0])
        self.assertIn("INITECH", lines[1])
        self.assertEqual(report.artifact.location, str(self.work_dir / ARTIFACT_NAME))

    def test_indices_unique_across_pages(self):
        """Test that unit indices keep counting across pages."""
        pipeline = self.make_pipeline({"page1": self.page, "page2": self.page})

        report = pipeline.run(["page1", "page2"])

        self.assertEqual(report.units_total, 6)
        self.assertEqual(report.artifact.included_indices, [0, 2, 3, 5])

    def test_failed_page_is_recorded(self):
        """Test that a page fetch failure is recorded and the run is partial."""
        pipeline = self.make_pipeline({"page1": self.page, "page2": None})

        report = pipeline.run(["page1", "page2"])

        self.assertFalse(report.complete)
        self.assertIn("page2", report.failed_pages)
        self.assertEqual(len(report.artifact.text.splitlines()), 2)

    def test_every_page_failing_raises(self):
        """Test that a run with no fetched page raises."""
        pipeline = self.make_pipeline({"page1": None})

        with self.assertRaises(PipelineError) as ctx:
            pipeline.run(["page1"])

        self.assertEqual(ctx.exception.stage, "fetch")

    def test_partial_success_by_default(self):
        """Test that a failed unit is skipped and the run marked incomplete."""
        pipeline = self.make_pipeline({"page1": self.page}, extract=failing_on("Initech"))

        report = pipeline.run(["page1"])

        self.assertFalse(report.complete)
        self.assertEqual([o.index for o in report.failed_outcomes], [2])
        self.assertEqual(report.artifact.skipped_indices, [2])
        lines = (self.work_dir / ARTIFACT_NAME).read_text(encoding="utf-8").splitlines()
        self.assertEqual(len(lines), 1)
        self.assertIn("ACME CORP", lines[0])

    def test_fail_fast_aborts_without_artifact(self):
        """Test that fail_fast raises and writes no artifact."""
        pipeline = self.make_pipeline({"page1": self.page}, extract=failing_on("Initech"), fail_fast=True)

        with self.assertRaises(PipelineError) as ctx:
            pipeline.run(["page1"])

        self.assertEqual(ctx.exception.stage, "extract")
        self.assertEqual(ctx.exception.index, 2)
        self.assertFalse((self.work_dir / ARTIFACT_NAME).exists())

    def test_fail_fast_removes_previous_output(self):
        """Test that an aborted run leaves no artifact from an earlier run behind."""
        self.make_pipeline({"page1": self.page}, keep_unit_files=True).run(["page1"])
        self.assertTrue((self.work_dir / ARTIFACT_NAME).exists())

        pipeline = self.make_pipeline({"page1": self.page}, extract=failing_on("Initech"), fail_fast=True)
        with self.assertRaises(PipelineError):
            pipeline.run(["page1"])

        self.assertFalse((self.work_dir / ARTIFACT_NAME).exists())
        self.assertFalse(any(self.work_dir.glob("output-*.log")))

    def test_failed_fetches_remove_previous_output(self):
        """Test that a run with no fetched page also clears the earlier artifact."""
        self.make_pipeline({"page1": self.page}).run(["page1"])

        with self.assertRaises(PipelineError):
            self.make_pipeline({"page1": None}).run(["page1"])

        self.assertFalse((self.work_dir / ARTIFACT_NAME).exists())

    def test_page_without_boundaries_uses_fixed_slices(self):
        """Test a page without posting markers."""
        pipeline = self.make_pipeline(
            {"page1": "<div>" + "a" * 300 + "</div>"},
            keywords=["a"],
            max_unit_size=100,
            chunk_size=100,
        )

        report = pipeline.run(["page1"])

        self.assertEqual(report.units_total, 3)
        self.assertEqual(report.artifact.text, ("A" * 100 + "\n") * 3)

    def test_keep_unit_files(self):
        """Test writing one file per extracted unit."""
        pipeline = self.make_pipeline({"page1": self.page}, keep_unit_files=True)

        pipeline.run(["page1"])

        self.assertTrue((self.work_dir / "output-0.log").exists())
        self.assertTrue((self.work_dir / "output-2.log").exists())
        self.assertFalse((self.work_dir / "output-1.log").exists())

    def test_segment_page_continues_counter(self):
        """Test that segmentation draws indices from the given counter."""
        pipeline = self.make_pipeline({})
        counter = iter(range(10, 20))

        units = pipeline.segment_page(self.page, counter)

        self.assertEqual([u.index for u in units], [10, 11, 12])
        self.assertEqual([u.index for u in pipeline.prepare(self.page)], [0, 2])


class TestCommandLine(unittest.TestCase):
    """Tests for the main() entry point."""

    def run_main(self, report, argv):
        import main

        with patch.object(main, "HiringPipeline") as pipeline_cls:
            pipeline_cls.return_value.run.return_value = report
            code = main.main(argv)
        return code, pipeline_cls

    def test_complete_run_exits_zero(self):
        """Test the exit code and page URLs of a complete run."""
        code, pipeline_cls = self.run_main(RunReport(pages_fetched=1), ["--thread-id", "123", "--pages", "2"])

        self.assertEqual(code, 0)
        urls = pipeline_cls.return_value.run.call_args.args[0]
        self.assertEqual(urls, [
            "https://news.ycombinator.com/item?id=123",
            "https://news.ycombinator.com/item?id=123&p=2",
        ])

    def test_partial_run_exits_two(self):
        """Test the exit code of a partial run."""
        report = RunReport(pages_fetched=1, failed_pages={"u": "503"})
        code, _ = self.run_main(report, ["https://example.com/thread"])
        self.assertEqual(code, 2)

    def test_pipeline_error_exits_one(self):
        """Test the exit code of an aborted run."""
        import main

        with patch.object(main, "HiringPipeline") as pipeline_cls:
            pipeline_cls.return_value.run.side_effect = PipelineError("fetch", "nothing fetched")
            self.assertEqual(main.main(["https://example.com/thread"]), 1)


if __name__ == "__main__":
    unittest.main()
