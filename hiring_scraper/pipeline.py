"""
End-to-end pipeline: fetch thread pages, cut them into units, extract and compile.
"""

import itertools
import logging
from dataclasses import replace
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional, Union

from . import config
from .batch import BoundarySegmenter
from .compiler import ResultCompiler
from .exceptions import ExtractionCancelled, FetchError, PipelineError
from .fetcher import ThreadFetcher
from .models import ExtractionOutcome, RunReport, Unit
from .processors import RelevanceFilter, SizeBalancer
from .scheduler import ExtractionScheduler
from .storage import ArtifactStore
from .utils.markup import MarkupNormalizer

logger = logging.getLogger(__name__)


class HiringPipeline:
    """
    Main pipeline class for hiring-thread extraction.

    This class orchestrates the entire process:
    1. Fetches every page of the thread
    2. Normalizes the markup and segments it into units
    3. Filters units by interest keywords
    4. Extracts units concurrently with the language model
    5. Compiles the ordered results into one artifact
    """

    def __init__(
        self,
        max_unit_size: int = None,
        chunk_size: int = None,
        keywords: Optional[Iterable[str]] = None,
        system_prompt: Optional[str] = None,
        lmm_model: str = None,
        extract: Optional[Callable[[str, str], str]] = None,
        fetcher: Optional[ThreadFetcher] = None,
        work_dir: Union[str, Path, None] = None,
        store: Optional[ArtifactStore] = None,
        scheduler: Optional[ExtractionScheduler] = None,
        max_concurrent: int = None,
        fail_fast: bool = False,
        keep_unit_files: bool = False,
    ):
        """
        Initialize the pipeline with configuration parameters.

        Args:
            max_unit_size: Maximum size of a unit sent to the model
            chunk_size: Slice size when a page has no posting boundaries
            keywords: Interest keywords (default: config.load_keywords())
            system_prompt: Extraction prompt (default: config.load_prompt())
            lmm_model: Model used when no extract callable is given
            extract: Extraction capability taking (system_prompt, text)
            fetcher: Page fetcher
            work_dir: Directory for the compiled artifact
            store: Artifact store, overrides work_dir
            scheduler: Preconfigured scheduler
            max_concurrent: Maximum concurrent extraction calls
            fail_fast: Abort the run on the first failed unit
            keep_unit_files: Also write one file per successful unit
        """
        self.max_unit_size = max_unit_size or config.MAX_UNIT_SIZE
        self.chunk_size = chunk_size or config.SIMPLE_CHUNK_SIZE
        self.lmm_model = lmm_model or config.LMM_MODEL
        self.fail_fast = fail_fast
        system_prompt = system_prompt or config.load_prompt()

        # Initialize components
        self.normalizer = MarkupNormalizer()
        self.balancer = SizeBalancer(self.max_unit_size)
        self.segmenter = BoundarySegmenter(self.max_unit_size, self.chunk_size, self.balancer)
        self.relevance_filter = RelevanceFilter(keywords if keywords is not None else config.load_keywords())
        self.fetcher = fetcher or ThreadFetcher()
        self.scheduler = scheduler or ExtractionScheduler(
            system_prompt=system_prompt,
            max_concurrent=max_concurrent,
            fail_fast=fail_fast,
        )
        self.store = store or ArtifactStore.create("local", {"work_dir": work_dir})
        self.compiler = ResultCompiler(self.store, keep_unit_files=keep_unit_files)
        self._extract = extract

    @property
    def extract(self) -> Callable[[str, str], str]:
        # The model client is only built when a run actually needs it
        if self._extract is None:
            from .lmm_client import LMMClient
            self._extract = LMMClient(model_name=self.lmm_model).extract
        return self._extract

    def segment_page(self, html: str, counter: Optional[Iterator[int]] = None) -> List[Unit]:
        """
        Normalize one raw page and cut it into units.

        Args:
            html: Raw page markup
            counter: Run-local index source so indices stay unique across pages

        Returns:
            Units tagged with run-wide indices
        """
        counter = counter if counter is not None else itertools.count()
        cleaned = self.normalizer.normalize(html)
        units = [replace(unit, index=next(counter)) for unit in self.segmenter.segment(cleaned)]
        logger.info(f"Data broken into {len(units)} units")
        return units

    def prepare(self, html: str, counter: Optional[Iterator[int]] = None) -> List[Unit]:
        """Units of one page worth extracting; indices are sparse where units were dropped."""
        return self.relevance_filter.filter(self.segment_page(html, counter))

    def run(self, urls: List[str]) -> RunReport:
        """
        Process every page and write the compiled artifact.

        Args:
            urls: Thread page URLs, in order

        Returns:
            Report of the run, including the artifact

        Raises:
            PipelineError: No page could be fetched, or fail_fast is on and
                a unit failed. The previous artifact is removed first.
        """
        report = RunReport()
        counter = itertools.count()
        outcomes: List[ExtractionOutcome] = []

        for url in urls:
            logger.info(f"Running pipeline for URL: {url}")
            try:
                html = self.fetcher.fetch(url)
            except FetchError as e:
                logger.error(f"Failed to fetch {url}: {e}")
                report.failed_pages[url] = str(e)
                continue
            report.pages_fetched += 1

            segmented = self.segment_page(html, counter)
            units = self.relevance_filter.filter(segmented)
            report.units_total += len(segmented)
            report.units_filtered_out += len(segmented) - len(units)

            page_outcomes = self.scheduler.run(units, self.extract)
            outcomes.extend(page_outcomes)

            if self.fail_fast:
                self._raise_first_failure(page_outcomes)

        if report.pages_fetched == 0:
            self._abort(PipelineError("fetch", f"none of the {len(urls)} pages could be fetched"))

        report.failed_outcomes = [o for o in outcomes if not o.succeeded]
        report.artifact = self.compiler.compile(outcomes)

        if report.complete:
            logger.info(f"Run complete: artifact saved to {report.artifact.location}")
        else:
            logger.warning(
                f"Run incomplete: {len(report.failed_pages)} pages and "
                f"{len(report.failed_outcomes)} units failed; artifact at {report.artifact.location} is partial"
            )
        return report

    def _abort(self, error: PipelineError) -> None:
        """Remove the previous run's output so it is not mistaken for this one, then raise."""
        self.store.clear()
        logger.error(f"Run aborted: {error}")
        raise error

    def _raise_first_failure(self, outcomes: List[ExtractionOutcome]) -> None:
        failures = [o for o in outcomes if not o.succeeded]
        if not failures:
            return
        # Cancelled siblings are a consequence, not the cause
        root = next((o for o in failures if not isinstance(o.error, ExtractionCancelled)), failures[0])
        self._abort(PipelineError(
            "extract",
            f"{type(root.error).__name__}: {root.error}",
            index=root.index,
        ))
