#!/usr/bin/env python3
import json
import argparse
import logging
import sys

from hiring_scraper import config
from hiring_scraper.exceptions import ScraperError
from hiring_scraper.fetcher import thread_page_urls
from hiring_scraper.pipeline import HiringPipeline

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler("hiring_scraper.log")
    ]
)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Extract job postings from a 'Who is hiring?' thread"
    )

    parser.add_argument(
        "urls", nargs="*",
        help="Thread page URLs to process, in order"
    )
    parser.add_argument(
        "--thread-id",
        help="Thread item id; used instead of explicit URLs"
    )
    parser.add_argument(
        "--pages", type=int, default=1,
        help="Number of thread pages to fetch with --thread-id (default: 1)"
    )
    parser.add_argument(
        "-o", "--output-dir",
        help="Directory for the compiled artifact (default: logs/, or /tmp on AWS Lambda)"
    )
    parser.add_argument(
        "--max-concurrent", type=int, default=config.MAX_CONCURRENT_REQUESTS,
        help=f"Maximum concurrent extraction calls (default: {config.MAX_CONCURRENT_REQUESTS})"
    )
    parser.add_argument(
        "--max-unit-size", type=int, default=config.MAX_UNIT_SIZE,
        help=f"Maximum UTF-8 bytes per unit (default: {config.MAX_UNIT_SIZE})"
    )
    parser.add_argument(
        "--model", default=config.LMM_MODEL,
        help=f"Extraction model (default: {config.LMM_MODEL})"
    )
    parser.add_argument(
        "--keywords-file",
        help="Newline separated interest keywords"
    )
    parser.add_argument(
        "--fail-fast", action="store_true",
        help="Abort the whole run when any unit fails"
    )
    parser.add_argument(
        "--keep-unit-files", action="store_true",
        help="Also write one output file per extracted unit"
    )
    return parser


def main(argv=None) -> int:
    """
    Main entry point for the hiring thread scraper.

    Returns:
        0 on a complete run, 2 when the artifact is partial, 1 on error
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.thread_id:
        urls = thread_page_urls(args.thread_id, args.pages)
    else:
        urls = args.urls
    if not urls:
        parser.error("provide page URLs or --thread-id")

    try:
        pipeline = HiringPipeline(
            max_unit_size=args.max_unit_size,
            keywords=config.load_keywords(args.keywords_file),
            lmm_model=args.model,
            work_dir=args.output_dir,
            max_concurrent=args.max_concurrent,
            fail_fast=args.fail_fast,
            keep_unit_files=args.keep_unit_files,
        )
        report = pipeline.run(urls)
    except ScraperError as e:
        logger.error(f"Run failed: {e}")
        return 1

    logger.info(f"Run summary: {json.dumps(report.to_dict(), indent=2)}")
    return 0 if report.complete else 2


if __name__ == "__main__":
    sys.exit(main())
