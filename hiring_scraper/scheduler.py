"""
Concurrent extraction scheduler.

Dispatches units to the extraction service on a pool of worker threads,
bounded by an admission semaphore, with staggered starts and exponential
backoff on rate limiting.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, List, Optional

from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    stop_when_event_set,
    wait_exponential,
)
from tenacity.wait import wait_base
from tqdm import tqdm

from . import config
from .exceptions import (
    ExtractionCancelled,
    RateLimited,
    RetryExceeded,
    ServiceError,
)
from .models import ExtractionOutcome, Unit

logger = logging.getLogger(__name__)

ExtractFn = Callable[[str, str], str]


class wait_retry_after(wait_base):
    """Use the server-suggested delay when the error carries one."""

    def __init__(self, fallback: wait_base):
        self.fallback = fallback

    def __call__(self, retry_state) -> float:
        error = retry_state.outcome.exception()
        retry_after = getattr(error, "retry_after", None)
        if retry_after is not None:
            return float(retry_after)
        return self.fallback(retry_state)


class ExtractionScheduler:
    """
    Runs the extraction capability over many units in parallel.

    Each unit gets its own worker. A worker waits position * stagger_delay,
    takes a slot from the admission gate, then calls the service, retrying
    only on RateLimited. Outcomes are returned in index order no matter in
    which order the calls complete.
    """

    def __init__(
        self,
        system_prompt: str,
        max_concurrent: int = None,
        stagger_delay: float = None,
        base_delay: float = None,
        max_delay: float = None,
        max_retries: int = None,
        fail_fast: bool = False,
        sleep: Optional[Callable[[float], None]] = None,
        show_progress: bool = True,
    ):
        """
        Initialize the scheduler.

        Args:
            system_prompt: Instructions sent with every unit
            max_concurrent: Maximum number of calls in flight
            stagger_delay: Seconds between consecutive worker starts
            base_delay: First backoff delay in seconds
            max_delay: Upper bound for the computed backoff
            max_retries: Total attempts per unit while rate limited
            fail_fast: Cancel not-yet-sent units after the first failed unit
            sleep: Sleep function used between retries (default: a wait that
                ends early when the run is cancelled)
            show_progress: Display a tqdm progress bar
        """
        self.system_prompt = system_prompt
        self.max_concurrent = max_concurrent or config.MAX_CONCURRENT_REQUESTS
        self.stagger_delay = config.STAGGER_DELAY if stagger_delay is None else stagger_delay
        self.base_delay = config.RETRY_BASE_DELAY if base_delay is None else base_delay
        self.max_delay = config.RETRY_MAX_DELAY if max_delay is None else max_delay
        self.max_retries = max_retries or config.MAX_RETRIES
        self.fail_fast = fail_fast
        self._sleep = sleep
        self.show_progress = show_progress

        if self.max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")

    def run(self, units: List[Unit], extract: ExtractFn) -> List[ExtractionOutcome]:
        """
        Extract every unit and collect one outcome per unit.

        Args:
            units: Units to dispatch, with unique indices
            extract: Callable taking (system_prompt, text) and returning text

        Returns:
            Outcomes sorted by unit index
        """
        if not units:
            return []

        indices = [unit.index for unit in units]
        if len(set(indices)) != len(indices):
            raise ValueError("Units passed to the scheduler must have unique indices")

        logger.info(
            f"Starting concurrent processing of {len(units)} units "
            f"with max {self.max_concurrent} concurrent requests"
        )

        gate = threading.BoundedSemaphore(self.max_concurrent)
        cancelled = threading.Event()
        outcomes = []

        with ThreadPoolExecutor(max_workers=len(units), thread_name_prefix="extract") as pool:
            futures = [
                pool.submit(self._work, position, unit, extract, gate, cancelled)
                for position, unit in enumerate(units)
            ]
            for future in tqdm(
                as_completed(futures),
                total=len(futures),
                desc="Extracting units",
                disable=not self.show_progress,
            ):
                outcomes.append(future.result())

        outcomes.sort(key=lambda o: o.index)
        failed = sum(1 for o in outcomes if not o.succeeded)
        if failed:
            logger.warning(f"{failed} of {len(outcomes)} units failed")
        else:
            logger.info(f"All {len(outcomes)} units processed successfully")
        return outcomes

    def _work(
        self,
        position: int,
        unit: Unit,
        extract: ExtractFn,
        gate: threading.BoundedSemaphore,
        cancelled: threading.Event,
    ) -> ExtractionOutcome:
        delay = position * self.stagger_delay
        if delay > 0:
            logger.debug(f"Unit {unit.index}: staggering request by {delay:.1f}s")
            # Wakes early when a sibling cancels the run
            cancelled.wait(delay)

        with gate:
            if cancelled.is_set():
                return ExtractionOutcome(unit.index, error=ExtractionCancelled("run cancelled before dispatch"))

            logger.info(f"Processing unit {unit.index} ({unit.size} bytes)")
            outcome = self._extract_with_retry(unit, extract, cancelled)

        if isinstance(outcome.error, (ServiceError, RetryExceeded)) and self.fail_fast:
            cancelled.set()

        if outcome.succeeded:
            logger.info(f"Unit {unit.index} completed successfully")
        else:
            logger.error(f"Unit {unit.index} failed: {type(outcome.error).__name__}: {outcome.error}")
        return outcome

    def _extract_with_retry(
        self,
        unit: Unit,
        extract: ExtractFn,
        cancelled: threading.Event,
    ) -> ExtractionOutcome:
        retryer = Retrying(
            stop=stop_after_attempt(self.max_retries) | stop_when_event_set(cancelled),
            wait=wait_retry_after(wait_exponential(multiplier=self.base_delay, max=self.max_delay)),
            retry=retry_if_exception_type(RateLimited),
            sleep=self._sleep or cancelled.wait,
            before=self._check_cancelled(cancelled),
            before_sleep=self._log_backoff(unit),
        )

        try:
            content = retryer(extract, self.system_prompt, unit.text)
        except RetryError as e:
            last_error = e.last_attempt.exception()
            if cancelled.is_set():
                error = ExtractionCancelled(f"run cancelled while rate limited: {last_error}")
            else:
                error = RetryExceeded(e.last_attempt.attempt_number, last_error)
            return ExtractionOutcome(unit.index, error=error)
        except (ServiceError, ExtractionCancelled) as e:
            return ExtractionOutcome(unit.index, error=e)
        except Exception as e:
            logger.exception(f"Unexpected error extracting unit {unit.index}")
            return ExtractionOutcome(unit.index, error=ServiceError(str(e)))

        return ExtractionOutcome(unit.index, content=content or "")

    @staticmethod
    def _check_cancelled(cancelled: threading.Event) -> Callable:
        # Runs before every attempt, so a unit woken from backoff by a
        # cancellation never calls out again
        def before(retry_state) -> None:
            if cancelled.is_set():
                raise ExtractionCancelled("run cancelled while waiting to retry")

        return before

    def _log_backoff(self, unit: Unit) -> Callable:
        max_retries = self.max_retries

        def before_sleep(retry_state) -> None:
            logger.warning(
                f"Rate limit hit on unit {unit.index}! Waiting {retry_state.next_action.sleep:.1f}s "
                f"before retry (attempt {retry_state.attempt_number}/{max_retries})"
            )

        return before_sleep
