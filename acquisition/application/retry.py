"""Caller-side retry policy for acquisitions.

The tracker never retries on its own. Callers that want retries wrap acquire()
here, which only repeats failures whose kind can succeed on a second try
(network errors and busy destinations).
"""
import logging
from pathlib import Path
from typing import Optional, Union
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)
from acquisition.application.acquisition_service import AcquisitionStatusTracker
from acquisition.domain.access_guard import IScopedAccessGuard
from acquisition.domain.cancellation import CancellationToken
from acquisition.domain.errors import AcquisitionBusyError
from acquisition.domain.models import AcquisitionResult


logger = logging.getLogger(__name__)


async def acquire_with_retry(
    tracker: AcquisitionStatusTracker,
    reference: str,
    destination: Union[str, Path],
    access_guard: IScopedAccessGuard,
    attempts: int = 3,
    cancel_token: Optional[CancellationToken] = None,
    ref: Optional[str] = None,
    wait=None
) -> AcquisitionResult:
    """Run tracker.acquire() until it succeeds or stops being retryable.

    Args:
        tracker: Tracker performing each attempt
        reference: Repository URL
        destination: Content root directory
        access_guard: Guard passed through to every attempt
        attempts: Maximum number of attempts
        cancel_token: Stops further retries once cancelled
        ref: Branch to fetch
        wait: tenacity wait strategy, exponential backoff by default

    Returns:
        Result of the last attempt made
    """
    def should_retry(result: AcquisitionResult) -> bool:
        if cancel_token is not None and cancel_token.is_cancelled:
            return False
        return result.retryable

    retrying = AsyncRetrying(
        retry=retry_if_result(should_retry) | retry_if_exception_type(AcquisitionBusyError),
        stop=stop_after_attempt(attempts),
        wait=wait or wait_exponential(multiplier=1, min=2, max=30),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        retry_error_callback=lambda retry_state: retry_state.outcome.result()
    )

    return await retrying(
        tracker.acquire,
        reference,
        destination,
        access_guard,
        cancel_token=cancel_token,
        ref=ref
    )
