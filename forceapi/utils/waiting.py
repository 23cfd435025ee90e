"""
Caller-side loops around the single-shot API calls

Nothing in forceapi.salesforce_api calls these.
"""

import logging
import time
from typing import Callable, Optional

from forceapi.core.exceptions import OperationTimeout

logger = logging.getLogger(__name__)


def is_retriable(e: Exception) -> bool:
    return getattr(e, "retriable", False)


def retry(
    func: Callable,
    should_retry: Callable[[Exception], bool] = is_retriable,
    retries: int = 5,
    retry_interval: int = 5,
    retry_interval_add: int = 30,
):
    while True:
        try:
            return func()
        except Exception as e:
            if not (retries and should_retry(e)):
                raise
            if retry_interval:
                logger.warning(f"Sleeping for {retry_interval} seconds before retry...")
                time.sleep(retry_interval)
                if retry_interval_add:
                    retry_interval += retry_interval_add
            retries -= 1
            logger.warning(f"Retrying ({retries} attempts remaining)")


def poll(action: Callable):
    """poll for a result in a loop"""
    count = 0
    interval = 1
    while True:
        count += 1
        complete = action()
        if complete:
            break
        time.sleep(interval)
        if count % 3 == 0:
            interval += 1


def wait_for_operation(operation, handle, timeout: Optional[float] = None):
    """Poll ``handle`` through ``operation`` until it is done and return the final status.

    A terminal failure is returned, not raised; call ``raise_for_failure()``
    on the result for an exception. ``timeout`` is in seconds."""
    deadline = time.monotonic() + timeout if timeout is not None else None
    statuses = []

    def check():
        status = operation.poll(handle)
        statuses.append(status)
        if status.done:
            return True
        if deadline is not None and time.monotonic() >= deadline:
            raise OperationTimeout(
                f"{status.kind} {status.id} was not done after {timeout} seconds",
                status,
            )
        return False

    poll(check)
    return statuses[-1]
