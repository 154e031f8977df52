"""Bounded existence-confirmation wait.

After an upload the store may take a while before `head` reports the object.
`wait_until_exists` polls with exponential backoff (tenacity) and gives up
after a fixed number of attempts; it never retries indefinitely.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

if TYPE_CHECKING:
    from bucketfs.interfaces.object_store import ObjectInfo, ObjectStoreClient

log = logging.getLogger(__name__)

MAX_DELAY = 5.0


def _gave_up(retry_state) -> None:
    log.warning(
        "Object was not visible after %d attempts", retry_state.attempt_number
    )


def wait_until_exists(
    client: ObjectStoreClient,
    key: str,
    *,
    max_attempts: int,
    delay: float,
    sleep: Callable[[float], None] = time.sleep,
) -> ObjectInfo | None:
    """Poll ``head(key)`` until the object is visible.

    Args:
        client: The object store client.
        key: Key that was just written.
        max_attempts: Maximum number of ``head`` calls.
        delay: Delay before the second attempt; doubled after each miss and
            capped at `MAX_DELAY`.
        sleep: Sleep function, injectable for tests.

    Returns:
        The object's metadata once visible, or None if it never showed up.

    Raises:
        ObjectStoreError: if a ``head`` call fails outright; failures are not
            retried.
    """
    retrying = Retrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=delay, max=MAX_DELAY),
        retry=retry_if_result(lambda info: info is None),
        sleep=sleep,
        before_sleep=before_sleep_log(log, logging.DEBUG),
        retry_error_callback=_gave_up,
    )
    return retrying(client.head, key)
