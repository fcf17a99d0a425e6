"""The API handler that triggers an update scan."""

from __future__ import annotations

import logging
import sys
import threading
from collections.abc import Callable
from typing import Optional, Union

log = logging.getLogger(__name__)

UPDATE_PATH = "/v1/update"


class UpdateHandler:
    """Runs an update when requested, unless another update holds the lock."""

    def __init__(
        self, update_fn: Callable[[], object], lock: Optional[threading.Lock] = None
    ) -> None:
        self.update_fn = update_fn
        self.lock = lock if lock is not None else threading.Lock()
        self.path = UPDATE_PATH

    def handle(self, body: Union[bytes, str] = b"") -> bool:
        """Echo the request body to stdout and run the update.

        Returns True if the update ran, False if it was skipped because
        another update was already running.
        """
        log.info("Updates triggered by HTTP API request.")
        text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
        try:
            sys.stdout.write(text)
            sys.stdout.flush()
        except OSError as exc:
            log.error("%s", exc)
            return False

        if not self.lock.acquire(blocking=False):
            log.debug("Skipped. Another update already running.")
            return False
        try:
            self.update_fn()
        finally:
            self.lock.release()
        return True