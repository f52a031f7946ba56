from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future

from tourdesk.metrics import observe_policy_store_init
from tourdesk.platform.security.errors import PolicyUnavailableError


logger = logging.getLogger("tourdesk.authz.bootstrap")


class PolicyStoreInitializer:
    """One-shot provisioning of the permission store.

    Concurrent callers share a single pending future. A failed attempt is
    reported to every waiter and the initializer re-arms for the next caller.
    """

    def __init__(self, provision: Callable[[], None]) -> None:
        self._provision = provision
        self._lock = threading.Lock()
        self._future: Future[None] | None = None
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def ensure_initialized(self) -> None:
        if self._initialized:
            return
        future, owner = self._claim()
        if owner:
            await asyncio.to_thread(self._run, future)
        try:
            await asyncio.wrap_future(future)
        except Exception as exc:
            raise PolicyUnavailableError() from exc

    def ensure_initialized_sync(self) -> None:
        if self._initialized:
            return
        future, owner = self._claim()
        if owner:
            self._run(future)
        try:
            future.result()
        except Exception as exc:
            raise PolicyUnavailableError() from exc

    def _claim(self) -> tuple[Future[None], bool]:
        with self._lock:
            if self._future is None:
                self._future = Future()
                return self._future, True
            return self._future, False

    def _run(self, future: Future[None]) -> None:
        logger.info("authz.policy_store_init", extra={"status": "started"})
        try:
            self._provision()
        except Exception as exc:
            with self._lock:
                self._future = None
            observe_policy_store_init("failed")
            logger.exception("authz.policy_store_init", extra={"status": "failed", "error": str(exc)})
            future.set_exception(exc)
            return

        with self._lock:
            self._initialized = True
        observe_policy_store_init("succeeded")
        logger.info("authz.policy_store_init", extra={"status": "succeeded"})
        future.set_result(None)
