# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""Clock and background sweep helpers shared by the admission components."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

logger = logging.getLogger("gatewaystack.scheduling")

# A clock returns the current time in epoch milliseconds.
Clock = Callable[[], float]


def system_clock() -> float:
    return time.time() * 1000.0


class PeriodicSweep:
    """Runs ``callback`` every ``interval_ms`` on a daemon thread.

    The owner starts it at construction and must call ``stop()`` when it is
    torn down. Exceptions raised by the callback are logged and the sweep
    keeps running.
    """

    def __init__(self, callback: Callable[[], None], interval_ms: float, name: str) -> None:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        self._callback = callback
        self._interval = interval_ms / 1000.0
        self._name = name
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            logger.warning("Sweep %s already running", self._name)
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()
        logger.debug("Sweep %s started (every %.3fs)", self._name, self._interval)

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread:
            if self._thread is not threading.current_thread():
                self._thread.join(timeout=5)
            self._thread = None
            logger.debug("Sweep %s stopped", self._name)

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval):
            try:
                self._callback()
            except Exception:
                logger.exception("Sweep %s failed", self._name)
