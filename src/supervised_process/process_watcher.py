"""Process watcher module.

This module contains the ProcessWatcher class, which runs a ChildProcess
poll loop in a background thread and publishes the exit code through a
``concurrent.futures.Future``. The polling core stays in ChildProcess.update().
"""

from __future__ import annotations

import _thread
import logging
import threading
import time
from concurrent.futures import Future
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from supervised_process.child_process import ChildProcess

logger = logging.getLogger(__name__)


class ProcessWatcher:
    """Background thread that calls ``update()`` until the process terminates."""

    def __init__(self, child: ChildProcess, poll_interval: float = 0.0) -> None:
        self._child = child
        self._poll_interval = poll_interval
        self._thread: threading.Thread | None = None
        self._future: Future[int | None] = Future()

    def start(self) -> Future[int | None]:
        if self._thread is not None:
            return self._future
        name = f"ProcessWatcher-{self._child.pid}"
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._future.set_running_or_notify_cancel()
        self._thread.start()
        return self._future

    def _run(self) -> None:
        thread_name = threading.current_thread().name
        try:
            while self._child.update():
                if self._poll_interval > 0:
                    time.sleep(self._poll_interval)
        except KeyboardInterrupt:
            logger.warning("Thread %s caught KeyboardInterrupt", thread_name)
            self._child.kill(force=True)
            _thread.interrupt_main()
            self._future.set_exception(KeyboardInterrupt())
            raise
        except Exception as e:
            logger.warning("Watcher thread error in %s: %s", thread_name, e)
            self._child.kill(force=True)
            self._future.set_exception(e)
        else:
            self._future.set_result(self._child.exit_code)

    @property
    def thread(self) -> threading.Thread | None:
        return self._thread

    @property
    def future(self) -> Future[int | None]:
        return self._future
