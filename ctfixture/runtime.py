"""Blocking bridge to the asyncio-based managers.

Test fixtures are usually synchronous. Runtime runs one event loop on a
background thread and lets synchronous code wait for coroutines on it, so
every manager shares the same loop and executor.
"""

import asyncio
import logging
import threading
from typing import Any, Coroutine, Optional


class Runtime:
    """Event loop running on a daemon thread."""

    def __init__(self, name: str = "ctfixture-runtime") -> None:
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._closed = False
        self._thread.start()

    def _run(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def block_on(self, coro: Coroutine[Any, Any, Any], timeout: Optional[float] = None) -> Any:
        """Run `coro` on the runtime loop and wait for its result."""
        if self._closed:
            coro.close()
            raise RuntimeError("Runtime is closed")
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result(timeout)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join()
        self._loop.run_until_complete(self._loop.shutdown_default_executor())
        self._loop.close()
        logging.debug("Runtime closed")

    def __enter__(self) -> "Runtime":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> bool:
        self.close()
        return False
