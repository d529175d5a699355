"""Supervision for work that can fail outside its own result channel.

The storage client's transport can report an error after the upload call
has already returned (a ``BrokenPipeError`` from a socket callback, a
background task failing with nobody awaiting it, an exception in one of the
transfer threads). asyncio hands such errors to the loop's exception
handler and threads to ``threading.excepthook``, where they would only be
logged. :class:`FaultBoundary` claims both hooks while it is armed:

- the supervised work's own return value or exception reaches the caller
  unchanged (the conventional channel);
- the first error reported through either hook is a late fault: the
  boundary disarms, cancels the supervised work if it is still running,
  awaits ``on_fault`` (the job's cleanup) and then raises
  :class:`LateFault` from :meth:`FaultBoundary.run` or
  :meth:`FaultBoundary.settle`, whichever the owner is awaiting.

Loop contexts that carry no exception (e.g. "Unclosed client session"), and
errors reported after the boundary disarmed or closed, go to the handlers
that were installed before it.

Example:
    boundary = FaultBoundary("upload", on_fault=cleanup)
    try:
        uri = await boundary.run(lambda: client.upload_archive(path, key))
        ...
        await boundary.settle()
    finally:
        boundary.close()
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from mongodb_s3_backup.core.exceptions import LateFault

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FaultBoundary:
    """Two-channel supervisor scoped to one stage of a job."""

    def __init__(self, name: str, on_fault: Callable[[], Awaitable[Any]]) -> None:
        """Initialize the boundary.

        Args:
            name: Stage name, used in logs and in the LateFault.
            on_fault: Coroutine function run once, before escalation, when
                a late fault is caught.
        """
        self.name = name
        self._on_fault = on_fault
        self._loop: asyncio.AbstractEventLoop | None = None
        self._previous_loop_handler: Callable[..., Any] | None = None
        self._previous_thread_hook: Callable[[Any], Any] | None = None
        self._installed = False
        self._armed = False
        self._work: asyncio.Future[Any] | None = None
        self._escalation: asyncio.Future[None] | None = None
        self._escalation_task: asyncio.Task[None] | None = None
        self.fault: BaseException | None = None

    @property
    def armed(self) -> bool:
        return self._armed

    @property
    def faulted(self) -> bool:
        return self.fault is not None

    def arm(self) -> None:
        """Install the loop and thread hooks. Must run inside the event loop."""
        if self._installed:
            return
        loop = asyncio.get_running_loop()
        self._loop = loop
        self._escalation = loop.create_future()
        self._previous_loop_handler = loop.get_exception_handler()
        loop.set_exception_handler(self._handle_loop_exception)
        self._previous_thread_hook = threading.excepthook
        threading.excepthook = self._handle_thread_exception
        self._installed = True
        self._armed = True
        logger.debug("Fault boundary armed", extra={"stage": self.name})

    def close(self) -> None:
        """Restore the previous hooks. Safe to call more than once."""
        self._armed = False
        if not self._installed:
            return
        self._loop.set_exception_handler(self._previous_loop_handler)
        if threading.excepthook == self._handle_thread_exception:
            threading.excepthook = self._previous_thread_hook
        if self._escalation is not None and not self._escalation.done():
            self._escalation.cancel()
        self._installed = False
        logger.debug("Fault boundary closed", extra={"stage": self.name})

    async def run(self, work: Callable[[], Awaitable[T]]) -> T:
        """Run ``work()`` under supervision and return its result.

        Raises:
            LateFault: If a late fault was caught before ``work()`` finished
                or while its result was being delivered.
            Exception: Whatever ``work()`` raised, unchanged.
        """
        self.arm()
        self._work = asyncio.ensure_future(work())
        await asyncio.wait({self._work, self._escalation}, return_when=asyncio.FIRST_COMPLETED)

        if self.faulted:
            if self._work.done() and not self._work.cancelled():
                # The late fault wins; the work's own outcome is discarded.
                self._work.exception()
            await self._escalation
        return self._work.result()

    async def settle(self) -> None:
        """Let pending callbacks run, then raise a caught late fault.

        Call after the supervised stage has returned so that errors queued
        behind its completion are still attributed to the boundary.

        Raises:
            LateFault: If a late fault was caught at any point while armed.
        """
        if self._installed:
            for _ in range(3):
                await asyncio.sleep(0)
        if self.faulted:
            await self._escalation

    async def __aenter__(self) -> FaultBoundary:
        self.arm()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _handle_loop_exception(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        exc = context.get("exception")
        # Message-only contexts (unclosed sessions, slow callbacks) are diagnostics.
        if not self._armed or exc is None:
            self._delegate_loop_exception(loop, context)
            return
        self._report(exc)

    def _delegate_loop_exception(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        if self._previous_loop_handler is not None:
            self._previous_loop_handler(loop, context)
        else:
            loop.default_exception_handler(context)

    def _handle_thread_exception(self, args: threading.ExceptHookArgs) -> None:
        loop = self._loop
        if not self._armed or loop is None or loop.is_closed() or args.exc_type is SystemExit:
            self._previous_thread_hook(args)
            return
        loop.call_soon_threadsafe(self._report, args.exc_value)

    def _report(self, exc: BaseException) -> None:
        if not self._armed:
            self._loop.call_exception_handler(
                {"message": f"Unhandled error after {self.name} fault boundary disarmed", "exception": exc}
            )
            return

        self._armed = False
        self.fault = exc
        logger.error(
            "Late fault during %s; cleaning up before escalating",
            self.name,
            exc_info=(type(exc), exc, exc.__traceback__),
            extra={"stage": self.name, "error": repr(exc)},
        )
        self._escalation_task = self._loop.create_task(self._escalate(exc))

    async def _escalate(self, exc: BaseException) -> None:
        work = self._work
        if work is not None and not work.done():
            work.cancel()
            await asyncio.gather(work, return_exceptions=True)
        try:
            await self._on_fault()
        finally:
            late = LateFault(self.name, exc)
            late.__cause__ = exc
            if not self._escalation.done():
                self._escalation.set_exception(late)
