"""Tests for the fault isolation boundary."""
from __future__ import annotations

import asyncio
import threading
from unittest.mock import AsyncMock, MagicMock

import pytest

from mongodb_s3_backup.backup.boundary import FaultBoundary
from mongodb_s3_backup.core.exceptions import LateFault, UploadFailure


def _broken_pipe() -> None:
    raise BrokenPipeError(32, "Broken pipe")


@pytest.mark.unit
class TestConventionalChannel:
    """Results and errors of the supervised work itself."""

    @pytest.mark.asyncio
    async def test_returns_work_result(self):
        on_fault = AsyncMock()
        boundary = FaultBoundary("upload", on_fault=on_fault)

        async def work():
            return "s3://backups/orders.tar.gz"

        try:
            assert await boundary.run(work) == "s3://backups/orders.tar.gz"
            await boundary.settle()
        finally:
            boundary.close()

        on_fault.assert_not_awaited()
        assert not boundary.faulted

    @pytest.mark.asyncio
    async def test_work_error_propagates_unchanged(self):
        on_fault = AsyncMock()
        boundary = FaultBoundary("upload", on_fault=on_fault)
        failure = UploadFailure(ConnectionResetError("reset"))

        async def work():
            raise failure

        try:
            with pytest.raises(UploadFailure) as exc_info:
                await boundary.run(work)
        finally:
            boundary.close()

        assert exc_info.value is failure
        on_fault.assert_not_awaited()


@pytest.mark.unit
class TestLateFaults:
    """Errors surfacing outside the work's own result channel."""

    @pytest.mark.asyncio
    async def test_callback_error_after_completion_escalates_after_cleanup(self):
        events = []

        async def cleanup():
            events.append("cleanup")

        boundary = FaultBoundary("upload", on_fault=cleanup)

        async def work():
            # The transport fails after the call itself has succeeded.
            asyncio.get_running_loop().call_soon(_broken_pipe)
            return "s3://backups/orders.tar.gz"

        try:
            with pytest.raises(LateFault) as exc_info:
                await boundary.run(work)
                await boundary.settle()
        finally:
            boundary.close()

        assert events == ["cleanup"]
        assert isinstance(exc_info.value.cause, BrokenPipeError)
        assert exc_info.value.__cause__ is exc_info.value.cause
        assert exc_info.value.stage == "upload"

    @pytest.mark.asyncio
    async def test_fault_reported_during_settle(self):
        on_fault = AsyncMock()
        boundary = FaultBoundary("upload", on_fault=on_fault)

        async def work():
            return "done"

        try:
            assert await boundary.run(work) == "done"
            asyncio.get_running_loop().call_soon(_broken_pipe)
            with pytest.raises(LateFault):
                await boundary.settle()
        finally:
            boundary.close()

        on_fault.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_fault_while_work_runs_cancels_work(self):
        on_fault = AsyncMock()
        boundary = FaultBoundary("upload", on_fault=on_fault)
        cancelled = asyncio.Event()

        async def work():
            asyncio.get_running_loop().call_soon(_broken_pipe)
            try:
                await asyncio.sleep(3600)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        try:
            with pytest.raises(LateFault):
                await asyncio.wait_for(boundary.run(work), timeout=5)
        finally:
            boundary.close()

        assert cancelled.is_set()
        on_fault.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_thread_exception_is_a_late_fault(self):
        on_fault = AsyncMock()
        boundary = FaultBoundary("upload", on_fault=on_fault)

        def transfer_thread():
            raise ConnectionResetError(104, "Connection reset by peer")

        async def work():
            thread = threading.Thread(target=transfer_thread)
            thread.start()
            thread.join()
            return "done"

        try:
            with pytest.raises(LateFault) as exc_info:
                await boundary.run(work)
                await boundary.settle()
        finally:
            boundary.close()

        assert isinstance(exc_info.value.cause, ConnectionResetError)
        on_fault.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_only_first_fault_is_attributed(self):
        loop = asyncio.get_running_loop()
        previous = MagicMock()
        loop.set_exception_handler(previous)
        on_fault = AsyncMock()
        boundary = FaultBoundary("upload", on_fault=on_fault)

        async def work():
            loop.call_soon(_broken_pipe)
            loop.call_soon(_broken_pipe)
            return "done"

        try:
            with pytest.raises(LateFault):
                await boundary.run(work)
                await boundary.settle()
        finally:
            boundary.close()
            loop.set_exception_handler(None)

        on_fault.assert_awaited_once()
        previous.assert_called_once()
        context = previous.call_args.args[1]
        assert isinstance(context["exception"], BrokenPipeError)


@pytest.mark.unit
class TestHookLifecycle:
    """Installing and restoring the loop and thread hooks."""

    @pytest.mark.asyncio
    async def test_close_restores_previous_handlers(self):
        loop = asyncio.get_running_loop()
        previous = MagicMock()
        loop.set_exception_handler(previous)
        thread_hook = threading.excepthook
        boundary = FaultBoundary("upload", on_fault=AsyncMock())

        try:
            boundary.arm()
            assert boundary.armed
            assert loop.get_exception_handler() == boundary._handle_loop_exception
            assert threading.excepthook == boundary._handle_thread_exception

            boundary.close()
            boundary.close()

            assert not boundary.armed
            assert loop.get_exception_handler() is previous
            assert threading.excepthook is thread_hook
        finally:
            loop.set_exception_handler(None)

    @pytest.mark.asyncio
    async def test_errors_after_close_reach_previous_handler(self):
        loop = asyncio.get_running_loop()
        previous = MagicMock()
        loop.set_exception_handler(previous)
        on_fault = AsyncMock()

        try:
            async with FaultBoundary("upload", on_fault=on_fault) as boundary:
                assert boundary.armed
            loop.call_soon(_broken_pipe)
            await asyncio.sleep(0)
            await asyncio.sleep(0)
        finally:
            loop.set_exception_handler(None)

        previous.assert_called_once()
        on_fault.assert_not_awaited()
        assert not boundary.faulted

    @pytest.mark.asyncio
    async def test_message_only_context_is_not_a_fault(self):
        loop = asyncio.get_running_loop()
        previous = MagicMock()
        loop.set_exception_handler(previous)
        on_fault = AsyncMock()
        context = {"message": "Unclosed client session"}

        try:
            async with FaultBoundary("upload", on_fault=on_fault) as boundary:
                loop.call_exception_handler(context)
                await boundary.settle()
                assert boundary.armed
        finally:
            loop.set_exception_handler(None)

        previous.assert_called_once_with(loop, context)
        on_fault.assert_not_awaited()
        assert not boundary.faulted

    @pytest.mark.asyncio
    async def test_settle_without_arming_is_a_no_op(self):
        boundary = FaultBoundary("upload", on_fault=AsyncMock())

        await boundary.settle()
        boundary.close()

        assert not boundary.faulted
