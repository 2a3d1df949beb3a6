"""
Single-Writer Funnel

Embedding async hosts route every mutation through one LedgerWriter so updates are
applied strictly one at a time, in submission order. Store I/O runs in a
worker thread and never blocks the event loop.

A request cancelled while still queued is skipped and nothing lands. Once the
worker has taken a request it runs to completion, so a cancelled caller never
leaves a half-applied update behind.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .errors import OperationResult
from .logging_config import get_logger
from .system import LedgerSystem


@dataclass
class WriteRequest:
    operation: str
    params: Dict[str, Any]
    future: asyncio.Future = field(repr=False)


class LedgerWriter:
    """
    Serializes mutations of a LedgerSystem through an asyncio queue
    """

    def __init__(self, system: LedgerSystem):
        self.system = system
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self.logger = get_logger("economy_ledger.writer")

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    async def start(self) -> None:
        if self.running:
            return
        self._queue = asyncio.Queue()
        self._worker = asyncio.create_task(self._run())
        self.logger.info("Ledger writer started")

    async def stop(self) -> None:
        """Finish queued requests, then stop the worker"""
        if not self.running:
            return
        await self._queue.join()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        self.logger.info("Ledger writer stopped")

    async def submit(self, operation: str, **params: Any) -> OperationResult:
        """Queue a mutation and wait for its result"""
        if not self.running:
            raise RuntimeError("Ledger writer is not running")
        future = asyncio.get_running_loop().create_future()
        await self._queue.put(WriteRequest(operation, params, future))
        return await future

    async def read(self, operation: str, **params: Any) -> OperationResult:
        """Run a read-only operation outside the queue"""
        return await asyncio.to_thread(self.system.execute, operation, **params)

    async def _run(self) -> None:
        while True:
            request = await self._queue.get()
            try:
                if request.future.cancelled():
                    self.logger.debug(f"Skipping cancelled {request.operation} request")
                    continue
                # Shielded so cancelling the worker mid-update lets the update finish
                result = await asyncio.shield(
                    asyncio.to_thread(self.system.execute, request.operation, **request.params)
                )
            except Exception as e:
                if not request.future.done():
                    request.future.set_exception(e)
            else:
                if not request.future.done():
                    request.future.set_result(result)
            finally:
                self._queue.task_done()
