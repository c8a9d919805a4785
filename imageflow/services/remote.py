"""
Remote Operation Client.

Uniform invocation of named backend operations. Transport and service
errors are captured into the SubOperationResult instead of being raised,
so one unavailable dependency never crashes a workflow.
"""
from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Optional

from ..errors import SubOperationError
from ..models import SubOperationResult
from ..protocols import ITransport
from . import envelope

logger = logging.getLogger(__name__)


class RemoteOperationClient:
    """
    Invokes backend operations through a transport.

    Usage:
        with RemoteOperationClient(HTTPTransport(url)) as client:
            result = client.call("token-checker", {"email": e, "token": t})

        async with RemoteOperationClient(transport) as client:
            a = client.call_async("upload-object", payload_a)
            b = client.call_async("image-resizer", payload_b)
            results = await asyncio.gather(a, b)
    """

    def __init__(self, transport: ITransport, timeout: float = 30.0, max_workers: int = 8):
        self._transport = transport
        self._timeout = timeout
        self._max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def timeout(self) -> float:
        return self._timeout

    def _pool(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers, thread_name_prefix="imageflow-call"
            )
        return self._executor

    def close(self) -> None:
        """
        Release the worker pool without waiting.

        Queued calls are cancelled; calls already abandoned by their timeout
        finish in the background and their results are discarded.
        """
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        self.close()

    def call(self, operation: str, payload: Dict[str, Any]) -> SubOperationResult:
        """Invoke synchronously. Never raises for backend failures."""
        logger.debug(f"[remote] calling {operation}")
        try:
            reply = self._transport.invoke(operation, envelope.wrap(payload), self._timeout)
            if not isinstance(reply, dict):
                raise ValueError(f"reply must be an object, got {type(reply).__name__}")
            status_code = reply.get("statusCode")
            body = envelope.extract_body(reply)
        except SubOperationError as exc:
            logger.warning(f"[remote] {exc}")
            return SubOperationResult.failure(operation, str(exc))
        except Exception as exc:
            error = SubOperationError(operation, str(exc) or type(exc).__name__)
            logger.warning(f"[remote] {error}")
            return SubOperationResult.failure(operation, str(error))

        if isinstance(status_code, int) and status_code >= 400:
            error = SubOperationError(operation, f"status {status_code}: {body}")
            logger.warning(f"[remote] {error}")
            return SubOperationResult.failure(operation, str(error))

        logger.info(f"[remote] {operation} completed ({len(body)} chars)")
        return SubOperationResult.ok(operation, body)

    async def _call_in_pool(self, operation: str, payload: Dict[str, Any]) -> SubOperationResult:
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(self._pool(), self.call, operation, payload)
        try:
            return await asyncio.wait_for(future, timeout=self._timeout)
        except asyncio.TimeoutError:
            error = SubOperationError(operation, f"timed out after {self._timeout}s")
            logger.warning(f"[remote] {error}")
            return SubOperationResult.failure(operation, str(error))

    def call_async(self, operation: str, payload: Dict[str, Any]) -> "asyncio.Task[SubOperationResult]":
        """Schedule call() on the worker pool; await the returned task for the result."""
        return asyncio.ensure_future(self._call_in_pool(operation, payload))
