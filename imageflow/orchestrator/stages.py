"""Stage runner: fan-out/fan-in barrier over sub-operations."""
import asyncio
import logging
from typing import List, Optional, Sequence

from ..errors import FatalOrchestrationError
from ..models import StageOutcome, StepRecord, SubOperationCall, SubOperationResult
from ..protocols import IOperationClient
from ..utils.events import (
    CALL_COMPLETE,
    CALL_ISSUED,
    STAGE_COMPLETE,
    STAGE_START,
    EventEmitter,
    WorkflowEvent,
)

logger = logging.getLogger(__name__)


class Stage:
    """
    A barrier-synchronized group of sub-operations.

    All calls are issued before anything is awaited; run() returns only once
    every call has completed, successfully or not. A failed sub-operation
    does not stop the barrier; a fault in the wait itself raises
    FatalOrchestrationError after all handles have settled.
    """

    def __init__(
        self,
        workflow: str,
        name: str,
        client: IOperationClient,
        events: Optional[EventEmitter] = None,
    ):
        self.workflow = workflow
        self.name = name
        self._client = client
        self._events = events

    async def _emit(self, name: str, operation: Optional[str] = None, success: Optional[bool] = None):
        if self._events is not None:
            await self._events.emit(
                WorkflowEvent(self.workflow, name, stage=self.name, operation=operation, success=success)
            )

    async def run(self, calls: Sequence[SubOperationCall]) -> StageOutcome:
        await self._emit(STAGE_START)

        handles = []
        try:
            for call in calls:
                handles.append(self._client.call_async(call.operation, call.payload))
        except Exception as exc:
            await asyncio.gather(*handles, return_exceptions=True)
            logger.error(f"[stage] {self.workflow}/{self.name}: issue faulted: {exc!r}")
            raise FatalOrchestrationError(str(exc) or type(exc).__name__) from exc

        for call in calls:
            logger.debug(f"[stage] {self.workflow}/{self.name}: issued {call.name}")
            await self._emit(CALL_ISSUED, operation=call.name)

        results = await asyncio.gather(*handles, return_exceptions=True)

        faults = [r for r in results if isinstance(r, BaseException)]
        if faults:
            logger.error(f"[stage] {self.workflow}/{self.name}: wait faulted: {faults[0]!r}")
            raise FatalOrchestrationError(str(faults[0]) or type(faults[0]).__name__) from faults[0]

        records: List[StepRecord] = []
        for call, result in zip(calls, results):
            if not isinstance(result, SubOperationResult):
                raise FatalOrchestrationError(
                    f"{call.name} returned {type(result).__name__}, expected SubOperationResult"
                )
            record = StepRecord.from_result(self.name, call, result)
            records.append(record)
            await self._emit(CALL_COMPLETE, operation=call.name, success=record.success)

        outcome = StageOutcome(self.name, tuple(records))
        failed = len(outcome.failed)
        if failed:
            logger.warning(f"[stage] {self.workflow}/{self.name}: {failed}/{len(records)} failed")
        else:
            logger.info(f"[stage] {self.workflow}/{self.name}: {len(records)} completed")
        await self._emit(STAGE_COMPLETE, success=not failed)
        return outcome
