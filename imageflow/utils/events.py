from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
import asyncio
import logging
logger = logging.getLogger(__name__)

GATE = "gate"
STAGE_START = "stage_start"
CALL_ISSUED = "call_issued"
CALL_COMPLETE = "call_complete"
STAGE_COMPLETE = "stage_complete"


@dataclass(frozen=True)
class WorkflowEvent:
    """Lifecycle event of a workflow."""
    workflow: str
    name: str
    stage: Optional[str] = None
    operation: Optional[str] = None
    success: Optional[bool] = None


class EventEmitter:
    """Simple event emitter for workflow lifecycle events."""

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}

    def on(self, event_name: str, callback: Callable):
        """Subscribe to an event."""
        if event_name not in self._listeners:
            self._listeners[event_name] = []
        if callback not in self._listeners[event_name]:
            self._listeners[event_name].append(callback)

    def on_any(self, callback: Callable):
        """Subscribe to every lifecycle event."""
        for event_name in (GATE, STAGE_START, CALL_ISSUED, CALL_COMPLETE, STAGE_COMPLETE):
            self.on(event_name, callback)

    def off(self, event_name: str, callback: Callable):
        """Unsubscribe from an event."""
        if event_name in self._listeners:
            if callback in self._listeners[event_name]:
                self._listeners[event_name].remove(callback)

    async def emit(self, event: WorkflowEvent):
        """Emit an event to all listeners of event.name."""
        if event.name not in self._listeners:
            return

        for callback in self._listeners[event.name][:]:  # Copy list to avoid modification during iteration
            try:
                if asyncio.iscoroutinefunction(callback):
                    await callback(event)
                else:
                    callback(event)
            except Exception as e:
                logger.error(f"Error in event listener for {event.name}: {e}")
