"""Shared plumbing for gated workflows."""
from typing import Optional

from ..models import WorkflowConfig
from ..protocols import IOperationClient
from ..utils.events import EventEmitter
from .gate import AuthorizationGate
from .stages import Stage


class BaseWorkflow:
    """Gate + stages over one explicitly owned client."""

    name = "workflow"

    def __init__(
        self,
        client: IOperationClient,
        config: Optional[WorkflowConfig] = None,
        events: Optional[EventEmitter] = None,
    ):
        self._client = client
        self._config = config or WorkflowConfig()
        self._events = events
        self._gate = AuthorizationGate(client, self._config, events)

    def _stage(self, name: str) -> Stage:
        return Stage(self.name, name, self._client, self._events)
