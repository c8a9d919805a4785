"""Core orchestrator - coordinates the upload, delete and list workflows."""
import json
from typing import Callable, Optional

from ..errors import SubOperationError
from ..models import DeleteRequest, ListRequest, UploadRequest, WorkflowConfig, WorkflowOutcome
from ..protocols import IOperationClient, ISecretSource, ITransport
from ..services.backends import LocalBackends
from ..services.remote import RemoteOperationClient
from ..services.secrets import EnvSecretSource, ParameterStoreSecretSource, StaticSecretSource
from ..services.transports import HTTPTransport, LambdaTransport
from ..utils.events import EventEmitter
from .delete_workflow import DeleteWorkflow
from .list_workflow import ListWorkflow
from .upload_workflow import UploadWorkflow


def build_secret_source(config: WorkflowConfig) -> ISecretSource:
    """One secret source for both issuing and verifying tokens."""
    if config.secret_parameter:
        return ParameterStoreSecretSource(config.secret_parameter, timeout=config.timeout)
    if config.token_secret:
        return StaticSecretSource(config.token_secret)
    return EnvSecretSource()


def build_transport(config: WorkflowConfig, secret_source: Optional[ISecretSource] = None) -> ITransport:
    """Transport selected by config.transport: http, lambda or local."""
    if config.transport == "http":
        if not config.api_url:
            raise ValueError("IMAGEFLOW_API_URL is required for the http transport")
        return HTTPTransport(config.api_url)
    if config.transport == "lambda":
        return LambdaTransport(config.region, timeout=config.timeout)
    if config.transport == "local":
        return LocalBackends(secret_source or build_secret_source(config), config).transport()
    raise ValueError(f"unknown transport: {config.transport}")


class WorkflowOrchestrator:
    """
    Runs gated workflows over an explicitly owned operation client.

    Usage:
        async with WorkflowOrchestrator(config) as orchestrator:
            outcome = await orchestrator.upload(UploadRequest(...))

        # With an injected client (tests, shared pools)
        orchestrator = WorkflowOrchestrator(config, client=client)
    """

    def __init__(
        self,
        config: Optional[WorkflowConfig] = None,
        client: Optional[IOperationClient] = None,
        transport: Optional[ITransport] = None,
    ):
        self._config = config or WorkflowConfig()
        self._transport = transport
        self._owned_transport: Optional[ITransport] = None
        self._client = client
        self._owns_client = client is None
        self.events = EventEmitter()
        self._upload: Optional[UploadWorkflow] = None
        self._delete: Optional[DeleteWorkflow] = None
        self._list: Optional[ListWorkflow] = None
        if client is not None:
            self._build_workflows()

    @property
    def config(self) -> WorkflowConfig:
        return self._config

    def _build_workflows(self) -> None:
        self._upload = UploadWorkflow(self._client, self._config, self.events)
        self._delete = DeleteWorkflow(self._client, self._config, self.events)
        self._list = ListWorkflow(self._client, self._config, self.events)

    async def __aenter__(self):
        """Create the client (if not injected) and the workflows."""
        if self._client is None:
            transport = self._transport
            if transport is None:
                transport = self._owned_transport = build_transport(self._config)
            self._client = RemoteOperationClient(
                transport, timeout=self._config.timeout, max_workers=self._config.max_workers
            )
            self._build_workflows()
        return self

    async def __aexit__(self, *args):
        """Shut down the owned client and transport; workflows are dropped with them."""
        if self._owns_client and isinstance(self._client, RemoteOperationClient):
            self._client.close()
            self._client = None
            self._upload = self._delete = self._list = None
        if self._owned_transport is not None:
            close = getattr(self._owned_transport, "close", None)
            if close is not None:
                close()
            self._owned_transport = None

    @staticmethod
    def _ready(component):
        if component is None:
            raise RuntimeError("orchestrator is not open: use 'async with' or inject a client")
        return component

    def on(self, event_name: str, callback: Callable) -> None:
        """Subscribe to a workflow lifecycle event."""
        self.events.on(event_name, callback)

    async def upload(self, request: UploadRequest) -> WorkflowOutcome:
        """Upload an image with description."""
        return await self._ready(self._upload).run(request)

    async def delete(self, request: DeleteRequest) -> WorkflowOutcome:
        """Delete an image, its thumbnail and its metadata."""
        return await self._ready(self._delete).run(request)

    async def list(self, request: ListRequest) -> WorkflowOutcome:
        """List images for the caller."""
        return await self._ready(self._list).run(request)

    async def issue_token(self, email: str) -> str:
        """
        Ask the token-generator operation for the caller's token.

        Raises:
            SubOperationError: the operation failed or replied without a token
        """
        client = self._ready(self._client)
        operation = self._config.token_issue_operation
        result = await client.call_async(operation, {"email": email})
        if not result.success:
            raise SubOperationError(operation, result.error or "failed")
        try:
            token = json.loads(result.payload).get("token")
        except (json.JSONDecodeError, AttributeError):
            token = None
        if not token:
            raise SubOperationError(operation, f"no token in reply: {result.payload!r}")
        return token
