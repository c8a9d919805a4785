"""
imageflow - gated multi-step image workflows over independent backends.

Coordinates object storage, metadata storage, image transformation and
token verification into three workflows: upload, delete and list.

Usage:
    from imageflow import WorkflowOrchestrator, WorkflowConfig, UploadRequest

    config = WorkflowConfig.from_env()
    async with WorkflowOrchestrator(config) as orchestrator:
        outcome = await orchestrator.upload(
            UploadRequest(email, token, content_b64, "photo.png", "A cat")
        )
        print(outcome.status, outcome.key, outcome.render())

    # Front-door handlers (inbound/outbound envelopes)
    from imageflow.handlers import handle_upload
    response = handle_upload({"body": json.dumps({...})})
"""
from .errors import (
    AggregationPartialFailure,
    AuthorizationDenied,
    CryptoError,
    FatalOrchestrationError,
    ImageflowError,
    SubOperationError,
)
from .models import (
    DeleteRequest,
    ListRequest,
    StepRecord,
    SubOperationResult,
    UploadRequest,
    WorkflowConfig,
    WorkflowOutcome,
    WorkflowStatus,
)
from .orchestrator import WorkflowOrchestrator
from .services import RemoteOperationClient, TokenService, issue_token, verify_token

__version__ = "0.1.0"
__all__ = [
    # Main
    "WorkflowOrchestrator",
    "RemoteOperationClient",
    "TokenService",
    "issue_token",
    "verify_token",
    # Models
    "UploadRequest",
    "DeleteRequest",
    "ListRequest",
    "SubOperationResult",
    "StepRecord",
    "WorkflowOutcome",
    "WorkflowStatus",
    "WorkflowConfig",
    # Errors
    "ImageflowError",
    "CryptoError",
    "AuthorizationDenied",
    "SubOperationError",
    "AggregationPartialFailure",
    "FatalOrchestrationError",
]
