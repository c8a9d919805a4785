"""Workflow orchestration: gate, staged sub-operations, aggregation."""
from .core import WorkflowOrchestrator, build_secret_source, build_transport
from .delete_workflow import DeleteWorkflow
from .gate import AuthorizationGate
from .keys import generate_key, resized_key
from .list_workflow import ListWorkflow
from .stages import Stage
from .upload_workflow import UploadWorkflow

__all__ = [
    "WorkflowOrchestrator",
    "build_secret_source",
    "build_transport",
    "AuthorizationGate",
    "Stage",
    "UploadWorkflow",
    "DeleteWorkflow",
    "ListWorkflow",
    "generate_key",
    "resized_key",
]
