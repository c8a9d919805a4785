"""
Models for imageflow.

Immutable dataclasses: requests, sub-operation calls and results, and the
per-step records a workflow aggregates into its outcome.
"""
import json
import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .errors import AggregationPartialFailure, AuthorizationDenied, FatalOrchestrationError


class WorkflowStatus(Enum):
    """Workflow outcome status."""
    SUCCESS = "success"
    PARTIAL = "partial"  # Some sub-operations failed, others succeeded
    DENIED = "denied"
    FAILED = "failed"


@dataclass(frozen=True)
class UploadRequest:
    """Upload an image with a free-text description."""
    email: str
    token: str
    content: str  # base64 encoded image bytes
    name: str
    description: str = ""

    @property
    def extension(self) -> str:
        """Extension of the target name, including the dot ('' if none)."""
        _, ext = os.path.splitext(self.name)
        return ext


@dataclass(frozen=True)
class DeleteRequest:
    """Delete an image, its thumbnail and its metadata record."""
    email: str
    token: str
    key: str


@dataclass(frozen=True)
class ListRequest:
    """List images for an authenticated caller."""
    email: str
    token: str


@dataclass(frozen=True)
class SubOperationCall:
    """One call to a backend operation, created per stage."""
    operation: str
    payload: Dict[str, Any]
    label: str = ""
    binary: bool = False  # payload of the reply is encoded image data

    @property
    def name(self) -> str:
        return self.label or self.operation


@dataclass(frozen=True)
class SubOperationResult:
    """Result of a backend call. Exactly one of payload/error is meaningful."""
    operation: str
    payload: str = ""
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None

    @classmethod
    def ok(cls, operation: str, payload: str = ""):
        return cls(operation=operation, payload=payload)

    @classmethod
    def failure(cls, operation: str, error: str):
        return cls(operation=operation, payload="", error=error)


@dataclass(frozen=True)
class StepRecord:
    """Tagged record of one sub-operation inside a workflow."""
    stage: str
    operation: str
    success: bool
    payload: str = ""
    error: Optional[str] = None
    binary: bool = False

    @classmethod
    def from_result(cls, stage: str, call: SubOperationCall, result: SubOperationResult):
        return cls(
            stage=stage,
            operation=call.name,
            success=result.success,
            payload=result.payload,
            error=result.error,
            binary=call.binary,
        )

    @property
    def text(self) -> str:
        """Display text: error when failed, payload otherwise (binary payloads hidden)."""
        if not self.success:
            return self.error or ""
        if self.binary:
            return ""
        return self.payload

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "stage": self.stage,
            "operation": self.operation,
            "success": self.success,
        }
        if self.success:
            data["payload"] = "" if self.binary else self.payload
        else:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class StageOutcome:
    """Ordered results of one barrier-synchronized stage."""
    name: str
    records: Tuple[StepRecord, ...] = ()

    @property
    def failed(self) -> List[StepRecord]:
        return [r for r in self.records if not r.success]

    def result_for(self, operation: str) -> Optional[StepRecord]:
        for record in self.records:
            if record.operation == operation:
                return record
        return None


@dataclass(frozen=True)
class WorkflowOutcome:
    """Aggregated outcome of one workflow."""
    workflow: str
    status: WorkflowStatus
    records: Tuple[StepRecord, ...] = ()
    key: Optional[str] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == WorkflowStatus.SUCCESS

    @property
    def errors(self) -> List[str]:
        return [r.error for r in self.records if not r.success and r.error]

    @classmethod
    def from_stages(cls, workflow: str, stages: List[StageOutcome], key: Optional[str] = None):
        records = tuple(record for stage in stages for record in stage.records)
        status = WorkflowStatus.SUCCESS
        if any(not r.success for r in records):
            status = WorkflowStatus.PARTIAL
        return cls(workflow=workflow, status=status, records=records, key=key)

    @classmethod
    def denied(cls, workflow: str, error: str = "Invalid token"):
        return cls(workflow=workflow, status=WorkflowStatus.DENIED, error=error)

    @classmethod
    def fatal(cls, workflow: str, error: str, key: Optional[str] = None):
        return cls(workflow=workflow, status=WorkflowStatus.FAILED, key=key, error=error)

    def render(self) -> str:
        """Concatenate step texts in order (legacy display form)."""
        if self.status == WorkflowStatus.FAILED:
            return f"Error: {self.error}"
        if self.status == WorkflowStatus.DENIED:
            return self.error or ""
        return "".join(record.text for record in self.records)

    def raise_for_status(self) -> "WorkflowOutcome":
        """Raise the error kind matching a non-success status."""
        if self.status == WorkflowStatus.DENIED:
            raise AuthorizationDenied(self.error or "Invalid token")
        if self.status == WorkflowStatus.FAILED:
            raise FatalOrchestrationError(self.error or "workflow failed")
        if self.status == WorkflowStatus.PARTIAL:
            raise AggregationPartialFailure(self.workflow, self.errors)
        return self

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "workflow": self.workflow,
            "status": self.status.value,
            "steps": [record.to_dict() for record in self.records],
        }
        if self.key:
            data["key"] = self.key
        if self.error:
            data["error"] = self.error
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class WorkflowConfig:
    """Immutable configuration for workflow orchestration."""
    primary_container: str = "images"
    resized_container: str = "resized-images"
    resized_prefix: str = "resized-"
    # Backend operation names
    token_check_operation: str = "token-checker"
    token_issue_operation: str = "token-generator"
    store_object_operation: str = "upload-object"
    delete_object_operation: str = "delete-object"
    transform_operation: str = "image-resizer"
    insert_metadata_operation: str = "upload-description"
    delete_metadata_operation: str = "delete-description"
    list_metadata_operation: str = "list-descriptions"
    # Remote invocation
    transport: str = "local"
    api_url: Optional[str] = None
    region: str = "us-east-1"
    timeout: float = 30.0
    max_workers: int = 8
    # Token secret (one source for issuing and verifying)
    token_secret: Optional[str] = None
    secret_parameter: Optional[str] = None
    # Response envelope
    structured_response: bool = False
    thumbnail_max_dimension: int = 100

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None, **overrides) -> "WorkflowConfig":
        """Build config from IMAGEFLOW_* environment variables."""
        env = os.environ if environ is None else environ
        defaults = cls()
        values: Dict[str, Any] = {
            "primary_container": env.get("IMAGEFLOW_PRIMARY_CONTAINER") or defaults.primary_container,
            "resized_container": env.get("IMAGEFLOW_RESIZED_CONTAINER") or defaults.resized_container,
            "transport": env.get("IMAGEFLOW_TRANSPORT") or defaults.transport,
            "api_url": env.get("IMAGEFLOW_API_URL") or defaults.api_url,
            "region": env.get("IMAGEFLOW_REGION") or defaults.region,
            "timeout": float(env.get("IMAGEFLOW_TIMEOUT") or defaults.timeout),
            "max_workers": int(env.get("IMAGEFLOW_MAX_WORKERS") or defaults.max_workers),
            "token_secret": env.get("IMAGEFLOW_TOKEN_SECRET") or defaults.token_secret,
            "secret_parameter": env.get("IMAGEFLOW_SECRET_PARAMETER") or defaults.secret_parameter,
            "structured_response": _env_bool(
                env.get("IMAGEFLOW_STRUCTURED_RESPONSE"), defaults.structured_response
            ),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
