"""Delete workflow: original object, thumbnail and description."""
import logging

from ..errors import AuthorizationDenied, FatalOrchestrationError
from ..models import DeleteRequest, SubOperationCall, WorkflowOutcome
from .base import BaseWorkflow
from .keys import resized_key

logger = logging.getLogger(__name__)

DELETE_ORIGINAL = "delete-original"
DELETE_METADATA = "delete-metadata"
DELETE_RESIZED = "delete-resized"


class DeleteWorkflow(BaseWorkflow):
    """gate -> one stage of three independent deletions."""

    name = "delete"

    async def run(self, request: DeleteRequest) -> WorkflowOutcome:
        try:
            await self._gate.ensure(self.name, request.email, request.token)
        except AuthorizationDenied as exc:
            return WorkflowOutcome.denied(self.name, str(exc))

        cfg = self._config
        logger.info(f"[delete] {request.key}")

        try:
            deletions = await self._stage("delete").run(
                [
                    SubOperationCall(
                        cfg.delete_object_operation,
                        {"key": request.key, "bucket": cfg.primary_container},
                        label=DELETE_ORIGINAL,
                    ),
                    SubOperationCall(
                        cfg.delete_metadata_operation,
                        {"imageKey": request.key},
                        label=DELETE_METADATA,
                    ),
                    SubOperationCall(
                        cfg.delete_object_operation,
                        {"key": resized_key(request.key, cfg.resized_prefix), "bucket": cfg.resized_container},
                        label=DELETE_RESIZED,
                    ),
                ]
            )
        except FatalOrchestrationError as exc:
            logger.error(f"[delete] error during parallel execution for {request.key}: {exc}")
            return WorkflowOutcome.fatal(self.name, str(exc), key=request.key)

        return WorkflowOutcome.from_stages(self.name, [deletions], key=request.key)
