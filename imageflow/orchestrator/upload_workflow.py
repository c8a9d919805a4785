"""Upload workflow: store original, thumbnail and description."""
import logging

from ..errors import AuthorizationDenied, FatalOrchestrationError
from ..models import SubOperationCall, UploadRequest, WorkflowOutcome
from .base import BaseWorkflow
from .keys import generate_key, resized_key

logger = logging.getLogger(__name__)

STORE_ORIGINAL = "store-original"
THUMBNAIL = "thumbnail"
STORE_RESIZED = "store-resized"
INSERT_METADATA = "insert-metadata"


class UploadWorkflow(BaseWorkflow):
    """
    gate -> key -> stage A {store original, thumbnail}
                -> stage B {store thumbnail, insert metadata}

    Stage B always runs once stage A has settled, even if a stage A call
    failed. Nothing is rolled back on partial failure.
    """

    name = "upload"

    async def run(self, request: UploadRequest) -> WorkflowOutcome:
        try:
            await self._gate.ensure(self.name, request.email, request.token)
        except AuthorizationDenied as exc:
            return WorkflowOutcome.denied(self.name, str(exc))

        cfg = self._config
        key = generate_key(request.name)
        logger.info(f"[upload] {request.name} -> {key}")

        try:
            originals = await self._stage("store-and-transform").run(
                [
                    SubOperationCall(
                        cfg.store_object_operation,
                        {"content": request.content, "key": key, "bucket": cfg.primary_container},
                        label=STORE_ORIGINAL,
                    ),
                    SubOperationCall(
                        cfg.transform_operation,
                        {"content": request.content},
                        label=THUMBNAIL,
                        binary=True,
                    ),
                ]
            )

            thumbnail = originals.result_for(THUMBNAIL)
            thumbnail_content = thumbnail.payload if thumbnail is not None and thumbnail.success else ""

            derived = await self._stage("store-derived").run(
                [
                    SubOperationCall(
                        cfg.store_object_operation,
                        {
                            "content": thumbnail_content,
                            "key": resized_key(key, cfg.resized_prefix),
                            "bucket": cfg.resized_container,
                        },
                        label=STORE_RESIZED,
                    ),
                    SubOperationCall(
                        cfg.insert_metadata_operation,
                        {"imageKey": key, "description": request.description, "email": request.email},
                        label=INSERT_METADATA,
                    ),
                ]
            )
        except FatalOrchestrationError as exc:
            logger.error(f"[upload] error during parallel execution for {key}: {exc}")
            return WorkflowOutcome.fatal(self.name, str(exc), key=key)

        return WorkflowOutcome.from_stages(self.name, [originals, derived], key=key)
