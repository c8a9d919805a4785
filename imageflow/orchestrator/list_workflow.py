"""List workflow: one call to the metadata listing."""
from ..errors import AuthorizationDenied
from ..models import ListRequest, StageOutcome, StepRecord, SubOperationCall, WorkflowOutcome
from .base import BaseWorkflow

LIST_METADATA = "list-metadata"


class ListWorkflow(BaseWorkflow):
    name = "list"

    async def run(self, request: ListRequest) -> WorkflowOutcome:
        try:
            await self._gate.ensure(self.name, request.email, request.token)
        except AuthorizationDenied as exc:
            return WorkflowOutcome.denied(self.name, str(exc))

        call = SubOperationCall(
            self._config.list_metadata_operation, {"email": request.email}, label=LIST_METADATA
        )
        result = await self._client.call_async(call.operation, call.payload)
        stage = StageOutcome("list", (StepRecord.from_result("list", call, result),))
        return WorkflowOutcome.from_stages(self.name, [stage])
