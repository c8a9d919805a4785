"""Authorization gate preceding every workflow."""
import json
import logging
from typing import Optional, Tuple

from ..errors import AuthorizationDenied
from ..models import SubOperationResult, WorkflowConfig
from ..protocols import IOperationClient
from ..utils.events import GATE, EventEmitter, WorkflowEvent

logger = logging.getLogger(__name__)


def parse_check_reply(result: SubOperationResult) -> Tuple[bool, str]:
    """Reply of the token-check operation -> (allowed, reason)."""
    if not result.success:
        return False, result.error or "Invalid token"
    try:
        reply = json.loads(result.payload) if result.payload else {}
    except json.JSONDecodeError:
        return False, "unparsable token check reply"
    if not isinstance(reply, dict):
        return False, "unparsable token check reply"
    if reply.get("success") is True:
        return True, ""
    return False, reply.get("error") or "Invalid token"


class AuthorizationGate:
    """Verifies (email, token) through the token-check operation."""

    def __init__(self, client: IOperationClient, config: WorkflowConfig, events: Optional[EventEmitter] = None):
        self._client = client
        self._config = config
        self._events = events

    async def ensure(self, workflow: str, email: str, token: str) -> None:
        """
        Raise AuthorizationDenied unless the token checks out.

        Any failure of the check itself (transport error, unparsable reply)
        counts as a denial.
        """
        try:
            result = await self._client.call_async(
                self._config.token_check_operation, {"email": email, "token": token}
            )
            allowed, reason = parse_check_reply(result)
        except Exception as exc:
            allowed, reason = False, f"token check errored: {exc}"

        if self._events is not None:
            await self._events.emit(WorkflowEvent(workflow, GATE, success=allowed))

        if not allowed:
            logger.info(f"[gate] {workflow}: token validation failed for {email}: {reason}")
            raise AuthorizationDenied(reason)
        logger.debug(f"[gate] {workflow}: token accepted for {email}")
