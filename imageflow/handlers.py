"""
Front-door handlers: inbound request envelopes to workflow outcomes.

Each handler accepts an event ({"body": "<json>"} or the raw body string),
answers the keepalive sentinel without doing work, and returns an outbound
envelope {statusCode, headers, body, isBase64Encoded}.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from .errors import CryptoError, InvalidRequestError
from .models import (
    DeleteRequest,
    ListRequest,
    UploadRequest,
    WorkflowConfig,
    WorkflowOutcome,
    WorkflowStatus,
)
from .orchestrator import WorkflowOrchestrator, build_secret_source
from .services import envelope
from .services.tokens import TokenService

logger = logging.getLogger(__name__)

ACCESS_DENIED_MESSAGE = "Invalid token. Access denied."


def _require(body: Dict[str, Any], *fields: str) -> Dict[str, str]:
    missing = [f for f in fields if not isinstance(body.get(f), str) or body.get(f) == ""]
    if missing:
        raise InvalidRequestError(f"missing field(s): {', '.join(missing)}")
    return {f: body[f] for f in fields}


def parse_upload(body: Dict[str, Any]) -> UploadRequest:
    values = _require(body, "email", "token", "content", "key")
    description = body.get("description", "")
    if not isinstance(description, str):
        raise InvalidRequestError("description must be a string")
    return UploadRequest(
        email=values["email"],
        token=values["token"],
        content=values["content"],
        name=values["key"],
        description=description,
    )


def parse_delete(body: Dict[str, Any]) -> DeleteRequest:
    values = _require(body, "email", "token", "key")
    return DeleteRequest(email=values["email"], token=values["token"], key=values["key"])


def parse_list(body: Dict[str, Any]) -> ListRequest:
    values = _require(body, "email", "token")
    return ListRequest(email=values["email"], token=values["token"])


def bad_request(error: str) -> Dict[str, Any]:
    return envelope.reply(400, json.dumps({"success": False, "error": error}), "application/json")


def outcome_response(outcome: WorkflowOutcome, config: WorkflowConfig) -> Dict[str, Any]:
    """Map a workflow outcome onto the outbound envelope."""
    if outcome.status == WorkflowStatus.DENIED:
        return envelope.reply(403, ACCESS_DENIED_MESSAGE, "text/plain")
    if outcome.status == WorkflowStatus.FAILED:
        return envelope.reply(500, outcome.render(), "text/plain")

    headers = {}
    if outcome.status == WorkflowStatus.PARTIAL:
        headers["X-Workflow-Status"] = WorkflowStatus.PARTIAL.value
    if config.structured_response:
        return envelope.reply(200, outcome.to_json(), "application/json", headers=headers)
    return envelope.reply(200, outcome.render(), "text/plain", base64_encode=True, headers=headers)


async def _dispatch(
    event: Any,
    orchestrator: WorkflowOrchestrator,
    parse: Callable[[Dict[str, Any]], Any],
    run: Callable[[Any], Awaitable[WorkflowOutcome]],
) -> Dict[str, Any]:
    try:
        body = envelope.unwrap(event)
    except (ValueError, TypeError) as exc:
        return bad_request(f"malformed request body: {exc}")
    if body == envelope.KEEPALIVE_SENTINEL:
        logger.info("Invoked by EventBridge, no action taken.")
        return envelope.keepalive()

    try:
        request = parse(body)
    except InvalidRequestError as exc:
        return bad_request(str(exc))

    try:
        outcome = await run(request)
    except Exception as exc:
        logger.exception(f"[handler] unexpected failure: {exc}")
        return envelope.reply(500, f"Error: {exc}", "text/plain")

    logger.info(f"[handler] {outcome.workflow}: {outcome.status.value}")
    return outcome_response(outcome, orchestrator.config)


async def dispatch_upload(event: Any, orchestrator: WorkflowOrchestrator) -> Dict[str, Any]:
    return await _dispatch(event, orchestrator, parse_upload, orchestrator.upload)


async def dispatch_delete(event: Any, orchestrator: WorkflowOrchestrator) -> Dict[str, Any]:
    return await _dispatch(event, orchestrator, parse_delete, orchestrator.delete)


async def dispatch_list(event: Any, orchestrator: WorkflowOrchestrator) -> Dict[str, Any]:
    return await _dispatch(event, orchestrator, parse_list, orchestrator.list)


def _run(dispatch, event: Any, config: Optional[WorkflowConfig]) -> Dict[str, Any]:
    async def _main():
        async with WorkflowOrchestrator(config or WorkflowConfig.from_env()) as orchestrator:
            return await dispatch(event, orchestrator)

    return asyncio.run(_main())


def handle_upload(event: Any, context: Any = None, config: Optional[WorkflowConfig] = None) -> Dict[str, Any]:
    """Upload front door."""
    return _run(dispatch_upload, event, config)


def handle_delete(event: Any, context: Any = None, config: Optional[WorkflowConfig] = None) -> Dict[str, Any]:
    """Delete front door."""
    return _run(dispatch_delete, event, config)


def handle_list(event: Any, context: Any = None, config: Optional[WorkflowConfig] = None) -> Dict[str, Any]:
    """List front door."""
    return _run(dispatch_list, event, config)


def handle_issue_token(
    event: Any,
    context: Any = None,
    config: Optional[WorkflowConfig] = None,
    tokens: Optional[TokenService] = None,
) -> Dict[str, Any]:
    """Token issuance front door: {email} -> {token}."""
    try:
        body = envelope.unwrap(event)
    except (ValueError, TypeError) as exc:
        return bad_request(f"malformed request body: {exc}")
    if body == envelope.KEEPALIVE_SENTINEL:
        return envelope.keepalive()

    email = body.get("email")
    if not isinstance(email, str) or not email:
        logger.info("[handler] email is missing in the request")
        return bad_request("Email is required")

    if tokens is None:
        tokens = TokenService(build_secret_source(config or WorkflowConfig.from_env()))
    try:
        token = tokens.issue(email)
    except (KeyError, CryptoError) as exc:
        logger.error(f"[handler] token issuance failed: {exc}")
        return envelope.reply(500, json.dumps({"success": False, "error": str(exc)}), "application/json")
    return envelope.reply(200, json.dumps({"token": token}), "application/json")
