"""Transports that deliver envelopes to backend operations."""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Dict, Optional

import boto3
import httpx
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import SubOperationError

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], Dict[str, Any]]


def _decode_reply(operation: str, raw: Any) -> Dict[str, Any]:
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if isinstance(raw, str):
        try:
            raw = json.loads(raw) if raw else {}
        except json.JSONDecodeError as exc:
            raise SubOperationError(operation, f"malformed reply: {exc}") from exc
    if not isinstance(raw, dict):
        raise SubOperationError(operation, f"unexpected reply type {type(raw).__name__}")
    return raw


class HTTPTransport:
    """
    HTTP adapter: POST {base_url}/{operation} with the envelope as JSON.

    Retries transport errors and 5xx responses with a short backoff. One
    connection-pooling client is shared by every call; close() releases it
    unless it was injected.
    """

    def __init__(self, base_url: str, max_retries: int = 3, client: Optional[httpx.Client] = None):
        self._base_url = base_url.rstrip("/")
        self._max_retries = max_retries
        self._owns_client = client is None
        self._client = client if client is not None else httpx.Client()

    def close(self) -> None:
        if self._owns_client and not self._client.is_closed:
            self._client.close()

    def _post(self, url: str, envelope: Dict[str, Any], timeout: float) -> httpx.Response:
        return self._client.post(url, json=envelope, timeout=timeout)

    def invoke(self, operation: str, envelope: Dict[str, Any], timeout: float) -> Dict[str, Any]:
        url = f"{self._base_url}/{operation}"
        last_exception: Optional[Exception] = None

        for attempt in range(self._max_retries):
            try:
                response = self._post(url, envelope, timeout)

                if response.status_code >= 500 and attempt < self._max_retries - 1:
                    time.sleep(0.5 * (attempt + 1))
                    continue

                if response.status_code >= 400:
                    raise SubOperationError(
                        operation, f"HTTP {response.status_code}: {response.text}"
                    )

                return _decode_reply(operation, response.content)
            except httpx.RequestError as exc:
                last_exception = exc
                if attempt < self._max_retries - 1:
                    time.sleep(0.5 * (attempt + 1))
                    continue
                raise SubOperationError(operation, str(exc) or type(exc).__name__) from exc

        raise SubOperationError(
            operation, f"failed after {self._max_retries} attempts: {last_exception}"
        )


class LambdaTransport:
    """Invokes backend operations as Lambda functions (RequestResponse)."""

    def __init__(self, region: str = "us-east-1", client=None, timeout: float = 30.0):
        if client is None:
            client = boto3.client(
                "lambda",
                region_name=region,
                config=Config(read_timeout=timeout, retries={"max_attempts": 2}),
            )
        self._client = client

    def invoke(self, operation: str, envelope: Dict[str, Any], timeout: float) -> Dict[str, Any]:
        try:
            response = self._client.invoke(
                FunctionName=operation,
                InvocationType="RequestResponse",
                Payload=json.dumps(envelope).encode("utf-8"),
            )
        except (BotoCoreError, ClientError) as exc:
            raise SubOperationError(operation, str(exc)) from exc

        payload = response["Payload"].read()
        if response.get("FunctionError"):
            raise SubOperationError(
                operation, f"{response['FunctionError']}: {payload.decode('utf-8', 'replace')}"
            )
        return _decode_reply(operation, payload)


class LocalTransport:
    """In-process transport: operation name -> handler callable."""

    def __init__(self, handlers: Optional[Dict[str, Handler]] = None):
        self._handlers: Dict[str, Handler] = dict(handlers or {})

    def register(self, operation: str, handler: Handler) -> None:
        self._handlers[operation] = handler

    @property
    def operations(self):
        return sorted(self._handlers)

    def invoke(self, operation: str, envelope: Dict[str, Any], timeout: float) -> Dict[str, Any]:
        handler = self._handlers.get(operation)
        if handler is None:
            raise SubOperationError(operation, "operation not registered")
        return _decode_reply(operation, handler(envelope))
