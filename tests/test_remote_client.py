"""Tests for RemoteOperationClient."""
import asyncio
import json
import threading
import time

import pytest

from imageflow.errors import SubOperationError
from imageflow.services import envelope
from imageflow.services.remote import RemoteOperationClient
from imageflow.services.transports import LocalTransport


def _echo(event):
    payload = json.loads(event["body"])
    return envelope.reply(200, json.dumps(payload), "application/json")


class RaisingTransport:
    def __init__(self, exc):
        self.exc = exc

    def invoke(self, operation, envelope, timeout):
        raise self.exc


def test_call_wraps_payload_as_json_body():
    seen = []

    def handler(event):
        seen.append(event)
        return envelope.reply(200, "ok")

    client = RemoteOperationClient(LocalTransport({"op": handler}))
    result = client.call("op", {"email": "a@b.com"})

    assert result.success
    assert result.payload == "ok"
    assert seen == [{"body": json.dumps({"email": "a@b.com"})}]


def test_missing_reply_body_is_empty_string():
    client = RemoteOperationClient(LocalTransport({"op": lambda event: {"statusCode": 200}}))
    result = client.call("op", {})
    assert result.success
    assert result.payload == ""


def test_textual_base64_body_is_decoded():
    handler = lambda event: envelope.reply(200, "Object uploaded successfully", base64_encode=True)
    client = RemoteOperationClient(LocalTransport({"op": handler}))
    assert client.call("op", {}).payload == "Object uploaded successfully"


def test_binary_base64_body_is_forwarded_as_is():
    reply = {"statusCode": 200, "headers": {"Content-Type": "image/jpeg"}, "body": "/9j/4AAQ", "isBase64Encoded": True}
    client = RemoteOperationClient(LocalTransport({"op": lambda event: reply}))
    assert client.call("op", {}).payload == "/9j/4AAQ"


def test_error_status_becomes_failure():
    handler = lambda event: envelope.reply(500, '{"error": "Upload failed"}', "application/json")
    client = RemoteOperationClient(LocalTransport({"op": handler}))
    result = client.call("op", {})
    assert not result.success
    assert result.error.startswith("Error calling op:")
    assert "Upload failed" in result.error


def test_transport_errors_are_captured():
    client = RemoteOperationClient(RaisingTransport(SubOperationError("op", "unreachable")))
    result = client.call("op", {})
    assert result.error == "Error calling op: unreachable"


def test_unexpected_errors_are_captured():
    client = RemoteOperationClient(RaisingTransport(RuntimeError("boom")))
    result = client.call("op", {})
    assert result.error == "Error calling op: boom"


def test_unknown_operation_is_captured():
    client = RemoteOperationClient(LocalTransport())
    result = client.call("missing", {})
    assert not result.success
    assert "missing" in result.error


@pytest.mark.asyncio
async def test_call_async_runs_calls_in_parallel():
    barrier = threading.Barrier(2, timeout=2)

    def handler(event):
        barrier.wait()
        return _echo(event)

    async with RemoteOperationClient(LocalTransport({"op": handler}), max_workers=2) as client:
        first = client.call_async("op", {"n": 1})
        second = client.call_async("op", {"n": 2})
        results = await asyncio.gather(first, second)

    assert [json.loads(r.payload) for r in results] == [{"n": 1}, {"n": 2}]


@pytest.mark.asyncio
async def test_call_async_timeout_becomes_failure():
    release = threading.Event()

    def slow(event):
        release.wait(timeout=5)
        return envelope.reply(200, "late")

    started = time.monotonic()
    async with RemoteOperationClient(LocalTransport({"op": slow}), timeout=0.05) as client:
        result = await client.call_async("op", {})
    elapsed = time.monotonic() - started
    release.set()

    assert not result.success
    assert "timed out after 0.05s" in result.error
    # Teardown does not wait for the abandoned call
    assert elapsed < 1.0


def test_malformed_reply_headers_are_captured():
    reply = {"statusCode": 200, "headers": "text/plain", "isBase64Encoded": True, "body": "aGk="}
    client = RemoteOperationClient(LocalTransport({"op": lambda event: reply}))

    result = client.call("op", {})

    assert not result.success
    assert result.error.startswith("Error calling op:")
    assert "headers" in result.error


def test_non_object_reply_is_captured():
    class ListTransport:
        def invoke(self, operation, envelope, timeout):
            return ["not", "an", "envelope"]

    result = RemoteOperationClient(ListTransport()).call("op", {})

    assert not result.success
    assert "list" in result.error


def test_close_is_idempotent():
    client = RemoteOperationClient(LocalTransport({"op": _echo}))
    client.call("op", {})
    client.close()
    client.close()
