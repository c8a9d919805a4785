"""Tests for HTTP, Lambda and local transports."""
import io
import json

import httpx
import pytest
from botocore.exceptions import ClientError

from imageflow.errors import SubOperationError
from imageflow.services import transports
from imageflow.services.transports import HTTPTransport, LambdaTransport, LocalTransport

ENVELOPE = {"body": json.dumps({"email": "a@b.com"})}


@pytest.fixture
def no_sleep(monkeypatch):
    monkeypatch.setattr(transports.time, "sleep", lambda seconds: None)


def _http(handler, **kwargs):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HTTPTransport("http://backend/", client=client, **kwargs)


class TestHTTPTransport:
    def test_posts_envelope_to_operation_path(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"statusCode": 200, "body": "ok"})

        reply = _http(handler).invoke("token-checker", ENVELOPE, 5.0)

        assert reply == {"statusCode": 200, "body": "ok"}
        assert str(seen[0].url) == "http://backend/token-checker"
        assert json.loads(seen[0].content) == ENVELOPE

    def test_retries_server_errors(self, no_sleep):
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) < 3:
                return httpx.Response(503, text="busy")
            return httpx.Response(200, json={"body": "ok"})

        assert _http(handler).invoke("op", ENVELOPE, 5.0) == {"body": "ok"}
        assert len(attempts) == 3

    def test_client_errors_are_not_retried(self, no_sleep):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(404, text="no such operation")

        with pytest.raises(SubOperationError, match="HTTP 404"):
            _http(handler).invoke("op", ENVELOPE, 5.0)
        assert len(attempts) == 1

    def test_connection_errors_exhaust_retries(self, no_sleep):
        attempts = []

        def handler(request):
            attempts.append(request)
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(SubOperationError, match="refused"):
            _http(handler, max_retries=2).invoke("op", ENVELOPE, 5.0)
        assert len(attempts) == 2

    def test_malformed_reply(self):
        handler = lambda request: httpx.Response(200, text="<html>")
        with pytest.raises(SubOperationError, match="malformed reply"):
            _http(handler).invoke("op", ENVELOPE, 5.0)


class FakeLambdaClient:
    def __init__(self, payload=b"{}", function_error=None, exc=None):
        self.payload = payload
        self.function_error = function_error
        self.exc = exc
        self.calls = []

    def invoke(self, **kwargs):
        self.calls.append(kwargs)
        if self.exc is not None:
            raise self.exc
        response = {"StatusCode": 200, "Payload": io.BytesIO(self.payload)}
        if self.function_error:
            response["FunctionError"] = self.function_error
        return response


class TestLambdaTransport:
    def test_invokes_function_by_operation_name(self):
        client = FakeLambdaClient(payload=b'{"statusCode": 200, "body": "done"}')
        reply = LambdaTransport(client=client).invoke("upload-object", ENVELOPE, 5.0)

        assert reply == {"statusCode": 200, "body": "done"}
        call = client.calls[0]
        assert call["FunctionName"] == "upload-object"
        assert call["InvocationType"] == "RequestResponse"
        assert json.loads(call["Payload"]) == ENVELOPE

    def test_function_error(self):
        client = FakeLambdaClient(payload=b'{"errorMessage": "boom"}', function_error="Unhandled")
        with pytest.raises(SubOperationError, match="Unhandled"):
            LambdaTransport(client=client).invoke("op", ENVELOPE, 5.0)

    def test_client_error(self):
        exc = ClientError({"Error": {"Code": "ResourceNotFoundException", "Message": "nope"}}, "Invoke")
        with pytest.raises(SubOperationError, match="ResourceNotFoundException"):
            LambdaTransport(client=FakeLambdaClient(exc=exc)).invoke("op", ENVELOPE, 5.0)


class TestLocalTransport:
    def test_dispatches_by_name(self):
        transport = LocalTransport()
        transport.register("op", lambda event: {"statusCode": 200, "body": event["body"]})
        assert transport.operations == ["op"]
        assert transport.invoke("op", ENVELOPE, 1.0)["body"] == ENVELOPE["body"]

    def test_unknown_operation(self):
        with pytest.raises(SubOperationError, match="not registered"):
            LocalTransport().invoke("op", ENVELOPE, 1.0)


class TestHTTPTransportClient:
    def test_owned_client_is_shared_and_closed(self):
        transport = HTTPTransport("http://backend")
        client = transport._client
        assert isinstance(client, httpx.Client)
        transport.close()
        assert client.is_closed
        transport.close()

    def test_injected_client_is_left_open(self):
        client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})))
        transport = HTTPTransport("http://backend", client=client)
        transport.invoke("op", ENVELOPE, 5.0)
        transport.invoke("op", ENVELOPE, 5.0)
        transport.close()
        assert not client.is_closed
        client.close()
