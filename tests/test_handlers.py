"""Tests for the front-door handlers, end to end over local backends."""
import base64
import io
import json

import pytest
from PIL import Image

from imageflow.handlers import (
    ACCESS_DENIED_MESSAGE,
    dispatch_delete,
    dispatch_list,
    dispatch_upload,
    handle_issue_token,
    handle_list,
    handle_upload,
)
from imageflow.models import WorkflowConfig
from imageflow.orchestrator import WorkflowOrchestrator
from imageflow.services.backends import LocalBackends
from imageflow.services.secrets import StaticSecretSource
from imageflow.services.tokens import TokenService, issue_token

SECRET = "s3cret"
EMAIL = "a@b.com"
CONFIG = WorkflowConfig(token_secret=SECRET, transport="local")


def _png_b64(size=(320, 240)):
    out = io.BytesIO()
    Image.new("RGB", size, (10, 200, 10)).save(out, format="PNG")
    return base64.b64encode(out.getvalue()).decode()


def _event(**body):
    return {"body": json.dumps(body)}


def _decoded(response):
    assert response["isBase64Encoded"] is True
    return base64.b64decode(response["body"]).decode()


@pytest.fixture
def backends():
    return LocalBackends(StaticSecretSource(SECRET), CONFIG)


def test_keepalive_is_answered_without_work():
    response = handle_upload({"body": "EventBridgeInvoke"}, config=CONFIG)
    assert response == {"statusCode": 200, "body": "No action taken for EventBridge invocation."}


def test_missing_fields_are_bad_requests():
    response = handle_list(_event(email=EMAIL), config=CONFIG)
    assert response["statusCode"] == 400
    assert "token" in json.loads(response["body"])["error"]


def test_malformed_body_is_bad_request():
    response = handle_list({"body": "{not json"}, config=CONFIG)
    assert response["statusCode"] == 400


def test_invalid_token_is_denied():
    response = handle_list(_event(email=EMAIL, token="forged"), config=CONFIG)
    assert response["statusCode"] == 403
    assert response["body"] == ACCESS_DENIED_MESSAGE
    assert response["headers"]["Content-Type"] == "text/plain"


def test_upload_with_valid_token():
    token = issue_token(EMAIL, SECRET)
    response = handle_upload(
        _event(email=EMAIL, token=token, content=_png_b64(), key="cat.png", description="a cat"),
        config=CONFIG,
    )
    assert response["statusCode"] == 200
    assert _decoded(response) == (
        "Object uploaded successfully" "Object uploaded successfully" "Upload description success"
    )
    assert "X-Workflow-Status" not in response["headers"]


@pytest.mark.asyncio
async def test_upload_list_delete_round_trip(backends):
    token = issue_token(EMAIL, SECRET)
    async with WorkflowOrchestrator(CONFIG, transport=backends.transport()) as orchestrator:
        response = await dispatch_upload(
            _event(email=EMAIL, token=token, content=_png_b64(), key="cat.png", description="a cat"),
            orchestrator,
        )
        assert response["statusCode"] == 200

        [key] = backends.objects.keys(CONFIG.primary_container)
        assert key.endswith(".png")
        assert backends.objects.keys(CONFIG.resized_container) == ["resized-" + key]
        with Image.open(io.BytesIO(backends.objects.get(CONFIG.resized_container, "resized-" + key))) as img:
            assert img.format == "JPEG"
            assert img.size == (100, 75)

        listed = await dispatch_list(_event(email=EMAIL, token=token), orchestrator)
        assert json.loads(_decoded(listed)) == [{"imageKey": key, "description": "a cat", "email": EMAIL}]

        deleted = await dispatch_delete(_event(email=EMAIL, token=token, key=key), orchestrator)
        assert _decoded(deleted) == (
            "Object deleted successfully" "Delete description success" "Object deleted successfully"
        )

    assert backends.objects.keys(CONFIG.primary_container) == []
    assert backends.objects.keys(CONFIG.resized_container) == []
    assert backends.metadata.rows() == []


@pytest.mark.asyncio
async def test_invalid_image_surfaces_partial_failure(backends):
    token = issue_token(EMAIL, SECRET)
    async with WorkflowOrchestrator(CONFIG, transport=backends.transport()) as orchestrator:
        response = await dispatch_upload(
            _event(email=EMAIL, token=token, content="aGVsbG8=", key="x.png"),
            orchestrator,
        )

    assert response["statusCode"] == 200
    assert response["headers"]["X-Workflow-Status"] == "partial"
    text = _decoded(response)
    assert text.startswith("Object uploaded successfully")
    assert "Error calling image-resizer" in text
    assert "Error calling upload-object" in text
    assert text.endswith("Upload description success")
    assert len(backends.objects.keys(CONFIG.primary_container)) == 1
    assert backends.objects.keys(CONFIG.resized_container) == []


@pytest.mark.asyncio
async def test_structured_response(backends):
    config = WorkflowConfig(token_secret=SECRET, structured_response=True)
    token = issue_token(EMAIL, SECRET)
    async with WorkflowOrchestrator(config, transport=backends.transport()) as orchestrator:
        response = await dispatch_delete(_event(email=EMAIL, token=token, key="k.png"), orchestrator)

    assert response["headers"]["Content-Type"] == "application/json"
    data = json.loads(response["body"])
    assert data["status"] == "success"
    assert [step["operation"] for step in data["steps"]] == [
        "delete-original",
        "delete-metadata",
        "delete-resized",
    ]


class TestIssueToken:
    def test_issues_token(self):
        response = handle_issue_token(_event(email=EMAIL), tokens=TokenService(StaticSecretSource(SECRET)))
        assert response["statusCode"] == 200
        assert json.loads(response["body"]) == {"token": issue_token(EMAIL, SECRET)}

    def test_email_required(self):
        response = handle_issue_token(_event(), config=CONFIG)
        assert response["statusCode"] == 400
        assert json.loads(response["body"])["error"] == "Email is required"

    def test_missing_secret(self):
        response = handle_issue_token(_event(email=EMAIL), tokens=TokenService(StaticSecretSource(None)))
        assert response["statusCode"] == 500

    def test_keepalive(self):
        response = handle_issue_token({"body": "EventBridgeInvoke"}, config=CONFIG)
        assert response["statusCode"] == 200
