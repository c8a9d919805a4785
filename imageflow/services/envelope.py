"""
Wire envelopes for backend operations.

Calls wrap the real arguments as a JSON string under "body"; replies carry
their result under "body" too, optionally base64 encoded.
"""
import base64
import binascii
import json
from typing import Any, Dict, Optional

TEXT_CONTENT_TYPES = ("text/", "application/json")
KEEPALIVE_SENTINEL = "EventBridgeInvoke"
KEEPALIVE_MESSAGE = "No action taken for EventBridge invocation."


def wrap(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Build the call envelope: {"body": "<json payload>"}."""
    return {"body": json.dumps(payload)}


def unwrap(envelope: Any) -> Any:
    """
    Extract the inbound body from an event.

    Returns the keepalive sentinel as-is, the decoded JSON object otherwise.
    Raises ValueError for malformed bodies.
    """
    body = envelope.get("body") if isinstance(envelope, dict) else envelope
    if body is None:
        raise ValueError("request body is missing")
    if isinstance(body, dict):
        return body
    if isinstance(envelope, dict) and envelope.get("isBase64Encoded"):
        body = base64.b64decode(body).decode("utf-8")
    if body == KEEPALIVE_SENTINEL:
        return body
    decoded = json.loads(body)
    if not isinstance(decoded, dict):
        raise ValueError("request body must be a JSON object")
    return decoded


def reply(
    status_code: int,
    body: str,
    content_type: str = "text/plain",
    base64_encode: bool = False,
    headers: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """Build a reply / response envelope."""
    all_headers = {"Content-Type": content_type}
    if headers:
        all_headers.update(headers)
    if base64_encode:
        body = base64.b64encode(body.encode("utf-8")).decode("ascii")
    return {
        "statusCode": status_code,
        "headers": all_headers,
        "body": body,
        "isBase64Encoded": base64_encode,
    }


def keepalive() -> Dict[str, Any]:
    return {"statusCode": 200, "body": KEEPALIVE_MESSAGE}


def content_type_of(envelope: Dict[str, Any]) -> str:
    """Content-Type of a reply, "" when absent. Raises ValueError for non-object headers."""
    headers = envelope.get("headers") or {}
    if not isinstance(headers, dict):
        raise ValueError(f"reply headers must be an object, got {type(headers).__name__}")
    for name, value in headers.items():
        if name.lower() == "content-type":
            return str(value)
    return ""


def extract_body(envelope: Dict[str, Any]) -> str:
    """
    Result text of a reply envelope. Missing body yields "".

    Base64 bodies with a textual content type are decoded; binary bodies stay
    base64 so they can be forwarded to the next operation.
    """
    content_type = content_type_of(envelope)
    body = envelope.get("body")
    if body is None:
        return ""
    if not isinstance(body, str):
        return json.dumps(body)
    if envelope.get("isBase64Encoded") and content_type.startswith(TEXT_CONTENT_TYPES):
        try:
            return base64.b64decode(body, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            return body
    return body
