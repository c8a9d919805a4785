"""
In-process collaborator backends.

Stand-ins for the external object store, metadata store, image resizer and
token operations, so workflows can run end-to-end through LocalTransport.
Each handler takes a call envelope and returns a reply envelope.
"""
from __future__ import annotations

import base64
import binascii
import functools
import json
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..models import WorkflowConfig
from ..protocols import ISecretSource
from . import envelope
from .image_transform import ThumbnailTransform
from .tokens import TokenService
from .transports import LocalTransport

logger = logging.getLogger(__name__)


def backend_handler(error_body: str):
    """Decorate a handler: keepalive sentinel, body decoding, 500 on failure."""

    def decorator(func: Callable[[Dict[str, Any]], Dict[str, Any]]):
        @functools.wraps(func)
        def wrapper(event: Dict[str, Any]) -> Dict[str, Any]:
            try:
                body = envelope.unwrap(event)
            except (ValueError, TypeError) as exc:
                logger.error(f"[backend] {func.__name__}: bad request: {exc}")
                return envelope.reply(400, json.dumps({"error": str(exc)}), "application/json")
            if body == envelope.KEEPALIVE_SENTINEL:
                return envelope.keepalive()
            try:
                return func(body)
            except Exception as exc:
                logger.error(f"[backend] {func.__name__}: {exc}")
                return envelope.reply(500, error_body, "application/json")

        return wrapper

    return decorator


class ObjectStore:
    """Named blobs in named containers."""

    def __init__(self):
        self._objects: Dict[Tuple[str, str], bytes] = {}
        self._lock = threading.Lock()

    def put(self, container: str, key: str, data: bytes) -> None:
        with self._lock:
            self._objects[(container, key)] = data

    def delete(self, container: str, key: str) -> bool:
        with self._lock:
            return self._objects.pop((container, key), None) is not None

    def get(self, container: str, key: str) -> Optional[bytes]:
        with self._lock:
            return self._objects.get((container, key))

    def keys(self, container: str) -> List[str]:
        with self._lock:
            return sorted(k for c, k in self._objects if c == container)

    def handlers(self) -> Dict[str, Callable]:
        @backend_handler('{"error": "Upload failed"}')
        def upload_object(body: Dict[str, Any]) -> Dict[str, Any]:
            content = body["content"]
            if not content:
                raise ValueError("content is empty")
            try:
                data = base64.b64decode(content, validate=True)
            except binascii.Error as exc:
                raise ValueError(f"content is not valid base64: {exc}") from exc
            self.put(body["bucket"], body["key"], data)
            logger.info(f"[backend] stored {body['bucket']}/{body['key']} ({len(data)} bytes)")
            return envelope.reply(200, "Object uploaded successfully", base64_encode=True)

        @backend_handler('{"error": "Delete failed"}')
        def delete_object(body: Dict[str, Any]) -> Dict[str, Any]:
            existed = self.delete(body["bucket"], body["key"])
            logger.info(f"[backend] deleted {body['bucket']}/{body['key']} (existed={existed})")
            return envelope.reply(200, "Object deleted successfully", base64_encode=True)

        return {"upload-object": upload_object, "delete-object": delete_object}


class MetadataStore:
    """Description records keyed by object key."""

    def __init__(self):
        self._rows: Dict[str, Dict[str, str]] = {}
        self._lock = threading.Lock()

    def insert(self, image_key: str, description: str, email: str) -> int:
        with self._lock:
            if image_key in self._rows:
                raise ValueError(f"duplicate key {image_key}")
            self._rows[image_key] = {
                "imageKey": image_key,
                "description": description,
                "email": email,
            }
            return 1

    def delete(self, image_key: str) -> int:
        with self._lock:
            return 1 if self._rows.pop(image_key, None) is not None else 0

    def rows(self, email: Optional[str] = None) -> List[Dict[str, str]]:
        with self._lock:
            rows = list(self._rows.values())
        if email:
            rows = [row for row in rows if row["email"] == email]
        return rows

    def handlers(self) -> Dict[str, Callable]:
        @backend_handler('{"message":"Error uploading description"}')
        def upload_description(body: Dict[str, Any]) -> Dict[str, Any]:
            affected = self.insert(body["imageKey"], body.get("description", ""), body.get("email", ""))
            logger.info(f"[backend] inserted {affected} row(s) for key: {body['imageKey']}")
            return envelope.reply(200, "Upload description success", "application/json", base64_encode=True)

        @backend_handler('{"message":"Error deleting description"}')
        def delete_description(body: Dict[str, Any]) -> Dict[str, Any]:
            affected = self.delete(body["imageKey"])
            logger.info(f"[backend] deleted {affected} row(s) for key: {body['imageKey']}")
            return envelope.reply(200, "Delete description success", "application/json", base64_encode=True)

        @backend_handler('{"message":"Error listing descriptions"}')
        def list_descriptions(body: Dict[str, Any]) -> Dict[str, Any]:
            return envelope.reply(200, json.dumps(self.rows(body.get("email"))), "application/json")

        return {
            "upload-description": upload_description,
            "delete-description": delete_description,
            "list-descriptions": list_descriptions,
        }


def image_resizer_handler(transform: ThumbnailTransform) -> Callable:
    @backend_handler('{"error": "Upload failed"}')
    def image_resizer(body: Dict[str, Any]) -> Dict[str, Any]:
        encoded = transform.transform_base64(body["content"])
        return {
            "statusCode": 200,
            "headers": {"Content-Type": "image/jpeg"},
            "body": encoded,
            "isBase64Encoded": True,
        }

    return image_resizer


def token_handlers(tokens: TokenService) -> Dict[str, Callable]:
    @backend_handler('{"success": false, "error": "Token check failed"}')
    def token_checker(body: Dict[str, Any]) -> Dict[str, Any]:
        if tokens.verify(body.get("email", ""), body.get("token", "")):
            result = {"success": True}
        else:
            result = {"success": False, "error": "Invalid token"}
        return envelope.reply(200, json.dumps(result), "application/json")

    @backend_handler('{"success": false, "error": "Token generation failed"}')
    def token_generator(body: Dict[str, Any]) -> Dict[str, Any]:
        email = body.get("email")
        if not email:
            return envelope.reply(
                400, json.dumps({"success": False, "error": "Email is required"}), "application/json"
            )
        return envelope.reply(200, json.dumps({"token": tokens.issue(email)}), "application/json")

    return {"token-checker": token_checker, "token-generator": token_generator}


class LocalBackends:
    """All collaborator backends wired for one process."""

    def __init__(self, secret_source: ISecretSource, config: Optional[WorkflowConfig] = None):
        self.config = config or WorkflowConfig()
        self.objects = ObjectStore()
        self.metadata = MetadataStore()
        self.tokens = TokenService(secret_source)
        self.transform = ThumbnailTransform(self.config.thumbnail_max_dimension)

    def handlers(self) -> Dict[str, Callable]:
        cfg = self.config
        objects = self.objects.handlers()
        metadata = self.metadata.handlers()
        tokens = token_handlers(self.tokens)
        return {
            cfg.store_object_operation: objects["upload-object"],
            cfg.delete_object_operation: objects["delete-object"],
            cfg.insert_metadata_operation: metadata["upload-description"],
            cfg.delete_metadata_operation: metadata["delete-description"],
            cfg.list_metadata_operation: metadata["list-descriptions"],
            cfg.transform_operation: image_resizer_handler(self.transform),
            cfg.token_check_operation: tokens["token-checker"],
            cfg.token_issue_operation: tokens["token-generator"],
        }

    def transport(self) -> LocalTransport:
        return LocalTransport(self.handlers())
