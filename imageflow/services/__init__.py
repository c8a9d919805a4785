"""Services for imageflow."""
from .image_transform import ThumbnailTransform
from .remote import RemoteOperationClient
from .secrets import EnvSecretSource, ParameterStoreSecretSource, StaticSecretSource
from .tokens import TokenService, issue_token, verify_token
from .transports import HTTPTransport, LambdaTransport, LocalTransport

__all__ = [
    "RemoteOperationClient",
    "HTTPTransport",
    "LambdaTransport",
    "LocalTransport",
    "TokenService",
    "issue_token",
    "verify_token",
    "StaticSecretSource",
    "EnvSecretSource",
    "ParameterStoreSecretSource",
    "ThumbnailTransform",
]
