"""
Protocols (Interfaces) for Dependency Inversion.

Small, focused interfaces for the collaborators a workflow depends on.
"""
from typing import Any, Awaitable, Dict, Protocol, runtime_checkable

from .models import SubOperationResult


@runtime_checkable
class ITransport(Protocol):
    """Interface for delivering an envelope to a named backend operation."""

    def invoke(self, operation: str, envelope: Dict[str, Any], timeout: float) -> Dict[str, Any]:
        """Send envelope, return the decoded reply envelope."""
        ...


@runtime_checkable
class IOperationClient(Protocol):
    """Interface for invoking backend operations."""

    def call(self, operation: str, payload: Dict[str, Any]) -> SubOperationResult:
        """Invoke synchronously. Never raises for backend failures."""
        ...

    def call_async(self, operation: str, payload: Dict[str, Any]) -> Awaitable[SubOperationResult]:
        """Schedule for parallel execution, return an awaitable handle."""
        ...


@runtime_checkable
class ISecretSource(Protocol):
    """Interface for resolving the shared token secret."""

    def get_secret(self) -> str:
        """Return the secret value. Raises KeyError when unavailable."""
        ...


@runtime_checkable
class IImageTransform(Protocol):
    """Interface for image downscaling."""

    def transform(self, data: bytes) -> bytes:
        """Return encoded thumbnail bytes."""
        ...
