"""Exception hierarchy for imageflow."""


class ImageflowError(Exception):
    """Base class for imageflow errors."""


class CryptoError(ImageflowError):
    """Raised when the keyed-hash primitive cannot be initialized."""


class InvalidRequestError(ImageflowError, ValueError):
    """Raised when an inbound request envelope is malformed."""


class AuthorizationDenied(ImageflowError):
    """Token verification returned false or errored."""


class SubOperationError(ImageflowError):
    """A backend call failed. Captured as data by the remote client, never propagated."""

    def __init__(self, operation: str, detail: str):
        super().__init__(f"Error calling {operation}: {detail}")
        self.operation = operation
        self.detail = detail


class AggregationPartialFailure(ImageflowError):
    """Some sub-operations of a workflow failed while others succeeded."""

    def __init__(self, workflow: str, errors):
        self.workflow = workflow
        self.errors = list(errors)
        super().__init__(f"{workflow}: {len(self.errors)} step(s) failed: " + "; ".join(self.errors))


class FatalOrchestrationError(ImageflowError):
    """The concurrent wait itself faulted; the workflow degrades to one error."""
