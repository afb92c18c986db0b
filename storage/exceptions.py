"""Exception hierarchy for the capability relay.

Store-level faults (NotFound, AccessDenied, TransientStoreError,
SigningUnsupported) are raised by the object store adapters. Pipeline faults
(ContainerProvisionError, UploadError, PolicyStagingError) wrap a store fault
with the step that failed.
"""

from typing import Any, Dict, Optional


class StorageRelayError(Exception):
    """Base exception for all relay errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code


class ConfigurationError(StorageRelayError):
    """Raised when required settings are missing or invalid."""
    pass


class InvalidRequestError(StorageRelayError):
    """Raised when caller input breaks store naming rules."""

    status_code = 400


class NotFound(StorageRelayError):
    """Container or object does not exist."""

    status_code = 404


class AccessDenied(StorageRelayError):
    """The store rejected the credential or the capability."""

    status_code = 403


class TransientStoreError(StorageRelayError):
    """Connectivity or service fault. Not retried."""

    status_code = 503


class SigningUnsupported(StorageRelayError):
    """The handle cannot produce a capability signature."""
    pass


class PipelineStepError(StorageRelayError):
    """
    Wraps a store fault with the issuance step that raised it.

    The wrapped fault's status code is kept so the HTTP layer can pass it through.
    """

    step: str = "unknown"

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        status_code = getattr(cause, "status_code", None)
        details = dict(details or {})
        details.setdefault("step", self.step)
        super().__init__(message, details=details, status_code=status_code)
        self.cause = cause


class ContainerProvisionError(PipelineStepError):
    step = "provision_container"


class UploadError(PipelineStepError):
    step = "upload"


class PolicyStagingError(PipelineStepError):
    step = "stage_policy"
