"""Exception taxonomy shared by the API, worker and pipeline services."""

from __future__ import annotations


class PipelineError(RuntimeError):
    """Base class for failures raised while handling a submission."""


class ClientInputError(PipelineError):
    """The submission itself is unacceptable; answered with HTTP 400."""

    response_key = "message"


class MissingFieldError(ClientInputError):
    """A required submission field is absent."""

    def __init__(self, field: str) -> None:
        super().__init__(f"missing required field: {field}")
        self.field = field


class VerificationError(ClientInputError):
    """A screenshot fingerprint was not found in the run logs."""

    response_key = "status"

    def __init__(self, image_name: str, fingerprint: str) -> None:
        super().__init__("screenshot sha not found in action logs")
        self.image_name = image_name
        self.fingerprint = fingerprint


class DependencyError(PipelineError):
    """An external collaborator (GitHub, storage, queue) failed."""


class NotFoundError(PipelineError):
    """A referenced record does not exist."""


class StagedRecordNotFound(NotFoundError):
    """No staged submission exists for a continuation id."""

    def __init__(self, request_id: str) -> None:
        super().__init__(f"no staged submission for request {request_id}")
        self.request_id = request_id
